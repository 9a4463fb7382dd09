from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any


def two_digit(value: str | int | None) -> str | None:
    """Render a season/episode number as a zero-padded two-digit string."""
    if value is None:
        return None
    m = re.search(r"\d+", str(value))
    if not m:
        return None
    return f"{int(m.group(0)):02d}"


@dataclass(frozen=True)
class MetadataRecord:
    """Everything known about one source after extraction and resolving."""

    url: str
    title: str | None = None
    series_title: str | None = None
    season: str | None = None
    episode: str | None = None
    category: str | None = None
    program_id: str | None = None
    stream_url: str | None = None
    subtitles_url: str | None = None

    def __post_init__(self) -> None:
        episode = two_digit(self.episode)
        season = two_digit(self.season)
        if episode is not None and season is None:
            season = "01"
        object.__setattr__(self, "episode", episode)
        object.__setattr__(self, "season", season)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "url": self.url,
            "title": self.title,
            "seriesTitle": self.series_title,
            "season": self.season,
            "episode": self.episode,
            "category": self.category,
            "programId": self.program_id,
            "streamUrl": self.stream_url,
            "subtitlesUrl": self.subtitles_url,
        }
        return {k: v for k, v in data.items() if v is not None}


_SRT_TIMING_RE = re.compile(r"^(\d{2}:\d{2}:\d{2},\d{3}) --> (\d{2}:\d{2}:\d{2},\d{3})")


@dataclass
class Cue:
    index: int
    start: str
    end: str
    text: str = ""


@dataclass
class SubtitleDocument:
    cues: list[Cue] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "SubtitleDocument":
        """Parse SRT text; blocks without an index and a timing line are skipped."""
        cues: list[Cue] = []
        blocks = re.split(r"\n\s*\n", (text or "").replace("\r\n", "\n").strip())
        for block in blocks:
            lines = block.split("\n")
            if len(lines) < 2 or not lines[0].strip().isdigit():
                continue
            m = _SRT_TIMING_RE.match(lines[1].strip())
            if not m:
                continue
            cues.append(Cue(int(lines[0].strip()), m.group(1), m.group(2), "\n".join(lines[2:])))
        return cls(cues)

    @property
    def indices(self) -> list[int]:
        return [c.index for c in self.cues]

    def is_contiguous(self) -> bool:
        idx = self.indices
        return all(b == a + 1 for a, b in zip(idx, idx[1:]))

    def to_srt(self) -> str:
        return "".join(f"{c.index}\n{c.start} --> {c.end}\n{c.text}\n\n" for c in self.cues)
