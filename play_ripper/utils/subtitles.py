"""
字幕拼接模块 - 将分段 WebVTT 字幕合并为一个 SRT 文档
"""
from __future__ import annotations

import os
import re
from urllib.parse import urljoin

import m3u8

from play_ripper.types import SubtitleDocument
from play_ripper.utils.logger import logger
from play_ripper.utils.network import NetworkHandler


CUE_INDEX_RE = re.compile(r"^\d+$")

# WebVTT timing line; the hour part is optional there but mandatory in SRT.
VTT_TIMING_RE = re.compile(
    r"^(?:(\d{2,}):)?(\d{2}):(\d{2})\.(\d{3})\s+-->\s+(?:(\d{2,}):)?(\d{2}):(\d{2})\.(\d{3})[^\n]*$",
    re.MULTILINE,
)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _to_srt_timing(m: re.Match) -> str:
    h1, m1, s1, ms1, h2, m2, s2, ms2 = m.groups()
    return f"{h1 or '00'}:{m1}:{s1},{ms1} --> {h2 or '00'}:{m2}:{s2},{ms2}"


def vtt_to_srt_timings(text: str) -> str:
    """Rewrite WebVTT timing lines as SRT timing lines (comma before milliseconds)."""
    return VTT_TIMING_RE.sub(_to_srt_timing, text)


def _cue_index_lines(lines: list[str]) -> list[int]:
    """Positions of lines holding a cue index (digits followed by a timing line)."""
    positions = []
    for i, line in enumerate(lines[:-1]):
        if CUE_INDEX_RE.match(line.strip()) and "-->" in lines[i + 1]:
            positions.append(i)
    return positions


def strip_segment(text: str, previous_last: int | None) -> tuple[str, int | None]:
    """Prepare one caption segment for concatenation.

    Drops the per-segment header before the first cue index and, when that
    first index repeats ``previous_last``, the first cue as well.

    Returns:
        (body, last_index): body ends with exactly one blank line, or is empty
        when the segment carries no cues.
    """
    lines = normalize_newlines(text).split("\n")
    positions = _cue_index_lines(lines)
    if not positions:
        return "", None

    first_index = int(lines[positions[0]].strip())
    last_index = int(lines[positions[-1]].strip())
    start = positions[0]
    if previous_last is not None and first_index == previous_last:
        if len(positions) == 1:
            return "", last_index
        start = positions[1]

    body = "\n".join(lines[start:]).rstrip("\n")
    return body + "\n\n", last_index


def reference_lines(body: str, playlist_url: str) -> list[str]:
    """Every non-blank, non-comment line of a playlist, resolved against its URL."""
    refs = []
    for line in body.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            refs.append(urljoin(playlist_url, line))
    return refs


class SubtitleAssembler:
    def __init__(self, network_handler: NetworkHandler):
        self.network = network_handler

    def segment_urls(self, playlist_url: str) -> list[str] | None:
        result = self.network.fetch(playlist_url)
        if not result.ok:
            logger.warning(f"Subtitle playlist unavailable (status {result.status}): {playlist_url}")
            return None
        try:
            playlist = m3u8.loads(result.body, uri=playlist_url)
        except Exception as e:
            logger.warning(f"Subtitle playlist could not be parsed: {e}")
            return None
        urls = [seg.absolute_uri for seg in playlist.segments if seg.uri and seg.uri.strip()]
        if not urls:
            # m3u8 only yields references that follow #EXTINF
            urls = reference_lines(result.body, playlist_url)
        return urls

    def build(self, playlist_url: str) -> SubtitleDocument | None:
        """
        下载并拼接字幕

        Returns:
            The stitched document, or None when any part is unavailable.
        """
        urls = self.segment_urls(playlist_url)
        if not urls:
            logger.warning("No subtitle segments found")
            return None

        logger.info(f"Fetching {len(urls)} subtitle segments")
        parts: list[str] = []
        previous_last: int | None = None
        for url in urls:
            result = self.network.fetch(url)
            if not result.ok:
                logger.warning(f"Subtitle segment unavailable (status {result.status}), skipping subtitles: {url}")
                return None
            body, last_index = strip_segment(result.body, previous_last)
            if last_index is not None:
                previous_last = last_index
            parts.append(body)

        document = SubtitleDocument.parse(vtt_to_srt_timings("".join(parts)))
        if not document.cues:
            logger.warning("Subtitle segments carried no cues")
            return None
        if not document.is_contiguous():
            logger.warning("Subtitle cue numbering has gaps, segments may be missing cues")
        return document

    def assemble(self, playlist_url: str) -> str | None:
        """Return the stitched subtitles as SRT text, or None."""
        document = self.build(playlist_url)
        return document.to_srt() if document else None


def subtitles_path_for(output_path: str) -> str:
    return os.path.splitext(output_path)[0] + ".srt"


def write_subtitles(path: str, text: str, overwrite: bool = False) -> bool:
    """Write the subtitle file; an existing file is kept unless overwrite is set."""
    if os.path.exists(path) and not overwrite:
        logger.warning(f"Subtitle file already exists, not overwriting: {path}")
        return False
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info(f"Subtitles written: {path}")
    return True
