"""
Event-driven page scanner.

``PageScanner`` is an lxml parser target: lxml calls ``start``/``data``/``end``
while it walks the markup and the scanner keeps a stack of open elements plus
the handful of fields the extractor cares about. Nothing here fetches or
post-processes; see ``extractors.svtplay`` for that.
"""
from __future__ import annotations

import json
import re


HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# <meta name="..." content="..."> names and the record field they fill
META_FIELDS = {
    "episodenumber": "episode",
    "seriestitle": "series_title",
    "kategori_id": "category",
    "programid": "program_id",
}

STREAM_URL_ATTRIBUTES = ("data-hls-url", "data-stream-url")

# Innermost first: the heading's div, its season box, the seasons container.
SEASON_HEADING_PATTERN = (
    ("div", "box-heading"),
    (None, "season-box"),
    (None, "seasons-container"),
)

SEASON_LABEL_RE = re.compile(r"^\s*(?:Season|Säsong)\s+", re.IGNORECASE)

# The value ends at the quote that opened it; backslash escapes are skipped.
STATISTICS_TITLE_RE = re.compile(
    r"statistics\W[^{]*\{[^}]*?[\"']?programTitle[\"']?\s*:\s*([\"'])((?:\\.|(?!\1).)*)\1",
    re.DOTALL,
)


def decode_script_string(quote: str, value: str) -> str:
    """Decode the escapes of a quoted script literal's body."""
    if quote == '"':
        try:
            return json.loads(f'"{value}"')
        except ValueError:
            return value
    return re.sub(r"\\(.)", r"\1", value)


class ParseContext:
    """Stack of currently open ``(tag, class)`` frames."""

    def __init__(self) -> None:
        self.frames: list[tuple[str, str]] = []

    def __len__(self) -> int:
        return len(self.frames)

    def push(self, tag: str, css_class: str = "") -> None:
        self.frames.append((tag, css_class or ""))

    def pop_until(self, tag: str) -> bool:
        """Pop frames down to and including the innermost ``tag``.

        A close tag that was never opened leaves the stack untouched.
        """
        for i in range(len(self.frames) - 1, -1, -1):
            if self.frames[i][0] == tag:
                del self.frames[i:]
                return True
        return False

    def matches_from_top(self, *pattern: tuple[str | None, str]) -> bool:
        if len(self.frames) < len(pattern):
            return False
        for depth, (tag, fragment) in enumerate(pattern, start=1):
            frame_tag, frame_class = self.frames[-depth]
            if tag is not None and frame_tag != tag:
                return False
            if fragment not in frame_class:
                return False
        return True


class PageScanner:
    def __init__(self) -> None:
        self.context = ParseContext()
        self.fields: dict[str, str] = {}
        self.stream_url: str | None = None
        self.title: str | None = None
        self.season: str | None = None
        self.title_override: str | None = None
        # Most recent non-blank text run
        self.text = ""
        self._run = ""
        self._in_run = False

    # -- lxml target interface --

    def start(self, tag, attrib) -> None:
        tag = str(tag).lower()
        self._in_run = False
        self.context.push(tag, attrib.get("class") or "")

        if tag == "meta":
            name = (attrib.get("name") or "").strip().lower()
            content = (attrib.get("content") or "").strip()
            field = META_FIELDS.get(name)
            if field and content:
                self.fields[field] = content

        if self.stream_url is None:
            for attr in STREAM_URL_ATTRIBUTES:
                value = (attrib.get(attr) or "").strip()
                if value:
                    self.stream_url = value
                    break

    def data(self, data: str) -> None:
        if not len(self.context):
            return
        if self._in_run:
            self._run += data
        else:
            self._run = data
            self._in_run = True
        if self._run.strip():
            self.text = self._run.strip()

    def end(self, tag) -> None:
        tag = str(tag).lower()
        self._in_run = False
        self.context.pop_until(tag)

        if tag == "title":
            if self.title is None and self.text:
                self.title = self.text
        elif tag in HEADING_TAGS:
            if self.season is None and self.context.matches_from_top(*SEASON_HEADING_PATTERN):
                season = SEASON_LABEL_RE.sub("", self.text).strip()
                self.season = season or None
        elif tag == "script":
            m = STATISTICS_TITLE_RE.search(self.text)
            if m:
                self.title_override = decode_script_string(m.group(1), m.group(2)).strip() or None

    def close(self) -> "PageScanner":
        return self
