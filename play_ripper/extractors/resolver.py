"""
Stream resolver: fills in stream and caption URLs the page markup did not carry.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from urllib.parse import unquote, urlsplit

from play_ripper.types import MetadataRecord
from play_ripper.utils.logger import logger


API_URL_TEMPLATE = "https://api.svt.se/videoplayer-api/video/{program_id}?universe={universe}"

# Hosts whose programs are only listed in the superset universe.
SUPERSET_HOSTS = ("oppetarkiv.se",)

# Query parameter on embedded stream URLs that carries the caption playlist.
ALT_CAPTIONS_TOKEN = "alt="


@dataclass(frozen=True)
class ApiMedia:
    media_url: str | None = None
    subtitles_url: str | None = None


def decode_caption_url(value: str) -> str:
    """Percent-decode, map ``+`` to space, drop anything after ``.m3u8``."""
    decoded = unquote(value).replace("+", " ")
    pos = decoded.find(".m3u8")
    if pos != -1:
        decoded = decoded[: pos + len(".m3u8")]
    return decoded


def universe_for(url: str, superset_hosts=SUPERSET_HOSTS) -> str:
    host = (urlsplit(url).hostname or "").lower()
    if any(host == h or host.endswith("." + h) for h in superset_hosts):
        return "superset"
    return "regular"


def parse_api_media(body: str) -> ApiMedia:
    """Parse the metadata endpoint's JSON body. Unexpected shapes give an empty result."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as e:
        logger.warning(f"Metadata response is not valid JSON: {e}")
        return ApiMedia()
    if not isinstance(data, dict):
        return ApiMedia()

    media_url = data.get("mediaUrl")
    if not isinstance(media_url, str) or not media_url.strip():
        media_url = None

    subtitles_url = data.get("webVttSubtitlesUrl")
    if isinstance(subtitles_url, str) and subtitles_url.strip():
        subtitles_url = decode_caption_url(subtitles_url.strip())
    else:
        subtitles_url = None

    return ApiMedia(media_url=media_url.strip() if media_url else None, subtitles_url=subtitles_url)


def split_alternate_captions(stream_url: str) -> tuple[str, str | None]:
    """Split an embedded stream URL that carries an ``alt=`` caption parameter.

    Returns the stream URL cut before the parameter and the decoded caption
    playlist URL, or the input unchanged and None.
    """
    query_start = stream_url.find("?")
    if query_start == -1:
        return stream_url, None

    pos = -1
    for sep in ("?", "&"):
        candidate = stream_url.find(sep + ALT_CAPTIONS_TOKEN, query_start)
        if candidate != -1 and (pos == -1 or candidate < pos):
            pos = candidate
    if pos == -1:
        return stream_url, None

    value = stream_url[pos + 1 + len(ALT_CAPTIONS_TOKEN):]
    captions = decode_caption_url(value) if value else None
    return stream_url[:pos], captions or None


class StreamResolver:
    def __init__(
        self,
        network_handler,
        api_url_template: str = API_URL_TEMPLATE,
        superset_hosts=SUPERSET_HOSTS,
    ):
        self.network = network_handler
        self.api_url_template = api_url_template
        self.superset_hosts = tuple(superset_hosts)

    def api_url(self, record: MetadataRecord) -> str:
        return self.api_url_template.format(
            program_id=record.program_id,
            universe=universe_for(record.url, self.superset_hosts),
        )

    def fetch_media(self, record: MetadataRecord) -> ApiMedia:
        url = self.api_url(record)
        logger.info(f"Querying metadata API: {url}")
        result = self.network.fetch(url)
        if not result.ok:
            logger.warning(f"Metadata API request failed (status {result.status}): {url}")
            return ApiMedia()
        return parse_api_media(result.body)

    def resolve(self, record: MetadataRecord) -> MetadataRecord:
        """Return a record with ``stream_url``/``subtitles_url`` filled where possible.

        The caller falls back to the original input URL when ``stream_url`` is
        still missing afterwards.
        """
        if record.stream_url:
            stream_url, captions = split_alternate_captions(record.stream_url)
            if captions and not record.subtitles_url:
                return replace(record, stream_url=stream_url, subtitles_url=captions)
            return replace(record, stream_url=stream_url)

        if not record.program_id:
            logger.info("No embedded stream URL and no program id")
            return record

        media = self.fetch_media(record)
        if not media.media_url:
            return record
        return replace(
            record,
            stream_url=media.media_url,
            subtitles_url=record.subtitles_url or media.subtitles_url,
        )
