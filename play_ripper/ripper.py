"""
Play Ripper - 从节目页面或流地址抓取视频与字幕
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace

from play_ripper.extractors.resolver import StreamResolver
from play_ripper.extractors.svtplay import SvtPlayExtractor
from play_ripper.orchestrator import Job, Orchestrator
from play_ripper.types import MetadataRecord
from play_ripper.utils.config import AppConfig, RipOptions
from play_ripper.utils.hls import PlaylistNormalizer
from play_ripper.utils.logger import logger
from play_ripper.utils.network import FetchError, NetworkHandler, build_proxies
from play_ripper.utils.subtitles import SubtitleAssembler


def normalize_input(url: str) -> str:
    """Trim user input and make sure it carries a scheme."""
    raw = "" if url is None else str(url)
    s = raw.strip()
    if not s:
        raise ValueError("Please enter a program page or stream URL")
    lowered = s.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return s
    return f"https://{s.lstrip('/')}"


def _safe(value: str | None) -> str:
    # 清理非法字符
    return "".join(c for c in (value or "") if c.isalpha() or c.isdigit() or c in " .-_").strip()


def output_basename(record: MetadataRecord) -> str:
    """File name (without extension) for a record, e.g. ``Series.S01E06.Title``."""
    title = _safe(record.title)
    series = _safe(record.series_title)
    parts: list[str] = []
    if series:
        parts.append(series)
    if record.episode:
        parts.append(f"S{record.season}E{record.episode}")
    if title and title != series:
        parts.append(title)
    if parts:
        return re.sub(r"\s+", " ", ".".join(parts))

    fallback = record.program_id or record.url.rstrip("/").split("/")[-1].split("?")[0]
    fallback = os.path.splitext(_safe(fallback))[0]
    return fallback or "video"


@dataclass
class SourceResult:
    url: str
    record: MetadataRecord | None = None
    job: Job | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None or (self.job is not None and not self.job.succeeded)


class Ripper:
    """Runs the extract → resolve → subtitles → encode pipeline for each source."""

    def __init__(
        self,
        cfg: AppConfig | None = None,
        network_handler: NetworkHandler | None = None,
        orchestrator: Orchestrator | None = None,
    ):
        cfg = cfg or AppConfig()
        self.network_handler = network_handler or NetworkHandler(
            retry=cfg.request_retry,
            timeout=cfg.timeout,
            proxies=build_proxies(cfg.proxy_url),
            user_agent=cfg.user_agent,
            cookie=cfg.cookie,
            domains=cfg.broadcaster_domains,
        )
        self.extractor = SvtPlayExtractor(self.network_handler, domains=cfg.broadcaster_domains)
        self.resolver = StreamResolver(
            self.network_handler,
            api_url_template=cfg.metadata_api_url,
            superset_hosts=cfg.superset_hosts,
        )
        self.subtitles = SubtitleAssembler(self.network_handler)
        self.orchestrator = orchestrator or Orchestrator(
            PlaylistNormalizer(self.network_handler),
            encoder=cfg.encoder_path,
            max_jobs=cfg.max_concurrent_jobs or None,
            log_dir=cfg.log_dir or None,
        )

    def resolve(self, url: str) -> MetadataRecord:
        """Extract and resolve one source; raises FetchError if the page is unreachable."""
        if self.extractor.can_handle(url):
            record = self.extractor.extract(url)
        else:
            logger.warning(f"Not a known program page, trying it as a stream: {url}")
            record = MetadataRecord(url=url, stream_url=url)
        record = self.resolver.resolve(record)
        if not record.stream_url:
            logger.warning(f"No stream URL found, using the input URL as the stream: {url}")
            record = replace(record, stream_url=url)
        return record

    def _print_summary(self, record: MetadataRecord) -> None:
        logger.info(f"Source: {record.url}")
        for key, value in record.to_dict().items():
            if key != "url":
                logger.info(f"  {key}: {value}")

    def rip(self, url: str, opts: RipOptions) -> SourceResult:
        """Process one source. Failures are reported in the result, never raised."""
        try:
            url = normalize_input(url)
        except ValueError as e:
            logger.error(str(e))
            return SourceResult(url=str(url), error=str(e))

        try:
            record = self.resolve(url)
        except FetchError as e:
            logger.error(f"Skipping source: {e}")
            return SourceResult(url=url, error=str(e))

        self._print_summary(record)

        subtitles = None
        if opts.subtitles:
            if record.subtitles_url:
                subtitles = self.subtitles.assemble(record.subtitles_url)
                if subtitles is None:
                    logger.warning("Subtitles unavailable, continuing without them")
            else:
                logger.info("No subtitles available for this source")

        output_path = os.path.join(opts.output_dir, output_basename(record) + ".mp4")
        job = self.orchestrator.spawn(
            record,
            output_path,
            background=opts.background,
            overwrite=opts.overwrite,
            subtitles=subtitles,
        )
        return SourceResult(url=url, record=record, job=job)

    def run(self, urls: list[str], opts: RipOptions) -> list[SourceResult]:
        """Rip every source in order, then wait for the remaining background jobs."""
        self.orchestrator.max_jobs = opts.max_jobs
        results = [self.rip(url, opts) for url in urls]
        self.orchestrator.drain_all()

        for result in results:
            if result.error:
                logger.error(f"{result.url}: {result.error}")
            elif result.job:
                logger.info(f"{result.url}: {result.job.describe()}")
        return results
