from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from play_ripper.extractors.resolver import API_URL_TEMPLATE, SUPERSET_HOSTS
from play_ripper.utils.network import BROADCASTER_DOMAINS, DEFAULT_COOKIE, DEFAULT_USER_AGENT


CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / "config.json"


def _normalize_host_list(value: Any, default: tuple[str, ...]) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return list(default)
    hosts: list[str] = []
    for item in value:
        host = str(item or "").strip().lower().lstrip(".")
        if host and host not in hosts:
            hosts.append(host)
    return hosts


@dataclass
class AppConfig:
    output_dir: str = "downloads"
    # 0 disables the cap
    max_concurrent_jobs: int = 0
    # Run encodes in the background and reap them later
    background: bool = False
    overwrite: bool = False
    write_subtitles: bool = False

    # --- Encoder ---
    encoder_path: str = "ffmpeg"
    # Per-job encoder logs; empty means logs/jobs under the package log dir
    log_dir: str = ""

    # --- Broadcaster ---
    # Hosts (and their subdomains) treated as program pages and sent the cookie
    broadcaster_domains: list[str] = field(default_factory=lambda: list(BROADCASTER_DOMAINS))
    # Metadata endpoint; {program_id} and {universe} are filled per source
    metadata_api_url: str = API_URL_TEMPLATE
    # Hosts whose programs are queried in the superset universe
    superset_hosts: list[str] = field(default_factory=lambda: list(SUPERSET_HOSTS))

    # --- Network ---
    user_agent: str = DEFAULT_USER_AGENT
    cookie: str = DEFAULT_COOKIE
    # Example: http://127.0.0.1:7890
    proxy_url: str = ""
    # Seconds; 0 waits indefinitely
    request_timeout: float = 0.0
    request_retry: int = 3

    def __post_init__(self) -> None:
        try:
            self.max_concurrent_jobs = max(0, int(self.max_concurrent_jobs))
        except (TypeError, ValueError):
            self.max_concurrent_jobs = 0
        try:
            self.request_retry = max(1, int(self.request_retry))
        except (TypeError, ValueError):
            self.request_retry = 3
        try:
            self.request_timeout = max(0.0, float(self.request_timeout))
        except (TypeError, ValueError):
            self.request_timeout = 0.0

        if not str(self.encoder_path or "").strip():
            self.encoder_path = "ffmpeg"
        if not str(self.output_dir or "").strip():
            self.output_dir = "downloads"

        self.broadcaster_domains = _normalize_host_list(self.broadcaster_domains, BROADCASTER_DOMAINS)
        self.superset_hosts = _normalize_host_list(self.superset_hosts, SUPERSET_HOSTS)
        # A template that cannot carry the program id is useless.
        if "{program_id}" not in str(self.metadata_api_url or ""):
            self.metadata_api_url = API_URL_TEMPLATE

        self.background = bool(self.background)
        self.overwrite = bool(self.overwrite)
        self.write_subtitles = bool(self.write_subtitles)

    @property
    def timeout(self) -> float | None:
        return self.request_timeout or None

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for logging."""
        return {k: v for k, v in self.__dict__.items()}


@dataclass(frozen=True)
class RipOptions:
    """Per-run options threaded through the pipeline."""

    output_dir: str
    overwrite: bool = False
    subtitles: bool = False
    background: bool = False
    max_jobs: int | None = None

    @classmethod
    def from_config(cls, cfg: AppConfig, **overrides: Any) -> "RipOptions":
        values: dict[str, Any] = {
            "output_dir": cfg.output_dir,
            "overwrite": cfg.overwrite,
            "subtitles": cfg.write_subtitles,
            "background": cfg.background,
            "max_jobs": cfg.max_concurrent_jobs or None,
        }
        for k, v in overrides.items():
            if v is not None:
                values[k] = v
        if values["max_jobs"] is not None and int(values["max_jobs"]) <= 0:
            values["max_jobs"] = None
        return cls(**values)


def load_config() -> AppConfig:
    if not CONFIG_PATH.exists():
        return AppConfig()
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except Exception:
        return AppConfig()
    if not isinstance(data, dict):
        return AppConfig()

    cfg = AppConfig()
    for k, v in data.items():
        if k in cfg.__dataclass_fields__:
            setattr(cfg, k, v)
    # Re-normalize after applying persisted values.
    cfg.__post_init__()
    return cfg
