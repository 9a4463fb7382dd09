"""
网络请求模块 - 带有广播站 Cookie 的阻塞式 GET
"""
import time
from dataclasses import dataclass
from typing import Optional, Dict
from urllib.parse import urlsplit

from curl_cffi import requests

from play_ripper.utils.logger import logger


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# Selects the desktop (HLS) playback variant on the broadcaster's pages.
DEFAULT_COOKIE = "svtplay_playback=desktop-hls; svtplay_device=desktop"

BROADCASTER_DOMAINS = ("svtplay.se", "svt.se", "oppetarkiv.se")

# Returned as the status when the request never produced an HTTP response.
TRANSPORT_FAILURE = -1


class FetchError(Exception):
    """A fetch that the caller cannot continue without did not succeed."""

    def __init__(self, url: str, status: int):
        self.url = url
        self.status = status
        super().__init__(f"Failed to fetch {url} (status {status})")


@dataclass(frozen=True)
class FetchResult:
    status: int
    body: str = ""
    content_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == 200


def build_proxies(proxy_url: str | None) -> Optional[Dict[str, str]]:
    url = (proxy_url or "").strip()
    if not url:
        return None
    return {"http": url, "https": url}


def is_broadcaster_url(url: str, domains=BROADCASTER_DOMAINS) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return any(host == d or host.endswith("." + d) for d in domains)


class NetworkHandler:
    """网络请求处理器"""

    def __init__(
        self,
        retry: int = 3,
        delay: int = 2,
        timeout: float | None = None,
        proxies: Optional[Dict[str, str]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        cookie: str = DEFAULT_COOKIE,
        domains=BROADCASTER_DOMAINS,
    ):
        self.retry = max(1, int(retry))
        self.delay = delay
        self.timeout = timeout
        self.proxies = proxies
        self.cookie = cookie
        self.domains = tuple(domains)
        self.headers = {"User-Agent": user_agent}

    def _headers_for(self, url: str) -> Dict[str, str]:
        headers = dict(self.headers)
        if self.cookie and is_broadcaster_url(url, self.domains):
            headers["Cookie"] = self.cookie
        return headers

    def fetch(self, url: str) -> FetchResult:
        """
        GET 请求

        Returns:
            FetchResult: status is the HTTP status, or TRANSPORT_FAILURE when no
            response was received after all attempts.
        """
        for attempt in range(self.retry):
            try:
                response = requests.get(
                    url=url,
                    headers=self._headers_for(url),
                    timeout=self.timeout,
                    proxies=self.proxies,
                    impersonate="chrome",
                )
            except Exception as e:
                logger.error(f"Request failed (attempt {attempt + 1}/{self.retry}): {url}: {e}")
                if attempt + 1 < self.retry:
                    time.sleep(self.delay)
                continue

            if response.status_code != 200:
                logger.warning(f"HTTP {response.status_code}: {url}")
            content_type = response.headers.get("content-type")
            return FetchResult(response.status_code, response.text or "", content_type)
        return FetchResult(TRANSPORT_FAILURE)
