"""
HLS 播放列表修正模块 - 处理大写协议头 (HTTP:/HTTPS:) 导致编码器拒绝播放列表的问题
"""
from __future__ import annotations

import atexit
import os
import re
import tempfile
from dataclasses import dataclass, field
from urllib.parse import urljoin

from play_ripper.utils.logger import logger
from play_ripper.utils.network import NetworkHandler


UPPERCASE_SCHEMES = ("HTTP:", "HTTPS:")
UPPERCASE_SCHEME_RE = re.compile(r"^(HTTPS?):")

# Lets the encoder open the local playlists and follow them back to the network.
LOCAL_PLAYLIST_ARGS = ["-protocol_whitelist", "file,http,https,tcp,tls,crypto"]

# Temp files not yet removed by their job; removed at interpreter exit at the latest.
_PENDING_TEMP_FILES: set[str] = set()


def remove_temp_files(paths) -> None:
    for path in list(paths):
        _PENDING_TEMP_FILES.discard(path)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove temp playlist {path}: {e}")


@atexit.register
def _remove_pending_temp_files() -> None:
    remove_temp_files(_PENDING_TEMP_FILES)


@dataclass
class NormalizedStream:
    url: str
    extra_args: list[str] = field(default_factory=list)
    temp_files: list[str] = field(default_factory=list)

    @property
    def is_local(self) -> bool:
        return bool(self.temp_files)


def has_uppercase_scheme(line: str) -> bool:
    return line.startswith(UPPERCASE_SCHEMES)


def lowercase_scheme(line: str) -> str:
    return UPPERCASE_SCHEME_RE.sub(lambda m: m.group(1).lower() + ":", line)


def _is_reference(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _is_absolute(line: str) -> bool:
    return re.match(r"^[A-Za-z][A-Za-z0-9+.-]*:", line.strip()) is not None


class PlaylistNormalizer:
    """Rewrites master playlists whose variant references use an uppercase scheme."""

    def __init__(self, network_handler: NetworkHandler, temp_dir: str | None = None):
        self.network = network_handler
        self.temp_dir = temp_dir

    def _write_temp(self, text: str, created: list[str]) -> str:
        fd, path = tempfile.mkstemp(prefix="play_ripper_", suffix=".m3u8", dir=self.temp_dir)
        created.append(path)
        _PENDING_TEMP_FILES.add(path)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def _rewrite_index(self, index_url: str, body: str) -> str:
        out = []
        for line in body.splitlines():
            if has_uppercase_scheme(line):
                out.append(lowercase_scheme(line))
            elif _is_reference(line) and not _is_absolute(line):
                # The playlist moves to local storage, relative references must not.
                out.append(urljoin(index_url, line.strip()))
            else:
                out.append(line)
        return "\n".join(out) + "\n"

    def normalize(self, url: str) -> NormalizedStream:
        """
        检查并修正播放列表

        Returns:
            NormalizedStream: the original URL when no line needs fixing or a
            fetch fails, otherwise a local master playlist plus the encoder
            options needed to read it.
        """
        master = self.network.fetch(url)
        if not master.ok:
            logger.warning(f"Could not fetch playlist (status {master.status}), using it unchanged: {url}")
            return NormalizedStream(url)

        lines = master.body.splitlines()
        if not any(has_uppercase_scheme(line) for line in lines):
            return NormalizedStream(url)

        logger.info("Playlist uses uppercase URL schemes, rewriting to local copies")
        created: list[str] = []
        out: list[str] = []
        try:
            for line in lines:
                if has_uppercase_scheme(line):
                    index_url = lowercase_scheme(line.strip())
                    index = self.network.fetch(index_url)
                    if not index.ok:
                        logger.warning(
                            f"Could not fetch index playlist (status {index.status}), "
                            f"using the original stream URL: {index_url}"
                        )
                        remove_temp_files(created)
                        return NormalizedStream(url)
                    out.append(self._write_temp(self._rewrite_index(index_url, index.body), created))
                elif _is_reference(line) and not _is_absolute(line):
                    out.append(urljoin(url, line.strip()))
                else:
                    out.append(line)

            master_path = self._write_temp("\n".join(out) + "\n", created)
        except OSError as e:
            logger.error(f"Failed to write local playlist: {e}")
            remove_temp_files(created)
            return NormalizedStream(url)

        logger.debug(f"Local master playlist: {master_path}")
        return NormalizedStream(master_path, list(LOCAL_PLAYLIST_ARGS), created)
