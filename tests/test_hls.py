"""
Tests for the uppercase-scheme playlist workaround.
"""
import os

from play_ripper.utils.hls import (
    LOCAL_PLAYLIST_ARGS,
    PlaylistNormalizer,
    has_uppercase_scheme,
    lowercase_scheme,
    remove_temp_files,
)
from play_ripper.utils.network import FetchResult


MASTER_URL = "https://svt.example/master.m3u8"
INDEX_URL = "https://svt.example/v1/index.m3u8"

CLEAN_MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=1000
https://svt.example/v1/index.m3u8
"""

QUIRKY_MASTER = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=1000
HTTPS://svt.example/v1/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2000
v2/index.m3u8
"""

QUIRKY_INDEX = """#EXTM3U
#EXT-X-TARGETDURATION:10
#EXTINF:10,
HTTPS://cdn.example/v1/seg1.ts
#EXTINF:10,
seg2.ts
#EXT-X-ENDLIST
"""


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


class TestSchemeHelpers:
    def test_detection_is_case_sensitive(self):
        assert has_uppercase_scheme("HTTP://a/b")
        assert has_uppercase_scheme("HTTPS://a/b")
        assert not has_uppercase_scheme("https://a/b")
        assert not has_uppercase_scheme("Https://a/b")

    def test_lowercase_scheme_keeps_rest(self):
        assert lowercase_scheme("HTTPS://CDN.example/Path/Seg.ts") == "https://CDN.example/Path/Seg.ts"


class TestPlaylistNormalizer:
    def test_clean_playlist_unchanged(self, fake_network):
        network = fake_network({MASTER_URL: CLEAN_MASTER})
        result = PlaylistNormalizer(network).normalize(MASTER_URL)
        assert result.url == MASTER_URL
        assert result.extra_args == []
        assert result.temp_files == []
        assert network.calls == [MASTER_URL]

    def test_fetch_failure_degrades_to_original(self, fake_network):
        network = fake_network({MASTER_URL: FetchResult(-1)})
        result = PlaylistNormalizer(network).normalize(MASTER_URL)
        assert result.url == MASTER_URL
        assert not result.is_local

    def test_rewrites_uppercase_playlists(self, fake_network, temp_dir):
        network = fake_network({MASTER_URL: QUIRKY_MASTER, INDEX_URL: QUIRKY_INDEX})
        result = PlaylistNormalizer(network, temp_dir=temp_dir).normalize(MASTER_URL)

        assert result.is_local
        assert result.extra_args == LOCAL_PLAYLIST_ARGS
        assert result.url == result.temp_files[-1]
        assert network.calls == [MASTER_URL, INDEX_URL]

        master_lines = _read(result.url).splitlines()
        index_path = master_lines[2]
        assert os.path.dirname(index_path) == temp_dir
        assert master_lines[1] == "#EXT-X-STREAM-INF:BANDWIDTH=1000"
        assert master_lines[4] == "https://svt.example/v2/index.m3u8"

        index_lines = _read(index_path).splitlines()
        assert "https://cdn.example/v1/seg1.ts" in index_lines
        assert "https://svt.example/v1/seg2.ts" in index_lines
        assert not any(has_uppercase_scheme(line) for line in index_lines)

        remove_temp_files(result.temp_files)
        assert os.listdir(temp_dir) == []

    def test_index_failure_removes_partial_files(self, fake_network, temp_dir):
        network = fake_network({MASTER_URL: QUIRKY_MASTER})
        result = PlaylistNormalizer(network, temp_dir=temp_dir).normalize(MASTER_URL)
        assert result.url == MASTER_URL
        assert os.listdir(temp_dir) == []
