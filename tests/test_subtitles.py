"""
Tests for subtitle segment stitching and WebVTT to SRT conversion.
"""
import os

from play_ripper.types import SubtitleDocument
from play_ripper.utils.network import FetchResult
from play_ripper.utils.subtitles import (
    SubtitleAssembler,
    reference_lines,
    strip_segment,
    subtitles_path_for,
    vtt_to_srt_timings,
    write_subtitles,
)


PLAYLIST_URL = "https://sub.example/subs/index.m3u8"

PLAYLIST = """#EXTM3U
#EXT-X-TARGETDURATION:10
#EXTINF:10,
seg0.vtt
#EXTINF:10,
seg1.vtt

#EXTINF:10,
https://other.example/seg2.vtt
#EXT-X-ENDLIST
"""

SEG0 = (
    "WEBVTT\r\nX-TIMESTAMP-MAP=MPEGTS:0,LOCAL:00:00:00.000\r\n\r\n"
    "1\r\n00:00:01.000 --> 00:00:03.000\r\nHej\r\n\r\n"
    "2\r\n00:00:08.000 --> 00:00:11.000 align:middle\r\nSlut på segment\r\n"
)
SEG1 = (
    "WEBVTT\n\n"
    "2\n00:00:08.000 --> 00:00:11.000\nSlut på segment\n\n"
    "3\n00:00:12.000 --> 00:00:14.000\nTre\n"
)
SEG2 = "WEBVTT\n\n4\n00:20.000 --> 00:22.500\nFyra\n\n\n"

EXPECTED = (
    "1\n00:00:01,000 --> 00:00:03,000\nHej\n\n"
    "2\n00:00:08,000 --> 00:00:11,000\nSlut på segment\n\n"
    "3\n00:00:12,000 --> 00:00:14,000\nTre\n\n"
    "4\n00:00:20,000 --> 00:00:22,500\nFyra\n\n"
)


def _responses():
    return {
        PLAYLIST_URL: PLAYLIST,
        "https://sub.example/subs/seg0.vtt": SEG0,
        "https://sub.example/subs/seg1.vtt": SEG1,
        "https://other.example/seg2.vtt": SEG2,
    }


def _segment(first, last):
    cues = "".join(
        f"{i}\n00:00:{i:02d}.000 --> 00:00:{i:02d}.500\nline {i}\n\n" for i in range(first, last + 1)
    )
    return "WEBVTT\n\n" + cues


class TestStripSegment:
    def test_header_removed(self):
        body, last = strip_segment(SEG0, None)
        assert body.startswith("1\n")
        assert body.endswith("Slut på segment\n\n")
        assert last == 2

    def test_duplicate_first_cue_dropped(self):
        body, last = strip_segment(SEG1, 2)
        assert body.startswith("3\n")
        assert last == 3

    def test_single_duplicate_cue(self):
        body, last = strip_segment("WEBVTT\n\n5\n00:00:01.000 --> 00:00:02.000\nx\n", 5)
        assert body == ""
        assert last == 5

    def test_no_cues(self):
        assert strip_segment("WEBVTT\n\n", 3) == ("", None)


class TestTimingConversion:
    def test_full_and_short_stamps(self):
        text = "1\n00:01.000 --> 01:02:03.456 line:90%\nHej 10.5 procent\n"
        assert vtt_to_srt_timings(text) == "1\n00:00:01,000 --> 01:02:03,456\nHej 10.5 procent\n"


class TestReferenceLines:
    def test_blank_and_comment_lines_dropped(self):
        body = "#EXTM3U\n\n  a.vtt  \n#EXT-X-ENDLIST\nhttps://o.example/b.vtt\n"
        assert reference_lines(body, PLAYLIST_URL) == [
            "https://sub.example/subs/a.vtt",
            "https://o.example/b.vtt",
        ]


class TestSubtitleAssembler:
    def test_assemble(self, fake_network):
        network = fake_network(_responses())
        text = SubtitleAssembler(network).assemble(PLAYLIST_URL)
        assert text == EXPECTED
        doc = SubtitleDocument.parse(text)
        assert doc.indices == [1, 2, 3, 4]

    def test_bare_segment_references(self, fake_network):
        """Playlists without #EXTINF tags still list their segments."""
        network = fake_network({
            PLAYLIST_URL: "#EXTM3U\nseg0.vtt\n\n# comment\nseg1.vtt\n",
            "https://sub.example/subs/seg0.vtt": SEG0,
            "https://sub.example/subs/seg1.vtt": SEG1,
        })
        text = SubtitleAssembler(network).assemble(PLAYLIST_URL)
        assert SubtitleDocument.parse(text).indices == [1, 2, 3]
        assert network.calls == [
            PLAYLIST_URL,
            "https://sub.example/subs/seg0.vtt",
            "https://sub.example/subs/seg1.vtt",
        ]

    def test_build_returns_document(self, fake_network):
        doc = SubtitleAssembler(fake_network(_responses())).build(PLAYLIST_URL)
        assert doc.indices == [1, 2, 3, 4]
        assert doc.cues[3].end == "00:00:22,500"
        assert doc.to_srt() == EXPECTED

    def test_note_blocks_dropped(self, fake_network):
        network = fake_network({
            PLAYLIST_URL: "#EXTM3U\n#EXTINF:10,\nseg0.vtt\n",
            "https://sub.example/subs/seg0.vtt": (
                "WEBVTT\n\n1\n00:00:01.000 --> 00:00:02.000\nHej\n\nNOTE checked\n\n"
                "2\n00:00:03.000 --> 00:00:04.000\nDå\n"
            ),
        })
        text = SubtitleAssembler(network).assemble(PLAYLIST_URL)
        assert "NOTE" not in text
        assert SubtitleDocument.parse(text).indices == [1, 2]

    def test_segment_failure_gives_nothing(self, fake_network):
        responses = _responses()
        responses["https://sub.example/subs/seg1.vtt"] = FetchResult(404)
        assert SubtitleAssembler(fake_network(responses)).assemble(PLAYLIST_URL) is None

    def test_playlist_failure(self, fake_network):
        network = fake_network({PLAYLIST_URL: FetchResult(-1)})
        assert SubtitleAssembler(network).assemble(PLAYLIST_URL) is None

    def test_empty_playlist(self, fake_network):
        network = fake_network({PLAYLIST_URL: "#EXTM3U\n#EXT-X-ENDLIST\n"})
        assert SubtitleAssembler(network).assemble(PLAYLIST_URL) is None
        assert network.calls == [PLAYLIST_URL]

    def test_boundary_duplicates_over_many_segments(self, fake_network):
        """Each segment repeats the previous segment's last cue."""
        responses = {}
        playlist = ["#EXTM3U"]
        first = 7
        for n in range(6):
            start = first + n * 3
            responses[f"https://sub.example/subs/s{n}.vtt"] = _segment(start, start + 3)
            playlist += ["#EXTINF:10,", f"s{n}.vtt"]
        responses[PLAYLIST_URL] = "\n".join(playlist + ["#EXT-X-ENDLIST"]) + "\n"

        text = SubtitleAssembler(fake_network(responses)).assemble(PLAYLIST_URL)
        doc = SubtitleDocument.parse(text)
        assert doc.indices[0] == first
        assert doc.is_contiguous()
        assert len(set(doc.indices)) == len(doc.indices)
        assert doc.indices[-1] == first + 6 * 3


class TestWriteSubtitles:
    def test_sibling_path(self):
        assert subtitles_path_for("/out/Show.S01E02.mp4") == "/out/Show.S01E02.srt"

    def test_existing_file_kept(self, temp_dir):
        path = os.path.join(temp_dir, "a.srt")
        with open(path, "w", encoding="utf-8") as f:
            f.write("old")
        assert write_subtitles(path, "new") is False
        with open(path, encoding="utf-8") as f:
            assert f.read() == "old"

    def test_overwrite(self, temp_dir):
        path = os.path.join(temp_dir, "a.srt")
        with open(path, "w", encoding="utf-8") as f:
            f.write("old")
        assert write_subtitles(path, "new", overwrite=True) is True
        with open(path, encoding="utf-8") as f:
            assert f.read() == "new"
