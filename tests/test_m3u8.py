"""Tests for HLS playlist parsing."""

from dramadl.m3u8 import (
    is_manifest,
    parse_attributes,
    parse_master_manifest,
    parse_segment_playlist,
    select_variant,
    sort_by_height,
)
from dramadl.models import ManifestVariant

from .conftest import CDN_BASE, MASTER_MANIFEST, MASTER_URL, segment_playlist


class TestParseAttributes:
    def test_quoted_values_keep_commas(self):
        attrs = parse_attributes('#EXT-X-STREAM-INF:BANDWIDTH=1,CODECS="avc1.64001f,mp4a.40.2",NAME="720"')
        assert attrs == {"BANDWIDTH": "1", "CODECS": "avc1.64001f,mp4a.40.2", "NAME": "720"}

    def test_no_attributes(self):
        assert parse_attributes("#EXT-X-STREAM-INF") == {}


class TestParseMasterManifest:
    def test_one_variant_per_stream_inf(self):
        variants = parse_master_manifest(MASTER_MANIFEST, MASTER_URL)
        assert len(variants) == MASTER_MANIFEST.count("#EXT-X-STREAM-INF")
        assert [v.label for v in variants] == ["380", "720", "480"]

    def test_urls_are_absolute(self):
        variants = parse_master_manifest(MASTER_MANIFEST, MASTER_URL)
        assert variants[0].url == CDN_BASE + "380/playlist.m3u8"
        assert variants[1].url == "https://cdn2.example.com/hls/x8abc12/720/playlist.m3u8"
        assert all(v.url.startswith("https://") for v in variants)

    def test_resolution(self):
        variants = parse_master_manifest(MASTER_MANIFEST, MASTER_URL)
        assert (variants[1].width, variants[1].height) == (1280, 720)

    def test_missing_name_uses_height(self):
        text = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1,RESOLUTION=1920x1080\nhi.m3u8\n"
        (variant,) = parse_master_manifest(text, "https://h.example.com/a/master.m3u8")
        assert variant.label == "1080"
        assert variant.url == "https://h.example.com/a/hi.m3u8"

    def test_missing_resolution_and_name(self):
        text = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\nlow.m3u8\n"
        (variant,) = parse_master_manifest(text, "https://h.example.com/master.m3u8")
        assert variant.label == "auto"
        assert variant.width is None and variant.height is None

    def test_comments_and_blank_lines_between_tag_and_url(self):
        text = "#EXTM3U\n#EXT-X-STREAM-INF:NAME=\"240\"\n\n# comment\n240.m3u8\n"
        (variant,) = parse_master_manifest(text, "https://h.example.com/x/master.m3u8")
        assert variant.url == "https://h.example.com/x/240.m3u8"

    def test_entry_without_url_is_dropped(self):
        text = "#EXTM3U\n#EXT-X-STREAM-INF:NAME=\"720\"\n720.m3u8\n#EXT-X-STREAM-INF:NAME=\"1080\"\n"
        variants = parse_master_manifest(text, "https://h.example.com/master.m3u8")
        assert [v.label for v in variants] == ["720"]

    def test_consecutive_tags_share_next_url(self):
        text = "#EXTM3U\n#EXT-X-STREAM-INF:NAME=\"a\"\n#EXT-X-STREAM-INF:NAME=\"b\"\nshared.m3u8\n"
        variants = parse_master_manifest(text, "https://h.example.com/master.m3u8")
        assert [v.label for v in variants] == ["a", "b"]
        assert variants[0].url == variants[1].url

    def test_empty_manifest(self):
        assert parse_master_manifest("#EXTM3U\n", MASTER_URL) == []


class TestSegmentPlaylist:
    def test_relative_segments_resolved_against_playlist(self):
        segments = parse_segment_playlist(segment_playlist(3), CDN_BASE + "720/playlist.m3u8?x=1")
        assert segments == [CDN_BASE + f"720/seg{i}.ts" for i in range(3)]

    def test_absolute_segments_untouched(self):
        text = "#EXTM3U\n#EXTINF:4,\nhttps://other.example.com/s.ts\n"
        assert parse_segment_playlist(text, CDN_BASE + "p.m3u8") == ["https://other.example.com/s.ts"]

    def test_is_manifest(self):
        assert is_manifest(MASTER_MANIFEST)
        assert not is_manifest("<html>blocked</html>")
        assert not is_manifest(None)


class TestSelectVariant:
    def setup_method(self):
        self.variants = parse_master_manifest(MASTER_MANIFEST, MASTER_URL)

    def test_match_by_label(self):
        assert select_variant(self.variants, "720").label == "720"

    def test_match_by_p_suffixed_label(self):
        assert select_variant(self.variants, "480p").label == "480"

    def test_match_by_height(self):
        variants = [ManifestVariant(label="hd", url="https://h/1.m3u8", height=720)]
        assert select_variant(variants, "720").label == "hd"

    def test_no_match_falls_back_to_last(self):
        assert select_variant(self.variants, "1440").label == "480"

    def test_empty(self):
        assert select_variant([], "720") is None


class TestSortByHeight:
    def test_descending_with_missing_last(self):
        variants = [
            ManifestVariant(label="a", url="https://h/a", height=None),
            ManifestVariant(label="b", url="https://h/b", height=480),
            ManifestVariant(label="c", url="https://h/c", height=1080),
            ManifestVariant(label="d", url="https://h/d", height=480),
        ]
        ordered = sort_by_height(variants)
        assert [v.label for v in ordered] == ["c", "b", "d", "a"]
        assert len(ordered) == len(variants)
