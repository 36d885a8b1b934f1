"""
Unit tests for attachment field normalization.
"""

from __future__ import annotations

from urllib.parse import quote

import pytest

from presscache.services.attachments import (
    PROXY_PREFIX,
    best_attachment_url,
    extract_candidate_urls,
    proxy_path,
    unwrap_proxy_path,
)

IMAGE_ATTACHMENT = {
    "id": "att1",
    "url": "https://dl.airtable.com/.attachments/full.jpg",
    "type": "image/jpeg",
    "thumbnails": {
        "small": {"url": "https://dl.airtable.com/.attachments/small.jpg"},
        "large": {"url": "https://dl.airtable.com/.attachments/large.jpg"},
        "full": {"url": "https://dl.airtable.com/.attachments/full-thumb.jpg"},
    },
}


class TestBestAttachmentUrl:
    """Tests for thumbnail preference."""

    def test_prefers_large_thumbnail(self) -> None:
        """Test image attachments use the large thumbnail."""
        assert best_attachment_url(IMAGE_ATTACHMENT).endswith("large.jpg")

    def test_falls_back_through_sizes(self) -> None:
        """Test full then small are used when large is absent."""
        attachment = {**IMAGE_ATTACHMENT, "thumbnails": {"small": {"url": "https://a/s.jpg"}}}
        assert best_attachment_url(attachment) == "https://a/s.jpg"

    def test_non_image_uses_url(self) -> None:
        """Test documents with previews still use their own URL."""
        attachment = {**IMAGE_ATTACHMENT, "type": "application/pdf"}
        assert best_attachment_url(attachment) == IMAGE_ATTACHMENT["url"]

    def test_missing_url(self) -> None:
        """Test an attachment without any URL yields None."""
        assert best_attachment_url({"id": "att1"}) is None


class TestExtractCandidateUrls:
    """Tests for flattening attachment fields."""

    def test_plain_string(self) -> None:
        """Test a bare URL string is returned as-is."""
        assert extract_candidate_urls(" https://a.example/x.jpg ") == ["https://a.example/x.jpg"]

    def test_list_of_attachments_is_deduplicated(self) -> None:
        """Test repeated URLs across shapes collapse in first-seen order."""
        field = [
            IMAGE_ATTACHMENT,
            "https://dl.airtable.com/.attachments/large.jpg",
            {"url": "https://b.example/y.png"},
        ]
        assert extract_candidate_urls(field) == [
            "https://dl.airtable.com/.attachments/large.jpg",
            "https://b.example/y.png",
        ]

    def test_proxy_paths_are_unwrapped(self) -> None:
        """Test already-proxied paths yield their source URL."""
        source = "https://a.example/x.jpg?sig=1"
        assert extract_candidate_urls(proxy_path(source)) == [source]

    @pytest.mark.parametrize("field", [None, "", "not a url", 42, {"name": "x"}, []])
    def test_nothing_usable(self, field: object) -> None:
        """Test fields without http(s) URLs yield an empty list."""
        assert extract_candidate_urls(field) == []

    def test_nested_mapping(self) -> None:
        """Test URLs nested inside record fields are found."""
        record = {"fields": {"Photo": [IMAGE_ATTACHMENT], "Name": "Jane"}}
        assert extract_candidate_urls(record) == [
            "https://dl.airtable.com/.attachments/large.jpg"
        ]


class TestProxyPath:
    """Tests for building and unwrapping proxy paths."""

    def test_proxy_path_encodes_whole_url(self) -> None:
        """Test the source URL becomes a single path segment."""
        url = "https://a.example/x.jpg?expires=1&sig=a/b"
        path = proxy_path(url)

        assert path == PROXY_PREFIX + quote(url, safe="")
        assert "/" not in path[len(PROXY_PREFIX):]

    def test_proxy_path_is_idempotent(self) -> None:
        """Test an already-proxied path is not wrapped again."""
        path = proxy_path("https://a.example/x.jpg")
        assert proxy_path(path) == path

    def test_unwrap_round_trip(self) -> None:
        """Test unwrapping recovers the source URL."""
        url = "https://a.example/x.jpg?expires=1&sig=a%2Fb"
        assert unwrap_proxy_path(proxy_path(url)) == url

    def test_unwrap_double_encoded(self) -> None:
        """Test a double-encoded path is decoded twice."""
        url = "https://a.example/x.jpg"
        assert unwrap_proxy_path(PROXY_PREFIX + quote(quote(url, safe=""), safe="")) == url

    @pytest.mark.parametrize("value", ["https://a.example/x.jpg", PROXY_PREFIX])
    def test_unwrap_non_proxy(self, value: str) -> None:
        """Test values that are not proxy paths yield None."""
        assert unwrap_proxy_path(value) is None
