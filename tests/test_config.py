"""Tests for configuration validation and URL helpers."""

import pytest

from imagevault.config import validate_chunk_size
from imagevault.utils import build_image_url, file_extension, parse_image_id


class TestValidateChunkSize:

    def test_accepts_size_below_limit(self):
        assert validate_chunk_size(50 * 1024, 64 * 1024) == 50 * 1024

    def test_rejects_size_at_limit(self):
        with pytest.raises(ValueError, match="below the KV value limit"):
            validate_chunk_size(64 * 1024, 64 * 1024)

    @pytest.mark.parametrize("value", [0, -1, 1.5, True])
    def test_rejects_non_positive_or_non_integer(self, value):
        with pytest.raises(ValueError):
            validate_chunk_size(value, 64 * 1024)


class TestUrlHelpers:

    def test_file_extension(self):
        assert file_extension("cat.png") == "png"
        assert file_extension("archive.tar.gz") == "gz"
        assert file_extension("README") == ""
        assert file_extension(None) == ""

    def test_build_image_url_with_extension(self):
        url = build_image_url("http://localhost:8000", "abc-123", "cat.jpeg")
        assert url == "http://localhost:8000/image/abc-123.jpeg"

    def test_build_image_url_without_extension(self):
        url = build_image_url("http://localhost:8000/", "abc-123", "blob")
        assert url == "http://localhost:8000/image/abc-123"

    def test_parse_image_id_ignores_extension(self):
        assert parse_image_id("abc-123.png") == "abc-123"
        assert parse_image_id("abc-123") == "abc-123"
        assert parse_image_id("nested/abc-123.jpg") == "abc-123"
