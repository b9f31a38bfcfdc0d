"""Tests for the SSRF guard and response checks of the URL fetcher."""

import asyncio
from unittest.mock import patch

import httpx
import pytest

from pagecraft.services.fetcher import (
    UpstreamError,
    _check_content_type,
    fetch_html,
    validate_url,
)


class TestValidateUrl:
    @pytest.mark.parametrize("url", ["ftp://example.com/file", "file:///etc/passwd", "javascript:alert(1)"])
    def test_rejects_non_http_schemes(self, url):
        with pytest.raises(ValueError, match="not allowed"):
            validate_url(url)

    def test_rejects_missing_host(self):
        with pytest.raises(ValueError, match="hostname"):
            validate_url("http:///path-only")

    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1/",
            "http://10.0.0.5/admin",
            "http://192.168.1.1/",
            "http://169.254.169.254/latest/meta-data/",
        ],
    )
    def test_rejects_internal_addresses(self, url):
        with pytest.raises(ValueError, match="private/internal"):
            validate_url(url)

    def test_accepts_public_host(self):
        with patch("pagecraft.services.fetcher._is_internal", return_value=False):
            validate_url("https://example.com/page")


class TestContentType:
    def _response(self, content_type=None):
        headers = {"content-type": content_type} if content_type else {}
        return httpx.Response(200, headers=headers, content=b"<html></html>")

    @pytest.mark.parametrize("content_type", ["text/html", "text/html; charset=utf-8", "application/xhtml+xml"])
    def test_html_is_accepted(self, content_type):
        _check_content_type(self._response(content_type))

    def test_missing_header_is_accepted(self):
        _check_content_type(self._response())

    @pytest.mark.parametrize("content_type", ["application/json", "image/png", "application/pdf"])
    def test_other_types_are_rejected(self, content_type):
        with pytest.raises(UpstreamError, match=content_type):
            _check_content_type(self._response(content_type))


def test_fetch_validates_before_any_request():
    with pytest.raises(ValueError):
        asyncio.run(fetch_html("ftp://example.com/"))
