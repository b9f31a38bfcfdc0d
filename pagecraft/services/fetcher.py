"""Remote page download for ``/convert/url``, guarded against SSRF."""

import ipaddress
import logging
import socket
from typing import List, Union
from urllib.parse import urljoin, urlparse

import httpx

logger = logging.getLogger(__name__)

MAX_HTML_BYTES = 5 * 1024 * 1024  # 5 MB
FETCH_TIMEOUT = 15  # seconds
MAX_REDIRECTS = 5
ALLOWED_SCHEMES = {"http", "https"}
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
USER_AGENT = "pagecraft/1.0 (+html-to-pagemodel importer)"


class UpstreamError(RuntimeError):
    """The remote server answered, but not with a usable HTML page."""


def _resolved_addresses(hostname: str) -> List[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return []
    addresses = []
    for info in infos:
        # "fe80::1%eth0" → "fe80::1"
        raw_ip = str(info[4][0]).split("%")[0]
        try:
            addresses.append(ipaddress.ip_address(raw_ip))
        except ValueError:
            continue
    return addresses


def _is_internal(hostname: str) -> bool:
    """Return True if *hostname* is, or resolves to, a non-public address."""
    return any(
        addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved or addr.is_multicast
        for addr in _resolved_addresses(hostname)
    )


def validate_url(url: str) -> None:
    """Raise ValueError unless *url* is an http(s) URL pointing at a public host."""
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")
    if not parsed.hostname:
        raise ValueError("URL must have a valid hostname.")
    if _is_internal(parsed.hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


def _check_content_type(response: httpx.Response) -> None:
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    # A missing header is common on static hosts; let the parser decide
    if content_type and content_type not in HTML_CONTENT_TYPES:
        raise UpstreamError(f"Expected an HTML page, got '{content_type}'.")


async def fetch_html(url: str) -> str:
    """Download *url* and return its markup.

    Redirects are followed by hand so every hop is re-validated before it is
    requested.

    Raises:
        ValueError: the URL (or a redirect target) is not allowed.
        httpx.TimeoutException: the server did not answer in time.
        httpx.HTTPError: network failure or non-2xx status.
        UpstreamError: wrong content type, oversize body or redirect loop.
    """
    validate_url(url)

    current_url = url
    headers = {"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml"}
    async with httpx.AsyncClient(follow_redirects=False, timeout=FETCH_TIMEOUT, headers=headers) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", current_url) as response:
                if response.is_redirect:
                    next_url = urljoin(current_url, response.headers.get("location", ""))
                    validate_url(next_url)
                    logger.debug("Following redirect", extra={"from_url": current_url, "to_url": next_url})
                    current_url = next_url
                    continue

                response.raise_for_status()
                _check_content_type(response)

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > MAX_HTML_BYTES:
                    raise UpstreamError("Page exceeds the maximum allowed size.")

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > MAX_HTML_BYTES:
                        raise UpstreamError("Page exceeds the maximum allowed size.")

                logger.info("Fetched page", extra={"url": current_url, "bytes": len(body)})
                try:
                    return bytes(body).decode(response.encoding or "utf-8", errors="replace")
                except LookupError:
                    return bytes(body).decode("utf-8", errors="replace")

    raise UpstreamError("Too many redirects.")
