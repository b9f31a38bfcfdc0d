"""Conversion endpoints: raw HTML (or a fetched URL) → PageModel JSON."""

import logging

import httpx
from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from pagecraft.models.convert_request import ConvertRequest, ConvertUrlRequest
from pagecraft.models.convert_response import ConversionStats, ConvertResponse
from pagecraft.services.converter import conversion_stats, convert
from pagecraft.services.fetcher import UpstreamError, fetch_html

logger = logging.getLogger(__name__)

# Shared by every router so one storage backs all rate limits
limiter = Limiter(key_func=get_remote_address)
router = APIRouter(tags=["Convert"])


def _convert_response(html: str) -> ConvertResponse:
    page = convert(html)
    return ConvertResponse(page=page.to_json_dict(), stats=ConversionStats(**conversion_stats(page)))


@router.post("/convert", response_model=ConvertResponse, summary="Convert HTML into a PageModel")
@limiter.limit("30/minute")
async def convert_html(request: Request, body: ConvertRequest) -> ConvertResponse:
    """Parse the posted markup and return the section/row/column/element tree.

    Never fails on malformed markup: anything unusable yields a page with a
    single empty ``content`` section.
    """
    logger.info("Convert request received", extra={"html_chars": len(body.html)})
    return _convert_response(body.html)


@router.post(
    "/convert/url",
    response_model=ConvertResponse,
    summary="Fetch a public URL and convert it into a PageModel",
)
@limiter.limit("10/minute")
async def convert_url(request: Request, body: ConvertUrlRequest) -> ConvertResponse:
    url = str(body.url)
    logger.info("Convert URL request received", extra={"url": url})

    try:
        html = await fetch_html(url)
    except ValueError as exc:
        logger.warning("Invalid or blocked URL: %s – %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except httpx.TimeoutException as exc:
        logger.error("Timed out fetching %s: %s", url, exc)
        raise HTTPException(status_code=504, detail="Timed out fetching the page.")
    except (httpx.HTTPError, UpstreamError) as exc:
        logger.error("Error fetching %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    return _convert_response(html)
