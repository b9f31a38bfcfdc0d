"""Page store endpoints: import HTML once, convert, edit and re-render it."""

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse

from pagecraft.models.stored_page import CreatePageRequest, StoredPage, UpdateModelRequest
from pagecraft.routers.convert import limiter
from pagecraft.services.renderer import render
from pagecraft.services.store import PageAlreadyConvertedError, PageNotFoundError, PageStore

logger = logging.getLogger(__name__)

page_store = PageStore()
router = APIRouter(prefix="/pages", tags=["Pages"])


def _get_or_404(page_id: str) -> StoredPage:
    try:
        return page_store.get(page_id)
    except PageNotFoundError:
        raise HTTPException(status_code=404, detail=f"Page '{page_id}' not found.")


@router.post("", response_model=StoredPage, status_code=201, summary="Store raw HTML for later conversion")
@limiter.limit("30/minute")
async def create_page(request: Request, body: CreatePageRequest) -> StoredPage:
    return page_store.create(body.html, name=body.name)


@router.get("/{page_id}", response_model=StoredPage, summary="Read a stored page")
async def get_page(page_id: str) -> StoredPage:
    return _get_or_404(page_id)


@router.post(
    "/{page_id}/convert",
    response_model=StoredPage,
    summary="Convert a stored page once",
    description="Returns 409 when the page already holds a model; use `/reconvert` to replace it.",
)
@limiter.limit("30/minute")
async def convert_page(request: Request, page_id: str) -> StoredPage:
    _get_or_404(page_id)
    try:
        return page_store.convert(page_id)
    except PageAlreadyConvertedError:
        raise HTTPException(
            status_code=409,
            detail="Page already has a model. Use /reconvert to replace it.",
        )


@router.post(
    "/{page_id}/reconvert",
    response_model=StoredPage,
    summary="Re-run conversion, replacing the stored model wholesale",
)
@limiter.limit("30/minute")
async def reconvert_page(request: Request, page_id: str) -> StoredPage:
    _get_or_404(page_id)
    logger.info("Reconverting page, existing model will be replaced", extra={"page_id": page_id})
    return page_store.convert(page_id, force=True)


@router.put("/{page_id}/model", response_model=StoredPage, summary="Save an edited PageModel")
async def update_model(page_id: str, body: UpdateModelRequest) -> StoredPage:
    _get_or_404(page_id)
    return page_store.update_model(page_id, body.page)


@router.get("/{page_id}/html", response_class=HTMLResponse, summary="Render the stored model as HTML")
async def page_html(page_id: str) -> HTMLResponse:
    page = _get_or_404(page_id)
    if page.page is None:
        raise HTTPException(status_code=409, detail="Page has not been converted yet.")
    return HTMLResponse(content=render(page.page))
