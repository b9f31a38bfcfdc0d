import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from pagecraft.models.render_request import RenderRequest
from pagecraft.routers.convert import limiter
from pagecraft.services.renderer import render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Render"])


@router.post(
    "/render",
    response_class=HTMLResponse,
    summary="Render a PageModel into a standalone HTML document",
)
@limiter.limit("30/minute")
async def render_page(request: Request, body: RenderRequest) -> HTMLResponse:
    document = render(body.page)
    logger.info("Render request served", extra={"bytes": len(document)})
    return HTMLResponse(content=document)
