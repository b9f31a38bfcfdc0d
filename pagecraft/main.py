import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pagecraft.routers.convert import limiter, router as convert_router
from pagecraft.routers.pages import router as pages_router
from pagecraft.routers.render import router as render_router

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        # httpx logs every request line at INFO
        "loggers": {"httpx": {"level": "WARNING"}},
        "root": {"level": "INFO", "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="pagecraft – HTML to PageModel API",
    description=(
        "Converts arbitrary HTML/CSS into an editable section/row/column/element "
        "PageModel and renders edited models back into standalone HTML."
    ),
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(convert_router)
app.include_router(render_router)
app.include_router(pages_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "pagecraft is running"}
