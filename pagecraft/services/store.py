"""In-memory page store.

Stands in for the persistence layer the page builder talks to: a page is
created from raw HTML, converted once, optionally reconverted (which replaces
the model wholesale) and edited through the model endpoint.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Dict

from pagecraft.models.page_model import PageModel
from pagecraft.models.stored_page import StoredPage
from pagecraft.services.converter import conversion_stats, convert

logger = logging.getLogger(__name__)


class PageNotFoundError(KeyError):
    pass


class PageAlreadyConvertedError(RuntimeError):
    """Raised when converting a page that already has a model without ``force``."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PageStore:
    def __init__(self) -> None:
        self._pages: Dict[str, StoredPage] = {}

    def create(self, html: str, name: str = "") -> StoredPage:
        now = _now()
        page = StoredPage(id=secrets.token_urlsafe(8), name=name, html=html, created_at=now, updated_at=now)
        self._pages[page.id] = page
        logger.info("Page stored", extra={"page_id": page.id, "html_chars": len(html)})
        return page

    def get(self, page_id: str) -> StoredPage:
        try:
            return self._pages[page_id]
        except KeyError:
            raise PageNotFoundError(page_id) from None

    def convert(self, page_id: str, force: bool = False) -> StoredPage:
        """Convert the stored HTML of *page_id* into a model.

        Without *force* a page that already holds a model (converted or
        edited) is left alone and :class:`PageAlreadyConvertedError` is
        raised; with *force* the model is replaced wholesale.
        """
        page = self.get(page_id)
        if page.page is not None and not force:
            raise PageAlreadyConvertedError(page_id)

        model = convert(page.html)
        now = _now()
        updated = page.model_copy(update={"page": model.to_json_dict(), "converted_at": now, "updated_at": now})
        self._pages[page_id] = updated
        logger.info("Page converted", extra={"page_id": page_id, "force": force, **conversion_stats(model)})
        return updated

    def update_model(self, page_id: str, model: PageModel) -> StoredPage:
        page = self.get(page_id)
        updated = page.model_copy(update={"page": model.to_json_dict(), "updated_at": _now()})
        self._pages[page_id] = updated
        return updated

    def clear(self) -> None:
        self._pages.clear()
