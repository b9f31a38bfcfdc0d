from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from pagecraft.models.convert_request import MAX_HTML_CHARS
from pagecraft.models.page_model import PageModel


class CreatePageRequest(BaseModel):
    html: str = Field(default="", max_length=MAX_HTML_CHARS)
    name: str = Field(default="", max_length=200)


class UpdateModelRequest(BaseModel):
    page: PageModel


class StoredPage(BaseModel):
    """One imported page: the source markup plus its (possibly edited) model."""

    id: str
    name: str = ""
    html: str = ""
    page: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    converted_at: Optional[datetime] = None
