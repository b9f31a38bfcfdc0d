from typing import Any, Dict

from pydantic import BaseModel, Field


class RenderRequest(BaseModel):
    page: Dict[str, Any] = Field(
        default_factory=dict,
        description=(
            "PageModel JSON (sections tree) or a node-tree document "
            "(``nodes`` + ``globalStyles``). Malformed parts render as empty."
        ),
    )
