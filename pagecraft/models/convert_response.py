from typing import Any, Dict

from pydantic import BaseModel, Field


class ConversionStats(BaseModel):
    sections: int = 0
    elements: int = 0
    section_types: Dict[str, int] = Field(default_factory=dict)


class ConvertResponse(BaseModel):
    page: Dict[str, Any] = Field(description="PageModel in its camelCase editor JSON form.")
    stats: ConversionStats
