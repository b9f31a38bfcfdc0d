from pydantic import BaseModel, Field, HttpUrl

# Raw markup accepted per request
MAX_HTML_CHARS = 5_000_000


class ConvertRequest(BaseModel):
    html: str = Field(
        default="",
        max_length=MAX_HTML_CHARS,
        description="Raw HTML document (any malformedness is tolerated).",
    )


class ConvertUrlRequest(BaseModel):
    url: HttpUrl
