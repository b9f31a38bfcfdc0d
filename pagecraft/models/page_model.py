"""PageModel schema: the Section → Row → Column → Element tree edited by the page builder.

The JSON shape is camelCase (``designTokens``, ``fontSizes`` …) because the
visual editor and the renderer both read the serialized form.  Element
``content`` is a tagged union keyed by the element ``type``; ``props`` stays an
open dictionary of editor knobs (heading level, video flags, …).
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PAGE_MODEL_VERSION = "3.0"

SectionType = Literal[
    "hero",
    "features",
    "pricing",
    "testimonials",
    "cta",
    "footer",
    "nav",
    "content",
]

StyleDict = Dict[str, str]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class BreakpointStyles(_CamelModel):
    """Per-breakpoint style map.

    ``desktop`` is the base; ``tablet`` and ``mobile`` are override deltas and
    are only present when a narrower media query matched.
    """

    desktop: StyleDict = Field(default_factory=dict)
    tablet: Optional[StyleDict] = None
    mobile: Optional[StyleDict] = None

    def is_empty(self) -> bool:
        return not (self.desktop or self.tablet or self.mobile)


class ElementStates(_CamelModel):
    hover: Optional[StyleDict] = None
    focus: Optional[StyleDict] = None
    active: Optional[StyleDict] = None


# ---------------------------------------------------------------------------
# Element content payloads
# ---------------------------------------------------------------------------

class TextContent(_CamelModel):
    text: str = ""
    href: Optional[str] = None


class ButtonContent(_CamelModel):
    text: str = ""
    href: Optional[str] = None


class ImageContent(_CamelModel):
    src: str = ""
    alt: str = ""


class VideoContent(_CamelModel):
    src: str = ""
    poster: Optional[str] = None
    mime_type: Optional[str] = None


class InputContent(_CamelModel):
    placeholder: str = ""
    name: Optional[str] = None
    value: Optional[str] = None


class EmptyContent(_CamelModel):
    pass


# ---------------------------------------------------------------------------
# Elements
# ---------------------------------------------------------------------------

class _ElementBase(_CamelModel):
    id: str
    props: Dict[str, Any] = Field(default_factory=dict)
    styles: BreakpointStyles = Field(default_factory=BreakpointStyles)
    states: Optional[ElementStates] = None
    animations: Optional[Dict[str, str]] = None


class HeadingElement(_ElementBase):
    type: Literal["heading"] = "heading"
    content: TextContent = Field(default_factory=TextContent)


class TextElement(_ElementBase):
    type: Literal["text"] = "text"
    content: TextContent = Field(default_factory=TextContent)


class ButtonElement(_ElementBase):
    type: Literal["button"] = "button"
    content: ButtonContent = Field(default_factory=ButtonContent)


class ImageElement(_ElementBase):
    type: Literal["image"] = "image"
    content: ImageContent = Field(default_factory=ImageContent)


class VideoElement(_ElementBase):
    type: Literal["video"] = "video"
    content: VideoContent = Field(default_factory=VideoContent)


class InputElement(_ElementBase):
    type: Literal["input"] = "input"
    content: InputContent = Field(default_factory=InputContent)


class SpacerElement(_ElementBase):
    type: Literal["spacer"] = "spacer"
    content: EmptyContent = Field(default_factory=EmptyContent)


class ContainerElement(_ElementBase):
    type: Literal["container"] = "container"
    content: EmptyContent = Field(default_factory=EmptyContent)
    children: List["Element"] = Field(default_factory=list)


Element = Annotated[
    Union[
        HeadingElement,
        TextElement,
        ButtonElement,
        ImageElement,
        VideoElement,
        InputElement,
        SpacerElement,
        ContainerElement,
    ],
    Field(discriminator="type"),
]

ContainerElement.model_rebuild()


# ---------------------------------------------------------------------------
# Layout tree
# ---------------------------------------------------------------------------

class Column(_CamelModel):
    id: str
    width: str = "full"
    elements: List[Element] = Field(default_factory=list)
    styles: BreakpointStyles = Field(default_factory=BreakpointStyles)


class Row(_CamelModel):
    id: str
    columns: List[Column] = Field(min_length=1)
    styles: BreakpointStyles = Field(default_factory=BreakpointStyles)


class Section(_CamelModel):
    id: str
    type: SectionType = "content"
    name: str = ""
    rows: List[Row] = Field(min_length=1)
    styles: BreakpointStyles = Field(default_factory=BreakpointStyles)
    settings: Dict[str, Any] = Field(default_factory=dict)


class PageMeta(_CamelModel):
    title: str = "Untitled"
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    lang: str = "en"
    stylesheets: List[str] = Field(default_factory=list)


class Typography(_CamelModel):
    font_sizes: Dict[str, str] = Field(default_factory=dict)
    font_families: Dict[str, str] = Field(default_factory=dict)


class DesignTokens(_CamelModel):
    """Reusable values mined from resolved styles; never authored by the converter."""

    colors: Dict[str, Any] = Field(default_factory=dict)
    typography: Typography = Field(default_factory=Typography)
    spacing: Dict[str, str] = Field(default_factory=dict)


class PageModel(_CamelModel):
    version: str = PAGE_MODEL_VERSION
    meta: PageMeta = Field(default_factory=PageMeta)
    design_tokens: DesignTokens = Field(default_factory=DesignTokens)
    sections: List[Section] = Field(min_length=1)

    def to_json_dict(self) -> Dict[str, Any]:
        """Return the editor-facing JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)
