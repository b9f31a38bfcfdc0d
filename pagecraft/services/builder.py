"""Model building: typed regions → Section/Row/Column/Element tree.

Elements are produced from a fixed tag → type table.  Block elements that
only hold inline content collapse into a single ``text`` element; blocks with
element children become ``container`` elements, and a container that wraps a
single child without any styling of its own is unwrapped.  Every element
carries the per-breakpoint styles, states and animations the resolver found
for its source node.
"""

import logging
import secrets
from typing import Any, Dict, List, Optional, Sequence, Union

from bs4 import Comment, NavigableString, Tag

from pagecraft.models.page_model import (
    BreakpointStyles,
    ButtonContent,
    ButtonElement,
    Column,
    ContainerElement,
    Element,
    ElementStates,
    HeadingElement,
    ImageContent,
    ImageElement,
    InputContent,
    InputElement,
    Row,
    Section,
    SpacerElement,
    TextContent,
    TextElement,
    VideoContent,
    VideoElement,
)
from pagecraft.services.classifier import (
    HEADING_TAGS,
    Region,
    is_button_anchor,
    repeated_children,
)
from pagecraft.services.resolver import ResolvedStyle, StyleResolver
from pagecraft.services.sanitizer import element_children, has_direct_text

logger = logging.getLogger(__name__)

MAX_TREE_DEPTH = 24
DEFAULT_CONTAINER_WIDTH = "container"
# Lone wrappers (``<div class="container">``) we look through to find a grid
MAX_WRAPPER_DESCENT = 3

TEXT_TAGS = {
    "p", "blockquote", "li", "span", "label", "small", "strong", "em", "b", "i",
    "u", "code", "pre", "figcaption", "dt", "dd", "caption", "cite", "q",
    "address", "time", "mark", "td", "th", "legend", "summary",
}
# Children that do not stop a block from being a plain text element
INLINE_TAGS = {
    "span", "strong", "em", "b", "i", "u", "small", "code", "mark", "sub",
    "sup", "abbr", "cite", "q", "time", "del", "ins", "s", "br", "wbr", "font",
    "kbd", "var", "samp", "bdi", "bdo",
}
SKIP_TAGS = {
    "svg", "canvas", "script", "style", "noscript", "template", "object",
    "embed", "map", "area", "source", "track", "head", "title", "meta", "link",
    "dialog",
}
WRAPPER_TAGS = {"div", "main", "article", "section", "header", "footer", "aside"}
_VIDEO_FLAGS = ("autoplay", "muted", "loop", "controls", "playsinline")
_FORM_BUTTON_TYPES = {"submit", "button", "reset"}

Node = Union[Tag, NavigableString]


class IdFactory:
    """Generates ``<kind>_<conversion-token>_<counter>`` ids for one conversion."""

    def __init__(self, token: Optional[str] = None) -> None:
        self.token = token or secrets.token_hex(3)
        self._counter = 0

    def __call__(self, kind: str) -> str:
        self._counter += 1
        return f"{kind}_{self.token}_{self._counter}"


def node_text(tag: Tag) -> str:
    """Return the visible text of *tag* with whitespace collapsed."""
    parts: List[str] = []
    for node in tag.descendants:
        if isinstance(node, Tag):
            if node.name == "br":
                parts.append(" ")
        elif isinstance(node, NavigableString) and not isinstance(node, Comment):
            parts.append(str(node))
    return " ".join("".join(parts).split())


def _is_text_link(tag: Tag) -> bool:
    return tag.name == "a" and _is_inline_only(tag) and not is_button_anchor(tag) and bool(node_text(tag))


def _is_inline_only(tag: Tag, allow_links: bool = False) -> bool:
    return all(
        child.name in INLINE_TAGS or (allow_links and _is_text_link(child))
        for child in element_children(tag)
    )


def _inline_links(tag: Tag) -> List[Dict[str, str]]:
    """``{text, href}`` for each plain link embedded in the prose of *tag*."""
    links = []
    for anchor in tag.find_all("a", href=True):
        text = node_text(anchor)
        if text:
            links.append({"text": text, "href": str(anchor["href"])})
    return links


def _first_srcset_url(srcset: Any) -> str:
    first = str(srcset or "").split(",")[0].strip()
    return first.split()[0] if first else ""


def _attr(tag: Tag, name: str) -> Optional[str]:
    value = tag.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = " ".join(value)
    return str(value).strip() or None


def to_breakpoint_styles(resolved: ResolvedStyle) -> BreakpointStyles:
    return BreakpointStyles(
        desktop=dict(resolved.desktop),
        tablet=dict(resolved.tablet) if resolved.tablet else None,
        mobile=dict(resolved.mobile) if resolved.mobile else None,
    )


def _states(resolved: ResolvedStyle) -> Optional[ElementStates]:
    states = {
        state: dict(values)
        for state, values in resolved.states.items()
        if state in ("hover", "focus", "active") and values
    }
    return ElementStates(**states) if states else None


def default_section(ids: IdFactory, index: int = 1) -> Section:
    """The one empty ``content`` section used when nothing else survives."""
    return Section(
        id=ids("section"),
        type="content",
        name=f"Section {index}",
        rows=[Row(id=ids("row"), columns=[Column(id=ids("col"))])],
        settings={"containerWidth": DEFAULT_CONTAINER_WIDTH, "tag": "section"},
    )


class ModelBuilder:
    """Turn classified regions into PageModel sections for one conversion."""

    def __init__(self, resolver: StyleResolver, ids: Optional[IdFactory] = None) -> None:
        self.resolver = resolver
        self.ids = ids or IdFactory()

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def build_sections(self, regions: Sequence[Region]) -> List[Section]:
        sections: List[Section] = []
        for region in regions:
            try:
                section = self.build_section(region, len(sections) + 1)
            except Exception as exc:
                logger.warning("Dropping %s region that failed to build: %s", region.type, exc)
                continue
            if section is not None:
                sections.append(section)
        if not sections:
            logger.info("No sections survived, synthesising a default section")
            sections.append(default_section(self.ids))
        return sections

    def build_section(self, region: Region, index: int) -> Optional[Section]:
        rows = self._region_rows(region)
        if not rows:
            return None
        resolved = self.resolver.resolve(region.root) if region.root is not None else ResolvedStyle()
        return Section(
            id=self.ids("section"),
            type=region.type,
            name=self._section_name(region, index),
            rows=rows,
            styles=to_breakpoint_styles(resolved),
            settings={"containerWidth": DEFAULT_CONTAINER_WIDTH, "tag": region.tag_name},
        )

    @staticmethod
    def _section_name(region: Region, index: int) -> str:
        if region.type != "content":
            return region.type.capitalize()
        for node in region.nodes:
            heading = node if node.name in HEADING_TAGS else node.find(HEADING_TAGS)
            if heading is not None:
                text = node_text(heading)
                if text:
                    return text[:60]
        return f"Section {index}"

    # ------------------------------------------------------------------
    # Rows and columns
    # ------------------------------------------------------------------

    def _region_rows(self, region: Region) -> List[Row]:
        if region.root is None:
            return self._rows_from(region.nodes, 1, BreakpointStyles())

        container = region.root
        row_styles = BreakpointStyles()
        depth = 1
        for _ in range(MAX_WRAPPER_DESCENT):
            if repeated_children(container, self.resolver):
                row = self._grid_row(container, depth)
                return [row] if row is not None else []
            children = element_children(container)
            if len(children) != 1 or has_direct_text(container) or children[0].name not in WRAPPER_TAGS:
                break
            container = children[0]
            row_styles = to_breakpoint_styles(self.resolver.resolve(container))
            depth += 1
        return self._rows_from(list(container.children), depth, row_styles)

    def _rows_from(self, nodes: Sequence[Node], depth: int, row_styles: BreakpointStyles) -> List[Row]:
        rows: List[Row] = []
        pending: List[Node] = []

        def flush() -> None:
            elements = self._build_nodes(pending, depth)
            pending.clear()
            if elements:
                column = Column(id=self.ids("col"), width="full", elements=elements)
                rows.append(Row(id=self.ids("row"), columns=[column], styles=row_styles.model_copy(deep=True)))

        for node in nodes:
            if isinstance(node, Tag) and repeated_children(node, self.resolver):
                flush()
                row = self._grid_row(node, depth + 1)
                if row is not None:
                    rows.append(row)
            else:
                pending.append(node)
        flush()
        return rows

    def _grid_row(self, grid: Tag, depth: int) -> Optional[Row]:
        """One row for a grid/flex container, one column per cell."""
        cells: List[Column] = []
        for cell in element_children(grid):
            if element_children(cell):
                elements = self._build_children(cell, depth + 1)
                styles = to_breakpoint_styles(self.resolver.resolve(cell))
            else:
                element = self.build_element(cell, depth + 1)
                elements = [element] if element is not None else []
                styles = BreakpointStyles()
            if elements:
                cells.append(Column(id=self.ids("col"), elements=elements, styles=styles))
        if not cells:
            return None
        for column in cells:
            column.width = "full" if len(cells) == 1 else f"1/{len(cells)}"
        return Row(
            id=self.ids("row"),
            columns=cells,
            styles=to_breakpoint_styles(self.resolver.resolve(grid)),
        )

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def _build_children(self, tag: Tag, depth: int) -> List[Element]:
        return self._build_nodes(list(tag.children), depth)

    def _build_nodes(self, nodes: Sequence[Node], depth: int) -> List[Element]:
        """Build elements for *nodes*, merging loose inline runs into text elements."""
        elements: List[Element] = []
        run: List[str] = []

        def flush_run() -> None:
            text = " ".join(" ".join(run).split())
            run.clear()
            if text:
                elements.append(
                    TextElement(id=self.ids("text"), props={"tag": "span"}, content=TextContent(text=text))
                )

        for node in nodes:
            if isinstance(node, Tag):
                if node.name in INLINE_TAGS and node.name != "br":
                    run.append(node_text(node))
                    continue
                flush_run()
                element = self.build_element(node, depth)
                if element is not None:
                    elements.append(element)
            elif isinstance(node, NavigableString) and not isinstance(node, Comment):
                run.append(str(node))
        flush_run()
        return elements

    def _make(self, cls, tag: Optional[Tag], props: Optional[Dict[str, Any]] = None, **fields: Any):
        resolved = self.resolver.resolve(tag) if tag is not None else ResolvedStyle()
        kind = cls.model_fields["type"].default
        return cls(
            id=self.ids(kind),
            props=props or {},
            styles=to_breakpoint_styles(resolved),
            states=_states(resolved),
            animations=dict(resolved.animations) or None,
            **fields,
        )

    def build_element(self, tag: Tag, depth: int = 0) -> Optional[Element]:
        """Map one source element (and its subtree) to a PageModel element.

        Returns ``None`` for nodes that produce nothing visible.
        """
        name = (tag.name or "").lower()
        if name in SKIP_TAGS:
            return None
        if depth >= MAX_TREE_DEPTH:
            text = node_text(tag)
            return self._make(TextElement, tag, {"tag": "div"}, content=TextContent(text=text)) if text else None

        if name in HEADING_TAGS:
            text = node_text(tag)
            if not text:
                return None
            return self._make(HeadingElement, tag, {"level": int(name[1])}, content=TextContent(text=text))
        if name == "img":
            return self._image(tag, tag)
        if name == "picture":
            img = tag.find("img")
            return self._image(tag, img)
        if name in ("video", "iframe"):
            return self._video(tag)
        if name == "button":
            return self._make(
                ButtonElement,
                tag,
                {"buttonType": _attr(tag, "type") or "button"},
                content=ButtonContent(text=node_text(tag)),
            )
        if name in ("input", "textarea", "select"):
            return self._input(tag)
        if name == "br":
            return self._make(SpacerElement, tag, {"height": "1rem"})
        if name == "hr":
            return self._make(SpacerElement, tag, {"divider": True})
        if name == "a":
            return self._anchor(tag, depth)

        # links inside running text stay part of the paragraph
        if _is_inline_only(tag, allow_links=has_direct_text(tag)):
            text = node_text(tag)
            if not text:
                return None
            props: Dict[str, Any] = {"tag": name if name in TEXT_TAGS else "div"}
            links = _inline_links(tag)
            if links:
                props["links"] = links
            return self._make(TextElement, tag, props, content=TextContent(text=text))
        return self._container(tag, name, depth)

    def _image(self, tag: Tag, img: Optional[Tag]) -> Optional[ImageElement]:
        source = img if img is not None else tag
        src = _attr(source, "src") or _attr(source, "data-src") or _first_srcset_url(source.get("srcset"))
        if not src and tag.name == "picture":
            first_source = tag.find("source")
            if first_source is not None:
                src = _first_srcset_url(first_source.get("srcset"))
        if not src:
            return None
        return self._make(
            ImageElement,
            source,
            content=ImageContent(src=src, alt=_attr(source, "alt") or ""),
        )

    def _video(self, tag: Tag) -> Optional[VideoElement]:
        src = _attr(tag, "src")
        mime_type = None
        if not src:
            source = tag.find("source")
            if source is not None:
                src = _attr(source, "src")
                mime_type = _attr(source, "type")
        if not src:
            return None
        if tag.name == "iframe":
            props: Dict[str, Any] = {"embed": True}
        else:
            props = {flag: tag.has_attr(flag) for flag in _VIDEO_FLAGS}
        return self._make(
            VideoElement,
            tag,
            props,
            content=VideoContent(src=src, poster=_attr(tag, "poster"), mime_type=mime_type),
        )

    def _input(self, tag: Tag) -> Optional[Element]:
        input_type = (_attr(tag, "type") or "text").lower() if tag.name == "input" else tag.name
        if input_type == "hidden":
            return None
        if input_type in _FORM_BUTTON_TYPES:
            return self._make(
                ButtonElement,
                tag,
                {"buttonType": input_type},
                content=ButtonContent(text=_attr(tag, "value") or input_type.capitalize()),
            )
        props: Dict[str, Any] = {"inputType": input_type}
        if tag.name == "select":
            props["options"] = [node_text(option) for option in tag.find_all("option")]
        value = _attr(tag, "value") if tag.name != "textarea" else (node_text(tag) or None)
        return self._make(
            InputElement,
            tag,
            props,
            content=InputContent(
                placeholder=_attr(tag, "placeholder") or "",
                name=_attr(tag, "name"),
                value=value,
            ),
        )

    def _anchor(self, tag: Tag, depth: int) -> Optional[Element]:
        href = _attr(tag, "href")
        children = element_children(tag)
        text = node_text(tag)

        if children and not text and all(child.name in ("img", "picture") for child in children):
            image = self.build_element(children[0], depth + 1)
            if image is not None:
                if href:
                    image.props["href"] = href
            return image
        if not _is_inline_only(tag):
            return self._container(tag, "a", depth, extra_props={"href": href} if href else None)
        if not text:
            return None
        if is_button_anchor(tag):
            return self._make(ButtonElement, tag, {"tag": "a"}, content=ButtonContent(text=text, href=href))
        return self._make(TextElement, tag, {"tag": "a"}, content=TextContent(text=text, href=href))

    def _container(
        self,
        tag: Tag,
        name: str,
        depth: int,
        extra_props: Optional[Dict[str, Any]] = None,
    ) -> Optional[Element]:
        children = self._build_children(tag, depth + 1)
        if not children:
            return None
        resolved = self.resolver.resolve(tag)
        if len(children) == 1 and resolved.is_empty() and name in WRAPPER_TAGS:
            return children[0]
        props: Dict[str, Any] = {"tag": name}
        if extra_props:
            props.update(extra_props)
        if name == "form":
            if _attr(tag, "action"):
                props["action"] = _attr(tag, "action")
            props["method"] = (_attr(tag, "method") or "get").lower()
        element = self._make(ContainerElement, tag, props)
        element.children = children
        return element
