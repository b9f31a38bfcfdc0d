"""HTML rendering: PageModel (or a hand-edited dict of one) → standalone document.

The renderer trusts nothing about its input.  Missing or mistyped arrays and
maps are read as empty, tag and attribute names come from allow-lists or are
validated, text is HTML-escaped and CSS values are stripped of anything that
could close a rule or the ``<style>`` element.

Desktop styles are written inline.  Nodes that also carry tablet/mobile
overrides or interaction states get a generated class, and the matching
``@media`` / ``:hover`` rules are emitted with ``!important`` so they win
over the inline desktop values.
"""

import html
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel

from pagecraft.services.stylesheet import MOBILE_MAX_WIDTH, TABLET_MAX_WIDTH

logger = logging.getLogger(__name__)

MAX_RENDER_DEPTH = 64
CONTAINER_MAX_WIDTH = "1200px"
STATES = ("hover", "focus", "active")

SECTION_TAGS = {"section", "header", "footer", "nav", "main", "aside", "article", "div"}
TEXT_TAGS = {
    "p", "span", "div", "blockquote", "li", "label", "small", "strong", "em",
    "b", "i", "u", "code", "pre", "figcaption", "dt", "dd", "caption", "cite",
    "q", "address", "time", "mark", "td", "th", "legend", "summary",
}
CONTAINER_TAGS = {
    "div", "section", "article", "aside", "main", "header", "footer", "nav",
    "ul", "ol", "dl", "form", "figure", "fieldset", "table", "thead", "tbody",
    "tfoot", "tr", "td", "th", "details", "blockquote", "li", "p", "a",
    "address", "hgroup", "label", "span", "picture",
}
# Tags that are only valid directly inside one of the given parents
_CONTEXTUAL_TAGS = {
    "li": {"ul", "ol"},
    "dt": {"dl"},
    "dd": {"dl"},
    "tr": {"table", "thead", "tbody", "tfoot"},
    "thead": {"table"},
    "tbody": {"table"},
    "tfoot": {"table"},
    "td": {"tr"},
    "th": {"tr"},
    "caption": {"table"},
    "legend": {"fieldset"},
    "summary": {"details"},
}
INPUT_TYPES = {
    "text", "email", "password", "number", "tel", "url", "search", "date",
    "time", "datetime-local", "month", "week", "color", "checkbox", "radio",
    "range", "file",
}
BUTTON_TYPES = {"button", "submit", "reset"}
VOID_TAGS = {"area", "br", "col", "hr", "img", "input", "source", "track", "wbr"}
# Never rendered from node-tree input
BLOCKED_TAGS = {"script", "style", "iframe", "object", "embed", "base", "meta", "link", "frame", "frameset"}
_VIDEO_FLAGS = ("autoplay", "muted", "loop", "controls", "playsinline")
_EMBED_HOSTS = ("youtube.com", "youtu.be", "vimeo.com", "player.", "/embed/")

_TAG_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]{0,31}$")
_ATTR_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:.-]{0,63}$")
_CSS_PROP_RE = re.compile(r"^(--[a-zA-Z0-9_-]+|-?[a-z][a-z0-9-]*)$")
_IDENT_RE = re.compile(r"^-?[a-zA-Z_][a-zA-Z0-9_-]*$")
_LANG_RE = re.compile(r"^[A-Za-z]{1,8}(-[A-Za-z0-9]{1,8})*$")
_FRACTION_RE = re.compile(r"^(\d{1,2})/(\d{1,2})$")
_UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:text", "data:application")

MINIMAL_DOCUMENT = (
    "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n<meta charset=\"utf-8\">\n"
    "<title>Untitled</title>\n</head>\n<body></body>\n</html>\n"
)

_BASE_CSS = f"""*, *::before, *::after {{ box-sizing: border-box; }}
body {{ margin: 0; }}
img, video, iframe {{ max-width: 100%; }}
img {{ height: auto; }}
.pm-section {{ width: 100%; }}
.pm-container {{ max-width: {CONTAINER_MAX_WIDTH}; margin: 0 auto; padding: 0 16px; }}
.pm-row {{ display: flex; flex-wrap: wrap; }}
.pm-col {{ flex: 1 1 0; min-width: 0; }}
.pm-w-full {{ flex: 0 0 100%; max-width: 100%; }}
@media (max-width: {MOBILE_MAX_WIDTH}px) {{ .pm-row > .pm-col {{ flex: 0 0 100%; max-width: 100%; }} }}"""


# ---------------------------------------------------------------------------
# Tolerant readers for hand-edited input
# ---------------------------------------------------------------------------

def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_text(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return ""


def _is_primitive(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def safe_url(value: Any) -> Optional[str]:
    url = _as_text(value).strip()
    if not url:
        return None
    compact = re.sub(r"\s+", "", url).lower()
    if compact.startswith(_UNSAFE_SCHEMES):
        return "#"
    return url


# ---------------------------------------------------------------------------
# CSS helpers
# ---------------------------------------------------------------------------

def css_property(name: Any) -> Optional[str]:
    """camelCase → kebab-case, or ``None`` for anything that is not a property name."""
    if not isinstance(name, str) or not name:
        return None
    if not name.startswith("--"):
        name = re.sub(r"([A-Z])", r"-\1", name).lower()
    return name if _CSS_PROP_RE.match(name) else None


def css_value(value: Any) -> Optional[str]:
    if not _is_primitive(value):
        return None
    text = str(value).replace("{", "").replace("}", "").replace("<", "\\3c ").strip()
    return text or None


def keyframes_body(value: Any) -> Optional[str]:
    """Return a @keyframes body safe to embed, or ``None`` if its braces do not balance."""
    if not isinstance(value, str):
        return None
    depth = 0
    for ch in value:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                return None
    if depth != 0 or not value.strip():
        return None
    return value.replace("<", "\\3c ").strip()


def declarations(styles: Dict[str, Any], important: bool = False) -> str:
    parts: List[str] = []
    for name, raw in styles.items():
        prop, value = css_property(name), css_value(raw)
        if prop and value:
            parts.append(f"{prop}: {value}{' !important' if important else ''}")
    return "; ".join(parts)


def _attrs(pairs: Dict[str, Any]) -> str:
    out: List[str] = []
    for name, value in pairs.items():
        if value is None or value is False or value == "":
            continue
        if value is True:
            out.append(f" {name}")
        else:
            out.append(f' {name}="{html.escape(str(value), quote=True)}"')
    return "".join(out)


def _linked_text(text: str, links: List[Any]) -> str:
    """Escape *text*, wrapping each ``{text, href}`` link back into an anchor."""
    out: List[str] = []
    pos = 0
    for link in links:
        link = _as_dict(link)
        label = _as_text(link.get("text"))
        href = safe_url(link.get("href"))
        index = text.find(label, pos) if label and href else -1
        if index < 0:
            continue
        out.append(html.escape(text[pos:index]))
        out.append(f"<a{_attrs({'href': href})}>{html.escape(label)}</a>")
        pos = index + len(label)
    out.append(html.escape(text[pos:]))
    return "".join(out)


def _slug(key: str) -> str:
    return re.sub(r"[^a-zA-Z0-9-]+", "-", key).strip("-").lower()


class _Renderer:
    """One render pass; collects generated CSS while walking the body."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.data = data
        self.meta = _as_dict(data.get("meta"))
        self._class_counter = 0
        self.state_rules: List[str] = []
        self.tablet_rules: List[str] = []
        self.mobile_rules: List[str] = []
        self.keyframes: Dict[str, str] = {}
        self.widths: Dict[str, Tuple[int, int]] = {}

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def render(self) -> str:
        if _as_list(self.data.get("sections")) or not _as_list(self.data.get("nodes")):
            body = self._sections(_as_list(self.data.get("sections")))
        else:
            body = self._nodes(_as_list(self.data.get("nodes")), 0)
        head = self._head()
        lang = _as_text(self.meta.get("lang")).strip()
        if not _LANG_RE.match(lang):
            lang = "en"
        return (
            f"<!DOCTYPE html>\n<html lang=\"{lang}\">\n<head>\n{head}\n</head>\n"
            f"<body>\n{body}\n</body>\n</html>\n"
        )

    def _head(self) -> str:
        title = _as_text(self.meta.get("title")).strip() or "Untitled"
        lines = [
            '<meta charset="utf-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1">',
            f"<title>{html.escape(title)}</title>",
        ]
        description = _as_text(self.meta.get("description")).strip()
        if description:
            lines.append(f"<meta{_attrs({'name': 'description', 'content': description})}>")
        keywords = [_as_text(k).strip() for k in _as_list(self.meta.get("keywords"))]
        keywords = [k for k in keywords if k]
        if keywords:
            lines.append(f"<meta{_attrs({'name': 'keywords', 'content': ', '.join(keywords)})}>")
        for href in _as_list(self.meta.get("stylesheets")):
            url = safe_url(href)
            if url and url != "#":
                lines.append(f"<link{_attrs({'rel': 'stylesheet', 'href': url})}>")
        lines.append(f"<style>\n{self._css()}\n</style>")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Generated CSS
    # ------------------------------------------------------------------

    def _root_variables(self) -> List[str]:
        tokens = _as_dict(self.data.get("designTokens"))
        typography = _as_dict(tokens.get("typography"))
        groups = (
            ("color", _as_dict(tokens.get("colors"))),
            ("font-size", _as_dict(typography.get("fontSizes"))),
            ("font-family", _as_dict(typography.get("fontFamilies"))),
            ("spacing", _as_dict(tokens.get("spacing"))),
            ("theme", _as_dict(self.data.get("theme"))),
        )
        variables: List[str] = []
        for prefix, values in groups:
            for key, raw in values.items():
                name, value = _slug(str(key)), css_value(raw)
                if name and value:
                    variables.append(f"--{prefix}-{name}: {value};")
        return variables

    def _css(self) -> str:
        blocks: List[str] = []
        variables = self._root_variables()
        if variables:
            blocks.append(":root { " + " ".join(variables) + " }")
        blocks.append(_BASE_CSS)
        for key, (num, den) in sorted(self.widths.items()):
            percent = f"{num * 100 / den:.4f}".rstrip("0").rstrip(".")
            blocks.append(f".pm-w-{key} {{ flex: 0 0 {percent}%; max-width: {percent}%; }}")

        global_styles = self.data.get("globalStyles")
        if isinstance(global_styles, str) and global_styles.strip():
            blocks.append(global_styles.replace("</", "<\\/"))
        elif isinstance(global_styles, dict):
            for selector, styles in global_styles.items():
                body = declarations(_as_dict(styles))
                if isinstance(selector, str) and body and "{" not in selector and "<" not in selector:
                    blocks.append(f"{selector} {{ {body}; }}")

        for name, frames in self.keyframes.items():
            blocks.append(f"@keyframes {name} {{ {frames} }}")
        blocks.extend(self.state_rules)
        if self.tablet_rules:
            blocks.append(f"@media (max-width: {TABLET_MAX_WIDTH}px) {{\n" + "\n".join(self.tablet_rules) + "\n}")
        if self.mobile_rules:
            blocks.append(f"@media (max-width: {MOBILE_MAX_WIDTH}px) {{\n" + "\n".join(self.mobile_rules) + "\n}")
        return "\n".join(blocks)

    def _styling(self, node: Dict[str, Any], classes: List[str], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Return ``class``/``style`` attributes for *node*, registering any generated rules."""
        styles = _as_dict(node.get("styles"))
        desktop = dict(extra or {})
        desktop.update(_as_dict(styles.get("desktop")))
        tablet = _as_dict(styles.get("tablet"))
        mobile = _as_dict(styles.get("mobile"))
        states = _as_dict(node.get("states"))
        state_maps = {state: _as_dict(states.get(state)) for state in STATES}

        class_names = list(classes)
        if tablet or mobile or any(state_maps.values()):
            self._class_counter += 1
            generated = f"pm-n{self._class_counter}"
            class_names.append(generated)
            if tablet and declarations(tablet):
                self.tablet_rules.append(f".{generated} {{ {declarations(tablet, important=True)}; }}")
            if mobile and declarations(mobile):
                self.mobile_rules.append(f".{generated} {{ {declarations(mobile, important=True)}; }}")
            for state, values in state_maps.items():
                if values and declarations(values):
                    self.state_rules.append(f".{generated}:{state} {{ {declarations(values, important=True)}; }}")

        for name, frames in _as_dict(node.get("animations")).items():
            body = keyframes_body(frames)
            if isinstance(name, str) and _IDENT_RE.match(name) and body:
                self.keyframes.setdefault(name, body)

        return {"class": " ".join(class_names) or None, "style": declarations(desktop) or None}

    # ------------------------------------------------------------------
    # Sections → rows → columns
    # ------------------------------------------------------------------

    def _sections(self, sections: List[Any]) -> str:
        return "\n".join(self._section(_as_dict(section)) for section in sections)

    def _section(self, section: Dict[str, Any]) -> str:
        settings = _as_dict(section.get("settings"))
        section_type = _as_text(section.get("type")) or "content"
        tag = _as_text(settings.get("tag")).lower()
        if tag not in SECTION_TAGS:
            tag = section_type if section_type in ("footer", "nav") else "section"

        attrs = {"data-pm-id": _as_text(section.get("id")) or None, "data-section-type": section_type}
        type_class = f"pm-section-{_slug(section_type)}" if _slug(section_type) else None
        attrs.update(self._styling(section, ["pm-section"] + ([type_class] if type_class else [])))

        rows = "\n".join(self._row(_as_dict(row)) for row in _as_list(section.get("rows")))
        if _as_text(settings.get("containerWidth")) != "full":
            rows = f'<div class="pm-container">\n{rows}\n</div>'
        return f"<{tag}{_attrs(attrs)}>\n{rows}\n</{tag}>"

    def _row(self, row: Dict[str, Any]) -> str:
        attrs = {"data-pm-id": _as_text(row.get("id")) or None}
        attrs.update(self._styling(row, ["pm-row"]))
        columns = "\n".join(self._column(_as_dict(column)) for column in _as_list(row.get("columns")))
        return f"<div{_attrs(attrs)}>\n{columns}\n</div>"

    def _width_class(self, width: Any) -> str:
        match = _FRACTION_RE.match(_as_text(width).strip())
        if match:
            num, den = int(match.group(1)), int(match.group(2))
            if 0 < num < den:
                key = f"{num}-{den}"
                self.widths[key] = (num, den)
                return f"pm-w-{key}"
        return "pm-w-full"

    def _column(self, column: Dict[str, Any]) -> str:
        attrs = {"data-pm-id": _as_text(column.get("id")) or None}
        attrs.update(self._styling(column, ["pm-col", self._width_class(column.get("width"))]))
        elements = "\n".join(
            self._element(_as_dict(element), "div", 0) for element in _as_list(column.get("elements"))
        )
        return f"<div{_attrs(attrs)}>\n{elements}\n</div>"

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def _element(self, element: Dict[str, Any], parent_tag: str, depth: int) -> str:
        if depth > MAX_RENDER_DEPTH:
            return ""
        element_type = _as_text(element.get("type"))
        renderer = getattr(self, f"_render_{element_type}", None) if _IDENT_RE.match(element_type) else None
        if renderer is None:
            return ""
        content = _as_dict(element.get("content"))
        props = _as_dict(element.get("props"))
        return renderer(element, content, props, parent_tag, depth)

    def _base_attrs(self, element: Dict[str, Any], classes: List[str], extra_styles: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {"data-pm-id": _as_text(element.get("id")) or None}
        attrs.update(self._styling(element, classes, extra_styles))
        return attrs

    @staticmethod
    def _text_of(content: Dict[str, Any], props: Dict[str, Any]) -> str:
        text = _as_text(content.get("text"))
        return text if text else _as_text(props.get("text"))

    @staticmethod
    def _contextual(tag: str, parent_tag: str) -> str:
        parents = _CONTEXTUAL_TAGS.get(tag)
        if parents is not None and parent_tag not in parents:
            return "div"
        return tag

    def _render_heading(self, element, content, props, parent_tag, depth) -> str:
        try:
            level = int(props.get("level", 1))
        except (TypeError, ValueError):
            level = 1
        level = min(max(level, 1), 6)
        attrs = self._base_attrs(element, [])
        return f"<h{level}{_attrs(attrs)}>{html.escape(self._text_of(content, props))}</h{level}>"

    def _render_text(self, element, content, props, parent_tag, depth) -> str:
        text = html.escape(self._text_of(content, props))
        href = safe_url(content.get("href")) or safe_url(props.get("href"))
        attrs = self._base_attrs(element, [])
        if href or _as_text(props.get("tag")) == "a":
            attrs["href"] = href
            return f"<a{_attrs(attrs)}>{text}</a>"
        links = _as_list(props.get("links"))
        if links:
            text = _linked_text(self._text_of(content, props), links)
        tag = _as_text(props.get("tag")).lower()
        tag = self._contextual(tag, parent_tag) if tag in TEXT_TAGS else "p"
        return f"<{tag}{_attrs(attrs)}>{text}</{tag}>"

    def _render_button(self, element, content, props, parent_tag, depth) -> str:
        text = html.escape(self._text_of(content, props))
        href = safe_url(content.get("href")) or safe_url(props.get("href"))
        if href:
            attrs = self._base_attrs(element, ["pm-button"])
            attrs["href"] = href
            return f"<a{_attrs(attrs)}>{text}</a>"
        button_type = _as_text(props.get("buttonType")).lower()
        attrs = {"type": button_type if button_type in BUTTON_TYPES else "button"}
        attrs.update(self._base_attrs(element, ["pm-button"]))
        return f"<button{_attrs(attrs)}>{text}</button>"

    def _render_image(self, element, content, props, parent_tag, depth) -> str:
        src = safe_url(content.get("src")) or safe_url(props.get("src"))
        if not src:
            return ""
        attrs = {"src": src, "alt": _as_text(content.get("alt")) or _as_text(props.get("alt")), "loading": "lazy"}
        attrs.update(self._base_attrs(element, []))
        # alt="" must survive for decorative images
        alt = html.escape(attrs.pop("alt"), quote=True)
        img = f'<img alt="{alt}"{_attrs(attrs)}>'
        href = safe_url(props.get("href"))
        return f"<a{_attrs({'href': href})}>{img}</a>" if href else img

    def _render_video(self, element, content, props, parent_tag, depth) -> str:
        src = safe_url(content.get("src")) or safe_url(props.get("src"))
        if not src:
            return ""
        if props.get("embed") is True or any(host in src for host in _EMBED_HOSTS):
            attrs = {"src": src, "allowfullscreen": True, "loading": "lazy"}
            attrs.update(self._base_attrs(element, []))
            return f"<iframe{_attrs(attrs)}></iframe>"
        attrs: Dict[str, Any] = {"poster": safe_url(content.get("poster"))}
        for flag in _VIDEO_FLAGS:
            attrs[flag] = props.get(flag) is True
        attrs.update(self._base_attrs(element, []))
        mime_type = _as_text(content.get("mimeType"))
        if mime_type:
            source = f"<source{_attrs({'src': src, 'type': mime_type})}>"
            return f"<video{_attrs(attrs)}>{source}</video>"
        attrs["src"] = src
        return f"<video{_attrs(attrs)}></video>"

    def _render_input(self, element, content, props, parent_tag, depth) -> str:
        input_type = _as_text(props.get("inputType")).lower()
        name = _as_text(content.get("name")) or None
        placeholder = _as_text(content.get("placeholder")) or None
        value = _as_text(content.get("value"))
        attrs: Dict[str, Any] = {"name": name}
        if input_type == "textarea":
            attrs["placeholder"] = placeholder
            attrs.update(self._base_attrs(element, []))
            return f"<textarea{_attrs(attrs)}>{html.escape(value)}</textarea>"
        if input_type == "select":
            attrs.update(self._base_attrs(element, []))
            options = "".join(
                f"<option>{html.escape(_as_text(option))}</option>" for option in _as_list(props.get("options"))
            )
            return f"<select{_attrs(attrs)}>{options}</select>"
        attrs["type"] = input_type if input_type in INPUT_TYPES else "text"
        attrs["placeholder"] = placeholder
        attrs["value"] = value or None
        attrs.update(self._base_attrs(element, []))
        return f"<input{_attrs(attrs)}>"

    def _render_spacer(self, element, content, props, parent_tag, depth) -> str:
        if props.get("divider") is True:
            return f"<hr{_attrs(self._base_attrs(element, []))}>"
        height = css_value(props.get("height")) or "1rem"
        attrs = self._base_attrs(element, ["pm-spacer"], {"height": height})
        return f'<div aria-hidden="true"{_attrs(attrs)}></div>'

    def _render_container(self, element, content, props, parent_tag, depth) -> str:
        tag = _as_text(props.get("tag")).lower()
        tag = self._contextual(tag, parent_tag) if tag in CONTAINER_TAGS else "div"
        attrs: Dict[str, Any] = {}
        if tag == "a":
            attrs["href"] = safe_url(props.get("href"))
        elif tag == "form":
            attrs["action"] = safe_url(props.get("action"))
            method = _as_text(props.get("method")).lower()
            attrs["method"] = method if method in ("get", "post") else None
        attrs.update(self._base_attrs(element, []))
        children = "\n".join(
            self._element(_as_dict(child), tag, depth + 1) for child in _as_list(element.get("children"))
        )
        return f"<{tag}{_attrs(attrs)}>{children}</{tag}>"

    # ------------------------------------------------------------------
    # Generic node trees
    # ------------------------------------------------------------------

    def _nodes(self, nodes: List[Any], depth: int) -> str:
        return "\n".join(self._node(node, depth) for node in nodes)

    def _node(self, node: Any, depth: int) -> str:
        if isinstance(node, str):
            return html.escape(node)
        node = _as_dict(node)
        if not node or depth > MAX_RENDER_DEPTH:
            return ""
        tag = _as_text(node.get("tag") or node.get("type")).lower()
        if tag in BLOCKED_TAGS:
            return ""
        if not _TAG_NAME_RE.match(tag):
            tag = "div"

        attrs: Dict[str, Any] = {}
        for name, value in _as_dict(node.get("attributes") or node.get("attrs")).items():
            if not isinstance(name, str) or not _ATTR_NAME_RE.match(name) or name.lower().startswith("on"):
                continue
            lowered = name.lower()
            if lowered in ("href", "src", "action", "poster", "formaction"):
                attrs[lowered] = safe_url(value)
            elif lowered == "style":
                attrs[lowered] = declarations(value) if isinstance(value, dict) else css_value(value)
            elif isinstance(value, bool):
                attrs[lowered] = value
            else:
                attrs[lowered] = _as_text(value) or None
        if _as_text(node.get("id")):
            attrs["data-pm-id"] = _as_text(node.get("id"))

        styling = self._styling(node, [])
        if styling["style"]:
            attrs["style"] = "; ".join(filter(None, [attrs.get("style"), styling["style"]]))
        if styling["class"]:
            attrs["class"] = " ".join(filter(None, [attrs.get("class"), styling["class"]]))

        if tag in VOID_TAGS:
            return f"<{tag}{_attrs(attrs)}>"
        inner = html.escape(_as_text(node.get("text") or node.get("content")))
        inner += self._nodes(_as_list(node.get("children")), depth + 1)
        return f"<{tag}{_attrs(attrs)}>{inner}</{tag}>"


def render(model: Union[BaseModel, Dict[str, Any], None]) -> str:
    """Render *model* into one complete HTML document.

    Accepts a :class:`~pagecraft.models.page_model.PageModel`, its JSON dict
    form, or a node-tree dict (``{"nodes": [...], "globalStyles": ...}``).
    Never raises; unusable input renders as an empty document.
    """
    try:
        if isinstance(model, BaseModel):
            data = model.model_dump(by_alias=True, exclude_none=True)
        else:
            data = _as_dict(model)
        document = _Renderer(data).render()
    except Exception as exc:
        logger.warning("Rendering failed, returning minimal document: %s", exc)
        return MINIMAL_DOCUMENT

    logger.debug("Page rendered", extra={"bytes": len(document)})
    return document
