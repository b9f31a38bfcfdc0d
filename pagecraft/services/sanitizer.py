"""Markup normalisation: tolerant parsing of raw HTML into a clean element stream.

Whatever comes in (unclosed tags, missing DOCTYPE, stray binary bytes) is
handed to lxml through BeautifulSoup, which repairs the tree instead of
rejecting it.  ``<script>`` and ``<style>`` payloads are captured on the side
and removed from the element stream together with other non-visual nodes.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

logger = logging.getLogger(__name__)

# C0 control characters (except tab, LF, FF, CR) are parse errors in HTML and
# make some parser back-ends give up on the rest of the document.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0e-\x1f\x7f]")

# Tags whose entire subtree is dropped from the element stream
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "template",
    "link",
    "meta",
    "base",
}
# Tags that belong in <head>; anything else found there is body content
_HEAD_TAGS = _REMOVE_TAGS | {"title"}

DEFAULT_LANG = "en"


@dataclass
class NormalizedDocument:
    """Best-effort view of one HTML document."""

    body: Tag
    title: str = ""
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    lang: str = DEFAULT_LANG
    stylesheets: List[str] = field(default_factory=list)
    style_blocks: List[str] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)


def element_children(tag: Tag) -> List[Tag]:
    """Return the direct element (non-text) children of *tag*."""
    return [child for child in tag.children if isinstance(child, Tag)]


def has_direct_text(tag: Tag) -> bool:
    """Return True when *tag* holds non-whitespace text outside any child element."""
    return any(
        isinstance(child, NavigableString) and not isinstance(child, Comment) and child.strip()
        for child in tag.children
    )


def class_list(tag: Tag) -> List[str]:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return [str(c) for c in classes if c]


def _parse(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as exc:
        # lxml refuses a handful of pathological inputs; the pure-Python
        # parser is slower but accepts anything.
        logger.warning("lxml could not parse document, using html.parser: %s", exc)
        return BeautifulSoup(html, "html.parser")


def _meta_map(soup: BeautifulSoup) -> Dict[str, str]:
    """Map lower-cased meta ``name``/``property`` keys to their ``content``."""
    metas: Dict[str, str] = {}
    for meta in soup.find_all("meta"):
        key = meta.get("name") or meta.get("property")
        content = meta.get("content")
        if key and content and str(key).lower() not in metas:
            metas[str(key).lower()] = str(content).strip()
    return metas


def _extract_stylesheet_links(soup: BeautifulSoup) -> List[str]:
    hrefs: List[str] = []
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "stylesheet" in [r.lower() for r in rel]:
            href = str(link["href"]).strip()
            if href and href not in hrefs:
                hrefs.append(href)
    return hrefs


def _is_body_content(node: PageElement) -> bool:
    if isinstance(node, Tag):
        return node.name not in _HEAD_TAGS and node.name not in ("html", "head", "body")
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString) and bool(node.strip())


def _ensure_body(soup: BeautifulSoup) -> Tag:
    """Return the document ``<body>``, gathering content stranded outside it.

    lxml keeps a fragment that opens with ``<title>``, ``<style>`` or
    ``<script>`` and has no ``<body>`` tag inside ``<head>``; html.parser
    builds no ``<body>`` at all.  Either way the visible nodes move into
    the body in document order.
    """
    head = soup.head
    stray: List[PageElement] = []
    if head is not None:
        stray.extend(child for child in head.children if _is_body_content(child))
    body = soup.body
    if body is None:
        body = soup.new_tag("body")
        container = soup.html or soup
        stray.extend(child for child in container.children if _is_body_content(child))
        container.append(body)
        for node in stray:
            body.append(node.extract())
    else:
        for index, node in enumerate(stray):
            body.insert(index, node.extract())
    if stray:
        logger.debug("Moved %d stray node(s) into <body>", len(stray))
    return body


def normalize_markup(html: Optional[str]) -> NormalizedDocument:
    """Parse *html* into a :class:`NormalizedDocument`.

    Never raises: an unusable input yields a document with an empty body.
    """
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    elif not isinstance(html, str):
        html = "" if html is None else str(html)

    soup = _parse(_CONTROL_CHARS_RE.sub("", html))

    title_tag = soup.find("title")
    metas = _meta_map(soup)
    html_tag = soup.find("html")
    lang = str(html_tag.get("lang") or DEFAULT_LANG).strip() if html_tag else DEFAULT_LANG

    doc = NormalizedDocument(
        body=_ensure_body(soup),
        title=title_tag.get_text(strip=True) if title_tag else metas.get("og:title", ""),
        description=metas.get("description") or metas.get("og:description", ""),
        keywords=[k.strip() for k in metas.get("keywords", "").split(",") if k.strip()],
        lang=lang or DEFAULT_LANG,
        stylesheets=_extract_stylesheet_links(soup),
    )

    # Capture payloads before they are dropped from the element stream
    for style in soup.find_all("style"):
        css = style.string if style.string is not None else style.get_text()
        if css and css.strip():
            doc.style_blocks.append(str(css))
    for script in soup.find_all("script"):
        code = script.string or ""
        if code.strip():
            doc.scripts.append(str(code))

    for tag in soup.find_all(_REMOVE_TAGS):
        # A removed ancestor already took its nested matches with it
        if not tag.decomposed:
            tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    logger.debug(
        "Markup normalised",
        extra={
            "style_blocks": len(doc.style_blocks),
            "scripts": len(doc.scripts),
            "body_children": len(element_children(doc.body)),
        },
    )
    return doc
