"""Conversion orchestration: raw HTML → :class:`PageModel`."""

import logging
from collections import Counter
from typing import Dict, Iterable, Optional

from pagecraft.models.page_model import (
    ContainerElement,
    PageMeta,
    PageModel,
)
from pagecraft.services.builder import IdFactory, ModelBuilder, default_section, node_text
from pagecraft.services.classifier import classify_regions
from pagecraft.services.resolver import StyleResolver
from pagecraft.services.sanitizer import NormalizedDocument, normalize_markup
from pagecraft.services.stylesheet import Stylesheet, extract_stylesheet
from pagecraft.services.tokens import extract_design_tokens

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"


def _page_meta(doc: NormalizedDocument) -> PageMeta:
    title = doc.title
    if not title:
        h1 = doc.body.find("h1")
        title = node_text(h1) if h1 is not None else ""
    return PageMeta(
        title=title or DEFAULT_TITLE,
        description=doc.description,
        keywords=doc.keywords,
        lang=doc.lang,
        stylesheets=doc.stylesheets,
    )


def default_page(ids: Optional[IdFactory] = None) -> PageModel:
    """The structurally valid model returned when nothing could be converted."""
    return PageModel(sections=[default_section(ids or IdFactory())])


def convert(html: Optional[str]) -> PageModel:
    """Convert *html* into a :class:`PageModel`.

    Total: any input, including empty strings and binary garbage, yields a
    model with at least one section.  Each call generates fresh ids.
    """
    ids = IdFactory()
    try:
        # ── 1. Normalise markup ───────────────────────────────────────────────
        doc = normalize_markup(html)

        # ── 2. Stylesheet + resolver ──────────────────────────────────────────
        stylesheet: Stylesheet = extract_stylesheet(doc.style_blocks)
        resolver = StyleResolver(stylesheet)

        # ── 3. Regions → sections ─────────────────────────────────────────────
        regions = classify_regions(doc.body, resolver)
        sections = ModelBuilder(resolver, ids).build_sections(regions)

        # ── 4. Tokens + meta ──────────────────────────────────────────────────
        page = PageModel(
            meta=_page_meta(doc),
            design_tokens=extract_design_tokens(sections, stylesheet.variables),
            sections=sections,
        )
    except Exception as exc:
        logger.warning("Conversion failed, returning default page: %s", exc)
        return default_page(ids)

    logger.info("Page converted", extra=conversion_stats(page))
    return page


def _count_elements(elements: Iterable) -> int:
    total = 0
    for element in elements:
        total += 1
        if isinstance(element, ContainerElement):
            total += _count_elements(element.children)
    return total


def conversion_stats(page: PageModel) -> Dict[str, object]:
    """Summary counts for a converted page (sections, elements, section types)."""
    elements = sum(
        _count_elements(column.elements)
        for section in page.sections
        for row in section.rows
        for column in row.columns
    )
    return {
        "sections": len(page.sections),
        "elements": elements,
        "section_types": dict(Counter(section.type for section in page.sections)),
    }
