"""Section classification: segment the body into typed page regions.

Segmentation
------------
Outermost ``<section>``, ``<header>``, ``<nav>`` and ``<footer>`` elements
become one region each, wherever they sit below wrapper ``<div>``/``<main>``
elements.  Loose content around them (or the whole body when there are no
boundaries at all) is grouped flat: a new group starts at every top-level
heading that is not immediately followed by another heading, and a group is
split after five elements regardless.

Typing
------
Each region is run through :data:`SECTION_RULES`, an ordered list of
``(predicate, section_type)`` pairs.  The first predicate that matches wins;
anything unmatched is ``"content"``.  There is no learned component.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from bs4 import Tag

from pagecraft.services.resolver import StyleResolver
from pagecraft.services.sanitizer import class_list, element_children

logger = logging.getLogger(__name__)

BOUNDARY_TAGS = ("section", "header", "nav", "footer")
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
MEDIA_TAGS = ("img", "picture", "video", "iframe")
MAX_GROUP_SIZE = 5
MIN_CARDS = 3
LAYOUT_DISPLAYS = {"grid", "inline-grid", "flex", "inline-flex"}

# How far below a region's top-level nodes we look for a card grid
_GRID_SEARCH_DEPTH = 3
_MAX_SEGMENT_DEPTH = 32

_BUTTON_HINTS = ("button", "btn", "cta")
_FORM_BUTTON_TYPES = {"submit", "button", "reset"}

# Currency amounts ($9, 29 €, R$ 49, USD 10) and billing periods (/mo, per month)
_PRICE_RE = re.compile(
    r"[$€£¥₹]\s?\d"
    r"|\d\s?[€£¥₹]"
    r"|\b(?:usd|eur|gbp|brl)\s?\d"
    r"|/\s?(?:mo|month|yr|year)\b"
    r"|\bper\s+(?:month|year|user)\b",
    re.IGNORECASE,
)

# Region class/id keywords → section type
_NAME_HINTS = {
    "hero": "hero",
    "jumbotron": "hero",
    "features": "features",
    "feature": "features",
    "benefits": "features",
    "pricing": "pricing",
    "plans": "pricing",
    "testimonials": "testimonials",
    "testimonial": "testimonials",
    "reviews": "testimonials",
    "cta": "cta",
    "footer": "footer",
    "nav": "nav",
    "navbar": "nav",
    "navigation": "nav",
}
_QUOTE_HINTS = ("testimonial", "quote", "review")
_TOKEN_SPLIT_RE = re.compile(r"[-_\s]+")


def is_heading(tag: Tag) -> bool:
    return tag.name in HEADING_TAGS


def is_button_anchor(tag: Tag) -> bool:
    """Return True when an ``<a>`` reads as a call-to-action rather than a link.

    That is the case when its class mentions button/btn/cta, when it targets a
    same-page action (``#…`` or ``javascript:``), or when it says so via ARIA.
    """
    if any(hint in cls.lower() for cls in class_list(tag) for hint in _BUTTON_HINTS):
        return True
    if str(tag.get("role") or "").lower() == "button":
        return True
    href = str(tag.get("href") or "").strip().lower()
    return href.startswith("#") or href.startswith("javascript:")


def _is_button(tag: Tag) -> bool:
    if tag.name == "button":
        return True
    if tag.name == "input":
        return str(tag.get("type") or "").lower() in _FORM_BUTTON_TYPES
    return tag.name == "a" and is_button_anchor(tag)


def _iter_tags(nodes: List[Tag]) -> Iterator[Tag]:
    for node in nodes:
        yield node
        yield from node.find_all(True)


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------

@dataclass
class Region:
    """One semantically typed slice of the page body."""

    nodes: List[Tag]
    root: Optional[Tag] = None
    type: str = "content"

    @property
    def tag_name(self) -> str:
        return self.root.name if self.root is not None else "section"


@dataclass
class RegionFacts:
    """Everything the type rules look at, computed once per region."""

    region: Region
    position: int = 0
    hints: Set[str] = field(default_factory=set)
    has_heading: bool = False
    has_button: bool = False
    has_image: bool = False
    has_video: bool = False
    has_nav: bool = False
    has_quote: bool = False
    card_grid: bool = False
    price_grid: bool = False

    @property
    def tag(self) -> str:
        return self.region.root.name if self.region.root is not None else ""


def _boundary_holders(body: Tag) -> Set[int]:
    """ids of the elements that have a boundary element somewhere below them."""
    holders: Set[int] = set()
    for boundary in body.find_all(BOUNDARY_TAGS):
        parent = boundary.parent
        while parent is not None and parent is not body and id(parent) not in holders:
            holders.add(id(parent))
            parent = parent.parent
    return holders


def _has_content(tag: Tag) -> bool:
    if tag.name in MEDIA_TAGS or tag.name in ("input", "textarea", "select", "button", "br", "hr"):
        return True
    if tag.get_text(strip=True):
        return True
    return tag.find(MEDIA_TAGS + ("input", "textarea", "select")) is not None


def group_flat(nodes: List[Tag]) -> List[List[Tag]]:
    """Group loose top-level nodes into sections by heading and size."""
    groups: List[List[Tag]] = []
    current: List[Tag] = []
    for index, node in enumerate(nodes):
        followed_by_heading = index + 1 < len(nodes) and is_heading(nodes[index + 1])
        if is_heading(node) and current and not followed_by_heading:
            groups.append(current)
            current = []
        current.append(node)
        if len(current) >= MAX_GROUP_SIZE:
            groups.append(current)
            current = []
    if current:
        groups.append(current)
    return groups


def segment(body: Tag) -> List[Region]:
    """Split *body* into untyped regions, in document order."""
    holders = _boundary_holders(body)
    regions: List[Region] = []
    loose: List[Tag] = []

    def flush() -> None:
        if loose:
            regions.extend(Region(nodes=group) for group in group_flat(loose))
            loose.clear()

    def walk(node: Tag, depth: int) -> None:
        for child in element_children(node):
            if child.name in BOUNDARY_TAGS:
                # empty boundaries neither become sections nor take position 0
                if _has_content(child):
                    flush()
                    regions.append(Region(nodes=[child], root=child))
            elif id(child) in holders and depth < _MAX_SEGMENT_DEPTH:
                walk(child, depth + 1)
            elif _has_content(child):
                loose.append(child)

    walk(body, 0)
    flush()
    return regions


# ---------------------------------------------------------------------------
# Facts
# ---------------------------------------------------------------------------

def _hint_tokens(root: Optional[Tag]) -> Set[str]:
    if root is None:
        return set()
    names = class_list(root)
    if root.get("id"):
        names.append(str(root["id"]))
    tokens: Set[str] = set()
    for name in names:
        tokens.update(t for t in _TOKEN_SPLIT_RE.split(name.lower()) if t)
    return tokens


def _card_signature(tag: Tag) -> Tuple[str, str]:
    classes = class_list(tag)
    return tag.name, classes[0] if classes else ""


def _is_card(tag: Tag) -> bool:
    if tag.find(HEADING_TAGS + ("img", "picture", "button")) is not None:
        return True
    return bool(_PRICE_RE.search(tag.get_text(" ", strip=True)))


def repeated_children(container: Tag, resolver: StyleResolver, min_count: int = 2) -> Optional[List[Tag]]:
    """Return the largest group of same-signature children of a grid/flex *container*.

    Children share a signature when they have the same tag and leading class.
    Only children that themselves hold elements count.  ``None`` when
    *container* is not laid out as grid/flex or the group is too small.
    """
    if resolver.resolve(container).display not in LAYOUT_DISPLAYS:
        return None
    buckets: Dict[Tuple[str, str], List[Tag]] = {}
    for child in element_children(container):
        if element_children(child):
            buckets.setdefault(_card_signature(child), []).append(child)
    best = max(buckets.values(), key=len, default=[])
    return best if len(best) >= min_count else None


def find_card_grid(container: Tag, resolver: StyleResolver) -> Optional[List[Tag]]:
    """Return the repeated card children of *container* if it is a card grid.

    A card grid is a ``display: grid|flex`` element with at least
    :data:`MIN_CARDS` children that share a tag and leading class and each
    look like a card (a heading, image, button or price inside).
    """
    cards = repeated_children(container, resolver, MIN_CARDS)
    if not cards or not all(_is_card(card) for card in cards):
        return None
    return cards


def _scan_grids(nodes: List[Tag], resolver: StyleResolver) -> Tuple[bool, bool]:
    """Return (card_grid, price_grid) for the first card grid below *nodes*."""
    frontier = list(nodes)
    for _ in range(_GRID_SEARCH_DEPTH + 1):
        next_frontier: List[Tag] = []
        for node in frontier:
            cards = find_card_grid(node, resolver)
            if cards:
                priced = sum(1 for card in cards if _PRICE_RE.search(card.get_text(" ", strip=True)))
                return True, priced * 2 > len(cards)
            next_frontier.extend(element_children(node))
        frontier = next_frontier
        if not frontier:
            break
    return False, False


def collect_facts(region: Region, position: int, resolver: StyleResolver) -> RegionFacts:
    facts = RegionFacts(region=region, position=position, hints=_hint_tokens(region.root))
    for tag in _iter_tags(region.nodes):
        name = tag.name
        if name in HEADING_TAGS:
            facts.has_heading = True
        elif name in ("img", "picture"):
            facts.has_image = True
        elif name in ("video", "iframe"):
            facts.has_video = True
        elif name == "nav":
            facts.has_nav = True
        elif name in ("blockquote", "q"):
            facts.has_quote = True
        if _is_button(tag):
            facts.has_button = True
        if not facts.has_quote and any(
            hint in cls.lower() for cls in class_list(tag) for hint in _QUOTE_HINTS
        ):
            facts.has_quote = True
    facts.card_grid, facts.price_grid = _scan_grids(region.nodes, resolver)
    return facts


# ---------------------------------------------------------------------------
# Type rules, evaluated top to bottom
# ---------------------------------------------------------------------------

def _name_hint(facts: RegionFacts) -> Optional[str]:
    for token in sorted(facts.hints):
        if token in _NAME_HINTS:
            return _NAME_HINTS[token]
    return None


Predicate = Callable[[RegionFacts], bool]

SECTION_RULES: List[Tuple[Predicate, Optional[str]]] = [
    (lambda f: f.tag == "nav" or (f.tag == "header" and f.has_nav), "nav"),
    (lambda f: f.tag == "footer", "footer"),
    # None: the matching predicate's hint decides the type
    (lambda f: _name_hint(f) is not None, None),
    (lambda f: f.price_grid, "pricing"),
    (lambda f: f.card_grid, "features"),
    (
        lambda f: f.position == 0 and f.has_heading and (f.has_button or f.has_image or f.has_video),
        "hero",
    ),
    (lambda f: f.has_button and not f.has_image, "cta"),
    (lambda f: f.has_quote, "testimonials"),
]


def classify(facts: RegionFacts) -> str:
    for predicate, section_type in SECTION_RULES:
        if predicate(facts):
            return section_type or _name_hint(facts) or "content"
    return "content"


def classify_regions(body: Tag, resolver: StyleResolver) -> List[Region]:
    """Segment *body* and assign a section type to every region.

    Never raises; on failure the page is treated as having no regions and the
    model builder synthesises a default section.
    """
    try:
        regions = segment(body)
    except Exception as exc:
        logger.warning("Section segmentation failed: %s", exc)
        return []

    position = 0
    for region in regions:
        try:
            region.type = classify(collect_facts(region, position, resolver))
        except Exception as exc:
            logger.warning("Section typing failed, using 'content': %s", exc)
            region.type = "content"
        if region.type != "nav":
            position += 1

    logger.debug(
        "Regions classified",
        extra={"regions": len(regions), "types": [r.type for r in regions]},
    )
    return regions
