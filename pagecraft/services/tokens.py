"""Design token extraction: mine reusable colors, type sizes and spacing.

Tokens are derived from the finished section tree, never from raw CSS, so
they only reflect values that actually reached an element.  Frequency is the
only ranking signal; CSS custom properties named after a role
(``--primary``, ``--bg``, ``--heading-font`` …) override it.
"""

import logging
import re
from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pagecraft.models.page_model import (
    BreakpointStyles,
    ContainerElement,
    DesignTokens,
    Section,
    Typography,
)
from pagecraft.services.stylesheet import ROOT_FONT_SIZE_PX

logger = logging.getLogger(__name__)

COLOR_ROLES = ("primary", "secondary", "accent")
SPACING_LABELS = ("xs", "sm", "md", "lg", "xl")
MAX_PALETTE = 12
MAX_SPACING_TOKENS = 10

_HEX_RE = re.compile(r"#([0-9a-fA-F]{8}|[0-9a-fA-F]{6}|[0-9a-fA-F]{3,4})\b")
_RGB_RE = re.compile(r"rgba?\(([^()]*)\)", re.IGNORECASE)
_LENGTH_RE = re.compile(r"^(\d*\.?\d+)(px|rem|em)$", re.IGNORECASE)

_BORDER_PROPERTIES = {
    "background", "border", "borderTop", "borderRight", "borderBottom",
    "borderLeft", "outline",
}
_SPACING_PROPERTIES = {
    "padding", "paddingTop", "paddingRight", "paddingBottom", "paddingLeft",
    "margin", "marginTop", "marginRight", "marginBottom", "marginLeft",
    "gap", "rowGap", "columnGap",
}
_TEXT_LEVELS = {"small": "small", "label": "small", "figcaption": "small", "code": "code", "pre": "code"}
# Shorthand variable names accepted per role, after the --<role> forms
_VARIABLE_ALIASES = {
    "background": ("--bg", "--bg-color", "--color-bg"),
    "text": ("--fg", "--text-color", "--body-color"),
}
_FONT_VARIABLES = {
    "heading": ("--font-heading", "--heading-font", "--font-family-heading", "--headings-font-family"),
    "body": ("--font-body", "--body-font", "--font-family-body", "--font-family", "--font-sans"),
}

StyleMap = Dict[str, str]


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------

def _channel(raw: str, scale: float = 255.0) -> Optional[float]:
    raw = raw.strip()
    try:
        if raw.endswith("%"):
            return float(raw[:-1]) * scale / 100.0
        return float(raw)
    except ValueError:
        return None


def _rgb_to_token(args: str) -> Optional[str]:
    parts = args.replace("/", " ").replace(",", " ").split()
    if len(parts) not in (3, 4):
        return None
    channels = [_channel(p) for p in parts[:3]]
    alpha = _channel(parts[3], 1.0) if len(parts) == 4 else 1.0
    if any(c is None for c in channels) or alpha is None:
        return None
    r, g, b = (max(0, min(255, int(round(c)))) for c in channels)
    if alpha >= 1:
        return f"#{r:02x}{g:02x}{b:02x}"
    return f"rgba({r}, {g}, {b}, {round(max(alpha, 0.0), 3):g})"


def _hex_to_token(digits: str) -> Optional[str]:
    digits = digits.lower()
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) == 8:
        alpha = int(digits[6:], 16)
        if alpha != 255:
            r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
            return f"rgba({r}, {g}, {b}, {round(alpha / 255, 3):g})"
        digits = digits[:6]
    return f"#{digits}"


def colors_in(value: str) -> List[str]:
    """Return every hex/rgb(a) color in a CSS *value*, normalised."""
    found: List[Tuple[int, str]] = []
    for match in _HEX_RE.finditer(value):
        token = _hex_to_token(match.group(1))
        if token:
            found.append((match.start(), token))
    for match in _RGB_RE.finditer(value):
        token = _rgb_to_token(match.group(1))
        if token:
            found.append((match.start(), token))
    return [token for _, token in sorted(found)]


def _is_color_property(prop: str) -> bool:
    return "color" in prop.lower() or prop in _BORDER_PROPERTIES


# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------

def _maps(styles: BreakpointStyles) -> Iterator[StyleMap]:
    yield styles.desktop
    if styles.tablet:
        yield styles.tablet
    if styles.mobile:
        yield styles.mobile


def _element_level(element) -> str:
    if element.type == "heading":
        level = element.props.get("level", 1)
        return f"h{level}" if isinstance(level, int) and 1 <= level <= 6 else "h1"
    if element.type in ("button", "input"):
        return element.type
    if element.type == "text":
        return _TEXT_LEVELS.get(str(element.props.get("tag", "")), "body")
    return "other"


def _walk_elements(elements: Iterable) -> Iterator:
    for element in elements:
        yield element
        if isinstance(element, ContainerElement):
            yield from _walk_elements(element.children)


def iter_style_maps(sections: Iterable[Section]) -> Iterator[Tuple[str, StyleMap]]:
    """Yield ``(level, style map)`` for every map in the tree, states included."""
    for section in sections:
        for style_map in _maps(section.styles):
            yield "section", style_map
        for row in section.rows:
            for style_map in _maps(row.styles):
                yield "section", style_map
            for column in row.columns:
                for style_map in _maps(column.styles):
                    yield "section", style_map
                for element in _walk_elements(column.elements):
                    level = _element_level(element)
                    for style_map in _maps(element.styles):
                        yield level, style_map
                    if element.states is not None:
                        for state_map in (element.states.hover, element.states.focus, element.states.active):
                            if state_map:
                                yield level, state_map


# ---------------------------------------------------------------------------
# Token builders
# ---------------------------------------------------------------------------

def _variable_names(role: str) -> Tuple[str, ...]:
    names = (f"--{role}", f"--{role}-color", f"--color-{role}")
    return names + _VARIABLE_ALIASES.get(role, ())


def _variable_color(variables: Dict[str, str], role: str) -> Optional[str]:
    for name in _variable_names(role):
        value = variables.get(name)
        if value:
            colors = colors_in(value)
            if colors:
                return colors[0]
    return None


def _color_tokens(maps: List[Tuple[str, StyleMap]], variables: Dict[str, str]) -> Dict[str, object]:
    overall: Counter = Counter()
    backgrounds: Counter = Counter()
    foregrounds: Counter = Counter()
    for _, style_map in maps:
        for prop, value in style_map.items():
            if not _is_color_property(prop):
                continue
            for color in colors_in(value):
                overall[color] += 1
                if prop in ("background", "backgroundColor"):
                    backgrounds[color] += 1
                elif prop == "color":
                    foregrounds[color] += 1

    ranked = [color for color, _ in overall.most_common()]
    tokens: Dict[str, object] = {}
    if backgrounds:
        tokens["background"] = backgrounds.most_common(1)[0][0]
    if foregrounds:
        tokens["text"] = foregrounds.most_common(1)[0][0]

    # Roles prefer colors that are not already the page background/foreground
    candidates = [c for c in ranked if c not in (tokens.get("background"), tokens.get("text"))] or ranked
    for role, color in zip(COLOR_ROLES, candidates):
        tokens[role] = color

    for role in COLOR_ROLES + ("background", "text"):
        override = _variable_color(variables, role)
        if override:
            tokens[role] = override

    tokens["palette"] = ranked[:MAX_PALETTE]
    return tokens


def length_px(value: str) -> Optional[float]:
    match = _LENGTH_RE.match(value.strip())
    if not match:
        return None
    number = float(match.group(1))
    return number if match.group(2).lower() == "px" else number * ROOT_FONT_SIZE_PX


def _font_size_tokens(maps: List[Tuple[str, StyleMap]]) -> Dict[str, str]:
    usage: Dict[str, Counter] = {}
    for level, style_map in maps:
        size = style_map.get("fontSize")
        if size:
            usage.setdefault(size.strip(), Counter())[level] += 1

    tokens: Dict[str, str] = {}
    by_frequency = sorted(usage.items(), key=lambda item: -sum(item[1].values()))
    for size, levels in by_frequency:
        level = levels.most_common(1)[0][0]
        key, suffix = level, 2
        while key in tokens:
            key = f"{level}-{suffix}"
            suffix += 1
        tokens[key] = size
    return tokens


def _font_family_tokens(maps: List[Tuple[str, StyleMap]], variables: Dict[str, str]) -> Dict[str, str]:
    heading: Counter = Counter()
    body: Counter = Counter()
    for level, style_map in maps:
        family = style_map.get("fontFamily")
        if not family:
            continue
        if level.startswith("h") and level[1:].isdigit():
            heading[family.strip()] += 1
        else:
            body[family.strip()] += 1
    tokens: Dict[str, str] = {}
    if heading:
        tokens["heading"] = heading.most_common(1)[0][0]
    if body:
        tokens["body"] = body.most_common(1)[0][0]
    for role, names in _FONT_VARIABLES.items():
        override = next((variables[name].strip() for name in names if variables.get(name, "").strip()), None)
        if override and "var(" not in override:
            tokens[role] = override
    return tokens


def _spacing_label(index: int) -> str:
    if index < len(SPACING_LABELS):
        return SPACING_LABELS[index]
    return f"{index - len(SPACING_LABELS) + 2}xl"


def _spacing_tokens(maps: List[Tuple[str, StyleMap]]) -> Dict[str, str]:
    counts: Counter = Counter()
    for _, style_map in maps:
        for prop in _SPACING_PROPERTIES.intersection(style_map):
            for part in style_map[prop].split():
                px = length_px(part)
                if px:
                    counts[part.lower()] += 1

    frequent = [value for value, _ in counts.most_common(MAX_SPACING_TOKENS)]
    frequent.sort(key=lambda value: (length_px(value), value))
    tokens: Dict[str, str] = {}
    seen_px = set()
    for value in frequent:
        px = length_px(value)
        if px in seen_px:
            continue
        seen_px.add(px)
        tokens[_spacing_label(len(tokens))] = value
    return tokens


def extract_design_tokens(
    sections: Iterable[Section],
    variables: Optional[Dict[str, str]] = None,
) -> DesignTokens:
    """Derive :class:`DesignTokens` from the style maps of *sections*.

    Never raises; a failure yields empty tokens.
    """
    try:
        maps = list(iter_style_maps(sections))
        tokens = DesignTokens(
            colors=_color_tokens(maps, variables or {}),
            typography=Typography(
                font_sizes=_font_size_tokens(maps),
                font_families=_font_family_tokens(maps, variables or {}),
            ),
            spacing=_spacing_tokens(maps),
        )
    except Exception as exc:
        logger.warning("Design token extraction failed: %s", exc)
        return DesignTokens()

    logger.debug(
        "Design tokens extracted",
        extra={
            "colors": len(tokens.colors.get("palette", [])),
            "font_sizes": len(tokens.typography.font_sizes),
            "spacing": len(tokens.spacing),
        },
    )
    return tokens
