"""Stylesheet extraction: ``<style>`` blocks → breakpoint-bucketed rule lists.

CSS is tokenised with tinycss2, which recovers from syntax errors the same
way browsers do, so a broken block costs at most the rule it appears in.

Media queries are bucketed by their ``max-width``:

``mobile``
    ``max-width`` ≤ 768px
``tablet``
    769px – 1024px
``desktop``
    anything else, and every rule outside a media block

Interaction pseudo-classes (``:hover``, ``:focus``, ``:active``) go to a
separate state bucket instead of the base rule list.  Custom properties are
collected first and substituted into ``var()`` references textually, and
``@keyframes`` bodies are recorded by name.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

import tinycss2

logger = logging.getLogger(__name__)

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024
ROOT_FONT_SIZE_PX = 16

BREAKPOINTS = ("desktop", "tablet", "mobile")

# Nesting of @media / @supports / @layer blocks we are willing to follow
_MAX_AT_RULE_DEPTH = 8
# var() chains deeper than this stay unresolved
_MAX_VAR_DEPTH = 16
MAX_VARIABLE_LENGTH = 4096

# Only these properties survive extraction; anything else is dropped.
TRACKED_PROPERTIES: FrozenSet[str] = frozenset(
    {
        # layout
        "display", "position", "top", "right", "bottom", "left", "z-index",
        "float", "clear", "overflow", "overflow-x", "overflow-y", "visibility",
        "opacity", "box-sizing", "vertical-align",
        # box model
        "width", "height", "min-width", "min-height", "max-width", "max-height",
        "aspect-ratio",
        "margin", "margin-top", "margin-right", "margin-bottom", "margin-left",
        "padding", "padding-top", "padding-right", "padding-bottom", "padding-left",
        # flexbox / grid
        "flex", "flex-direction", "flex-wrap", "flex-flow", "flex-grow",
        "flex-shrink", "flex-basis", "order", "justify-content", "justify-items",
        "justify-self", "align-items", "align-content", "align-self",
        "place-items", "place-content", "gap", "row-gap", "column-gap",
        "grid", "grid-template", "grid-template-columns", "grid-template-rows",
        "grid-template-areas", "grid-column", "grid-row", "grid-area",
        "grid-auto-flow", "grid-auto-rows", "grid-auto-columns",
        # typography
        "font", "font-family", "font-size", "font-weight", "font-style",
        "line-height", "letter-spacing", "word-spacing", "text-align",
        "text-transform", "text-decoration", "text-shadow", "text-overflow",
        "white-space", "word-break", "color", "list-style",
        # background
        "background", "background-color", "background-image", "background-size",
        "background-position", "background-repeat", "background-attachment",
        "background-clip",
        # border / outline
        "border", "border-top", "border-right", "border-bottom", "border-left",
        "border-width", "border-style", "border-color", "border-radius",
        "border-top-left-radius", "border-top-right-radius",
        "border-bottom-left-radius", "border-bottom-right-radius",
        "outline", "outline-offset",
        # effects / motion
        "box-shadow", "transform", "transform-origin", "transition", "animation",
        "animation-name", "animation-duration", "animation-timing-function",
        "animation-delay", "animation-iteration-count", "animation-fill-mode",
        "filter", "backdrop-filter", "clip-path", "mix-blend-mode",
        # misc
        "cursor", "pointer-events", "object-fit", "object-position", "fill", "stroke",
    }
)

# Interaction pseudo-classes → state bucket name
_STATE_PSEUDOS = {
    "hover": "hover",
    "focus": "focus",
    "focus-visible": "focus",
    "focus-within": "focus",
    "active": "active",
}
# Conditional pseudo-classes we do not model; rules using them are skipped
_SKIPPED_PSEUDOS = {"visited", "disabled", "checked", "invalid", "target", "placeholder-shown"}
# CSS2 pseudo-elements that may be written with a single colon
_LEGACY_PSEUDO_ELEMENTS = {"before", "after", "first-line", "first-letter"}
_SCREENLESS_MEDIA_TYPES = {"print", "speech"}
_COMBINATORS = ">+~"


def to_camel_case(prop: str) -> str:
    """``background-color`` → ``backgroundColor``."""
    head, *rest = prop.split("-")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@dataclass(frozen=True)
class SelectorSubject:
    """The right-most compound of a selector: the element a rule styles."""

    tag: Optional[str] = None
    classes: Tuple[str, ...] = ()
    ids: Tuple[str, ...] = ()


@dataclass
class StyleRule:
    selector: str
    subject: SelectorSubject
    declarations: Dict[str, str]
    important: FrozenSet[str] = frozenset()
    breakpoint: str = "desktop"
    state: Optional[str] = None
    order: int = 0


@dataclass
class Stylesheet:
    rules: Dict[str, List[StyleRule]] = field(
        default_factory=lambda: {bp: [] for bp in BREAKPOINTS}
    )
    state_rules: List[StyleRule] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)
    keyframes: Dict[str, str] = field(default_factory=dict)

    @property
    def rule_count(self) -> int:
        return sum(len(rules) for rules in self.rules.values()) + len(self.state_rules)


@dataclass
class Declarations:
    values: Dict[str, str] = field(default_factory=dict)
    important: FrozenSet[str] = frozenset()


@dataclass
class _RawRule:
    selector: str
    declarations: List[Tuple[str, str, bool]]
    breakpoint: str


# ---------------------------------------------------------------------------
# Selector scanning
# ---------------------------------------------------------------------------

def _split_compounds(selector: str) -> List[str]:
    """Split *selector* on descendant/child/sibling combinators."""
    compounds: List[str] = []
    current: List[str] = []
    depth = 0
    quote = ""
    for ch in selector:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = ""
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        elif depth == 0 and (ch.isspace() or ch in _COMBINATORS):
            if current:
                compounds.append("".join(current))
                current = []
            continue
        current.append(ch)
    if current:
        compounds.append("".join(current))
    return compounds


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "-_" or ord(ch) > 127


def _read_ident(text: str, start: int) -> Tuple[str, int]:
    chars: List[str] = []
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            chars.append(text[i + 1])
            i += 2
            continue
        if not _is_ident_char(ch):
            break
        chars.append(ch)
        i += 1
    return "".join(chars), i


def _skip_block(text: str, start: int, opener: str, closer: str) -> int:
    """Return the index just past the block opened at *start*."""
    depth = 0
    i = start
    while i < len(text):
        if text[i] == opener:
            depth += 1
        elif text[i] == closer:
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(text)


def _parse_compound(compound: str) -> Tuple[SelectorSubject, List[str], bool]:
    """Return (subject, pseudo-classes, has_pseudo_element) for one compound."""
    tag: Optional[str] = None
    classes: List[str] = []
    ids: List[str] = []
    pseudos: List[str] = []
    pseudo_element = False
    i = 0
    while i < len(compound):
        ch = compound[i]
        if ch == ".":
            name, i = _read_ident(compound, i + 1)
            if name:
                classes.append(name)
        elif ch == "#":
            name, i = _read_ident(compound, i + 1)
            if name:
                ids.append(name)
        elif ch == ":":
            double = compound.startswith("::", i)
            name, i = _read_ident(compound, i + (2 if double else 1))
            name = name.lower()
            if double or name in _LEGACY_PSEUDO_ELEMENTS:
                pseudo_element = True
            elif name:
                pseudos.append(name)
            if i < len(compound) and compound[i] == "(":
                i = _skip_block(compound, i, "(", ")")
        elif ch == "[":
            i = _skip_block(compound, i, "[", "]")
        elif _is_ident_char(ch) and tag is None and not classes and not ids:
            name, i = _read_ident(compound, i)
            tag = name.lower() or None
        else:
            i += 1
    return SelectorSubject(tag, tuple(classes), tuple(ids)), pseudos, pseudo_element


def analyze_selector(selector: str) -> Optional[Tuple[SelectorSubject, Optional[str]]]:
    """Return the subject compound and interaction state of *selector*.

    ``None`` means the rule cannot style a page-builder element (pseudo-element
    rules, ``:root``/``*`` rules, conditional pseudo-classes).
    """
    compounds = _split_compounds(selector)
    if not compounds:
        return None
    state: Optional[str] = None
    subject = SelectorSubject()
    for index, compound in enumerate(compounds):
        parsed, pseudos, pseudo_element = _parse_compound(compound)
        if pseudo_element:
            return None
        for pseudo in pseudos:
            if pseudo in _SKIPPED_PSEUDOS:
                return None
            state = state or _STATE_PSEUDOS.get(pseudo)
        if index == len(compounds) - 1:
            subject = parsed
    if not (subject.tag or subject.classes or subject.ids):
        return None
    return subject, state


# ---------------------------------------------------------------------------
# Media queries
# ---------------------------------------------------------------------------

def _length_px(token) -> Optional[float]:
    if token.type == "dimension":
        unit = token.lower_unit
        if unit == "px":
            return float(token.value)
        if unit in ("em", "rem"):
            return float(token.value) * ROOT_FONT_SIZE_PX
        return None
    if token.type == "number" and token.value == 0:
        return 0.0
    return None


def _significant(tokens: Iterable) -> List:
    return [t for t in tokens if t.type not in ("whitespace", "comment")]


def _width_feature(tokens: Sequence) -> Optional[Tuple[str, float]]:
    """Read ``(max-width: 768px)`` or range syntax ``(width <= 768px)``."""
    sig = _significant(tokens)
    if len(sig) >= 3 and sig[0].type == "ident":
        name = sig[0].lower_value
        if name in ("max-width", "min-width", "max-device-width", "min-device-width"):
            px = _length_px(sig[-1]) if sig[1].type == "literal" and sig[1].value == ":" else None
            if px is not None:
                return ("max" if name.startswith("max") else "min"), px
        if name == "width" and sig[1].type == "literal" and sig[1].value in ("<", ">"):
            px = _length_px(sig[-1])
            if px is not None:
                return ("max" if sig[1].value == "<" else "min"), px
    if len(sig) >= 3 and sig[-1].type == "ident" and sig[-1].lower_value == "width":
        px = _length_px(sig[0])
        if px is not None and sig[1].type == "literal" and sig[1].value in ("<", ">"):
            # "768px >= width" reads as width <= 768px
            return ("min" if sig[1].value == "<" else "max"), px
    return None


def _split_on_commas(tokens: Sequence) -> List[List]:
    parts: List[List] = [[]]
    for token in tokens:
        if token.type == "literal" and token.value == ",":
            parts.append([])
        else:
            parts[-1].append(token)
    return [p for p in parts if _significant(p)]


def media_breakpoint(prelude: Sequence) -> Optional[str]:
    """Return the bucket for an ``@media`` prelude, or None when it never targets screens."""
    for query in _split_on_commas(prelude):
        idents = [t.lower_value for t in query if t.type == "ident"]
        media_types = [name for name in idents if name not in ("only", "and", "not", "or")]
        if media_types and media_types[0] in _SCREENLESS_MEDIA_TYPES:
            continue
        max_width: Optional[float] = None
        for token in query:
            if token.type != "() block":
                continue
            feature = _width_feature(token.content)
            if feature and feature[0] == "max":
                max_width = feature[1] if max_width is None else min(max_width, feature[1])
        if max_width is not None and max_width <= MOBILE_MAX_WIDTH:
            return "mobile"
        if max_width is not None and max_width <= TABLET_MAX_WIDTH:
            return "tablet"
        return "desktop"
    return None


# ---------------------------------------------------------------------------
# Declarations and variables
# ---------------------------------------------------------------------------

def _serialize_value(tokens: Sequence) -> str:
    return " ".join(tinycss2.serialize(tokens).split())


def _raw_declarations(tokens) -> List[Tuple[str, str, bool]]:
    declarations: List[Tuple[str, str, bool]] = []
    for item in tinycss2.parse_declaration_list(tokens, skip_comments=True, skip_whitespace=True):
        if item.type != "declaration":
            continue
        name = item.name if item.name.startswith("--") else item.lower_name
        value = _serialize_value(item.value)
        if value:
            declarations.append((name, value, bool(item.important)))
    return declarations


def _find_var_end(value: str, start: int) -> int:
    """Return the index of the parenthesis closing the ``var(`` at *start*."""
    depth = 0
    for i in range(start, len(value)):
        if value[i] == "(":
            depth += 1
        elif value[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _substitute(value: str, lookup: Callable[[str], Optional[str]], depth: int = 0) -> str:
    """Single left-to-right pass; substituted text is not scanned again."""
    out: List[str] = []
    pos = 0
    while True:
        start = value.find("var(", pos)
        if start < 0:
            out.append(value[pos:])
            return "".join(out)
        end = _find_var_end(value, start + 3)
        if end < 0:
            out.append(value[pos:])
            return "".join(out)
        out.append(value[pos:start])
        inner = value[start + 4:end]
        comma = _top_level_comma(inner)
        name = (inner if comma < 0 else inner[:comma]).strip()
        fallback = None if comma < 0 else inner[comma + 1:].strip()
        resolved = lookup(name)
        if resolved is not None:
            out.append(resolved)
        elif fallback is not None and depth < _MAX_VAR_DEPTH:
            out.append(_substitute(fallback, lookup, depth + 1))
        else:
            out.append(value[start:end + 1])
        pos = end + 1


def _top_level_comma(text: str) -> int:
    depth = 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            return i
    return -1


def resolve_variables(raw: Dict[str, str]) -> Dict[str, str]:
    """Resolve custom properties that reference one another.

    Each variable is expanded once and memoized.  Cyclic references stay as
    literal ``var()`` text, and a variable whose expansion grows beyond
    ``MAX_VARIABLE_LENGTH`` is dropped, so references to it remain unresolved.
    """
    resolved: Dict[str, Optional[str]] = {}
    pending: Set[str] = set()

    def lookup(name: str, depth: int) -> Optional[str]:
        if name in resolved:
            return resolved[name]
        if name not in raw or name in pending or depth > _MAX_VAR_DEPTH:
            return None
        pending.add(name)
        try:
            value: Optional[str] = _substitute(raw[name], lambda ref: lookup(ref, depth + 1))
        finally:
            pending.discard(name)
        if len(value) > MAX_VARIABLE_LENGTH:
            logger.debug("Dropping oversized custom property %s (%d chars)", name, len(value))
            value = None
        resolved[name] = value
        return value

    for name in raw:
        lookup(name, 0)
    return {name: value for name, value in resolved.items() if value is not None}


def substitute_variables(value: str, variables: Dict[str, str]) -> str:
    """Replace ``var(--x, fallback)`` references in *value* with resolved values.

    *variables* is expected to come from :func:`resolve_variables`.  References
    to unknown variables without a fallback are left untouched, as is a value
    whose expansion would exceed ``MAX_VARIABLE_LENGTH``.
    """
    if "var(" not in value:
        return value
    replaced = _substitute(value, variables.get)
    if len(replaced) > max(MAX_VARIABLE_LENGTH, len(value)):
        return value
    return replaced


def _finalize(raw: Sequence[Tuple[str, str, bool]], variables: Dict[str, str]) -> Declarations:
    values: Dict[str, str] = {}
    important = set()
    for name, value, is_important in raw:
        if name.startswith("--") or name not in TRACKED_PROPERTIES:
            continue
        prop = to_camel_case(name)
        if prop in important and not is_important:
            continue
        values[prop] = substitute_variables(value, variables)
        if is_important:
            important.add(prop)
    return Declarations(values, frozenset(important))


def parse_inline_style(style: Optional[str], variables: Optional[Dict[str, str]] = None) -> Declarations:
    """Parse an inline ``style=""`` attribute into tracked camelCase declarations."""
    if not style:
        return Declarations()
    try:
        raw = _raw_declarations(style)
    except Exception as exc:
        logger.warning("Could not parse inline style %r: %s", style[:80], exc)
        return Declarations()
    local = {name: value for name, value, _ in raw if name.startswith("--")}
    scope = resolve_variables({**(variables or {}), **local}) if local else dict(variables or {})
    return _finalize(raw, scope)


# ---------------------------------------------------------------------------
# Stylesheet walking
# ---------------------------------------------------------------------------

class _Collector:
    def __init__(self) -> None:
        self.raw_rules: List[_RawRule] = []
        self.variables: Dict[str, str] = {}
        self.keyframes: Dict[str, str] = {}

    def walk(self, rules: Iterable, breakpoint: str, depth: int = 0) -> None:
        for rule in rules:
            if rule.type == "qualified-rule":
                self._qualified(rule, breakpoint)
            elif rule.type == "at-rule":
                self._at_rule(rule, breakpoint, depth)

    def _qualified(self, rule, breakpoint: str) -> None:
        declarations = _raw_declarations(rule.content)
        if not declarations:
            return
        for name, value, _ in declarations:
            if name.startswith("--"):
                self.variables[name] = value
        for selector_tokens in _split_on_commas(rule.prelude):
            selector = _serialize_value(selector_tokens)
            if selector:
                self.raw_rules.append(_RawRule(selector, declarations, breakpoint))

    def _at_rule(self, rule, breakpoint: str, depth: int) -> None:
        keyword = rule.lower_at_keyword
        if rule.content is None or depth >= _MAX_AT_RULE_DEPTH:
            return
        if keyword.endswith("keyframes"):
            names = _significant(rule.prelude)
            if names:
                name = names[0].value if names[0].type in ("ident", "string") else None
                if name:
                    self.keyframes[str(name)] = _serialize_value(rule.content)
            return
        if keyword == "media":
            bucket = media_breakpoint(rule.prelude)
            if bucket is None:
                return
            if bucket == "desktop":
                bucket = breakpoint
        elif keyword in ("supports", "layer", "container", "document"):
            bucket = breakpoint
        else:
            # @font-face, @page, @import, … carry nothing we track
            return
        nested = tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True)
        self.walk(nested, bucket, depth + 1)


def extract_stylesheet(css_blocks: Iterable[str]) -> Stylesheet:
    """Parse every CSS block in *css_blocks* into a single :class:`Stylesheet`.

    Never raises: a block tinycss2 cannot make sense of is skipped.
    """
    collector = _Collector()
    for css in css_blocks:
        try:
            parsed = tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True)
            collector.walk(parsed, "desktop")
        except Exception as exc:
            logger.warning("Skipping unparseable <style> block: %s", exc)

    variables = resolve_variables(collector.variables)

    sheet = Stylesheet(variables=variables, keyframes=collector.keyframes)
    for order, raw in enumerate(collector.raw_rules):
        analyzed = analyze_selector(raw.selector)
        if analyzed is None:
            continue
        subject, state = analyzed
        declarations = _finalize(raw.declarations, variables)
        if not declarations.values:
            continue
        rule = StyleRule(
            selector=raw.selector,
            subject=subject,
            declarations=declarations.values,
            important=declarations.important,
            breakpoint=raw.breakpoint,
            state=state,
            order=order,
        )
        if state is None:
            sheet.rules[raw.breakpoint].append(rule)
        elif raw.breakpoint == "desktop":
            sheet.state_rules.append(rule)

    logger.debug(
        "Stylesheet extracted",
        extra={
            "rules": sheet.rule_count,
            "variables": len(sheet.variables),
            "keyframes": len(sheet.keyframes),
        },
    )
    return sheet
