"""Style resolution: merge stylesheet rules and inline styles per element.

This is not a selector engine.  A rule applies to an element
when the *subject* compound of its selector (the part after the last
combinator) names one of the element's classes; selectors without classes
fall back to id and then tag equality.  Matching rules are merged in source
order and the inline ``style`` attribute wins over all of them unless a rule
marked ``!important`` set the property first.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from bs4 import Tag

from pagecraft.services.sanitizer import class_list
from pagecraft.services.stylesheet import (
    StyleRule,
    Stylesheet,
    SelectorSubject,
    parse_inline_style,
)

logger = logging.getLogger(__name__)

_ANIMATION_PROPERTIES = ("animation", "animationName")


@dataclass
class ResolvedStyle:
    desktop: Dict[str, str] = field(default_factory=dict)
    tablet: Optional[Dict[str, str]] = None
    mobile: Optional[Dict[str, str]] = None
    states: Dict[str, Dict[str, str]] = field(default_factory=dict)
    animations: Dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.desktop or self.tablet or self.mobile or self.states)

    @property
    def display(self) -> str:
        return self.desktop.get("display", "").strip().lower()


def _merge(rules: Iterable[StyleRule]) -> Tuple[Dict[str, str], Set[str]]:
    values: Dict[str, str] = {}
    important: Set[str] = set()
    for rule in rules:
        for prop, value in rule.declarations.items():
            if prop in important and prop not in rule.important:
                continue
            values[prop] = value
            if prop in rule.important:
                important.add(prop)
    return values, important


def _delta(overrides: Dict[str, str], base: Dict[str, str]) -> Optional[Dict[str, str]]:
    delta = {prop: value for prop, value in overrides.items() if base.get(prop) != value}
    return delta or None


class _RuleIndex:
    """Rules bucketed by the subject key they can match on."""

    def __init__(self, rules: Iterable[StyleRule]) -> None:
        self.by_class: Dict[str, List[StyleRule]] = {}
        self.by_id: Dict[str, List[StyleRule]] = {}
        self.by_tag: Dict[str, List[StyleRule]] = {}
        for rule in rules:
            subject: SelectorSubject = rule.subject
            if subject.classes:
                for name in set(subject.classes):
                    self.by_class.setdefault(name, []).append(rule)
            elif subject.ids:
                self.by_id.setdefault(subject.ids[0], []).append(rule)
            elif subject.tag:
                self.by_tag.setdefault(subject.tag, []).append(rule)

    def matching(self, tag_name: str, element_id: Optional[str], classes: List[str]) -> List[StyleRule]:
        found: Dict[int, StyleRule] = {}
        for name in classes:
            for rule in self.by_class.get(name, ()):
                found[rule.order] = rule
        if element_id:
            for rule in self.by_id.get(element_id, ()):
                found[rule.order] = rule
        for rule in self.by_tag.get(tag_name, ()):
            found[rule.order] = rule
        return [found[order] for order in sorted(found)]


class StyleResolver:
    """Resolve per-breakpoint style maps for BeautifulSoup elements.

    Results are cached per element, so the classifier and the model builder
    can both ask for the same node without paying twice.
    """

    def __init__(self, stylesheet: Optional[Stylesheet] = None) -> None:
        self.stylesheet = stylesheet or Stylesheet()
        self._indexes = {bp: _RuleIndex(rules) for bp, rules in self.stylesheet.rules.items()}
        self._state_index = _RuleIndex(self.stylesheet.state_rules)
        self._cache: Dict[int, ResolvedStyle] = {}

    def resolve(self, tag: Tag) -> ResolvedStyle:
        key = id(tag)
        cached = self._cache.get(key)
        if cached is None:
            try:
                cached = self._resolve(tag)
            except Exception as exc:
                logger.warning("Style resolution failed for <%s>: %s", getattr(tag, "name", "?"), exc)
                cached = ResolvedStyle()
            self._cache[key] = cached
        return cached

    def _resolve(self, tag: Tag) -> ResolvedStyle:
        tag_name = (tag.name or "").lower()
        element_id = tag.get("id")
        element_id = str(element_id) if element_id else None
        classes = class_list(tag)

        def rules_for(breakpoint: str) -> List[StyleRule]:
            index = self._indexes.get(breakpoint)
            return index.matching(tag_name, element_id, classes) if index else []

        desktop, important = _merge(rules_for("desktop"))
        inline = parse_inline_style(tag.get("style"), self.stylesheet.variables)
        for prop, value in inline.values.items():
            # stylesheet !important beats a plain inline declaration
            if prop not in important or prop in inline.important:
                desktop[prop] = value

        resolved = ResolvedStyle(
            desktop=desktop,
            tablet=_delta(_merge(rules_for("tablet"))[0], desktop),
            mobile=_delta(_merge(rules_for("mobile"))[0], desktop),
        )

        for rule in self._state_index.matching(tag_name, element_id, classes):
            resolved.states.setdefault(rule.state, {}).update(rule.declarations)

        resolved.animations = self._animations(resolved)
        return resolved

    def _animations(self, resolved: ResolvedStyle) -> Dict[str, str]:
        keyframes = self.stylesheet.keyframes
        if not keyframes:
            return {}
        found: Dict[str, str] = {}
        for styles in (resolved.desktop, resolved.tablet or {}, resolved.mobile or {}):
            for prop in _ANIMATION_PROPERTIES:
                for word in styles.get(prop, "").replace(",", " ").split():
                    if word in keyframes:
                        found[word] = keyframes[word]
        return found
