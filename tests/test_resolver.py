"""Tests for StyleResolver: class containment, cascade order, breakpoints, states."""

from bs4 import BeautifulSoup

from pagecraft.services.resolver import StyleResolver
from pagecraft.services.stylesheet import TRACKED_PROPERTIES, extract_stylesheet, to_camel_case


def _resolve(css: str, html: str):
    soup = BeautifulSoup(html, "lxml")
    target = soup.body.find(attrs={"data-target": True}) or soup.body.contents[0]
    return StyleResolver(extract_stylesheet([css])).resolve(target)


class TestMatching:
    def test_class_containment(self):
        resolved = _resolve(".card { color: red }", '<div class="card featured">x</div>')
        assert resolved.desktop == {"color": "red"}

    def test_descendant_selector_uses_subject(self):
        resolved = _resolve(".hero .title { font-size: 48px }", '<h1 class="title">x</h1>')
        assert resolved.desktop == {"fontSize": "48px"}

    def test_id_fallback(self):
        resolved = _resolve("#main { padding: 8px }", '<div id="main">x</div>')
        assert resolved.desktop == {"padding": "8px"}

    def test_tag_fallback(self):
        resolved = _resolve("h1 { font-weight: 700 }", "<h1>x</h1>")
        assert resolved.desktop == {"fontWeight": "700"}

    def test_non_matching_class(self):
        resolved = _resolve(".other { color: red }", '<div class="card">x</div>')
        assert resolved.is_empty()


class TestCascade:
    def test_later_rule_wins(self):
        resolved = _resolve(".a { color: red } .a { color: blue }", '<p class="a">x</p>')
        assert resolved.desktop["color"] == "blue"

    def test_important_not_overridden_by_later_rule(self):
        resolved = _resolve(".a { color: red !important } .a { color: blue }", '<p class="a">x</p>')
        assert resolved.desktop["color"] == "red"

    def test_inline_wins(self):
        resolved = _resolve(".a { color: red }", '<p class="a" style="color: green">x</p>')
        assert resolved.desktop["color"] == "green"

    def test_important_rule_beats_plain_inline(self):
        resolved = _resolve(".a { color: red !important }", '<p class="a" style="color: green">x</p>')
        assert resolved.desktop["color"] == "red"

    def test_important_inline_beats_important_rule(self):
        resolved = _resolve(".a { color: red !important }", '<p class="a" style="color: green !important">x</p>')
        assert resolved.desktop["color"] == "green"

    def test_values_passed_through(self):
        resolved = _resolve(".a { margin: 0 auto }", '<p class="a">x</p>')
        assert resolved.desktop["margin"] == "0 auto"


class TestBreakpoints:
    def test_mobile_override(self):
        resolved = _resolve(
            ".box { width: 1000px } @media (max-width: 768px) { .box { width: 100% } }",
            '<div class="box">x</div>',
        )
        assert resolved.desktop["width"] == "1000px"
        assert resolved.mobile == {"width": "100%"}
        assert resolved.tablet is None

    def test_delta_omits_values_equal_to_desktop(self):
        resolved = _resolve(
            ".box { color: red } @media (max-width: 1000px) { .box { color: red; padding: 4px } }",
            '<div class="box">x</div>',
        )
        assert resolved.tablet == {"padding": "4px"}


class TestStatesAndAnimations:
    def test_hover_state(self):
        resolved = _resolve(".btn { color: red } .btn:hover { color: blue }", '<a class="btn">x</a>')
        assert resolved.states["hover"] == {"color": "blue"}
        assert "color" in resolved.desktop and resolved.desktop["color"] == "red"

    def test_animation_keyframes_attached(self):
        resolved = _resolve(
            "@keyframes pulse { 0% { opacity: 1 } 100% { opacity: .5 } } .a { animation: pulse 2s infinite }",
            '<div class="a">x</div>',
        )
        assert "pulse" in resolved.animations


class TestStylePreservation:
    def test_most_tracked_properties_survive(self):
        declarations = {
            "color": "#333333",
            "background-color": "#ffffff",
            "font-size": "18px",
            "font-weight": "600",
            "line-height": "1.5",
            "padding": "24px",
            "margin": "0 auto",
            "border-radius": "8px",
            "display": "flex",
            "justify-content": "center",
            "align-items": "center",
            "gap": "16px",
            "text-align": "center",
            "box-shadow": "0 2px 4px rgba(0, 0, 0, 0.1)",
            "max-width": "1200px",
        }
        assert set(declarations) <= TRACKED_PROPERTIES
        css = ".subject { " + "; ".join(f"{k}: {v}" for k, v in declarations.items()) + " }"
        resolved = _resolve(css, '<div class="subject">x</div>')
        kept = [k for k in declarations if to_camel_case(k) in resolved.desktop]
        assert len(kept) / len(declarations) >= 0.7


def test_resolution_is_cached_per_element():
    soup = BeautifulSoup('<p class="a">x</p>', "lxml")
    resolver = StyleResolver(extract_stylesheet([".a { color: red }"]))
    tag = soup.body.p
    assert resolver.resolve(tag) is resolver.resolve(tag)
