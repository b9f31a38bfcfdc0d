"""Tests for section segmentation and the ordered type rules."""

from pagecraft.services.classifier import (
    MAX_GROUP_SIZE,
    classify_regions,
    group_flat,
    is_button_anchor,
    segment,
)
from pagecraft.services.resolver import StyleResolver
from pagecraft.services.sanitizer import normalize_markup
from pagecraft.services.stylesheet import extract_stylesheet


def _regions(html: str):
    doc = normalize_markup(html)
    resolver = StyleResolver(extract_stylesheet(doc.style_blocks))
    return classify_regions(doc.body, resolver)


def _types(html: str):
    return [region.type for region in _regions(html)]


_PRICING_HTML = """
<style>.plans { display: grid; grid-template-columns: repeat(3, 1fr); gap: 24px; }</style>
<section>
  <h2>Choose your plan</h2>
  <div class="plans">
    <div class="card"><h3>Starter</h3><p>$9/mo</p><a class="btn" href="#buy">Buy</a></div>
    <div class="card"><h3>Pro</h3><p>$29/mo</p><a class="btn" href="#buy">Buy</a></div>
    <div class="card"><h3>Team</h3><p>$99/mo</p><a class="btn" href="#buy">Buy</a></div>
  </div>
</section>
"""

_FEATURES_HTML = """
<style>.grid { display: flex; }</style>
<section>
  <h2>Why us</h2>
  <div class="grid">
    <div class="item"><h3>Fast</h3><p>Loads in a blink.</p></div>
    <div class="item"><h3>Safe</h3><p>Encrypted at rest.</p></div>
    <div class="item"><h3>Simple</h3><p>No setup needed.</p></div>
  </div>
</section>
"""


class TestSegmentation:
    def test_boundaries_become_regions(self):
        doc = normalize_markup(
            "<header><nav><a href='/'>Home</a></nav></header>"
            "<section><h2>A</h2></section><footer><p>(c)</p></footer>"
        )
        regions = segment(doc.body)
        assert [r.root.name for r in regions] == ["header", "section", "footer"]

    def test_boundaries_found_through_wrappers(self):
        doc = normalize_markup(
            "<div id='app'><main><section><h2>A</h2></section><section><h2>B</h2></section></main></div>"
        )
        assert [r.root.name for r in segment(doc.body)] == ["section", "section"]

    def test_nested_sections_stay_in_outermost(self):
        doc = normalize_markup("<section><h2>Outer</h2><section><p>Inner</p></section></section>")
        assert len(segment(doc.body)) == 1

    def test_loose_content_grouped_by_heading(self):
        doc = normalize_markup("<h2>One</h2><p>a</p><h2>Two</h2><p>b</p>")
        regions = segment(doc.body)
        assert len(regions) == 2
        assert all(r.root is None for r in regions)

    def test_heading_run_splits_at_its_last_heading(self):
        doc = normalize_markup("<p>intro</p><h1>Title</h1><h2>Subtitle</h2><p>body</p>")
        regions = segment(doc.body)
        assert [[n.name for n in r.nodes] for r in regions] == [["p", "h1"], ["h2", "p"]]

    def test_group_force_split(self):
        doc = normalize_markup("".join(f"<p>para {i}</p>" for i in range(MAX_GROUP_SIZE * 2 + 1)))
        groups = group_flat(list(doc.body.find_all("p")))
        assert [len(g) for g in groups] == [MAX_GROUP_SIZE, MAX_GROUP_SIZE, 1]

    def test_empty_nodes_skipped(self):
        doc = normalize_markup("<div></div><div>   </div><p>real</p>")
        regions = segment(doc.body)
        assert len(regions) == 1
        assert [n.name for n in regions[0].nodes] == ["p"]

    def test_empty_boundaries_skipped(self):
        doc = normalize_markup("<section></section><section>  </section><section><h2>A</h2></section>")
        regions = segment(doc.body)
        assert len(regions) == 1
        assert regions[0].root.get_text() == "A"

    def test_empty_body(self):
        assert segment(normalize_markup("").body) == []


class TestSectionTypes:
    def test_hero_from_heading_and_cta_anchor(self):
        assert _types('<h1>Build faster</h1><a class="btn" href="#start">Get started</a>') == ["hero"]

    def test_hero_from_heading_and_image(self):
        assert _types('<section><h1>Hi</h1><img src="a.png"></section>') == ["hero"]

    def test_nav_tag(self):
        assert _types("<nav><a href='/'>Home</a><a href='/about'>About</a></nav>") == ["nav"]

    def test_header_with_nav(self):
        assert _types("<header><nav><a href='/'>Home</a></nav></header>") == ["nav"]

    def test_footer(self):
        assert _types("<footer><p>(c) 2024</p></footer>") == ["footer"]

    def test_class_hint(self):
        assert _types('<section class="testimonials-block"><p>Great!</p></section>') == ["testimonials"]

    def test_id_hint(self):
        assert _types('<section id="pricing"><p>Plans</p></section>') == ["pricing"]

    def test_pricing_grid(self):
        assert _types(_PRICING_HTML) == ["pricing"]

    def test_features_grid(self):
        assert _types(_FEATURES_HTML) == ["features"]

    def test_cta_after_hero(self):
        html = (
            "<section><h1>Welcome</h1><img src='x.png'></section>"
            "<section><h2>Ready?</h2><a class='btn' href='#go'>Sign up</a></section>"
        )
        assert _types(html) == ["hero", "cta"]

    def test_testimonials_from_blockquote(self):
        html = "<section><h1>Hi</h1><p>intro</p></section><section><blockquote>Love it</blockquote></section>"
        assert _types(html) == ["content", "testimonials"]

    def test_plain_content(self):
        assert _types("<h1>Hi</h1><p>World</p>") == ["content"]

    def test_nav_does_not_use_up_hero_position(self):
        html = "<nav><a href='/'>Home</a></nav><section><h1>Big</h1><a class='btn' href='#x'>Go</a></section>"
        assert _types(html) == ["nav", "hero"]

    def test_empty_section_does_not_use_up_hero_position(self):
        html = "<section></section><section><h1>Launch</h1><a class='btn' href='#x'>Go</a></section>"
        assert _types(html) == ["hero"]


class TestButtonAnchor:
    def _anchor(self, html: str):
        return normalize_markup(html).body.a

    def test_class_hint(self):
        assert is_button_anchor(self._anchor('<a class="btn-primary" href="/signup">x</a>'))

    def test_same_page_target(self):
        assert is_button_anchor(self._anchor('<a href="#contact">x</a>'))

    def test_javascript_href(self):
        assert is_button_anchor(self._anchor('<a href="javascript:void(0)">x</a>'))

    def test_role_button(self):
        assert is_button_anchor(self._anchor('<a role="button" href="/x">x</a>'))

    def test_plain_link(self):
        assert not is_button_anchor(self._anchor('<a href="/about">About us</a>'))
