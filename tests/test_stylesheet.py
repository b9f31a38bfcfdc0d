"""Tests for the stylesheet extractor: selectors, media buckets, variables."""

import tinycss2

from pagecraft.services.stylesheet import (
    analyze_selector,
    extract_stylesheet,
    MAX_VARIABLE_LENGTH,
    media_breakpoint,
    parse_inline_style,
    substitute_variables,
    to_camel_case,
)


def _prelude(media: str):
    rule = tinycss2.parse_one_rule(f"@media {media} {{}}")
    return rule.prelude


class TestAnalyzeSelector:
    def test_subject_is_last_compound(self):
        subject, state = analyze_selector(".hero > .title")
        assert subject.classes == ("title",)
        assert state is None

    def test_tag_and_classes(self):
        subject, _ = analyze_selector("a.btn.btn-primary")
        assert subject.tag == "a"
        assert subject.classes == ("btn", "btn-primary")

    def test_id_selector(self):
        subject, _ = analyze_selector("#signup")
        assert subject.ids == ("signup",)

    def test_hover_state(self):
        subject, state = analyze_selector(".btn:hover")
        assert subject.classes == ("btn",)
        assert state == "hover"

    def test_focus_visible_maps_to_focus(self):
        assert analyze_selector("input:focus-visible")[1] == "focus"

    def test_state_on_ancestor_still_counts(self):
        _, state = analyze_selector(".card:hover .title")
        assert state == "hover"

    def test_pseudo_elements_are_skipped(self):
        assert analyze_selector(".btn::before") is None
        assert analyze_selector(".btn:after") is None

    def test_root_and_universal_are_skipped(self):
        assert analyze_selector(":root") is None
        assert analyze_selector("*") is None

    def test_conditional_pseudo_skipped(self):
        assert analyze_selector("a:visited") is None

    def test_attribute_selector_ignored_in_subject(self):
        subject, _ = analyze_selector('input[type="email"]')
        assert subject.tag == "input"


class TestMediaBreakpoint:
    def test_mobile(self):
        assert media_breakpoint(_prelude("(max-width: 768px)")) == "mobile"

    def test_tablet(self):
        assert media_breakpoint(_prelude("screen and (max-width: 1024px)")) == "tablet"

    def test_wide_is_desktop(self):
        assert media_breakpoint(_prelude("(max-width: 1440px)")) == "desktop"

    def test_min_width_is_desktop(self):
        assert media_breakpoint(_prelude("(min-width: 769px)")) == "desktop"

    def test_em_units(self):
        assert media_breakpoint(_prelude("(max-width: 40em)")) == "mobile"

    def test_range_syntax(self):
        assert media_breakpoint(_prelude("(width <= 600px)")) == "mobile"

    def test_print_is_skipped(self):
        assert media_breakpoint(_prelude("print")) is None


class TestVariables:
    def test_substitution(self):
        assert substitute_variables("var(--brand)", {"--brand": "#ff0000"}) == "#ff0000"

    def test_fallback(self):
        assert substitute_variables("var(--missing, 12px)", {}) == "12px"

    def test_nested_fallback(self):
        assert substitute_variables("var(--a, var(--b))", {"--b": "blue"}) == "blue"

    def test_unresolved_left_untouched(self):
        assert substitute_variables("var(--nope)", {}) == "var(--nope)"

    def test_self_reference_terminates(self):
        value = substitute_variables("var(--x)", {"--x": "var(--x)"})
        assert value == "var(--x)"

    def test_variables_resolved_in_rules(self):
        sheet = extract_stylesheet([":root { --brand: #123456; } .a { color: var(--brand); }"])
        assert sheet.variables["--brand"] == "#123456"
        assert sheet.rules["desktop"][0].declarations == {"color": "#123456"}

    def test_variables_defined_through_other_variables(self):
        sheet = extract_stylesheet([":root { --a: var(--b) var(--b); --b: 4px; } .a { margin: var(--a) }"])
        assert sheet.variables["--a"] == "4px 4px"
        assert sheet.rules["desktop"][0].declarations == {"margin": "4px 4px"}

    def test_cyclic_variables_stay_unresolved(self):
        sheet = extract_stylesheet([":root { --a: var(--b); --b: var(--a); } .a { color: var(--a, red) }"])
        assert "var(" in sheet.variables["--a"]

    def test_fan_out_expansion_is_bounded(self):
        levels = [":root { --v6: 1px;"]
        for level in range(5, -1, -1):
            levels.append(f" --v{level}: " + " ".join([f"var(--v{level + 1})"] * 12) + ";")
        levels.append(" } .a { padding: var(--v0) var(--v0) }")
        sheet = extract_stylesheet(["".join(levels)])
        assert sheet.variables["--v5"] == " ".join(["1px"] * 12)
        assert all(len(value) <= MAX_VARIABLE_LENGTH for value in sheet.variables.values())
        assert "--v3" not in sheet.variables
        padding = sheet.rules["desktop"][0].declarations["padding"]
        assert len(padding) <= MAX_VARIABLE_LENGTH


class TestExtractStylesheet:
    def test_media_bucketing(self):
        sheet = extract_stylesheet(
            [".box { width: 1000px } @media (max-width: 768px) { .box { width: 100% } }"]
        )
        assert sheet.rules["desktop"][0].declarations == {"width": "1000px"}
        assert sheet.rules["mobile"][0].declarations == {"width": "100%"}

    def test_untracked_properties_dropped(self):
        sheet = extract_stylesheet([".a { color: red; speak: none; -webkit-foo: 1 }"])
        assert sheet.rules["desktop"][0].declarations == {"color": "red"}

    def test_camel_case_names(self):
        sheet = extract_stylesheet([".a { background-color: #fff }"])
        assert "backgroundColor" in sheet.rules["desktop"][0].declarations

    def test_state_rules_kept_separately(self):
        sheet = extract_stylesheet([".btn { color: red } .btn:hover { color: blue }"])
        assert len(sheet.rules["desktop"]) == 1
        [state_rule] = sheet.state_rules
        assert state_rule.state == "hover"
        assert state_rule.declarations == {"color": "blue"}

    def test_keyframes_recorded(self):
        sheet = extract_stylesheet(["@keyframes fade { from { opacity: 0 } to { opacity: 1 } }"])
        assert "fade" in sheet.keyframes
        assert "opacity" in sheet.keyframes["fade"]

    def test_supports_is_descended(self):
        sheet = extract_stylesheet(["@supports (display: grid) { .g { display: grid } }"])
        assert sheet.rules["desktop"][0].declarations == {"display": "grid"}

    def test_print_media_skipped(self):
        sheet = extract_stylesheet(["@media print { .a { color: black } }"])
        assert sheet.rule_count == 0

    def test_selector_list_split(self):
        sheet = extract_stylesheet([".a, .b { color: red }"])
        assert [r.selector for r in sheet.rules["desktop"]] == [".a", ".b"]

    def test_important_flag(self):
        sheet = extract_stylesheet([".a { color: red !important }"])
        assert "color" in sheet.rules["desktop"][0].important

    def test_broken_css_does_not_raise(self):
        sheet = extract_stylesheet(["}}} .a { color: red  .b { {{ ", "@media ((( {"])
        assert sheet is not None

    def test_source_order(self):
        sheet = extract_stylesheet([".a { color: red }", ".a { color: blue }"])
        orders = [r.order for r in sheet.rules["desktop"]]
        assert orders == sorted(orders)


class TestInlineStyle:
    def test_parses_tracked_properties(self):
        decls = parse_inline_style("color: red; font-size: 14px; speak: none")
        assert decls.values == {"color": "red", "fontSize": "14px"}

    def test_local_variables(self):
        decls = parse_inline_style("--gap: 8px; padding: var(--gap)")
        assert decls.values == {"padding": "8px"}

    def test_empty(self):
        assert parse_inline_style(None).values == {}
        assert parse_inline_style("").values == {}


def test_to_camel_case():
    assert to_camel_case("border-top-left-radius") == "borderTopLeftRadius"
    assert to_camel_case("color") == "color"
