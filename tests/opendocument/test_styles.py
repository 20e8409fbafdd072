"""Tests for template style classification."""

from __future__ import annotations

from lxml import etree

from documatic.opendocument.styles import RESERVED_PARENT_STYLES, Role, classify_styles

STYLE_NS = 'xmlns:style="urn:oasis:names:tc:opendocument:xmlns:style:1.0"'


def automatic_styles(*styles: tuple[str, str | None]) -> str:
    body = ""
    for name, parent in styles:
        parent_attr = f' style:parent-style-name="{parent}"' if parent else ""
        body += f'<style:style style:name="{name}" style:family="text"{parent_attr}/>'
    return f"<root {STYLE_NS}>{body}</root>"


def test_reserved_styles_are_always_known():
    styles = classify_styles(automatic_styles())

    for name, role in RESERVED_PARENT_STYLES.items():
        assert styles[name] is role


def test_styles_derived_from_reserved_parents():
    xml = automatic_styles(
        ("T1", "Jinja_20_Code"),
        ("T2", "Jinja_20_Value"),
        ("T3", "Jinja_20_Block"),
        ("T4", "Jinja_20_Literal"),
        ("T5", None),
        ("T6", "Emphasis"),
    )

    styles = classify_styles(xml)

    assert styles["T1"] is Role.CODE
    assert styles["T2"] is Role.VALUE
    assert styles["T3"] is Role.BLOCK
    assert styles["T4"] is Role.LITERAL
    assert "T5" not in styles
    assert "T6" not in styles


def test_derivation_is_transitive_in_any_order():
    xml = automatic_styles(("T3", "T2"), ("T2", "T1"), ("T1", "Jinja_20_Value"))

    styles = classify_styles(xml)

    assert styles["T1"] is styles["T2"] is styles["T3"] is Role.VALUE


def test_seed_carries_roles_from_another_part():
    named = classify_styles(automatic_styles(("Code_20_Loop", "Jinja_20_Code")))

    styles = classify_styles(automatic_styles(("T1", "Code_20_Loop")), seed=named)

    assert styles["Code_20_Loop"] is Role.CODE
    assert styles["T1"] is Role.CODE


def test_lookup_is_by_exact_name():
    styles = classify_styles(automatic_styles(("T1", "jinja_20_code"), ("T2", "Jinja_20_Code_20_Old")))

    assert "T1" not in styles
    assert "T2" not in styles


def test_custom_reserved_names_replace_the_defaults():
    xml = automatic_styles(("T1", "Template_20_Value"), ("T2", "Jinja_20_Value"))

    styles = classify_styles(xml, reserved={"Template_20_Value": Role.VALUE})

    assert styles["T1"] is Role.VALUE
    assert "T2" not in styles
    assert "Jinja_20_Value" not in styles


def test_accepts_parsed_elements_and_bytes():
    xml = automatic_styles(("T1", "Jinja_20_Block"))

    assert classify_styles(etree.fromstring(xml.encode()))["T1"] is Role.BLOCK
    assert classify_styles(xml.encode())["T1"] is Role.BLOCK
