"""Helpers that prepare OpenDocument XML for compilation."""

from __future__ import annotations

import html
import re

from lxml import etree

TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"

_LINE_BREAK_RE = re.compile(r"<text:line-break\s*/>")
_TAB_RE = re.compile(r"<text:tab\s*/>")
_SPACE_RE = re.compile(r"<text:s(?:\s[^>]*)?/>")

# Whitespace inside these elements is document content and must not be indented.
_PARAGRAPH_TAGS = frozenset({f"{{{TEXT_NS}}}p", f"{{{TEXT_NS}}}h"})
_INDENT = "  "


def unnormalize(code: str) -> str:
    """Turn word-processor whitespace markup and XML escapes back into text.

    Template code typed into a document is stored with line breaks, tabs and
    runs of spaces as dedicated elements, and with ``<``, ``>`` and ``&``
    escaped.  The template engine has to see the code as it was typed.
    """

    code = _LINE_BREAK_RE.sub("\n", code)
    code = _TAB_RE.sub("\t", code)
    code = _SPACE_RE.sub(" ", code)
    return html.unescape(code)


def pretty_xml(data) -> str:
    """Parse ``data`` and return it indented, with an XML declaration.

    Only structural elements are indented.  Paragraphs and headings are left
    exactly as they were, since ODF treats whitespace inside them as text.
    """

    if isinstance(data, str):
        data = data.encode("utf-8")
    root = etree.fromstring(data)
    _indent(root, 0)
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8").decode("utf-8")


def _indent(element, level: int) -> None:
    if element.tag in _PARAGRAPH_TAGS or not isinstance(element.tag, str):
        return
    children = list(element)
    if not children:
        return
    if (element.text and element.text.strip()) or any(child.tail and child.tail.strip() for child in children):
        # Mixed content outside a paragraph; leave it alone.
        return

    child_indent = "\n" + _INDENT * (level + 1)
    element.text = child_indent
    for child in children:
        _indent(child, level + 1)
        child.tail = child_indent
    children[-1].tail = "\n" + _INDENT * level
