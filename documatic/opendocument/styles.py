"""Classify character styles that mark embedded template code."""

from __future__ import annotations

import enum
import logging
from typing import Mapping

from lxml import etree

logger = logging.getLogger(__name__)

STYLE_NS = "urn:oasis:names:tc:opendocument:xmlns:style:1.0"
_STYLE_TAG = f"{{{STYLE_NS}}}style"
_STYLE_NAME = f"{{{STYLE_NS}}}name"
_STYLE_PARENT = f"{{{STYLE_NS}}}parent-style-name"


class Role(enum.Enum):
    """What a styled run means to the compiler."""

    CODE = "Code"
    VALUE = "Value"
    BLOCK = "Block"
    LITERAL = "Literal"


# Encoded ODF names of the styles "Jinja Code", "Jinja Value", ...
RESERVED_PARENT_STYLES: dict[str, Role] = {
    "Jinja_20_Code": Role.CODE,
    "Jinja_20_Value": Role.VALUE,
    "Jinja_20_Block": Role.BLOCK,
    "Jinja_20_Literal": Role.LITERAL,
}


def classify_styles(
    xml,
    seed: Mapping[str, Role] | None = None,
    reserved: Mapping[str, Role] | None = None,
) -> dict[str, Role]:
    """Map style names found in ``xml`` to the :class:`Role` they carry.

    ``xml`` may be text, bytes or an already parsed element.  Every
    ``style:style`` whose parent is a reserved style (or a style already known
    to carry a role) is added under the parent's role.  ``seed`` supplies roles
    found in another part, typically ``styles.xml`` when classifying
    ``content.xml``.
    """

    styles: dict[str, Role] = dict(RESERVED_PARENT_STYLES if reserved is None else reserved)
    if seed:
        styles.update(seed)

    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    root = etree.fromstring(xml) if isinstance(xml, bytes) else xml

    pending: list[tuple[str, str]] = []
    for element in root.iter(_STYLE_TAG):
        name = element.get(_STYLE_NAME)
        parent = element.get(_STYLE_PARENT)
        if name and parent:
            pending.append((name, parent))

    # Derived styles may be declared before their parent, so repeat until stable.
    found = True
    while found:
        found = False
        remaining = []
        for name, parent in pending:
            role = styles.get(parent)
            if role is None:
                remaining.append((name, parent))
                continue
            if name not in styles:
                styles[name] = role
                found = True
        pending = remaining

    logger.debug("Classified %d template styles", len(styles))
    return styles
