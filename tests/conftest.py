"""Shared fixtures that build small OpenDocument Text files on disk."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

NAMESPACES = (
    'xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
    'xmlns:style="urn:oasis:names:tc:opendocument:xmlns:style:1.0" '
    'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0" '
    'xmlns:table="urn:oasis:names:tc:opendocument:xmlns:table:1.0" '
    'xmlns:draw="urn:oasis:names:tc:opendocument:xmlns:drawing:1.0" '
    'xmlns:fo="urn:oasis:names:tc:opendocument:xmlns:xsl-fo-compatible:1.0" '
    'xmlns:xlink="http://www.w3.org/1999/xlink" '
    'xmlns:svg="urn:oasis:names:tc:opendocument:xmlns:svg-compatible:1.0" '
    'office:version="1.2"'
)

TEMPLATE_AUTOMATIC_STYLES = (
    '<style:style style:name="TCode" style:family="text" style:parent-style-name="Jinja_20_Code"/>'
    '<style:style style:name="TValue" style:family="text" style:parent-style-name="Jinja_20_Value"/>'
    '<style:style style:name="TBlock" style:family="text" style:parent-style-name="Jinja_20_Block"/>'
    '<style:style style:name="TLiteral" style:family="text" style:parent-style-name="Jinja_20_Literal"/>'
    '<style:style style:name="TBold" style:family="text">'
    '<style:text-properties fo:font-weight="bold"/>'
    "</style:style>"
)

TEMPLATE_NAMED_STYLES = (
    '<style:style style:name="Standard" style:family="paragraph"/>'
    '<style:style style:name="Jinja_20_Code" style:display-name="Jinja Code" style:family="text"/>'
    '<style:style style:name="Jinja_20_Value" style:display-name="Jinja Value" style:family="text"/>'
    '<style:style style:name="Jinja_20_Block" style:display-name="Jinja Block" style:family="text"/>'
    '<style:style style:name="Jinja_20_Literal" style:display-name="Jinja Literal" style:family="text"/>'
)

MANIFEST_XML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<manifest:manifest xmlns:manifest="urn:oasis:names:tc:opendocument:xmlns:manifest:1.0" '
    'manifest:version="1.2">'
    '<manifest:file-entry manifest:full-path="/" manifest:media-type="application/vnd.oasis.opendocument.text"/>'
    '<manifest:file-entry manifest:full-path="content.xml" manifest:media-type="text/xml"/>'
    '<manifest:file-entry manifest:full-path="styles.xml" manifest:media-type="text/xml"/>'
    "</manifest:manifest>"
)


def content_xml(body: str, automatic_styles: str = TEMPLATE_AUTOMATIC_STYLES) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<office:document-content {NAMESPACES}>"
        f"<office:automatic-styles>{automatic_styles}</office:automatic-styles>"
        f"<office:body><office:text>{body}</office:text></office:body>"
        "</office:document-content>"
    )


def styles_xml(extra_styles: str = "", master_page: str = "") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<office:document-styles {NAMESPACES}>"
        f"<office:styles>{TEMPLATE_NAMED_STYLES}{extra_styles}</office:styles>"
        "<office:automatic-styles/>"
        '<office:master-styles><style:master-page style:name="Standard">'
        f"{master_page}"
        "</style:master-page></office:master-styles>"
        "</office:document-styles>"
    )


def build_odt(path: Path, content: str, styles: str) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(
            zipfile.ZipInfo("mimetype"),
            "application/vnd.oasis.opendocument.text",
            compress_type=zipfile.ZIP_STORED,
        )
        archive.writestr("content.xml", content, compress_type=zipfile.ZIP_DEFLATED)
        archive.writestr("styles.xml", styles, compress_type=zipfile.ZIP_DEFLATED)
        archive.writestr("META-INF/manifest.xml", MANIFEST_XML, compress_type=zipfile.ZIP_DEFLATED)
    return path


@pytest.fixture
def make_odt(tmp_path):
    """Return a factory writing an ``.odt`` with the given body into ``tmp_path``."""

    def _make(
        body: str,
        name: str = "template.odt",
        *,
        automatic_styles: str = TEMPLATE_AUTOMATIC_STYLES,
        extra_styles: str = "",
        master_page: str = "",
    ) -> Path:
        return build_odt(
            tmp_path / name,
            content_xml(body, automatic_styles),
            styles_xml(extra_styles, master_page),
        )

    return _make


@pytest.fixture
def image_file(tmp_path) -> Path:
    path = tmp_path / "images" / "logo.png"
    path.parent.mkdir()
    path.write_bytes(b"\x89PNG\r\n\x1a\nnot really a picture")
    return path
