"""OpenDocument Text templates: compile once, render many times."""

from __future__ import annotations

import logging
import mimetypes
import shutil
from pathlib import Path
from typing import Any, Callable

from jinja2 import Environment
from lxml import etree

from documatic.exceptions import ArgumentError, DocumaticError, InvalidArgumentError, NotFoundError
from documatic.jinja_env import prepare_jinja2_env
from documatic.opendocument.compiler import compile_source
from documatic.opendocument.component import OFFICE_NS, Component
from documatic.opendocument.context import RenderContext
from documatic.opendocument.normalize import pretty_xml
from documatic.opendocument.styles import RESERVED_PARENT_STYLES, classify_styles
from documatic.package import OpenDocumentPackage

logger = logging.getLogger(__name__)

MANIFEST_NS = "urn:oasis:names:tc:opendocument:xmlns:manifest:1.0"
_MANIFEST_FILE_ENTRY = f"{{{MANIFEST_NS}}}file-entry"
_MANIFEST_FULL_PATH = f"{{{MANIFEST_NS}}}full-path"
_MANIFEST_MEDIA_TYPE = f"{{{MANIFEST_NS}}}media-type"

# Names bound by the renderer itself rather than by template code.
_CONTEXT_NAMES = frozenset({"data", "options", "ctx", "template", "master"})


class Template:
    """An OpenDocument Text file used as a template.

    The template's XML parts are compiled into Jinja source once; the result
    is cached inside the archive (under ``MASTER_DIR``) so processing the
    same file again skips compilation.  :meth:`close` removes the cache, since
    a finished document must not carry it.
    """

    CONTENT_PART = "content.xml"
    STYLES_PART = "styles.xml"
    MANIFEST_PART = "META-INF/manifest.xml"
    MASTER_DIR = "documatic/master"
    CONTENT_SOURCE = "documatic/master/content.jinja"
    STYLES_SOURCE = "documatic/master/styles.jinja"
    PICTURES_DIR = "Pictures"
    RESERVED_PARENT_STYLES = RESERVED_PARENT_STYLES

    def __init__(self, filename, jinja_env: Environment | None = None):
        self.filename = Path(filename)
        self.jinja_env = jinja_env or prepare_jinja2_env()[0]
        self.package = OpenDocumentPackage.open(self.filename)

        # Pretty-printed parts and their compiled sources, set by compile().
        self.content_raw: str | None = None
        self.content_source: str | None = None
        self.styles_raw: str | None = None
        self.styles_source: str | None = None

        self.content: Component | None = None
        self.styles: Component | None = None

        self._images: dict[str, str] = {}
        self._partials: dict[str, Template] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.filename}>"

    # ------------------------------------------------------------------
    # Orchestration

    @classmethod
    def process_template(
        cls,
        options,
        data: Any = None,
        customize: Callable[["Template"], None] | None = None,
        jinja_env: Environment | None = None,
    ) -> Path:
        """Render ``options.template_file`` into ``options.output_file``.

        The template is copied to the output path first and the copy is
        processed, so a failure never touches the original template.  If
        ``customize`` is given it is called with the processed template (for
        direct access to its package or components) and the template is saved
        again afterwards.
        """

        template_file = getattr(options, "template_file", None) if options is not None else None
        output_file = getattr(options, "output_file", None) if options is not None else None
        if not template_file or not output_file:
            raise ArgumentError("Need to specify both template_file and output_file in options")

        template_path = Path(template_file)
        if not template_path.is_file():
            raise NotFoundError(f"Template archive not found: {template_path}")

        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(template_path, output_path)

        template = cls(output_path, jinja_env=jinja_env)
        template.process(data, options=options)
        template.save()
        if customize is not None:
            customize(template)
            template.save()
        template.close()

        logger.info("Rendered %s into %s", template_path.name, output_path)
        return output_path

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def compiled(self) -> bool:
        return self.package.has_entry(self.MASTER_DIR)

    def compile(self) -> None:
        """Compile ``content.xml`` and ``styles.xml`` and cache the sources."""

        self.styles_raw = pretty_xml(self.package.read(self.STYLES_PART))
        self.content_raw = pretty_xml(self.package.read(self.CONTENT_PART))

        style_roles = classify_styles(self.styles_raw, reserved=self.RESERVED_PARENT_STYLES)
        content_roles = classify_styles(self.content_raw, seed=style_roles, reserved=self.RESERVED_PARENT_STYLES)

        self.styles_source = compile_source(self.styles_raw, style_roles)
        self.content_source = compile_source(self.content_raw, content_roles)

        self.package.mkdir(self.MASTER_DIR)
        self.package.write(self.CONTENT_SOURCE, self.content_source)
        self.package.write(self.STYLES_SOURCE, self.styles_source)
        logger.debug("Compiled %s", self.filename.name)

    def process(self, data: Any = None, *, options: Any = None, master: "Template | None" = None) -> None:
        """Render the template against ``data``.

        ``master`` is the top-level template when this one is rendered as a
        partial; images and partials registered by template code go there.
        """

        try:
            if not self.compiled:
                self.compile()
            else:
                logger.debug("Using compiled source cached in %s", self.filename.name)

            context = RenderContext(template=self, master=master or self, data=data, options=options)
            bindings = context.bindings()

            logger.info("Processing template %s", self.filename.name)
            # Styles first: headers and footers live there.
            self.styles = Component(self.package.read_text(self.STYLES_SOURCE), self.jinja_env, name=self.STYLES_PART)
            self.styles.process(bindings)
            self.content = Component(
                self.package.read_text(self.CONTENT_SOURCE), self.jinja_env, name=self.CONTENT_PART
            )
            self.content.process(bindings)

            if self._partials:
                self.styles.merge_partial_styles(list(self._partials.values()))
            if self._images:
                self._embed_images()
        finally:
            self._images.clear()
            self._partials.clear()

    def save(self) -> None:
        """Write the rendered parts back over ``content.xml`` and ``styles.xml``."""

        if self.content is None or self.content.rendered is None:
            raise DocumaticError(f"{self.filename.name} must be processed before it is saved")
        self.package.write(self.CONTENT_PART, str(self.content))
        if self.styles is not None and self.styles.rendered is not None:
            self.package.write(self.STYLES_PART, str(self.styles))

    def close(self) -> None:
        """Drop the compiled-source cache and close the archive."""

        for name in (self.CONTENT_SOURCE, self.STYLES_SOURCE):
            self.package.discard(name)
        self._remove_empty_dirs(self.MASTER_DIR)
        self.package.close()

    # ------------------------------------------------------------------
    # Registries

    @property
    def images(self) -> dict[str, str]:
        """Images staged during the current processing run (name to source path)."""

        return self._images

    @property
    def partials(self) -> dict[str, "Template"]:
        return self._partials

    def add_image(self, full_path) -> str:
        """Stage an image for the ``Pictures`` directory and return its file name.

        Raises :class:`InvalidArgumentError` if ``full_path`` does not exist.
        """

        path = Path(full_path)
        if not path.is_file():
            raise InvalidArgumentError(f"Attempted to add non-existent image to template: {path}")
        self._images[path.name] = str(path)
        return path.name

    def add_partial(self, key, partial: "Template") -> None:
        self._partials[str(key)] = partial

    # ------------------------------------------------------------------
    # Inspection

    def body(self) -> str:
        """Return the rendered body content (the children of ``office:text``)."""

        if self.content is None or self.content.rendered is None:
            raise DocumaticError(f"{self.filename.name} must be processed before its body is read")

        root = etree.fromstring(self.content.rendered.encode("utf-8"))
        text = root.find(f"{{{OFFICE_NS}}}body/{{{OFFICE_NS}}}text")
        if text is None:
            return ""

        parts = []
        for child in text:
            if not isinstance(child.tag, str):
                continue
            localname = etree.QName(child).localname
            if localname.endswith("-decls") or localname == "forms":
                continue
            parts.append(etree.tostring(child, encoding="unicode", with_tail=False))
        return "".join(parts)

    def undeclared_variables(self) -> set[str]:
        """Return names the compiled template uses but never defines."""

        if not self.compiled:
            self.compile()
        names: set[str] = set()
        for source_name in (self.STYLES_SOURCE, self.CONTENT_SOURCE):
            component = Component(self.package.read_text(source_name), self.jinja_env, name=source_name)
            names |= component.undeclared_variables()
        return names - _CONTEXT_NAMES

    # ------------------------------------------------------------------
    # Helpers

    def _embed_images(self) -> None:
        if not self.package.has_entry(self.PICTURES_DIR):
            self.package.mkdir(self.PICTURES_DIR)

        added = []
        for filename in list(self._images):
            path = self._images.pop(filename)
            entry = f"{self.PICTURES_DIR}/{filename}"
            self.package.add_file(entry, path)
            added.append(entry)
        self._register_manifest_entries(added)
        logger.debug("Embedded %d images into %s", len(added), self.filename.name)

    def _register_manifest_entries(self, entries: list[str]) -> None:
        if not self.package.has_entry(self.MANIFEST_PART):
            return

        root = etree.fromstring(self.package.read(self.MANIFEST_PART))
        known = {element.get(_MANIFEST_FULL_PATH) for element in root.iter(_MANIFEST_FILE_ENTRY)}
        for entry in entries:
            if entry in known:
                continue
            media_type = mimetypes.guess_type(entry)[0] or "application/octet-stream"
            etree.SubElement(
                root,
                _MANIFEST_FILE_ENTRY,
                {_MANIFEST_FULL_PATH: entry, _MANIFEST_MEDIA_TYPE: media_type},
            )
            known.add(entry)
        self.package.write(self.MANIFEST_PART, etree.tostring(root, xml_declaration=True, encoding="UTF-8"))

    def _remove_empty_dirs(self, directory: str) -> None:
        """Remove ``directory`` and its parents while they hold no other entries."""

        parts = directory.strip("/").split("/")
        while parts:
            name = "/".join(parts) + "/"
            if any(entry.startswith(name) and entry != name for entry in self.package.names()):
                break
            self.package.discard(name)
            parts.pop()


def process_template(
    options,
    data: Any = None,
    customize: Callable[[Template], None] | None = None,
    jinja_env: Environment | None = None,
) -> Path:
    """Module-level shortcut for :meth:`Template.process_template`."""

    return Template.process_template(options, data, customize, jinja_env)
