"""A compiled document part and its rendered output."""

from __future__ import annotations

import logging
import re
from copy import deepcopy
from typing import Iterable, Mapping

from jinja2 import Environment, meta
from lxml import etree

from documatic.exceptions import RenderError
from documatic.jinja_env import prepare_jinja2_env

logger = logging.getLogger(__name__)

OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"
_STYLE_NS = "urn:oasis:names:tc:opendocument:xmlns:style:1.0"

_MERGED_SECTIONS = (f"{{{OFFICE_NS}}}styles", f"{{{OFFICE_NS}}}automatic-styles")
_MASTER_STYLES = f"{{{OFFICE_NS}}}master-styles"
_STYLE_FAMILY = f"{{{_STYLE_NS}}}family"
_STYLE_NAME = f"{{{_STYLE_NS}}}name"

_DIRECTIVE_RE = re.compile(r"<%.*?%>", re.DOTALL)


class Component:
    """Compiled template source for one XML part (``content.xml`` or ``styles.xml``).

    ``source`` is the compiled template; ``rendered`` holds the XML produced
    by :meth:`process` and is ``None`` until then.
    """

    def __init__(self, source: str, jinja_env: Environment | None = None, name: str = "<component>"):
        self.source = source
        self.name = name
        self.jinja_env = jinja_env or prepare_jinja2_env()[0]
        self.rendered: str | None = None

    def __str__(self) -> str:
        return self.rendered if self.rendered is not None else ""

    def process(self, bindings: Mapping) -> str:
        """Render the source against ``bindings`` and keep the result."""

        try:
            template = self.jinja_env.from_string(self.source)
            self.rendered = template.render(dict(bindings))
        except Exception as exc:
            error_line = self._extract_template_error_line(exc)
            statements = self._collect_template_statements(error_line)
            logger.exception(
                "Failed to render template part %s%s",
                self.name,
                f" near line {error_line}" if error_line is not None else "",
                extra={
                    "template_part": self.name,
                    "template_error_line": error_line,
                    "template_statements_preview": statements,
                },
            )
            raise RenderError(
                f"Failed to render {self.name}: {exc}", part=self.name, lineno=error_line
            ) from exc
        return self.rendered

    def undeclared_variables(self) -> set[str]:
        """Return names the source uses without defining them."""

        parsed = self.jinja_env.parse(self.source)
        return meta.find_undeclared_variables(parsed)

    def merge_partial_styles(self, partials: Iterable) -> None:
        """Append the styles of each rendered partial to this component's output.

        Children of ``office:styles`` and ``office:automatic-styles`` are
        copied in the order the partials were registered.  A style already
        defined here under the same family and name is left as it is.
        """

        if self.rendered is None:
            raise RenderError(f"Cannot merge partial styles into unrendered {self.name}", part=self.name)

        root = etree.fromstring(self.rendered.encode("utf-8"))
        merged = 0
        for partial in partials:
            styles = getattr(partial, "styles", None)
            if styles is None or styles.rendered is None:
                logger.debug("Skipping partial without rendered styles: %r", partial)
                continue
            partial_root = etree.fromstring(styles.rendered.encode("utf-8"))
            for section_tag in _MERGED_SECTIONS:
                source = partial_root.find(section_tag)
                if source is None or not len(source):
                    continue
                target = self._find_or_create_section(root, section_tag)
                existing = {
                    (element.get(_STYLE_FAMILY), element.get(_STYLE_NAME))
                    for element in target
                    if element.get(_STYLE_NAME) is not None
                }
                for element in source:
                    if not isinstance(element.tag, str):
                        continue
                    key = (element.get(_STYLE_FAMILY), element.get(_STYLE_NAME))
                    if key[1] is not None and key in existing:
                        continue
                    target.append(deepcopy(element))
                    existing.add(key)
                    merged += 1

        self.rendered = etree.tostring(root, xml_declaration=True, encoding="UTF-8").decode("utf-8")
        logger.debug("Merged %d partial styles into %s", merged, self.name)

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _find_or_create_section(root, tag: str):
        section = root.find(tag)
        if section is not None:
            return section
        section = etree.Element(tag, nsmap={"office": OFFICE_NS})
        master = root.find(_MASTER_STYLES)
        if master is not None:
            master.addprevious(section)
        else:
            root.append(section)
        return section

    @staticmethod
    def _extract_template_error_line(exc: BaseException) -> int | None:
        """Return the line of the compiled source that raised ``exc``."""

        lineno = getattr(exc, "lineno", None)
        if isinstance(lineno, int):
            return lineno

        tb = exc.__traceback__
        last_line: int | None = None
        while tb is not None:
            if tb.tb_frame.f_code.co_filename == "<template>":
                last_line = tb.tb_lineno
            tb = tb.tb_next
        return last_line

    def _collect_template_statements(self, focus_line: int | None, limit: int = 5) -> list[dict[str, str | int]]:
        """Return directives near ``focus_line`` (or the first few) for logging."""

        matches = []
        for match in _DIRECTIVE_RE.finditer(self.source):
            line = self.source.count("\n", 0, match.start()) + 1
            snippet = match.group(0)
            if len(snippet) > 200:
                snippet = snippet[:197] + "..."
            matches.append({"line": line, "statement": snippet})

        if focus_line is None:
            return matches[:limit]
        start = 0
        for index, entry in enumerate(matches):
            if entry["line"] >= focus_line:
                start = max(0, index - limit // 2)
                break
        else:
            start = max(0, len(matches) - limit)
        return matches[start : start + limit]
