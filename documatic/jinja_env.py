"""Jinja environment used to render compiled OpenDocument templates."""

from __future__ import annotations

import logging

from jinja2 import Environment, StrictUndefined, Undefined
from markupsafe import Markup, escape

logger = logging.getLogger(__name__)

# ERB-style delimiters: ``<%`` can never occur in well-formed XML, so literal
# ``{{`` or ``{%`` in document text passes through rendering unchanged.
BLOCK_START = "<%"
BLOCK_END = "%>"
VARIABLE_START = "<%="
VARIABLE_END = "%>"
COMMENT_START = "<%#"
COMMENT_END = "#%>"

_EXTENSIONS = ("jinja2.ext.do", "jinja2.ext.loopcontrols")


def xml_escape(value) -> Markup:
    """Escape ``value`` for inclusion in XML text; ``None`` renders as nothing."""

    if value is None:
        return Markup("")
    if isinstance(value, Undefined):
        # Raises for ``StrictUndefined``; renders empty in debug mode.
        return escape(str(value))
    return escape(value)


def prepare_jinja2_env(debug: bool = False) -> tuple[Environment, set[str]]:
    """Return a configured environment and the set of undefined names it records.

    Outside of debug mode undefined names raise as soon as they are used.  In
    debug mode they render as empty strings and their names are collected in
    the returned set, which is useful when linting a template against sample
    data.
    """

    undefined_vars: set[str] = set()

    if debug:

        class RecordingUndefined(Undefined):
            """Undefined that records the names it stands in for."""

            __slots__ = ()

            def _record(self) -> None:
                if self._undefined_name is not None:
                    undefined_vars.add(self._undefined_name)

            def __str__(self) -> str:
                self._record()
                return ""

            def __iter__(self):
                self._record()
                return iter(())

            def __bool__(self) -> bool:
                self._record()
                return False

            def __getattr__(self, name: str):
                if name[:2] == "__":
                    raise AttributeError(name)
                self._record()
                return RecordingUndefined(name=f"{self._undefined_name}.{name}")

        undefined_cls = RecordingUndefined
    else:
        undefined_cls = StrictUndefined

    env = Environment(
        block_start_string=BLOCK_START,
        block_end_string=BLOCK_END,
        variable_start_string=VARIABLE_START,
        variable_end_string=VARIABLE_END,
        comment_start_string=COMMENT_START,
        comment_end_string=COMMENT_END,
        keep_trailing_newline=True,
        autoescape=False,
        undefined=undefined_cls,
        extensions=list(_EXTENSIONS),
    )
    env.filters["xml"] = xml_escape

    def _is_defined(value, *_args) -> bool:
        if isinstance(value, Undefined):
            if debug and value._undefined_name is not None:
                undefined_vars.add(value._undefined_name)
            return False
        return True

    env.tests["defined"] = _is_defined

    logger.debug("Prepared Jinja environment (debug=%s)", debug)
    return env, undefined_vars
