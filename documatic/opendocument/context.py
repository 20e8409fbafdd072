"""Capabilities handed to template code while a document is rendered."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from markupsafe import escape

if TYPE_CHECKING:
    from documatic.opendocument.template import Template

logger = logging.getLogger(__name__)


@dataclass
class RenderContext:
    """Everything compiled template code can reach while it runs.

    ``template`` is the template being rendered and ``master`` the top-level
    template that receives images and partials; they are the same object
    unless a partial is being rendered.
    """

    template: "Template"
    master: "Template"
    data: Any = None
    options: Any = None

    def bindings(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "options": self.options,
            "ctx": self,
            "template": self.template,
            "master": self.master,
        }

    def add_image(self, path) -> str:
        """Stage the image at ``path`` for the master document; return its name."""

        return self.master.add_image(path)

    def add_partial(self, key, partial: "Template") -> None:
        self.master.add_partial(key, partial)

    def image(self, path, width: str, height: str, name: str | None = None) -> str:
        """Stage an image and return the frame markup that displays it inline.

        ``width`` and ``height`` are ODF lengths such as ``"4cm"``.  Use the
        result from a Literal run.
        """

        filename = self.add_image(path)
        href = f"{self.master.PICTURES_DIR}/{filename}"
        return (
            f'<draw:frame draw:name="{escape(name or filename)}" text:anchor-type="as-char" '
            f'svg:width="{escape(width)}" svg:height="{escape(height)}" draw:z-index="0">'
            f'<draw:image xlink:href="{escape(href)}" xlink:type="simple" '
            'xlink:show="embed" xlink:actuate="onLoad"/>'
            "</draw:frame>"
        )

    def partial(self, path, data: Any = None) -> str:
        """Render the template at ``path`` and return its body markup.

        The partial is processed with the same master, so images it adds and
        its styles end up in the master document.  Its own archive is closed
        again once rendered.  Use the result from a Block run, which replaces
        the paragraph holding it.
        """

        partial = type(self.master)(Path(path), jinja_env=self.template.jinja_env)
        logger.debug("Rendering partial %s for %s", partial.filename.name, self.master.filename.name)
        try:
            partial.process(self.data if data is None else data, options=self.options, master=self.master)
        finally:
            partial.close()
        self.add_partial(str(path), partial)
        return partial.body()
