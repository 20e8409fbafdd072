"""OpenDocument Text template compiler and renderer."""

from documatic.opendocument.component import Component
from documatic.opendocument.context import RenderContext
from documatic.opendocument.styles import Role, classify_styles
from documatic.opendocument.template import Template, process_template

__all__ = [
    "Component",
    "RenderContext",
    "Role",
    "Template",
    "classify_styles",
    "process_template",
]
