"""Generate OpenDocument files from templates authored in a word processor."""

from documatic.exceptions import (
    ArgumentError,
    DocumaticError,
    InvalidArgumentError,
    NotFoundError,
    RenderError,
)
from documatic.jinja_env import prepare_jinja2_env
from documatic.opendocument import Template, process_template

__version__ = "0.3.0"

__all__ = [
    "ArgumentError",
    "DocumaticError",
    "InvalidArgumentError",
    "NotFoundError",
    "RenderError",
    "Template",
    "prepare_jinja2_env",
    "process_template",
]
