"""Exceptions raised by the OpenDocument templating pipeline."""

from __future__ import annotations


class DocumaticError(Exception):
    """Base class for every error raised by ``documatic``."""


class ArgumentError(DocumaticError, ValueError):
    """A required argument (such as a template or output path) is missing."""


class InvalidArgumentError(ArgumentError):
    """An argument was supplied but refers to something that does not exist."""


class NotFoundError(DocumaticError, FileNotFoundError):
    """The template archive does not exist or is not a readable zip file."""


class RenderError(DocumaticError):
    """Evaluating compiled template source failed.

    ``part`` names the archive part being rendered and ``lineno`` is the line
    of the compiled source that raised, when it can be determined.
    """

    def __init__(self, message: str, *, part: str | None = None, lineno: int | None = None):
        super().__init__(message)
        self.part = part
        self.lineno = lineno
