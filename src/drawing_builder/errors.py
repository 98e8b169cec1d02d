"""
Exception hierarchy for the drawing builder.

Every failure that can end a merge request derives from DrawingBuilderError so
the HTTP layer can catch a single type, log it, and answer with a generic 500.
"""

from __future__ import annotations

from typing import Iterable


class DrawingBuilderError(Exception):
    """Base class for all drawing builder failures."""


class ConfigurationError(DrawingBuilderError):
    """Settings could not be loaded or failed validation."""


class IOFailure(DrawingBuilderError):
    """The request body could not be read or decoded."""


class NotFound(DrawingBuilderError):
    """An asset, or the requested rendition of it, does not exist."""

    def __init__(self, path: str, rendition: str | None = None) -> None:
        self.path = path
        self.rendition = rendition
        if rendition:
            message = f"Rendition '{rendition}' of asset {path} not found"
        else:
            message = f"Asset {path} not found"
        super().__init__(message)


class MergeFailure(DrawingBuilderError):
    """The form output service failed to merge data into the template."""


class AssemblyFailure(DrawingBuilderError):
    """The assembler service call failed."""


class MissingOutputError(DrawingBuilderError):
    """The assembler succeeded but did not return the expected output document."""

    def __init__(self, expected: str, returned: Iterable[str]) -> None:
        self.expected = expected
        self.returned = sorted(returned)
        super().__init__(f"Assembler output has no '{expected}' document (returned: {self.returned or 'nothing'})")


class DocumentConsumedError(DrawingBuilderError):
    """A single-pass document was read more than once."""
