"""
Errors that abort document generation.

Only these reach the caller.  Empty values, unmapped fields, fields pointing
at a page the template lacks and unusable signature images are skipped where
they occur and never raise.
"""

from __future__ import annotations


class StampingError(Exception):
    """Base class for failures that leave no document to return."""


class TemplateNotFound(StampingError, FileNotFoundError):
    def __init__(self, name: str, location: str | None = None) -> None:
        self.name = name
        self.location = location
        where = f" in {location}" if location else ""
        super().__init__(f"Template not found: {name}{where}")


class InvalidTemplate(StampingError):
    """The template bytes could not be read as a PDF."""


class SerializationFailure(StampingError):
    """Writing the stamped document failed."""


class FieldMapError(StampingError, ValueError):
    """A supplied field map is malformed."""
