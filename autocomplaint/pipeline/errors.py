"""Engine error taxonomy.

Absence of data is never an error: extractors return empty candidate lists,
the mapper returns ``None``. Only type-contract violations raise here.
"""

from __future__ import annotations

from typing import Any


class InputError(TypeError):
    """Raised when a required input has the wrong fundamental type."""


class AdapterError(RuntimeError):
    """Raised by DOM/storage adapters. Fatal for one field, never for a fill pass."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message)
        self.field_name = field_name


def require_text(value: Any, what: str = "text") -> str:
    """Return ``value`` if it is a ``str``; raise ``InputError`` otherwise."""
    if not isinstance(value, str):
        raise InputError(f"{what} must be a str, got {type(value).__name__}")
    return value
