"""
Error types raised by the SiteMapper core.

Adapters (API, CLI) catch these to build user-facing feedback:
- `ValidationError`: a required field is missing or invalid (nothing was changed).
- `NotFoundError`: the target id/code does not exist (nothing was changed).
- `ParseError`: an import payload could not be decoded at all.
"""

from __future__ import annotations

from typing import Any


class SiteMapperError(Exception):
    """Base class for all SiteMapper errors."""


class ValidationError(SiteMapperError, ValueError):
    """A draft or patch failed validation.

    `field` names the offending field when it is known.
    """

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(SiteMapperError):
    """An operation targeted an unknown site id or region code."""

    def __init__(self, kind: str, key: Any):
        super().__init__(f"{kind} not found: {key!r}")
        self.kind = kind
        self.key = key


class ParseError(SiteMapperError, ValueError):
    """Import text is malformed or does not decode to the expected shape."""


class LocationUnavailableError(SiteMapperError):
    """The device-location provider could not report a position."""


def describe_pydantic_error(exc: Any) -> str:
    """Flatten a pydantic ValidationError into a one-line message."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or str(exc)
