"""Error types raised by the services and mapped to HTTP responses by the web layer."""

from __future__ import annotations

from typing import Any


class DeckError(Exception):
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, **self.context}


class ValidationError(DeckError):
    status_code = 400


class AccessDeniedError(DeckError):
    status_code = 403


class NotFoundError(DeckError):
    status_code = 404


class ConflictError(DeckError):
    status_code = 409


class ParseFailureError(DeckError):
    """Malformed frontmatter or JSON. Dropped during scans, 500 on single fetch."""

    status_code = 500
