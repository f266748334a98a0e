"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class PersistenceError(DomainError):
    """Storage backend failure; the original message stays server-side."""

    def __init__(self, original: str, *, table: str | None = None, action: str | None = None) -> None:
        super().__init__(
            code="PERSISTENCE_FAILED",
            http_status=500,
            message="Internal server error",
            details={"original": original, "table": table, "action": action},
        )


def not_found(code: str, message: str) -> DomainError:
    return DomainError(code=code, http_status=404, message=message)


def bad_request(code: str, message: str, details: dict[str, Any] | None = None) -> DomainError:
    return DomainError(code=code, http_status=400, message=message, details=details)


def forbidden(code: str, message: str) -> DomainError:
    return DomainError(code=code, http_status=403, message=message)
