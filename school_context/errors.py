"""
Error taxonomy shared by the period and assignment contexts.

Codes are carried as the exception message (e.g. ``invalid_academic_year``) so
adapters can map them to user-facing text without parsing free-form strings.
"""
from __future__ import annotations


class ValidationError(ValueError):
    """Input does not have the required shape (malformed year, bad dates)."""


class ConflictError(ValueError):
    """The record already exists for the institution."""


class FetchError(RuntimeError):
    """Raised when the underlying record store is unreachable or erroring."""

    def __init__(self, code: str, *, cause: BaseException | None = None):
        super().__init__(code)
        self.code = code
        self.cause = cause


__all__ = ["ValidationError", "ConflictError", "FetchError"]
