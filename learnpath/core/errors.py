# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy shared by the progression domains.

Four families, all raised synchronously and never retried by the engine:

- NotFoundError: a referenced node, path, progress row or profile is missing.
- InvalidReferenceError: a write names node ids that do not resolve.
- PreconditionFailedError: the current state forbids the operation.
- InvariantViolationError: a programming error caught before persisting.

Domain modules subclass these for specific cases so callers can catch
either the precise error or the whole family.
"""

from typing import Any


class ProgressionError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error description.
        details: Structured context for logs and API layers.
    """

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(ProgressionError):
    """Raised when a referenced entity does not exist."""

    pass


class InvalidReferenceError(ProgressionError):
    """Raised when a write references entities that do not exist."""

    pass


class PreconditionFailedError(ProgressionError):
    """Raised when the current state does not allow the operation."""

    pass


class ValidationError(ProgressionError):
    """Raised when input fails a structural check (size, ids, duplicates)."""

    pass


class InvariantViolationError(ProgressionError):
    """Raised when an operation would persist a broken invariant.

    Treated as a programming error: logged and the operation is aborted.
    """

    pass
