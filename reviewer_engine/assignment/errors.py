"""Errors raised by the assignment engine."""

from typing import Any


class AssignmentError(Exception):
    """Base class for reviewer-assignment errors."""


class ConfigInvalidError(AssignmentError, ValueError):
    """A config update failed validation. The previous config stays active."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class EvidenceMalformedError(AssignmentError, ValueError):
    """An evidence record could not be parsed."""

    def __init__(self, message: str, record: Any = None):
        super().__init__(message)
        self.record = record
