"""Validator exceptions.

Validation failures are never raised — they live in the ValidationReport.
Exceptions here signal programming defects (bad rule specs, misuse) or
infrastructure faults (the record store could not answer).
"""

from typing import Optional


class ValidationConfigError(Exception):
    """Base for errors raised while building a Validator."""


class RuleCompileError(ValidationConfigError, ValueError):
    """A rule spec entry is malformed or names an unknown rule."""

    def __init__(self, message: str, field: Optional[str] = None, kind: Optional[str] = None):
        self.field = field
        self.kind = kind
        if field is not None and kind is not None:
            message = f"Invalid rule '{kind}' for field '{field}': {message}"
        elif field is not None:
            message = f"Invalid rules for field '{field}': {message}"
        super().__init__(message)


class ValidatorUsageError(RuntimeError):
    """The Validator was inspected before any run completed."""


class ConstraintCheckError(Exception):
    """The record store failed while checking a constraint.

    Means "could not determine whether the field is valid", not "invalid".
    """

    def __init__(self, message: str, collection: str, field: str):
        self.collection = collection
        self.field = field
        super().__init__(message)
