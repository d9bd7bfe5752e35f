"""Request Validator — declarative, rule-based validation of request payloads.

Usage:
    from pienut.validation import Validator

    validator = Validator({"email": {"required": True, "email": True}})
    await validator.run(payload)
    if validator.fails():
        # Respond with validator.errors()
"""

from pienut.validation.constraints import ConstraintChecker, RecordStore, RecordStoreError
from pienut.validation.errors import (
    ConstraintCheckError,
    RuleCompileError,
    ValidationConfigError,
    ValidatorUsageError,
)
from pienut.validation.models import FieldOutcome, RuleKind, TypeName, ValidationReport
from pienut.validation.normalizer import compile_rules
from pienut.validation.validator import Validator

__all__ = [
    "Validator",
    "ValidationReport",
    "FieldOutcome",
    "RuleKind",
    "TypeName",
    "compile_rules",
    "ConstraintChecker",
    "RecordStore",
    "RecordStoreError",
    "ConstraintCheckError",
    "RuleCompileError",
    "ValidationConfigError",
    "ValidatorUsageError",
]
