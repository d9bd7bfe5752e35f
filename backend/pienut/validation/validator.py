"""Validator façade — the object a controller holds.

Usage:
    validator = Validator(
        {
            "username": {"required": True, "type": "alphanumeric", "unique": ["users", "username"]},
            "age": {"type": "int", "between": [18, 40]},
        },
        store=record_store,
    )

    await validator.run(payload)
    if validator.fails():
        return validator.errors()
"""

from collections.abc import Mapping
from typing import Optional

from pienut.validation.constraints import ConstraintChecker, RecordStore
from pienut.validation.errors import RuleCompileError, ValidatorUsageError
from pienut.validation.models import CompiledSpec, ValidationReport
from pienut.validation.normalizer import compile_rules
from pienut.validation.orchestrator import evaluate_spec


class Validator:
    """Compiles a rule spec once and validates payloads against it.

    The rule spec is compiled at construction; a malformed spec raises
    RuleCompileError here, before any request is processed. Each ``run``
    builds a fresh report and replaces the one held from the previous run.
    """

    def __init__(
        self,
        rules: Mapping,
        store: Optional[RecordStore] = None,
        checker: Optional[ConstraintChecker] = None,
    ):
        self.spec: CompiledSpec = compile_rules(rules)

        if checker is None and store is not None:
            checker = ConstraintChecker(store)
        if checker is None and self.spec.needs_constraints:
            raise RuleCompileError("'unique' rules need a record store, but none was given")

        self.checker = checker
        self._report: Optional[ValidationReport] = None

    async def evaluate(
        self, payload: Mapping, exclude_identity: Optional[str] = None
    ) -> ValidationReport:
        """Validate ``payload`` and return the report without storing it.

        Args:
            payload: Field name → raw value. Fields not in the rule spec are ignored.
            exclude_identity: Record identity that ``unique`` checks ignore
                (the record being updated).

        Raises:
            ConstraintCheckError: if the record store could not answer
        """
        if not isinstance(payload, Mapping):
            raise TypeError(f"payload must be a mapping, got {type(payload).__name__}")
        return await evaluate_spec(self.spec, payload, self.checker, exclude_identity)

    async def run(self, payload: Mapping, exclude_identity: Optional[str] = None) -> None:
        """Validate ``payload``; inspect the result with ``fails()`` / ``errors()``."""
        self._report = await self.evaluate(payload, exclude_identity)

    @property
    def report(self) -> ValidationReport:
        if self._report is None:
            raise ValidatorUsageError("Validator.run() must complete before the report is read")
        return self._report

    def fails(self) -> bool:
        return self.report.any_failed

    def passes(self) -> bool:
        return not self.report.any_failed

    def errors(self) -> dict[str, str]:
        """Field → message for every failed field, in rule spec order."""
        return self.report.errors()
