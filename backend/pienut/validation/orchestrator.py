"""Evaluation Orchestrator — drives per-field rule evaluation and assembles the report.

Each field is a small state machine (FieldEvaluation):

    PENDING → CHECKING_SYNC ⇄ AWAITING_CONSTRAINT → RESOLVED (passed | failed)

Synchronous directives run inline. A ``unique`` directive suspends only its
own field while the Constraint Checker queries the store; every other field
keeps going on the same event loop. The first failing directive resolves the
field, and nothing after it is evaluated or issued.
"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any, Optional

import structlog

from pienut.validation import registry
from pienut.validation.constraints import ConstraintChecker
from pienut.validation.evaluators import is_empty
from pienut.validation.models import (
    CompiledSpec,
    Directive,
    FieldOutcome,
    FieldRules,
    FieldState,
    ValidationReport,
)

logger = structlog.get_logger()

_MISSING = object()


class FieldEvaluation:
    """Evaluates one field's directives in declared order with first-failure short-circuit."""

    def __init__(
        self,
        rules: FieldRules,
        checker: Optional[ConstraintChecker] = None,
        exclude_identity: Optional[str] = None,
    ):
        self.rules = rules
        self.checker = checker
        self.exclude_identity = exclude_identity
        self.state = FieldState.PENDING
        self.outcome: Optional[FieldOutcome] = None

    @property
    def field(self) -> str:
        return self.rules.field

    async def resolve(self, value: Any) -> FieldOutcome:
        """Run the field to a resolved outcome."""
        self.state = FieldState.CHECKING_SYNC

        # required goes first wherever it was declared
        if value is _MISSING or is_empty(value):
            if self.rules.required is not None:
                return self._fail(self.rules.required)
            # Optional and absent: nothing else applies
            return self._pass()

        for directive in self.rules.directives:
            if directive.is_async:
                passed = await self._check_constraint(directive, value)
            else:
                definition = registry.lookup(directive.kind)
                passed = definition.evaluator(value, directive.args)
            if not passed:
                return self._fail(directive)

        return self._pass()

    async def _check_constraint(self, directive: Directive, value: Any) -> bool:
        collection, field = directive.args
        self.state = FieldState.AWAITING_CONSTRAINT
        try:
            return await self.checker.check_unique(
                collection, field, value, exclude_identity=self.exclude_identity
            )
        finally:
            self.state = FieldState.CHECKING_SYNC

    def _pass(self) -> FieldOutcome:
        self.state = FieldState.RESOLVED
        self.outcome = FieldOutcome(field=self.field, failed=False)
        return self.outcome

    def _fail(self, directive: Directive) -> FieldOutcome:
        self.state = FieldState.RESOLVED
        self.outcome = FieldOutcome(
            field=self.field,
            failed=True,
            message=directive.message,
            rule=directive.kind,
        )
        return self.outcome


async def evaluate_spec(
    spec: CompiledSpec,
    payload: Mapping,
    checker: Optional[ConstraintChecker] = None,
    exclude_identity: Optional[str] = None,
) -> ValidationReport:
    """Evaluate every field of ``spec`` against ``payload`` and build a fresh report.

    Fields run concurrently; the report is keyed by field identity in
    declaration order, whatever order the constraint checks finish in.

    Raises:
        ConstraintCheckError: if the store failed for any field (first in
            declaration order, after all fields have settled)
    """
    start_time = time.perf_counter()

    evaluations = [FieldEvaluation(rules, checker, exclude_identity) for rules in spec.fields]
    results = await asyncio.gather(
        *(e.resolve(payload.get(e.field, _MISSING)) for e in evaluations),
        return_exceptions=True,
    )

    outcomes: list[FieldOutcome] = []
    for evaluation, result in zip(evaluations, results):
        if isinstance(result, BaseException):
            logger.error(
                "validation_aborted",
                field=evaluation.field,
                error=str(result),
                error_type=type(result).__name__,
            )
            raise result
        outcomes.append(result)

    report = ValidationReport.build(spec.field_names, outcomes)

    logger.info(
        "validation_complete",
        failed=report.any_failed,
        failed_fields=list(report.outcomes),
        total_fields=len(evaluations),
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )

    return report
