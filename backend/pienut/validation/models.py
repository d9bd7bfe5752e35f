"""Validation models — rule kinds, compiled directives, outcomes, and report structure.

Compiled rule structures are frozen dataclasses: built once by the normalizer
and shared read-only by every run. Outcomes and reports are pydantic models so
controllers can serialize them directly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


class RuleKind(str, Enum):
    """Closed catalog of rule names accepted in a rule spec."""

    REQUIRED = "required"
    TYPE = "type"
    MIN_LEN = "min_len"
    MAX_LEN = "max_len"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"
    UNIQUE = "unique"
    EMAIL = "email"
    REGEX = "regex"


class TypeName(str, Enum):
    """Type families accepted by the ``type`` rule."""

    STRING = "string"
    ALPHA = "alpha"
    ALPHANUMERIC = "alphanumeric"
    NUMERIC = "numeric"
    NUMBER = "number"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    CHAR = "char"


class ArgShape(str, Enum):
    """Argument shape a rule kind expects in the raw spec."""

    FLAG = "flag"              # true/false switch
    TYPE_NAME = "type_name"    # one TypeName value
    LENGTH = "length"          # non-negative int
    RANGE = "range"            # [lo, hi]
    MEMBERS = "members"        # non-empty collection
    TARGET = "target"          # [collection, field]
    PATTERN = "pattern"        # regex string or compiled pattern

    @property
    def is_collection(self) -> bool:
        return self in (ArgShape.RANGE, ArgShape.MEMBERS, ArgShape.TARGET)


class FieldState(str, Enum):
    """Lifecycle of one field during a run."""

    PENDING = "pending"
    CHECKING_SYNC = "checking_sync"
    AWAITING_CONSTRAINT = "awaiting_constraint"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class RuleDefinition:
    """Registry entry for one rule kind."""

    kind: RuleKind
    shape: ArgShape
    template: str
    evaluator: Optional[Callable[[Any, tuple], bool]] = None
    is_async: bool = False


@dataclass(frozen=True)
class Directive:
    """One compiled rule applied to one field. ``message`` is already resolved."""

    kind: RuleKind
    args: tuple
    message: str

    @property
    def is_async(self) -> bool:
        return self.kind == RuleKind.UNIQUE


@dataclass(frozen=True)
class FieldRules:
    """Ordered directives for a single field."""

    field: str
    required: Optional[Directive]
    directives: tuple[Directive, ...]

    @property
    def has_unique(self) -> bool:
        return any(d.is_async for d in self.directives)


@dataclass(frozen=True)
class CompiledSpec:
    """The whole compiled rule spec, in declaration order."""

    fields: tuple[FieldRules, ...]

    @property
    def field_names(self) -> list[str]:
        return [f.field for f in self.fields]

    @property
    def needs_constraints(self) -> bool:
        return any(f.has_unique for f in self.fields)


class FieldOutcome(BaseModel):
    """Result for a single field. ``message`` is set only when failed."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    field: str
    failed: bool = False
    message: Optional[str] = None
    rule: Optional[RuleKind] = None  # Which directive failed


class ValidationReport(BaseModel):
    """Per-run report — failed fields only, keyed in declaration order."""

    model_config = ConfigDict(frozen=True)

    outcomes: dict[str, FieldOutcome] = Field(default_factory=dict)
    checked_fields: list[str] = Field(default_factory=list)

    @property
    def any_failed(self) -> bool:
        return bool(self.outcomes)

    def errors(self) -> dict[str, str]:
        """Field → message mapping for failed fields."""
        return {name: outcome.message for name, outcome in self.outcomes.items()}

    @classmethod
    def build(cls, field_names: list[str], outcomes: list[FieldOutcome]) -> "ValidationReport":
        """Build a report from resolved outcomes, keyed by field identity.

        Arrival order of ``outcomes`` does not matter; the report always
        follows ``field_names``.
        """
        by_field = {o.field: o for o in outcomes if o.failed}
        ordered = {name: by_field[name] for name in field_names if name in by_field}
        return cls(outcomes=ordered, checked_fields=list(field_names))
