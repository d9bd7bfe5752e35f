"""Rule Registry — the closed catalog of rule kinds.

Each RuleKind maps to exactly one RuleDefinition: its argument shape, its
default message template, and its evaluator. ``unique`` carries no evaluator;
the orchestrator routes it to the Constraint Checker.

Templates are rendered with ``label`` (humanized field name) plus
shape-specific names: ``type`` / ``length`` / ``low`` and ``high`` /
``members``.
"""

from types import MappingProxyType
from typing import Union

from pienut.validation import evaluators
from pienut.validation.errors import RuleCompileError
from pienut.validation.models import ArgShape, RuleDefinition, RuleKind, TypeName

_DEFINITIONS = {
    RuleKind.REQUIRED: RuleDefinition(
        kind=RuleKind.REQUIRED,
        shape=ArgShape.FLAG,
        template="{label} is required",
        evaluator=evaluators.check_required,
    ),
    RuleKind.TYPE: RuleDefinition(
        kind=RuleKind.TYPE,
        shape=ArgShape.TYPE_NAME,
        template="{label} must be {type}",
        evaluator=evaluators.check_type,
    ),
    RuleKind.MIN_LEN: RuleDefinition(
        kind=RuleKind.MIN_LEN,
        shape=ArgShape.LENGTH,
        template="{label} must be at least {length} characters long",
        evaluator=evaluators.check_min_len,
    ),
    RuleKind.MAX_LEN: RuleDefinition(
        kind=RuleKind.MAX_LEN,
        shape=ArgShape.LENGTH,
        template="{label} must not exceed {length} characters",
        evaluator=evaluators.check_max_len,
    ),
    RuleKind.BETWEEN: RuleDefinition(
        kind=RuleKind.BETWEEN,
        shape=ArgShape.RANGE,
        template="{label} must be between {low} and {high}",
        evaluator=evaluators.check_between,
    ),
    RuleKind.IN: RuleDefinition(
        kind=RuleKind.IN,
        shape=ArgShape.MEMBERS,
        template="{label} must be one of: {members}",
        evaluator=evaluators.check_in,
    ),
    RuleKind.NOT_IN: RuleDefinition(
        kind=RuleKind.NOT_IN,
        shape=ArgShape.MEMBERS,
        template="{label} must not be one of: {members}",
        evaluator=evaluators.check_not_in,
    ),
    RuleKind.UNIQUE: RuleDefinition(
        kind=RuleKind.UNIQUE,
        shape=ArgShape.TARGET,
        template="{label} has already been taken",
        is_async=True,
    ),
    RuleKind.EMAIL: RuleDefinition(
        kind=RuleKind.EMAIL,
        shape=ArgShape.FLAG,
        template="{label} format is invalid",
        evaluator=evaluators.check_email,
    ),
    RuleKind.REGEX: RuleDefinition(
        kind=RuleKind.REGEX,
        shape=ArgShape.PATTERN,
        template="{label} format does not match the required pattern",
        evaluator=evaluators.check_regex,
    ),
}

# Read-only view shared process-wide
RULES = MappingProxyType(_DEFINITIONS)

# Wording used in the ``type`` template
TYPE_DESCRIPTIONS = MappingProxyType({
    TypeName.STRING: "a string",
    TypeName.ALPHA: "alphabetic",
    TypeName.ALPHANUMERIC: "alphanumeric",
    TypeName.NUMERIC: "numeric",
    TypeName.NUMBER: "a number",
    TypeName.INT: "an integer",
    TypeName.FLOAT: "a floating point number",
    TypeName.BOOL: "a boolean",
    TypeName.CHAR: "a single character",
})


def lookup(kind: Union[RuleKind, str]) -> RuleDefinition:
    """Resolve a rule kind (enum member or its name) to its definition.

    Raises:
        RuleCompileError: if the name is not a registered rule kind
    """
    try:
        return RULES[RuleKind(kind)]
    except (ValueError, KeyError):
        known = ", ".join(k.value for k in RuleKind)
        raise RuleCompileError(f"Unknown rule '{kind}'. Known rules: {known}") from None


def rule_names() -> list[str]:
    """List all registered rule names."""
    return [k.value for k in RULES]
