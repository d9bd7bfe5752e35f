"""Rule Normalizer — compiles a raw rule spec into an immutable CompiledSpec.

Raw spec format::

    {
        "email": {"required": True, "email": True, "unique": [["users", "email"], "Email taken"]},
        "age": {"type": "int", "between": [18, 40]},
    }

Each rule value is either a bare argument or an ``[argument, message]`` pair.
Everything that can be wrong with a spec is caught here, once, at Validator
construction — never while a request is being validated.
"""

import re
from collections.abc import Mapping
from typing import Any, Optional

import structlog

from pienut.validation import registry
from pienut.validation.errors import RuleCompileError
from pienut.validation.evaluators import is_native_number
from pienut.validation.models import (
    ArgShape,
    CompiledSpec,
    Directive,
    FieldRules,
    RuleDefinition,
    RuleKind,
    TypeName,
)

logger = structlog.get_logger()

_COLLECTIONS = (list, tuple, set, frozenset)


def humanize(field: str) -> str:
    """Turn a field name into a message label: ``first_name`` → ``First name``."""
    text = field.replace("_", " ").replace("-", " ").strip()
    return text[:1].upper() + text[1:]


def compile_rules(raw_spec: Mapping) -> CompiledSpec:
    """Validate and compile a raw rule spec.

    Args:
        raw_spec: Mapping of field name → mapping of rule name → argument

    Returns:
        CompiledSpec with fields and directives in declaration order

    Raises:
        RuleCompileError: naming the offending field and rule
    """
    if not isinstance(raw_spec, Mapping):
        raise RuleCompileError("Rule spec must be a mapping of field names to rules")

    fields = tuple(_compile_field(field, rules) for field, rules in raw_spec.items())
    spec = CompiledSpec(fields=fields)

    logger.debug(
        "rule_spec_compiled",
        fields=spec.field_names,
        directives=sum(len(f.directives) + (f.required is not None) for f in fields),
    )
    return spec


def _compile_field(field: Any, raw_rules: Any) -> FieldRules:
    if not isinstance(field, str) or not field.strip():
        raise RuleCompileError("Field names must be non-empty strings", field=repr(field))
    if not isinstance(raw_rules, Mapping):
        raise RuleCompileError("Rules must be a mapping of rule names to arguments", field=field)

    parsed: list[tuple[RuleDefinition, Any, Optional[str]]] = []
    for name, raw in raw_rules.items():
        try:
            definition = registry.lookup(name)
        except RuleCompileError as e:
            raise RuleCompileError(str(e), field=field, kind=str(name)) from None
        arg, message = _split_message(definition, raw, field)
        parsed.append((definition, arg, message))

    # in/not_in compare through the field's declared type
    companion: Optional[TypeName] = None
    for definition, arg, _ in parsed:
        if definition.kind == RuleKind.TYPE:
            (companion,) = _compile_args(definition, arg, field, None)

    required: Optional[Directive] = None
    directives: list[Directive] = []
    for definition, arg, message in parsed:
        args = _compile_args(definition, arg, field, companion)
        if args is None:
            continue
        directive = Directive(
            kind=definition.kind,
            args=args,
            message=message or _render(definition, field, args),
        )
        if directive.kind == RuleKind.REQUIRED:
            required = directive
        else:
            directives.append(directive)

    return FieldRules(field=field, required=required, directives=tuple(directives))


def _split_message(definition: RuleDefinition, raw: Any, field: str) -> tuple[Any, Optional[str]]:
    """Separate a custom message from the argument, if one was supplied."""
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        return raw, None

    first, second = raw
    if definition.shape.is_collection:
        # A bare [lo, hi] or [collection, field] is also two elements long
        if not (isinstance(first, _COLLECTIONS) and isinstance(second, str)):
            return raw, None

    if not isinstance(second, str) or not second.strip():
        raise RuleCompileError(
            "Custom message must be a non-empty string", field=field, kind=definition.kind.value
        )
    return first, second


def _compile_args(
    definition: RuleDefinition, arg: Any, field: str, companion: Optional[TypeName]
) -> Optional[tuple]:
    """Check an argument against the rule's shape. ``None`` means the rule is switched off."""
    kind = definition.kind.value

    def fail(message: str) -> RuleCompileError:
        return RuleCompileError(message, field=field, kind=kind)

    shape = definition.shape

    if shape == ArgShape.FLAG:
        if not isinstance(arg, bool):
            raise fail(f"expected true or false, got {arg!r}")
        return () if arg else None

    if shape == ArgShape.TYPE_NAME:
        try:
            return (TypeName(arg),)
        except ValueError:
            known = ", ".join(t.value for t in TypeName)
            raise fail(f"unknown type {arg!r}; expected one of: {known}") from None

    if shape == ArgShape.LENGTH:
        if isinstance(arg, bool) or not isinstance(arg, int) or arg < 0:
            raise fail(f"expected a non-negative integer, got {arg!r}")
        return (arg,)

    if shape == ArgShape.RANGE:
        if not isinstance(arg, (list, tuple)) or len(arg) != 2:
            raise fail(f"expected a [low, high] pair, got {arg!r}")
        low, high = arg
        if not (is_native_number(low) and is_native_number(high)):
            raise fail(f"range bounds must be numbers, got {arg!r}")
        if low > high:
            raise fail(f"low bound {low} is greater than high bound {high}")
        return (low, high)

    if shape == ArgShape.MEMBERS:
        if not isinstance(arg, _COLLECTIONS) or len(arg) == 0:
            raise fail(f"expected a non-empty list of values, got {arg!r}")
        members = tuple(sorted(arg, key=repr)) if isinstance(arg, (set, frozenset)) else tuple(arg)
        return (members, companion)

    if shape == ArgShape.TARGET:
        if (
            not isinstance(arg, (list, tuple))
            or len(arg) != 2
            or not all(isinstance(part, str) and part.strip() for part in arg)
        ):
            raise fail(f"expected a [collection, field] pair of names, got {arg!r}")
        return (arg[0], arg[1])

    if shape == ArgShape.PATTERN:
        if isinstance(arg, re.Pattern):
            return (arg,)
        if not isinstance(arg, str):
            raise fail(f"expected a pattern string, got {arg!r}")
        try:
            return (re.compile(arg),)
        except re.error as e:
            raise fail(f"pattern does not compile: {e}") from None

    raise fail(f"unsupported argument shape {shape.value}")


def _render(definition: RuleDefinition, field: str, args: tuple) -> str:
    """Render the default message template for a compiled directive."""
    params: dict[str, Any] = {"label": humanize(field)}
    shape = definition.shape
    if shape == ArgShape.TYPE_NAME:
        params["type"] = registry.TYPE_DESCRIPTIONS[args[0]]
    elif shape == ArgShape.LENGTH:
        params["length"] = args[0]
    elif shape == ArgShape.RANGE:
        params["low"], params["high"] = args
    elif shape == ArgShape.MEMBERS:
        params["members"] = ", ".join(str(m) for m in args[0])
    return definition.template.format(**params)
