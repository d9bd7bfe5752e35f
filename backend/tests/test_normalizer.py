"""
Tests for rule spec compilation
"""

import re

import pytest

from pienut.validation import RuleCompileError, RuleKind, TypeName, compile_rules
from pienut.validation.normalizer import humanize
from pienut.validation.registry import lookup, rule_names


class TestRegistry:
    """Tests for the rule registry"""

    def test_every_kind_registered(self):
        assert sorted(rule_names()) == sorted(k.value for k in RuleKind)

    def test_lookup_by_name(self):
        definition = lookup("unique")
        assert definition.kind == RuleKind.UNIQUE
        assert definition.is_async
        assert definition.evaluator is None

    def test_lookup_unknown(self):
        with pytest.raises(RuleCompileError, match="Unknown rule 'min_length'"):
            lookup("min_length")


class TestCompileRules:
    """Tests for compile_rules"""

    def test_preserves_declaration_order(self):
        spec = compile_rules({
            "b": {"max_len": 5, "min_len": 1},
            "a": {"type": "string"},
        })
        assert spec.field_names == ["b", "a"]
        assert [d.kind for d in spec.fields[0].directives] == [RuleKind.MAX_LEN, RuleKind.MIN_LEN]

    def test_required_is_hoisted(self):
        """Should keep required apart from the ordered directives"""
        spec = compile_rules({"name": {"min_len": 2, "required": True}})
        rules = spec.fields[0]
        assert rules.required.kind == RuleKind.REQUIRED
        assert [d.kind for d in rules.directives] == [RuleKind.MIN_LEN]

    def test_false_flags_are_dropped(self):
        spec = compile_rules({"email": {"required": False, "email": False}})
        assert spec.fields[0].required is None
        assert spec.fields[0].directives == ()

    def test_default_messages(self):
        spec = compile_rules({
            "first_name": {"required": True, "type": "alpha", "max_len": 20},
            "age": {"between": [18, 40], "not_in": [24, 30, 36]},
        })
        name, age = spec.fields
        assert name.required.message == "First name is required"
        assert [d.message for d in name.directives] == [
            "First name must be alphabetic",
            "First name must not exceed 20 characters",
        ]
        assert [d.message for d in age.directives] == [
            "Age must be between 18 and 40",
            "Age must not be one of: 24, 30, 36",
        ]

    def test_custom_messages(self):
        spec = compile_rules({
            "email": {
                "required": [True, "We need your email"],
                "unique": [["users", "email"], "Email taken"],
            },
            "age": {"between": [[18, 40], "Adults under 40 only"]},
            "code": {"regex": [r"^[A-Z]{3}$", "Three capitals please"]},
        })
        email, age, code = spec.fields
        assert email.required.message == "We need your email"
        assert email.directives[0].args == ("users", "email")
        assert email.directives[0].message == "Email taken"
        assert age.directives[0].args == (18, 40)
        assert age.directives[0].message == "Adults under 40 only"
        assert code.directives[0].message == "Three capitals please"

    def test_bare_pairs_are_arguments(self):
        """Should read [lo, hi] and [collection, field] as arguments, not messages"""
        spec = compile_rules({
            "role": {"in": ["admin", "member"]},
            "username": {"unique": ["users", "username"]},
        })
        role, username = spec.fields
        assert role.directives[0].args == (("admin", "member"), None)
        assert username.directives[0].args == ("users", "username")
        assert username.directives[0].message == "Username has already been taken"

    def test_membership_records_companion_type(self):
        spec = compile_rules({"age": {"not_in": [24, 30], "type": "int"}})
        not_in = spec.fields[0].directives[0]
        assert not_in.args == ((24, 30), TypeName.INT)

    def test_regex_precompiled(self):
        pattern = re.compile(r"\d+")
        spec = compile_rules({"a": {"regex": r"^x"}, "b": {"regex": pattern}})
        assert spec.fields[0].directives[0].args[0].pattern == "^x"
        assert spec.fields[1].directives[0].args[0] is pattern

    def test_needs_constraints(self):
        assert compile_rules({"u": {"unique": ["users", "u"]}}).needs_constraints
        assert not compile_rules({"u": {"required": True}}).needs_constraints


class TestCompileErrors:
    """Tests for malformed specs"""

    def test_unknown_rule_names_field_and_kind(self):
        with pytest.raises(RuleCompileError) as exc_info:
            compile_rules({"email": {"required": True, "emial": True}})
        assert exc_info.value.field == "email"
        assert exc_info.value.kind == "emial"
        assert "email" in str(exc_info.value)

    @pytest.mark.parametrize(
        "rules",
        [
            {"required": "yes"},
            {"type": "integer"},
            {"min_len": -1},
            {"max_len": True},
            {"between": [40, 18]},
            {"between": [18]},
            {"between": ["a", "z"]},
            {"in": []},
            {"not_in": "abc"},
            {"unique": ["users"]},
            {"unique": ["users", ""]},
            {"regex": "(unclosed"},
            {"regex": 5},
            {"email": [True, ""]},
            {"min_len": [3, 42]},
        ],
    )
    def test_malformed_arguments(self, rules):
        with pytest.raises(RuleCompileError) as exc_info:
            compile_rules({"field": rules})
        assert exc_info.value.field == "field"
        assert exc_info.value.kind == next(iter(rules))

    def test_spec_must_be_mapping(self):
        with pytest.raises(RuleCompileError):
            compile_rules([("email", {"required": True})])

    def test_field_rules_must_be_mapping(self):
        with pytest.raises(RuleCompileError, match="field 'email'"):
            compile_rules({"email": ["required"]})

    def test_field_names_must_be_text(self):
        with pytest.raises(RuleCompileError):
            compile_rules({"": {"required": True}})

    def test_compile_error_is_value_error(self):
        with pytest.raises(ValueError):
            compile_rules({"x": {"nope": 1}})


def test_humanize():
    assert humanize("email") == "Email"
    assert humanize("first_name") == "First name"
    assert humanize("zip-code") == "Zip code"
