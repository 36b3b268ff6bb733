"""Tests for the core rule functions."""

import re

import pytest

from oaslint.document.nodes import get_value, parse_ast
from oaslint.functions import BUILTIN_FUNCTIONS, build_registry, validate_function_options
from oaslint.functions.base import RuleFunction, RuleFunctionContext, as_rule_function
from oaslint.models import Rule, RuleAction


def _ctx(function, field="", options=None, given="$.x", message=""):
    action = RuleAction(function=function, field=field, function_options=dict(options or {}))
    rule = Rule(
        id="test-rule",
        given=[given],
        then=[action],
        description="Test rule",
        message=message,
    )
    return RuleFunctionContext(rule=rule, action=action, given=given, options=action.function_options)


def _run(function, node, field="", options=None, given="$.x"):
    ctx = _ctx(function, field, options, given)
    return BUILTIN_FUNCTIONS[function].run([node], ctx)


def _node(text):
    """The value of the top-level ``x`` key in *text*."""
    return get_value(parse_ast(text), "x")


class TestTruthyFalsy:
    def test_truthy_passes(self):
        assert _run("truthy", _node("x: {a: yes please}"), field="a") == []

    @pytest.mark.parametrize("doc", ["x: {b: 1}", "x: {a: ''}", "x: {a: false}", "x: {a: 0}", "x: {a: []}"])
    def test_truthy_fails(self, doc):
        results = _run("truthy", _node(doc), field="a")
        assert len(results) == 1
        assert results[0].message == "'a' must be truthy"
        assert results[0].path == "$.x"

    def test_falsy_absent_field_passes(self):
        assert _run("falsy", _node("x: {b: 1}"), field="a") == []

    def test_falsy_fails_on_value(self):
        results = _run("falsy", _node("x: {a: hello}"), field="a")
        assert [r.message for r in results] == ["'a' must be falsy"]

    @pytest.mark.parametrize("doc", ["x: {a: hello}", "x: {a: ''}", "x: {a: 0}", "x: {a: true}"])
    def test_present_field_fails_exactly_one(self, doc):
        node = _node(doc)
        total = len(_run("truthy", node, field="a")) + len(_run("falsy", node, field="a"))
        assert total == 1

    def test_nested_field(self):
        assert _run("truthy", _node("x: {contact: {email: a@b.c}}"), field="contact.email") == []


class TestDefinedUndefined:
    def test_defined(self):
        assert _run("defined", _node("x: {a: ''}"), field="a") == []
        results = _run("defined", _node("x: {b: 1}"), field="a")
        assert len(results) == 1
        assert "`a` must be defined" in results[0].message

    def test_undefined(self):
        assert _run("undefined", _node("x: {b: 1}"), field="a") == []
        assert len(_run("undefined", _node("x: {a: 1}"), field="a")) == 1


class TestXor:
    @pytest.mark.parametrize(
        "doc, expected",
        [
            ("x: {a: 1}", 0),
            ("x: {b: 1}", 0),
            ("x: {a: 1, b: 2}", 1),
            ("x: {c: 1}", 1),
        ],
    )
    def test_exactly_one(self, doc, expected):
        results = _run("xor", _node(doc), options={"properties": ["a", "b"]})
        assert len(results) == expected

    def test_comma_separated_properties(self):
        results = _run("xor", _node("x: {a: 1, b: 2}"), options={"properties": "a, b"})
        assert "`a` and `b` must not be both defined or undefined" in results[0].message


class TestAlphabetical:
    @pytest.mark.parametrize(
        "doc",
        [
            "x: [apple, banana, cherry]",
            "x: [1, 2, 10]",
            "x: {alpha: 1, beta: 2}",
            "x: [{name: a}, {name: b}]",
        ],
    )
    def test_sorted_input(self, doc):
        assert _run("alphabetical", _node(doc), options={"keyedBy": "name"} if "name" in doc else None) == []

    def test_reversed_strings(self):
        results = _run("alphabetical", _node("x: [cherry, banana, apple]"))
        assert len(results) == 1
        assert results[0].message == "'banana' must be placed before 'cherry' (alphabetical)"

    def test_reversed_numbers(self):
        results = _run("alphabetical", _node("x: [10, 2]"))
        assert "need to be swapped" in results[0].message

    def test_keyed_by(self):
        results = _run(
            "alphabetical",
            _node("x: [{name: b}, {name: a}]"),
            options={"keyedBy": "name"},
        )
        assert results[0].message == "'a' must be placed before 'b' (alphabetical)"

    def test_mapping_keys(self):
        results = _run("alphabetical", _node("x: {zeta: 1, alpha: 2}"))
        assert len(results) == 1

    def test_objects_without_keyed_by_are_skipped(self):
        assert _run("alphabetical", _node("x: [{name: b}, {name: a}]")) == []


class TestPattern:
    def test_match(self):
        assert _run("pattern", _node("x: Hello"), options={"match": "^[A-Z]"}) == []

    def test_match_fails(self):
        results = _run("pattern", _node("x: hello"), options={"match": "^[A-Z]"})
        assert results[0].message == "'hello' does not match the expression '^[A-Z]'"

    def test_not_match_on_matching_string(self):
        results = _run("pattern", _node("x: Hello"), options={"notMatch": "^[A-Z]"})
        assert len(results) == 1
        assert results[0].message == "'Hello' matches the expression '^[A-Z]'"

    def test_field(self):
        results = _run("pattern", _node("x: {name: bad name}"), field="name", options={"notMatch": "\\s"})
        assert len(results) == 1

    def test_slash_flags(self):
        assert _run("pattern", _node("x: HELLO"), options={"match": "/^hello$/i"}) == []

    def test_invalid_expression(self):
        results = _run("pattern", _node("x: hello"), options={"match": "(["})
        assert "cannot be compiled" in results[0].message

    def test_uses_precompiled_pattern(self):
        ctx = _ctx("pattern", options={"match": "^a"})
        ctx.precompiled_pattern = re.compile("^a")
        assert BUILTIN_FUNCTIONS["pattern"].run([_node("x: abc")], ctx) == []


class TestLength:
    @pytest.mark.parametrize(
        "doc, expected",
        [
            ("x: [1]", 1),
            ("x: [1, 2]", 0),
            ("x: [1, 2, 3]", 0),
            ("x: [1, 2, 3, 4]", 1),
        ],
    )
    def test_container_bounds(self, doc, expected):
        results = _run("length", _node(doc), options={"min": 2, "max": 3})
        assert len(results) == expected

    def test_string(self):
        results = _run("length", _node("x: {d: short}"), field="d", options={"min": 10})
        assert results[0].message == "'short' must be longer/greater than '10'"

    def test_number(self):
        results = _run("length", _node("x: 42"), options={"max": 10})
        assert results[0].message == "'42' must not be longer/greater than '10'"


class TestEnumeration:
    def test_value_in_set(self):
        assert _run("enumeration", _node("x: b"), options={"values": ["a", "b"]}) == []

    def test_value_not_in_set(self):
        results = _run("enumeration", _node("x: c"), options={"values": "a, b"})
        assert results[0].message == "'c' must equal to one of the following: a, b"


class TestCasing:
    @pytest.mark.parametrize(
        "casing, good, bad",
        [
            ("camel", "fooBar", "FooBar"),
            ("pascal", "FooBar", "fooBar"),
            ("kebab", "foo-bar", "foo_bar"),
            ("snake", "foo_bar", "foo-bar"),
            ("macro", "FOO_BAR", "foo_bar"),
            ("flat", "foobar", "fooBar"),
        ],
    )
    def test_types(self, casing, good, bad):
        assert _run("casing", _node(f"x: {good}"), options={"type": casing}) == []
        results = _run("casing", _node(f"x: {bad}"), options={"type": casing})
        assert results[0].message == f"'{bad}' is not {casing} case!"

    def test_disallow_digits(self):
        results = _run("casing", _node("x: foo1"), options={"type": "flat", "disallowDigits": True})
        assert len(results) == 1

    def test_separator(self):
        options = {"type": "kebab", "separator.char": "/", "separator.allowLeading": True}
        assert _run("casing", _node("x: /foo-bar/baz"), options=options) == []

    def test_mapping_keys(self):
        results = _run("casing", _node("x: {goodKey: 1, bad_key: 2}"), options={"type": "camel"})
        assert [r.message for r in results] == ["'bad_key' is not camel case!"]


class TestSchema:
    def test_valid(self):
        options = {"schema": {"type": "string"}}
        assert _run("schema", _node("x: {F: hello}"), field="F", options=options) == []

    def test_invalid(self):
        options = {"schema": {"type": "string"}}
        results = _run("schema", _node("x: {F: 12}"), field="F", options=options)
        assert len(results) == 1
        assert results[0].message.startswith("Test rule: ")
        assert results[0].path == "$.x[0]"

    def test_missing_field_skipped(self):
        options = {"schema": {"type": "string"}}
        assert _run("schema", _node("x: {G: 1}"), field="F", options=options) == []

    def test_force_validation_reports_missing_field(self):
        options = {"schema": {"type": "string"}, "forceValidation": True}
        results = _run("schema", _node("x: {G: 1}"), field="F", options=options)
        assert len(results) == 1
        assert "`F`, is missing and is required" in results[0].message
        assert results[0].path == "$.x[0]"

    def test_validate_current_node(self):
        options = {"schema": {"type": "object", "required": ["F"]}, "forceValidationOnCurrentNode": True}
        results = _run("schema", _node("x: {G: 1}"), field="G", options=options)
        assert len(results) == 1

    def test_unpack(self):
        options = {"schema": {"type": "integer"}, "unpack": True}
        results = _run("schema", _node("x: [1, two, 3]"), options=options)
        assert [r.path for r in results] == ["$.x[1]"]


class TestOptionValidation:
    def test_valid_options(self):
        ctx = _ctx("length", options={"min": 1})
        assert validate_function_options(BUILTIN_FUNCTIONS["length"], ctx) == (True, [])

    def test_too_few(self):
        ctx = _ctx("length")
        valid, problems = validate_function_options(BUILTIN_FUNCTIONS["length"], ctx)
        assert valid is False
        assert "minimum property number not met" in problems[0]

    def test_too_many(self):
        ctx = _ctx("xor", options={"properties": ["a", "b", "c"]})
        valid, problems = validate_function_options(BUILTIN_FUNCTIONS["xor"], ctx)
        assert valid is False
        assert "'3' provided" in problems[0]

    def test_missing_required(self):
        ctx = _ctx("schema")
        valid, problems = validate_function_options(BUILTIN_FUNCTIONS["schema"], ctx)
        assert valid is False
        assert problems[0].startswith("'schema' needs a 'schema' to validate against")

    def test_missing_field_is_reported_but_valid(self):
        ctx = _ctx("truthy")
        valid, problems = validate_function_options(BUILTIN_FUNCTIONS["truthy"], ctx)
        assert valid is True
        assert problems == ["'truthy' requires a 'field' value to be set"]


class TestRegistry:
    def test_custom_callable_is_wrapped(self):
        registry = build_registry({"mine": lambda nodes, ctx: []})
        assert isinstance(registry["mine"], RuleFunction)
        assert registry["mine"].run([], _ctx("mine")) == []

    def test_custom_overrides_builtin(self):
        class Loud(RuleFunction):
            name = "truthy"

        registry = build_registry({"truthy": Loud()})
        assert isinstance(registry["truthy"], Loud)
        assert not isinstance(BUILTIN_FUNCTIONS["truthy"], Loud)

    def test_not_callable(self):
        with pytest.raises(TypeError):
            as_rule_function("bad", 42)
