"""Tests for ruleset loading and composition."""

import logging

import httpx
import pytest

from oaslint.errors import EmptyRulesetError, RulesetParseError, UnknownFunctionError
from oaslint.models import Severity
from oaslint.rulesets import (
    RuleSetComposer,
    all_builtin_rules,
    builtin_ruleset,
    compose_ruleset,
    openapi_rules,
    owasp_rules,
    parse_ruleset,
    recommended_rules,
)
from oaslint.rulesets.loader import normalize_extends

RULE_A = """\
  a-rule:
    description: A
    given: $.info
    then:
      field: title
      function: truthy
"""

RULE_B = """\
  b-rule:
    description: B
    given: $.info
    severity: error
    then:
      field: version
      function: truthy
"""


class TestParseRuleset:
    def test_full_definition(self):
        rs = parse_ruleset("""\
formats: [oas3]
rules:
  my-rule:
    description: Titles must exist
    message: no title
    given: [$.info, $.components]
    severity: hint
    category: {id: information}
    resolved: false
    then:
      - field: title
        function: truthy
      - function: pattern
        field: title
        functionOptions:
          match: "^[A-Z]"
""")
        rule = rs.rules["my-rule"]
        assert rule.given == ["$.info", "$.components"]
        assert rule.severity == Severity.HINT
        assert rule.category.id == "information"
        assert rule.resolved is False
        assert rule.formats == ["oas3"]
        assert [a.function for a in rule.then] == ["truthy", "pattern"]
        assert rule.then[1].function_options == {"match": "^[A-Z]"}

    def test_defaults(self):
        rs = parse_ruleset("rules:\n" + RULE_A)
        rule = rs.rules["a-rule"]
        assert rule.severity == Severity.WARN
        assert rule.resolved is True
        assert rule.category.id == "validation"

    def test_scalar_entries_are_kept_as_definitions(self):
        rs = parse_ruleset("rules:\n  info-contact: \"off\"\n  operation-tags: true\n  tag-description: off\n")
        assert rs.rules == {}
        # unquoted off is a YAML boolean
        assert rs.rule_definitions == {
            "info-contact": "off",
            "operation-tags": True,
            "tag-description": False,
        }

    def test_not_a_mapping(self):
        with pytest.raises(RulesetParseError):
            parse_ruleset("- just\n- a list\n")

    def test_invalid_yaml(self):
        with pytest.raises(RulesetParseError):
            parse_ruleset("rules: {unclosed\n")

    def test_missing_then(self):
        with pytest.raises(RulesetParseError):
            parse_ruleset("rules:\n  bad:\n    given: $\n")

    def test_unknown_severity(self):
        with pytest.raises(RulesetParseError):
            parse_ruleset("rules:\n  bad:\n    given: $\n    severity: fatal\n    then: {function: truthy}\n")


class TestNormalizeExtends:
    def test_string(self):
        assert normalize_extends("spectral:oas") == [("spectral:oas", "spectral:oas")]

    def test_mixed_list(self):
        assert normalize_extends(["a.yaml", ["spectral:oas", "all"]]) == [
            ("a.yaml", "a.yaml"),
            ("spectral:oas", "all"),
        ]

    def test_bad_entry(self):
        with pytest.raises(RulesetParseError):
            normalize_extends([{"a": 1}])


class TestPresets:
    def test_catalogues_do_not_overlap(self):
        assert not set(openapi_rules()) & set(owasp_rules())

    def test_all_is_the_union(self):
        assert set(all_builtin_rules()) == set(openapi_rules()) | set(owasp_rules())

    def test_recommended_subset_of_all(self):
        assert set(recommended_rules()) <= set(all_builtin_rules())
        assert all(r.recommended for r in recommended_rules().values())

    def test_presets_are_fresh_copies(self):
        first = openapi_rules()
        first["info-contact"].severity = Severity.HINT
        assert openapi_rules()["info-contact"].severity == Severity.WARN

    def test_builtin_selectors(self):
        assert set(builtin_ruleset("all").rules) == set(all_builtin_rules())
        assert set(builtin_ruleset("owasp").rules) == set(owasp_rules())
        assert builtin_ruleset("off").rules == {}

    def test_unknown_selector(self):
        with pytest.raises(RulesetParseError):
            builtin_ruleset("everything")

    def test_every_builtin_function_is_registered(self):
        composer = RuleSetComposer()
        for rule in all_builtin_rules().values():
            for action in rule.then:
                assert action.function in composer.functions, rule.id


class TestCompose:
    def test_extends_preset(self):
        rs = compose_ruleset("extends: [[spectral:oas, recommended]]\n")
        assert set(rs.rules) == set(recommended_rules())

    def test_extends_all(self):
        rs = compose_ruleset("extends: [[spectral:oas, all]]\n")
        assert set(rs.rules) == set(all_builtin_rules())

    def test_vacuum_spelling(self):
        rs = compose_ruleset("extends: [[vacuum:oas, recommended]]\n")
        assert set(rs.rules) == set(recommended_rules())

    def test_owasp_preset(self):
        rs = compose_ruleset("extends: [[spectral:owasp, recommended]]\n")
        assert set(rs.rules) == set(owasp_rules())

    def test_override_to_false_removes_rule(self):
        rs = compose_ruleset("""\
extends: [[spectral:oas, recommended]]
rules:
  info-contact: false
""")
        assert "info-contact" not in rs.rules
        assert "info-description" in rs.rules

    def test_override_to_off_removes_rule(self):
        rs = compose_ruleset("""\
extends: [[spectral:oas, recommended]]
rules:
  info-description: "off"
""")
        assert "info-description" not in rs.rules

    def test_severity_override(self):
        rs = compose_ruleset("""\
extends: [[spectral:oas, recommended]]
rules:
  info-description: hint
""")
        assert rs.rules["info-description"].severity == Severity.HINT
        assert recommended_rules()["info-description"].severity == Severity.ERROR

    def test_enable_builtin_with_true(self):
        rs = compose_ruleset("""\
extends: [[spectral:oas, "off"]]
rules:
  info-license: true
""")
        assert list(rs.rules) == ["info-license"]

    def test_unknown_override_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            rs = compose_ruleset("""\
extends: [[spectral:oas, "off"]]
rules:
  no-such-rule: error
""")
        assert rs.rules == {}
        assert "no-such-rule" in caplog.text

    def test_off_then_own_rule(self):
        rs = compose_ruleset('extends: [[spectral:oas, "off"]]\nrules:\n' + RULE_A)
        assert list(rs.rules) == ["a-rule"]

    def test_empty_ruleset(self):
        with pytest.raises(EmptyRulesetError):
            compose_ruleset("description: nothing here\n")

    def test_unknown_function(self):
        with pytest.raises(UnknownFunctionError) as exc:
            compose_ruleset("""\
rules:
  r:
    given: $
    then:
      function: doesNotExist
""")
        assert exc.value.function == "doesNotExist"

    def test_custom_function_is_accepted(self):
        rs = compose_ruleset(
            "rules:\n  r:\n    given: $\n    then:\n      function: mine\n",
            functions={"mine": lambda nodes, ctx: []},
        )
        assert "r" in rs.rules

    def test_regex_options_are_precompiled(self):
        rs = compose_ruleset("""\
rules:
  r:
    given: $.info
    then:
      field: title
      function: pattern
      functionOptions:
        match: "^[A-Z]"
""")
        assert rs.rules["r"].precompiled_pattern.pattern == "^[A-Z]"

    def test_composition_is_deterministic(self):
        data = "extends: [[spectral:oas, all]]\nrules:\n  info-contact: error\n" + RULE_A
        first = compose_ruleset(data)
        second = compose_ruleset(data)
        assert list(first.rules) == list(second.rules)
        assert [r.severity for r in first.rules.values()] == [
            r.severity for r in second.rules.values()
        ]

    def test_adding_an_extends_never_removes_rules(self):
        base = compose_ruleset("extends: [[spectral:oas, recommended]]\n")
        more = compose_ruleset("extends: [[spectral:oas, recommended], [spectral:owasp, all]]\n")
        assert set(base.rules) <= set(more.rules)


class TestLocalExtends:
    def test_relative_file(self, tmp_path):
        (tmp_path / "base.yaml").write_text("rules:\n" + RULE_A)
        child = tmp_path / "child.yaml"
        child.write_text("extends: [base.yaml]\nrules:\n" + RULE_B)
        rs = RuleSetComposer().compose_file(str(child))
        assert set(rs.rules) == {"a-rule", "b-rule"}

    def test_child_overrides_parent(self, tmp_path):
        (tmp_path / "base.yaml").write_text("rules:\n" + RULE_A + RULE_B)
        child = tmp_path / "child.yaml"
        child.write_text("extends: [base.yaml]\nrules:\n  b-rule: false\n  a-rule: error\n")
        rs = RuleSetComposer().compose_file(str(child))
        assert list(rs.rules) == ["a-rule"]
        assert rs.rules["a-rule"].severity == Severity.ERROR

    def test_cycle_terminates_with_union(self, tmp_path, caplog):
        a = tmp_path / "A.yaml"
        b = tmp_path / "B.yaml"
        a.write_text("extends: [B.yaml]\nrules:\n" + RULE_A)
        b.write_text("extends: [A.yaml]\nrules:\n" + RULE_B)
        with caplog.at_level(logging.WARNING):
            rs = RuleSetComposer().compose_file(str(a))
        assert set(rs.rules) == {"a-rule", "b-rule"}
        assert "circular" in caplog.text
        assert "A.yaml -> " in caplog.text
        assert "B.yaml" in caplog.text

    def test_missing_parent_is_skipped(self, tmp_path, caplog):
        child = tmp_path / "child.yaml"
        child.write_text("extends: [missing.yaml]\nrules:\n" + RULE_A)
        with caplog.at_level(logging.ERROR):
            rs = RuleSetComposer().compose_file(str(child))
        assert list(rs.rules) == ["a-rule"]
        assert "missing.yaml" in caplog.text

    def test_empty_file(self, tmp_path):
        empty = tmp_path / "empty.yaml"
        empty.write_text("")
        with pytest.raises(EmptyRulesetError):
            RuleSetComposer().compose_file(str(empty))


class TestRemoteExtends:
    @pytest.fixture
    def client(self):
        def handler(request):
            if request.url.path == "/base.yaml":
                return httpx.Response(200, text="rules:\n" + RULE_A)
            if request.url.path == "/nested/child.yaml":
                return httpx.Response(200, text="extends: [../base.yaml]\nrules:\n" + RULE_B)
            return httpx.Response(404)

        with httpx.Client(transport=httpx.MockTransport(handler)) as c:
            yield c

    def test_remote_parent(self, client):
        rs = compose_ruleset(
            "extends: [https://rules.example.com/base.yaml]\nrules:\n" + RULE_B,
            client=client,
        )
        assert set(rs.rules) == {"a-rule", "b-rule"}

    def test_relative_extends_inside_remote(self, client):
        rs = compose_ruleset(
            "extends: [https://rules.example.com/nested/child.yaml]\n",
            client=client,
        )
        assert set(rs.rules) == {"a-rule", "b-rule"}

    def test_fetch_failure_is_logged(self, client, caplog):
        with caplog.at_level(logging.ERROR):
            rs = compose_ruleset(
                "extends: [https://rules.example.com/gone.yaml]\nrules:\n" + RULE_A,
                client=client,
            )
        assert list(rs.rules) == ["a-rule"]
        assert "gone.yaml" in caplog.text

    def test_compose_file_from_url(self, client):
        rs = RuleSetComposer(client=client).compose_file("https://rules.example.com/base.yaml")
        assert list(rs.rules) == ["a-rule"]
