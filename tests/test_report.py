"""Tests for text and JSON report rendering."""

import json

import pytest

import oaslint
from oaslint.motor import RuleSetExecution, apply_rules
from oaslint.report import render_json, render_text
from oaslint.rulesets import compose_ruleset

SPEC = """\
openapi: "3.0.3"
info:
  title: Pets
  version: "1"
paths: {}
"""

RULESET = """\
rules:
  info-description:
    description: Info section is missing a description
    given: $.info
    severity: error
    howToFix: Describe the API.
    then:
      field: description
      function: truthy
  info-contact:
    description: Info section is missing contact details
    given: $.info
    severity: warn
    then:
      field: contact
      function: truthy
"""


@pytest.fixture
def outcome():
    return apply_rules(RuleSetExecution(rule_set=compose_ruleset(RULESET), spec=SPEC))


class TestTextReport:
    def test_groups_by_severity(self, outcome):
        text = render_text(outcome.result_set(), spec_path="api.yaml", ruleset="custom", color=False)
        assert "oaslint report" in text
        assert "Document: api.yaml" in text
        assert text.index("-- ERROR (1) --") < text.index("-- WARN (1) --")
        assert "[info-description] api.yaml:3:3" in text
        assert "at $.info" in text
        assert "fix: Describe the API." in text
        assert "Violations: 1 errors, 1 warnings, 0 info, 0 hints" in text

    def test_hide_fix(self, outcome):
        text = render_text(outcome.result_set(), color=False, show_fix=False)
        assert "fix:" not in text

    def test_colour(self, outcome):
        text = render_text(outcome.result_set(), color=True)
        assert "\033[91mERROR\033[0m" in text

    def test_no_violations(self):
        clean = apply_rules(
            RuleSetExecution(rule_set=compose_ruleset(RULESET), spec=SPEC.replace(
                "  title: Pets\n",
                "  title: Pets\n  description: A pet store\n  contact: {name: Team}\n",
            ))
        )
        text = render_text(clean.result_set(), color=False)
        assert "No violations." in text


class TestJsonReport:
    def test_structure(self, outcome):
        doc = json.loads(render_json(outcome.result_set(), spec_path="api.yaml", ruleset="custom", fail_on="warn"))
        assert doc["tool"] == "oaslint"
        assert doc["version"] == oaslint.__version__
        assert doc["summary"] == {
            "total": 2,
            "error": 1,
            "warn": 1,
            "info": 0,
            "hint": 0,
            "fail_on": "warn",
        }
        ids = [r["rule_id"] for r in doc["results"]]
        assert sorted(ids) == ["info-contact", "info-description"]
        first = doc["results"][0]
        assert first["path"] == "$.info"
        assert first["start"] == {"line": 3, "column": 3}
        assert "ignored" not in doc

    def test_deterministic(self, outcome):
        first = render_json(outcome.result_set())
        second = render_json(outcome.result_set())
        assert first == second

    def test_ignored_section(self):
        out = apply_rules(
            RuleSetExecution(
                rule_set=compose_ruleset(RULESET),
                spec=SPEC,
                ignored_results={"info-contact": ["$.info"]},
            )
        )
        doc = json.loads(render_json(out.result_set(), ignored=out.ignored_results))
        assert [r["rule_id"] for r in doc["results"]] == ["info-description"]
        assert [r["rule_id"] for r in doc["ignored"]] == ["info-contact"]
