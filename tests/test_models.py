"""Tests for oaslint.models."""

import pytest

from oaslint.document.nodes import get_value, parse_ast
from oaslint.models import (
    Origin,
    ResultSet,
    RuleAction,
    RuleFunctionResult,
    Severity,
    get_category,
    operation_path,
    parse_severity,
)

DOC = parse_ast("""\
openapi: 3.0.3
info:
  title: T
  version: "1"
paths:
  /pets:
    get:
      summary: list
""")


def _res(rule_id, severity, node, path="$", message="m", origin=None):
    return RuleFunctionResult(
        message=message,
        start_node=node,
        path=path,
        rule_id=rule_id,
        severity=severity,
        category=get_category("validation"),
        origin=origin,
    )


class TestRuleAction:
    def test_defaults(self):
        action = RuleAction("truthy")
        assert action.function == "truthy"
        assert action.field == ""
        assert action.function_options == {}

    def test_options_are_not_shared(self):
        first, second = RuleAction("truthy"), RuleAction("falsy")
        first.function_options["x"] = 1
        assert second.function_options == {}

    def test_keywords(self):
        action = RuleAction(function="pattern", field="name", function_options={"match": "^a"})
        assert action.field == "name"
        assert action.function_options == {"match": "^a"}


class TestSeverity:
    def test_ordering(self):
        assert Severity.HINT < Severity.INFO < Severity.WARN < Severity.ERROR

    def test_from_str(self):
        assert Severity.from_str("error") == Severity.ERROR
        assert Severity.from_str("WARN") == Severity.WARN
        assert Severity.from_str("warning") == Severity.WARN

    def test_from_str_unknown(self):
        with pytest.raises(KeyError):
            Severity.from_str("fatal")

    def test_str(self):
        assert str(Severity.INFO) == "info"


class TestParseSeverity:
    def test_off_disables(self):
        assert parse_severity("off") is None
        assert parse_severity(False) is None

    def test_true_and_missing_default_to_warn(self):
        assert parse_severity(True) == Severity.WARN
        assert parse_severity(None) == Severity.WARN
        assert parse_severity("true") == Severity.WARN

    def test_named(self):
        assert parse_severity("hint") == Severity.HINT


class TestCategories:
    def test_unknown_falls_back_to_validation(self):
        assert get_category("nope").id == "validation"
        assert get_category(None).id == "validation"

    def test_known(self):
        assert get_category("owasp").name == "OWASP"


class TestResultLocation:
    def test_positions_are_one_based(self):
        info = get_value(DOC, "info")
        r = _res("r", Severity.WARN, info)
        assert r.start.line == 3
        assert r.start.column == 3

    def test_no_node_defaults_to_first_line(self):
        r = _res("r", Severity.WARN, None)
        assert (r.start.line, r.start.column) == (1, 1)

    def test_to_dict(self):
        r = _res("r", Severity.ERROR, get_value(DOC, "info"), path="$.info")
        doc = r.to_dict()
        assert doc["rule_id"] == "r"
        assert doc["severity"] == "error"
        assert doc["path"] == "$.info"
        assert doc["start"]["line"] == 3
        assert "origin" not in doc


class TestResultSet:
    @pytest.fixture
    def results(self):
        paths = get_value(DOC, "paths")
        info = get_value(DOC, "info")
        return [
            _res("b-rule", Severity.WARN, paths, "$.paths['/pets'].get"),
            _res("a-rule", Severity.ERROR, paths, "$.paths['/pets']"),
            _res("c-rule", Severity.INFO, info, "$.info"),
            _res("d-rule", Severity.HINT, info, "$.info", origin=Origin("other.yaml", 1, 1)),
        ]

    def test_sorted_is_total_order(self, results):
        ordered = ResultSet(results).sorted()
        assert [r.rule_id for r in ordered] == ["c-rule", "a-rule", "b-rule", "d-rule"]

    def test_sorting_is_deterministic(self, results):
        first = [r.rule_id for r in ResultSet(list(results)).sorted()]
        second = [r.rule_id for r in ResultSet(list(reversed(results))).sorted()]
        assert first == second

    def test_sort_by_line_is_stable(self, results):
        rs = ResultSet(list(results)).sort_by_line()
        assert [r.rule_id for r in rs] == ["c-rule", "b-rule", "a-rule", "d-rule"]

    def test_partitions_cover_every_result(self, results):
        rs = ResultSet(results)
        for grouping in (rs.by_severity(), rs.by_category(), rs.by_rule_id()):
            assert sum(len(v) for v in grouping.values()) == len(rs)

    def test_partition_is_idempotent(self, results):
        rs = ResultSet(results)
        again = ResultSet(rs.by_severity()[Severity.ERROR]).by_severity()
        assert list(again) == [Severity.ERROR]
        assert again[Severity.ERROR] == rs.by_severity()[Severity.ERROR]

    def test_by_operation_path(self, results):
        grouped = ResultSet(results).by_operation_path()
        assert list(grouped) == ["/pets"]
        assert {r.rule_id for r in grouped["/pets"]} == {"a-rule", "b-rule"}

    def test_severity_counts(self, results):
        counts = ResultSet(results).severity_counts()
        assert counts[Severity.ERROR] == 1
        assert counts[Severity.HINT] == 1

    def test_filter(self, results):
        rs = ResultSet(results)
        assert len(rs.filter(severity=Severity.WARN)) == 1
        assert len(rs.filter(rule_id="c-rule")) == 1
        assert len(rs.filter(category="owasp")) == 0

    def test_merge(self, results):
        merged = ResultSet(results[:2]).merge(ResultSet(results[2:]))
        assert len(merged) == 4


class TestOperationPath:
    def test_bracketed(self):
        assert operation_path("$.paths['/a/{id}'].get") == "/a/{id}"

    def test_not_an_operation(self):
        assert operation_path("$.info") is None
