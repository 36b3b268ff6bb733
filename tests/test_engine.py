"""Tests for the execution engine (oaslint.motor)."""

import threading
import time

import pytest

from oaslint.errors import DocumentParseError
from oaslint.functions import BUILTIN_FUNCTIONS
from oaslint.functions.base import result
from oaslint.models import Severity
from oaslint.motor import RuleSetExecution, apply_rules
from oaslint.motor.inline_ignore import IGNORED_MESSAGE
from oaslint.rulesets import builtin_ruleset, compose_ruleset

SPEC_31 = """\
openapi: "3.1.0"
info: {title: T, version: "1"}
components:
  schemas:
    T: {type: [integer]}
"""

INFO_DESCRIPTION_RULE = """\
rules:
  info-description:
    description: Info section is missing a description
    given: $.info
    severity: error
    then:
      field: description
      function: truthy
"""


def _slow(nodes, ctx):
    time.sleep(0.1)
    return [result("slow finding", nodes[0], "$")]


def _boom(nodes, ctx):
    raise RuntimeError("function blew up")


def _custom_rule(function, rule_id="custom"):
    return compose_ruleset(
        f"rules:\n  {rule_id}:\n    given: $\n    then:\n      function: {function}\n",
        functions={function: lambda nodes, ctx: []},
    )


def _run(ruleset, spec, **kwargs):
    return apply_rules(RuleSetExecution(rule_set=ruleset, spec=spec, **kwargs))


class TestBuiltinPresets:
    def test_all_preset_flags_unbounded_integer(self):
        out = _run(builtin_ruleset("all"), SPEC_31)
        found = {(r.rule_id, r.path) for r in out.results}
        assert ("owasp-integer-limit", "$.components.schemas['T']") in found
        assert ("owasp-integer-format", "$.components.schemas['T']") in found
        assert out.errors == []

    def test_results_are_stamped(self):
        out = _run(builtin_ruleset("all"), SPEC_31)
        limit = next(r for r in out.results if r.rule_id == "owasp-integer-limit")
        assert limit.severity == Severity.ERROR
        assert limit.category.id == "owasp"
        assert limit.rule.id == "owasp-integer-limit"

    def test_spec_info_and_index(self):
        out = _run(builtin_ruleset("recommended"), SPEC_31)
        assert out.spec_info.format == "oas3_1"
        assert out.index is not None
        assert out.doctor_document is not None

    def test_off_preset_runs_nothing(self):
        out = _run(builtin_ruleset("off"), SPEC_31)
        assert out.results == []

    def test_format_filter(self):
        out = _run(builtin_ruleset("recommended"), SPEC_31)
        assert not any(r.rule_id.startswith("oas2-") for r in out.results)


class TestInlineIgnore:
    def test_ignored_rule_moves_to_ignored_results(self):
        spec = """\
openapi: "3.1.0"
info: {title: T, version: "1", x-lint-ignore: ["info-description"]}
paths: {}
"""
        out = _run(compose_ruleset(INFO_DESCRIPTION_RULE), spec)
        assert out.results == []
        assert len(out.ignored_results) == 1
        assert out.ignored_results[0].rule_id == "info-description"
        assert out.ignored_results[0].message == IGNORED_MESSAGE

    def test_scalar_directive(self):
        spec = """\
openapi: "3.1.0"
info:
  title: T
  version: "1"
  x-lint-ignore: info-description
paths: {}
"""
        out = _run(compose_ruleset(INFO_DESCRIPTION_RULE), spec)
        assert out.results == []
        assert [r.rule_id for r in out.ignored_results] == ["info-description"]

    def test_other_rules_still_fire(self):
        spec = """\
openapi: "3.1.0"
info: {title: T, version: "1", x-lint-ignore: ["something-else"]}
paths: {}
"""
        out = _run(compose_ruleset(INFO_DESCRIPTION_RULE), spec)
        assert [r.rule_id for r in out.results] == ["info-description"]
        assert out.ignored_results == []

    def test_directive_silences_descendants(self):
        spec = """\
openapi: "3.1.0"
info: {title: T, version: "1"}
x-lint-ignore: [info-description]
paths: {}
"""
        out = _run(compose_ruleset(INFO_DESCRIPTION_RULE), spec)
        assert out.results == []
        assert len(out.ignored_results) == 1


class TestExternalIgnore:
    def test_ignore_list_by_path(self):
        spec = 'openapi: "3.1.0"\ninfo: {title: T, version: "1"}\npaths: {}\n'
        out = _run(
            compose_ruleset(INFO_DESCRIPTION_RULE),
            spec,
            ignored_results={"info-description": ["$.info"]},
        )
        assert out.results == []
        assert [r.rule_id for r in out.ignored_results] == ["info-description"]

    def test_other_paths_are_kept(self):
        spec = 'openapi: "3.1.0"\ninfo: {title: T, version: "1"}\npaths: {}\n'
        out = _run(
            compose_ruleset(INFO_DESCRIPTION_RULE),
            spec,
            ignored_results={"info-description": ["$.paths"]},
        )
        assert len(out.results) == 1


class TestTimeoutAndCancel:
    def test_slow_rule_is_silent(self):
        ruleset = _custom_rule("slow")
        out = _run(ruleset, SPEC_31, timeout=0.02, custom_functions={"slow": _slow})
        assert out.results == []
        assert out.errors == []

    def test_slow_rule_within_timeout_reports(self):
        ruleset = _custom_rule("slow")
        out = _run(ruleset, SPEC_31, timeout=2.0, custom_functions={"slow": _slow})
        assert [r.message for r in out.results] == ["slow finding"]

    def test_timeout_does_not_affect_other_rules(self):
        ruleset = compose_ruleset(
            INFO_DESCRIPTION_RULE
            + "  custom:\n    given: $\n    then:\n      function: slow\n",
            functions={"slow": _slow},
        )
        spec = 'openapi: "3.1.0"\ninfo: {title: T, version: "1"}\npaths: {}\n'
        out = _run(ruleset, spec, timeout=0.02, custom_functions={"slow": _slow})
        assert [r.rule_id for r in out.results] == ["info-description"]

    def test_abandoned_function_sees_cancellation(self):
        saw_cancel = threading.Event()

        def patient(nodes, ctx):
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline:
                if ctx.cancelled:
                    saw_cancel.set()
                    break
                time.sleep(0.01)
            return [result("late finding", nodes[0], "$")]

        ruleset = _custom_rule("patient")
        out = _run(ruleset, SPEC_31, timeout=0.05, custom_functions={"patient": patient})
        assert out.results == []
        assert saw_cancel.wait(2.0)

    def test_cancelled_run_publishes_nothing(self):
        cancel = threading.Event()
        cancel.set()
        ruleset = _custom_rule("slow")
        out = _run(ruleset, SPEC_31, timeout=5.0, cancel=cancel, custom_functions={"slow": _slow})
        assert out.results == []


class TestFunctionFailures:
    def test_exception_is_recorded(self):
        ruleset = _custom_rule("boom")
        out = _run(ruleset, SPEC_31, custom_functions={"boom": _boom})
        assert out.results == []
        assert len(out.errors) == 1
        assert isinstance(out.errors[0], RuntimeError)

    def test_invalid_options_yield_one_result(self):
        ruleset = compose_ruleset("""\
rules:
  needs-values:
    given: $.info
    then:
      field: title
      function: enumeration
""")
        out = _run(ruleset, SPEC_31)
        assert len(out.results) == 1
        assert out.results[0].message.startswith("'enumerate' needs 'values' to operate.")
        assert out.results[0].path == "$.info"

    @pytest.mark.parametrize(
        "function",
        sorted(name for name, fn in BUILTIN_FUNCTIONS.items() if fn.schema().required),
    )
    def test_missing_required_options_for_every_builtin(self, function):
        ruleset = compose_ruleset(
            f"rules:\n  needs-options:\n    given: $.info\n    then:\n"
            f"      field: title\n      function: {function}\n"
        )
        out = _run(ruleset, SPEC_31)
        found = [r for r in out.results if r.rule_id == "needs-options"]
        assert len(found) == 1
        assert BUILTIN_FUNCTIONS[function].schema().error_message in found[0].message
        assert found[0].path == "$.info"
        assert out.errors == []

    def test_unknown_function_at_runtime(self):
        ruleset = _custom_rule("vanished")
        out = _run(ruleset, SPEC_31)
        assert out.results[0].message == "Unknown function 'vanished' in rule 'custom'"


class TestDocumentChecks:
    def test_parse_error_becomes_build_index_result(self):
        out = _run(builtin_ruleset("recommended"), "openapi: [unclosed\n")
        assert [r.rule_id for r in out.results] == ["build-index"]
        assert out.results[0].path == "$"
        assert isinstance(out.errors[0], DocumentParseError)

    def test_unresolvable_reference(self):
        spec = """\
openapi: "3.0.3"
info: {title: T, version: "1"}
paths: {}
components:
  schemas:
    A:
      $ref: '#/components/schemas/Missing'
"""
        out = _run(builtin_ruleset("off"), spec)
        problems = [r for r in out.results if r.rule_id == "resolving-references"]
        assert len(problems) == 1
        assert problems[0].severity == Severity.ERROR

    def test_circular_reference(self):
        spec = """\
openapi: "3.0.3"
info: {title: T, version: "1"}
paths: {}
components:
  schemas:
    Node:
      type: object
      properties:
        child:
          $ref: '#/components/schemas/Node'
"""
        out = _run(builtin_ruleset("off"), spec)
        loops = [r for r in out.results if r.rule_id == "circular-references"]
        assert len(loops) == 1
        assert loops[0].severity == Severity.WARN
        assert loops[0].paths

    def test_circular_array_reference_can_be_ignored(self):
        spec = """\
openapi: "3.0.3"
info: {title: T, version: "1"}
paths: {}
components:
  schemas:
    Tree:
      type: array
      items:
        $ref: '#/components/schemas/Tree'
"""
        out = _run(builtin_ruleset("off"), spec, ignore_circular_array_ref=True)
        assert not any(r.rule_id == "circular-references" for r in out.results)

    def test_structural_violation(self):
        spec = """\
openapi: "3.0.3"
info:
  version: "1"
paths: {}
"""
        out = _run(builtin_ruleset("recommended"), spec)
        structural = [r for r in out.results if r.rule_id == "oas3-schema"]
        assert structural
        assert all(r.message.startswith("schema invalid: ") for r in structural)

    def test_skip_document_check(self):
        spec = 'openapi: "3.0.3"\ninfo:\n  version: "1"\npaths: {}\n'
        out = _run(builtin_ruleset("recommended"), spec, skip_document_check=True)
        assert not any(r.rule_id == "oas3-schema" for r in out.results)

    def test_unknown_version_is_an_error(self):
        spec = 'openapi: "9.0.0"\ninfo: {title: T, version: "1"}\npaths: {}\n'
        out = _run(builtin_ruleset("recommended"), spec)
        assert any(isinstance(e, ValueError) for e in out.errors)

    def test_unknown_version_without_marker_rule(self):
        spec = 'openapi: "9.0.0"\ninfo: {title: T, version: "1"}\npaths: {}\n'
        out = _run(compose_ruleset(INFO_DESCRIPTION_RULE), spec)
        assert out.errors == []
        assert [r.rule_id for r in out.results] == ["info-description"]


@pytest.mark.parametrize("workers", [1, 4])
def test_results_independent_of_pool_size(workers):
    ruleset = builtin_ruleset("all")
    spec = SPEC_31
    out = _run(ruleset, spec, max_workers=workers)
    baseline = _run(builtin_ruleset("all"), spec)
    assert sorted(r.sort_key() for r in out.results) == sorted(
        r.sort_key() for r in baseline.results
    )
