"""Tests for the exit-code gate."""

import pytest

from oaslint.gate import EXIT_FAILED, EXIT_OK, decide
from oaslint.models import ResultSet, RuleFunctionResult, Severity


def _result(severity):
    return RuleFunctionResult(message="m", path="$", rule_id="r", severity=severity)


@pytest.fixture
def result_with_warn():
    return ResultSet([_result(Severity.WARN)])


@pytest.fixture
def result_with_error():
    return ResultSet([_result(Severity.INFO), _result(Severity.ERROR)])


@pytest.fixture
def result_clean():
    return ResultSet()


class TestDecide:
    def test_clean_passes(self, result_clean):
        assert decide(result_clean) == EXIT_OK
        assert decide(result_clean, fail_on="hint") == EXIT_OK

    def test_error_fails_by_default(self, result_with_error):
        assert decide(result_with_error) == EXIT_FAILED

    def test_warn_passes_default_threshold(self, result_with_warn):
        assert decide(result_with_warn) == EXIT_OK

    def test_warn_fails_warn_threshold(self, result_with_warn):
        assert decide(result_with_warn, fail_on="warn") == EXIT_FAILED

    def test_lower_threshold_includes_higher(self, result_with_warn):
        assert decide(result_with_warn, fail_on="info") == EXIT_FAILED
        assert decide(result_with_warn, fail_on="hint") == EXIT_FAILED

    def test_warning_spelling(self, result_with_warn):
        assert decide(result_with_warn, fail_on="warning") == EXIT_FAILED

    def test_unknown_threshold(self, result_clean):
        with pytest.raises(KeyError):
            decide(result_clean, fail_on="fatal")
