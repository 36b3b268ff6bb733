"""Gate: turn a result set into a process exit code."""

from __future__ import annotations

from oaslint.models import ResultSet, Severity

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def decide(result_set: ResultSet, fail_on: str = "error") -> int:
    """Return the exit code for *result_set*.

    Exit codes:
        0 : no result at or above *fail_on*
        1 : at least one result at or above *fail_on*
    """
    threshold = Severity.from_str(fail_on)
    for r in result_set:
        if (r.severity or Severity.WARN) >= threshold:
            return EXIT_FAILED
    return EXIT_OK
