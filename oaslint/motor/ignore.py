"""External ignore lists: ``{rule-id: [canonical-path, ...]}``."""

from __future__ import annotations

from oaslint.models import IgnoreList, RuleFunctionResult


def is_ignored(result: RuleFunctionResult, ignore: IgnoreList) -> bool:
    """True when the result's rule is listed at its path or one of its alternate paths."""
    paths = ignore.get(result.rule_id)
    if not paths:
        return False
    if result.path in paths:
        return True
    return any(p in paths for p in result.paths)


def apply_ignore_list(
    results: list[RuleFunctionResult], ignore: IgnoreList | None
) -> tuple[list[RuleFunctionResult], list[RuleFunctionResult]]:
    """Split *results* into ``(kept, ignored)``."""
    if not ignore:
        return results, []
    kept: list[RuleFunctionResult] = []
    ignored: list[RuleFunctionResult] = []
    for r in results:
        (ignored if is_ignored(r, ignore) else kept).append(r)
    return kept, ignored
