"""Report rendering: text and JSON outputs."""

from __future__ import annotations

import json
from typing import Any

import oaslint
from oaslint.models import ResultSet, RuleFunctionResult, Severity

# ---------------------------------------------------------------------------
# Text output
# ---------------------------------------------------------------------------

_SEV_COLORS = {
    Severity.ERROR: "\033[91m",  # red
    Severity.WARN: "\033[93m",   # yellow
    Severity.INFO: "\033[94m",   # blue
    Severity.HINT: "\033[90m",   # grey
}
_RESET = "\033[0m"

_ORDER = (Severity.ERROR, Severity.WARN, Severity.INFO, Severity.HINT)


def _sev_label(sev: Severity, color: bool = True) -> str:
    label = sev.name.upper()
    if color:
        return f"{_SEV_COLORS.get(sev, '')}{label}{_RESET}"
    return label


def _location(r: RuleFunctionResult, spec_path: str) -> str:
    start = r.start
    filename = r.origin.filename if r.origin else spec_path
    return f"{filename}:{start.line}:{start.column}"


def render_text(
    result_set: ResultSet,
    spec_path: str = "",
    ruleset: str = "",
    fail_on: str = "",
    color: bool = True,
    show_fix: bool = True,
) -> str:
    """Produce human-friendly text output, grouped by severity."""
    lines: list[str] = []

    lines.append("=" * 60)
    lines.append("oaslint report")
    lines.append("=" * 60)
    if spec_path:
        lines.append(f"Document: {spec_path}")
    if ruleset:
        lines.append(f"Ruleset:  {ruleset}")
    if fail_on:
        lines.append(f"Fail on:  {fail_on}")
    lines.append("")

    ordered = result_set.sorted()
    if not ordered:
        lines.append("No violations.")
    else:
        by_sev: dict[Severity, list[RuleFunctionResult]] = {}
        for r in ordered:
            by_sev.setdefault(r.severity or Severity.WARN, []).append(r)

        for sev in _ORDER:
            group = by_sev.get(sev, [])
            if not group:
                continue
            lines.append(f"-- {_sev_label(sev, color)} ({len(group)}) --")
            for r in group:
                lines.append(f"  [{r.rule_id}] {_location(r, spec_path)}")
                lines.append(f"    {r.message}")
                lines.append(f"    at {r.path}")
                if show_fix and r.rule is not None and r.rule.how_to_fix:
                    lines.append(f"    fix: {r.rule.how_to_fix}")
            lines.append("")

    counts = result_set.severity_counts()
    lines.append("-" * 60)
    lines.append(
        f"Violations: {counts[Severity.ERROR]} errors, {counts[Severity.WARN]} warnings, "
        f"{counts[Severity.INFO]} info, {counts[Severity.HINT]} hints"
    )
    lines.append("=" * 60)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------


def render_json(
    result_set: ResultSet,
    spec_path: str = "",
    ruleset: str = "",
    fail_on: str = "",
    ignored: list[RuleFunctionResult] | None = None,
) -> str:
    """Produce stable JSON output (deterministic sorting)."""
    counts = result_set.severity_counts()
    doc: dict[str, Any] = {
        "tool": "oaslint",
        "version": oaslint.__version__,
        "document": spec_path,
        "ruleset": ruleset,
        "summary": {
            "total": len(result_set),
            "error": counts[Severity.ERROR],
            "warn": counts[Severity.WARN],
            "info": counts[Severity.INFO],
            "hint": counts[Severity.HINT],
            "fail_on": fail_on,
        },
        "results": [r.to_dict() for r in result_set.sorted()],
    }
    if ignored:
        doc["ignored"] = [
            r.to_dict() for r in sorted(ignored, key=lambda r: r.sort_key())
        ]
    return json.dumps(doc, indent=2, ensure_ascii=False)
