"""Data models used throughout oaslint."""

from __future__ import annotations

import enum
import re
import threading
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------


class Severity(enum.IntEnum):
    """Result severity, ordered so a higher value is more severe."""

    HINT = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    @classmethod
    def from_str(cls, label: str) -> Severity:
        label = label.strip().lower()
        if label == "warning":
            label = "warn"
        return cls[label.upper()]

    def __str__(self) -> str:
        return self.name.lower()


SEVERITY_OFF = "off"


def parse_severity(value: Any) -> Severity | None:
    """Map a ruleset severity value onto a :class:`Severity`.

    ``"off"`` and ``False`` disable a rule (``None``); ``True``, ``"true"``
    and a missing value default to ``warn``.
    """
    if value is None or value is True:
        return Severity.WARN
    if value is False:
        return None
    label = str(value).strip().lower()
    if label == SEVERITY_OFF:
        return None
    if label == "true":
        return Severity.WARN
    return Severity.from_str(label)


# ---------------------------------------------------------------------------
# Rule categories
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleCategory:
    id: str
    name: str
    description: str = ""


CATEGORY_VALIDATION = "validation"
CATEGORY_SECURITY = "security"
CATEGORY_SCHEMAS = "schemas"
CATEGORY_OPERATIONS = "operations"
CATEGORY_INFO = "information"
CATEGORY_DESCRIPTIONS = "descriptions"
CATEGORY_TAGS = "tags"
CATEGORY_EXAMPLES = "examples"
CATEGORY_OWASP = "owasp"

RULE_CATEGORIES: dict[str, RuleCategory] = {
    c.id: c
    for c in (
        RuleCategory(
            CATEGORY_INFO,
            "Contract Information",
            "The info object contains licencing, contact, authorship details and more. "
            "Checks to confirm required details have been completed.",
        ),
        RuleCategory(
            CATEGORY_OPERATIONS,
            "Operations",
            "Operations are the core of the contract, they define paths and HTTP methods. "
            "These rules check operations have been well constructed.",
        ),
        RuleCategory(
            CATEGORY_TAGS,
            "Tags",
            "Tags are meta-data for operations, used by tooling to build navigation and search.",
        ),
        RuleCategory(
            CATEGORY_SCHEMAS,
            "Schemas",
            "Schemas define request bodies and response payloads. These rules check "
            "structural validity, types and the correct use of structures.",
        ),
        RuleCategory(
            CATEGORY_VALIDATION,
            "Validation",
            "Validation rules make sure that characters, patterns and structures that "
            "break tooling have not been used.",
        ),
        RuleCategory(
            CATEGORY_DESCRIPTIONS,
            "Descriptions",
            "Checks for absent, duplicated or short descriptions.",
        ),
        RuleCategory(
            CATEGORY_SECURITY,
            "Security",
            "Makes sure that security definitions exist and are referenced in the right places.",
        ),
        RuleCategory(
            CATEGORY_EXAMPLES,
            "Examples",
            "Examples help consumers understand how API calls should look.",
        ),
        RuleCategory(
            CATEGORY_OWASP,
            "OWASP",
            "Checks drawn from the OWASP API Security Top 10.",
        ),
    )
}


def get_category(category_id: str | None) -> RuleCategory:
    """Return the category for *category_id*, falling back to ``validation``."""
    if category_id and category_id in RULE_CATEGORIES:
        return RULE_CATEGORIES[category_id]
    return RULE_CATEGORIES[CATEGORY_VALIDATION]


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass
class RuleAction:
    """One ``then`` clause: a function reference plus its options."""

    function: str
    function_options: dict[str, Any] = field(default_factory=dict)
    # declared last, the name shadows dataclasses.field in the class body
    field: str = ""


@dataclass
class Rule:
    """A single, fully materialised lint rule."""

    id: str
    given: list[str]
    then: list[RuleAction]
    description: str = ""
    message: str = ""
    severity: Severity = Severity.WARN
    category: RuleCategory = field(default_factory=lambda: get_category(None))
    recommended: bool = False
    formats: list[str] = field(default_factory=list)
    resolved: bool = True
    type: str = "validation"
    name: str = ""
    how_to_fix: str = ""
    precompiled_pattern: re.Pattern[str] | None = field(
        default=None, compare=False, repr=False
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "message": self.message,
            "given": list(self.given),
            "severity": str(self.severity),
            "category": self.category.id,
            "recommended": self.recommended,
            "formats": list(self.formats),
            "resolved": self.resolved,
            "howToFix": self.how_to_fix,
        }


@dataclass
class RuleSet:
    """A ruleset: raw definitions as read, plus the composed rule map."""

    documentation_url: str = ""
    description: str = ""
    formats: list[str] = field(default_factory=list)
    extends: list[tuple[str, str]] = field(default_factory=list)
    rule_definitions: dict[str, Any] = field(default_factory=dict)
    rules: dict[str, Rule] = field(default_factory=dict)
    source: str = ""
    lock: threading.Lock = field(
        default_factory=threading.Lock, compare=False, repr=False
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Location:
    line: int
    column: int


@dataclass(frozen=True)
class Origin:
    """Where a result came from when it is not the root document."""

    filename: str
    line: int = 0
    column: int = 0


def _node_location(node: Any, end: bool = False) -> Location:
    mark = getattr(node, "end_mark" if end else "start_mark", None)
    if mark is None:
        return Location(1, 1)
    return Location(mark.line + 1, mark.column + 1)


@dataclass
class RuleFunctionResult:
    """A single diagnostic produced by a rule function."""

    message: str
    start_node: Any = None
    end_node: Any = None
    path: str = ""
    paths: list[str] = field(default_factory=list)
    rule: Rule | None = None
    rule_id: str = ""
    severity: Severity | None = None
    category: RuleCategory | None = None
    origin: Origin | None = None
    auto_fixed: bool = False

    @property
    def start(self) -> Location:
        return _node_location(self.start_node)

    @property
    def end(self) -> Location:
        if self.end_node is None:
            return _node_location(self.start_node, end=True)
        return _node_location(self.end_node, end=True)

    def sort_key(self) -> tuple:
        """Total order: filename, line, column, rule id, message."""
        filename = self.origin.filename if self.origin else ""
        start = self.start
        return (filename, start.line, start.column, self.rule_id, self.message)

    def to_dict(self) -> dict[str, Any]:
        start, end = self.start, self.end
        doc: dict[str, Any] = {
            "rule_id": self.rule_id,
            "severity": str(self.severity) if self.severity else "",
            "category": self.category.id if self.category else "",
            "message": self.message,
            "path": self.path,
            "start": {"line": start.line, "column": start.column},
            "end": {"line": end.line, "column": end.column},
        }
        if self.paths:
            doc["paths"] = list(self.paths)
        if self.origin:
            doc["origin"] = {
                "filename": self.origin.filename,
                "line": self.origin.line,
                "column": self.origin.column,
            }
        if self.rule is not None:
            doc["rule"] = self.rule.to_dict()
        return doc


_OPERATION_PATH = re.compile(r"^\$\.paths(?:\['([^']+)'\]|\.(/[^.\[]*))")


def operation_path(path: str) -> str | None:
    """Extract the ``/foo/{id}`` part of a result path, if it has one."""
    m = _OPERATION_PATH.match(path or "")
    if not m:
        return None
    return m.group(1) or m.group(2)


@dataclass
class ResultSet:
    """Ordered collection of results with sorting and grouping helpers."""

    results: list[RuleFunctionResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def sort_by_line(self) -> ResultSet:
        """Sort in place by origin filename, then line, then column (stable)."""

        def key(r: RuleFunctionResult) -> tuple:
            start = r.start
            return (r.origin.filename if r.origin else "", start.line, start.column)

        self.results.sort(key=key)
        return self

    def sorted(self) -> list[RuleFunctionResult]:
        return sorted(self.results, key=lambda r: r.sort_key())

    def by_severity(self) -> dict[Severity, list[RuleFunctionResult]]:
        out: dict[Severity, list[RuleFunctionResult]] = {}
        for r in self.results:
            out.setdefault(r.severity or Severity.WARN, []).append(r)
        return out

    def by_category(self) -> dict[str, list[RuleFunctionResult]]:
        out: dict[str, list[RuleFunctionResult]] = {}
        for r in self.results:
            cat = r.category.id if r.category else CATEGORY_VALIDATION
            out.setdefault(cat, []).append(r)
        return out

    def by_rule_id(self) -> dict[str, list[RuleFunctionResult]]:
        out: dict[str, list[RuleFunctionResult]] = {}
        for r in self.results:
            out.setdefault(r.rule_id, []).append(r)
        return out

    def by_operation_path(self) -> dict[str, list[RuleFunctionResult]]:
        out: dict[str, list[RuleFunctionResult]] = {}
        for r in self.results:
            op = operation_path(r.path)
            if op is not None:
                out.setdefault(op, []).append(r)
        return out

    def severity_counts(self) -> dict[Severity, int]:
        counts = {sev: 0 for sev in Severity}
        for r in self.results:
            counts[r.severity or Severity.WARN] += 1
        return counts

    def merge(self, other: ResultSet) -> ResultSet:
        return ResultSet(self.results + other.results)

    def filter(
        self,
        severity: Severity | None = None,
        category: str | None = None,
        rule_id: str | None = None,
    ) -> ResultSet:
        kept = [
            r
            for r in self.results
            if (severity is None or r.severity == severity)
            and (category is None or (r.category and r.category.id == category))
            and (rule_id is None or r.rule_id == rule_id)
        ]
        return ResultSet(kept)


# An ignore list maps rule ids to the canonical paths they are ignored at.
IgnoreList = dict[str, list[str]]
