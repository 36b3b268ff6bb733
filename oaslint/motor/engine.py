"""Execution engine: run a composed ruleset over one document.

The document is prepared once (parsed, resolved, indexed), then every rule
runs as its own task on a thread pool.  A task publishes its results in a
single batch when it finishes; a task that overruns the timeout, or is
still running when the run is cancelled, publishes nothing.

Typical use::

    ruleset = builtin_ruleset("recommended")
    outcome = apply_rules(RuleSetExecution(rule_set=ruleset, spec=data))
    for r in outcome.result_set().sorted():
        print(r.rule_id, r.path, r.message)
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

import httpx
from yaml.nodes import Node

from oaslint.document.doctor import DoctorDocument
from oaslint.document.index import SpecIndex
from oaslint.document.locator import Locator
from oaslint.document.nodes import line_col, parse_ast
from oaslint.document.resolver import HttpClientConfig, Resolver
from oaslint.document.spec_info import SpecInfo, detect_spec_info, formats_match
from oaslint.errors import DocumentParseError
from oaslint.functions import build_registry, validate_function_options
from oaslint.functions.base import RuleFunction, RuleFunctionContext, result
from oaslint.models import (
    CATEGORY_SCHEMAS,
    CATEGORY_VALIDATION,
    IgnoreList,
    Origin,
    ResultSet,
    Rule,
    RuleAction,
    RuleFunctionResult,
    RuleSet,
    Severity,
    get_category,
)
from oaslint.motor.ignore import apply_ignore_list
from oaslint.motor.inline_ignore import IGNORED_MESSAGE, InlineIgnores, ignored_result
from oaslint.motor.structural import OAS2_RULE, OAS3_RULE, check_structure, rule_id_for

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


def _synthetic_rule(rule_id: str, description: str, severity: Severity, category: str) -> Rule:
    return Rule(
        id=rule_id,
        given=["$"],
        then=[RuleAction(function="blank")],
        description=description,
        severity=severity,
        category=get_category(category),
        recommended=True,
    )


BUILD_INDEX_RULE = _synthetic_rule(
    "build-index",
    "Check that an index can be created from the document",
    Severity.ERROR,
    CATEGORY_VALIDATION,
)
RESOLVING_REFERENCES_RULE = _synthetic_rule(
    "resolving-references",
    "$ref values must be resolvable and locatable within a local or remote document.",
    Severity.ERROR,
    CATEGORY_SCHEMAS,
)
CIRCULAR_REFERENCES_RULE = _synthetic_rule(
    "circular-references",
    "Circular references are not recommended and can cause problems for tooling",
    Severity.WARN,
    CATEGORY_SCHEMAS,
)


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------


@dataclass
class RuleSetExecution:
    """Everything one run needs.

    ``timeout`` is in seconds and bounds every rule task; ``lookup_timeout``
    bounds each ``given`` evaluation.  ``ignored_results`` is an external
    ignore list (rule id -> canonical paths).  Setting ``cancel`` abandons
    whatever is still running.

    An abandoned rule is not interrupted: its worker thread keeps running
    the function until it returns, and the interpreter joins executor
    threads at exit.  A custom function that never returns therefore keeps
    the process alive after :func:`apply_rules` has returned; custom
    functions should poll ``ctx.cancelled`` in long loops.
    """

    rule_set: RuleSet
    spec: bytes | str = b""
    spec_file_name: str = ""
    timeout: float = 5.0
    lookup_timeout: float = 0.5
    custom_functions: dict[str, Any] = field(default_factory=dict)
    allow_lookup: bool = False
    skip_document_check: bool = False
    ignore_circular_array_ref: bool = False
    ignore_circular_polymorphic_ref: bool = False
    extract_references_from_extensions: bool = False
    http_client_config: HttpClientConfig | None = None
    http_client: httpx.Client | None = None
    base: str = ""
    ignored_results: IgnoreList = field(default_factory=dict)
    logger: logging.Logger | None = None
    cancel: threading.Event | None = None
    max_workers: int = 0


@dataclass
class RuleSetExecutionResult:
    results: list[RuleFunctionResult] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    index: SpecIndex | None = None
    spec_info: SpecInfo | None = None
    doctor_document: DoctorDocument | None = None
    fixed_results: list[RuleFunctionResult] = field(default_factory=list)
    ignored_results: list[RuleFunctionResult] = field(default_factory=list)

    def result_set(self) -> ResultSet:
        return ResultSet(list(self.results))


# ---------------------------------------------------------------------------
# Rule tasks
# ---------------------------------------------------------------------------


@dataclass
class _RuleTask:
    rule: Rule
    token: threading.Event = field(default_factory=threading.Event)
    started: float | None = None
    abandoned: bool = False


@dataclass
class _TaskOutput:
    results: list[RuleFunctionResult] = field(default_factory=list)
    ignored: list[RuleFunctionResult] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


def _stamp(r: RuleFunctionResult, rule: Rule) -> RuleFunctionResult:
    r.rule = rule
    r.rule_id = rule.id
    r.severity = rule.severity
    r.category = rule.category
    return r


class _Run:
    """State shared by the rule tasks of one execution."""

    def __init__(
        self,
        execution: RuleSetExecution,
        out: RuleSetExecutionResult,
        raw: Node,
        resolved: Node,
        log: logging.Logger,
    ) -> None:
        self.execution = execution
        self.out = out
        self.log = log
        self.registry: dict[str, RuleFunction] = build_registry(execution.custom_functions)
        self.inline = InlineIgnores(raw, resolved)
        self.locator = Locator(
            raw,
            resolved,
            lookup_timeout=execution.lookup_timeout,
            logger=log,
        )
        self.lock = threading.Lock()

    # ------------------------------------------------------------ scheduling

    def run(self, rules: list[Rule]) -> None:
        if not rules:
            self.locator.close()
            return
        self.locator.prepare()
        workers = self.execution.max_workers or min(32, max(4, len(rules)))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="oaslint-rule")
        tasks: dict[Future, _RuleTask] = {}
        try:
            for rule in rules:
                task = _RuleTask(rule)
                tasks[pool.submit(self._execute, task)] = task
            self._supervise(tasks)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
            self.locator.close()

    def _supervise(self, tasks: dict[Future, _RuleTask]) -> None:
        timeout = self.execution.timeout
        cancel = self.execution.cancel
        pending = set(tasks)
        while pending:
            _, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
            if cancel is not None and cancel.is_set():
                for fut in pending:
                    self._abandon(tasks[fut])
                self.log.warning("run cancelled, %d rule(s) abandoned", len(pending))
                return
            now = time.monotonic()
            for fut in list(pending):
                task = tasks[fut]
                if task.started is not None and now - task.started > timeout:
                    self._abandon(task)
                    pending.discard(fut)
                    self.log.warning(
                        "rule '%s' exceeded the %.0f ms timeout, results discarded",
                        task.rule.id,
                        timeout * 1000,
                    )

    def _abandon(self, task: _RuleTask) -> None:
        with self.lock:
            task.abandoned = True
        task.token.set()

    def _execute(self, task: _RuleTask) -> None:
        task.started = time.monotonic()
        output = self._run_rule(task)
        with self.lock:
            if task.abandoned or time.monotonic() - task.started > self.execution.timeout:
                return
            self.out.results.extend(output.results)
            self.out.ignored_results.extend(output.ignored)
            self.out.errors.extend(output.errors)

    # -------------------------------------------------------------- dispatch

    def _run_rule(self, task: _RuleTask) -> _TaskOutput:
        rule = task.rule
        output = _TaskOutput()
        silenced_seen: set[tuple[int, str]] = set()

        for given in rule.given:
            if task.token.is_set():
                return _TaskOutput()
            nodes = self.locator.find(given, resolved=rule.resolved)
            nodes = self.inline.strip_directives(nodes)
            nodes, silenced = self.inline.partition(rule.id, nodes)
            for node in silenced:
                key = (id(node), given)
                if key not in silenced_seen:
                    silenced_seen.add(key)
                    output.ignored.append(_stamp(result(IGNORED_MESSAGE, node, given), rule))
            if not nodes:
                continue

            for action in rule.then:
                if task.token.is_set():
                    return _TaskOutput()
                output.results.extend(self._dispatch(rule, action, given, nodes, task, output))

        kept: list[RuleFunctionResult] = []
        for r in output.results:
            self.set_origin(r)
            if self.inline.silenced(r.start_node, rule.id):
                key = (id(r.start_node), r.path)
                if key not in silenced_seen:
                    silenced_seen.add(key)
                    output.ignored.append(ignored_result(r))
                continue
            kept.append(r)
        output.results = kept
        return output

    def _dispatch(
        self,
        rule: Rule,
        action: RuleAction,
        given: str,
        nodes: list[Node],
        task: _RuleTask,
        output: _TaskOutput,
    ) -> list[RuleFunctionResult]:
        fn = self.registry.get(action.function)
        if fn is None:
            message = f"Unknown function '{action.function}' in rule '{rule.id}'"
            return [_stamp(result(message, nodes[0], given), rule)]

        ctx = RuleFunctionContext(
            rule=rule,
            action=action,
            given=given,
            options=dict(action.function_options),
            document=self.locator.root(rule.resolved),
            index=self.out.index,
            doctor=self.out.doctor_document,
            spec_info=self.out.spec_info,
            http_client_config=self.execution.http_client_config,
            precompiled_pattern=rule.precompiled_pattern,
            base=self.execution.base,
            cancel=task.token,
        )
        valid, problems = validate_function_options(fn, ctx)
        if not valid:
            return [_stamp(result("; ".join(problems), nodes[0], given), rule)]
        for problem in problems:
            self.log.debug("rule '%s': %s", rule.id, problem)

        try:
            batch = fn.run(nodes, ctx)
        except Exception as exc:
            self.log.error(
                "rule '%s' failed in function '%s': %s", rule.id, action.function, exc
            )
            output.errors.append(exc)
            return []
        return [_stamp(r, rule) for r in batch or []]

    def set_origin(self, r: RuleFunctionResult) -> None:
        if r.origin is not None or r.start_node is None or self.out.index is None:
            return
        filename = self.out.index.origin_of(r.start_node)
        if filename:
            line, column = line_col(r.start_node)
            r.origin = Origin(filename, line, column)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _document_results(
    execution: RuleSetExecution,
    out: RuleSetExecutionResult,
    raw: Node,
    rules: dict[str, Rule],
    log: logging.Logger,
) -> list[RuleFunctionResult]:
    """Reference problems, circular references and structural violations."""
    index = out.index
    found: list[RuleFunctionResult] = []
    for problem in index.reference_problems:
        found.append(
            _stamp(result(problem.message, problem.node, problem.path), RESOLVING_REFERENCES_RULE)
        )
    for loop in index.circular_references:
        found.append(
            _stamp(
                result(
                    f"circular reference detected from {loop.ref}",
                    loop.node,
                    loop.path,
                    paths=loop.journey,
                ),
                CIRCULAR_REFERENCES_RULE,
            )
        )

    if execution.skip_document_check:
        return found
    if OAS2_RULE not in rules and OAS3_RULE not in rules:
        return found
    marker = rule_id_for(out.spec_info)
    if marker is None:
        error = ValueError(out.spec_info.version_error or "unsupported document version")
        log.warning("structural check skipped: %s", error)
        out.errors.append(error)
        return found
    rule = rules.get(marker)
    if rule is not None:
        found.extend(_stamp(r, rule) for r in check_structure(raw, out.spec_info))
    return found


def apply_rules(execution: RuleSetExecution) -> RuleSetExecutionResult:
    """Run every applicable rule of ``execution.rule_set`` over the document."""
    log = execution.logger if execution.logger is not None else logger
    out = RuleSetExecutionResult()

    try:
        raw = parse_ast(execution.spec)
    except DocumentParseError as exc:
        log.error("unable to parse '%s': %s", execution.spec_file_name or "document", exc)
        out.errors.append(exc)
        out.results.append(_stamp(result(str(exc), None, "$"), BUILD_INDEX_RULE))
        return out

    out.spec_info = detect_spec_info(raw, execution.spec, execution.spec_file_name)
    view = Resolver(
        raw,
        filename=execution.spec_file_name,
        base=execution.base,
        allow_lookup=execution.allow_lookup,
        http_config=execution.http_client_config,
        extract_references_from_extensions=execution.extract_references_from_extensions,
        ignore_circular_array_ref=execution.ignore_circular_array_ref,
        ignore_circular_polymorphic_ref=execution.ignore_circular_polymorphic_ref,
        client=execution.http_client,
    ).resolve()
    out.index = SpecIndex(
        raw,
        out.spec_info,
        view,
        filename=execution.spec_file_name,
        extract_references_from_extensions=execution.extract_references_from_extensions,
    )
    out.doctor_document = DoctorDocument(raw, out.index, out.spec_info)

    with execution.rule_set.lock:
        rules = dict(execution.rule_set.rules)
    applicable = [r for r in rules.values() if formats_match(r.formats, out.spec_info.format)]
    log.debug(
        "running %d of %d rule(s) against %s document",
        len(applicable),
        len(rules),
        out.spec_info.format or "unknown",
    )

    run = _Run(execution, out, raw, view.root, log)
    document_results = _document_results(execution, out, raw, rules, log)
    kept, silenced = [], []
    for r in document_results:
        run.set_origin(r)
        (silenced if run.inline.silenced(r.start_node, r.rule_id) else kept).append(r)
    out.results.extend(kept)
    out.ignored_results.extend(ignored_result(r) for r in silenced)

    run.run(applicable)

    with run.lock:
        results = list(out.results)
    out.results, externally_ignored = apply_ignore_list(results, execution.ignored_results)
    out.ignored_results.extend(externally_ignored)
    return out
