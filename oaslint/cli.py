"""CLI: click-based command-line interface."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from oaslint.config import load_config, load_ignore_file
from oaslint.document.resolver import HttpClientConfig
from oaslint.errors import OasLintError
from oaslint.gate import EXIT_USAGE, decide
from oaslint.models import Severity
from oaslint.motor import RuleSetExecution, apply_rules
from oaslint.report import render_json, render_text
from oaslint.rulesets import (
    RuleSetComposer,
    all_builtin_rules,
    builtin_ruleset,
    recommended_rules,
)

BUILTIN_SELECTORS = ("recommended", "all", "owasp", "off")
_SEVERITY_CHOICES = ["error", "warn", "info", "hint"]


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output.")
@click.option("--quiet", "-q", is_flag=True, default=False, help="Only log errors.")
def main(verbose: bool, quiet: bool) -> None:
    """oaslint: lint OpenAPI documents against declarative rulesets."""
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)


def _load_ruleset(location: str):
    if location in BUILTIN_SELECTORS:
        return builtin_ruleset(location)
    return RuleSetComposer(logger=logging.getLogger("oaslint.rulesets")).compose_file(location)


# ───────────────────────────────────────────────────────────────────
# lint
# ───────────────────────────────────────────────────────────────────

@main.command()
@click.argument("spec", type=click.Path(exists=True, dir_okay=False))
@click.option("--ruleset", "-r", "ruleset_opt", default=None,
              help="recommended | all | owasp | off | <path> | <url> (default: recommended).")
@click.option("--config", "config_path", default=None, type=click.Path(),
              help="Explicit config file; skips the project/user search.")
@click.option("--fail-on", "fail_on", default=None,
              type=click.Choice(_SEVERITY_CHOICES, case_sensitive=False),
              help="Minimum severity that fails the run (default: error).")
@click.option("--format", "fmt", default="text",
              type=click.Choice(["text", "json"], case_sensitive=False),
              help="Output format.")
@click.option("--json-out", "json_out", default=None, type=click.Path(),
              help="Write the JSON report to a file as well.")
@click.option("--timeout", "timeout", default=None, type=float,
              help="Per-rule timeout in seconds (default 5).")
@click.option("--lookup-timeout-ms", "lookup_timeout_ms", default=None, type=int,
              help="Budget for each 'given' lookup in milliseconds (default 500).")
@click.option("--ignore-file", "ignore_file", default=None, type=click.Path(),
              help="YAML ignore list: {rule-id: [path, ...]}.")
@click.option("--skip-check", "skip_check", is_flag=True, default=None,
              help="Skip the structural meta-schema check.")
@click.option("--allow-lookup", "allow_lookup", is_flag=True, default=None,
              help="Allow remote $ref lookups.")
@click.option("--ignore-array-circle-ref", "ignore_array", is_flag=True, default=None,
              help="Do not report circular references through array items.")
@click.option("--ignore-polymorph-circle-ref", "ignore_poly", is_flag=True, default=None,
              help="Do not report circular references through allOf/anyOf/oneOf.")
@click.option("--ext-refs", "ext_refs", is_flag=True, default=None,
              help="Follow $refs found under x- extensions.")
@click.option("--base", "base", default=None,
              help="Base path or URL for relative $refs.")
@click.option("--no-color", "no_color", is_flag=True, default=False,
              help="Disable ANSI colours in text output.")
def lint(
    spec: str,
    ruleset_opt: str | None,
    config_path: str | None,
    fail_on: str | None,
    fmt: str,
    json_out: str | None,
    timeout: float | None,
    lookup_timeout_ms: int | None,
    ignore_file: str | None,
    skip_check: bool | None,
    allow_lookup: bool | None,
    ignore_array: bool | None,
    ignore_poly: bool | None,
    ext_refs: bool | None,
    base: str | None,
    no_color: bool,
) -> None:
    """Lint an OpenAPI document."""
    spec_path = str(Path(spec).resolve())

    # --- config (.oaslint.yml), CLI flags override ---
    cfg = load_config(spec_path=spec_path, config_path=config_path)
    effective_ruleset = ruleset_opt or cfg.ruleset
    effective_fail_on = (fail_on or cfg.fail_on).lower()
    effective_ignore_file = ignore_file or cfg.ignore_file

    try:
        Severity.from_str(effective_fail_on)
    except KeyError:
        click.echo(f"Error: unknown severity '{effective_fail_on}'", err=True)
        sys.exit(EXIT_USAGE)

    # --- ruleset ---
    try:
        ruleset = _load_ruleset(effective_ruleset)
    except OasLintError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_USAGE)

    try:
        data = Path(spec_path).read_bytes()
    except OSError as exc:
        click.echo(f"Error: unable to read '{spec}': {exc}", err=True)
        sys.exit(EXIT_USAGE)

    execution = RuleSetExecution(
        rule_set=ruleset,
        spec=data,
        spec_file_name=spec_path,
        timeout=timeout if timeout is not None else cfg.timeout_seconds,
        lookup_timeout=(
            lookup_timeout_ms / 1000.0 if lookup_timeout_ms is not None else cfg.lookup_timeout
        ),
        allow_lookup=allow_lookup if allow_lookup is not None else cfg.allow_lookup,
        skip_document_check=skip_check if skip_check is not None else cfg.skip_document_check,
        ignore_circular_array_ref=(
            ignore_array if ignore_array is not None else cfg.ignore_circular_array_ref
        ),
        ignore_circular_polymorphic_ref=(
            ignore_poly if ignore_poly is not None else cfg.ignore_circular_polymorphic_ref
        ),
        extract_references_from_extensions=(
            ext_refs if ext_refs is not None else cfg.extract_references_from_extensions
        ),
        http_client_config=HttpClientConfig(),
        base=base if base is not None else cfg.base,
        ignored_results=load_ignore_file(effective_ignore_file) if effective_ignore_file else {},
    )

    # --- lint ---
    outcome = apply_rules(execution)
    result_set = outcome.result_set()

    # --- output ---
    if fmt == "json":
        output = render_json(
            result_set,
            spec_path=spec,
            ruleset=effective_ruleset,
            fail_on=effective_fail_on,
            ignored=outcome.ignored_results,
        )
    else:
        output = render_text(
            result_set,
            spec_path=spec,
            ruleset=effective_ruleset,
            fail_on=effective_fail_on,
            color=not no_color,
        )
    click.echo(output)

    if json_out:
        Path(json_out).write_text(
            render_json(
                result_set,
                spec_path=spec,
                ruleset=effective_ruleset,
                fail_on=effective_fail_on,
                ignored=outcome.ignored_results,
            )
        )
        click.echo(f"JSON report written to {json_out}", err=True)

    sys.exit(decide(result_set, fail_on=effective_fail_on))


# ───────────────────────────────────────────────────────────────────
# rules
# ───────────────────────────────────────────────────────────────────

@main.command("rules")
@click.option("--recommended", "only_recommended", is_flag=True, default=False,
              help="Only list the rules of the recommended preset.")
def rules_cmd(only_recommended: bool) -> None:
    """List the built-in rule catalogue."""
    catalogue = recommended_rules() if only_recommended else all_builtin_rules()
    click.echo(f"{'Rule':<42} {'Severity':<9} {'Category':<13} {'Rec'}")
    click.echo("-" * 70)
    for rule_id in sorted(catalogue):
        rule = catalogue[rule_id]
        rec = "yes" if rule.recommended else ""
        click.echo(f"{rule_id:<42} {str(rule.severity):<9} {rule.category.id:<13} {rec}")
    click.echo(f"\n{len(catalogue)} rule(s)")
