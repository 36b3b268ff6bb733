"""Ruleset loader: turn ruleset bytes, files and URLs into :class:`RuleSet` objects.

A ruleset is a YAML (or JSON) mapping::

    extends: [[spectral:oas, recommended], ./team-rules.yaml]
    formats: [oas3]
    rules:
      info-contact: off                 # severity override or "off"
      operation-tags: true              # enable a built-in rule
      my-rule:                          # a full rule definition
        description: Paths must be lower case
        given: $.paths
        severity: warn
        then:
          function: casing
          functionOptions:
            type: kebab

Parsing never follows ``extends``; that is the composer's job.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx
import yaml

from oaslint.errors import (
    EmptyRulesetError,
    LocalReadError,
    RemoteFetchError,
    RulesetParseError,
)
from oaslint.models import Rule, RuleAction, RuleSet, get_category, parse_severity

logger = logging.getLogger(__name__)

RULESET_EXTENSIONS = (".yaml", ".yml", ".json")


# ---------------------------------------------------------------------------
# Location helpers
# ---------------------------------------------------------------------------


def is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def is_local_ruleset(location: str) -> bool:
    return Path(location).suffix.lower() in RULESET_EXTENSIONS and not is_remote(location)


def is_external(location: str) -> bool:
    """Whether an ``extends`` source points at another ruleset document."""
    return is_remote(location) or is_local_ruleset(location)


# ---------------------------------------------------------------------------
# Extends
# ---------------------------------------------------------------------------


def normalize_extends(raw: Any) -> list[tuple[str, str]]:
    """Normalise the ``extends`` value into ``[(source, selector), ...]``.

    A bare string uses itself as the selector, as does each bare string
    inside a list.  Pairs keep their selector.  Anything else is rejected.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        return [(raw, raw)]
    if not isinstance(raw, list):
        raise RulesetParseError(f"'extends' must be a string or a list, not {type(raw).__name__}")
    entries: list[tuple[str, str]] = []
    for item in raw:
        if isinstance(item, str):
            entries.append((item, item))
        elif isinstance(item, list) and len(item) == 2 and all(isinstance(p, str) for p in item):
            entries.append((item[0], item[1]))
        else:
            raise RulesetParseError(f"invalid 'extends' entry: {item!r}")
    return entries


# ---------------------------------------------------------------------------
# Rule definitions
# ---------------------------------------------------------------------------


def _as_string_list(value: Any, what: str, rule_id: str) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise RulesetParseError(f"rule '{rule_id}': '{what}' must be a string or a list of strings")


def _parse_action(raw: Any, rule_id: str) -> RuleAction:
    if not isinstance(raw, dict):
        raise RulesetParseError(f"rule '{rule_id}': each 'then' entry must be a mapping")
    function = raw.get("function")
    if not isinstance(function, str) or not function:
        raise RulesetParseError(f"rule '{rule_id}': 'then' entry is missing a 'function'")
    options = raw.get("functionOptions") or {}
    if not isinstance(options, dict):
        raise RulesetParseError(f"rule '{rule_id}': 'functionOptions' must be a mapping")
    return RuleAction(
        function=function,
        field=str(raw.get("field") or ""),
        function_options=dict(options),
    )


def rule_from_definition(
    rule_id: str,
    raw: dict[str, Any],
    default_formats: list[str] | None = None,
) -> Rule | None:
    """Build a :class:`Rule` from a full definition; ``None`` when it is ``off``."""
    try:
        severity = parse_severity(raw.get("severity"))
    except KeyError as exc:
        raise RulesetParseError(
            f"rule '{rule_id}': unknown severity '{raw.get('severity')}'"
        ) from exc
    if severity is None:
        return None

    if "given" not in raw or "then" not in raw:
        raise RulesetParseError(f"rule '{rule_id}' needs both 'given' and 'then'")
    given = _as_string_list(raw["given"], "given", rule_id)
    if not given:
        raise RulesetParseError(f"rule '{rule_id}': 'given' must not be empty")

    then_raw = raw["then"]
    then_items = then_raw if isinstance(then_raw, list) else [then_raw]
    then = [_parse_action(item, rule_id) for item in then_items]
    if not then:
        raise RulesetParseError(f"rule '{rule_id}': 'then' must not be empty")

    category_raw = raw.get("category")
    category_id = category_raw.get("id") if isinstance(category_raw, dict) else category_raw
    formats = raw.get("formats")
    if formats is None:
        formats = list(default_formats or [])

    resolved = raw.get("resolved")
    return Rule(
        id=str(raw.get("id") or rule_id),
        given=given,
        then=then,
        description=str(raw.get("description") or ""),
        message=str(raw.get("message") or ""),
        severity=severity,
        category=get_category(category_id if isinstance(category_id, str) else None),
        recommended=bool(raw.get("recommended", False)),
        formats=_as_string_list(formats, "formats", rule_id) if formats else [],
        resolved=True if resolved is None else bool(resolved),
        type=str(raw.get("type") or "validation"),
        name=str(raw.get("name") or ""),
        how_to_fix=str(raw.get("howToFix") or ""),
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_ruleset(data: bytes | str, source: str = "") -> RuleSet:
    """Deserialise ruleset bytes into an uncomposed :class:`RuleSet`.

    ``rules`` holds only the full rule objects found in the document;
    every entry, whatever its shape, is also kept in ``rule_definitions``.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise RulesetParseError(f"unable to parse ruleset: {exc}") from exc
    if not isinstance(raw, dict):
        raise RulesetParseError("a ruleset must be a mapping with a 'rules' key")

    definitions = raw.get("rules") or {}
    if not isinstance(definitions, dict):
        raise RulesetParseError("'rules' must be a mapping of rule ids to definitions")

    formats = raw.get("formats") or []
    if not isinstance(formats, list):
        raise RulesetParseError("'formats' must be a list")

    ruleset = RuleSet(
        documentation_url=str(raw.get("documentationUrl") or ""),
        description=str(raw.get("description") or ""),
        formats=[str(f) for f in formats],
        extends=normalize_extends(raw.get("extends")),
        rule_definitions=dict(definitions),
        source=source,
    )
    for rule_id, definition in definitions.items():
        if isinstance(definition, dict):
            rule = rule_from_definition(str(rule_id), definition, ruleset.formats)
            if rule is not None:
                ruleset.rules[rule.id] = rule
    return ruleset


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


def fetch_remote_ruleset(location: str, client: httpx.Client) -> RuleSet:
    """GET *location* with *client* and parse the body."""
    try:
        response = client.get(location)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise RemoteFetchError(location, exc) from exc
    if not response.content:
        raise EmptyRulesetError(f"remote ruleset '{location}' is empty, cannot extend")
    return parse_ruleset(response.content, source=location)


def read_local_ruleset(location: str | Path) -> RuleSet:
    path = Path(location).expanduser()
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise LocalReadError(str(location), exc) from exc
    if not data.strip():
        raise EmptyRulesetError(f"local ruleset '{location}' is empty, cannot extend")
    return parse_ruleset(data, source=str(path))


def load_ruleset(location: str, client: httpx.Client | None = None) -> RuleSet:
    """Load a ruleset from a URL or a local path without composing it."""
    if is_remote(location):
        if client is not None:
            return fetch_remote_ruleset(location, client)
        with httpx.Client(follow_redirects=True, timeout=10.0) as owned:
            return fetch_remote_ruleset(location, owned)
    return read_local_ruleset(location)
