"""Ruleset composer: presets, ``extends`` chains and rule overrides.

Composition of a ruleset happens in three steps:

1. Seed the rule map from the ``extends`` entries, in order.  Presets
   (``recommended``, ``all``, ``off`` and their ``spectral:``/``vacuum:``
   spellings) come from the built-in catalogue; local files and URLs are
   loaded and composed recursively.
2. Apply the ruleset's own ``rules`` entries on top, so a ruleset always
   overrides what it inherits.
3. Check every action's function against the registry and precompile
   regex options.

Extends failures and cycles are logged and skipped, they never fail
composition.
"""

from __future__ import annotations

import copy
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import httpx

from oaslint.errors import (
    EmptyRulesetError,
    LocalReadError,
    RemoteFetchError,
    RulesetParseError,
    UnknownFunctionError,
)
from oaslint.functions import RuleFunction, build_registry
from oaslint.functions.base import compile_pattern
from oaslint.models import Rule, RuleSet, parse_severity
from oaslint.rulesets.loader import (
    fetch_remote_ruleset,
    is_external,
    is_remote,
    parse_ruleset,
    read_local_ruleset,
    rule_from_definition,
)


BUILTIN_DIR = Path(__file__).resolve().parent / "builtin"

# Preset selectors
RECOMMENDED = "recommended"
ALL = "all"
OFF = "off"
SPECTRAL_OAS = "spectral:oas"
VACUUM_OAS = "vacuum:oas"
SPECTRAL_OWASP = "spectral:owasp"
VACUUM_OWASP = "vacuum:owasp"
VACUUM_ALL = "vacuum:all"

PRESET_SOURCES = (RECOMMENDED, ALL, OFF, SPECTRAL_OAS, VACUUM_OAS, SPECTRAL_OWASP, VACUUM_OWASP, VACUUM_ALL)

_PATTERN_OPTIONS = ("match", "notMatch", "pattern")


# ---------------------------------------------------------------------------
# Built-in catalogue
# ---------------------------------------------------------------------------


@lru_cache(maxsize=None)
def _catalogue(name: str) -> RuleSet:
    path = BUILTIN_DIR / f"{name}.yml"
    ruleset = parse_ruleset(path.read_bytes(), source=f"builtin:{name}")
    for rule in ruleset.rules.values():
        rule.precompiled_pattern = _precompile(rule)
    return ruleset


def openapi_rules() -> dict[str, Rule]:
    """Every built-in OpenAPI rule, as fresh copies."""
    return {k: copy.copy(v) for k, v in _catalogue("openapi").rules.items()}


def owasp_rules() -> dict[str, Rule]:
    """Every built-in OWASP rule, as fresh copies."""
    return {k: copy.copy(v) for k, v in _catalogue("owasp").rules.items()}


def all_builtin_rules() -> dict[str, Rule]:
    rules = openapi_rules()
    rules.update(owasp_rules())
    return rules


def recommended_rules() -> dict[str, Rule]:
    return {k: v for k, v in openapi_rules().items() if v.recommended}


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------


class RuleSetComposer:
    """Compose rulesets against the built-in catalogue and a function registry.

    Parameters
    ----------
    functions:
        Custom functions to register next to the built-in ones.  Rules may
        reference either.
    logger:
        Where extends failures, cycles and unknown overrides are reported.
    client:
        ``httpx.Client`` used for remote ``extends``.  One is created (and
        closed again) per composition when not supplied.
    fetch_timeout:
        Seconds allowed per remote ruleset fetch when the composer creates
        its own client.
    """

    def __init__(
        self,
        functions: dict[str, Any] | None = None,
        logger: logging.Logger | None = None,
        client: httpx.Client | None = None,
        fetch_timeout: float = 5.0,
    ) -> None:
        self.functions: dict[str, RuleFunction] = build_registry(functions)
        self.log = logger if logger is not None else logging.getLogger(__name__)
        self._client = client
        self.fetch_timeout = fetch_timeout

    # -------------------------------------------------------------- presets

    def generate_openapi_recommended(self) -> RuleSet:
        """The curated preset: OpenAPI rules flagged ``recommended``."""
        return RuleSet(
            description="Recommended rules for a high quality specification.",
            rules=recommended_rules(),
            source="builtin:recommended",
        )

    def generate_openapi_default(self) -> RuleSet:
        """Every built-in rule, OpenAPI and OWASP."""
        return RuleSet(
            description="Every rule built into oaslint.",
            rules=all_builtin_rules(),
            source="builtin:all",
        )

    def generate_owasp(self) -> RuleSet:
        return RuleSet(
            description="The OWASP API Security Top 10 rules.",
            rules=owasp_rules(),
            source="builtin:owasp",
        )

    # ------------------------------------------------------------- compose

    def compose(self, data: bytes | str, source: str = "") -> RuleSet:
        """Parse and compose ruleset bytes.

        Raises
        ------
        RulesetParseError
            The bytes do not deserialise into a ruleset.
        EmptyRulesetError
            The ruleset defines no rules and extends nothing.
        UnknownFunctionError
            A rule references a function that is not registered.
        """
        user = parse_ruleset(data, source=source)
        if not user.rule_definitions and not user.extends:
            raise EmptyRulesetError("ruleset defines no rules and extends nothing")
        return self.generate_from_supplied(user)

    def compose_file(self, location: str) -> RuleSet:
        """Compose a ruleset stored at a local path or URL."""
        if is_remote(location):
            with self._http() as client:
                user = fetch_remote_ruleset(location, client)
        else:
            user = read_local_ruleset(location)
        if not user.rule_definitions and not user.extends:
            raise EmptyRulesetError(f"ruleset '{location}' defines no rules and extends nothing")
        return self.generate_from_supplied(user)

    def generate_from_supplied(self, user: RuleSet) -> RuleSet:
        """Merge *user*'s overrides onto the rules its ``extends`` bring in."""
        root_key = self._source_key(user.source, "", "") if user.source else ""
        root_dir = str(Path(root_key).parent) if root_key and not is_remote(root_key) else ""
        with self._http() as client:
            rules = self._materialise(user, [root_key] if root_key else [], root_dir, client)

        composed = RuleSet(
            documentation_url=user.documentation_url,
            description=user.description,
            formats=list(user.formats),
            extends=list(user.extends),
            rule_definitions=dict(user.rule_definitions),
            rules=rules,
            source=user.source,
        )
        with composed.lock:
            self._check_functions(composed.rules)
            for rule in composed.rules.values():
                rule.precompiled_pattern = _precompile(rule)
        return composed

    # ------------------------------------------------------------ internals

    def _http(self) -> _ClientScope:
        return _ClientScope(self._client, self.fetch_timeout)

    def _materialise(
        self,
        ruleset: RuleSet,
        chain: list[str],
        root_dir: str,
        client: httpx.Client,
    ) -> dict[str, Rule]:
        rules: dict[str, Rule] = {}
        current = chain[-1] if chain else ""

        for source, selector in ruleset.extends:
            if source in PRESET_SOURCES:
                self._apply_preset(rules, source, selector)
                continue
            if not is_external(source):
                self.log.warning("unknown extends source '%s', ignoring it", source)
                continue

            key = self._source_key(source, current, root_dir)
            if key in chain:
                cycle = " -> ".join(chain + [key])
                self.log.warning(
                    "ruleset links to itself, circular rulesets are not permitted: %s", cycle
                )
                continue
            try:
                parent = (
                    fetch_remote_ruleset(key, client) if is_remote(key) else read_local_ruleset(key)
                )
            except (RemoteFetchError, LocalReadError, EmptyRulesetError, RulesetParseError) as exc:
                self.log.error("cannot open external ruleset '%s': %s", key, exc)
                continue
            rules.update(self._materialise(parent, chain + [key], root_dir, client))

        for rule_id, rule in ruleset.rules.items():
            rules[rule_id] = copy.copy(rule)
        self._apply_definitions(rules, ruleset)
        return rules

    def _apply_preset(self, rules: dict[str, Rule], source: str, selector: str) -> None:
        if source in (SPECTRAL_OWASP, VACUUM_OWASP):
            if selector in (RECOMMENDED, ALL, source):
                rules.update(owasp_rules())
            elif selector == OFF:
                for rule_id in owasp_rules():
                    rules.pop(rule_id, None)
            return

        if source in (SPECTRAL_OAS, VACUUM_OAS, VACUUM_ALL):
            preset = source if selector == source else selector
            if preset in (SPECTRAL_OAS, VACUUM_OAS):
                preset = RECOMMENDED
            elif preset == VACUUM_ALL:
                preset = ALL
        else:
            preset = source

        if preset == RECOMMENDED:
            rules.update(recommended_rules())
        elif preset == ALL:
            rules.update(all_builtin_rules())
        elif preset == OFF:
            rules.clear()
        else:
            self.log.warning("unknown selector '%s' for extends '%s', ignoring it", selector, source)

    def _apply_definitions(self, rules: dict[str, Rule], ruleset: RuleSet) -> None:
        for rule_id, value in ruleset.rule_definitions.items():
            rule_id = str(rule_id)
            if isinstance(value, bool):
                if not value:
                    rules.pop(rule_id, None)
                elif rule_id not in rules:
                    builtin = all_builtin_rules().get(rule_id)
                    if builtin is None:
                        self.log.warning("rule '%s' does not exist, ignoring it", rule_id)
                    else:
                        rules[rule_id] = builtin
                continue

            if isinstance(value, str):
                if rule_id not in rules:
                    self.log.warning("rule '%s' does not exist, ignoring it", rule_id)
                    continue
                try:
                    severity = parse_severity(value)
                except KeyError:
                    self.log.warning("rule '%s' has unknown severity '%s', ignoring it", rule_id, value)
                    continue
                if severity is None:
                    rules.pop(rule_id, None)
                else:
                    updated = copy.copy(rules[rule_id])
                    updated.severity = severity
                    rules[rule_id] = updated
                continue

            if isinstance(value, dict):
                rule = rule_from_definition(rule_id, value, ruleset.formats)
                if rule is None:
                    rules.pop(rule_id, None)
                else:
                    rules[rule_id] = rule
                continue

            self.log.warning("rule '%s' has an unsupported definition, ignoring it", rule_id)

    def _check_functions(self, rules: dict[str, Rule]) -> None:
        for rule in rules.values():
            for action in rule.then:
                if action.function not in self.functions:
                    raise UnknownFunctionError(rule.id, action.function)

    @staticmethod
    def _source_key(source: str, current: str, root_dir: str) -> str:
        """Canonical key for an extends *source*: a URL or an absolute path."""
        if is_remote(source):
            return source
        if is_remote(current):
            return urljoin(current, source)
        path = Path(source).expanduser()
        if not path.is_absolute() and root_dir:
            path = Path(root_dir) / path
        return str(path.resolve())


class _ClientScope:
    """Context manager handing out the injected client or a short-lived one."""

    def __init__(self, client: httpx.Client | None, timeout: float) -> None:
        self._client = client
        self._timeout = timeout
        self._owned: httpx.Client | None = None

    def __enter__(self) -> httpx.Client:
        if self._client is not None:
            return self._client
        self._owned = httpx.Client(follow_redirects=True, timeout=self._timeout)
        return self._owned

    def __exit__(self, *exc_info: Any) -> None:
        if self._owned is not None:
            self._owned.close()
            self._owned = None


def _precompile(rule: Rule) -> re.Pattern[str] | None:
    for action in rule.then:
        for key in _PATTERN_OPTIONS:
            text = action.function_options.get(key)
            if not isinstance(text, str) or not text:
                continue
            try:
                compiled = compile_pattern(text)
            except re.error:
                return None
            return compiled if compiled.pattern == text else None
    return None


# ---------------------------------------------------------------------------
# Convenience
# ---------------------------------------------------------------------------


def compose_ruleset(
    data: bytes | str,
    source: str = "",
    functions: dict[str, Any] | None = None,
    client: httpx.Client | None = None,
) -> RuleSet:
    """Compose *data* with a throwaway :class:`RuleSetComposer`."""
    return RuleSetComposer(functions=functions, client=client).compose(data, source=source)


def builtin_ruleset(selector: str = RECOMMENDED) -> RuleSet:
    """A composed preset: ``recommended``, ``all``, ``owasp`` or ``off``."""
    composer = RuleSetComposer()
    if selector == ALL:
        return composer.generate_openapi_default()
    if selector == "owasp":
        return composer.generate_owasp()
    if selector == OFF:
        return RuleSet(description="All rules disabled.", source="builtin:off")
    if selector != RECOMMENDED:
        raise RulesetParseError(f"unknown built-in ruleset '{selector}'")
    return composer.generate_openapi_recommended()


__all__ = [
    "RuleSetComposer",
    "all_builtin_rules",
    "builtin_ruleset",
    "compose_ruleset",
    "openapi_rules",
    "owasp_rules",
    "recommended_rules",
]
