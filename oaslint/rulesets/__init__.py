"""Rulesets: parsing, loading, ``extends`` composition and the built-in catalogue."""

from oaslint.rulesets.composer import (
    RuleSetComposer,
    all_builtin_rules,
    builtin_ruleset,
    compose_ruleset,
    openapi_rules,
    owasp_rules,
    recommended_rules,
)
from oaslint.rulesets.loader import load_ruleset, parse_ruleset

__all__ = [
    "RuleSetComposer",
    "all_builtin_rules",
    "builtin_ruleset",
    "compose_ruleset",
    "load_ruleset",
    "openapi_rules",
    "owasp_rules",
    "parse_ruleset",
    "recommended_rules",
]
