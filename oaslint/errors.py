"""Exception hierarchy raised by the composer, loader and document layer."""

from __future__ import annotations


class OasLintError(Exception):
    """Base class for every error raised by oaslint."""


class RulesetParseError(OasLintError):
    """Ruleset bytes could not be deserialised or a rule definition is malformed."""


class EmptyRulesetError(OasLintError):
    """A ruleset defines no rules and extends nothing."""


class UnknownFunctionError(OasLintError):
    """A rule references a function that is not registered."""

    def __init__(self, rule_id: str, function: str) -> None:
        self.rule_id = rule_id
        self.function = function
        super().__init__(f"rule '{rule_id}' uses unknown function '{function}'")


class RemoteFetchError(OasLintError):
    """A remote ruleset or document could not be fetched."""

    def __init__(self, location: str, cause: Exception | str) -> None:
        self.location = location
        self.cause = cause
        super().__init__(f"unable to fetch '{location}': {cause}")


class LocalReadError(OasLintError):
    """A local ruleset could not be read from disk."""

    def __init__(self, location: str, cause: Exception | str) -> None:
        self.location = location
        self.cause = cause
        super().__init__(f"unable to read '{location}': {cause}")


class DocumentParseError(OasLintError):
    """Specification bytes cannot be parsed into a node tree."""


class LocatorEvaluationError(OasLintError):
    """A ``given`` expression could not be parsed or evaluated."""

    def __init__(self, expression: str, cause: Exception | str) -> None:
        self.expression = expression
        self.cause = cause
        super().__init__(f"unable to evaluate path '{expression}': {cause}")
