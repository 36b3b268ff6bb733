"""The motor: runs composed rulesets over documents."""

from oaslint.motor.engine import (
    RuleSetExecution,
    RuleSetExecutionResult,
    apply_rules,
)

__all__ = ["RuleSetExecution", "RuleSetExecutionResult", "apply_rules"]
