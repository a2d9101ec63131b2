"""Rule engine boundary for workflow-generated rules."""

from ticketflow.rules.engine import InMemoryRuleEngine, RuleEngine, rule_engine

__all__ = ["InMemoryRuleEngine", "RuleEngine", "rule_engine"]
