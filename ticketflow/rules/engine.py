"""Rule engine boundary for workflow-generated automation rules.

The automation engine that evaluates rules against live tickets lives
elsewhere. This module defines the two operations the workflow engine needs
from it (push and remove a workflow's rules) plus an in-memory
implementation that also holds manually authored rules.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from ticketflow.models import Rule

logger = logging.getLogger(__name__)


class RuleEngine(ABC):
    """Abstract store of automation rules, partitioned by source workflow.

    Both operations must be idempotent: pushing the same rules twice, or
    removing a workflow that has no rules, leaves the engine unchanged.

    Example:
        engine = InMemoryRuleEngine()
        await engine.push(workflow.id, decompose_workflow(workflow))
        ...
        await engine.remove(workflow.id)
    """

    @abstractmethod
    async def push(self, workflow_id: str, rules: list[Rule]) -> None:
        """Replace every rule of a workflow with a new set.

        Args:
            workflow_id: The workflow that owns the rules
            rules: The complete new rule set for that workflow
        """

    @abstractmethod
    async def remove(self, workflow_id: str) -> int:
        """Remove every rule of a workflow.

        Args:
            workflow_id: The workflow whose rules should be dropped

        Returns:
            Number of rules removed
        """

    @abstractmethod
    async def list_rules(self) -> list[Rule]:
        """Return all rules currently loaded, manual rules included."""

    async def workflow_ids(self) -> set[str]:
        """Ids of all workflows that currently have rules loaded."""
        return {r.source_workflow_id for r in await self.list_rules() if r.source_workflow_id}


class InMemoryRuleEngine(RuleEngine):
    """Process-local rule store.

    Mutations build a new list and swap it in under a lock, so readers never
    observe a half-replaced rule set.
    """

    def __init__(self, rules: list[Rule] | None = None):
        self._rules: list[Rule] = list(rules or [])
        self._lock = asyncio.Lock()

    async def push(self, workflow_id: str, rules: list[Rule]) -> None:
        foreign = [r for r in rules if r.source_workflow_id != workflow_id]
        if foreign:
            raise ValueError(
                f"Cannot push {len(foreign)} rule(s) not owned by workflow {workflow_id}"
            )

        async with self._lock:
            kept = [r for r in self._rules if r.source_workflow_id != workflow_id]
            self._rules = kept + list(rules)
        logger.info(f"Pushed {len(rules)} rule(s) for workflow {workflow_id}")

    async def remove(self, workflow_id: str) -> int:
        async with self._lock:
            kept = [r for r in self._rules if r.source_workflow_id != workflow_id]
            removed = len(self._rules) - len(kept)
            self._rules = kept
        if removed:
            logger.info(f"Removed {removed} rule(s) for workflow {workflow_id}")
        return removed

    async def list_rules(self) -> list[Rule]:
        return list(self._rules)

    async def set_rules(self, rules: list[Rule]) -> None:
        """Replace the whole rule set, manual rules included."""
        async with self._lock:
            self._rules = list(rules)

    async def add_rule(self, rule: Rule) -> None:
        """Add a single rule, replacing any rule with the same id."""
        async with self._lock:
            self._rules = [r for r in self._rules if r.id != rule.id] + [rule]

    def clear(self) -> None:
        """Drop every rule."""
        self._rules = []


# Process-wide engine used by the API and the bootstrapper
rule_engine = InMemoryRuleEngine()
