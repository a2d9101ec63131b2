"""Pydantic models for automation rules produced by workflow decomposition."""

from typing import Any, Literal

from pydantic import BaseModel, model_validator
from pydantic import Field as PydanticField

RuleType = Literal["trigger", "automation", "sla"]


class RuleCondition(BaseModel):
    """A single field/operator/value clause evaluated against a ticket."""

    field: str
    operator: str
    value: Any = None


class RuleConditions(BaseModel):
    """Clause groups: every `all` clause must match, and at least one `any` clause."""

    all: list[RuleCondition] | None = None
    any: list[RuleCondition] | None = None


class RuleAction(BaseModel):
    """An action descriptor executed by the rule engine.

    Only `type` is interpreted here; the remaining keys are passed through
    to the engine untouched.
    """

    type: str
    value: Any | None = None
    field: str | None = None
    channel: str | None = None
    to: str | None = None
    template: str | None = None
    url: str | None = None
    method: str | None = None
    body: str | None = None


class Rule(BaseModel):
    """A flattened trigger/condition/action unit consumed by the rule engine."""

    id: str
    type: RuleType
    name: str
    enabled: bool = True
    conditions: RuleConditions
    actions: list[RuleAction] = []

    # Traceability back to the originating workflow element
    source_workflow_id: str | None = PydanticField(default=None, alias="sourceWorkflowId")
    source_node_id: str | None = PydanticField(default=None, alias="sourceNodeId")
    source_transition_id: str | None = PydanticField(
        default=None, alias="sourceTransitionId"
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_single_source(self) -> "Rule":
        """Workflow rules must point at exactly one node or transition."""
        if self.source_workflow_id is None:
            return self
        if (self.source_node_id is None) == (self.source_transition_id is None):
            raise ValueError(
                "workflow rules need exactly one of sourceNodeId or sourceTransitionId"
            )
        return self

    @property
    def is_manual(self) -> bool:
        """True for rules not generated from a workflow."""
        return self.source_workflow_id is None
