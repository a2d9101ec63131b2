"""Pydantic models for ticketflow."""

from ticketflow.models.rule import Rule, RuleAction, RuleCondition, RuleConditions, RuleType
from ticketflow.models.workflow import (
    ActionNode,
    ActionNodeData,
    BaseNode,
    ConditionNode,
    ConditionNodeData,
    DelayNode,
    DelayNodeData,
    EndNode,
    EndNodeData,
    NodeKind,
    Position,
    StateNode,
    StateNodeData,
    TriggerNode,
    TriggerNodeData,
    Workflow,
    WorkflowNode,
    WorkflowSummary,
    WorkflowTransition,
    node_label,
    utc_now,
)

__all__ = [
    # Rules
    "Rule",
    "RuleAction",
    "RuleCondition",
    "RuleConditions",
    "RuleType",
    # Workflow graph
    "ActionNode",
    "ActionNodeData",
    "BaseNode",
    "ConditionNode",
    "ConditionNodeData",
    "DelayNode",
    "DelayNodeData",
    "EndNode",
    "EndNodeData",
    "NodeKind",
    "Position",
    "StateNode",
    "StateNodeData",
    "TriggerNode",
    "TriggerNodeData",
    "Workflow",
    "WorkflowNode",
    "WorkflowSummary",
    "WorkflowTransition",
    "node_label",
    "utc_now",
]
