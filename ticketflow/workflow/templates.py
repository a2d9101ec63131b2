"""Starter workflow templates.

Each constructor returns a fresh, valid workflow with new ids and
pre-positioned nodes. Templates are created disabled at version 1.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass

from ticketflow.models import (
    ActionNode,
    ActionNodeData,
    ConditionNode,
    ConditionNodeData,
    EndNode,
    EndNodeData,
    Position,
    RuleAction,
    RuleCondition,
    StateNode,
    StateNodeData,
    TriggerNode,
    TriggerNodeData,
    Workflow,
    WorkflowNode,
    WorkflowTransition,
    utc_now,
)


def _generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def _transition(
    from_id: str, to_id: str, label: str | None = None, branch_key: str | None = None
) -> WorkflowTransition:
    return WorkflowTransition(
        id=_generate_id(),
        from_node_id=from_id,
        to_node_id=to_id,
        label=label,
        branch_key=branch_key,
    )


def _state(node_id: str, label: str, color: str, y: float, sla: int | None = None) -> StateNode:
    return StateNode(
        id=node_id,
        data=StateNodeData(label=label, color=color, sla_minutes=sla),
        position=Position(x=300, y=y),
    )


def _template(
    name: str,
    description: str,
    nodes: list[WorkflowNode],
    transitions: list[WorkflowTransition],
    entry_node_id: str,
) -> Workflow:
    now = utc_now()
    return Workflow(
        id=_generate_id(),
        name=name,
        description=description,
        nodes={n.id: n for n in nodes},
        transitions=transitions,
        entry_node_id=entry_node_id,
        enabled=False,
        version=1,
        created_at=now,
        updated_at=now,
    )


def simple_lifecycle() -> Workflow:
    """Trigger -> New -> Triage -> In Progress <-> Waiting -> Resolved -> Closed."""
    trigger, new, triage, in_progress, waiting, resolved, closed = (
        _generate_id() for _ in range(7)
    )

    nodes: list[WorkflowNode] = [
        TriggerNode(
            id=trigger, data=TriggerNodeData(event="create"), position=Position(x=300, y=40)
        ),
        _state(new, "New", "bg-blue-500", 140),
        _state(triage, "Triage", "bg-amber-500", 240),
        _state(in_progress, "In Progress", "bg-emerald-500", 340),
        _state(waiting, "Waiting", "bg-purple-500", 440),
        _state(resolved, "Resolved", "bg-teal-500", 540),
        EndNode(id=closed, data=EndNodeData(label="Closed"), position=Position(x=300, y=640)),
    ]

    transitions = [
        _transition(trigger, new),
        _transition(new, triage, "Review"),
        _transition(triage, in_progress, "Assign"),
        _transition(in_progress, waiting, "Waiting on customer"),
        _transition(waiting, in_progress, "Customer replied"),
        _transition(in_progress, resolved, "Resolve"),
        _transition(resolved, closed, "Close"),
        _transition(resolved, in_progress, "Reopen"),
    ]

    return _template(
        "Simple Lifecycle",
        "Standard ticket lifecycle: New, Triage, In Progress, Waiting, Resolved, Closed",
        nodes,
        transitions,
        trigger,
    )


def escalation_pipeline() -> Workflow:
    """Route urgent tickets to immediate handling and everything else to a queue."""
    trigger, check_priority, immediate, queue, in_progress, resolved = (
        _generate_id() for _ in range(6)
    )

    nodes: list[WorkflowNode] = [
        TriggerNode(
            id=trigger, data=TriggerNodeData(event="create"), position=Position(x=300, y=40)
        ),
        ConditionNode(
            id=check_priority,
            data=ConditionNodeData(
                logic="any",
                conditions=[RuleCondition(field="priority", operator="is", value="urgent")],
            ),
            position=Position(x=300, y=160),
        ),
        ActionNode(
            id=immediate,
            data=ActionNodeData(
                actions=[
                    RuleAction(type="set_priority", value="urgent"),
                    RuleAction(type="add_tag", value="escalated"),
                ]
            ),
            position=Position(x=120, y=300),
        ),
        StateNode(
            id=queue,
            data=StateNodeData(label="Queue", color="bg-zinc-400"),
            position=Position(x=480, y=300),
        ),
        _state(in_progress, "In Progress", "bg-emerald-500", 440),
        EndNode(id=resolved, data=EndNodeData(label="Resolved"), position=Position(x=300, y=560)),
    ]

    transitions = [
        _transition(trigger, check_priority),
        _transition(check_priority, immediate, "Urgent", branch_key="yes"),
        _transition(check_priority, queue, "Normal", branch_key="no"),
        _transition(immediate, in_progress),
        _transition(queue, in_progress, "Pick up"),
        _transition(in_progress, resolved, "Resolve"),
    ]

    return _template(
        "Escalation Pipeline",
        "Route urgent tickets to immediate assignment, others to a queue",
        nodes,
        transitions,
        trigger,
    )


def sla_driven() -> Workflow:
    """Trigger -> New (1h SLA) -> In Progress (4h SLA) -> Escalated -> Resolved."""
    trigger, new, in_progress, escalated, resolved = (_generate_id() for _ in range(5))

    nodes: list[WorkflowNode] = [
        TriggerNode(
            id=trigger, data=TriggerNodeData(event="create"), position=Position(x=300, y=40)
        ),
        _state(new, "New", "bg-blue-500", 160, sla=60),
        _state(in_progress, "In Progress", "bg-emerald-500", 300, sla=240),
        _state(escalated, "Escalated", "bg-red-500", 440),
        EndNode(id=resolved, data=EndNodeData(label="Resolved"), position=Position(x=300, y=560)),
    ]

    transitions = [
        _transition(trigger, new),
        _transition(new, in_progress, "Assign"),
        _transition(in_progress, escalated, "Escalate"),
        _transition(in_progress, resolved, "Resolve"),
        _transition(escalated, resolved, "Resolve"),
    ]

    return _template(
        "SLA-Driven",
        "Ticket lifecycle with SLA timers: 1h for triage, 4h for resolution",
        nodes,
        transitions,
        trigger,
    )


@dataclass(frozen=True)
class WorkflowTemplate:
    """A named template constructor."""

    key: str
    label: str
    description: str
    create: Callable[[], Workflow]


WORKFLOW_TEMPLATES: dict[str, WorkflowTemplate] = {
    t.key: t
    for t in (
        WorkflowTemplate(
            "simple-lifecycle",
            "Simple Lifecycle",
            "Standard ticket lifecycle from New to Closed",
            simple_lifecycle,
        ),
        WorkflowTemplate(
            "escalation-pipeline",
            "Escalation Pipeline",
            "Urgent tickets skip the queue",
            escalation_pipeline,
        ),
        WorkflowTemplate(
            "sla-driven",
            "SLA-Driven",
            "Lifecycle with SLA timers and an escalation state",
            sla_driven,
        ),
    )
}


def get_template(key: str) -> WorkflowTemplate | None:
    return WORKFLOW_TEMPLATES.get(key)
