"""Deterministic workflow optimizer.

Runs five repair passes, in order, over a deep copy of the workflow:

1. add_end_node     - synthesize a terminal node when none exists
2. connect_dead_end - wire every dead-end node to the end node
3. add_sla          - assign default SLA minutes to state nodes without one
4. add_escalation   - add an "Escalated" state reachable from SLA states
5. fix_branch       - give condition nodes their missing branches

Each pass is idempotent on its own fixed point and appends one Change per
node or transition it touches. Later passes rely on the guarantees of
earlier ones (an end node exists before dead ends are wired to it; SLAs are
set before the escalation pass looks for SLA-bearing states).
"""

import logging
import uuid
from typing import Literal

from pydantic import BaseModel
from pydantic import Field as PydanticField

from ticketflow.models import (
    ConditionNode,
    EndNode,
    EndNodeData,
    Position,
    StateNode,
    StateNodeData,
    Workflow,
    WorkflowTransition,
    node_label,
    utc_now,
)

logger = logging.getLogger(__name__)

ChangeType = Literal[
    "add_end_node", "connect_dead_end", "add_sla", "add_escalation", "fix_branch"
]

# Checked in order; first substring match wins
SLA_DEFAULTS: list[tuple[str, int]] = [
    ("escalat", 120),
    ("triage", 60),
    ("new", 60),
    ("progress", 240),
    ("wait", 480),
]
DEFAULT_SLA_MINUTES = 240

ESCALATION_LABEL = "Escalated"
BRANCH_KEYS = ("yes", "no")

# Layout offsets for synthesized nodes
END_NODE_X = 300
END_NODE_Y_GAP = 140
ESCALATION_X_OFFSET = 200
ESCALATION_Y_OFFSET = -70


class Change(BaseModel):
    """A single repair applied by the optimizer."""

    type: ChangeType
    detail: str
    node_id: str | None = PydanticField(default=None, alias="nodeId")
    transition_id: str | None = PydanticField(default=None, alias="transitionId")

    model_config = {"populate_by_name": True}


class OptimizeResult(BaseModel):
    """The repaired workflow and the changes that produced it."""

    workflow: Workflow
    changes: list[Change] = []


def _generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def match_sla_minutes(label: str) -> int:
    """Pick a default SLA for a state from keywords in its label."""
    lower = label.lower()
    for keyword, minutes in SLA_DEFAULTS:
        if keyword in lower:
            return minutes
    return DEFAULT_SLA_MINUTES


def optimize_workflow(workflow: Workflow) -> OptimizeResult:
    """Run all repair passes and return the fixed copy plus its change log.

    The input workflow is never mutated. The returned workflow always has
    version ``workflow.version + 1``, even when nothing was repaired.
    """
    fixed = workflow.model_copy(deep=True)
    changes: list[Change] = []

    _add_missing_end_node(fixed, changes)
    _connect_dead_ends(fixed, changes)
    _add_default_slas(fixed, changes)
    _add_escalation_path(fixed, changes)
    _fix_incomplete_branches(fixed, changes)

    fixed.version = workflow.version + 1
    fixed.updated_at = utc_now()

    if changes:
        logger.info(
            f"Optimized workflow {workflow.id}: {len(changes)} change(s), "
            f"version {workflow.version} -> {fixed.version}"
        )
    return OptimizeResult(workflow=fixed, changes=changes)


# ==================== Pass 1: end node ====================


def _add_missing_end_node(workflow: Workflow, changes: list[Change]) -> None:
    if workflow.first_end_node() is not None:
        return

    max_y = max((n.position.y for n in workflow.nodes.values()), default=0)
    max_y = max(max_y, 0)

    end_id = _generate_id()
    workflow.nodes[end_id] = EndNode(
        id=end_id,
        data=EndNodeData(label="Closed"),
        position=Position(x=END_NODE_X, y=max_y + END_NODE_Y_GAP),
    )
    changes.append(
        Change(type="add_end_node", detail="Added missing end node", node_id=end_id)
    )


# ==================== Pass 2: dead ends ====================


def _connect_dead_ends(workflow: Workflow, changes: list[Change]) -> None:
    end_node = workflow.first_end_node()
    if end_node is None:
        return

    for node_id, node in list(workflow.nodes.items()):
        if isinstance(node, EndNode) or workflow.outgoing(node_id):
            continue

        transition = WorkflowTransition(
            id=_generate_id(),
            from_node_id=node_id,
            to_node_id=end_node.id,
            label="Close",
        )
        workflow.transitions.append(transition)
        changes.append(
            Change(
                type="connect_dead_end",
                detail=f'Connected dead-end "{node_label(node)}" to end node',
                node_id=node_id,
                transition_id=transition.id,
            )
        )


# ==================== Pass 3: SLAs ====================


def _add_default_slas(workflow: Workflow, changes: list[Change]) -> None:
    for node_id, node in workflow.nodes.items():
        if not isinstance(node, StateNode):
            continue
        # Any defined value, including 0, counts as set
        if node.data.sla_minutes is not None:
            continue

        minutes = match_sla_minutes(node.data.label)
        node.data.sla_minutes = minutes
        changes.append(
            Change(
                type="add_sla",
                detail=f'Set {minutes}m SLA on "{node.data.label}"',
                node_id=node_id,
            )
        )


# ==================== Pass 4: escalation ====================


def _add_escalation_path(workflow: Workflow, changes: list[Change]) -> None:
    states = [n for n in workflow.nodes.values() if isinstance(n, StateNode)]
    sla_states = [n for n in states if n.data.sla_minutes is not None]
    if not sla_states:
        return
    if any(n.data.label == ESCALATION_LABEL for n in states):
        return

    end_node = workflow.first_end_node()
    if end_node is None:
        return

    escalation_id = _generate_id()
    workflow.nodes[escalation_id] = StateNode(
        id=escalation_id,
        data=StateNodeData(label=ESCALATION_LABEL, color="bg-red-500"),
        position=Position(
            x=end_node.position.x + ESCALATION_X_OFFSET,
            y=end_node.position.y + ESCALATION_Y_OFFSET,
        ),
    )

    for state in sla_states:
        workflow.transitions.append(
            WorkflowTransition(
                id=_generate_id(),
                from_node_id=state.id,
                to_node_id=escalation_id,
                label="SLA Breach",
            )
        )
    workflow.transitions.append(
        WorkflowTransition(
            id=_generate_id(),
            from_node_id=escalation_id,
            to_node_id=end_node.id,
            label="Resolve",
        )
    )

    changes.append(
        Change(
            type="add_escalation",
            detail=(
                f"Added escalation path for SLA breach handling "
                f"from {len(sla_states)} state(s)"
            ),
            node_id=escalation_id,
        )
    )


# ==================== Pass 5: branches ====================


def _fix_incomplete_branches(workflow: Workflow, changes: list[Change]) -> None:
    end_node = workflow.first_end_node()
    if end_node is None:
        return

    for node_id, node in workflow.nodes.items():
        if not isinstance(node, ConditionNode):
            continue

        outgoing = workflow.outgoing(node_id)
        used_keys = {t.branch_key for t in outgoing if t.branch_key}
        count = len(outgoing)
        while count < 2:
            branch_key = _next_branch_key(used_keys)
            used_keys.add(branch_key)
            branch_label = branch_key.capitalize()

            transition = WorkflowTransition(
                id=_generate_id(),
                from_node_id=node_id,
                to_node_id=end_node.id,
                label=branch_label,
                branch_key=branch_key,
            )
            workflow.transitions.append(transition)
            count += 1
            changes.append(
                Change(
                    type="fix_branch",
                    detail=f'Added missing "{branch_label}" branch to condition node',
                    node_id=node_id,
                    transition_id=transition.id,
                )
            )


def _next_branch_key(used: set[str]) -> str:
    for key in BRANCH_KEYS:
        if key not in used:
            return key
    n = len(BRANCH_KEYS) + 1
    while f"branch-{n}" in used:
        n += 1
    return f"branch-{n}"
