"""Structural validation for workflow graphs.

The validator never raises. It collects every violation it finds and
reports them in graph order so the editor can show them all at once.
Errors make a workflow invalid; warnings are advisory only.
"""

from collections import deque

from pydantic import BaseModel

from ticketflow.models import (
    ActionNode,
    ConditionNode,
    EndNode,
    Workflow,
    node_label,
)


class ValidationResult(BaseModel):
    """Result of validating a workflow graph."""

    valid: bool
    errors: list[str] = []
    warnings: list[str] = []


def reachable_node_ids(workflow: Workflow) -> set[str]:
    """Return the ids of all nodes reachable from the entry node.

    Transitions pointing at unknown nodes are ignored. An unknown entry
    node yields an empty set.
    """
    if workflow.entry_node_id not in workflow.nodes:
        return set()

    adjacency: dict[str, list[str]] = {}
    for t in workflow.transitions:
        if t.to_node_id in workflow.nodes:
            adjacency.setdefault(t.from_node_id, []).append(t.to_node_id)

    seen = {workflow.entry_node_id}
    queue = deque([workflow.entry_node_id])
    while queue:
        current = queue.popleft()
        for target in adjacency.get(current, []):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def validate_workflow(workflow: Workflow) -> ValidationResult:
    """Check a workflow for structural soundness.

    Args:
        workflow: The workflow to check. It is not modified.

    Returns:
        ValidationResult with valid=True when no errors were found.
    """
    errors: list[str] = []
    warnings: list[str] = []

    # Entry node
    entry_known = workflow.entry_node_id in workflow.nodes
    if not workflow.entry_node_id:
        errors.append("Workflow must have an entryNodeId")
    elif not entry_known:
        errors.append(
            f'entryNodeId "{workflow.entry_node_id}" does not reference a valid node'
        )

    for key, node in workflow.nodes.items():
        if key != node.id:
            errors.append(f'Node key "{key}" does not match node id "{node.id}"')

    # Transition references
    seen_transition_ids: set[str] = set()
    for t in workflow.transitions:
        if t.id in seen_transition_ids:
            errors.append(f'Duplicate transition id "{t.id}"')
        seen_transition_ids.add(t.id)
        if t.from_node_id not in workflow.nodes:
            errors.append(
                f'Transition "{t.id}" references unknown fromNodeId "{t.from_node_id}"'
            )
        if t.to_node_id not in workflow.nodes:
            errors.append(
                f'Transition "{t.id}" references unknown toNodeId "{t.to_node_id}"'
            )

    reachable = reachable_node_ids(workflow) if entry_known else None

    for node_id, node in workflow.nodes.items():
        label = node_label(node)
        outgoing = workflow.outgoing(node_id)

        if (
            reachable is not None
            and not isinstance(node, EndNode)
            and node_id not in reachable
        ):
            errors.append(f'"{label}" ({node_id}) is not reachable from the entry node')

        if isinstance(node, ConditionNode) and len(outgoing) < 2:
            errors.append(
                f'Condition "{label}" ({node_id}) is incomplete: '
                f"it needs at least 2 branches, found {len(outgoing)}"
            )

        if not isinstance(node, EndNode) and not outgoing:
            errors.append(f'"{label}" ({node_id}) is a dead end with no outgoing transitions')

        if node_id != workflow.entry_node_id and not workflow.incoming(node_id):
            warnings.append(f'"{label}" ({node_id}) has no incoming transitions')

        if isinstance(node, ActionNode) and not node.data.actions:
            warnings.append(f"Action node ({node_id}) has no actions defined")

    if not workflow.nodes_of_type("end"):
        warnings.append("Workflow has no end node, tickets may stay in progress forever")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
