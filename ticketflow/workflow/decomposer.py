"""Workflow decomposer: lowers a workflow graph into flat automation rules.

A ticket's position in a workflow is tracked with a state tag
(``wf:<workflow>:state:<node>``). Each transition becomes a rule that
matches tickets carrying the source tag and moves the tag to the target:

- transitions out of the entry trigger match the trigger event instead
- transitions out of a condition node add the node's clauses on a "yes"
  branch; every other edge (a "no" branch, a keyless edge such as the
  optimizer's "Close" wiring) is the else branch and adds their negation
- transitions out of a delay node wait for elapsed time or an event
- state nodes add on-enter rules and SLA breach rules

Every rule records the workflow and the single node or transition it came
from, so the sync layer can replace or remove exactly one workflow's rules.
"""

from typing import Literal

from pydantic import BaseModel
from pydantic import Field as PydanticField

from ticketflow.models import (
    ConditionNode,
    DelayNode,
    Rule,
    RuleAction,
    RuleCondition,
    RuleConditions,
    StateNode,
    TriggerNode,
    Workflow,
    WorkflowNode,
    WorkflowTransition,
    node_label,
    utc_now,
)
from ticketflow.workflow.errors import DecompositionError

EXPORT_FORMAT = "cliaas-workflow-v1"

# Prefix for all workflow-generated rule ids
WF_RULE_PREFIX = "wf-"

YES_BRANCHES = frozenset({"yes", "true"})

NEGATED_OPERATORS: dict[str, str] = {
    "is": "is_not",
    "equals": "not_equals",
    "is_not": "is",
    "not_equals": "equals",
    "contains": "not_contains",
    "not_contains": "contains",
    "greater_than": "less_than",
    "less_than": "greater_than",
    "is_empty": "is_not_empty",
    "is_not_empty": "is_empty",
    "in": "not_in",
    "not_in": "in",
}


class WorkflowExport(BaseModel):
    """Portable export of a workflow together with its decomposed rules."""

    format: Literal["cliaas-workflow-v1"] = EXPORT_FORMAT
    workflow: Workflow
    exported_at: str = PydanticField(alias="exportedAt")
    rule_count: int = PydanticField(alias="ruleCount")
    rules: list[Rule]

    model_config = {"populate_by_name": True}


def state_tag(workflow_id: str, node_id: str) -> str:
    """Tag marking a ticket as currently sitting in a workflow node."""
    return f"wf:{workflow_id}:state:{node_id}"


def make_rule_id(workflow_id: str, suffix: str) -> str:
    return f"{WF_RULE_PREFIX}{workflow_id}-{suffix}"


def negate_operator(operator: str) -> str:
    return NEGATED_OPERATORS.get(operator, operator)


def decompose_workflow(workflow: Workflow) -> list[Rule]:
    """Lower a workflow into rules for the automation engine.

    The output is deterministic: an unchanged workflow always produces the
    same rules in the same order.

    Raises:
        DecompositionError: If the graph contains an element that cannot be
            expressed as a rule. No partial rule list is returned.
    """
    wf_id = workflow.id
    entry = workflow.nodes.get(workflow.entry_node_id)
    if entry is None:
        raise DecompositionError(
            f'Entry node "{workflow.entry_node_id}" does not exist', workflow_id=wf_id
        )

    rules: list[Rule] = []
    entry_is_trigger = isinstance(entry, TriggerNode)

    if isinstance(entry, TriggerNode):
        for transition in workflow.outgoing(entry.id):
            target = _require_node(workflow, transition.to_node_id, transition)
            rules.append(_entry_rule(workflow, entry, transition, target))

    for transition in workflow.transitions:
        if entry_is_trigger and transition.from_node_id == entry.id:
            continue
        source = _require_node(workflow, transition.from_node_id, transition)
        target = _require_node(workflow, transition.to_node_id, transition)
        rules.append(_transition_rule(workflow, source, target, transition))

    for node_id, node in workflow.nodes.items():
        if isinstance(node, StateNode):
            rules.extend(_state_rules(workflow, node_id, node))

    return rules


def export_workflow(workflow: Workflow) -> WorkflowExport:
    """Package a workflow and its rules for offline inspection or transfer."""
    rules = decompose_workflow(workflow)
    return WorkflowExport(
        workflow=workflow,
        exported_at=utc_now(),
        rule_count=len(rules),
        rules=rules,
    )


# ==================== Rule builders ====================


def _require_node(
    workflow: Workflow, node_id: str, transition: WorkflowTransition
) -> WorkflowNode:
    node = workflow.nodes.get(node_id)
    if node is None:
        raise DecompositionError(
            f'Transition "{transition.id}" references unknown node "{node_id}"',
            workflow_id=workflow.id,
            transition_id=transition.id,
        )
    return node


def _entry_rule(
    workflow: Workflow,
    entry: TriggerNode,
    transition: WorkflowTransition,
    target: WorkflowNode,
) -> Rule:
    conditions: list[RuleCondition] = []
    if entry.data.event:
        conditions.append(RuleCondition(field="event", operator="is", value=entry.data.event))
    if entry.data.conditions:
        conditions.extend(c.model_copy() for c in entry.data.conditions)
    if transition.conditions:
        conditions.extend(c.model_copy() for c in transition.conditions)

    actions = [a.model_copy() for a in transition.actions or []]
    actions.append(RuleAction(type="add_tag", value=state_tag(workflow.id, target.id)))

    return Rule(
        id=make_rule_id(workflow.id, f"entry-{transition.id}"),
        type="trigger",
        name=f"[WF] {workflow.name}: Entry -> {node_label(target)}",
        enabled=workflow.enabled,
        conditions=RuleConditions(all=conditions),
        actions=actions,
        source_workflow_id=workflow.id,
        source_transition_id=transition.id,
    )


def _transition_rule(
    workflow: Workflow,
    source: WorkflowNode,
    target: WorkflowNode,
    transition: WorkflowTransition,
) -> Rule:
    all_conditions = [
        RuleCondition(
            field="tags", operator="contains", value=state_tag(workflow.id, source.id)
        )
    ]
    any_conditions: list[RuleCondition] = []
    rule_type = "trigger"

    if isinstance(source, ConditionNode):
        branch = (transition.branch_key or "").lower()
        clauses = [c.model_copy() for c in source.data.conditions]
        if branch in YES_BRANCHES:
            if source.data.logic == "any":
                any_conditions.extend(clauses)
            else:
                all_conditions.extend(clauses)
        else:
            negated = [
                RuleCondition(
                    field=c.field, operator=negate_operator(c.operator), value=c.value
                )
                for c in clauses
            ]
            # not(all(c)) == any(not c); not(any(c)) == all(not c)
            if source.data.logic == "any":
                all_conditions.extend(negated)
            else:
                any_conditions.extend(negated)

    elif isinstance(source, DelayNode):
        delay = source.data
        if delay.type == "time":
            if not delay.minutes or delay.minutes <= 0:
                raise DecompositionError(
                    f'Time delay node "{source.id}" has no positive minutes',
                    workflow_id=workflow.id,
                    node_id=source.id,
                )
            all_conditions.append(
                RuleCondition(
                    field="hours_since_updated",
                    operator="greater_than",
                    value=delay.minutes / 60,
                )
            )
            rule_type = "automation"
        else:
            if not delay.event:
                raise DecompositionError(
                    f'Event delay node "{source.id}" has no event',
                    workflow_id=workflow.id,
                    node_id=source.id,
                )
            all_conditions.append(RuleCondition(field="event", operator="is", value=delay.event))

    if transition.conditions:
        all_conditions.extend(c.model_copy() for c in transition.conditions)

    actions = [a.model_copy() for a in transition.actions or []]
    actions.append(RuleAction(type="remove_tag", value=state_tag(workflow.id, source.id)))
    actions.append(RuleAction(type="add_tag", value=state_tag(workflow.id, target.id)))

    return Rule(
        id=make_rule_id(workflow.id, f"t-{transition.id}"),
        type=rule_type,
        name=f"[WF] {workflow.name}: {node_label(source)} -> {node_label(target)}",
        enabled=workflow.enabled,
        conditions=RuleConditions(all=all_conditions, any=any_conditions or None),
        actions=actions,
        source_workflow_id=workflow.id,
        source_transition_id=transition.id,
    )


def _state_rules(workflow: Workflow, node_id: str, node: StateNode) -> list[Rule]:
    rules: list[Rule] = []
    tag_condition = RuleCondition(
        field="tags", operator="contains", value=state_tag(workflow.id, node_id)
    )

    if node.data.on_enter_actions:
        rules.append(
            Rule(
                id=make_rule_id(workflow.id, f"enter-{node_id}"),
                type="trigger",
                name=f"[WF] {workflow.name}: Enter {node.data.label}",
                enabled=workflow.enabled,
                conditions=RuleConditions(all=[tag_condition]),
                actions=[a.model_copy() for a in node.data.on_enter_actions],
                source_workflow_id=workflow.id,
                source_node_id=node_id,
            )
        )

    # A zero SLA is "set" but carries no timer
    if node.data.sla_minutes is not None and node.data.sla_minutes > 0:
        rules.append(
            Rule(
                id=make_rule_id(workflow.id, f"sla-{node_id}"),
                type="sla",
                name=f"[WF] {workflow.name}: SLA breach for {node.data.label}",
                enabled=workflow.enabled,
                conditions=RuleConditions(
                    all=[
                        tag_condition.model_copy(),
                        RuleCondition(
                            field="hours_since_updated",
                            operator="greater_than",
                            value=node.data.sla_minutes / 60,
                        ),
                    ]
                ),
                actions=[RuleAction(type="escalate")],
                source_workflow_id=workflow.id,
                source_node_id=node_id,
            )
        )

    return rules
