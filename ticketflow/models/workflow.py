"""Pydantic models for workflow graphs (nodes, transitions, workflows)."""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Discriminator, Tag
from pydantic import Field as PydanticField

from ticketflow.models.rule import RuleAction, RuleCondition


def utc_now() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


NodeKind = Literal["trigger", "state", "condition", "action", "delay", "end"]


class Position(BaseModel):
    """Canvas position of a node. Only used for layout."""

    x: float = 0
    y: float = 0


# ==================== Node payloads ====================


class TriggerNodeData(BaseModel):
    """Payload of a trigger node: the ticket event that starts the flow."""

    event: str
    conditions: list[RuleCondition] | None = None


class StateNodeData(BaseModel):
    """Payload of a state node."""

    label: str
    color: str | None = None
    mandatory_fields: list[str] | None = PydanticField(default=None, alias="mandatoryFields")
    sla_minutes: int | None = PydanticField(default=None, alias="slaMinutes")
    on_enter_actions: list[RuleAction] | None = PydanticField(
        default=None, alias="onEnterActions"
    )

    model_config = {"populate_by_name": True}


class ConditionNodeData(BaseModel):
    """Payload of a branching condition node."""

    logic: Literal["all", "any"] = "all"
    conditions: list[RuleCondition] = []


class ActionNodeData(BaseModel):
    """Payload of an action node. Actions are opaque to the graph checks."""

    actions: list[RuleAction] = []


class DelayNodeData(BaseModel):
    """Payload of a delay node: wait for time to pass or for an event."""

    type: Literal["time", "event"] = "time"
    minutes: int | None = None
    event: str | None = None


class EndNodeData(BaseModel):
    """Payload of a terminal node."""

    label: str | None = None


# ==================== Nodes ====================


class BaseNode(BaseModel):
    """Fields shared by every node variant."""

    id: str
    position: Position = PydanticField(default_factory=Position)


class TriggerNode(BaseNode):
    type: Literal["trigger"] = "trigger"
    data: TriggerNodeData


class StateNode(BaseNode):
    type: Literal["state"] = "state"
    data: StateNodeData


class ConditionNode(BaseNode):
    type: Literal["condition"] = "condition"
    data: ConditionNodeData


class ActionNode(BaseNode):
    type: Literal["action"] = "action"
    data: ActionNodeData


class DelayNode(BaseNode):
    type: Literal["delay"] = "delay"
    data: DelayNodeData


class EndNode(BaseNode):
    type: Literal["end"] = "end"
    data: EndNodeData = PydanticField(default_factory=EndNodeData)


def _get_node_discriminator(v: Any) -> str | None:
    """Discriminator function for the WorkflowNode union."""
    if isinstance(v, dict):
        return v.get("type")
    return getattr(v, "type", None)


WorkflowNode = Annotated[
    Annotated[TriggerNode, Tag("trigger")]
    | Annotated[StateNode, Tag("state")]
    | Annotated[ConditionNode, Tag("condition")]
    | Annotated[ActionNode, Tag("action")]
    | Annotated[DelayNode, Tag("delay")]
    | Annotated[EndNode, Tag("end")],
    Discriminator(_get_node_discriminator),
]


def node_label(node: BaseNode | None) -> str:
    """Human-readable label for a node, used in messages and rule names."""
    if node is None:
        return "(unknown)"
    if isinstance(node, StateNode):
        return node.data.label or "State"
    if isinstance(node, EndNode):
        return node.data.label or "End"
    if isinstance(node, TriggerNode):
        return "Trigger"
    if isinstance(node, ConditionNode):
        return "Condition"
    if isinstance(node, ActionNode):
        return "Action"
    if isinstance(node, DelayNode):
        return "Delay"
    return node.id


# ==================== Transitions ====================


class WorkflowTransition(BaseModel):
    """A directed edge between two nodes."""

    id: str
    from_node_id: str = PydanticField(alias="fromNodeId")
    to_node_id: str = PydanticField(alias="toNodeId")
    label: str | None = None
    conditions: list[RuleCondition] | None = None
    actions: list[RuleAction] | None = None
    # Distinguishes the outgoing edges of a condition node ("yes" / "no")
    branch_key: str | None = PydanticField(default=None, alias="branchKey")

    model_config = {"populate_by_name": True}


# ==================== Workflow ====================


class Workflow(BaseModel):
    """A workflow graph: nodes keyed by id plus ordered transitions."""

    id: str
    name: str
    description: str | None = None
    nodes: dict[str, WorkflowNode] = {}
    transitions: list[WorkflowTransition] = []
    entry_node_id: str = PydanticField(alias="entryNodeId")
    enabled: bool = False
    version: int = 1
    created_at: str = PydanticField(default_factory=utc_now, alias="createdAt")
    updated_at: str = PydanticField(default_factory=utc_now, alias="updatedAt")

    model_config = {"populate_by_name": True}

    def outgoing(self, node_id: str) -> list[WorkflowTransition]:
        """Transitions leaving a node, in workflow order."""
        return [t for t in self.transitions if t.from_node_id == node_id]

    def incoming(self, node_id: str) -> list[WorkflowTransition]:
        """Transitions entering a node, in workflow order."""
        return [t for t in self.transitions if t.to_node_id == node_id]

    def nodes_of_type(self, kind: NodeKind) -> list[WorkflowNode]:
        return [n for n in self.nodes.values() if n.type == kind]

    def first_end_node(self) -> EndNode | None:
        for node in self.nodes.values():
            if isinstance(node, EndNode):
                return node
        return None

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase wire shape, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class WorkflowSummary(BaseModel):
    """Summary of a workflow for listings."""

    id: str
    name: str
    description: str | None = None
    enabled: bool
    version: int
    node_count: int = PydanticField(alias="nodeCount")
    transition_count: int = PydanticField(alias="transitionCount")
    node_types: dict[str, int] = PydanticField(default_factory=dict, alias="nodeTypes")
    updated_at: str = PydanticField(alias="updatedAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> "WorkflowSummary":
        node_types: dict[str, int] = {}
        for node in workflow.nodes.values():
            node_types[node.type] = node_types.get(node.type, 0) + 1
        return cls(
            id=workflow.id,
            name=workflow.name,
            description=workflow.description,
            enabled=workflow.enabled,
            version=workflow.version,
            node_count=len(workflow.nodes),
            transition_count=len(workflow.transitions),
            node_types=node_types,
            updated_at=workflow.updated_at,
        )
