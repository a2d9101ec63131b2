"""Tests for the workflow optimizer."""

import pytest

from ticketflow.models import EndNode, StateNode, Workflow
from ticketflow.workflow.optimizer import (
    DEFAULT_SLA_MINUTES,
    match_sla_minutes,
    optimize_workflow,
)
from ticketflow.workflow.templates import WORKFLOW_TEMPLATES
from ticketflow.workflow.validator import validate_workflow


def _state(node_id: str, label: str, y: int, sla: int | None = None) -> dict:
    data: dict = {"label": label}
    if sla is not None:
        data["slaMinutes"] = sla
    return {"id": node_id, "type": "state", "data": data, "position": {"x": 0, "y": y}}


def _lone_trigger(workflow_data) -> Workflow:
    data = workflow_data(
        nodes={
            "trigger-1": {
                "id": "trigger-1",
                "type": "trigger",
                "data": {"event": "create"},
                "position": {"x": 0, "y": 0},
            }
        },
        transitions=[],
    )
    return Workflow.model_validate(data)


def _without_end(workflow_data) -> Workflow:
    data = workflow_data()
    del data["nodes"]["end-1"]
    data["transitions"] = data["transitions"][:2]
    return Workflow.model_validate(data)


def _states_of(wf: Workflow) -> dict[str, StateNode]:
    return {n.data.label: n for n in wf.nodes.values() if isinstance(n, StateNode)}


class TestOptimizerContract:
    """Tests for the optimizer's general guarantees."""

    def test_does_not_mutate_input(self, workflow_data):
        wf = _without_end(workflow_data)
        before = wf.model_dump_json()
        optimize_workflow(wf)
        assert wf.model_dump_json() == before

    def test_version_always_incremented(self, make_workflow):
        wf = make_workflow(version=7)
        assert optimize_workflow(wf).workflow.version == 8

    def test_version_incremented_without_changes(self, make_workflow):
        wf = make_workflow()
        once = optimize_workflow(wf).workflow
        twice = optimize_workflow(once)
        assert twice.workflow.version == once.version + 1

    def test_no_changes_for_fully_repaired_workflow(self, workflow_data):
        data = workflow_data()
        data["nodes"]["state-a"]["data"]["slaMinutes"] = 60
        data["nodes"]["state-b"]["data"]["slaMinutes"] = 60
        data["nodes"]["esc"] = _state("esc", "Escalated", 250, sla=120)
        data["transitions"].append({"id": "t4", "fromNodeId": "state-b", "toNodeId": "esc"})
        data["transitions"].append({"id": "t5", "fromNodeId": "esc", "toNodeId": "end-1"})

        result = optimize_workflow(Workflow.model_validate(data))
        assert result.changes == []

    @pytest.mark.parametrize("key", sorted(WORKFLOW_TEMPLATES))
    def test_output_validates_for_templates(self, key):
        result = optimize_workflow(WORKFLOW_TEMPLATES[key].create())
        assert validate_workflow(result.workflow).valid is True

    def test_output_validates_for_broken_inputs(self, workflow_data):
        for wf in (_without_end(workflow_data), _lone_trigger(workflow_data)):
            result = optimize_workflow(wf)
            validation = validate_workflow(result.workflow)
            assert validation.valid is True, validation.errors


class TestAddEndNode:
    """Tests for the add_end_node pass."""

    def test_adds_end_and_connects_dead_end(self, workflow_data):
        result = optimize_workflow(_without_end(workflow_data))
        wf = result.workflow

        ends = [n for n in wf.nodes.values() if isinstance(n, EndNode)]
        assert len(ends) == 1
        end = ends[0]
        assert any(
            t.from_node_id == "state-b" and t.to_node_id == end.id for t in wf.transitions
        )
        assert [c.type for c in result.changes].count("add_end_node") == 1

    def test_end_node_placed_below_lowest_node(self, workflow_data):
        wf = optimize_workflow(_without_end(workflow_data)).workflow
        end = wf.first_end_node()
        # Lowest existing node (State B) sits at y=200
        assert end.position.x == 300
        assert end.position.y == 340

    def test_keeps_existing_end_node(self, make_workflow):
        result = optimize_workflow(make_workflow())
        assert len(result.workflow.nodes_of_type("end")) == 1
        assert "add_end_node" not in [c.type for c in result.changes]


class TestConnectDeadEnds:
    """Tests for the connect_dead_end pass."""

    def test_lone_trigger(self, workflow_data):
        result = optimize_workflow(_lone_trigger(workflow_data))
        wf = result.workflow

        ends = wf.nodes_of_type("end")
        assert len(ends) == 1
        assert len(wf.transitions) == 1
        assert wf.transitions[0].from_node_id == "trigger-1"
        assert wf.transitions[0].to_node_id == ends[0].id
        assert [c.type for c in result.changes] == ["add_end_node", "connect_dead_end"]

    def test_change_records_transition(self, workflow_data):
        result = optimize_workflow(_lone_trigger(workflow_data))
        change = next(c for c in result.changes if c.type == "connect_dead_end")
        assert change.node_id == "trigger-1"
        assert change.transition_id == result.workflow.transitions[0].id


class TestDefaultSlas:
    """Tests for the add_sla pass."""

    def test_label_keywords(self, workflow_data):
        labels = ["New", "In Progress", "Custom Step", "Waiting on Customer", "Triage", "Escalated"]
        nodes = {
            "trigger-1": {"id": "trigger-1", "type": "trigger", "data": {"event": "create"}},
            "end-1": {"id": "end-1", "type": "end", "data": {"label": "End"}},
        }
        transitions = []
        previous = "trigger-1"
        for i, label in enumerate(labels):
            node_id = f"s{i}"
            nodes[node_id] = _state(node_id, label, 100 * (i + 1))
            transitions.append({"id": f"t{i}", "fromNodeId": previous, "toNodeId": node_id})
            previous = node_id
        transitions.append({"id": "t-end", "fromNodeId": previous, "toNodeId": "end-1"})

        wf = Workflow.model_validate(workflow_data(nodes=nodes, transitions=transitions))
        states = _states_of(optimize_workflow(wf).workflow)

        assert [states[label].data.sla_minutes for label in labels] == [60, 240, 240, 480, 60, 120]

    def test_never_overwrites_existing_value(self, workflow_data):
        data = workflow_data()
        data["nodes"]["state-a"]["data"]["slaMinutes"] = 30
        result = optimize_workflow(Workflow.model_validate(data))

        assert result.workflow.nodes["state-a"].data.sla_minutes == 30
        assert not any(
            c.type == "add_sla" and c.node_id == "state-a" for c in result.changes
        )

    def test_zero_counts_as_set(self, workflow_data):
        data = workflow_data()
        data["nodes"]["state-a"]["data"]["slaMinutes"] = 0
        result = optimize_workflow(Workflow.model_validate(data))
        assert result.workflow.nodes["state-a"].data.sla_minutes == 0

    def test_match_priority(self):
        # "escalat" is checked before "new"
        assert match_sla_minutes("New escalation") == 120
        assert match_sla_minutes("TRIAGE") == 60
        assert match_sla_minutes("Something else") == DEFAULT_SLA_MINUTES


class TestEscalationPath:
    """Tests for the add_escalation pass."""

    def test_adds_single_escalation_state(self, make_workflow):
        result = optimize_workflow(make_workflow())
        wf = result.workflow

        escalated = [
            n for n in wf.nodes.values()
            if isinstance(n, StateNode) and n.data.label == "Escalated"
        ]
        assert len(escalated) == 1
        esc_id = escalated[0].id

        for state_id in ("state-a", "state-b"):
            assert any(
                t.from_node_id == state_id and t.to_node_id == esc_id for t in wf.transitions
            )
        assert any(
            t.from_node_id == esc_id and t.to_node_id == "end-1" for t in wf.transitions
        )
        changes = [c for c in result.changes if c.type == "add_escalation"]
        assert len(changes) == 1
        assert changes[0].node_id == esc_id

    def test_rerun_adds_no_second_escalation(self, make_workflow):
        once = optimize_workflow(make_workflow()).workflow
        twice = optimize_workflow(once)

        labels = [n.data.label for n in twice.workflow.nodes.values() if isinstance(n, StateNode)]
        assert labels.count("Escalated") == 1
        assert "add_escalation" not in [c.type for c in twice.changes]
        assert len(twice.workflow.transitions) == len(once.transitions)

    def test_skipped_when_escalated_exists(self, workflow_data):
        data = workflow_data()
        data["nodes"]["esc"] = _state("esc", "Escalated", 250)
        data["transitions"].append({"id": "t4", "fromNodeId": "state-b", "toNodeId": "esc"})
        data["transitions"].append({"id": "t5", "fromNodeId": "esc", "toNodeId": "end-1"})

        result = optimize_workflow(Workflow.model_validate(data))
        assert "add_escalation" not in [c.type for c in result.changes]
        assert len(result.workflow.nodes) == len(data["nodes"])

    def test_skipped_without_states(self, workflow_data):
        data = workflow_data(
            nodes={
                "trigger-1": {"id": "trigger-1", "type": "trigger", "data": {"event": "create"}},
                "end-1": {"id": "end-1", "type": "end", "data": {}},
            },
            transitions=[{"id": "t1", "fromNodeId": "trigger-1", "toNodeId": "end-1"}],
        )
        result = optimize_workflow(Workflow.model_validate(data))
        assert result.changes == []


class TestFixBranches:
    """Tests for the fix_branch pass."""

    def _with_condition(self, workflow_data, extra_branches: list[dict]) -> Workflow:
        data = workflow_data()
        data["nodes"]["cond"] = {
            "id": "cond",
            "type": "condition",
            "data": {
                "logic": "all",
                "conditions": [{"field": "priority", "operator": "is", "value": "high"}],
            },
        }
        data["transitions"] = [
            {"id": "t1", "fromNodeId": "trigger-1", "toNodeId": "cond"},
            {"id": "t2", "fromNodeId": "state-a", "toNodeId": "state-b"},
            {"id": "t3", "fromNodeId": "state-b", "toNodeId": "end-1"},
            *extra_branches,
        ]
        return Workflow.model_validate(data)

    def test_adds_missing_branch(self, workflow_data):
        wf = self._with_condition(
            workflow_data,
            [{"id": "yes", "fromNodeId": "cond", "toNodeId": "state-a", "branchKey": "yes"}],
        )
        result = optimize_workflow(wf)
        outgoing = result.workflow.outgoing("cond")

        assert len(outgoing) == 2
        added = outgoing[1]
        assert added.branch_key == "no"
        assert added.to_node_id == "end-1"
        assert [c.type for c in result.changes].count("fix_branch") == 1

    def test_complete_condition_unchanged(self, workflow_data):
        wf = self._with_condition(
            workflow_data,
            [
                {"id": "yes", "fromNodeId": "cond", "toNodeId": "state-a", "branchKey": "yes"},
                {"id": "no", "fromNodeId": "cond", "toNodeId": "state-b", "branchKey": "no"},
            ],
        )
        result = optimize_workflow(wf)
        assert len(result.workflow.outgoing("cond")) == 2
        assert "fix_branch" not in [c.type for c in result.changes]

    def test_condition_without_branches(self, workflow_data):
        wf = self._with_condition(workflow_data, [])
        result = optimize_workflow(wf)
        outgoing = result.workflow.outgoing("cond")

        # connect_dead_end wires one edge, fix_branch adds the second
        assert len(outgoing) == 2
        assert outgoing[0].branch_key is None
        assert outgoing[1].branch_key == "yes"
