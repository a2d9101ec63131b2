"""Workflow API routes."""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel
from pydantic import Field as PydanticField

from ticketflow.db import workflow_store
from ticketflow.models import (
    Workflow,
    WorkflowNode,
    WorkflowSummary,
    WorkflowTransition,
    utc_now,
)
from ticketflow.workflow import (
    WORKFLOW_TEMPLATES,
    DecompositionError,
    OptimizeResult,
    SyncResult,
    ValidationResult,
    WorkflowExport,
    decompose_workflow,
    export_workflow,
    get_template,
    optimize_workflow,
    sync_single_workflow,
    validate_workflow,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateWorkflowRequest(BaseModel):
    """Request to create a workflow from a template or a raw graph."""

    name: str
    description: str | None = None
    template_key: str | None = PydanticField(default=None, alias="templateKey")
    nodes: dict[str, WorkflowNode] | None = None
    transitions: list[WorkflowTransition] | None = None
    entry_node_id: str | None = PydanticField(default=None, alias="entryNodeId")
    enabled: bool = False

    model_config = {"populate_by_name": True}


class UpdateWorkflowRequest(BaseModel):
    """Request to update a workflow (full canvas save, partial fields)."""

    name: str | None = None
    description: str | None = None
    nodes: dict[str, WorkflowNode] | None = None
    transitions: list[WorkflowTransition] | None = None
    entry_node_id: str | None = PydanticField(default=None, alias="entryNodeId")
    enabled: bool | None = None

    model_config = {"populate_by_name": True}


class ToggleWorkflowRequest(BaseModel):
    """Request to enable or disable a workflow."""

    enabled: bool


class ToggleWorkflowResponse(BaseModel):
    """Result of toggling a workflow."""

    id: str
    enabled: bool
    rule_count: int = PydanticField(alias="ruleCount")

    model_config = {"populate_by_name": True}


def _invalid(validation: ValidationResult) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": "Invalid workflow", "details": validation.errors},
    )


def _decomposition_failed(e: DecompositionError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"error": "Workflow cannot be converted to rules", "details": [str(e)]},
    )


async def _get_or_404(workflow_id: str) -> Workflow:
    workflow = await workflow_store.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")
    return workflow


def _check_decomposable(workflow: Workflow) -> None:
    """Reject an enabled workflow whose rules cannot be generated, before it is stored."""
    if not workflow.enabled:
        return
    try:
        decompose_workflow(workflow)
    except DecompositionError as e:
        raise _decomposition_failed(e)


async def _resync(workflow: Workflow) -> SyncResult:
    try:
        return await sync_single_workflow(workflow.id, workflow.enabled)
    except DecompositionError as e:
        raise _decomposition_failed(e)


# ==================== Workflows ====================


@router.get("/workflows", response_model_exclude_none=True)
async def list_workflows(
    enabled: bool | None = Query(None, description="Only return workflows with this state"),
) -> list[WorkflowSummary]:
    """List all workflows."""
    workflows = await workflow_store.get_workflows()
    if enabled is not None:
        workflows = [w for w in workflows if w.enabled == enabled]
    return [WorkflowSummary.from_workflow(w) for w in workflows]


@router.post("/workflows", status_code=201, response_model_exclude_none=True)
async def create_workflow(request: CreateWorkflowRequest) -> Workflow:
    """Create a workflow from a template key or from raw nodes and transitions."""
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    description = request.description.strip() if request.description else None

    if request.template_key:
        template = get_template(request.template_key)
        if template is None:
            valid_keys = ", ".join(WORKFLOW_TEMPLATES)
            raise HTTPException(
                status_code=400,
                detail=f"Unknown template: {request.template_key}. Valid keys: {valid_keys}",
            )
        workflow = template.create()
        workflow.name = name
        if description:
            workflow.description = description
        workflow.enabled = request.enabled
    else:
        if request.nodes is None or request.transitions is None or not request.entry_node_id:
            raise HTTPException(
                status_code=400,
                detail="nodes, transitions, and entryNodeId are required (or use templateKey)",
            )
        now = utc_now()
        workflow = Workflow(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            nodes=request.nodes,
            transitions=request.transitions,
            entry_node_id=request.entry_node_id,
            enabled=request.enabled,
            version=1,
            created_at=now,
            updated_at=now,
        )

    validation = validate_workflow(workflow)
    if not validation.valid:
        raise _invalid(validation)

    _check_decomposable(workflow)
    await workflow_store.upsert_workflow(workflow)
    logger.info(f"Created workflow {workflow.id} ({workflow.name})")
    if workflow.enabled:
        await _resync(workflow)
    return workflow


@router.post("/workflows/validate")
async def validate_workflow_payload(workflow: Workflow) -> ValidationResult:
    """Validate an unsaved workflow graph."""
    return validate_workflow(workflow)


@router.get("/workflows/{workflow_id}", response_model_exclude_none=True)
async def get_workflow(workflow_id: str) -> Workflow:
    """Get a workflow by ID."""
    return await _get_or_404(workflow_id)


@router.put("/workflows/{workflow_id}", response_model_exclude_none=True)
async def update_workflow(workflow_id: str, request: UpdateWorkflowRequest) -> Workflow:
    """Update a workflow. Bumps the version and re-validates structural edits."""
    existing = await _get_or_404(workflow_id)

    updated = existing.model_copy(
        update={
            "name": request.name.strip() if request.name is not None else existing.name,
            "description": (
                request.description.strip()
                if request.description is not None
                else existing.description
            ),
            "nodes": request.nodes if request.nodes is not None else existing.nodes,
            "transitions": (
                request.transitions if request.transitions is not None else existing.transitions
            ),
            "entry_node_id": request.entry_node_id or existing.entry_node_id,
            "enabled": request.enabled if request.enabled is not None else existing.enabled,
            "version": existing.version + 1,
            "updated_at": utc_now(),
        },
        deep=True,
    )

    structural = (
        request.nodes is not None
        or request.transitions is not None
        or request.entry_node_id is not None
    )
    if structural:
        validation = validate_workflow(updated)
        if not validation.valid:
            raise _invalid(validation)

    _check_decomposable(updated)
    await workflow_store.upsert_workflow(updated)
    if updated.enabled or existing.enabled:
        await _resync(updated)
    return updated


@router.delete("/workflows/{workflow_id}")
async def delete_workflow(workflow_id: str) -> dict[str, bool]:
    """Delete a workflow and remove its rules."""
    deleted = await workflow_store.delete_workflow(workflow_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")

    await sync_single_workflow(workflow_id, False)
    logger.info(f"Deleted workflow {workflow_id}")
    return {"ok": True}


@router.post("/workflows/{workflow_id}/toggle")
async def toggle_workflow(
    workflow_id: str, request: ToggleWorkflowRequest
) -> ToggleWorkflowResponse:
    """Enable or disable a workflow and sync its rules. The version is unchanged."""
    workflow = await _get_or_404(workflow_id)

    toggled = workflow.model_copy(update={"enabled": request.enabled, "updated_at": utc_now()})
    _check_decomposable(toggled)
    await workflow_store.upsert_workflow(toggled)
    result = await _resync(toggled)

    return ToggleWorkflowResponse(
        id=toggled.id, enabled=toggled.enabled, rule_count=result.rule_count
    )


@router.post("/workflows/{workflow_id}/optimize", response_model_exclude_none=True)
async def optimize_stored_workflow(
    workflow_id: str,
    save: bool = Query(False, description="Persist the optimized workflow"),
) -> OptimizeResult:
    """Auto-repair a workflow. The result is only persisted when save=true."""
    workflow = await _get_or_404(workflow_id)
    result = optimize_workflow(workflow)

    if save:
        _check_decomposable(result.workflow)
        await workflow_store.upsert_workflow(result.workflow)
        if result.workflow.enabled:
            await _resync(result.workflow)
    return result


@router.get("/workflows/{workflow_id}/validate")
async def validate_stored_workflow(workflow_id: str) -> ValidationResult:
    """Validate a stored workflow."""
    return validate_workflow(await _get_or_404(workflow_id))


@router.get("/workflows/{workflow_id}/export", response_model_exclude_none=True)
async def export_stored_workflow(workflow_id: str) -> WorkflowExport:
    """Export a workflow together with its decomposed rules."""
    workflow = await _get_or_404(workflow_id)
    try:
        return export_workflow(workflow)
    except DecompositionError as e:
        raise _decomposition_failed(e)
