"""Workflow automation engine: validation, repair, decomposition and sync."""

from ticketflow.workflow.decomposer import (
    EXPORT_FORMAT,
    WorkflowExport,
    decompose_workflow,
    export_workflow,
    state_tag,
)
from ticketflow.workflow.errors import DecompositionError, WorkflowError
from ticketflow.workflow.optimizer import Change, OptimizeResult, optimize_workflow
from ticketflow.workflow.sync import (
    SyncResult,
    WorkflowBootstrapper,
    bootstrap_workflows,
    get_bootstrapper,
    reset_bootstrapper,
    sync_single_workflow,
    sync_workflow_rules,
)
from ticketflow.workflow.templates import WORKFLOW_TEMPLATES, WorkflowTemplate, get_template
from ticketflow.workflow.validator import ValidationResult, validate_workflow

__all__ = [
    "EXPORT_FORMAT",
    "WorkflowExport",
    "decompose_workflow",
    "export_workflow",
    "state_tag",
    "DecompositionError",
    "WorkflowError",
    "Change",
    "OptimizeResult",
    "optimize_workflow",
    "SyncResult",
    "WorkflowBootstrapper",
    "bootstrap_workflows",
    "get_bootstrapper",
    "reset_bootstrapper",
    "sync_single_workflow",
    "sync_workflow_rules",
    "WORKFLOW_TEMPLATES",
    "WorkflowTemplate",
    "get_template",
    "ValidationResult",
    "validate_workflow",
]
