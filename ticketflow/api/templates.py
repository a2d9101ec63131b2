"""Template API routes."""

from fastapi import APIRouter, HTTPException

from ticketflow.models import Workflow
from ticketflow.workflow import WORKFLOW_TEMPLATES, get_template

router = APIRouter()


@router.get("/workflow-templates")
async def list_templates() -> list[dict]:
    """List all available workflow templates."""
    return [
        {"key": t.key, "label": t.label, "description": t.description}
        for t in WORKFLOW_TEMPLATES.values()
    ]


@router.get("/workflow-templates/{template_key}", response_model_exclude_none=True)
async def get_template_workflow(template_key: str) -> Workflow:
    """Build a fresh, unsaved workflow from a template."""
    template = get_template(template_key)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template '{template_key}' not found")
    return template.create()
