"""Automation API routes: ticket-event hook and rule inspection."""

import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel
from pydantic import Field as PydanticField

from ticketflow.models import Rule
from ticketflow.rules import rule_engine
from ticketflow.workflow import SyncResult, bootstrap_workflows, sync_workflow_rules

logger = logging.getLogger(__name__)

router = APIRouter()


class TicketEvent(BaseModel):
    """A ticket event forwarded by the dispatch bus."""

    event: str
    data: dict[str, Any] = PydanticField(default_factory=dict)


class TicketEventResponse(BaseModel):
    """Acknowledgement of a ticket event."""

    accepted: bool = True
    automation_ready: bool = PydanticField(alias="automationReady")
    rule_count: int = PydanticField(alias="ruleCount")

    model_config = {"populate_by_name": True}


@router.post("/automation/events")
async def handle_ticket_event(event: TicketEvent) -> TicketEventResponse:
    """Accept a ticket event, making sure workflow rules are loaded first.

    Rule loading problems never fail the event: the response reports
    automationReady=false and the next event retries the load.
    """
    ready = await bootstrap_workflows()
    if not ready:
        logger.warning(f"Processing '{event.event}' without workflow rules loaded")
    rules = await rule_engine.list_rules()
    return TicketEventResponse(automation_ready=ready, rule_count=len(rules))


@router.get("/automation/rules", response_model_exclude_none=True)
async def list_rules() -> list[Rule]:
    """List every rule currently loaded in the rule engine."""
    return await rule_engine.list_rules()


@router.post("/automation/resync")
async def resync_rules() -> SyncResult:
    """Reload rules for all enabled workflows.

    Workflows whose rules cannot be generated are skipped and reported in
    failedWorkflowIds.
    """
    return await sync_workflow_rules()
