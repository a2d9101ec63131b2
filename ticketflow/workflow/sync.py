"""Keeps the rule engine in step with enabled workflows.

- sync_single_workflow: push or remove one workflow's rules after a toggle,
  edit or delete
- sync_workflow_rules: full resync of every enabled workflow
- WorkflowBootstrapper: single-flight cold-start load, safe to call on every
  ticket event
"""

import asyncio
import logging

from pydantic import BaseModel
from pydantic import Field as PydanticField

from ticketflow.db.workflow_store import WorkflowStore, workflow_store
from ticketflow.models import Rule
from ticketflow.rules.engine import RuleEngine, rule_engine
from ticketflow.workflow.decomposer import decompose_workflow
from ticketflow.workflow.errors import DecompositionError

logger = logging.getLogger(__name__)


class SyncResult(BaseModel):
    """Outcome of pushing workflow rules into the rule engine."""

    rule_count: int = PydanticField(alias="ruleCount")
    workflow_count: int = PydanticField(default=0, alias="workflowCount")
    # Enabled workflows whose rules could not be generated; their previous
    # rules are left in place
    failed_workflow_ids: list[str] = PydanticField(
        default_factory=list, alias="failedWorkflowIds"
    )

    model_config = {"populate_by_name": True}


async def sync_single_workflow(
    workflow_id: str,
    enabled: bool,
    store: WorkflowStore | None = None,
    engine: RuleEngine | None = None,
) -> SyncResult:
    """Push or remove the rules of a single workflow.

    When ``enabled`` is true and the workflow exists, its rules are
    decomposed and replace whatever the engine held for it. Otherwise the
    workflow's rules are removed. Other workflows' rules and manual rules
    are never touched.

    Args:
        workflow_id: The workflow to sync
        enabled: Whether the workflow should be active in the engine
        store: Workflow store (defaults to the process store)
        engine: Rule engine (defaults to the process engine)

    Returns:
        SyncResult with the number of rules now loaded for the workflow

    Raises:
        DecompositionError: If the workflow cannot be lowered into rules.
            Its previous rules stay in place.
    """
    store = store or workflow_store
    engine = engine or rule_engine

    if not enabled:
        await engine.remove(workflow_id)
        return SyncResult(rule_count=0)

    workflow = await store.get_workflow(workflow_id)
    if workflow is None:
        logger.info(f"Workflow {workflow_id} not found, removing its rules")
        await engine.remove(workflow_id)
        return SyncResult(rule_count=0)

    rules = decompose_workflow(workflow)
    await engine.push(workflow_id, rules)
    return SyncResult(rule_count=len(rules), workflow_count=1)


async def sync_workflow_rules(
    store: WorkflowStore | None = None,
    engine: RuleEngine | None = None,
) -> SyncResult:
    """Load every enabled workflow's rules and drop rules of all others.

    A workflow that cannot be decomposed is skipped and logged: whatever
    rules it had stay loaded, and every healthy workflow is still pushed.
    """
    store = store or workflow_store
    engine = engine or rule_engine

    workflows = await store.get_active_workflows()
    decomposed: list[tuple[str, list[Rule]]] = []
    failed: list[str] = []
    for workflow in workflows:
        try:
            decomposed.append((workflow.id, decompose_workflow(workflow)))
        except DecompositionError as e:
            logger.error(f"Skipping workflow {workflow.id}, rules could not be generated: {e}")
            failed.append(workflow.id)

    active_ids = {w.id for w in workflows}
    stale_ids = await engine.workflow_ids() - active_ids
    for workflow_id in sorted(stale_ids):
        await engine.remove(workflow_id)

    rule_count = 0
    for workflow_id, rules in decomposed:
        await engine.push(workflow_id, rules)
        rule_count += len(rules)

    logger.info(
        f"Synced {rule_count} workflow rule(s) from {len(decomposed)} enabled workflow(s)"
    )
    return SyncResult(
        rule_count=rule_count,
        workflow_count=len(decomposed),
        failed_workflow_ids=failed,
    )


class WorkflowBootstrapper:
    """Single-flight loader for workflow rules.

    All concurrent callers of ``ensure_loaded`` share one in-flight load.
    After a successful load later calls return immediately. If the load
    fails, the shared task is cleared so the next caller starts a fresh
    attempt.
    """

    def __init__(
        self,
        store: WorkflowStore | None = None,
        engine: RuleEngine | None = None,
    ):
        self._store = store
        self._engine = engine
        self._task: asyncio.Task[SyncResult] | None = None
        self._result: SyncResult | None = None

    @property
    def loaded(self) -> bool:
        """Whether a load has completed successfully."""
        return self._result is not None

    @property
    def result(self) -> SyncResult | None:
        return self._result

    async def ensure_loaded(self) -> bool:
        """Make sure workflow rules are loaded. Never raises on load failure.

        Returns:
            True if rules are loaded, False if the load failed (it will be
            retried by the next caller)
        """
        if self._result is not None:
            return True

        task = self._task
        if task is None:
            task = asyncio.create_task(self._load())
            self._task = task

        try:
            # Shield so a cancelled caller does not cancel the shared load
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # Only the shared load was cancelled (reset); the caller was not
            if not task.cancelled():
                raise
            return False
        except Exception:
            return False
        return True

    async def _load(self) -> SyncResult:
        try:
            result = await sync_workflow_rules(self._store, self._engine)
        except Exception:
            logger.exception("Failed to bootstrap workflow rules, will retry on next event")
            if self._task is asyncio.current_task():
                self._task = None
            raise
        self._result = result
        logger.info(f"Bootstrapped {result.rule_count} workflow rule(s)")
        return result

    def reset(self) -> None:
        """Forget any previous load so the next call loads again."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._result = None


# Singleton bootstrapper instance
_bootstrapper: WorkflowBootstrapper | None = None


def get_bootstrapper() -> WorkflowBootstrapper:
    """Get the process-wide bootstrapper, creating it on first use."""
    global _bootstrapper
    if _bootstrapper is None:
        _bootstrapper = WorkflowBootstrapper()
    return _bootstrapper


def reset_bootstrapper() -> None:
    """Drop the process-wide bootstrapper (shutdown and tests)."""
    global _bootstrapper
    if _bootstrapper is not None:
        _bootstrapper.reset()
    _bootstrapper = None


async def bootstrap_workflows() -> bool:
    """Load enabled workflows' rules once per process.

    Safe to call on every ticket event: concurrent calls share one load and
    failures are logged and reported as False rather than raised.
    """
    return await get_bootstrapper().ensure_loaded()
