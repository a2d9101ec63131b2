"""Database module."""

from ticketflow.db.database import close_database, init_database, try_db
from ticketflow.db.workflow_store import WorkflowStore, workflow_store

__all__ = [
    "try_db",
    "init_database",
    "close_database",
    "workflow_store",
    "WorkflowStore",
]
