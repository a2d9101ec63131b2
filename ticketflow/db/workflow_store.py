"""WorkflowStore - persistence for workflow graphs.

Uses the SQLite database when it has been initialized and falls back to a
flat JSONL file otherwise. Both paths offer the same last-write-wins,
single-record operations.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

import aiosqlite

from ticketflow.db.database import try_db
from ticketflow.db.jsonl_store import read_jsonl_file, write_jsonl_file
from ticketflow.models import Workflow

logger = logging.getLogger(__name__)

DEFAULT_JSONL_PATH = "./data/workflows.jsonl"


class WorkflowStore:
    """Storage abstraction for workflow graphs."""

    def __init__(self, jsonl_path: str | Path | None = None):
        self._jsonl_path = jsonl_path

    @property
    def jsonl_path(self) -> Path:
        """Path of the JSONL fallback file (WORKFLOWS_JSONL_PATH by default)."""
        if self._jsonl_path is not None:
            return Path(self._jsonl_path)
        return Path(os.getenv("WORKFLOWS_JSONL_PATH", DEFAULT_JSONL_PATH))

    # ==================== Public API ====================

    async def get_workflows(self) -> list[Workflow]:
        """List all workflows, oldest first."""
        db = await try_db()
        if db is not None:
            cursor = await db.execute(
                """
                SELECT id, name, description, flow_json, enabled, version, created_at, updated_at
                FROM workflows ORDER BY created_at, id
                """
            )
            rows = await cursor.fetchall()
            return [self._row_to_workflow(row) for row in rows]
        return self._read_all()

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Get a workflow by ID."""
        db = await try_db()
        if db is not None:
            cursor = await db.execute(
                """
                SELECT id, name, description, flow_json, enabled, version, created_at, updated_at
                FROM workflows WHERE id = ?
                """,
                (workflow_id,),
            )
            row = await cursor.fetchone()
            return self._row_to_workflow(row) if row is not None else None

        for workflow in self._read_all():
            if workflow.id == workflow_id:
                return workflow
        return None

    async def get_active_workflows(self) -> list[Workflow]:
        """List enabled workflows only."""
        db = await try_db()
        if db is not None:
            cursor = await db.execute(
                """
                SELECT id, name, description, flow_json, enabled, version, created_at, updated_at
                FROM workflows WHERE enabled = 1 ORDER BY created_at, id
                """
            )
            rows = await cursor.fetchall()
            return [self._row_to_workflow(row) for row in rows]
        return [w for w in self._read_all() if w.enabled]

    async def upsert_workflow(self, workflow: Workflow) -> Workflow:
        """Insert a workflow or overwrite the stored record with the same ID."""
        db = await try_db()
        if db is not None:
            await db.execute(
                """
                INSERT INTO workflows (id, name, description, flow_json, enabled, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    flow_json = excluded.flow_json,
                    enabled = excluded.enabled,
                    version = excluded.version,
                    updated_at = excluded.updated_at
                """,
                (
                    workflow.id,
                    workflow.name,
                    workflow.description,
                    json.dumps(self._flow_dict(workflow)),
                    int(workflow.enabled),
                    workflow.version,
                    workflow.created_at,
                    workflow.updated_at,
                ),
            )
            await db.commit()
            return workflow

        records = [w.to_json_dict() for w in self._read_all()]
        for idx, record in enumerate(records):
            if record["id"] == workflow.id:
                records[idx] = workflow.to_json_dict()
                break
        else:
            records.append(workflow.to_json_dict())
        write_jsonl_file(self.jsonl_path, records)
        return workflow

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow. Returns False when it did not exist."""
        db = await try_db()
        if db is not None:
            cursor = await db.execute("DELETE FROM workflows WHERE id = ?", (workflow_id,))
            await db.commit()
            return cursor.rowcount > 0

        workflows = self._read_all()
        remaining = [w for w in workflows if w.id != workflow_id]
        if len(remaining) == len(workflows):
            return False
        write_jsonl_file(self.jsonl_path, [w.to_json_dict() for w in remaining])
        return True

    # ==================== Helpers ====================

    def _read_all(self) -> list[Workflow]:
        workflows = []
        for record in read_jsonl_file(self.jsonl_path):
            try:
                workflows.append(Workflow.model_validate(record))
            except ValueError as e:
                logger.warning(f"Skipping unreadable workflow record {record.get('id')}: {e}")
        return workflows

    @staticmethod
    def _flow_dict(workflow: Workflow) -> dict[str, Any]:
        data = workflow.to_json_dict()
        return {
            "nodes": data["nodes"],
            "transitions": data["transitions"],
            "entryNodeId": data["entryNodeId"],
        }

    @staticmethod
    def _row_to_workflow(row: aiosqlite.Row) -> Workflow:
        flow = json.loads(row["flow_json"])
        return Workflow.model_validate(
            {
                "id": row["id"],
                "name": row["name"],
                "description": row["description"],
                "nodes": flow.get("nodes", {}),
                "transitions": flow.get("transitions", []),
                "entryNodeId": flow.get("entryNodeId", ""),
                "enabled": bool(row["enabled"]),
                "version": row["version"],
                "createdAt": row["created_at"],
                "updatedAt": row["updated_at"],
            }
        )


workflow_store = WorkflowStore()
