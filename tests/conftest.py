"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from ticketflow.db.database import close_database, init_database
from ticketflow.main import app
from ticketflow.models import Workflow
from ticketflow.rules import rule_engine
from ticketflow.workflow.sync import reset_bootstrapper


@pytest.fixture(autouse=True)
def reset_automation():
    """Start every test with an empty rule engine and a fresh bootstrapper."""
    rule_engine.clear()
    reset_bootstrapper()
    yield
    rule_engine.clear()
    reset_bootstrapper()


@pytest.fixture
async def db():
    """Set up a temporary SQLite database for the test."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    await init_database(db_path)

    yield db_path

    await close_database()
    os.unlink(db_path)


@pytest.fixture
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client backed by the temporary database."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


def _linear_workflow_data(**overrides: Any) -> dict[str, Any]:
    """trigger -> State A -> State B -> End, in the camelCase wire shape."""
    data: dict[str, Any] = {
        "id": "wf-test",
        "name": "Test Workflow",
        "nodes": {
            "trigger-1": {
                "id": "trigger-1",
                "type": "trigger",
                "data": {"event": "create"},
                "position": {"x": 0, "y": 0},
            },
            "state-a": {
                "id": "state-a",
                "type": "state",
                "data": {"label": "State A"},
                "position": {"x": 0, "y": 100},
            },
            "state-b": {
                "id": "state-b",
                "type": "state",
                "data": {"label": "State B"},
                "position": {"x": 0, "y": 200},
            },
            "end-1": {
                "id": "end-1",
                "type": "end",
                "data": {"label": "End"},
                "position": {"x": 0, "y": 300},
            },
        },
        "transitions": [
            {"id": "t1", "fromNodeId": "trigger-1", "toNodeId": "state-a"},
            {"id": "t2", "fromNodeId": "state-a", "toNodeId": "state-b", "label": "Progress"},
            {"id": "t3", "fromNodeId": "state-b", "toNodeId": "end-1", "label": "Close"},
        ],
        "entryNodeId": "trigger-1",
        "enabled": True,
        "version": 1,
        "createdAt": "2026-01-01T00:00:00+00:00",
        "updatedAt": "2026-01-01T00:00:00+00:00",
    }
    data.update(overrides)
    return data


@pytest.fixture
def workflow_data() -> Callable[..., dict[str, Any]]:
    """Factory for raw workflow payloads (trigger -> A -> B -> end)."""
    return _linear_workflow_data


@pytest.fixture
def make_workflow() -> Callable[..., Workflow]:
    """Factory for parsed workflows (trigger -> A -> B -> end)."""

    def _make(**overrides: Any) -> Workflow:
        return Workflow.model_validate(_linear_workflow_data(**overrides))

    return _make
