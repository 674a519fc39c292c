"""Pytest configuration and fixtures."""

import asyncio
import os
import tempfile
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from planner.db.database import close_database, init_database
from planner.gateway.base import EngineGateway, GatewayError
from planner.main import app
from planner.models.graph import ProcessNode
from planner.models.instruction import (
    CommitResult,
    MigrationExecution,
    MigrationPlan,
    ModificationRequest,
    ValidationReport,
)
from planner.models.mapping import MappingSuggestion
from planner.services import session_manager as session_manager_module
from planner.services.session_manager import PlanningSessionManager


class FakeGateway(EngineGateway):
    """In-memory engine that records every request.

    Set `error` to make the next calls fail, or `hold` to keep a call
    in flight until the event is set.
    """

    def __init__(self):
        self.suggestions: list[MappingSuggestion] = []
        self.report = ValidationReport()
        self.error: GatewayError | None = None
        self.hold: asyncio.Event | None = None
        self.generated: list[tuple[str, str, bool]] = []
        self.validated: list[MigrationPlan] = []
        self.executed: list[tuple[MigrationExecution, bool]] = []
        self.modified: list[tuple[str, ModificationRequest]] = []

    async def _wait(self) -> None:
        if self.hold is not None:
            await self.hold.wait()
        if self.error is not None:
            raise self.error

    async def generate_migration_plan(
        self,
        source_process_definition_id: str,
        target_process_definition_id: str,
        update_event_triggers: bool = False,
    ) -> list[MappingSuggestion]:
        self.generated.append(
            (source_process_definition_id, target_process_definition_id, update_event_triggers)
        )
        await self._wait()
        return list(self.suggestions)

    async def validate_migration_plan(self, plan: MigrationPlan) -> ValidationReport:
        self.validated.append(plan)
        await self._wait()
        return self.report

    async def execute_migration(
        self,
        execution: MigrationExecution,
        asynchronous: bool = True,
    ) -> CommitResult:
        self.executed.append((execution, asynchronous))
        await self._wait()
        return CommitResult(batch_id="batch-1" if asynchronous else None)

    async def modify_process_instance(
        self,
        instance_id: str,
        request: ModificationRequest,
    ) -> CommitResult:
        self.modified.append((instance_id, request))
        await self._wait()
        return CommitResult()


@pytest.fixture(autouse=True)
async def setup_test_db():
    """Set up a test database for each test."""
    # Create a temporary database file
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    # Initialize the database
    await init_database(db_path)

    yield

    # Clean up
    await close_database()
    os.unlink(db_path)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def session_manager(setup_test_db, fake_gateway) -> AsyncGenerator[PlanningSessionManager, None]:
    """Session manager singleton wired to the fake engine."""
    manager = PlanningSessionManager(gateway=fake_gateway, session_timeout_minutes=30)
    session_manager_module._manager = manager

    yield manager

    await session_manager_module.shutdown_session_manager()


@pytest.fixture
async def client(session_manager) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def invoice_nodes() -> list[ProcessNode]:
    """A small invoice approval process."""
    return [
        ProcessNode(id="StartEvent_1", name="Invoice received", type="startEvent"),
        ProcessNode(id="Task_Approve", name="Approve Invoice", type="userTask"),
        ProcessNode(id="Task_Review", name="Review", type="userTask"),
        ProcessNode(id="Gateway_Ok", name="Approved?", type="exclusiveGateway"),
        ProcessNode(id="Task_Pay", name="Pay invoice", type="serviceTask"),
        ProcessNode(id="EndEvent_1", name=None, type="endEvent"),
    ]
