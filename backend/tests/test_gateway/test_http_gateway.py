"""Tests for the HTTP engine gateway."""

import json

import httpx
import pytest

from planner.gateway.base import EngineRejectedError, EngineUnavailableError
from planner.gateway.http import HttpEngineGateway
from planner.models.instruction import (
    ExecutionOptions,
    Instruction,
    InstructionType,
    MigrationExecution,
    MigrationInstruction,
    MigrationPlan,
    ModificationRequest,
)


class Engine:
    """Records requests and answers with canned responses."""

    def __init__(self, status: int = 200, body=None, error: Exception | None = None):
        self.status = status
        self.body = body
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.body is None:
            return httpx.Response(self.status)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def _gateway(engine: Engine) -> HttpEngineGateway:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(engine),
        base_url="http://engine/engine-rest",
    )
    return HttpEngineGateway(base_url="http://engine/engine-rest", client=client)


@pytest.fixture
def plan() -> MigrationPlan:
    return MigrationPlan(
        source_process_definition_id="p:1",
        target_process_definition_id="p:2",
        instructions=[MigrationInstruction(source_activity_ids=["a"], target_activity_ids=["b"])],
    )


class TestModification:
    """Tests for instance modification calls."""

    async def test_posts_payload(self):
        engine = Engine(status=204)
        request = ModificationRequest(
            instructions=[Instruction(type=InstructionType.START_BEFORE, activity_id="a")],
            options=ExecutionOptions(annotation="note"),
        )
        result = await _gateway(engine).modify_process_instance("pi-1", request)
        assert result.ok
        assert engine.requests[0].url.path == "/engine-rest/process-instance/pi-1/modification"
        assert engine.last_json == {
            "instructions": [{"type": "startBeforeActivity", "activityId": "a"}],
            "annotation": "note",
        }

    async def test_engine_message_surfaced(self):
        engine = Engine(status=400, body={"type": "InvalidRequestException", "message": "No activity 'a'"})
        request = ModificationRequest(
            instructions=[Instruction(type=InstructionType.CANCEL, activity_id="a")]
        )
        with pytest.raises(EngineRejectedError) as exc:
            await _gateway(engine).modify_process_instance("pi-1", request)
        assert exc.value.message == "No activity 'a'"
        assert exc.value.status_code == 400
        assert not exc.value.retriable

    async def test_unreachable(self):
        engine = Engine(error=httpx.ConnectError("refused"))
        request = ModificationRequest(
            instructions=[Instruction(type=InstructionType.CANCEL, activity_id="a")]
        )
        with pytest.raises(EngineUnavailableError) as exc:
            await _gateway(engine).modify_process_instance("pi-1", request)
        assert exc.value.retriable


class TestMigration:
    """Tests for migration calls."""

    async def test_generate(self):
        engine = Engine(body={
            "sourceProcessDefinitionId": "p:1",
            "targetProcessDefinitionId": "p:2",
            "instructions": [
                {"sourceActivityIds": ["a"], "targetActivityIds": ["b"], "updateEventTrigger": False},
            ],
        })
        suggestions = await _gateway(engine).generate_migration_plan("p:1", "p:2", True)
        assert engine.last_json["updateEventTriggers"] is True
        assert suggestions[0].source_activity_ids == ["a"]
        assert suggestions[0].target_activity_id == "b"

    async def test_generate_wrapped_plan(self):
        engine = Engine(body={"migrationPlan": {"instructions": [{"sourceActivityIds": ["x"]}]}})
        suggestions = await _gateway(engine).generate_migration_plan("p:1", "p:2")
        assert suggestions[0].target_activity_id is None

    async def test_validate(self, plan):
        engine = Engine(body={
            "instructionReports": [
                {
                    "instruction": {"sourceActivityIds": ["a"], "targetActivityIds": ["b"]},
                    "failures": ["Activity types differ"],
                }
            ]
        })
        report = await _gateway(engine).validate_migration_plan(plan)
        assert engine.requests[0].url.path.endswith("/migration/validate")
        assert engine.last_json["instructions"][0]["targetActivityIds"] == ["b"]
        assert report.instruction_reports[0].failures == ["Activity types differ"]

    async def test_execute_async(self, plan):
        engine = Engine(body={"id": "batch-7", "type": "instance-migration"})
        execution = MigrationExecution(migration_plan=plan, process_instance_ids=["pi-1"])
        result = await _gateway(engine).execute_migration(execution)
        assert engine.requests[0].url.path.endswith("/migration/executeAsync")
        assert result.batch_id == "batch-7"

    async def test_execute_direct(self, plan):
        engine = Engine(status=204)
        execution = MigrationExecution(migration_plan=plan, process_instance_ids=["pi-1"])
        result = await _gateway(engine).execute_migration(execution, asynchronous=False)
        assert engine.requests[0].url.path.endswith("/migration/execute")
        assert result.batch_id is None

    async def test_server_error_is_retriable(self, plan):
        engine = Engine(status=503, body={"message": "Engine busy"})
        with pytest.raises(EngineRejectedError) as exc:
            await _gateway(engine).validate_migration_plan(plan)
        assert exc.value.retriable
