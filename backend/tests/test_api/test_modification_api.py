"""Tests for the modification planning API."""

import asyncio

import pytest
from httpx import AsyncClient

from planner.gateway.base import EngineRejectedError, EngineUnavailableError

NODES = [
    {"id": "StartEvent_1", "name": "Invoice received", "type": "startEvent"},
    {"id": "Task_Approve", "name": "Approve Invoice", "type": "userTask"},
    {"id": "Task_Pay", "name": "Pay invoice", "type": "serviceTask"},
    {"id": "Task_Archive", "type": "userTask"},
]


@pytest.fixture
async def session_id(client: AsyncClient) -> str:
    response = await client.post(
        "/api/v1/modifications",
        json={
            "instance_id": "pi-1",
            "nodes": NODES,
            "active_ids": ["Task_Approve"],
            "instance_variables": [{"name": "amount", "type": "Double", "value": 10}],
        },
    )
    assert response.status_code == 200
    return response.json()["session_id"]


class TestModificationSessions:
    """Tests for session lifecycle routes."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}

    async def test_create(self, client: AsyncClient, session_id: str):
        response = await client.get(f"/api/v1/modifications/{session_id}")
        data = response.json()
        assert data["instance_id"] == "pi-1"
        assert data["operations"] == []
        assert data["active_ids"] == ["Task_Approve"]

    async def test_unknown_session(self, client: AsyncClient):
        response = await client.get("/api/v1/modifications/missing")
        assert response.status_code == 404

    async def test_close(self, client: AsyncClient, session_id: str):
        response = await client.delete(f"/api/v1/modifications/{session_id}")
        assert response.json() == {"closed": True}
        response = await client.delete(f"/api/v1/modifications/{session_id}")
        assert response.status_code == 404

    async def test_select(self, client: AsyncClient, session_id: str):
        response = await client.post(
            f"/api/v1/modifications/{session_id}/select",
            json={"activity_id": "Task_Approve"},
        )
        data = response.json()
        assert data["can_cancel"] is True
        assert data["move_action"] == "move_from"

        response = await client.post(
            f"/api/v1/modifications/{session_id}/select",
            json={"activity_id": "Nope"},
        )
        assert response.status_code == 404

    async def test_set_active(self, client: AsyncClient, session_id: str):
        base = f"/api/v1/modifications/{session_id}"
        response = await client.put(f"{base}/active", json={"active_ids": ["Task_Pay"]})
        assert response.json()["active_ids"] == ["Task_Pay"]

        response = await client.post(f"{base}/select", json={"activity_id": "Task_Approve"})
        data = response.json()
        assert data["can_cancel"] is False
        assert data["move_action"] == "move_to_here"


class TestPlanEdits:
    """Tests for plan editing routes."""

    async def test_add_and_replace_opposite(self, client: AsyncClient, session_id: str):
        url = f"/api/v1/modifications/{session_id}/operations"
        await client.post(url, json={"kind": "add_before", "activity_id": "Task_Pay"})
        response = await client.post(url, json={"kind": "add_after", "activity_id": "Task_Pay"})
        data = response.json()
        assert data["operations"] == [{"kind": "add_after", "activityId": "Task_Pay", "variables": []}]
        assert data["labels"] == ["Add token after Pay invoice"]

    async def test_move_kind_rejected(self, client: AsyncClient, session_id: str):
        response = await client.post(
            f"/api/v1/modifications/{session_id}/operations",
            json={"kind": "move", "activity_id": "Task_Pay"},
        )
        assert response.status_code == 400

    async def test_invalid_kind(self, client: AsyncClient, session_id: str):
        response = await client.post(
            f"/api/v1/modifications/{session_id}/operations",
            json={"kind": "teleport", "activity_id": "Task_Pay"},
        )
        assert response.status_code == 422

    async def test_move_gesture(self, client: AsyncClient, session_id: str):
        url = f"/api/v1/modifications/{session_id}/move-selection"
        response = await client.post(url, json={"activity_id": "Task_Approve"})
        assert response.json()["move_source_id"] == "Task_Approve"

        response = await client.post(url, json={"activity_id": "Task_Pay"})
        data = response.json()
        assert data["move_source_id"] is None
        assert data["labels"] == ["Move from Approve Invoice → Pay invoice"]

    async def test_move_to_here(self, client: AsyncClient, session_id: str):
        response = await client.post(
            f"/api/v1/modifications/{session_id}/move-to-here",
            json={"activity_id": "Task_Archive"},
        )
        data = response.json()
        assert data["labels"] == ["Move from Approve Invoice → Task Archive"]
        markers = {m["activity_id"]: m for m in data["markers"]}
        assert markers["Task_Approve"]["cancel_count"] == 1
        assert markers["Task_Archive"]["add_count"] == 1

    async def test_reorder_remove_undo(self, client: AsyncClient, session_id: str):
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "cancel", "activity_id": "Task_Approve"})
        await client.post(f"{base}/operations", json={"kind": "add_before", "activity_id": "Task_Pay"})

        response = await client.post(f"{base}/operations/1/reorder", json={"direction": "up"})
        assert response.json()["labels"][0] == "Add token before Pay invoice"

        response = await client.delete(f"{base}/operations/0")
        assert response.json()["labels"] == ["Cancel instances at Approve Invoice"]

        response = await client.post(f"{base}/undo")
        assert response.json()["operations"] == []

    async def test_stale_index_is_noop(self, client: AsyncClient, session_id: str):
        response = await client.delete(f"/api/v1/modifications/{session_id}/operations/4")
        assert response.status_code == 200
        assert response.json()["operations"] == []

    async def test_variables_and_preview(self, client: AsyncClient, session_id: str):
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "add_before", "activity_id": "Task_Pay"})
        response = await client.put(
            f"{base}/operations/0/variables",
            json={"variables": [{"name": "payload", "type": "Object", "value": '{"a":1}'}]},
        )
        assert response.json()["operations"][0]["variables"][0]["value"] == '{"a":1}'

        response = await client.get(f"{base}/preview", params={"skip_io_mappings": True})
        payload = response.json()["payload"]
        assert payload["skipIoMappings"] is True
        assert payload["instructions"][0]["variables"]["payload"]["valueInfo"] == {
            "serializationDataFormat": "application/json",
            "objectTypeName": "java.lang.Object",
        }

    async def test_inherit_variables(self, client: AsyncClient, session_id: str):
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "add_after", "activity_id": "Task_Pay"})
        response = await client.post(f"{base}/operations/0/inherit-variables")
        assert response.json()["operations"][0]["variables"] == [
            {"name": "amount", "type": "Double", "value": "10"}
        ]


class TestApply:
    """Tests for committing a modification."""

    async def test_apply(self, client: AsyncClient, session_id: str, fake_gateway):
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "cancel", "activity_id": "Task_Approve"})
        response = await client.post(
            f"{base}/apply",
            json={"options": {"skipCustomListeners": True, "annotation": "stuck"}},
        )
        assert response.status_code == 200
        assert response.json()["state"]["operations"] == []
        _, request = fake_gateway.modified[0]
        assert request.to_payload() == {
            "instructions": [
                {
                    "type": "cancel",
                    "activityId": "Task_Approve",
                    "cancelCurrentActiveActivityInstances": True,
                }
            ],
            "skipCustomListeners": True,
            "annotation": "stuck",
        }

    async def test_apply_empty(self, client: AsyncClient, session_id: str):
        response = await client.post(f"/api/v1/modifications/{session_id}/apply")
        assert response.status_code == 400

    async def test_engine_rejection_keeps_plan(self, client: AsyncClient, session_id: str, fake_gateway):
        fake_gateway.error = EngineRejectedError("Cannot cancel activity", status_code=500)
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "cancel", "activity_id": "Task_Approve"})

        response = await client.post(f"{base}/apply")
        assert response.status_code == 502
        assert response.json()["detail"] == "Cannot cancel activity"

        response = await client.get(base)
        assert len(response.json()["operations"]) == 1

    async def test_engine_unavailable(self, client: AsyncClient, session_id: str, fake_gateway):
        fake_gateway.error = EngineUnavailableError("Connection refused")
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "cancel", "activity_id": "Task_Approve"})
        response = await client.post(f"{base}/apply")
        assert response.status_code == 503

    async def test_second_apply_conflicts(self, client: AsyncClient, session_id: str, fake_gateway):
        fake_gateway.hold = asyncio.Event()
        base = f"/api/v1/modifications/{session_id}"
        await client.post(f"{base}/operations", json={"kind": "cancel", "activity_id": "Task_Approve"})

        first = asyncio.create_task(client.post(f"{base}/apply"))
        while not fake_gateway.modified:
            await asyncio.sleep(0.01)

        response = await client.post(f"{base}/apply")
        assert response.status_code == 409

        fake_gateway.hold.set()
        assert (await first).status_code == 200
