"""HTTP gateway for engines exposing the Camunda 7 style REST API."""

import logging
import os
from typing import Any

import httpx

from planner.gateway.base import (
    EngineGateway,
    EngineRejectedError,
    EngineUnavailableError,
)
from planner.models.instruction import (
    CommitResult,
    MigrationExecution,
    MigrationPlan,
    ModificationRequest,
    ValidationReport,
)
from planner.models.mapping import MappingSuggestion

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080/engine-rest"


def _error_message(response: httpx.Response) -> str:
    """Pull the engine's own error message out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    text = response.text.strip()
    return text or f"Engine returned HTTP {response.status_code}"


class HttpEngineGateway(EngineGateway):
    """Talks to the engine REST API over httpx."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("ENGINE_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        if timeout is None:
            timeout = float(os.getenv("ENGINE_TIMEOUT_SECONDS", "30"))

        auth = None
        username = os.getenv("ENGINE_USERNAME")
        if username:
            auth = httpx.BasicAuth(username, os.getenv("ENGINE_PASSWORD", ""))

        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            auth=auth,
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Engine request to {path} failed: {e}")
            raise EngineUnavailableError(f"Engine not reachable: {e}")

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(f"Engine rejected {path} ({response.status_code}): {message}")
            raise EngineRejectedError(
                message,
                status_code=response.status_code,
                retriable=response.status_code >= 500,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def generate_migration_plan(
        self,
        source_process_definition_id: str,
        target_process_definition_id: str,
        update_event_triggers: bool = False,
    ) -> list[MappingSuggestion]:
        body = await self._post(
            "/migration/generate",
            {
                "sourceProcessDefinitionId": source_process_definition_id,
                "targetProcessDefinitionId": target_process_definition_id,
                "updateEventTriggers": update_event_triggers,
            },
        )
        # Some deployments wrap the plan in a migrationPlan key
        if isinstance(body, dict) and "instructions" not in body:
            body = body.get("migrationPlan") or {}
        instructions = body.get("instructions") if isinstance(body, dict) else None
        return [MappingSuggestion.model_validate(i) for i in instructions or []]

    async def validate_migration_plan(self, plan: MigrationPlan) -> ValidationReport:
        body = await self._post("/migration/validate", plan.to_wire())
        return ValidationReport.model_validate(body or {})

    async def execute_migration(
        self,
        execution: MigrationExecution,
        asynchronous: bool = True,
    ) -> CommitResult:
        path = "/migration/executeAsync" if asynchronous else "/migration/execute"
        body = await self._post(path, execution.to_payload())
        batch_id = body.get("id") if isinstance(body, dict) else None
        return CommitResult(ok=True, batch_id=batch_id, details=body or {})

    async def modify_process_instance(
        self,
        instance_id: str,
        request: ModificationRequest,
    ) -> CommitResult:
        await self._post(
            f"/process-instance/{instance_id}/modification",
            request.to_payload(),
        )
        return CommitResult(ok=True)

    async def close(self) -> None:
        await self._client.aclose()
