"""Engine gateway interface.

The gateway is the only boundary of the planner that talks to a workflow
engine. Every call is a single, atomic remote request: there is no partial
result and no automatic retry. Failures are raised as `GatewayError` and
must be reported to the operator, never swallowed.
"""

from abc import ABC, abstractmethod

from planner.models.instruction import (
    CommitResult,
    MigrationExecution,
    MigrationPlan,
    ModificationRequest,
    ValidationReport,
)
from planner.models.mapping import MappingSuggestion


class GatewayError(Exception):
    """Base exception for engine gateway errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retriable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retriable = retriable


class EngineUnavailableError(GatewayError):
    """The engine could not be reached."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("retriable", True)
        super().__init__(message, **kwargs)


class EngineRejectedError(GatewayError):
    """The engine answered with an error. The message is the engine's own."""

    pass


class EngineGateway(ABC):
    """Abstract base class for workflow engine gateways.

    Example implementation:
        class HttpEngineGateway(EngineGateway):
            async def modify_process_instance(self, instance_id, request):
                response = await self._client.post(
                    f"/process-instance/{instance_id}/modification",
                    json=request.to_payload(),
                )
                ...
    """

    @abstractmethod
    async def generate_migration_plan(
        self,
        source_process_definition_id: str,
        target_process_definition_id: str,
        update_event_triggers: bool = False,
    ) -> list[MappingSuggestion]:
        """Ask the engine for its default mapping between two versions.

        Returns:
            One suggestion per engine-planned instruction.

        Raises:
            GatewayError: If the engine call fails
        """

    @abstractmethod
    async def validate_migration_plan(self, plan: MigrationPlan) -> ValidationReport:
        """Dry-run a migration plan.

        Returns:
            Per-instruction failures and warnings.

        Raises:
            GatewayError: If the engine call fails
        """

    @abstractmethod
    async def execute_migration(
        self,
        execution: MigrationExecution,
        asynchronous: bool = True,
    ) -> CommitResult:
        """Execute a migration, as a batch or directly.

        Raises:
            GatewayError: If the engine rejects the migration
        """

    @abstractmethod
    async def modify_process_instance(
        self,
        instance_id: str,
        request: ModificationRequest,
    ) -> CommitResult:
        """Apply a compiled modification to one running instance.

        Raises:
            GatewayError: If the engine rejects the modification
        """

    async def close(self) -> None:
        """Release transport resources."""
        return None
