"""Core types and the narrow interfaces the provisioning core depends on.

The locator, injector, scheduler and fetcher only see these protocols.
AWS implementations live in ``spotward.providers.aws``; tests use
in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import IO, Any, Protocol, runtime_checkable

from spotward.constants import SCHEDULED_EVENT_NAME_PREFIX, InstanceState

type SpotRequestId = str


# =============================================================================
# Snapshots
# =============================================================================


@dataclass(frozen=True, slots=True)
class SpotRequestStatus:
    """Point-in-time view of a capacity request."""

    request_id: SpotRequestId
    state: str
    status_code: str
    instance_id: str | None = None


@dataclass(frozen=True, slots=True)
class InstanceDescriptor:
    """Read-only snapshot of a located instance.

    Refreshed on every poll and never kept beyond a single attempt.
    """

    instance_id: str
    availability_zone: str
    private_address: str | None
    public_address: str | None
    state: str = InstanceState.RUNNING

    def address(self, prefer_private: bool = True) -> str:
        first, second = (
            (self.private_address, self.public_address)
            if prefer_private
            else (self.public_address, self.private_address)
        )
        address = first or second
        if not address:
            raise ValueError(f"Instance {self.instance_id} has no address")
        return address


@dataclass(frozen=True, slots=True)
class SSHCredentials:
    """Everything needed to open an SSH session.

    Built fresh per invocation from secrets. Key material is kept out of
    repr so a stray log call cannot leak it.
    """

    host: str
    username: str
    private_key: str = field(repr=False)
    passphrase: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class InvocationTarget:
    """The function the retry trigger invokes (this Lambda)."""

    function_name: str
    function_arn: str

    @classmethod
    def from_context(cls, context: Any) -> InvocationTarget:
        return cls(
            function_name=context.function_name,
            function_arn=context.invoked_function_arn,
        )


def trigger_name(request_id: SpotRequestId, prefix: str = SCHEDULED_EVENT_NAME_PREFIX) -> str:
    """Deterministic rule name; doubles as the idempotence key."""
    return f"{prefix}_{request_id}"


@dataclass(frozen=True, slots=True)
class RetryTrigger:
    name: str
    schedule: str
    target: InvocationTarget
    rule_arn: str | None = None


class ProvisionState(StrEnum):
    IDLE = "idle"
    INJECTING_CREDENTIAL = "injecting_credential"
    SCHEDULING_RETRY = "scheduling_retry"
    STAGING_ARTIFACTS = "staging_artifacts"
    TRANSFERRING = "transferring"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ATTEMPT_FAILED = "attempt_failed"
    REMOVING_TRIGGER = "removing_trigger"
    SHUTTING_DOWN = "shutting_down"
    SHUT_DOWN = "shut_down"


# =============================================================================
# Ports
# =============================================================================


@runtime_checkable
class InstanceStatusSource(Protocol):
    """Capacity-request and instance-metadata lookups."""

    def spot_request(self, request_id: SpotRequestId) -> SpotRequestStatus | None:
        """Return the request status, or None if the request is not visible yet."""
        ...

    def instance_state(self, instance_id: str) -> str | None:
        """Return the instance state name, or None if unknown."""
        ...

    def describe_instance(self, instance_id: str) -> InstanceDescriptor | None:
        ...


@runtime_checkable
class KeyInjectionChannel(Protocol):
    """Out-of-band public key delivery authenticated by cloud identity."""

    def send_public_key(
        self,
        *,
        instance_id: str,
        availability_zone: str,
        os_user: str,
        public_key: str,
    ) -> tuple[bool, str]:
        """Return (success, diagnostic)."""
        ...


@runtime_checkable
class ObjectStore(Protocol):
    def open(self, bucket: str, key: str) -> IO[bytes]:
        """Open a streaming, readable body for the object.

        Raises:
            ArtifactNotFoundError: If the object does not exist.
        """
        ...


@runtime_checkable
class TriggerStore(Protocol):
    """Periodic rule service.

    Every method raises TriggerNotFoundError when the rule is absent and
    TriggerOperationFailedError for anything else.
    """

    def describe_rule(self, name: str) -> str:
        """Return the rule ARN."""
        ...

    def put_rule(self, name: str, schedule: str, description: str) -> str:
        """Create or update a rule and return its ARN."""
        ...

    def put_target(self, rule: str, target: InvocationTarget) -> None: ...

    def remove_target(self, rule: str, target: InvocationTarget) -> None: ...

    def delete_rule(self, name: str) -> None: ...


@runtime_checkable
class PermissionStore(Protocol):
    """Invocation permission slot keyed by a fixed statement id."""

    def grant(self, function_name: str, statement_id: str, source_arn: str) -> None: ...

    def revoke(self, function_name: str, statement_id: str) -> None: ...
