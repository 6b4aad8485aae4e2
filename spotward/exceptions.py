"""Exception hierarchy for spotward.

All spotward-specific exceptions inherit from SpotwardError, so the Lambda
entry point can tell its own failures apart from unexpected bugs.
"""

from __future__ import annotations


class SpotwardError(Exception):
    """Base exception for all spotward errors."""


class ConfigurationError(SpotwardError):
    """Raised for invalid configuration or missing required settings."""


# =============================================================================
# Provisioning
# =============================================================================


class ProvisioningError(SpotwardError):
    """Raised when the spot instance cannot be located or prepared."""


class RequestNotFulfilledError(ProvisioningError):
    """Raised when a spot request never yields an instance."""

    def __init__(self, request_id: str, reason: str = "not fulfilled") -> None:
        self.request_id = request_id
        self.reason = reason
        super().__init__(f"Spot request {request_id}: {reason}")


class InstanceNotFoundError(ProvisioningError):
    """Raised when an instance lookup returns no record."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"Could not find instance {instance_id}")


class InstanceNotRunningError(ProvisioningError):
    """Raised when an instance does not reach the running state in time."""

    def __init__(self, instance_id: str, state: str | None) -> None:
        self.instance_id = instance_id
        self.state = state
        super().__init__(f"Instance {instance_id} not running (last state: {state})")


class InstanceTerminatedError(ProvisioningError):
    """Raised when the instance reached a state it will never leave - do not wait."""

    def __init__(self, instance_id: str, state: str) -> None:
        self.instance_id = instance_id
        self.state = state
        super().__init__(f"Instance {instance_id} is {state}")


class KeyInjectionFailedError(ProvisioningError):
    """Raised when the out-of-band key push does not report success."""

    def __init__(self, instance_id: str, detail: str) -> None:
        self.instance_id = instance_id
        self.detail = detail
        super().__init__(f"Sending the SSH public key to {instance_id} failed: {detail}")


# =============================================================================
# Artifacts
# =============================================================================


class ArtifactError(SpotwardError):
    """Raised when the script bundle cannot be staged."""


class ArtifactNotFoundError(ArtifactError):
    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"Object s3://{bucket}/{key} does not exist")


class ExtractionFailedError(ArtifactError):
    """Raised on malformed or unsafe archive data."""


# =============================================================================
# SSH
# =============================================================================


class ConnectionFailedError(SpotwardError):
    """Raised when an SSH session could not be established after all retries."""

    def __init__(self, host: str, attempts: int, reason: str = "unknown") -> None:
        self.host = host
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"SSH to {host} failed after {attempts} attempt(s): {reason}")


class InvalidPrivateKeyError(SpotwardError):
    """Raised when the private key cannot be parsed."""


class RemoteCommandError(SpotwardError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command failed ({exit_code}): {command}: {stderr.strip()}")


# =============================================================================
# Retry trigger
# =============================================================================


class TriggerError(SpotwardError):
    """Base for periodic trigger and invocation permission failures."""


class TriggerNotFoundError(TriggerError):
    """The rule, target or permission does not exist.

    Expected during existence checks and idempotent teardown.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name} not found")


class TriggerOperationFailedError(TriggerError):
    """Any trigger service failure other than not-found."""

    def __init__(self, operation: str, name: str, detail: str) -> None:
        self.operation = operation
        self.name = name
        self.detail = detail
        super().__init__(f"{operation} {name} failed: {detail}")
