"""spotward: keep provisioning a GPU spot instance until it sticks."""

from spotward.artifacts import ArtifactFetcher
from spotward.credentials import CredentialInjector
from spotward.exceptions import (
    ArtifactNotFoundError,
    ConfigurationError,
    ConnectionFailedError,
    ExtractionFailedError,
    InstanceNotFoundError,
    KeyInjectionFailedError,
    RemoteCommandError,
    RequestNotFulfilledError,
    SpotwardError,
    TriggerOperationFailedError,
)
from spotward.locator import InstanceLocator
from spotward.orchestrator import Provisioner
from spotward.retry import CLOUD_POLL, SSH_CONNECT, RetryPolicy
from spotward.scheduler import RetryScheduler
from spotward.ssh import ConnectionExecutor
from spotward.types import (
    InstanceDescriptor,
    InvocationTarget,
    ProvisionState,
    SSHCredentials,
)

__all__ = [
    "CLOUD_POLL",
    "SSH_CONNECT",
    "ArtifactFetcher",
    "ArtifactNotFoundError",
    "ConfigurationError",
    "ConnectionExecutor",
    "ConnectionFailedError",
    "CredentialInjector",
    "ExtractionFailedError",
    "InstanceDescriptor",
    "InstanceLocator",
    "InstanceNotFoundError",
    "InvocationTarget",
    "KeyInjectionFailedError",
    "ProvisionState",
    "Provisioner",
    "RemoteCommandError",
    "RequestNotFulfilledError",
    "RetryPolicy",
    "RetryScheduler",
    "SSHCredentials",
    "SpotwardError",
    "TriggerOperationFailedError",
]
