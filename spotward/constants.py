"""Centralized constants and enums for spotward.

All magic strings, paths, and remote commands are defined here to keep the
orchestrator, the adapters and the tests in agreement.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import PurePosixPath
from typing import Final

# =============================================================================
# Instance
# =============================================================================

INSTANCE_USER: Final = "ubuntu"
INSTANCE_FAMILY: Final = "g4dn"


class InstanceState(StrEnum):
    """EC2 instance state names."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"


TERMINAL_INSTANCE_STATES: Final = frozenset(
    {
        InstanceState.STOPPING,
        InstanceState.STOPPED,
        InstanceState.SHUTTING_DOWN,
        InstanceState.TERMINATED,
    }
)


# =============================================================================
# Spot Requests
# =============================================================================

SPOT_FULFILLED_CODES: Final = frozenset({"fulfilled", "request-canceled-and-instance-running"})
SPOT_FAILED_CODES: Final = frozenset(
    {"schedule-expired", "canceled-before-fulfillment", "bad-parameters", "system-error"}
)


# =============================================================================
# Paths & Remote Commands
# =============================================================================

LOCAL_SCRIPTS_PATH: Final = "/tmp/scripts"
REMOTE_SCRIPTS_DIR: Final = f"/home/{INSTANCE_USER}/scripts/"
DEFAULT_BUCKET: Final = "fah-bucket"
DEFAULT_BUNDLE_KEY: Final = "fah-scripts"


def chmod_command(scripts_dir: str) -> str:
    return f"chmod 755 {PurePosixPath(scripts_dir) / '*.sh'}"


def source_command(scripts_dir: str, script: str) -> str:
    return f". {PurePosixPath(scripts_dir) / script}"


# =============================================================================
# Retry Trigger
# =============================================================================

SCHEDULED_EVENT_NAME_PREFIX: Final = "ScheduledEC2Provisioner"
LAMBDA_PERMISSION_SID: Final = "sched-event"
RETRY_SCHEDULE: Final = "rate(15 minutes)"
RETRY_RULE_DESCRIPTION: Final = (
    "Scheduled Event to provision an EC2 spot instance until it succeeds. "
    "This is a temporary event and will be deleted."
)
EVENTS_PRINCIPAL: Final = "events.amazonaws.com"
INVOKE_ACTION: Final = "lambda:InvokeFunction"
