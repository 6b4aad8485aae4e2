"""Lambda entry point.

The same function is invoked by three kinds of events:

- the EC2 state-change event when the spot instance starts running,
- the temporary scheduled rule that retries provisioning,
- the spot interruption warning (or a stop), which runs the shutdown path.

Direct invocations may pass ``{"action": "provision" | "shutdown"}``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from injector import Injector
from loguru import logger

from spotward.config import Settings, load_settings
from spotward.exceptions import ConfigurationError
from spotward.logging import LogConfig, setup_logging
from spotward.orchestrator import Provisioner
from spotward.providers.aws import AWSModule
from spotward.ssh import validate_private_key
from spotward.types import InvocationTarget

log = logger.bind(component="handler")

STATE_CHANGE = "EC2 Instance State-change Notification"
SCHEDULED = "Scheduled Event"
INTERRUPTION = "EC2 Spot Instance Interruption Warning"


class Action(StrEnum):
    PROVISION = "provision"
    SHUTDOWN = "shutdown"
    IGNORE = "ignore"


def classify(event: dict[str, Any]) -> Action:
    explicit = event.get("action")
    if explicit:
        try:
            return Action(explicit)
        except ValueError:
            raise ConfigurationError(f"Unknown action {explicit!r}") from None

    detail_type = event.get("detail-type", "")
    if detail_type == SCHEDULED:
        return Action.PROVISION
    if detail_type == INTERRUPTION:
        return Action.SHUTDOWN
    if detail_type == STATE_CHANGE:
        match (event.get("detail") or {}).get("state"):
            case "running":
                return Action.PROVISION
            case "stopping" | "shutting-down":
                return Action.SHUTDOWN
    return Action.IGNORE


_settings: Settings | None = None
_injector: Injector | None = None


def _bootstrap() -> tuple[Settings, Injector]:
    """Cold-start setup, reused by warm invocations."""
    global _settings, _injector
    if _settings is None or _injector is None:
        settings = load_settings()
        setup_logging(LogConfig(level=settings.log_level, serialize=settings.log_serialize))
        settings.require("public_key", "private_key")
        validate_private_key(settings.private_key or "", settings.private_key_passphrase)
        _settings, _injector = settings, Injector([AWSModule(settings)])
    return _settings, _injector


def handler(event: dict[str, Any], context: Any) -> dict[str, str]:
    settings, injector = _bootstrap()
    action = classify(event)
    request_id = event.get("spot_request_id") or settings.spot_request_id

    if action is Action.IGNORE:
        log.info(f"Ignoring event {event.get('detail-type')!r}")
        return {"action": action, "request_id": request_id or "", "state": "ignored"}
    if not request_id:
        raise ConfigurationError("No spot request id in the event or SPOTWARD_SPOT_REQUEST_ID")

    log.bind(request_id=request_id).info(f"Handling {action} ({event.get('detail-type', 'direct')})")
    target = InvocationTarget.from_context(context)
    provisioner = injector.get(Provisioner)

    if action is Action.SHUTDOWN:
        state = provisioner.stop(request_id, target)
    else:
        state = provisioner.attempt(request_id, target)
    return {"action": action, "request_id": request_id, "state": state}
