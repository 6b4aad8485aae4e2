"""Retry trigger lifecycle.

A periodic rule named ``<prefix>_<request id>`` re-invokes the provisioning
function until an attempt completes. The deterministic name is the only
bookkeeping: existence of the rule *is* the "attempt pending" flag.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from spotward.constants import (
    LAMBDA_PERMISSION_SID,
    RETRY_RULE_DESCRIPTION,
    RETRY_SCHEDULE,
    SCHEDULED_EVENT_NAME_PREFIX,
)
from spotward.exceptions import TriggerNotFoundError
from spotward.types import (
    InvocationTarget,
    PermissionStore,
    RetryTrigger,
    SpotRequestId,
    TriggerStore,
    trigger_name,
)

log = logger.bind(component="scheduler")


def _ignore_missing(step: str, fn: Callable[[], None]) -> None:
    try:
        fn()
    except TriggerNotFoundError:
        log.debug(f"{step}: nothing to remove")


class RetryScheduler:
    def __init__(
        self,
        triggers: TriggerStore,
        permissions: PermissionStore,
        *,
        schedule: str = RETRY_SCHEDULE,
        prefix: str = SCHEDULED_EVENT_NAME_PREFIX,
        statement_id: str = LAMBDA_PERMISSION_SID,
    ) -> None:
        self._triggers = triggers
        self._permissions = permissions
        self._schedule = schedule
        self._prefix = prefix
        self._statement_id = statement_id

    def name_for(self, request_id: SpotRequestId) -> str:
        return trigger_name(request_id, self._prefix)

    def trigger_exists(self, request_id: SpotRequestId) -> bool:
        try:
            self._triggers.describe_rule(self.name_for(request_id))
        except TriggerNotFoundError:
            return False
        return True

    def ensure_trigger(self, request_id: SpotRequestId, target: InvocationTarget) -> RetryTrigger:
        """Create the retry rule unless it already exists.

        Not-found on the lookup is the normal path for a fresh attempt; any
        other lookup failure propagates.
        """
        name = self.name_for(request_id)
        rlog = log.bind(request_id=request_id, rule=name)
        try:
            arn = self._triggers.describe_rule(name)
        except TriggerNotFoundError:
            pass
        else:
            rlog.info(f"Scheduled event {name} already exists. Won't re-create it.")
            return RetryTrigger(name=name, schedule=self._schedule, target=target, rule_arn=arn)

        rlog.info(f"Creating scheduled event {name} ({self._schedule})")
        arn = self._triggers.put_rule(name, self._schedule, RETRY_RULE_DESCRIPTION)
        self._permissions.grant(target.function_name, self._statement_id, arn)
        self._triggers.put_target(name, target)
        return RetryTrigger(name=name, schedule=self._schedule, target=target, rule_arn=arn)

    def remove_trigger(self, request_id: SpotRequestId, target: InvocationTarget) -> None:
        """Detach, delete, then revoke. Each step tolerates prior absence."""
        name = self.name_for(request_id)
        log.bind(request_id=request_id, rule=name).info(f"Removing scheduled event {name}")
        _ignore_missing("remove_target", lambda: self._triggers.remove_target(name, target))
        _ignore_missing("delete_rule", lambda: self._triggers.delete_rule(name))
        _ignore_missing(
            "revoke",
            lambda: self._permissions.revoke(target.function_name, self._statement_id),
        )
