"""Instance locator: spot request id -> running instance descriptor."""

from __future__ import annotations

from loguru import logger

from spotward.constants import (
    SPOT_FAILED_CODES,
    SPOT_FULFILLED_CODES,
    TERMINAL_INSTANCE_STATES,
    InstanceState,
)
from spotward.exceptions import (
    InstanceNotFoundError,
    InstanceNotRunningError,
    InstanceTerminatedError,
    RequestNotFulfilledError,
)
from spotward.retry import CLOUD_POLL, RetryPolicy
from spotward.types import InstanceDescriptor, InstanceStatusSource, SpotRequestId

log = logger.bind(component="locator")


class _RequestPendingError(Exception):
    """Spot request not fulfilled yet - retry."""


class _InstancePendingError(Exception):
    """Instance not running yet - retry."""


class InstanceLocator:
    """Polls the capacity request, then the instance, with a bounded policy.

    Both polls use the same policy independently, so the worst case is
    twice ``policy.bound`` plus the final describe call.
    """

    def __init__(self, source: InstanceStatusSource, policy: RetryPolicy = CLOUD_POLL) -> None:
        self._source = source
        self._policy = policy

    def locate(self, request_id: SpotRequestId) -> InstanceDescriptor:
        rlog = log.bind(request_id=request_id)
        rlog.info("Verifying if spot instance request is fulfilled...")
        instance_id = self._wait_for_fulfillment(request_id)

        rlog.info(f"Waiting for instance {instance_id} to be in running state...")
        self._wait_for_running(instance_id)

        descriptor = self.describe(instance_id)
        rlog.info(
            f"Located instance {descriptor.instance_id} in {descriptor.availability_zone}"
        )
        return descriptor

    def describe(self, instance_id: str) -> InstanceDescriptor:
        descriptor = self._source.describe_instance(instance_id)
        if descriptor is None:
            raise InstanceNotFoundError(instance_id)
        return descriptor

    def _wait_for_fulfillment(self, request_id: SpotRequestId) -> str:
        def poll() -> str:
            status = self._source.spot_request(request_id)
            if status is None:
                raise _RequestPendingError()
            if status.status_code in SPOT_FAILED_CODES:
                raise RequestNotFulfilledError(request_id, f"request is {status.status_code}")
            if status.status_code in SPOT_FULFILLED_CODES:
                if not status.instance_id:
                    raise RequestNotFulfilledError(request_id, "fulfilled without an instance id")
                return status.instance_id
            raise _RequestPendingError()

        retrying = self._policy.retrying(on=_RequestPendingError, description="spot request")
        try:
            return retrying(poll)
        except _RequestPendingError as e:
            raise RequestNotFulfilledError(
                request_id, f"not fulfilled after {self._policy.max_attempts} attempts"
            ) from e

    def _wait_for_running(self, instance_id: str) -> None:
        last_state: str | None = None

        def poll() -> None:
            nonlocal last_state
            last_state = self._source.instance_state(instance_id)
            if last_state == InstanceState.RUNNING:
                return
            if last_state in TERMINAL_INSTANCE_STATES:
                raise InstanceTerminatedError(instance_id, last_state)
            raise _InstancePendingError()

        retrying = self._policy.retrying(on=_InstancePendingError, description="instance running")
        try:
            retrying(poll)
        except _InstancePendingError as e:
            raise InstanceNotRunningError(instance_id, last_state) from e
