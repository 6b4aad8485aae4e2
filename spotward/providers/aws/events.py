"""EventBridge rules and Lambda invoke permissions backing the retry trigger.

Provider errors are translated here: ``ResourceNotFoundException`` becomes
TriggerNotFoundError, everything else TriggerOperationFailedError.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError

from spotward.constants import EVENTS_PRINCIPAL, INVOKE_ACTION
from spotward.exceptions import TriggerNotFoundError, TriggerOperationFailedError
from spotward.providers.aws._errors import error_code, error_message
from spotward.types import InvocationTarget

if TYPE_CHECKING:
    from mypy_boto3_events import EventBridgeClient
    from mypy_boto3_lambda import LambdaClient

NOT_FOUND = "ResourceNotFoundException"
CONFLICT = "ResourceConflictException"


def _call[T](operation: str, name: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except ClientError as e:
        if error_code(e) == NOT_FOUND:
            raise TriggerNotFoundError(name) from e
        raise TriggerOperationFailedError(operation, name, error_message(e)) from e


class EventBridgeTriggerStore:
    def __init__(self, events: EventBridgeClient) -> None:
        self._events = events

    def describe_rule(self, name: str) -> str:
        response = _call("describe_rule", name, lambda: self._events.describe_rule(Name=name))
        return response["Arn"]

    def put_rule(self, name: str, schedule: str, description: str) -> str:
        response = _call(
            "put_rule",
            name,
            lambda: self._events.put_rule(
                Name=name,
                Description=description,
                ScheduleExpression=schedule,
                State="ENABLED",
            ),
        )
        return response["RuleArn"]

    def put_target(self, rule: str, target: InvocationTarget) -> None:
        response = _call(
            "put_targets",
            rule,
            lambda: self._events.put_targets(
                Rule=rule,
                Targets=[{"Id": target.function_name, "Arn": target.function_arn}],
            ),
        )
        if response.get("FailedEntryCount"):
            entries = response.get("FailedEntries") or [{}]
            raise TriggerOperationFailedError(
                "put_targets", rule, entries[0].get("ErrorMessage", "target rejected")
            )

    def remove_target(self, rule: str, target: InvocationTarget) -> None:
        _call(
            "remove_targets",
            rule,
            lambda: self._events.remove_targets(Rule=rule, Ids=[target.function_name]),
        )

    def delete_rule(self, name: str) -> None:
        _call("delete_rule", name, lambda: self._events.delete_rule(Name=name))


class LambdaPermissionStore:
    """One statement slot per function, overwritten rather than duplicated."""

    def __init__(self, lambda_client: LambdaClient) -> None:
        self._lambda = lambda_client

    def grant(self, function_name: str, statement_id: str, source_arn: str) -> None:
        def add() -> None:
            self._lambda.add_permission(
                FunctionName=function_name,
                StatementId=statement_id,
                Action=INVOKE_ACTION,
                Principal=EVENTS_PRINCIPAL,
                SourceArn=source_arn,
            )

        try:
            add()
        except ClientError as e:
            if error_code(e) != CONFLICT:
                raise TriggerOperationFailedError("add_permission", statement_id, error_message(e)) from e
            # Stale statement from an earlier rule: replace it.
            with contextlib.suppress(TriggerNotFoundError):
                self.revoke(function_name, statement_id)
            _call("add_permission", statement_id, add)

    def revoke(self, function_name: str, statement_id: str) -> None:
        _call(
            "remove_permission",
            statement_id,
            lambda: self._lambda.remove_permission(
                FunctionName=function_name,
                StatementId=statement_id,
            ),
        )
