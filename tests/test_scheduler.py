import pytest

from spotward.exceptions import TriggerOperationFailedError
from spotward.scheduler import RetryScheduler
from tests.fakes import TARGET, FakePermissionStore, FakeTriggerStore

pytestmark = [pytest.mark.unit]

REQUEST = "sir-abc123"
RULE = "ScheduledEC2Provisioner_sir-abc123"


@pytest.fixture
def triggers() -> FakeTriggerStore:
    return FakeTriggerStore()


@pytest.fixture
def permissions() -> FakePermissionStore:
    return FakePermissionStore()


@pytest.fixture
def scheduler(triggers, permissions) -> RetryScheduler:
    return RetryScheduler(triggers, permissions)


class TestEnsureTrigger:
    def test_creates_rule_permission_and_target(self, scheduler, triggers, permissions):
        trigger = scheduler.ensure_trigger(REQUEST, TARGET)

        assert trigger.name == RULE
        assert triggers.rules[RULE]["schedule"] == "rate(15 minutes)"
        assert triggers.targets[RULE] == ["fah-provisioner"]
        assert permissions.statements == {("fah-provisioner", "sched-event"): trigger.rule_arn}
        assert [op for op, _ in triggers.calls] == ["describe_rule", "put_rule", "put_target"]

    def test_twice_leaves_exactly_one_trigger(self, scheduler, triggers, permissions):
        scheduler.ensure_trigger(REQUEST, TARGET)
        scheduler.ensure_trigger(REQUEST, TARGET)

        assert list(triggers.rules) == [RULE]
        assert triggers.targets[RULE] == ["fah-provisioner"]
        assert len(permissions.statements) == 1
        assert [op for op, _ in triggers.calls].count("put_rule") == 1

    @pytest.mark.parametrize("request_id", ["sir-1", "sir-zzz", "sir-abc123"])
    def test_name_is_derived_from_request_id(self, scheduler, triggers, request_id):
        scheduler.ensure_trigger(request_id, TARGET)
        assert scheduler.trigger_exists(request_id)
        assert f"ScheduledEC2Provisioner_{request_id}" in triggers.rules

    def test_lookup_failure_other_than_not_found_propagates(self, scheduler, triggers):
        triggers.failures["describe_rule"] = TriggerOperationFailedError(
            "describe_rule", RULE, "AccessDeniedException"
        )
        with pytest.raises(TriggerOperationFailedError):
            scheduler.ensure_trigger(REQUEST, TARGET)
        assert triggers.rules == {}

    def test_custom_schedule(self, triggers, permissions):
        RetryScheduler(triggers, permissions, schedule="rate(5 minutes)").ensure_trigger(REQUEST, TARGET)
        assert triggers.rules[RULE]["schedule"] == "rate(5 minutes)"


class TestRemoveTrigger:
    def test_removes_everything_in_order(self, scheduler, triggers, permissions):
        scheduler.ensure_trigger(REQUEST, TARGET)
        triggers.calls.clear()
        permissions.calls.clear()

        scheduler.remove_trigger(REQUEST, TARGET)

        assert [op for op, _ in triggers.calls] == ["remove_target", "delete_rule"]
        assert permissions.calls == [("revoke", "sched-event")]
        assert triggers.rules == {}
        assert permissions.statements == {}
        assert not scheduler.trigger_exists(REQUEST)

    def test_absent_trigger_is_not_an_error(self, scheduler, triggers, permissions):
        scheduler.remove_trigger(REQUEST, TARGET)
        scheduler.remove_trigger(REQUEST, TARGET)

        assert triggers.rules == {}
        assert permissions.calls == [("revoke", "sched-event")] * 2

    def test_other_errors_propagate(self, scheduler, triggers):
        scheduler.ensure_trigger(REQUEST, TARGET)
        triggers.failures["delete_rule"] = TriggerOperationFailedError("delete_rule", RULE, "Throttling")

        with pytest.raises(TriggerOperationFailedError):
            scheduler.remove_trigger(REQUEST, TARGET)
        assert RULE in triggers.rules

    def test_can_be_recreated_after_removal(self, scheduler, triggers):
        scheduler.ensure_trigger(REQUEST, TARGET)
        scheduler.remove_trigger(REQUEST, TARGET)
        scheduler.ensure_trigger(REQUEST, TARGET)
        assert list(triggers.rules) == [RULE]
