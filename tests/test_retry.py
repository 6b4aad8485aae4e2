import pytest

from spotward.retry import CLOUD_POLL, SSH_CONNECT, RetryPolicy

pytestmark = [pytest.mark.unit]


class _Flaky(Exception):
    pass


class TestRetryPolicy:
    def test_presets(self):
        assert (CLOUD_POLL.max_attempts, CLOUD_POLL.delay) == (20, 10.0)
        assert SSH_CONNECT.max_attempts == 3

    def test_bound_is_attempts_times_delay(self):
        assert RetryPolicy(max_attempts=20, delay=10.0).bound == 190.0
        assert RetryPolicy(max_attempts=1, delay=10.0).bound == 0.0

    @pytest.mark.parametrize("attempts,delay", [(0, 1.0), (3, -1.0)])
    def test_rejects_invalid_values(self, attempts, delay):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=attempts, delay=delay)

    def test_succeeds_after_transient_failures(self, fast_policy, sleeps):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise _Flaky()
            return "ok"

        assert fast_policy(5, delay=2.0).retrying(on=_Flaky)(flaky) == "ok"
        assert len(calls) == 3
        assert sleeps.calls == [2.0, 2.0]

    def test_reraises_last_error_when_exhausted(self, fast_policy, sleeps):
        calls = []

        def always():
            calls.append(1)
            raise _Flaky("still down")

        with pytest.raises(_Flaky, match="still down"):
            fast_policy(4).retrying(on=_Flaky)(always)
        assert len(calls) == 4
        assert len(sleeps.calls) == 3

    def test_other_errors_are_not_retried(self, fast_policy, sleeps):
        calls = []

        def broken():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            fast_policy(4).retrying(on=_Flaky)(broken)
        assert len(calls) == 1
        assert sleeps.calls == []
