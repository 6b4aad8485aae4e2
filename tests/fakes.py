"""In-memory stand-ins for every port and for paramiko's client."""

from __future__ import annotations

import io
import stat
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace

from spotward.exceptions import ArtifactNotFoundError, TriggerNotFoundError
from spotward.types import InstanceDescriptor, InvocationTarget, SpotRequestStatus

TARGET = InvocationTarget(
    function_name="fah-provisioner",
    function_arn="arn:aws:lambda:us-east-1:123456789012:function:fah-provisioner",
)


# =============================================================================
# Cloud
# =============================================================================


class ScriptedStatusSource:
    """Replays scripted answers; the last answer repeats forever."""

    def __init__(
        self,
        spot: Sequence[SpotRequestStatus | None],
        states: Sequence[str | None],
        descriptors: dict[str, InstanceDescriptor] | None = None,
    ) -> None:
        self._spot = list(spot)
        self._states = list(states)
        self._descriptors = descriptors or {}
        self.spot_calls = 0
        self.state_calls = 0

    def spot_request(self, request_id: str) -> SpotRequestStatus | None:
        answer = self._spot[min(self.spot_calls, len(self._spot) - 1)]
        self.spot_calls += 1
        return answer

    def instance_state(self, instance_id: str) -> str | None:
        answer = self._states[min(self.state_calls, len(self._states) - 1)]
        self.state_calls += 1
        return answer

    def describe_instance(self, instance_id: str) -> InstanceDescriptor | None:
        return self._descriptors.get(instance_id)


@dataclass
class FakeKeyChannel:
    success: bool = True
    detail: str = "req-1"
    sent: list[dict[str, str]] = field(default_factory=list)

    def send_public_key(self, **kwargs: str) -> tuple[bool, str]:
        self.sent.append(kwargs)
        return self.success, self.detail


class FakeObjectStore:
    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None) -> None:
        self.objects = objects or {}

    def open(self, bucket: str, key: str) -> io.BytesIO:
        try:
            return io.BytesIO(self.objects[(bucket, key)])
        except KeyError:
            raise ArtifactNotFoundError(bucket, key) from None


class FakeTriggerStore:
    """EventBridge-like rule store. ``failures`` maps operation -> exception."""

    def __init__(self) -> None:
        self.rules: dict[str, dict[str, str]] = {}
        self.targets: dict[str, list[str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}

    def _enter(self, op: str, name: str) -> None:
        self.calls.append((op, name))
        if op in self.failures:
            raise self.failures[op]

    def describe_rule(self, name: str) -> str:
        self._enter("describe_rule", name)
        if name not in self.rules:
            raise TriggerNotFoundError(name)
        return self.rules[name]["arn"]

    def put_rule(self, name: str, schedule: str, description: str) -> str:
        self._enter("put_rule", name)
        arn = f"arn:aws:events:us-east-1:123456789012:rule/{name}"
        self.rules[name] = {"arn": arn, "schedule": schedule}
        return arn

    def put_target(self, rule: str, target: InvocationTarget) -> None:
        self._enter("put_target", rule)
        if rule not in self.rules:
            raise TriggerNotFoundError(rule)
        ids = self.targets.setdefault(rule, [])
        if target.function_name not in ids:
            ids.append(target.function_name)

    def remove_target(self, rule: str, target: InvocationTarget) -> None:
        self._enter("remove_target", rule)
        if rule not in self.rules:
            raise TriggerNotFoundError(rule)
        ids = self.targets.get(rule, [])
        if target.function_name in ids:
            ids.remove(target.function_name)

    def delete_rule(self, name: str) -> None:
        self._enter("delete_rule", name)
        if name not in self.rules:
            raise TriggerNotFoundError(name)
        if self.targets.get(name):
            raise RuntimeError("Rule can't be deleted since it has targets.")
        del self.rules[name]
        self.targets.pop(name, None)


class FakePermissionStore:
    def __init__(self) -> None:
        self.statements: dict[tuple[str, str], str] = {}
        self.calls: list[tuple[str, str]] = []

    def grant(self, function_name: str, statement_id: str, source_arn: str) -> None:
        self.calls.append(("grant", statement_id))
        self.statements[(function_name, statement_id)] = source_arn

    def revoke(self, function_name: str, statement_id: str) -> None:
        self.calls.append(("revoke", statement_id))
        if (function_name, statement_id) not in self.statements:
            raise TriggerNotFoundError(statement_id)
        del self.statements[(function_name, statement_id)]


# =============================================================================
# SSH
# =============================================================================


class _Channel:
    def __init__(self, code: int) -> None:
        self._code = code

    def recv_exit_status(self) -> int:
        return self._code


class _Stream:
    def __init__(self, data: bytes = b"", code: int = 0) -> None:
        self._data = data
        self.channel = _Channel(code)

    def read(self) -> bytes:
        return self._data


class FakeSFTP:
    def __init__(self, remote: FakeRemote) -> None:
        self._remote = remote

    def stat(self, path: str) -> SimpleNamespace:
        if path in self._remote.dirs:
            return SimpleNamespace(st_mode=stat.S_IFDIR | 0o755)
        if path in self._remote.files:
            return SimpleNamespace(st_mode=stat.S_IFREG | 0o644)
        raise FileNotFoundError(2, "No such file", path)

    def mkdir(self, path: str) -> None:
        self._remote.dirs.add(path)

    def put(self, local: str, remote: str) -> None:
        if self._remote.put_failures:
            raise self._remote.put_failures.pop(0)
        self._remote.files[remote] = Path(local).read_bytes()

    def close(self) -> None:
        pass


class FakeSSHClient:
    def __init__(self, remote: FakeRemote) -> None:
        self._remote = remote
        self.closed = False

    def set_missing_host_key_policy(self, policy: object) -> None:
        pass

    def connect(self, **kwargs: object) -> None:
        self._remote.connects.append(kwargs)
        if self._remote.refuse_all:
            raise ConnectionRefusedError(111, "Connection refused")
        if self._remote.connect_failures:
            raise self._remote.connect_failures.pop(0)

    def exec_command(self, command: str, timeout: float | None = None) -> tuple[None, _Stream, _Stream]:
        self._remote.commands.append(command)
        code = self._remote.exit_codes.get(command, 0)
        stderr = b"boom" if code else b""
        return None, _Stream(self._remote.stdout.get(command, b""), code), _Stream(stderr)

    def open_sftp(self) -> FakeSFTP:
        return FakeSFTP(self._remote)

    def close(self) -> None:
        self.closed = True
        self._remote.closed += 1


@dataclass
class FakeRemote:
    """State of the remote host shared by every client it hands out."""

    dirs: set[str] = field(default_factory=lambda: {"/"})
    files: dict[str, bytes] = field(default_factory=dict)
    commands: list[str] = field(default_factory=list)
    connects: list[dict[str, object]] = field(default_factory=list)
    connect_failures: list[BaseException] = field(default_factory=list)
    put_failures: list[BaseException] = field(default_factory=list)
    exit_codes: dict[str, int] = field(default_factory=dict)
    stdout: dict[str, bytes] = field(default_factory=dict)
    refuse_all: bool = False
    closed: int = 0

    def client(self) -> FakeSSHClient:
        return FakeSSHClient(self)


def make_zip(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()
