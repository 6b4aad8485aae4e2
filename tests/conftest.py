from __future__ import annotations

import io

import paramiko
import pytest

from spotward.retry import RetryPolicy
from tests.fakes import FakeRemote, make_zip


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fast_policy(sleeps: SleepRecorder):
    def make(max_attempts: int, delay: float = 10.0) -> RetryPolicy:
        return RetryPolicy(max_attempts=max_attempts, delay=delay, sleep=sleeps)

    return make


@pytest.fixture(scope="session")
def rsa_private_key() -> str:
    key = paramiko.RSAKey.generate(2048)
    buf = io.StringIO()
    key.write_private_key(buf)
    return buf.getvalue()


@pytest.fixture(scope="session")
def rsa_public_key(rsa_private_key: str) -> str:
    key = paramiko.RSAKey.from_private_key(io.StringIO(rsa_private_key))
    return f"{key.get_name()} {key.get_base64()} fah@spotward"


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def bundle() -> bytes:
    return make_zip(
        {
            "install.sh": b"#!/bin/bash\necho install\n",
            "shutdown.sh": b"#!/bin/bash\necho bye\n",
            "config/config.xml": b"<config/>\n",
        }
    )
