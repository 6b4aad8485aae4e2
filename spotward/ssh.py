"""Short-lived SSH sessions for remote commands and directory uploads.

No pooling: every call opens its own client and closes it, since each
Lambda invocation is a fresh environment with nothing to reuse.
"""

from __future__ import annotations

import io
import stat
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath

import paramiko
from loguru import logger
from paramiko.ssh_exception import NoValidConnectionsError

from spotward.exceptions import (
    ConnectionFailedError,
    InvalidPrivateKeyError,
    RemoteCommandError,
)
from spotward.retry import SSH_CONNECT, RetryPolicy
from spotward.types import SSHCredentials

log = logger.bind(component="ssh")

# A key that is not yet accepted surfaces as AuthenticationException, a
# half-open banner as EOFError. Local file errors (PermissionError on a
# staged file) are not transient and propagate unchanged.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    NoValidConnectionsError,
    EOFError,
    paramiko.SSHException,
)

type ClientFactory = Callable[[], paramiko.SSHClient]


def load_private_key(private_key: str, passphrase: str | None = None) -> paramiko.PKey:
    """Parse an ssh-rsa private key, optionally passphrase protected."""
    try:
        return paramiko.RSAKey.from_private_key(io.StringIO(private_key), password=passphrase or None)
    except (paramiko.SSHException, ValueError) as e:
        raise InvalidPrivateKeyError(f"Private key must be a valid ssh-rsa key: {e}") from e


def validate_private_key(private_key: str, passphrase: str | None = None) -> None:
    load_private_key(private_key, passphrase)


def _preview(command: str) -> str:
    return command[:80] + "..." if len(command) > 80 else command


class ConnectionExecutor:
    def __init__(
        self,
        policy: RetryPolicy = SSH_CONNECT,
        *,
        connect_timeout: float = 10.0,
        command_timeout: float | None = None,
        client_factory: ClientFactory = paramiko.SSHClient,
    ) -> None:
        self._policy = policy
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._client_factory = client_factory

    def run_command(self, creds: SSHCredentials, command: str) -> str:
        """Run a command and return its stdout.

        Raises:
            ConnectionFailedError: If no session could be opened.
            RemoteCommandError: If the command exits non-zero.
        """
        with self._session(creds) as client:
            log.info(f"Executing on {creds.host}: {_preview(command)}")
            _, stdout, stderr = client.exec_command(command, timeout=self._command_timeout)
            code = stdout.channel.recv_exit_status()
            out = stdout.read().decode(errors="replace")
            if code != 0:
                raise RemoteCommandError(command, code, stderr.read().decode(errors="replace"))
            log.debug(f"exit_code={code}")
            return out

    def copy_directory(self, creds: SSHCredentials, local_path: str | Path, remote_path: str) -> int:
        """Recursively upload ``local_path`` into ``remote_path``.

        Relative structure is preserved; file modes are not. The whole copy
        is retried on transient errors since re-uploading is harmless.
        Returns the number of files copied.
        """
        root = Path(local_path)
        if not root.is_dir():
            raise FileNotFoundError(f"Local directory {root} does not exist")

        def attempt() -> int:
            client = self._connect(creds)
            try:
                sftp = client.open_sftp()
                try:
                    return _upload_tree(sftp, root, PurePosixPath(remote_path))
                finally:
                    sftp.close()
            finally:
                client.close()

        log.info(f"Copying {root} to {creds.host}:{remote_path}")
        return self._with_retries(creds, attempt)

    @contextmanager
    def _session(self, creds: SSHCredentials) -> Iterator[paramiko.SSHClient]:
        client = self._with_retries(creds, lambda: self._connect(creds))
        try:
            yield client
        finally:
            client.close()

    def _with_retries[T](self, creds: SSHCredentials, fn: Callable[[], T]) -> T:
        retrying = self._policy.retrying(on=TRANSIENT_ERRORS, description=f"ssh {creds.host}")
        try:
            return retrying(fn)
        except TRANSIENT_ERRORS as e:
            raise ConnectionFailedError(
                creds.host, self._policy.max_attempts, f"{type(e).__name__}: {e}"
            ) from e

    def _connect(self, creds: SSHCredentials) -> paramiko.SSHClient:
        pkey = load_private_key(creds.private_key, creds.passphrase)
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        log.debug(f"connecting to {creds.host} ({creds.username})")
        try:
            client.connect(
                hostname=creds.host,
                username=creds.username,
                pkey=pkey,
                timeout=self._connect_timeout,
                banner_timeout=self._connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except BaseException:
            client.close()
            raise
        return client


def _upload_tree(sftp: paramiko.SFTPClient, root: Path, remote_root: PurePosixPath) -> int:
    _ensure_remote_dir(sftp, remote_root)
    copied = 0
    for path in sorted(root.rglob("*")):
        remote = remote_root / path.relative_to(root).as_posix()
        if path.is_dir():
            _ensure_remote_dir(sftp, remote)
        elif path.is_file():
            sftp.put(str(path), str(remote))
            copied += 1
    return copied


def _ensure_remote_dir(sftp: paramiko.SFTPClient, remote: PurePosixPath) -> None:
    try:
        if stat.S_ISDIR(sftp.stat(str(remote)).st_mode or 0):
            return
    except FileNotFoundError:
        pass
    if remote.parent != remote:
        _ensure_remote_dir(sftp, remote.parent)
    sftp.mkdir(str(remote))
