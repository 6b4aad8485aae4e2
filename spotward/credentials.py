"""Out-of-band SSH public key injection."""

from __future__ import annotations

from loguru import logger

from spotward.constants import INSTANCE_USER
from spotward.exceptions import KeyInjectionFailedError
from spotward.types import InstanceDescriptor, KeyInjectionChannel

log = logger.bind(component="credentials")

_KEY_TYPES = ("ssh-rsa", "ssh-ed25519", "ecdsa-sha2-")


class CredentialInjector:
    """Pushes a public key through the provider, not through SSH.

    The instance has no usable key yet, so the only trust available is the
    caller's cloud identity. Re-sending the same key is harmless, which is
    exactly what happens on every retry.
    """

    def __init__(self, channel: KeyInjectionChannel, os_user: str = INSTANCE_USER) -> None:
        self._channel = channel
        self._os_user = os_user

    def inject(self, instance: InstanceDescriptor, public_key: str) -> None:
        key = public_key.strip()
        if not key.startswith(_KEY_TYPES):
            raise KeyInjectionFailedError(instance.instance_id, "not an OpenSSH public key")

        log.info(f"Sending SSH public key to {instance.instance_id}...")
        success, detail = self._channel.send_public_key(
            instance_id=instance.instance_id,
            availability_zone=instance.availability_zone,
            os_user=self._os_user,
            public_key=key,
        )
        if not success:
            raise KeyInjectionFailedError(instance.instance_id, detail or "unknown error")
        log.info("SSH public key sent.")
