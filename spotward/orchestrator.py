"""Provisioning state machine.

One attempt walks::

    idle -> injecting_credential -> scheduling_retry -> staging_artifacts
         -> transferring -> executing -> removing_trigger -> completed

and ends in ``attempt_failed`` otherwise. A failed attempt is not fatal:
the retry trigger stays armed and the next scheduled invocation starts
again from ``idle``.

Failure handling is deliberately asymmetric. Anything that goes wrong
while arming the trigger, staging or copying files is logged and the
attempt simply ends (the instance is most likely still booting). Once the
files are on the instance, a failing remote command propagates, so the
invocation reports an error the operator can see.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from spotward.artifacts import ArtifactFetcher
from spotward.config import Settings
from spotward.constants import chmod_command, source_command
from spotward.credentials import CredentialInjector
from spotward.exceptions import ConfigurationError, InstanceTerminatedError
from spotward.locator import InstanceLocator
from spotward.scheduler import RetryScheduler
from spotward.ssh import ConnectionExecutor
from spotward.types import (
    InstanceDescriptor,
    InvocationTarget,
    ProvisionState,
    SpotRequestId,
    SSHCredentials,
)

log = logger.bind(component="orchestrator")

INSTALL_SCRIPT = "install.sh"
SHUTDOWN_SCRIPT = "shutdown.sh"


class Provisioner:
    def __init__(
        self,
        locator: InstanceLocator,
        injector: CredentialInjector,
        scheduler: RetryScheduler,
        fetcher: ArtifactFetcher,
        executor: ConnectionExecutor,
        settings: Settings,
    ) -> None:
        self._locator = locator
        self._injector = injector
        self._scheduler = scheduler
        self._fetcher = fetcher
        self._executor = executor
        self._settings = settings
        self.state = ProvisionState.IDLE

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def attempt(self, request_id: SpotRequestId, target: InvocationTarget) -> ProvisionState:
        """Locate the instance, push the key and run one provisioning attempt."""
        self._transition(request_id, ProvisionState.IDLE)
        instance = self._prepare(request_id)
        address = instance.address(self._settings.prefer_private_address)
        return self.provision(request_id, address, self._private_key(), target)

    def stop(self, request_id: SpotRequestId, target: InvocationTarget) -> ProvisionState:
        """Remove the trigger, then locate the instance and run the shutdown path.

        An instance that is already stopping cannot run the script; that case
        ends in ``shut_down`` with the trigger gone.
        """
        self._transition(request_id, ProvisionState.IDLE)
        self._remove_trigger(request_id, target)
        try:
            instance = self._prepare(request_id)
        except InstanceTerminatedError as e:
            log.bind(request_id=request_id).warning(f"Skipping shutdown script: {e}")
            self._transition(request_id, ProvisionState.SHUT_DOWN)
            return self.state
        address = instance.address(self._settings.prefer_private_address)
        return self.shutdown(request_id, address, self._private_key(), target)

    # -------------------------------------------------------------------------
    # Provision / shutdown
    # -------------------------------------------------------------------------

    def provision(
        self,
        request_id: SpotRequestId,
        address: str,
        private_key: str,
        target: InvocationTarget,
    ) -> ProvisionState:
        creds = self._credentials(address, private_key)
        scripts_dir = self._settings.remote_scripts_dir

        try:
            self._transition(request_id, ProvisionState.SCHEDULING_RETRY)
            self._scheduler.ensure_trigger(request_id, target)

            self._transition(request_id, ProvisionState.STAGING_ARTIFACTS)
            staged = self._fetcher.fetch(
                self._settings.bucket,
                self._settings.bundle_key,
                Path(self._settings.staging_path),
            )

            self._transition(request_id, ProvisionState.TRANSFERRING)
            log.bind(request_id=request_id).info(f"Copying files to the instance {address}...")
            self._executor.copy_directory(creds, staged, scripts_dir)
        except Exception as e:
            # The trigger (if it was armed) brings us back later.
            log.bind(request_id=request_id).opt(exception=e).error(
                f"Could not copy files to the instance at this time: {type(e).__name__}: {e}"
            )
            self._transition(request_id, ProvisionState.ATTEMPT_FAILED)
            return self.state

        self._transition(request_id, ProvisionState.EXECUTING)
        try:
            for command in (chmod_command(scripts_dir), source_command(scripts_dir, INSTALL_SCRIPT)):
                self._executor.run_command(creds, command)
        except Exception:
            self._transition(request_id, ProvisionState.ATTEMPT_FAILED)
            raise

        try:
            self._remove_trigger(request_id, target)
        except Exception as e:
            log.bind(request_id=request_id).error(
                f"install.sh succeeded but the retry trigger could not be removed: {e}"
            )
            raise
        self._transition(request_id, ProvisionState.COMPLETED)
        return self.state

    def shutdown(
        self,
        request_id: SpotRequestId,
        address: str,
        private_key: str,
        target: InvocationTarget,
    ) -> ProvisionState:
        """Best-effort terminal action; the remote script is not retried."""
        creds = self._credentials(address, private_key)

        self._remove_trigger(request_id, target)

        self._transition(request_id, ProvisionState.SHUTTING_DOWN)
        log.bind(request_id=request_id).info("Running shutdown script on the instance...")
        self._executor.run_command(
            creds, source_command(self._settings.remote_scripts_dir, SHUTDOWN_SCRIPT)
        )
        self._transition(request_id, ProvisionState.SHUT_DOWN)
        return self.state

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _prepare(self, request_id: SpotRequestId) -> InstanceDescriptor:
        instance = self._locator.locate(request_id)
        self._transition(request_id, ProvisionState.INJECTING_CREDENTIAL)
        if not self._settings.public_key:
            raise ConfigurationError("public_key is required to reach the instance")
        self._injector.inject(instance, self._settings.public_key)
        return instance

    def _remove_trigger(self, request_id: SpotRequestId, target: InvocationTarget) -> None:
        self._transition(request_id, ProvisionState.REMOVING_TRIGGER)
        log.bind(request_id=request_id).info("Removing any previously created scheduled events...")
        self._scheduler.remove_trigger(request_id, target)

    def _private_key(self) -> str:
        if not self._settings.private_key:
            raise ConfigurationError("private_key is required to reach the instance")
        return self._settings.private_key

    def _credentials(self, address: str, private_key: str) -> SSHCredentials:
        return SSHCredentials(
            host=address,
            username=self._settings.instance_user,
            private_key=private_key,
            passphrase=self._settings.private_key_passphrase,
        )

    def _transition(self, request_id: SpotRequestId, new: ProvisionState) -> None:
        old, self.state = self.state, new
        if old is not new:
            log.bind(request_id=request_id).info(f"state={old} -> {new}")
