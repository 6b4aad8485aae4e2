"""boto3 wiring with dependency injection.

Binds every port in ``spotward.types`` to its AWS implementation and builds
the Provisioner from them.

Usage:
    >>> from injector import Injector
    >>> from spotward.config import load_settings
    >>> from spotward.providers.aws import AWSModule
    >>>
    >>> injector = Injector([AWSModule(load_settings())])
    >>> provisioner = injector.get(Provisioner)
"""

from __future__ import annotations

import boto3
from botocore.config import Config
from injector import Module, provider, singleton

from spotward.artifacts import ArtifactFetcher
from spotward.config import Settings
from spotward.credentials import CredentialInjector
from spotward.locator import InstanceLocator
from spotward.orchestrator import Provisioner
from spotward.providers.aws.connect import InstanceConnectChannel
from spotward.providers.aws.events import EventBridgeTriggerStore, LambdaPermissionStore
from spotward.providers.aws.instances import EC2StatusSource
from spotward.providers.aws.s3 import S3ObjectStore
from spotward.scheduler import RetryScheduler
from spotward.ssh import ConnectionExecutor
from spotward.types import (
    InstanceStatusSource,
    KeyInjectionChannel,
    ObjectStore,
    PermissionStore,
    TriggerStore,
)

# Botocore's own retries for throttling; our polling is layered on top.
BOTO_CONFIG = Config(retries={"max_attempts": 5, "mode": "standard"})


class AWSModule(Module):
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @singleton
    @provider
    def provide_settings(self) -> Settings:
        return self._settings

    @singleton
    @provider
    def provide_session(self) -> boto3.Session:
        return boto3.Session(region_name=self._settings.region)

    @singleton
    @provider
    def provide_status_source(self, session: boto3.Session) -> InstanceStatusSource:
        return EC2StatusSource(session.client("ec2", config=BOTO_CONFIG))

    @singleton
    @provider
    def provide_key_channel(self, session: boto3.Session) -> KeyInjectionChannel:
        return InstanceConnectChannel(session.client("ec2-instance-connect", config=BOTO_CONFIG))

    @singleton
    @provider
    def provide_object_store(self, session: boto3.Session) -> ObjectStore:
        return S3ObjectStore(session.client("s3", config=BOTO_CONFIG))

    @singleton
    @provider
    def provide_trigger_store(self, session: boto3.Session) -> TriggerStore:
        return EventBridgeTriggerStore(session.client("events", config=BOTO_CONFIG))

    @singleton
    @provider
    def provide_permission_store(self, session: boto3.Session) -> PermissionStore:
        return LambdaPermissionStore(session.client("lambda", config=BOTO_CONFIG))

    @provider
    def provide_provisioner(
        self,
        source: InstanceStatusSource,
        channel: KeyInjectionChannel,
        store: ObjectStore,
        triggers: TriggerStore,
        permissions: PermissionStore,
        settings: Settings,
    ) -> Provisioner:
        return Provisioner(
            locator=InstanceLocator(source),
            injector=CredentialInjector(channel, os_user=settings.instance_user),
            scheduler=RetryScheduler(triggers, permissions, schedule=settings.retry_schedule),
            fetcher=ArtifactFetcher(store),
            executor=ConnectionExecutor(),
            settings=settings,
        )
