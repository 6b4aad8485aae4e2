"""AWS implementations of the provisioning ports."""

from spotward.providers.aws.clients import AWSModule
from spotward.providers.aws.connect import InstanceConnectChannel
from spotward.providers.aws.events import EventBridgeTriggerStore, LambdaPermissionStore
from spotward.providers.aws.instances import EC2StatusSource
from spotward.providers.aws.s3 import S3ObjectStore

__all__ = [
    "AWSModule",
    "EC2StatusSource",
    "EventBridgeTriggerStore",
    "InstanceConnectChannel",
    "LambdaPermissionStore",
    "S3ObjectStore",
]
