"""EC2 Instance Connect key channel."""

from __future__ import annotations

from typing import TYPE_CHECKING

from botocore.exceptions import ClientError

from spotward.providers.aws._errors import error_message

if TYPE_CHECKING:
    from mypy_boto3_ec2_instance_connect import EC2InstanceConnectClient


class InstanceConnectChannel:
    """Pushes a public key valid for 60 seconds of first-time login."""

    def __init__(self, client: EC2InstanceConnectClient) -> None:
        self._client = client

    def send_public_key(
        self,
        *,
        instance_id: str,
        availability_zone: str,
        os_user: str,
        public_key: str,
    ) -> tuple[bool, str]:
        try:
            result = self._client.send_ssh_public_key(
                InstanceId=instance_id,
                InstanceOSUser=os_user,
                SSHPublicKey=public_key,
                AvailabilityZone=availability_zone,
            )
        except ClientError as e:
            return False, error_message(e)
        return bool(result.get("Success")), result.get("RequestId", "")
