"""EC2-backed InstanceStatusSource."""

from __future__ import annotations

from typing import TYPE_CHECKING

from botocore.exceptions import ClientError

from spotward.providers.aws._errors import error_code
from spotward.types import InstanceDescriptor, SpotRequestStatus

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

_NOT_FOUND = {"InvalidSpotInstanceRequestID.NotFound", "InvalidInstanceID.NotFound"}


class EC2StatusSource:
    """Spot request and instance lookups.

    Not-found answers map to None: both are eventually consistent right
    after the request or instance is created.
    """

    def __init__(self, ec2: EC2Client) -> None:
        self._ec2 = ec2

    def spot_request(self, request_id: str) -> SpotRequestStatus | None:
        try:
            response = self._ec2.describe_spot_instance_requests(
                SpotInstanceRequestIds=[request_id]
            )
        except ClientError as e:
            if error_code(e) in _NOT_FOUND:
                return None
            raise

        requests = response.get("SpotInstanceRequests") or []
        if not requests:
            return None
        request = requests[0]
        return SpotRequestStatus(
            request_id=request_id,
            state=request.get("State", ""),
            status_code=request.get("Status", {}).get("Code", ""),
            instance_id=request.get("InstanceId"),
        )

    def instance_state(self, instance_id: str) -> str | None:
        try:
            response = self._ec2.describe_instance_status(
                InstanceIds=[instance_id],
                IncludeAllInstances=True,
            )
        except ClientError as e:
            if error_code(e) in _NOT_FOUND:
                return None
            raise

        statuses = response.get("InstanceStatuses") or []
        if not statuses:
            return None
        return statuses[0].get("InstanceState", {}).get("Name")

    def describe_instance(self, instance_id: str) -> InstanceDescriptor | None:
        try:
            response = self._ec2.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            if error_code(e) in _NOT_FOUND:
                return None
            raise

        reservations = response.get("Reservations") or []
        if not reservations or not reservations[0].get("Instances"):
            return None
        instance = reservations[0]["Instances"][0]
        return InstanceDescriptor(
            instance_id=instance["InstanceId"],
            availability_zone=instance.get("Placement", {}).get("AvailabilityZone", ""),
            private_address=instance.get("PrivateIpAddress"),
            public_address=instance.get("PublicIpAddress"),
            state=instance.get("State", {}).get("Name", ""),
        )
