"""S3-backed ObjectStore."""

from __future__ import annotations

from typing import IO, TYPE_CHECKING, cast

from botocore.exceptions import ClientError

from spotward.exceptions import ArtifactNotFoundError
from spotward.providers.aws._errors import error_code

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

_MISSING = {"NoSuchKey", "NoSuchBucket", "404"}


class S3ObjectStore:
    def __init__(self, s3: S3Client) -> None:
        self._s3 = s3

    def open(self, bucket: str, key: str) -> IO[bytes]:
        """Return the object's StreamingBody; nothing is read yet."""
        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if error_code(e) in _MISSING:
                raise ArtifactNotFoundError(bucket, key) from e
            raise
        return cast(IO[bytes], response["Body"])
