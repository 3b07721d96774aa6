"""
S3 storage adapter.

Snapshots are stored as JSON objects under a date-partitioned key:
``{prefix}/YYYY/MM/DD/workspace_backup_YYYYmmdd_HHMMSS.json``.
Credentials come from the IAM role (OIDC/IRSA) or explicit access keys.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from .base import AdapterKind, StorageAdapter, UploadResult
from .local import snapshot_filename
from ..config import S3Config, TransportConfig
from ..exceptions import NotFound, TransportError, Unauthenticated
from ..snapshot.codec import SnapshotCodec
from ..utils.transport import RetryingTransport

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}
AUTH_ERROR_CODES = {
    "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch",
    "ExpiredToken", "InvalidToken", "403", "401",
}


class S3SnapshotStore:
    """
    Uploads and downloads snapshot objects in one bucket.
    """

    def __init__(
        self,
        config: S3Config,
        transport_config: Optional[TransportConfig] = None,
        client: Any = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[RetryingTransport] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize store.

        Args:
            config: S3 configuration
            transport_config: Retry settings
            client: boto3 S3 client (created on first use if None)
            logger: Logger instance
            transport: Retrying transport (built from transport_config if None)
            clock: Source of the timestamp used in object keys
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        transport_config = transport_config or TransportConfig()
        self._client = client
        self._clock = clock
        self.transport = transport or RetryingTransport(
            backend="s3",
            max_retries=transport_config.max_retries,
            retry_backoff_factor=transport_config.retry_backoff_factor,
            retry_max_delay=transport_config.retry_max_delay,
            circuit_breaker_threshold=transport_config.circuit_breaker_threshold,
            circuit_breaker_timeout=transport_config.circuit_breaker_timeout,
            logger=self.logger
        )

    @property
    def client(self):
        """
        S3 client, created on first use.

        With an IAM role boto3 resolves instance or pod credentials itself.
        """
        if self._client is None:
            if self.config.use_iam_role:
                self.logger.debug("Creating S3 client with IAM role credentials")
                self._client = boto3.client("s3", region_name=self.config.region)
            else:
                self.logger.debug("Creating S3 client with access key credentials")
                self._client = boto3.client(
                    "s3",
                    aws_access_key_id=self.config.access_key_id,
                    aws_secret_access_key=self.config.secret_access_key,
                    region_name=self.config.region
                )
        return self._client

    def object_key(self, timestamp: Optional[datetime] = None) -> str:
        timestamp = timestamp or self._clock()
        prefix = self.config.prefix.strip("/")
        key = f"{timestamp.strftime('%Y/%m/%d')}/{snapshot_filename(timestamp)}"
        return f"{prefix}/{key}" if prefix else key

    def _call(self, func: Callable[[], Any], operation: str, remote_id: str = "") -> Any:
        """Run a boto3 call through the transport, mapping botocore errors."""

        def wrapped():
            try:
                return func()
            except NoCredentialsError as e:
                raise Unauthenticated(f"No AWS credentials available: {e}") from e
            except ClientError as e:
                error = e.response.get("Error", {})
                code = str(error.get("Code", ""))
                message = error.get("Message", str(e))
                status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
                if code in NOT_FOUND_CODES:
                    raise NotFound(remote_id or self.config.bucket_name, message) from e
                if code in AUTH_ERROR_CODES:
                    raise Unauthenticated(f"S3 rejected the credentials: {message}") from e
                raise TransportError(f"S3 {operation} failed", status=status, backend_message=message) from e
            except BotoCoreError as e:
                raise TransportError(f"S3 {operation} failed", backend_message=str(e)) from e

        return self.transport.call(wrapped, f"s3.{operation}")

    def authenticate(self) -> None:
        """Check that the bucket is reachable with the configured credentials."""
        self._call(
            lambda: self.client.head_bucket(Bucket=self.config.bucket_name),
            "head_bucket"
        )
        self.logger.info(f"S3 bucket {self.config.bucket_name} is accessible")

    def upload(self, payload: str) -> UploadResult:
        """
        Store an encoded snapshot under a new timestamped key.

        Returns:
            UploadResult whose remote_id is the object key
        """
        key = self.object_key()
        self._call(
            lambda: self.client.put_object(
                Bucket=self.config.bucket_name,
                Key=key,
                Body=payload.encode("utf-8"),
                ContentType="application/json"
            ),
            "put_object",
            key
        )
        self.logger.info(f"Uploaded snapshot to s3://{self.config.bucket_name}/{key}")
        return UploadResult(remote_id=key, remote_url=f"s3://{self.config.bucket_name}/{key}")

    def download(self, remote_id: str) -> str:
        """
        Fetch an encoded snapshot by object key.

        ``s3://bucket/key`` URLs for the configured bucket are accepted too.
        """
        key = self._strip_url(remote_id)

        def get() -> str:
            response = self.client.get_object(Bucket=self.config.bucket_name, Key=key)
            return response["Body"].read().decode("utf-8")

        return self._call(get, "get_object", key)

    def _strip_url(self, remote_id: str) -> str:
        url_prefix = f"s3://{self.config.bucket_name}/"
        if remote_id.startswith(url_prefix):
            return remote_id[len(url_prefix):]
        return remote_id

    def list_snapshots(self, max_keys: int = 50) -> List[Dict[str, Any]]:
        """
        Snapshot objects under the prefix, newest first.

        Returns:
            Dicts with key, size and last_modified
        """
        response = self._call(
            lambda: self.client.list_objects_v2(
                Bucket=self.config.bucket_name,
                Prefix=self.config.prefix,
                MaxKeys=max_keys
            ),
            "list_objects_v2"
        )
        objects = [
            {
                "key": item["Key"],
                "size": item.get("Size", 0),
                "last_modified": item.get("LastModified"),
            }
            for item in response.get("Contents", [])
            if item["Key"].endswith(".json")
        ]
        objects.sort(key=lambda item: item["key"], reverse=True)
        return objects


def create_s3_adapter(
    config: Optional[S3Config] = None,
    transport_config: Optional[TransportConfig] = None,
    client: Any = None,
    codec: Optional[SnapshotCodec] = None,
    logger: Optional[logging.Logger] = None
) -> StorageAdapter:
    """
    Create the S3 adapter.

    Args:
        config: S3 configuration (default: from environment)
        transport_config: Retry settings
        client: boto3 S3 client override
        codec: Snapshot codec (default: indented JSON)
        logger: Logger instance

    Returns:
        StorageAdapter supporting upload, download, authenticate and listing
    """
    config = config or S3Config()
    codec = codec or SnapshotCodec()
    store = S3SnapshotStore(
        config,
        transport_config=transport_config,
        client=client,
        logger=logger
    )

    return StorageAdapter(
        id=AdapterKind.S3.value,
        kind=AdapterKind.S3,
        name="Amazon S3",
        encode=codec.encode,
        decode=codec.decode,
        upload=store.upload,
        download=store.download,
        authenticate=store.authenticate,
        list_snapshots=store.list_snapshots,
        description=f"s3://{config.bucket_name}/{config.prefix}",
        backend=store,
    )
