"""
S3 storage backend implementation.

Works with AWS S3 and S3-compatible object stores (MinIO, DigitalOcean
Spaces, ...) through boto3. Blocking SDK calls are run in a worker thread
so they do not block the event loop.
"""

import asyncio
import logging
from functools import partial
from typing import Any, List, Optional

import aiofiles.os
import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from storage_abstraction.storage.adapter import (
    FileEntry,
    StorageAdapter,
    normalize_key,
    validate_byte_range,
)
from storage_abstraction.storage.errors import BackendError, NotFoundError
from storage_abstraction.storage.stream import DEFAULT_CHUNK_SIZE, ByteStream

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}

# delete_objects accepts at most 1000 keys per request
_DELETE_BATCH_SIZE = 1000


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3Storage(StorageAdapter):
    """
    S3-based storage implementation.

    Buckets map one to one onto S3 buckets and file names onto object keys.
    """

    backend_name = "s3"

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        endpoint: Optional[str] = None,
        region: str = "us-east-1",
        max_retries: int = 3,
        ssl_enabled: bool = True,
        use_dualstack: bool = False,
        bucket_name: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        client: Any = None,
    ):
        """
        Initialize S3 storage.

        Args:
            access_key_id: Access key ID
            secret_access_key: Secret access key
            endpoint: Endpoint URL for S3-compatible stores (None = AWS)
            region: Region name
            max_retries: Maximum attempts made by the SDK per request
            ssl_enabled: Use HTTPS
            use_dualstack: Use the dual-stack (IPv4/IPv6) AWS endpoint
            bucket_name: Bucket to select initially
            chunk_size: Chunk size of read streams
            client: Preconfigured boto3 S3 client
        """
        super().__init__(bucket_name)
        self.region = region
        self.endpoint = endpoint
        self.chunk_size = chunk_size

        if client is None:
            session = boto3.session.Session()
            client = session.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                use_ssl=ssl_enabled,
                config=Config(
                    retries={"max_attempts": max_retries, "mode": "standard"},
                    s3={"use_dualstack_endpoint": use_dualstack},
                ),
            )
        self.client = client

    async def _call(self, operation: str, context: str, **kwargs) -> Any:
        """
        Run a client method in a worker thread and translate its errors.

        Raises:
            NotFoundError: If S3 reports a missing bucket or key
            BackendError: For any other SDK failure
        """
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(partial(method, **kwargs))
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise NotFoundError(f"{context}: {e}") from e
            raise BackendError.wrap(e, context) from e
        except BotoCoreError as e:
            raise BackendError.wrap(e, context) from e

    async def _create_bucket(self, bucket: str) -> None:
        try:
            await self._call("head_bucket", "Bucket lookup failed", Bucket=bucket)
            return
        except NotFoundError:
            pass

        kwargs = {"Bucket": bucket}
        if self.endpoint is None and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            await asyncio.to_thread(partial(self.client.create_bucket, **kwargs))
            logger.info(f"Created S3 bucket {bucket}")
        except ClientError as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                return
            raise BackendError.wrap(e, "Failed to create bucket") from e
        except BotoCoreError as e:
            raise BackendError.wrap(e, "Failed to create bucket") from e

    async def _iter_objects(self, bucket: str) -> List[dict]:
        def collect() -> List[dict]:
            objects = []
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket):
                objects.extend(page.get("Contents", []))
            return objects

        try:
            return await asyncio.to_thread(collect)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise NotFoundError(f"Bucket not found: {bucket}") from e
            raise BackendError.wrap(e, "Failed to list files") from e
        except BotoCoreError as e:
            raise BackendError.wrap(e, "Failed to list files") from e

    async def _clear_bucket(self, bucket: str) -> None:
        objects = await self._iter_objects(bucket)
        keys = [{"Key": obj["Key"]} for obj in objects]
        for i in range(0, len(keys), _DELETE_BATCH_SIZE):
            response = await self._call(
                "delete_objects",
                "Failed to clear bucket",
                Bucket=bucket,
                Delete={"Objects": keys[i:i + _DELETE_BATCH_SIZE], "Quiet": True},
            )
            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                raise BackendError(
                    f"Failed to clear bucket: could not delete {first.get('Key')!r} "
                    f"({first.get('Code')}: {first.get('Message')})")

    async def _delete_bucket(self, bucket: str) -> None:
        await self._clear_bucket(bucket)
        await self._call("delete_bucket", "Failed to delete bucket", Bucket=bucket)

    async def list_buckets(self) -> List[str]:
        """List all buckets visible to the credentials."""
        response = await self._call("list_buckets", "Failed to list buckets")
        return [b["Name"] for b in response.get("Buckets", [])]

    async def add_file_from_path(
        self, orig_path: str, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """Upload a local file."""
        bucket = await self._resolve_bucket(bucket)
        if not await aiofiles.os.path.isfile(orig_path):
            raise NotFoundError(f"Source file not found: {orig_path}")
        try:
            await asyncio.to_thread(
                self.client.upload_file, orig_path, bucket, normalize_key(target_path))
        except S3UploadFailedError as e:
            # The transfer manager replaces the ClientError with its own exception
            cause = e.__cause__ or e.__context__
            if isinstance(cause, ClientError) and _error_code(cause) in _NOT_FOUND_CODES:
                raise NotFoundError(f"Failed to upload file: {e}") from e
            raise BackendError.wrap(e, "Failed to upload file") from e
        except (ClientError, BotoCoreError) as e:
            raise BackendError.wrap(e, "Failed to upload file") from e

    async def add_file_from_buffer(
        self, data: bytes, target_path: str, bucket: Optional[str] = None
    ) -> None:
        """Upload an in-memory buffer."""
        bucket = await self._resolve_bucket(bucket)
        await self._call(
            "put_object",
            "Failed to upload file",
            Bucket=bucket,
            Key=normalize_key(target_path),
            Body=data,
        )

    def _stream_body(self, body: Any, length: Optional[int] = None) -> ByteStream:
        async def read_chunk(size: int) -> bytes:
            return await asyncio.to_thread(body.read, size)

        async def close() -> None:
            await asyncio.to_thread(body.close)

        return ByteStream(read_chunk, close, length=length, chunk_size=self.chunk_size)

    async def get_file_as_readable(
        self, name: str, bucket: Optional[str] = None
    ) -> ByteStream:
        """Stream an object."""
        bucket = await self._resolve_bucket(bucket)
        response = await self._call(
            "get_object", f"File not found: {name}", Bucket=bucket, Key=normalize_key(name))
        return self._stream_body(response["Body"])

    async def get_file_byte_range_as_readable(
        self,
        name: str,
        start: int,
        length: Optional[int] = None,
        bucket: Optional[str] = None,
    ) -> ByteStream:
        """Stream part of an object using an HTTP Range request."""
        bucket = await self._resolve_bucket(bucket)
        size = await self.size_of(name, bucket=bucket)
        validate_byte_range(start, length, size)
        if start == size or length == 0:
            return ByteStream.empty()

        end = "" if length is None else str(start + length - 1)
        response = await self._call(
            "get_object",
            f"File not found: {name}",
            Bucket=bucket,
            Key=normalize_key(name),
            Range=f"bytes={start}-{end}",
        )
        return self._stream_body(response["Body"], length)

    async def remove_file(self, name: str, bucket: Optional[str] = None) -> None:
        """Delete an object. Missing keys are ignored."""
        bucket = await self._resolve_bucket(bucket)
        try:
            await self._call(
                "delete_object", "Failed to delete file", Bucket=bucket, Key=normalize_key(name))
        except NotFoundError:
            return

    async def list_files(self, bucket: Optional[str] = None) -> List[FileEntry]:
        """List all objects in a bucket as (key, size) tuples."""
        bucket = await self._resolve_bucket(bucket)
        objects = await self._iter_objects(bucket)
        return [(obj["Key"], obj["Size"]) for obj in objects]

    async def size_of(self, name: str, bucket: Optional[str] = None) -> int:
        """Get object size in bytes."""
        bucket = await self._resolve_bucket(bucket)
        response = await self._call(
            "head_object", f"File not found: {name}", Bucket=bucket, Key=normalize_key(name))
        return response["ContentLength"]

    async def aclose(self) -> None:
        """Close the client's connection pool."""
        await asyncio.to_thread(self.client.close)
