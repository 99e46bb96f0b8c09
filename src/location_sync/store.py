# src/location_sync/store.py
"""
Object store handles used by the synchronizer.

The synchronizer only talks to the `ObjectStore` protocol: paginated listing,
a server-side copy, a readable byte stream and an upload fed from such a
stream. `S3ObjectStore` implements it on top of an aiobotocore S3 client and
translates botocore failures into `StoreAccessError`.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Protocol,
)

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from location_sync.config import S3Config
from location_sync.exceptions import StoreAccessError
from location_sync.models import ObjectRecord

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client
    from types_aiobotocore_s3.type_defs import (
        CompletedPartTypeDef,
        GetObjectOutputTypeDef,
        ListObjectsV2OutputTypeDef,
    )

logger: logging.Logger = logging.getLogger(__name__)

MIB: int = 1024**2
# S3 rejects multipart uploads with more parts than this.
MAX_UPLOAD_PARTS: int = 10_000


class ByteStream(Protocol):
    """A readable stream of bytes, such as an aiobotocore `StreamingBody`."""

    async def read(self, amt: Optional[int] = None) -> bytes: ...


@dataclass(frozen=True)
class ListPage:
    """
    One page of a listing.

    Attributes:
        items (List[ObjectRecord]): The objects on this page.
        next_token (str, optional): Continuation token for the next page,
            or None when the listing is exhausted.
    """

    items: List[ObjectRecord] = field(default_factory=list)
    next_token: Optional[str] = None


class ObjectStore(Protocol):
    """The minimum set of store operations the synchronizer relies on."""

    async def list_page(
        self,
        bucket: str,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ListPage: ...

    async def server_side_copy(
        self,
        src_bucket: str,
        src_key: str,
        dst_bucket: str,
        dst_key: str,
    ) -> None: ...

    def open_read_stream(
        self, bucket: str, key: str
    ) -> AsyncContextManager[ByteStream]: ...

    async def upload_from_stream(
        self,
        bucket: str,
        key: str,
        stream: ByteStream,
        size: int,
    ) -> None: ...


def _access_error(
    error: Exception,
    operation: str,
    bucket: str,
    key: Optional[str] = None,
) -> StoreAccessError:
    """
    Wraps a botocore failure into a `StoreAccessError`.

    Args:
        error (Exception): The botocore exception.
        operation (str): The store operation that failed.
        bucket (str): The bucket the operation targeted.
        key (str, optional): The object key, if any.

    Returns:
        StoreAccessError: The translated error, ready to be raised.
    """
    if isinstance(error, ClientError):
        code: str = error.response.get("Error", {}).get("Code", "Unknown")
        detail: str = f"{code}: {error}"
    else:
        detail = f"{type(error).__name__}: {error}"
    target: str = f"{bucket}/{key}" if key is not None else bucket
    return StoreAccessError(
        f"{operation} failed for '{target}' ({detail})",
        operation=operation,
        bucket=bucket,
        key=key,
    )


async def _read_exactly(stream: ByteStream, size: int) -> bytes:
    """
    Reads up to `size` bytes, looping over short reads until EOF.

    Args:
        stream (ByteStream): The stream to read from.
        size (int): The number of bytes wanted.

    Returns:
        bytes: Exactly `size` bytes, or fewer if the stream ended first.
    """
    chunks: List[bytes] = []
    remaining: int = size
    while remaining > 0:
        chunk: bytes = await stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


async def _ensure_drained(
    stream: ByteStream, bucket: str, key: str, size: int, operation: str
) -> None:
    """Raises `StoreAccessError` if `stream` still holds bytes past `size`."""
    if await stream.read(1):
        raise StoreAccessError(
            f"Long read for '{bucket}/{key}': stream holds more than {size} bytes",
            operation=operation,
            bucket=bucket,
            key=key,
        )


class S3ObjectStore:
    """An `ObjectStore` backed by an aiobotocore S3 client."""

    def __init__(
        self,
        client: "S3Client",
        multipart_threshold: int = 8 * MIB,
    ) -> None:
        """
        Initializes the store around an already opened client.

        Args:
            client (S3Client): The aiobotocore S3 client.
            multipart_threshold (int): Streamed uploads larger than this many
                bytes are sent as a multipart upload.
        """
        self._client: "S3Client" = client
        self._multipart_threshold: int = multipart_threshold

    async def list_page(
        self,
        bucket: str,
        prefix: str,
        continuation_token: Optional[str] = None,
    ) -> ListPage:
        """
        Fetches one `ListObjectsV2` page.

        Args:
            bucket (str): The bucket to list.
            prefix (str): Only keys starting with this prefix are returned.
            continuation_token (str, optional): Token from the previous page.

        Returns:
            ListPage: The page's objects and the next continuation token.
        """
        params: Dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            params["ContinuationToken"] = continuation_token
        try:
            response: "ListObjectsV2OutputTypeDef" = (
                await self._client.list_objects_v2(**params)
            )
        except (ClientError, BotoCoreError) as e:
            raise _access_error(e, "list_objects_v2", bucket) from e

        items: List[ObjectRecord] = [
            ObjectRecord(
                key=obj["Key"],
                fingerprint=obj.get("ETag", ""),
                size=obj.get("Size", 0),
                last_modified=obj["LastModified"],
            )
            for obj in response.get("Contents", [])
        ]
        next_token: Optional[str] = (
            response.get("NextContinuationToken")
            if response.get("IsTruncated")
            else None
        )
        return ListPage(items=items, next_token=next_token)

    async def server_side_copy(
        self,
        src_bucket: str,
        src_key: str,
        dst_bucket: str,
        dst_key: str,
    ) -> None:
        """
        Copies an object inside the store, keeping the source metadata.

        The client must be able to read the source bucket, which is only
        true when both locations are reachable from the same account.
        """
        try:
            await self._client.copy_object(
                CopySource={"Bucket": src_bucket, "Key": src_key},
                Bucket=dst_bucket,
                Key=dst_key,
                MetadataDirective="COPY",
            )
        except (ClientError, BotoCoreError) as e:
            raise _access_error(e, "copy_object", dst_bucket, dst_key) from e

    @asynccontextmanager
    async def open_read_stream(self, bucket: str, key: str) -> AsyncIterator[ByteStream]:
        """
        Opens an object for reading.

        Args:
            bucket (str): The bucket holding the object.
            key (str): The object key.

        Yields:
            ByteStream: The object body. It is released when the block exits.
        """
        try:
            response: "GetObjectOutputTypeDef" = await self._client.get_object(
                Bucket=bucket, Key=key
            )
        except (ClientError, BotoCoreError) as e:
            raise _access_error(e, "get_object", bucket, key) from e

        async with response["Body"] as body:
            yield body

    async def upload_from_stream(
        self,
        bucket: str,
        key: str,
        stream: ByteStream,
        size: int,
    ) -> None:
        """
        Writes an object whose bytes come from `stream`.

        Objects up to the multipart threshold go out as a single `PutObject`
        with an explicit Content-Length; larger objects are sent part by
        part so only one part is held in memory at a time.

        Args:
            bucket (str): The destination bucket.
            key (str): The destination key.
            stream (ByteStream): Where the object's bytes come from.
            size (int): The expected object size in bytes.
        """
        try:
            if size <= self._multipart_threshold:
                body: bytes = await _read_exactly(stream, size)
                if len(body) != size:
                    raise StoreAccessError(
                        f"Short read for '{bucket}/{key}': expected {size} bytes, "
                        f"got {len(body)}",
                        operation="put_object",
                        bucket=bucket,
                        key=key,
                    )
                # The object changed since it was listed.
                await _ensure_drained(stream, bucket, key, size, "put_object")
                await self._client.put_object(
                    Bucket=bucket, Key=key, Body=body, ContentLength=size
                )
            else:
                await self._multipart_upload(bucket, key, stream, size)
        except (ClientError, BotoCoreError) as e:
            raise _access_error(e, "upload", bucket, key) from e

    def _part_size(self, size: int) -> int:
        """Picks a part size that keeps the upload within the part limit."""
        part_size: int = self._multipart_threshold
        while part_size * MAX_UPLOAD_PARTS < size:
            part_size *= 2
        return part_size

    async def _multipart_upload(
        self,
        bucket: str,
        key: str,
        stream: ByteStream,
        size: int,
    ) -> None:
        """
        Streams an object into a multipart upload, aborting it on any failure.

        Args:
            bucket (str): The destination bucket.
            key (str): The destination key.
            stream (ByteStream): Where the object's bytes come from.
            size (int): The expected object size in bytes.
        """
        created = await self._client.create_multipart_upload(Bucket=bucket, Key=key)
        upload_id: str = created["UploadId"]
        part_size: int = self._part_size(size)
        parts: List["CompletedPartTypeDef"] = []
        sent: int = 0
        try:
            part_number: int = 1
            while sent < size:
                chunk: bytes = await _read_exactly(stream, min(part_size, size - sent))
                if not chunk:
                    raise StoreAccessError(
                        f"Short read for '{bucket}/{key}': stream ended after "
                        f"{sent} of {size} bytes",
                        operation="upload_part",
                        bucket=bucket,
                        key=key,
                    )
                response = await self._client.upload_part(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    Body=chunk,
                    ContentLength=len(chunk),
                )
                parts.append({"ETag": response["ETag"], "PartNumber": part_number})
                logger.debug(
                    f"Uploaded part {part_number} of '{bucket}/{key}' "
                    f"({sent + len(chunk)}/{size} bytes)"
                )
                sent += len(chunk)
                part_number += 1

            await _ensure_drained(stream, bucket, key, size, "upload_part")
            await self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except BaseException:
            try:
                await self._client.abort_multipart_upload(
                    Bucket=bucket, Key=key, UploadId=upload_id
                )
            except (ClientError, BotoCoreError) as e:
                logger.warning(
                    f"Could not abort multipart upload for '{bucket}/{key}': {e}"
                )
            raise


@asynccontextmanager
async def open_s3_store(
    session: AioSession,
    s3_config: S3Config,
    boto_config: BotoConfig,
    multipart_threshold: int = 8 * MIB,
) -> AsyncIterator[S3ObjectStore]:
    """
    Creates an S3 client for one location and wraps it in an `S3ObjectStore`.

    Args:
        session (AioSession): The aiobotocore session.
        s3_config (S3Config): Endpoint and credentials of the location.
        boto_config (BotoConfig): Shared botocore client settings.
        multipart_threshold (int): See `S3ObjectStore`.

    Yields:
        S3ObjectStore: The store, valid until the block exits.
    """
    async with session.create_client(
        "s3", **s3_config.as_boto_dict(), config=boto_config
    ) as client:
        yield S3ObjectStore(client, multipart_threshold=multipart_threshold)
