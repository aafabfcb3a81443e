"""Main ObjectStore class."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from contextlib import ExitStack, contextmanager
from typing import Any

from botocore.client import BaseClient

from .body import DEFAULT_READ_CHUNK_SIZE, ObjectBody
from .bridge import AsyncChunkSource, ChunkSourceReader
from .exceptions import (
    DEFAULT_NAMESPACE,
    ErrorKind,
    ErrorTranslator,
    ObjectNotFoundError,
    S3AdaptorError,
)
from .multipart import MAX_PART_NUMBER, MultipartState, MultipartUpload
from .options import (
    COPY_OBJECT_FIELDS,
    CREATE_BUCKET_FIELDS,
    CREATE_MULTIPART_FIELDS,
    DELETE_OBJECT_FIELDS,
    GET_OBJECT_FIELDS,
    HEAD_OBJECT_FIELDS,
    LIST_OBJECTS_FIELDS,
    PRESIGN_GET_FIELDS,
    PRESIGN_PUT_FIELDS,
    PUT_OBJECT_FIELDS,
    UPLOAD_PART_FIELDS,
    FieldSpec,
    bind_options,
)
from .settings import MIN_PART_SIZE, S3Settings
from .types import (
    Body,
    BucketInfo,
    CompletedPart,
    ListObjectsPage,
    ObjectEntry,
    ObjectMetadata,
    PartList,
)

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_PART_SIZE = 8 * 1024 * 1024
DEFAULT_PRESIGN_MINUTES = 15

_PRESIGN_METHODS: dict[str, tuple[str, tuple[FieldSpec, ...]]] = {
    "GET": ("get_object", PRESIGN_GET_FIELDS),
    "PUT": ("put_object", PRESIGN_PUT_FIELDS),
}


class ObjectStore:
    """Adaptor over an S3-compatible object storage service.

    Every operation is a direct request against the service.  Service faults
    are raised as :class:`~s3adaptor.exceptions.S3AdaptorError` subclasses
    chosen by error kind; nothing is retried here.
    """

    def __init__(
        self,
        s3_client_or_settings: BaseClient | S3Settings | Any,
        *,
        region: str | None = None,
        error_namespace: str | None = None,
        wait_for_bucket: bool | None = None,
        read_chunk_size: int | None = None,
        multipart_part_size: int | None = None,
    ) -> None:
        """Initialize the object store.

        Parameters
        ----------
        s3_client_or_settings : BaseClient | S3Settings
            Boto3 S3 client or :class:`S3Settings` (which creates one).
        region : str | None
            Region used for bucket creation.  Taken from the settings or the
            client when None.
        error_namespace : str | None
            Namespace attached to raised errors.
        wait_for_bucket : bool | None
            Wait for new buckets to become visible in :meth:`create_bucket`.
        read_chunk_size : int | None
            Default read size of returned :class:`ObjectBody` handles.
        multipart_part_size : int | None
            Part size for :meth:`put_object_multipart`.
        """
        settings: S3Settings | None = None
        if isinstance(s3_client_or_settings, S3Settings):
            settings = s3_client_or_settings
            s3_client = settings.create_client()
        else:
            s3_client = s3_client_or_settings

        self.s3_client = s3_client
        self.region = region or (settings.region if settings else _client_region(s3_client))
        self.errors = ErrorTranslator(
            error_namespace or (settings.error_namespace if settings else DEFAULT_NAMESPACE)
        )
        self.wait_for_bucket: bool = _first(
            wait_for_bucket, settings.wait_for_bucket if settings else None, True
        )
        self.read_chunk_size: int = _first(
            read_chunk_size, settings.read_chunk_size if settings else None, DEFAULT_READ_CHUNK_SIZE
        )
        self.multipart_part_size: int = _first(
            multipart_part_size, settings.multipart_part_size if settings else None, DEFAULT_PART_SIZE
        )

    # ------------------------------------------------------------------ #
    #  Request plumbing                                                   #
    # ------------------------------------------------------------------ #

    def _call(self, operation: str, **params: Any) -> Any:
        """Issue one client call, translating any fault."""
        logger.debug("S3 %s bucket=%s key=%s", operation, params.get("Bucket"), params.get("Key"))
        try:
            return getattr(self.s3_client, operation)(**params)
        except Exception as e:
            raise self.errors.translate(e) from e

    def _bind(
        self,
        params: dict[str, Any],
        options: Mapping[str, Any] | None,
        fields: Sequence[FieldSpec],
    ) -> dict[str, Any]:
        try:
            return bind_options(params, options, fields)
        except S3AdaptorError as e:
            raise self.errors.translate(e) from None

    def _require(self, **names: str | None) -> None:
        for label, value in names.items():
            if not isinstance(value, str) or not value:
                raise self.errors.validation(f"{label} must be a non-empty string")

    def _reader_for(self, body: Any) -> ChunkSourceReader:
        if isinstance(body, ChunkSourceReader):
            return body
        if hasattr(body, "__aiter__"):
            return ChunkSourceReader(AsyncChunkSource(body), self.errors)
        if hasattr(body, "__iter__"):
            return ChunkSourceReader(body, self.errors)
        raise self.errors.validation(f"Unsupported body type: {type(body).__name__}")

    def _open_file(self, path: str | os.PathLike[str]) -> Any:
        try:
            return open(path, "rb")
        except OSError as e:
            raise self.errors.validation(f"Cannot open file {os.fspath(path)!r}: {e}") from e

    @contextmanager
    def _open_body(self, body: Body) -> Iterator[Any]:
        """Yield a request body with a known length.

        Chunk sources are drained into memory and released before the
        request is sent.
        """
        if isinstance(body, (bytes, bytearray, memoryview)):
            yield bytes(body)
            return
        if isinstance(body, (str, os.PathLike)):
            with self._open_file(body) as fh:
                yield fh
            return
        if hasattr(body, "read") and not isinstance(body, ChunkSourceReader):
            yield body
            return

        reader = self._reader_for(body)
        try:
            data = reader.read_all()
        except BaseException:
            _close_quietly(reader)
            raise
        reader.close()
        yield data

    # ------------------------------------------------------------------ #
    #  Bucket APIs                                                        #
    # ------------------------------------------------------------------ #

    def create_bucket(self, bucket: str, options: Mapping[str, Any] | None = None) -> None:
        """Create a bucket.

        Parameters
        ----------
        bucket : str
            Bucket name.
        options : CreateBucketOptions | None
            ``acl``, ``object_ownership``, ``object_lock_enabled``.

        Raises
        ------
        BucketAlreadyExistsError
            If the name is owned by another account.
        BucketAlreadyOwnedByYouError
            If the caller already owns the bucket.
        """
        self._require(bucket=bucket)
        params: dict[str, Any] = {"Bucket": bucket}
        if self.region and self.region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        self._bind(params, options, CREATE_BUCKET_FIELDS)

        self._call("create_bucket", **params)
        if self.wait_for_bucket:
            try:
                self.s3_client.get_waiter("bucket_exists").wait(Bucket=bucket)
            except Exception as e:
                raise self.errors.translate(e) from e
        logger.info("Created bucket %s", bucket)

    def delete_bucket(self, bucket: str) -> None:
        """Delete an empty bucket.

        Raises
        ------
        BucketNotEmptyError
            If the bucket still holds objects.
        BucketNotFoundError
            If the bucket does not exist.
        """
        self._require(bucket=bucket)
        self._call("delete_bucket", Bucket=bucket)
        logger.info("Deleted bucket %s", bucket)

    def list_buckets(self) -> list[BucketInfo]:
        """List buckets with their regions.

        A region that cannot be looked up (e.g. missing permissions) is
        reported as an empty string.
        """
        response = self._call("list_buckets")
        return [
            BucketInfo(
                name=entry["Name"],
                creation_date=entry.get("CreationDate"),
                region=self._lookup_region(entry["Name"]),
            )
            for entry in response.get("Buckets", [])
        ]

    def _lookup_region(self, bucket: str) -> str:
        try:
            return self.get_bucket_location(bucket)
        except S3AdaptorError as e:
            logger.warning("Could not look up region of bucket %s: %s", bucket, e)
            return ""

    def get_bucket_location(self, bucket: str) -> str:
        """Return the bucket's region; buckets without a constraint live in us-east-1."""
        self._require(bucket=bucket)
        response = self._call("get_bucket_location", Bucket=bucket)
        return response.get("LocationConstraint") or DEFAULT_REGION

    # ------------------------------------------------------------------ #
    #  Object APIs                                                        #
    # ------------------------------------------------------------------ #

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Upload an object in a single request.

        Parameters
        ----------
        bucket : str
            Target bucket.
        key : str
            Target key.
        body : Body
            Bytes, a file path, a binary file object, or a chunk source
            (iterable or async iterable of bytes).  Chunk sources are
            buffered in memory first; prefer :meth:`put_object_multipart`
            for large streams.
        options : PutObjectOptions | None
            Optional request fields.
        """
        self._require(bucket=bucket, key=key)
        params = self._bind({"Bucket": bucket, "Key": key}, options, PUT_OBJECT_FIELDS)
        with self._open_body(body) as payload:
            self._call("put_object", Body=payload, **params)

    def get_object(
        self,
        bucket: str,
        key: str,
        options: Mapping[str, Any] | None = None,
    ) -> ObjectBody:
        """Open an object for reading.

        The returned handle holds a live connection until it is fully read
        or closed.

        Raises
        ------
        ObjectNotFoundError
            If the key does not exist.
        """
        self._require(bucket=bucket, key=key)
        params = self._bind({"Bucket": bucket, "Key": key}, options, GET_OBJECT_FIELDS)
        response = self._call("get_object", **params)
        return ObjectBody(
            response["Body"],
            key=key,
            content_length=response.get("ContentLength"),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            metadata=response.get("Metadata"),
            chunk_size=self.read_chunk_size,
            errors=self.errors,
        )

    def delete_object(
        self,
        bucket: str,
        key: str,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Delete an object.  Deleting a missing key succeeds."""
        self._require(bucket=bucket, key=key)
        params = self._bind({"Bucket": bucket, "Key": key}, options, DELETE_OBJECT_FIELDS)
        try:
            self._call("delete_object", **params)
        except ObjectNotFoundError:
            logger.debug("Object %s/%s already absent", bucket, key)

    def list_objects(self, bucket: str, options: Mapping[str, Any] | None = None) -> ListObjectsPage:
        """Fetch one page of keys.

        Pass ``next_continuation_token`` back as ``continuation_token`` to
        get the following page.
        """
        self._require(bucket=bucket)
        params = self._bind({"Bucket": bucket}, options, LIST_OBJECTS_FIELDS)
        response = self._call("list_objects_v2", **params)

        objects = [
            ObjectEntry(
                key=obj["Key"],
                size=int(obj.get("Size", 0)),
                last_modified=obj.get("LastModified"),
                etag=obj.get("ETag"),
                storage_class=obj.get("StorageClass"),
            )
            for obj in response.get("Contents", [])
        ]
        return ListObjectsPage(
            objects=objects,
            is_truncated=bool(response.get("IsTruncated", False)),
            next_continuation_token=response.get("NextContinuationToken"),
            common_prefixes=[p["Prefix"] for p in response.get("CommonPrefixes", [])],
        )

    def head_object(
        self,
        bucket: str,
        key: str,
        options: Mapping[str, Any] | None = None,
    ) -> ObjectMetadata:
        """Get object metadata without downloading body."""
        self._require(bucket=bucket, key=key)
        params = self._bind({"Bucket": bucket, "Key": key}, options, HEAD_OBJECT_FIELDS)
        response = self._call("head_object", **params)

        size = response.get("ContentLength")
        return ObjectMetadata(
            key=key,
            content_length=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
            storage_class=response.get("StorageClass") or "STANDARD",
            version_id=response.get("VersionId"),
            user_metadata=dict(response.get("Metadata") or {}),
        )

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Server-side copy of an object."""
        self._require(
            source_bucket=source_bucket,
            source_key=source_key,
            dest_bucket=dest_bucket,
            dest_key=dest_key,
        )
        params: dict[str, Any] = {
            "CopySource": {"Bucket": source_bucket, "Key": source_key},
            "Bucket": dest_bucket,
            "Key": dest_key,
        }
        self._bind(params, options, COPY_OBJECT_FIELDS)
        self._call("copy_object", **params)

    def object_exists(self, bucket: str, key: str) -> bool:
        """Check if an object exists.

        Returns
        -------
        bool
            False only when the service reports the key as missing.

        Raises
        ------
        S3AdaptorError
            For any other fault, e.g. access denied.
        """
        self._require(bucket=bucket, key=key)
        try:
            self._call("head_object", Bucket=bucket, Key=key)
        except ObjectNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------ #
    #  Multipart APIs                                                     #
    # ------------------------------------------------------------------ #

    def initiate_multipart(
        self,
        bucket: str,
        key: str,
        options: Mapping[str, Any] | None = None,
    ) -> MultipartUpload:
        """Start a multipart upload session.

        Returns
        -------
        MultipartUpload
            Session handle; its ``upload_id`` can also be used with the
            flat :meth:`upload_part` / :meth:`complete_multipart` calls.
        """
        self._require(bucket=bucket, key=key)
        params = self._bind({"Bucket": bucket, "Key": key}, options, CREATE_MULTIPART_FIELDS)
        response = self._call("create_multipart_upload", **params)

        upload_id = response.get("UploadId")
        if not upload_id:
            raise self.errors.error(ErrorKind.GENERIC, "S3 response missing UploadId")
        logger.debug("Initiated multipart upload %s for %s/%s", upload_id, bucket, key)
        return MultipartUpload(self, bucket, key, str(upload_id), options)

    def _check_part_number(self, part_number: Any) -> int:
        if (
            not isinstance(part_number, int)
            or isinstance(part_number, bool)
            or not 1 <= part_number <= MAX_PART_NUMBER
        ):
            raise self.errors.validation(
                f"part_number must be an integer in 1..{MAX_PART_NUMBER}, got {part_number!r}"
            )
        return part_number

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: Body,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Upload one part of a multipart upload.

        Parts are independent: they may be sent in any order, concurrently,
        and retried individually.

        Returns
        -------
        str
            The part's ETag, needed verbatim for completion.
        """
        self._require(bucket=bucket, key=key, upload_id=upload_id)
        self._check_part_number(part_number)
        params = self._bind(
            {"Bucket": bucket, "Key": key, "UploadId": upload_id, "PartNumber": part_number},
            options,
            UPLOAD_PART_FIELDS,
        )
        with self._open_body(body) as payload:
            response = self._call("upload_part", Body=payload, **params)

        etag = response.get("ETag")
        if not etag:
            raise self.errors.error(ErrorKind.GENERIC, "S3 response missing ETag")
        return str(etag)

    def _normalize_parts(self, parts: PartList) -> list[dict[str, Any]]:
        payload: list[dict[str, Any]] = []
        for part in parts:
            if isinstance(part, CompletedPart):
                number, etag = part.part_number, part.etag
            else:
                try:
                    number, etag = part
                except (TypeError, ValueError):
                    raise self.errors.validation(f"Invalid part entry: {part!r}") from None
            self._check_part_number(number)
            if not isinstance(etag, str) or not etag:
                raise self.errors.validation(f"Part {number} has no ETag")
            payload.append({"ETag": etag, "PartNumber": number})
        return payload

    def complete_multipart(self, bucket: str, key: str, upload_id: str, parts: PartList) -> None:
        """Assemble uploaded parts into the final object.

        Parameters
        ----------
        parts : PartList
            ``CompletedPart`` or ``(part_number, etag)`` entries, sent in the
            given order.

        Raises
        ------
        ValidationError
            If ``parts`` is empty or malformed.
        S3AdaptorError
            If the service rejects a missing or mismatched part.  The upload
            cannot be completed afterwards and should be aborted.
        """
        self._require(bucket=bucket, key=key, upload_id=upload_id)
        payload = self._normalize_parts(parts)
        if not payload:
            raise self.errors.validation("Cannot complete a multipart upload without parts")

        self._call(
            "complete_multipart_upload",
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": payload},
        )
        logger.info("Completed multipart upload %s (%d parts) for %s/%s", upload_id, len(payload), bucket, key)

    def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort a multipart upload.  Aborting an unknown upload succeeds."""
        self._require(bucket=bucket, key=key, upload_id=upload_id)
        try:
            self._call("abort_multipart_upload", Bucket=bucket, Key=key, UploadId=upload_id)
        except S3AdaptorError as e:
            if e.code != "NoSuchUpload":
                raise
            logger.debug("Multipart upload %s already gone", upload_id)
            return
        logger.info("Aborted multipart upload %s for %s/%s", upload_id, bucket, key)

    def put_object_multipart(
        self,
        bucket: str,
        key: str,
        body: Body,
        *,
        part_size: int | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Stream ``body`` into an object through a multipart upload.

        At most one part plus one source chunk is held in memory.  Any
        failure aborts the session before the error is re-raised.

        Parameters
        ----------
        part_size : int | None
            Bytes per part, at least 5 MiB.  Defaults to ``multipart_part_size``.
        options : MultipartOptions | None
            Options for the initiated session.
        """
        if part_size is None:
            part_size = self.multipart_part_size

        with ExitStack() as stack:
            reader = stack.enter_context(self._part_reader(body, part_size, stack))
            if (
                not isinstance(part_size, int)
                or isinstance(part_size, bool)
                or part_size < MIN_PART_SIZE
            ):
                raise self.errors.validation(f"part_size must be at least {MIN_PART_SIZE} bytes, got {part_size!r}")
            upload = self.initiate_multipart(bucket, key, options)
            try:
                part_number = 1
                while True:
                    data = reader.read(part_size)
                    if not data:
                        break
                    upload.upload_part(part_number, data)
                    part_number += 1
                upload.complete(allow_empty=True)
            except BaseException:
                if upload.state is not MultipartState.COMPLETED:
                    try:
                        upload.abort()
                    except Exception:
                        logger.warning("Failed to abort multipart upload %s", upload.upload_id, exc_info=True)
                raise

    def _part_reader(self, body: Body, part_size: int, stack: ExitStack) -> ChunkSourceReader:
        if isinstance(body, (bytes, bytearray, memoryview)):
            return ChunkSourceReader([bytes(body)], self.errors)
        if isinstance(body, (str, os.PathLike)):
            body = stack.enter_context(self._open_file(body))
        if hasattr(body, "read") and not isinstance(body, ChunkSourceReader):
            return ChunkSourceReader(iter(lambda: body.read(part_size), b""), self.errors)
        return self._reader_for(body)

    # ------------------------------------------------------------------ #
    #  Presigned URLs                                                     #
    # ------------------------------------------------------------------ #

    def presign(
        self,
        bucket: str,
        key: str,
        method: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Generate a presigned URL for a GET or PUT of a single object.

        Parameters
        ----------
        method : str | None
            ``"GET"`` or ``"PUT"`` (case-insensitive).  Falls back to
            ``options["http_method"]``, then to GET.
        options : PresignOptions | None
            ``expiration_minutes`` (default 15) and request fields.

        Raises
        ------
        ValidationError
            For an unsupported method or a non-positive expiration.
        """
        self._require(bucket=bucket, key=key)
        opts = dict(options or {})
        http_method = method or opts.get("http_method") or "GET"
        if not isinstance(http_method, str) or http_method.upper() not in _PRESIGN_METHODS:
            raise self.errors.validation(
                f"Unsupported HTTP method: {http_method}. Supported methods: GET, PUT"
            )
        client_method, fields = _PRESIGN_METHODS[http_method.upper()]

        minutes = opts.get("expiration_minutes", DEFAULT_PRESIGN_MINUTES)
        if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes <= 0:
            raise self.errors.validation(f"expiration_minutes must be a positive integer, got {minutes!r}")

        params = self._bind({"Bucket": bucket, "Key": key}, opts, fields)
        url = self._call(
            "generate_presigned_url",
            ClientMethod=client_method,
            Params=params,
            ExpiresIn=minutes * 60,
        )
        if not url:
            raise self.errors.error(ErrorKind.GENERIC, "Generated presigned URL is empty")
        return str(url)

    def __repr__(self) -> str:
        return f"ObjectStore(region={self.region!r}, namespace={self.errors.namespace!r})"


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _client_region(client: Any) -> str | None:
    region = getattr(getattr(client, "meta", None), "region_name", None)
    return region if isinstance(region, str) else None


def _close_quietly(reader: ChunkSourceReader) -> None:
    try:
        reader.close()
    except Exception:
        logger.warning("Failed to close chunk source", exc_info=True)
