"""Type definitions for s3adaptor."""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from os import PathLike
from typing import IO, Literal, Protocol, TypedDict, Union


# Request option types (sparse; only present keys are sent)
class CreateBucketOptions(TypedDict, total=False):
    """Options for bucket creation."""

    acl: str
    object_ownership: str
    object_lock_enabled: bool


class PutObjectOptions(TypedDict, total=False):
    """Options for single-shot uploads."""

    content_type: str
    acl: str
    storage_class: str
    cache_control: str
    content_disposition: str
    content_encoding: str
    content_language: str
    tagging: str
    server_side_encryption: str
    metadata: dict[str, str]


class MultipartOptions(TypedDict, total=False):
    """Options for multipart initiation."""

    content_type: str
    acl: str
    storage_class: str
    tagging: str
    server_side_encryption: str
    metadata: dict[str, str]


class UploadPartOptions(TypedDict, total=False):
    """Options for a single part upload."""

    content_md5: str
    content_length: int


class GetObjectOptions(TypedDict, total=False):
    """Options for object downloads."""

    version_id: str
    range: str
    if_match: str
    if_none_match: str
    if_modified_since: str | datetime  # ISO-8601 string or datetime
    if_unmodified_since: str | datetime
    part_number: int


class DeleteObjectOptions(TypedDict, total=False):
    """Options for object deletion."""

    version_id: str
    mfa: str
    bypass_governance_retention: bool


class ListObjectsOptions(TypedDict, total=False):
    """Options for a single ListObjectsV2 page."""

    prefix: str
    delimiter: str
    max_keys: int
    continuation_token: str
    start_after: str
    fetch_owner: bool


class HeadObjectOptions(TypedDict, total=False):
    """Options for metadata lookups."""

    version_id: str
    part_number: int


class CopyObjectOptions(TypedDict, total=False):
    """Options for server-side copies."""

    acl: str
    storage_class: str
    metadata_directive: str  # "COPY" or "REPLACE"
    content_type: str
    metadata: dict[str, str]


class PresignOptions(TypedDict, total=False):
    """Options for presigned URL generation."""

    expiration_minutes: int  # default: 15
    http_method: Literal["GET", "PUT"]  # default: "GET"
    version_id: str
    response_content_type: str
    content_type: str
    content_disposition: str


# Body types
class ChunkSource(Protocol):
    """Pull-driven chunk producer; ``close`` is optional and not part of the protocol."""

    def __iter__(self) -> Iterator[bytes]: ...


BytesLike = Union[bytes, bytearray, memoryview]

# In-memory bytes, a file path, a binary file object, or a chunk source
Body = Union[BytesLike, str, "PathLike[str]", IO[bytes], ChunkSource, AsyncIterable[bytes]]


# Results
@dataclass(frozen=True)
class BucketInfo:
    """A bucket returned by :meth:`ObjectStore.list_buckets`."""

    name: str
    creation_date: datetime | None
    region: str


@dataclass(frozen=True)
class ObjectEntry:
    """A single key in a listing page."""

    key: str
    size: int
    last_modified: datetime | None
    etag: str | None
    storage_class: str | None


@dataclass(frozen=True)
class ListObjectsPage:
    """One page of a ListObjectsV2 query."""

    objects: list[ObjectEntry]
    is_truncated: bool
    next_continuation_token: str | None = None
    common_prefixes: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.objects)


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata from a HEAD object request."""

    key: str
    content_length: int
    etag: str | None
    last_modified: datetime | None
    content_type: str | None = None
    storage_class: str = "STANDARD"
    version_id: str | None = None
    user_metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


PartList = Iterable[Union[CompletedPart, "tuple[int, str]"]]


class StreamingBodyLike(Protocol):
    """Protocol for file-like objects compatible with StreamingBody."""

    def read(self, amt: int | None = None) -> bytes: ...
    def close(self) -> None: ...

