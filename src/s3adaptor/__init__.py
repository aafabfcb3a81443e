"""s3adaptor - Object storage client adaptor with streamed and multipart transfers."""

from __future__ import annotations

import logging

from .body import ObjectBody
from .bridge import AsyncChunkSource, BridgeState, ChunkSourceReader
from .exceptions import (
    BucketAlreadyExistsError,
    BucketAlreadyOwnedByYouError,
    BucketNotEmptyError,
    BucketNotFoundError,
    ConnectivityError,
    ErrorKind,
    ErrorTranslator,
    ObjectNotFoundError,
    S3AdaptorError,
    ServiceFault,
    ValidationError,
    classify,
)
from .multipart import MultipartState, MultipartUpload
from .options import FieldKind, FieldSpec, bind_options
from .settings import S3Settings
from .store import ObjectStore
from .types import (
    BucketInfo,
    ChunkSource,
    CompletedPart,
    CopyObjectOptions,
    CreateBucketOptions,
    DeleteObjectOptions,
    GetObjectOptions,
    HeadObjectOptions,
    ListObjectsOptions,
    ListObjectsPage,
    MultipartOptions,
    ObjectEntry,
    ObjectMetadata,
    PresignOptions,
    PutObjectOptions,
    UploadPartOptions,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Main classes
    "ObjectStore",
    "MultipartUpload",
    "ObjectBody",
    "S3Settings",
    # Streaming
    "ChunkSourceReader",
    "AsyncChunkSource",
    "BridgeState",
    "MultipartState",
    # Types
    "BucketInfo",
    "CompletedPart",
    "ListObjectsPage",
    "ObjectEntry",
    "ObjectMetadata",
    "ChunkSource",
    # Options
    "CreateBucketOptions",
    "PutObjectOptions",
    "GetObjectOptions",
    "DeleteObjectOptions",
    "ListObjectsOptions",
    "HeadObjectOptions",
    "CopyObjectOptions",
    "MultipartOptions",
    "UploadPartOptions",
    "PresignOptions",
    "FieldKind",
    "FieldSpec",
    "bind_options",
    # Errors
    "ErrorKind",
    "ServiceFault",
    "classify",
    "ErrorTranslator",
    "S3AdaptorError",
    "ObjectNotFoundError",
    "BucketAlreadyExistsError",
    "BucketAlreadyOwnedByYouError",
    "BucketNotFoundError",
    "BucketNotEmptyError",
    "ValidationError",
    "ConnectivityError",
]
