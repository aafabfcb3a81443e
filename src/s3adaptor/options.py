"""Declarative binding of sparse caller options onto boto3 request parameters.

Each request type has a table of :class:`FieldSpec` entries.  An option is
copied only when it is present and of the expected type; everything else is
left to the service defaults.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .exceptions import ValidationError

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    STRING = "string"
    INT = "int"
    BOOL = "bool"
    METADATA = "metadata"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class FieldSpec:
    """Maps caller option ``name`` to boto3 parameter ``param``."""

    name: str
    param: str
    kind: FieldKind = FieldKind.STRING


def _s(name: str, param: str) -> FieldSpec:
    return FieldSpec(name, param, FieldKind.STRING)


def _i(name: str, param: str) -> FieldSpec:
    return FieldSpec(name, param, FieldKind.INT)


def _b(name: str, param: str) -> FieldSpec:
    return FieldSpec(name, param, FieldKind.BOOL)


def _m(name: str, param: str) -> FieldSpec:
    return FieldSpec(name, param, FieldKind.METADATA)


def _t(name: str, param: str) -> FieldSpec:
    return FieldSpec(name, param, FieldKind.TIMESTAMP)


CREATE_BUCKET_FIELDS: tuple[FieldSpec, ...] = (
    _s("acl", "ACL"),
    _s("object_ownership", "ObjectOwnership"),
    _b("object_lock_enabled", "ObjectLockEnabledForBucket"),
)

PUT_OBJECT_FIELDS: tuple[FieldSpec, ...] = (
    _s("content_type", "ContentType"),
    _s("acl", "ACL"),
    _s("storage_class", "StorageClass"),
    _s("cache_control", "CacheControl"),
    _s("content_disposition", "ContentDisposition"),
    _s("content_encoding", "ContentEncoding"),
    _s("content_language", "ContentLanguage"),
    _s("tagging", "Tagging"),
    _s("server_side_encryption", "ServerSideEncryption"),
    _m("metadata", "Metadata"),
)

CREATE_MULTIPART_FIELDS: tuple[FieldSpec, ...] = (
    _s("content_type", "ContentType"),
    _s("acl", "ACL"),
    _s("storage_class", "StorageClass"),
    _s("tagging", "Tagging"),
    _s("server_side_encryption", "ServerSideEncryption"),
    _m("metadata", "Metadata"),
)

UPLOAD_PART_FIELDS: tuple[FieldSpec, ...] = (
    _s("content_md5", "ContentMD5"),
    _i("content_length", "ContentLength"),
)

GET_OBJECT_FIELDS: tuple[FieldSpec, ...] = (
    _s("version_id", "VersionId"),
    _s("range", "Range"),
    _s("if_match", "IfMatch"),
    _s("if_none_match", "IfNoneMatch"),
    _t("if_modified_since", "IfModifiedSince"),
    _t("if_unmodified_since", "IfUnmodifiedSince"),
    _i("part_number", "PartNumber"),
)

DELETE_OBJECT_FIELDS: tuple[FieldSpec, ...] = (
    _s("version_id", "VersionId"),
    _s("mfa", "MFA"),
    _b("bypass_governance_retention", "BypassGovernanceRetention"),
)

LIST_OBJECTS_FIELDS: tuple[FieldSpec, ...] = (
    _s("prefix", "Prefix"),
    _s("delimiter", "Delimiter"),
    _i("max_keys", "MaxKeys"),
    _s("continuation_token", "ContinuationToken"),
    _s("start_after", "StartAfter"),
    _b("fetch_owner", "FetchOwner"),
)

HEAD_OBJECT_FIELDS: tuple[FieldSpec, ...] = (
    _s("version_id", "VersionId"),
    _i("part_number", "PartNumber"),
)

COPY_OBJECT_FIELDS: tuple[FieldSpec, ...] = (
    _s("acl", "ACL"),
    _s("storage_class", "StorageClass"),
    _s("metadata_directive", "MetadataDirective"),
    _s("content_type", "ContentType"),
    _m("metadata", "Metadata"),
)

PRESIGN_GET_FIELDS: tuple[FieldSpec, ...] = (
    _s("version_id", "VersionId"),
    _s("response_content_type", "ResponseContentType"),
    _s("content_disposition", "ResponseContentDisposition"),
)

PRESIGN_PUT_FIELDS: tuple[FieldSpec, ...] = (
    _s("content_type", "ContentType"),
    _s("content_disposition", "ContentDisposition"),
)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``.

    Raises
    ------
    ValidationError
        If the string is not a valid timestamp.
    """
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {value!r}") from e


def _coerce(spec: FieldSpec, value: Any) -> Any:
    """Return the boto3 value for ``value`` or ``None`` when it must be skipped."""
    if spec.kind is FieldKind.STRING:
        if isinstance(value, str) and value:
            return value
        return None
    if spec.kind is FieldKind.INT:
        # bool is an int subclass; never accept it here
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None
    if spec.kind is FieldKind.BOOL:
        return value if isinstance(value, bool) else None
    if spec.kind is FieldKind.METADATA:
        if not isinstance(value, Mapping):
            return None
        metadata = {str(k): v for k, v in value.items() if isinstance(v, str)}
        return metadata or None
    if spec.kind is FieldKind.TIMESTAMP:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and value:
            return parse_timestamp(value)
        return None
    raise ValueError(f"Unknown field kind: {spec.kind}")  # pragma: no cover


def bind_options(
    params: dict[str, Any],
    options: Mapping[str, Any] | None,
    fields: Sequence[FieldSpec],
) -> dict[str, Any]:
    """Copy present, well-typed options onto ``params``.

    Parameters
    ----------
    params : dict[str, Any]
        boto3 keyword arguments, updated in place.
    options : Mapping[str, Any] | None
        Sparse caller options keyed by snake_case field name.
    fields : Sequence[FieldSpec]
        The field table for the request type.

    Returns
    -------
    dict[str, Any]
        ``params``, for chaining.
    """
    if not options:
        return params
    for spec in fields:
        if spec.name not in options:
            continue
        raw = options[spec.name]
        if raw is None:
            continue
        value = _coerce(spec, raw)
        if value is None:
            if raw != "" and raw != {}:
                logger.warning(
                    "Ignoring option %r: expected %s, got %s",
                    spec.name,
                    spec.kind.value,
                    type(raw).__name__,
                )
            continue
        params[spec.param] = value
    return params
