"""Multipart upload sessions.

A :class:`MultipartUpload` is created by :meth:`ObjectStore.initiate_multipart`
and walks through ``INITIATED -> UPLOADING -> COMPLETED`` or ``ABORTED``.
Parts may be uploaded in any order and from several threads; completion is
the single point where the object becomes visible.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import ValidationError
from .types import Body, CompletedPart, PartList

if TYPE_CHECKING:
    from .store import ObjectStore

logger = logging.getLogger(__name__)

MAX_PART_NUMBER = 10_000


class MultipartState(Enum):
    INITIATED = "initiated"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"
    # completion was rejected; only abort is allowed
    FAILED = "failed"


class MultipartUpload:
    """Client-side view of a service multipart upload session.

    Parameters
    ----------
    store : ObjectStore
        Store that issued the session.
    bucket : str
        Target bucket.
    key : str
        Target key.
    upload_id : str
        Opaque id assigned by the service.
    options : Mapping[str, Any] | None
        Options the session was initiated with.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        key: str,
        upload_id: str,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        self._store = store
        self.bucket = bucket
        self.key = key
        self.upload_id = upload_id
        self.options: dict[str, Any] = dict(options or {})
        self._parts: dict[int, str] = {}
        self._state = MultipartState.INITIATED
        self._lock = threading.Lock()

    @property
    def state(self) -> MultipartState:
        return self._state

    @property
    def parts(self) -> list[CompletedPart]:
        """Recorded parts, sorted by part number."""
        with self._lock:
            return self._sorted_parts()

    def _sorted_parts(self) -> list[CompletedPart]:
        return [CompletedPart(n, etag) for n, etag in sorted(self._parts.items())]

    def _require_open(self, action: str) -> None:
        if self._state in (MultipartState.INITIATED, MultipartState.UPLOADING):
            return
        raise self._store.errors.validation(
            f"Cannot {action} multipart upload {self.upload_id}: session is {self._state.value}"
        )

    def upload_part(
        self,
        part_number: int,
        body: Body,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Upload one part and record its ETag.

        Uploading the same part number again replaces the earlier attempt.

        Parameters
        ----------
        part_number : int
            Part number in ``1..10000``.
        body : Body
            Part content.
        options : Mapping[str, Any] | None
            ``content_md5`` / ``content_length``.

        Returns
        -------
        str
            ETag of the uploaded part.
        """
        with self._lock:
            self._require_open("upload a part to")
        etag = self._store.upload_part(
            self.bucket, self.key, self.upload_id, part_number, body, options
        )
        with self._lock:
            # the session may have been completed or aborted meanwhile
            self._require_open("record a part for")
            self._parts[part_number] = etag
            if self._state is MultipartState.INITIATED:
                self._state = MultipartState.UPLOADING
        return etag

    def complete(self, parts: PartList | None = None, *, allow_empty: bool = False) -> None:
        """Assemble the uploaded parts into the final object.

        Parameters
        ----------
        parts : PartList | None
            Authoritative ``(part_number, etag)`` list in assembly order.
            Defaults to the recorded parts sorted by part number.
        allow_empty : bool
            Permit completion with zero parts, producing an empty object.

        Raises
        ------
        ValidationError
            If the session is not open, or has no parts and ``allow_empty``
            is False.
        S3AdaptorError
            If the service rejects the completion; the session then only
            accepts :meth:`abort`.  A malformed ``parts`` list is rejected
            before any request and leaves the session open.
        """
        with self._lock:
            self._require_open("complete")
            completed = self._sorted_parts() if parts is None else list(parts)

            if not completed:
                if not allow_empty:
                    raise self._store.errors.validation(
                        f"Multipart upload {self.upload_id} has no parts to complete"
                    )
                self._complete_empty()
                return

            try:
                self._store.complete_multipart(self.bucket, self.key, self.upload_id, completed)
            except ValidationError:
                raise
            except Exception:
                self._state = MultipartState.FAILED
                raise
            self._state = MultipartState.COMPLETED

    def _complete_empty(self) -> None:
        self._store.put_object(self.bucket, self.key, b"", self.options)
        self._store.abort_multipart(self.bucket, self.key, self.upload_id)
        self._state = MultipartState.COMPLETED
        logger.info("Completed multipart upload %s as empty object %s/%s", self.upload_id, self.bucket, self.key)

    def abort(self) -> None:
        """Discard the session and any uploaded parts.  Idempotent."""
        with self._lock:
            if self._state is MultipartState.ABORTED:
                return
            if self._state is MultipartState.COMPLETED:
                raise self._store.errors.validation(
                    f"Cannot abort multipart upload {self.upload_id}: session is completed"
                )
            self._store.abort_multipart(self.bucket, self.key, self.upload_id)
            self._state = MultipartState.ABORTED

    def __enter__(self) -> MultipartUpload:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        """Abort on error or when left uncompleted."""
        if self._state in (MultipartState.COMPLETED, MultipartState.ABORTED):
            return
        try:
            self.abort()
        except Exception:
            if exc is None:
                raise
            logger.warning("Failed to abort multipart upload %s", self.upload_id, exc_info=True)

    def __repr__(self) -> str:
        return (
            f"MultipartUpload(bucket={self.bucket!r}, key={self.key!r}, "
            f"upload_id={self.upload_id!r}, state={self._state.value}, parts={len(self._parts)})"
        )
