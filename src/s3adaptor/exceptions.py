"""Error taxonomy for s3adaptor.

Backend faults are reduced to a closed set of :class:`ErrorKind` members so
callers can branch on meaning instead of on status codes or service strings.
Every error raised by the package derives from :class:`S3AdaptorError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from botocore.exceptions import BotoCoreError, ClientError, ParamValidationError


class ErrorKind(str, Enum):
    """Semantic error kinds."""

    GENERIC = "Error"
    OBJECT_NOT_FOUND = "NoSuchKeyError"
    BUCKET_ALREADY_EXISTS = "BucketAlreadyExistsError"
    BUCKET_ALREADY_OWNED_BY_CALLER = "BucketAlreadyOwnedByYouError"
    BUCKET_NOT_FOUND = "NoSuchBucketError"
    BUCKET_NOT_EMPTY = "BucketNotEmptyError"
    VALIDATION = "ValidationError"
    CONNECTIVITY = "ConnectivityError"


# Service error code -> kind. New codes can be added here without touching callers.
ERROR_CODE_KINDS: dict[str, ErrorKind] = {
    "NoSuchKey": ErrorKind.OBJECT_NOT_FOUND,
    "BucketAlreadyExists": ErrorKind.BUCKET_ALREADY_EXISTS,
    "BucketAlreadyOwnedByYou": ErrorKind.BUCKET_ALREADY_OWNED_BY_CALLER,
    "NoSuchBucket": ErrorKind.BUCKET_NOT_FOUND,
    "BucketNotEmpty": ErrorKind.BUCKET_NOT_EMPTY,
    # HEAD responses have no error body; botocore reports the bare status
    "404": ErrorKind.OBJECT_NOT_FOUND,
    "NotFound": ErrorKind.OBJECT_NOT_FOUND,
}

DEFAULT_NAMESPACE = "s3adaptor"


@dataclass(frozen=True)
class ServiceFault:
    """A raw fault reported by the storage service."""

    code: str | None
    message: str

    @property
    def kind(self) -> ErrorKind:
        return classify(self)


def classify(fault: ServiceFault) -> ErrorKind:
    """Map a service fault to its semantic kind.

    Parameters
    ----------
    fault : ServiceFault
        Fault descriptor with an optional service code.

    Returns
    -------
    ErrorKind
        The mapped kind, :attr:`ErrorKind.GENERIC` for absent or unknown codes.
    """
    code = fault.code
    if not isinstance(code, str):
        return ErrorKind.GENERIC
    return ERROR_CODE_KINDS.get(code, ErrorKind.GENERIC)


class S3AdaptorError(Exception):
    """Base exception for s3adaptor errors."""

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self.message = message
        self.code = code
        self.namespace = namespace
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(namespace={self.namespace!r}, "
            f"kind={self.kind.value!r}, code={self.code!r}, message={self.message!r})"
        )


class ObjectNotFoundError(S3AdaptorError):
    """Raised when an object key does not exist."""

    kind = ErrorKind.OBJECT_NOT_FOUND


class BucketAlreadyExistsError(S3AdaptorError):
    """Raised when a bucket name is taken by another account."""

    kind = ErrorKind.BUCKET_ALREADY_EXISTS


class BucketAlreadyOwnedByYouError(S3AdaptorError):
    """Raised when creating a bucket the caller already owns."""

    kind = ErrorKind.BUCKET_ALREADY_OWNED_BY_CALLER


class BucketNotFoundError(S3AdaptorError):
    """Raised when a bucket does not exist."""

    kind = ErrorKind.BUCKET_NOT_FOUND


class BucketNotEmptyError(S3AdaptorError):
    """Raised when deleting a bucket that still holds objects."""

    kind = ErrorKind.BUCKET_NOT_EMPTY


class ValidationError(S3AdaptorError):
    """Raised when caller-supplied input is malformed."""

    kind = ErrorKind.VALIDATION


class ConnectivityError(S3AdaptorError):
    """Raised when a body source or the transport fails mid-transfer."""

    kind = ErrorKind.CONNECTIVITY


_KIND_EXCEPTIONS: dict[ErrorKind, type[S3AdaptorError]] = {
    cls.kind: cls
    for cls in (
        S3AdaptorError,
        ObjectNotFoundError,
        BucketAlreadyExistsError,
        BucketAlreadyOwnedByYouError,
        BucketNotFoundError,
        BucketNotEmptyError,
        ValidationError,
        ConnectivityError,
    )
}


def exception_for_kind(kind: ErrorKind) -> type[S3AdaptorError]:
    """Return the exception class raised for ``kind``."""
    return _KIND_EXCEPTIONS.get(kind, S3AdaptorError)


class ErrorTranslator:
    """Convert arbitrary exceptions into namespaced :class:`S3AdaptorError` instances."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.namespace = namespace

    def error(self, kind: ErrorKind, message: str, *, code: str | None = None) -> S3AdaptorError:
        """Build an error of ``kind`` tagged with this translator's namespace."""
        return exception_for_kind(kind)(message, code=code, namespace=self.namespace)

    def validation(self, message: str) -> S3AdaptorError:
        return self.error(ErrorKind.VALIDATION, message)

    def fault_from(self, exc: BaseException) -> ServiceFault:
        """Extract a :class:`ServiceFault` from a botocore ``ClientError``."""
        error = {}
        if isinstance(exc, ClientError):
            error = exc.response.get("Error") or {}
        code = error.get("Code")
        message = error.get("Message") or _message_of(exc)
        return ServiceFault(code=str(code) if code is not None else None, message=message)

    def translate(self, exc: BaseException) -> S3AdaptorError:
        """Translate ``exc`` into the matching :class:`S3AdaptorError`.

        Errors that are already translated are returned as-is, re-tagged with
        this translator's namespace.
        """
        if isinstance(exc, S3AdaptorError):
            exc.namespace = self.namespace
            return exc
        if isinstance(exc, ClientError):
            fault = self.fault_from(exc)
            return self.error(fault.kind, fault.message, code=fault.code)
        if isinstance(exc, ParamValidationError):
            return self.error(ErrorKind.VALIDATION, _message_of(exc))
        if isinstance(exc, BotoCoreError):
            return self.error(ErrorKind.CONNECTIVITY, _message_of(exc))
        return self.error(ErrorKind.GENERIC, _message_of(exc))

    def connectivity(self, exc: BaseException, context: str) -> S3AdaptorError:
        """Wrap a body source failure as a :class:`ConnectivityError`."""
        if isinstance(exc, S3AdaptorError):
            return exc
        return self.error(ErrorKind.CONNECTIVITY, f"{context}: {_message_of(exc)}")


def _message_of(exc: BaseException) -> str:
    message = str(exc)
    return message if message else type(exc).__name__
