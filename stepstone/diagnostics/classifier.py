"""Map raw backend failures onto diagnostic categories and suggestions.

Classification looks only at what the backend reported: exception types,
error codes (etcd gRPC status, SQLSTATE, MySQL errno, S3 error codes) and,
as a last resort, well-known substrings of the error message. It never
inspects timings or retry counts, and it never raises.
"""

from __future__ import annotations

import asyncio
import errno
import socket
from typing import Callable

import httpx
from botocore import exceptions as botocore_exc
from sqlalchemy import exc as sa_exc

from stepstone.core.logging import logger as LOGGER
from stepstone.diagnostics.errors import (
    AddressError,
    BackendKind,
    ClassifiedError,
    ConfigError,
    DataMismatchError,
    ErrorCategory,
    KvStoreError,
    ProbeTimeoutError,
)

Match = tuple[ErrorCategory, str | None]

_DEFAULT_FIELDS = {
    BackendKind.KV_STORE: "the configured store_addrs",
    BackendKind.RELATIONAL: "the metadata table",
    BackendKind.OBJECT_STORE: "the configured bucket",
    BackendKind.NETWORK: "the configured endpoint",
    BackendKind.FILESYSTEM: "the storage root",
}

_SUGGESTIONS: dict[BackendKind, dict[ErrorCategory, str]] = {
    BackendKind.KV_STORE: {
        ErrorCategory.CONNECTIVITY: "Check etcd service status and network connectivity to {field}",
        ErrorCategory.AUTHENTICATION: "Check the etcd username and password configured for the metasrv",
        ErrorCategory.AUTHORIZATION: "Grant the etcd user read/write permission on the key prefix {field}",
        ErrorCategory.RESOURCE_MISSING: "Check that {field} exposes the etcd v3 JSON gateway",
        ErrorCategory.DATA_INTEGRITY: "Check etcd data consistency and cluster health",
        ErrorCategory.CONFIGURATION: "Check the etcd endpoints in store_addrs (host:port)",
        ErrorCategory.UNKNOWN: "Check the etcd server logs for details",
    },
    BackendKind.RELATIONAL: {
        ErrorCategory.CONNECTIVITY: (
            "Check connection string, network connectivity, and database availability for {field}"
        ),
        ErrorCategory.AUTHENTICATION: "Check the database user and password in the connection string",
        ErrorCategory.AUTHORIZATION: "Grant the required privileges on {field} to the metasrv database user",
        ErrorCategory.RESOURCE_MISSING: "Create {field} or check the database named in the connection string",
        ErrorCategory.DATA_INTEGRITY: "Check database consistency for {field}",
        ErrorCategory.CONFIGURATION: (
            "Check the store address; expected a postgres:// or mysql:// connection URL"
        ),
        ErrorCategory.UNKNOWN: "Check the database server logs for details",
    },
    BackendKind.OBJECT_STORE: {
        ErrorCategory.CONNECTIVITY: "Check the S3 endpoint, region and network connectivity for {field}",
        ErrorCategory.AUTHENTICATION: "Check access_key_id and secret_access_key for {field}",
        ErrorCategory.AUTHORIZATION: (
            "Grant list/read/write/delete permission on {field} to the configured credentials"
        ),
        ErrorCategory.RESOURCE_MISSING: "Create {field} or fix the bucket name in the storage configuration",
        ErrorCategory.DATA_INTEGRITY: "Check object store data consistency for {field}",
        ErrorCategory.CONFIGURATION: "Check the S3 configuration (bucket, endpoint, region, credentials)",
        ErrorCategory.UNKNOWN: "Check the object store service status and logs",
    },
    BackendKind.NETWORK: {
        ErrorCategory.CONNECTIVITY: "Check that the service at {field} is running and reachable through firewalls",
        ErrorCategory.CONFIGURATION: "Check address format for {field} (should be host:port)",
    },
    BackendKind.FILESYSTEM: {
        ErrorCategory.AUTHORIZATION: "Check directory permissions on {field}",
        ErrorCategory.RESOURCE_MISSING: "Create {field} or fix the storage root in the configuration",
        ErrorCategory.CONFIGURATION: "Ensure {field} points to a directory",
        ErrorCategory.DATA_INTEGRITY: "Check the filesystem backing {field} for errors",
    },
}

_GENERIC_SUGGESTIONS = {
    ErrorCategory.CONNECTIVITY: "Check network connectivity to {field}",
    ErrorCategory.AUTHENTICATION: "Check the credentials configured for {field}",
    ErrorCategory.AUTHORIZATION: "Check the permissions granted on {field}",
    ErrorCategory.RESOURCE_MISSING: "Check that {field} exists",
    ErrorCategory.DATA_INTEGRITY: "Check data consistency of {field}",
    ErrorCategory.CONFIGURATION: "Check the configuration for {field}",
    ErrorCategory.UNKNOWN: "Unexpected error during '{step}'; check the service logs for details",
}

_GRPC_CODES = {
    4: ErrorCategory.CONNECTIVITY,  # DEADLINE_EXCEEDED
    5: ErrorCategory.RESOURCE_MISSING,  # NOT_FOUND
    7: ErrorCategory.AUTHORIZATION,  # PERMISSION_DENIED
    14: ErrorCategory.CONNECTIVITY,  # UNAVAILABLE
    16: ErrorCategory.AUTHENTICATION,  # UNAUTHENTICATED
}

_HTTP_STATUS = {
    401: ErrorCategory.AUTHENTICATION,
    403: ErrorCategory.AUTHORIZATION,
    404: ErrorCategory.RESOURCE_MISSING,
    502: ErrorCategory.CONNECTIVITY,
    503: ErrorCategory.CONNECTIVITY,
    504: ErrorCategory.CONNECTIVITY,
}

_PG_SQLSTATE = {
    "42501": ErrorCategory.AUTHORIZATION,  # insufficient_privilege
    "42P01": ErrorCategory.RESOURCE_MISSING,  # undefined_table
    "3D000": ErrorCategory.RESOURCE_MISSING,  # invalid_catalog_name
    "3F000": ErrorCategory.RESOURCE_MISSING,  # invalid_schema_name
    "28P01": ErrorCategory.AUTHENTICATION,  # invalid_password
    "28000": ErrorCategory.AUTHENTICATION,  # invalid_authorization
    "57P03": ErrorCategory.CONNECTIVITY,  # cannot_connect_now
}

_PG_SQLSTATE_CLASSES = {
    "08": ErrorCategory.CONNECTIVITY,
    "28": ErrorCategory.AUTHENTICATION,
}

_MYSQL_ERRNO = {
    1044: ErrorCategory.AUTHORIZATION,  # ER_DBACCESS_DENIED_ERROR
    1045: ErrorCategory.AUTHENTICATION,  # ER_ACCESS_DENIED_ERROR
    1049: ErrorCategory.RESOURCE_MISSING,  # ER_BAD_DB_ERROR
    1142: ErrorCategory.AUTHORIZATION,  # ER_TABLEACCESS_DENIED_ERROR
    1146: ErrorCategory.RESOURCE_MISSING,  # ER_NO_SUCH_TABLE
    1227: ErrorCategory.AUTHORIZATION,  # ER_SPECIFIC_ACCESS_DENIED_ERROR
    1698: ErrorCategory.AUTHENTICATION,  # ER_ACCESS_DENIED_NO_PASSWORD_ERROR
    2002: ErrorCategory.CONNECTIVITY,
    2003: ErrorCategory.CONNECTIVITY,
    2005: ErrorCategory.CONNECTIVITY,
    2006: ErrorCategory.CONNECTIVITY,
    2013: ErrorCategory.CONNECTIVITY,
}

_S3_CODES = {
    "InvalidAccessKeyId": ErrorCategory.AUTHENTICATION,
    "SignatureDoesNotMatch": ErrorCategory.AUTHENTICATION,
    "InvalidToken": ErrorCategory.AUTHENTICATION,
    "ExpiredToken": ErrorCategory.AUTHENTICATION,
    "InvalidSecurity": ErrorCategory.AUTHENTICATION,
    "AccessDenied": ErrorCategory.AUTHORIZATION,
    "AllAccessDisabled": ErrorCategory.AUTHORIZATION,
    "AccountProblem": ErrorCategory.AUTHORIZATION,
    "NoSuchBucket": ErrorCategory.RESOURCE_MISSING,
    "NoSuchKey": ErrorCategory.RESOURCE_MISSING,
    "InvalidBucketName": ErrorCategory.CONFIGURATION,
    "PermanentRedirect": ErrorCategory.CONFIGURATION,
    "AuthorizationHeaderMalformed": ErrorCategory.CONFIGURATION,
    "SlowDown": ErrorCategory.CONNECTIVITY,
    "ServiceUnavailable": ErrorCategory.CONNECTIVITY,
    "RequestTimeout": ErrorCategory.CONNECTIVITY,
}

_SUBSTRINGS: dict[BackendKind, tuple[tuple[str, ErrorCategory], ...]] = {
    BackendKind.KV_STORE: (
        ("authentication failed", ErrorCategory.AUTHENTICATION),
        ("invalid auth token", ErrorCategory.AUTHENTICATION),
        ("permission denied", ErrorCategory.AUTHORIZATION),
        ("connection refused", ErrorCategory.CONNECTIVITY),
    ),
    BackendKind.RELATIONAL: (
        ("password authentication failed", ErrorCategory.AUTHENTICATION),
        ("access denied for user", ErrorCategory.AUTHENTICATION),
        ("permission denied", ErrorCategory.AUTHORIZATION),
        ("command denied", ErrorCategory.AUTHORIZATION),
        ("does not exist", ErrorCategory.RESOURCE_MISSING),
        ("doesn't exist", ErrorCategory.RESOURCE_MISSING),
        ("could not connect", ErrorCategory.CONNECTIVITY),
        ("can't connect", ErrorCategory.CONNECTIVITY),
        ("connection refused", ErrorCategory.CONNECTIVITY),
        ("could not translate host name", ErrorCategory.CONNECTIVITY),
        ("timeout expired", ErrorCategory.CONNECTIVITY),
    ),
    BackendKind.OBJECT_STORE: (
        ("invalidaccesskeyid", ErrorCategory.AUTHENTICATION),
        ("signaturedoesnotmatch", ErrorCategory.AUTHENTICATION),
        ("access denied", ErrorCategory.AUTHORIZATION),
        ("nosuchbucket", ErrorCategory.RESOURCE_MISSING),
        ("could not connect", ErrorCategory.CONNECTIVITY),
    ),
    BackendKind.NETWORK: (),
    BackendKind.FILESYSTEM: (
        ("read-only file system", ErrorCategory.AUTHORIZATION),
    ),
}


def classify(
    exc: BaseException,
    backend: BackendKind,
    step: str,
    field: str | None = None,
) -> ClassifiedError:
    """Classify a raw failure raised by a probe step.

    Args:
        exc: The failure raised by the backend client or the engine.
        backend: Kind of backend the step talked to.
        step: Probe name, used in the generic fallback suggestion.
        field: Offending configuration value (bucket, table, endpoint, ...).

    Returns:
        Classified error with a non-empty suggestion.
    """

    try:
        category, code = _match(exc, backend)
    except Exception:  # noqa: BLE001 - classification must never break a check run
        LOGGER.debug("Failed to classify %r during %s", exc, step, exc_info=True)
        category, code = ErrorCategory.UNKNOWN, None

    return ClassifiedError(
        category=category,
        suggestion=suggestion_for(backend, category, step=step, field=field),
        description=describe(exc),
        code=code,
    )


def suggestion_for(
    backend: BackendKind,
    category: ErrorCategory,
    *,
    step: str,
    field: str | None = None,
) -> str:
    """Return the fixed suggestion text for a backend and category."""

    template = _SUGGESTIONS.get(backend, {}).get(category) or _GENERIC_SUGGESTIONS[category]
    return template.format(field=field or _DEFAULT_FIELDS[backend], step=step)


def describe(exc: BaseException) -> str:
    """Render a failure as a one-line message."""

    try:
        text = str(exc).strip()
    except Exception:  # noqa: BLE001 - a broken __str__ still gets described
        text = ""
    if not text:
        return type(exc).__name__
    return text.splitlines()[0]


def _match(exc: BaseException, backend: BackendKind) -> Match:
    common = _match_engine_error(exc)
    if common is not None:
        return common

    matcher = _MATCHERS.get(backend)
    if matcher is not None:
        matched = matcher(exc)
        if matched is not None:
            return matched

    lowered = str(exc).lower()
    for needle, category in _SUBSTRINGS.get(backend, ()):
        if needle in lowered:
            return category, None
    return ErrorCategory.UNKNOWN, None


def _match_engine_error(exc: BaseException) -> Match | None:
    if isinstance(exc, ProbeTimeoutError):
        return ErrorCategory.CONNECTIVITY, "timeout"
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCategory.CONNECTIVITY, "timeout"
    if isinstance(exc, DataMismatchError):
        return ErrorCategory.DATA_INTEGRITY, "data_mismatch"
    if isinstance(exc, (ConfigError, AddressError)):
        return ErrorCategory.CONFIGURATION, None
    return None


def _match_kv(exc: BaseException) -> Match | None:
    if isinstance(exc, KvStoreError):
        if exc.code in _GRPC_CODES:
            return _GRPC_CODES[exc.code], f"grpc:{exc.code}"
        if exc.http_status in _HTTP_STATUS:
            return _HTTP_STATUS[exc.http_status], f"http:{exc.http_status}"
        return None
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
        return ErrorCategory.CONFIGURATION, None
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in _HTTP_STATUS:
            return _HTTP_STATUS[status], f"http:{status}"
        return None
    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.CONNECTIVITY, type(exc).__name__
    return _match_socket(exc)


def _match_relational(exc: BaseException) -> Match | None:
    if isinstance(exc, sa_exc.ArgumentError):
        return ErrorCategory.CONFIGURATION, None
    orig = exc.orig if isinstance(exc, sa_exc.DBAPIError) else exc

    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if isinstance(sqlstate, str) and sqlstate:
        if sqlstate in _PG_SQLSTATE:
            return _PG_SQLSTATE[sqlstate], sqlstate
        category = _PG_SQLSTATE_CLASSES.get(sqlstate[:2])
        if category is not None:
            return category, sqlstate

    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in _MYSQL_ERRNO:
        return _MYSQL_ERRNO[args[0]], str(args[0])
    return _match_socket(orig) if isinstance(orig, BaseException) else None


def _match_object_store(exc: BaseException) -> Match | None:
    if isinstance(exc, botocore_exc.ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        if code in _S3_CODES:
            return _S3_CODES[code], code
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status in _HTTP_STATUS:
            return _HTTP_STATUS[status], code or f"http:{status}"
        return None
    if isinstance(
        exc,
        (
            botocore_exc.NoCredentialsError,
            botocore_exc.PartialCredentialsError,
            botocore_exc.ParamValidationError,
            botocore_exc.NoRegionError,
        ),
    ):
        return ErrorCategory.CONFIGURATION, type(exc).__name__
    if isinstance(
        exc,
        (
            botocore_exc.EndpointConnectionError,
            botocore_exc.ConnectTimeoutError,
            botocore_exc.ReadTimeoutError,
            botocore_exc.ConnectionError,
            botocore_exc.HTTPClientError,
        ),
    ):
        return ErrorCategory.CONNECTIVITY, type(exc).__name__
    if isinstance(exc, ValueError) and "endpoint" in str(exc).lower():
        return ErrorCategory.CONFIGURATION, None
    return _match_socket(exc)


def _match_socket(exc: BaseException) -> Match | None:
    if isinstance(exc, socket.gaierror):
        return ErrorCategory.CONNECTIVITY, "dns"
    if isinstance(exc, ConnectionError):
        return ErrorCategory.CONNECTIVITY, type(exc).__name__
    if isinstance(exc, OSError) and exc.errno in {
        errno.ENETUNREACH,
        errno.EHOSTUNREACH,
        errno.ETIMEDOUT,
        errno.ECONNREFUSED,
    }:
        return ErrorCategory.CONNECTIVITY, errno.errorcode.get(exc.errno)
    return None


def _match_network(exc: BaseException) -> Match | None:
    matched = _match_socket(exc)
    if matched is not None:
        return matched
    if isinstance(exc, OSError):
        return ErrorCategory.CONNECTIVITY, type(exc).__name__
    if isinstance(exc, ValueError):
        # IDNA encoding rejects malformed host names
        return ErrorCategory.CONFIGURATION, type(exc).__name__
    return None


def _match_filesystem(exc: BaseException) -> Match | None:
    if isinstance(exc, PermissionError):
        return ErrorCategory.AUTHORIZATION, "EACCES"
    if isinstance(exc, FileNotFoundError):
        return ErrorCategory.RESOURCE_MISSING, "ENOENT"
    if isinstance(exc, (NotADirectoryError, IsADirectoryError)):
        return ErrorCategory.CONFIGURATION, None
    if isinstance(exc, OSError) and exc.errno == errno.EROFS:
        return ErrorCategory.AUTHORIZATION, "EROFS"
    return None


_MATCHERS: dict[BackendKind, Callable[[BaseException], Match | None]] = {
    BackendKind.KV_STORE: _match_kv,
    BackendKind.RELATIONAL: _match_relational,
    BackendKind.OBJECT_STORE: _match_object_store,
    BackendKind.NETWORK: _match_network,
    BackendKind.FILESYSTEM: _match_filesystem,
}
