"""Tests for failure classification."""

from __future__ import annotations

import socket

from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError
import httpx
from sqlalchemy import exc as sa_exc

from stepstone.diagnostics.classifier import classify, describe
from stepstone.diagnostics.errors import (
    AddressError,
    BackendKind,
    DataMismatchError,
    ErrorCategory,
    KvStoreError,
    ProbeTimeoutError,
)


class _PgError(Exception):
    def __init__(self, message: str, pgcode: str) -> None:
        super().__init__(message)
        self.pgcode = pgcode


def _client_error(code: str, status: int, operation: str = "PutObject") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


def test_kv_grpc_codes() -> None:
    auth = classify(KvStoreError("bad token", code=16, http_status=401), BackendKind.KV_STORE, "Etcd PUT Operation")
    denied = classify(KvStoreError("denied", code=7, http_status=403), BackendKind.KV_STORE, "Etcd PUT Operation")

    assert auth.category is ErrorCategory.AUTHENTICATION
    assert auth.code == "grpc:16"
    assert denied.category is ErrorCategory.AUTHORIZATION


def test_kv_transport_error_is_connectivity() -> None:
    exc = httpx.ConnectError("All connection attempts failed")

    result = classify(exc, BackendKind.KV_STORE, "Etcd Connection", "127.0.0.1:2379")

    assert result.category is ErrorCategory.CONNECTIVITY
    assert "127.0.0.1:2379" in result.suggestion


def test_relational_sqlstate_and_errno() -> None:
    privilege = classify(_PgError("permission denied for schema public", "42501"), BackendKind.RELATIONAL, "x")
    missing = classify(_PgError("relation does not exist", "42P01"), BackendKind.RELATIONAL, "x")
    mysql_auth = classify(Exception(1045, "Access denied for user 'root'"), BackendKind.RELATIONAL, "x")

    assert privilege.category is ErrorCategory.AUTHORIZATION
    assert privilege.code == "42501"
    assert missing.category is ErrorCategory.RESOURCE_MISSING
    assert mysql_auth.category is ErrorCategory.AUTHENTICATION


def test_relational_wrapped_dbapi_error() -> None:
    wrapped = sa_exc.OperationalError("SELECT 1", {}, _PgError("could not connect", "08006"))

    result = classify(wrapped, BackendKind.RELATIONAL, "PostgreSQL Connection")

    assert result.category is ErrorCategory.CONNECTIVITY
    assert result.code == "08006"


def test_relational_bad_url_is_configuration() -> None:
    result = classify(sa_exc.ArgumentError("Could not parse URL"), BackendKind.RELATIONAL, "x")

    assert result.category is ErrorCategory.CONFIGURATION


def test_object_store_codes() -> None:
    assert (
        classify(_client_error("InvalidAccessKeyId", 403), BackendKind.OBJECT_STORE, "x").category
        is ErrorCategory.AUTHENTICATION
    )
    assert (
        classify(_client_error("AccessDenied", 403), BackendKind.OBJECT_STORE, "x").category
        is ErrorCategory.AUTHORIZATION
    )
    assert (
        classify(_client_error("NoSuchBucket", 404), BackendKind.OBJECT_STORE, "x", "bucket 'b'").category
        is ErrorCategory.RESOURCE_MISSING
    )
    assert (
        classify(_client_error("Whatever", 403), BackendKind.OBJECT_STORE, "x").category
        is ErrorCategory.AUTHORIZATION
    )
    assert (
        classify(EndpointConnectionError(endpoint_url="http://s3"), BackendKind.OBJECT_STORE, "x").category
        is ErrorCategory.CONNECTIVITY
    )
    assert classify(NoCredentialsError(), BackendKind.OBJECT_STORE, "x").category is ErrorCategory.CONFIGURATION


def test_network_and_filesystem() -> None:
    assert classify(ConnectionRefusedError(), BackendKind.NETWORK, "x").category is ErrorCategory.CONNECTIVITY
    assert classify(socket.gaierror(-2, "Name or service not known"), BackendKind.NETWORK, "x").code == "dns"
    assert (
        classify(AddressError("localhost", "missing port"), BackendKind.NETWORK, "x").category
        is ErrorCategory.CONFIGURATION
    )
    assert classify(PermissionError(13, "denied"), BackendKind.FILESYSTEM, "x").category is ErrorCategory.AUTHORIZATION
    assert (
        classify(FileNotFoundError(2, "missing"), BackendKind.FILESYSTEM, "x").category
        is ErrorCategory.RESOURCE_MISSING
    )


def test_engine_errors_apply_to_every_backend() -> None:
    for backend in BackendKind:
        assert classify(ProbeTimeoutError("op", 1.0), backend, "x").category is ErrorCategory.CONNECTIVITY
        assert classify(DataMismatchError("k", 3, 2), backend, "x").category is ErrorCategory.DATA_INTEGRITY


def test_unknown_failure_has_generic_suggestion() -> None:
    result = classify(RuntimeError("boom"), BackendKind.KV_STORE, "Etcd GET Operation")

    assert result.category is ErrorCategory.UNKNOWN
    assert result.suggestion
    assert result.description == "boom"


def test_classifier_never_raises_on_broken_exceptions() -> None:
    class _Broken(Exception):
        def __str__(self) -> str:
            raise RuntimeError("cannot render")

    result = classify(_Broken(), BackendKind.RELATIONAL, "x")

    assert result.category is ErrorCategory.UNKNOWN


def test_describe_uses_first_line_or_type_name() -> None:
    assert describe(RuntimeError("first\nsecond")) == "first"
    assert describe(RuntimeError()) == "RuntimeError"
