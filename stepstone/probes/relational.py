"""Relational metadata store probe for PostgreSQL and MySQL."""

from __future__ import annotations

import re
from typing import Any
import uuid

from stepstone.clients.base import SqlClient
from stepstone.config.models import ProbeSettings, StoreBackend, StoreConfig
from stepstone.diagnostics.errors import BackendKind, ErrorCategory
from stepstone.diagnostics.models import CheckDetail
from stepstone.probes.pipeline import ProbePipeline, StepOutcome, call_io, close_quietly

SENTINEL_KEY = "__stepstone_probe"
SENTINEL_VALUE = "stepstone_test_value"
SCRATCH_TABLE_PREFIX = "stepstone_probe_"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

_LABELS = {
    StoreBackend.POSTGRES: "PostgreSQL",
    StoreBackend.MYSQL: "MySQL",
}


class Dialect:
    """SQL text for the probe statements of one database family."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._quote = '"' if name == "postgresql" else "`"

    def quote(self, identifier: str) -> str:
        return ".".join(f"{self._quote}{part}{self._quote}" for part in identifier.split("."))

    def table_exists(self, table: str) -> tuple[str, dict[str, Any]]:
        schema, _, name = table.rpartition(".")
        if self.name == "postgresql":
            schema_clause = "table_schema = :schema" if schema else "table_schema = current_schema()"
        else:
            schema_clause = "table_schema = :schema" if schema else "table_schema = DATABASE()"
        params: dict[str, Any] = {"table": name}
        if schema:
            params["schema"] = schema
        sql = (
            "SELECT COUNT(*) FROM information_schema.tables "
            f"WHERE {schema_clause} AND table_name = :table"
        )
        return sql, params

    def count_rows(self, table: str) -> str:
        return f"SELECT COUNT(*) FROM {self.quote(table)}"

    def upsert(self, table: str) -> str:
        key, value = self.quote("key"), self.quote("value")
        if self.name == "postgresql":
            return (
                f"INSERT INTO {self.quote(table)} ({key}, {value}) VALUES (:key, :value) "
                f"ON CONFLICT ({key}) DO UPDATE SET {value} = EXCLUDED.{value}"
            )
        return (
            f"INSERT INTO {self.quote(table)} ({key}, {value}) VALUES (:key, :value) "
            f"ON DUPLICATE KEY UPDATE {value} = VALUES({value})"
        )

    def delete_key(self, table: str) -> str:
        return f"DELETE FROM {self.quote(table)} WHERE {self.quote('key')} = :key"

    def create_table(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote(table)} ("
            f"{self.quote('key')} VARCHAR(255) PRIMARY KEY, {self.quote('value')} TEXT)"
        )

    def drop_table(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {self.quote(table)}"


def valid_table_name(name: str) -> bool:
    """Accept ``table`` or ``schema.table`` made of plain identifiers."""

    parts = name.split(".")
    return 1 <= len(parts) <= 2 and all(_IDENTIFIER.match(part) for part in parts)


async def check_relational(
    config: StoreConfig,
    client: SqlClient,
    settings: ProbeSettings | None = None,
) -> list[CheckDetail]:
    """Probe a PostgreSQL or MySQL metadata store.

    Connect, then look up the metadata table. When it exists the probe checks
    read access and then write access with a sentinel row; when it does not,
    the probe checks that a table can be created, using a throwaway name so
    the real table is left for metasrv to create.
    """

    settings = settings or ProbeSettings()
    label = _LABELS.get(config.kind or StoreBackend.POSTGRES, "SQL")
    table = config.meta_table_name

    if not config.store_addrs:
        return [
            CheckDetail.failed(
                f"{label} Configuration",
                f"No {label} address configured",
                f"Add a {label} connection URL to store_addrs",
                category=ErrorCategory.CONFIGURATION,
            )
        ]
    if not valid_table_name(table):
        return [
            CheckDetail.failed(
                "Metadata Table Name",
                f"Invalid metadata table name '{table}'",
                "Use letters, digits and underscores for meta_table_name (optionally schema.table)",
                category=ErrorCategory.CONFIGURATION,
            )
        ]

    dialect = Dialect(client.dialect)
    address = config.store_addrs[0]
    timeout = settings.operation_timeout_s

    async def connect(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.connect, timeout=settings.connect_timeout_s, operation=f"{label} connect")
        return StepOutcome.ok(f"Successfully connected to {label}")

    async def table_exists(_: dict[str, Any]) -> StepOutcome:
        sql, params = dialect.table_exists(table)
        count = await call_io(client.scalar, sql, params, timeout=timeout, operation="table lookup")
        if count:
            return StepOutcome.ok(f"Table '{table}' exists", value=True)
        return StepOutcome.warn(
            f"Table '{table}' does not exist, table auto-created on first run",
            "Ensure the metasrv database user may create tables, or create the table in advance",
            value=False,
        )

    async def read_permission(_: dict[str, Any]) -> StepOutcome:
        await call_io(client.scalar, dialect.count_rows(table), timeout=timeout, operation="select")
        return StepOutcome.ok(f"Successfully read from table '{table}'")

    async def write_permission(_: dict[str, Any]) -> StepOutcome:
        params = {"key": SENTINEL_KEY, "value": SENTINEL_VALUE}
        await call_io(client.execute, dialect.upsert(table), params, timeout=timeout, operation="upsert")
        await call_io(
            client.execute,
            dialect.delete_key(table),
            {"key": SENTINEL_KEY},
            timeout=timeout,
            operation="delete",
        )
        return StepOutcome.ok(f"Successfully wrote to table '{table}'")

    async def create_permission(_: dict[str, Any]) -> StepOutcome:
        scratch = f"{SCRATCH_TABLE_PREFIX}{uuid.uuid4().hex[:8]}"
        await call_io(client.execute, dialect.create_table(scratch), timeout=timeout, operation="create table")
        await call_io(client.execute, dialect.drop_table(scratch), timeout=timeout, operation="drop table")
        return StepOutcome.ok(f"Successfully created and dropped scratch table '{scratch}'")

    def table_present(values: dict[str, Any]) -> bool:
        return bool(values.get("table"))

    def table_missing(values: dict[str, Any]) -> bool:
        return values.get("table") is False

    pipeline = (
        ProbePipeline(BackendKind.RELATIONAL)
        .add(
            "connect",
            f"{label} Connection",
            connect,
            blocking=True,
            failure_message=f"Failed to connect to {label}: {{error}}",
            field=_redact(address),
        )
        .add(
            "table",
            "Metadata Table Existence",
            table_exists,
            blocking=True,
            failure_message="Failed to check table existence: {error}",
            field=f"table '{table}'",
        )
        .add(
            "read",
            f"{label} Read Permission",
            read_permission,
            failure_message=f"Failed to read from table '{table}': {{error}}",
            field=f"table '{table}'",
            when=table_present,
        )
        .add(
            "write",
            f"{label} Write Permission",
            write_permission,
            requires=("read",),
            failure_message=f"Failed to write to table '{table}': {{error}}",
            field=f"table '{table}'",
            when=table_present,
        )
        .add(
            "create",
            f"{label} Create Permission",
            create_permission,
            failure_message="Failed to create table: {error}",
            field="the database schema",
            when=table_missing,
        )
    )
    try:
        return await pipeline.run()
    finally:
        await close_quietly(client, settings.connect_timeout_s)


def _redact(url: str) -> str:
    """Hide the password in a connection URL."""

    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
