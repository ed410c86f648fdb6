"""Error taxonomy and exceptions raised inside the check engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Diagnostic category of a classified failure."""

    CONNECTIVITY = "connectivity"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RESOURCE_MISSING = "resource_missing"
    DATA_INTEGRITY = "data_integrity"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class BackendKind(str, Enum):
    """Kind of external dependency being probed."""

    KV_STORE = "kv_store"
    RELATIONAL = "relational"
    OBJECT_STORE = "object_store"
    NETWORK = "network"
    FILESYSTEM = "filesystem"


@dataclass(frozen=True)
class ClassifiedError:
    """A raw failure mapped onto the taxonomy."""

    category: ErrorCategory
    suggestion: str
    description: str
    code: str | None = None


class StepstoneError(Exception):
    """Base class for errors raised by the check engine."""


class ConfigError(StepstoneError):
    """Configuration is missing, unreadable or malformed."""


class AddressError(StepstoneError):
    """An endpoint address cannot be split into host and port."""

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"Invalid address '{address}': {reason}")
        self.address = address
        self.reason = reason


class ProbeTimeoutError(StepstoneError):
    """An I/O operation exceeded its deadline."""

    def __init__(self, operation: str, timeout_s: float) -> None:
        super().__init__(f"{operation} timed out after {timeout_s:.1f}s")
        self.operation = operation
        self.timeout_s = timeout_s


class DataMismatchError(StepstoneError):
    """Data read back differs from the data written."""

    def __init__(self, key: str, expected: int, actual: int | None) -> None:
        got = "nothing" if actual is None else f"{actual} bytes"
        super().__init__(f"Data mismatch for '{key}': wrote {expected} bytes, read back {got}")
        self.key = key
        self.expected = expected
        self.actual = actual


class KvStoreError(StepstoneError):
    """Error reported by the etcd JSON gateway."""

    def __init__(self, message: str, code: int | None = None, http_status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.http_status = http_status
