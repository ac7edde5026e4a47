"""Exception hierarchy for the CouchDB MCP server.

Two disjoint families of failures flow through the server:

1. **Protocol faults** (ProtocolError and subclasses): the caller asked for a
   tool that does not exist, passed invalid arguments, or asked for a tool the
   connected CouchDB does not support. They are known before any backend call,
   are raised to the MCP transport, and are never converted into a tool result.

2. **Operational faults** (DatabaseError and subclasses): CouchDB answered with
   an error or could not be reached. The dispatcher catches them and returns a
   tool result flagged with ``isError``.

All exceptions share a single root (CouchMCPError) carrying structured metadata:

- error_code: Machine-readable error identifier (e.g., "DOCUMENT_NOT_FOUND")
- message: Human-readable error description
- details: Additional context (database, document id, status code, ...)
- timestamp / request_id: For correlating log lines
- original_exception: The underlying third-party exception, if any

Exceptions are frozen dataclasses so they cannot be modified after being raised.

Usage Example:
--------------
```python
try:
    response = await http.get(f"/{db_name}")
    response.raise_for_status()
except httpx.TransportError as e:
    raise DatabaseConnectionError(
        message="Failed to connect to CouchDB",
        details={"database": db_name},
        original_exception=e,
    ) from e
```
"""

import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

import httpx
from mcp import MCPError
from mcp.types import INVALID_PARAMS, METHOD_NOT_FOUND

# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================


@dataclass(frozen=True)
class CouchMCPError(Exception):
    """Base exception for all CouchDB MCP server errors.

    Attributes:
    -----------
    message : str
        Human-readable error description for developers and logs
    error_code : str
        Machine-readable error identifier (e.g., "VALIDATION_FAILED")
    details : dict
        Additional context about the error (database, document id, ...)
    timestamp : str
        ISO 8601 timestamp when error occurred
    request_id : str
        Unique identifier for this error occurrence
    http_status_code : int
        Closest HTTP status code, useful when the error is reported over HTTP
    original_exception : Optional[Exception]
        The underlying exception that caused this error

    Example:
    --------
    >>> raise CouchMCPError(
    ...     message="Request validation failed",
    ...     error_code="VALIDATION_ERROR",
    ...     details={"field": "dbName"},
    ... )
    """

    message: str
    error_code: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = field(default_factory=lambda: str(uuid4()))
    http_status_code: int = 500
    original_exception: Exception | None = None

    def __str__(self) -> str:
        """Human-readable error representation for logs."""
        error_msg = f"[{self.error_code}] {self.message}"
        if self.details:
            error_msg += f" | Details: {self.details}"
        if self.original_exception:
            error_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"
            )
        return error_msg

    def __repr__(self) -> str:
        """Developer-friendly representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}', "
            f"request_id='{self.request_id}', "
            f"timestamp='{self.timestamp}'"
            f")"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON serialization.

        Returns:
        --------
        dict with keys: error, error_code, details, timestamp, request_id,
        http_status_code and, when chained, original_error
        """
        error_dict = {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp,
            "request_id": self.request_id,
            "http_status_code": self.http_status_code,
        }

        if self.original_exception:
            error_dict["original_error"] = {
                "type": type(self.original_exception).__name__,
                "message": str(self.original_exception),
                "traceback": traceback.format_exception(
                    type(self.original_exception),
                    self.original_exception,
                    self.original_exception.__traceback__,
                ),
            }

        return error_dict


# =============================================================================
# PROTOCOL EXCEPTIONS
# =============================================================================
# Raised to the MCP transport as JSON-RPC errors. Never turned into tool results.


class ProtocolErrorKind(str, Enum):
    """Coarse classification of protocol faults reported to the transport."""

    INVALID_ARGUMENTS = "invalid_arguments"
    UNKNOWN_TOOL = "unknown_tool"
    UNSUPPORTED_AT_TIER = "unsupported_at_tier"


@dataclass(frozen=True)
class ProtocolError(CouchMCPError):
    """Base class for caller/contract violations.

    Attributes:
    -----------
    kind : ProtocolErrorKind
        Coarse classification surfaced to the transport
    jsonrpc_code : int
        JSON-RPC error code used when converting to an MCPError
    """

    error_code: str = "PROTOCOL_ERROR"
    http_status_code: int = 400
    kind: ProtocolErrorKind = ProtocolErrorKind.INVALID_ARGUMENTS
    jsonrpc_code: int = INVALID_PARAMS

    def to_mcp_error(self) -> MCPError:
        """Convert to the MCP SDK's error type so the transport reports a request failure."""
        return MCPError(
            code=self.jsonrpc_code,
            message=self.message,
            data={"kind": self.kind.value, **self.details},
        )


@dataclass(frozen=True)
class InvalidArgumentsError(ProtocolError):
    """Tool arguments violate the tool's declared schema.

    Example:
    --------
    >>> raise InvalidArgumentsError(
    ...     message="Invalid arguments for getDocument: docId must be a non-empty string",
    ...     details={"tool": "getDocument", "errors": ["docId must be a non-empty string"]},
    ... )
    """

    error_code: str = "INVALID_ARGUMENTS"
    kind: ProtocolErrorKind = ProtocolErrorKind.INVALID_ARGUMENTS
    jsonrpc_code: int = INVALID_PARAMS


@dataclass(frozen=True)
class UnknownToolError(ProtocolError):
    """No tool is registered under the requested name."""

    error_code: str = "UNKNOWN_TOOL"
    http_status_code: int = 404
    kind: ProtocolErrorKind = ProtocolErrorKind.UNKNOWN_TOOL
    jsonrpc_code: int = METHOD_NOT_FOUND


@dataclass(frozen=True)
class UnsupportedAtTierError(ProtocolError):
    """The tool exists but the connected CouchDB is below the required version.

    Also raised when the version could not be determined at call time: an
    unresolved tier never authorizes a gated call.
    """

    error_code: str = "UNSUPPORTED_AT_TIER"
    http_status_code: int = 501
    kind: ProtocolErrorKind = ProtocolErrorKind.UNSUPPORTED_AT_TIER
    jsonrpc_code: int = METHOD_NOT_FOUND


# =============================================================================
# DATABASE EXCEPTIONS
# =============================================================================
# Operational faults. The dispatcher turns these into isError tool results.


@dataclass(frozen=True)
class DatabaseError(CouchMCPError):
    """Base class for all CouchDB-related errors."""

    error_code: str = "DATABASE_ERROR"
    http_status_code: int = 503


@dataclass(frozen=True)
class DatabaseConnectionError(DatabaseError):
    """CouchDB unreachable (DNS failure, connection refused, TLS error)."""

    error_code: str = "DB_CONNECTION_FAILED"
    http_status_code: int = 503


@dataclass(frozen=True)
class DatabaseTimeoutError(DatabaseError):
    """A CouchDB request exceeded the configured timeout."""

    error_code: str = "DB_TIMEOUT"
    http_status_code: int = 504


@dataclass(frozen=True)
class QueryExecutionError(DatabaseError):
    """CouchDB rejected a request (bad Mango query, invalid database name, server error).

    Example:
    --------
    >>> raise QueryExecutionError(
    ...     message="invalid_operator: Invalid operator: $foo",
    ...     details={"status_code": 400, "method": "POST", "path": "/orders/_find"},
    ... )
    """

    error_code: str = "QUERY_EXECUTION_FAILED"
    http_status_code: int = 500


@dataclass(frozen=True)
class DocumentNotFoundError(DatabaseError):
    """The database, document or index does not exist (HTTP 404)."""

    error_code: str = "DOCUMENT_NOT_FOUND"
    http_status_code: int = 404


@dataclass(frozen=True)
class DocumentConflictError(DatabaseError):
    """Revision conflict or already-existing resource (HTTP 409/412)."""

    error_code: str = "DOCUMENT_CONFLICT"
    http_status_code: int = 409


@dataclass(frozen=True)
class DatabaseAuthorizationError(DatabaseError):
    """CouchDB refused the configured credentials (HTTP 401/403)."""

    error_code: str = "DB_AUTHORIZATION_FAILED"
    http_status_code: int = 403


# =============================================================================
# CAPABILITY & CONFIGURATION EXCEPTIONS
# =============================================================================


@dataclass(frozen=True)
class CapabilityDetectionError(CouchMCPError):
    """The CouchDB version could not be determined.

    Never cached: the next capability lookup retries detection.
    """

    error_code: str = "CAPABILITY_DETECTION_FAILED"
    http_status_code: int = 503


@dataclass(frozen=True)
class ConfigurationError(CouchMCPError):
    """Configuration or initialization errors.

    These should crash the application at startup rather than being caught.
    """

    error_code: str = "CONFIGURATION_ERROR"
    http_status_code: int = 500


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def convert_to_mcp_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: dict[str, Any] | None = None,
) -> CouchMCPError:
    """Convert any exception to an appropriate CouchMCPError.

    Used at the client boundary so that callers only ever see this hierarchy.

    Args:
    -----
    exception : Exception
        The original exception to convert
    default_message : str
        Fallback message if exception type is unknown
    context : dict, optional
        Additional context to include in error details

    Returns:
    --------
    CouchMCPError or subclass

    Example:
    --------
    >>> try:
    ...     await http.get("/")
    ... except httpx.HTTPError as e:
    ...     raise convert_to_mcp_exception(e, context={"path": "/"}) from e
    """
    context = context or {}

    if isinstance(exception, CouchMCPError):
        return exception

    # Timeouts are TransportErrors too, so check them first
    if isinstance(exception, httpx.TimeoutException):
        return DatabaseTimeoutError(
            message="CouchDB request timed out",
            details={**context, "error": str(exception)},
            original_exception=exception,
        )

    if isinstance(exception, httpx.TransportError):
        return DatabaseConnectionError(
            message="Failed to connect to CouchDB",
            details={**context, "error": str(exception)},
            original_exception=exception,
        )

    if isinstance(exception, httpx.HTTPStatusError):
        return error_from_response(exception.response, context=context, original=exception)

    return CouchMCPError(
        message=default_message,
        error_code="INTERNAL_ERROR",
        details={**context, "error_type": type(exception).__name__, "error": str(exception)},
        original_exception=exception,
    )


def error_from_response(
    response: httpx.Response,
    context: dict[str, Any] | None = None,
    original: Exception | None = None,
) -> DatabaseError:
    """Build the DatabaseError matching a failed CouchDB HTTP response.

    CouchDB error bodies look like ``{"error": "not_found", "reason": "missing"}``;
    the message becomes ``"not_found: missing"``.
    """
    details = {**(context or {}), "status_code": response.status_code}

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and (body.get("error") or body.get("reason")):
        error = body.get("error") or "error"
        reason = body.get("reason")
        message = f"{error}: {reason}" if reason else str(error)
    else:
        message = f"HTTP {response.status_code} {response.reason_phrase}".strip()

    status = response.status_code
    if status == 404:
        error_class = DocumentNotFoundError
    elif status in (409, 412):
        error_class = DocumentConflictError
    elif status in (401, 403):
        error_class = DatabaseAuthorizationError
    else:
        error_class = QueryExecutionError

    return error_class(message=message, details=details, original_exception=original)


__all__ = [
    "CapabilityDetectionError",
    "ConfigurationError",
    "CouchMCPError",
    "DatabaseAuthorizationError",
    "DatabaseConnectionError",
    "DatabaseError",
    "DatabaseTimeoutError",
    "DocumentConflictError",
    "DocumentNotFoundError",
    "InvalidArgumentsError",
    "ProtocolError",
    "ProtocolErrorKind",
    "QueryExecutionError",
    "UnknownToolError",
    "UnsupportedAtTierError",
    "convert_to_mcp_exception",
    "error_from_response",
]
