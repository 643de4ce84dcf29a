"""Exceptions raised by the database readiness gate."""

from typing import Sequence


class DatabaseError(Exception):
    """Base class for all database gate errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the database cannot be reached or authentication fails."""
    pass


class NotInitializedError(DatabaseError):
    """Raised when the handle is requested before initialize()."""
    pass


class ConnectionClosedError(DatabaseError):
    """Raised when the handle is requested after close()."""
    pass


class QueryExecutionError(DatabaseError):
    """Raised when the driver fails to execute a single query."""
    pass


class VerificationTimeoutError(DatabaseError):
    """Raised when a verification pass exceeds its time budget."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Database verification did not finish within {timeout:g}s")


class SchemaVerificationError(DatabaseError):
    """Raised when one or more required tables are missing."""

    def __init__(self, missing_tables: Sequence[str], result=None):
        self.missing_tables = list(missing_tables)
        self.result = result
        super().__init__(
            "Database verification failed: Missing required tables: "
            + ", ".join(self.missing_tables)
        )
