"""Database readiness gate.

This package owns the PostgreSQL connection and decides, before any request
is served, whether the schema the backend depends on is present.
"""

from backend.database.connection import (
    ConnectionManager,
    ConnectionState,
    QueryExecutor,
    get_database_manager,
)
from backend.database.errors import (
    ConnectionClosedError,
    DatabaseConnectionError,
    DatabaseError,
    NotInitializedError,
    QueryExecutionError,
    SchemaVerificationError,
    VerificationTimeoutError,
)
from backend.database.gate import (
    GateOutcome,
    close_database,
    initialize_database,
    print_table_verification_report,
    run_startup_gate,
    verify_connection,
    verify_tables_or_fail,
)
from backend.database.report import build_report, print_report, render_report
from backend.database.schema import (
    ALL_TABLES,
    DEFAULT_REGISTRY,
    OPTIONAL_TABLES,
    REQUIRED_TABLES,
    SchemaRegistry,
    TableDefinition,
)
from backend.database.verify import (
    CheckError,
    GateState,
    VerificationResult,
    verify_tables,
)

__all__ = [
    # Connection
    "ConnectionManager",
    "ConnectionState",
    "QueryExecutor",
    "get_database_manager",
    # Errors
    "ConnectionClosedError",
    "DatabaseConnectionError",
    "DatabaseError",
    "NotInitializedError",
    "QueryExecutionError",
    "SchemaVerificationError",
    "VerificationTimeoutError",
    # Startup facade
    "GateOutcome",
    "close_database",
    "initialize_database",
    "print_table_verification_report",
    "run_startup_gate",
    "verify_connection",
    "verify_tables_or_fail",
    # Reporting
    "build_report",
    "print_report",
    "render_report",
    # Schema registry
    "ALL_TABLES",
    "DEFAULT_REGISTRY",
    "OPTIONAL_TABLES",
    "REQUIRED_TABLES",
    "SchemaRegistry",
    "TableDefinition",
    # Verification
    "CheckError",
    "GateState",
    "VerificationResult",
    "verify_tables",
]
