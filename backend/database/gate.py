"""Startup gate: connect, verify, decide.

Start -> Connecting -> Verifying -> {READY | DEGRADED | FAILED}

FAILED is terminal for a startup attempt. Verification is never retried here.

The four calls an entry point needs are ``initialize_database``,
``verify_tables_or_fail``, ``print_table_verification_report`` and
``close_database``. Each works on the process-default ``ConnectionManager``
unless a ``manager`` is passed explicitly.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, TextIO

from sqlalchemy.ext.asyncio import AsyncEngine

from backend.database import verify
from backend.database.connection import ConnectionManager, get_database_manager
from backend.database.errors import DatabaseConnectionError, VerificationTimeoutError
from backend.database.report import print_report
from backend.database.schema import DEFAULT_REGISTRY, SchemaRegistry
from backend.database.verify import GateState, VerificationResult
from backend.logging_config import get_logger
from backend.settings import Settings, get_settings

logger = get_logger(name=__name__)


@dataclass(frozen=True)
class GateOutcome:
    state: GateState
    result: Optional[VerificationResult] = None
    reason: Optional[str] = None  # None, "connection", "schema" or "timeout"
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        """True for READY and DEGRADED: request handling may start."""
        return self.state is not GateState.FAILED

    @property
    def exit_code(self) -> int:
        return 0 if self.ready else 1

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "ready": self.ready,
            "reason": self.reason,
            "error": self.error,
            "verification": self.result.to_dict() if self.result else None,
        }


def _verify_options(settings: Settings) -> dict:
    return {
        "schema": settings.db_schema,
        "batch_threshold": settings.db_batch_threshold,
        "retries": settings.db_check_retries,
        "retry_delay": settings.db_check_retry_delay,
    }


async def run_startup_gate(
    manager: Optional[ConnectionManager] = None,
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    settings: Optional[Settings] = None,
    timeout: Optional[float] = None,
) -> GateOutcome:
    """Run one full pass (connection + every table check) under a timeout.

    Connection and timeout failures become a FAILED outcome instead of an
    exception; lifecycle misuse still propagates.
    """
    manager = manager or get_database_manager()
    settings = settings or get_settings()
    timeout = timeout if timeout is not None else settings.db_verify_timeout

    async def _pass() -> VerificationResult:
        logger.info("Connecting to PostgreSQL...")
        await manager.initialize(settings)
        logger.info("Verifying {} tables...", len(registry))
        return await verify.verify_tables(manager, registry, **_verify_options(settings))

    try:
        result = await asyncio.wait_for(_pass(), timeout=timeout)
    except asyncio.TimeoutError:
        error = VerificationTimeoutError(timeout)
        logger.error("{}", error)
        return GateOutcome(state=GateState.FAILED, reason="timeout", error=str(error))
    except DatabaseConnectionError as e:
        return GateOutcome(state=GateState.FAILED, reason="connection", error=str(e))

    outcome = GateOutcome(
        state=result.state,
        result=result,
        reason=None if result.ok else "schema",
        error=None if result.ok else (
            f"Missing required tables: {', '.join(result.missing_required)}"
        ),
    )
    logger.info("Database gate finished: {}", outcome.state.value.upper())
    return outcome


# ---------------------------------------------------------------------------
# Startup facade
# ---------------------------------------------------------------------------

async def initialize_database(
    settings: Optional[Settings] = None,
    manager: Optional[ConnectionManager] = None,
) -> AsyncEngine:
    """Connect the process-wide handle; returns the existing one if already connected."""
    manager = manager or get_database_manager()
    return await manager.initialize(settings)


async def verify_connection(manager: Optional[ConnectionManager] = None) -> None:
    manager = manager or get_database_manager()
    await manager.verify_connection()


async def verify_tables_or_fail(
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    manager: Optional[ConnectionManager] = None,
    settings: Optional[Settings] = None,
) -> VerificationResult:
    """Fail-fast entry point for startup code.

    Raises:
        SchemaVerificationError: If any required table is missing.
    """
    manager = manager or get_database_manager()
    settings = settings or get_settings()
    return await verify.verify_tables_or_fail(manager, registry, **_verify_options(settings))


async def print_table_verification_report(
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    manager: Optional[ConnectionManager] = None,
    settings: Optional[Settings] = None,
    stream: Optional[TextIO] = None,
) -> VerificationResult:
    """Run a verification pass and print its report to stderr."""
    manager = manager or get_database_manager()
    settings = settings or get_settings()
    result = await verify.verify_tables(manager, registry, **_verify_options(settings))
    print_report(result, registry, stream=stream)
    return result


async def close_database(manager: Optional[ConnectionManager] = None) -> None:
    manager = manager or get_database_manager()
    await manager.close()
