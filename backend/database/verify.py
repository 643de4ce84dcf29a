"""Table existence verification.

Checks every entry of a ``SchemaRegistry`` against ``information_schema`` and
partitions the registry into existing, missing-required and missing-optional
tables. A check whose query fails is retried a bounded number of times; if it
still fails, the table counts as missing and the error is kept for the report.

DDL is never executed here.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set, Tuple

from backend.database.connection import QueryExecutor
from backend.database.errors import QueryExecutionError, SchemaVerificationError
from backend.database.schema import DEFAULT_REGISTRY, SchemaRegistry
from backend.logging_config import get_logger

logger = get_logger(name=__name__)

TABLE_EXISTS_SQL = """
SELECT EXISTS (
  SELECT FROM information_schema.tables
  WHERE table_schema = :schema
  AND table_name = :table_name
) AS exists
"""

EXISTING_TABLES_SQL = """
SELECT table_name
FROM information_schema.tables
WHERE table_schema = :schema
AND table_name = ANY(:table_names)
"""

DEFAULT_SCHEMA = "public"
DEFAULT_BATCH_THRESHOLD = 50
DEFAULT_RETRIES = 2
DEFAULT_RETRY_DELAY = 0.5


class GateState(str, Enum):
    READY = "ready"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class CheckError:
    """A table whose existence could not be determined."""

    table: str
    error: str


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification pass. Never mutated after construction."""

    existing: FrozenSet[str]
    missing_required: Tuple[str, ...]
    missing_optional: Tuple[str, ...]
    check_errors: Tuple[CheckError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.missing_required

    @property
    def state(self) -> GateState:
        if not self.ok:
            return GateState.FAILED
        if self.missing_optional:
            return GateState.DEGRADED
        return GateState.READY

    def error_for(self, table: str) -> Optional[str]:
        for check_error in self.check_errors:
            if check_error.table == table:
                return check_error.error
        return None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "state": self.state.value,
            "existing": sorted(self.existing),
            "missing_required": list(self.missing_required),
            "missing_optional": list(self.missing_optional),
            "check_errors": {e.table: e.error for e in self.check_errors},
        }


async def _with_retries(coro_factory, label: str, retries: int, retry_delay: float):
    """Run ``coro_factory()`` retrying QueryExecutionError up to ``retries`` extra times."""
    attempt = 0
    while True:
        try:
            return await coro_factory()
        except QueryExecutionError as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(
                "Check for {} failed (attempt {}/{}), retrying: {}",
                label,
                attempt,
                retries + 1,
                e,
            )
            if retry_delay:
                await asyncio.sleep(retry_delay)


async def table_exists(
    executor: QueryExecutor, table_name: str, schema: str = DEFAULT_SCHEMA
) -> bool:
    """Return True if ``schema.table_name`` exists.

    Raises:
        QueryExecutionError: If the catalog query itself fails.
    """
    rows = await executor.execute(
        TABLE_EXISTS_SQL, {"schema": schema, "table_name": table_name}
    )
    return bool(rows and rows[0].get("exists"))


async def fetch_existing_tables(
    executor: QueryExecutor, table_names, schema: str = DEFAULT_SCHEMA
) -> Set[str]:
    """Return which of ``table_names`` exist, using a single catalog query."""
    rows = await executor.execute(
        EXISTING_TABLES_SQL, {"schema": schema, "table_names": list(table_names)}
    )
    return {row["table_name"] for row in rows}


async def _check_sequentially(
    executor: QueryExecutor,
    registry: SchemaRegistry,
    schema: str,
    retries: int,
    retry_delay: float,
) -> Tuple[Set[str], Dict[str, str]]:
    found: Set[str] = set()
    errors: Dict[str, str] = {}
    for definition in registry.all_tables():
        name = definition.name
        try:
            exists = await _with_retries(
                lambda: table_exists(executor, name, schema),
                name,
                retries,
                retry_delay,
            )
        except QueryExecutionError as e:
            logger.error("Error checking table {}: {}", name, e)
            errors[name] = str(e)
            continue
        if exists:
            found.add(name)
    return found, errors


async def _check_batched(
    executor: QueryExecutor,
    registry: SchemaRegistry,
    schema: str,
    retries: int,
    retry_delay: float,
) -> Tuple[Set[str], Dict[str, str]]:
    names = registry.names()
    try:
        found = await _with_retries(
            lambda: fetch_existing_tables(executor, names, schema),
            f"{len(names)} tables",
            retries,
            retry_delay,
        )
    except QueryExecutionError as e:
        logger.error("Error fetching database tables: {}", e)
        return set(), {name: str(e) for name in names}
    return {name for name in names if name in found}, {}


async def verify_tables(
    executor: QueryExecutor,
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    *,
    schema: str = DEFAULT_SCHEMA,
    batch_threshold: int = DEFAULT_BATCH_THRESHOLD,
    retries: int = DEFAULT_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> VerificationResult:
    """Check every registry entry and partition the outcome.

    Small registries are checked one table at a time; registries larger than
    ``batch_threshold`` are checked with a single catalog query.

    Returns:
        VerificationResult with missing tables in registry declaration order.
    """
    if len(registry) > batch_threshold:
        found, errors = await _check_batched(executor, registry, schema, retries, retry_delay)
    else:
        found, errors = await _check_sequentially(executor, registry, schema, retries, retry_delay)

    missing_required = tuple(
        d.name for d in registry.required_tables() if d.name not in found
    )
    missing_optional = tuple(
        d.name for d in registry.optional_tables() if d.name not in found
    )
    check_errors = tuple(
        CheckError(table=d.name, error=errors[d.name])
        for d in registry.all_tables()
        if d.name in errors
    )

    result = VerificationResult(
        existing=frozenset(found),
        missing_required=missing_required,
        missing_optional=missing_optional,
        check_errors=check_errors,
    )
    logger.info(
        "Verified {} tables: {} found, {} required missing, {} optional missing",
        len(registry),
        len(result.existing),
        len(missing_required),
        len(missing_optional),
    )
    return result


async def verify_tables_or_fail(
    executor: QueryExecutor,
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    **kwargs,
) -> VerificationResult:
    """Verify tables and raise if any required table is missing.

    Raises:
        SchemaVerificationError: Carrying every missing required table.
    """
    result = await verify_tables(executor, registry, **kwargs)
    if not result.ok:
        raise SchemaVerificationError(result.missing_required, result)
    return result
