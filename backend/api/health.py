"""Database readiness endpoint."""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from backend.database import ConnectionManager, DatabaseError, GateOutcome, get_database_manager
from backend.logging_config import get_logger

logger = get_logger(name=__name__)

router = APIRouter(prefix="/v2/health", tags=["Health"])


class DatabaseReadiness(BaseModel):
    status: str  # "ready", "degraded", "failed" or "unknown"
    connected: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    missing_required: list[str] = []
    missing_optional: list[str] = []


def get_manager() -> ConnectionManager:
    return get_database_manager()


@router.get("/database", response_model=DatabaseReadiness)
async def database_readiness(
    request: Request,
    response: Response,
    manager: ConnectionManager = Depends(get_manager),
):
    """Report the startup gate outcome together with a live liveness probe."""
    outcome: Optional[GateOutcome] = getattr(request.app.state, "gate_outcome", None)

    connected = False
    probe_error = None
    try:
        await manager.verify_connection()
        connected = True
    except DatabaseError as e:
        probe_error = str(e)
        logger.warning("Database readiness probe failed: {}", e)

    readiness = DatabaseReadiness(
        status=outcome.state.value if outcome else "unknown",
        connected=connected,
        reason=outcome.reason if outcome else None,
        error=probe_error or (outcome.error if outcome else None),
        missing_required=list(outcome.result.missing_required) if outcome and outcome.result else [],
        missing_optional=list(outcome.result.missing_optional) if outcome and outcome.result else [],
    )

    if not (connected and outcome and outcome.ready):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return readiness
