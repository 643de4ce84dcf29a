from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.api import health
from backend.database import (
    GateState,
    close_database,
    get_database_manager,
    print_report,
    run_startup_gate,
)
from backend.logging_config import configure_logging, get_logger
from backend.settings import get_settings

logger = get_logger(name=__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Refuse to serve requests until the database gate passes."""
    settings = get_settings()
    configure_logging(settings.log_level)
    manager = get_database_manager()

    outcome = await run_startup_gate(manager, settings=settings)
    if outcome.result is not None:
        print_report(outcome.result)

    if outcome.state is GateState.FAILED:
        await close_database(manager)
        error_msg = f"Database gate failed ({outcome.reason}): {outcome.error}"
        logger.error(error_msg)
        raise SystemExit(error_msg)

    app.state.gate_outcome = outcome
    try:
        yield
    finally:
        await close_database(manager)


def create_app() -> FastAPI:
    app = FastAPI(title="YektaYar Backend", lifespan=lifespan)
    app.include_router(health.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.uvicorn_host, port=settings.uvicorn_port)
