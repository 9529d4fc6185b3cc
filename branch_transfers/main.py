import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from branch_transfers.api import auth, transfers
from branch_transfers.config import settings
from branch_transfers.database import create_db_engine, create_session_factory, init_db
from branch_transfers.services.auth_service import ensure_default_admin

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)

    engine = create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    app.state.session_factory = create_session_factory(engine)

    # Create default admin if no users
    db = app.state.session_factory()
    try:
        ensure_default_admin(db)
    finally:
        db.close()

    logger.info("%s started", settings.APP_NAME)
    yield
    engine.dispose()


app = FastAPI(
    title="Branch Transfers API",
    description="Cross-branch transfers of jobs, inventory, assets and users with an audited status workflow",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    if isinstance(exc, OperationalError):
        return JSONResponse(status_code=503, content={"detail": "Database unavailable, please try again later"})
    return JSONResponse(status_code=500, content={"detail": "Unexpected database error"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so clients can parse the error."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(transfers.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("branch_transfers.main:app", host="0.0.0.0", port=8000)
