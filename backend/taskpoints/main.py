import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from taskpoints.core.config import settings
from taskpoints.core.database import engine, Base
from taskpoints.core.exceptions import InvalidCredentialsError, PointsError
from taskpoints.api.routes import auth, users

# Register models on Base.metadata before create_all
from taskpoints.models import task, user  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage app lifecycle events.

    Startup: create tables if they don't exist (Alembic handles this in production)
    """
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    yield
    engine.dispose()


app = FastAPI(
    title="Task Points API",
    description="User point balances, task completions, referrals and leaderboard",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PointsError)
async def points_error_handler(request: Request, exc: PointsError):
    """Map service errors to their HTTP status; details of store failures stay in the logs"""
    headers = None
    if isinstance(exc, InvalidCredentialsError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


# All routes are prefixed with /api for consistency
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {"message": "Task Points API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return {"status": "healthy"}
