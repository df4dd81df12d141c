# Application entrypoint: configures logging, middleware, error mapping and API routers.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from .db import Base, engine, is_sqlite
from .errors import BusyError, EstateHubError
from .logging_config import setup_logging
from .routes.admin import router as admin_router
from .routes.auth import router as auth_router
from .routes.notifications import router as notifications_router
from .routes.owner import router as owner_router
from .routes.properties import router as properties_router
from .routes.property_requests import router as property_requests_router

logger = logging.getLogger("estatehub.api")


# Parse CORS origins from a comma-separated env var.
# Note: '*' cannot be used with allow_credentials=True; we fall back to explicit localhost origins for dev.
def _parse_cors_origins(env_value: str | None) -> list[str]:
    default_dev_origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    if not env_value:
        return default_dev_origins

    origins = [o.strip() for o in env_value.split(",") if o.strip()]
    if "*" in origins:
        return default_dev_origins

    return origins


app = FastAPI(title="EstateHub API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_cors_origins(os.getenv("CORS_ORIGINS")),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EstateHubError)
async def estatehub_error_handler(request: Request, exc: EstateHubError) -> JSONResponse:
    """Render domain errors as {"error": kind, "detail": reason} with the mapped status."""
    logger.info(
        "request.rejected",
        extra={"path": request.url.path, "error_kind": exc.kind, "detail": exc.detail},
    )
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, BusyError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.on_event("startup")
def on_startup() -> None:
    setup_logging()
    # For local SQLite, auto-create tables; production DBs rely on Alembic migrations.
    if is_sqlite():
        Base.metadata.create_all(bind=engine)


# Simple liveness endpoint for container orchestrators and uptime checks
@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(auth_router, prefix="", tags=["auth"])
app.include_router(properties_router, prefix="/api/v1", tags=["properties"])
app.include_router(owner_router, prefix="/api/v1", tags=["owner"])
app.include_router(admin_router, prefix="/api/v1", tags=["admin"])
app.include_router(property_requests_router, prefix="/api/v1", tags=["property-requests"])
app.include_router(notifications_router, prefix="/api/v1", tags=["notifications"])
