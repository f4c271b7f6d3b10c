# fleetlog/main.py
"""
FastAPI application entry point — local gateway in front of the fleet backend.
Includes request timing, error mapping for the service error taxonomy, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fleetlog.routers import session, travel_logs, fuel, admin, health
from fleetlog.database import create_tables
from fleetlog.dependencies import build_services
from fleetlog.config import settings
from fleetlog.errors import AuthError, FleetLogError, NetworkError, UploadError, ValidationError
from fleetlog.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="FleetLog Driver Gateway",
    description="Travel logs, fuel records and driver administration for the fleet backend.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (the driver app's webview calls the gateway) ────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


def error_status(exc: FleetLogError) -> int:
    if isinstance(exc, AuthError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, UploadError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, NetworkError) and exc.status_code and 400 <= exc.status_code < 500:
        return exc.status_code
    return status.HTTP_502_BAD_GATEWAY


# ── Error Handlers ───────────────────────────────────────────────────────────
@app.exception_handler(FleetLogError)
async def fleetlog_error_handler(request: Request, exc: FleetLogError):
    code = error_status(exc)
    logger.info(f"{request.method} {request.url.path} → {code} {exc.__class__.__name__}: {exc.message}")
    return JSONResponse(
        status_code=code,
        content={"detail": exc.message, "error": exc.__class__.__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(session.router,     prefix="/api/v1", tags=["🔑 Session"])
app.include_router(travel_logs.router, prefix="/api/v1", tags=["🚗 Travel Logs"])
app.include_router(fuel.router,        prefix="/api/v1", tags=["⛽ Fuel Records"])
app.include_router(admin.router,       prefix="/api/v1", tags=["👤 Admin"])
app.include_router(health.router,      prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 FleetLog gateway starting up...")
    create_tables()
    logger.info("✅ Local cache ready")
    if not getattr(app.state, "services", None):
        app.state.services = build_services()
    current = app.state.services.session_store.current
    logger.info(f"🔑 Session: {current.name + ' (' + current.role + ')' if current else 'none'}")
    logger.info(f"🌐 Backend: {settings.API_BASE_URL}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 FleetLog gateway shutting down...")
    await app.state.services.aclose()
