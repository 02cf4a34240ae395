# app/main.py
"""
FastAPI application entry point.
Includes security middleware, domain/global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import webhooks, toilets, payments, access_logs, health, changes
from app.database import create_tables
from app.config import settings
from app.errors import StoreError, ToiletError
from app.services.overstay_monitor import start_overstay_monitor
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="SmartenGo Toilet Management API",
    description="Pay-per-use toilet occupancy, payment and access-log backend.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (webhooks are called from anywhere, dashboard from the browser) ────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
OPEN_PATHS = {
    "/api/v1/payment-webhook", "/api/v1/sensor-update", "/api/v1/health",
    "/docs", "/redoc", "/openapi.json",
}


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Lightweight API key auth gating the admin dashboard API.
    Webhooks are excluded: sensors and the payment relay don't send keys.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        if request.url.path in OPEN_PATHS or request.method == "OPTIONS" or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(ToiletError)
async def toilet_error_handler(request: Request, exc: ToiletError):
    if isinstance(exc, StoreError):
        logger.error(f"Store error on {request.url.path}: {exc.message}")
    content = {"detail": exc.message}
    if exc.retryable:
        content["retryable"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(webhooks.router,    prefix="/api/v1", tags=["📡 Webhooks"])
app.include_router(toilets.router,     prefix="/api/v1", tags=["🚻 Toilets"])
app.include_router(payments.router,    prefix="/api/v1", tags=["💳 Payments"])
app.include_router(access_logs.router, prefix="/api/v1", tags=["🚨 Access Logs & Alerts"])
app.include_router(health.router,      prefix="/api/v1", tags=["💚 Health"])
app.include_router(changes.router,     prefix="/api/v1", tags=["🔄 Realtime"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 SmartenGo Backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"💳 Tariff: {settings.TARIFF_AMOUNT} {settings.CURRENCY} | "
                f"overstay limit: {settings.OVERSTAY_THRESHOLD_MINUTES} min | "
                f"maintenance clears occupancy: {settings.MAINTENANCE_CLEARS_OCCUPANCY}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")

    app.state.overstay_monitor = start_overstay_monitor()


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 SmartenGo Backend shutting down...")
    monitor = getattr(app.state, "overstay_monitor", None)
    if monitor is not None:
        monitor.cancel()
