"""FastAPI application entry point"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from tollgate import __version__
from tollgate.api import auth, health
from tollgate.api.error_handling import register_exception_handlers
from tollgate.config import settings
from tollgate.database import init_db
from tollgate.middleware.rate_limit import limiter
from tollgate.utils.logger import logger, setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    if settings.AUTO_CREATE_TABLES:
        init_db()
    logger.info(
        f"Tollgate backend {__version__} starting up "
        f"(jwt={settings.JWT_ALGORITHM}, rate_limiting={settings.RATE_LIMIT_ENABLED}, "
        f"monitoring={settings.METRICS_ENABLED})",
        extra={"action": "startup"},
    )
    yield
    # Shutdown
    logger.info("Tollgate backend shutting down", extra={"action": "shutdown"})


# Create FastAPI app
app = FastAPI(
    title="Tollgate",
    description="Authentication session lifecycle: signup, login, rotating refresh tokens and logout",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ===== Middleware Setup =====

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Monitoring middleware
if settings.METRICS_ENABLED:
    from tollgate.middleware.monitoring import MonitoringMiddleware
    app.add_middleware(MonitoringMiddleware)

    # Prometheus metrics
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health", "/health/ready", "/health/live"],
        inprogress_name="tollgate_requests_inprogress",
        inprogress_labels=True
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# Rate limiting; the limiter is a no-op when RATE_LIMIT_ENABLED is false
app.state.limiter = limiter

# ===== Error Handlers =====

register_exception_handlers(app)

# ===== Route Setup =====

app.include_router(health.router)
app.include_router(auth.router)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "service": "Tollgate",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
        "api": settings.API_PREFIX,
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None
    }
