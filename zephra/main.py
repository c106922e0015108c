import logging
import sys
import uuid as uuid_pkg
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from zephra.api.router import api_router
from zephra.config import settings
from zephra.core.database import init_db
from zephra.core.error_handler import register_exception_handlers


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)

    # Quieten uvicorn access logs (we'll log requests ourselves)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    setup_logging()
    logger.info(f"Zephra API starting up ({settings.environment})")
    if not settings.stripe_enabled:
        logger.warning("STRIPE_SECRET_KEY not set - checkout and portal are disabled")
    if settings.debug:
        await init_db()
    yield
    logger.info("Zephra API shutting down")


app = FastAPI(
    title="Zephra API",
    description="Marketing automation API - plans, checkout and Stripe billing",
    version="0.1.0",
    lifespan=lifespan,
)

# Proxy headers middleware - trust X-Forwarded-* from the reverse proxy
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag each request with an id and log failures and billing calls."""
    request_id = request.headers.get("x-request-id") or str(uuid_pkg.uuid4())
    request.state.request_id = request_id

    # Skip OPTIONS (CORS preflight) and health checks
    if request.method == "OPTIONS" or request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)
    response.headers["x-request-id"] = request_id

    # Only log non-2xx or billing endpoints
    path = request.url.path
    if response.status_code >= 400 or path.startswith(("/api/webhooks", "/api/stripe")):
        logger.info(f"{request.method} {path} -> {response.status_code}")

    return response


# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
