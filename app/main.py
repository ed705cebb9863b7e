import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, HTTPException
from fastapi.responses import PlainTextResponse, JSONResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from sqlgate.prom import REGISTRY
from sqlgate.errors import GatewayError
from app.dependencies import get_gateway_service
from app.routers import dev, tools
from app.services.gateway_service import GatewayService
from app.settings import get_settings
from app.exception_handlers import register_exception_handlers

try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # Best-effort .env loading; app must not crash if dotenv is missing.
    pass


logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigError here aborts start-up: a bad URL list is not recoverable.
    app.state.gateway = GatewayService.from_settings(get_settings())
    try:
        yield
    finally:
        app.state.gateway.close()
        app.state.gateway = None
        logger.info("Gateway service closed")


# ----------------------------------------------------------------------------
#  App definition
# ----------------------------------------------------------------------------
application = FastAPI(
    title="SQLGate",
    version=settings.app_version,
    description="Safety-gated introspection and query tools for SQL databases",
    lifespan=lifespan,
)
register_exception_handlers(application)

# Register only versioned API
application.include_router(tools.router, prefix="/api/v1")

# Register Dev-only routes (only when APP_ENV=dev)
if os.getenv("APP_ENV", "dev").lower() == "dev":
    application.include_router(dev.router, prefix="/api/v1")


@application.exception_handler(HTTPException)
async def http_exception_to_error_contract(request: Request, exc: HTTPException):
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ----------------------------------------------------------------------------
#  Prometheus Metrics Middleware
# ----------------------------------------------------------------------------
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status_code"],
    registry=REGISTRY,
)
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "Request latency (seconds)",
    ["path", "method"],
    registry=REGISTRY,
)


@application.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.perf_counter()
    response: Response = await call_next(request)
    elapsed = time.perf_counter() - start
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    name = getattr(route, "name", None) or path

    REQUEST_COUNT.labels(
        path=name,
        method=request.method,
        status_code=str(getattr(response, "status_code", 500)),
    ).inc()
    REQUEST_LATENCY.labels(path=name, method=request.method).observe(elapsed)
    return response


# ----------------------------------------------------------------------------
#  System Endpoints
# ----------------------------------------------------------------------------
@application.get("/healthz", response_class=PlainTextResponse, tags=["system"])
def healthz() -> str:
    return "ok"


@application.get("/readyz", response_class=PlainTextResponse, tags=["system"])
def readyz(svc: GatewayService = Depends(get_gateway_service)) -> str:
    """
    Readiness probe: ping every registered database.
    An empty registry is not ready.
    """
    if not svc.registry.entries:
        raise HTTPException(status_code=503, detail="not ready: no databases")
    for entry in svc.registry.entries:
        try:
            entry.adapter.ping()
        except GatewayError as exc:
            logger.warning(
                "Readiness ping failed",
                extra={"database": entry.name, "error": exc.message},
            )
            raise HTTPException(status_code=503, detail=f"not ready: {entry.name}")
    return "ready"


@application.get("/metrics", tags=["system"])
def metrics():
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


app = application
