from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from app.config import settings
import importlib
import logging
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from app.logging_setup import setup_logging, TRACE_ID_CTX
import uuid
import sentry_sdk
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
from redis.exceptions import RedisError
from app.redis_client import redis_client
from app.services.errors import ReservationError

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# initialize logging and Sentry
setup_logging()
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)
    app.add_middleware(SentryAsgiMiddleware)


@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    TRACE_ID_CTX.set(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    return response


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "code": "internal_error", "message": "Internal server error"})


# List of module names to include as routers
MODULES = [
    "bookings",
    "links",
    "payments",
    "admin",
]


for mod in MODULES:
    pkg = importlib.import_module(f"app.modules.{mod}.router")
    app.include_router(pkg.router, prefix=f"/{mod}", tags=[mod])


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/metrics")
async def metrics():
    content = generate_latest()
    return Response(content=content, media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    # simple readiness: check redis
    try:
        await redis_client.ping()
    except (RedisError, OSError):
        logger.warning("Readiness check failed: redis unavailable")
        return Response(status_code=503, content="redis unavailable")
    return {"status": "ready"}
