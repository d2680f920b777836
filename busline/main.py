import importlib
import logging
import uuid

import sentry_sdk
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from busline.config import settings
from busline.logging_setup import setup_logging, TRACE_ID_CTX
from busline.db.session import engine
from busline.redis_client import redis_client
from busline.services.errors import DataAccessError

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


@app.exception_handler(DataAccessError)
async def data_access_error(request: Request, exc: DataAccessError):
    logger.error("Data access error on %s: %s", request.url.path, exc.__cause__ or exc)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable, please retry"})


# module name -> router package under busline.modules
MODULES = [
    "auth",
    "catalog",
    "bookings",
    "payments",
    "admin",
]


for mod in MODULES:
    pkg = importlib.import_module(f"busline.modules.{mod}.router")
    app.include_router(pkg.router, prefix=f"/{mod}")


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    # simple readiness: redis and the database answer
    try:
        await redis_client.ping()
    except Exception:
        return Response(status_code=503, content="redis unavailable")
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        return Response(status_code=503, content="database unavailable")
    return {"status": "ready"}
