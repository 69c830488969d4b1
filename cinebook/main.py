from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from cinebook.config import settings
import importlib
import logging
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from cinebook.errors import CinebookError
from cinebook.logging_setup import setup_logging, TRACE_ID_CTX, SESSION_ID_CTX
import uuid
import sentry_sdk

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# initialize logging and Sentry
setup_logging()
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)


@app.middleware("http")
async def add_request_context(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    TRACE_ID_CTX.set(trace_id)
    # booking session: header wins over cookie; issue a new one when neither is present
    session_id = request.headers.get("x-session-id") or request.cookies.get(settings.SESSION_COOKIE_NAME)
    issued = session_id is None
    if issued:
        session_id = uuid.uuid4().hex
    request.state.session_id = session_id
    SESSION_ID_CTX.set(session_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    response.headers["X-Session-Id"] = session_id
    if issued:
        response.set_cookie(settings.SESSION_COOKIE_NAME, session_id, httponly=True, samesite="lax")
    return response


@app.exception_handler(CinebookError)
async def booking_flow_error(request: Request, exc: CinebookError):
    if exc.status_code >= 500:
        logger.warning("booking flow error %s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# module name -> mount prefix
MODULES = {
    "seats": "/showtimes",
    "checkout": "/checkout",
    "bookings": "/bookings",
}


for mod, prefix in MODULES.items():
    pkg = importlib.import_module(f"cinebook.modules.{mod}.router")
    app.include_router(pkg.router, prefix=prefix)


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
    if settings.DRAFT_STORE_BACKEND != "redis":
        return {"status": "ready"}
    try:
        from cinebook.redis_client import redis_client

        await redis_client.ping()
    except Exception:
        return Response(status_code=503, content="redis unavailable")
    return {"status": "ready"}
