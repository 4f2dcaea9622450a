from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Response, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import logging
import os
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from . import pubsub
from .database import Base, engine
from .routes import (
    auth,
    users,
    forms,
    sections,
    share,
    audit,
)
from .services.errors import FormWorkflowError

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

dsn = os.getenv("SENTRY_DSN")
if dsn:
    sentry_sdk.init(dsn=dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)
SUBMISSION_COUNT = Counter("section_submissions_total", "Sections locked by their assignee")

if os.getenv("TESTING") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="Collaborative Forms API")

origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = auth.limiter
app.add_exception_handler(RateLimitExceeded, lambda r, e: Response("Too Many Requests", status_code=429))
if os.getenv("TESTING") != "1":
    app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(FormWorkflowError)
async def workflow_error_handler(request: Request, exc: FormWorkflowError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    endpoint = request.url.path
    REQUEST_COUNT.labels(request.method, endpoint).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    if endpoint.startswith("/api/sections/") and endpoint.endswith("/submit") and response.status_code == 200:
        SUBMISSION_COUNT.inc()
    return response

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(forms.router)
app.include_router(sections.router)
app.include_router(share.router)
app.include_router(audit.router)


def audit_routes():
    from fastapi.routing import APIRoute
    from .auth import get_current_user

    public_paths = {
        "/api/auth/login",
        "/metrics",
    }
    public_prefixes = (share.router.prefix,)
    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.path.startswith("/api"):
            continue
        if route.path in public_paths or route.path.startswith(public_prefixes):
            continue
        calls = [dep.call for dep in route.dependant.dependencies]
        if get_current_user not in calls:
            raise RuntimeError(f"Route {route.path} missing authentication")


audit_routes()


@app.websocket("/ws/notifications")
async def websocket_endpoint(websocket: WebSocket):
    r = await pubsub.get_redis()
    pub = r.pubsub()
    await pub.subscribe(pubsub.NOTIFICATION_CHANNEL)
    await websocket.accept()
    try:
        async for message in pub.listen():
            if message["type"] == "message":
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode()
                await websocket.send_text(data)
    except WebSocketDisconnect:
        logger.debug("Notification subscriber disconnected")
    finally:
        await pub.unsubscribe(pubsub.NOTIFICATION_CHANNEL)
