"""
HTTP surface: public state/click endpoints and the Telegram admin webhook.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import requests
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError as PydanticValidationError

from .schemas import (
    ClickResponse,
    ErrorResponse,
    PingResponse,
    StateResponse,
    TelegramUpdate,
    WebhookAck,
    update_to_dict,
)
from ..core import config, dao, heartbeat
from ..core.admin import AdminCommandProcessor
from ..core.click_gate import ClickGate
from ..core.confirmations import build_confirmation_store
from ..core.db import health_check, init_db
from ..core.errors import ConflictError, TransientStoreError
from ..core.milestones import MilestoneNotifier
from ..core.notifier import TelegramNotifier, build_notifier
from ..core.rate_limit import ClickAttemptLimiter
from ..core.stall import IdleStallDetector
from ..core.state import StateRepository
from ..util.logging import logger


@dataclass
class Services:
    state: StateRepository
    notifier: object
    click_gate: ClickGate
    admin: AdminCommandProcessor
    stall_detector: IdleStallDetector


def build_services(notifier=None) -> Services:
    """Wire the core components together from configuration."""
    notifier = notifier or build_notifier()
    state = StateRepository()
    limiter = ClickAttemptLimiter(config.CLICK_WINDOW_SEC, config.CLICK_ATTEMPT_LIMIT)
    return Services(
        state=state,
        notifier=notifier,
        click_gate=ClickGate(state, MilestoneNotifier(notifier), limiter),
        admin=AdminCommandProcessor(state, notifier, build_confirmation_store()),
        stall_detector=IdleStallDetector(state, notifier),
    )


_services: Optional[Services] = None


def get_services() -> Services:
    """Lazy initialization of the service graph."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services


app = FastAPI(
    title="Tide Pool API",
    version=config.VERSION,
    description="Public tide pool counter with a Telegram admin channel",
    docs_url="/docs" if config.debug_enabled() else None,
    redoc_url="/redoc" if config.debug_enabled() else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    """Create tables, seed default state and start the idle-stall heartbeat."""
    for issue in config.validate_config():
        logger.warning(f"Config: {issue}")

    init_db()
    if not health_check():
        logger.error(f"Database at {config.DB_PATH} is missing required tables")
    services = get_services()
    seeded = services.state.bootstrap()
    logger.info(f"Database ready ({seeded} state fields seeded)")

    heartbeat.register_task("idle_stall", config.STALL_CHECK_INTERVAL_SEC, services.stall_detector.check)
    heartbeat.start()


@app.on_event("shutdown")
def shutdown():
    heartbeat.stop()
    get_services().notifier.close()


def client_identity(request: Request) -> str:
    """Network identity of the caller.

    Behind one trusted proxy the caller is the last X-Forwarded-For entry,
    the address the proxy itself saw.
    """
    if config.TRUST_PROXY:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[-1].strip()
    return request.client.host if request.client else "unknown"


def _store_failure(e: TransientStoreError) -> JSONResponse:
    logger.error(f"Store failure: {e}")
    return JSONResponse(status_code=500, content=ErrorResponse(error=str(e)).model_dump(exclude_none=True))


@app.get("/state", response_model=StateResponse)
def get_state():
    """Public snapshot of the tide pool."""
    try:
        s = get_services().state.snapshot()
    except TransientStoreError as e:
        return _store_failure(e)

    return StateResponse(
        count=s.count,
        target=s.target,
        ca=s.ca,
        launched=s.launched,
        locked=s.locked,
        lock_msg=s.lock_msg,
        decree=s.decree,
        tide_warning=s.tide_warning,
        blessed=str(s.blessed) if s.blessed else "",
    )


@app.post("/click", response_model=ClickResponse, responses={
    423: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
})
def click(request: Request):
    """Feed the tide pool once per identity per day."""
    identity = client_identity(request)
    try:
        result = get_services().click_gate.click(identity)
    except ConflictError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_payload())
    except TransientStoreError as e:
        return _store_failure(e)

    return ClickResponse(count=result.count, target=result.target, launched=result.launched)


@app.get("/ping", response_model=PingResponse)
def ping():
    """Liveness probe against the durable store."""
    try:
        dao.ping()
    except TransientStoreError as e:
        return JSONResponse(status_code=500, content=PingResponse(ok=False, error=str(e)).model_dump(exclude_none=True))
    return PingResponse(ok=True, time=datetime.now(timezone.utc).isoformat())


def process_update(payload: dict) -> None:
    """Background job: validate a Telegram update and hand it to the admin processor."""
    try:
        update = TelegramUpdate.model_validate(payload)
    except PydanticValidationError as e:
        logger.warning(f"Ignoring malformed Telegram update: {e.error_count()} errors")
        return

    get_services().admin.handle_update(update_to_dict(update))


@app.post("/webhook", response_model=WebhookAck)
async def webhook(request: Request, background_tasks: BackgroundTasks):
    """Acknowledge immediately; the update is processed after the response is sent."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook body is not JSON")
        return WebhookAck()

    if isinstance(payload, dict):
        background_tasks.add_task(process_update, payload)
    return WebhookAck()


@app.get("/setup-webhook")
def setup_webhook(url: str = ""):
    """Register <url>/webhook as the bot's webhook."""
    if not url:
        return PlainTextResponse("Provide ?url=https://your-app.example.com")

    notifier = get_services().notifier
    if not isinstance(notifier, TelegramNotifier):
        return JSONResponse(status_code=503, content={"error": "telegram not configured"})

    try:
        return notifier.set_webhook(url.rstrip("/") + "/webhook")
    except (requests.RequestException, ValueError) as e:
        return JSONResponse(status_code=500, content={"error": str(e)})


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error"}
    if config.debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Static site goes last so the API routes above take precedence
if os.path.isdir(config.PUBLIC_DIR):
    app.mount("/", StaticFiles(directory=config.PUBLIC_DIR, html=True), name="public")
