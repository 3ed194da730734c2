import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coldcall.config import Settings, require_api_key
from coldcall.errors import CallNotFoundError, ColdCallError, ConfigurationError, PlatformError
from coldcall.fanout import DEFAULT_HEARTBEAT_SECONDS, event_stream
from coldcall.handlers import HandlerRegistry
from coldcall.launcher import launch
from coldcall.normalizer import apply_event, call_id_of, unwrap_envelope
from coldcall.platform import VapiClient
from coldcall.reconcile import call_state_from_platform
from coldcall.registry import CallRegistry, get_registry
from coldcall.signature import SIGNATURE_HEADER, verify_signature
from coldcall.stats import leaderboard, summarize

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"


def _error_response(error: Exception) -> JSONResponse:
    if isinstance(error, CallNotFoundError):
        status = 404
    elif isinstance(error, PlatformError):
        status = 502
    else:
        status = 500
    return JSONResponse({"error": str(error) or type(error).__name__}, status_code=status)


def create_app(
    registry: Optional[CallRegistry] = None,
    settings: Optional[Settings] = None,
    path: str = WEBHOOK_PATH,
    handlers: Optional[HandlerRegistry] = None,
    platform_factory: Optional[Callable[[], VapiClient]] = None,
    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
) -> FastAPI:
    """Build the webhook + dashboard app around one registry."""
    registry = registry if registry is not None else get_registry()
    settings = settings if settings is not None else Settings.from_env()
    handlers = handlers if handlers is not None else HandlerRegistry()

    if platform_factory is None:
        def platform_factory() -> VapiClient:
            return VapiClient(api_key=require_api_key(settings), base_url=settings.base_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registry.start()
        logger.info("Webhook endpoint ready at %s (signatures %s)",
                    path, "required" if settings.webhook_secret else "not verified")
        yield
        await registry.stop()

    app = FastAPI(title="coldcall", lifespan=lifespan)
    app.state.registry = registry
    app.state.handlers = handlers

    @app.exception_handler(StarletteHTTPException)
    async def not_found(request: Request, exc: StarletteHTTPException):
        # Wrong method on a known path is reported the same as an unknown path.
        if exc.status_code in (404, 405):
            return PlainTextResponse("Not Found", status_code=404)
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post(path)
    async def webhook(request: Request):
        body = await request.body()

        if settings.webhook_secret:
            signature = request.headers.get(SIGNATURE_HEADER)
            if not verify_signature(body, signature, settings.webhook_secret):
                logger.warning("Invalid webhook signature")
                return JSONResponse({"error": "Invalid signature"}, status_code=401)

        try:
            envelope = unwrap_envelope(json.loads(body))
            call = envelope.get("call") if isinstance(envelope.get("call"), dict) else {}
            logger.info(
                "Webhook received: %s call=%s status=%s",
                envelope.get("type"), call_id_of(envelope), call.get("status"),
            )
            apply_event(registry, envelope)
        except Exception:
            logger.exception("Webhook error")
            return JSONResponse({"error": "Internal server error"}, status_code=500)

        await handlers.dispatch(envelope)
        return {"received": True}

    # --- push channel ---

    @app.get("/api/stream")
    async def stream(request: Request):
        return StreamingResponse(
            event_stream(registry, heartbeat_seconds=heartbeat_seconds, is_disconnected=request.is_disconnected),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache, no-transform",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    # --- registry views ---

    @app.get("/api/calls")
    async def calls(active: bool = False):
        selected = registry.get_active() if active else registry.get_all()
        return {"calls": [c.to_dict() for c in selected]}

    @app.get("/api/calls/{call_id}")
    async def call_detail(call_id: str):
        call = registry.get(call_id)
        if call is None:
            return JSONResponse({"error": f"Call not found: {call_id}"}, status_code=404)
        return call.to_dict()

    @app.get("/api/stats")
    async def stats():
        return summarize(registry.get_all())

    @app.get("/api/leaderboard")
    async def leaderboard_view():
        return {"leaderboard": leaderboard(registry.get_all())}

    # --- platform passthrough ---

    @app.get("/api/vapi/assistants")
    async def vapi_assistants():
        try:
            async with platform_factory() as client:
                assistants = await client.list_assistants()
        except ColdCallError as e:
            logger.error("[Assistants API] %s", e)
            return _error_response(e)
        return {
            "assistants": [
                {
                    "id": a.get("id"),
                    "name": a.get("name"),
                    "model": a.get("model"),
                    "createdAt": a.get("createdAt"),
                }
                for a in assistants
            ]
        }

    @app.get("/api/vapi/calls")
    async def vapi_calls(id: Optional[str] = None, assistantId: Optional[str] = None, limit: int = 50):
        try:
            async with platform_factory() as client:
                if id:
                    return call_state_from_platform(await client.get_call(id)).to_dict()
                raw = await client.list_calls(assistant_id=assistantId, limit=limit)
        except ColdCallError as e:
            logger.error("[Calls API] %s", e)
            return _error_response(e)
        return {"calls": [call_state_from_platform(c).to_dict() for c in raw]}

    @app.get("/api/vapi/configure")
    async def vapi_configuration():
        try:
            async with platform_factory() as client:
                assistants = await client.list_assistants()
                phones = await client.list_phone_numbers()
        except ColdCallError as e:
            logger.error("[Configure] %s", e)
            return _error_response(e)
        return {
            "assistants": [
                {"id": a.get("id"), "name": a.get("name"), "webhookUrl": (a.get("server") or {}).get("url")}
                for a in assistants
            ],
            "phoneNumbers": [
                {"id": p.get("id"), "number": p.get("number"), "webhookUrl": (p.get("server") or {}).get("url")}
                for p in phones
            ],
        }

    @app.post("/api/vapi/configure")
    async def vapi_configure(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            payload = {}
        webhook_url = payload.get("webhookUrl") if isinstance(payload, dict) else None
        if not webhook_url:
            return JSONResponse({"error": "webhookUrl is required"}, status_code=400)
        try:
            async with platform_factory() as client:
                return await client.configure_webhooks(webhook_url)
        except ColdCallError as e:
            logger.error("[Configure] %s", e)
            return _error_response(e)

    @app.post("/api/vapi/call")
    async def vapi_launch(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict) or not payload.get("number"):
            return JSONResponse({"error": "number is required"}, status_code=400)
        if not isinstance(payload["number"], str):
            return JSONResponse({"error": "number must be a string"}, status_code=400)
        try:
            scheduled_at = payload.get("scheduledAt")
            if scheduled_at:
                try:
                    scheduled_at = datetime.fromisoformat(scheduled_at.replace("Z", "+00:00"))
                except (AttributeError, ValueError):
                    raise ConfigurationError(f"Invalid scheduledAt: {scheduled_at!r}") from None
            async with platform_factory() as client:
                result = await launch(
                    client,
                    payload["number"],
                    persona_key=payload.get("persona"),
                    line_key=payload.get("line"),
                    scheduled_at=scheduled_at or None,
                )
        except ColdCallError as e:
            logger.error("[Launch] %s", e)
            return _error_response(e)
        return result.to_dict()

    return app


def run(
    port: int,
    settings: Optional[Settings] = None,
    handlers: Optional[HandlerRegistry] = None,
    host: str = "0.0.0.0",
) -> None:
    """Serve the webhook ingress in the foreground until interrupted."""
    app = create_app(settings=settings, handlers=handlers)
    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    load_dotenv()
    run(Settings.from_env().port)
