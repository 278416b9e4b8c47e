"""FastAPI application — Twilio voice webhooks for the booking assistant.

Endpoints:

  POST /twilio/voice      New inbound call: fresh session, welcome menu
  POST /twilio/turn       One dialogue turn (Gather action): SpeechResult / Digits
  POST /twilio/agent      Transfer the call to a live agent
  POST /twilio/sip        Outbound dial for calls placed from a SIP softphone
  GET  /health            Health check

  GET    /api/sessions               Admin: list live sessions
  GET    /api/sessions/{caller_id}   Admin: one session
  DELETE /api/sessions/{caller_id}   Admin: drop a session
  WS     /api/sessions/{caller_id}/debug   Admin: live turn events

The Twilio flow:
  1. Incoming call hits POST /twilio/voice
  2. We return TwiML with <Gather> whose action is /twilio/turn
  3. Each keypress / utterance (or silence) posts to /twilio/turn
  4. The DialogueController answers with the next <Gather>, a <Dial>
     to an agent, or a <Hangup/>
"""

from __future__ import annotations

# Load .env into os.environ before the Google client libraries look for
# credentials.
from dotenv import load_dotenv
load_dotenv()

import logging
import time

# Configure root logger early so all app loggers are visible when run
# via `uvicorn booking_line.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from booking_line import twiml
from booking_line.auth import require_admin_token, require_admin_ws
from booking_line.config import settings
from booking_line.debug_events import get_broadcaster, remove_broadcaster
from booking_line.dialogue.controller import DialogueController
from booking_line.dialogue.finalizer import BookingFinalizer
from booking_line.dialogue.policy import RetryPolicy
from booking_line.dialogue.router import IntentRouter
from booking_line.models.session import TurnInput
from booking_line.store import SessionStore, redact_pii

log = logging.getLogger("booking_line.app")

_START_TIME = time.time()


def _xml(content: str) -> Response:
    return Response(content=content, media_type="application/xml")


async def _form_value(request: Request, key: str) -> str:
    form = await request.form()
    value = form.get(key, "")
    return str(value).strip() if value is not None else ""


WITHHELD_CALLER_IDS = {"", "anonymous", "restricted", "unknown"}


async def _caller_key(request: Request) -> str:
    """Session key for a call: the caller number, or the CallSid when withheld."""
    caller_id = await _form_value(request, "From")
    if caller_id.lower() in WITHHELD_CALLER_IDS:
        return await _form_value(request, "CallSid") or "anonymous"
    return caller_id


def create_app(controller: DialogueController | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    for warning in settings.validate_startup():
        log.warning(warning)

    controller = controller or _create_controller()

    app = FastAPI(
        title="Phone Booking Assistant",
        description="Twilio voice booking assistant with a per-caller dialogue FSM",
        version="0.1.0",
    )
    app.state.controller = controller

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check — confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "sessions": len(controller.store),
        })

    # ── Twilio voice webhooks ──────────────────────────────────

    @app.post("/twilio/voice")
    async def twilio_voice(request: Request) -> Response:
        """Twilio webhook for incoming calls."""
        call_sid = await _form_value(request, "CallSid")
        result = controller.start_call(await _caller_key(request), call_sid)
        return _xml(result.twiml)

    @app.post("/twilio/turn")
    async def twilio_turn(request: Request) -> Response:
        """Gather action: one keypress or utterance from the caller."""
        turn = TurnInput(
            caller_id=await _caller_key(request),
            call_sid=await _form_value(request, "CallSid"),
            utterance=await _form_value(request, "SpeechResult"),
            digits=await _form_value(request, "Digits"),
        )
        result = await controller.handle_turn(turn)
        return _xml(result.twiml)

    @app.post("/twilio/agent")
    async def twilio_agent(request: Request) -> Response:
        """Connect the caller to a live agent."""
        return _xml(controller.agent_transfer(await _caller_key(request)))

    @app.post("/twilio/sip")
    async def twilio_sip(request: Request) -> Response:
        """Outbound call from a registered SIP softphone."""
        dialed = twiml.normalize_e164(await _form_value(request, "To"))
        log.info("SIP outbound call to %s", redact_pii(dialed))
        if not dialed:
            return _xml(twiml.hangup("Sorry, that number could not be dialed."))
        return _xml(twiml.dial_out(dialed, settings.twilio_phone_number))

    # ── Admin session API ──────────────────────────────────────

    @app.get("/api/sessions", dependencies=[Depends(require_admin_token)])
    async def list_sessions() -> JSONResponse:
        sessions = controller.store.snapshot()
        return JSONResponse({
            "sessions": [s.model_dump(mode="json") for s in sessions],
            "count": len(sessions),
        })

    @app.get("/api/sessions/{caller_id}", dependencies=[Depends(require_admin_token)])
    async def get_session(caller_id: str) -> JSONResponse:
        session = controller.store.get(caller_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(session.model_dump(mode="json"))

    @app.delete("/api/sessions/{caller_id}", dependencies=[Depends(require_admin_token)])
    async def delete_session(caller_id: str) -> JSONResponse:
        if not controller.store.discard(caller_id):
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse({"deleted": caller_id})

    @app.websocket("/api/sessions/{caller_id}/debug")
    async def debug_stream(
        websocket: WebSocket,
        caller_id: str,
        allowed: bool = Depends(require_admin_ws),
    ) -> None:
        """WebSocket endpoint that streams real-time turn events."""
        if not allowed:
            return

        await websocket.accept()
        broadcaster = get_broadcaster(caller_id)
        queue = broadcaster.subscribe()

        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(queue)
            if broadcaster.subscriber_count == 0:
                remove_broadcaster(caller_id)

    return app


# ── Helper functions ──────────────────────────────────────────────

def _create_controller() -> DialogueController:
    """Create a DialogueController with configured collaborators."""
    nlu_provider = None
    calendar_provider = None
    if settings.google_service_account_json:
        try:
            from booking_line.nlu_providers.dialogflow import DialogflowNLUProvider
            nlu_provider = DialogflowNLUProvider(
                project_id=settings.dialogflow_project_id,
                service_account=settings.google_service_account_json,
                timeout_seconds=settings.nlu_timeout_seconds,
            )
        except Exception as e:
            log.warning("Dialogflow not configured: %s", e)

        try:
            from booking_line.calendar_providers.google import GoogleCalendarProvider
            calendar_provider = GoogleCalendarProvider(
                service_account=settings.google_service_account_json,
                timezone_name=settings.calendar_timezone,
            )
        except Exception as e:
            log.warning("Google Calendar not configured: %s", e)

    router = IntentRouter(
        policy=RetryPolicy(max_failures=settings.max_failures),
        correction_target=settings.correction_target,
        business_name=settings.business_name,
    )
    finalizer = BookingFinalizer(
        provider=calendar_provider,
        calendar_id=settings.google_calendar_id,
        timezone_name=settings.calendar_timezone,
        duration_minutes=settings.appointment_duration_minutes,
        timeout_seconds=settings.calendar_timeout_seconds,
    )
    return DialogueController(
        store=SessionStore(ttl_seconds=settings.session_ttl_seconds),
        router=router,
        finalizer=finalizer,
        nlu=nlu_provider,
        business_name=settings.business_name,
        transfer_number=settings.transfer_number,
        action_url=settings.action_url("/twilio/turn"),
        gather_timeout=settings.gather_timeout_seconds,
        language_code=settings.language_code,
        nlu_timeout_seconds=settings.nlu_timeout_seconds,
    )


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "booking_line.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
