"""Per-event-type webhook handlers.

Used by the standalone webhook server to print live call activity. Each
handler runs inside its own try/except so a failing handler never blocks the
others or the webhook response.
"""

import inspect
import logging
import sys
from typing import Callable

from coldcall.console import BRIGHT, DIM, color
from coldcall.normalizer import (
    CALL_STARTED,
    CONVERSATION_UPDATE,
    END_OF_CALL_REPORT,
    SPEECH_UPDATE,
    STATUS_UPDATE,
    TRANSCRIPT,
    USER_INTERRUPTED,
    extract_analysis,
)
from coldcall.states import Role
from coldcall.transcript import format_evaluation

logger = logging.getLogger(__name__)

WILDCARD = "*"


class HandlerRegistry:
    def __init__(self):
        self._handlers: dict[str, list[Callable]] = {}

    def on(self, event_type: str, handler: Callable) -> Callable:
        self._handlers.setdefault(event_type, []).append(handler)
        return handler

    def on_call_started(self, handler: Callable) -> Callable:
        return self.on(CALL_STARTED, handler)

    def on_call_ended(self, handler: Callable) -> Callable:
        return self.on(END_OF_CALL_REPORT, handler)

    def on_transcript(self, handler: Callable) -> Callable:
        return self.on(TRANSCRIPT, handler)

    def on_speech_update(self, handler: Callable) -> Callable:
        return self.on(SPEECH_UPDATE, handler)

    def on_status_update(self, handler: Callable) -> Callable:
        return self.on(STATUS_UPDATE, handler)

    def on_user_interrupted(self, handler: Callable) -> Callable:
        return self.on(USER_INTERRUPTED, handler)

    def handlers_for(self, event_type: str) -> list[Callable]:
        return list(self._handlers.get(event_type, [])) + list(self._handlers.get(WILDCARD, []))

    async def dispatch(self, envelope: dict) -> int:
        """Run every handler for the envelope's type, then wildcard handlers.

        Returns the number of handlers that failed.
        """
        event_type = envelope.get("type")
        failures = 0
        for handler in self.handlers_for(event_type):
            try:
                result = handler(envelope)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                failures += 1
                logger.exception("Error in handler for %s", event_type)
        return failures


def setup_default_handlers(handlers: HandlerRegistry, out=None) -> HandlerRegistry:
    """Register the console handlers used by `coldcall webhook`."""
    out = out or sys.stdout

    def emit(line: str = "") -> None:
        print(line, file=out)

    def call_of(msg: dict) -> dict:
        return msg.get("call") if isinstance(msg.get("call"), dict) else {}

    @handlers.on_call_started
    def _started(msg):
        call = call_of(msg)
        emit(f"\n📞 Call started: {call.get('id')}")
        emit(f"   Customer: {(call.get('customer') or {}).get('number')}")
        control_url = (call.get("monitor") or {}).get("controlUrl")
        if control_url:
            emit(f"   🎧 Listen URL: {control_url.replace('/control', '/listen')}")
        emit()

    @handlers.on_transcript
    def _transcript(msg):
        if msg.get("transcript"):
            emit(f"💬 {msg['transcript']}")

    def _conversation(msg):
        conversation = msg.get("conversation") or []
        if not conversation:
            return
        last = conversation[-1]
        who = "🤖 Joey" if Role.parse(last.get("role")) == Role.ASSISTANT else "👤 Caller"
        emit(f"{who}: {last.get('content', '')}")

    handlers.on(CONVERSATION_UPDATE, _conversation)

    @handlers.on_call_ended
    def _ended(msg):
        emit(f"\n📴 Call ended: {call_of(msg).get('id')}")
        emit(f"   Reason: {msg.get('endedReason')}")
        analysis = extract_analysis(msg.get("analysis"), msg.get("artifact"))
        if analysis is None:
            emit(color("   No analysis in report", DIM))
            return
        emit(f"\n📊 {color('Analysis:', BRIGHT)}")
        emit(f"   Summary: {analysis.summary}")
        emit(f"   Success Score: {analysis.success_evaluation}")
        if analysis.structured_data:
            emit(f"\n🎯 {color('SDR Evaluation:', BRIGHT)}")
            for line in format_evaluation(analysis.structured_data):
                emit(f"   {line}")

    @handlers.on_user_interrupted
    def _interrupted(msg):
        emit(f"🗣️ User interrupted: {call_of(msg).get('id')}")

    return handlers
