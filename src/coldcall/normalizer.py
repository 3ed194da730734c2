"""Map inbound platform events onto registry operations.

normalize() is a pure function: envelope in, one of PartialUpdate /
AppendMessage / NoOp out. The event-type vocabulary belongs to the platform,
so anything unrecognized is a NoOp rather than an error. Phase rules (such
as nothing leaving ENDED) are enforced by the registry, not here.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Union

from coldcall.personas import assistant_name_for
from coldcall.session import CallAnalysis, CallMessage, CallUpdate
from coldcall.states import Phase, Role

logger = logging.getLogger(__name__)

CALL_STARTED = "call-started"
STATUS_UPDATE = "status-update"
CONVERSATION_UPDATE = "conversation-update"
TRANSCRIPT = "transcript"
END_OF_CALL_REPORT = "end-of-call-report"
SPEECH_UPDATE = "speech-update"
USER_INTERRUPTED = "user-interrupted"


@dataclass
class PartialUpdate:
    call_id: str
    update: CallUpdate


@dataclass
class AppendMessage:
    call_id: str
    message: CallMessage


@dataclass
class NoOp:
    reason: str
    call_id: Optional[str] = None


NormalizedEvent = Union[PartialUpdate, AppendMessage, NoOp]


def unwrap_envelope(body) -> dict:
    """Accept either the bare envelope or one wrapped under "message"."""
    if not isinstance(body, dict):
        raise ValueError(f"Expected a JSON object, got {type(body).__name__}")
    inner = body.get("message")
    if isinstance(inner, dict):
        return inner
    return body


def call_id_of(envelope: dict) -> Optional[str]:
    call = envelope.get("call")
    if isinstance(call, dict) and call.get("id"):
        return str(call["id"])
    return None


def _to_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def extract_analysis(raw, artifact=None) -> Optional[CallAnalysis]:
    """Build a CallAnalysis from the platform's analysis (and artifact) objects.

    Returns None when nothing usable is present.
    """
    raw = raw if isinstance(raw, dict) else {}
    summary = raw.get("summary") if isinstance(raw.get("summary"), str) and raw.get("summary") else None
    structured = raw.get("structuredData") if isinstance(raw.get("structuredData"), dict) else None

    if structured is None and isinstance(artifact, dict):
        outputs = artifact.get("structuredOutputs")
        if isinstance(outputs, dict):
            for output in outputs.values():
                if isinstance(output, dict) and isinstance(output.get("result"), dict):
                    structured = output["result"]
                    break

    analysis = CallAnalysis(
        summary=summary,
        success_evaluation=_to_number(raw.get("successEvaluation")),
        structured_data=structured,
    )
    if analysis.is_empty:
        return None
    return analysis


def _identity_fields(call: dict) -> dict:
    fields = {}
    customer = call.get("customer")
    if isinstance(customer, dict) and customer.get("number"):
        fields["customer_number"] = str(customer["number"])
    name = assistant_name_for(call.get("assistantId"))
    if name:
        fields["assistant_name"] = name
    return fields


def _last_turn(conversation) -> Optional[dict]:
    if not isinstance(conversation, list) or not conversation:
        return None
    last = conversation[-1]
    return last if isinstance(last, dict) else None


def normalize(envelope: dict, now: Optional[float] = None) -> NormalizedEvent:
    now = time.time() if now is None else now
    event_type = envelope.get("type")
    call_id = call_id_of(envelope)
    if call_id is None:
        return NoOp("missing call id")

    call = envelope.get("call") if isinstance(envelope.get("call"), dict) else {}

    if event_type in (CALL_STARTED, STATUS_UPDATE):
        status = envelope.get("status") or call.get("status")
        update = CallUpdate(**_identity_fields(call))
        phase = Phase.parse(status)
        if phase is not None:
            update.phase = phase
            if phase is Phase.ENDED:
                update.ended_at = now
                if envelope.get("endedReason"):
                    update.ended_reason = envelope["endedReason"]
        return PartialUpdate(call_id, update)

    if event_type == CONVERSATION_UPDATE:
        turn = _last_turn(envelope.get("conversation"))
        if turn is None:
            turn = _last_turn(envelope.get("messages"))
        if turn is None:
            return NoOp("empty conversation", call_id)
        role = Role.parse(turn.get("role"))
        content = turn.get("content") or turn.get("message")
        if role is None or not isinstance(content, str):
            return NoOp(f"skipped {turn.get('role')} turn", call_id)
        return AppendMessage(call_id, CallMessage(role=role, content=content, timestamp=now))

    if event_type == TRANSCRIPT:
        transcript = envelope.get("transcript")
        if not isinstance(transcript, str) or not transcript:
            return NoOp("empty transcript", call_id)
        return PartialUpdate(call_id, CallUpdate(transcript=transcript))

    if event_type == END_OF_CALL_REPORT:
        update = CallUpdate(
            phase=Phase.ENDED, ended_at=now, end_of_call=True, **_identity_fields(call)
        )
        if envelope.get("endedReason"):
            update.ended_reason = envelope["endedReason"]
        analysis = extract_analysis(envelope.get("analysis"), envelope.get("artifact"))
        if analysis is not None:
            update.analysis = analysis
        return PartialUpdate(call_id, update)

    return NoOp(f"unhandled event type {event_type!r}", call_id)


def apply_event(registry, envelope: dict, now: Optional[float] = None):
    """Normalize an envelope and apply it to the registry. Returns the call state or None."""
    result = normalize(envelope, now=now)
    if isinstance(result, PartialUpdate):
        return registry.apply(result.call_id, result.update)
    if isinstance(result, AppendMessage):
        registry.append_message(result.call_id, result.message)
        return registry.get(result.call_id)
    logger.debug("Ignoring %s event: %s", envelope.get("type"), result.reason)
    return None
