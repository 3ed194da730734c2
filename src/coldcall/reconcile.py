"""Pull-side reconciliation: rebuild call state from the platform query API.

Used by the CLI, which has no webhook feed. Results come back in the same
CallState shape the registry holds, via the same analysis extraction the
webhook path uses.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from coldcall.errors import AnalysisTimeoutError, ConfigurationError
from coldcall.normalizer import extract_analysis
from coldcall.personas import assistant_name_for
from coldcall.session import DEFAULT_ASSISTANT_NAME, UNKNOWN_NUMBER, CallMessage, CallState
from coldcall.states import Phase, Role

logger = logging.getLogger(__name__)

DEFAULT_MAX_WAIT = 30.0
DEFAULT_POLL_INTERVAL = 2.0


@dataclass
class CallAnalysisResult:
    call_id: str
    summary: Optional[str] = None
    success_score: Optional[float] = None
    evaluation: Optional[dict] = None
    transcript: Optional[str] = None

    @property
    def ready(self) -> bool:
        return bool(self.summary) or bool(self.evaluation)


def parse_timestamp(value) -> Optional[float]:
    """ISO 8601 string (or epoch milliseconds) to epoch seconds."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value / 1000.0
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None


def _messages_from_platform(call: dict, default_time: float) -> list:
    raw = call.get("messages")
    if not isinstance(raw, list):
        raw = (call.get("artifact") or {}).get("messages")
    if not isinstance(raw, list):
        return []

    messages = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        role = Role.parse(entry.get("role"))
        content = entry.get("message") or entry.get("content")
        if role is None or not isinstance(content, str):
            continue
        timestamp = parse_timestamp(entry.get("time"))
        messages.append(CallMessage(role=role, content=content, timestamp=timestamp or default_time))
    return messages


def call_state_from_platform(call: dict) -> CallState:
    started_at = (
        parse_timestamp(call.get("startedAt"))
        or parse_timestamp(call.get("createdAt"))
        or time.time()
    )
    phase = Phase.parse(call.get("status")) or Phase.RINGING
    ended_at = parse_timestamp(call.get("endedAt")) if phase is Phase.ENDED else None
    if phase is Phase.ENDED and ended_at is None:
        ended_at = parse_timestamp(call.get("updatedAt")) or started_at

    customer = call.get("customer") if isinstance(call.get("customer"), dict) else {}
    transcript = call.get("transcript") or (call.get("artifact") or {}).get("transcript")

    return CallState(
        id=str(call.get("id", "")),
        started_at=started_at,
        phase=phase,
        customer_number=customer.get("number") or UNKNOWN_NUMBER,
        assistant_name=assistant_name_for(call.get("assistantId")) or DEFAULT_ASSISTANT_NAME,
        ended_at=ended_at,
        ended_reason=call.get("endedReason"),
        transcript=transcript if isinstance(transcript, str) else None,
        messages=_messages_from_platform(call, started_at),
        analysis=extract_analysis(call.get("analysis"), call.get("artifact")),
    )


def analysis_from_platform(call: dict) -> CallAnalysisResult:
    state = call_state_from_platform(call)
    result = CallAnalysisResult(call_id=state.id, transcript=state.transcript)
    if state.analysis is not None:
        result.summary = state.analysis.summary
        result.success_score = state.analysis.success_evaluation
        result.evaluation = state.analysis.structured_data
    return result


async def fetch_call(client, call_id: str) -> CallState:
    return call_state_from_platform(await client.get_call(call_id))


async def get_call_analysis(client, call_id: str) -> CallAnalysisResult:
    result = analysis_from_platform(await client.get_call(call_id))
    result.call_id = result.call_id or call_id
    return result


async def wait_for_analysis(
    client,
    call_id: str,
    max_wait: float = DEFAULT_MAX_WAIT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    clock=time.monotonic,
    sleep=asyncio.sleep,
) -> CallAnalysisResult:
    """Poll until the call has a summary or evaluation.

    Polls at most once per poll_interval and never runs past max_wait, even
    when a single fetch is slow. Raises AnalysisTimeoutError when the budget
    is spent; CallNotFoundError and other PlatformErrors propagate as-is.
    """
    if poll_interval <= 0:
        raise ConfigurationError(f"poll_interval must be positive, got {poll_interval!r}")
    start = clock()
    attempts = 0

    def remaining() -> float:
        return max_wait - (clock() - start)

    while remaining() > 0:
        attempts += 1
        try:
            result = await asyncio.wait_for(get_call_analysis(client, call_id), timeout=remaining())
        except asyncio.TimeoutError:
            break
        if result.ready:
            logger.info("Analysis for %s ready after %d poll(s)", call_id, attempts)
            return result
        left = remaining()
        if left <= 0:
            break
        await sleep(min(poll_interval, left))

    logger.warning("Analysis for %s not ready after %d poll(s)", call_id, attempts)
    raise AnalysisTimeoutError(call_id, max_wait)
