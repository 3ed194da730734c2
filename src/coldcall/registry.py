"""In-memory call registry: the single source of truth for live call state.

All mutation goes through apply() and append_message(). Both are synchronous,
so on a single event loop every mutation for a given call runs to completion
before the next event is processed, which is what keeps per-call field writes
from interleaving. Do not make them async.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from coldcall.fanout import FanOut
from coldcall.session import (
    DEFAULT_ASSISTANT_NAME,
    UNKNOWN_NUMBER,
    CallAnalysis,
    CallMessage,
    CallState,
    CallUpdate,
)
from coldcall.states import Phase

logger = logging.getLogger(__name__)

RETENTION_SECONDS = 60 * 60
SWEEP_INTERVAL_SECONDS = 5 * 60

EVENT_CALL_UPDATED = "call-updated"
EVENT_CALL_ENDED = "call-ended"
EVENT_MESSAGE = "message"

_PHASE_ORDER = {Phase.RINGING: 0, Phase.IN_PROGRESS: 1, Phase.ENDED: 2}


class CallRegistry:
    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        retention_seconds: float = RETENTION_SECONDS,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        self._calls: dict = {}
        self._fanout = FanOut()
        self._clock = clock
        self.retention_seconds = retention_seconds
        self.sweep_interval = sweep_interval
        self._reaper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._calls

    # --- reads ---

    def get(self, call_id: str) -> Optional[CallState]:
        return self._calls.get(call_id)

    def get_all(self) -> list:
        return sorted(self._calls.values(), key=lambda c: c.started_at, reverse=True)

    def get_active(self) -> list:
        return [c for c in self.get_all() if not c.is_ended]

    # --- writes ---

    def apply(self, call_id: str, update: CallUpdate) -> CallState:
        """Create-or-merge a partial update and notify subscribers once."""
        changes = update.fields()
        call = self._calls.get(call_id)
        if call is None:
            call = CallState(id=call_id, started_at=self._clock())
            self._calls[call_id] = call
            logger.debug("Registered call %s", call_id)
            if changes.get("phase") is Phase.ENDED and not update.end_of_call:
                # Only an end-of-call report may create a call that is already over.
                logger.debug("Ignoring ended status on first event for %s", call_id)
                for name in ("phase", "ended_at", "ended_reason"):
                    changes.pop(name, None)

        self._merge_identity(call, changes)
        self._merge_phase(call, changes)

        transcript = changes.get("transcript")
        if transcript is not None:
            call.transcript = transcript

        if call.ended_reason is None and changes.get("ended_reason"):
            call.ended_reason = changes["ended_reason"]

        analysis = changes.get("analysis")
        if call.analysis is None and isinstance(analysis, CallAnalysis) and not analysis.is_empty:
            call.analysis = analysis

        ended_now = changes.get("phase") is Phase.ENDED and call.is_ended
        self._fanout.notify(EVENT_CALL_ENDED if ended_now else EVENT_CALL_UPDATED, call)
        return call

    def append_message(self, call_id: str, message: CallMessage) -> None:
        """Append to the call's message log. Messages for unknown calls are dropped."""
        call = self._calls.get(call_id)
        if call is None:
            logger.debug("Dropping message for unknown call %s", call_id)
            return
        call.messages.append(message)
        self._fanout.notify(EVENT_MESSAGE, call)

    def _merge_identity(self, call: CallState, changes: dict) -> None:
        # Fixed by the creating event; only placeholders are ever filled in later.
        number = changes.get("customer_number")
        if number and call.customer_number == UNKNOWN_NUMBER:
            call.customer_number = number
        name = changes.get("assistant_name")
        if name and call.assistant_name == DEFAULT_ASSISTANT_NAME:
            call.assistant_name = name

    def _merge_phase(self, call: CallState, changes: dict) -> None:
        phase = changes.get("phase")
        if not isinstance(phase, Phase):
            return
        if call.is_ended:
            if phase is not Phase.ENDED:
                logger.debug("Ignoring %s for ended call %s", phase.value, call.id)
            return
        if _PHASE_ORDER[phase] < _PHASE_ORDER[call.phase]:
            logger.debug("Ignoring backwards transition %s -> %s for %s", call.phase.value, phase.value, call.id)
            return
        call.phase = phase
        if phase is Phase.ENDED:
            ended_at = changes.get("ended_at")
            call.ended_at = ended_at if isinstance(ended_at, (int, float)) else self._clock()

    # --- subscribers ---

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        return self._fanout.subscribe(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._fanout)

    # --- lifecycle ---

    def reap(self, now: Optional[float] = None) -> int:
        """Drop ended calls older than the retention window. Returns how many were removed."""
        now = self._clock() if now is None else now
        cutoff = now - self.retention_seconds
        expired = [
            call_id for call_id, call in self._calls.items()
            if call.ended_at is not None and call.ended_at < cutoff
        ]
        for call_id in expired:
            del self._calls[call_id]
        if expired:
            logger.info("Reaped %d ended call(s)", len(expired))
        return len(expired)

    async def _reap_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.reap()

    def start(self) -> None:
        if self._reaper is None or self._reaper.done():
            self._reaper = asyncio.get_running_loop().create_task(self._reap_forever())

    async def stop(self) -> None:
        if self._reaper is None:
            return
        self._reaper.cancel()
        try:
            await self._reaper
        except asyncio.CancelledError:
            pass
        self._reaper = None

    @property
    def running(self) -> bool:
        return self._reaper is not None and not self._reaper.done()

    def clear(self) -> None:
        self._calls.clear()


_registry: Optional[CallRegistry] = None


def get_registry() -> CallRegistry:
    """Process-wide registry shared by the webhook and dashboard routes."""
    global _registry
    if _registry is None:
        _registry = CallRegistry()
    return _registry


def reset_registry() -> None:
    global _registry
    _registry = None
