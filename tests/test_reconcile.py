import asyncio
import time

import pytest
from coldcall.errors import AnalysisTimeoutError, CallNotFoundError, ConfigurationError
from coldcall.personas import ASSISTANT_IDS
from coldcall.reconcile import (
    call_state_from_platform,
    fetch_call,
    get_call_analysis,
    parse_timestamp,
    wait_for_analysis,
)
from coldcall.states import Phase, Role

from events import FakeClock

ENDED_CALL = {
    "id": "call-1",
    "status": "ended",
    "assistantId": ASSISTANT_IDS["joey-optimized"],
    "customer": {"number": "+15551234567"},
    "startedAt": "2026-01-01T00:00:00Z",
    "endedAt": "2026-01-01T00:01:30Z",
    "endedReason": "customer-ended-call",
    "transcript": "AI: Joey. Go.\nUser: Hi Joey.",
    "messages": [
        {"role": "system", "message": "You are Joey."},
        {"role": "bot", "message": "Joey. Go.", "time": 1767225601000},
        {"role": "user", "message": "Hi Joey."},
    ],
    "analysis": {
        "summary": "Booked a follow-up.",
        "successEvaluation": "9",
        "structuredData": {"overall_score": 9.1, "meeting_qualified": True},
    },
}


class FakePlatform:
    """Stands in for VapiClient.get_call with a scripted sequence of responses."""

    def __init__(self, responses, delay=0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls = 0

    async def get_call(self, call_id):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class TestCallState:
    def test_ended_call(self):
        call = call_state_from_platform(ENDED_CALL)
        assert call.phase is Phase.ENDED
        assert call.customer_number == "+15551234567"
        assert call.assistant_name == "Joey - Optimized"
        assert call.duration_seconds == 90.0
        assert call.ended_reason == "customer-ended-call"
        assert [(m.role, m.content) for m in call.messages] == [
            (Role.ASSISTANT, "Joey. Go."),
            (Role.USER, "Hi Joey."),
        ]
        assert call.messages[0].timestamp == 1767225601.0
        assert call.analysis.overall_score == 9.1

    def test_live_call_has_no_end(self):
        call = call_state_from_platform({"id": "x", "status": "in-progress", "createdAt": "2026-01-01T00:00:00Z"})
        assert call.phase is Phase.IN_PROGRESS
        assert call.ended_at is None
        assert call.customer_number == "Unknown"
        assert call.analysis is None

    def test_artifact_messages_fallback(self):
        call = call_state_from_platform({
            "id": "x",
            "status": "ended",
            "artifact": {"messages": [{"role": "assistant", "message": "hello"}], "transcript": "AI: hello"},
        })
        assert [m.content for m in call.messages] == ["hello"]
        assert call.transcript == "AI: hello"
        assert call.ended_at is not None

    def test_parse_timestamp(self):
        assert parse_timestamp("1970-01-01T00:00:10Z") == 10.0
        assert parse_timestamp(10_000) == 10.0
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_call(self):
        call = await fetch_call(FakePlatform([ENDED_CALL]), "call-1")
        assert call.id == "call-1"

    @pytest.mark.asyncio
    async def test_get_call_analysis(self):
        result = await get_call_analysis(FakePlatform([ENDED_CALL]), "call-1")
        assert result.ready
        assert result.summary == "Booked a follow-up."
        assert result.success_score == 9.0
        assert result.evaluation["meeting_qualified"] is True

    @pytest.mark.asyncio
    async def test_analysis_not_ready(self):
        result = await get_call_analysis(FakePlatform([{"id": "call-1", "status": "ended"}]), "call-1")
        assert not result.ready


class TestWaitForAnalysis:
    @pytest.mark.asyncio
    async def test_returns_once_ready(self):
        platform = FakePlatform([{"id": "call-1", "status": "ended"}, ENDED_CALL])
        clock = FakeClock(0.0)

        async def sleep(seconds):
            clock.advance(seconds)

        result = await wait_for_analysis(platform, "call-1", max_wait=30, poll_interval=2, clock=clock, sleep=sleep)
        assert result.summary == "Booked a follow-up."
        assert platform.calls == 2
        assert clock.now == 2.0

    @pytest.mark.asyncio
    async def test_budget_bounds_polling(self):
        platform = FakePlatform([{"id": "call-1", "status": "ended"}])
        clock = FakeClock(0.0)
        sleeps = []

        async def sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds)

        with pytest.raises(AnalysisTimeoutError) as exc_info:
            await wait_for_analysis(platform, "call-1", max_wait=5, poll_interval=1, clock=clock, sleep=sleep)
        assert exc_info.value.max_wait == 5
        assert clock.now == 5.0
        assert platform.calls == 5
        assert all(s <= 1 for s in sleeps)

    @pytest.mark.asyncio
    async def test_last_sleep_trimmed_to_budget(self):
        platform = FakePlatform([{"id": "call-1", "status": "ended"}])
        clock = FakeClock(0.0)
        sleeps = []

        async def sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds)

        with pytest.raises(AnalysisTimeoutError):
            await wait_for_analysis(platform, "call-1", max_wait=5, poll_interval=2, clock=clock, sleep=sleep)
        assert sleeps == [2, 2, 1]
        assert clock.now == 5.0

    @pytest.mark.asyncio
    async def test_real_time_budget(self):
        platform = FakePlatform([{"id": "call-1", "status": "ended"}])
        started = time.monotonic()
        with pytest.raises(AnalysisTimeoutError):
            await wait_for_analysis(platform, "call-1", max_wait=0.3, poll_interval=0.1)
        elapsed = time.monotonic() - started
        assert 0.29 <= elapsed < 0.6

    @pytest.mark.asyncio
    async def test_five_second_budget(self):
        platform = FakePlatform([{"id": "call-1", "status": "ended"}])
        started = time.monotonic()
        with pytest.raises(AnalysisTimeoutError):
            await wait_for_analysis(platform, "call-1", max_wait=5, poll_interval=1)
        elapsed = time.monotonic() - started
        assert 4.99 <= elapsed < 6.0
        assert platform.calls == 5

    @pytest.mark.asyncio
    async def test_slow_fetch_cut_off_at_budget(self):
        platform = FakePlatform([ENDED_CALL], delay=5.0)
        started = time.monotonic()
        with pytest.raises(AnalysisTimeoutError):
            await wait_for_analysis(platform, "call-1", max_wait=0.2, poll_interval=0.1)
        assert time.monotonic() - started < 1.0
        assert platform.calls == 1

    @pytest.mark.asyncio
    async def test_not_found_propagates(self):
        platform = FakePlatform([CallNotFoundError("call-1")])
        with pytest.raises(CallNotFoundError):
            await wait_for_analysis(platform, "call-1", max_wait=5, poll_interval=1)
        assert platform.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interval", [0, -1.0])
    async def test_non_positive_interval_rejected(self, interval):
        platform = FakePlatform([{"id": "call-1", "analysis": {"summary": "done"}}])
        with pytest.raises(ConfigurationError, match="poll_interval"):
            await wait_for_analysis(platform, "call-1", max_wait=5, poll_interval=interval)
        assert platform.calls == 0
