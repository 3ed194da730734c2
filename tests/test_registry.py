import asyncio

import pytest
from coldcall.registry import (
    EVENT_CALL_ENDED,
    EVENT_CALL_UPDATED,
    EVENT_MESSAGE,
    CallRegistry,
    get_registry,
    reset_registry,
)
from coldcall.session import CallAnalysis, CallMessage, CallUpdate
from coldcall.states import Phase, Role


def _analysis(score=8.7):
    return CallAnalysis(summary="ok", structured_data={"overall_score": score, "meeting_qualified": True})


class TestApply:
    def test_creates_call_with_defaults(self, registry, clock):
        call = registry.apply("c1", CallUpdate())
        assert call.phase == Phase.RINGING
        assert call.messages == []
        assert call.started_at == clock.now
        assert call.ended_at is None
        assert registry.get("c1") is call

    def test_merges_fields_per_field(self, registry):
        registry.apply("c1", CallUpdate(customer_number="+15551234567"))
        call = registry.apply("c1", CallUpdate(transcript="hello"))
        assert call.customer_number == "+15551234567"
        assert call.transcript == "hello"

    def test_transcript_is_overwritten_not_appended(self, registry):
        registry.apply("c1", CallUpdate(transcript="first"))
        call = registry.apply("c1", CallUpdate(transcript="second"))
        assert call.transcript == "second"

    def test_customer_number_immutable_after_creation(self, registry):
        registry.apply("c1", CallUpdate(customer_number="+15551234567"))
        call = registry.apply("c1", CallUpdate(customer_number="+19998887777"))
        assert call.customer_number == "+15551234567"

    def test_placeholder_number_filled_by_later_event(self, registry):
        registry.apply("c1", CallUpdate(transcript="hi"))
        call = registry.apply("c1", CallUpdate(customer_number="+15551234567"))
        assert call.customer_number == "+15551234567"

    def test_phase_moves_forward(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.RINGING))
        call = registry.apply("c1", CallUpdate(phase=Phase.IN_PROGRESS))
        assert call.phase == Phase.IN_PROGRESS

    def test_phase_never_moves_backwards(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.IN_PROGRESS))
        call = registry.apply("c1", CallUpdate(phase=Phase.RINGING))
        assert call.phase == Phase.IN_PROGRESS

    def test_first_event_end_report_creates_ended_call(self, registry, clock):
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, ended_at=clock.now))
        assert call.phase == Phase.ENDED
        assert call.ended_at == clock.now

    def test_first_event_ended_status_does_not_create_ended_call(self, registry, clock):
        call = registry.apply(
            "c1", CallUpdate(phase=Phase.ENDED, ended_at=clock.now, ended_reason="customer-ended-call")
        )
        assert call.phase == Phase.RINGING
        assert call.ended_at is None
        assert call.ended_reason is None
        assert registry.get_active() == [call]

    def test_ended_status_applies_once_call_exists(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.IN_PROGRESS))
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED))
        assert call.phase == Phase.ENDED
        assert call.ended_at is not None


class TestEndedCalls:
    def test_no_transition_out_of_ended(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        for phase in (Phase.RINGING, Phase.IN_PROGRESS):
            call = registry.apply("c1", CallUpdate(phase=phase))
            assert call.phase == Phase.ENDED

    def test_ended_at_set_iff_ended(self, registry):
        call = registry.apply("c1", CallUpdate(phase=Phase.IN_PROGRESS, ended_at=123.0))
        assert call.ended_at is None
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        assert call.ended_at is not None

    def test_ended_at_set_only_once(self, registry, clock):
        first = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, ended_at=clock.now)).ended_at
        clock.advance(30)
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, ended_at=clock.now))
        assert call.ended_at == first

    def test_analysis_written_once(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, analysis=_analysis(8.7)))
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, analysis=_analysis(3.1)))
        assert call.analysis.overall_score == 8.7

    def test_analysis_never_nulled(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, analysis=_analysis()))
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, analysis=None))
        assert call.analysis is not None

    def test_empty_analysis_ignored(self, registry):
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, analysis=CallAnalysis()))
        assert call.analysis is None

    def test_late_analysis_fills_unset(self, registry):
        registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        call = registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True, analysis=_analysis()))
        assert call.analysis.overall_score == 8.7


class TestAppendMessage:
    def test_appends_in_arrival_order(self, registry, clock):
        registry.apply("c1", CallUpdate())
        registry.append_message("c1", CallMessage(Role.ASSISTANT, "Joey. Go.", clock.now))
        registry.append_message("c1", CallMessage(Role.USER, "Hey Joey", clock.now))
        call = registry.get("c1")
        assert [m.content for m in call.messages] == ["Joey. Go.", "Hey Joey"]

    def test_unknown_call_is_dropped(self, registry, notifications, clock):
        registry.append_message("ghost", CallMessage(Role.USER, "hi", clock.now))
        assert registry.get("ghost") is None
        assert notifications == []

    def test_log_never_shrinks(self, registry, clock):
        registry.apply("c1", CallUpdate())
        lengths = []
        for i in range(5):
            registry.append_message("c1", CallMessage(Role.USER, f"m{i}", clock.now))
            registry.apply("c1", CallUpdate(transcript=f"t{i}"))
            lengths.append(len(registry.get("c1").messages))
        assert lengths == sorted(lengths)
        assert lengths[-1] == 5


class TestNotifications:
    def test_one_notification_per_mutation(self, registry, notifications, clock):
        registry.apply("c1", CallUpdate(phase=Phase.RINGING))
        registry.append_message("c1", CallMessage(Role.ASSISTANT, "hi", clock.now))
        registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        assert notifications == [
            (EVENT_CALL_UPDATED, "c1"),
            (EVENT_MESSAGE, "c1"),
            (EVENT_CALL_ENDED, "c1"),
        ]

    def test_notification_carries_post_mutation_state(self, registry):
        seen = []
        registry.subscribe(lambda event, call: seen.append(call.transcript))
        registry.apply("c1", CallUpdate(transcript="latest"))
        assert seen == ["latest"]

    def test_all_subscribers_notified(self, registry):
        counts = [0] * 5

        def make(i):
            def callback(event, call):
                counts[i] += 1
            return callback

        for i in range(5):
            registry.subscribe(make(i))
        registry.apply("c1", CallUpdate())
        assert counts == [1] * 5

    def test_failing_subscriber_isolated(self, registry, notifications):
        def broken(event, call):
            raise RuntimeError("boom")

        registry.subscribe(broken)
        call = registry.apply("c1", CallUpdate(transcript="x"))
        assert call.transcript == "x"
        assert notifications == [(EVENT_CALL_UPDATED, "c1")]
        assert registry.subscriber_count == 1

    def test_unsubscribe(self, registry):
        seen = []
        unsubscribe = registry.subscribe(lambda e, c: seen.append(e))
        unsubscribe()
        registry.apply("c1", CallUpdate())
        assert seen == []


class TestReads:
    def test_get_all_sorted_newest_first(self, registry, clock):
        registry.apply("old", CallUpdate())
        clock.advance(10)
        registry.apply("new", CallUpdate())
        assert [c.id for c in registry.get_all()] == ["new", "old"]

    def test_get_active_excludes_ended(self, registry):
        registry.apply("live", CallUpdate(phase=Phase.IN_PROGRESS))
        registry.apply("done", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        assert [c.id for c in registry.get_active()] == ["live"]

    def test_get_unknown_returns_none(self, registry):
        assert registry.get("nope") is None

    def test_clear(self, registry):
        registry.apply("c1", CallUpdate())
        registry.clear()
        assert len(registry) == 0


class TestReaper:
    def test_removes_calls_ended_past_retention(self, registry, clock):
        registry.apply("old", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        clock.advance(3601)
        registry.apply("recent", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        registry.apply("live", CallUpdate(phase=Phase.IN_PROGRESS))
        assert registry.reap() == 1
        assert "old" not in registry
        assert "recent" in registry
        assert "live" in registry

    def test_never_removes_active_calls(self, registry, clock):
        registry.apply("live", CallUpdate(phase=Phase.IN_PROGRESS))
        clock.advance(10 * 3600)
        assert registry.reap() == 0

    @pytest.mark.asyncio
    async def test_background_sweep(self, clock):
        registry = CallRegistry(clock=clock, retention_seconds=0, sweep_interval=0.01)
        registry.apply("c1", CallUpdate(phase=Phase.ENDED, end_of_call=True))
        clock.advance(1)
        registry.start()
        assert registry.running
        await asyncio.sleep(0.05)
        assert "c1" not in registry
        await registry.stop()
        assert not registry.running


class TestSingleton:
    def test_get_registry_is_shared(self):
        reset_registry()
        assert get_registry() is get_registry()
        reset_registry()
