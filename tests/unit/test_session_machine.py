"""Unit tests for the session state machine and its watchdog."""

import asyncio

import pytest

from conftest import EventLog, FakePipeline, FakeRecorder, RecordingDispatcher
from wavedictate.keyboard.matcher import Trigger
from wavedictate.models.results import PipelineResult
from wavedictate.models.session import SessionStatus, TriggerType
from wavedictate.services.session_machine import SessionStateMachine, Watchdog


def make_machine(recorder=None, pipeline=None, dispatcher=None, watchdog_seconds=300.0):
    return SessionStateMachine(
        recorder or FakeRecorder(),
        pipeline or FakePipeline(),
        dispatcher or RecordingDispatcher(),
        EventLog(),
        watchdog_seconds=watchdog_seconds,
    )


@pytest.mark.unit
class TestWatchdog:
    """The watchdog is pure arithmetic over timestamps."""

    def test_unarmed(self):
        watchdog = Watchdog(10)
        assert watchdog.remaining(100.0) is None
        assert watchdog.is_expired(1e12) is False

    def test_rearm_pushes_deadline(self):
        watchdog = Watchdog(10)
        watchdog.rearm(100.0)
        assert watchdog.remaining(104.0) == 6.0
        watchdog.rearm(108.0)
        assert watchdog.remaining(110.0) == 8.0
        assert watchdog.is_expired(117.9) is False
        assert watchdog.is_expired(118.0) is True
        assert watchdog.remaining(200.0) == 0.0

    def test_clear(self):
        watchdog = Watchdog(10)
        watchdog.rearm(0.0)
        watchdog.clear()
        assert not watchdog.armed
        assert watchdog.is_expired(100.0) is False


@pytest.mark.unit
class TestSessionStateMachine:
    """Test cases for SessionStateMachine."""

    def test_happy_path(self):
        dispatcher = RecordingDispatcher()
        machine = make_machine(dispatcher=dispatcher)

        async def scenario():
            session = machine.start(TriggerType.HOLD)
            assert session.status == SessionStatus.RECORDING
            assert session.started_at is not None
            assert machine.stop() is True
            assert session.status == SessionStatus.TRANSCRIBING
            await machine.wait_idle()
            return session

        session = asyncio.run(scenario())

        assert session.status == SessionStatus.COMPLETED
        assert session.original_text == "hello world"
        assert session.enhanced_text == "hello world"
        assert dispatcher.calls == [("hello world", session)]
        assert machine.current is None
        assert machine.last_session is session
        assert machine.publisher.events == [
            (True, False, SessionStatus.RECORDING),
            (False, True, SessionStatus.TRANSCRIBING),
            (False, False, SessionStatus.COMPLETED),
        ]

    def test_second_start_is_rejected(self):
        recorder = FakeRecorder()
        machine = make_machine(recorder=recorder)

        async def scenario():
            first = machine.start(TriggerType.HOLD)
            second = machine.start(TriggerType.TOGGLE)
            third = machine.start(TriggerType.HOLD)
            machine.force_reset("test over")
            return first, second, third

        first, second, third = asyncio.run(scenario())

        assert first is not None
        assert second is None and third is None
        assert recorder.started == 1

    def test_start_rejected_while_transcribing(self):
        pipeline = FakePipeline(hang=True)
        machine = make_machine(pipeline=pipeline)

        async def scenario():
            machine.start(TriggerType.TOGGLE)
            machine.stop()
            rejected = machine.start(TriggerType.TOGGLE)
            pipeline.release.set()
            await machine.wait_idle()
            return rejected

        assert asyncio.run(scenario()) is None

    def test_stop_without_session_is_ignored(self):
        machine = make_machine()

        async def scenario():
            return machine.stop()

        assert asyncio.run(scenario()) is False
        assert machine.publisher.events == []

    def test_handle_trigger_routing(self):
        machine = make_machine()

        async def scenario():
            assert machine.handle_trigger(Trigger.NONE) is False
            assert machine.handle_trigger(Trigger.TOGGLE_START) is True
            assert machine.current.trigger == TriggerType.TOGGLE
            assert machine.handle_trigger(Trigger.HOLD_START) is False
            assert machine.handle_trigger(Trigger.TOGGLE_STOP) is True
            await machine.wait_idle()

        asyncio.run(scenario())
        assert machine.last_session.status == SessionStatus.COMPLETED

    def test_recorder_start_failure_leaves_machine_idle(self):
        machine = make_machine(recorder=FakeRecorder(fail_start=True))

        async def scenario():
            return machine.start(TriggerType.HOLD)

        assert asyncio.run(scenario()) is None
        assert machine.current is None
        assert machine.last_session.status == SessionStatus.FAILED
        assert machine.publisher.events == []

    def test_pipeline_failure_dispatches_best_text(self):
        pipeline = FakePipeline(result=PipelineResult(success=False, error="model crashed", stage="transcribe"))
        dispatcher = RecordingDispatcher()
        machine = make_machine(pipeline=pipeline, dispatcher=dispatcher)

        async def scenario():
            machine.start(TriggerType.HOLD)
            machine.stop()
            await machine.wait_idle()

        asyncio.run(scenario())

        session = machine.last_session
        assert session.status == SessionStatus.FAILED
        assert session.error == "model crashed"
        assert dispatcher.calls == [("", session)]
        assert machine.publisher.events[-1] == (False, False, SessionStatus.FAILED)

    def test_capture_failure_fails_session(self):
        dispatcher = RecordingDispatcher()
        machine = make_machine(recorder=FakeRecorder(fail_stop=True), dispatcher=dispatcher)

        async def scenario():
            machine.start(TriggerType.HOLD)
            machine.stop()
            await machine.wait_idle()

        asyncio.run(scenario())

        assert machine.last_session.status == SessionStatus.FAILED
        assert dispatcher.calls[0][0] == ""
        assert machine.current is None

    def test_dispatch_error_still_releases_slot(self):
        machine = make_machine(dispatcher=RecordingDispatcher(fail=True))

        async def scenario():
            machine.start(TriggerType.HOLD)
            machine.stop()
            await machine.wait_idle()
            return machine.start(TriggerType.HOLD)

        assert asyncio.run(scenario()) is not None
        assert machine.last_session.status == SessionStatus.COMPLETED

    def test_watchdog_cancels_stuck_recording(self):
        recorder = FakeRecorder()
        machine = make_machine(recorder=recorder, watchdog_seconds=0.05)

        async def scenario():
            session = machine.start(TriggerType.TOGGLE)
            await asyncio.sleep(0.2)
            return session

        session = asyncio.run(scenario())

        assert session.status == SessionStatus.CANCELLED
        assert session.error == "Watchdog timeout"
        assert recorder.aborted == 1
        assert machine.current is None
        assert machine.publisher.events[-1] == (False, False, SessionStatus.CANCELLED)

    def test_watchdog_cancels_stuck_transcription_without_side_effects(self):
        pipeline = FakePipeline(hang=True)
        dispatcher = RecordingDispatcher()
        machine = make_machine(pipeline=pipeline, dispatcher=dispatcher, watchdog_seconds=0.05)

        async def scenario():
            session = machine.start(TriggerType.HOLD)
            machine.stop()
            await machine.wait_idle()
            return session

        session = asyncio.run(scenario())

        assert session.status == SessionStatus.CANCELLED
        assert dispatcher.calls == []
        assert machine.current is None

    def test_stage_progress_rearms_watchdog(self):
        class SlowPipeline(FakePipeline):
            async def run(self, audio, on_stage=None):
                for stage in ("normalize", "transcribe", "enhance"):
                    on_stage(stage)
                    await asyncio.sleep(0.06)
                return self.result

        machine = make_machine(pipeline=SlowPipeline(), watchdog_seconds=0.1)

        async def scenario():
            machine.start(TriggerType.HOLD)
            machine.stop()
            await machine.wait_idle()

        asyncio.run(scenario())

        # 0.18s in total, but never 0.1s between two stages
        assert machine.last_session.status == SessionStatus.COMPLETED

    def test_late_result_does_not_touch_new_session(self):
        pipeline = FakePipeline(hang=True)
        dispatcher = RecordingDispatcher()
        machine = make_machine(pipeline=pipeline, dispatcher=dispatcher)

        async def scenario():
            old = machine.start(TriggerType.HOLD)
            machine.stop()
            await asyncio.sleep(0)
            machine.force_reset("user reset")
            new = machine.start(TriggerType.TOGGLE)
            pipeline.release.set()
            await asyncio.sleep(0.05)
            return old, new

        old, new = asyncio.run(scenario())

        assert old.status == SessionStatus.CANCELLED
        assert new.status == SessionStatus.RECORDING
        assert machine.current is new
        assert dispatcher.calls == []

    def test_exactly_one_terminal_event_per_session(self):
        machine = make_machine(watchdog_seconds=0.05)

        async def scenario():
            machine.start(TriggerType.HOLD)
            machine.stop()
            await machine.wait_idle()
            await asyncio.sleep(0.1)
            machine.force_reset("late")

        asyncio.run(scenario())

        terminal = [e for e in machine.publisher.events if not e[0] and not e[1]]
        assert terminal == [(False, False, SessionStatus.COMPLETED)]

    def test_failed_session_dispatches_raw_transcript(self):
        pipeline = FakePipeline(result=PipelineResult(success=False, original_text="raw words",
                                                      error="disk full", stage="enhance"))
        dispatcher = RecordingDispatcher()
        machine = make_machine(pipeline=pipeline, dispatcher=dispatcher)

        async def scenario():
            machine.start(TriggerType.TOGGLE)
            machine.stop()
            await machine.wait_idle()

        asyncio.run(scenario())

        session = machine.last_session
        assert session.best_text == "raw words"
        assert dispatcher.calls == [("raw words", session)]

    def test_get_status_tracks_watchdog(self):
        machine = make_machine(watchdog_seconds=30.0)

        async def scenario():
            idle = machine.get_status()
            session = machine.start(TriggerType.HOLD)
            recording = machine.get_status()
            machine.force_reset("done")
            return idle, session, recording, machine.get_status()

        idle, session, recording, after = asyncio.run(scenario())

        assert idle == {"status": "idle", "session_id": None,
                        "watchdog_armed": False, "watchdog_remaining": None}
        assert recording["status"] == "recording"
        assert recording["session_id"] == session.session_id
        assert recording["watchdog_armed"] is True
        assert 0 < recording["watchdog_remaining"] <= 30.0
        assert after["watchdog_armed"] is False
