"""Recording session state machine.

Owns the single active session and moves it through::

    IDLE -> RECORDING -> TRANSCRIBING -> COMPLETED | FAILED
    RECORDING | TRANSCRIBING -> CANCELLED   (watchdog or force_reset)

Every transition is published as a RecordingStateEvent. All methods run on
the event loop thread; the single-session check in ``start`` completes
before any await, so two triggers can never both observe an idle machine.
"""

import time
import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from ..keyboard.matcher import Trigger
from ..models.results import PipelineResult
from ..models.session import Session, SessionStatus, TriggerType, new_session_id

logger = logging.getLogger(__name__)


DEFAULT_WATCHDOG_SECONDS = 300.0


class Recorder(Protocol):
    def start(self) -> None:
        ...

    async def stop(self) -> bytes:
        ...

    def abort(self) -> None:
        ...


class Watchdog:
    """Deadline that is pushed forward on every transition and stage.

    Pure bookkeeping over timestamps; the state machine owns the actual
    timer and asks ``remaining()`` how long to sleep.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_WATCHDOG_SECONDS):
        self.timeout_seconds = timeout_seconds
        self.deadline: Optional[float] = None

    @property
    def armed(self) -> bool:
        return self.deadline is not None

    def rearm(self, now: float) -> None:
        self.deadline = now + self.timeout_seconds

    def remaining(self, now: float) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(self.deadline - now, 0.0)

    def is_expired(self, now: float) -> bool:
        return self.deadline is not None and now >= self.deadline

    def clear(self) -> None:
        self.deadline = None


_START_TRIGGERS = {Trigger.HOLD_START: TriggerType.HOLD, Trigger.TOGGLE_START: TriggerType.TOGGLE}
_STOP_TRIGGERS = {Trigger.HOLD_END, Trigger.TOGGLE_STOP}


class SessionStateMachine:
    """Coordinates capture, the dictation pipeline and side effects."""

    def __init__(self,
                 recorder: Recorder,
                 pipeline,
                 dispatcher,
                 publisher,
                 watchdog_seconds: float = DEFAULT_WATCHDOG_SECONDS,
                 clock: Callable[[], float] = time.time):
        """Initialize the state machine.

        Args:
            recorder: Audio recorder with ``start``/``stop``/``abort``
            pipeline: DictationPipeline (``run(audio, on_stage)``)
            dispatcher: SideEffectDispatcher (``dispatch(text, session)``)
            publisher: StatePublisher (``publish(session)``)
            watchdog_seconds: Maximum time between transitions before a forced reset
            clock: Time source in seconds
        """
        self.recorder = recorder
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        self.publisher = publisher
        self.clock = clock
        self.watchdog = Watchdog(watchdog_seconds)

        self._current: Optional[Session] = None
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self.last_session: Optional[Session] = None

    @property
    def current(self) -> Optional[Session]:
        """The session holding the slot, if any (active or still dispatching)."""
        return self._current

    @property
    def active_session(self) -> Optional[Session]:
        """The session that is recording or transcribing, if any."""
        if self._current is not None and self._current.is_active:
            return self._current
        return None

    def handle_trigger(self, trigger: Trigger) -> bool:
        """Route a matcher trigger to ``start`` or ``stop``.

        Returns:
            True if the trigger caused a transition
        """
        if trigger in _START_TRIGGERS:
            return self.start(_START_TRIGGERS[trigger]) is not None
        if trigger in _STOP_TRIGGERS:
            return self.stop()
        return False

    def start(self, trigger_type: TriggerType) -> Optional[Session]:
        """IDLE -> RECORDING. Rejected (returns None) while a session holds the slot."""
        if self._current is not None:
            logger.info(f"Start rejected: session {self._current.session_id} "
                        f"is {self._current.status.value}")
            return None

        session = Session(session_id=new_session_id(), trigger=trigger_type)
        try:
            self.recorder.start()
        except Exception as e:
            logger.error(f"Could not start audio capture: {e}")
            session.status = SessionStatus.FAILED
            session.error = str(e)
            self.last_session = session
            return None

        session.status = SessionStatus.RECORDING
        session.started_at = self.clock()
        self._current = session
        self._arm_watchdog(session)
        logger.info(f"Session {session.session_id} recording ({trigger_type.value})")
        self.publisher.publish(session)
        return session

    def stop(self) -> bool:
        """RECORDING -> TRANSCRIBING and hand the capture to the pipeline."""
        session = self._current
        if session is None or session.status != SessionStatus.RECORDING:
            logger.info("Stop ignored: no session is recording")
            return False

        session.status = SessionStatus.TRANSCRIBING
        self._arm_watchdog(session)
        logger.info(f"Session {session.session_id} transcribing")
        self.publisher.publish(session)
        self._task = asyncio.ensure_future(self._process(session))
        return True

    def force_reset(self, reason: str = "Forced reset") -> bool:
        """Cancel whatever session holds the slot and return to idle.

        Returns:
            True if there was a session to reset
        """
        session = self._current
        if session is None:
            return False

        logger.warning(f"Resetting session {session.session_id}: {reason}")
        if session.is_active:
            was_recording = session.status == SessionStatus.RECORDING
            session.status = SessionStatus.CANCELLED
            session.error = reason
            session.ended_at = self.clock()
            if was_recording:
                self._abort_capture()

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        self._release(session)
        return True

    async def wait_idle(self) -> None:
        """Wait for the processing task (if any) to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _abort_capture(self) -> None:
        try:
            self.recorder.abort()
        except Exception as e:
            logger.error(f"Failed to abort audio capture: {e}")

    async def _process(self, session: Session) -> None:
        try:
            result = await self._run_pipeline(session)
        except asyncio.CancelledError:
            logger.info(f"Processing for session {session.session_id} cancelled")
            raise

        if self._current is not session or session.is_terminal:
            logger.info(f"Discarding late result for session {session.session_id}")
            return

        self._finish(session, result)

        text = session.best_text or ""
        try:
            await self.dispatcher.dispatch(text, session)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Dispatch for session {session.session_id} failed: {e}")

        if self._current is session:
            self._release(session)

    async def _run_pipeline(self, session: Session) -> PipelineResult:
        try:
            audio = await self.recorder.stop()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Audio capture failed for session {session.session_id}: {e}")
            return PipelineResult(success=False, error=str(e), stage="capture")

        if self._current is not session:
            return PipelineResult(success=False, error="Session was reset")

        session.audio = audio
        self._touch(session)

        try:
            return await self.pipeline.run(audio, on_stage=lambda stage: self._touch(session))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Pipeline raised for session {session.session_id}: {e}")
            return PipelineResult(success=False, error=str(e))

    def _finish(self, session: Session, result: PipelineResult) -> None:
        session.original_text = result.original_text
        session.ended_at = self.clock()
        if result.success:
            session.enhanced_text = result.text
            session.status = SessionStatus.COMPLETED
            logger.info(f"Session {session.session_id} completed")
        else:
            session.error = result.error
            session.status = SessionStatus.FAILED
            logger.error(f"Session {session.session_id} failed at {result.stage}: {result.error}")
        # Dispatch is still covered by the watchdog
        self._arm_watchdog(session)

    def _release(self, session: Session) -> None:
        self._cancel_timer()
        self.watchdog.clear()
        self._current = None
        self.last_session = session
        self.publisher.publish(session)

    def _touch(self, session: Session) -> None:
        if self._current is session:
            self._arm_watchdog(session)

    def _arm_watchdog(self, session: Session) -> None:
        now = self.clock()
        self.watchdog.rearm(now)
        self._schedule_timer(session, self.watchdog.remaining(now))

    def _schedule_timer(self, session: Session, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_watchdog, session)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_watchdog(self, session: Session) -> None:
        self._timer = None
        if self._current is not session:
            return
        now = self.clock()
        if not self.watchdog.is_expired(now):
            remaining = self.watchdog.remaining(now)
            if remaining is not None:
                self._schedule_timer(session, remaining)
            return
        self.force_reset("Watchdog timeout")

    def get_status(self) -> Dict[str, Any]:
        session = self._current
        return {
            "status": session.status.value if session else SessionStatus.IDLE.value,
            "session_id": session.session_id if session else None,
            "watchdog_armed": self.watchdog.armed,
            "watchdog_remaining": self.watchdog.remaining(self.clock()),
        }
