"""Translate session state into show/hide commands for the indicator."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from pubsub import pub

from ..audio.cues import APPEAR, DISAPPEAR
from ..models.events import SESSION_STATE_TOPIC, RecordingStateEvent

logger = logging.getLogger(__name__)


MODE_RECORDING = "recording"
MODE_PROCESSING = "processing"


class IndicatorSurface(Protocol):
    def show(self, mode: str) -> None:
        ...

    def hide(self) -> None:
        ...


class CueSink(Protocol):
    def play(self, name: str) -> object:
        ...


@dataclass(frozen=True)
class IndicatorState:
    visible: bool
    mode: Optional[str] = None


def present(event: RecordingStateEvent) -> IndicatorState:
    """Pure mapping from a state event to what the indicator should show."""
    if event.recording:
        return IndicatorState(visible=True, mode=MODE_RECORDING)
    if event.transcribing:
        return IndicatorState(visible=True, mode=MODE_PROCESSING)
    return IndicatorState(visible=False)


class IndicatorPresenter:
    """Drives an optional presentation surface from session state events.

    A ``None`` surface makes every command a no-op, so the presenter can be
    wired up before (or without) any UI. Optional ``cues`` hear an appear
    cue when the indicator becomes visible and a disappear cue when it hides.
    """

    def __init__(self, surface: Optional[IndicatorSurface] = None,
                 topic: str = SESSION_STATE_TOPIC,
                 cues: Optional[CueSink] = None):
        self.surface = surface
        self.cues = cues
        self.topic = topic
        self.state = IndicatorState(visible=False)
        self._subscribed = False

    def subscribe(self) -> None:
        if not self._subscribed:
            pub.subscribe(self.on_state_event, self.topic)
            self._subscribed = True

    def unsubscribe(self) -> None:
        if self._subscribed:
            pub.unsubscribe(self.on_state_event, self.topic)
            self._subscribed = False

    def on_state_event(self, event: RecordingStateEvent) -> None:
        self.apply(present(event))

    def apply(self, state: IndicatorState) -> None:
        if state.visible:
            self.show(state.mode)
        else:
            self.hide()

    def show(self, mode: str) -> None:
        if self.state.visible and self.state.mode == mode:
            return
        appearing = not self.state.visible
        self.state = IndicatorState(visible=True, mode=mode)
        if appearing:
            self._cue(APPEAR)
        if self.surface is None:
            return
        try:
            self.surface.show(mode)
        except Exception as e:
            logger.warning(f"Indicator surface failed to show: {e}")

    def hide(self) -> None:
        if not self.state.visible:
            return
        self.state = IndicatorState(visible=False)
        self._cue(DISAPPEAR)
        if self.surface is None:
            return
        try:
            self.surface.hide()
        except Exception as e:
            logger.warning(f"Indicator surface failed to hide: {e}")

    def _cue(self, name: str) -> None:
        if self.cues is None:
            return
        try:
            self.cues.play(name)
        except Exception as e:
            logger.warning(f"Sound cue {name} failed: {e}")
