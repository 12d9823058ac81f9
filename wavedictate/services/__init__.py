"""Services layer for WaveDictate."""

from .dispatcher import SideEffectDispatcher
from .indicator import IndicatorPresenter, IndicatorState, present
from .library_service import LibraryService, llm_engine_from_config
from .session_machine import SessionStateMachine, Watchdog
from .state_publisher import StatePublisher, state_event_for

__all__ = [
    "SideEffectDispatcher",
    "IndicatorPresenter",
    "IndicatorState",
    "present",
    "LibraryService",
    "llm_engine_from_config",
    "SessionStateMachine",
    "Watchdog",
    "StatePublisher",
    "state_event_for",
]
