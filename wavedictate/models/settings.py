"""User-configurable settings and shortcut definitions."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


EventKind = Literal["keyDown", "keyUp", "flagsChanged"]


DEFAULT_LLM_PROMPT = (
    "Clean up this transcription by fixing grammar, punctuation, and formatting. "
    "Keep the exact same meaning and content. Do not add any explanations, summaries, "
    "or descriptions of changes made. Output ONLY the cleaned text."
)


class KeyPattern(BaseModel):
    """One raw key event shape a shortcut listens for."""
    model_config = ConfigDict(frozen=True)

    event_kind: EventKind
    key_code: int = Field(ge=0)
    modifier_flags: int = Field(ge=0)

    def matches(self, event) -> bool:
        """True when ``event`` has exactly this kind, key code and flags."""
        if event is None:
            return False
        return (
            getattr(event, "event_kind", None) == self.event_kind
            and getattr(event, "key_code", None) == self.key_code
            and getattr(event, "modifier_flags", None) == self.modifier_flags
        )


class HoldShortcut(BaseModel):
    """Press-and-hold shortcut: recording lasts from ``start`` until ``end``."""
    model_config = ConfigDict(frozen=True)

    start: KeyPattern
    end: KeyPattern

    @model_validator(mode="after")
    def _distinct_patterns(self) -> "HoldShortcut":
        if self.start == self.end:
            raise ValueError("hold shortcut needs distinct start and end patterns")
        return self


class ToggleShortcut(BaseModel):
    """Single pattern whose accepted matches alternate start/stop."""
    model_config = ConfigDict(frozen=True)

    start: KeyPattern
    end: Optional[KeyPattern] = None

    @model_validator(mode="before")
    @classmethod
    def _end_defaults_to_start(cls, data):
        if isinstance(data, dict) and data.get("end") is None and "start" in data:
            data = {**data, "end": data["start"]}
        return data

    @model_validator(mode="after")
    def _same_pattern(self) -> "ToggleShortcut":
        if self.end != self.start:
            raise ValueError("toggle shortcut must use the same pattern for start and stop")
        return self

    @property
    def pattern(self) -> KeyPattern:
        return self.start


# Globe key pressed / released
DEFAULT_HOLD_SHORTCUT = HoldShortcut(
    start=KeyPattern(event_kind="flagsChanged", key_code=63, modifier_flags=8388864),
    end=KeyPattern(event_kind="flagsChanged", key_code=63, modifier_flags=256),
)

# Left Ctrl + Space
DEFAULT_TOGGLE_SHORTCUT = ToggleShortcut(
    start=KeyPattern(event_kind="keyDown", key_code=49, modifier_flags=262401),
)


class ShortcutConfig(BaseModel):
    """The active hold and toggle shortcut definitions."""
    model_config = ConfigDict(frozen=True)

    hold: HoldShortcut = DEFAULT_HOLD_SHORTCUT
    toggle: ToggleShortcut = DEFAULT_TOGGLE_SHORTCUT


class AppSettings(BaseModel):
    """Settings the user can change at runtime."""

    shortcuts: ShortcutConfig = Field(default_factory=ShortcutConfig)
    language: str = "en"
    copy_to_clipboard: bool = True
    auto_paste_to_cursor: bool = True
    enhanced_prompts: bool = True
    llm_prompt: str = ""
    llm_model: Optional[str] = None
    notifications: bool = True
    play_audio: bool = True
    data_retention_days: int = Field(default=30, ge=1)
    auto_cleanup: bool = False

    @property
    def prompt_template(self) -> str:
        return self.llm_prompt.strip() or DEFAULT_LLM_PROMPT
