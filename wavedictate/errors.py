"""Exception types raised inside WaveDictate."""


class WaveDictateError(Exception):
    """Base class for all WaveDictate errors."""


class PipelineStageError(WaveDictateError):
    """A dictation pipeline stage could not produce its output."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message


class ModelNotAvailableError(WaveDictateError):
    """A model was requested that is unknown or not downloaded."""


class ModelDownloadError(WaveDictateError):
    """A model download failed or was cancelled."""


class LLMEngineError(WaveDictateError):
    """The local LLM engine rejected a request."""


class RecordingNotFoundError(WaveDictateError):
    """No recording with the requested id exists in the history."""
