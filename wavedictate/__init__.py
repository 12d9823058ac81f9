"""WaveDictate - hotkey voice dictation with local transcription."""

__version__ = "0.1.0"
