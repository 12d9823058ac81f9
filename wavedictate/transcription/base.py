"""Abstract base class for speech-to-text backends."""

from abc import ABC, abstractmethod
from typing import List, Union
import logging

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for speech-to-text backends."""

    def __init__(self, language: str = "en"):
        """Initialize backend with language preference."""
        self.language = language

    @abstractmethod
    async def transcribe(self, audio_path: str, language: str = None) -> Union[str, List[str]]:
        """Transcribe a normalized WAV file.

        Args:
            audio_path: Path to a mono 16 kHz WAV file
            language: Language code, defaults to the backend language

        Returns:
            Either the full text or the list of segment texts
        """
        pass

    @abstractmethod
    async def initialize(self) -> bool:
        """Load backend resources.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
