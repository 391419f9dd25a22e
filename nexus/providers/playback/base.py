"""Base interface for speech playback (text-to-speech) devices."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional


@dataclass(frozen=True)
class Voice:
    """A synthesis voice offered by a playback device."""

    id: str
    name: str
    locale: str = ""


class PlaybackDevice(ABC):
    """
    Abstract base class for playback devices.

    speak() plays one utterance and reports its end through the end callback,
    on the event loop thread. cancel() silences playback immediately and does
    not report an end.
    """

    def __init__(self) -> None:
        self._on_end: Optional[Callable[[], None]] = None

    def bind(self, on_end: Callable[[], None]) -> None:
        """Register the end-of-utterance callback."""
        self._on_end = on_end

    def emit_end(self) -> None:
        if self._on_end:
            self._on_end()

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying audio output can be used."""
        pass

    def configured_voice_id(self) -> str:
        """Id of the voice picked in the device settings, if any."""
        return ""

    @abstractmethod
    def list_voices(self) -> List[Voice]:
        """List the voices this device can speak with."""
        pass

    @abstractmethod
    def speak(
        self,
        text: str,
        voice: Optional[Voice] = None,
        pitch: float = 1.0,
        rate: float = 1.0,
    ) -> None:
        """
        Speak the given text.

        Args:
            text: The text to convert to speech
            voice: Voice to use, or None for the device default
            pitch: Pitch multiplier
            rate: Speaking rate multiplier
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop current playback immediately."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the playback device."""
        pass
