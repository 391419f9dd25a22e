"""Base interface for speech capture (speech-to-text) devices."""

from abc import ABC, abstractmethod
from typing import Callable, Optional


ResultCallback = Callable[[str, bool], None]
EndCallback = Callable[[], None]


class CaptureDevice(ABC):
    """
    Abstract base class for capture devices.

    A device listens for one utterance per start() call. While listening it
    reports the transcript so far through the result callback (text, is_final)
    and signals end-of-utterance through the end callback. Callbacks must be
    invoked on the event loop thread. Redundant start() and stop() calls must
    not raise.
    """

    def __init__(self) -> None:
        self._on_result: Optional[ResultCallback] = None
        self._on_end: Optional[EndCallback] = None

    def bind(self, on_result: ResultCallback, on_end: EndCallback) -> None:
        """Register the transcript and end-of-utterance callbacks."""
        self._on_result = on_result
        self._on_end = on_end

    def emit_result(self, text: str, is_final: bool = False) -> None:
        if self._on_result:
            self._on_result(text, is_final)

    def emit_end(self) -> None:
        if self._on_end:
            self._on_end()

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying hardware and tooling can be used."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Begin listening for an utterance. Raises DeviceUnavailableError."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop listening without emitting further events."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the capture device."""
        pass
