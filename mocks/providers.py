"""
Mock provider implementations for testing Nexus without network or audio.
"""

import asyncio
from typing import Iterable, List, Optional, Sequence, Tuple

from nexus.core.errors import DeviceUnavailableError
from nexus.core.models import Message
from nexus.providers.capture.base import CaptureDevice
from nexus.providers.gateway.base import AssistantGateway, GatewayReply
from nexus.providers.playback.base import PlaybackDevice, Voice


class MockGateway(AssistantGateway):
    """Gateway that answers from a canned list, or fails on request."""

    def __init__(
        self,
        replies: Optional[Iterable[str]] = None,
        api_key: Optional[str] = None,
        fail: bool = False,
        hang: bool = False,
        image_url: Optional[str] = None,
    ):
        super().__init__(api_key)
        self.mock_replies = list(replies or [
            "I'm doing great, thank you for asking! How can I help you today?",
            "Here's a thought: the best code is the code you never had to write.",
            "Sure. Give me a moment and I'll walk you through it.",
        ])
        self.fail = fail
        self.hang = hang
        self.image_url = image_url
        self.calls: List[Tuple[str, List[Message]]] = []
        self.release = asyncio.Event()
        self.reply_index = 0

    async def process(
        self, request_text: str, history: Sequence[Message] = ()
    ) -> GatewayReply:
        self.calls.append((request_text, list(history)))
        if self.hang:
            await self.release.wait()
        if self.fail:
            raise ConnectionError("mock gateway failure")
        text = self.mock_replies[self.reply_index % len(self.mock_replies)]
        self.reply_index += 1
        return GatewayReply(text=text, image_url=self.image_url)

    def get_status(self) -> dict:
        return {
            "provider": "mock_gateway",
            "calls": len(self.calls),
            "fail": self.fail,
        }


class MockCaptureDevice(CaptureDevice):
    """
    Capture device driven by the test.

    Utterances queued with ``script`` are spoken automatically on the next
    loop iteration after each start(); otherwise use ``say``/``end``.
    """

    def __init__(self, available: bool = True, fail_on_start: bool = False,
                 script: Optional[Iterable[str]] = None):
        super().__init__()
        self.available = available
        self.fail_on_start = fail_on_start
        self.script = list(script or [])
        self.is_listening = False
        self.start_calls = 0
        self.stop_calls = 0

    def is_available(self) -> bool:
        return self.available

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_on_start:
            raise DeviceUnavailableError("capture", "mock microphone failure")
        if self.is_listening:
            return
        self.is_listening = True
        if self.script:
            asyncio.get_running_loop().call_soon(self._speak_next)

    def _speak_next(self) -> None:
        if self.is_listening and self.script:
            self.say(self.script.pop(0))
            self.end()

    def stop(self) -> None:
        self.stop_calls += 1
        self.is_listening = False

    def say(self, text: str, is_final: bool = True) -> None:
        """Report a transcript as if it had been recognized."""
        self.emit_result(text, is_final)

    def end(self) -> None:
        """Report end-of-utterance; the device stops listening on its own."""
        self.is_listening = False
        self.emit_end()

    def get_status(self) -> dict:
        return {
            "provider": "mock_capture",
            "is_listening": self.is_listening,
            "start_calls": self.start_calls,
            "stop_calls": self.stop_calls,
        }


class MockPlaybackDevice(PlaybackDevice):
    """Playback device that records what it was asked to say."""

    def __init__(self, available: bool = True, voices: Optional[List[Voice]] = None,
                 auto_finish: bool = False, voice_id: str = ""):
        super().__init__()
        self.available = available
        self.voice_id = voice_id
        self.voices = voices if voices is not None else [
            Voice(id="v1", name="Robot", locale="de-DE"),
            Voice(id="v2", name="Google US English", locale="en-US"),
        ]
        self.auto_finish = auto_finish
        self.spoken: List[Tuple[str, Optional[Voice], float, float]] = []
        self.is_playing = False
        self.cancel_calls = 0

    def is_available(self) -> bool:
        return self.available

    def configured_voice_id(self) -> str:
        return self.voice_id

    def list_voices(self) -> List[Voice]:
        return list(self.voices)

    def speak(self, text: str, voice: Optional[Voice] = None,
              pitch: float = 1.0, rate: float = 1.0) -> None:
        self.spoken.append((text, voice, pitch, rate))
        self.is_playing = True
        if self.auto_finish:
            asyncio.get_running_loop().call_soon(self.finish)

    def finish(self) -> None:
        """Report that the current utterance finished playing."""
        if self.is_playing:
            self.is_playing = False
            self.emit_end()

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.is_playing = False

    def get_status(self) -> dict:
        return {
            "provider": "mock_playback",
            "is_playing": self.is_playing,
            "utterances": len(self.spoken),
        }
