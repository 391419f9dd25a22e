"""
Live voice session state machine.

The session cycles standby -> listening -> processing -> speaking -> listening
until the user deactivates it. Transitions are computed by the pure
``transition`` function; ``VoiceSessionMachine`` applies them and performs the
resulting effects against the capture device, the playback device and the
gateway.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

import structlog

from ..providers.capture.base import CaptureDevice
from ..providers.gateway.base import AssistantGateway
from ..providers.playback.base import PlaybackDevice, Voice
from .errors import DeviceUnavailableError
from .request import request_reply


logger = structlog.get_logger()


SPEECH_PITCH = 1.0
SPEECH_RATE = 1.0


class VoiceStatus(str, Enum):
    STANDBY = "standby"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class VoiceSession:
    """Snapshot of one live voice session."""

    status: VoiceStatus = VoiceStatus.STANDBY
    live_transcript: str = ""
    last_reply: str = ""
    active: bool = False
    # Bumped for every dispatched request; replies for older turns are stale
    turn: int = 0


# Events

@dataclass(frozen=True)
class SessionStarted:
    pass


@dataclass(frozen=True)
class SessionStopped:
    pass


@dataclass(frozen=True)
class TranscriptUpdated:
    text: str


@dataclass(frozen=True)
class UtteranceEnded:
    pass


@dataclass(frozen=True)
class ReplyReceived:
    turn: int
    text: str


@dataclass(frozen=True)
class PlaybackEnded:
    pass


Event = Union[
    SessionStarted,
    SessionStopped,
    TranscriptUpdated,
    UtteranceEnded,
    ReplyReceived,
    PlaybackEnded,
]


# Effects

@dataclass(frozen=True)
class StartCapture:
    pass


@dataclass(frozen=True)
class StopCapture:
    pass


@dataclass(frozen=True)
class CancelPlayback:
    pass


@dataclass(frozen=True)
class RequestReply:
    turn: int
    text: str


@dataclass(frozen=True)
class Speak:
    text: str


Effect = Union[StartCapture, StopCapture, CancelPlayback, RequestReply, Speak]


@dataclass(frozen=True)
class Transition:
    session: VoiceSession
    effects: Tuple[Effect, ...] = ()


def _stay(session: VoiceSession) -> Transition:
    return Transition(session)


def transition(session: VoiceSession, event: Event) -> Transition:
    """Compute the next session and the effects to perform for an event."""
    status = session.status

    if isinstance(event, SessionStopped):
        if status is VoiceStatus.STANDBY and not session.active:
            return _stay(session)
        return Transition(
            replace(session, status=VoiceStatus.STANDBY, active=False),
            (StopCapture(), CancelPlayback()),
        )

    if isinstance(event, SessionStarted):
        if session.active:
            return _stay(session)
        return Transition(
            replace(
                session,
                status=VoiceStatus.LISTENING,
                active=True,
                live_transcript="",
                turn=session.turn + 1,
            ),
            (CancelPlayback(), StartCapture()),
        )

    if isinstance(event, TranscriptUpdated):
        if status is not VoiceStatus.LISTENING:
            return _stay(session)
        return _stay(replace(session, live_transcript=event.text))

    if isinstance(event, UtteranceEnded):
        if status is not VoiceStatus.LISTENING:
            return _stay(session)
        if not session.active:
            return Transition(
                replace(session, status=VoiceStatus.STANDBY),
                (StopCapture(), CancelPlayback()),
            )
        text = session.live_transcript.strip()
        if not text:
            # Nothing heard: listen again
            return Transition(session, (StartCapture(),))
        turn = session.turn + 1
        return Transition(
            replace(session, status=VoiceStatus.PROCESSING, live_transcript=text, turn=turn),
            (StopCapture(), CancelPlayback(), RequestReply(turn, text)),
        )

    if isinstance(event, ReplyReceived):
        if event.turn != session.turn:
            return _stay(session)
        if status is VoiceStatus.PROCESSING and session.active:
            return Transition(
                replace(session, status=VoiceStatus.SPEAKING, last_reply=event.text),
                (StopCapture(), Speak(event.text)),
            )
        if status is VoiceStatus.STANDBY:
            # Deactivated mid-flight: keep the reply, arm nothing
            return _stay(replace(session, last_reply=event.text))
        return _stay(session)

    if isinstance(event, PlaybackEnded):
        if status is not VoiceStatus.SPEAKING:
            return _stay(session)
        if session.active:
            return Transition(
                replace(session, status=VoiceStatus.LISTENING, live_transcript=""),
                (CancelPlayback(), StartCapture()),
            )
        return Transition(
            replace(session, status=VoiceStatus.STANDBY, live_transcript=""),
            (StopCapture(), CancelPlayback()),
        )

    raise TypeError(f"Unknown voice session event: {event!r}")


def select_voice(
    voices: Sequence[Voice], locale: str, preferred_name: str = ""
) -> Optional[Voice]:
    """
    Pick a voice for the session, or None for the device default.

    A voice whose id equals ``preferred_name``, or whose name contains it,
    wins over any locale match.
    """

    def normalize(value: str) -> str:
        return value.replace("_", "-").lower()

    if preferred_name:
        wanted = preferred_name.lower()
        for voice in voices:
            if voice.id == preferred_name or wanted in voice.name.lower():
                return voice

    target = normalize(locale)
    for voice in voices:
        if target and normalize(voice.locale) == target:
            return voice
    return None


class VoiceSessionMachine:
    """
    Drives one live voice session.

    Must be used from a running asyncio event loop: gateway requests are
    scheduled as tasks on it.
    """

    def __init__(
        self,
        capture: CaptureDevice,
        playback: PlaybackDevice,
        gateway: AssistantGateway,
        locale: str = "en-US",
        preferred_voice: str = "",
    ):
        self.capture = capture
        self.playback = playback
        self.gateway = gateway
        self.locale = locale
        self.preferred_voice = preferred_voice

        self.session = VoiceSession()
        self.history: List[VoiceStatus] = [self.session.status]
        self._voice: Optional[Voice] = None
        self._pending: Optional[asyncio.Task] = None
        self._listeners: List[Callable[[VoiceSession], None]] = []

        self.capture.bind(self._on_capture_result, self._on_capture_end)
        self.playback.bind(self._on_playback_end)

    @property
    def status(self) -> VoiceStatus:
        return self.session.status

    @property
    def is_active(self) -> bool:
        return self.session.active

    def start_session(self) -> None:
        """
        Activate the session and start listening.

        Raises:
            DeviceUnavailableError: if capture or playback cannot be used.
                The session stays in standby.
        """
        if self.session.active:
            return
        if not self.capture.is_available():
            raise DeviceUnavailableError("capture", "speech recognition is not supported")
        if not self.playback.is_available():
            raise DeviceUnavailableError("playback", "speech synthesis is not supported")

        self._voice = select_voice(
            self.playback.list_voices(),
            self.locale,
            self.preferred_voice or self.playback.configured_voice_id(),
        )
        logger.info(
            "Starting voice session",
            locale=self.locale,
            voice=self._voice.name if self._voice else None,
        )

        try:
            self.dispatch(SessionStarted())
        except DeviceUnavailableError:
            self.session = replace(self.session, status=VoiceStatus.STANDBY, active=False)
            self._record_status()
            self._stop_devices()
            raise

    def stop_session(self) -> None:
        """Deactivate the session. Safe to call in any state."""
        if self.session.active or self.session.status is not VoiceStatus.STANDBY:
            logger.info("Stopping voice session", status=self.session.status.value)
        self.dispatch(SessionStopped())

    def dispatch(self, event: Event) -> None:
        """Apply an event and perform its effects."""
        result = transition(self.session, event)
        previous = self.session
        self.session = result.session
        if self.session.status is not previous.status:
            logger.debug(
                "Voice session transition",
                trigger=type(event).__name__,
                from_status=previous.status.value,
                to_status=self.session.status.value,
            )
        self._record_status()

        for effect in result.effects:
            self._perform(effect)

        if self.session != previous:
            for listener in list(self._listeners):
                listener(self.session)

    def add_listener(self, listener: Callable[[VoiceSession], None]) -> None:
        """Call ``listener`` with the new session after every change."""
        self._listeners.append(listener)

    async def wait_for_reply(self) -> None:
        """Wait until any dispatched gateway request has been folded back in."""
        if self._pending is not None:
            await self._pending

    def _record_status(self) -> None:
        if self.history[-1] is not self.session.status:
            self.history.append(self.session.status)

    def _perform(self, effect: Effect) -> None:
        if isinstance(effect, StartCapture):
            self.capture.start()
        elif isinstance(effect, StopCapture):
            self.capture.stop()
        elif isinstance(effect, CancelPlayback):
            self.playback.cancel()
        elif isinstance(effect, Speak):
            self.playback.speak(
                effect.text, self._voice, pitch=SPEECH_PITCH, rate=SPEECH_RATE
            )
        elif isinstance(effect, RequestReply):
            self._pending = asyncio.get_running_loop().create_task(
                self._fetch_reply(effect.turn, effect.text)
            )

    async def _fetch_reply(self, turn: int, text: str) -> None:
        # Live mode carries no cross-turn memory
        reply = await request_reply(self.gateway, text, [])
        self.dispatch(ReplyReceived(turn, reply.text))

    def _stop_devices(self) -> None:
        self.capture.stop()
        self.playback.cancel()

    def _rearm_failed(self, error: DeviceUnavailableError) -> None:
        logger.error("Capture device failed mid-session", error=str(error))
        self.stop_session()

    # Device callbacks

    def _on_capture_result(self, text: str, is_final: bool) -> None:
        if is_final:
            logger.debug("Final transcript received", transcript_length=len(text))
        self.dispatch(TranscriptUpdated(text))

    def _on_capture_end(self) -> None:
        try:
            self.dispatch(UtteranceEnded())
        except DeviceUnavailableError as e:
            self._rearm_failed(e)

    def _on_playback_end(self) -> None:
        try:
            self.dispatch(PlaybackEnded())
        except DeviceUnavailableError as e:
            self._rearm_failed(e)
