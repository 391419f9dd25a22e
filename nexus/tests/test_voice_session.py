"""Tests for the live voice session."""

import asyncio

import pytest

from mocks.providers import MockCaptureDevice, MockGateway, MockPlaybackDevice
from nexus.core.errors import DeviceUnavailableError
from nexus.core.request import APOLOGY_TEXT
from nexus.core.voice_session import (
    CancelPlayback,
    PlaybackEnded,
    ReplyReceived,
    RequestReply,
    SessionStarted,
    SessionStopped,
    Speak,
    StartCapture,
    StopCapture,
    TranscriptUpdated,
    UtteranceEnded,
    VoiceSession,
    VoiceSessionMachine,
    VoiceStatus,
    select_voice,
    transition,
)
from nexus.providers.playback.base import Voice
from nexus.utils.logging import setup_logging


class TestTransition:
    """Pure transition function."""

    def test_start_from_standby(self):
        result = transition(VoiceSession(), SessionStarted())
        assert result.session.status is VoiceStatus.LISTENING
        assert result.session.active is True
        assert result.effects == (CancelPlayback(), StartCapture())

    def test_start_when_active_is_ignored(self):
        session = VoiceSession(status=VoiceStatus.LISTENING, active=True, turn=1)
        result = transition(session, SessionStarted())
        assert result.session == session
        assert result.effects == ()

    def test_stop_from_idle_standby_has_no_effects(self):
        result = transition(VoiceSession(), SessionStopped())
        assert result.session == VoiceSession()
        assert result.effects == ()

    @pytest.mark.parametrize("status", [
        VoiceStatus.LISTENING, VoiceStatus.PROCESSING, VoiceStatus.SPEAKING,
    ])
    def test_stop_from_any_active_state(self, status):
        session = VoiceSession(status=status, active=True, turn=2)
        result = transition(session, SessionStopped())
        assert result.session.status is VoiceStatus.STANDBY
        assert result.session.active is False
        assert result.effects == (StopCapture(), CancelPlayback())

    def test_transcript_updates_while_listening(self):
        session = VoiceSession(status=VoiceStatus.LISTENING, active=True)
        result = transition(session, TranscriptUpdated("hello"))
        assert result.session.live_transcript == "hello"
        assert result.effects == ()

    def test_transcript_ignored_while_speaking(self):
        session = VoiceSession(status=VoiceStatus.SPEAKING, active=True)
        result = transition(session, TranscriptUpdated("echo"))
        assert result.session.live_transcript == ""

    def test_utterance_with_text_requests_reply(self):
        session = VoiceSession(
            status=VoiceStatus.LISTENING, active=True, live_transcript=" hi ", turn=1
        )
        result = transition(session, UtteranceEnded())
        assert result.session.status is VoiceStatus.PROCESSING
        assert result.session.turn == 2
        assert result.effects == (StopCapture(), CancelPlayback(), RequestReply(2, "hi"))

    def test_empty_utterance_rearms_capture(self):
        session = VoiceSession(status=VoiceStatus.LISTENING, active=True, live_transcript="  ")
        result = transition(session, UtteranceEnded())
        assert result.session.status is VoiceStatus.LISTENING
        assert result.effects == (StartCapture(),)

    def test_reply_moves_to_speaking(self):
        session = VoiceSession(status=VoiceStatus.PROCESSING, active=True, turn=3)
        result = transition(session, ReplyReceived(3, "Sure."))
        assert result.session.status is VoiceStatus.SPEAKING
        assert result.session.last_reply == "Sure."
        assert result.effects == (StopCapture(), Speak("Sure."))

    def test_stale_reply_is_dropped(self):
        session = VoiceSession(status=VoiceStatus.PROCESSING, active=True, turn=3)
        result = transition(session, ReplyReceived(2, "old"))
        assert result.session == session
        assert result.effects == ()

    def test_reply_after_deactivation_is_recorded_only(self):
        session = VoiceSession(status=VoiceStatus.STANDBY, active=False, turn=3)
        result = transition(session, ReplyReceived(3, "late"))
        assert result.session.status is VoiceStatus.STANDBY
        assert result.session.last_reply == "late"
        assert result.effects == ()

    def test_playback_end_returns_to_listening(self):
        session = VoiceSession(
            status=VoiceStatus.SPEAKING, active=True, live_transcript="hi", last_reply="ok"
        )
        result = transition(session, PlaybackEnded())
        assert result.session.status is VoiceStatus.LISTENING
        assert result.session.live_transcript == ""
        assert result.effects == (CancelPlayback(), StartCapture())

    def test_playback_end_ignored_outside_speaking(self):
        session = VoiceSession(status=VoiceStatus.LISTENING, active=True)
        assert transition(session, PlaybackEnded()).effects == ()


class TestSelectVoice:
    """Voice selection."""

    voices = [
        Voice(id="1", name="Robot", locale="de-DE"),
        Voice(id="2", name="Alex", locale="en_US"),
        Voice(id="3", name="Google US English", locale="en-US"),
    ]

    def test_locale_match(self):
        assert select_voice(self.voices, "en-US").id == "2"

    def test_preferred_name_beats_earlier_locale_match(self):
        assert select_voice(self.voices, "en-US", "Google US English").id == "3"

    def test_preferred_id_beats_earlier_locale_match(self):
        voices = [
            Voice(id="21m00Tcm4TlvDq8ikWAM", name="Rachel", locale="en-US"),
            Voice(id="pNInz6obpgDQGcFmaJgB", name="Adam", locale="en-US"),
        ]
        assert select_voice(voices, "en-US", "pNInz6obpgDQGcFmaJgB").name == "Adam"

    def test_unknown_preference_falls_back_to_locale(self):
        assert select_voice(self.voices, "de-DE", "Nobody").id == "1"

    def test_no_match_uses_device_default(self):
        assert select_voice(self.voices, "fr-FR") is None

    def test_empty_list(self):
        assert select_voice([], "en-US", "Google US English") is None


@pytest.fixture
def capture():
    return MockCaptureDevice()


@pytest.fixture
def playback():
    return MockPlaybackDevice()


def make_machine(capture, playback, gateway=None):
    return VoiceSessionMachine(
        capture, playback, gateway or MockGateway(replies=["Hello back"]), locale="en-US"
    )


class TestVoiceSessionMachine:
    """Session machine driving mock devices."""

    async def test_full_turn(self, capture, playback):
        machine = make_machine(capture, playback)
        machine.start_session()
        assert machine.status is VoiceStatus.LISTENING
        assert capture.start_calls == 1

        capture.say("hello there")
        assert machine.session.live_transcript == "hello there"
        capture.end()
        assert machine.status is VoiceStatus.PROCESSING

        await machine.wait_for_reply()
        assert machine.status is VoiceStatus.SPEAKING
        assert machine.gateway.calls == [("hello there", [])]

        text, voice, pitch, rate = playback.spoken[0]
        assert text == "Hello back"
        assert voice.name == "Google US English"
        assert (pitch, rate) == (1.0, 1.0)

        playback.finish()
        assert machine.status is VoiceStatus.LISTENING
        assert capture.start_calls == 2
        assert machine.history == [
            VoiceStatus.STANDBY,
            VoiceStatus.LISTENING,
            VoiceStatus.PROCESSING,
            VoiceStatus.SPEAKING,
            VoiceStatus.LISTENING,
        ]

    async def test_capture_is_stopped_while_speaking(self, capture, playback):
        machine = make_machine(capture, playback)
        machine.start_session()
        capture.say("hi")
        capture.end()
        await machine.wait_for_reply()
        assert capture.is_listening is False

    async def test_empty_utterance_listens_again(self, capture, playback):
        machine = make_machine(capture, playback)
        machine.start_session()
        capture.end()
        assert machine.status is VoiceStatus.LISTENING
        assert capture.start_calls == 2
        assert machine.gateway.calls == []

    async def test_deactivate_while_processing(self, capture, playback):
        gateway = MockGateway(replies=["Too late"], hang=True)
        machine = make_machine(capture, playback, gateway)
        machine.start_session()
        capture.say("question")
        capture.end()

        machine.stop_session()
        assert machine.status is VoiceStatus.STANDBY

        gateway.release.set()
        await machine.wait_for_reply()
        assert machine.status is VoiceStatus.STANDBY
        assert machine.session.last_reply == "Too late"
        assert playback.spoken == []

    async def test_deactivate_while_speaking_does_not_rearm(self, capture, playback):
        machine = make_machine(capture, playback)
        machine.start_session()
        capture.say("hi")
        capture.end()
        await machine.wait_for_reply()
        starts = capture.start_calls

        machine.stop_session()
        playback.finish()
        assert machine.status is VoiceStatus.STANDBY
        assert capture.start_calls == starts

    async def test_restart_drops_reply_from_previous_activation(self, capture, playback):
        gateway = MockGateway(replies=["stale"], hang=True)
        machine = make_machine(capture, playback, gateway)
        machine.start_session()
        capture.say("first")
        capture.end()
        machine.stop_session()
        machine.start_session()

        gateway.release.set()
        await machine.wait_for_reply()
        assert machine.status is VoiceStatus.LISTENING
        assert machine.session.last_reply == ""
        assert playback.spoken == []

    async def test_gateway_failure_speaks_apology(self, capture, playback):
        machine = make_machine(capture, playback, MockGateway(fail=True))
        machine.start_session()
        capture.say("hello")
        capture.end()
        await machine.wait_for_reply()

        assert machine.status is VoiceStatus.SPEAKING
        assert playback.spoken[0][0] == APOLOGY_TEXT

    async def test_configured_device_voice_is_used(self, capture):
        playback = MockPlaybackDevice(
            voices=[
                Voice(id="21m00Tcm4TlvDq8ikWAM", name="Rachel", locale="en-US"),
                Voice(id="pNInz6obpgDQGcFmaJgB", name="Adam", locale="en-US"),
            ],
            voice_id="pNInz6obpgDQGcFmaJgB",
        )
        machine = make_machine(capture, playback)
        machine.start_session()
        capture.say("hi")
        capture.end()
        await machine.wait_for_reply()
        assert playback.spoken[0][1].id == "pNInz6obpgDQGcFmaJgB"

    async def test_preferred_voice_overrides_device_voice(self, capture):
        playback = MockPlaybackDevice(
            voices=[
                Voice(id="21m00Tcm4TlvDq8ikWAM", name="Rachel", locale="en-US"),
                Voice(id="pNInz6obpgDQGcFmaJgB", name="Adam", locale="en-US"),
            ],
            voice_id="pNInz6obpgDQGcFmaJgB",
        )
        machine = VoiceSessionMachine(
            capture, playback, MockGateway(replies=["ok"]),
            locale="en-US", preferred_voice="Rachel",
        )
        machine.start_session()
        capture.say("hi")
        capture.end()
        await machine.wait_for_reply()
        assert playback.spoken[0][1].name == "Rachel"

    async def test_full_turn_with_debug_logging(self, capture, playback):
        setup_logging(debug=True)
        machine = make_machine(capture, playback)
        machine.start_session()
        capture.say("hello")
        capture.end()
        await machine.wait_for_reply()
        playback.finish()
        assert machine.history[1:] == [
            VoiceStatus.LISTENING,
            VoiceStatus.PROCESSING,
            VoiceStatus.SPEAKING,
            VoiceStatus.LISTENING,
        ]

    def test_stop_in_standby_touches_no_device(self, capture, playback):
        machine = make_machine(capture, playback)
        machine.stop_session()
        assert capture.stop_calls == 0
        assert playback.cancel_calls == 0
        assert machine.history == [VoiceStatus.STANDBY]

    def test_unavailable_capture(self, playback):
        machine = make_machine(MockCaptureDevice(available=False), playback)
        with pytest.raises(DeviceUnavailableError):
            machine.start_session()
        assert machine.status is VoiceStatus.STANDBY
        assert machine.is_active is False

    def test_unavailable_playback(self, capture):
        machine = make_machine(capture, MockPlaybackDevice(available=False))
        with pytest.raises(DeviceUnavailableError):
            machine.start_session()
        assert capture.start_calls == 0

    def test_capture_failing_to_start(self, playback):
        capture = MockCaptureDevice(fail_on_start=True)
        machine = make_machine(capture, playback)
        with pytest.raises(DeviceUnavailableError):
            machine.start_session()
        assert machine.status is VoiceStatus.STANDBY
        assert machine.is_active is False

    async def test_capture_failing_to_rearm_ends_session(self, capture, playback):
        machine = make_machine(capture, playback)
        machine.start_session()
        capture.say("hi")
        capture.end()
        await machine.wait_for_reply()

        capture.fail_on_start = True
        playback.finish()
        assert machine.status is VoiceStatus.STANDBY
        assert machine.is_active is False

    async def test_listeners_see_each_change(self, capture, playback):
        machine = make_machine(capture, playback)
        seen = []
        machine.add_listener(lambda session: seen.append(session.status))

        machine.start_session()
        capture.say("hi")
        capture.end()
        await machine.wait_for_reply()

        assert seen == [
            VoiceStatus.LISTENING,
            VoiceStatus.LISTENING,
            VoiceStatus.PROCESSING,
            VoiceStatus.SPEAKING,
        ]

    async def test_scripted_conversation(self):
        capture = MockCaptureDevice(script=["one", "two"])
        playback = MockPlaybackDevice(auto_finish=True)
        gateway = MockGateway(replies=["first", "second"])
        machine = make_machine(capture, playback, gateway)

        machine.start_session()
        for _ in range(20):
            await asyncio.sleep(0)
            if len(playback.spoken) == 2 and machine.status is VoiceStatus.LISTENING:
                break

        assert [call[0] for call in gateway.calls] == ["one", "two"]
        assert [s[0] for s in playback.spoken] == ["first", "second"]
        machine.stop_session()
        assert machine.status is VoiceStatus.STANDBY
