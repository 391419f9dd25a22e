"""ElevenLabs playback device."""

import asyncio
import os
import threading
import time
from io import BytesIO
from typing import List, Optional

import pygame
from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs
import structlog

from .base import PlaybackDevice, Voice


logger = structlog.get_logger()


ACCENT_LOCALES = {
    "american": "en-US",
    "british": "en-GB",
    "australian": "en-AU",
    "irish": "en-IE",
    "indian": "en-IN",
}


class ElevenLabsPlayback(PlaybackDevice):
    """
    Synthesizes speech with ElevenLabs and plays it through pygame.

    Each speak() runs on a worker thread; the end of a completed utterance is
    reported on the event loop that called speak(). Cancelled utterances do
    not report an end.
    """

    def __init__(
        self,
        voice_id: str = "pNInz6obpgDQGcFmaJgB",  # Adam voice
        model_id: str = "eleven_flash_v2_5",
        output_format: str = "mp3_22050_32",
        stability: float = 0.5,
        similarity_boost: float = 0.8,
        style: float = 0.0,
        use_speaker_boost: bool = True,
    ):
        super().__init__()
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.style = style
        self.use_speaker_boost = use_speaker_boost

        self.client: Optional[ElevenLabs] = None
        self.is_playing = False
        self._generation = 0
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _ensure_client(self) -> ElevenLabs:
        if self.client is None:
            api_key = os.getenv("ELEVENLABS_API_KEY")
            if not api_key:
                raise ValueError("ELEVENLABS_API_KEY environment variable not set")
            self.client = ElevenLabs(api_key=api_key)
        return self.client

    def is_available(self) -> bool:
        if not os.getenv("ELEVENLABS_API_KEY"):
            logger.warning("ELEVENLABS_API_KEY environment variable not set")
            return False
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.pre_init(frequency=22050, size=-16, channels=2, buffer=1024)
                pygame.mixer.init()
        except pygame.error as e:
            logger.warning("Audio output unavailable", error=str(e))
            return False
        return True

    def configured_voice_id(self) -> str:
        return self.voice_id

    def list_voices(self) -> List[Voice]:
        try:
            response = self._ensure_client().voices.get_all()
        except Exception as e:
            logger.warning("Could not list ElevenLabs voices", error=str(e))
            return []

        voices = []
        for item in response.voices:
            labels = item.labels or {}
            locale = ACCENT_LOCALES.get(str(labels.get("accent", "")).lower(), "")
            voices.append(Voice(id=item.voice_id, name=item.name or "", locale=locale))
        return voices

    def speak(
        self,
        text: str,
        voice: Optional[Voice] = None,
        pitch: float = 1.0,
        rate: float = 1.0,
    ) -> None:
        if pitch != 1.0:
            logger.debug("ElevenLabs has no pitch control, ignoring", pitch=pitch)

        with self._lock:
            self._generation += 1
            generation = self._generation
            self._loop = asyncio.get_running_loop()
            self.is_playing = True

        worker = threading.Thread(
            target=self._speak_worker,
            args=(generation, text, voice.id if voice else self.voice_id, rate),
            daemon=True,
            name="Playback-Worker",
        )
        worker.start()

    def _speak_worker(self, generation: int, text: str, voice_id: str, rate: float) -> None:
        try:
            audio = self._ensure_client().text_to_speech.convert(
                voice_id=voice_id,
                text=text,
                model_id=self.model_id,
                output_format=self.output_format,
                voice_settings=VoiceSettings(
                    stability=self.stability,
                    similarity_boost=self.similarity_boost,
                    style=self.style,
                    use_speaker_boost=self.use_speaker_boost,
                    speed=rate,
                ),
            )
            audio_data = audio if isinstance(audio, (bytes, bytearray)) else b"".join(audio)

            if generation != self._generation:
                return
            pygame.mixer.music.load(BytesIO(bytes(audio_data)))
            pygame.mixer.music.play()
            while pygame.mixer.music.get_busy() and generation == self._generation:
                time.sleep(0.02)
        except Exception as e:
            # A failed utterance still ends, so the session keeps cycling
            logger.error("Error during speech playback", error=str(e))

        with self._lock:
            if generation != self._generation:
                return
            self.is_playing = False
        self._post(generation)

    def _post(self, generation: int) -> None:
        def deliver():
            if generation == self._generation:
                self.emit_end()

        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(deliver)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self.is_playing = False
        if pygame.mixer.get_init() is not None:
            pygame.mixer.music.stop()

    def get_status(self) -> dict:
        return {
            "provider": "elevenlabs",
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "is_playing": self.is_playing,
            "initialized": self.client is not None,
            "mixer_initialized": pygame.mixer.get_init() is not None,
        }
