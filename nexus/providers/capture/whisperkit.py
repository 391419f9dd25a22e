"""WhisperKit capture device using sounddevice for microphone input."""

import asyncio
import os
import queue
import shutil
import subprocess
import tempfile
import threading
from typing import Optional

import numpy as np
import sounddevice as sd
import soundfile as sf
import structlog

from ...core.errors import DeviceUnavailableError
from .base import CaptureDevice
from .segmenter import UtteranceSegmenter, transcribe_file


logger = structlog.get_logger()


class WhisperKitCapture(CaptureDevice):
    """
    Records one utterance per start() and transcribes it with whisperkit-cli.

    Audio is read on a worker thread; transcript and end events are handed to
    the event loop that called start(). Events from a listen cycle that was
    stopped are discarded.
    """

    def __init__(
        self,
        whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli",
        model: str = "large-v3_turbo",
        compute_units: str = "cpuAndNeuralEngine",
        sample_rate: int = 16000,
        vad_aggressiveness: int = 2,
        silence_duration_ms: int = 800,
        max_utterance_seconds: float = 15.0,
        block_duration: float = 0.1,
    ):
        super().__init__()
        self.whisperkit_path = whisperkit_path
        self.model = model
        self.compute_units = compute_units
        self.sample_rate = sample_rate
        self.vad_aggressiveness = vad_aggressiveness
        self.silence_duration_ms = silence_duration_ms
        self.max_utterance_seconds = max_utterance_seconds
        self.block_size = int(sample_rate * block_duration)

        self.audio_queue: queue.Queue = queue.Queue(maxsize=200)
        self.audio_stream: Optional[sd.InputStream] = None
        self.worker: Optional[threading.Thread] = None
        self.is_listening = False
        self._generation = 0
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.utterance_count = 0

    def is_available(self) -> bool:
        if not (os.path.exists(self.whisperkit_path) or shutil.which(self.whisperkit_path)):
            logger.warning("WhisperKit CLI not found", whisperkit_path=self.whisperkit_path)
            return False
        try:
            sd.query_devices(kind="input")
        except Exception as e:
            logger.warning("No audio input device", error=str(e))
            return False
        return True

    def audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.warning("Audio callback status", status=str(status))
        audio = np.mean(indata, axis=1) if indata.shape[1] > 1 else indata.flatten()
        try:
            self.audio_queue.put_nowait(audio.copy())
        except queue.Full:
            logger.warning("Audio queue full, dropping block")

    def start(self) -> None:
        with self._lock:
            if self.is_listening:
                return
            self._generation += 1
            generation = self._generation
            self._loop = asyncio.get_running_loop()
            self._drain_queue()

            try:
                self.audio_stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=1,
                    dtype=np.float32,
                    blocksize=self.block_size,
                    callback=self.audio_callback,
                )
                self.audio_stream.start()
            except Exception as e:
                self.audio_stream = None
                raise DeviceUnavailableError("capture", str(e)) from e

            self.is_listening = True
            self.worker = threading.Thread(
                target=self._listen_worker, args=(generation,), daemon=True, name="Capture-Worker"
            )
            self.worker.start()
        logger.debug("Capture started", generation=generation)

    def stop(self) -> None:
        with self._lock:
            self._generation += 1
            self.is_listening = False
            self._close_stream()

    def _close_stream(self) -> None:
        if self.audio_stream is not None:
            try:
                self.audio_stream.stop()
                self.audio_stream.close()
            except Exception as e:
                logger.warning("Error closing audio stream", error=str(e))
            self.audio_stream = None

    def _drain_queue(self) -> None:
        while not self.audio_queue.empty():
            try:
                self.audio_queue.get_nowait()
            except queue.Empty:
                break

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _listen_worker(self, generation: int) -> None:
        segmenter = UtteranceSegmenter(
            sample_rate=self.sample_rate,
            aggressiveness=self.vad_aggressiveness,
            silence_duration_ms=self.silence_duration_ms,
            max_utterance_seconds=self.max_utterance_seconds,
        )

        while self._is_current(generation):
            try:
                block = self.audio_queue.get(timeout=0.2)
            except queue.Empty:
                continue
            if segmenter.feed(block):
                break

        with self._lock:
            if not self._is_current(generation):
                return
            self.is_listening = False
            self._close_stream()

        text = ""
        if segmenter.heard_speech:
            try:
                text = self._transcribe(segmenter.audio)
            except (OSError, RuntimeError, subprocess.TimeoutExpired) as e:
                logger.error("Transcription failed", error=str(e))

        self.utterance_count += 1
        if text:
            self._post(generation, self.emit_result, text, True)
        self._post(generation, self.emit_end)

    def _transcribe(self, audio: np.ndarray) -> str:
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as temp_file:
            temp_filename = temp_file.name
        try:
            sf.write(temp_filename, audio, self.sample_rate)
            return transcribe_file(
                temp_filename,
                whisperkit_path=self.whisperkit_path,
                model=self.model,
                compute_units=self.compute_units,
            )
        finally:
            try:
                os.unlink(temp_filename)
            except OSError:
                pass

    def _post(self, generation: int, callback, *args) -> None:
        def deliver():
            if self._is_current(generation):
                callback(*args)

        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(deliver)

    def get_status(self) -> dict:
        return {
            "provider": "whisperkit",
            "model": self.model,
            "is_listening": self.is_listening,
            "stream_active": self.audio_stream is not None and self.audio_stream.active,
            "queue_size": self.audio_queue.qsize(),
            "utterance_count": self.utterance_count,
        }
