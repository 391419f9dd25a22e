"""Utterance segmentation and file transcription for WhisperKit capture."""

import subprocess
from pathlib import Path
from typing import List, Union

import numpy as np
import webrtcvad
import structlog


logger = structlog.get_logger()


class UtteranceSegmenter:
    """
    Collects microphone audio until one utterance has ended.

    An utterance ends after speech followed by ``silence_duration_ms`` of
    non-speech, or once ``max_utterance_seconds`` of audio has been seen.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        frame_duration_ms: int = 30,
        aggressiveness: int = 2,
        silence_duration_ms: int = 800,
        max_utterance_seconds: float = 15.0,
    ):
        self.sample_rate = sample_rate
        self.frame_duration_ms = frame_duration_ms
        self.frame_size = int(sample_rate * frame_duration_ms / 1000)
        self.silence_duration_ms = silence_duration_ms
        self.max_duration_ms = int(max_utterance_seconds * 1000)
        self.vad = webrtcvad.Vad(aggressiveness)
        self.reset()

    def reset(self) -> None:
        self._pending = np.zeros(0, dtype=np.float32)
        self._frames: List[np.ndarray] = []
        self.heard_speech = False
        self.ended = False
        self._silence_ms = 0
        self._elapsed_ms = 0

    def feed(self, audio: np.ndarray) -> bool:
        """Add mono float32 samples. Returns True once the utterance has ended."""
        if self.ended:
            return True

        self._pending = np.concatenate([self._pending, audio.astype(np.float32)])
        while len(self._pending) >= self.frame_size and not self.ended:
            frame = self._pending[: self.frame_size]
            self._pending = self._pending[self.frame_size :]
            self._process_frame(frame)
        return self.ended

    def _process_frame(self, frame: np.ndarray) -> None:
        pcm = (np.clip(frame, -1.0, 1.0) * 32767).astype(np.int16).tobytes()
        is_speech = self.vad.is_speech(pcm, self.sample_rate)
        self._elapsed_ms += self.frame_duration_ms

        if is_speech:
            self.heard_speech = True
            self._silence_ms = 0
        elif self.heard_speech:
            self._silence_ms += self.frame_duration_ms

        if self.heard_speech:
            self._frames.append(frame)

        if self.heard_speech and self._silence_ms >= self.silence_duration_ms:
            self.ended = True
        elif self._elapsed_ms >= self.max_duration_ms:
            self.ended = True

    @property
    def audio(self) -> np.ndarray:
        if not self._frames:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self._frames)


def transcribe_file(
    audio_path: Union[str, Path],
    whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli",
    model: str = "large-v3_turbo",
    compute_units: str = "cpuAndNeuralEngine",
    timeout: float = 60.0,
) -> str:
    """Run whisperkit-cli on one audio file and return the transcript."""
    cmd = [
        whisperkit_path,
        "transcribe",
        "--audio-path",
        str(audio_path),
        "--model",
        model,
        "--audio-encoder-compute-units",
        compute_units,
        "--text-decoder-compute-units",
        compute_units,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    if result.returncode != 0:
        logger.error(
            "WhisperKit process failed",
            return_code=result.returncode,
            stderr=result.stderr,
        )
        raise RuntimeError(f"WhisperKit failed with code {result.returncode}: {result.stderr}")

    lines = [line.strip() for line in result.stdout.splitlines()]
    return " ".join(line for line in lines if line)
