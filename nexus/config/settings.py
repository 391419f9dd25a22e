"""Configuration settings for Nexus."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, asdict
import json
import structlog
from dotenv import load_dotenv
import threading


logger = structlog.get_logger()


@dataclass
class GatewaySettings:
    """Assistant gateway settings."""
    provider: str = "gemini"
    system_instruction: str = "Nexus Core V6.0 initialized."

    # Gemini
    gemini_model: str = "gemini-1.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 2048

    # Remote endpoint
    remote_endpoint: str = ""
    remote_connect_timeout: float = 10.0


@dataclass
class VoiceSettings:
    """Live voice session settings."""
    locale: str = "en-US"
    preferred_voice: str = ""
    capture_provider: str = "whisperkit"
    playback_provider: str = "elevenlabs"

    # WhisperKit capture
    whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli"
    whisperkit_model: str = "large-v3_turbo"
    whisperkit_compute_units: str = "cpuAndNeuralEngine"
    sample_rate: int = 16000
    vad_aggressiveness: int = 2
    silence_duration_ms: int = 800
    max_utterance_seconds: float = 15.0

    # ElevenLabs playback
    elevenlabs_voice_id: str = "pNInz6obpgDQGcFmaJgB"  # Adam voice
    elevenlabs_model_id: str = "eleven_flash_v2_5"
    elevenlabs_output_format: str = "mp3_22050_32"


@dataclass
class StorageSettings:
    """Local key-value storage settings."""
    data_dir: str = "~/.nexus"
    key_file: str = "storage.json"

    @property
    def key_path(self) -> Path:
        return Path(self.data_dir).expanduser() / self.key_file


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "dev"
    file_enabled: bool = False
    log_dir: str = "./logs"
    file_rotation_mb: int = 10
    file_backup_count: int = 7


SECTIONS = ("gateway", "voice", "storage", "logging")


class Settings:
    """Main settings class for Nexus."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None,
                 load_env_file: bool = True):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = not load_env_file

        self.gateway = GatewaySettings()
        self.voice = VoiceSettings()
        self.storage = StorageSettings()
        self.logging = LoggingSettings()

        # .env first, then file, then environment overrides
        self._load_env_file()

        if self.config_file and self.config_file.exists():
            self.load_from_file()

        self.load_from_env()

    def _load_env_file(self) -> None:
        """Load environment variables from .env file."""
        if not self._env_loaded:
            # Look for .env in current directory and parent directories
            current_dir = Path.cwd()
            for parent in [current_dir] + list(current_dir.parents):
                env_file = parent / ".env"
                if env_file.exists():
                    load_dotenv(env_file)
                    logger.debug("Loaded .env file", path=str(env_file))
                    break
            self._env_loaded = True

    def load_from_file(self) -> None:
        """Load settings from configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, 'r') as f:
                    config = json.load(f)

                for section in SECTIONS:
                    if section not in config:
                        continue
                    target = getattr(self, section)
                    for key, value in config[section].items():
                        if hasattr(target, key):
                            setattr(target, key, value)
                        else:
                            logger.warning("Ignoring unknown setting",
                                           section=section, key=key)

                logger.info("Loaded settings from file", file=str(self.config_file))

        except (OSError, ValueError) as e:
            logger.error("Failed to load settings from file",
                         file=str(self.config_file),
                         error=str(e))

    def load_from_env(self) -> None:
        """Load settings from environment variables."""
        with self._lock:
            # Gateway selection
            if os.getenv("NEXUS_GATEWAY"):
                self.gateway.provider = os.getenv("NEXUS_GATEWAY")
            if os.getenv("NEXUS_SYSTEM_INSTRUCTION"):
                self.gateway.system_instruction = os.getenv("NEXUS_SYSTEM_INSTRUCTION")
            if os.getenv("GEMINI_MODEL"):
                self.gateway.gemini_model = os.getenv("GEMINI_MODEL")
            if os.getenv("GEMINI_TEMPERATURE"):
                self.gateway.gemini_temperature = float(os.getenv("GEMINI_TEMPERATURE"))
            if os.getenv("GEMINI_MAX_TOKENS"):
                self.gateway.gemini_max_tokens = int(os.getenv("GEMINI_MAX_TOKENS"))
            if os.getenv("NEXUS_REMOTE_ENDPOINT"):
                self.gateway.remote_endpoint = os.getenv("NEXUS_REMOTE_ENDPOINT")

            # Voice settings
            if os.getenv("NEXUS_VOICE_LOCALE"):
                self.voice.locale = os.getenv("NEXUS_VOICE_LOCALE")
            if os.getenv("NEXUS_PREFERRED_VOICE"):
                self.voice.preferred_voice = os.getenv("NEXUS_PREFERRED_VOICE")
            if os.getenv("NEXUS_CAPTURE_PROVIDER"):
                self.voice.capture_provider = os.getenv("NEXUS_CAPTURE_PROVIDER")
            if os.getenv("NEXUS_PLAYBACK_PROVIDER"):
                self.voice.playback_provider = os.getenv("NEXUS_PLAYBACK_PROVIDER")
            if os.getenv("WHISPERKIT_PATH"):
                self.voice.whisperkit_path = os.getenv("WHISPERKIT_PATH")
            if os.getenv("WHISPERKIT_MODEL"):
                self.voice.whisperkit_model = os.getenv("WHISPERKIT_MODEL")
            if os.getenv("WHISPERKIT_COMPUTE_UNITS"):
                self.voice.whisperkit_compute_units = os.getenv("WHISPERKIT_COMPUTE_UNITS")
            if os.getenv("ELEVENLABS_VOICE_ID"):
                self.voice.elevenlabs_voice_id = os.getenv("ELEVENLABS_VOICE_ID")
            if os.getenv("ELEVENLABS_MODEL_ID"):
                self.voice.elevenlabs_model_id = os.getenv("ELEVENLABS_MODEL_ID")

            # Storage
            if os.getenv("NEXUS_DATA_DIR"):
                self.storage.data_dir = os.getenv("NEXUS_DATA_DIR")

            # Logging settings
            if os.getenv("LOG_LEVEL"):
                self.logging.level = os.getenv("LOG_LEVEL").upper()
            if os.getenv("LOG_FORMAT"):
                self.logging.format = os.getenv("LOG_FORMAT")
            if os.getenv("LOG_FILE_ENABLED"):
                self.logging.file_enabled = os.getenv("LOG_FILE_ENABLED").lower() == "true"

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        try:
            with self._lock:
                save_path.parent.mkdir(parents=True, exist_ok=True)
                with open(save_path, 'w') as f:
                    json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

                logger.info("Saved settings to file", file=str(save_path))

        except OSError as e:
            logger.error("Failed to save settings to file",
                         file=str(save_path), error=str(e))
            raise

    def get_provider_config(self, provider_type: str) -> Dict[str, Any]:
        """Get configuration for a specific provider."""
        if provider_type == "gemini":
            return {
                "model_name": self.gateway.gemini_model,
                "temperature": self.gateway.gemini_temperature,
                "max_tokens": self.gateway.gemini_max_tokens,
                "system_instruction": self.gateway.system_instruction,
            }
        elif provider_type == "remote":
            return {
                "endpoint": self.gateway.remote_endpoint,
                "connect_timeout": self.gateway.remote_connect_timeout,
            }
        elif provider_type == "whisperkit":
            return {
                "whisperkit_path": self.voice.whisperkit_path,
                "model": self.voice.whisperkit_model,
                "compute_units": self.voice.whisperkit_compute_units,
                "sample_rate": self.voice.sample_rate,
                "vad_aggressiveness": self.voice.vad_aggressiveness,
                "silence_duration_ms": self.voice.silence_duration_ms,
                "max_utterance_seconds": self.voice.max_utterance_seconds,
            }
        elif provider_type == "elevenlabs":
            return {
                "voice_id": self.voice.elevenlabs_voice_id,
                "model_id": self.voice.elevenlabs_model_id,
                "output_format": self.voice.elevenlabs_output_format,
            }
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if self.gateway.provider not in ["gemini", "remote"]:
            issues.append(f"Unknown gateway: {self.gateway.provider}")
        if self.gateway.provider == "remote" and not self.gateway.remote_endpoint:
            issues.append("Remote gateway selected but no remote endpoint configured")
        if not 0.0 <= self.gateway.gemini_temperature <= 2.0:
            issues.append(f"Invalid Gemini temperature: {self.gateway.gemini_temperature}")

        if self.voice.sample_rate not in [8000, 16000, 32000, 48000]:
            issues.append(f"Invalid sample rate: {self.voice.sample_rate}")
        if self.voice.vad_aggressiveness not in [0, 1, 2, 3]:
            issues.append(f"Invalid VAD aggressiveness: {self.voice.vad_aggressiveness}")
        if self.voice.silence_duration_ms <= 0:
            issues.append(f"Invalid silence duration: {self.voice.silence_duration_ms}")

        if self.logging.level not in ["DEBUG", "INFO", "WARNING", "ERROR"]:
            issues.append(f"Invalid log level: {self.logging.level}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        with self._lock:
            return {section: asdict(getattr(self, section)) for section in SECTIONS}


# Global settings instance
settings = Settings()
