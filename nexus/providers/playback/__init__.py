"""Speech playback devices."""


def register_providers():
    """Register all playback devices."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings

    def load_elevenlabs():
        from .elevenlabs import ElevenLabsPlayback
        return ElevenLabsPlayback

    registry.register_playback_device(
        "elevenlabs",
        load_elevenlabs,
        lambda: settings.get_provider_config("elevenlabs"),
    )
