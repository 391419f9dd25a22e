"""Speech capture devices."""


def register_providers():
    """Register all capture devices."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings

    def load_whisperkit():
        from .whisperkit import WhisperKitCapture
        return WhisperKitCapture

    registry.register_capture_device(
        "whisperkit",
        load_whisperkit,
        lambda: settings.get_provider_config("whisperkit"),
    )
