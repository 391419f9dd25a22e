"""Assistant gateways."""


def register_providers():
    """Register all gateways."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings

    def load_gemini():
        from .gemini import GeminiGateway
        return GeminiGateway

    def load_remote():
        from .remote import RemoteGateway
        return RemoteGateway

    registry.register_gateway(
        "gemini", load_gemini, lambda: settings.get_provider_config("gemini")
    )
    registry.register_gateway(
        "remote", load_remote, lambda: settings.get_provider_config("remote")
    )
