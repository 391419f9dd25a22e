"""Provider interfaces and implementations for gateways, capture and playback."""

from .registry import registry

# Defer provider registration to avoid circular imports
def _register_all_providers():
    """Register all provider types."""
    from . import gateway, capture, playback
    gateway.register_providers()
    capture.register_providers()
    playback.register_providers()

# Register providers after module initialization
_register_all_providers()

__all__ = ['registry']
