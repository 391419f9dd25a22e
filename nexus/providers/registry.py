"""Provider registry for dynamic provider loading."""

from typing import Dict, Type, Callable, Any, Optional
import structlog

from .gateway.base import AssistantGateway
from .capture.base import CaptureDevice
from .playback.base import PlaybackDevice


logger = structlog.get_logger()


ClassLoader = Callable[[], type]
ConfigGetter = Callable[[], Dict[str, Any]]


class ProviderRegistry:
    """
    Registry for managing provider implementations.

    Providers are registered with a loader that imports the implementation
    class on first use, so optional audio and network libraries are only
    imported when the matching provider is selected.
    """

    KINDS = ("gateway", "capture", "playback")

    def __init__(self):
        self._loaders: Dict[str, Dict[str, ClassLoader]] = {
            kind: {} for kind in self.KINDS
        }
        self._provider_configs: Dict[str, ConfigGetter] = {}

    def _register(
        self,
        kind: str,
        name: str,
        loader: ClassLoader,
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        self._loaders[kind][name] = loader
        if config_getter:
            self._provider_configs[f"{kind}:{name}"] = config_getter
        logger.debug("Registered provider", kind=kind, name=name)

    def register_gateway(
        self,
        name: str,
        loader: Callable[[], Type[AssistantGateway]],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register an assistant gateway."""
        self._register("gateway", name, loader, config_getter)

    def register_capture_device(
        self,
        name: str,
        loader: Callable[[], Type[CaptureDevice]],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a speech capture device."""
        self._register("capture", name, loader, config_getter)

    def register_playback_device(
        self,
        name: str,
        loader: Callable[[], Type[PlaybackDevice]],
        config_getter: Optional[ConfigGetter] = None,
    ) -> None:
        """Register a speech playback device."""
        self._register("playback", name, loader, config_getter)

    def _create(self, kind: str, name: str, **kwargs) -> Any:
        loaders = self._loaders[kind]
        if name not in loaders:
            raise ValueError(f"Unknown {kind} provider: {name}")

        provider_class = loaders[name]()
        config_key = f"{kind}:{name}"

        # Explicit kwargs win over configured defaults
        if config_key in self._provider_configs:
            config = self._provider_configs[config_key]()
            config.update(kwargs)
            kwargs = config

        return provider_class(**kwargs)

    def get_gateway(self, name: str, **kwargs) -> AssistantGateway:
        """Get an assistant gateway instance."""
        return self._create("gateway", name, **kwargs)

    def get_capture_device(self, name: str, **kwargs) -> CaptureDevice:
        """Get a capture device instance."""
        return self._create("capture", name, **kwargs)

    def get_playback_device(self, name: str, **kwargs) -> PlaybackDevice:
        """Get a playback device instance."""
        return self._create("playback", name, **kwargs)

    def list_gateways(self) -> list[str]:
        """List available gateways."""
        return list(self._loaders["gateway"].keys())

    def list_capture_devices(self) -> list[str]:
        """List available capture devices."""
        return list(self._loaders["capture"].keys())

    def list_playback_devices(self) -> list[str]:
        """List available playback devices."""
        return list(self._loaders["playback"].keys())

    def clear(self) -> None:
        """Clear all registered providers."""
        for loaders in self._loaders.values():
            loaders.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()
