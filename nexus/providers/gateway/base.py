"""Base interface for assistant gateways."""

import hmac
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ...core.models import Message


API_KEY_PATTERN = re.compile(r"^NEXUS-[A-Z0-9]+-[A-Z0-9]+$")


@dataclass(frozen=True)
class GatewayReply:
    """Reply text and optional generated image reference."""

    text: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"text": self.text}
        if self.image_url:
            data["imageUrl"] = self.image_url
        return data


class AssistantGateway(ABC):
    """Abstract base class for the service that turns prompts into replies."""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or ""

    @abstractmethod
    async def process(
        self, request_text: str, history: Sequence[Message] = ()
    ) -> GatewayReply:
        """
        Produce a reply for the given request.

        Args:
            request_text: The prompt text
            history: Ordered messages of the thread, oldest first

        Returns:
            The assistant reply
        """
        pass

    async def close(self) -> None:
        """Release network resources."""

    def validate_api_key(self, key: str) -> bool:
        """Check an externally supplied key against the configured one."""
        if not self.api_key or not key:
            return False
        if not API_KEY_PATTERN.match(key):
            return False
        return hmac.compare_digest(key, self.api_key)

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the gateway."""
        pass
