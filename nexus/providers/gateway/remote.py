"""Gateway that forwards requests to a user-supplied HTTP endpoint."""

from typing import Optional, Sequence

import httpx
import structlog

from ...core.errors import GatewayError
from ...core.models import Message
from .base import AssistantGateway, GatewayReply


logger = structlog.get_logger()


class RemoteGateway(AssistantGateway):
    """
    Posts ``{"prompt", "history"}`` to a remote endpoint and expects
    ``{"text", "imageUrl"}`` back.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key)
        if not endpoint:
            raise GatewayError("Remote gateway requires an endpoint")
        self.endpoint = endpoint
        # Only connecting is bounded; reply time is left to the endpoint
        timeout = httpx.Timeout(connect=connect_timeout, read=None, write=30.0, pool=None)
        headers = {"X-Nexus-Key": self.api_key} if self.api_key else {}
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    async def process(
        self, request_text: str, history: Sequence[Message] = ()
    ) -> GatewayReply:
        response = await self._client.post(
            self.endpoint,
            json={
                "prompt": request_text,
                "history": [message.to_dict() for message in history],
            },
        )
        response.raise_for_status()
        data = response.json()

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise GatewayError("Remote endpoint returned no text")
        return GatewayReply(text=text, image_url=data.get("imageUrl"))

    async def close(self) -> None:
        await self._client.aclose()

    def get_status(self) -> dict:
        return {
            "provider": "remote",
            "endpoint": self.endpoint,
            "authenticated": bool(self.api_key),
        }
