"""Gemini assistant gateway."""

import os
from typing import Any, Dict, List, Optional, Sequence
import google.generativeai as genai
import structlog

from ...core.errors import GatewayError
from ...core.models import Message, Role
from .base import AssistantGateway, GatewayReply


logger = structlog.get_logger()


def to_gemini_contents(request_text: str, history: Sequence[Message]) -> List[Dict[str, Any]]:
    """Map thread history onto Gemini's user/model turns."""
    contents = [
        {
            "role": "user" if message.role is Role.USER else "model",
            "parts": [message.text],
        }
        for message in history
    ]
    # Gemini conversations open with a user turn, so drop the greeting
    while contents and contents[0]["role"] == "model":
        contents.pop(0)
    # Gemini expects the conversation to end on the user's request
    if not contents or contents[-1]["role"] != "user":
        contents.append({"role": "user", "parts": [request_text]})
    return contents


class GeminiGateway(AssistantGateway):
    """
    Gateway backed by the Gemini API.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.7,
        max_tokens: int = 2048,
        system_instruction: str = "Nexus Core V6.0 initialized.",
    ):
        super().__init__(api_key)
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_instruction = system_instruction
        self.model: Optional[genai.GenerativeModel] = None
        self.request_count = 0

    def initialize(self) -> None:
        """Initialize Gemini API client."""
        logger.info("Initializing Gemini gateway", model=self.model_name)

        google_api_key = os.getenv("GOOGLE_API_KEY")
        if not google_api_key:
            raise GatewayError("GOOGLE_API_KEY environment variable not set")

        genai.configure(api_key=google_api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name, system_instruction=self.system_instruction
        )

    async def process(
        self, request_text: str, history: Sequence[Message] = ()
    ) -> GatewayReply:
        """Generate a reply from Gemini."""
        if self.model is None:
            self.initialize()

        self.request_count += 1
        generation_config = genai.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )
        response = await self.model.generate_content_async(
            to_gemini_contents(request_text, history),
            generation_config=generation_config,
        )

        text = response.text if response.parts else ""
        if not text:
            raise GatewayError("Gemini returned an empty response")

        logger.debug("Gemini reply received", reply_length=len(text))
        return GatewayReply(text=text)

    def get_status(self) -> dict:
        """Get Gemini gateway status."""
        return {
            "provider": "gemini",
            "model": self.model_name,
            "initialized": self.model is not None,
            "request_count": self.request_count,
        }
