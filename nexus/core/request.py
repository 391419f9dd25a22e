"""Gateway request lifecycle shared by chat threads and voice sessions."""

import time
from typing import Sequence

import structlog

from ..providers.gateway.base import AssistantGateway, GatewayReply
from .models import Message


logger = structlog.get_logger()


APOLOGY_TEXT = "I encountered an error processing your request."


async def request_reply(
    gateway: AssistantGateway,
    request_text: str,
    history: Sequence[Message] = (),
) -> GatewayReply:
    """Call the gateway once, folding any failure into the apology reply."""
    start_time = time.monotonic()
    try:
        reply = await gateway.process(request_text, list(history))
    except Exception as e:
        logger.error(
            "Gateway request failed",
            error=str(e),
            error_type=type(e).__name__,
            history_length=len(history),
        )
        return GatewayReply(text=APOLOGY_TEXT)

    logger.debug(
        "Gateway request completed",
        latency_ms=round((time.monotonic() - start_time) * 1000, 1),
        reply_length=len(reply.text),
        has_image=reply.image_url is not None,
    )
    return reply
