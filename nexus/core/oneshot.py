"""Authenticated one-shot requests that bypass the conversation store."""

import structlog

from ..providers.gateway.base import AssistantGateway, GatewayReply
from .errors import UnauthorizedError


logger = structlog.get_logger()


async def run_one_shot(gateway: AssistantGateway, key: str, prompt: str) -> GatewayReply:
    """
    Validate the key and make a single gateway call without history.

    Raises:
        UnauthorizedError: if the key is invalid. No request is made.
    """
    if not gateway.validate_api_key(key):
        logger.warning("Rejected one-shot request with invalid key")
        raise UnauthorizedError()

    logger.info("Processing one-shot request", prompt_length=len(prompt))
    return await gateway.process(prompt)
