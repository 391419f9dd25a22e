"""
Conversation threads for typed chat.

The store owns every thread, the active selection, and the single in-flight
send allowed per store instance.
"""

from typing import List, Optional

import structlog

from ..providers.gateway.base import AssistantGateway
from .models import Conversation, Message
from .request import request_reply


logger = structlog.get_logger()


class ConversationStore:
    """Collection of chat threads with an active selection."""

    def __init__(self, gateway: AssistantGateway):
        self.gateway = gateway
        self._threads: List[Conversation] = []
        self.active_id: Optional[str] = None
        self.is_loading = False

    @property
    def threads(self) -> List[Conversation]:
        """Threads in display order, newest first."""
        return list(self._threads)

    @property
    def active_thread(self) -> Optional[Conversation]:
        return self.get_thread(self.active_id) if self.active_id else None

    def get_thread(self, thread_id: str) -> Optional[Conversation]:
        for thread in self._threads:
            if thread.id == thread_id:
                return thread
        return None

    def start(self) -> Conversation:
        """Make sure at least one thread exists and return the active one."""
        if not self._threads:
            return self.create_thread()
        if self.active_thread is None:
            self.active_id = self._threads[0].id
        return self.active_thread

    def create_thread(self) -> Conversation:
        """Create a greeted thread, put it first and make it active."""
        thread = Conversation.with_greeting()
        self._threads.insert(0, thread)
        self.active_id = thread.id
        logger.info("Created conversation", thread_id=thread.id, thread_count=len(self._threads))
        return thread

    def select_thread(self, thread_id: str) -> bool:
        if self.get_thread(thread_id) is None:
            logger.warning("Cannot select unknown conversation", thread_id=thread_id)
            return False
        self.active_id = thread_id
        return True

    def delete_thread(self, thread_id: str) -> None:
        """Remove a thread. The store is never left without threads."""
        thread = self.get_thread(thread_id)
        if thread is None:
            return

        self._threads.remove(thread)
        logger.info("Deleted conversation", thread_id=thread_id, thread_count=len(self._threads))

        if self.active_id == thread_id:
            if self._threads:
                self.active_id = self._threads[0].id
            else:
                self.create_thread()

    def rename_thread(self, thread_id: str, title: str) -> bool:
        thread = self.get_thread(thread_id)
        title = title.strip()
        if thread is None or not title:
            return False
        thread.title = title
        return True

    def append_message(self, thread_id: str, message: Message) -> None:
        thread = self.get_thread(thread_id)
        if thread is None:
            logger.debug("Dropping message for unknown conversation", thread_id=thread_id)
            return
        thread.append(message)

    async def send_user_text(self, thread_id: str, text: str) -> bool:
        """
        Send user text to the gateway and append the reply.

        The user message is appended before the first await. Only one send
        may be in flight per store; other calls are rejected and return False.
        Gateway failures become an apology message in the thread.
        """
        if self.is_loading:
            logger.debug("Send rejected, request already in flight", thread_id=thread_id)
            return False
        thread = self.get_thread(thread_id)
        if thread is None:
            logger.warning("Send rejected, unknown conversation", thread_id=thread_id)
            return False

        self.is_loading = True
        try:
            thread.append(Message.user(text))
            history = thread.history()

            reply = await request_reply(self.gateway, text, history)
            self.append_message(
                thread_id, Message.assistant(reply.text, image_url=reply.image_url)
            )
        finally:
            self.is_loading = False
        return True
