"""
AI Request Pipeline

typing indicator (in the handler) -> context -> completion -> history/meetings -> broadcast -> chat log

Requests run as independent tasks: overlapping invocations are neither
queued nor coalesced, and may finish out of request order. Failures are
reported to the whole room since there is no per-user response channel.
"""

import asyncio
import logging
import time
from typing import Optional, Set

from fieldroom.config import RoomConfig
from fieldroom.meeting.manager import MeetingManager
from fieldroom.room.history import ChatHistory
from fieldroom.room.models import ChatRecord, RecordType, now_ms
from fieldroom.services.persistence import WorkspaceStore
from fieldroom.websocket.manager import ConnectionManager

from .client import CompletionClient
from .context import ContextBuilder

logger = logging.getLogger(__name__)


class AIPipeline:
    """Runs AI invocations for the room and publishes the results."""

    def __init__(
        self,
        config: RoomConfig,
        registry: ConnectionManager,
        history: ChatHistory,
        meetings: MeetingManager,
        context_builder: ContextBuilder,
        client: CompletionClient,
        persistence: WorkspaceStore,
    ):
        self.config = config
        self.registry = registry
        self.history = history
        self.meetings = meetings
        self.context_builder = context_builder
        self.client = client
        self.persistence = persistence
        self._tasks: Set[asyncio.Task] = set()

    async def schedule(self, from_user: str, text: str, reply_to: Optional[str] = None) -> asyncio.Task:
        """
        Announce the AI as typing, then run ``process`` in the background.

        The typing indicator goes out before the caller's handler returns;
        only the completion and its publication are deferred.
        """
        await self.registry.broadcast({"type": "typing", "userId": self.config.ai_user_id, "timestamp": now_ms()})
        task = asyncio.create_task(self.process(from_user, text, reply_to))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight request to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def process(
        self,
        from_user: str,
        text: str,
        reply_to: Optional[str] = None,
    ) -> Optional[ChatRecord]:
        """
        Answer ``text`` from ``from_user`` as the AI participant.

        Args:
            from_user: User id of the invoker
            text: Message or command addressed to the AI
            reply_to: Id of the chat record being answered

        Returns:
            The broadcast ai_response record, or None on failure
        """
        ai_id = self.config.ai_user_id
        start_time = time.perf_counter()
        try:
            context = self.context_builder.build(text, from_user)
            response_text = await self.client.complete(context.as_messages())

            record = ChatRecord(
                from_user=ai_id,
                text=response_text,
                type=RecordType.AI_RESPONSE,
                in_reply_to=reply_to,
            )
            self.history.append(record)
            self.meetings.record_chat(from_user, response_text, speaker=ai_id)
            await self.registry.broadcast(record.to_dict())

        except Exception as e:
            logger.error(f"AI request from {from_user} failed: {e}")
            await self.registry.broadcast({
                "type": "error",
                "text": f"Failed to get AI response: {e}",
                "timestamp": now_ms(),
            })
            return None

        latency = (time.perf_counter() - start_time) * 1000
        logger.info(f"AI response for {from_user} in {latency:.0f}ms: {response_text[:50]}...")

        if self.config.log_chat:
            try:
                await self.persistence.append_chat_log(record.to_dict())
            except OSError as e:
                logger.error(f"Failed to write chat log: {e}")
        return record
