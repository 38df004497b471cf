"""Bounded chat history shared by late joiners, AI context and meetings."""

from collections import deque
from typing import Deque, Iterator, List

from .models import ChatRecord


class ChatHistory:
    """
    FIFO buffer of the most recent chat and AI response records.

    Once ``capacity`` is reached the oldest record is evicted on append.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._records: Deque[ChatRecord] = deque(maxlen=capacity)

    def append(self, record: ChatRecord) -> None:
        self._records.append(record)

    def recent(self, n: int) -> List[ChatRecord]:
        """The last ``n`` records, oldest first."""
        if n <= 0:
            return []
        return list(self._records)[-n:]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ChatRecord]:
        return iter(list(self._records))
