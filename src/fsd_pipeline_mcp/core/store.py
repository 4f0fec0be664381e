from __future__ import annotations

import time
from collections import deque
from typing import Deque, List, Optional

from .models import EnrichedMessage


class MessageStore:
    """
    In memory ring buffer of recent EnrichedMessage objects.

    Registered on the bus as the "recent" sink so the MCP tools can show
    what is flowing through the pipeline. This is not persistence, the
    oldest messages fall off once maxlen is reached.
    """

    def __init__(self, maxlen: int = 10_000):
        self._messages: Deque[EnrichedMessage] = deque(maxlen=maxlen)

    def __call__(self, message: EnrichedMessage) -> None:
        self.add(message)

    def add(self, message: EnrichedMessage) -> None:
        self._messages.append(message)

    def __len__(self) -> int:
        return len(self._messages)

    def recent(
        self,
        seconds: int = 300,
        msg_type: Optional[str] = None,
        channel_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[EnrichedMessage]:
        """
        Return messages newer than now minus seconds, oldest first.
        limit keeps only the newest entries.
        """
        cutoff_ms = (time.time() - seconds) * 1000
        out = [
            m
            for m in self._messages
            if m.timestamp_ms >= cutoff_ms
            and (msg_type is None or m.type == msg_type)
            and (channel_id is None or m.channel_id == channel_id)
        ]
        if limit is not None and limit >= 0:
            out = out[-limit:] if limit else []
        return out

    def clear(self) -> None:
        self._messages.clear()
