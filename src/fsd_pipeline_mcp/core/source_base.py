from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Dict, Protocol

from .models import Channel


class LineSource(Protocol):
    """
    Required interface for a capture source.

    A source is responsible for
    1. Acquiring whatever produces the text (a subprocess, a socket, a file)
    2. Yielding one complete text line per transport unit

    A line is not necessarily one protocol message. Splitting batched
    lines is the decoder's job.

    The multiplexer calls start(), then iterates lines() in a task of its
    own until the iterator ends or stop() is called.
    """

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    def lines(self) -> AsyncIterator[str]:
        ...

    def status(self) -> Dict[str, Any]:
        """
        Return quick health and counters. Must be fast and side effect free.
        """
        ...


SourceFactory = Callable[[Channel], LineSource]
