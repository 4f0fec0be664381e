from __future__ import annotations

import inspect
from typing import Any, Callable, List


class Signal:
    """
    Explicit list of listener callbacks for one notification.

    Listeners can be plain functions or coroutine functions. emit() calls
    them in connection order and awaits any awaitable result, so a slow
    async listener holds up the emitter until it finishes.

    A listener that raises is reported through log and does not stop the
    remaining listeners.
    """

    def __init__(self, name: str, log: Callable[[str], None] = print):
        self.name = name
        self._log = log
        self._listeners: List[Callable[..., Any]] = []

    def connect(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Callable[..., Any]) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._listeners)

    async def emit(self, *args: Any) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                self._log(f"[{self.name}] listener {getattr(listener, '__name__', listener)!s} failed: {exc!r}")
