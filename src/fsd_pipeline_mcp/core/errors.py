from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class PipelineError(Exception):
    """Base class for errors raised to callers of the pipeline API."""


class UnknownChannel(PipelineError, KeyError):
    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        super().__init__(f"channel {channel_id} not configured")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateChannel(PipelineError, ValueError):
    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        super().__init__(f"channel {channel_id} already registered")


class ChannelDisabled(PipelineError, ValueError):
    def __init__(self, channel_id: int):
        self.channel_id = channel_id
        super().__init__(f"channel {channel_id} is disabled")


class UnknownParser(PipelineError, KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"decoder {name!r} not registered")

    def __str__(self) -> str:
        return self.args[0]


@dataclass(frozen=True)
class SinkFailure:
    """
    One failed sink invocation.

    Not raised. The distribution bus hands it to on_sink_error listeners.
    """

    sink: str
    error: BaseException
    message: Any

    def __str__(self) -> str:
        return f"sink {self.sink} failed: {self.error!r}"
