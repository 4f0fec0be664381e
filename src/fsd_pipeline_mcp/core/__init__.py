"""
Core modules that must remain protocol neutral.

Keep FSD parsing and capture tool quirks out of this package.
"""

from .models import Channel, DecodedMessage, EnrichedMessage, RawLine
from .errors import ChannelDisabled, DuplicateChannel, SinkFailure, UnknownChannel, UnknownParser
from .registry import DecoderRegistry
from .multiplexer import CaptureMultiplexer
from .bus import DistributionBus
from .store import MessageStore
from .pipeline import FsdPipeline

__all__ = [
    "Channel",
    "DecodedMessage",
    "EnrichedMessage",
    "RawLine",
    "ChannelDisabled",
    "DuplicateChannel",
    "SinkFailure",
    "UnknownChannel",
    "UnknownParser",
    "DecoderRegistry",
    "CaptureMultiplexer",
    "DistributionBus",
    "MessageStore",
    "FsdPipeline",
]
