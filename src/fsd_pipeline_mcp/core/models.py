from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


def now_ms() -> int:
    return int(time.time() * 1000)


def freeze_fields(value: Any) -> Any:
    """
    Read-only deep copy of a decoded field value. Dicts become mapping
    proxies and lists become tuples.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_fields(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_fields(v) for v in value)
    return value


def thaw_fields(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: thaw_fields(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw_fields(v) for v in value]
    return value


@dataclass
class Channel:
    """
    One independently started and stopped capture source.

    Fields:
      id
        Channel identifier, usually the TCP port being captured.

      label
        Human readable name, defaults to "Port <id>".

      decoder_name
        Name of the decoder in the registry that handles this channel.

      enabled
        Disabled channels are skipped by start_all and refuse start.
    """

    id: int
    decoder_name: str = "fsd"
    label: str = ""
    enabled: bool = True

    def __post_init__(self) -> None:
        self.id = int(self.id)
        if not self.label:
            self.label = f"Port {self.id}"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Channel":
        """
        Build from a descriptor dict. Accepts "decoder" or "decoder_name",
        and "port" as an alias for "id".
        """
        channel_id = d["id"] if "id" in d else d["port"]
        return cls(
            id=int(channel_id),
            decoder_name=str(d.get("decoder_name", d.get("decoder", "fsd"))),
            label=str(d.get("label", "")),
            enabled=bool(d.get("enabled", True)),
        )


@dataclass
class ChannelStats:
    message_count: int = 0
    bytes_received: int = 0
    start_time: Optional[float] = None
    last_activity: Optional[float] = None


@dataclass(frozen=True)
class RawLine:
    """
    A single transport unit as read from a channel source.
    One line may hold several protocol messages.
    """

    channel_id: int
    decoder_name: str
    label: str
    text: str


@dataclass
class DecodedMessage:
    """
    Result of decoding one line or one fragment of a line.

    type
      Type tag, never empty. "UNKNOWN" for unrecognised prefixes and
      "BATCHED" for lines that carried several messages.

    fields
      Decoded fields, or None when the fragment failed the arity check
      for its type (or the type has no field layout).

    messages
      Ordered sub-results, only populated for BATCHED.
    """

    type: str
    raw: str
    fields: Optional[Dict[str, Any]] = None
    human_summary: Optional[str] = None
    timestamp_ms: int = field(default_factory=now_ms)
    messages: Tuple["DecodedMessage", ...] = ()

    @property
    def is_batched(self) -> bool:
        return self.type == "BATCHED"

    def flatten(self) -> List["DecodedMessage"]:
        """
        Expand a BATCHED result into its sub-messages, left to right.
        A plain message flattens to itself.
        """
        if not self.is_batched:
            return [self]
        out: List[DecodedMessage] = []
        for m in self.messages:
            out.extend(m.flatten())
        return out

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EnrichedMessage:
    """
    DecodedMessage tagged with the channel it arrived on.
    This is what the distribution bus and sinks receive.

    fields is frozen on creation so sinks sharing one message cannot see
    each other's changes.
    """

    type: str
    raw: str
    fields: Optional[Mapping[str, Any]]
    human_summary: Optional[str]
    timestamp_ms: int
    channel_id: int
    decoder_name: str

    def __post_init__(self):
        if self.fields is not None:
            object.__setattr__(self, "fields", freeze_fields(self.fields))

    @classmethod
    def from_decoded(cls, msg: DecodedMessage, channel_id: int, decoder_name: str) -> "EnrichedMessage":
        return cls(
            type=msg.type or "UNKNOWN",
            raw=msg.raw,
            fields=msg.fields,
            human_summary=msg.human_summary,
            timestamp_ms=msg.timestamp_ms,
            channel_id=int(channel_id),
            decoder_name=decoder_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "raw": self.raw,
            "fields": thaw_fields(self.fields),
            "human_summary": self.human_summary,
            "timestamp_ms": self.timestamp_ms,
            "channel_id": self.channel_id,
            "decoder_name": self.decoder_name,
        }


@dataclass
class SinkRegistration:
    name: str
    handler: Any
    enabled: bool = True
    accepted_count: int = 0
    error_count: int = 0

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "enabled": self.enabled,
            "accepted_count": self.accepted_count,
            "error_count": self.error_count,
        }


@dataclass
class PipelineStats:
    total_messages: int = 0
    counts_by_type: Dict[str, int] = field(default_factory=dict)
    counts_by_channel: Dict[int, int] = field(default_factory=dict)
    start_timestamp: float = field(default_factory=time.time)
