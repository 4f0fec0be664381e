from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from .models import DecodedMessage


class Decoder(Protocol):
    """
    Required interface for a decoder plugin.

    A decoder is responsible for
    1. Saying whether a line looks like its protocol (can_handle)
    2. Turning one line into a DecodedMessage (decode)

    decode must never raise for malformed input. Degraded input comes back
    as a typed message with fields set to None.

    Decoders are built by a factory taking a config mapping, see
    DecoderRegistry.create.
    """

    name: str
    config: Mapping[str, Any]

    def init(self) -> None:
        """
        Called once by the registry right after construction.
        """
        ...

    def can_handle(self, line: str) -> bool:
        ...

    def decode(self, line: str) -> DecodedMessage:
        ...

    def metadata(self) -> Dict[str, Any]:
        ...


class BaseDecoder:
    """
    Shared defaults for concrete decoders.
    """

    name = "unknown"
    version = "1.0.0"
    description = "No description"

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        self.config: Dict[str, Any] = dict(config or {})

    def init(self) -> None:
        pass

    def can_handle(self, line: str) -> bool:
        raise NotImplementedError

    def decode(self, line: str) -> DecodedMessage:
        raise NotImplementedError

    def validate(self, fields: Optional[Dict[str, Any]]) -> bool:
        return fields is not None

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.config.get("version", self.version),
            "description": self.config.get("description", self.description),
        }


def starts_with_any(line: str, prefixes: Iterable[str]) -> bool:
    return any(line.startswith(p) for p in prefixes)


def split_fields(line: str, delimiter: str = ":") -> List[str]:
    return line.split(delimiter)


def parse_int_field(value: Any, default: int = 0) -> int:
    """
    Integer conversion that never raises.

    Decimal strings like "35000.0" truncate toward zero. Anything else that
    does not convert returns default.
    """
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def parse_float_field(value: Any, default: float = 0) -> float:
    """
    Float conversion that never raises. NaN and infinity count as a failed
    conversion.
    """
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed):
        return default
    return parsed
