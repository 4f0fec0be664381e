from __future__ import annotations

from typing import Any, Mapping, Optional

from fsd_pipeline_mcp.core.decoder_base import BaseDecoder, Decoder
from fsd_pipeline_mcp.core.models import DecodedMessage

DECODER_NAME = "raw"

# Pass-through decoder. Useful for channels carrying a protocol nobody has
# written a decoder for yet, so the lines still reach the sinks.


class RawDecoder(BaseDecoder):
    name = DECODER_NAME
    description = "Raw pass-through decoder"

    def can_handle(self, line: str) -> bool:
        return True

    def decode(self, line: str) -> DecodedMessage:
        return DecodedMessage(
            type="RAW",
            raw=line,
            fields={"message": line, "length": len(line)},
        )


def build_decoder(config: Optional[Mapping[str, Any]] = None) -> Decoder:
    return RawDecoder(config)
