#This decodes FSD, the colon delimited text protocol spoken between
#flight simulator / ATC clients and network servers.
#It handles:
#	1.	Type identification by prefix, with overlapping prefixes checked in priority order
#	2.	Lines that carry several messages joined by a literal "\r\n" marker
#	3.	Per type field layouts with minimum field counts
#	4.	JSON payloads inside client queries
#
#Malformed input never raises. It comes back typed, with fields set to None.
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from fsd_pipeline_mcp.core.decoder_base import (
    BaseDecoder,
    Decoder,
    parse_float_field,
    parse_int_field,
    split_fields,
    starts_with_any,
)
from fsd_pipeline_mcp.core.models import DecodedMessage

from .summary import summarize

DECODER_NAME = "fsd"

# The capture tool prints embedded CR LF as the four characters \ r \ n,
# so one transport line can hold several protocol messages.
ESCAPED_CRLF = "\\r\\n"

# Order matters. More specific prefixes must come before anything that
# would also match them, and the bare "%" goes last.
PREFIX_TYPES: Tuple[Tuple[str, str], ...] = (
    ("@S:", "POSITION_SLOW"),
    ("@N:", "POSITION_FAST"),
    ("$FP", "FLIGHT_PLAN"),
    ("$CQ", "CLIENT_QUERY"),
    ("$ZC", "CLIENT_ID"),
    ("$CR", "CLIENT_RESPONSE"),
    ("$ZR", "SERVER_RESPONSE"),
    ("#TM", "TEXT_MESSAGE"),
    ("#PC", "PILOT_CLIENT"),
    ("#AP", "AUTH_PILOT"),
    ("#ST", "STATION_POSITION"),
    ("#AA", "AUTH_ADD"),
    ("#DA", "AUTH_DELETE"),
    ("%", "CONTROLLER_POSITION"),
)

PREFIXES: Tuple[str, ...] = tuple(p for p, _ in PREFIX_TYPES)


def identify_type(message: str) -> str:
    if not message:
        return "UNKNOWN"
    for prefix, msg_type in PREFIX_TYPES:
        if message.startswith(prefix):
            return msg_type
    return "UNKNOWN"


def split_batch(line: str) -> List[str]:
    """
    Split a transport line on the escaped CRLF marker.
    Fragments are stripped and empty ones dropped.
    """
    fragments = []
    for part in line.split(ESCAPED_CRLF):
        part = part.strip()
        if part:
            fragments.append(part)
    return fragments


def parse_position(message: str) -> Optional[Dict[str, Any]]:
    """
    @S:CALLSIGN:SQUAWK:RATING:LAT:LON:ALT:GS:PBH:FLAGS
    """
    fields = split_fields(message)
    if len(fields) < 10:
        return None

    return {
        "callsign": fields[1],
        "squawk": fields[2],
        "rating": parse_int_field(fields[3]),
        "latitude": parse_float_field(fields[4]),
        "longitude": parse_float_field(fields[5]),
        "altitude": parse_int_field(fields[6]),
        "groundSpeed": parse_int_field(fields[7]),
        "pbh": fields[8],
        "flags": fields[9],
    }


def parse_flight_plan(message: str) -> Optional[Dict[str, Any]]:
    """
    $FPCALLSIGN:...flight plan payload...

    The payload is kept as text.
    """
    callsign_end = message.find(":", 3)
    if callsign_end == -1:
        return None

    return {
        "callsign": message[3:callsign_end],
        "data": message[callsign_end + 1:],
    }


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON.
    raise ValueError(f"invalid JSON constant {name}")


def parse_client_query(message: str) -> Optional[Dict[str, Any]]:
    """
    $CQCALLSIGN:@SERVER:TYPE:DATA

    DATA may itself contain colons. When it parses as JSON the decoded value
    is added under "json", otherwise it stays text only.
    """
    fields = split_fields(message)
    if len(fields) < 4:
        return None

    result: Dict[str, Any] = {
        "callsign": fields[0][3:],
        "server": fields[1],
        "queryType": fields[2],
        "data": ":".join(fields[3:]),
    }

    try:
        result["json"] = json.loads(result["data"], parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        pass

    return result


def parse_text_message(message: str) -> Optional[Dict[str, Any]]:
    """
    #TMFROM:TO:MESSAGE
    """
    fields = split_fields(message)
    if len(fields) < 3:
        return None

    return {
        "from": fields[0][3:],
        "to": fields[1],
        "message": ":".join(fields[2:]),
    }


def parse_controller_position(message: str) -> Optional[Dict[str, Any]]:
    """
    %CALLSIGN:FREQ:FACILITY:RANGE:RATING:LAT:LON:ALT
    """
    fields = split_fields(message)
    if len(fields) < 8:
        return None

    return {
        "callsign": fields[0][1:],
        "frequency": fields[1],
        "facility": parse_int_field(fields[2]),
        "visualRange": parse_int_field(fields[3]),
        "rating": parse_int_field(fields[4]),
        "latitude": parse_float_field(fields[5]),
        "longitude": parse_float_field(fields[6]),
        "altitudeRange": parse_int_field(fields[7]),
    }


def parse_auth_pilot(message: str) -> Optional[Dict[str, Any]]:
    """
    #APCALLSIGN:SERVER:CID::VR:RATING:PROTOCOL:NAME

    Field 3 is always empty on the wire and is skipped.
    """
    fields = split_fields(message)
    if len(fields) < 7:
        return None

    return {
        "callsign": fields[0][3:],
        "server": fields[1],
        "cid": fields[2],
        "visualRange": fields[4],
        "rating": parse_int_field(fields[5]),
        "protocol": parse_int_field(fields[6]),
        "realName": ":".join(fields[7:]),
    }


def parse_station_position(message: str) -> Optional[Dict[str, Any]]:
    """
    #STCALLSIGN:LAT:LON:ALT_AGL:GS:FLAGS:VS
    """
    fields = split_fields(message)
    if len(fields) < 7:
        return None

    return {
        "callsign": fields[0][3:],
        "latitude": parse_float_field(fields[1]),
        "longitude": parse_float_field(fields[2]),
        "altitudeAGL": parse_float_field(fields[3]),
        "groundSpeed": parse_float_field(fields[4]),
        "flags": fields[5],
        "verticalSpeed": parse_float_field(fields[6]),
    }


FIELD_PARSERS: Dict[str, Callable[[str], Optional[Dict[str, Any]]]] = {
    "POSITION_SLOW": parse_position,
    "POSITION_FAST": parse_position,
    "FLIGHT_PLAN": parse_flight_plan,
    "CLIENT_QUERY": parse_client_query,
    "TEXT_MESSAGE": parse_text_message,
    "CONTROLLER_POSITION": parse_controller_position,
    "AUTH_PILOT": parse_auth_pilot,
    "STATION_POSITION": parse_station_position,
}


def decode_message(message: str, summaries: bool = True) -> DecodedMessage:
    """
    Decode one logical FSD message (no batching).
    """
    msg_type = identify_type(message)

    parser = FIELD_PARSERS.get(msg_type)
    fields = parser(message) if parser else None

    summary = summarize(msg_type, fields) if summaries else None

    return DecodedMessage(type=msg_type, raw=message, fields=fields, human_summary=summary)


def decode_line(line: str, summaries: bool = True) -> DecodedMessage:
    """
    Decode a transport line which may hold several messages.

    One fragment decodes as that message. Several fragments give a BATCHED
    result holding every sub-message in order. A line with no fragments at
    all comes back as UNKNOWN.
    """
    fragments = split_batch(line)

    if not fragments:
        return DecodedMessage(type="UNKNOWN", raw=line)

    if len(fragments) == 1:
        return decode_message(fragments[0], summaries=summaries)

    messages = tuple(decode_message(f, summaries=summaries) for f in fragments)
    return DecodedMessage(
        type="BATCHED",
        raw=line,
        fields={"count": len(messages)},
        human_summary=f"{len(messages)} batched messages" if summaries else None,
        messages=messages,
    )


class FsdDecoder(BaseDecoder):
    """
    FSD decoder plugin.

    Config keys:
      summaries
        Render human readable summaries, default True.
    """

    name = DECODER_NAME
    version = "1.0.0"
    description = "VATSIM FSD protocol decoder"

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        super().__init__(config)
        self.summaries = bool(self.config.get("summaries", True))

    def can_handle(self, line: str) -> bool:
        if not line:
            return False
        return any(starts_with_any(f, PREFIXES) for f in split_batch(line))

    def decode(self, line: str) -> DecodedMessage:
        return decode_line(line, summaries=self.summaries)


def build_decoder(config: Optional[Mapping[str, Any]] = None) -> Decoder:
    return FsdDecoder(config)
