"""
Human readable one-line summaries for decoded FSD messages.

Summaries are presentational only. Missing or odd fields render as "?" and
any failure while rendering gives None, never an exception.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

# Client query codes seen from EuroScope and the common pilot clients.
# {callsign} is the sender, {target} the first data field, {value} the rest.
CLIENT_QUERY_TEMPLATES: Dict[str, str] = {
    "WH": "{callsign} asks who has {target}",
    "SC": "{callsign} set scratchpad of {target} to {value}",
    "TA": "{callsign} assigned temporary altitude {value}ft to {target}",
    "HT": "{callsign} hands off {target} to {value}",
    "BC": "{callsign} assigned squawk {value} to {target}",
    "DR": "{callsign} cleared {target} direct to {value}",
    "VT": "{callsign} set voice type of {target} to {value}",
    "NEWATIS": "{callsign} broadcast new ATIS {target} {value}",
    "ACC": "{callsign} sent aircraft configuration",
}


class _Missing(dict):
    def __missing__(self, key: str) -> str:
        return "?"


def _fmt(template: str, values: Mapping[str, Any]) -> str:
    clean = _Missing({k: v for k, v in values.items() if v not in (None, "")})
    return template.format_map(clean)


def _position(f: Mapping[str, Any]) -> str:
    return _fmt("{callsign} at {altitude}ft, {groundSpeed}kts, squawk {squawk}", f)


def _flight_plan(f: Mapping[str, Any]) -> str:
    return _fmt("Flight plan filed for {callsign}", f)


def _client_query(f: Mapping[str, Any]) -> str:
    query_type = str(f.get("queryType") or "")
    data = str(f.get("data") or "")
    target, _, value = data.partition(":")

    template = CLIENT_QUERY_TEMPLATES.get(query_type.upper())
    values = {"callsign": f.get("callsign"), "target": target, "value": value}
    if template is None:
        return _fmt("{callsign} query {query_type}", {**values, "query_type": query_type})
    return _fmt(template, values)


def _text_message(f: Mapping[str, Any]) -> str:
    return _fmt("{from} to {to}: {message}", f)


def _controller_position(f: Mapping[str, Any]) -> str:
    return _fmt("{callsign} online on {frequency}, range {visualRange}nm", f)


def _auth_pilot(f: Mapping[str, Any]) -> str:
    return _fmt("{callsign} ({realName}) connected, CID {cid}", f)


def _station_position(f: Mapping[str, Any]) -> str:
    return _fmt("{callsign} at {altitudeAGL}ft AGL, {groundSpeed}kts", f)


SUMMARIZERS: Dict[str, Callable[[Mapping[str, Any]], str]] = {
    "POSITION_SLOW": _position,
    "POSITION_FAST": _position,
    "FLIGHT_PLAN": _flight_plan,
    "CLIENT_QUERY": _client_query,
    "TEXT_MESSAGE": _text_message,
    "CONTROLLER_POSITION": _controller_position,
    "AUTH_PILOT": _auth_pilot,
    "STATION_POSITION": _station_position,
}


def summarize(msg_type: str, fields: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not fields:
        return None
    fn = SUMMARIZERS.get(msg_type)
    if fn is None:
        return None
    try:
        return fn(fields)
    except Exception:
        return None
