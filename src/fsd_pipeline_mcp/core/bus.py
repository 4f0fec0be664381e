from __future__ import annotations

import asyncio
import copy
import inspect
import time
from typing import Any, Callable, Dict, List, Optional

from .errors import SinkFailure
from .models import EnrichedMessage, PipelineStats, SinkRegistration
from .signals import Signal

SinkHandler = Callable[[EnrichedMessage], Any]


class DistributionBus:
    """
    Fans decoded messages out to sinks and keeps running statistics.

    Notifications per dispatch, in this order:
      on_message
        Every message.

      on_type(message.type)
        Only messages of that type.

      on_sink_error
        One SinkFailure per failed sink invocation.

    Sinks run concurrently. A sink that raises only bumps its own error
    counter, the other sinks and the caller never see the exception.
    """

    def __init__(self, log: Callable[[str], None] = print):
        self._log = log
        self._sinks: Dict[str, SinkRegistration] = {}
        self._stats = PipelineStats()
        self._type_signals: Dict[str, Signal] = {}

        self.on_message = Signal("message", log=log)
        self.on_sink_error = Signal("sink-error", log=log)

    def on_type(self, msg_type: str) -> Signal:
        sig = self._type_signals.get(msg_type)
        if sig is None:
            sig = Signal(msg_type.lower(), log=self._log)
            self._type_signals[msg_type] = sig
        return sig

    def register_sink(self, name: str, handler: SinkHandler) -> None:
        if name in self._sinks:
            self._log(f"warning: sink '{name}' already registered, overwriting")
        self._sinks[name] = SinkRegistration(name=name, handler=handler)

    def unregister_sink(self, name: str) -> bool:
        return self._sinks.pop(name, None) is not None

    def enable_sink(self, name: str) -> bool:
        sink = self._sinks.get(name)
        if sink is None:
            return False
        sink.enabled = True
        return True

    def disable_sink(self, name: str) -> bool:
        sink = self._sinks.get(name)
        if sink is None:
            return False
        sink.enabled = False
        return True

    def list_sinks(self) -> List[str]:
        return list(self._sinks.keys())

    def sink_status(self, name: str) -> Optional[Dict[str, Any]]:
        sink = self._sinks.get(name)
        return sink.status() if sink else None

    async def dispatch(self, message: EnrichedMessage) -> None:
        msg_type = message.type or "UNKNOWN"

        stats = self._stats
        stats.total_messages += 1
        stats.counts_by_type[msg_type] = stats.counts_by_type.get(msg_type, 0) + 1
        stats.counts_by_channel[message.channel_id] = stats.counts_by_channel.get(message.channel_id, 0) + 1

        await self.on_message.emit(message)
        type_signal = self._type_signals.get(msg_type)
        if type_signal is not None:
            await type_signal.emit(message)

        targets = [s for s in self._sinks.values() if s.enabled]
        if targets:
            await asyncio.gather(*(self._deliver(s, message) for s in targets))

    async def _deliver(self, sink: SinkRegistration, message: EnrichedMessage) -> None:
        try:
            result = sink.handler(message)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            sink.error_count += 1
            failure = SinkFailure(sink=sink.name, error=exc, message=message)
            self._log(str(failure))
            await self.on_sink_error.emit(failure)
            return
        sink.accepted_count += 1

    def get_stats(self) -> Dict[str, Any]:
        """
        Snapshot of the counters. Safe to keep, later dispatches do not
        change it.
        """
        stats = self._stats
        uptime = max(time.time() - stats.start_timestamp, 0.0)
        rate = stats.total_messages / uptime if uptime > 0 else 0.0

        return {
            "total_messages": stats.total_messages,
            "counts_by_type": copy.deepcopy(stats.counts_by_type),
            "counts_by_channel": copy.deepcopy(stats.counts_by_channel),
            "start_timestamp": stats.start_timestamp,
            "uptime_seconds": uptime,
            "messages_per_second": round(rate, 2),
            "sinks": {name: s.status() for name, s in self._sinks.items()},
        }

    def reset_stats(self) -> None:
        self._stats = PipelineStats()
        for sink in self._sinks.values():
            sink.accepted_count = 0
            sink.error_count = 0
