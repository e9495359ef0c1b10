"""
Alert sinks.

A sink receives each cycle's complete, correlated anomaly batch. Batches are
never split; a sink either receives the whole batch or nothing.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

from src.anomaly.schema import Anomaly

logger = logging.getLogger("backend.sinks")


@runtime_checkable
class AlertSink(Protocol):
    async def publish(self, batch: Sequence[Anomaly]) -> None:
        ...


class LoggingAlertSink:
    """Logs one line per anomaly."""

    def __init__(self, logger_name: str = "backend.alerts.sink") -> None:
        self._logger = logging.getLogger(logger_name)

    async def publish(self, batch: Sequence[Anomaly]) -> None:
        for anomaly in batch:
            self._logger.info(
                "[%s] %s %s: %s (%s, confidence=%.2f, action=%s)",
                anomaly.severity.value.upper(),
                anomaly.type.value,
                anomaly.subject_name or anomaly.subject_id,
                anomaly.description,
                anomaly.details.historical_context,
                anomaly.confidence,
                anomaly.impact.recommended_action.value,
            )


class JsonlAlertSink:
    """
    Appends anomalies as flat camelCase JSON, one object per line.

    The whole batch is written in a single append so a reader never sees a
    partial batch.
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def publish(self, batch: Sequence[Anomaly]) -> None:
        if not batch:
            return
        payload = "".join(anomaly.to_json() + "\n" for anomaly in batch)
        await asyncio.to_thread(self._append, payload)

    def _append(self, payload: str) -> None:
        with open(self.path, "a", encoding=self.encoding) as f:
            f.write(payload)


class QueueAlertSink:
    """
    Bounded output channel of batches.

    publish() blocks while the queue is full so no batch is ever dropped.
    Empty batches are queued too; a consumer sees one item per cycle.
    """

    def __init__(self, maxsize: int = 16) -> None:
        self.queue: "asyncio.Queue[List[Anomaly]]" = asyncio.Queue(maxsize=maxsize)

    async def publish(self, batch: Sequence[Anomaly]) -> None:
        await self.queue.put(list(batch))

    async def get(self, timeout: Optional[float] = None) -> List[Anomaly]:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def qsize(self) -> int:
        return self.queue.qsize()
