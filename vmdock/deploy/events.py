"""Progress events and the one-way channel that carries them to the caller."""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum

from vmdock.redact import redact_secrets

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    LOG = "log"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class ProgressEvent:
    kind: EventKind
    message: str

    @property
    def terminal(self) -> bool:
        return self.kind is not EventKind.LOG

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "message": self.message}

    def to_json(self) -> str:
        """One-line JSON object, suitable for newline-delimited framing."""
        return json.dumps(self.to_dict())


class ProgressChannel:
    """Queue of progress events for one deployment.

    Any number of ``log`` events followed by exactly one terminal event
    (``error`` or ``done``). Once the terminal event is queued the channel is
    closed and later events are dropped. Iterating the channel yields events
    up to and including the terminal one.
    """

    def __init__(self):
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def log(self, message: str) -> None:
        self._emit(EventKind.LOG, message)

    def error(self, message: str) -> None:
        self._emit(EventKind.ERROR, message)

    def done(self, message: str) -> None:
        self._emit(EventKind.DONE, message)

    def _emit(self, kind: EventKind, message: str) -> None:
        message = redact_secrets(str(message))
        if self._closed:
            logger.debug(f"Channel closed, dropping {kind.value} event: {message}")
            return
        event = ProgressEvent(kind, message)
        logger.debug(f"[{kind.value}] {message}")
        if event.terminal:
            self._closed = True
        self._queue.put_nowait(event)

    async def get(self) -> ProgressEvent:
        return await self._queue.get()

    async def __aiter__(self):
        while True:
            event = await self._queue.get()
            yield event
            if event.terminal:
                return
