from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol, Union


@dataclass(frozen=True)
class Connected:
    conversation_id: str


@dataclass(frozen=True)
class Disconnected:
    reason: str = ""


@dataclass(frozen=True)
class ProviderError:
    message: str


ProviderEvent = Union[Connected, Disconnected, ProviderError]


class ProviderSession(Protocol):
    """A live provider conversation.

    ``events`` yields ``Connected`` first, then exactly one of ``Disconnected``
    or ``ProviderError``; nothing is queued after a ``Disconnected``.
    """

    id: str
    events: "asyncio.Queue[ProviderEvent]"

    async def close(self) -> None:
        ...

    async def send_user_audio(self, chunk: bytes) -> None:
        ...


class EventChannel:
    """Ordered provider event queue that enforces the delivery contract."""

    def __init__(self):
        self.queue: asyncio.Queue[ProviderEvent] = asyncio.Queue()
        self.connected = False
        self.finished = False

    def emit(self, event: ProviderEvent) -> bool:
        if self.finished:
            return False
        if isinstance(event, Connected):
            if self.connected:
                return False
            self.connected = True
        else:
            self.finished = True
        self.queue.put_nowait(event)
        return True
