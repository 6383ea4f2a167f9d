from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from interview_room.room.policy import TerminalDecision
from interview_room.schemas import ClientMessage
from interview_room.session.machine import SessionState


SendFn = Callable[[dict], Awaitable[None]]
HandlerFn = Callable[[ClientMessage], Awaitable[None]]


@dataclass
class StateEmitter:
    send_fn: SendFn

    async def emit_state(self, state: SessionState) -> None:
        await self.send_fn({"type": "state", **state.snapshot()})

    async def emit_navigation(self, decision: TerminalDecision) -> None:
        await self.send_fn({
            "type": "navigate",
            "destination": decision.destination,
            "branch": decision.branch.value,
        })

    async def emit_error(self, message: str) -> None:
        await self.send_fn({"type": "error", "message": message})


@dataclass
class CommandRouter:
    handlers: dict[str, HandlerFn] = field(default_factory=dict)

    def on(self, message_type: str, handler: HandlerFn) -> None:
        self.handlers[message_type] = handler

    async def route(self, message: ClientMessage) -> bool:
        handler = self.handlers.get(message.type)
        if handler is None:
            return False
        await handler(message)
        return True


def decode_audio_chunk(raw: str | None) -> bytes:
    if not raw:
        return b""
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return b""
