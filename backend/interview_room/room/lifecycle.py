import asyncio
from enum import Enum
import time
import uuid
import logging

logger = logging.getLogger("room_lifecycle")


class TerminalState(Enum):
    OPEN = "open"
    TRANSITIONING = "transitioning"
    DONE = "done"


class TerminalTransitionLatch:
    """One-shot guard for leaving the room.

    Both the end-call control and the session-ended observer race for it;
    whoever claims it first performs the navigation, everyone else is a no-op.
    """

    def __init__(self):
        self.attempt_id = str(uuid.uuid4())
        self.state = TerminalState.OPEN
        self.lock = asyncio.Lock()
        self.opened_at = time.monotonic()
        self.claimed_by = None
        self.done_at = None
        self._done = asyncio.Event()

    @property
    def claimed(self) -> bool:
        return self.state != TerminalState.OPEN

    async def try_claim(self, reason: str) -> bool:
        async with self.lock:
            if self.state != TerminalState.OPEN:
                logger.info(f"[ROOM {self.attempt_id}] Terminal transition skipped (already {self.state.value}) | reason={reason}")
                return False

            logger.info(f"[ROOM {self.attempt_id}] Transition OPEN → TRANSITIONING | reason={reason}")
            self.state = TerminalState.TRANSITIONING
            self.claimed_by = reason
            return True

    async def mark_done(self):
        async with self.lock:
            self.state = TerminalState.DONE
            self.done_at = time.monotonic()
            self._done.set()
            logger.info(f"[ROOM {self.attempt_id}] DONE | elapsed={self.done_at - self.opened_at:.2f}s")

    async def wait_done(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._done.wait(), timeout)
