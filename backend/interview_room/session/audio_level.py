from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

import numpy as np

logger = logging.getLogger("audio_level")

FRAME_STALE_SEC = 0.5


def pcm16_level(frame: bytes) -> float:
    """Normalized RMS of little-endian 16-bit PCM, clamped to [0, 1]."""
    if not frame or len(frame) < 2:
        return 0.0
    usable = len(frame) - (len(frame) % 2)
    samples = np.frombuffer(frame[:usable], dtype="<i2").astype(np.float64)
    if samples.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(samples))))
    # speech rarely peaks past a quarter of full scale
    return max(0.0, min(1.0, (rms / 32768.0) * 4.0))


class AudioFrameBuffer:
    def __init__(self):
        self._frame: bytes = b""
        self._received_at = 0.0

    def push(self, frame: bytes) -> None:
        self._frame = bytes(frame or b"")
        self._received_at = time.monotonic()

    def latest(self) -> bytes:
        if time.monotonic() - self._received_at > FRAME_STALE_SEC:
            return b""
        return self._frame

    def clear(self) -> None:
        self._frame = b""
        self._received_at = 0.0


class AudioLevelSampler:
    """Recomputes the visual audio level on a fixed cadence."""

    def __init__(
        self,
        buffer: AudioFrameBuffer,
        on_level: Callable[[float], Awaitable[None]],
        interval_sec: float = 0.1,
    ):
        self._buffer = buffer
        self._on_level = on_level
        self._interval_sec = interval_sec
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_sec)
            try:
                await self._on_level(pcm16_level(self._buffer.latest()))
            except Exception as exc:
                logger.warning("Audio level update failed | err=%s", exc)
