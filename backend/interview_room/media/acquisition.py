from __future__ import annotations

import logging
from dataclasses import dataclass

from interview_room.media.devices import MediaDevices, MediaStream

logger = logging.getLogger("media")


@dataclass(frozen=True)
class PermissionDenied:
    """Denial is an expected outcome, not an exception."""

    kinds: tuple[str, ...]
    message: str


class MediaAcquirer:
    def __init__(self, devices: MediaDevices):
        self.devices = devices
        self.acquired_count = 0
        self.released_count = 0

    async def acquire(self, audio: bool = True, video: bool = False) -> MediaStream | PermissionDenied:
        kinds = tuple(kind for kind, wanted in (("audio", audio), ("video", video)) if wanted)
        if not kinds:
            return PermissionDenied(kinds=(), message="No device kinds requested")
        try:
            stream = await self.devices.get_user_media(audio=audio, video=video)
        except PermissionError as exc:
            logger.info("Media permission denied | kinds=%s err=%s", ",".join(kinds), exc)
            return PermissionDenied(kinds=kinds, message=str(exc) or "Permission denied")
        except Exception as exc:
            # a missing or busy device degrades exactly like a refusal
            logger.warning("Media acquisition failed | kinds=%s err=%s", ",".join(kinds), exc)
            return PermissionDenied(kinds=kinds, message=str(exc) or exc.__class__.__name__)

        self.acquired_count += 1
        logger.info("Media acquired | stream=%s kinds=%s", stream.id, ",".join(kinds))
        return stream

    def release(self, stream: MediaStream | None) -> None:
        if stream is None:
            return
        live = stream.live_tracks()
        if not live:
            return
        for track in live:
            track.stop()
        self.released_count += 1
        logger.info("Media released | stream=%s tracks=%s", stream.id, len(live))
