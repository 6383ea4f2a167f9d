from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class MediaTrack:
    kind: str  # audio | video
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ready_state: str = "live"  # live | ended
    enabled: bool = True

    @property
    def is_live(self) -> bool:
        return self.ready_state == "live"

    def stop(self) -> None:
        self.ready_state = "ended"


@dataclass
class MediaStream:
    tracks: list[MediaTrack] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def audio_tracks(self) -> list[MediaTrack]:
        return [track for track in self.tracks if track.kind == "audio"]

    def video_tracks(self) -> list[MediaTrack]:
        return [track for track in self.tracks if track.kind == "video"]

    def live_tracks(self) -> list[MediaTrack]:
        return [track for track in self.tracks if track.is_live]


class MediaDevices(Protocol):
    async def get_user_media(self, audio: bool, video: bool) -> MediaStream:
        """Raise ``PermissionError`` when any requested kind is refused."""
        ...


class ClientMediaDevices:
    """Device handles mirrored from what the browser client reports.

    The browser owns the physical devices and tells the room which kinds the
    candidate granted; this side hands out track handles for those kinds.
    """

    def __init__(self, audio_granted: bool = False, video_granted: bool = False):
        self.audio_granted = bool(audio_granted)
        self.video_granted = bool(video_granted)

    def declare(self, audio: bool | None = None, video: bool | None = None) -> None:
        if audio is not None:
            self.audio_granted = bool(audio)
        if video is not None:
            self.video_granted = bool(video)

    async def get_user_media(self, audio: bool, video: bool) -> MediaStream:
        refused = []
        if audio and not self.audio_granted:
            refused.append("microphone")
        if video and not self.video_granted:
            refused.append("camera")
        if refused:
            raise PermissionError(f"Permission denied: {', '.join(refused)}")

        tracks = []
        if audio:
            tracks.append(MediaTrack(kind="audio"))
        if video:
            tracks.append(MediaTrack(kind="video"))
        return MediaStream(tracks=tracks)
