"""Pure transition function for one interview conversation.

``transition(state, event)`` never performs I/O. It returns the next state and
the commands the coordinator must run; commands that produce a result feed it
back in as another event.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

from core.state import CONNECTION_STATUS_LABELS, ConnectionStatus
from interview_room.errors import InvalidTransition
from interview_room.provider.transcript import TranscriptEntry


@dataclass(frozen=True)
class SessionState:
    status: ConnectionStatus = ConnectionStatus.READY
    error: Optional[str] = None
    is_muted: bool = False
    is_camera_off: bool = True
    is_screen_sharing: bool = False
    audio_level: float = 0.0
    session_id: Optional[str] = None
    transcript: Optional[tuple[TranscriptEntry, ...]] = None
    session_ended: bool = False
    has_provider: bool = False
    finalizing: bool = False
    attempt: int = 0

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def connection_label(self) -> str:
        label = CONNECTION_STATUS_LABELS[self.status]
        if self.status == ConnectionStatus.ERROR and self.error:
            return f"{label}: {self.error}"
        return label

    def snapshot(self) -> dict:
        return {
            "connection_status": self.status.value,
            "connection_label": self.connection_label,
            "is_connected": self.is_connected,
            "is_muted": self.is_muted,
            "is_camera_off": self.is_camera_off,
            "is_screen_sharing": self.is_screen_sharing,
            "audio_level": round(self.audio_level, 3),
            "error": self.error,
            "session_id": self.session_id,
            "session_ended": self.session_ended,
            "has_transcript": self.transcript is not None,
        }


# ---------------- events ----------------

@dataclass(frozen=True)
class StartRequested:
    pass


@dataclass(frozen=True)
class MicrophoneResolved:
    granted: bool


@dataclass(frozen=True)
class ProviderOpened:
    session_id: str


@dataclass(frozen=True)
class ProviderConnected:
    session_id: str


@dataclass(frozen=True)
class ProviderFailed:
    message: str


@dataclass(frozen=True)
class ProviderDisconnected:
    reason: str = ""


@dataclass(frozen=True)
class StopRequested:
    pass


@dataclass(frozen=True)
class SessionFinalized:
    transcript: Optional[tuple[TranscriptEntry, ...]]


@dataclass(frozen=True)
class MuteToggled:
    pass


@dataclass(frozen=True)
class CameraToggled:
    pass


@dataclass(frozen=True)
class CameraResolved:
    granted: bool


@dataclass(frozen=True)
class ScreenShareToggled:
    pass


@dataclass(frozen=True)
class AudioLevelSampled:
    level: float


Event = Union[
    StartRequested,
    MicrophoneResolved,
    ProviderOpened,
    ProviderConnected,
    ProviderFailed,
    ProviderDisconnected,
    StopRequested,
    SessionFinalized,
    MuteToggled,
    CameraToggled,
    CameraResolved,
    ScreenShareToggled,
    AudioLevelSampled,
]


# ---------------- commands ----------------

@dataclass(frozen=True)
class AcquireMicrophone:
    pass


@dataclass(frozen=True)
class OpenProvider:
    pass


@dataclass(frozen=True)
class PersistSessionId:
    session_id: str


@dataclass(frozen=True)
class StartAudioSampler:
    pass


@dataclass(frozen=True)
class StopAudioSampler:
    pass


@dataclass(frozen=True)
class SetMicrophoneEnabled:
    enabled: bool


@dataclass(frozen=True)
class CloseProvider:
    pass


@dataclass(frozen=True)
class FetchTranscript:
    session_id: Optional[str]


@dataclass(frozen=True)
class ReleaseMedia:
    pass


@dataclass(frozen=True)
class AcquireCamera:
    pass


@dataclass(frozen=True)
class ReleaseCamera:
    pass


Command = Union[
    AcquireMicrophone,
    OpenProvider,
    PersistSessionId,
    StartAudioSampler,
    StopAudioSampler,
    SetMicrophoneEnabled,
    CloseProvider,
    FetchTranscript,
    ReleaseMedia,
    AcquireCamera,
    ReleaseCamera,
]

_STARTABLE = {ConnectionStatus.READY, ConnectionStatus.DISCONNECTED, ConnectionStatus.ERROR}
_LIVE = {ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED}


def _clamp(level: float) -> float:
    return max(0.0, min(1.0, float(level or 0.0)))


def _begin_finalize(state: SessionState) -> tuple[SessionState, list[Command]]:
    if state.finalizing or state.session_ended:
        return state, []
    if not state.has_provider and state.status not in _LIVE:
        return state, []
    next_state = replace(state, finalizing=True, audio_level=0.0)
    return next_state, [StopAudioSampler(), CloseProvider(), FetchTranscript(state.session_id)]


def transition(state: SessionState, event: Event) -> tuple[SessionState, list[Command]]:
    if isinstance(event, StartRequested):
        if state.status not in _STARTABLE or state.finalizing:
            raise InvalidTransition("start", state.status.value)
        # Connecting covers the microphone prompt too, so a stop there is honoured
        next_state = replace(
            state,
            status=ConnectionStatus.CONNECTING,
            error=None,
            audio_level=0.0,
            session_id=None,
            transcript=None,
            session_ended=False,
            has_provider=False,
            attempt=state.attempt + 1,
        )
        return next_state, [AcquireMicrophone()]

    if isinstance(event, MicrophoneResolved):
        if state.status != ConnectionStatus.CONNECTING or state.finalizing or state.session_ended:
            return state, []
        if event.granted:
            return state, [OpenProvider()]
        return replace(state, is_muted=True, is_camera_off=True), [OpenProvider()]

    if isinstance(event, ProviderOpened):
        if state.status != ConnectionStatus.CONNECTING:
            return state, []
        return replace(state, has_provider=True, session_id=state.session_id or event.session_id), []

    if isinstance(event, ProviderConnected):
        if state.status != ConnectionStatus.CONNECTING or state.finalizing:
            return state, []
        session_id = state.session_id or event.session_id
        next_state = replace(state, status=ConnectionStatus.CONNECTED, has_provider=True, session_id=session_id)
        commands: list[Command] = [PersistSessionId(session_id)]
        if not state.is_muted:
            commands.append(StartAudioSampler())
        return next_state, commands

    if isinstance(event, ProviderFailed):
        if state.finalizing or state.session_ended or state.status not in _LIVE:
            return state, []
        next_state = replace(
            state,
            status=ConnectionStatus.ERROR,
            error=event.message or "unknown error",
            audio_level=0.0,
            has_provider=False,
        )
        return next_state, [StopAudioSampler(), CloseProvider(), ReleaseMedia()]

    if isinstance(event, ProviderDisconnected):
        if state.status == ConnectionStatus.ERROR:
            return state, []
        return _begin_finalize(state)

    if isinstance(event, StopRequested):
        return _begin_finalize(state)

    if isinstance(event, SessionFinalized):
        if not state.finalizing:
            return state, []
        next_state = replace(
            state,
            status=ConnectionStatus.DISCONNECTED,
            transcript=event.transcript,
            session_ended=True,
            has_provider=False,
            finalizing=False,
            audio_level=0.0,
        )
        return next_state, [ReleaseMedia()]

    if isinstance(event, MuteToggled):
        muted = not state.is_muted
        commands = [SetMicrophoneEnabled(not muted)]
        if muted:
            commands.append(StopAudioSampler())
            return replace(state, is_muted=True, audio_level=0.0), commands
        if state.is_connected:
            commands.append(StartAudioSampler())
        return replace(state, is_muted=False), commands

    if isinstance(event, CameraToggled):
        if state.is_camera_off:
            return state, [AcquireCamera()]
        return replace(state, is_camera_off=True), [ReleaseCamera()]

    if isinstance(event, CameraResolved):
        return replace(state, is_camera_off=not event.granted), []

    if isinstance(event, ScreenShareToggled):
        return replace(state, is_screen_sharing=not state.is_screen_sharing), []

    if isinstance(event, AudioLevelSampled):
        if not state.is_connected or state.is_muted:
            return replace(state, audio_level=0.0), []
        return replace(state, audio_level=_clamp(event.level)), []

    raise TypeError(f"Unknown session event: {event!r}")
