from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from core.config import AUDIO_LEVEL_INTERVAL_SEC
from core.logger import log_event
from core.state import ConnectionStatus
from interview_room.media.acquisition import MediaAcquirer, PermissionDenied
from interview_room.media.devices import MediaStream
from interview_room.provider.config import ConversationConfig
from interview_room.provider.events import Connected, Disconnected, ProviderError, ProviderSession
from interview_room.provider.transcript import TranscriptFetcher
from interview_room.session.audio_level import AudioFrameBuffer, AudioLevelSampler
from interview_room.session.machine import (
    AcquireCamera,
    AcquireMicrophone,
    AudioLevelSampled,
    CameraResolved,
    CameraToggled,
    CloseProvider,
    Command,
    Event,
    FetchTranscript,
    MicrophoneResolved,
    MuteToggled,
    OpenProvider,
    PersistSessionId,
    ProviderConnected,
    ProviderDisconnected,
    ProviderFailed,
    ProviderOpened,
    ReleaseCamera,
    ReleaseMedia,
    ScreenShareToggled,
    SessionFinalized,
    SessionState,
    SetMicrophoneEnabled,
    StartAudioSampler,
    StartRequested,
    StopAudioSampler,
    StopRequested,
    transition,
)
from interview_room.storage.context_adapter import persist_conversation_id
from interview_room.storage.durable_store import DurableStore
from interview_room.system_metrics import increment_metric

logger = logging.getLogger("coordinator")

StateListener = Callable[[SessionState], Awaitable[None]]

FINALIZE_GRACE_SEC = 10.0

_AWAITS_RESULT = (AcquireMicrophone, OpenProvider, FetchTranscript, AcquireCamera)


class ConversationCoordinator:
    """Owns the media handles and the provider session for one interview.

    Callers only read ``state`` and call the public coroutines; every change
    goes through ``machine.transition`` and the resulting commands run here,
    in order, on the event loop.
    """

    def __init__(
        self,
        provider_client,
        media: MediaAcquirer,
        transcript_fetcher: TranscriptFetcher,
        store: DurableStore,
        audio_interval_sec: float = AUDIO_LEVEL_INTERVAL_SEC,
    ):
        self.provider_client = provider_client
        self.media = media
        self.transcript_fetcher = transcript_fetcher
        self.store = store

        self._state = SessionState()
        self._published = self._state
        self._changed = asyncio.Condition()
        self._listeners: list[StateListener] = []

        self._config: Optional[ConversationConfig] = None
        self._session: Optional[ProviderSession] = None
        self._consumer_task: Optional[asyncio.Task] = None
        self._audio_stream: Optional[MediaStream] = None
        self._video_stream: Optional[MediaStream] = None
        self._audio_frames = AudioFrameBuffer()
        self._sampler = AudioLevelSampler(self._audio_frames, self._on_audio_level, audio_interval_sec)
        self._closed = False

    # ---------------- state surface ----------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def audio_stream(self) -> Optional[MediaStream]:
        return self._audio_stream

    @property
    def video_stream(self) -> Optional[MediaStream]:
        return self._video_stream

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def wait_until(self, predicate: Callable[[SessionState], bool], timeout: float | None = None) -> SessionState:
        async with self._changed:
            await asyncio.wait_for(self._changed.wait_for(lambda: predicate(self._published)), timeout)
        return self._published

    async def _publish(self) -> None:
        current = self._state
        if current == self._published:
            return
        self._published = current
        async with self._changed:
            self._changed.notify_all()
        for listener in list(self._listeners):
            try:
                await listener(current)
            except Exception:
                logger.exception("State listener failed | session_id=%s", current.session_id)

    # ---------------- controls ----------------

    async def start(self, config: ConversationConfig) -> None:
        self._config = config
        increment_metric("sessions_started", 1)
        await self._dispatch(StartRequested())

    async def stop(self) -> None:
        await self._dispatch(StopRequested())
        if self._state.finalizing or self._published.finalizing:
            await self.wait_until(lambda s: not s.finalizing)

    async def toggle_mute(self) -> None:
        await self._dispatch(MuteToggled())

    async def toggle_camera(self) -> None:
        await self._dispatch(CameraToggled())

    async def toggle_screen_share(self) -> None:
        await self._dispatch(ScreenShareToggled())

    async def push_audio(self, chunk: bytes) -> None:
        if self._state.is_muted or not chunk:
            return
        self._audio_frames.push(chunk)
        session = self._session
        if session is not None and self._state.is_connected:
            await session.send_user_audio(chunk)

    async def aclose(self) -> None:
        """Release everything without finalizing; used when the room goes away."""
        if self._closed:
            return
        self._closed = True
        await self._sampler.stop()
        consumer = self._consumer_task
        self._consumer_task = None
        if consumer is not None and consumer is not asyncio.current_task() and not consumer.done():
            if self._state.finalizing:
                # a remote hangup is mid-finalize; let it latch session_ended first
                try:
                    await asyncio.wait_for(asyncio.shield(consumer), timeout=FINALIZE_GRACE_SEC)
                except asyncio.TimeoutError:
                    logger.warning("Finalize did not finish before teardown | session_id=%s", self._state.session_id)
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
        session = self._session
        self._session = None
        if session is not None:
            await self._close_session(session)
        self._release_all_media()
        log_event("coordinator", "closed", self._state.session_id or "", status=self._state.status.value)

    # ---------------- engine ----------------

    async def _dispatch(self, event: Event) -> None:
        previous = self._state
        next_state, commands = transition(previous, event)
        if next_state.status != previous.status:
            log_event(
                "coordinator",
                "transition",
                next_state.session_id or "",
                trigger=type(event).__name__,
                from_status=previous.status.value,
                to_status=next_state.status.value,
                attempt=next_state.attempt,
            )
        self._state = next_state
        # persist/release commands finish before observers see the state;
        # a state waiting on a prompt or the network is shown while it waits
        for command in commands:
            if isinstance(command, _AWAITS_RESULT):
                await self._publish()
            follow_up = await self._execute(command)
            if follow_up is not None:
                await self._dispatch(follow_up)
        await self._publish()

    async def _execute(self, command: Command) -> Optional[Event]:
        if isinstance(command, AcquireMicrophone):
            attempt = self._state.attempt
            self.media.release(self._audio_stream)
            self._audio_stream = None
            result = await self.media.acquire(audio=True, video=False)
            if isinstance(result, PermissionDenied):
                return MicrophoneResolved(granted=False)
            if not self._attempt_still_connecting(attempt):
                # stopped while the prompt was open
                self.media.release(result)
                return None
            self._audio_stream = result
            for track in result.audio_tracks():
                track.enabled = not self._state.is_muted
            return MicrophoneResolved(granted=True)

        if isinstance(command, OpenProvider):
            return await self._open_provider()

        if isinstance(command, PersistSessionId):
            try:
                await persist_conversation_id(self.store, command.session_id)
            except Exception as exc:
                logger.warning("Could not persist conversation id | session_id=%s err=%s", command.session_id, exc)
            return None

        if isinstance(command, StartAudioSampler):
            if not self._closed:
                self._sampler.start()
            return None

        if isinstance(command, StopAudioSampler):
            await self._sampler.stop()
            self._audio_frames.clear()
            return None

        if isinstance(command, SetMicrophoneEnabled):
            if self._audio_stream is not None:
                for track in self._audio_stream.audio_tracks():
                    track.enabled = command.enabled
            return None

        if isinstance(command, CloseProvider):
            session = self._session
            self._session = None
            if session is not None:
                await self._close_session(session)
            return None

        if isinstance(command, FetchTranscript):
            entries = None
            if command.session_id:
                try:
                    entries = await self.transcript_fetcher.fetch(command.session_id)
                except Exception as exc:
                    logger.warning("Transcript fetch raised | session_id=%s err=%s", command.session_id, exc)
            increment_metric("transcripts_fetched" if entries is not None else "transcripts_missing", 1)
            return SessionFinalized(tuple(entries) if entries is not None else None)

        if isinstance(command, ReleaseMedia):
            self._release_all_media()
            return None

        if isinstance(command, AcquireCamera):
            self.media.release(self._video_stream)
            self._video_stream = None
            result = await self.media.acquire(audio=False, video=True)
            if isinstance(result, PermissionDenied):
                return CameraResolved(granted=False)
            if self._closed:
                self.media.release(result)
                return CameraResolved(granted=False)
            self._video_stream = result
            return CameraResolved(granted=True)

        if isinstance(command, ReleaseCamera):
            self.media.release(self._video_stream)
            self._video_stream = None
            return None

        raise TypeError(f"Unknown coordinator command: {command!r}")

    def _attempt_still_connecting(self, attempt: int) -> bool:
        state = self._state
        return (
            not self._closed
            and state.attempt == attempt
            and state.status == ConnectionStatus.CONNECTING
            and not state.finalizing
            and not state.session_ended
        )

    async def _open_provider(self) -> Optional[Event]:
        if self._config is None:
            return ProviderFailed("Interview configuration missing")
        attempt = self._state.attempt
        try:
            session = await self.provider_client.open(self._config)
        except Exception as exc:
            increment_metric("provider_errors", 1)
            logger.warning("Provider open failed | attempt=%s err=%s", attempt, exc)
            return ProviderFailed(str(exc) or exc.__class__.__name__)

        if not self._attempt_still_connecting(attempt) or self._state.has_provider:
            # stop or teardown won the race while the session was opening
            await self._close_session(session)
            return None

        self._session = session
        self._consumer_task = asyncio.create_task(self._consume_events(session, attempt))
        return ProviderOpened(session.id)

    async def _consume_events(self, session: ProviderSession, attempt: int) -> None:
        while True:
            event = await session.events.get()
            if self._state.attempt != attempt:
                return
            if isinstance(event, Connected):
                increment_metric("sessions_connected", 1)
                await self._dispatch(ProviderConnected(event.conversation_id or session.id))
                continue
            if isinstance(event, ProviderError):
                increment_metric("provider_errors", 1)
                await self._dispatch(ProviderFailed(event.message))
                return
            if isinstance(event, Disconnected):
                await self._dispatch(ProviderDisconnected(event.reason))
                return

    async def _close_session(self, session: ProviderSession) -> None:
        try:
            await session.close()
        except Exception as exc:
            logger.warning("Provider close raised | session_id=%s err=%s", getattr(session, "id", ""), exc)

    async def _on_audio_level(self, level: float) -> None:
        await self._dispatch(AudioLevelSampled(level))

    def _release_all_media(self) -> None:
        self.media.release(self._audio_stream)
        self.media.release(self._video_stream)
        self._audio_stream = None
        self._video_stream = None
