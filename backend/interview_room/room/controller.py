from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from core.logger import log_event
from interview_room.auth import resolve_candidate
from interview_room.errors import InvalidTransition
from interview_room.room.backend_client import BackendClient
from interview_room.room.context import CandidateIdentity, InterviewContext
from interview_room.room.lifecycle import TerminalTransitionLatch
from interview_room.room.metadata import build_conversation_config, resolve_job_metadata
from interview_room.room.policy import TerminalBranch, TerminalDecision, decide_terminal_action
from interview_room.session.coordinator import ConversationCoordinator
from interview_room.session.machine import SessionState
from interview_room.storage.context_adapter import (
    clear_stale_interview_id,
    load_interview_context,
    read_auth_token,
    persist_interview_id,
    read_conversation_id,
    store_interview_context,
)
from interview_room.storage.durable_store import DurableStore
from interview_room.system_metrics import increment_metric, observe_session_duration

logger = logging.getLogger("room_controller")

Navigator = Callable[[TerminalDecision], Awaitable[None]]
BackendFactory = Callable[[str], BackendClient]


class InterviewRoomController:
    """Drives one interview attempt from mount to the terminal navigation."""

    def __init__(
        self,
        store: DurableStore,
        coordinator: ConversationCoordinator,
        navigator: Navigator,
        backend_factory: BackendFactory = BackendClient,
    ):
        self.store = store
        self.coordinator = coordinator
        self.navigator = navigator
        self.backend_factory = backend_factory

        self.context = InterviewContext()
        self.candidate: Optional[CandidateIdentity] = None
        self.backend: Optional[BackendClient] = None
        self.decision: Optional[TerminalDecision] = None
        self.end_control_disabled = False

        self._latch = TerminalTransitionLatch()
        self._mounted = False
        self._starting = False
        self._started_at: Optional[float] = None
        self._terminal_task: Optional[asyncio.Task] = None

    @property
    def room_id(self) -> str:
        return self._latch.attempt_id

    # ---------------- mount ----------------

    async def mount(self) -> InterviewContext:
        if self._mounted:
            return self.context
        self._mounted = True
        await clear_stale_interview_id(self.store)
        self.context = await load_interview_context(self.store)
        self.candidate = await resolve_candidate(self.store)
        self.backend = self.backend_factory(await read_auth_token(self.store))
        self.coordinator.add_listener(self._on_session_state)
        log_event(
            "room",
            "mounted",
            self.room_id,
            job_id=self.context.job_id or "",
            guest=bool(self.context.guest_interview_id),
            authenticated=self.candidate is not None,
        )
        return self.context

    async def update_context(self, values: dict) -> bool:
        """Store context handed over by the page that sent the candidate here.

        Only accepted before the interview starts; the attempt keeps whatever
        context it started with.
        """
        if self._latch.claimed or self._starting or self._started_at is not None:
            logger.info("Context update ignored after start | room_id=%s", self.room_id)
            return False
        written = await store_interview_context(self.store, values)
        self.context = await load_interview_context(self.store)
        self.candidate = await resolve_candidate(self.store)
        log_event(
            "room",
            "context_updated",
            self.room_id,
            keys=written,
            job_id=self.context.job_id or "",
            guest=bool(self.context.guest_interview_id),
            authenticated=self.candidate is not None,
        )
        return True

    # ---------------- controls ----------------

    async def start_interview(self) -> bool:
        if not self._mounted:
            await self.mount()
        if self._latch.claimed or self._starting:
            logger.info("Start ignored | room_id=%s claimed=%s starting=%s", self.room_id, self._latch.claimed, self._starting)
            return False

        self._starting = True
        try:
            await clear_stale_interview_id(self.store)
            self.context = await resolve_job_metadata(self.context, self.backend, self.store)
            config = build_conversation_config(self.context, self.candidate)
            try:
                await self.coordinator.start(config)
            except InvalidTransition as exc:
                logger.info("Start ignored by coordinator | room_id=%s reason=%s", self.room_id, exc)
                return False
            self._started_at = time.monotonic()
            return True
        finally:
            self._starting = False

    async def end_interview(self) -> Optional[TerminalDecision]:
        """End-call control: stop the session and leave the room."""
        if self.end_control_disabled:
            return self.decision
        self.end_control_disabled = True
        await self.coordinator.stop()
        await self._run_terminal_transition("end_call")
        # the session-ended observer may have claimed the transition first
        await self._latch.wait_done()
        return self.decision

    async def toggle_mute(self) -> None:
        await self.coordinator.toggle_mute()

    async def toggle_camera(self) -> None:
        await self.coordinator.toggle_camera()

    async def toggle_screen_share(self) -> None:
        await self.coordinator.toggle_screen_share()

    async def wait_for_terminal(self, timeout: float | None = None) -> Optional[TerminalDecision]:
        await self._latch.wait_done(timeout)
        return self.decision

    async def unmount(self) -> None:
        await self._await_terminal_task()
        await self.coordinator.aclose()
        # a remote hangup that finished during teardown may have started one
        await self._await_terminal_task()
        log_event("room", "unmounted", self.room_id, terminal=self.decision.branch.value if self.decision else "")

    # ---------------- terminal transition ----------------

    async def _await_terminal_task(self) -> None:
        task = self._terminal_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    async def _on_session_state(self, state: SessionState) -> None:
        if not state.session_ended or self._terminal_task is not None:
            return
        self._terminal_task = asyncio.create_task(self._run_terminal_transition("session_ended"))

    async def _run_terminal_transition(self, reason: str) -> None:
        if not await self._latch.try_claim(reason):
            return
        self.end_control_disabled = True
        decision = decide_terminal_action(self.context, self.candidate)
        try:
            if decision.branch == TerminalBranch.GUEST:
                await self._complete_guest_interview(str(decision.guest_interview_id))
            elif decision.branch == TerminalBranch.REVIEW:
                await self._record_interview(str(decision.job_id))
            if self._started_at is not None:
                observe_session_duration(time.monotonic() - self._started_at)
            self.decision = decision
            increment_metric(f"terminal_{decision.branch.value}", 1)
            log_event(
                "room",
                "terminal_transition",
                self.coordinator.state.session_id or "",
                reason=reason,
                branch=decision.branch.value,
                destination=decision.destination,
            )
            try:
                await self.navigator(decision)
            except Exception:
                logger.exception("Navigation callback failed | room_id=%s destination=%s", self.room_id, decision.destination)
        finally:
            await self._latch.mark_done()

    async def _complete_guest_interview(self, guest_interview_id: str) -> None:
        conversation_id = self.coordinator.state.session_id
        if not conversation_id:
            try:
                conversation_id = await read_conversation_id(self.store)
            except Exception:
                conversation_id = None
        try:
            await self.backend.complete_guest_interview(guest_interview_id, conversation_id)
            logger.info("Marked guest interview %s as completed | conversation_id=%s", guest_interview_id, conversation_id)
        except Exception as exc:
            increment_metric("guest_completion_failures", 1)
            logger.warning("Could not mark guest interview %s as completed | err=%s", guest_interview_id, exc)

    async def _record_interview(self, job_id: str) -> None:
        # the review page is reached either way; it just has no interview_id to load
        try:
            await clear_stale_interview_id(self.store)
            created = await self.backend.create_interview(self.candidate.id, job_id)
            interview_id = created.get("id")
            if interview_id is None:
                raise ValueError("backend returned no interview id")
            await persist_interview_id(self.store, str(interview_id))
            logger.info("Created interview %s | job_id=%s", interview_id, job_id)
        except Exception as exc:
            increment_metric("interview_record_failures", 1)
            logger.warning("Could not save interview | job_id=%s err=%s", job_id, exc)
