import asyncio
import json

import pytest

from core.state import ConnectionStatus
from fakes import FakeBackend, FakeProviderClient, FakeTranscriptFetcher, sample_transcript
from interview_room import auth
from interview_room.media.acquisition import MediaAcquirer
from interview_room.media.devices import ClientMediaDevices
from interview_room.room.controller import InterviewRoomController
from interview_room.room.metadata import FALLBACK_CANDIDATE_NAME, FALLBACK_COMPANY_NAME, FALLBACK_JOB_TITLE
from interview_room.room.policy import (
    GUEST_THANK_YOU_DESTINATION,
    REVIEW_DESTINATION,
    THANK_YOU_DESTINATION,
    TerminalBranch,
)
from interview_room.session.coordinator import ConversationCoordinator
from interview_room.storage import keys
from interview_room.system_metrics import get_metric


@pytest.fixture(autouse=True)
def _no_jwt_secret(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(auth, "AUTH_JWT_SECRET", None)
    monkeypatch.setattr(auth, "ALLOW_UNVERIFIED_JWT_DEV", False)


class Room:
    def __init__(self, store, provider=None, backend=None, fetcher=None):
        self.provider = provider or FakeProviderClient()
        self.backend = backend or FakeBackend()
        self.fetcher = fetcher or FakeTranscriptFetcher(sample_transcript())
        self.navigations = []
        self.coordinator = ConversationCoordinator(
            provider_client=self.provider,
            media=MediaAcquirer(ClientMediaDevices(audio_granted=True)),
            transcript_fetcher=self.fetcher,
            store=store,
            audio_interval_sec=0.02,
        )
        self.controller = InterviewRoomController(
            store,
            self.coordinator,
            self._navigate,
            backend_factory=lambda token: self.backend,
        )

    async def _navigate(self, decision):
        self.navigations.append(decision)

    async def start_connected(self):
        assert await self.controller.start_interview() is True
        await self.coordinator.wait_until(lambda s: s.is_connected, timeout=1.0)


async def _seed(store, values: dict):
    for key, value in values.items():
        await store.set(key, value if isinstance(value, str) else json.dumps(value))


async def _seed_signed_in(store):
    await _seed(store, {
        keys.AUTH_TOKEN: "opaque-session-token",
        keys.AUTH_USER: {"id": 7, "full_name": "Ada Lovelace", "email": "ada@example.com"},
        keys.JOB_ID: "job-1",
        keys.JOB_TITLE: "Backend Engineer",
        keys.COMPANY: "Acme",
    })


@pytest.mark.asyncio
async def test_signed_in_candidate_goes_to_review_after_end_call(store):
    await _seed_signed_in(store)
    room = Room(store)
    before = get_metric("terminal_review")

    await room.controller.mount()
    await room.start_connected()
    decision = await room.controller.end_interview()

    assert decision.branch == TerminalBranch.REVIEW
    assert decision.job_id == "job-1"
    assert [d.destination for d in room.navigations] == [REVIEW_DESTINATION]
    assert room.coordinator.state.session_ended is True
    assert room.provider.configs[0].candidate_name == "Ada Lovelace"
    assert get_metric("terminal_review") == before + 1
    await room.controller.unmount()
    assert room.navigations == [decision]


@pytest.mark.asyncio
async def test_review_branch_records_interview_for_review_page(store):
    await _seed_signed_in(store)
    room = Room(store)

    await room.controller.mount()
    await room.start_connected()
    await room.controller.end_interview()

    assert room.backend.interviews == [("7", "job-1")]
    assert await store.get(keys.INTERVIEW_ID) == "501"
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_interview_record_failure_still_goes_to_review(store):
    await _seed_signed_in(store)
    room = Room(store, backend=FakeBackend(fail_interview=True))
    failures_before = get_metric("interview_record_failures")

    await room.controller.mount()
    await room.start_connected()
    decision = await room.controller.end_interview()

    assert decision.destination == REVIEW_DESTINATION
    assert [d.destination for d in room.navigations] == [REVIEW_DESTINATION]
    assert await store.get(keys.INTERVIEW_ID) is None
    assert get_metric("interview_record_failures") == failures_before + 1
    await room.controller.unmount()

@pytest.mark.asyncio
async def test_end_call_and_session_end_navigate_once(store):
    await _seed_signed_in(store)
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()

    await asyncio.gather(room.controller.end_interview(), room.controller.end_interview())
    room.provider.sessions[0].hang_up()
    await room.controller.unmount()

    assert len(room.navigations) == 1


@pytest.mark.asyncio
async def test_remote_hang_up_triggers_terminal_transition(store):
    await _seed_signed_in(store)
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()

    room.provider.sessions[0].hang_up()
    decision = await room.controller.wait_for_terminal(timeout=1.0)

    assert decision.destination == REVIEW_DESTINATION
    assert room.controller.end_control_disabled is True
    assert await room.controller.end_interview() == decision
    await room.controller.unmount()
    assert len(room.navigations) == 1


@pytest.mark.asyncio
async def test_guest_interview_is_completed_before_thank_you(store):
    await _seed(store, {
        keys.GUEST_INTERVIEW_ID: "guest-55",
        keys.GUEST_CANDIDATE_NAME: "Grace",
        keys.JOB_TITLE: "Data Analyst",
        keys.COMPANY: "Initech",
    })
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()

    decision = await room.controller.end_interview()

    assert decision.branch == TerminalBranch.GUEST
    assert decision.destination == GUEST_THANK_YOU_DESTINATION
    assert room.backend.completed == [("guest-55", "conv-1")]
    assert room.provider.configs[0].candidate_name == "Grace"
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_guest_completion_failure_still_navigates(store):
    await _seed(store, {keys.GUEST_INTERVIEW_ID: "guest-55"})
    room = Room(store, backend=FakeBackend(fail_completion=True))
    before = get_metric("guest_completion_failures")
    await room.controller.mount()
    await room.start_connected()

    decision = await room.controller.end_interview()

    assert decision.destination == GUEST_THANK_YOU_DESTINATION
    assert [d.destination for d in room.navigations] == [GUEST_THANK_YOU_DESTINATION]
    assert get_metric("guest_completion_failures") == before + 1
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_anonymous_candidate_falls_back_to_thank_you(store):
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()

    decision = await room.controller.end_interview()

    assert decision.branch == TerminalBranch.FALLBACK
    assert decision.destination == THANK_YOU_DESTINATION
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_end_call_after_provider_error_still_leaves_room(store):
    await _seed_signed_in(store)
    room = Room(store, provider=FakeProviderClient(fail_with="invalid agent"))
    await room.controller.mount()

    assert await room.controller.start_interview() is True
    assert room.coordinator.state.status == ConnectionStatus.ERROR
    assert room.navigations == []

    decision = await room.controller.end_interview()
    assert decision.destination == REVIEW_DESTINATION
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_mount_clears_stale_interview_id(store):
    await _seed(store, {keys.INTERVIEW_ID: "old-interview"})
    room = Room(store)

    await room.controller.mount()

    assert await store.get(keys.INTERVIEW_ID) is None
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_missing_job_details_are_fetched_and_persisted(store):
    await _seed(store, {keys.JOB_ID: "job-9"})
    backend = FakeBackend(job={"title": "Platform Engineer", "company": "Globex"}, questions=["Why Globex?"])
    room = Room(store, backend=backend)
    await room.controller.mount()

    await room.start_connected()

    config = room.provider.configs[0]
    assert config.job_offer == "Platform Engineer"
    assert config.company.name == "Globex"
    assert config.job_questions == ["Why Globex?"]
    assert await store.get(keys.JOB_TITLE) == "Platform Engineer"
    assert await store.get(keys.COMPANY) == "Globex"
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_backend_failure_uses_fallback_metadata(store):
    await _seed(store, {keys.JOB_ID: "job-9"})
    room = Room(store, backend=FakeBackend(fail_jobs=True))
    await room.controller.mount()

    await room.start_connected()

    config = room.provider.configs[0]
    assert config.job_offer == FALLBACK_JOB_TITLE
    assert config.company.name == FALLBACK_COMPANY_NAME
    assert config.candidate_name == FALLBACK_CANDIDATE_NAME
    assert config.job_questions == []
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_second_start_is_ignored_while_connected(store):
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()

    assert await room.controller.start_interview() is False
    assert len(room.provider.sessions) == 1
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_start_after_terminal_transition_is_ignored(store):
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()
    await room.controller.end_interview()

    assert await room.controller.start_interview() is False
    assert len(room.provider.configs) == 1
    await room.controller.unmount()


@pytest.mark.asyncio
async def test_unmount_before_terminal_does_not_navigate(store):
    await _seed_signed_in(store)
    room = Room(store)
    await room.controller.mount()
    await room.start_connected()
    audio_stream = room.coordinator.audio_stream

    await room.controller.unmount()

    assert room.navigations == []
    assert room.provider.sessions[0].close_calls == 1
    assert audio_stream.live_tracks() == []


@pytest.mark.asyncio
async def test_context_handed_over_before_start_drives_the_session(store):
    room = Room(store)
    await room.controller.mount()

    accepted = await room.controller.update_context({
        "guest_interview_id": 31,
        "candidate_name": "Grace",
        "job_title": "Data Analyst",
        "company_name": "Initech",
    })
    await room.start_connected()
    late = await room.controller.update_context({"job_title": "Changed"})
    decision = await room.controller.end_interview()

    assert accepted is True
    assert late is False
    assert room.provider.configs[0].job_offer == "Data Analyst"
    assert decision.branch == TerminalBranch.GUEST
    assert room.backend.completed == [("31", "conv-1")]
    await room.controller.unmount()
