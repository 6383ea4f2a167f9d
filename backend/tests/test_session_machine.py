import pytest

from core.state import ConnectionStatus
from interview_room.errors import InvalidTransition
from interview_room.session.machine import (
    AcquireCamera,
    AcquireMicrophone,
    AudioLevelSampled,
    CameraResolved,
    CameraToggled,
    CloseProvider,
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


def _connected_state(muted: bool = False) -> SessionState:
    state, _ = transition(SessionState(is_muted=muted), StartRequested())
    state, _ = transition(state, MicrophoneResolved(granted=True))
    state, _ = transition(state, ProviderOpened("conv-1"))
    state, _ = transition(state, ProviderConnected("conv-1"))
    return state


def test_initial_state_is_ready_with_camera_off():
    state = SessionState()
    assert state.status == ConnectionStatus.READY
    assert state.connection_label == "Ready to connect"
    assert state.is_camera_off is True
    assert state.is_muted is False
    assert state.transcript is None
    assert state.session_ended is False


def test_start_shows_connecting_while_microphone_is_requested():
    state, commands = transition(SessionState(), StartRequested())
    assert commands == [AcquireMicrophone()]
    assert state.attempt == 1
    assert state.status == ConnectionStatus.CONNECTING
    assert state.connection_label == "Connecting to interviewer..."

    state, commands = transition(state, MicrophoneResolved(granted=True))
    assert state.status == ConnectionStatus.CONNECTING
    assert commands == [OpenProvider()]


def test_denied_microphone_still_connects_muted_with_camera_off():
    state, _ = transition(SessionState(), StartRequested())
    state, commands = transition(state, MicrophoneResolved(granted=False))
    assert state.status == ConnectionStatus.CONNECTING
    assert state.is_muted is True
    assert state.is_camera_off is True
    assert commands == [OpenProvider()]


def test_stop_during_microphone_prompt_finalizes_without_session():
    state, _ = transition(SessionState(), StartRequested())
    state, commands = transition(state, StopRequested())
    assert state.finalizing is True
    assert commands == [StopAudioSampler(), CloseProvider(), FetchTranscript(None)]

    state, _ = transition(state, SessionFinalized(transcript=None))
    assert state.status == ConnectionStatus.DISCONNECTED
    assert state.session_ended is True


def test_microphone_result_after_stop_is_ignored():
    state, _ = transition(SessionState(), StartRequested())
    state, _ = transition(state, StopRequested())
    state, _ = transition(state, SessionFinalized(transcript=None))

    after, commands = transition(state, MicrophoneResolved(granted=True))
    assert after == state
    assert commands == []


def test_connected_persists_session_id_and_starts_sampler():
    state, _ = transition(SessionState(), StartRequested())
    state, _ = transition(state, MicrophoneResolved(granted=True))
    state, commands = transition(state, ProviderConnected("conv-9"))
    assert state.status == ConnectionStatus.CONNECTED
    assert state.is_connected is True
    assert state.session_id == "conv-9"
    assert commands == [PersistSessionId("conv-9"), StartAudioSampler()]


def test_connected_while_muted_does_not_start_sampler():
    state, _ = transition(SessionState(is_muted=True), StartRequested())
    state, _ = transition(state, MicrophoneResolved(granted=True))
    _, commands = transition(state, ProviderConnected("conv-1"))
    assert StartAudioSampler() not in commands


@pytest.mark.parametrize("status", [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED])
def test_start_is_rejected_while_live(status):
    with pytest.raises(InvalidTransition):
        transition(SessionState(status=status), StartRequested())


def test_start_is_rejected_while_finalizing():
    with pytest.raises(InvalidTransition):
        transition(SessionState(status=ConnectionStatus.CONNECTED, finalizing=True), StartRequested())


def test_restart_after_disconnect_clears_previous_attempt():
    previous = SessionState(
        status=ConnectionStatus.DISCONNECTED,
        session_id="conv-1",
        session_ended=True,
        transcript=(),
        attempt=1,
    )
    state, commands = transition(previous, StartRequested())
    assert commands == [AcquireMicrophone()]
    assert state.session_id is None
    assert state.transcript is None
    assert state.session_ended is False
    assert state.attempt == 2


def test_stop_begins_finalize_and_closes_provider():
    state = _connected_state()
    state, commands = transition(state, StopRequested())
    assert state.finalizing is True
    assert state.audio_level == 0.0
    assert commands == [StopAudioSampler(), CloseProvider(), FetchTranscript("conv-1")]


def test_stop_while_finalizing_is_a_no_op():
    state = _connected_state()
    state, _ = transition(state, StopRequested())
    again, commands = transition(state, StopRequested())
    assert again == state
    assert commands == []


def test_stop_when_idle_is_a_no_op():
    state, commands = transition(SessionState(), StopRequested())
    assert state == SessionState()
    assert commands == []


def test_remote_disconnect_finalizes_like_stop():
    state = _connected_state()
    state, commands = transition(state, ProviderDisconnected("remote_closed"))
    assert state.finalizing is True
    assert FetchTranscript("conv-1") in commands


def test_finalized_latches_session_ended_with_transcript():
    state = _connected_state()
    state, _ = transition(state, StopRequested())
    state, commands = transition(state, SessionFinalized(transcript=()))
    assert state.status == ConnectionStatus.DISCONNECTED
    assert state.session_ended is True
    assert state.transcript == ()
    assert state.finalizing is False
    assert state.has_provider is False
    assert commands == [ReleaseMedia()]


def test_finalized_without_transcript_still_ends_session():
    state = _connected_state()
    state, _ = transition(state, ProviderDisconnected())
    state, _ = transition(state, SessionFinalized(transcript=None))
    assert state.session_ended is True
    assert state.transcript is None


def test_provider_failure_moves_to_error_and_releases_everything():
    state = _connected_state()
    state, commands = transition(state, ProviderFailed("quota exceeded"))
    assert state.status == ConnectionStatus.ERROR
    assert state.error == "quota exceeded"
    assert state.connection_label == "Connection error: quota exceeded"
    assert state.session_ended is False
    assert commands == [StopAudioSampler(), CloseProvider(), ReleaseMedia()]


def test_disconnect_after_error_is_ignored():
    state = _connected_state()
    state, _ = transition(state, ProviderFailed("boom"))
    after, commands = transition(state, ProviderDisconnected("closed"))
    assert after == state
    assert commands == []


def test_error_state_can_be_restarted():
    state = _connected_state()
    state, _ = transition(state, ProviderFailed("boom"))
    state, commands = transition(state, StartRequested())
    assert state.error is None
    assert commands == [AcquireMicrophone()]


def test_mute_toggle_controls_tracks_and_sampler():
    state = _connected_state()
    state, commands = transition(state, MuteToggled())
    assert state.is_muted is True
    assert commands == [SetMicrophoneEnabled(False), StopAudioSampler()]

    state, commands = transition(state, MuteToggled())
    assert state.is_muted is False
    assert commands == [SetMicrophoneEnabled(True), StartAudioSampler()]


def test_unmute_before_connect_does_not_start_sampler():
    state, commands = transition(SessionState(is_muted=True), MuteToggled())
    assert state.is_muted is False
    assert commands == [SetMicrophoneEnabled(True)]


def test_camera_toggle_round_trip():
    state, commands = transition(SessionState(), CameraToggled())
    assert commands == [AcquireCamera()]
    state, _ = transition(state, CameraResolved(granted=True))
    assert state.is_camera_off is False

    state, commands = transition(state, CameraToggled())
    assert state.is_camera_off is True
    assert commands == [ReleaseCamera()]


def test_camera_denied_stays_off():
    state, _ = transition(SessionState(), CameraToggled())
    state, _ = transition(state, CameraResolved(granted=False))
    assert state.is_camera_off is True


def test_screen_share_is_a_plain_flag():
    state, commands = transition(SessionState(), ScreenShareToggled())
    assert state.is_screen_sharing is True
    assert commands == []


def test_audio_level_is_clamped_and_zero_when_muted_or_idle():
    state = _connected_state()
    state, _ = transition(state, AudioLevelSampled(1.7))
    assert state.audio_level == 1.0

    idle, _ = transition(SessionState(), AudioLevelSampled(0.5))
    assert idle.audio_level == 0.0

    muted, _ = transition(_connected_state(muted=True), AudioLevelSampled(0.5))
    assert muted.audio_level == 0.0


def test_snapshot_exposes_presentation_fields():
    snapshot = _connected_state().snapshot()
    assert snapshot["connection_status"] == "connected"
    assert snapshot["connection_label"] == "Connected with interviewer"
    assert snapshot["is_connected"] is True
    assert snapshot["session_id"] == "conv-1"
    assert snapshot["has_transcript"] is False
