import asyncio

import pytest

from interview_room.session.audio_level import AudioFrameBuffer, AudioLevelSampler, pcm16_level


def _frame(amplitude: int, samples: int = 160) -> bytes:
    return amplitude.to_bytes(2, "little", signed=True) * samples


def test_silence_is_zero():
    assert pcm16_level(_frame(0)) == 0.0
    assert pcm16_level(b"") == 0.0
    assert pcm16_level(b"\x01") == 0.0


def test_level_scales_with_amplitude_and_clamps():
    quiet = pcm16_level(_frame(1000))
    loud = pcm16_level(_frame(6000))

    assert 0.0 < quiet < loud < 1.0
    assert pcm16_level(_frame(-32768)) == 1.0


def test_odd_trailing_byte_is_ignored():
    assert pcm16_level(_frame(4096) + b"\x7f") == pcm16_level(_frame(4096))


def test_stale_frames_read_as_silence(monkeypatch):
    buffer = AudioFrameBuffer()
    buffer.push(_frame(4096))
    assert buffer.latest()

    buffer._received_at -= 10  # test-only: age the frame
    assert buffer.latest() == b""


@pytest.mark.asyncio
async def test_sampler_reports_levels_until_stopped():
    buffer = AudioFrameBuffer()
    buffer.push(_frame(8000))
    levels = []

    async def _on_level(level: float):
        levels.append(level)

    sampler = AudioLevelSampler(buffer, _on_level, interval_sec=0.01)
    sampler.start()
    sampler.start()
    await asyncio.sleep(0.05)
    await sampler.stop()
    count = len(levels)
    await asyncio.sleep(0.03)

    assert sampler.running is False
    assert count >= 1
    assert len(levels) == count
    assert all(level > 0.5 for level in levels)
