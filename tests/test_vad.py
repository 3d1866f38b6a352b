import numpy as np
import pytest

from minuteframe.config import VadConfig
from minuteframe.events import SpeechEnd, SpeechStart
from minuteframe.vad import VoiceActivitySegmenter

RATE = 16000


def _loud(size=160):
    return np.full(size, 0.5, dtype=np.float32)


def _quiet(size=160):
    return np.zeros(size, dtype=np.float32)


def _run(segmenter, frames):
    events = []
    for frame in frames:
        events.extend(segmenter.process(frame))
    return events


def test_utterance_starts_after_consecutive_speech_and_ends_after_silence():
    cfg = VadConfig(energy_threshold=0.01, speech_frames_needed=3, silence_frames_needed=4)
    segmenter = VoiceActivitySegmenter(cfg, RATE)

    assert _run(segmenter, [_loud(), _loud()]) == []
    events = _run(segmenter, [_loud()])
    assert events == [SpeechStart(timestamp=320 / RATE)]
    assert segmenter.is_speaking

    events = _run(segmenter, [_loud(), _loud()] + [_quiet()] * 4)
    assert len(events) == 1
    end = events[0]
    assert isinstance(end, SpeechEnd)
    assert end.start_time == pytest.approx(320 / RATE)
    # three speech frames plus three tolerated silence frames
    assert end.audio.size == 960
    assert end.duration == pytest.approx(960 / RATE)
    assert not segmenter.is_speaking


def test_short_pause_does_not_end_utterance():
    cfg = VadConfig(speech_frames_needed=2, silence_frames_needed=4)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    events = _run(segmenter, [_loud(), _loud(), _quiet(), _quiet(), _loud(), _quiet()])
    assert [type(e) for e in events] == [SpeechStart]
    assert segmenter.buffered_samples == 5 * 160


def test_isolated_speech_frames_do_not_start():
    cfg = VadConfig(speech_frames_needed=3)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    frames = [_loud(), _loud(), _quiet(), _loud(), _loud(), _quiet()]
    assert _run(segmenter, frames) == []
    assert segmenter.elapsed == pytest.approx(6 * 160 / RATE)


def test_force_split_continues_speaking():
    cfg = VadConfig(speech_frames_needed=3, max_utterance_seconds=1.0)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    events = _run(segmenter, [_loud(1000)] * 18)

    assert [type(e) for e in events] == [SpeechStart, SpeechEnd, SpeechStart]
    assert events[0].timestamp == pytest.approx(2000 / RATE)
    assert events[1].start_time == pytest.approx(2000 / RATE)
    assert events[1].duration == pytest.approx(1.0)
    assert events[2].timestamp == pytest.approx(18000 / RATE)
    assert segmenter.is_speaking
    assert segmenter.buffered_samples == 0


def test_force_split_inside_a_frame_never_exceeds_limit():
    cfg = VadConfig(speech_frames_needed=3, max_utterance_seconds=1.0)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    events = _run(segmenter, [_loud(1500)] * 13)

    ends = [e for e in events if isinstance(e, SpeechEnd)]
    assert len(ends) == 1
    assert ends[0].audio.size == RATE
    assert events[-1] == SpeechStart(timestamp=19000 / RATE)
    assert segmenter.buffered_samples == 500


def test_force_split_in_trailing_silence_returns_to_idle():
    cfg = VadConfig(max_utterance_seconds=1.0)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    events = _run(segmenter, [_loud()] * 95 + [_quiet()] * 40)

    ends = [e for e in events if isinstance(e, SpeechEnd)]
    starts = [e for e in events if isinstance(e, SpeechStart)]
    assert len(ends) == 1
    assert len(starts) == 1
    assert ends[0].start_time == pytest.approx(640 / RATE)
    assert ends[0].duration == pytest.approx(1.0)
    assert not segmenter.is_speaking
    assert segmenter.buffered_samples == 0
    assert segmenter.flush() is None


def test_flush_returns_open_utterance():
    cfg = VadConfig(speech_frames_needed=2)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    assert segmenter.flush() is None

    _run(segmenter, [_loud()] * 4)
    end = segmenter.flush()
    assert isinstance(end, SpeechEnd)
    assert end.audio.size == 3 * 160
    assert not segmenter.is_speaking
    assert segmenter.flush() is None


def test_int16_frames_are_scaled():
    cfg = VadConfig(speech_frames_needed=1)
    segmenter = VoiceActivitySegmenter(cfg, RATE)
    events = segmenter.process(np.full(160, 16000, dtype=np.int16))
    assert [type(e) for e in events] == [SpeechStart]


def test_invalid_max_utterance_rejected():
    with pytest.raises(ValueError):
        VoiceActivitySegmenter(VadConfig(max_utterance_seconds=0), RATE)
