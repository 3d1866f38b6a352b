import threading

import numpy as np
import pytest

from minuteframe.config import Config, VadConfig
from minuteframe.events import SnapshotReady, UtteranceAdded
from minuteframe.session import MeetingSession
from minuteframe.transcriber import TranscriptionResult

LOUD = np.full(160, 0.5, dtype=np.float32)
QUIET = np.zeros(160, dtype=np.float32)


class FakeTranscriber:
    def __init__(self, *texts):
        self.texts = list(texts)
        self.calls = 0

    def __call__(self, samples, options=None):
        self.calls += 1
        text = self.texts.pop(0)
        if isinstance(text, Exception):
            raise text
        return TranscriptionResult(text=text)


def _features(*vectors):
    remaining = list(vectors)

    def extract(samples, sample_rate):
        return remaining.pop(0)

    return extract


def _session(transcriber, extractor=None):
    cfg = Config(base_dir="")
    cfg.vad = VadConfig(speech_frames_needed=2, silence_frames_needed=3, max_utterance_seconds=5.0)
    kwargs = {"feature_extractor": extractor} if extractor else {}
    return MeetingSession(cfg, transcriber, **kwargs)


def _speak(session, loud=4, quiet=3):
    for _ in range(loud):
        session.feed(LOUD)
    for _ in range(quiet):
        session.feed(QUIET)


def _display_events(session):
    events = []
    while not session.display.empty():
        events.append(session.display.get_nowait())
    return events


def test_utterances_are_transcribed_and_clustered_in_order():
    transcriber = FakeTranscriber(
        "Hello everyone, thanks for joining.", "Let's review the budget numbers."
    )
    extractor = _features(
        {"pitch": 120.0, "formant": 30.0, "midBand": 0.2},
        {"pitch": 220.0, "formant": 70.0, "midBand": 0.6},
    )
    session = _session(transcriber, extractor)

    _speak(session)
    _speak(session)
    session.drain()

    utterances = session.meeting.utterances
    assert [u.text for u in utterances] == [
        "Hello everyone, thanks for joining.",
        "Let's review the budget numbers.",
    ]
    assert [u.speaker_id for u in utterances] == [0, 1]
    assert utterances[0].start_time < utterances[1].start_time
    assert utterances[0].features.duration == utterances[0].duration
    assert len(session.meeting.speakers) == 2

    added = _display_events(session)
    assert [type(e) for e in added] == [UtteranceAdded, UtteranceAdded]
    assert added[1].speaker_name == "Speaker 2"


def test_empty_transcription_is_skipped():
    session = _session(FakeTranscriber("   "))
    _speak(session)
    session.drain()
    assert session.meeting.utterances == []
    assert session.meeting.speakers == []


def test_transcription_failure_is_logged_and_skipped():
    session = _session(FakeTranscriber(RuntimeError("model crashed"), "Second try works fine."))
    _speak(session)
    _speak(session)
    session.drain()
    assert [u.text for u in session.meeting.utterances] == ["Second try works fine."]


def test_feature_extraction_failure_falls_back_to_defaults():
    def broken(samples, sample_rate):
        raise ValueError("no spectrum")

    session = _session(FakeTranscriber("Still recorded."), broken)
    _speak(session)
    session.drain()
    utterance = session.meeting.utterances[0]
    assert utterance.features.pitch == 80.0
    assert utterance.speaker_id == 0


def test_concurrent_utterance_is_dropped():
    session = _session(FakeTranscriber("never used"))
    session._utterance_lock.acquire()
    try:
        result = session.process_utterance(np.full(1600, 0.5, dtype=np.float32), 1.0, 0.1)
    finally:
        session._utterance_lock.release()
    assert result is None
    assert session.dropped_utterances == 1


def test_stop_flushes_open_utterance():
    session = _session(FakeTranscriber("Cut off mid sentence"))
    _speak(session, loud=4, quiet=0)
    utterance = session.stop()
    assert utterance is not None
    assert utterance.text == "Cut off mid sentence"
    assert not session.segmenter.is_speaking


def test_stop_can_discard_open_utterance():
    transcriber = FakeTranscriber()
    session = _session(transcriber)
    _speak(session, loud=4, quiet=0)
    assert session.stop(flush=False) is None
    assert transcriber.calls == 0
    assert session.meeting.utterances == []


def test_run_drains_queue_before_returning():
    session = _session(FakeTranscriber("Queued before stop."))
    _speak(session)
    stop_event = threading.Event()
    stop_event.set()
    session.run(stop_event, poll_interval=0.01)
    assert len(session.meeting.utterances) == 1


def test_snapshot_events_reach_display():
    session = _session(FakeTranscriber())
    session.events.put(SnapshotReady(display_text="hello", appended_text="hello"))
    session.drain()
    events = _display_events(session)
    assert events == [SnapshotReady(display_text="hello", appended_text="hello")]


def test_report_requires_enough_text():
    session = _session(
        FakeTranscriber(
            "We decided to move the launch to June after the review.",
            "I'll send the updated timeline to the whole team tomorrow.",
        )
    )
    assert session.generate_report() is None
    _speak(session)
    _speak(session)
    session.drain()
    report = session.generate_report()
    assert report is not None
    assert report.utterance_count == 2
    assert [d.text for d in report.decisions] == ["move the launch to June after the review"]


def test_stop_refuses_while_dispatch_loop_runs():
    session = _session(FakeTranscriber("Spoken after stop."))
    stop_event = threading.Event()
    dispatcher = threading.Thread(target=session.run, args=(stop_event, 0.01), daemon=True)
    dispatcher.start()
    assert session._dispatching.wait(2.0)

    with pytest.raises(RuntimeError):
        session.stop()

    stop_event.set()
    dispatcher.join(2.0)
    assert not dispatcher.is_alive()
    _speak(session, loud=4, quiet=0)
    assert session.stop().text == "Spoken after stop."
