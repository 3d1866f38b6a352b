import threading

import numpy as np

from minuteframe.audio_utils import AudioRingBuffer
from minuteframe.config import LiveConfig
from minuteframe.live_merge import (
    REPETITION_WARNING,
    LiveSnapshotMerger,
    SnapshotPoller,
    find_overlap,
    is_extreme_repetition,
    merge_words,
)


def test_find_overlap():
    assert find_overlap(["hello", "world", "this", "is"], ["this", "is", "a", "test"]) == 2
    assert find_overlap(["a", "b"], ["c", "d"]) == 0
    assert find_overlap([], ["c"]) == 0


def test_overlap_ignores_case_and_edge_punctuation():
    merged = merge_words(["we", "ship", "Friday."], ["friday", "at", "noon"])
    assert merged == ["we", "ship", "Friday.", "at", "noon"]


def test_overlap_is_bounded():
    previous = ["w"] * 20
    assert find_overlap(previous, ["w"] * 20, max_overlap=15) == 15


def test_merger_appends_only_new_words():
    merger = LiveSnapshotMerger(LiveConfig())
    first = merger.accept("the quick brown fox")
    assert first.appended_text == "the quick brown fox"

    second = merger.accept("brown fox jumps over")
    assert second.display_text == "the quick brown fox jumps over"
    assert second.appended_text == "jumps over"
    assert second.warning is None


def test_extreme_repetition_is_rejected():
    merger = LiveSnapshotMerger(LiveConfig())
    merger.accept("welcome to the call")

    event = merger.accept("thank you all very much " * 6)
    assert event.warning == REPETITION_WARNING
    assert event.display_text == "welcome to the call"
    assert event.appended_text == ""


def test_moderate_repetition_is_accepted():
    text = "thank you all very much " * 3
    assert not is_extreme_repetition(text)
    assert is_extreme_repetition("thank you all very much " * 6)


def test_display_is_capped():
    merger = LiveSnapshotMerger(LiveConfig(max_display_words=5))
    event = merger.accept("a b c d e f g")
    assert event.display_text == "c d e f g"


def test_process_snapshot_skips_quiet_audio():
    merger = LiveSnapshotMerger(LiveConfig(min_rms=0.005))
    calls = []

    def transcribe(samples):
        calls.append(samples)
        return "hello"

    assert merger.process_snapshot(np.zeros(1600, dtype=np.float32), transcribe) is None
    assert calls == []


def test_process_snapshot_survives_transcriber_errors():
    merger = LiveSnapshotMerger(LiveConfig())

    def transcribe(samples):
        raise RuntimeError("decoder crashed")

    loud = np.full(1600, 0.2, dtype=np.float32)
    assert merger.process_snapshot(loud, transcribe) is None
    assert merger.display_text == ""


def _poller(published):
    ring = AudioRingBuffer(6.0, 16000)
    ring.append(np.full(16000, 0.2, dtype=np.float32))
    merger = LiveSnapshotMerger(LiveConfig())
    return SnapshotPoller(merger, ring, lambda samples: "hello there", published.append)


def test_poller_tick_publishes_snapshot():
    published = []
    poller = _poller(published)
    assert poller.tick()
    assert [event.display_text for event in published] == ["hello there"]


def test_poller_skips_tick_while_busy():
    published = []
    poller = _poller(published)
    poller._busy.acquire()
    try:
        assert not poller.tick()
    finally:
        poller._busy.release()
    assert poller.skipped == 1
    assert published == []


def test_poller_start_and_stop():
    poller = _poller([])
    poller.start()
    poller.stop(timeout=1.0)
    assert poller._thread is None


def test_stop_waits_for_running_snapshot_and_discards_it():
    started = threading.Event()
    release = threading.Event()
    published = []

    def slow_transcribe(samples):
        started.set()
        release.wait(2.0)
        return "late words"

    ring = AudioRingBuffer(6.0, 16000)
    ring.append(np.full(16000, 0.2, dtype=np.float32))
    poller = SnapshotPoller(LiveSnapshotMerger(LiveConfig()), ring, slow_transcribe, published.append)
    poller._tick_thread = threading.Thread(target=poller.tick, daemon=True)
    poller._tick_thread.start()
    assert started.wait(2.0)

    stopper = threading.Thread(target=poller.stop, args=(2.0,))
    stopper.start()
    while not poller._stop.is_set():
        stopper.join(0.01)
    release.set()
    stopper.join(2.0)

    assert not stopper.is_alive()
    assert poller._tick_thread is None
    assert published == []
