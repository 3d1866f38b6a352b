"""Live display text built from overlapping snapshot transcriptions.

A snapshot is the last few seconds of captured audio, transcribed on its own
every few seconds. Consecutive snapshots overlap in time, so their texts are
stitched together by looking for the longest word overlap between the end of
the displayed text and the start of the new text.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Callable, List, Optional

import numpy as np

from .audio_utils import AudioRingBuffer, rms
from .config import LiveConfig
from .events import SnapshotReady

logger = logging.getLogger("minuteframe")

REPETITION_WARNING = "extreme repetition detected, snapshot discarded"

_EDGE_PUNCT = ".,!?;:\"'()[]"


def _norm(word: str) -> str:
    return word.strip(_EDGE_PUNCT).lower()


def is_extreme_repetition(
    text: str, min_words: int = 5, max_words: int = 10, limit: int = 5
) -> bool:
    words = [_norm(w) for w in text.split()]
    for size in range(min_words, max_words + 1):
        if len(words) - size + 1 < limit:
            break
        grams = Counter(tuple(words[i:i + size]) for i in range(len(words) - size + 1))
        if grams.most_common(1)[0][1] >= limit:
            return True
    return False


def find_overlap(previous: List[str], new: List[str], max_overlap: int = 15) -> int:
    """Length of the longest suffix of ``previous`` equal to a prefix of ``new``."""
    longest = min(max_overlap, len(previous), len(new))
    for size in range(longest, 0, -1):
        if [_norm(w) for w in previous[-size:]] == [_norm(w) for w in new[:size]]:
            return size
    return 0


def merge_words(previous: List[str], new: List[str], max_overlap: int = 15) -> List[str]:
    return previous + new[find_overlap(previous, new, max_overlap):]


SnapshotTranscriber = Callable[[np.ndarray], str]


class LiveSnapshotMerger:
    def __init__(self, config: Optional[LiveConfig] = None):
        self.config = config or LiveConfig()
        self.words: List[str] = []

    @property
    def display_text(self) -> str:
        return " ".join(self.words)

    def reset(self) -> None:
        self.words = []

    def accept(self, text: str) -> SnapshotReady:
        """Merge a transcribed snapshot into the display text."""
        cfg = self.config
        if is_extreme_repetition(
            text, cfg.repetition_min_words, cfg.repetition_max_words, cfg.repetition_limit
        ):
            logger.warning("Snapshot rejected: %s", REPETITION_WARNING)
            return SnapshotReady(display_text=self.display_text, warning=REPETITION_WARNING)

        new_words = text.split()
        overlap = find_overlap(self.words, new_words, cfg.max_overlap_words)
        appended = new_words[overlap:]
        self.words = (self.words + appended)[-cfg.max_display_words:]
        return SnapshotReady(display_text=self.display_text, appended_text=" ".join(appended))

    def process_snapshot(
        self, samples: np.ndarray, transcribe: SnapshotTranscriber
    ) -> Optional[SnapshotReady]:
        if samples.size == 0 or rms(samples) < self.config.min_rms:
            return None
        try:
            text = (transcribe(samples) or "").strip()
        except Exception as exc:
            logger.warning("Snapshot transcription failed: %s", exc)
            return None
        if not text:
            return None
        return self.accept(text)


class SnapshotPoller:
    """Periodically merges the latest audio window, skipping ticks while busy."""

    def __init__(
        self,
        merger: LiveSnapshotMerger,
        ring: AudioRingBuffer,
        transcribe: SnapshotTranscriber,
        publish: Callable[[SnapshotReady], None],
    ):
        self.merger = merger
        self.ring = ring
        self.transcribe = transcribe
        self.publish = publish
        self.skipped = 0
        self._busy = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._tick_thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="snapshot-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the timer and wait for an in-flight snapshot to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self._tick_thread is not None:
            self._tick_thread.join(timeout)
            self._tick_thread = None

    def tick(self) -> bool:
        """Run one snapshot unless the previous one is still in flight."""
        if not self._busy.acquire(blocking=False):
            self.skipped += 1
            logger.debug("Snapshot skipped, previous still running.")
            return False
        try:
            window = self.ring.latest(self.merger.config.snapshot_duration_s)
            event = self.merger.process_snapshot(window, self.transcribe)
            if event is not None and not self._stop.is_set():
                self.publish(event)
        finally:
            self._busy.release()
        return True

    def _loop(self) -> None:
        while not self._stop.wait(self.merger.config.update_interval_s):
            if self._tick_thread is not None and self._tick_thread.is_alive():
                self.skipped += 1
                continue
            self._tick_thread = threading.Thread(target=self.tick, name="snapshot", daemon=True)
            self._tick_thread.start()
