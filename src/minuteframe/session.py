"""Live meeting session.

``MeetingSession`` owns all per-meeting state: the Meeting itself, the
segmenter, the speaker clusterer, the live display merger and the capture ring
buffer. Audio frames go in through ``feed``; the segmenter's events are queued
and handled one at a time by ``run`` (or ``drain``), so utterances are always
transcribed and clustered in order from a single place.
"""

from __future__ import annotations

import logging
import queue
import threading
from datetime import datetime
from typing import Callable, Optional

import numpy as np

from .audio_utils import AudioRingBuffer
from .clustering import SpeakerClusterer
from .config import Config
from .events import Event, SnapshotReady, SpeechEnd, SpeechStart, UtteranceAdded
from .features import extract_features, normalize_features
from .intelligence import IntelligenceExtractor
from .live_merge import LiveSnapshotMerger, SnapshotPoller, SnapshotTranscriber
from .models import FeatureVector, IntelligenceReport, Meeting, Utterance
from .summarize import Summarizer
from .transcriber import Transcribe, TranscriptionOptions
from .vad import VoiceActivitySegmenter

logger = logging.getLogger("minuteframe")

FeatureExtractor = Callable[[np.ndarray, int], object]


class MeetingSession:
    def __init__(
        self,
        config: Config,
        transcribe: Transcribe,
        feature_extractor: FeatureExtractor = extract_features,
        summarizer: Optional[Summarizer] = None,
        meeting: Optional[Meeting] = None,
        title: str = "Meeting",
    ):
        self.config = config
        self.sample_rate = config.audio.sample_rate_hz
        self.transcribe = transcribe
        self.feature_extractor = feature_extractor
        now = datetime.now()
        self.meeting = meeting or Meeting(
            meeting_id=now.strftime("%Y%m%d-%H%M%S"),
            title=title,
            started_at=now.isoformat(timespec="seconds"),
        )
        self.segmenter = VoiceActivitySegmenter(config.vad, self.sample_rate)
        self.clusterer = SpeakerClusterer(config.clustering)
        self.merger = LiveSnapshotMerger(config.live)
        self.ring = AudioRingBuffer(config.live.snapshot_duration_s, self.sample_rate)
        self.extractor = IntelligenceExtractor(config.intelligence, summarizer)
        self.events: "queue.Queue[Event]" = queue.Queue()
        self.display: "queue.Queue[Event]" = queue.Queue()
        self.dropped_utterances = 0
        self._utterance_lock = threading.Lock()
        self._poller: Optional[SnapshotPoller] = None
        self._dispatching = threading.Event()

    def feed(self, frame) -> None:
        self.ring.append(frame)
        for event in self.segmenter.process(frame):
            self.events.put(event)

    def dispatch(self, event: Event) -> None:
        if isinstance(event, SpeechStart):
            logger.debug("Speech started at %.2fs", event.timestamp)
        elif isinstance(event, SpeechEnd):
            logger.debug("Speech ended: %.2fs at %.2fs", event.duration, event.start_time)
            self.process_utterance(event.audio, event.start_time, event.duration)
        elif isinstance(event, (SnapshotReady, UtteranceAdded)):
            self.display.put(event)
        else:
            logger.warning("Unknown event %r ignored.", event)

    def drain(self) -> None:
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return
            self.dispatch(event)

    def run(self, stop_event: threading.Event, poll_interval: float = 0.1) -> None:
        """Dispatch queued events until ``stop_event`` is set and the queue is empty."""
        self._dispatching.set()
        try:
            while True:
                try:
                    event = self.events.get(timeout=poll_interval)
                except queue.Empty:
                    if stop_event.is_set():
                        return
                    continue
                self.dispatch(event)
        finally:
            self._dispatching.clear()

    def process_utterance(
        self, audio: np.ndarray, start_time: float, duration: float
    ) -> Optional[Utterance]:
        if not self._utterance_lock.acquire(blocking=False):
            self.dropped_utterances += 1
            logger.warning(
                "Utterance at %.2fs dropped, another transcription is in flight.", start_time
            )
            return None
        try:
            return self._process_utterance(audio, start_time, duration)
        finally:
            self._utterance_lock.release()

    def _process_utterance(
        self, audio: np.ndarray, start_time: float, duration: float
    ) -> Optional[Utterance]:
        options = TranscriptionOptions(language=self.config.language, word_timestamps=True)
        try:
            result = self.transcribe(audio, options)
        except Exception as exc:
            logger.warning("Transcription failed for utterance at %.2fs: %s", start_time, exc)
            return None

        text = (result.text or "").strip() if result is not None else ""
        if not text:
            logger.info("Empty transcription at %.2fs, skipping.", start_time)
            return None

        try:
            raw = self.feature_extractor(audio, self.sample_rate)
        except Exception as exc:
            logger.warning("Feature extraction failed at %.2fs: %s", start_time, exc)
            raw = None
        features = normalize_features(raw)
        features = FeatureVector(**{**vars(features), "duration": max(0.0, duration)})

        assignment = self.clusterer.assign(self.meeting.speakers, features)
        utterance = Utterance(
            id=len(self.meeting.utterances),
            start_time=start_time,
            duration=duration,
            speaker_id=assignment.speaker.id,
            text=text,
            word_spans=list(result.word_spans),
            features=features,
        )
        self.meeting.add_utterance(utterance)
        logger.info("%s [%.2fs]: %s", assignment.speaker.name, start_time, text)
        self.display.put(UtteranceAdded(utterance=utterance, speaker_name=assignment.speaker.name))
        return utterance

    def start_live_display(self, snapshot_transcribe: SnapshotTranscriber) -> SnapshotPoller:
        if self._poller is None:
            self._poller = SnapshotPoller(
                self.merger, self.ring, snapshot_transcribe, publish=self.events.put
            )
            self._poller.start()
        return self._poller

    def generate_report(self) -> Optional[IntelligenceReport]:
        return self.extractor.generate(self.meeting)

    def stop(self, flush: bool = True) -> Optional[Utterance]:
        """Stop live display and close the open utterance; appended utterances stay.

        Must be called after ``run`` has returned, since it drains the same queue.
        """
        if self._dispatching.is_set():
            raise RuntimeError("stop() called while run() is still dispatching events.")
        if self._poller is not None:
            self._poller.stop(timeout=1.0)
            self._poller = None
        self.drain()
        if not flush:
            self.segmenter.reset()
            return None
        pending = self.segmenter.flush()
        if pending is None:
            return None
        return self.process_utterance(pending.audio, pending.start_time, pending.duration)
