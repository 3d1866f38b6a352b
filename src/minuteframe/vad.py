"""Energy-based voice activity segmentation.

Frames arrive one at a time from the capture stream. Each frame is classified
as speech or silence by its RMS energy and two hysteresis counters decide when
an utterance starts and ends. While speaking, every frame is kept so trailing
silence inside the tolerance window stays part of the utterance.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

import numpy as np

from .audio_utils import WORKING_SAMPLE_RATE, rms, to_mono_float32
from .config import VadConfig
from .events import SpeechEnd, SpeechStart

logger = logging.getLogger("minuteframe")

IDLE = "idle"
SPEAKING = "speaking"

SegmenterEvent = Union[SpeechStart, SpeechEnd]


class VoiceActivitySegmenter:
    def __init__(
        self,
        config: Optional[VadConfig] = None,
        sample_rate: int = WORKING_SAMPLE_RATE,
    ):
        self.config = config or VadConfig()
        self.sample_rate = sample_rate
        self.max_samples = int(self.config.max_utterance_seconds * sample_rate)
        if self.max_samples <= 0:
            raise ValueError("max_utterance_seconds must be > 0.")
        self.state = IDLE
        self.speech_frames = 0
        self.silence_frames = 0
        self._chunks: List[np.ndarray] = []
        self._buffered = 0
        self._start_sample = 0
        self._processed = 0

    @property
    def is_speaking(self) -> bool:
        return self.state == SPEAKING

    @property
    def buffered_samples(self) -> int:
        return self._buffered

    @property
    def elapsed(self) -> float:
        return self._processed / self.sample_rate

    def process(self, frame) -> List[SegmenterEvent]:
        samples = to_mono_float32(frame)
        frame_start = self._processed
        self._processed += samples.size
        events: List[SegmenterEvent] = []

        if rms(samples) > self.config.energy_threshold:
            self.speech_frames += 1
            self.silence_frames = 0
            if self.state == IDLE and self.speech_frames >= self.config.speech_frames_needed:
                self._begin(frame_start)
                events.append(SpeechStart(timestamp=frame_start / self.sample_rate))
            if self.state == SPEAKING:
                events.extend(self._append(samples, frame_start, speech=True))
        else:
            self.silence_frames += 1
            self.speech_frames = 0
            if self.state == SPEAKING:
                if self.silence_frames < self.config.silence_frames_needed:
                    events.extend(self._append(samples, frame_start, speech=False))
                else:
                    events.append(self._end())
        return events

    def flush(self) -> Optional[SpeechEnd]:
        """End an open utterance early, e.g. when the session stops."""
        if self.state != SPEAKING:
            return None
        if self._buffered == 0:
            self.reset()
            return None
        return self._end()

    def reset(self) -> None:
        self.state = IDLE
        self.speech_frames = 0
        self.silence_frames = 0
        self._chunks = []
        self._buffered = 0

    def _begin(self, start_sample: int) -> None:
        self.state = SPEAKING
        self._chunks = []
        self._buffered = 0
        self._start_sample = start_sample

    def _append(
        self, samples: np.ndarray, frame_start: int, speech: bool
    ) -> List[SegmenterEvent]:
        events: List[SegmenterEvent] = []
        offset = 0
        while offset < samples.size:
            room = self.max_samples - self._buffered
            piece = samples[offset:offset + room]
            self._chunks.append(piece)
            self._buffered += piece.size
            offset += piece.size
            if self._buffered >= self.max_samples:
                logger.info(
                    "Utterance reached %.1fs, force-splitting.",
                    self.config.max_utterance_seconds,
                )
                speech_frames = self.speech_frames
                events.append(self._end())
                if not speech:
                    # limit hit in trailing silence: the utterance is over
                    break
                # Continuous speech keeps going in a fresh buffer.
                self._begin(frame_start + offset)
                self.speech_frames = speech_frames
                events.append(SpeechStart(timestamp=(frame_start + offset) / self.sample_rate))
        return events

    def _end(self) -> SpeechEnd:
        audio = (
            np.concatenate(self._chunks)
            if self._chunks
            else np.zeros(0, dtype=np.float32)
        )
        event = SpeechEnd(
            audio=audio,
            start_time=self._start_sample / self.sample_rate,
            duration=audio.size / self.sample_rate,
        )
        self.reset()
        return event
