"""Transcription with Faster-Whisper."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from .audio_utils import WORKING_SAMPLE_RATE, load_audio
from .models import WordSpan

logger = logging.getLogger("minuteframe")


@dataclass
class TranscriptionOptions:
    language: Optional[str] = None
    word_timestamps: bool = True
    beam_size: int = 5
    condition_on_previous_text: bool = False


# greedy decoding for the live display path
FAST_OPTIONS = TranscriptionOptions(word_timestamps=False, beam_size=1)


@dataclass
class TranscriptionResult:
    text: str
    word_spans: List[WordSpan] = field(default_factory=list)


Transcribe = Callable[[np.ndarray, TranscriptionOptions], TranscriptionResult]


class WhisperTranscriber:
    """Callable wrapper around a lazily loaded ``faster_whisper.WhisperModel``.

    Inference is serialised with a lock because one model instance is shared by
    the utterance path and the live snapshot path.
    """

    def __init__(
        self,
        model_name: str = "base",
        language: str | None = None,
        device: str | None = None,
        compute_type: str | None = None,
    ):
        self.model_name = model_name
        self.language = language
        self.device = device
        self.compute_type = compute_type
        self._model = None
        self._lock = threading.Lock()

    def _load(self):
        if self._model is None:
            try:
                from faster_whisper import WhisperModel
            except Exception as exc:  # pragma: no cover - optional dependency
                raise RuntimeError(
                    "faster-whisper is required for transcription."
                ) from exc

            kwargs = {}
            if self.device:
                kwargs["device"] = self.device
            if self.compute_type:
                kwargs["compute_type"] = self.compute_type
            logger.info("Loading Whisper model %s", self.model_name)
            self._model = WhisperModel(self.model_name, **kwargs)
        return self._model

    def __call__(
        self,
        samples: np.ndarray,
        options: Optional[TranscriptionOptions] = None,
        progress_cb: Optional[Callable[[float], None]] = None,
    ) -> TranscriptionResult:
        options = options or TranscriptionOptions()
        total_duration_s = samples.size / WORKING_SAMPLE_RATE
        with self._lock:
            model = self._load()
            segments, _info = model.transcribe(
                samples.astype(np.float32, copy=False),
                language=options.language or self.language,
                beam_size=options.beam_size,
                word_timestamps=options.word_timestamps,
                condition_on_previous_text=options.condition_on_previous_text,
            )

            texts: List[str] = []
            spans: List[WordSpan] = []
            for seg in segments:
                texts.append(seg.text.strip())
                for word in seg.words or []:
                    spans.append(
                        WordSpan(word=word.word.strip(), start=word.start, end=word.end)
                    )
                if progress_cb and total_duration_s:
                    progress = min(max(seg.end / total_duration_s, 0.0), 1.0)
                    progress_cb(progress)
        return TranscriptionResult(text=" ".join(t for t in texts if t), word_spans=spans)

    def snapshot(self, samples: np.ndarray) -> str:
        return self(samples, FAST_OPTIONS).text


def transcribe_file(
    audio_path: str,
    transcribe: Transcribe,
    language: str | None = None,
) -> TranscriptionResult:
    """Transcribe a whole file in one pass, without voice activity segmentation."""
    samples = load_audio(audio_path, WORKING_SAMPLE_RATE)
    logger.info(
        "Transcribing %s (%.1fs of audio)", audio_path, samples.size / WORKING_SAMPLE_RATE
    )
    result = transcribe(samples, TranscriptionOptions(language=language))
    result.text = remove_duplicate_sentences(result.text)
    return result


def remove_duplicate_sentences(text: str) -> str:
    sentences = re.findall(r"[^.!?\n]+[.!?\n]*", text) or [text]
    seen = set()
    unique = []
    for sentence in sentences:
        normalized = re.sub(r"[.,!?;:]", "", sentence.strip().lower())
        normalized = re.sub(r"\s+", " ", normalized)
        if len(normalized) > 3 and normalized not in seen:
            seen.add(normalized)
            unique.append(sentence.strip())
    return " ".join(unique).strip()
