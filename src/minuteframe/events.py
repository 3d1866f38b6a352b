"""Event variants passed between the segmenter, the session and the display."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .models import Utterance


@dataclass
class SpeechStart:
    timestamp: float


@dataclass
class SpeechEnd:
    audio: np.ndarray
    start_time: float
    duration: float


@dataclass
class SnapshotReady:
    display_text: str
    appended_text: str = ""
    warning: Optional[str] = None


@dataclass
class UtteranceAdded:
    utterance: Utterance
    speaker_name: str


Event = Union[SpeechStart, SpeechEnd, SnapshotReady, UtteranceAdded]
