"""Data models for minuteframe."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, List


SPEAKER_COLORS = (
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#f97316",
)


@dataclass
class WordSpan:
    word: str
    start: float
    end: float


@dataclass
class FeatureVector:
    pitch: float = 0.0
    formant: float = 0.0
    energy: float = 0.0
    low_band: float = 0.0
    mid_band: float = 0.0
    high_band: float = 0.0
    pitch_variance: float = 0.0
    energy_variance: float = 0.0
    duration: float = 0.0


@dataclass
class Utterance:
    id: int
    start_time: float
    duration: float
    speaker_id: int
    text: str
    word_spans: List[WordSpan] = field(default_factory=list)
    features: FeatureVector = field(default_factory=FeatureVector)


@dataclass
class Speaker:
    id: int
    name: str
    color_tag: str
    centroid: FeatureVector
    utterance_count: int = 1
    total_duration: float = 0.0


def new_speaker(speaker_id: int, centroid: FeatureVector) -> Speaker:
    return Speaker(
        id=speaker_id,
        name=f"Speaker {speaker_id + 1}",
        color_tag=SPEAKER_COLORS[speaker_id % len(SPEAKER_COLORS)],
        centroid=centroid,
        utterance_count=1,
        total_duration=centroid.duration,
    )


@dataclass
class Meeting:
    meeting_id: str
    title: str = "Meeting"
    started_at: Optional[str] = None
    utterances: List[Utterance] = field(default_factory=list)
    speakers: List[Speaker] = field(default_factory=list)

    def add_utterance(self, utterance: Utterance) -> None:
        if self.utterances and utterance.start_time <= self.utterances[-1].start_time:
            raise ValueError(
                f"Utterance {utterance.id} starts at {utterance.start_time:.2f}s, "
                f"not after {self.utterances[-1].start_time:.2f}s."
            )
        self.utterances.append(utterance)

    def speaker_by_id(self, speaker_id: int) -> Optional[Speaker]:
        for speaker in self.speakers:
            if speaker.id == speaker_id:
                return speaker
        return None

    def full_text(self) -> str:
        return " ".join(u.text.strip() for u in self.utterances if u.text.strip())


@dataclass
class ActionItem:
    text: str
    speaker_id: int
    utterance_id: int
    timestamp: float
    priority: str = "normal"
    assignee: Optional[str] = None
    deadline: Optional[str] = None
    category: str = "task"


@dataclass
class Decision:
    text: str
    speaker_id: int
    utterance_id: int
    timestamp: float
    confirmed: bool = True


@dataclass
class Question:
    text: str
    speaker_id: int
    utterance_id: int
    timestamp: float
    answered: bool = False


@dataclass
class Topic:
    term: str
    count: int


@dataclass
class Summary:
    executive: str = ""
    standard: str = ""
    detailed: List[str] = field(default_factory=list)


@dataclass
class Sentiment:
    positive: int = 0
    neutral: int = 0
    negative: int = 0


@dataclass
class IntelligenceReport:
    summary: Summary
    action_items: List[ActionItem] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)
    topics: List[Topic] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    sentiment: Sentiment = field(default_factory=Sentiment)
    key_points: List[str] = field(default_factory=list)
    utterance_count: int = 0
