"""Meeting and report persistence."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict

from .models import (
    ActionItem,
    Decision,
    FeatureVector,
    IntelligenceReport,
    Meeting,
    Question,
    Sentiment,
    Speaker,
    Summary,
    Topic,
    Utterance,
    WordSpan,
)


def report_to_json(report: IntelligenceReport) -> str:
    return json.dumps(asdict(report), indent=2, ensure_ascii=False)


def meeting_from_dict(data: Dict[str, Any]) -> Meeting:
    utterances = [
        Utterance(
            id=u["id"],
            start_time=u["start_time"],
            duration=u["duration"],
            speaker_id=u["speaker_id"],
            text=u["text"],
            word_spans=[WordSpan(**w) for w in u.get("word_spans", [])],
            features=FeatureVector(**u.get("features", {})),
        )
        for u in data.get("utterances", [])
    ]
    speakers = [
        Speaker(**{**s, "centroid": FeatureVector(**s.get("centroid", {}))})
        for s in data.get("speakers", [])
    ]
    return Meeting(
        meeting_id=data["meeting_id"],
        title=data.get("title", "Meeting"),
        started_at=data.get("started_at"),
        utterances=utterances,
        speakers=speakers,
    )


def report_from_dict(data: Dict[str, Any]) -> IntelligenceReport:
    return IntelligenceReport(
        summary=Summary(**data.get("summary", {})),
        action_items=[ActionItem(**a) for a in data.get("action_items", [])],
        decisions=[Decision(**d) for d in data.get("decisions", [])],
        topics=[Topic(**t) for t in data.get("topics", [])],
        questions=[Question(**q) for q in data.get("questions", [])],
        sentiment=Sentiment(**data.get("sentiment", {})),
        key_points=list(data.get("key_points", [])),
        utterance_count=data.get("utterance_count", 0),
    )


def save_meeting(path: str, meeting: Meeting) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(asdict(meeting), handle, indent=2, ensure_ascii=False)


def load_meeting(path: str) -> Meeting:
    with open(path, "r", encoding="utf-8") as handle:
        return meeting_from_dict(json.load(handle))


def save_report(path: str, report: IntelligenceReport) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(report_to_json(report))


def load_report(path: str) -> IntelligenceReport:
    with open(path, "r", encoding="utf-8") as handle:
        return report_from_dict(json.load(handle))
