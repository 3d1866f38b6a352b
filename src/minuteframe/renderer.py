"""Transcript and Markdown note rendering."""

from __future__ import annotations

from typing import Dict, List, Optional

from .models import IntelligenceReport, Meeting, Utterance


def _yaml_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f"\"{escaped}\""


def _clean_text(value: str) -> str:
    return " ".join(value.split())


def format_timestamp(seconds: float) -> str:
    seconds = max(0.0, seconds)
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    tenths = int((seconds % 1) * 10)
    return f"{mins:02d}:{secs:02d}.{tenths}"


def _speaker_names(meeting: Meeting) -> Dict[int, str]:
    return {s.id: s.name for s in meeting.speakers}


def _speaker_label(names: Dict[int, str], utterance: Utterance) -> str:
    return names.get(utterance.speaker_id, f"Speaker {utterance.speaker_id + 1}")


def render_transcript(meeting: Meeting) -> str:
    """Plain diarized transcript, one block per utterance."""
    names = _speaker_names(meeting)
    blocks = []
    for utt in meeting.utterances:
        label = _speaker_label(names, utt)
        blocks.append(f"[{format_timestamp(utt.start_time)}] {label}:\n{utt.text.strip()}")
    return "\n\n".join(blocks)


def _build_timeline_lines(meeting: Meeting) -> List[str]:
    names = _speaker_names(meeting)
    return [
        f"[{format_timestamp(utt.start_time)}] {_clean_text(_speaker_label(names, utt))}: "
        f"{_clean_text(utt.text)}"
        for utt in sorted(meeting.utterances, key=lambda u: u.start_time)
    ]


def _report_lines(report: IntelligenceReport, names: Dict[int, str]) -> List[str]:
    lines: List[str] = []
    if report.summary.standard:
        lines.append("## Summary")
        lines.append("")
        lines.append(_clean_text(report.summary.standard))
        lines.append("")
    if report.key_points:
        lines.append("## Key Points")
        lines.append("")
        lines.extend(f"- {_clean_text(p)}" for p in report.key_points)
        lines.append("")
    if report.action_items:
        lines.append("## Action Items")
        lines.append("")
        for item in report.action_items:
            details = [item.priority, item.category]
            if item.assignee:
                details.append(f"owner: {item.assignee}")
            if item.deadline:
                details.append(f"due: {item.deadline}")
            lines.append(f"- [ ] {_clean_text(item.text)} ({', '.join(details)})")
        lines.append("")
    if report.decisions:
        lines.append("## Decisions")
        lines.append("")
        for decision in report.decisions:
            who = names.get(decision.speaker_id, f"Speaker {decision.speaker_id + 1}")
            lines.append(
                f"- {_clean_text(decision.text)} "
                f"({who}, {format_timestamp(decision.timestamp)})"
            )
        lines.append("")
    if report.questions:
        lines.append("## Questions")
        lines.append("")
        for question in report.questions:
            mark = "answered" if question.answered else "open"
            lines.append(f"- {_clean_text(question.text)} ({mark})")
        lines.append("")
    if report.topics:
        lines.append("## Topics")
        lines.append("")
        lines.append(", ".join(f"{t.term} ({t.count})" for t in report.topics))
        lines.append("")
    sentiment = report.sentiment
    lines.append("## Sentiment")
    lines.append("")
    lines.append(
        f"- Positive: {sentiment.positive}, Neutral: {sentiment.neutral}, "
        f"Negative: {sentiment.negative}"
    )
    lines.append("")
    return lines


def render_note(
    title: str,
    date: str,
    meeting: Meeting,
    report: Optional[IntelligenceReport] = None,
    audio_filename: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    tags: Optional[List[str]] = None,
    started_at: Optional[str] = None,
) -> str:
    names = _speaker_names(meeting)
    lines: List[str] = []
    lines.append("---")
    lines.append("schema: 1")
    lines.append(f"title: {_yaml_quote(title)}")
    lines.append(f"date: {_yaml_quote(date)}")
    if audio_filename:
        lines.append(f"audio: {_yaml_quote(audio_filename)}")
    if started_at:
        lines.append(f"started_at: {_yaml_quote(started_at)}")
    if duration_seconds is not None:
        lines.append(f"duration_seconds: {duration_seconds}")
    if meeting.speakers:
        lines.append("participants:")
        for speaker in meeting.speakers:
            lines.append(f"  - {_yaml_quote(speaker.name)}")
    if tags:
        lines.append("tags:")
        for tag in tags:
            lines.append(f"  - {_yaml_quote(tag)}")
    if report and report.summary.executive:
        lines.append("summary: >")
        lines.append(f"  {_clean_text(report.summary.executive)}")
    lines.append("---")
    lines.append("")
    lines.append("## Session Details")
    lines.append("")
    lines.append(f"- Title: {_clean_text(title)}")
    lines.append(f"- Date: {_clean_text(date)}")
    if audio_filename:
        lines.append(f"- Audio: {_clean_text(audio_filename)}")
    if duration_seconds is not None:
        lines.append(f"- Duration (s): {duration_seconds}")
    lines.append(f"- Utterances: {len(meeting.utterances)}")
    if meeting.speakers:
        lines.append(
            "- Speakers: "
            + ", ".join(
                f"{s.name} ({s.utterance_count}, {s.total_duration:.1f}s)" for s in meeting.speakers
            )
        )
    lines.append("")

    if report is not None:
        lines.extend(_report_lines(report, names))

    lines.append("## Transcript")
    lines.append("")
    lines.extend(_build_timeline_lines(meeting))
    lines.append("")
    return "\n".join(lines)
