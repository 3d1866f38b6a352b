from minuteframe.config import IntelligenceConfig
from minuteframe.intelligence import (
    IntelligenceExtractor,
    analyze_sentiment,
    build_report,
    detect_deadline,
    extract_action_items,
    extract_decisions,
    extract_questions,
    extract_topics,
    resolve_assignee,
)
from minuteframe.models import FeatureVector, Meeting, Utterance, new_speaker
from minuteframe.session_io import report_to_json


def _utterances(*texts, speakers=None):
    speakers = speakers or [0] * len(texts)
    return [
        Utterance(id=i, start_time=float(i * 5), duration=4.0, speaker_id=s, text=t)
        for i, (t, s) in enumerate(zip(texts, speakers))
    ]


def test_first_person_action_item():
    items = extract_action_items(
        _utterances("I'll send the budget report to finance by Friday."),
        {0: "Speaker 1"},
    )
    assert len(items) == 1
    item = items[0]
    assert item.text == "send the budget report to finance by Friday"
    assert item.assignee == "Speaker 1"
    assert item.deadline == "by Friday"
    assert item.category == "communication"
    assert item.priority == "normal"


def test_second_person_action_item_is_urgent():
    items = extract_action_items(_utterances("You need to review the contract urgently."))
    assert len(items) == 1
    assert items[0].assignee == "Listener"
    assert items[0].priority == "urgent"
    assert items[0].category == "review"


def test_team_action_item():
    items = extract_action_items(_utterances("Let's schedule a follow-up meeting next week."))
    assert len(items) == 1
    assert items[0].text == "schedule a follow-up meeting next week"
    assert items[0].assignee == "Team"
    assert items[0].category == "meeting"
    assert items[0].deadline == "next week"


def test_non_explicit_questions_are_not_action_items():
    items = extract_action_items(_utterances("Do you need to check the logs?"))
    assert items == []


def test_explicit_requests_survive_question_form():
    items = extract_action_items(_utterances("Could you please share the slides?"))
    assert [item.text for item in items] == ["share the slides"]


def test_duplicate_action_items_are_merged():
    items = extract_action_items(
        _utterances("I will update the roadmap.", "I will update the roadmap!")
    )
    assert len(items) == 1
    assert items[0].utterance_id == 0


def test_decisions_deduplicate_and_filter_short_matches():
    decisions = extract_decisions(
        _utterances("Let's go with option B. We decided to use option B.")
    )
    assert [d.text for d in decisions] == ["use option B"]
    assert decisions[0].confirmed


def test_labelled_decision():
    decisions = extract_decisions(_utterances("Agreed: launch the beta in March."))
    assert [d.text for d in decisions] == ["launch the beta in March"]


def test_question_answered_by_following_utterance():
    questions = extract_questions(
        _utterances("Are we launching the beta on Friday?", "Yes, Friday works for everyone.")
    )
    assert len(questions) == 1
    assert questions[0].answered


def test_question_without_answer():
    questions = extract_questions(
        _utterances(
            "Who owns the onboarding checklist?",
            "Let me check the slides.",
            "The coffee is cold.",
        )
    )
    assert len(questions) == 1
    assert not questions[0].answered


def test_topics_rank_by_count_then_first_seen():
    topics = extract_topics(
        "The budget review is late. The budget review needs owners. Budget matters."
    )
    assert [(t.term, t.count) for t in topics] == [("budget", 3), ("budget review", 2)]


def test_sentiment_counts():
    sentiment = analyze_sentiment(
        "This is great progress. There is a problem with the build. We meet Monday."
    )
    assert sentiment.positive == 2
    assert sentiment.negative == 1
    assert sentiment.neutral == 0


def test_resolve_assignee():
    assert resolve_assignee("you will ", "Speaker 2") == "Listener"
    assert resolve_assignee("I will ", "Speaker 2") == "Speaker 2"
    assert resolve_assignee("we need to ", "Speaker 2") == "Team"


def test_detect_deadline():
    assert detect_deadline("Ship it by end of the week.") == "by end of the week"
    assert detect_deadline("No rush on this one.") is None


def _meeting():
    meeting = Meeting(meeting_id="m1")
    meeting.speakers.append(new_speaker(0, FeatureVector(pitch=120.0)))
    meeting.speakers.append(new_speaker(1, FeatureVector(pitch=220.0)))
    for utterance in _utterances(
        "Thanks for joining, we need to finalize the launch plan today.",
        "I'll draft the launch announcement by Thursday.",
        "Are we confident about the launch date?",
        "Yes, we decided to launch on the first of May.",
        speakers=[0, 1, 0, 1],
    ):
        meeting.add_utterance(utterance)
    return meeting


def test_build_report_is_idempotent():
    meeting = _meeting()
    first = build_report(meeting)
    second = build_report(meeting)
    assert first == second
    assert report_to_json(first) == report_to_json(second)
    assert first.utterance_count == 4
    assert first.summary.executive
    assert any(item.assignee == "Speaker 2" for item in first.action_items)
    assert [d.text for d in first.decisions] == ["launch on the first of May"]
    assert first.questions[0].answered
    assert first.topics[0].term == "launch"


def test_extractor_keeps_previous_report_for_short_transcripts():
    extractor = IntelligenceExtractor(IntelligenceConfig())
    short = Meeting(meeting_id="m2")
    short.add_utterance(Utterance(id=0, start_time=0.0, duration=1.0, speaker_id=0, text="Hi."))
    assert extractor.generate(short) is None

    report = extractor.generate(_meeting())
    assert report is not None
    assert extractor.generate(short) is report
