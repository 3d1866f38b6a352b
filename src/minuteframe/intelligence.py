"""Rule-based meeting intelligence.

Every stage reads the full utterance list and is recomputed from scratch on each
call, so a report always matches the meeting it was generated from. Action item
and decision extraction are driven by ordered pattern tables; each
``PatternRule`` is a pure function from text to candidate matches.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import IntelligenceConfig
from .models import (
    ActionItem,
    Decision,
    IntelligenceReport,
    Meeting,
    Question,
    Sentiment,
    Topic,
    Utterance,
)
from .summarize import Summarizer, keyword_hits, split_sentences, summarize

logger = logging.getLogger("minuteframe")

MIN_ITEM_CHARS = 10
MAX_ITEM_CHARS = 200
DEDUP_KEY_CHARS = 50
ANSWER_WINDOW = 3
SUBSTANTIAL_REPLY_CHARS = 50

_TASK = r"(?P<task>[^.!?\n]+)"


@dataclass
class Candidate:
    text: str
    prefix: str
    sentence: str
    is_question: bool
    explicit: bool


def _sentence_around(text: str, start: int, end: int) -> str:
    left = max(text.rfind(mark, 0, start) for mark in ".!?\n") + 1
    stops = [i for i in (text.find(mark, end) for mark in ".!?\n") if i != -1]
    right = min(stops) + 1 if stops else len(text)
    return text[left:right].strip()


class PatternRule:
    """One extraction rule: a regex with a ``task`` group."""

    def __init__(self, name: str, pattern: str, explicit: bool = False):
        self.name = name
        self.regex = re.compile(pattern, re.IGNORECASE)
        self.explicit = explicit

    def __call__(self, text: str) -> List[Candidate]:
        found = []
        for match in self.regex.finditer(text):
            sentence = _sentence_around(text, match.start(), match.end())
            found.append(
                Candidate(
                    text=match.group("task").strip(" ,;:-"),
                    prefix=text[match.start():match.start("task")],
                    sentence=sentence,
                    is_question=sentence.endswith("?"),
                    explicit=self.explicit,
                )
            )
        return found

    def __repr__(self) -> str:
        return f"PatternRule({self.name!r})"


ACTION_RULES = [
    PatternRule(
        "first_person",
        r"\b(?:I'll|I will|I'm going to|I am going to|I need to|I have to|let me)\s+" + _TASK,
    ),
    PatternRule(
        "second_person",
        r"\b(?:you'll|you will|you need to|you should|you have to|you must)\s+" + _TASK,
    ),
    PatternRule(
        "request",
        r"\b(?:can|could|would|will) you(?: please)?\s+" + _TASK,
        explicit=True,
    ),
    PatternRule("please", r"\bplease\s+" + _TASK, explicit=True),
    PatternRule(
        "team",
        r"\b(?:we need to|we should|we must|we have to|we'll|we will|we're going to|let's)\s+"
        + _TASK,
    ),
    PatternRule("marker", r"\b(?:TODO|ACTION ITEM|ACTION)\s*:\s*" + _TASK),
    PatternRule("next_step", r"\bnext steps?\s*(?::|is|are|will be)\s*(?:to\s+)?" + _TASK),
    PatternRule(
        "reminder",
        r"\b(?:make sure|remember to|don't forget to|be sure to|follow up (?:on|with))\s+"
        + _TASK,
    ),
]

DECISION_RULES = [
    PatternRule(
        "we_decided",
        r"\bwe(?:'ve| have)?\s+decided\s+(?:to\s+|that\s+|on\s+)?" + _TASK,
    ),
    PatternRule("decided", r"\bdecided\s+(?:to|that|on)\s+" + _TASK),
    PatternRule("labelled", r"\b(?:agreed|decision|resolution|resolved)\s*:\s*" + _TASK),
    PatternRule(
        "we_agreed",
        r"\bwe(?:'ve| have| all)?\s+agreed\s+(?:to\s+|that\s+|on\s+)?" + _TASK,
    ),
    PatternRule("approved", r"\b(?:approved|signed off on)\s+" + _TASK),
    PatternRule(
        "consensus",
        r"\b(?:consensus|final decision)\s+(?:is|was)\s+(?:to\s+|that\s+)?" + _TASK,
    ),
    PatternRule("go_with", r"\blet's go with\s+" + _TASK),
    PatternRule("going_with", r"\bwe(?:'re| are)\s+going with\s+" + _TASK),
]


def _word_pattern(words: Iterable[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(r"\b(?:" + alternatives + r")\b", re.IGNORECASE)


URGENT_KEYWORDS = (
    "urgent", "urgently", "asap", "as soon as possible", "immediately",
    "right away", "critical", "emergency", "top priority",
)
HIGH_KEYWORDS = (
    "important", "high priority", "priority", "soon", "today", "tomorrow",
    "deadline", "end of day", "eod", "this week",
)
_URGENT = _word_pattern(URGENT_KEYWORDS)
_HIGH = _word_pattern(HIGH_KEYWORDS)

_WEEKDAYS = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_MONTHS = (
    r"(?:january|february|march|april|may|june|july|august|september|october|"
    r"november|december|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec)"
)
_DAY = r"\d{1,2}(?:st|nd|rd|th)?"
DEADLINE_PATTERNS = [
    re.compile(
        r"\b(?:by|before|until|due|no later than)\s+(?:the\s+)?"
        r"(?:end of (?:the\s+)?(?:day|week|month|quarter|year)|eod|eow|tomorrow|tonight|today"
        r"|next (?:week|month|quarter)|(?:this\s+|next\s+)?" + _WEEKDAYS
        + r"|" + _MONTHS + r"\s+" + _DAY
        + r"|" + _DAY + r"\s+(?:of\s+)?" + _MONTHS
        + r"|\d{1,2}/\d{1,2}(?:/\d{2,4})?)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:end of (?:the\s+)?(?:day|week|month|quarter|year)|tomorrow|tonight|today"
        r"|this week|next week|next month)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:(?:on|this|next)\s+)?" + _WEEKDAYS + r"\b", re.IGNORECASE),
]

CATEGORY_KEYWORDS = [
    ("communication", ("email", "call", "send", "contact", "reach out", "message", "tell",
                       "inform", "share", "reply", "respond", "ping", "notify")),
    ("review", ("review", "check", "verify", "look at", "look into", "go over", "evaluate",
                "test", "assess", "approve")),
    ("deliverable", ("write", "draft", "prepare", "create", "build", "finish", "complete",
                     "deliver", "document", "report", "design", "implement", "submit")),
    ("meeting", ("schedule", "meeting", "meet", "book", "sync", "calendar", "invite")),
    ("update", ("update", "fix", "change", "revise", "modify", "edit", "adjust", "upgrade")),
]
_CATEGORIES = [(name, _word_pattern(words)) for name, words in CATEGORY_KEYWORDS]

_YOU = re.compile(r"\byou\b", re.IGNORECASE)
_SELF = re.compile(r"\b(?:i|me)\b", re.IGNORECASE)
_TEAM = re.compile(r"\b(?:we|let's|us)\b", re.IGNORECASE)

STOP_WORDS = frozenset(
    """
    a about above after again against all also am an and any are as at be because been
    before being below between both but by can could did do does doing done down during
    each even few for from further get gets getting go goes going gone got had has have
    having he her here hers herself him himself his how i if in into is it its itself
    just know like lot make many me more most much must my myself need no nor not now of
    off ok okay on once one only or other our ours ourselves out over own really right
    said same say says see she should so some such sure than that the their theirs them
    themselves then there these they thing things think this those through to too um uh
    under until up us very want was way we well were what when where which while who
    whom why will with would yeah yes you your yours yourself yourselves actually maybe
    gonna kind mean something anything everything stuff still back let us come
    """.split()
)

POSITIVE_WORDS = (
    "good", "great", "excellent", "awesome", "amazing", "fantastic", "perfect", "love",
    "happy", "glad", "excited", "success", "successful", "wonderful", "nice", "pleased",
    "impressive", "helpful", "agree", "progress", "win", "improved", "brilliant",
    "thanks", "appreciate",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "problem", "issue", "concern", "worried", "wrong", "fail",
    "failed", "failure", "difficult", "hard", "frustrated", "disappointed", "delay",
    "delayed", "risk", "broken", "bug", "blocker", "blocked", "unfortunately", "confused",
    "poor",
)
_POSITIVE = _word_pattern(POSITIVE_WORDS)
_NEGATIVE = _word_pattern(NEGATIVE_WORDS)

_ANSWER_MARKERS = _word_pattern(
    ("yes", "yeah", "yep", "yup", "no", "nope", "nah", "sure", "absolutely", "definitely",
     "certainly", "correct", "exactly", "of course", "not really", "not yet", "agreed")
)
_HEDGES = _word_pattern(
    ("i think", "i believe", "i guess", "i suppose", "probably", "maybe", "perhaps",
     "possibly", "likely", "not sure", "it depends")
)
_QUESTION = re.compile(r"[^.!?\n]*\?")


def _clean(text: str) -> str:
    return text.replace("’", "'").replace("‘", "'")


def dedup_key(text: str) -> str:
    stripped = re.sub(r"[^\w\s]", "", text.lower())
    return " ".join(stripped.split())[:DEDUP_KEY_CHARS]


def _keep(candidate: Candidate) -> bool:
    if not MIN_ITEM_CHARS <= len(candidate.text) <= MAX_ITEM_CHARS:
        return False
    if (candidate.is_question or "?" in candidate.text) and not candidate.explicit:
        return False
    return True


def _candidates(
    utterances: Sequence[Utterance], rules: Sequence[PatternRule]
) -> Iterable[Tuple[Utterance, Candidate]]:
    seen = set()
    for utterance in utterances:
        text = _clean(utterance.text)
        for rule in rules:
            for candidate in rule(text):
                if not _keep(candidate):
                    continue
                key = dedup_key(candidate.text)
                if key in seen:
                    continue
                seen.add(key)
                yield utterance, candidate


def classify_priority(text: str) -> str:
    if _URGENT.search(text):
        return "urgent"
    if _HIGH.search(text):
        return "high"
    return "normal"


def detect_deadline(text: str) -> Optional[str]:
    for pattern in DEADLINE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None


def classify_category(text: str) -> str:
    for name, pattern in _CATEGORIES:
        if pattern.search(text):
            return name
    return "task"


def resolve_assignee(prefix: str, speaker_name: str) -> str:
    if _YOU.search(prefix):
        return "Listener"
    if _SELF.search(prefix):
        return speaker_name
    if _TEAM.search(prefix):
        return "Team"
    return speaker_name


def _speaker_names(meeting: Meeting) -> Dict[int, str]:
    return {speaker.id: speaker.name for speaker in meeting.speakers}


def extract_action_items(
    utterances: Sequence[Utterance], speaker_names: Optional[Dict[int, str]] = None
) -> List[ActionItem]:
    names = speaker_names or {}
    items = []
    for utterance, candidate in _candidates(utterances, ACTION_RULES):
        speaker_name = names.get(utterance.speaker_id, f"Speaker {utterance.speaker_id + 1}")
        items.append(
            ActionItem(
                text=candidate.text,
                speaker_id=utterance.speaker_id,
                utterance_id=utterance.id,
                timestamp=utterance.start_time,
                priority=classify_priority(candidate.sentence),
                assignee=resolve_assignee(candidate.prefix, speaker_name),
                deadline=detect_deadline(candidate.sentence),
                category=classify_category(candidate.text),
            )
        )
    return items


def extract_decisions(utterances: Sequence[Utterance]) -> List[Decision]:
    return [
        Decision(
            text=candidate.text,
            speaker_id=utterance.speaker_id,
            utterance_id=utterance.id,
            timestamp=utterance.start_time,
            confirmed=True,
        )
        for utterance, candidate in _candidates(utterances, DECISION_RULES)
    ]


def extract_topics(text: str, limit: int = 12) -> List[Topic]:
    tokens = [t.strip("'") for t in re.findall(r"[a-z][a-z']*", text.lower())]

    def content(token: str) -> bool:
        return len(token) >= 2 and token.isalpha() and token not in STOP_WORDS

    words: Counter = Counter()
    bigrams: Counter = Counter()
    first_seen: Dict[str, int] = {}
    for index, token in enumerate(tokens):
        if not content(token):
            continue
        words[token] += 1
        first_seen.setdefault(token, index)
        if index + 1 < len(tokens) and content(tokens[index + 1]):
            phrase = f"{token} {tokens[index + 1]}"
            bigrams[phrase] += 1
            first_seen.setdefault(phrase, index)

    entries = [(term, count) for term, count in bigrams.items() if count >= 2]
    entries += [(term, count) for term, count in words.items() if count >= 3]
    entries.sort(key=lambda item: (-item[1], first_seen[item[0]], item[0]))
    return [Topic(term=term, count=count) for term, count in entries[:limit]]


def is_answer(text: str) -> bool:
    cleaned = _clean(text).strip()
    if len(cleaned) > SUBSTANTIAL_REPLY_CHARS:
        return True
    return bool(_ANSWER_MARKERS.search(cleaned) or _HEDGES.search(cleaned))


def extract_questions(utterances: Sequence[Utterance]) -> List[Question]:
    questions = []
    for index, utterance in enumerate(utterances):
        following = utterances[index + 1:index + 1 + ANSWER_WINDOW]
        answered = any(is_answer(u.text) for u in following)
        for piece in _QUESTION.findall(_clean(utterance.text)):
            text = piece.strip()
            if len(text) < MIN_ITEM_CHARS:
                continue
            questions.append(
                Question(
                    text=text,
                    speaker_id=utterance.speaker_id,
                    utterance_id=utterance.id,
                    timestamp=utterance.start_time,
                    answered=answered,
                )
            )
    return questions


def analyze_sentiment(text: str) -> Sentiment:
    positive = len(_POSITIVE.findall(text))
    negative = len(_NEGATIVE.findall(text))
    sentences = len(split_sentences(text))
    return Sentiment(
        positive=positive,
        neutral=max(0, sentences - positive - negative),
        negative=negative,
    )


def extract_key_points(text: str, limit: int = 7) -> List[str]:
    points: List[str] = []
    seen = set()
    for sentence in split_sentences(text):
        if keyword_hits(sentence) == 0:
            continue
        key = dedup_key(sentence)
        if key in seen:
            continue
        seen.add(key)
        points.append(sentence)
        if len(points) >= limit:
            break
    return points


def build_report(
    meeting: Meeting,
    config: Optional[IntelligenceConfig] = None,
    summarizer: Optional[Summarizer] = None,
) -> IntelligenceReport:
    config = config or IntelligenceConfig()
    utterances = list(meeting.utterances)
    text = " ".join(_clean(u.text).strip() for u in utterances if u.text.strip())

    return IntelligenceReport(
        summary=summarize(text, config, summarizer),
        action_items=extract_action_items(utterances, _speaker_names(meeting)),
        decisions=extract_decisions(utterances),
        topics=extract_topics(text, config.max_topics),
        questions=extract_questions(utterances),
        sentiment=analyze_sentiment(text),
        key_points=extract_key_points(text, config.max_key_points),
        utterance_count=len(utterances),
    )


class IntelligenceExtractor:
    """Regenerates the report on demand and remembers the last one."""

    def __init__(
        self,
        config: Optional[IntelligenceConfig] = None,
        summarizer: Optional[Summarizer] = None,
    ):
        self.config = config or IntelligenceConfig()
        self.summarizer = summarizer
        self.last_report: Optional[IntelligenceReport] = None

    def generate(self, meeting: Meeting) -> Optional[IntelligenceReport]:
        text = meeting.full_text()
        if len(text) < self.config.min_transcript_chars:
            logger.info(
                "Transcript too short for intelligence (%d chars), keeping previous report.",
                len(text),
            )
            return self.last_report
        self.last_report = build_report(meeting, self.config, self.summarizer)
        logger.info(
            "Report generated: %d actions, %d decisions, %d questions, %d topics.",
            len(self.last_report.action_items),
            len(self.last_report.decisions),
            len(self.last_report.questions),
            len(self.last_report.topics),
        )
        return self.last_report
