"""Transcript summaries.

The extractive summary is always available and is the baseline: sentences are
scored by position, length and importance keywords, and the best ones are
returned in their original order. When a summariser callable is supplied, the
standard summary is produced from it instead, one sentence-aligned chunk at a
time.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional

from .config import IntelligenceConfig
from .models import Summary

logger = logging.getLogger("minuteframe")

IMPORTANCE_KEYWORDS = (
    "decided",
    "agreed",
    "action",
    "must",
    "should",
    "important",
    "deadline",
    "priority",
    "next step",
    "next steps",
    "plan",
    "goal",
    "conclusion",
    "need to",
    "approved",
)

_KEYWORD_PATTERNS = [
    (keyword, re.compile(r"\b" + re.escape(keyword) + r"\b", re.IGNORECASE))
    for keyword in IMPORTANCE_KEYWORDS
]
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")

Summarizer = Callable[[str], str]


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text.strip()) if s.strip()]


def keyword_hits(sentence: str) -> int:
    return sum(1 for _, pattern in _KEYWORD_PATTERNS if pattern.search(sentence))


def score_sentence(sentence: str, index: int, total: int) -> float:
    score = 0.0
    if index == 0:
        score += 2.0
    elif index == total - 1:
        score += 1.0

    words = len(sentence.split())
    if words < 5:
        score -= 2.0
    elif words > 30:
        score -= 1.0
    elif words >= 10:
        score += 1.0

    return score + 1.5 * keyword_hits(sentence)


def top_sentences(sentences: List[str], count: int) -> List[str]:
    scores = [score_sentence(s, i, len(sentences)) for i, s in enumerate(sentences)]
    ranked = sorted(range(len(sentences)), key=lambda i: (-scores[i], i))[:count]
    return [sentences[i] for i in sorted(ranked)]


def chunk_text(text: str, max_words: int = 1000) -> List[str]:
    """Split ``text`` into pieces of at most ``max_words`` on sentence boundaries.

    A single sentence longer than ``max_words`` becomes a chunk of its own.
    """
    chunks: List[str] = []
    current: List[str] = []
    current_words = 0
    for sentence in split_sentences(text):
        words = len(sentence.split())
        if current and current_words + words > max_words:
            chunks.append(" ".join(current))
            current = []
            current_words = 0
        current.append(sentence)
        current_words += words
    if current:
        chunks.append(" ".join(current))
    return chunks


def extractive_summary(text: str, config: Optional[IntelligenceConfig] = None) -> Summary:
    config = config or IntelligenceConfig()
    sentences = split_sentences(text)
    if not sentences:
        return Summary()
    return Summary(
        executive=" ".join(top_sentences(sentences, config.executive_sentences)),
        standard=" ".join(top_sentences(sentences, config.standard_sentences)),
        detailed=top_sentences(sentences, config.detailed_sentences),
    )


def summarize(
    text: str,
    config: Optional[IntelligenceConfig] = None,
    summarizer: Optional[Summarizer] = None,
) -> Summary:
    config = config or IntelligenceConfig()
    summary = extractive_summary(text, config)
    if summarizer is None:
        return summary

    try:
        parts = [summarizer(chunk).strip() for chunk in chunk_text(text, config.chunk_words)]
    except Exception as exc:
        logger.warning("Abstractive summary failed, keeping extractive: %s", exc)
        return summary

    abstractive = " ".join(part for part in parts if part)
    if abstractive:
        summary.standard = abstractive
    return summary
