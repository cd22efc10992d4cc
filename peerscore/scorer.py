"""Deterministic heuristic scoring of project analysis text.

Every sub-score is an integer in ``[MIN_SCORE, MAX_SCORE]``. The overall score
is the arithmetic mean of the three sub-scores rounded half-up to one decimal
place, so it always stays inside the same bounds.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from .schemas import MAX_SCORE, MIN_SCORE, ScoreResult

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'+#-]*")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+(?:\s+|$)|\n+")
# Bullets, numbered items and markdown headings at the start of a line
_STRUCTURE_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)]|#{1,6})\s+", re.MULTILINE)
_CODE_RE = re.compile(r"```|`[^`\n]+`|\b\w+\(\)|[{}]|=>|->")
_DIGIT_RE = re.compile(r"\d")

CLARITY_TERMS = frozenset({
    "clear", "clearly", "documented", "documentation", "detailed", "overview",
    "summary", "explain", "explains", "explained", "structured", "step",
    "steps", "goal", "goals", "purpose", "objective", "objectives", "example",
    "examples", "guide", "readme", "usage", "instructions", "organized",
    "organised", "outline", "describes", "specification",
})

CREATIVITY_TERMS = frozenset({
    "novel", "innovative", "innovation", "unique", "creative", "creativity",
    "original", "idea", "ideas", "imaginative", "experiment", "experimental",
    "prototype", "inspired", "reimagine", "reimagined", "concept", "vision",
    "unconventional", "interactive", "game", "art", "story", "playful",
    "new", "invent", "invented", "alternative",
})

TECHNICAL_TERMS = frozenset({
    "technical", "architecture", "diagram", "diagrams", "algorithm",
    "algorithms", "api", "apis", "database", "databases", "schema", "server",
    "backend", "frontend", "framework", "implementation", "implemented",
    "deployment", "deployed", "docker", "kubernetes", "cloud", "protocol",
    "performance", "latency", "scalable", "scalability", "cache", "caching",
    "concurrency", "async", "thread", "threads", "python", "javascript",
    "typescript", "java", "c++", "rust", "sql", "nosql", "http", "rest",
    "graphql", "model", "models", "neural", "training", "dataset", "pipeline",
    "microservice", "microservices", "module", "modules", "testing", "tests",
    "benchmark", "complexity", "encryption", "authentication",
})

_FEEDBACK = {
    "clarity": (
        "The write-up is hard to follow: state the goal up front and explain "
        "the project step by step.",
        "The write-up is reasonably clear; headings or bullet points would "
        "make it easier to scan.",
        "The write-up is clear and well organised.",
    ),
    "creativity": (
        "Highlight what makes the idea original or different from existing "
        "work.",
        "There are some original ideas; say more about what sets the project "
        "apart.",
        "The project shows a distinctive, creative idea.",
    ),
    "technicality": (
        "Add technical detail such as the architecture, tools and "
        "implementation choices.",
        "Some technical detail is present; describe the implementation in "
        "more depth.",
        "The technical depth is strong.",
    ),
}

EMPTY_FEEDBACK = (
    "No description or readable file content was provided, so the project "
    "received the minimum score. Describe the goal, the idea and how it was "
    "built."
)


def overall_score_for(clarity: int, creativity: int, technicality: int) -> float:
    """Mean of the three sub-scores, rounded half-up to one decimal place."""
    mean = Decimal(clarity + creativity + technicality) / Decimal(3)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def minimum_result(feedback: str = EMPTY_FEEDBACK) -> ScoreResult:
    return ScoreResult(
        clarity_score=MIN_SCORE,
        creativity_score=MIN_SCORE,
        technicality_score=MIN_SCORE,
        overall_score=float(MIN_SCORE),
        feedback=feedback,
    )


def _bounded(points: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, MIN_SCORE + points))


def _term_hits(words: List[str], lexicon: frozenset) -> int:
    return len(lexicon.intersection(words))


def _clarity(text: str, words: List[str]) -> int:
    points = min(_term_hits(words, CLARITY_TERMS), 2)
    if len(words) >= 50:
        points += 1

    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if sentences and 5 <= len(words) / len(sentences) <= 25:
        points += 1

    if _STRUCTURE_RE.search(text) or "\n\n" in text.strip():
        points += 1
    return _bounded(points)


def _creativity(words: List[str]) -> int:
    points = min(_term_hits(words, CREATIVITY_TERMS), 2)
    unique = set(words)
    if len(words) >= 20 and len(unique) / len(words) >= 0.6:
        points += 1
    if len(unique) >= 40:
        points += 1
    return _bounded(points)


def _technicality(text: str, words: List[str]) -> int:
    points = min(_term_hits(words, TECHNICAL_TERMS), 3)
    if _CODE_RE.search(text):
        points += 1
    if _DIGIT_RE.search(text):
        points += 1
    return _bounded(points)


def _feedback(dimension: str, score: int) -> str:
    low, mid, high = _FEEDBACK[dimension]
    if score <= 2:
        return low
    if score == 3:
        return mid
    return high


def _score(text: str) -> ScoreResult:
    words = _WORD_RE.findall(text.lower())
    if not words:
        return minimum_result()

    clarity = _clarity(text, words)
    creativity = _creativity(words)
    technicality = _technicality(text, words)
    overall = overall_score_for(clarity, creativity, technicality)

    feedback = " ".join([
        f"Overall {overall}/{MAX_SCORE}.",
        _feedback("clarity", clarity),
        _feedback("creativity", creativity),
        _feedback("technicality", technicality),
    ])
    return ScoreResult(
        clarity_score=clarity,
        creativity_score=creativity,
        technicality_score=technicality,
        overall_score=overall,
        feedback=feedback,
    )


def score_project(text: str) -> ScoreResult:
    """Score analysis text. Never raises; falls back to the minimum result."""
    try:
        return _score(text or "")
    except Exception:
        logger.exception("Scoring failed; falling back to the minimum score")
        return minimum_result(
            "The project could not be analysed automatically and received "
            "the minimum score."
        )
