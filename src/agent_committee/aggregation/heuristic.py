"""Local scoring used when no judge is available or the judge keeps failing."""

from __future__ import annotations

from typing import Dict, List, Mapping, Tuple

from ..config import EXCERPT_CHARS
from ..types import SynthesisMethod, SynthesisResult

ACTIONABLE_KEYWORDS: Tuple[str, ...] = (
    "implement",
    "recommend",
    "suggest",
    "should",
    "consider",
    "use",
    "create",
)
MAX_KEYWORD_POINTS = 3

HEURISTIC_RECOMMENDATIONS = ["Review all agent outputs", "Implement best practices from winner"]


def score_output(text: str) -> int:
    score = 0
    length = len(text)
    if 200 < length < 2000:
        score += 2
    elif length > 50:
        score += 1

    if "-" in text or "*" in text:
        score += 1
    if "```" in text:
        score += 1
    if "\n\n" in text:
        score += 1

    lower = text.lower()
    keywords = sum(1 for kw in ACTIONABLE_KEYWORDS if kw in lower)
    score += min(keywords, MAX_KEYWORD_POINTS)
    return score


def score_outputs(outputs: Mapping[str, str]) -> Dict[str, int]:
    return {name: score_output(text) for name, text in outputs.items()}


def pick_winner(scores: Mapping[str, int]) -> str:
    """Highest score; ties go to the earliest entry."""
    best_name = None
    best_score = None
    for name, score in scores.items():
        if best_score is None or score > best_score:
            best_name, best_score = name, score
    return best_name


def excerpt_synthesis(outputs: Mapping[str, str], excerpt_chars: int = EXCERPT_CHARS) -> str:
    parts: List[str] = [f"[{name}]: {text[:excerpt_chars]}..." for name, text in outputs.items()]
    return "\n\n".join(parts)


def heuristic_synthesis(outputs: Mapping[str, str], excerpt_chars: int = EXCERPT_CHARS) -> SynthesisResult:
    scores = score_outputs(outputs)
    return SynthesisResult(
        winner=pick_winner(scores),
        synthesis=excerpt_synthesis(outputs, excerpt_chars),
        recommendations=list(HEURISTIC_RECOMMENDATIONS),
        method=SynthesisMethod.HEURISTIC,
        artifact=None,
    )
