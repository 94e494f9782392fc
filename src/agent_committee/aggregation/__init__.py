"""Reduction of committee outputs into one synthesis."""

from .aggregator import (
    ERROR_FALLBACK_RECOMMENDATIONS,
    Aggregator,
    aggregate,
    error_fallback_synthesis,
    is_error_output,
)
from .heuristic import HEURISTIC_RECOMMENDATIONS, heuristic_synthesis, pick_winner, score_output
from .verdict import extract_json_block, parse_verdict, render_judge_prompt

__all__ = [
    "ERROR_FALLBACK_RECOMMENDATIONS",
    "HEURISTIC_RECOMMENDATIONS",
    "Aggregator",
    "aggregate",
    "error_fallback_synthesis",
    "extract_json_block",
    "heuristic_synthesis",
    "is_error_output",
    "parse_verdict",
    "pick_winner",
    "render_judge_prompt",
    "score_output",
]
