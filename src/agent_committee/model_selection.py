"""Ranking of backend model ids for conversational use."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple

NON_CHAT_MARKERS: Tuple[str, ...] = (
    "embedding",
    "embed",
    "moderation",
    "whisper",
    "audio",
    "tts",
    "dall-e",
    "image",
)
HIGH_CAPABILITY_MARKERS: Tuple[str, ...] = ("pro", "sonnet", "opus")
ECONOMY_MARKERS: Tuple[str, ...] = ("mini", "flash", "nano")

_DIGIT_RE = re.compile(r"\d")


def is_chat_model(model_id: str) -> bool:
    lower = model_id.lower()
    return not any(marker in lower for marker in NON_CHAT_MARKERS)


def _rank_key(model_id: str) -> Tuple[int, int, int, str]:
    lower = model_id.lower()
    has_version = bool(_DIGIT_RE.search(model_id))
    is_high = any(marker in lower for marker in HIGH_CAPABILITY_MARKERS)
    is_economy = any(marker in lower for marker in ECONOMY_MARKERS)
    # Lower tuples sort first
    return (0 if has_version else 1, 0 if is_high else 1, 1 if is_economy else 0, model_id)


def rank_models(candidates: Sequence[str]) -> List[str]:
    """Chat-capable candidates, best first."""
    return sorted((m for m in candidates if is_chat_model(m)), key=_rank_key)


def select_best_model(candidates: Sequence[str]) -> Optional[str]:
    """Pick the preferred model id, or None when there are no candidates.

    If filtering removes every candidate the raw first one is returned, since the
    backend evidently offers nothing that looks more suitable.
    """
    if not candidates:
        return None
    ranked = rank_models(candidates)
    if not ranked:
        return candidates[0]
    return ranked[0]
