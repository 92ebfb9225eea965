# -*- coding: utf-8 -*-
# default_mood.py
"""
Default-mood resolver: guesses a category when no keyword scored.

Rule order
  1) very short text (<= 3 chars): literal short-expression table
  2) ellipsis → 悲伤, 3) '!!!' → 高兴, 4) '???' → 焦虑
  5) long text (> 50) → 焦虑, 6) tiny text (< 5) → 无聊, 7) 平静
Confidence on this path is ``clamp(15, 40, length × 5)``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from ..config import MOOD_POLICY, MoodPolicy
from ..data_utils import clamp
from .result_types import DetectionResult, MoodCategory, category_fields

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# checked in order; substring containment
SHORT_EXPRESSIONS: Tuple[Tuple[str, MoodCategory], ...] = (
    ("呵", MoodCategory.CALM),
    ("哈", MoodCategory.HAPPY),
    ("唉", MoodCategory.SAD),
    ("嗯", MoodCategory.CALM),
    ("累", MoodCategory.TIRED),
    ("困", MoodCategory.TIRED),
    ("烦", MoodCategory.ANGRY),
    ("爽", MoodCategory.HAPPY),
    ("6", MoodCategory.CALM),
    ("gg", MoodCategory.CALM),
    ("ok", MoodCategory.CALM),
)

PUNCTUATION_RULES: Tuple[Tuple[Tuple[str, ...], MoodCategory], ...] = (
    (("...", "。。。", "…"), MoodCategory.SAD),
    (("!!!", "！！！"), MoodCategory.HAPPY),
    (("???", "？？？"), MoodCategory.ANXIOUS),
)


def resolve_default_mood(processed: str, normalized: str, policy: MoodPolicy = MOOD_POLICY) -> MoodCategory:
    length = len(processed)
    if length <= policy.fallback_short_len:
        for needle, mood in SHORT_EXPRESSIONS:
            if needle in processed:
                return mood

    for needles, mood in PUNCTUATION_RULES:
        if any(n in normalized for n in needles):
            return mood

    if length > policy.fallback_long_len:
        return MoodCategory.ANXIOUS
    if length < policy.fallback_tiny_len:
        return MoodCategory.BORED
    return MoodCategory.CALM


def fallback_confidence(length: int, policy: MoodPolicy = MOOD_POLICY) -> int:
    return int(clamp(policy.fallback_conf_min, policy.fallback_conf_max, length * policy.fallback_conf_per_char))


def run_default_mood_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    if prior is not None and prior.total_score > 0:
        return prior
    mood = resolve_default_mood(payload.processed, payload.normalized, payload.policy)
    logger.debug("[default_mood] no keyword hit, guessed %s", mood.value)
    return DetectionResult(
        main=mood,
        confidence=fallback_confidence(payload.length, payload.policy),
        scores=prior.scores if prior is not None else {},
        all_hits=prior.all_hits if prior is not None else {},
        is_fallback=True,
        **category_fields(mood, payload.categories, is_fallback=True),
    )
