# -*- coding: utf-8 -*-
# weight_calculator.py
"""
Confidence for the keyword-matched path.

    base           = min(80, mainScore × 15 + 20)
    lengthFactor   = clamp(0.6, 1.2, sqrt(length) / 4)
    hitBonus       = min(20, hitCount × 5)
    diversityBonus = min(10, uniqueHits × 2)
    confidence     = clamp(20, 95, round(base × lengthFactor + hitBonus + diversityBonus))
"""

from __future__ import annotations

import math
from typing import Any, Optional, Sequence

from ..config import MOOD_POLICY, MoodPolicy
from ..data_utils import clamp, round_half_up
from .result_types import DetectionResult


def length_factor(length: int, policy: MoodPolicy = MOOD_POLICY) -> float:
    return clamp(policy.conf_length_min, policy.conf_length_max,
                 math.sqrt(max(0, length)) / policy.conf_length_divisor)


def compute_confidence(
    main_score: float,
    hits: Sequence[str],
    length: int,
    policy: MoodPolicy = MOOD_POLICY,
) -> int:
    base = min(policy.conf_base_cap, main_score * policy.conf_base_per_score + policy.conf_base_offset)
    hit_bonus = min(policy.conf_hit_cap, len(hits) * policy.conf_hit_bonus)
    diversity = min(policy.conf_unique_cap, len(set(hits)) * policy.conf_unique_bonus)
    raw = round_half_up(base * length_factor(length, policy) + hit_bonus + diversity)
    return int(clamp(policy.conf_min, policy.conf_max, raw))


def run_confidence_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    if prior is None or prior.is_fallback:
        return prior
    main_score = float(prior.scores.get(prior.main, 0.0))
    conf = compute_confidence(main_score, prior.all_hits.get(prior.main, ()), payload.length, payload.policy)
    return prior.evolve(confidence=conf)
