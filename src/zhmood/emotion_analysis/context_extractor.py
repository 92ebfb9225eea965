# -*- coding: utf-8 -*-
# context_extractor.py
"""
Context corrector: re-weights the learning-adjusted scores with
time-of-day, situational keywords and intensity words, then re-ranks.

    new[c] = max(0, (prior[c] × timeWeight[slot][c] + contextBonus[c]) × intensity)
    confidence = clamp(15, 95, round(top / total × 100))   (total > 0)

With an all-zero corrected vector the prior main/secondary/confidence are
kept; the trail is still attached.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .. import config
from ..config import MOOD_POLICY, MoodPolicy
from ..data_utils import clamp, coerce_text, round_half_up
from .result_types import (
    ALL_CATEGORIES,
    CorrectionTrail,
    DetectionResult,
    MoodCategory,
    pick_secondary,
    rank_categories,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ContextCorrector:
    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        *,
        time_slots: Optional[Mapping[str, Mapping[str, Any]]] = None,
        time_weights: Optional[Mapping[str, Mapping[str, float]]] = None,
        rules: Optional[Mapping[str, Mapping[str, Any]]] = None,
        intensity_modifiers: Optional[Mapping[str, Mapping[str, Any]]] = None,
        policy: Optional[MoodPolicy] = None,
    ) -> None:
        self.clock = clock or datetime.now
        self.time_slots = time_slots or config.TIME_SLOTS
        self.time_weights = time_weights or config.TIME_EMOTION_WEIGHTS
        self.rules = rules or config.CONTEXT_CORRECTION_RULES
        self.intensity_modifiers = intensity_modifiers or config.INTENSITY_MODIFIERS
        self.policy = policy or MOOD_POLICY

    # ---------------------------------------------------------------
    # Time of day
    # ---------------------------------------------------------------
    def time_slot(self, hour: int) -> str:
        for key, slot in self.time_slots.items():
            start, end = int(slot["start"]), int(slot["end"])
            if start <= end:
                if start <= hour < end:
                    return key
            elif hour >= start or hour < end:
                return key
        return "night"

    def current_time_slot(self, now: Optional[datetime] = None) -> Dict[str, str]:
        key = self.time_slot((now or self.clock()).hour)
        return {"slot": key, "label": self.time_slots.get(key, {}).get("label", key)}

    def time_weight_vector(self, slot: str) -> np.ndarray:
        table = self.time_weights.get(slot) or {}
        return np.array([float(table.get(c.value, 1.0)) for c in ALL_CATEGORIES])

    # ---------------------------------------------------------------
    # Situational keywords
    # ---------------------------------------------------------------
    def context_bonus(self, text: str, category: MoodCategory) -> Tuple[float, List[Dict[str, Any]]]:
        lowered = coerce_text(text).lower()
        total = 0.0
        applied: List[Dict[str, Any]] = []
        for name, rule in self.rules.items():
            matched = [kw for kw in rule.get("keywords", ()) if kw.lower() in lowered]
            if not matched:
                continue
            adj = (rule.get("adjustments") or {}).get(category.value)
            if not adj:
                continue
            per_kw = float(adj["bonus"])
            bonus = min(len(matched) * per_kw, per_kw * 2)
            total += bonus
            applied.append({
                "rule": name,
                "category": category.value,
                "keywords": matched,
                "bonus": round(bonus, 4),
                "reason": adj.get("reason", ""),
            })
        return total, applied

    # ---------------------------------------------------------------
    # Intensity words
    # ---------------------------------------------------------------
    def intensity(self, text: str) -> Tuple[Optional[str], float]:
        lowered = coerce_text(text).lower()
        for tier, modifier in self.intensity_modifiers.items():
            if any(kw in lowered for kw in modifier.get("keywords", ())):
                return tier, float(modifier["multiplier"])
        return None, 1.0

    # ---------------------------------------------------------------
    # Correction
    # ---------------------------------------------------------------
    def correct(
        self,
        text: str,
        result: DetectionResult,
        now: Optional[datetime] = None,
        categories: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> DetectionResult:
        slot = self.time_slot((now or self.clock()).hour)
        weights = self.time_weight_vector(slot)

        bonuses = np.zeros(len(ALL_CATEGORIES))
        applied: List[Dict[str, Any]] = []
        for i, cat in enumerate(ALL_CATEGORIES):
            bonuses[i], rules = self.context_bonus(text, cat)
            applied.extend(rules)
        tier, multiplier = self.intensity(text)

        prior = np.array([float(result.scores.get(c, 0.0)) for c in ALL_CATEGORIES])
        corrected = np.clip((prior * weights + bonuses) * multiplier, 0.0, None)
        new_scores: Dict[MoodCategory, float] = {c: float(v) for c, v in zip(ALL_CATEGORIES, corrected)}

        main_idx = ALL_CATEGORIES.index(result.main)
        trail = CorrectionTrail(
            time_slot=slot,
            time_weight=float(weights[main_idx]),
            context_bonus=float(bonuses[main_idx]),
            intensity_multiplier=multiplier,
            intensity_tier=tier,
            applied_rules=tuple(applied),
            category_bonuses={c: float(b) for c, b in zip(ALL_CATEGORIES, bonuses) if b > 0},
            prior_result=result,
        )

        total = float(corrected.sum())
        if total <= 0:
            return result.evolve(scores=new_scores, correction=trail)

        ranked = rank_categories(new_scores)
        main = ranked[0]
        p = self.policy
        confidence = int(clamp(p.context_conf_min, p.context_conf_max,
                               round_half_up(new_scores[main] / total * 100)))
        logger.debug("[context] slot=%s intensity=%s main %s -> %s",
                     slot, tier, result.main.value, main.value)
        changes = dict(
            secondary=pick_secondary(ranked, new_scores),
            scores=new_scores,
            confidence=confidence,
            correction=trail,
        )
        if main == result.main:
            return result.evolve(**changes)
        return result.with_main(main, categories, **changes)


def run_context_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    if prior is None:
        return prior
    corrector = payload.corrector or ContextCorrector(clock=lambda: payload.now, policy=payload.policy)
    return corrector.correct(payload.raw_text, prior, payload.now, payload.categories)
