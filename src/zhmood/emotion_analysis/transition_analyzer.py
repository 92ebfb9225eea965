# -*- coding: utf-8 -*-
# transition_analyzer.py
"""
Long-text augmentation.

Only runs when the preprocessed text is longer than ``policy.long_text_min_len``.
Two independent adjustments on top of the raw lexicon scores:

1. Density/diversity: a category whose hits are dense across sentence
   segments gets a flat bonus, and one with more than two distinct keywords
   gets ``unique × 0.5``.
2. Contrastive connectors (但是/不过/...): when a connector splits the text into
   exactly two parts, the part after it is re-scored and added with a 1.5×
   multiplier, since sentiment after a contrast usually dominates.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config import MOOD_POLICY, MoodPolicy
from ..data_utils import split_segments
from .linguistic_matcher import LexiconMatcher, build_ranked_result, match_text, payload_matcher
from .result_types import ALL_CATEGORIES, DetectionResult, MoodCategory

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def apply_density_bonuses(
    scores: Mapping[MoodCategory, float],
    hits: Mapping[MoodCategory, Sequence[str]],
    segment_count: int,
    policy: MoodPolicy = MOOD_POLICY,
) -> Dict[MoodCategory, float]:
    out = {c: float(scores.get(c, 0.0)) for c in ALL_CATEGORIES}
    for cat in ALL_CATEGORIES:
        cat_hits = hits.get(cat) or ()
        if not cat_hits:
            continue
        density = len(cat_hits) / max(1, segment_count)
        if density > policy.high_density:
            out[cat] += policy.high_density_bonus
        elif density > policy.mid_density:
            out[cat] += policy.mid_density_bonus

        unique = len(set(cat_hits))
        if unique > policy.diversity_min_unique:
            out[cat] += unique * policy.diversity_bonus_per_keyword
    return out


def find_contrast_tails(text: str, policy: MoodPolicy = MOOD_POLICY) -> List[str]:
    """Text after each connector that occurs exactly once (split yields two parts)."""
    tails: List[str] = []
    for word in policy.contrast_connectors:
        if word not in text:
            continue
        parts = text.split(word)
        if len(parts) == 2:
            tails.append(parts[1])
    return tails


def apply_contrast_bonuses(
    scores: Mapping[MoodCategory, float],
    text: str,
    lexicon: Mapping[str, Sequence[str]],
    policy: MoodPolicy = MOOD_POLICY,
    matcher: Optional[LexiconMatcher] = None,
) -> Dict[MoodCategory, float]:
    out = {c: float(scores.get(c, 0.0)) for c in ALL_CATEGORIES}
    for tail in find_contrast_tails(text, policy):
        if matcher is not None:
            tail_scores = matcher.match(tail).scores
        else:
            tail_scores = match_text(tail, lexicon, policy).scores
        for cat, s in tail_scores.items():
            if s > 0:
                out[cat] += s * policy.contrast_multiplier
    return out


def augment_long_text(
    scores: Mapping[MoodCategory, float],
    hits: Mapping[MoodCategory, Sequence[str]],
    *,
    processed: str,
    normalized: str,
    lexicon: Mapping[str, Sequence[str]],
    policy: MoodPolicy = MOOD_POLICY,
    matcher: Optional[LexiconMatcher] = None,
) -> Dict[MoodCategory, float]:
    """
    ``processed`` is the punctuation-stripped text used for matching;
    ``normalized`` still carries punctuation and is used for segmentation.
    """
    segments = split_segments(normalized, policy.min_segment_len)
    out = apply_density_bonuses(scores, hits, len(segments), policy)
    return apply_contrast_bonuses(out, processed, lexicon, policy, matcher)


def run_long_text_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    if prior is None or payload.length <= payload.policy.long_text_min_len:
        return prior
    boosted = augment_long_text(
        prior.scores,
        prior.all_hits,
        processed=payload.processed,
        normalized=payload.normalized,
        lexicon=payload.lexicon,
        policy=payload.policy,
        matcher=payload_matcher(payload),
    )
    return build_ranked_result(boosted, prior.all_hits, payload.categories, confidence=prior.confidence)
