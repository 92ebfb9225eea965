# -*- coding: utf-8 -*-
# linguistic_matcher.py
"""
Lexicon matcher: scores preprocessed text against per-category keyword lists.

Matching rules
- Keywords are tried longest first (all categories pooled), so a phrase claims
  its characters before any shorter keyword nested inside it can.
- Every occurrence is found with an Aho-Corasick automaton; an occurrence that
  overlaps an already-claimed character index is skipped.
- Weight per accepted occurrence depends on keyword length only
  (1 → 0.5, 2-3 → 2, >=4 → 3 with the default policy).
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import ahocorasick
import numpy as np

from ..config import MOOD_POLICY, MoodPolicy
from .result_types import (
    ALL_CATEGORIES,
    DetectionResult,
    MoodCategory,
    category_fields,
    pick_secondary,
    rank_categories,
    zero_scores,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class _Entry:
    category: MoodCategory
    keyword: str        # as written in the lexicon (reported in hits)
    needle: str         # lowercased form searched in the text
    weight: float


@dataclass
class MatchOutcome:
    scores: Dict[MoodCategory, float]
    hits: Dict[MoodCategory, List[str]]

    @property
    def total(self) -> float:
        return float(sum(self.scores.values()))


def keyword_weight(length: int, policy: MoodPolicy = MOOD_POLICY) -> float:
    if length >= policy.long_phrase_min_len:
        return policy.weight_long_phrase
    if length >= 2:
        return policy.weight_short_phrase
    return policy.weight_single_char


class LexiconMatcher:
    """Pure function of (text, lexicon); build once per lexicon, call many times."""

    def __init__(self, lexicon: Mapping[str, Sequence[str]], policy: MoodPolicy = MOOD_POLICY):
        self.policy = policy
        entries: List[_Entry] = []
        for cat in ALL_CATEGORIES:
            for kw in lexicon.get(cat.value, ()) or ():
                if not isinstance(kw, str) or not kw:
                    continue
                needle = kw.lower()
                entries.append(_Entry(cat, kw, needle, keyword_weight(len(needle), policy)))
        # longest first; ties keep category order then lexicon order
        entries.sort(key=lambda e: -len(e.needle))
        self._entries: Tuple[_Entry, ...] = tuple(entries)

        self._aho: Optional[ahocorasick.Automaton] = None
        if entries:
            by_needle: Dict[str, List[int]] = {}
            for rank, e in enumerate(entries):
                by_needle.setdefault(e.needle, []).append(rank)
            A = ahocorasick.Automaton()
            for needle, ranks in by_needle.items():
                A.add_word(needle, tuple(ranks))
            A.make_automaton()
            self._aho = A

    @property
    def keyword_count(self) -> int:
        return len(self._entries)

    def match(self, text: str) -> MatchOutcome:
        scores = zero_scores()
        hits: Dict[MoodCategory, List[str]] = {c: [] for c in ALL_CATEGORIES}
        if not text or self._aho is None:
            return MatchOutcome(scores, hits)

        occurrences: List[Tuple[int, int]] = []
        for end, ranks in self._aho.iter(text):
            for rank in ranks:
                start = end - len(self._entries[rank].needle) + 1
                occurrences.append((rank, start))
        # keyword by keyword (longest first), left to right within a keyword
        occurrences.sort()

        claimed = np.zeros(len(text), dtype=bool)
        for rank, start in occurrences:
            e = self._entries[rank]
            stop = start + len(e.needle)
            if claimed[start:stop].any():
                continue
            claimed[start:stop] = True
            scores[e.category] += e.weight
            hits[e.category].append(e.keyword)
        return MatchOutcome(scores, hits)


# ---------------------------------------------------------------------------
# Matcher cache (keyed by lexicon content digest)
# ---------------------------------------------------------------------------
_MATCHER_CACHE: "OrderedDict[str, LexiconMatcher]" = OrderedDict()
_MATCHER_CACHE_SIZE = 8


def _lexicon_digest(lexicon: Mapping[str, Sequence[str]], policy: MoodPolicy) -> str:
    blob = json.dumps({"lex": lexicon, "policy": policy.to_dict()}, ensure_ascii=False, sort_keys=True, default=list)
    return hashlib.sha1(blob.encode("utf-8")).hexdigest()


def get_matcher(lexicon: Mapping[str, Sequence[str]], policy: MoodPolicy = MOOD_POLICY) -> LexiconMatcher:
    key = _lexicon_digest(lexicon, policy)
    m = _MATCHER_CACHE.get(key)
    if m is None:
        m = LexiconMatcher(lexicon, policy)
        _MATCHER_CACHE[key] = m
        while len(_MATCHER_CACHE) > _MATCHER_CACHE_SIZE:
            _MATCHER_CACHE.popitem(last=False)
        logger.debug("[matcher] built automaton with %d keywords", m.keyword_count)
    else:
        _MATCHER_CACHE.move_to_end(key)
    return m


def match_text(text: str, lexicon: Mapping[str, Sequence[str]], policy: MoodPolicy = MOOD_POLICY) -> MatchOutcome:
    return get_matcher(lexicon, policy).match(text)


def payload_matcher(payload: Any) -> LexiconMatcher:
    """The payload's matcher, resolved through the cache once per call when none was injected."""
    if payload.matcher is None:
        payload.matcher = get_matcher(payload.lexicon, payload.policy)
    return payload.matcher


def build_ranked_result(
    scores: Mapping[MoodCategory, float],
    hits: Mapping[MoodCategory, Sequence[str]],
    categories: Mapping[str, Mapping[str, Any]],
    *,
    confidence: int = 0,
) -> DetectionResult:
    ranked = rank_categories(scores)
    main = ranked[0]
    return DetectionResult(
        main=main,
        confidence=confidence,
        secondary=pick_secondary(ranked, scores),
        scores=scores,
        hits=tuple(hits.get(main, ())),
        all_hits=hits,
        **category_fields(main, categories),
    )


# ---------------------------------------------------------------------------
# Pipeline stage
# ---------------------------------------------------------------------------
def run_lexicon_stage(payload: Any, prior: Optional[DetectionResult] = None) -> DetectionResult:
    outcome = payload_matcher(payload).match(payload.processed)
    return build_ranked_result(outcome.scores, outcome.hits, payload.categories)
