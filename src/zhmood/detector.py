# -*- coding: utf-8 -*-
# src/zhmood/detector.py
"""
Public entry point.

``ChineseMoodDetector`` wires the loaded lexicon/metadata, the learning store
and the clock into a ``MoodPipelineOrchestrator``. The module-level
functions (``detect``, ``batch_detect``, ...) use one lazily created
process-wide instance.

The detector is not thread-safe: the learning store is rewritten after every
call, so concurrent callers must serialize (the HTTP service holds a lock).
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from . import config
from .data_utils import CategoryTable, Lexicon, MoodPipelineOrchestrator, load_categories, load_lexicon
from .emotion_analysis.context_extractor import ContextCorrector
from .emotion_analysis.emotion_groups import EmotionGroupAnalyzer
from .emotion_analysis.learning_engine import LearningStore
from .emotion_analysis.linguistic_matcher import LexiconMatcher
from .emotion_analysis.result_types import ALL_CATEGORIES, DetectionResult, MoodCategory

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ChineseMoodDetector:
    def __init__(
        self,
        lexicon: Optional[Lexicon] = None,
        categories: Optional[CategoryTable] = None,
        store: Optional[LearningStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        policy: Optional[config.MoodPolicy] = None,
        corrector: Optional[ContextCorrector] = None,
        groups: Optional[EmotionGroupAnalyzer] = None,
    ) -> None:
        self.policy = policy or config.MOOD_POLICY
        self.lexicon: Lexicon = lexicon if lexicon is not None else load_lexicon()
        self.categories: CategoryTable = categories if categories is not None else load_categories()
        self.store = store if store is not None else LearningStore(policy=self.policy)
        self.clock = clock or datetime.now
        self.matcher = LexiconMatcher(self.lexicon, self.policy)
        self.context = corrector or ContextCorrector(clock=self.clock, policy=self.policy)
        self.groups = groups or EmotionGroupAnalyzer()
        self.orchestrator = MoodPipelineOrchestrator(
            lexicon=self.lexicon,
            categories=self.categories,
            store=self.store,
            policy=self.policy,
            clock=self.clock,
            matcher=self.matcher,
            corrector=self.context,
            grouper=self.groups,
        )

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------
    def detect(self, text: Any) -> DetectionResult:
        """Never raises on bad input: non-string text is treated as empty."""
        return self.orchestrator.process_text(text)

    def batch_detect(self, texts: Optional[Iterable[Any]]) -> List[DetectionResult]:
        if texts is None:
            return []
        if isinstance(texts, str):
            texts = [texts]
        return [self.detect(t) for t in texts]

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    @staticmethod
    def list_categories() -> List[MoodCategory]:
        return list(ALL_CATEGORIES)

    def get_category_info(self, category: Union[MoodCategory, str]) -> Optional[Dict[str, Any]]:
        cat = MoodCategory.parse(category)
        if cat is None:
            return None
        meta = self.categories.get(cat.value)
        return copy.deepcopy(meta) if meta is not None else None

    def current_time_slot(self) -> Dict[str, str]:
        return self.context.current_time_slot()

    def list_groups(self) -> Dict[str, Dict[str, Any]]:
        return self.groups.all_groups()

    def get_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        return self.groups.group_by_id(group_id)

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------
    def get_personal_insights(self) -> Dict[str, Any]:
        return self.store.get_personal_insights()

    def reset_learning(self) -> bool:
        return self.store.reset()

    def status(self) -> Dict[str, Any]:
        return {
            "categories": [c.value for c in ALL_CATEGORIES],
            "lexicon_keywords": sum(len(v) for v in self.lexicon.values()),
            "metadata_loaded": bool(self.categories),
            "learning_enabled": self.store.enabled,
            "learning_dir": str(self.store.root_dir),
            "pipeline": self.orchestrator.step_names,
            "time_slot": self.current_time_slot(),
        }


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------
_DETECTOR: Optional[ChineseMoodDetector] = None
_DETECTOR_LOCK = threading.Lock()


def get_detector() -> ChineseMoodDetector:
    global _DETECTOR
    if _DETECTOR is None:
        with _DETECTOR_LOCK:
            if _DETECTOR is None:
                _DETECTOR = ChineseMoodDetector()
                logger.info("[detector] initialized (%d keywords)",
                            sum(len(v) for v in _DETECTOR.lexicon.values()))
    return _DETECTOR


def reset_detector(detector: Optional[ChineseMoodDetector] = None) -> None:
    """Drop (or replace) the process-wide instance."""
    global _DETECTOR
    with _DETECTOR_LOCK:
        _DETECTOR = detector


def detect(text: Any) -> DetectionResult:
    return get_detector().detect(text)


def batch_detect(texts: Optional[Iterable[Any]]) -> List[DetectionResult]:
    return get_detector().batch_detect(texts)


def list_categories() -> List[MoodCategory]:
    return ChineseMoodDetector.list_categories()


def get_category_info(category: Union[MoodCategory, str]) -> Optional[Dict[str, Any]]:
    return get_detector().get_category_info(category)
