# -*- coding: utf-8 -*-
# learning_engine.py
"""
Personal learning store.

Two JSON documents under ``config.LEARNING_DIR``:

- ``learning-data.json``  {textPatterns: {pattern: [{mood, confidence, timestamp, textLength}]},
                           confidenceAdjustments: {}, userFeedback: []}
- ``user-patterns.json``  {personalVocabulary: {word: {mood: count}},
                           emotionHistory: [{mood, element, confidence, timestamp, context}],
                           contextPreferences: {}}

Lifecycle: ``load()`` lazily on first use → ``adjust()`` before context
correction → ``record()`` + ``flush()`` after the final result is known.
Every flush rewrites both documents (write-then-rename). The store assumes a
single writer; callers that share it across threads must serialize access.

Adjustments only ever raise the confidence (capped at 95); they never change
the main category.
"""

from __future__ import annotations

import copy
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .. import config
from ..config import MOOD_POLICY, MoodPolicy
from ..data_utils import StoreError, atomic_write_json, cjk_words, extract_text_pattern, read_json
from .result_types import DetectionResult

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


PERSONALIZED_TIPS: Dict[str, str] = {
    "高兴": "您富有正能量，这种积极状态很珍贵，继续保持并感染他人。",
    "愤怒": "您的情绪比较激烈，适合通过运动来调节，化怒火为动力。",
    "焦虑": "您经常感到焦虑，建议建立规律的放松习惯，学会与压力共处。",
    "悲伤": "您偶尔低落，记住这些都是成长的一部分，困难会让你更强大。",
    "平静": "您心态平和，这是很好的心理状态，适合深度思考和学习。",
}
DEFAULT_TIP = "继续保持自我觉察，这对个人成长很有帮助。"
INSIGHTS_PENDING_MESSAGE = "继续使用，我将学习您的情绪表达模式，提供更准确的分析。"


def _default_learning_data() -> Dict[str, Any]:
    return {"textPatterns": {}, "confidenceAdjustments": {}, "userFeedback": []}


def _default_user_patterns() -> Dict[str, Any]:
    return {"personalVocabulary": {}, "emotionHistory": [], "contextPreferences": {}}


def _merge_defaults(raw: Any, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Keeps known keys whose type matches the default; anything else is reset."""
    if not isinstance(raw, dict):
        raise StoreError(f"expected a JSON object, got {type(raw).__name__}")
    out = dict(defaults)
    for k, v in raw.items():
        if k in defaults and not isinstance(v, type(defaults[k])):
            logger.warning("[learning] field %r has unexpected type; reset", k)
            continue
        out[k] = v
    return out


class LearningStore:
    def __init__(
        self,
        root_dir: Optional[Union[str, Path]] = None,
        policy: Optional[MoodPolicy] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        self.root_dir = Path(root_dir) if root_dir is not None else config.LEARNING_DIR
        self.policy = policy or MOOD_POLICY
        self.enabled = config.LEARNING_ENABLED if enabled is None else bool(enabled)
        self.learning_data_path = self.root_dir / config.LEARNING_DATA_FILENAME
        self.user_patterns_path = self.root_dir / config.USER_PATTERNS_FILENAME
        self._learning_data: Dict[str, Any] = _default_learning_data()
        self._user_patterns: Dict[str, Any] = _default_user_patterns()
        self._loaded = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def learning_data(self) -> Dict[str, Any]:
        self.load()
        return self._learning_data

    @property
    def user_patterns(self) -> Dict[str, Any]:
        self.load()
        return self._user_patterns

    def _read_document(self, path: Path, defaults: Dict[str, Any]) -> Dict[str, Any]:
        if not path.is_file():
            return defaults
        try:
            return _merge_defaults(read_json(path), defaults)
        except (OSError, ValueError, StoreError) as e:
            logger.warning("[learning] failed to load %s, starting empty: %s", path, e)
            return defaults

    def load(self, force: bool = False) -> "LearningStore":
        if self._loaded and not force:
            return self
        self._learning_data = self._read_document(self.learning_data_path, _default_learning_data())
        self._user_patterns = self._read_document(self.user_patterns_path, _default_user_patterns())
        self._loaded = True
        logger.debug("[learning] loaded %d patterns, %d history entries",
                     len(self._learning_data["textPatterns"]), len(self._user_patterns["emotionHistory"]))
        return self

    def _write(self) -> None:
        try:
            atomic_write_json(self.learning_data_path, self._learning_data)
            atomic_write_json(self.user_patterns_path, self._user_patterns)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"cannot persist learning data to {self.root_dir}: {e}") from e

    def flush(self) -> bool:
        """Persist both documents; failures are logged and reported as ``False``."""
        if not self.enabled or not self._loaded:
            return True
        try:
            self._write()
        except StoreError as e:
            logger.warning("[learning] %s", e)
            return False
        return True

    def reset(self) -> bool:
        self._learning_data = _default_learning_data()
        self._user_patterns = _default_user_patterns()
        self._loaded = True
        return self.flush()

    def snapshot(self) -> Dict[str, Any]:
        self.load()
        return {
            "learning_data": copy.deepcopy(self._learning_data),
            "user_patterns": copy.deepcopy(self._user_patterns),
        }

    # ------------------------------------------------------------------
    # Adjustment passes
    # ------------------------------------------------------------------
    def _vocabulary_votes(self, text: str) -> Counter:
        vocab = self.user_patterns["personalVocabulary"]
        votes: Counter = Counter()
        for word in cjk_words(text, self.policy.vocab_min_word_len):
            for mood, count in (vocab.get(word) or {}).items():
                votes[mood] += int(count)
        return votes

    def adjust(self, text: str, result: DetectionResult) -> DetectionResult:
        if not self.enabled:
            return result
        p = self.policy
        main = result.main.value
        confidence = result.confidence
        notes: Dict[str, str] = dict(result.learning_notes)

        votes = self._vocabulary_votes(text)
        if votes:
            preferred, score = votes.most_common(1)[0]
            if preferred != main and score > p.vocab_min_count:
                confidence = min(p.learning_conf_cap, confidence + p.vocab_bonus)
                notes["personal_learning"] = f'基于您的表达习惯，倾向于识别为"{preferred}"'

        entries = self.learning_data["textPatterns"].get(extract_text_pattern(text, p.pattern_max_len)) or []
        if len(entries) >= p.pattern_min_entries:
            counts = Counter(e.get("mood") for e in entries if isinstance(e, dict))
            if counts:
                historical, n = counts.most_common(1)[0]
                if n >= p.pattern_min_majority and historical != main:
                    confidence = min(p.learning_conf_cap, confidence + p.pattern_bonus)
                    notes["historical_pattern"] = f'相似表达历史上多为"{historical}"情绪'

        recent = self.user_patterns["emotionHistory"][-p.trend_window:]
        if len(recent) >= p.trend_min_count:
            counts = Counter(e.get("mood") for e in recent if isinstance(e, dict))
            if counts:
                trend, n = counts.most_common(1)[0]
                if n >= p.trend_min_count:
                    notes["emotion_trend"] = f'近期您的情绪主要偏向"{trend}"'
                    if trend == main:
                        confidence = min(p.learning_conf_cap, confidence + p.trend_bonus)

        if confidence == result.confidence and notes == dict(result.learning_notes):
            return result
        return result.evolve(confidence=max(result.confidence, confidence), learning_notes=notes)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def record(
        self,
        text: str,
        result: DetectionResult,
        context: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> None:
        if not self.enabled:
            return
        p = self.policy
        timestamp = (now or datetime.now()).isoformat()
        mood = result.main.value

        patterns = self.learning_data["textPatterns"]
        patterns.setdefault(extract_text_pattern(text, p.pattern_max_len), []).append({
            "mood": mood,
            "confidence": result.confidence,
            "timestamp": timestamp,
            "textLength": len(text),
        })

        self._update_vocabulary(text, mood)

        history: List[Dict[str, Any]] = self.user_patterns["emotionHistory"]
        history.append({
            "mood": mood,
            "element": result.element,
            "confidence": result.confidence,
            "timestamp": timestamp,
            "context": dict(context or {}),
        })
        if len(history) > p.history_max:
            self._user_patterns["emotionHistory"] = history[-p.history_keep:]

    def _update_vocabulary(self, text: str, mood: str) -> None:
        vocab: Dict[str, Dict[str, int]] = self.user_patterns["personalVocabulary"]
        for word in cjk_words(text, self.policy.vocab_min_word_len):
            counts = vocab.setdefault(word, {})
            counts[mood] = int(counts.get(mood, 0)) + 1
        self._evict_vocabulary(vocab)

    def _evict_vocabulary(self, vocab: Dict[str, Dict[str, int]]) -> None:
        overflow = len(vocab) - self.policy.vocab_max_words
        if overflow <= 0:
            return
        # lowest total count first, oldest insertion first among ties
        ranked = sorted(
            enumerate(vocab.items()),
            key=lambda item: (sum(int(c) for c in item[1][1].values()), item[0]),
        )
        for _, (word, _) in ranked[:overflow]:
            del vocab[word]
        logger.debug("[learning] evicted %d vocabulary entries", overflow)

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------
    def get_personal_insights(self) -> Dict[str, Any]:
        history = [e for e in self.user_patterns["emotionHistory"] if isinstance(e, dict)]
        if len(history) < self.policy.insights_min_history:
            return {"message": INSIGHTS_PENDING_MESSAGE}

        moods = Counter(e.get("mood") for e in history)
        elements = Counter(e.get("element") for e in history)
        dominant_mood = moods.most_common(1)[0][0]
        return {
            "totalAnalyzes": len(history),
            "dominantMood": dominant_mood,
            "dominantElement": elements.most_common(1)[0][0],
            "moodDistribution": dict(moods),
            "personalizedTip": PERSONALIZED_TIPS.get(dominant_mood, DEFAULT_TIP),
        }


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------
def _context_hints(result: DetectionResult) -> Dict[str, Any]:
    trail = result.correction
    if trail is None:
        return {}
    return {
        "time_slot": trail.time_slot,
        "rules": [r.get("rule") for r in trail.applied_rules],
        "intensity": trail.intensity_tier,
    }


def run_learning_adjust_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    store: Optional[LearningStore] = payload.store
    if store is None or prior is None:
        return prior
    return store.adjust(payload.raw_text, prior)


def run_learning_commit_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    store: Optional[LearningStore] = payload.store
    if store is None or prior is None:
        return prior
    store.record(payload.raw_text, prior, context=_context_hints(prior), now=payload.now)
    payload.meta["learning_flushed"] = store.flush()
    return prior
