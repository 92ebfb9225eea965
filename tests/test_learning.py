"""Tests for LearningStore: adjustment passes and JSON-on-disk persistence."""

import json
from datetime import datetime

import pytest

from zhmood.config import MoodPolicy
from zhmood.emotion_analysis.learning_engine import INSIGHTS_PENDING_MESSAGE, LearningStore
from zhmood.emotion_analysis.result_types import DetectionResult, MoodCategory

NOW = datetime(2024, 5, 20, 14, 0, 0)


def _result(main, confidence=50, element="火"):
    return DetectionResult(main=main, confidence=confidence, element=element)


def _record(store, text, main, times=1):
    for _ in range(times):
        store.record(text, _result(main), now=NOW)


class TestPersistence:
    def test_flush_writes_both_documents(self, store):
        _record(store, "代码写完了", MoodCategory.HAPPY)
        assert store.flush() is True
        learning = json.loads(store.learning_data_path.read_text(encoding="utf-8"))
        patterns = json.loads(store.user_patterns_path.read_text(encoding="utf-8"))
        assert learning["textPatterns"]["代码写完了"][0]["mood"] == "高兴"
        assert learning["textPatterns"]["代码写完了"][0]["textLength"] == 5
        assert patterns["personalVocabulary"]["代码写完了"] == {"高兴": 1}
        assert patterns["emotionHistory"][0]["element"] == "火"

    def test_corrupt_document_starts_empty(self, store):
        store.root_dir.mkdir(parents=True)
        store.learning_data_path.write_text("not json", encoding="utf-8")
        store.user_patterns_path.write_text("[1, 2]", encoding="utf-8")
        store.load()
        assert store.learning_data["textPatterns"] == {}
        assert store.user_patterns["emotionHistory"] == []

    def test_unwritable_directory_reports_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = LearningStore(blocker / "sub", enabled=True)
        _record(store, "代码写完了", MoodCategory.HAPPY)
        assert store.flush() is False

    def test_reload_reproduces_adjustment(self, store):
        _record(store, "代码写完了", MoodCategory.ANGRY, times=6)
        store.flush()
        before = store.adjust("代码写完了", _result(MoodCategory.HAPPY))

        reloaded = LearningStore(store.root_dir, enabled=True)
        after = reloaded.adjust("代码写完了", _result(MoodCategory.HAPPY))
        assert after.confidence == before.confidence
        assert dict(after.learning_notes) == dict(before.learning_notes)

    def test_reset_clears_state(self, store):
        _record(store, "代码写完了", MoodCategory.HAPPY, times=3)
        assert store.reset() is True
        assert store.user_patterns["emotionHistory"] == []
        on_disk = json.loads(store.user_patterns_path.read_text(encoding="utf-8"))
        assert on_disk["personalVocabulary"] == {}

    def test_disabled_store_is_inert(self, tmp_path):
        store = LearningStore(tmp_path / "off", enabled=False)
        base = _result(MoodCategory.HAPPY)
        assert store.adjust("代码写完了", base) is base
        store.record("代码写完了", base, now=NOW)
        assert store.flush() is True
        assert not (tmp_path / "off").exists()


class TestAdjustment:
    def test_all_three_passes(self, store):
        _record(store, "代码写完了", MoodCategory.ANGRY, times=6)
        adjusted = store.adjust("代码写完了", _result(MoodCategory.HAPPY))
        # vocabulary +10, historical pattern +5, trend note without bonus
        assert adjusted.confidence == 65
        assert adjusted.main is MoodCategory.HAPPY
        assert set(adjusted.learning_notes) == {"personal_learning", "historical_pattern", "emotion_trend"}
        assert "愤怒" in adjusted.learning_notes["personal_learning"]

    def test_vocabulary_needs_more_than_five(self, store):
        _record(store, "代码写完了", MoodCategory.ANGRY, times=5)
        adjusted = store.adjust("代码写完了", _result(MoodCategory.HAPPY))
        assert "personal_learning" not in adjusted.learning_notes

    def test_trend_matching_main_adds_bonus(self, store):
        for text in ("a1", "b2", "c3"):
            _record(store, text, MoodCategory.HAPPY)
        adjusted = store.adjust("d4", _result(MoodCategory.HAPPY))
        assert adjusted.confidence == 58
        assert set(adjusted.learning_notes) == {"emotion_trend"}

    def test_confidence_capped(self, store):
        _record(store, "代码写完了", MoodCategory.ANGRY, times=6)
        adjusted = store.adjust("代码写完了", _result(MoodCategory.HAPPY, confidence=90))
        assert adjusted.confidence == 95

    def test_no_history_no_change(self, store):
        base = _result(MoodCategory.HAPPY)
        assert store.adjust("代码写完了", base) is base


class TestBounds:
    def test_history_trimmed_to_fifty(self, store):
        for i in range(101):
            store.record(f"text{i}", _result(MoodCategory.CALM), now=NOW)
        assert len(store.user_patterns["emotionHistory"]) == 50

    def test_history_not_trimmed_at_hundred(self, store):
        for i in range(100):
            store.record(f"text{i}", _result(MoodCategory.CALM), now=NOW)
        assert len(store.user_patterns["emotionHistory"]) == 100

    def test_vocabulary_eviction_lowest_then_oldest(self, tmp_path):
        store = LearningStore(tmp_path, policy=MoodPolicy(vocab_max_words=3), enabled=True)
        for word in ("苹果", "苹果", "香蕉", "橘子", "葡萄"):
            store.record(word, _result(MoodCategory.HAPPY), now=NOW)
        assert list(store.user_patterns["personalVocabulary"]) == ["苹果", "橘子", "葡萄"]


class TestInsights:
    def test_pending_message(self, store):
        assert store.get_personal_insights() == {"message": INSIGHTS_PENDING_MESSAGE}

    def test_dominant_mood(self, store):
        _record(store, "今天很忙", MoodCategory.ANXIOUS, times=3)
        _record(store, "今天很好", MoodCategory.HAPPY, times=2)
        insights = store.get_personal_insights()
        assert insights["totalAnalyzes"] == 5
        assert insights["dominantMood"] == "焦虑"
        assert insights["moodDistribution"] == {"焦虑": 3, "高兴": 2}
        assert "焦虑" in insights["personalizedTip"]

    def test_hand_edited_history_entries_ignored(self, store):
        store.root_dir.mkdir(parents=True)
        history = ["bad", 3, None] + [{"mood": "平静", "element": "土"}] * 5
        store.user_patterns_path.write_text(
            json.dumps({"emotionHistory": history}, ensure_ascii=False), encoding="utf-8")
        insights = store.get_personal_insights()
        assert insights["totalAnalyzes"] == 5
        assert insights["dominantMood"] == "平静"
        assert insights["dominantElement"] == "土"

    def test_too_few_valid_entries_is_pending(self, store):
        store.root_dir.mkdir(parents=True)
        history = ["bad"] * 6 + [{"mood": "平静", "element": "土"}]
        store.user_patterns_path.write_text(json.dumps({"emotionHistory": history}), encoding="utf-8")
        assert store.get_personal_insights() == {"message": INSIGHTS_PENDING_MESSAGE}
