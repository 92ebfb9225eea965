"""Shared fixtures: fixed clock, temp learning store, small explicit lexicons."""

from datetime import datetime

import pytest

from zhmood.config import MOOD_POLICY
from zhmood.data_utils import Payload, load_categories
from zhmood.detector import ChineseMoodDetector, reset_detector
from zhmood.emotion_analysis.learning_engine import LearningStore

AFTERNOON = datetime(2024, 5, 20, 14, 0, 0)
NIGHT = datetime(2024, 5, 20, 23, 0, 0)


@pytest.fixture(autouse=True)
def _drop_global_detector():
    yield
    reset_detector()


@pytest.fixture
def fixed_clock():
    return lambda: AFTERNOON


@pytest.fixture
def categories():
    return load_categories()


@pytest.fixture
def small_lexicon():
    return {
        "高兴": ["开心", "高兴", "快乐", "太棒了"],
        "愤怒": ["生气", "气死了"],
        "悲伤": ["难过"],
        "焦虑": ["紧张", "压力山大"],
        "疲惫": ["好累", "累成狗"],
        "平静": ["平静"],
        "惊讶": ["没想到"],
        "无聊": ["无聊"],
    }


@pytest.fixture
def store(tmp_path):
    return LearningStore(tmp_path / "learning", enabled=True)


@pytest.fixture
def detector(small_lexicon, categories, store, fixed_clock):
    return ChineseMoodDetector(
        lexicon=small_lexicon,
        categories=categories,
        store=store,
        clock=fixed_clock,
    )


@pytest.fixture
def make_payload(small_lexicon, categories):
    def _make(text, *, lexicon=None, store=None, now=AFTERNOON):
        return Payload(
            raw_text=text,
            lexicon=small_lexicon if lexicon is None else lexicon,
            categories=categories,
            policy=MOOD_POLICY,
            store=store,
            now=now,
        )
    return _make
