# -*- coding: utf-8 -*-
# src/zhmood/config.py
"""
zhmood configuration (tunables + paths + logging)

Design goals
- Lexicon/metadata JSON documents are the source of truth for vocabulary;
  this module only owns toggles, numeric policy, static correction tables and
  entry points of the pipeline.
- No write side effects at import time (directories are created lazily by
  the code that needs them).
- All numeric thresholds live in one frozen ``MoodPolicy`` so they can be
  tuned and unit-tested independently of control flow.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, List

from dotenv import find_dotenv, load_dotenv

# .env from the working directory (or a parent); real env vars win
load_dotenv(find_dotenv(usecwd=True))


# --------------------------------
# Environment helpers
# --------------------------------
def _env_bool(k, d):
    """Env var to bool (1/true/yes/y → True)."""
    return str(os.getenv(k, str(int(d)))).lower() in ("1", "true", "yes", "y")


def _env_float(k, d):
    try:
        return float(os.getenv(k, str(d)))
    except (ValueError, TypeError):
        return d


def _env_str(k, d):
    return os.getenv(k, d)


def _env_int(k, d):
    try:
        return int(os.getenv(k, str(d)))
    except (ValueError, TypeError):
        return d


# ============================
# Paths
# ============================
PACKAGE_DIR = Path(__file__).resolve().parent
DATA_DIR = PACKAGE_DIR / "data"

LEXICON_JSON_ENV = _env_str("ZHMOOD_LEXICON_JSON", "")
CATEGORIES_JSON_ENV = _env_str("ZHMOOD_CATEGORIES_JSON", "")

LEARNING_DIR = Path(_env_str("ZHMOOD_LEARNING_DIR", "") or (Path.home() / ".zhmood"))
LEARNING_ENABLED = _env_bool("ZHMOOD_LEARNING_ENABLED", True)
LEARNING_DATA_FILENAME = "learning-data.json"
USER_PATTERNS_FILENAME = "user-patterns.json"

LOG_DIR = Path(_env_str("ZHMOOD_LOG_DIR", "") or (LEARNING_DIR / "logs"))


def lexicon_candidates() -> List[Path]:
    """
    Priority:
      1) ENV: ZHMOOD_LEXICON_JSON
      2) bundled zh_alias_improved.json
      3) bundled zh_alias.json
    Every candidate is returned; the loader walks them until one parses.
    """
    out: List[Path] = []
    if LEXICON_JSON_ENV:
        out.append(Path(LEXICON_JSON_ENV))
    out.append(DATA_DIR / "zh_alias_improved.json")
    out.append(DATA_DIR / "zh_alias.json")
    return out


def categories_candidates() -> List[Path]:
    out: List[Path] = []
    if CATEGORIES_JSON_ENV:
        out.append(Path(CATEGORIES_JSON_ENV))
    out.append(DATA_DIR / "zh_categories.json")
    return out


# ============================
# Numeric policy
# ============================
@dataclass(frozen=True)
class MoodPolicy:
    # -- lexicon matching: weight by keyword length
    weight_single_char: float = 0.5
    weight_short_phrase: float = 2.0     # length 2-3
    weight_long_phrase: float = 3.0      # length >= 4
    long_phrase_min_len: int = 4

    # -- long-text augmentation
    long_text_min_len: int = 30          # strictly greater triggers
    min_segment_len: int = 3             # segments of length <= this are dropped
    high_density: float = 0.3
    high_density_bonus: float = 2.0
    mid_density: float = 0.1
    mid_density_bonus: float = 1.0
    diversity_min_unique: int = 2        # strictly greater triggers
    diversity_bonus_per_keyword: float = 0.5
    contrast_multiplier: float = 1.5
    contrast_connectors: Tuple[str, ...] = ("但是", "不过", "然而", "可是", "只是", "虽然", "尽管")

    # -- default mood fallback
    fallback_short_len: int = 3
    fallback_long_len: int = 50
    fallback_tiny_len: int = 5
    fallback_conf_min: int = 15
    fallback_conf_max: int = 40
    fallback_conf_per_char: int = 5

    # -- confidence
    conf_base_cap: float = 80.0
    conf_base_per_score: float = 15.0
    conf_base_offset: float = 20.0
    conf_length_min: float = 0.6
    conf_length_max: float = 1.2
    conf_length_divisor: float = 4.0
    conf_hit_bonus: float = 5.0
    conf_hit_cap: float = 20.0
    conf_unique_bonus: float = 2.0
    conf_unique_cap: float = 10.0
    conf_min: int = 20
    conf_max: int = 95

    # -- personal learning
    learning_conf_cap: int = 95
    vocab_min_word_len: int = 2
    vocab_min_count: int = 5             # strictly greater triggers
    vocab_bonus: int = 10
    pattern_min_entries: int = 3
    pattern_min_majority: int = 2
    pattern_bonus: int = 5
    pattern_max_len: int = 20
    trend_window: int = 10
    trend_min_count: int = 3
    trend_bonus: int = 8
    history_max: int = 100               # strictly greater triggers the trim
    history_keep: int = 50
    vocab_max_words: int = field(default_factory=lambda: _env_int("ZHMOOD_VOCAB_MAX_WORDS", 5000))
    insights_min_history: int = 5

    # -- context correction
    context_conf_min: int = 15
    context_conf_max: int = 95

    def to_dict(self) -> Dict[str, Any]:
        return {k: (list(v) if isinstance(v, tuple) else v) for k, v in self.__dict__.items()}


MOOD_POLICY = MoodPolicy()


# ============================
# Context correction tables
# ============================
# hour ranges are [start, end); night wraps around midnight
TIME_SLOTS: Dict[str, Dict[str, Any]] = {
    "morning":   {"start": 6,  "end": 11, "label": "早晨"},
    "afternoon": {"start": 11, "end": 17, "label": "下午"},
    "evening":   {"start": 17, "end": 22, "label": "傍晚"},
    "night":     {"start": 22, "end": 6,  "label": "深夜"},
}

TIME_EMOTION_WEIGHTS: Dict[str, Dict[str, float]] = {
    "morning": {
        "高兴": 1.2, "愤怒": 0.8, "悲伤": 0.7, "焦虑": 0.9,
        "平静": 1.1, "疲惫": 0.6, "惊讶": 1.0, "无聊": 0.8,
    },
    # balanced
    "afternoon": {
        "高兴": 1.0, "愤怒": 1.0, "悲伤": 1.0, "焦虑": 1.1,
        "平静": 1.0, "疲惫": 1.2, "惊讶": 1.0, "无聊": 1.1,
    },
    "evening": {
        "高兴": 1.1, "愤怒": 1.1, "悲伤": 1.0, "焦虑": 1.2,
        "平静": 1.2, "疲惫": 1.3, "惊讶": 0.9, "无聊": 1.0,
    },
    # negative moods amplified late at night
    "night": {
        "高兴": 0.8, "愤怒": 1.2, "悲伤": 1.3, "焦虑": 1.4,
        "平静": 0.9, "疲惫": 1.5, "惊讶": 0.8, "无聊": 1.2,
    },
}

CONTEXT_CORRECTION_RULES: Dict[str, Dict[str, Any]] = {
    "work": {
        "keywords": ["代码", "项目", "工作", "bug", "加班", "开发", "程序", "系统", "功能", "deadline", "review"],
        "adjustments": {
            "高兴": {"bonus": 0.1, "reason": "工作成就感加成"},
            "愤怒": {"bonus": 0.2, "reason": "工作压力放大"},
            "焦虑": {"bonus": 0.2, "reason": "工作焦虑加强"},
            "疲惫": {"bonus": 0.3, "reason": "工作疲劳明显"},
        },
    },
    "learning": {
        "keywords": ["学习", "掌握", "理解", "搞懂", "弄明白", "学会", "教程", "文档", "知识"],
        "adjustments": {
            "高兴": {"bonus": 0.2, "reason": "学习成就感"},
            "焦虑": {"bonus": 0.1, "reason": "学习压力"},
            "惊讶": {"bonus": 0.2, "reason": "学习发现"},
        },
    },
    "social": {
        "keywords": ["团队", "同事", "朋友", "聊天", "交流", "讨论", "分享", "合作"],
        "adjustments": {
            "高兴": {"bonus": 0.1, "reason": "社交正面情绪"},
            "愤怒": {"bonus": 0.1, "reason": "人际冲突"},
            "悲伤": {"bonus": 0.1, "reason": "社交压力"},
        },
    },
    "achievement": {
        "keywords": ["完成", "成功", "搞定", "解决", "实现", "达成", "通过", "拿下"],
        "adjustments": {
            "高兴": {"bonus": 0.3, "reason": "成就感强烈"},
            "平静": {"bonus": 0.1, "reason": "完成后的平静"},
        },
    },
    "problem": {
        "keywords": ["问题", "错误", "失败", "崩溃", "报错", "异常", "故障", "卡住"],
        "adjustments": {
            "愤怒": {"bonus": 0.2, "reason": "问题带来挫折"},
            "焦虑": {"bonus": 0.2, "reason": "问题引发焦虑"},
            "疲惫": {"bonus": 0.1, "reason": "解决问题的疲劳"},
        },
    },
}

# checked in this order; the first tier with any hit wins
INTENSITY_MODIFIERS: Dict[str, Dict[str, Any]] = {
    "extreme": {"keywords": ["超级", "特别", "非常", "巨", "极", "死了", "疯了", "炸了", "爆了", "翻了"], "multiplier": 1.5},
    "high":    {"keywords": ["很", "太", "好", "挺", "蛮", "相当", "真的"], "multiplier": 1.2},
    "mild":    {"keywords": ["有点", "稍微", "还行", "一般", "不太", "略"], "multiplier": 0.8},
}


# ============================
# Pipeline definition
# ============================
MOOD_PIPELINE: List[str] = [
    "lexicon_matching",
    "long_text_augmentation",
    "default_mood",
    "confidence",
    "personal_learning",
    "context_correction",
    "emotion_grouping",
    "learning_commit",
]

_EA = "zhmood.emotion_analysis"
MODULE_ENTRYPOINTS: Dict[str, str] = {
    "lexicon_matching":       f"{_EA}.linguistic_matcher:run_lexicon_stage",
    "long_text_augmentation": f"{_EA}.transition_analyzer:run_long_text_stage",
    "default_mood":           f"{_EA}.default_mood:run_default_mood_stage",
    "confidence":             f"{_EA}.weight_calculator:run_confidence_stage",
    "personal_learning":      f"{_EA}.learning_engine:run_learning_adjust_stage",
    "context_correction":     f"{_EA}.context_extractor:run_context_stage",
    "emotion_grouping":       f"{_EA}.emotion_groups:run_grouping_stage",
    "learning_commit":        f"{_EA}.learning_engine:run_learning_commit_stage",
}

# "raise": surface the exception, "skip": log it and carry the prior result forward
STEP_ON_ERROR: Dict[str, str] = {
    "lexicon_matching": "raise",
    "long_text_augmentation": "raise",
    "default_mood": "raise",
    "confidence": "raise",
    "personal_learning": "skip",
    "context_correction": "raise",
    "emotion_grouping": "raise",
    "learning_commit": "skip",
}


# ============================
# HTTP service
# ============================
SERVER_HOST = _env_str("ZHMOOD_HOST", "127.0.0.1")
SERVER_PORT = _env_int("ZHMOOD_PORT", 8000)
MAX_TEXT_LENGTH = _env_int("ZHMOOD_MAX_TEXT_LENGTH", 2000)
MAX_BATCH_SIZE = _env_int("ZHMOOD_MAX_BATCH_SIZE", 100)


# ============================
# Logging
# ============================
JSON_LOGS = _env_bool("JSON_LOGS", False)
if JSON_LOGS:
    LOGGING_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
else:
    LOGGING_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

LOGGING_CONFIG: Dict[str, Any] = {
    "level": _env_str("ZHMOOD_LOG_LEVEL", "INFO").upper(),
    "console": _env_bool("ZHMOOD_CONSOLE_LOG", True),
    "file": _env_bool("ZHMOOD_FILE_LOG", False),
    "file_name": "zhmood.log",
    "rotate": {"max_bytes": 10 * 1024 * 1024, "backup_count": 5},
    "json_logs": JSON_LOGS,
}

_LOGGING_READY = False


def setup_logging(level: Optional[str] = None, *, force: bool = False) -> logging.Logger:
    """
    Wire handlers on the ``zhmood`` root logger. Called by the CLI and the
    HTTP service only; importing the library never installs handlers.
    """
    global _LOGGING_READY
    root = logging.getLogger("zhmood")
    if _LOGGING_READY and not force:
        return root

    lvl = getattr(logging, (level or LOGGING_CONFIG["level"]).upper(), logging.INFO)
    root.setLevel(lvl)
    for h in list(root.handlers):
        if not isinstance(h, logging.NullHandler):
            root.removeHandler(h)

    fmt = logging.Formatter(LOGGING_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    if LOGGING_CONFIG["console"]:
        sh = logging.StreamHandler()
        sh.setLevel(lvl)
        sh.setFormatter(fmt)
        root.addHandler(sh)

    if LOGGING_CONFIG["file"]:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            rot = LOGGING_CONFIG["rotate"]
            fh = RotatingFileHandler(
                str(LOG_DIR / LOGGING_CONFIG["file_name"]),
                maxBytes=int(rot["max_bytes"]),
                backupCount=int(rot["backup_count"]),
                encoding="utf-8",
            )
            fh.setLevel(lvl)
            fh.setFormatter(fmt)
            root.addHandler(fh)
        except OSError as e:
            root.warning("file logging disabled: %s", e)

    _LOGGING_READY = True
    return root


def config_snapshot() -> Dict[str, Any]:
    """Read-only view of the effective configuration (for /api/status and debugging)."""
    return {
        "lexicon_candidates": [str(p) for p in lexicon_candidates()],
        "categories_candidates": [str(p) for p in categories_candidates()],
        "learning_dir": str(LEARNING_DIR),
        "learning_enabled": LEARNING_ENABLED,
        "pipeline": list(MOOD_PIPELINE),
        "policy": MOOD_POLICY.to_dict(),
    }


if __name__ == "__main__":
    print(json.dumps(config_snapshot(), ensure_ascii=False, indent=2))
