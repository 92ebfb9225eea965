# -*- coding: utf-8 -*-
"""
zhmood: lexicon-based mood inference for short Chinese texts.

>>> import zhmood
>>> r = zhmood.detect("今天代码写得很开心")
>>> r.main, r.confidence
"""

import logging
from importlib import import_module
from typing import Any

__version__ = "1.0.0"

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

_LAZY_MAP = {
    "detect": (".detector", None),
    "batch_detect": (".detector", None),
    "list_categories": (".detector", None),
    "get_category_info": (".detector", None),
    "get_detector": (".detector", None),
    "reset_detector": (".detector", None),
    "ChineseMoodDetector": (".detector", None),
    "MoodCategory": (".emotion_analysis.result_types", None),
    "DetectionResult": (".emotion_analysis.result_types", None),
    "CorrectionTrail": (".emotion_analysis.result_types", None),
    "LearningStore": (".emotion_analysis.learning_engine", None),
    "ZhMoodError": (".data_utils", None),
    "PipelineConfigError": (".data_utils", None),
    "StoreError": (".data_utils", None),
}

__all__ = list(_LAZY_MAP) + ["__version__"]


def __getattr__(name: str) -> Any:
    if name not in _LAZY_MAP:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_path, target_name = _LAZY_MAP[name]
    val = getattr(import_module(module_path, package=__name__), target_name or name)
    globals()[name] = val
    return val
