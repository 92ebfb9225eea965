# -*- coding: utf-8 -*-
"""
emotion_analysis: the pipeline stage modules, exposed through lazy loading.

Symbols listed in ``_LAZY_MAP`` are imported on first attribute access only,
which keeps ``import zhmood`` cheap and avoids import cycles with
``zhmood.data_utils``.
"""

import logging
from importlib import import_module
from typing import Any

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

# symbol name -> (module path, attribute name); None means same as the symbol
_LAZY_MAP = {
    # result_types
    "MoodCategory": (".result_types", None),
    "DetectionResult": (".result_types", None),
    "CorrectionTrail": (".result_types", None),
    "ALL_CATEGORIES": (".result_types", None),

    # linguistic_matcher
    "LexiconMatcher": (".linguistic_matcher", None),
    "MatchOutcome": (".linguistic_matcher", None),
    "match_text": (".linguistic_matcher", None),
    "keyword_weight": (".linguistic_matcher", None),

    # transition_analyzer
    "augment_long_text": (".transition_analyzer", None),
    "apply_density_bonuses": (".transition_analyzer", None),
    "apply_contrast_bonuses": (".transition_analyzer", None),

    # default_mood
    "resolve_default_mood": (".default_mood", None),
    "fallback_confidence": (".default_mood", None),

    # weight_calculator
    "compute_confidence": (".weight_calculator", None),

    # learning_engine
    "LearningStore": (".learning_engine", None),

    # context_extractor
    "ContextCorrector": (".context_extractor", None),

    # emotion_groups
    "EmotionGroupAnalyzer": (".emotion_groups", None),
    "EMOTION_GROUPS": (".emotion_groups", None),
    "INTENSITY_LEVELS": (".emotion_groups", None),

    # lexicon_merger
    "LexiconMerger": (".lexicon_merger", None),
    "MergeConfig": (".lexicon_merger", None),
    "merge_lexicon_files": (".lexicon_merger", None),
}

__all__ = list(_LAZY_MAP)


def __getattr__(name: str) -> Any:
    if name not in _LAZY_MAP:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_path, target_name = _LAZY_MAP[name]
    try:
        val = getattr(import_module(module_path, package=__name__), target_name or name)
    except (ImportError, AttributeError) as e:
        logger.warning("Lazy loading failed for %s: %s", name, e)
        raise
    globals()[name] = val
    return val


def __dir__():
    return sorted(set(globals()) | set(__all__))
