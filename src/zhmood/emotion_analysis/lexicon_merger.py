# -*- coding: utf-8 -*-
# lexicon_merger.py
"""
Offline tool: merge an external sentiment word list (NTUSD-style) into the
alias lexicon, per category.

External document shapes accepted:
  {"emotions": {"高兴": [{"word": "愉快", "intensity": 0.9}, ...]}, "metadata": {...}}
  {"高兴": [{"word": ..., "intensity": ...}] | ["愉快", ...]}

Alias words rank first (priority 1.0); external words are a supplement
(priority 0.7). Near-duplicates are dropped in input order, so an alias
word always wins over a similar external word.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..data_utils import ZhMoodError, atomic_write_json, load_lexicon, read_json
from .result_types import MoodCategory

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class MergeConfig:
    alias_weight: float = 1.0
    external_weight: float = 0.7
    base_intensity: float = 0.6
    min_intensity: float = 0.3
    max_words_per_emotion: int = 1000
    deduplicate: bool = True
    similarity_threshold: float = 0.8
    modern_bonus: float = 0.2


_MODERN_PATTERNS = [
    re.compile(r"[a-zA-Z]"),
    re.compile(r"\d"),
    re.compile("[\U0001F600-\U0001F64F]"),
    re.compile("[\U0001F300-\U0001F5FF]"),
    re.compile("[\U0001F680-\U0001F6FF]"),
    re.compile(r"了$"),
]


def is_modern_expression(word: str) -> bool:
    return any(p.search(word) for p in _MODERN_PATTERNS)


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        cur = [i]
        for j, cb in enumerate(b, 1):
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != cb)))
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    longest = max(len(a), len(b))
    return 1.0 - levenshtein(a, b) / longest if longest else 1.0


@dataclass
class MergedWord:
    word: str
    intensity: float
    source: str
    priority: float


class LexiconMerger:
    def __init__(self, config: Optional[MergeConfig] = None) -> None:
        self.config = config or MergeConfig()

    def deduplicate(self, words: Sequence[MergedWord]) -> List[MergedWord]:
        if not self.config.deduplicate:
            return list(words)
        kept: List[MergedWord] = []
        seen: List[str] = []
        for w in words:
            if any(w.word == s or similarity(w.word, s) > self.config.similarity_threshold for s in seen):
                continue
            seen.append(w.word)
            kept.append(w)
        return kept

    def merge_category(self, alias_words: Sequence[str], external_words: Sequence[Mapping[str, Any]]) -> List[MergedWord]:
        c = self.config
        combined: List[MergedWord] = []
        for word in alias_words:
            bonus = c.modern_bonus if is_modern_expression(word) else 0.0
            combined.append(MergedWord(word, min(1.0, c.base_intensity + bonus), "alias", c.alias_weight))
        for item in external_words:
            word = item.get("word")
            if not isinstance(word, str) or not word:
                continue
            raw = float(item.get("intensity", c.base_intensity) or 0.0)
            combined.append(MergedWord(word, max(c.min_intensity, raw * c.external_weight), "external", c.external_weight))

        merged = self.deduplicate(combined)
        merged.sort(key=lambda w: (-w.priority, -w.intensity))
        return merged[: c.max_words_per_emotion]

    def merge(
        self,
        alias: Mapping[str, Sequence[str]],
        external: Mapping[str, Sequence[Mapping[str, Any]]],
    ) -> Dict[str, Any]:
        """Returns ``{"lexicon": {cat: [words]}, "statistics": {cat: {...}}}``."""
        lexicon: Dict[str, List[str]] = {}
        stats: Dict[str, Dict[str, int]] = {}
        for emotion, alias_words in alias.items():
            ext = external.get(emotion) or []
            merged = self.merge_category(alias_words, ext)
            lexicon[emotion] = [w.word for w in merged]
            modern = sum(1 for w in merged if is_modern_expression(w.word))
            stats[emotion] = {
                "original": len(alias_words),
                "external": len(ext),
                "final": len(merged),
                "modernWords": modern,
                "traditionalWords": len(merged) - modern,
            }
            logger.info("[merge] %s: alias=%d external=%d final=%d",
                        emotion, len(alias_words), len(ext), len(merged))
        return {"lexicon": lexicon, "statistics": stats}

    def build_report(self, result: Mapping[str, Any]) -> Dict[str, Any]:
        lexicon = result["lexicon"]
        stats = result["statistics"]
        total = sum(len(v) for v in lexicon.values())
        return {
            "timestamp": datetime.now().isoformat(),
            "config": asdict(self.config),
            "statistics": stats,
            "summary": {
                "totalEmotions": len(lexicon),
                "totalWords": total,
                "avgWordsPerEmotion": round(total / len(lexicon)) if lexicon else 0,
                "modernWordsTotal": sum(s["modernWords"] for s in stats.values()),
                "traditionalWordsTotal": sum(s["traditionalWords"] for s in stats.values()),
            },
        }


def normalize_external(raw: Any) -> Dict[str, List[Dict[str, Any]]]:
    """Accepts either shape described in the module docstring; unknown categories are dropped."""
    if not isinstance(raw, dict):
        raise ZhMoodError("external lexicon must be a JSON object")
    table = raw.get("emotions", raw)
    if not isinstance(table, dict):
        raise ZhMoodError("external lexicon 'emotions' must be a JSON object")
    out: Dict[str, List[Dict[str, Any]]] = {}
    for key, words in table.items():
        cat = MoodCategory.parse(key)
        if cat is None or not isinstance(words, list):
            continue
        out[cat.value] = [w if isinstance(w, dict) else {"word": w} for w in words if isinstance(w, (str, dict))]
    return out


def merge_lexicon_files(
    external_path: Union[str, Path],
    output_path: Union[str, Path],
    *,
    alias: Optional[Mapping[str, Sequence[str]]] = None,
    config: Optional[MergeConfig] = None,
) -> Dict[str, Any]:
    """Merge ``external_path`` into the active lexicon and write the result plus a report next to it."""
    try:
        external = normalize_external(read_json(Path(external_path)))
    except (OSError, ValueError) as e:
        raise ZhMoodError(f"cannot read external lexicon {external_path}: {e}") from e

    base = dict(alias) if alias is not None else load_lexicon()
    if not base:
        raise ZhMoodError("no alias lexicon available to merge into")

    merger = LexiconMerger(config)
    result = merger.merge(base, external)
    report = merger.build_report(result)

    out = Path(output_path)
    atomic_write_json(out, result["lexicon"])
    atomic_write_json(out.with_name(f"{out.stem}.report.json"), report)
    logger.info("[merge] wrote %s (%d words)", out, report["summary"]["totalWords"])
    return report
