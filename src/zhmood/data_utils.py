# -*- coding: utf-8 -*-
# src/zhmood/data_utils.py
"""
Data loading + text utilities + pipeline orchestrator
=================================================================
- Lexicon / category-metadata loading with ordered candidate paths and a
  graceful ``{}`` fallback (a missing or malformed document never raises).
- Text normalization helpers shared by every stage.
- ``Payload``: standard I/O container handed to each stage together with the
  prior ``DetectionResult``.
- ``MoodPipelineOrchestrator``: resolves ``config.MOOD_PIPELINE`` through
  ``config.MODULE_ENTRYPOINTS`` and runs the stages in order, applying the
  per-step error policy of ``config.STEP_ON_ERROR``.

Usage
>>> orchestrator = MoodPipelineOrchestrator(lexicon=load_lexicon(), categories=load_categories())
>>> result = orchestrator.process_text("今天代码写得很开心")
>>> result.main, result.confidence
"""
from __future__ import annotations

import importlib
import json
import logging
import math
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import config
from .emotion_analysis.result_types import DetectionResult, MoodCategory, empty_result

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ===========================================================================
# Exceptions
# ===========================================================================
class ZhMoodError(Exception):
    """Base class of every error raised by this package."""


class PipelineConfigError(ZhMoodError):
    """Invalid MOOD_PIPELINE / MODULE_ENTRYPOINTS definition."""


class StoreError(ZhMoodError):
    """Learning store could not be read or written."""


Lexicon = Dict[str, List[str]]
CategoryTable = Dict[str, Dict[str, Any]]


# ===========================================================================
# Text utilities
# ===========================================================================
_PUNCT_RE = re.compile(r"[,.!?;。，！？；：]")
_WS_RE = re.compile(r"\s+")
_SENT_SPLIT_RE = re.compile(r"[。！？.!?]+")
_CJK_RUN_RE = re.compile(r"[\u4e00-\u9fa5]+")
_DIGITS_RE = re.compile(r"[0-9]+")
_LATIN_RE = re.compile(r"[a-zA-Z]+")
_PATTERN_STRIP_RE = re.compile(r"[^\u4e00-\u9fa5#]")


def coerce_text(text: Any) -> str:
    """Non-string input is treated as empty text."""
    return text if isinstance(text, str) else ""


def normalize_text(text: Any) -> str:
    """Lowercase + whitespace collapse; punctuation is kept (used by punctuation-driven rules)."""
    return _WS_RE.sub(" ", coerce_text(text).lower()).strip()


def preprocess_text(text: Any) -> str:
    """Lowercase, punctuation → space, whitespace collapse, trim."""
    out = coerce_text(text).lower()
    out = _PUNCT_RE.sub(" ", out)
    return _WS_RE.sub(" ", out).strip()


def split_segments(text: str, min_len: int = 3) -> List[str]:
    """Sentence-terminal split; segments of length <= ``min_len`` are discarded."""
    return [s for s in _SENT_SPLIT_RE.split(text or "") if len(s) > min_len]


def cjk_words(text: Any, min_len: int = 1) -> List[str]:
    return [w for w in _CJK_RUN_RE.findall(coerce_text(text)) if len(w) >= min_len]


def extract_text_pattern(text: Any, max_len: int = 20) -> str:
    """
    Canonical signature used as the learning-store key: digit runs → #NUM#,
    latin runs → #ENG#, everything but CJK and '#' stripped, truncated.
    """
    out = coerce_text(text).lower()
    out = _DIGITS_RE.sub("#NUM#", out)
    out = _LATIN_RE.sub("#ENG#", out)
    out = _PATTERN_STRIP_RE.sub("", out)[:max_len]
    return out or "#EMPTY#"


def round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))


def clamp(lo: float, hi: float, x: float) -> float:
    return max(lo, min(hi, x))


# ===========================================================================
# JSON I/O
# ===========================================================================
def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def atomic_write_json(path: Path, data: Any, *, indent: Optional[int] = 2) -> None:
    """Write-then-rename; raises ``OSError``/``TypeError`` to the caller."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp{os.getpid()}")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass


# ===========================================================================
# Lexicon / metadata loading
# ===========================================================================
def _sanitize_lexicon(raw: Any) -> Lexicon:
    if not isinstance(raw, dict):
        return {}
    out: Lexicon = {}
    for mood, words in raw.items():
        if MoodCategory.parse(mood) is None:
            logger.warning("[lexicon] unknown category %r ignored", mood)
            continue
        if not isinstance(words, (list, tuple)):
            continue
        label = MoodCategory.parse(mood).value
        out[label] = [w for w in words if isinstance(w, str) and w]
    return out


def load_lexicon(paths: Optional[Iterable[Path]] = None) -> Lexicon:
    """
    Walk the candidate documents; the first that parses to a non-empty mapping
    wins. Nothing usable → ``{}`` (every input then takes the default-mood path).
    """
    for p in (paths if paths is not None else config.lexicon_candidates()):
        p = Path(p)
        if not p.is_file():
            logger.debug("[lexicon] candidate missing: %s", p)
            continue
        try:
            lex = _sanitize_lexicon(read_json(p))
        except (OSError, ValueError) as e:
            logger.warning("[lexicon] failed to load %s: %s", p, e)
            continue
        if lex:
            logger.info("[lexicon] loaded %s (%d categories, %d keywords)",
                        p.name, len(lex), sum(len(v) for v in lex.values()))
            return lex
        logger.warning("[lexicon] %s is empty or malformed", p)
    logger.warning("[lexicon] no usable lexicon; falling back to an empty lexicon")
    return {}


def load_categories(paths: Optional[Iterable[Path]] = None) -> CategoryTable:
    for p in (paths if paths is not None else config.categories_candidates()):
        p = Path(p)
        if not p.is_file():
            continue
        try:
            raw = read_json(p)
        except (OSError, ValueError) as e:
            logger.warning("[categories] failed to load %s: %s", p, e)
            continue
        if isinstance(raw, dict) and raw:
            return {
                MoodCategory.parse(k).value: dict(v)
                for k, v in raw.items()
                if MoodCategory.parse(k) is not None and isinstance(v, dict)
            }
    logger.warning("[categories] no usable category metadata; defaults will be used")
    return {}


# ===========================================================================
# Payload
# ===========================================================================
@dataclass
class Payload:
    """Per-call stage input. ``raw_text`` is the untouched (coerced) input."""

    raw_text: str
    lexicon: Lexicon = field(default_factory=dict)
    categories: CategoryTable = field(default_factory=dict)
    policy: config.MoodPolicy = field(default_factory=lambda: config.MOOD_POLICY)
    store: Any = None
    now: datetime = field(default_factory=datetime.now)
    matcher: Any = None
    corrector: Any = None
    grouper: Any = None
    normalized: str = ""
    processed: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)
    trace: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.raw_text = coerce_text(self.raw_text)
        if not self.normalized:
            self.normalized = normalize_text(self.raw_text)
        if not self.processed:
            self.processed = preprocess_text(self.raw_text)

    @property
    def length(self) -> int:
        return len(self.processed)

    def stamp(self, step: str, status: str, started: Optional[float] = None,
              error: Optional[BaseException] = None) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"step": step, "status": status}
        if started is not None:
            entry["duration_ms"] = round((time.perf_counter() - started) * 1000, 3)
        if error is not None:
            entry["error"] = str(error)[:300]
            entry["error_class"] = type(error).__name__
        self.trace.append(entry)
        return entry


StageFn = Callable[[Payload, Optional[DetectionResult]], DetectionResult]


# ===========================================================================
# Orchestrator
# ===========================================================================
def resolve_entrypoint(target: str) -> StageFn:
    mod_name, _, attr = (target or "").partition(":")
    if not mod_name or not attr:
        raise PipelineConfigError(f"Malformed entrypoint: {target!r}")
    try:
        fn = getattr(importlib.import_module(mod_name), attr)
    except (ImportError, AttributeError) as e:
        raise PipelineConfigError(f"Cannot resolve entrypoint {target!r}: {e}") from e
    if not callable(fn):
        raise PipelineConfigError(f"Entrypoint {target!r} is not callable")
    return fn


class MoodPipelineOrchestrator:
    """
    Ordered-stage runner.

    Each stage is ``fn(payload, prior) -> DetectionResult``; the first stage
    receives ``prior=None``. Empty input (after preprocessing) short-circuits
    to a calm/0 result that only goes through the grouping stage.
    """

    SHORT_CIRCUIT_STEPS = ("emotion_grouping",)

    def __init__(
        self,
        *,
        lexicon: Optional[Lexicon] = None,
        categories: Optional[CategoryTable] = None,
        store: Any = None,
        policy: Optional[config.MoodPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        matcher: Any = None,
        corrector: Any = None,
        grouper: Any = None,
        pipeline: Optional[Sequence[str]] = None,
        entrypoints: Optional[Mapping[str, str]] = None,
        on_error: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.lexicon: Lexicon = lexicon if lexicon is not None else {}
        self.categories: CategoryTable = categories if categories is not None else {}
        self.store = store
        self.matcher = matcher
        self.corrector = corrector
        self.grouper = grouper
        self.policy = policy or config.MOOD_POLICY
        self.clock = clock or datetime.now
        self.on_error = dict(config.STEP_ON_ERROR if on_error is None else on_error)
        self.steps: List[Tuple[str, StageFn]] = self._build_steps(
            list(pipeline if pipeline is not None else config.MOOD_PIPELINE),
            dict(entrypoints if entrypoints is not None else config.MODULE_ENTRYPOINTS),
        )

    @staticmethod
    def _build_steps(names: List[str], entrypoints: Dict[str, str]) -> List[Tuple[str, StageFn]]:
        seen = set()
        steps: List[Tuple[str, StageFn]] = []
        for nm in names:
            if nm in seen:
                raise PipelineConfigError(f"Duplicated step name: {nm}")
            seen.add(nm)
            if nm not in entrypoints:
                raise PipelineConfigError(f"No MODULE_ENTRYPOINTS for step '{nm}'")
            steps.append((nm, resolve_entrypoint(entrypoints[nm])))
        return steps

    @property
    def step_names(self) -> List[str]:
        return [nm for nm, _ in self.steps]

    def make_payload(self, text: Any) -> Payload:
        return Payload(
            raw_text=text,
            lexicon=self.lexicon,
            categories=self.categories,
            policy=self.policy,
            store=self.store,
            matcher=self.matcher,
            corrector=self.corrector,
            grouper=self.grouper,
            now=self.clock(),
        )

    def process_text(self, text: Any) -> DetectionResult:
        payload = self.make_payload(text)
        return self.run(payload)

    def run(self, payload: Payload) -> DetectionResult:
        if not payload.processed:
            result: Optional[DetectionResult] = empty_result(payload.categories)
            steps = [(nm, fn) for nm, fn in self.steps if nm in self.SHORT_CIRCUIT_STEPS]
            for nm, fn in self.steps:
                if nm not in self.SHORT_CIRCUIT_STEPS:
                    payload.stamp(nm, "skip")
        else:
            result = None
            steps = self.steps

        for nm, fn in steps:
            started = time.perf_counter()
            try:
                result = fn(payload, result)
            except Exception as e:
                policy = self.on_error.get(nm, "raise")
                payload.stamp(nm, "error", started, e)
                if policy != "skip" or result is None:
                    raise
                logger.warning("[pipeline] step '%s' failed, carrying prior result: %s", nm, e)
                continue
            entry = payload.stamp(nm, "ok", started)
            logger.debug("[pipeline] %s -> %s (%s%%) in %sms",
                         nm, result.main.value, result.confidence, entry.get("duration_ms"))
        assert result is not None
        return result
