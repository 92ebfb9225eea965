# -*- coding: utf-8 -*-
# result_types.py
"""
Core value types shared by every pipeline stage.

- ``MoodCategory``: closed set of mood classes (values are the Chinese labels
  used by the lexicon and metadata documents).
- ``DetectionResult``: immutable per-call result; stages derive new results
  with :func:`dataclasses.replace` instead of mutating.
- ``CorrectionTrail``: what the context corrector applied, plus a reference
  to the pre-correction result.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class MoodCategory(str, Enum):
    HAPPY = "高兴"
    ANGRY = "愤怒"
    SAD = "悲伤"
    ANXIOUS = "焦虑"
    TIRED = "疲惫"
    CALM = "平静"
    SURPRISED = "惊讶"
    BORED = "无聊"

    @classmethod
    def parse(cls, value: Union[str, "MoodCategory", None]) -> Optional["MoodCategory"]:
        """Accepts a member, a Chinese label or an enum name (case-insensitive); None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        v = value.strip()
        for member in cls:
            if v == member.value or v.upper() == member.name:
                return member
        return None

    def __str__(self) -> str:
        return self.value


ALL_CATEGORIES: Tuple[MoodCategory, ...] = tuple(MoodCategory)


def zero_scores() -> Dict[MoodCategory, float]:
    return {c: 0.0 for c in ALL_CATEGORIES}


def rank_categories(scores: Mapping[MoodCategory, float]) -> List[MoodCategory]:
    """Descending by score; ties keep the fixed category order (stable sort)."""
    return sorted(ALL_CATEGORIES, key=lambda c: -float(scores.get(c, 0.0)))


def pick_secondary(
    ranked: List[MoodCategory], scores: Mapping[MoodCategory, float], limit: int = 2
) -> Tuple[MoodCategory, ...]:
    return tuple(c for c in ranked[1:] if float(scores.get(c, 0.0)) > 0)[:limit]


def _freeze(d: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(d or {}))


# =============================================================================
# Dataclasses
# =============================================================================
@dataclass(frozen=True)
class CorrectionTrail:
    time_slot: str
    time_weight: float                 # weight applied to the prior main category
    context_bonus: float               # bonus applied to the prior main category
    intensity_multiplier: float
    intensity_tier: Optional[str] = None
    applied_rules: Tuple[Mapping[str, Any], ...] = ()
    category_bonuses: Mapping[MoodCategory, float] = field(default_factory=dict)
    prior_result: Optional["DetectionResult"] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "applied_rules", tuple(_freeze(r) for r in self.applied_rules))
        object.__setattr__(self, "category_bonuses", _freeze(self.category_bonuses))

    def to_dict(self, include_prior: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "time_slot": self.time_slot,
            "time_weight": self.time_weight,
            "context_bonus": round(self.context_bonus, 4),
            "intensity_multiplier": self.intensity_multiplier,
            "intensity_tier": self.intensity_tier,
            "applied_rules": [dict(r) for r in self.applied_rules],
            "category_bonuses": {str(k): round(v, 4) for k, v in self.category_bonuses.items()},
        }
        if include_prior and self.prior_result is not None:
            out["prior_result"] = self.prior_result.to_dict()
        return out


@dataclass(frozen=True)
class DetectionResult:
    main: MoodCategory
    confidence: int = 0
    secondary: Tuple[MoodCategory, ...] = ()
    scores: Mapping[MoodCategory, float] = field(default_factory=dict)
    hits: Tuple[str, ...] = ()
    all_hits: Mapping[MoodCategory, Tuple[str, ...]] = field(default_factory=dict)
    element: Optional[str] = None
    tone: Optional[str] = None
    emoji: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)
    is_fallback: bool = False
    learning_notes: Mapping[str, str] = field(default_factory=dict)
    correction: Optional[CorrectionTrail] = None
    emotion_group: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "secondary", tuple(self.secondary))
        object.__setattr__(self, "hits", tuple(self.hits))
        object.__setattr__(self, "scores", _freeze(self.scores))
        object.__setattr__(
            self, "all_hits", MappingProxyType({k: tuple(v) for k, v in (self.all_hits or {}).items()})
        )
        object.__setattr__(self, "details", _freeze(self.details))
        object.__setattr__(self, "learning_notes", _freeze(self.learning_notes))
        if self.emotion_group is not None:
            object.__setattr__(self, "emotion_group", _freeze(self.emotion_group))

    # ---------------------------------------------------------------------
    # Convenience
    # ---------------------------------------------------------------------
    @property
    def total_score(self) -> float:
        return float(sum(self.scores.values()))

    def evolve(self, **changes: Any) -> "DetectionResult":
        return replace(self, **changes)

    def with_main(
        self,
        main: MoodCategory,
        categories: Optional[Mapping[str, Mapping[str, Any]]] = None,
        **changes: Any,
    ) -> "DetectionResult":
        """Switch the main category and refresh the metadata-derived fields."""
        meta = category_fields(main, categories or {}, is_fallback=changes.get("is_fallback", self.is_fallback))
        changes.setdefault("hits", self.all_hits.get(main, ()))
        return replace(self, main=main, **meta, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "main": self.main.value,
            "secondary": [c.value for c in self.secondary],
            "confidence": self.confidence,
            "element": self.element,
            "tone": self.tone,
            "emoji": self.emoji,
            "hits": list(self.hits),
            "scores": {c.value: round(float(v), 4) for c, v in self.scores.items()},
            "details": dict(self.details),
            "is_fallback": self.is_fallback,
            "learning_notes": dict(self.learning_notes),
            "correction": self.correction.to_dict() if self.correction else None,
            "emotion_group": _plain(self.emotion_group),
        }


def _plain(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return {str(k): _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    if isinstance(obj, MoodCategory):
        return obj.value
    return obj


# element/tone defaults differ between the fallback path and the matched path
_DEFAULTS_MATCHED = {"element": "土", "tone": "安抚型", "emoji": "😐"}
_DEFAULTS_FALLBACK = {"element": "金", "tone": "维持型", "emoji": "😐"}


def category_fields(
    category: MoodCategory,
    categories: Mapping[str, Mapping[str, Any]],
    *,
    is_fallback: bool = False,
) -> Dict[str, Any]:
    meta = categories.get(category.value) or {}
    defaults = _DEFAULTS_FALLBACK if is_fallback else _DEFAULTS_MATCHED
    return {
        "element": meta.get("element") or defaults["element"],
        "tone": meta.get("tone") or defaults["tone"],
        "emoji": meta.get("emoji") or defaults["emoji"],
        "details": {
            "intensity": meta.get("intensity") or "中",
            "tags": list(meta.get("tags") or []),
            "description": meta.get("description") or "",
        },
    }


def empty_result(categories: Optional[Mapping[str, Mapping[str, Any]]] = None) -> DetectionResult:
    """Result for input that is empty after preprocessing."""
    meta = category_fields(MoodCategory.CALM, categories or {}, is_fallback=True)
    return DetectionResult(main=MoodCategory.CALM, confidence=0, is_fallback=True, **meta)
