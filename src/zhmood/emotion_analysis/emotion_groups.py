# -*- coding: utf-8 -*-
# emotion_groups.py
"""
Emotion group mapper: main category → one of five groups, confidence →
intensity tier, (group, tier) → advice triple, plus a one-line summary.
Lookups never raise; an unmapped category yields an error block.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .result_types import DetectionResult, MoodCategory

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


EMOTION_GROUPS: Dict[str, Dict[str, Any]] = {
    "energy": {
        "name": "活力型",
        "description": "充满动力和行动力的情绪状态",
        "emotions": ["高兴", "惊讶"],
        "characteristics": ["主动性强", "执行力高", "创造力旺盛"],
        "icon": "⚡",
        "color": "yellow",
    },
    "calm": {
        "name": "平和型",
        "description": "内心平静安稳的情绪状态",
        "emotions": ["平静"],
        "characteristics": ["思维清晰", "决策理性", "稳定可靠"],
        "icon": "🧘",
        "color": "blue",
    },
    "stress": {
        "name": "压力型",
        "description": "承受压力和挑战的情绪状态",
        "emotions": ["焦虑", "愤怒"],
        "characteristics": ["紧张感强", "需要释放", "容易激动"],
        "icon": "💢",
        "color": "red",
    },
    "low": {
        "name": "低沉型",
        "description": "情绪低落需要关怀的状态",
        "emotions": ["悲伤", "疲惫"],
        "characteristics": ["能量不足", "需要休息", "需要支持"],
        "icon": "😔",
        "color": "gray",
    },
    "passive": {
        "name": "消极型",
        "description": "缺乏动力的被动情绪状态",
        "emotions": ["无聊"],
        "characteristics": ["缺乏兴趣", "需要刺激", "寻求改变"],
        "icon": "😴",
        "color": "purple",
    },
}

# inclusive ranges, checked in this order; first match wins (30 → low, 60 → moderate, 80 → high)
INTENSITY_LEVELS: Tuple[Tuple[str, Dict[str, Any]], ...] = (
    ("low",      {"name": "轻微", "range": (0, 30),   "description": "情绪表现较为温和", "modifier": 0.8}),
    ("moderate", {"name": "中等", "range": (30, 60),  "description": "情绪表现明显",     "modifier": 1.0}),
    ("high",     {"name": "强烈", "range": (60, 80),  "description": "情绪表现激烈",     "modifier": 1.2}),
    ("extreme",  {"name": "极度", "range": (80, 100), "description": "情绪表现非常强烈", "modifier": 1.5}),
)

GROUP_ADVICE: Dict[str, Dict[str, Dict[str, str]]] = {
    "energy": {
        "high": {"programming": "适合攻克技术难题，实现创新突破",
                 "lifestyle": "保持这种状态，但注意适度休息",
                 "caution": "避免过度承诺，量力而行"},
        "moderate": {"programming": "适合推进新功能开发，学习新技术",
                     "lifestyle": "是展现才华的好时机",
                     "caution": "保持专注，避免分散注意力"},
        "low": {"programming": "适合处理日常开发任务",
                "lifestyle": "可以尝试一些轻松的活动",
                "caution": "不要勉强自己做复杂工作"},
    },
    "calm": {
        "high": {"programming": "最佳的架构设计和重要决策时机",
                 "lifestyle": "深度思考和长期规划的好时候",
                 "caution": "不要被外界干扰打破平静"},
        "moderate": {"programming": "适合代码重构和文档整理",
                     "lifestyle": "保持这种良好状态",
                     "caution": "避免过于被动，需要适度主动"},
    },
    "stress": {
        "high": {"programming": "暂缓重要技术决策，专注简单任务",
                 "lifestyle": "需要立即减压，离开压力源",
                 "caution": "避免做重要决定，避免人际冲突"},
        "moderate": {"programming": "可以处理熟悉的工作，避免新挑战",
                     "lifestyle": "适度运动或冥想来缓解压力",
                     "caution": "注意情绪管理，避免传染给他人"},
        "low": {"programming": "正常工作，但要注意压力预防",
                "lifestyle": "适当放松，做喜欢的事情",
                "caution": "提前识别压力源头"},
    },
    "low": {
        "high": {"programming": "建议暂停工作，优先休息恢复",
                 "lifestyle": "寻求支持，给自己时间和空间",
                 "caution": "不要强撑，及时寻求帮助"},
        "moderate": {"programming": "选择简单熟悉的任务，降低难度",
                     "lifestyle": "做一些让自己舒服的事情",
                     "caution": "避免重大决定，注意身心健康"},
    },
    "passive": {
        "high": {"programming": "尝试新技术或有趣的项目来激发兴趣",
                 "lifestyle": "改变环境，尝试新活动",
                 "caution": "避免完全消极，寻找小的成就感"},
        "moderate": {"programming": "可以做些常规工作，但要寻找乐趣",
                     "lifestyle": "适度社交，寻找新刺激",
                     "caution": "不要让无聊状态持续太久"},
    },
}

GENERIC_ADVICE: Dict[str, str] = {
    "programming": "继续保持当前工作节奏",
    "lifestyle": "照顾好自己的身心健康",
    "caution": "注意情绪变化，适时调整",
}


class EmotionGroupAnalyzer:
    def __init__(
        self,
        groups: Optional[Mapping[str, Mapping[str, Any]]] = None,
        advice: Optional[Mapping[str, Mapping[str, Mapping[str, str]]]] = None,
    ) -> None:
        self.groups = groups if groups is not None else EMOTION_GROUPS
        self.advice = advice if advice is not None else GROUP_ADVICE
        self.emotion_to_group: Dict[str, str] = {}
        for gid, g in self.groups.items():
            for emotion in g.get("emotions", ()):
                self.emotion_to_group[emotion] = gid

    def group_of(self, emotion: Union[MoodCategory, str]) -> Optional[str]:
        return self.emotion_to_group.get(str(emotion))

    @staticmethod
    def intensity_level(confidence: float) -> Dict[str, Any]:
        for level_id, level in INTENSITY_LEVELS:
            lo, hi = level["range"]
            if lo <= confidence <= hi:
                return {"id": level_id, **level}
        return {"id": "moderate", **dict(INTENSITY_LEVELS)["moderate"]}

    def group_advice(self, group_id: str, intensity_id: str) -> Dict[str, str]:
        return dict((self.advice.get(group_id) or {}).get(intensity_id) or GENERIC_ADVICE)

    def secondary_groups(self, secondary: Sequence[Union[MoodCategory, str]]) -> List[Dict[str, str]]:
        out: List[Dict[str, str]] = []
        for emotion in secondary:
            gid = self.group_of(emotion)
            if gid is None:
                continue
            g = self.groups[gid]
            out.append({"emotion": str(emotion), "groupId": gid, "groupName": g["name"], "icon": g["icon"]})
        return out

    def analyze(
        self,
        main: Union[MoodCategory, str],
        confidence: float,
        secondary: Sequence[Union[MoodCategory, str]] = (),
    ) -> Dict[str, Any]:
        gid = self.group_of(main)
        if gid is None:
            logger.warning("[groups] no emotion group for %r", str(main))
            return {"group": None, "intensity": "moderate", "advice": None, "error": f"未知情绪: {str(main)}"}

        group = self.groups[gid]
        intensity = self.intensity_level(confidence)
        sec = self.secondary_groups(secondary)

        summary = f"{group['icon']} {intensity['name']}{group['name']}"
        if sec:
            names = list(dict.fromkeys(s["groupName"] for s in sec))
            summary += f"，伴有{'、'.join(names)}倾向"

        return {
            "main": {
                "emotion": str(main),
                "group": {
                    "id": gid,
                    "name": group["name"],
                    "description": group["description"],
                    "icon": group["icon"],
                    "color": group["color"],
                    "characteristics": list(group["characteristics"]),
                },
                "intensity": {
                    "id": intensity["id"],
                    "name": intensity["name"],
                    "description": intensity["description"],
                    "level": confidence,
                },
            },
            "secondary": sec,
            "advice": self.group_advice(gid, intensity["id"]),
            "summary": summary,
        }

    def all_groups(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(dict(self.groups))

    def group_by_id(self, group_id: str) -> Optional[Dict[str, Any]]:
        g = self.groups.get(group_id)
        return copy.deepcopy(dict(g)) if g is not None else None


_DEFAULT_ANALYZER = EmotionGroupAnalyzer()


def run_grouping_stage(payload: Any, prior: Optional[DetectionResult]) -> DetectionResult:
    if prior is None:
        return prior
    analyzer = payload.grouper or _DEFAULT_ANALYZER
    block = analyzer.analyze(prior.main, prior.confidence, prior.secondary)
    return prior.evolve(emotion_group=block)
