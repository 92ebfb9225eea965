"""End-to-end tests through the orchestrator and ChineseMoodDetector."""

import json

import pytest

from zhmood.data_utils import MoodPipelineOrchestrator, PipelineConfigError, load_lexicon
from zhmood.detector import ChineseMoodDetector
from zhmood.emotion_analysis import linguistic_matcher
from zhmood.emotion_analysis.context_extractor import ContextCorrector
from zhmood.emotion_analysis.emotion_groups import EmotionGroupAnalyzer
from zhmood.emotion_analysis.learning_engine import LearningStore
from zhmood.emotion_analysis.result_types import MoodCategory
from zhmood.emotion_analysis.transition_analyzer import run_long_text_stage


class _BrokenStore:
    """Learning store double whose every operation fails."""

    enabled = True

    def adjust(self, text, result):
        raise RuntimeError("adjust failed")

    def record(self, *args, **kwargs):
        raise RuntimeError("record failed")

    def flush(self):
        raise RuntimeError("flush failed")


class TestEmptyAndInvalidInput:
    @pytest.mark.parametrize("text", ["", "   ", "，。！", None, 123, ["开心"]])
    def test_calm_zero(self, detector, text):
        result = detector.detect(text)
        assert result.main is MoodCategory.CALM
        assert result.confidence == 0
        assert result.hits == ()
        assert dict(result.scores) == {}
        assert result.emotion_group["summary"].startswith("🧘")

    def test_empty_input_not_recorded(self, detector, store):
        detector.detect("")
        assert not store.learning_data_path.exists()


class TestDetection:
    def test_matched_text(self, detector):
        result = detector.detect("今天太开心了")
        assert result.main is MoodCategory.HAPPY
        assert result.hits == ("开心",)
        assert result.element == "火"
        assert result.correction.intensity_tier == "high"
        assert result.emotion_group["main"]["group"]["id"] == "energy"

    def test_fallback_text(self, detector):
        result = detector.detect("今天天气一般")
        assert result.is_fallback
        assert result.main is MoodCategory.CALM

    def test_invariants_over_many_inputs(self, detector):
        texts = ["开心", "气死了!!!", "唉...", "压力山大，好累", "没想到居然这样",
                 "无聊" * 20, "a" * 60, "今天写了3个bug", "?"]
        for result in detector.batch_detect(texts):
            assert 0 <= result.confidence <= 100
            assert result.main in MoodCategory
            assert all(v >= 0 for v in result.scores.values())

    def test_repeatable_without_learning(self, small_lexicon, categories, fixed_clock, tmp_path):
        det = ChineseMoodDetector(small_lexicon, categories,
                                  store=LearningStore(tmp_path, enabled=False), clock=fixed_clock)
        a, b = det.detect("压力山大但是开心"), det.detect("压力山大但是开心")
        assert a.scores == b.scores
        assert a.hits == b.hits
        assert a.confidence == b.confidence

    def test_detection_is_recorded(self, detector, store):
        detector.detect("今天太开心了")
        saved = json.loads(store.user_patterns_path.read_text(encoding="utf-8"))
        assert len(saved["emotionHistory"]) == 1
        assert saved["emotionHistory"][0]["mood"] == "高兴"
        assert saved["emotionHistory"][0]["context"]["time_slot"] == "afternoon"

    def test_batch(self, detector):
        assert [r.main for r in detector.batch_detect(["开心", "难过"])] == [MoodCategory.HAPPY, MoodCategory.SAD]
        assert detector.batch_detect(None) == []

    def test_to_dict_is_json_ready(self, detector):
        payload = json.dumps(detector.detect("这个bug让我很生气").to_dict(), ensure_ascii=False)
        assert '"main": "愤怒"' in payload


class TestMetadata:
    def test_list_categories(self, detector):
        assert detector.list_categories() == list(MoodCategory)

    def test_category_info(self, detector):
        assert detector.get_category_info("高兴")["element"] == "火"
        assert detector.get_category_info(MoodCategory.CALM)["emoji"] == "😌"
        assert detector.get_category_info("HAPPY")["tone"] == "庆祝型"
        assert detector.get_category_info("快乐") is None


class TestLexiconLoading:
    def test_malformed_candidate_skipped(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{broken", encoding="utf-8")
        good = tmp_path / "good.json"
        good.write_text(json.dumps({"高兴": ["开心"], "未知": ["x"]}, ensure_ascii=False), encoding="utf-8")
        assert load_lexicon([bad, tmp_path / "missing.json", good]) == {"高兴": ["开心"]}

    def test_nothing_usable_gives_empty(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("[]", encoding="utf-8")
        assert load_lexicon([bad]) == {}

    def test_empty_lexicon_degrades_to_fallback(self, categories, fixed_clock, tmp_path):
        det = ChineseMoodDetector({}, categories, store=LearningStore(tmp_path, enabled=False), clock=fixed_clock)
        result = det.detect("今天太开心了")
        assert result.is_fallback

    def test_bundled_lexicon_loads(self):
        lexicon = load_lexicon()
        assert "开心" in lexicon["高兴"]


class TestOrchestrator:
    def test_duplicate_step_rejected(self):
        with pytest.raises(PipelineConfigError):
            MoodPipelineOrchestrator(pipeline=["lexicon_matching", "lexicon_matching"])

    def test_unknown_step_rejected(self):
        with pytest.raises(PipelineConfigError):
            MoodPipelineOrchestrator(pipeline=["lexicon_matching", "sentiment_magic"])

    def test_bad_entrypoint_rejected(self):
        with pytest.raises(PipelineConfigError):
            MoodPipelineOrchestrator(
                pipeline=["lexicon_matching"],
                entrypoints={"lexicon_matching": "zhmood.emotion_analysis.linguistic_matcher:nope"},
            )

    def test_broken_learning_store_is_skipped(self, small_lexicon, categories, fixed_clock):
        orch = MoodPipelineOrchestrator(lexicon=small_lexicon, categories=categories,
                                        store=_BrokenStore(), clock=fixed_clock)
        payload = orch.make_payload("今天太开心了")
        result = orch.run(payload)
        assert result.main is MoodCategory.HAPPY
        statuses = {e["step"]: e["status"] for e in payload.trace}
        assert statuses["personal_learning"] == "error"
        assert statuses["learning_commit"] == "error"
        assert statuses["emotion_grouping"] == "ok"

    def test_trace_lists_every_step(self, small_lexicon, categories, fixed_clock):
        orch = MoodPipelineOrchestrator(lexicon=small_lexicon, categories=categories, clock=fixed_clock)
        payload = orch.make_payload("开心")
        orch.run(payload)
        assert [e["step"] for e in payload.trace] == orch.step_names


class _RecordingCorrector(ContextCorrector):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.texts = []

    def correct(self, text, result, now=None, categories=None):
        self.texts.append(text)
        return super().correct(text, result, now, categories)


class _RecordingGroups(EmotionGroupAnalyzer):
    def __init__(self):
        super().__init__()
        self.mains = []

    def analyze(self, main, confidence, secondary=()):
        self.mains.append(main)
        return super().analyze(main, confidence, secondary)


LONG_CONTRAST_TEXT = "今天上班的时候压力山大，感觉整个人都快要不行了，但是晚上回家以后和朋友一起吃饭聊天真的很开心"


class TestCollaborators:
    def test_injected_corrector_and_groups_are_used(self, small_lexicon, categories, store, fixed_clock):
        corrector, groups = _RecordingCorrector(), _RecordingGroups()
        det = ChineseMoodDetector(small_lexicon, categories, store=store, clock=fixed_clock,
                                  corrector=corrector, groups=groups)
        result = det.detect("今天太开心了")
        assert corrector.texts == ["今天太开心了"]
        assert groups.mains == [result.main]

    def test_empty_input_only_groups(self, small_lexicon, categories, store, fixed_clock):
        corrector, groups = _RecordingCorrector(), _RecordingGroups()
        det = ChineseMoodDetector(small_lexicon, categories, store=store, clock=fixed_clock,
                                  corrector=corrector, groups=groups)
        det.detect("")
        assert corrector.texts == []
        assert groups.mains == [MoodCategory.CALM]

    def test_detector_matcher_skips_lexicon_digest(self, detector, monkeypatch):
        def _fail(*args, **kwargs):
            raise AssertionError("lexicon re-hashed")

        monkeypatch.setattr(linguistic_matcher, "_lexicon_digest", _fail)
        assert not detector.detect(LONG_CONTRAST_TEXT).is_fallback

    def test_payload_resolves_matcher_once(self, make_payload, monkeypatch):
        calls = []
        original = linguistic_matcher._lexicon_digest

        def _counting(lexicon, policy):
            calls.append(1)
            return original(lexicon, policy)

        monkeypatch.setattr(linguistic_matcher, "_lexicon_digest", _counting)
        payload = make_payload(LONG_CONTRAST_TEXT)
        prior = linguistic_matcher.run_lexicon_stage(payload)
        run_long_text_stage(payload, prior)
        assert len(calls) == 1
        assert payload.matcher is not None

    def test_group_catalogue(self, detector):
        assert "energy" in detector.list_groups()
        assert detector.get_group("low")["name"] == "低沉型"
        assert detector.get_group("nope") is None
