"""Tests for the lexicon matcher and the text helpers it depends on."""

import pytest

from zhmood.data_utils import extract_text_pattern, normalize_text, preprocess_text, split_segments
from zhmood.emotion_analysis.linguistic_matcher import keyword_weight, match_text, run_lexicon_stage
from zhmood.emotion_analysis.result_types import ALL_CATEGORIES, MoodCategory


class TestPreprocessing:
    def test_punctuation_becomes_space(self):
        assert preprocess_text("你好，世界！") == "你好 世界"

    def test_lowercase_and_whitespace_collapse(self):
        assert preprocess_text("  WTF   真的  ") == "wtf 真的"

    def test_normalize_keeps_punctuation(self):
        assert normalize_text("唉...  算了") == "唉... 算了"

    def test_non_string_is_empty(self):
        assert preprocess_text(None) == ""
        assert preprocess_text(42) == ""

    def test_split_segments_drops_short_pieces(self):
        assert split_segments("好。今天很开心。明天继续加油！") == ["今天很开心", "明天继续加油"]

    def test_text_pattern(self):
        # letters of the inserted tokens are stripped too, only the '#' marks survive
        assert extract_text_pattern("今天写了3个bug") == "今天写了####个##"
        assert extract_text_pattern("今天写了5个BUG") == extract_text_pattern("今天写了3个bug")
        assert extract_text_pattern("!!!") == "#EMPTY#"


class TestKeywordWeight:
    @pytest.mark.parametrize("length,weight", [(1, 0.5), (2, 2.0), (3, 2.0), (4, 3.0), (7, 3.0)])
    def test_weight_by_length(self, length, weight):
        assert keyword_weight(length) == weight


class TestMatching:
    def test_single_hit(self, small_lexicon):
        out = match_text("今天代码写得很开心", small_lexicon)
        assert out.scores[MoodCategory.HAPPY] == 2.0
        assert out.hits[MoodCategory.HAPPY] == ["开心"]
        assert out.total == 2.0

    def test_every_occurrence_counts(self, small_lexicon):
        out = match_text("开心开心", small_lexicon)
        assert out.scores[MoodCategory.HAPPY] == 4.0
        assert out.hits[MoodCategory.HAPPY] == ["开心", "开心"]

    def test_nested_keyword_in_other_category_not_double_counted(self):
        lexicon = {"高兴": ["开心死了"], "愤怒": ["死"]}
        out = match_text("开心死了", lexicon)
        assert out.scores[MoodCategory.HAPPY] == 3.0
        assert out.scores[MoodCategory.ANGRY] == 0.0
        assert out.hits[MoodCategory.ANGRY] == []

    def test_longer_phrase_claims_before_shorter(self):
        lexicon = {"疲惫": ["累成狗", "累"]}
        out = match_text("累成狗了还是累", lexicon)
        assert out.hits[MoodCategory.TIRED] == ["累成狗", "累"]
        assert out.scores[MoodCategory.TIRED] == 2.5

    def test_case_insensitive_keyword(self):
        out = match_text(preprocess_text("WTF!"), {"愤怒": ["WTF"]})
        assert out.scores[MoodCategory.ANGRY] == 2.0
        assert out.hits[MoodCategory.ANGRY] == ["WTF"]

    def test_empty_lexicon_scores_zero(self):
        out = match_text("今天很开心", {})
        assert all(out.scores[c] == 0 for c in ALL_CATEGORIES)

    def test_repeated_calls_identical(self, small_lexicon):
        a = match_text("开心又紧张，压力山大", small_lexicon)
        b = match_text("开心又紧张，压力山大", small_lexicon)
        assert a.scores == b.scores
        assert a.hits == b.hits


class TestLexiconStage:
    def test_ranking_and_secondary(self, make_payload):
        result = run_lexicon_stage(make_payload("压力山大，有点紧张但也开心"))
        assert result.main is MoodCategory.ANXIOUS
        assert result.secondary == (MoodCategory.HAPPY,)
        assert result.hits == ("压力山大", "紧张")
        assert result.element == "土"

    def test_ties_keep_category_order(self, make_payload):
        result = run_lexicon_stage(make_payload("开心又难过"))
        assert result.main is MoodCategory.HAPPY
        assert result.secondary == (MoodCategory.SAD,)
