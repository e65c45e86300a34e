"""
Tests for NPS classification and aggregation.

These tests verify:
    - Category boundaries for every score 0..10
    - The NPS formula, including the empty case and half-up rounding
    - Segmenting respondents and skipping malformed answers
"""

import pytest

from npsbot.domain.entities import Respondent
from npsbot.domain.enums import NPSCategory, QuestionId
from npsbot.use_cases.nps import classify, extract_score, nps_score, segment, segment_by


def respondent(code, recommend=None, rehire=None, service_type="experience", scopes=None):
    answers = {}
    if recommend is not None:
        answers[QuestionId.RECOMMEND_SCORE.value] = recommend
    if rehire is not None:
        answers[QuestionId.REHIRE_SCORE.value] = rehire
    return Respondent(
        code=code,
        name=f"Client {code}",
        email=f"{code}@example.com",
        service_type=service_type,
        language="pt",
        scopes=scopes or [],
        answers=answers,
    )


def everyone(r):
    return True


class TestClassify:
    @pytest.mark.parametrize("score", [9, 10])
    def test_promoters(self, score):
        assert classify(score) == NPSCategory.PROMOTER

    @pytest.mark.parametrize("score", [7, 8])
    def test_neutrals(self, score):
        assert classify(score) == NPSCategory.NEUTRAL

    @pytest.mark.parametrize("score", [0, 1, 2, 3, 4, 5, 6])
    def test_detractors(self, score):
        assert classify(score) == NPSCategory.DETRACTOR

    def test_every_score_gets_exactly_one_category(self):
        for score in range(0, 11):
            assert classify(score) in set(NPSCategory)


class TestNpsScore:
    def test_empty_is_zero(self):
        assert nps_score([]) == 0

    @pytest.mark.parametrize(
        "scores, expected",
        [
            ([10], 100),
            ([1], -100),
            ([8, 7], 0),
            ([9, 7, 3], 0),
            ([10, 9, 9, 2], 50),
            ([10, 6, 6], -33),
            ([10, 10, 3], 33),
            ([9, 9, 8, 1, 1, 1], -17),
        ],
    )
    def test_formula(self, scores, expected):
        assert nps_score(scores) == expected

    def test_half_rounds_up(self):
        # (1 - 0) / 8 * 100 == 12.5
        assert nps_score([10, 7, 7, 7, 7, 7, 7, 7]) == 13

    def test_negative_half_rounds_toward_positive(self):
        # (0 - 1) / 8 * 100 == -12.5
        assert nps_score([1, 7, 7, 7, 7, 7, 7, 7]) == -12


class TestExtractScore:
    @pytest.mark.parametrize("raw, expected", [("9", 9), (" 10 ", 10), ("0", 0)])
    def test_valid(self, raw, expected):
        assert extract_score(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "7.5", "11", "-1", "true"])
    def test_malformed(self, raw):
        assert extract_score(raw) is None


class TestSegment:
    def test_single_promoter_respondent(self):
        r = respondent("a", recommend="9", rehire="10")
        assert classify(9) == NPSCategory.PROMOTER
        assert classify(10) == NPSCategory.PROMOTER
        assert segment([r], everyone, QuestionId.RECOMMEND_SCORE).nps == 100
        assert segment([r], everyone, QuestionId.REHIRE_SCORE).nps == 100

    def test_one_of_each_category(self):
        rs = [respondent("a", "9"), respondent("b", "7"), respondent("c", "3")]
        result = segment(rs, everyone, QuestionId.RECOMMEND_SCORE)
        assert (result.promoters, result.neutrals, result.detractors) == (1, 1, 1)
        assert result.total == 3
        assert result.nps == 0

    def test_malformed_and_missing_are_excluded_from_total(self):
        rs = [
            respondent("a", "10"),
            respondent("b", "not a number"),
            respondent("c"),
            respondent("d", ""),
            respondent("e", "12"),
        ]
        result = segment(rs, everyone, QuestionId.RECOMMEND_SCORE)
        assert result.total == 1
        assert result.nps == 100

    def test_predicate_filters_respondents(self):
        rs = [
            respondent("a", "10", service_type="experience"),
            respondent("b", "2", service_type="strategy"),
            respondent("c", "9", service_type="experience"),
        ]
        result = segment(rs, lambda r: r.service_type == "strategy", QuestionId.RECOMMEND_SCORE)
        assert result.total == 1
        assert result.detractors == 1
        assert result.nps == -100

    def test_empty_segment(self):
        result = segment([], everyone, QuestionId.RECOMMEND_SCORE)
        assert result.total == 0
        assert result.nps == 0

    def test_segment_by_service_type(self):
        rs = [
            respondent("a", "10", service_type="experience"),
            respondent("b", "2", service_type="strategy"),
            respondent("c", "8", service_type="experience"),
        ]
        groups = segment_by(rs, lambda r: [r.service_type], QuestionId.RECOMMEND_SCORE)
        assert set(groups) == {"experience", "strategy"}
        assert groups["experience"].total == 2
        assert groups["experience"].nps == 50
        assert groups["strategy"].nps == -100

    def test_segment_by_multi_valued_tags(self):
        rs = [
            respondent("a", "10", scopes=["design", "tech"]),
            respondent("b", "5", scopes=["tech"]),
        ]
        groups = segment_by(rs, lambda r: r.scopes, QuestionId.RECOMMEND_SCORE)
        assert groups["design"].total == 1
        assert groups["design"].nps == 100
        assert groups["tech"].total == 2
        assert groups["tech"].nps == 0
