"""
Tests for OCR quality scoring and tier recommendation.
"""

import pytest

from shiftscan.utils.scoring import (
    Recommendation,
    count_keyword_hits,
    count_money_patterns,
    score_ocr_output,
    weird_char_ratio,
)


def _noisy_mid_quality_text() -> str:
    """150 chars, 4 money tokens, 4 keywords, ~5% weird characters."""
    text = "Sales 12.50 Cash 30.00 Tax 4.10 Fuel 22.00 " + "§" * 7
    return text + "x" * (150 - len(text))


class TestScoreComponents:
    """Individual signals feeding the score."""

    def test_money_patterns(self):
        assert count_money_patterns("GROSS $1,245.67 NET 1150.20 TAX $72") == 3

    def test_bare_integers_are_not_money(self):
        assert count_money_patterns("REGISTER 02 TRANSACTIONS 142") == 0

    def test_id_only_printout_scores_below_one_with_amounts(self):
        ids_only = score_ocr_output("SHIFT REPORT REGISTER 02 CASHIER 1047 TRANSACTIONS 142")
        with_amount = score_ocr_output("SHIFT REPORT REGISTER 02 CASHIER 1047 TRANSACTIONS 142 SALES $1,245.67")

        assert ids_only.money_pattern_count == 0
        assert with_amount.money_pattern_count == 1
        assert ids_only.score < with_amount.score

    def test_keyword_hits_are_case_insensitive_and_distinct(self):
        assert count_keyword_hits("FUEL fuel Fuel") == 1
        assert count_keyword_hits("Gross Sales") == 2

    def test_weird_char_ratio(self):
        assert weird_char_ratio("abcd") == 0.0
        assert weird_char_ratio("ab§§") == pytest.approx(0.5)

    def test_empty_text_has_full_weird_ratio(self):
        assert weird_char_ratio("") == 1.0


class TestScenarios:
    """End-to-end score / recommendation scenarios."""

    def test_empty_text_recommends_vision(self):
        result = score_ocr_output("")

        assert result.score == 0
        assert result.text_length == 0
        assert result.money_pattern_count == 0
        assert result.keyword_hits == 0
        assert result.recommendation == Recommendation.USE_VISION

    def test_none_is_treated_as_empty(self):
        assert score_ocr_output(None).score == 0

    def test_strong_report_accepts_deterministic(self, report_text):
        result = score_ocr_output(report_text)

        assert result.text_length > 300
        assert result.keyword_hits >= 8
        assert result.money_pattern_count >= 5
        assert result.score >= 70
        assert result.recommendation == Recommendation.ACCEPT_DETERMINISTIC

    def test_noisy_mid_length_text_normalizes(self):
        text = _noisy_mid_quality_text()
        result = score_ocr_output(text)

        assert result.text_length == 150
        assert result.money_pattern_count == 4
        assert result.keyword_hits == 4
        assert result.weird_char_ratio <= 0.1
        assert 40 <= result.score <= 69
        assert result.recommendation == Recommendation.NORMALIZE_TEXT

    def test_garbage_is_penalized(self):
        result = score_ocr_output("§¶•ªº–≠" * 20)

        assert result.weird_char_ratio > 0.3
        assert result.recommendation == Recommendation.USE_VISION


class TestScoreProperties:
    """Invariants that hold for any input."""

    @pytest.mark.parametrize("text", [
        "",
        "x",
        "$1.00 " * 500,
        "total sales cash credit debit fuel gallons tax variance short over " * 50,
        "\x00\x01\x02" * 100,
    ])
    def test_score_is_clamped(self, text):
        assert 0 <= score_ocr_output(text).score <= 100

    def test_pure_function(self, report_text):
        assert score_ocr_output(report_text) == score_ocr_output(report_text)

    def test_to_dict_serializes_recommendation(self):
        data = score_ocr_output("").to_dict()
        assert data['recommendation'] == 'use_vision'
        assert 'score' not in score_ocr_output("").analysis()
