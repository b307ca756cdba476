"""
Quality scoring for raw OCR text.

Four independent signals are summed into a 0-100 score:
- Text length:        up to +25
- Money tokens:       up to +30
- Shift keywords:     up to +30
- Weird characters:   down to -15

Only tokens with a $ or a two-digit cents part count as money. Bare integers
(register, operator and transaction numbers) do not, so a printout made mostly
of ids and counts scores lower than one that lists amounts.

The score picks the extraction tier. Cheap deterministic parsing is only
trusted when the signal is strong; noisy text goes to the text-normalization
tier; empty or garbage text goes straight to the vision tier.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Tuple
import re

__all__ = [
    'Recommendation', 'QualityScoreResult', 'score_ocr_output',
    'count_money_patterns', 'count_keyword_hits', 'weird_char_ratio',
    'SHIFT_KEYWORDS',
]


class Recommendation(str, Enum):
    """Tier recommended by the quality score."""
    ACCEPT_DETERMINISTIC = "accept_deterministic"
    NORMALIZE_TEXT = "normalize_text"
    USE_VISION = "use_vision"


# Terms expected on a gas-station / c-store shift report
SHIFT_KEYWORDS = (
    'total', 'sales', 'net', 'gross', 'fuel', 'gallons', 'gal',
    'cash', 'card', 'credit', 'debit', 'tender', 'payment',
    'over', 'short', 'variance', 'drawer',
    'shift', 'register', 'pos', 'report',
    'tax', 'discount', 'refund', 'void',
    'inside', 'store', 'merchandise', 'grocery',
    'transaction', 'customer', 'count',
)

# (threshold, points), checked top-down, first hit wins
LENGTH_TIERS: List[Tuple[int, int]] = [(500, 25), (300, 20), (200, 15), (100, 10), (50, 5)]
MONEY_TIERS: List[Tuple[int, int]] = [(10, 30), (5, 25), (3, 20), (1, 10)]
KEYWORD_TIERS: List[Tuple[int, int]] = [(10, 30), (7, 25), (5, 20), (3, 15), (1, 5)]
WEIRD_CHAR_PENALTIES: List[Tuple[float, int]] = [(0.3, 15), (0.2, 10), (0.1, 5)]

ACCEPT_THRESHOLD = 70
NORMALIZE_THRESHOLD = 40

# "$123.45", "$1,200", "1,245.67", "45.00" (a bare integer is not money)
MONEY_PATTERN = re.compile(r'\$\s?\d[\d,]*(?:\.\d{2})?|(?<![\w.])\d[\d,]*\.\d{2}(?![\d])')

# Letters, digits, whitespace, common punctuation and currency symbols
NORMAL_CHAR_PATTERN = re.compile(r'[a-zA-Z0-9\s.,\-:;$€£¥¢%/\\()\[\]#@&*+=\'"!?<>_|~]')


@dataclass(frozen=True)
class QualityScoreResult:
    """Score plus the diagnostics it was computed from."""
    score: int
    text_length: int
    money_pattern_count: int
    keyword_hits: int
    weird_char_ratio: float
    recommendation: Recommendation

    def analysis(self) -> Dict[str, Any]:
        """Diagnostic counts only (no score / recommendation)."""
        data = asdict(self)
        data.pop('score')
        data.pop('recommendation')
        return data

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['recommendation'] = self.recommendation.value
        return data


def count_money_patterns(text: str) -> int:
    """Count currency-looking tokens."""
    return len(MONEY_PATTERN.findall(text))


def count_keyword_hits(text: str) -> int:
    """Number of distinct shift keywords contained in the text (case-insensitive)."""
    lower_text = text.lower()
    return sum(1 for keyword in SHIFT_KEYWORDS if keyword in lower_text)


def weird_char_ratio(text: str) -> float:
    """
    Fraction of characters outside the allow-list.

    Empty text scores 1.0 so it always takes the full penalty.
    """
    if not text:
        return 1.0
    normal = len(NORMAL_CHAR_PATTERN.findall(text))
    return 1.0 - (normal / len(text))


def _tier_points(value, tiers) -> int:
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0


def _length_points(length: int) -> int:
    # Length tiers are strict ("> 500"), unlike the count tiers
    for threshold, points in LENGTH_TIERS:
        if length > threshold:
            return points
    return 0


def _weird_char_penalty(ratio: float) -> int:
    for threshold, penalty in WEIRD_CHAR_PENALTIES:
        if ratio > threshold:
            return penalty
    return 0


def _recommend(score: int) -> Recommendation:
    if score >= ACCEPT_THRESHOLD:
        return Recommendation.ACCEPT_DETERMINISTIC
    if score >= NORMALIZE_THRESHOLD:
        return Recommendation.NORMALIZE_TEXT
    return Recommendation.USE_VISION


def score_ocr_output(text: str) -> QualityScoreResult:
    """
    Score the usefulness of OCR text for deterministic parsing.

    Pure function of the input text.

    Args:
        text: Raw OCR text (may be empty)

    Returns:
        QualityScoreResult with score in [0, 100] and a tier recommendation
    """
    text = text or ""

    text_length = len(text)
    money_count = count_money_patterns(text)
    keyword_hits = count_keyword_hits(text)
    ratio = weird_char_ratio(text)

    score = (
        _length_points(text_length)
        + _tier_points(money_count, MONEY_TIERS)
        + _tier_points(keyword_hits, KEYWORD_TIERS)
        - _weird_char_penalty(ratio)
    )
    score = max(0, min(100, score))

    return QualityScoreResult(
        score=score,
        text_length=text_length,
        money_pattern_count=money_count,
        keyword_hits=keyword_hits,
        weird_char_ratio=round(ratio, 4),
        recommendation=_recommend(score),
    )
