import pytest

from transaction_analyzer.domain.merchant import SEED_MERCHANTS
from transaction_analyzer.domain.scoring import (
    NO_SIGNAL,
    map_csv_category,
    resolve_category,
    score_csv_category,
    score_derived_category,
)
from transaction_analyzer.models import CategoryScore, Transaction


def _tx(description: str, amount: float = -10.0) -> Transaction:
    return Transaction(id="t", date="2025-01-01", amount_signed=amount,
                       raw_description=description, source_row=0)


def test_multi_category_merchant_is_capped():
    derived = score_derived_category(_tx("AMAZON.COM"), SEED_MERCHANTS)

    assert derived.category == "Shopping"
    assert derived.confidence <= 0.45


def test_exact_match_with_agreeing_keyword():
    derived = score_derived_category(_tx("CHEVRON 0092920"), SEED_MERCHANTS)

    assert derived.category == "Gas"
    assert derived.confidence == pytest.approx(0.95)


def test_pattern_match_confidence():
    derived = score_derived_category(_tx("STARBUCKS STORE 12345"), SEED_MERCHANTS)

    assert derived.category == "Dining"
    assert derived.confidence == pytest.approx(0.85)


def test_keyword_only_signal():
    derived = score_derived_category(_tx("HECTORS MEXICAN FOOD"), SEED_MERCHANTS)

    assert derived.category == "Dining"
    assert derived.confidence == pytest.approx(0.45)


def test_no_signal():
    assert score_derived_category(_tx("ZQXJ VORTLUND"), SEED_MERCHANTS) == NO_SIGNAL


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Restaurants", "Dining"),
        ("  GAS/AUTOMOTIVE ", "Gas"),
        ("Rent/Mortgage", "Rent/Mortgage"),
        ("Weird Stuff", None),
        ("", None),
        (None, None),
    ],
)
def test_map_csv_category(raw, expected):
    assert map_csv_category(raw) == expected


def test_csv_score_without_derived_signal_uses_base():
    csv = score_csv_category("Gas", NO_SIGNAL)

    assert csv == CategoryScore(category="Gas", confidence=0.90)


def test_csv_score_agreement_bonus():
    csv = score_csv_category("Restaurants", CategoryScore(category="Dining", confidence=0.7))

    assert csv is not None
    assert csv.confidence == pytest.approx(0.935)


def test_csv_score_strong_conflict_penalty():
    derived = CategoryScore(category="Gas", confidence=0.90)

    csv = score_csv_category("Dining", derived)

    assert csv is not None
    assert csv.confidence == pytest.approx(0.34)
    assert resolve_category(derived, csv).category == "Gas"


def test_csv_score_mild_conflict_penalty():
    csv = score_csv_category("Gas/Automotive", CategoryScore(category="Dining", confidence=0.6))

    assert csv is not None
    assert csv.confidence == pytest.approx(0.54)


def test_csv_score_unusable_category():
    assert score_csv_category("Weird Stuff", NO_SIGNAL) is None


def test_resolve_tie_goes_to_csv():
    derived = CategoryScore(category="Shopping", confidence=0.50)
    csv = CategoryScore(category="Dining", confidence=0.50)

    assert resolve_category(derived, csv).category == "Dining"


def test_resolve_weak_derived_without_csv_falls_back_to_other():
    resolved = resolve_category(CategoryScore(category="Dining", confidence=0.2), None)

    assert resolved == CategoryScore(category="Other", confidence=0.2)


def test_resolve_no_signal_at_all():
    assert resolve_category(NO_SIGNAL, None) == CategoryScore(category="Other", confidence=0.0)


def test_resolve_weak_csv_without_derived_falls_back_to_other():
    resolved = resolve_category(NO_SIGNAL, CategoryScore(category="Other", confidence=0.25))

    assert resolved.category == "Other"
    assert resolved.confidence == 0.25
