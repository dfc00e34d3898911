import pytest

from transaction_analyzer.domain.keywords import keyword_categorize


def test_same_group_counts_once():
    # MEXICAN and FOOD are both in the weak Dining group.
    result = keyword_categorize("HECTORS MEXICAN FOOD")

    assert result is not None
    assert result.category == "Dining"
    assert result.confidence == pytest.approx(0.45)


def test_strong_keyword():
    result = keyword_categorize("Blue Bottle Coffee")

    assert result is not None
    assert result.category == "Dining"
    assert result.confidence == pytest.approx(0.65)


def test_two_groups_add_bonus():
    result = keyword_categorize("SUSHI BAR")

    assert result is not None
    assert result.category == "Dining"
    assert result.confidence == pytest.approx(0.75)


def test_ties_go_to_first_category_in_table():
    result = keyword_categorize("CINEMA CAFE")

    assert result is not None
    assert result.category == "Dining"
    assert result.confidence == pytest.approx(0.65)


def test_higher_confidence_category_wins():
    result = keyword_categorize("CORNER GROCERY BAR")

    assert result is not None
    assert result.category == "Groceries"
    assert result.confidence == pytest.approx(0.65)


def test_no_keyword_returns_none():
    assert keyword_categorize("ZQXJ VORTLUND") is None
