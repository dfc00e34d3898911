import pytest

from transaction_analyzer.domain.aggregate import (
    monthly_cash_flow,
    monthly_trends,
    summarize_by_category,
    summarize_by_merchant,
)
from transaction_analyzer.domain.export import build_examples
from transaction_analyzer.models import Transaction


def _tx(tx_id: str, date: str, amount: float, category: str, tx_type: str = "purchase",
        merchant: str = "Shop") -> Transaction:
    return Transaction(id=tx_id, date=date, amount_signed=amount, raw_description=merchant.upper(),
                       merchant_canonical=merchant, category=category, category_confidence=0.9,
                       type=tx_type, source_row=0)


@pytest.fixture
def ledger():
    return [
        _tx("1", "2025-01-03", -50.0, "Groceries", merchant="Kroger"),
        _tx("2", "2025-01-10", -20.10, "Dining", merchant="Chipotle"),
        _tx("3", "2025-01-12", -30.20, "Groceries", merchant="Kroger"),
        _tx("4", "2025-01-15", 2000.0, "Income", tx_type="income", merchant="Acme"),
        _tx("5", "2025-02-01", -500.0, "Transfer", tx_type="transfer", merchant="Zelle"),
        _tx("6", "2025-02-03", 10.0, "Groceries", tx_type="refund", merchant="Kroger"),
        _tx("7", "2025-02-04", -5.0, "", merchant=""),
    ]


def test_summarize_by_category(ledger):
    summaries = summarize_by_category(ledger)

    assert [s.category for s in summaries] == ["Groceries", "Dining", "Other"]
    assert summaries[0].total == pytest.approx(-80.2)
    assert summaries[0].count == 2


def test_summarize_by_category_with_refunds(ledger):
    summaries = summarize_by_category(ledger, include_refunds=True)

    groceries = next(s for s in summaries if s.category == "Groceries")
    assert groceries.total == pytest.approx(-70.2)
    assert groceries.count == 3


def test_summarize_by_merchant(ledger):
    summaries = summarize_by_merchant(ledger)

    names = [s.merchant for s in summaries]
    assert names[0] == "Kroger"
    assert "Acme" not in names
    assert "Zelle" not in names
    assert "Unknown" in names
    assert summaries[0].total == pytest.approx(-70.2)
    assert summaries[0].category == "Groceries"


def test_monthly_trends(ledger):
    trends = monthly_trends(ledger)

    assert [t.month for t in trends] == ["2025-01", "2025-02"]
    assert trends[0].totals == {"Groceries": pytest.approx(-80.2), "Dining": pytest.approx(-20.1)}
    assert trends[1].totals == {"Groceries": 10.0, "Other": -5.0}


def test_monthly_cash_flow(ledger):
    flows = monthly_cash_flow(ledger)

    january, february = flows
    assert january.income == 2000.0
    assert january.spending == pytest.approx(100.3)
    assert january.net == pytest.approx(1899.7)
    # Transfers are neither income nor spending.
    assert february.income == 10.0
    assert february.spending == 5.0


def test_build_examples_has_no_amounts(ledger):
    examples = build_examples(ledger, limit=2)

    assert len(examples) == 2
    assert examples[0] == {
        "raw_description": "KROGER",
        "merchant_canonical": "Kroger",
        "category": "Groceries",
        "type": "purchase",
    }


def test_build_examples_non_positive_limit(ledger):
    assert build_examples(ledger, limit=0) == []
