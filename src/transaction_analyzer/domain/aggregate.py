from collections.abc import Sequence

from transaction_analyzer.models import (
    CategorySummary,
    MerchantSummary,
    MonthlyCashFlow,
    MonthlyTrend,
    Transaction,
)

_NOT_SPENDING = frozenset({"transfer", "income"})


def _month(transaction: Transaction) -> str:
    return transaction.date[:7]


def summarize_by_category(
    transactions: Sequence[Transaction],
    include_refunds: bool = False,
) -> list[CategorySummary]:
    groups: dict[str, list[Transaction]] = {}
    for transaction in transactions:
        if transaction.type in _NOT_SPENDING:
            continue
        if transaction.type == "refund" and not include_refunds:
            continue
        groups.setdefault(transaction.category or "Other", []).append(transaction)

    summaries = [
        CategorySummary(
            category=category,
            total=round(sum(t.amount_signed for t in members), 2),
            count=len(members),
            transactions=members,
        )
        for category, members in groups.items()
    ]
    # Most negative (largest spend) first.
    return sorted(summaries, key=lambda summary: summary.total)


def summarize_by_merchant(transactions: Sequence[Transaction]) -> list[MerchantSummary]:
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    categories: dict[str, str] = {}
    for transaction in transactions:
        if transaction.type in _NOT_SPENDING:
            continue
        merchant = transaction.merchant_canonical or "Unknown"
        totals[merchant] = totals.get(merchant, 0.0) + transaction.amount_signed
        counts[merchant] = counts.get(merchant, 0) + 1
        categories.setdefault(merchant, transaction.category)

    summaries = [
        MerchantSummary(
            merchant=merchant,
            total=round(total, 2),
            count=counts[merchant],
            category=categories[merchant],
        )
        for merchant, total in totals.items()
    ]
    return sorted(summaries, key=lambda summary: summary.total)


def monthly_trends(transactions: Sequence[Transaction]) -> list[MonthlyTrend]:
    months: dict[str, dict[str, float]] = {}
    for transaction in transactions:
        if transaction.type in _NOT_SPENDING:
            continue
        totals = months.setdefault(_month(transaction), {})
        category = transaction.category or "Other"
        totals[category] = totals.get(category, 0.0) + transaction.amount_signed

    return [
        MonthlyTrend(month=month, totals={k: round(v, 2) for k, v in totals.items()})
        for month, totals in sorted(months.items())
    ]


def monthly_cash_flow(transactions: Sequence[Transaction]) -> list[MonthlyCashFlow]:
    months: dict[str, list[float]] = {}
    for transaction in transactions:
        if transaction.type == "transfer":
            continue
        bucket = months.setdefault(_month(transaction), [0.0, 0.0])
        if transaction.amount_signed > 0:
            bucket[0] += transaction.amount_signed
        else:
            bucket[1] += abs(transaction.amount_signed)

    return [
        MonthlyCashFlow(
            month=month,
            income=round(income, 2),
            spending=round(spending, 2),
            net=round(income - spending, 2),
        )
        for month, (income, spending) in sorted(months.items())
    ]
