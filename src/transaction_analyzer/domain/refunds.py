"""Refund detection and refund-to-purchase linking.

Positive-amount transactions that look like refunds (keywords, an earlier
``refund`` type, or a similar-merchant purchase nearby) are matched against
purchases within the configured window. Candidates are processed oldest first
and each match draws down the purchase's un-refunded amount, so one purchase
can absorb several partial refunds.
"""
import re
from collections.abc import Sequence
from datetime import date

from transaction_analyzer.domain.merchant import text_similarity
from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import RefundSettings, Transaction

logger = get_logger(__name__)

_REFUND_KEYWORDS_RE = re.compile(
    r"\b(REFUND|RETURN|REVERSAL|CREDIT ADJ|MERCHANDISE CREDIT|PRICE ADJ)\b"
)

# Keyword candidates may be ATM credits; similarity candidates may not.
KEYWORD_EXCLUDED_TYPES = frozenset({"income", "transfer", "reward", "fee"})
SIMILARITY_EXCLUDED_TYPES = frozenset({"income", "transfer", "reward", "fee", "atm"})

AMOUNT_WEIGHT = 0.4
TIME_WEIGHT = 0.2
MERCHANT_WEIGHT = 0.4


def _to_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def date_diff_days(earlier: str, later: str) -> int | None:
    """Days from ``earlier`` to ``later``; None when either date is not ISO."""
    start = _to_date(earlier)
    end = _to_date(later)
    if start is None or end is None:
        return None
    return (end - start).days


def is_likely_refund(transaction: Transaction) -> bool:
    if transaction.amount_signed <= 0:
        return False
    if transaction.type in KEYWORD_EXCLUDED_TYPES:
        return False
    if _REFUND_KEYWORDS_RE.search(transaction.raw_description.upper()):
        return True
    return transaction.type == "refund"


def could_be_refund(
    credit: Transaction,
    transactions: Sequence[Transaction],
    settings: RefundSettings,
) -> bool:
    """True when some earlier outflow from a similar merchant could explain this credit."""
    if credit.amount_signed <= 0:
        return False
    if credit.type in SIMILARITY_EXCLUDED_TYPES:
        return False

    for purchase in transactions:
        if purchase.amount_signed >= 0:
            continue
        days = date_diff_days(purchase.date, credit.date)
        if days is None or days < 0 or days > settings.days_window:
            continue
        if text_similarity(credit.merchant_canonical, purchase.merchant_canonical) < settings.match_threshold:
            continue
        purchase_amount = abs(purchase.amount_signed)
        within_tolerance = (
            abs(credit.amount_signed - purchase_amount) <= purchase_amount * settings.amount_tolerance
        )
        if within_tolerance or credit.amount_signed <= purchase_amount:
            return True
    return False


def score_refund_match(refund: Transaction, purchase: Transaction, settings: RefundSettings) -> float:
    """Weighted match score in (0, 1]; 0 means the pair is not eligible."""
    if refund.amount_signed <= 0 or purchase.amount_signed >= 0:
        return 0.0

    days = date_diff_days(purchase.date, refund.date)
    if days is None or days < 0 or days > settings.days_window:
        return 0.0

    purchase_amount = abs(purchase.amount_signed)
    refund_amount = refund.amount_signed
    if refund_amount > purchase_amount * (1 + settings.amount_tolerance):
        return 0.0

    merchant_score = text_similarity(refund.merchant_canonical, purchase.merchant_canonical)
    if merchant_score < settings.match_threshold:
        return 0.0

    amount_score = 1 - abs(refund_amount - purchase_amount) / max(purchase_amount, 1)
    time_score = 1 - days / settings.days_window
    return amount_score * AMOUNT_WEIGHT + time_score * TIME_WEIGHT + merchant_score * MERCHANT_WEIGHT


def link_refunds(transactions: Sequence[Transaction], settings: RefundSettings) -> list[Transaction]:
    result = list(transactions)

    purchase_indices: list[int] = []
    remaining: dict[int, float] = {}
    candidates: list[tuple[int, bool]] = []

    for index, transaction in enumerate(result):
        if transaction.amount_signed < 0 and transaction.type == "purchase":
            purchase_indices.append(index)
            remaining[index] = round(abs(transaction.amount_signed), 2)
        if transaction.amount_signed > 0:
            keyword_candidate = is_likely_refund(transaction)
            if keyword_candidate or could_be_refund(transaction, result, settings):
                candidates.append((index, keyword_candidate))

    # Oldest first decides which purchase a run of refunds attaches to.
    candidates.sort(key=lambda item: result[item[0]].date)

    linked = 0
    for index, keyword_candidate in candidates:
        refund = result[index]
        best_score = 0.0
        best_index: int | None = None
        for purchase_index in purchase_indices:
            if remaining[purchase_index] <= 0:
                continue
            score = score_refund_match(refund, result[purchase_index], settings)
            if score > best_score:
                best_score = score
                best_index = purchase_index

        if best_index is not None:
            purchase = result[best_index]
            result[index] = refund.model_copy(update={
                "type": "refund",
                "linked_transaction_id": purchase.id,
                "category": purchase.category,
            })
            remaining[best_index] = round(remaining[best_index] - refund.amount_signed, 2)
            linked += 1
        elif keyword_candidate:
            result[index] = refund.model_copy(update={"type": "refund"})

    logger.debug("Refund linking: %d candidates, %d linked", len(candidates), linked)
    return result
