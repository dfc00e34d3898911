import re
from collections.abc import Sequence

from transaction_analyzer.domain.scoring import resolve_category, score_csv_category, score_derived_category
from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import (
    AccountType,
    MerchantEntry,
    Rule,
    RuleAction,
    Transaction,
    TransactionType,
)

logger = get_logger(__name__)

TRANSFER_KEYWORDS = (
    "ZELLE", "VENMO", "PAYPAL", "CASH APP", "SQUARE CASH",
    "WIRE", "TRANSFER", "XFER", "ACH",
)

FEE_KEYWORDS = (
    "FEE", "SERVICE CHARGE", "OVERDRAFT", "NSF", "INTEREST CHARGE",
    "ANNUAL FEE", "LATE FEE", "MAINTENANCE FEE",
)

ATM_KEYWORDS = ("ATM", "CASH WITHDRAWAL", "CASH DEPOSIT")

INCOME_KEYWORDS = (
    "PAYROLL", "DIRECT DEP", "SALARY", "WAGE", "EMPLOYER",
    "TAX REFUND", "IRS", "SOC SEC", "SOCIAL SECURITY",
    "PENSION", "RETIREMENT",
)

REWARD_KEYWORDS = (
    "REWARD", "CASHBACK", "CASH BACK", "POINTS", "REBATE",
    "DIVIDEND", "STATEMENT CREDIT",
)

_REFUND_RE = re.compile(r"\b(REFUND|RETURN|REVERSAL|REBATE|ADJUSTMENT)\b")
_PAYMENT_RE = re.compile(r"\b(PAYMENT|PYMT|PMT)\b")
_CREDIT_RE = re.compile(r"\bCREDIT\b")

STRUCTURAL_CONFIDENCE = 0.95
RULE_CONFIDENCE = 1.0

STRUCTURAL_CATEGORIES: dict[str, str] = {
    "transfer": "Transfer",
    "fee": "Fees/Interest",
    "income": "Income",
    "atm": "ATM/Cash",
    "reward": "Income",
}


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def detect_transaction_type(
    raw_description: str,
    amount_signed: float,
    account_type: AccountType = "unknown",
    merchant_category: str | None = None,
) -> TransactionType:
    """Classify the structural type of a transaction.

    Credit-card and bank exports read the same words differently: a positive
    amount on a card is a payment or credit, never income, and card debits are
    purchases even when they mention a transfer service.
    """
    upper = raw_description.upper()
    is_card = account_type == "credit_card"

    if _contains_any(upper, ATM_KEYWORDS):
        return "atm"
    if _contains_any(upper, FEE_KEYWORDS):
        return "fee"
    if amount_signed > 0 and _contains_any(upper, REWARD_KEYWORDS):
        return "reward"

    if amount_signed > 0:
        if _REFUND_RE.search(upper):
            return "refund"
        if is_card:
            if _PAYMENT_RE.search(upper):
                return "payment"
            if _CREDIT_RE.search(upper):
                return "refund"
            return "unknown"
        # Income wins over transfer: "ACH DEPOSIT EMPLOYER PAYROLL" is pay, not a transfer.
        if _contains_any(upper, INCOME_KEYWORDS):
            return "income"
        if _contains_any(upper, TRANSFER_KEYWORDS) or merchant_category == "Transfer":
            return "transfer"
        if _CREDIT_RE.search(upper):
            return "refund"
        return "income"

    if is_card:
        if _PAYMENT_RE.search(upper):
            return "payment"
        return "purchase"

    if _contains_any(upper, TRANSFER_KEYWORDS) or merchant_category == "Transfer":
        return "transfer"
    if _PAYMENT_RE.search(upper):
        return "payment"
    return "purchase"


def _matches_rule(transaction: Transaction, rule: Rule) -> bool:
    match = rule.match

    if match.merchant and transaction.merchant_canonical.upper() != match.merchant.upper():
        return False

    if match.keyword and match.keyword.upper() not in transaction.raw_description.upper():
        return False

    if match.regex:
        try:
            if not re.search(match.regex, transaction.raw_description, re.IGNORECASE):
                return False
        except re.error:
            logger.debug("Rule %s has an invalid regex %r; skipping", rule.id, match.regex)
            return False

    magnitude = abs(transaction.amount_signed)
    if match.amount_min is not None and magnitude < match.amount_min:
        return False
    if match.amount_max is not None and magnitude > match.amount_max:
        return False

    return True


def apply_rules(transaction: Transaction, rules: Sequence[Rule]) -> RuleAction | None:
    """Action of the first enabled rule (lowest priority number) that matches."""
    ordered = sorted((rule for rule in rules if rule.enabled), key=lambda rule: rule.priority)
    for rule in ordered:
        if _matches_rule(transaction, rule):
            return rule.action
    return None


def structural_category(tx_type: TransactionType, account_type: AccountType) -> str | None:
    if tx_type == "payment":
        return "CC Payment" if account_type == "credit_card" else "Other"
    return STRUCTURAL_CATEGORIES.get(tx_type)


def categorize_all(
    transactions: Sequence[Transaction],
    rules: Sequence[Rule],
    merchant_dictionary: Sequence[MerchantEntry],
    account_type: AccountType = "unknown",
) -> list[Transaction]:
    merchants_by_name = {entry.canonical_name.upper(): entry for entry in merchant_dictionary}

    categorized: list[Transaction] = []
    for transaction in transactions:
        merchant = merchants_by_name.get(transaction.merchant_canonical.upper())
        detected = detect_transaction_type(
            transaction.raw_description,
            transaction.amount_signed,
            account_type,
            merchant.default_category if merchant else None,
        )

        action = apply_rules(transaction, rules)
        if action and action.category:
            categorized.append(transaction.model_copy(update={
                "category": action.category,
                "category_confidence": RULE_CONFIDENCE,
                "type": action.type or detected,
            }))
            continue

        tx_type = action.type if action and action.type else detected

        category = structural_category(tx_type, account_type)
        if category:
            categorized.append(transaction.model_copy(update={
                "category": category,
                "category_confidence": STRUCTURAL_CONFIDENCE,
                "type": tx_type,
            }))
            continue

        derived = score_derived_category(transaction, merchant_dictionary)
        csv_score = score_csv_category(transaction.csv_category, derived)
        resolved = resolve_category(derived, csv_score)
        categorized.append(transaction.model_copy(update={
            "category": resolved.category,
            "category_confidence": resolved.confidence,
            "type": tx_type,
        }))

    logger.debug("Categorized %d transactions", len(categorized))
    return categorized
