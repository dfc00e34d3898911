from collections.abc import Sequence

from transaction_analyzer.domain.keywords import keyword_categorize
from transaction_analyzer.domain.merchant import canonicalize, match_merchant
from transaction_analyzer.models import DEFAULT_CATEGORIES, CategoryScore, MerchantEntry, Transaction

# Bank-export category labels (lowercased) -> internal category vocabulary.
CSV_CATEGORY_MAP: dict[str, str] = {
    "dining": "Dining",
    "restaurants": "Dining",
    "food & drink": "Dining",
    "food and drink": "Dining",
    "gas/automotive": "Gas",
    "gas": "Gas",
    "gasoline": "Gas",
    "automotive": "Gas",
    "fuel": "Gas",
    "merchandise": "Shopping",
    "shopping": "Shopping",
    "retail": "Shopping",
    "entertainment": "Entertainment",
    "health care": "Healthcare",
    "healthcare": "Healthcare",
    "medical": "Healthcare",
    "insurance": "Insurance",
    "lodging": "Travel",
    "travel": "Travel",
    "other travel": "Travel",
    "airlines": "Travel",
    "hotel": "Travel",
    "groceries": "Groceries",
    "supermarkets": "Groceries",
    "education": "Education",
    "utilities": "Utilities",
    "phone/cable": "Utilities",
    "personal care": "Personal Care",
    "home improvement": "Home Improvement",
    "home": "Home Improvement",
    "pets": "Pets",
    "gifts": "Gifts/Donations",
    "charitable giving": "Gifts/Donations",
    "fees": "Fees/Interest",
    "interest": "Fees/Interest",
    "fees/interest": "Fees/Interest",
    "other services": "Other",
    "other": "Other",
    "payment/credit": "CC Payment",
    "payment": "CC Payment",
    "professional services": "Other",
    "government services": "Other",
    "subscriptions": "Subscriptions",
    "transportation": "Transportation",
    "transfer": "Transfer",
}

# Specific categories are trusted more than vague ones.
CSV_CATEGORY_BASE_CONFIDENCE: dict[str, float] = {
    "Dining": 0.85,
    "Gas": 0.90,
    "Insurance": 0.90,
    "Healthcare": 0.85,
    "Travel": 0.80,
    "Groceries": 0.85,
    "Entertainment": 0.80,
    "Education": 0.85,
    "Utilities": 0.80,
    "Personal Care": 0.75,
    "Pets": 0.85,
    "Home Improvement": 0.75,
    "Subscriptions": 0.80,
    "Gifts/Donations": 0.70,
    "Transportation": 0.75,
    "CC Payment": 0.85,
    "Fees/Interest": 0.70,
    "Transfer": 0.70,
    "Shopping": 0.40,
    "Other": 0.25,
}
DEFAULT_CSV_BASE_CONFIDENCE = 0.50

# Merchants that legitimately span many categories.
MULTI_CATEGORY_MERCHANTS = frozenset({
    "Amazon", "Walmart", "Target", "Costco", "PayPal", "Sam's Club",
})
MULTI_CATEGORY_CAP = 0.45

MATCH_TYPE_CONFIDENCE = {"exact": 0.95, "pattern": 0.85, "fuzzy": 0.70}
AGREEMENT_BONUS = 0.05
DERIVED_CAP = 0.95

CSV_AGREEMENT_FACTOR = 1.1
CSV_STRONG_CONFLICT_FACTOR = 0.4
CSV_MILD_CONFLICT_FACTOR = 0.6
STRONG_CONFLICT_THRESHOLD = 0.8

MIN_RESOLVED_CONFIDENCE = 0.30
FALLBACK_CATEGORY = "Other"

NO_SIGNAL = CategoryScore(category="", confidence=0.0)


def _has_signal(score: CategoryScore) -> bool:
    return bool(score.category) and score.confidence != 0


def score_derived_category(
    transaction: Transaction,
    merchant_dictionary: Sequence[MerchantEntry],
) -> CategoryScore:
    """Derived category confidence from merchant identity plus description keywords."""
    match = match_merchant(canonicalize(transaction.raw_description), merchant_dictionary)

    category = ""
    confidence = 0.0
    if match:
        category = match.merchant.default_category
        confidence = MATCH_TYPE_CONFIDENCE[match.match_type]
        if match.merchant.canonical_name in MULTI_CATEGORY_MERCHANTS:
            confidence = min(confidence, MULTI_CATEGORY_CAP)

    keyword = keyword_categorize(transaction.raw_description)
    if keyword:
        if not match or keyword.confidence > confidence:
            category = keyword.category
            confidence = keyword.confidence
        elif keyword.category == category:
            confidence = min(confidence + AGREEMENT_BONUS, DERIVED_CAP)

    if not category:
        return NO_SIGNAL
    return CategoryScore(category=category, confidence=confidence)


def map_csv_category(csv_category: str | None) -> str | None:
    if not csv_category or not csv_category.strip():
        return None
    lowered = csv_category.strip().lower()
    mapped = CSV_CATEGORY_MAP.get(lowered)
    if mapped:
        return mapped
    for category in DEFAULT_CATEGORIES:
        if category.lower() == lowered:
            return category
    return None


def score_csv_category(csv_category: str | None, derived: CategoryScore) -> CategoryScore | None:
    """CSV category confidence, adjusted by agreement with the derived score."""
    mapped = map_csv_category(csv_category)
    if mapped is None:
        return None

    base = CSV_CATEGORY_BASE_CONFIDENCE.get(mapped, DEFAULT_CSV_BASE_CONFIDENCE)
    if not _has_signal(derived):
        confidence = base
    elif derived.category == mapped:
        confidence = min(base * CSV_AGREEMENT_FACTOR, DERIVED_CAP)
    elif derived.confidence > STRONG_CONFLICT_THRESHOLD:
        confidence = base * CSV_STRONG_CONFLICT_FACTOR
    else:
        confidence = base * CSV_MILD_CONFLICT_FACTOR
    return CategoryScore(category=mapped, confidence=confidence)


def resolve_category(derived: CategoryScore, csv: CategoryScore | None) -> CategoryScore:
    """Pick the final category; exact ties go to the CSV score."""
    if csv is None:
        if derived.confidence < MIN_RESOLVED_CONFIDENCE or not derived.category:
            return CategoryScore(category=FALLBACK_CATEGORY, confidence=derived.confidence or 0.0)
        return derived

    if not _has_signal(derived):
        if csv.confidence < MIN_RESOLVED_CONFIDENCE:
            return CategoryScore(category=FALLBACK_CATEGORY, confidence=csv.confidence)
        return csv

    if csv.confidence >= derived.confidence:
        return csv
    return derived
