import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import MerchantEntry, Transaction

logger = get_logger(__name__)

MatchType = Literal["exact", "pattern", "fuzzy"]

EXACT_CONFIDENCE = 1.0
PATTERN_CONFIDENCE = 0.9
FUZZY_THRESHOLD = 0.5
UNMATCHED_CONFIDENCE = 0.2

_LEADING_NOISE_RE = re.compile(
    r"^(POS|VISA|DEBIT|CHECKCARD|CHECK CARD|ACH|RECURRING)\s+", re.IGNORECASE
)
_PROCESSOR_PREFIX_RE = re.compile(r"^(SQ\s*\*|TST\s*\*|PP\s*\*|PAYPAL\s*\*)", re.IGNORECASE)
_LEADING_REFERENCE_RE = re.compile(r"^\d{3,6}\s+")

NOISE_TOKENS = frozenset({
    "pos", "visa", "debit", "credit", "purchase", "checkcard",
    "ach", "recurring", "autopay", "auto-pay", "pin", "non-pin",
    "pre-auth", "preauth", "pending", "xxxx", "sq", "tst",
    "pymt", "pmt", "payment", "online", "web", "mobile",
    "card", "chk", "dbt", "crd", "external", "withdrawal", "deposit",
})

# Each pattern removes its first occurrence, applied in this order.
_TRAILING_PATTERNS = (
    re.compile(r"\b\d{4,}$"),                  # reference numbers
    re.compile(r"\b\d{2}/\d{2}\b"),            # MM/DD
    re.compile(r"\b[A-Z]{2}\s*\d{5}(-\d{4})?$"),  # state + ZIP
    re.compile(r"\s+#\d+"),                    # store number
    re.compile(r"\s+\d+\s*$"),                 # bare trailing number
)

_TRAILING_PUNCTUATION_RE = re.compile(r"[*#\-]+$")
_WHITESPACE_RE = re.compile(r"\s+")

_STORE_NUMBER_RE = re.compile(r"#(\d{2,6})")
_STATE_ZIP_RE = re.compile(r"\b([A-Z]{2})\s*\d{5}")
_ONLINE_RE = re.compile(r"\b(ONLINE|WEB)\b")
_APP_RE = re.compile(r"\b(APP|MOBILE)\b")
_IN_STORE_RE = re.compile(r"\b(POS|IN.?STORE)\b")


def canonicalize(raw: str) -> str:
    text = raw.upper().strip()

    while True:
        stripped = _LEADING_NOISE_RE.sub("", text, count=1)
        if stripped == text:
            break
        text = stripped
    text = _PROCESSOR_PREFIX_RE.sub("", text, count=1)
    text = _LEADING_REFERENCE_RE.sub("", text, count=1)

    text = " ".join(w for w in text.split() if w.lower() not in NOISE_TOKENS)

    for pattern in _TRAILING_PATTERNS:
        text = pattern.sub("", text, count=1)

    text = _WHITESPACE_RE.sub(" ", text).strip()
    return _TRAILING_PUNCTUATION_RE.sub("", text).strip()


@dataclass(frozen=True)
class ExtractedTokens:
    store_number: str | None = None
    state: str | None = None
    channel: str | None = None


def extract_tokens(raw: str) -> ExtractedTokens:
    store = _STORE_NUMBER_RE.search(raw)
    state = _STATE_ZIP_RE.search(raw)

    upper = raw.upper()
    channel = None
    if _ONLINE_RE.search(upper):
        channel = "online"
    elif _APP_RE.search(upper):
        channel = "app"
    elif _IN_STORE_RE.search(upper):
        channel = "in-store"

    return ExtractedTokens(
        store_number=store.group(1) if store else None,
        state=state.group(1) if state else None,
        channel=channel,
    )


def _bigrams(text: str) -> set[str]:
    lower = text.lower()
    return {lower[i:i + 2] for i in range(len(lower) - 1)}


def text_similarity(a: str, b: str) -> float:
    """Dice coefficient over character bigrams."""
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    set_a = _bigrams(a)
    set_b = _bigrams(b)
    return 2 * len(set_a & set_b) / (len(set_a) + len(set_b))


@dataclass(frozen=True)
class MerchantMatch:
    merchant: MerchantEntry
    confidence: float
    match_type: MatchType


def _match_exact(canon: str, dictionary: Sequence[MerchantEntry]) -> MerchantMatch | None:
    for entry in dictionary:
        for alias in entry.aliases:
            if canon == alias.upper():
                return MerchantMatch(entry, EXACT_CONFIDENCE, "exact")
    return None


def _match_pattern(canon: str, dictionary: Sequence[MerchantEntry]) -> MerchantMatch | None:
    for entry in dictionary:
        for pattern in entry.patterns:
            if pattern.search(canon):
                return MerchantMatch(entry, PATTERN_CONFIDENCE, "pattern")
    return None


def _match_fuzzy(canon: str, dictionary: Sequence[MerchantEntry]) -> MerchantMatch | None:
    best: MerchantMatch | None = None
    best_score = 0.0
    for entry in dictionary:
        for candidate in (entry.canonical_name, *entry.aliases):
            score = text_similarity(canon, candidate.upper())
            if score > best_score:
                best_score = score
                best = MerchantMatch(entry, score, "fuzzy")
    if best and best_score >= FUZZY_THRESHOLD:
        return best
    return None


# Priority order: the first strategy that returns a match wins.
_MATCHERS: tuple[Callable[[str, Sequence[MerchantEntry]], MerchantMatch | None], ...] = (
    _match_exact,
    _match_pattern,
    _match_fuzzy,
)


def match_merchant(canonicalized: str, dictionary: Sequence[MerchantEntry]) -> MerchantMatch | None:
    canon = canonicalized.upper()
    for matcher in _MATCHERS:
        result = matcher(canon, dictionary)
        if result:
            return result
    return None


def resolve_merchant(
    raw_description: str,
    dictionary: Sequence[MerchantEntry],
    overrides: Mapping[str, str],
) -> tuple[str, float]:
    """Return ``(canonical_name, confidence)`` for one raw description."""
    override = overrides.get(raw_description)
    if override:
        return override, 1.0

    canonicalized = canonicalize(raw_description)
    match = match_merchant(canonicalized, dictionary)
    if match:
        return match.merchant.canonical_name, match.confidence

    return canonicalized or raw_description, UNMATCHED_CONFIDENCE


def resolve_all_merchants(
    transactions: Sequence[Transaction],
    dictionary: Sequence[MerchantEntry],
    overrides: Mapping[str, str],
) -> list[Transaction]:
    resolved: list[Transaction] = []
    for transaction in transactions:
        name, confidence = resolve_merchant(transaction.raw_description, dictionary, overrides)
        resolved.append(transaction.model_copy(update={
            "merchant_canonical": name,
            "merchant_confidence": confidence,
        }))
    return resolved


def build_merchant_dictionary(
    seed: Iterable[MerchantEntry],
    user_entries: Iterable[MerchantEntry],
) -> tuple[MerchantEntry, ...]:
    """User entries first, then seed entries they don't replace by canonical name."""
    user_list = list(user_entries)
    overridden = {entry.canonical_name for entry in user_list}
    merged = user_list + [entry for entry in seed if entry.canonical_name not in overridden]
    logger.debug(
        "Merchant dictionary built: %d user entries, %d total", len(user_list), len(merged)
    )
    return tuple(merged)


def _seed(name: str, aliases: list[str], patterns: list[str], category: str) -> MerchantEntry:
    return MerchantEntry(
        canonical_name=name,
        aliases=aliases,
        pattern_strings=patterns,
        default_category=category,
    )


SEED_MERCHANTS: tuple[MerchantEntry, ...] = (
    _seed("Amazon", ["AMAZON", "AMZN", "AMAZON.COM", "AMAZON PRIME", "AMAZON MKTPLACE", "AMZN MKTP"],
          ["AMZN", "AMAZON"], "Shopping"),
    _seed("Walmart", ["WALMART", "WAL-MART", "WM SUPERCENTER"], [r"WAL.?MART", r"WM\s+SUPERCENTER"], "Groceries"),
    _seed("Target", ["TARGET"], [r"TARGET\s"], "Shopping"),
    _seed("Costco", ["COSTCO", "COSTCO WHSE", "COSTCO WHOLESALE"], ["COSTCO"], "Groceries"),
    _seed("Kroger", ["KROGER"], ["KROGER"], "Groceries"),
    _seed("Whole Foods", ["WHOLE FOODS", "WHOLEFDS"], [r"WHOLE\s*FOODS", "WHOLEFDS"], "Groceries"),
    _seed("Trader Joe's", ["TRADER JOE", "TRADER JOES"], [r"TRADER\s*JOE"], "Groceries"),
    _seed("Aldi", ["ALDI"], ["ALDI"], "Groceries"),
    _seed("Starbucks", ["STARBUCKS"], ["STARBUCKS"], "Dining"),
    _seed("McDonald's", ["MCDONALDS", "MCDONALD'S"], ["MCDONALD"], "Dining"),
    _seed("Chipotle", ["CHIPOTLE"], ["CHIPOTLE"], "Dining"),
    _seed("Chick-fil-A", ["CHICK-FIL-A", "CHICKFILA"], [r"CHICK.?FIL"], "Dining"),
    _seed("Subway", ["SUBWAY"], ["SUBWAY"], "Dining"),
    _seed("DoorDash", ["DOORDASH"], ["DOORDASH"], "Dining"),
    _seed("Uber Eats", ["UBER EATS", "UBEREATS"], [r"UBER\s*EATS"], "Dining"),
    _seed("Grubhub", ["GRUBHUB"], ["GRUBHUB"], "Dining"),
    _seed("Shell", ["SHELL", "SHELL OIL"], [r"SHELL\s*(OIL)?"], "Gas"),
    _seed("Chevron", ["CHEVRON"], ["CHEVRON"], "Gas"),
    _seed("ExxonMobil", ["EXXON", "EXXONMOBIL", "MOBIL"], ["EXXON", "MOBIL"], "Gas"),
    _seed("BP", ["BP"], [r"^BP\s"], "Gas"),
    _seed("Netflix", ["NETFLIX"], ["NETFLIX"], "Subscriptions"),
    _seed("Spotify", ["SPOTIFY"], ["SPOTIFY"], "Subscriptions"),
    _seed("Apple", ["APPLE", "APPLE.COM", "APPLE.COM/BILL"], [r"APPLE\.COM", r"^APPLE\s"], "Subscriptions"),
    _seed("Google", ["GOOGLE", "GOOGLE *"], [r"GOOGLE\s*\*?"], "Subscriptions"),
    _seed("Disney+", ["DISNEY+", "DISNEY PLUS", "DISNEYPLUS"], [r"DISNEY\s*\+?\s*PLUS|DISNEYPLUS"], "Subscriptions"),
    _seed("Hulu", ["HULU"], ["HULU"], "Subscriptions"),
    _seed("HBO Max", ["HBO", "HBO MAX"], ["HBO"], "Subscriptions"),
    _seed("YouTube Premium", ["YOUTUBE", "YOUTUBE PREMIUM"], [r"YOUTUBE\s*PREMIUM"], "Subscriptions"),
    _seed("Uber", ["UBER", "UBER TRIP"], [r"UBER\s*(TRIP)?$", r"^UBER\s+(?!EATS)"], "Transportation"),
    _seed("Lyft", ["LYFT"], ["LYFT"], "Transportation"),
    _seed("CVS", ["CVS", "CVS PHARMACY"], ["CVS"], "Healthcare"),
    _seed("Walgreens", ["WALGREENS"], ["WALGREENS"], "Healthcare"),
    _seed("Home Depot", ["HOME DEPOT", "THE HOME DEPOT"], [r"HOME\s*DEPOT"], "Home Improvement"),
    _seed("Lowe's", ["LOWES", "LOWE'S"], [r"LOWE.?S"], "Home Improvement"),
    _seed("Venmo", ["VENMO"], ["VENMO"], "Transfer"),
    _seed("Zelle", ["ZELLE"], ["ZELLE"], "Transfer"),
    _seed("PayPal", ["PAYPAL"], ["PAYPAL"], "Transfer"),
    _seed("Cash App", ["CASH APP", "SQUARE CASH"], [r"CASH\s*APP", r"SQUARE\s*CASH"], "Transfer"),
    _seed("AT&T", ["AT&T", "ATT"], [r"AT.?T"], "Utilities"),
    _seed("Verizon", ["VERIZON"], ["VERIZON"], "Utilities"),
    _seed("T-Mobile", ["T-MOBILE", "TMOBILE"], [r"T.?MOBILE"], "Utilities"),
    _seed("Comcast", ["COMCAST", "XFINITY"], ["COMCAST", "XFINITY"], "Utilities"),
    _seed("PG&E", ["PG&E", "PACIFIC GAS"], [r"PG.?E", r"PACIFIC\s*GAS"], "Utilities"),
)
