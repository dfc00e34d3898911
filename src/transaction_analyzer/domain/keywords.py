from dataclasses import dataclass
from typing import Literal

from transaction_analyzer.models import CategoryScore

Strength = Literal["strong", "weak"]

STRONG_CONFIDENCE = 0.65
WEAK_CONFIDENCE = 0.45
MULTI_GROUP_BONUS = 0.10
KEYWORD_CONFIDENCE_CAP = 0.80


@dataclass(frozen=True)
class KeywordRule:
    category: str
    strength: Strength
    keywords: tuple[str, ...]


KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("Dining", "strong", (
        "RESTAURANT", "DINER", "KITCHEN", "BAKERY", "CAFE", "COFFEE",
        "STEAKHOUSE", "SEAFOOD", "SUSHI", "RAMEN", "POKE", "BISTRO",
        "EATERY", "CREAMERY", "GELATO", "ICE CREAM", "PIZZERIA",
    )),
    KeywordRule("Dining", "weak", (
        "FOOD", "GRILL", "PIZZA", "BURGER", "TACO", "BBQ", "DELI",
        "CHICKEN", "WING", "DONUT", "CURRY", "NOODLE", "BAR",
        "MEXICAN", "THAI", "CHINESE", "JAPANESE", "INDIAN", "ITALIAN",
        "KOREAN", "VIETNAMESE", "MEDITERRANEAN", "GREEK",
        "SANDWICH", "SUB", "LOBSTER", "CRAB", "FISH", "STEAK",
        "WAFFLE", "PANCAKE", "BRUNCH", "CANTINA", "TAVERN", "PUB",
        "ROTIE", "PANDA EXPRESS", "SOFTEE",
    )),
    KeywordRule("Gas", "strong", (
        "GAS STATION", "FUEL", "GASOLINE", "CHEVRON", "SHELL",
        "EXXON", "MOBIL", "MARATHON", "SUNOCO", "VALERO", "CITGO",
        "SINCLAIR", "CONOCO", "PHILLIPS 66",
    )),
    KeywordRule("Gas", "weak", (
        "PARKING", "PARKSMART", "PARKINGSPOT", "PARKING SPOT",
        "ALON", "MURPHY", "BOWLIN", "APRO LLC",
    )),
    KeywordRule("Groceries", "strong", (
        "GROCERY", "GROCER", "SUPERMARKET", "SPROUTS",
        "SAFEWAY", "PUBLIX", "ALBERTSONS", "FOOD LION",
        "PIGGLY", "HEB ", "H-E-B", "MEIJER",
    )),
    KeywordRule("Groceries", "weak", (
        "MARKET", "FARMERS", "ORGANIC", "PRODUCE", "FRESH", "INSTACART",
    )),
    KeywordRule("Entertainment", "strong", (
        "CINEMA", "THEATER", "THEATRE", "BOWLING", "BOWLERO",
        "ARCADE", "MUSEUM", "AMUSEMENT", "FANDANGO",
        "PLAYSTATION", "XBOX", "NINTENDO", "STEAM",
    )),
    KeywordRule("Entertainment", "weak", (
        "SIX FLAGS", "SIXFLAGS", "AMC ", "REGAL", "IMAX", "TOPGOLF",
        "DAVE & BUSTER", "DAVE AND BUSTER", "KIDDIE RIDES",
        "KIDSPACE", "FUN ", "PRIME VIDEO", "FREETIME",
    )),
    KeywordRule("Healthcare", "strong", (
        "PHARMACY", "MEDICAL", "DENTAL", "DOCTOR", "HOSPITAL",
        "CLINIC", "URGENT CARE", "OPTOMETRIST", "DERMATOLOG",
    )),
    KeywordRule("Healthcare", "weak", (
        "HEALTH", "RX", "PRESCRIPTION", "VISION", "LAB", "WALGREENS", "CVS",
    )),
    KeywordRule("Insurance", "strong", (
        "INSURANCE", "GEICO", "STATE FARM", "ALLSTATE",
        "PROGRESSIVE", "USAA", "LIBERTY MUTUAL", "FARMERS INS",
    )),
    KeywordRule("Personal Care", "strong", (
        "SALON", "BARBER", "SPA ", "NAIL", "BEAUTY", "HAIR",
        "SUPERCUTS", "GREAT CLIPS", "WAXING",
    )),
    KeywordRule("Personal Care", "weak", ("SKIN", "BOUTIQUE", "COSMETIC")),
    KeywordRule("Home Improvement", "strong", (
        "HARDWARE", "LUMBER", "PLUMBING", "HOME DEPOT", "HOMEDEPOT",
        "LOWES", "LOWE'S", "ACE HARDWARE",
    )),
    KeywordRule("Education", "strong", (
        "UNIVERSITY", "COLLEGE", "SCHOOL", "TUITION", "TEXTBOOK",
        "ACADEMY", "LEARNING",
    )),
    KeywordRule("Pets", "strong", (
        "PETCO", "PETSMART", "VET ", "VETERINAR", "PET SUPPLIES", "PET FOOD",
    )),
    KeywordRule("Travel", "strong", (
        "HOTEL", "MOTEL", "INN ", "AIRBNB", "VRBO", "AIRLINES",
        "AIRLINE", "FLIGHT", "RESORT", "LODGE",
    )),
    KeywordRule("Travel", "weak", (
        "RENTAL CAR", "HERTZ", "ENTERPRISE RENT", "AVIS",
        "EXPEDIA", "BOOKING.COM", "COT*FLT", "COT*HTL", "COT*CAR",
    )),
    KeywordRule("Subscriptions", "strong", (
        "NETFLIX", "SPOTIFY", "HULU", "DISNEY+", "DISNEYPLUS",
        "HBO ", "YOUTUBE PREMIUM", "APPLE.COM/BILL", "AMAZON PRIME",
    )),
    KeywordRule("Utilities", "strong", (
        "ELECTRIC", "POWER", "WATER BILL", "SEWER",
        "NATURAL GAS", "INTERNET", "CABLE",
    )),
    KeywordRule("Transportation", "strong", (
        "UBER TRIP", "LYFT", "TAXI", "CAB ", "TRANSIT", "METRO", "SUBWAY FARE",
    )),
    KeywordRule("Gifts/Donations", "strong", (
        "DONATION", "CHARITY", "FOUNDATION", "NONPROFIT",
        "RED CROSS", "UNITED WAY", "GOODWILL",
    )),
    KeywordRule("Shopping", "weak", (
        "KOHLS", "KOHL'S", "HOMEGOODS", "TJ MAXX", "TJMAXX",
        "MARSHALLS", "ROSS ", "NORDSTROM", "MACYS", "MACY'S",
        "BIG 5", "BIG5", "SPORTING GOODS", "ROAD RUNNER SPORTS",
        "RUGGABLE", "NEWEGG", "ETSY", "REI ", "REI.COM",
    )),
)


@dataclass
class _CategoryHits:
    groups: int
    strongest: Strength


def keyword_categorize(description: str) -> CategoryScore | None:
    """Best keyword-derived category for a description, or None when nothing matches.

    A rule group counts at most once however many of its keywords appear.
    Strong groups score 0.65, weak ones 0.45, two or more groups for the same
    category add 0.10, and the result is capped at 0.80.
    """
    upper = description.upper()
    hits: dict[str, _CategoryHits] = {}

    for rule in KEYWORD_RULES:
        if not any(keyword in upper for keyword in rule.keywords):
            continue
        existing = hits.get(rule.category)
        if existing is None:
            hits[rule.category] = _CategoryHits(groups=1, strongest=rule.strength)
        else:
            existing.groups += 1
            if rule.strength == "strong":
                existing.strongest = "strong"

    best: CategoryScore | None = None
    for category, found in hits.items():
        confidence = STRONG_CONFIDENCE if found.strongest == "strong" else WEAK_CONFIDENCE
        if found.groups >= 2:
            confidence += MULTI_GROUP_BONUS
        confidence = min(confidence, KEYWORD_CONFIDENCE_CAP)
        if best is None or confidence > best.confidence:
            best = CategoryScore(category=category, confidence=confidence)
    return best
