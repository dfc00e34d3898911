import re
from typing import Any, Literal

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

AccountType = Literal["bank", "credit_card", "unknown"]

TransactionType = Literal[
    "purchase",
    "refund",
    "transfer",
    "fee",
    "income",
    "reward",
    "payment",
    "atm",
    "unknown",
]

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Groceries",
    "Dining",
    "Transportation",
    "Gas",
    "Shopping",
    "Entertainment",
    "Utilities",
    "Healthcare",
    "Insurance",
    "Rent/Mortgage",
    "Subscriptions",
    "Travel",
    "Education",
    "Personal Care",
    "Pets",
    "Home Improvement",
    "Gifts/Donations",
    "Fees/Interest",
    "Income",
    "Transfer",
    "Refund",
    "ATM/Cash",
    "CC Payment",
    "Other",
)

RawRow = dict[str, str]


class Transaction(BaseModel):
    id: str
    date: str  # ISO YYYY-MM-DD when parseable, raw text otherwise
    amount_signed: float  # negative = outflow
    raw_description: str
    merchant_canonical: str = ""
    merchant_confidence: float = 0.0
    category: str = ""
    category_confidence: float | None = None
    csv_category: str | None = None
    type: TransactionType = "unknown"
    account_type: AccountType = "unknown"
    linked_transaction_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    source_row: int


class ColumnMapping(BaseModel):
    date: str
    description: str
    amount: str | None = None
    debit: str | None = None
    credit: str | None = None
    category: str | None = None

    @model_validator(mode="after")
    def _require_amount_source(self) -> "ColumnMapping":
        if not (self.amount or self.debit or self.credit):
            raise ValueError("mapping needs an amount column or debit/credit columns")
        return self


class CategoryScore(BaseModel):
    category: str
    confidence: float


class MerchantEntry(BaseModel):
    canonical_name: str
    aliases: list[str] = Field(default_factory=list)
    pattern_strings: list[str] = Field(default_factory=list)
    default_category: str
    website: str | None = None
    logo_url: str | None = None

    _patterns: list[re.Pattern[str]] = PrivateAttr(default_factory=list)

    @field_validator("pattern_strings")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid merchant pattern {pattern!r}: {exc}") from exc
        return value

    def model_post_init(self, __context: Any) -> None:
        # Compiled patterns are derived state; only pattern_strings are persisted.
        self._patterns = [re.compile(p, re.IGNORECASE) for p in self.pattern_strings]

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        return self._patterns


class RuleMatch(BaseModel):
    merchant: str | None = None
    keyword: str | None = None
    regex: str | None = None
    amount_min: float | None = None
    amount_max: float | None = None


class RuleAction(BaseModel):
    category: str | None = None
    type: TransactionType | None = None


class Rule(BaseModel):
    id: str
    enabled: bool = True
    priority: int = 100  # lower = evaluated first
    name: str
    match: RuleMatch = Field(default_factory=RuleMatch)
    action: RuleAction = Field(default_factory=RuleAction)


class RefundSettings(BaseModel):
    days_window: int = Field(default=90, ge=1)
    amount_tolerance: float = Field(default=0.05, ge=0.0)
    match_threshold: float = Field(default=0.4, ge=0.0, le=1.0)


class BankFormatSignature(BaseModel):
    id: str
    name: str
    columns: list[str]
    mapping: ColumnMapping
    account_type: AccountType | None = None


class AccountTypeDetection(BaseModel):
    type: AccountType
    confidence: Literal["high", "low"]
    reasons: list[str] = Field(default_factory=list)


class CategorySummary(BaseModel):
    category: str
    total: float
    count: int
    transactions: list[Transaction] = Field(default_factory=list)


class MerchantSummary(BaseModel):
    merchant: str
    total: float
    count: int
    category: str


class MonthlyTrend(BaseModel):
    month: str  # YYYY-MM
    totals: dict[str, float]


class MonthlyCashFlow(BaseModel):
    month: str
    income: float
    spending: float
    net: float
