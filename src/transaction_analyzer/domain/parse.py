import csv
import re
from collections.abc import Sequence
from io import StringIO
from pathlib import Path

from pydantic import BaseModel, Field

from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import AccountTypeDetection, ColumnMapping, RawRow

logger = get_logger(__name__)


class ParseResult(BaseModel):
    headers: list[str] = Field(default_factory=list)
    rows: list[RawRow] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


def parse_csv_string(text: str) -> ParseResult:
    """Tokenize CSV text into header-keyed rows.

    Never raises: ragged rows and tokenizer errors become warnings next to
    whatever rows could be read.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    headers: list[str] = []
    rows: list[RawRow] = []
    errors: list[str] = []

    reader = csv.reader(StringIO(text))
    try:
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            if not headers:
                headers = [cell.strip() for cell in record]
                continue
            row_number = len(rows)
            if len(record) != len(headers):
                problem = "Too many fields" if len(record) > len(headers) else "Too few fields"
                errors.append(
                    f"Row {row_number}: {problem}: expected {len(headers)} fields "
                    f"but parsed {len(record)}"
                )
            padded = list(record) + [""] * (len(headers) - len(record))
            rows.append(dict(zip(headers, padded)))
    except csv.Error as exc:
        errors.append(f"Row {len(rows)}: {exc}")

    if errors:
        logger.debug("CSV parsed with %d warnings", len(errors))
    return ParseResult(headers=headers, rows=rows, errors=errors)


def parse_csv_file(path: str | Path) -> ParseResult:
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read CSV file %s: %s", path, exc)
        return ParseResult(errors=[str(exc)])
    return parse_csv_string(text)


DATE_HEADERS = ("date", "transaction date", "posting date", "trans date", "posted date")
DESCRIPTION_HEADERS = (
    "description", "memo", "transaction description", "details", "narrative", "payee",
)
AMOUNT_HEADERS = ("amount", "transaction amount")
DEBIT_HEADERS = ("debit", "withdrawals", "withdrawal", "debit amount")
CREDIT_HEADERS = ("credit", "deposits", "deposit", "credit amount")
CATEGORY_HEADERS = (
    "category", "transaction category", "merchant category", "category description",
)


def detect_column_mapping(headers: Sequence[str]) -> ColumnMapping | None:
    lowered = [header.lower().strip() for header in headers]

    def find(candidates: Sequence[str]) -> str | None:
        for candidate in candidates:
            if candidate in lowered:
                return headers[lowered.index(candidate)]
        return None

    date_column = find(DATE_HEADERS)
    description_column = find(DESCRIPTION_HEADERS)
    if not date_column or not description_column:
        return None

    amount = find(AMOUNT_HEADERS)
    debit = find(DEBIT_HEADERS)
    credit = find(CREDIT_HEADERS)
    if not (amount or debit or credit):
        return None

    return ColumnMapping(
        date=date_column,
        description=description_column,
        amount=amount,
        debit=debit,
        credit=credit,
        category=find(CATEGORY_HEADERS),
    )


CARD_HEADER_SIGNALS = (
    "credit limit", "available credit", "card number",
    "minimum payment", "minimum payment due", "statement balance",
)
BANK_HEADER_SIGNALS = (
    "check number", "running balance", "available balance", "routing", "account balance",
)

CARD_VALUE_SIGNALS = (
    (re.compile(r"PAYMENT\s*-?\s*THANK\s*YOU", re.IGNORECASE), "payment confirmation text"),
    (re.compile(r"AUTOPAY", re.IGNORECASE), "autopay reference"),
    (re.compile(r"PURCHASE\s*INTEREST|INTEREST\s*CHARGE", re.IGNORECASE), "interest charge"),
    (re.compile(r"ANNUAL\s*FEE", re.IGNORECASE), "annual fee"),
    (re.compile(r"CASH\s*ADVANCE\s*FEE", re.IGNORECASE), "cash advance fee"),
    (re.compile(r"FOREIGN\s*TRANSACTION\s*FEE", re.IGNORECASE), "foreign transaction fee"),
    (re.compile(r"MINIMUM\s*PAYMENT\s*DUE", re.IGNORECASE), "minimum payment due"),
    (re.compile(r"LATE\s*FEE", re.IGNORECASE), "late fee"),
)
BANK_VALUE_SIGNALS = (
    (re.compile(r"DIRECT\s*DEPOSIT", re.IGNORECASE), "direct deposit"),
    (re.compile(r"PAYROLL", re.IGNORECASE), "payroll deposit"),
    (re.compile(r"CHECK\s+\d+", re.IGNORECASE), "check number reference"),
    (re.compile(r"ACH\s*CREDIT", re.IGNORECASE), "ACH credit"),
    (re.compile(r"WIRE\s*(TRANSFER|CREDIT|DEPOSIT)", re.IGNORECASE), "wire transfer"),
    (re.compile(r"ATM\s*WITHDRAWAL", re.IGNORECASE), "ATM withdrawal"),
    (re.compile(r"OVERDRAFT", re.IGNORECASE), "overdraft"),
)

HIGH_CONFIDENCE_MARGIN = 2


def detect_account_type(
    headers: Sequence[str],
    sample_rows: Sequence[RawRow],
    sample_size: int = 100,
) -> AccountTypeDetection:
    """Guess whether an export comes from a credit card or a bank account.

    Header names are checked first, then the cell text of the first
    ``sample_size`` rows. Each signal found adds one point to its side.
    """
    lowered = [header.lower().strip() for header in headers]
    reasons: list[str] = []
    card_score = 0
    bank_score = 0

    for signal in CARD_HEADER_SIGNALS:
        if any(signal in header for header in lowered):
            card_score += 1
            reasons.append(f'Header column "{signal}" found')
    for signal in BANK_HEADER_SIGNALS:
        if any(signal in header for header in lowered):
            bank_score += 1
            reasons.append(f'Header column "{signal}" found')

    values = [
        value
        for row in sample_rows[:sample_size]
        for value in row.values()
        if isinstance(value, str) and len(value.strip()) > 5
    ]

    card_labels = [label for pattern, label in CARD_VALUE_SIGNALS if any(pattern.search(v) for v in values)]
    bank_labels = [label for pattern, label in BANK_VALUE_SIGNALS if any(pattern.search(v) for v in values)]
    card_score += len(card_labels)
    bank_score += len(bank_labels)

    if card_labels:
        reasons.append(f"Credit card patterns in transactions: {', '.join(card_labels)}")
    if bank_labels:
        reasons.append(f"Bank patterns in transactions: {', '.join(bank_labels)}")

    confidence = "high" if abs(card_score - bank_score) >= HIGH_CONFIDENCE_MARGIN else "low"
    if card_score > bank_score:
        return AccountTypeDetection(type="credit_card", confidence=confidence, reasons=reasons)
    if bank_score > card_score:
        return AccountTypeDetection(type="bank", confidence=confidence, reasons=reasons)
    return AccountTypeDetection(type="unknown", confidence="low", reasons=reasons)


def format_signature(headers: Sequence[str]) -> str:
    """Stable key for a bank's CSV layout: sorted, lowercased headers."""
    return "|".join(sorted(header.lower().strip() for header in headers))
