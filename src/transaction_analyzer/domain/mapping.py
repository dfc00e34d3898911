import json
import math
import re
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

from dateutil import parser as date_parser

from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import AccountType, ColumnMapping, RawRow, Transaction

logger = get_logger(__name__)

IdFactory = Callable[[int, RawRow], str]

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MDY_FULL_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_MDY_SHORT_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2})$")

# Missing month or day falls back to a fixed anchor so reruns stay deterministic.
# Parsing against a second anchor year reveals text that carries no year at all.
_DATE_DEFAULT = datetime(2000, 1, 1)
_DATE_ALT_DEFAULT = datetime(2001, 1, 1)

_CURRENCY_AND_SEPARATORS_RE = re.compile(r"[$€£¥,\s]")

_ROW_ID_NAMESPACE = uuid.UUID("6f1c2a6e-3f5d-4b8e-9c1a-2d7e8b4a0c51")


def parse_date(raw: str) -> str:
    """Normalize a date cell to ``YYYY-MM-DD``; unparseable text is returned as-is."""
    trimmed = raw.strip()

    if _ISO_DATE_RE.match(trimmed):
        return trimmed

    match = _MDY_FULL_RE.match(trimmed)
    if match:
        month, day, year = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    match = _MDY_SHORT_RE.match(trimmed)
    if match:
        month, day, short_year = match.groups()
        century = "20" if int(short_year) < 50 else "19"
        return f"{century}{short_year}-{month.zfill(2)}-{day.zfill(2)}"

    try:
        parsed = date_parser.parse(trimmed, default=_DATE_DEFAULT)
        if date_parser.parse(trimmed, default=_DATE_ALT_DEFAULT).year != parsed.year:
            logger.debug("Date %r has no year; left unchanged", trimmed)
            return trimmed
        return parsed.strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        logger.debug("Unparseable date %r left unchanged", trimmed)
        return trimmed


def parse_amount(raw: str) -> float:
    """Parse '$1,234.56', '(12.00)' or '-3.5' into a float; garbage becomes 0."""
    text = raw.strip()
    negative = len(text) >= 2 and text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    text = _CURRENCY_AND_SEPARATORS_RE.sub("", text)
    try:
        value = float(text)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return -value if negative else value


def row_id(index: int, row: RawRow) -> str:
    payload = json.dumps([index, row], sort_keys=True, ensure_ascii=False)
    return str(uuid.uuid5(_ROW_ID_NAMESPACE, payload))


def _cell(row: RawRow, column: str | None) -> str:
    if not column:
        return ""
    return row.get(column) or ""


def _signed_amount(row: RawRow, mapping: ColumnMapping) -> float:
    if mapping.amount:
        return parse_amount(_cell(row, mapping.amount))

    debit = parse_amount(_cell(row, mapping.debit))
    credit = parse_amount(_cell(row, mapping.credit))
    if credit > 0:
        return credit
    return -abs(debit) if debit else 0.0


def map_rows(
    rows: Sequence[RawRow],
    mapping: ColumnMapping,
    account_type: AccountType = "unknown",
    id_factory: IdFactory | None = None,
) -> list[Transaction]:
    make_id = id_factory or row_id
    transactions: list[Transaction] = []
    for index, row in enumerate(rows):
        csv_category = _cell(row, mapping.category).strip() if mapping.category else ""
        transactions.append(Transaction(
            id=make_id(index, row),
            date=parse_date(_cell(row, mapping.date)),
            amount_signed=_signed_amount(row, mapping),
            raw_description=_cell(row, mapping.description).strip(),
            csv_category=csv_category or None,
            account_type=account_type,
            source_row=index,
        ))
    logger.debug("Mapped %d rows", len(transactions))
    return transactions
