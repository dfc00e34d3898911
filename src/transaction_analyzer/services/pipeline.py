from collections.abc import Mapping, Sequence
from time import perf_counter

from pydantic import BaseModel, Field

from transaction_analyzer.core import settings
from transaction_analyzer.domain.mapping import IdFactory, map_rows
from transaction_analyzer.domain.merchant import (
    SEED_MERCHANTS,
    build_merchant_dictionary,
    resolve_all_merchants,
)
from transaction_analyzer.domain.parse import (
    detect_account_type,
    detect_column_mapping,
    format_signature,
    parse_csv_string,
)
from transaction_analyzer.domain.refunds import link_refunds
from transaction_analyzer.domain.rules import categorize_all
from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import (
    AccountType,
    AccountTypeDetection,
    BankFormatSignature,
    ColumnMapping,
    MerchantEntry,
    RawRow,
    RefundSettings,
    Rule,
    Transaction,
)
from transaction_analyzer.storage.local_store import LocalStore

logger = get_logger(__name__)


class NoActiveImportError(RuntimeError):
    """Raised when an operation needs imported rows but none are loaded."""


class InvalidImportError(ValueError):
    """Raised when uploaded CSV text has nothing to import."""


class ImportPreview(BaseModel):
    file_name: str | None = None
    headers: list[str]
    row_count: int
    warnings: list[str] = Field(default_factory=list)
    mapping: ColumnMapping | None = None
    account_detection: AccountTypeDetection
    account_type: AccountType
    recalled_format: bool = False


def _format_duration(seconds: float) -> str:
    if seconds <= 0:
        return "0 ms"
    if seconds < 1:
        return f"{seconds * 1000:.1f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    return f"{seconds / 60:.2f} min"


def run_pipeline(
    rows: Sequence[RawRow],
    mapping: ColumnMapping,
    *,
    account_type: AccountType = "unknown",
    merchants: Sequence[MerchantEntry] = SEED_MERCHANTS,
    overrides: Mapping[str, str] | None = None,
    rules: Sequence[Rule] = (),
    refund_settings: RefundSettings | None = None,
    id_factory: IdFactory | None = None,
) -> list[Transaction]:
    """Map, resolve merchants, categorize and link refunds.

    Pure: the same inputs always give the same transactions, ids included
    unless a non-deterministic ``id_factory`` is supplied.
    """
    start = perf_counter()
    transactions = map_rows(rows, mapping, account_type=account_type, id_factory=id_factory)
    transactions = resolve_all_merchants(transactions, merchants, overrides or {})
    transactions = categorize_all(transactions, rules, merchants, account_type=account_type)
    transactions = link_refunds(transactions, refund_settings or RefundSettings())
    logger.info(
        "Pipeline processed %d rows in %s",
        len(transactions),
        _format_duration(perf_counter() - start),
    )
    return transactions


class ImportSession:
    """State of the single active import plus everything loaded from the store.

    Every edit is persisted first and then the whole pipeline reruns from the
    raw rows, so the visible transactions always reflect the current rules,
    merchants and settings.
    """

    def __init__(self, store: LocalStore):
        self.store = store
        self.merchants: list[MerchantEntry] = []
        self.rules: list[Rule] = []
        self.overrides: dict[str, str] = {}
        self.refund_settings: RefundSettings = RefundSettings()
        self._clear_import()

    def _clear_import(self) -> None:
        self.file_name: str | None = None
        self.headers: list[str] = []
        self.rows: list[RawRow] = []
        self.warnings: list[str] = []
        self.mapping: ColumnMapping | None = None
        self.account_type: AccountType = "unknown"
        self.transactions: list[Transaction] = []

    def load(self) -> None:
        self.merchants = self.store.load_merchants()
        self.rules = self.store.load_rules()
        self.overrides = self.store.load_overrides()
        self.refund_settings = self.store.load_refund_settings()
        logger.info(
            "Loaded %d merchants, %d rules, %d overrides from %s",
            len(self.merchants),
            len(self.rules),
            len(self.overrides),
            self.store.data_dir,
        )

    @property
    def dictionary(self) -> tuple[MerchantEntry, ...]:
        return build_merchant_dictionary(SEED_MERCHANTS, self.merchants)

    @property
    def has_import(self) -> bool:
        return bool(self.headers)

    @property
    def is_processed(self) -> bool:
        return self.mapping is not None

    def import_csv(self, text: str, file_name: str | None = None) -> ImportPreview:
        parsed = parse_csv_string(text)
        if not parsed.headers:
            raise InvalidImportError("CSV has no header row")

        detection = detect_account_type(
            parsed.headers, parsed.rows, sample_size=settings.account_sample_rows()
        )
        mapping = detect_column_mapping(parsed.headers)
        account_type = detection.type

        saved = self.store.find_format(parsed.headers)
        if saved:
            logger.info("Recognized saved format '%s'", saved.name)
            mapping = saved.mapping
            if saved.account_type:
                account_type = saved.account_type

        self._clear_import()
        self.file_name = file_name
        self.headers = parsed.headers
        self.rows = parsed.rows
        self.warnings = parsed.errors
        self.account_type = account_type

        logger.info(
            "Imported %d rows from %s (%d warnings)",
            len(parsed.rows),
            file_name or "upload",
            len(parsed.errors),
        )
        return ImportPreview(
            file_name=file_name,
            headers=parsed.headers,
            row_count=len(parsed.rows),
            warnings=parsed.errors,
            mapping=mapping,
            account_detection=detection,
            account_type=account_type,
            recalled_format=saved is not None,
        )

    def confirm_mapping(self, mapping: ColumnMapping, account_type: AccountType) -> list[Transaction]:
        if not self.has_import:
            raise NoActiveImportError("No CSV has been imported")

        signature = BankFormatSignature(
            id=format_signature(self.headers),
            name=self.file_name or "Imported format",
            columns=self.headers,
            mapping=mapping,
            account_type=account_type,
        )
        self.store.save_format(signature)

        self.mapping = mapping
        self.account_type = account_type
        return self.reprocess()

    def reprocess(self) -> list[Transaction]:
        if self.mapping is None:
            raise NoActiveImportError("No confirmed import to process")
        self.transactions = run_pipeline(
            self.rows,
            self.mapping,
            account_type=self.account_type,
            merchants=self.dictionary,
            overrides=self.overrides,
            rules=self.rules,
            refund_settings=self.refund_settings,
        )
        return self.transactions

    def _refresh(self) -> None:
        if self.is_processed:
            self.reprocess()

    def update_merchant(self, entry: MerchantEntry) -> None:
        self.store.save_merchant(entry)
        self.merchants = [m for m in self.merchants if m.canonical_name != entry.canonical_name]
        self.merchants.append(entry)
        self._refresh()

    def delete_merchant(self, canonical_name: str) -> bool:
        removed = self.store.delete_merchant(canonical_name)
        if removed:
            self.merchants = [m for m in self.merchants if m.canonical_name != canonical_name]
            self._refresh()
        return removed

    def add_override(self, raw_description: str, canonical_name: str) -> None:
        self.store.save_override(raw_description, canonical_name)
        self.overrides[raw_description] = canonical_name
        self._refresh()

    def save_rule(self, rule: Rule) -> None:
        self.store.save_rule(rule)
        self.rules = [r for r in self.rules if r.id != rule.id]
        self.rules.append(rule)
        self._refresh()

    def remove_rule(self, rule_id: str) -> bool:
        removed = self.store.delete_rule(rule_id)
        if removed:
            self.rules = [r for r in self.rules if r.id != rule_id]
            self._refresh()
        return removed

    def update_refund_settings(self, refund_settings: RefundSettings) -> None:
        self.store.save_refund_settings(refund_settings)
        self.refund_settings = refund_settings
        self._refresh()

    def reset(self) -> None:
        logger.info("Import cleared")
        self._clear_import()
