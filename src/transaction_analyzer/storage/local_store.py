import json
import os
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from transaction_analyzer.core import settings
from transaction_analyzer.domain.parse import format_signature
from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import BankFormatSignature, MerchantEntry, RefundSettings, Rule

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MERCHANTS_FILE = "merchants.json"
RULES_FILE = "rules.json"
FORMATS_FILE = "formats.json"
OVERRIDES_FILE = "overrides.json"
SETTINGS_FILE = "settings.json"


class LocalStore:
    """JSON-file persistence for everything a user teaches the analyzer.

    Each collection lives in its own file under ``data_dir`` as an object keyed
    by the record's natural key. Unreadable files load as empty collections and
    individual bad records are skipped, so a damaged file never blocks an import.
    """

    def __init__(self, data_dir: str = "."):
        self.data_dir = data_dir
        settings.ensure_dirs(data_dir)

    def _path(self, filename: str) -> str:
        return os.path.join(self.data_dir, filename)

    def _read(self, filename: str) -> dict[str, Any]:
        path = self._path(filename)
        if not os.path.exists(path):
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read %s (%s); starting empty.", path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Unexpected content in %s; starting empty.", path)
            return {}
        return data

    def _write(self, filename: str, data: dict[str, Any]) -> None:
        with open(self._path(filename), "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _load_models(self, filename: str, model: type[ModelT]) -> list[ModelT]:
        records: list[ModelT] = []
        for key, raw in self._read(filename).items():
            try:
                records.append(model.model_validate(raw))
            except ValidationError as exc:
                logger.warning(
                    "Skipping invalid %s record '%s' in %s: %s",
                    model.__name__,
                    key,
                    filename,
                    exc.errors()[0].get("msg", "invalid"),
                )
        return records

    def _upsert(self, filename: str, key: str, value: dict[str, Any]) -> None:
        data = self._read(filename)
        data[key] = value
        self._write(filename, data)

    def _remove(self, filename: str, key: str) -> bool:
        data = self._read(filename)
        if key not in data:
            return False
        del data[key]
        self._write(filename, data)
        return True

    # Merchants

    def load_merchants(self) -> list[MerchantEntry]:
        return self._load_models(MERCHANTS_FILE, MerchantEntry)

    def save_merchant(self, entry: MerchantEntry) -> None:
        self._upsert(MERCHANTS_FILE, entry.canonical_name, entry.model_dump())

    def delete_merchant(self, canonical_name: str) -> bool:
        return self._remove(MERCHANTS_FILE, canonical_name)

    # Rules

    def load_rules(self) -> list[Rule]:
        return self._load_models(RULES_FILE, Rule)

    def save_rule(self, rule: Rule) -> None:
        self._upsert(RULES_FILE, rule.id, rule.model_dump())

    def delete_rule(self, rule_id: str) -> bool:
        return self._remove(RULES_FILE, rule_id)

    # Bank formats

    def load_formats(self) -> list[BankFormatSignature]:
        return self._load_models(FORMATS_FILE, BankFormatSignature)

    def save_format(self, signature: BankFormatSignature) -> None:
        self._upsert(FORMATS_FILE, signature.id, signature.model_dump())

    def find_format(self, headers: Sequence[str]) -> BankFormatSignature | None:
        signature_id = format_signature(headers)
        for signature in self.load_formats():
            if signature.id == signature_id:
                return signature
        return None

    # Merchant overrides

    def load_overrides(self) -> dict[str, str]:
        overrides: dict[str, str] = {}
        for raw, canonical in self._read(OVERRIDES_FILE).items():
            if isinstance(canonical, str) and canonical.strip():
                overrides[raw] = canonical
            else:
                logger.warning("Skipping invalid merchant override for '%s'.", raw)
        return overrides

    def save_override(self, raw_description: str, canonical_name: str) -> None:
        data = self._read(OVERRIDES_FILE)
        data[raw_description] = canonical_name
        self._write(OVERRIDES_FILE, data)

    # Refund settings

    def load_refund_settings(
        self,
        default: Callable[[], RefundSettings] = settings.default_refund_settings,
    ) -> RefundSettings:
        raw = self._read(SETTINGS_FILE).get("refunds")
        if raw is None:
            return default()
        try:
            return RefundSettings.model_validate(raw)
        except ValidationError:
            logger.warning("Stored refund settings are invalid; using defaults.")
            return default()

    def save_refund_settings(self, refund_settings: RefundSettings) -> None:
        data = self._read(SETTINGS_FILE)
        data["refunds"] = refund_settings.model_dump()
        self._write(SETTINGS_FILE, data)
