import os

from dotenv import find_dotenv, load_dotenv

from transaction_analyzer.logger import get_logger
from transaction_analyzer.models import RefundSettings

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "REFUND_DAYS_WINDOW",
    "REFUND_AMOUNT_TOLERANCE",
    "REFUND_MATCH_THRESHOLD",
    "EXPORT_SAMPLE_SIZE",
    "ACCOUNT_SAMPLE_ROWS",
)

_SENSITIVE_MARKERS = ("KEY", "TOKEN", "SECRET", "PASSWORD", "AUTH")


def _find_dotenv_file() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    return find_dotenv(usecwd=True) or None


def _find_config_file() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    nested = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    if os.path.exists(nested):
        return nested
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    escaped = False
    for index, char in enumerate(raw_value):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
        elif char == "'" and not in_double:
            in_single = not in_single
        elif char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) < 2 or raw_value[0] != raw_value[-1] or raw_value[0] not in "\"'":
        return raw_value
    quote = raw_value[0]
    return raw_value[1:-1].replace("\\" + quote, quote).replace("\\\\", "\\")


def _clean_value(raw_value: str) -> str:
    return _unquote_value(_strip_inline_comment(raw_value).strip())


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` lines; nesting and lists are not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            value = _clean_value(raw_value)
            if key and value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES

    dotenv_path = _find_dotenv_file()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_PATH = _find_config_file()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        if path and path not in {".", "./"}:
            os.makedirs(path, exist_ok=True)


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    out_of_range = (min_value is not None and value < min_value) or (
        max_value is not None and value > max_value
    )
    if out_of_range:
        logger.warning("[ENV] %s='%s' out of range, using default %s.", name, raw, default)
        return default
    return value


def default_refund_settings() -> RefundSettings:
    return RefundSettings(
        days_window=get_env_int("REFUND_DAYS_WINDOW", 90, min_value=1),
        amount_tolerance=get_env_float("REFUND_AMOUNT_TOLERANCE", 0.05, min_value=0.0),
        match_threshold=get_env_float(
            "REFUND_MATCH_THRESHOLD", 0.4, min_value=0.0, max_value=1.0
        ),
    )


def export_sample_size() -> int:
    return get_env_int("EXPORT_SAMPLE_SIZE", 50, min_value=1)


def account_sample_rows() -> int:
    return get_env_int("ACCOUNT_SAMPLE_ROWS", 100, min_value=1)


def _mask(name: str, value: str) -> str:
    if not any(marker in name.upper() for marker in _SENSITIVE_MARKERS):
        return value
    if len(value) <= 4:
        return "****"
    return f"{value[:2]}...{value[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Effective configuration (config file: %s)", _CONFIG_FILE_PATH)
    for key in ("CONFIG_DIR", *_CONFIG_KEYS):
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")

ensure_dirs(DATA_DIR, LOG_DIR, CONFIG_DIR)
