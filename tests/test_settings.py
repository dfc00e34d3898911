import logging
import os

import pytest

from transaction_analyzer.core import settings
from transaction_analyzer.logger import ColourizedFormatter, get_logging_config


def test_get_env_int(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPORT_SAMPLE_SIZE", "25")
    assert settings.export_sample_size() == 25

    monkeypatch.setenv("EXPORT_SAMPLE_SIZE", "lots")
    assert settings.export_sample_size() == 50

    monkeypatch.setenv("EXPORT_SAMPLE_SIZE", "0")
    assert settings.export_sample_size() == 50

    monkeypatch.delenv("EXPORT_SAMPLE_SIZE")
    assert settings.export_sample_size() == 50


def test_get_env_float_range(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REFUND_MATCH_THRESHOLD", "0.7")
    assert settings.get_env_float("REFUND_MATCH_THRESHOLD", 0.4, 0.0, 1.0) == 0.7

    monkeypatch.setenv("REFUND_MATCH_THRESHOLD", "1.5")
    assert settings.get_env_float("REFUND_MATCH_THRESHOLD", 0.4, 0.0, 1.0) == 0.4


def test_default_refund_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REFUND_DAYS_WINDOW", "30")
    monkeypatch.setenv("REFUND_AMOUNT_TOLERANCE", "0.1")
    monkeypatch.delenv("REFUND_MATCH_THRESHOLD", raising=False)

    refund_settings = settings.default_refund_settings()

    assert refund_settings.days_window == 30
    assert refund_settings.amount_tolerance == 0.1
    assert refund_settings.match_threshold == 0.4


def test_read_config_file(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "# analyzer settings\n"
        "LOG_LEVEL: debug\n"
        "DATA_DIR: \"/srv/analyzer data\"\n"
        "REFUND_DAYS_WINDOW: 60  # two months\n"
        "LOG_DIR: './logs'  # where logs live\n"
        "NOTE: \"a # inside quotes\"\n"
        "EMPTY:\n",
        encoding="utf-8",
    )

    assert settings.read_config_file(str(path)) == {
        "LOG_LEVEL": "debug",
        "DATA_DIR": "/srv/analyzer data",
        "REFUND_DAYS_WINDOW": "60",
        "LOG_DIR": "./logs",
        "NOTE": "a # inside quotes",
    }
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}


def test_load_environment_prefers_real_environment(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "config.yaml").write_text(
        "REFUND_DAYS_WINDOW: 45\nACCOUNT_SAMPLE_ROWS: 10\n", encoding="utf-8"
    )
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("ACCOUNT_SAMPLE_ROWS", "20")
    # Records an undo for the value load_environment writes.
    monkeypatch.setenv("REFUND_DAYS_WINDOW", "")
    monkeypatch.delenv("REFUND_DAYS_WINDOW")

    settings.load_environment()

    assert os.environ["REFUND_DAYS_WINDOW"] == "45"
    assert settings.account_sample_rows() == 20
    assert settings.get_config_path() == str(tmp_path / "config.yaml")


def test_colourized_formatter_restores_levelname() -> None:
    formatter = ColourizedFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("test", logging.WARNING, __file__, 1, "careful", None, None)

    output = formatter.format(record)

    assert "\x1b[33m" in output
    assert record.levelname == "WARNING"


def test_logging_config_adds_file_handler(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = get_logging_config()

    assert config["handlers"]["file"]["filename"] == os.path.join(str(tmp_path), "app.log")
    assert config["loggers"][""]["level"] == "DEBUG"
    assert config["loggers"]["uvicorn"]["handlers"] == ["console", "file"]
