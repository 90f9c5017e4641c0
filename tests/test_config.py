from __future__ import annotations

import logging

import pytest

from spend_analysis.config import AnalysisSettings, load_settings
from spend_analysis.errors import InvalidParameterError
from spend_analysis.logging_setup import configure_logging, get_logger
from spend_analysis.models import SignConvention


def test_defaults_from_empty_env():
    assert load_settings({}) == AnalysisSettings()


def test_env_overrides():
    settings = load_settings(
        {
            "SPEND_ANALYSIS_SIGN_CONVENTION": " Outflow_Positive ",
            "SPEND_ANALYSIS_LOOKBACK_DAYS": "120",
            "SPEND_ANALYSIS_PERIOD_DAYS": "7",
            "SPEND_ANALYSIS_DEFAULT_CURRENCY": "usd",
        }
    )
    assert settings.sign_convention is SignConvention.OUTFLOW_POSITIVE
    assert settings.lookback_days == 120
    assert settings.period_days == 7
    assert settings.default_currency == "USD"


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("SPEND_ANALYSIS_PERIOD_DAYS", "14")
    assert load_settings().period_days == 14


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("SPEND_ANALYSIS_SIGN_CONVENTION", "sideways"),
        ("SPEND_ANALYSIS_LOOKBACK_DAYS", "ninety"),
        ("SPEND_ANALYSIS_PERIOD_DAYS", "0"),
    ],
)
def test_invalid_values_raise(key, value):
    with pytest.raises(InvalidParameterError, match=key):
        load_settings({key: value})


def test_get_logger_qualifies_short_names():
    assert get_logger("recurrence").name == "spend_analysis.recurrence"
    assert get_logger("spend_analysis.cli").name == "spend_analysis.cli"


def test_configure_logging_is_idempotent():
    first = configure_logging("DEBUG")
    handlers = list(first.handlers)
    second = configure_logging("warning")
    assert second is first
    assert second.handlers == handlers
    assert second.level == logging.WARNING
