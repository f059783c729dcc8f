"""Tests for environment-driven codec settings."""

import pytest
from pydantic import ValidationError

from correlate.config import CodecSettings, ReferenceLoopHandling, get_settings

ENV_VARS = (
    "CORRELATE_JSON_DATE_FORMAT",
    "CORRELATE_JSON_PRETTY_PRINT",
    "CORRELATE_JSON_IGNORE_NULL_VALUES",
    "CORRELATE_JSON_REFERENCE_LOOP_HANDLING",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestCodecSettings:
    def test_defaults(self, clean_env):
        settings = CodecSettings()
        assert settings.date_format is None
        assert settings.pretty_print is False
        assert settings.ignore_null_values is False
        assert settings.reference_loop_handling == ReferenceLoopHandling.SERIALIZE

    def test_reads_environment(self, clean_env):
        clean_env.setenv("CORRELATE_JSON_DATE_FORMAT", "%Y/%m/%d")
        clean_env.setenv("CORRELATE_JSON_PRETTY_PRINT", "true")
        clean_env.setenv("CORRELATE_JSON_IGNORE_NULL_VALUES", "1")
        clean_env.setenv("CORRELATE_JSON_REFERENCE_LOOP_HANDLING", "Ignore")
        settings = CodecSettings()
        assert settings.date_format == "%Y/%m/%d"
        assert settings.pretty_print is True
        assert settings.ignore_null_values is True
        assert settings.reference_loop_handling == ReferenceLoopHandling.IGNORE

    def test_blank_date_format_means_iso(self, clean_env):
        clean_env.setenv("CORRELATE_JSON_DATE_FORMAT", "  ")
        assert CodecSettings().date_format is None

    def test_unknown_loop_handling(self, clean_env):
        clean_env.setenv("CORRELATE_JSON_REFERENCE_LOOP_HANDLING", "explode")
        with pytest.raises(ValidationError):
            CodecSettings()

    def test_explicit_values_win(self, clean_env):
        clean_env.setenv("CORRELATE_JSON_PRETTY_PRINT", "true")
        assert CodecSettings(pretty_print=False).pretty_print is False

    def test_frozen(self, clean_env):
        settings = CodecSettings()
        with pytest.raises(ValidationError):
            settings.pretty_print = True


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
