"""Unit tests for structlog configuration."""

import io

import pytest
import structlog

from infrastructure.logging import build_processors, configure_logging
from infrastructure.settings import LoggingSettings


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def _renderer():
    return structlog.get_config()["processors"][-1]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_auto_with_forced_color_uses_console(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")

        configure_logging(LoggingSettings(format="auto"))

        assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)

    def test_auto_without_tty_uses_json(self, monkeypatch):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setattr("sys.stdout", io.StringIO())

        configure_logging(LoggingSettings(format="auto"))

        assert isinstance(_renderer(), structlog.processors.JSONRenderer)

    def test_explicit_json_ignores_force_color(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")

        configure_logging(LoggingSettings(format="json"))

        assert isinstance(_renderer(), structlog.processors.JSONRenderer)

    def test_level_filters_lower_events(self):
        configure_logging(LoggingSettings(level="warning", format="json"))

        assert structlog.get_config()["wrapper_class"] is (
            structlog.make_filtering_bound_logger(30)
        )

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValueError, match="verbose"):
            configure_logging(LoggingSettings(level="verbose", format="json"))


class TestBuildProcessors:
    """Tests for build_processors."""

    def test_json_chain_formats_exceptions(self):
        processors = build_processors(console=False)

        assert structlog.processors.format_exc_info in processors
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
