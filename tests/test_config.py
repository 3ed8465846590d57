"""Tests for logger and client configuration."""

import pytest
from pydantic import ValidationError

from restkit.config import ClientConfig, LoggerSettings, LogLevel, parse_level


class TestParseLevel:
    """Tests for parse_level."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("debug", LogLevel.DEBUG),
            ("INFO", LogLevel.INFO),
            (" warning ", LogLevel.WARNING),
            ("warn", LogLevel.WARNING),
            ("Error", LogLevel.ERROR),
            ("panic", LogLevel.PANIC),
            ("fatal", LogLevel.FATAL),
        ],
    )
    def test_known_levels(self, value, expected):
        """Test recognized level names in any case."""
        assert parse_level(value) == expected

    @pytest.mark.parametrize("value", [None, "", "verbose", "trace", "5"])
    def test_unknown_defaults_to_info(self, value):
        """Test unrecognized values fall back to info."""
        assert parse_level(value) == LogLevel.INFO


class TestLoggerSettings:
    """Tests for LoggerSettings."""

    def test_defaults(self):
        """Test default sinks and level."""
        settings = LoggerSettings()

        assert settings.level == LogLevel.INFO
        assert settings.output_paths == ["stdout"]
        assert settings.error_output_paths == ["stderr"]
        assert settings.initial_fields == {}
        assert settings.json_logs is True

    def test_level_from_string(self):
        """Test the level field accepts level names."""
        assert LoggerSettings(level="WARN").level == LogLevel.WARNING
        assert LoggerSettings(level="nonsense").level == LogLevel.INFO

    def test_from_env(self):
        """Test reading LOG_* variables."""
        settings = LoggerSettings.from_env(
            {
                "LOG_LEVEL": "debug",
                "LOG_OUTPUT": " /var/log/app.log ",
                "LOG_ERROR_OUTPUT": "stdout",
                "LOG_FORMAT": "console",
            }
        )

        assert settings.level == LogLevel.DEBUG
        assert settings.output_paths == ["/var/log/app.log"]
        assert settings.error_output_paths == ["stdout"]
        assert settings.json_logs is False

    def test_from_env_empty(self):
        """Test unset variables keep the defaults."""
        settings = LoggerSettings.from_env({})

        assert settings == LoggerSettings()

    def test_from_env_reads_os_environ(self, monkeypatch):
        """Test os.environ is used when no mapping is given."""
        monkeypatch.setenv("LOG_LEVEL", "error")
        monkeypatch.delenv("LOG_OUTPUT", raising=False)

        settings = LoggerSettings.from_env()

        assert settings.level == LogLevel.ERROR
        assert settings.output_paths == ["stdout"]


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self):
        """Test a single attempt and no timeout by default."""
        config = ClientConfig()

        assert config.timeout is None
        assert config.max_attempts == 1

    def test_from_env(self):
        """Test reading REST_* variables."""
        config = ClientConfig.from_env({"REST_TIMEOUT": "2.5", "REST_MAX_ATTEMPTS": "4"})

        assert config.timeout == 2.5
        assert config.max_attempts == 4

    @pytest.mark.parametrize(
        "environ",
        [{"REST_TIMEOUT": "soon"}, {"REST_TIMEOUT": "-1"}, {"REST_MAX_ATTEMPTS": "0"}],
    )
    def test_invalid_values(self, environ):
        """Test invalid values are rejected."""
        with pytest.raises(ValidationError):
            ClientConfig.from_env(environ)
