"""
Unit tests for ServerConfig and the command line.
"""

import logging

import pytest

from tinyhttpd import __version__
from tinyhttpd.__main__ import config_from_args
from tinyhttpd.config import ServerConfig


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 4221
        assert config.read_timeout == 5.0
        assert config.max_headers == 64
        assert config.complete_body is False
        assert config.confine_files is True
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TINYHTTPD_PORT", "8081")
        monkeypatch.setenv("TINYHTTPD_DIRECTORY", "/tmp/data")
        monkeypatch.setenv("TINYHTTPD_READ_TIMEOUT", "1.5")
        monkeypatch.setenv("TINYHTTPD_LOG_LEVEL", "debug")

        config = ServerConfig.from_env()

        assert config.port == 8081
        assert config.directory == "/tmp/data"
        assert config.read_timeout == 1.5
        assert config.log_level == "DEBUG"
        assert config.log_level_value == logging.DEBUG

    def test_port_zero_is_valid(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("kwargs", [
        {"port": -1},
        {"port": 70000},
        {"read_timeout": 0},
        {"buffer_size": 0},
        {"max_headers": 0},
        {"gzip_level": 0},
        {"gzip_level": 10},
        {"log_level": "LOUD"},
    ])
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ValueError):
            ServerConfig(**kwargs).validate()


class TestCommandLine:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TINYHTTPD_PORT", raising=False)
        config = config_from_args([])

        assert config.port == 4221
        assert config.directory == "."
        assert config.confine_files is True

    def test_flags(self):
        config = config_from_args([
            "--directory", "/tmp/x",
            "--port", "0",
            "--timeout", "2.5",
            "--log-level", "debug",
            "--complete-body",
            "--allow-traversal",
        ])

        assert config.directory == "/tmp/x"
        assert config.port == 0
        assert config.read_timeout == 2.5
        assert config.log_level == "DEBUG"
        assert config.complete_body is True
        assert config.confine_files is False

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("TINYHTTPD_PORT", "9000")

        assert config_from_args([]).port == 9000
        assert config_from_args(["--port", "9001"]).port == 9001

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            config_from_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out
