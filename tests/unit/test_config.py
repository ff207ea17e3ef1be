"""
Unit tests for ServerConfig.
"""

import pytest

from formserver.config import ServerConfig


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == ""
        assert config.port == 8080
        assert config.static_dir == "static"
        assert config.keep_alive is True
        config.validate()

    @pytest.mark.parametrize("changes", [
        {"port": 0},
        {"port": 70000},
        {"backlog": 0},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"buffer_size": 512},
        {"timeout": 0},
        {"keep_alive_timeout": 0},
        {"max_header_size": 100},
        {"static_dir": ""},
    ])
    def test_invalid_settings(self, changes):
        with pytest.raises(ValueError):
            ServerConfig(**changes).validate()

    def test_timeout_may_be_disabled(self):
        ServerConfig(timeout=None).validate()
