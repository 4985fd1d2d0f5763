#!/usr/bin/env python3
"""
Unit tests for settings loading
"""
from pathlib import Path

import pytest

from treasury_monitor.config import MonitorSettings, load_settings
from treasury_monitor.errors import ConfigError


class TestLoadSettings:
    """Test load_settings with explicit env mappings"""

    def test_defaults(self):
        settings = load_settings({})

        assert settings.rpc_url == "https://api.mainnet-beta.solana.com"
        assert settings.commitment == "confirmed"
        assert settings.interval_minutes == 5
        assert settings.interval_seconds == 300
        assert settings.telegram_message_id is None
        assert settings.balances_file.name == "balances.json"
        assert settings.report_title == "Funds"
        assert settings.presence_description == "Watching Treasury Balances"

    def test_values_from_env(self, tmp_path):
        settings = load_settings({
            "RPC_URL": "https://rpc.example",
            "RPC_COMMITMENT": "finalized",
            "RPC_MAX_CONCURRENT": "3",
            "TELEGRAM_BOT_TOKEN": "1:x",
            "TELEGRAM_CHAT_ID": "-100",
            "TELEGRAM_MESSAGE_ID": "77",
            "INTERVAL_MINUTES": "0.5",
            "BALANCES_FILE": str(tmp_path / "state.json"),
            "REPORT_TIMEZONE": "UTC",
        })

        assert settings.rpc_url == "https://rpc.example"
        assert settings.commitment == "finalized"
        assert settings.rpc_max_concurrent == 3
        assert settings.telegram_message_id == 77
        assert settings.interval_seconds == 30
        assert settings.balances_file == tmp_path / "state.json"
        assert settings.report_timezone == "UTC"

    def test_relative_balances_file_under_project_root(self):
        settings = load_settings({"BALANCES_FILE": "var/b.json"})

        assert settings.balances_file.is_absolute()
        assert settings.balances_file.parts[-2:] == ("var", "b.json")

    @pytest.mark.parametrize("env", [
        {"TELEGRAM_MESSAGE_ID": "abc"},
        {"INTERVAL_MINUTES": "soon"},
        {"INTERVAL_MINUTES": "0"},
        {"RPC_TIMEOUT_SECONDS": "-1"},
        {"RPC_MAX_CONCURRENT": "0"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigError):
            load_settings(env)

    def test_dataclass_defaults(self):
        assert isinstance(MonitorSettings().balances_file, Path)
