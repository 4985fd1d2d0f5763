"""
Configuration for the Treasury Balance Monitor

All settings in one place, read once at startup from the environment
(a ``.env`` file in the project root is loaded first when present).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

_project_root = Path(__file__).parent.parent
_env_path = _project_root / ".env"

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_COMMITMENT = "confirmed"
DEFAULT_PRICE_API_URL = "https://api.coingecko.com/api/v3/simple/price"
DEFAULT_EXPLORER_URL = "https://solscan.io/account/{address}"
DEFAULT_INTERVAL_MINUTES = 5
DEFAULT_BALANCES_FILE = "data/balances.json"

LOG_LEVEL = "INFO"
LOG_FILE = "logs/monitor.log"


@dataclass
class MonitorSettings:
    """All configuration settings."""

    # -------------------------------------------------------------------------
    # Solana RPC
    # -------------------------------------------------------------------------
    rpc_url: str = DEFAULT_RPC_URL
    # Finality level for both balance reads ("processed", "confirmed", "finalized")
    commitment: str = DEFAULT_COMMITMENT
    # Concurrent balance requests per cycle
    rpc_max_concurrent: int = 5
    rpc_timeout_sec: float = 10.0
    rpc_max_retries: int = 2
    rpc_backoff_sec: float = 1.0

    # -------------------------------------------------------------------------
    # Price source
    # -------------------------------------------------------------------------
    price_api_url: str = DEFAULT_PRICE_API_URL
    price_asset_id: str = "solana"
    price_timeout_sec: float = 10.0

    # -------------------------------------------------------------------------
    # Telegram
    # -------------------------------------------------------------------------
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    # The dashboard message that is edited every cycle
    telegram_message_id: Optional[int] = None
    # Optional separate chat for started/stopped/error notices
    telegram_operator_chat_id: str = ""

    # -------------------------------------------------------------------------
    # Scheduling and state
    # -------------------------------------------------------------------------
    interval_minutes: float = DEFAULT_INTERVAL_MINUTES
    balances_file: Path = field(default_factory=lambda: _project_root / DEFAULT_BALANCES_FILE)

    # -------------------------------------------------------------------------
    # Report
    # -------------------------------------------------------------------------
    report_title: str = "Funds"
    report_timezone: str = "America/New_York"
    explorer_url: str = DEFAULT_EXPLORER_URL
    presence_name: str = "Treasury"
    presence_description: str = "Watching Treasury Balances"

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = LOG_LEVEL
    log_file: str = LOG_FILE

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60


def _get_int(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> MonitorSettings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read from (default: os.environ after loading .env)

    Returns:
        MonitorSettings instance

    Raises:
        ConfigError: If a numeric setting cannot be parsed
    """
    if env is None:
        if _env_path.exists():
            load_dotenv(_env_path)
        env = os.environ

    defaults = MonitorSettings()

    balances_file = env.get("BALANCES_FILE", "").strip()
    if balances_file:
        path = Path(balances_file)
        balances_path = path if path.is_absolute() else _project_root / path
    else:
        balances_path = defaults.balances_file

    max_concurrent = _get_int(env, "RPC_MAX_CONCURRENT", defaults.rpc_max_concurrent)
    if max_concurrent < 1:
        raise ConfigError("RPC_MAX_CONCURRENT must be at least 1")

    return MonitorSettings(
        rpc_url=env.get("RPC_URL", "").strip() or defaults.rpc_url,
        commitment=env.get("RPC_COMMITMENT", "").strip() or defaults.commitment,
        rpc_max_concurrent=max_concurrent,
        rpc_timeout_sec=_get_float(env, "RPC_TIMEOUT_SECONDS", defaults.rpc_timeout_sec),
        rpc_max_retries=max(0, _get_int(env, "RPC_MAX_RETRIES", defaults.rpc_max_retries)),
        price_api_url=env.get("PRICE_API_URL", "").strip() or defaults.price_api_url,
        price_asset_id=env.get("PRICE_ASSET_ID", "").strip() or defaults.price_asset_id,
        telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN", ""),
        telegram_chat_id=env.get("TELEGRAM_CHAT_ID", ""),
        telegram_message_id=_get_int(env, "TELEGRAM_MESSAGE_ID", None),
        telegram_operator_chat_id=env.get("TELEGRAM_OPERATOR_CHAT_ID", ""),
        interval_minutes=_get_float(env, "INTERVAL_MINUTES", defaults.interval_minutes),
        balances_file=balances_path,
        report_title=env.get("REPORT_TITLE", "").strip() or defaults.report_title,
        report_timezone=env.get("REPORT_TIMEZONE", "").strip() or defaults.report_timezone,
        explorer_url=env.get("EXPLORER_URL", "").strip() or defaults.explorer_url,
        presence_name=env.get("PRESENCE_NAME", "").strip() or defaults.presence_name,
        presence_description=env.get("PRESENCE_DESCRIPTION", "").strip() or defaults.presence_description,
        log_level=env.get("LOG_LEVEL", "").strip() or defaults.log_level,
        log_file=env.get("LOG_FILE", "").strip() or defaults.log_file,
    )
