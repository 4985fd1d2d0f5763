"""
Treasury Balance Monitor
========================

Polls Solana treasury accounts, tracks balance changes in a JSON state
file, and keeps a single Telegram dashboard message up to date.
"""

from .config import MonitorSettings, load_settings
from .monitor import (
    BalanceReader,
    ReportAggregator,
    StateStore,
    TelegramPublisher,
    PublisherConfig,
    TreasuryMonitor,
)
from .api import SolanaRPCClient, CoinGeckoPriceOracle


def build_monitor(settings: MonitorSettings, dry_run: bool = False) -> TreasuryMonitor:
    """
    Wire a TreasuryMonitor from settings.

    Args:
        settings: Loaded settings
        dry_run: Print the dashboard instead of editing the Telegram message

    Returns:
        Ready-to-run TreasuryMonitor
    """
    client = SolanaRPCClient(
        settings.rpc_url,
        commitment=settings.commitment,
        max_concurrent=settings.rpc_max_concurrent,
        timeout_sec=settings.rpc_timeout_sec,
        max_retries=settings.rpc_max_retries,
        backoff_sec=settings.rpc_backoff_sec,
    )
    publisher = TelegramPublisher(PublisherConfig(
        bot_token=settings.telegram_bot_token,
        chat_id=settings.telegram_chat_id,
        message_id=settings.telegram_message_id,
        operator_chat_id=settings.telegram_operator_chat_id,
        dry_run=dry_run,
    ))
    return TreasuryMonitor(
        state_store=StateStore(settings.balances_file),
        balance_reader=BalanceReader(client, max_concurrent=settings.rpc_max_concurrent),
        price_oracle=CoinGeckoPriceOracle(
            base_url=settings.price_api_url,
            asset_id=settings.price_asset_id,
            timeout_s=settings.price_timeout_sec,
        ),
        publisher=publisher,
        aggregator=ReportAggregator(
            title=settings.report_title,
            explorer_url=settings.explorer_url,
            tz_name=settings.report_timezone,
        ),
        interval_minutes=settings.interval_minutes,
        presence_name=settings.presence_name,
        presence_description=settings.presence_description,
    )


__all__ = [
    "MonitorSettings",
    "load_settings",
    "build_monitor",
    "TreasuryMonitor",
]
