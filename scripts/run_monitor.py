#!/usr/bin/env python3
"""
Treasury Monitor Service - CLI Entry Point
==========================================

Polls the tracked accounts every INTERVAL_MINUTES, records balance changes
in the balances file, and edits the Telegram dashboard message.

Usage:
    # Start monitor
    python scripts/run_monitor.py

    # Single cycle, print the dashboard instead of editing it
    python scripts/run_monitor.py --once --dry-run

    # Test Telegram configuration (operator chat notice)
    python scripts/run_monitor.py --test-telegram
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from treasury_monitor import build_monitor, load_settings
from treasury_monitor.errors import ConfigError


def setup_logging(log_level: str, log_file: str):
    """Configure logging for the monitor service."""
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = project_root / log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Create date-stamped log file (e.g., logs/monitor_2026-01-18.log)
    date_str = datetime.now().strftime("%Y-%m-%d")
    dated_log_file = log_path.parent / f"{log_path.stem}_{date_str}{log_path.suffix}"

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # File handler (date-stamped)
    file_handler = logging.FileHandler(dated_log_file)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    root_logger.info(f"Logging to: {dated_log_file}")


def main():
    parser = argparse.ArgumentParser(
        description='Treasury Balance Monitor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_monitor.py                   # Start monitor
  python scripts/run_monitor.py --dry-run         # Console dashboard only
  python scripts/run_monitor.py --once            # Run one cycle and exit
  python scripts/run_monitor.py --test-telegram   # Test operator chat setup
        """
    )

    parser.add_argument(
        '--interval',
        type=float,
        default=None,
        help='Minutes between cycles (default: INTERVAL_MINUTES or 5)'
    )

    parser.add_argument(
        '--state-file',
        type=Path,
        default=None,
        help='Path to balances JSON (default: BALANCES_FILE or data/balances.json)'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single cycle and exit'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print the dashboard to console instead of editing the Telegram message'
    )

    parser.add_argument(
        '--test-telegram',
        action='store_true',
        help='Send a test notice to the operator chat'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Log level (default: LOG_LEVEL or INFO)'
    )

    args = parser.parse_args()

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)

    if args.interval is not None:
        if args.interval <= 0:
            print("--interval must be positive")
            sys.exit(2)
        settings.interval_minutes = args.interval
    if args.state_file is not None:
        settings.balances_file = args.state_file
    if args.log_level is not None:
        settings.log_level = args.log_level

    setup_logging(settings.log_level, settings.log_file)
    logger = logging.getLogger(__name__)

    try:
        monitor = build_monitor(settings, dry_run=args.dry_run)
    except ValueError as e:
        print(f"\nWARNING: {e}")
        print("Set the environment variable (see .env) or use --dry-run for console output.")
        sys.exit(1)

    if args.test_telegram:
        print("Testing Telegram configuration...")
        success = monitor.publisher.send_service_status(
            "started",
            "Test notice - treasury monitor configuration verified."
        )
        if success:
            print("Test notice sent successfully!")
            sys.exit(0)
        print("Failed to send test notice. Check TELEGRAM_BOT_TOKEN and TELEGRAM_OPERATOR_CHAT_ID.")
        sys.exit(1)

    print("\n" + "=" * 60)
    print("TREASURY BALANCE MONITOR")
    print("=" * 60)
    print(f"RPC endpoint:   {settings.rpc_url} ({settings.commitment})")
    print(f"State file:     {settings.balances_file}")
    print(f"Interval:       {settings.interval_minutes:g} minutes")
    print(f"Dashboard:      chat {settings.telegram_chat_id or '-'} / message {settings.telegram_message_id or '-'}")
    print(f"Dry run:        {args.dry_run}")
    print(f"Log level:      {settings.log_level}")
    print("=" * 60)

    if args.once:
        result = monitor.run_cycle()
        print(f"\nCycle finished: {result.status}")
        sys.exit(0 if result.status == "published" else 1)

    try:
        print("\nStarting monitor service...")
        print("Press Ctrl+C to stop\n")
        monitor.run()
    except KeyboardInterrupt:
        print("\n\nMonitor stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Monitor service error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
