"""
Telegram Publisher
==================

Publishes the balance report by editing one fixed Telegram message, so the
chat holds a single live dashboard instead of a growing history.

Also handles:
- Startup identity (bot name / short description)
- Service status notices to an optional operator chat
"""

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import requests

from ..errors import PublishFailed
from .report import Report, ReportField

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
REQUEST_TIMEOUT_SECONDS = 10

# Telegram rejects an edit whose content equals the current message
NOT_MODIFIED_MARKER = "message is not modified"


@dataclass
class PublisherConfig:
    """Configuration for the dashboard publisher."""
    bot_token: str
    chat_id: str
    message_id: Optional[int]
    operator_chat_id: str = ""
    dry_run: bool = False
    max_message_length: int = 4096


class TelegramError(Exception):
    """Telegram Bot API returned ok=false."""

    def __init__(self, method: str, description: str, error_code: Optional[int] = None):
        self.method = method
        self.description = description
        self.error_code = error_code
        super().__init__(f"{method}: {description}" + (f" ({error_code})" if error_code else ""))


class TelegramPublisher:
    """
    Telegram dashboard publisher.

    publish() edits the configured message in place; it never sends a new one.
    """

    def __init__(self, config: PublisherConfig, session: Optional[requests.Session] = None):
        """
        Initialize the publisher.

        Args:
            config: PublisherConfig with bot token, chat/message IDs, and settings
            session: HTTP session (default: a new requests.Session)
        """
        self.config = config
        self._validate()
        self._session = session or requests.Session()

    def _validate(self):
        """Validate configuration."""
        if not self.config.dry_run:
            if not self.config.bot_token:
                raise ValueError("TELEGRAM_BOT_TOKEN is required (or use --dry-run)")
            if not self.config.chat_id:
                raise ValueError("TELEGRAM_CHAT_ID is required (or use --dry-run)")
            if self.config.message_id is None:
                raise ValueError("TELEGRAM_MESSAGE_ID is required (or use --dry-run)")

    def _call(self, method: str, payload: dict) -> dict:
        """
        Call a Bot API method.

        Returns:
            The ``result`` member of the response

        Raises:
            TelegramError: If Telegram answered ok=false
            requests.RequestException: On transport errors
        """
        url = f"{TELEGRAM_API}/bot{self.config.bot_token}/{method}"
        response = self._session.post(url, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise TelegramError(method, "non-JSON response", response.status_code)

        if not isinstance(body, dict):
            raise TelegramError(method, f"unexpected response body ({type(body).__name__})", response.status_code)
        if not body.get("ok"):
            raise TelegramError(method, str(body.get("description", "unknown error")), body.get("error_code"))
        return body.get("result") or {}

    def _truncate_details(self, details: str) -> str:
        """Cut notice details (before HTML escaping) to leave room for title and time."""
        limit = self.config.max_message_length // 2
        if len(details) > limit:
            return details[:limit - 16] + "\n... (truncated)"
        return details

    @staticmethod
    def _render_field(field: ReportField) -> str:
        lines = [f"<b>{html.escape(field.name)}</b>", html.escape(field.value)]
        if field.link:
            lines.append(f"<a href=\"{html.escape(field.link, quote=True)}\">solscan</a>")
        return "\n".join(lines)

    def render(self, report: Report) -> str:
        """
        Render a report as Telegram HTML within the message length limit.

        Account fields are dropped whole from the end until the message fits,
        replaced by a single "... N more accounts" line. Summary fields are
        always kept, so every tag in the output stays balanced.
        """
        header = f"<b>{html.escape(report.title)}</b>"
        accounts = [self._render_field(f) for f in report.fields if f.link is not None]
        summary = [self._render_field(f) for f in report.fields if f.link is None]

        shown = len(accounts)
        while True:
            blocks = [header, *accounts[:shown]]
            hidden = len(accounts) - shown
            if hidden:
                blocks.append(f"... {hidden} more account{'s' if hidden != 1 else ''}")
            blocks.extend(summary)
            text = "\n\n".join(blocks)
            if len(text) <= self.config.max_message_length or shown == 0:
                break
            shown -= 1

        if hidden:
            logger.warning(f"Dashboard too long, {hidden} account field(s) not shown")
        if len(text) > self.config.max_message_length:
            logger.warning(f"Dashboard summary alone exceeds {self.config.max_message_length} characters")
        return text

    def publish(self, report: Report) -> None:
        """
        Edit the dashboard message with the rendered report.

        Raises:
            PublishFailed: If the edit did not go through
        """
        text = self.render(report)

        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would edit Telegram message {self.config.message_id}:\n{text}")
            print(f"\n{'='*60}")
            print("[DRY RUN] Dashboard:")
            print("="*60)
            print(html.unescape(text.replace("<b>", "").replace("</b>", "")))
            print("="*60 + "\n")
            return

        payload = {
            "chat_id": self.config.chat_id,
            "message_id": self.config.message_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            self._call("editMessageText", payload)
        except TelegramError as e:
            if NOT_MODIFIED_MARKER in e.description.lower():
                logger.info("Dashboard unchanged, nothing to edit")
                return
            logger.error(f"Telegram rejected dashboard edit: {e}")
            raise PublishFailed(e) from e
        except requests.exceptions.Timeout as e:
            logger.error("Telegram request timed out")
            raise PublishFailed("timeout") from e
        except requests.exceptions.RequestException as e:
            # Exception text may contain the URL and therefore the token
            logger.error(f"Telegram request failed: {type(e).__name__}")
            raise PublishFailed(type(e).__name__) from e

        logger.info(f"Dashboard message {self.config.message_id} updated")

    def announce_presence(self, name: str, description: str) -> bool:
        """
        Set the bot's display name and short description.

        Startup side effect only; failures are logged and ignored.

        Returns:
            True if both calls succeeded
        """
        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would set bot name {name!r} and description {description!r}")
            return True

        ok = True
        for method, payload in (
            ("setMyName", {"name": name}),
            ("setMyShortDescription", {"short_description": description}),
        ):
            try:
                self._call(method, payload)
            except TelegramError as e:
                logger.warning(f"Could not set bot presence: {e}")
                ok = False
            except requests.exceptions.RequestException as e:
                logger.warning(f"Could not set bot presence: {type(e).__name__}")
                ok = False
        return ok

    def send_service_status(
        self,
        status: str,
        details: str = "",
        timestamp: datetime = None
    ) -> bool:
        """
        Send a service status notice to the operator chat.

        No-op when no operator chat is configured. Never raises.

        Args:
            status: Status type ("started", "stopped", "error", "cycle_failed")
            details: Additional details
            timestamp: Timestamp (default: now)

        Returns:
            True if sent successfully
        """
        if not self.config.operator_chat_id and not self.config.dry_run:
            return False

        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        title = {
            "started": "Treasury monitor started",
            "stopped": "Treasury monitor stopped",
            "error": "Treasury monitor error",
            "cycle_failed": "Balance cycle failed",
        }.get(status, f"Status: {status}")

        lines = [f"<b>{html.escape(title)}</b>"]
        if details:
            lines.append("")
            lines.append(html.escape(self._truncate_details(details)))
        lines.append("")
        lines.append(f"Time: {timestamp.strftime('%Y-%m-%d %H:%M:%S %Z')}")
        text = "\n".join(lines)

        if self.config.dry_run:
            logger.info(f"[DRY RUN] Would send operator notice:\n{text}")
            return True

        try:
            self._call("sendMessage", {
                "chat_id": self.config.operator_chat_id,
                "text": text,
                "parse_mode": "HTML",
            })
        except TelegramError as e:
            logger.error(f"Operator notice rejected: {e}")
            return False
        except requests.exceptions.RequestException as e:
            logger.error(f"Operator notice failed: {type(e).__name__}")
            return False
        return True
