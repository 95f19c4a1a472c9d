"""
Operator notifications.

Best-effort: the pipeline logs and ignores any NotificationError.
"""

import logging

import requests

from fraudgate import NotificationError, Notifier

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier(Notifier):
    """Sends HTML-formatted messages to one Telegram chat via the Bot API."""

    def __init__(self, token: str, chat_id: str, timeout: float = 5.0, session=None):
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, text: str) -> None:
        url = f"{TELEGRAM_API}/bot{self.token}/sendMessage"
        try:
            r = self.session.post(
                url,
                json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"},
                timeout=self.timeout
            )
            r.raise_for_status()
        except requests.RequestException as e:
            # Never include the URL: it carries the bot token
            raise NotificationError(f"Telegram send failed: {type(e).__name__}") from e


class LogNotifier(Notifier):
    """Fallback when Telegram credentials are missing."""

    def send(self, text: str) -> None:
        logger.info("Telegram credentials missing, skipping notification")


def get_notifier() -> Notifier:
    from . import config

    if config.TELEGRAM_BOT_TOKEN and config.TELEGRAM_CHAT_ID:
        return TelegramNotifier(config.TELEGRAM_BOT_TOKEN, config.TELEGRAM_CHAT_ID)
    return LogNotifier()
