import pytest
import requests

from fraudgate import NotificationError

from app import config
from app.notify import LogNotifier, TelegramNotifier, get_notifier

TOKEN = "123456:secret-bot-token"


def response(status_code, url):
    r = requests.Response()
    r.status_code = status_code
    r.url = url
    r.reason = "Unauthorized" if status_code == 401 else "OK"
    return r


class FakeSession:
    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return response(self.status_code, url)


def test_telegram_posts_html_message():
    session = FakeSession()
    TelegramNotifier(TOKEN, "-100200", session=session).send("<b>New order</b>")

    assert session.posts == [{
        "url": f"https://api.telegram.org/bot{TOKEN}/sendMessage",
        "json": {"chat_id": "-100200", "text": "<b>New order</b>", "parse_mode": "HTML"},
        "timeout": 5.0,
    }]


def test_telegram_error_status_raises_without_token():
    notifier = TelegramNotifier(TOKEN, "-100200", session=FakeSession(status_code=401))

    with pytest.raises(NotificationError) as exc:
        notifier.send("hello")
    assert TOKEN not in str(exc.value)
    assert "HTTPError" in str(exc.value)


def test_telegram_connection_error_raises_without_token():
    error = requests.ConnectionError(f"failed to reach https://api.telegram.org/bot{TOKEN}/sendMessage")
    notifier = TelegramNotifier(TOKEN, "-100200", session=FakeSession(error=error))

    with pytest.raises(NotificationError) as exc:
        notifier.send("hello")
    assert TOKEN not in str(exc.value)


def test_get_notifier_selects_backend(monkeypatch):
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", TOKEN)
    monkeypatch.setattr(config, "TELEGRAM_CHAT_ID", "-100200")
    assert isinstance(get_notifier(), TelegramNotifier)

    monkeypatch.setattr(config, "TELEGRAM_CHAT_ID", "")
    notifier = get_notifier()
    assert isinstance(notifier, LogNotifier)
    notifier.send("dropped")
