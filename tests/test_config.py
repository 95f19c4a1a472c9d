import pytest

from app import config
from app.services import build_services


def test_debug_forces_debug_level(monkeypatch):
    monkeypatch.setattr(config, "LOG_LEVEL", "WARNING")
    monkeypatch.delenv("FRAUDGATE_DEBUG", raising=False)
    assert config.effective_log_level() == "WARNING"

    monkeypatch.setenv("FRAUDGATE_DEBUG", "true")
    assert config.effective_log_level() == "DEBUG"


def test_dev_allows_missing_secrets(monkeypatch):
    monkeypatch.setattr(config, "ENV", "dev")
    monkeypatch.setattr(config, "ADMIN_SECRET", "")
    monkeypatch.setattr(config, "ORIGIN_HASH_SALT", "")
    config.require_production_secrets()


def test_prod_refuses_missing_secrets(monkeypatch):
    monkeypatch.setattr(config, "ENV", "prod")
    monkeypatch.setattr(config, "ADMIN_SECRET", "s3cret")
    monkeypatch.setattr(config, "ORIGIN_HASH_SALT", "")
    with pytest.raises(RuntimeError, match="ORIGIN_HASH_SALT"):
        build_services()


def test_prod_with_secrets_passes(monkeypatch):
    monkeypatch.setattr(config, "ENV", "prod")
    monkeypatch.setattr(config, "ADMIN_SECRET", "s3cret")
    monkeypatch.setattr(config, "ORIGIN_HASH_SALT", "pepper")
    config.require_production_secrets()


def test_payment_addresses(monkeypatch):
    monkeypatch.setenv("PAYMENT_ADDRESSES", '{"btc": "bc1qexample", "ton": "UQexample"}')
    assert config.load_payment_addresses() == {"btc": "bc1qexample", "ton": "UQexample"}

    monkeypatch.setenv("PAYMENT_ADDRESSES", "not json")
    assert config.load_payment_addresses() == {}
