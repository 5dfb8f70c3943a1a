"""Settings parsing."""
import pytest

from app.core.config import Settings


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
        ("[http://localhost:3000]", ["http://localhost:3000"]),
        ("['http://a', 'http://b']", ["http://a", "http://b"]),
        ("http://a, http://b", ["http://a", "http://b"]),
        ("https://authorslab.ai", ["https://authorslab.ai"]),
    ],
)
def test_cors_origins_parsing(monkeypatch, raw, expected):
    monkeypatch.setenv("BACKEND_CORS_ORIGINS", raw)
    assert Settings().BACKEND_CORS_ORIGINS == expected


def test_cors_origins_default(monkeypatch):
    monkeypatch.delenv("BACKEND_CORS_ORIGINS", raising=False)
    assert "http://localhost:3000" in Settings().BACKEND_CORS_ORIGINS


def test_package_prices():
    prices = Settings().PACKAGE_PRICES
    assert prices["three-phase"] == 29900
    assert set(prices) == {"three-phase", "publishing", "marketing", "complete"}


def test_json_log_formatter():
    import json
    import logging

    from app.core.logging import JsonFormatter

    record = logging.LogRecord("app.services.phases", logging.WARNING, __file__, 1, "Phase %s blocked", (2,), None)
    line = json.loads(JsonFormatter().format(record))
    assert line["level"] == "WARNING"
    assert line["logger"] == "app.services.phases"
    assert line["message"] == "Phase 2 blocked"
