"""Tests for the HTTP API — date validation, delegation, and notification."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from pivotscan.api import routers
from pivotscan.api.routers import configure_routers
from pivotscan.backtest.orchestrator import BatchReport
from pivotscan.config import Config
from pivotscan.errors import ConfigurationError
from pivotscan.instruments import InstrumentRegistry
from pivotscan.main import app
from pivotscan.notify.telegram import DeliveryResult

client = TestClient(app)

TODAY = date(2025, 9, 10)  # Wednesday


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    defaults = dict(
        market_data_api_url="https://example.test/v3/historical-candle",
        market_data_api_token="",
        telegram_bot_token="",
        telegram_chat_id="",
        app_env="development",
    )
    defaults.update(overrides)
    return Config(**defaults)


def _report(mode="backtest", prev="2025-09-01", cur="2025-09-02") -> BatchReport:
    return BatchReport(mode=mode, previous_date=prev, current_date=cur, total_instruments=1,
                       succeeded=1, batches=1, stats={"total_trades": 0})


def _make_orchestrator(report=None):
    orch = AsyncMock()
    orch.run.return_value = report or _report()
    orch.scan.return_value = report or _report(mode="scan")
    return orch


def _make_notifier(success=True):
    notifier = AsyncMock()
    notifier.send_message.return_value = DeliveryResult(success=success)
    return notifier


@pytest.fixture(autouse=True)
def _fixed_today(monkeypatch):
    monkeypatch.setattr(routers, "_today", lambda: TODAY)
    yield
    configure_routers()


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestHello:
    def test_hello_sent(self):
        notifier = _make_notifier()
        configure_routers(notifier=notifier)
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "success"
        notifier.send_message.assert_awaited_once_with("Hello from bot")

    def test_hello_delivery_failure(self):
        configure_routers(notifier=_make_notifier(success=False))
        resp = client.get("/")
        assert resp.status_code == 500
        assert resp.json()["status"] == "failure"

    def test_hello_without_notifier(self):
        configure_routers()
        assert client.get("/").status_code == 503


class TestBacktestOne:
    def test_delegates_with_resolved_dates(self):
        orch = _make_orchestrator()
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/backtest/NSE_EQ|INE002A01018/02-09-2025")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "success"
        assert body["data"]["current_date"] == "2025-09-02"
        orch.run.assert_awaited_once_with(
            date(2025, 9, 1), date(2025, 9, 2), ["NSE_EQ|INE002A01018"],
        )

    def test_symbol_resolved_through_registry(self):
        orch = _make_orchestrator()
        registry = InstrumentRegistry(
            [{"instrument_key": "NSE_EQ|INE002A01018", "trading_symbol": "RELIANCE"}]
        )
        configure_routers(config=_make_config(), orchestrator=orch, registry=registry)
        client.get("/backtest/RELIANCE/08-09-2025")
        orch.run.assert_awaited_once_with(
            date(2025, 9, 5), date(2025, 9, 8), ["NSE_EQ|INE002A01018"],
        )

    def test_bad_format(self):
        orch = _make_orchestrator()
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/backtest/K/2025-09-02")
        assert resp.status_code == 400
        assert "DD-MM-YYYY" in resp.json()["message"]
        orch.run.assert_not_awaited()

    def test_impossible_date(self):
        configure_routers(config=_make_config(), orchestrator=_make_orchestrator())
        resp = client.get("/backtest/K/31-02-2025")
        assert resp.status_code == 400

    def test_future_date(self):
        configure_routers(config=_make_config(), orchestrator=_make_orchestrator())
        resp = client.get("/backtest/K/11-09-2025")
        assert resp.status_code == 400
        assert "future" in resp.json()["message"]

    def test_weekend(self):
        configure_routers(config=_make_config(), orchestrator=_make_orchestrator())
        resp = client.get("/backtest/K/06-09-2025")
        assert resp.status_code == 400
        assert "not a trading day" in resp.json()["message"]

    def test_holiday_from_config(self):
        orch = _make_orchestrator()
        config = _make_config(holidays=(date(2025, 9, 1),))
        configure_routers(config=config, orchestrator=orch)
        client.get("/backtest/K/02-09-2025")
        orch.run.assert_awaited_once_with(date(2025, 8, 29), date(2025, 9, 2), ["K"])


class TestBacktestAll:
    def test_whole_universe(self):
        orch = _make_orchestrator()
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/backtest-all/02-09-2025")
        assert resp.status_code == 200
        orch.run.assert_awaited_once_with(date(2025, 9, 1), date(2025, 9, 2), None)
        assert "notified" not in resp.json()["data"]

    def test_notify(self):
        orch = _make_orchestrator()
        notifier = _make_notifier()
        configure_routers(config=_make_config(), orchestrator=orch, notifier=notifier)
        resp = client.get("/backtest-all/02-09-2025?notify=true")
        assert resp.json()["data"]["notified"] is True
        text = notifier.send_message.await_args.args[0]
        assert "Backtest 2025-09-02" in text

    def test_notify_without_notifier(self):
        configure_routers(config=_make_config(), orchestrator=_make_orchestrator())
        resp = client.get("/backtest-all/02-09-2025?notify=true")
        assert resp.json()["data"]["notified"] is False

    def test_configuration_error_is_503(self):
        orch = _make_orchestrator()
        orch.run.side_effect = ConfigurationError("Market data API URL not configured")
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/backtest-all/02-09-2025")
        assert resp.status_code == 503
        assert resp.json() == {
            "status": "failure",
            "message": "Market data API URL not configured",
        }

    def test_unexpected_error_is_500(self):
        orch = _make_orchestrator()
        orch.run.side_effect = RuntimeError("boom")
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/backtest-all/02-09-2025")
        assert resp.status_code == 500
        assert "boom" in resp.json()["message"]

    def test_no_orchestrator(self):
        configure_routers(config=_make_config())
        assert client.get("/backtest-all/02-09-2025").status_code == 503


class TestScan:
    def test_scan_today(self):
        orch = _make_orchestrator()
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/scan")
        assert resp.status_code == 200
        assert resp.json()["data"]["mode"] == "scan"
        orch.scan.assert_awaited_once_with(date(2025, 9, 9), TODAY, None)

    def test_scan_on_weekend(self, monkeypatch):
        monkeypatch.setattr(routers, "_today", lambda: date(2025, 9, 13))
        orch = _make_orchestrator()
        configure_routers(config=_make_config(), orchestrator=orch)
        resp = client.get("/scan")
        assert resp.status_code == 400
        orch.scan.assert_not_awaited()


def test_build_services_wires_registry(tmp_path):
    from pivotscan.main import build_services

    config = _make_config(instruments_path=str(tmp_path / "missing.json"))
    orchestrator, notifier, registry = build_services(config)
    assert len(registry) == 0
    assert not notifier.is_configured
    assert orchestrator is not None


class TestMarketClock:
    def test_today_uses_configured_time_zone(self, monkeypatch):
        seen: list = []

        def _fake_market_today(tz_name="Asia/Kolkata"):
            seen.append(tz_name)
            return TODAY

        monkeypatch.setattr(routers, "market_today", _fake_market_today)
        configure_routers(config=_make_config(market_timezone="America/New_York"))
        assert routers._market_today() == TODAY
        assert seen == ["America/New_York"]

    def test_today_defaults_to_india(self, monkeypatch):
        seen: list = []
        monkeypatch.setattr(routers, "market_today", lambda *a: seen.append(a) or TODAY)
        configure_routers()
        routers._market_today()
        assert seen == [()]


def test_shutdown_closes_notifier():
    notifier = _make_notifier()
    configure_routers(notifier=notifier)
    with TestClient(app) as running:
        assert running.get("/health").status_code == 200
        notifier.aclose.assert_not_awaited()
    notifier.aclose.assert_awaited_once()
