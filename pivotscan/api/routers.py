"""API routers — /, /backtest, /backtest-all, /scan endpoints.

No business logic.  Parses and validates dates, delegates to the
orchestrator, and optionally publishes the report through the notifier.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from pivotscan.backtest.orchestrator import BatchReport
from pivotscan.dates import market_today, parse_request_date, resolve_session_dates
from pivotscan.errors import ConfigurationError, InvalidDateError, InvalidDateRangeError
from pivotscan.notify.telegram import format_report_html

logger = logging.getLogger("pivotscan")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_config = None        # Set via configure_routers()
_orchestrator = None  # Set via configure_routers()
_notifier = None      # Set via configure_routers()
_registry = None      # Set via configure_routers()


def configure_routers(
    config=None,
    orchestrator=None,
    notifier=None,
    registry=None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        config: The loaded ``Config`` (holidays are read from it).
        orchestrator: A ``BacktestOrchestrator`` (or duck-type for tests).
        notifier: A ``TelegramNotifier`` used to publish reports.
        registry: An ``InstrumentRegistry`` used to resolve symbols.
    """
    global _config, _orchestrator, _notifier, _registry  # noqa: PLW0603
    _config = config
    _orchestrator = orchestrator
    _notifier = notifier
    _registry = registry


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "failure", "message": message},
    )


def _holidays() -> tuple:
    return _config.holidays if _config is not None else ()


def _market_today() -> date:
    if _config is None:
        return market_today()
    return market_today(_config.market_timezone)


_today = _market_today  # Replaced in tests


async def close_services() -> None:
    """Release the notifier's HTTP client at shutdown."""
    if _notifier is not None:
        await _notifier.aclose()


async def _respond(report: BatchReport, notify: bool) -> dict:
    data = report.as_dict()
    if notify:
        if _notifier is None:
            data["notified"] = False
        else:
            result = await _notifier.send_message(format_report_html(report))
            data["notified"] = result.success
    return {"status": "success", "data": data}


async def _run(
    previous: date,
    current: date,
    keys: Optional[list[str]],
    notify: bool,
    scan: bool = False,
):
    if _orchestrator is None:
        return _failure(503, "Backtest engine not configured")
    try:
        if scan:
            report = await _orchestrator.scan(previous, current, keys)
        else:
            report = await _orchestrator.run(previous, current, keys)
    except ConfigurationError as exc:
        logger.error("Run aborted: %s", exc)
        return _failure(503, str(exc))
    except Exception as exc:
        logger.exception("Run failed")
        return _failure(500, f"Failed to run backtest: {exc}")
    return await _respond(report, notify)


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/")
async def send_hello():
    """Send a hello message through the notification channel."""
    if _notifier is None:
        return _failure(503, "Notifier not configured")
    result = await _notifier.send_message("Hello from bot")
    if not result.success:
        return _failure(500, "Failed to send message to Telegram")
    return {"status": "success", "message": "Message sent to Telegram successfully"}


@router.get("/backtest/{instrument}/{day}")
async def backtest_one(
    instrument: str,
    day: str,
    notify: bool = Query(default=False),
):
    """Backtest one instrument (key or trading symbol) on ``DD-MM-YYYY``."""
    try:
        previous, current = resolve_session_dates(
            parse_request_date(day), _holidays(), _today(),
        )
    except (InvalidDateError, InvalidDateRangeError) as exc:
        return _failure(400, str(exc))

    key = instrument
    if _registry is not None and instrument not in _registry:
        key = _registry.key_for(instrument) or instrument

    logger.info(
        "Running backtest for %s on %s using pivots from %s", key, current, previous,
    )
    return await _run(previous, current, [key], notify)


@router.get("/backtest-all/{day}")
async def backtest_all(day: str, notify: bool = Query(default=False)):
    """Backtest the whole configured universe on ``DD-MM-YYYY``."""
    try:
        previous, current = resolve_session_dates(
            parse_request_date(day), _holidays(), _today(),
        )
    except (InvalidDateError, InvalidDateRangeError) as exc:
        return _failure(400, str(exc))

    logger.info(
        "Running backtest for ALL instruments on %s using pivots from %s",
        current, previous,
    )
    return await _run(previous, current, None, notify)


@router.get("/scan")
async def scan_today(notify: bool = Query(default=False)):
    """Scan today's session for signals across the universe."""
    try:
        previous, current = resolve_session_dates(_today(), _holidays(), _today())
    except InvalidDateRangeError as exc:
        return _failure(400, str(exc))

    logger.info("Scanning %s using pivots from %s", current, previous)
    return await _run(previous, current, None, notify, scan=True)
