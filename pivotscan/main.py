"""PivotScan — application entry point.

Boots the FastAPI server and provides the CLI entry point for serve,
backtest, backtest-all, and scan modes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from pivotscan.api.routers import close_services, router

logger = logging.getLogger("pivotscan")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    logger.info("Shutting down, closing HTTP clients")
    await close_services()


app = FastAPI(title="PivotScan API", version="0.1.0", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


def build_services(config):
    """Construct the client, registry, orchestrator, and notifier.

    Returns ``(orchestrator, notifier, registry)``.
    """
    from pivotscan.backtest.orchestrator import BacktestOrchestrator
    from pivotscan.instruments import load_instruments
    from pivotscan.market_data.client import MarketDataClient
    from pivotscan.notify.telegram import TelegramNotifier

    registry = load_instruments(config.instruments_path)
    client = MarketDataClient(config)
    orchestrator = BacktestOrchestrator(config=config, client=client, registry=registry)
    notifier = TelegramNotifier(
        bot_token=config.telegram_bot_token,
        chat_id=config.telegram_chat_id,
        timeout=config.request_timeout_seconds,
    )
    return orchestrator, notifier, registry


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv=None) -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import json

    from pivotscan.api.routers import configure_routers
    from pivotscan.config import load_config
    from pivotscan.errors import ConfigurationError, InvalidDateError, InvalidDateRangeError

    parser = argparse.ArgumentParser(description="PivotScan pivot reversal backtester")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Run the HTTP API")
    one = sub.add_parser("backtest", help="Backtest one instrument")
    one.add_argument("instrument", help="Instrument key or trading symbol")
    one.add_argument("date", help="Session date (DD-MM-YYYY)")
    every = sub.add_parser("backtest-all", help="Backtest the whole universe")
    every.add_argument("date", help="Session date (DD-MM-YYYY)")
    today = sub.add_parser("scan", help="Scan today's session")
    for p in (one, every, today):
        p.add_argument("--notify", action="store_true", help="Publish the report")
    args = parser.parse_args(argv)

    try:
        config = load_config()
    except ConfigurationError as exc:
        parser.error(str(exc))
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    orchestrator, notifier, registry = build_services(config)

    if args.command == "serve":
        import uvicorn

        configure_routers(
            config=config,
            orchestrator=orchestrator,
            notifier=notifier,
            registry=registry,
        )
        logger.info("API available at http://localhost:%d", config.port)
        uvicorn.run(app, host="0.0.0.0", port=config.port, log_level="info")
        return

    try:
        report = asyncio.run(_run_once(args, config, orchestrator, notifier, registry))
    except (ConfigurationError, InvalidDateError, InvalidDateRangeError) as exc:
        parser.error(str(exc))
    print(json.dumps(report.as_dict(), indent=2, default=str))


async def _run_once(args, config, orchestrator, notifier, registry):
    """Resolve dates, run one backtest or scan, optionally publish it."""
    from pivotscan.dates import market_today, parse_request_date, resolve_session_dates
    from pivotscan.notify.telegram import format_report_html

    today = market_today(config.market_timezone)
    try:
        if args.command == "scan":
            previous, current = resolve_session_dates(today, config.holidays, today)
            report = await orchestrator.scan(previous, current)
        else:
            previous, current = resolve_session_dates(
                parse_request_date(args.date), config.holidays, today,
            )
            keys = None
            if args.command == "backtest":
                keys = [registry.key_for(args.instrument) or args.instrument]
            report = await orchestrator.run(previous, current, keys)

        if args.notify:
            result = await notifier.send_message(format_report_html(report))
            if not result.success:
                logger.warning("Report not published: %s", result.error_message)
    finally:
        await notifier.aclose()
    return report


if __name__ == "__main__":
    _run_cli()
