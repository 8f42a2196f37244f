"""BacktestOrchestrator — runs the instrument engine across a universe.

Instruments are evaluated in fixed-size batches.  Each batch fans out
concurrently and is awaited in full before a fixed pause, which keeps the
provider under its rate limit.  One instrument's failure is recorded in
the report and never stops the run; only configuration errors propagate.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence

from pivotscan.backtest.engine import InstrumentEngine, InstrumentResult
from pivotscan.backtest.stats import calculate_stats
from pivotscan.config import Config
from pivotscan.errors import ConfigurationError
from pivotscan.instruments import InstrumentRegistry
from pivotscan.market_data.client import MarketDataClient

logger = logging.getLogger("pivotscan.orchestrator")


@dataclass(frozen=True)
class InstrumentError:
    """A per-instrument failure recorded in the report."""

    instrument_key: str
    symbol: str
    message: str


@dataclass
class BatchReport:
    """Aggregate outcome of one orchestrator run."""

    mode: str  # "backtest" or "scan"
    previous_date: str
    current_date: str
    total_instruments: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    results: list[InstrumentResult] = field(default_factory=list)
    errors: list[InstrumentError] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "mode": self.mode,
            "previous_date": self.previous_date,
            "current_date": self.current_date,
            "total_instruments": self.total_instruments,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "batches": self.batches,
            "results": [r.as_dict() for r in self.results],
            "errors": [
                {"instrument_key": e.instrument_key, "symbol": e.symbol, "message": e.message}
                for e in self.errors
            ],
            "stats": self.stats,
        }


def chunk(items: Sequence[str], size: int) -> list[list[str]]:
    """Split *items* into consecutive lists of at most *size*."""
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BacktestOrchestrator:
    """Batch-parallel runner for :class:`InstrumentEngine`.

    Args:
        config:   Global ``Config`` (batch size, delay, provider URL).
        client:   Shared ``MarketDataClient``.
        registry: Instrument universe and symbol lookup.
        engine:   Optional pre-built engine (tests inject fakes here).
        sleep:    Coroutine used for the inter-batch pause.
    """

    def __init__(
        self,
        config: Config,
        client: MarketDataClient,
        registry: InstrumentRegistry,
        engine: Optional[InstrumentEngine] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._registry = registry
        self._engine = engine or InstrumentEngine(config, client, registry)
        self._sleep = sleep

    # ── Public API ───────────────────────────────────────────────────────

    async def run(
        self,
        previous_date: date,
        current_date: date,
        instrument_keys: Optional[Sequence[str]] = None,
        mode: str = "backtest",
    ) -> BatchReport:
        """Evaluate every instrument and return the aggregated report.

        Args:
            previous_date: Session supplying the pivot reference candle.
            current_date:  Session scanned for signals.
            instrument_keys: Instruments to run; defaults to the whole
                configured universe.
            mode: Label carried into the report.

        Raises:
            ConfigurationError: If the provider endpoint is not configured.
        """
        if not self._config.provider_configured:
            raise ConfigurationError("Market data API URL not configured")

        keys = list(instrument_keys) if instrument_keys is not None else self._registry.keys()
        batches = chunk(keys, self._config.batch_size)
        report = BatchReport(
            mode=mode,
            previous_date=previous_date.isoformat(),
            current_date=current_date.isoformat(),
            total_instruments=len(keys),
        )
        logger.info(
            "Starting %s of %d instrument(s) in %d batch(es): %s vs pivots from %s",
            mode, len(keys), len(batches), current_date, previous_date,
        )

        for n, batch in enumerate(batches):
            if n > 0:
                await self._sleep(self._config.batch_delay_seconds)
            await self._run_batch(batch, previous_date, current_date, report)
            report.batches += 1
            logger.info(
                "Batch %d/%d done (%d ok, %d failed so far)",
                n + 1, len(batches), report.succeeded, report.failed,
            )

        report.stats = calculate_stats(report.results)
        logger.info(
            "%s finished: %d signal(s), %d error(s)",
            mode.capitalize(), len(report.results), len(report.errors),
        )
        return report

    async def scan(
        self,
        previous_date: date,
        current_date: date,
        instrument_keys: Optional[Sequence[str]] = None,
    ) -> BatchReport:
        """Run the live scan for a session still in progress.

        Outcomes only consider candles that already exist, so open trades
        come back ``UNDECIDED``.
        """
        return await self.run(previous_date, current_date, instrument_keys, mode="scan")

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _run_batch(
        self,
        batch: list[str],
        previous_date: date,
        current_date: date,
        report: BatchReport,
    ) -> None:
        """Fan out one batch, wait for all members, fold into *report*."""
        outcomes = await asyncio.gather(
            *(self._engine.run(key, previous_date, current_date) for key in batch),
            return_exceptions=True,
        )

        for key, outcome in zip(batch, outcomes):
            if isinstance(outcome, ConfigurationError):
                raise outcome
            if isinstance(outcome, Exception):
                symbol = self._registry.symbol_for(key)
                logger.warning("%s (%s) failed: %s", key, symbol, outcome)
                report.failed += 1
                report.errors.append(
                    InstrumentError(instrument_key=key, symbol=symbol, message=str(outcome))
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            report.succeeded += 1
            if outcome.trade is not None:
                report.results.append(outcome)
