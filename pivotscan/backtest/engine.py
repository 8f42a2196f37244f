"""Instrument engine — one instrument, one session, at most one trade.

Fetches the previous session's daily candle and the current session's
intraday candles, derives pivots, detects the first reversal signal in
the detection window, then sizes and simulates the trade over the full
session.  No real orders are placed.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional, Sequence

from pivotscan.backtest.simulator import OUTCOME_R, simulate_outcome
from pivotscan.config import Config
from pivotscan.errors import DataUnavailableError, NoDataError
from pivotscan.instruments import InstrumentRegistry
from pivotscan.market_data.client import MarketDataClient
from pivotscan.market_data.models import Candle
from pivotscan.risk.sl_tp import calculate_pivot_risk
from pivotscan.strategy.models import CandleData, PivotLevels, PivotSignal
from pivotscan.strategy.pivots import calculate_pivots
from pivotscan.strategy.session_window import (
    detection_window_candles,
    next_interval_time,
    to_session_candles,
)
from pivotscan.strategy.signals import detect_signal

logger = logging.getLogger("pivotscan.engine")


@dataclass(frozen=True)
class Trade:
    """A simulated trade taken on a pivot signal."""

    signal: PivotSignal
    entry_price: float
    entry_time: str
    stop_loss: float
    target: float
    outcome: str  # "TARGET_HIT", "STOP_HIT" or "UNDECIDED"
    exit_time: Optional[str] = None
    exit_price: Optional[float] = None

    @property
    def r_multiple(self) -> int:
        return OUTCOME_R[self.outcome]

    def as_dict(self) -> dict:
        data = asdict(self)
        data["r_multiple"] = self.r_multiple
        return data


@dataclass(frozen=True)
class InstrumentResult:
    """Outcome of evaluating one instrument for one session."""

    instrument_key: str
    symbol: str
    date: str
    pivots: PivotLevels
    trade: Optional[Trade] = None

    @property
    def trades(self) -> list[Trade]:
        return [self.trade] if self.trade is not None else []

    def as_dict(self) -> dict:
        return {
            "instrument_key": self.instrument_key,
            "symbol": self.symbol,
            "date": self.date,
            "pivots": self.pivots.as_dict(),
            "trades": [t.as_dict() for t in self.trades],
        }


class InstrumentEngine:
    """Runs the pivot strategy for one instrument on one session.

    Args:
        config: Application configuration (interval, time zone).
        client: Market-data client used for both candle fetches.
        registry: Optional lookup used to label results with a symbol.
    """

    def __init__(
        self,
        config: Config,
        client: MarketDataClient,
        registry: Optional[InstrumentRegistry] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._registry = registry

    def symbol_for(self, instrument_key: str) -> str:
        if self._registry is None:
            return InstrumentRegistry.UNKNOWN
        return self._registry.symbol_for(instrument_key)

    # ── Public API ───────────────────────────────────────────────────────

    async def run(
        self,
        instrument_key: str,
        previous_date: date,
        current_date: date,
    ) -> InstrumentResult:
        """Fetch both sessions and evaluate *instrument_key*.

        Raises:
            DataUnavailableError: If either fetch comes back without data.
            NoDataError: If a fetch succeeds but carries no candles.
        """
        reference = await self._client.fetch_reference_candles(
            instrument_key, previous_date.isoformat(),
        )
        if reference is None:
            raise DataUnavailableError(
                instrument_key,
                f"Failed to fetch pivot data for {previous_date.isoformat()}",
            )

        levels = calculate_pivots(reference)
        if levels.is_empty:
            raise NoDataError(
                instrument_key,
                f"No reference candle for {previous_date.isoformat()}",
            )

        session_raw = await self._client.fetch_session_candles(
            instrument_key, current_date.isoformat(),
        )
        if session_raw is None:
            raise DataUnavailableError(
                instrument_key,
                f"Failed to fetch session data for {current_date.isoformat()}",
            )
        if not session_raw:
            raise NoDataError(
                instrument_key,
                f"No session candles for {current_date.isoformat()}",
            )

        return self.evaluate(instrument_key, current_date, levels, session_raw)

    def evaluate(
        self,
        instrument_key: str,
        current_date: date,
        levels: PivotLevels,
        session_raw: Sequence[Candle],
    ) -> InstrumentResult:
        """Evaluate provider candles (newest-first) against *levels*.

        Deterministic: identical inputs give an identical result.
        """
        session = to_session_candles(session_raw, self._config.market_timezone)
        symbol = self.symbol_for(instrument_key)
        result = InstrumentResult(
            instrument_key=instrument_key,
            symbol=symbol,
            date=current_date.isoformat(),
            pivots=levels,
        )

        signal = detect_signal(detection_window_candles(session), levels)
        if signal is None:
            logger.debug("%s: no signal on %s", symbol, current_date)
            return result

        trade = self._simulate(signal, session)
        if trade is None:
            return result

        logger.info(
            "%s: %s at %s %.4f (%s) → %s",
            symbol, signal.direction, signal.pivot_label, signal.pivot_level,
            signal.candle2.time, trade.outcome,
        )
        return InstrumentResult(
            instrument_key=instrument_key,
            symbol=symbol,
            date=current_date.isoformat(),
            pivots=levels,
            trade=trade,
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _simulate(
        self,
        signal: PivotSignal,
        session: list[CandleData],
    ) -> Optional[Trade]:
        """Enter after the confirmation candle and play the session forward.

        The confirmation candle is located in the full session, not the
        detection window, so candles after 11:20 are seen.
        """
        start = session.index(signal.candle2) + 1
        if start < len(session):
            entry_price = session[start].open
            entry_time = session[start].time
        else:
            entry_price = signal.candle2.close
            entry_time = next_interval_time(
                signal.candle2.time, self._config.candle_interval_minutes,
            )

        risk = calculate_pivot_risk(signal, entry_price)
        if risk is None:
            logger.warning(
                "%s signal at %s dropped: entry %.4f leaves no valid stop",
                signal.direction, signal.candle2.time, entry_price,
            )
            return None

        exit_ = simulate_outcome(
            signal.direction, entry_price, risk.sl, risk.tp, session, start,
        )
        return Trade(
            signal=signal,
            entry_price=round(entry_price, 4),
            entry_time=entry_time,
            stop_loss=risk.sl,
            target=risk.tp,
            outcome=exit_.outcome,
            exit_time=exit_.exit_time,
            exit_price=round(exit_.exit_price, 4) if exit_.exit_price is not None else None,
        )
