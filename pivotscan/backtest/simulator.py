"""Outcome simulation — walks the rest of the session after a signal.

Single forward scan, no backtracking.  Stops at the first stop/target
touch or at the first candle at/after the evaluation cutoff.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from pivotscan.strategy.models import LONG, SHORT, CandleData
from pivotscan.strategy.session_window import EVALUATION_CUTOFF, is_before_cutoff

TARGET_HIT = "TARGET_HIT"
STOP_HIT = "STOP_HIT"
UNDECIDED = "UNDECIDED"

# Outcome expressed in multiples of the risk taken.
OUTCOME_R: dict[str, int] = {
    TARGET_HIT: 2,
    STOP_HIT: -1,
    UNDECIDED: 0,
}


@dataclass(frozen=True)
class SimulatedExit:
    """How and where a simulated trade finished.

    For ``UNDECIDED`` the exit is the last candle examined before the
    cutoff (marked at its close), or ``None`` if none was examined.
    """

    outcome: str
    exit_time: Optional[str] = None
    exit_price: Optional[float] = None
    candles_examined: int = 0


def check_exit(
    direction: str,
    sl: float,
    tp: float,
    candle: CandleData,
) -> Optional[str]:
    """Return ``STOP_HIT``/``TARGET_HIT`` if *candle* touches SL or TP.

    When both are touched in the same candle the stop wins (conservative).
    """
    if direction == LONG:
        if candle.low <= sl:
            return STOP_HIT
        if candle.high >= tp:
            return TARGET_HIT
        return None
    if direction == SHORT:
        if candle.high >= sl:
            return STOP_HIT
        if candle.low <= tp:
            return TARGET_HIT
        return None
    raise ValueError(f"direction must be 'LONG' or 'SHORT', got '{direction}'")


def simulate_outcome(
    direction: str,
    entry_price: float,
    sl: float,
    tp: float,
    candles: Sequence[CandleData],
    start_index: int,
    cutoff: int = EVALUATION_CUTOFF,
) -> SimulatedExit:
    """Classify a trade as target-hit, stop-hit or undecided.

    Args:
        direction: ``"LONG"`` or ``"SHORT"``.
        entry_price: Trade entry (used to mark an untouched trade when no
            candle was examined).
        sl: Stop-loss price.
        tp: Target price.
        candles: The full chronological session.
        start_index: First candle strictly after the confirmation candle.
        cutoff: Minutes since midnight at which evaluation stops.
    """
    last: Optional[CandleData] = None
    examined = 0

    for candle in candles[start_index:]:
        if not is_before_cutoff(candle.time, cutoff):
            break
        examined += 1
        hit = check_exit(direction, sl, tp, candle)
        if hit == STOP_HIT:
            return SimulatedExit(STOP_HIT, candle.time, sl, examined)
        if hit == TARGET_HIT:
            return SimulatedExit(TARGET_HIT, candle.time, tp, examined)
        last = candle

    if last is None:
        return SimulatedExit(UNDECIDED, None, entry_price, examined)
    return SimulatedExit(UNDECIDED, last.time, last.close, examined)
