"""Stop-loss and target calculation — pure math, no I/O.

Structural stop just beyond the crossed pivot (or the signal candle's
extreme), capped at 0.5% from entry.  Target sits at twice the risk
distance, so reward:risk is 2:1 by construction.
"""

from dataclasses import dataclass
from typing import Optional

from pivotscan.strategy.models import LONG, SHORT, PivotSignal

RR_RATIO = 2.0
PIVOT_BUFFER = 0.001  # stop sits 0.1% beyond the pivot
MAX_STOP_PCT = 0.005  # never risk more than 0.5% of entry


@dataclass(frozen=True)
class RiskLevels:
    """Computed stop-loss and target for a trade."""

    sl: float
    tp: float


def calculate_pivot_risk(
    signal: PivotSignal,
    entry_price: Optional[float],
    rr_ratio: float = RR_RATIO,
) -> Optional[RiskLevels]:
    """Calculate SL and TP for a pivot reversal signal.

    - **LONG**:  structural SL = min(candle1.low, pivot × 0.999),
      capped at entry × 0.995 (the higher of the two wins);
      TP = entry + rr_ratio × (entry − SL).
    - **SHORT**: structural SL = max(candle1.high, pivot × 1.001),
      capped at entry × 1.005 (the lower of the two wins);
      TP = entry − rr_ratio × (SL − entry).

    Args:
        signal: The detected ``PivotSignal``.
        entry_price: First open after the confirmation candle, or its
            close when no later candle exists.
        rr_ratio: Reward:risk multiple (default 2.0).

    Returns:
        ``RiskLevels`` rounded to 4 decimal places, or ``None`` if
        *entry_price* is unavailable or the stop would not sit on the
        losing side of entry (price gapped through the stop).

    Raises:
        ValueError: If the signal direction is not ``LONG`` or ``SHORT``.
    """
    if entry_price is None:
        return None

    if signal.direction == LONG:
        structural = min(signal.candle1.low, signal.pivot_level * (1 - PIVOT_BUFFER))
        cap = entry_price * (1 - MAX_STOP_PCT)
        sl = max(structural, cap)
        if sl >= entry_price:
            return None
        tp = entry_price + rr_ratio * (entry_price - sl)
    elif signal.direction == SHORT:
        structural = max(signal.candle1.high, signal.pivot_level * (1 + PIVOT_BUFFER))
        cap = entry_price * (1 + MAX_STOP_PCT)
        sl = min(structural, cap)
        if sl <= entry_price:
            return None
        tp = entry_price - rr_ratio * (sl - entry_price)
    else:
        raise ValueError(f"direction must be 'LONG' or 'SHORT', got '{signal.direction}'")

    return RiskLevels(sl=round(sl, 4), tp=round(tp, 4))
