"""Pivot reversal signal detection — pure functions, no I/O.

Scans adjacent candle pairs inside the detection window for a candle that
crosses a pivot level with most of its body on the far side of where it
opened, followed by a confirmation candle that holds beyond the level.

Only the first qualifying pair of the session produces a signal.
"""

import logging
from typing import Optional, Sequence

from pivotscan.errors import AmbiguousPivotCrossError
from pivotscan.strategy.models import LONG, SHORT, CandleData, PivotLevels, PivotSignal

logger = logging.getLogger("pivotscan.signals")


def _levels_in_range(
    low: float,
    high: float,
    levels: PivotLevels,
) -> list[tuple[str, float]]:
    """Return the pivots inside ``[low, high]`` in detection order."""
    return [(label, price) for label, price in levels.ordered() if low <= price <= high]


def _attributable_levels(
    c1: CandleData,
    c2: CandleData,
    levels: PivotLevels,
) -> list[tuple[str, float]]:
    """Return the single pivot the pair can be attributed to (or none).

    The combined extent of both candles contains each candle's own extent,
    so one count over the union covers all three checks.

    Raises ``AmbiguousPivotCrossError`` if more than one pivot is spanned.
    """
    spanned = _levels_in_range(min(c1.low, c2.low), max(c1.high, c2.high), levels)
    if len(spanned) > 1:
        raise AmbiguousPivotCrossError([label for label, _ in spanned])
    return spanned


def _bullish_cross(c1: CandleData, c2: CandleData, level: float) -> Optional[tuple[float, float]]:
    """Check for an upward cross at *level* confirmed by *c2*.

    Criteria:
        - c1 opens below and closes above the level
        - body below the level > body above it
        - c2 stays above the level (low > level) and is bullish

    Returns ``(body_below, body_above)`` on a match, else ``None``.
    """
    if not c1.open < level < c1.close:
        return None
    below = level - c1.open
    above = c1.close - level
    if below <= above:
        return None
    if c2.low > level and c2.close > c2.open:
        return below, above
    return None


def _bearish_cross(c1: CandleData, c2: CandleData, level: float) -> Optional[tuple[float, float]]:
    """Mirror of :func:`_bullish_cross` for a downward cross.

    Returns ``(body_above, body_below)`` on a match, else ``None``.
    """
    if not c1.open > level > c1.close:
        return None
    above = c1.open - level
    below = level - c1.close
    if above <= below:
        return None
    if c2.high < level and c2.close < c2.open:
        return above, below
    return None


def evaluate_pair(
    c1: CandleData,
    c2: CandleData,
    levels: PivotLevels,
) -> Optional[PivotSignal]:
    """Evaluate one adjacent candle pair against the pivot levels.

    Raises ``AmbiguousPivotCrossError`` if the pair spans several pivots.
    """
    for label, price in _attributable_levels(c1, c2, levels):
        long_cross = _bullish_cross(c1, c2, price)
        if long_cross is not None:
            before, after = long_cross
            return PivotSignal(
                direction=LONG,
                pivot_level=price,
                pivot_label=label,
                candle1=c1,
                candle2=c2,
                body_before_cross=round(before, 4),
                body_after_cross=round(after, 4),
                reason=(
                    f"Bullish cross of {label} {price:.4f} at {c1.time}, "
                    f"held above by {c2.time} candle (low {c2.low:.4f})"
                ),
            )

        short_cross = _bearish_cross(c1, c2, price)
        if short_cross is not None:
            before, after = short_cross
            return PivotSignal(
                direction=SHORT,
                pivot_level=price,
                pivot_label=label,
                candle1=c1,
                candle2=c2,
                body_before_cross=round(before, 4),
                body_after_cross=round(after, 4),
                reason=(
                    f"Bearish cross of {label} {price:.4f} at {c1.time}, "
                    f"held below by {c2.time} candle (high {c2.high:.4f})"
                ),
            )
    return None


def detect_signal(
    candles: Sequence[CandleData],
    levels: PivotLevels,
) -> Optional[PivotSignal]:
    """Return the first pivot reversal signal in *candles*, or ``None``.

    *candles* must be chronological and already restricted to the detection
    window.  Pairs spanning more than one pivot are skipped.  Scanning stops
    at the first match.
    """
    for i in range(len(candles) - 1):
        c1, c2 = candles[i], candles[i + 1]
        try:
            signal = evaluate_pair(c1, c2, levels)
        except AmbiguousPivotCrossError as exc:
            logger.debug("Skipping %s/%s: %s", c1.time, c2.time, exc)
            continue
        if signal is not None:
            return signal
    return None
