"""Pivot level calculation — pure function, no I/O."""

from typing import Sequence

from pivotscan.market_data.models import Candle
from pivotscan.strategy.models import PivotLevels


def calculate_pivots(reference: Sequence[Candle]) -> PivotLevels:
    """Derive PP, R1–R3 and S1–S3 from the previous session's daily candle.

    Only the first element of *reference* is used; it is the provider's
    single daily candle for the previous session, not an aggregate.

    Returns ``PivotLevels.empty()`` when *reference* is empty so callers can
    short-circuit without a try/except.
    """
    if not reference:
        return PivotLevels.empty()

    ref = reference[0]
    high, low, close = ref.high, ref.low, ref.close

    pp = (high + low + close) / 3
    return PivotLevels(
        pp=round(pp, 4),
        r1=round(2 * pp - low, 4),
        r2=round(pp + (high - low), 4),
        r3=round(high + 2 * (pp - low), 4),
        s1=round(2 * pp - high, 4),
        s2=round(pp - (high - low), 4),
        s3=round(low - 2 * (high - pp), 4),
    )
