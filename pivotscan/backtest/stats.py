"""Backtest statistics — pure functions over instrument results."""

from typing import Iterable, Optional

from pivotscan.backtest.simulator import STOP_HIT, TARGET_HIT, UNDECIDED
from pivotscan.strategy.models import LONG, SHORT


def calculate_stats(results: Iterable) -> dict:
    """Compute summary statistics from instrument results with trades.

    Each result exposes ``trades`` (list of ``Trade``).  Win rate is taken
    over decided trades only; undecided trades count as 0R.

    Returns:
        Dict with ``total_trades``, ``targets_hit``, ``stops_hit``,
        ``undecided``, ``long_trades``, ``short_trades``, ``win_rate``
        and ``net_r``.
    """
    trades = [t for r in results for t in r.trades]
    if not trades:
        return {
            "total_trades": 0,
            "targets_hit": 0,
            "stops_hit": 0,
            "undecided": 0,
            "long_trades": 0,
            "short_trades": 0,
            "win_rate": None,
            "net_r": 0,
        }

    targets = sum(1 for t in trades if t.outcome == TARGET_HIT)
    stops = sum(1 for t in trades if t.outcome == STOP_HIT)
    decided = targets + stops
    win_rate: Optional[float] = round(targets / decided, 4) if decided else None

    return {
        "total_trades": len(trades),
        "targets_hit": targets,
        "stops_hit": stops,
        "undecided": sum(1 for t in trades if t.outcome == UNDECIDED),
        "long_trades": sum(1 for t in trades if t.signal.direction == LONG),
        "short_trades": sum(1 for t in trades if t.signal.direction == SHORT),
        "win_rate": win_rate,
        "net_r": sum(t.r_multiple for t in trades),
    }
