"""Session window — pure functions over 12-hour wall-clock labels.

Candles are labelled with the market-local time they open at, rendered
like ``"9:20 AM"``.  Detection runs inside [09:20, 11:20]; outcome
evaluation stops at the 15:00 cutoff.
"""

import re
from datetime import datetime
from typing import Sequence
from zoneinfo import ZoneInfo

from pivotscan.market_data.models import Candle
from pivotscan.strategy.models import CandleData

DETECTION_START = 9 * 60 + 20
DETECTION_END = 11 * 60 + 20
EVALUATION_CUTOFF = 15 * 60
CANDLE_INTERVAL = 5

_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


def minutes_since_midnight(label: str) -> int:
    """Convert ``"h:mm AM|PM"`` to minutes since local midnight.

    12:xx AM maps to hour 0 and 12:xx PM to hour 12.

    Raises ``ValueError`` on a malformed label.
    """
    match = _LABEL_RE.match(label)
    if match is None:
        raise ValueError(f"Not a 12-hour time label: '{label}'")
    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if not 1 <= hour <= 12 or minute > 59:
        raise ValueError(f"Not a 12-hour time label: '{label}'")

    hour %= 12
    if meridiem.upper() == "PM":
        hour += 12
    return hour * 60 + minute


def format_label(minutes: int) -> str:
    """Render minutes since midnight as a 12-hour label (wraps past midnight)."""
    minutes %= 24 * 60
    hour, minute = divmod(minutes, 60)
    meridiem = "AM" if hour < 12 else "PM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{minute:02d} {meridiem}"


def to_wall_clock(timestamp: str, tz_name: str = "Asia/Kolkata") -> str:
    """Render a provider ISO timestamp as a market-local 12-hour label.

    Naive timestamps are taken to be market-local already.
    """
    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(tz_name))
    return format_label(parsed.hour * 60 + parsed.minute)


def is_detection_window(
    label: str,
    start: int = DETECTION_START,
    end: int = DETECTION_END,
) -> bool:
    """Return True if *label* falls inside the detection window (inclusive)."""
    return start <= minutes_since_midnight(label) <= end


def is_before_cutoff(label: str, cutoff: int = EVALUATION_CUTOFF) -> bool:
    """Return True if *label* is strictly before the evaluation cutoff."""
    return minutes_since_midnight(label) < cutoff


def next_interval_time(label: str, interval: int = CANDLE_INTERVAL) -> str:
    """Return the label one candle *interval* (minutes) after *label*."""
    return format_label(minutes_since_midnight(label) + interval)


def to_session_candles(
    raw: Sequence[Candle],
    tz_name: str = "Asia/Kolkata",
) -> list[CandleData]:
    """Convert newest-first provider candles into a chronological session."""
    return [
        CandleData(
            time=to_wall_clock(c.time, tz_name),
            open=c.open,
            high=c.high,
            low=c.low,
            close=c.close,
            volume=c.volume,
        )
        for c in reversed(raw)
    ]


def detection_window_candles(candles: Sequence[CandleData]) -> list[CandleData]:
    """Keep only the candles inside the detection window, order preserved."""
    return [c for c in candles if is_detection_window(c.time)]
