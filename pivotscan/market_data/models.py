"""Market-data models — typed representations of provider candle rows."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Candle:
    """A single provider candlestick row.

    ``time`` is the provider's ISO-8601 timestamp with offset.
    """

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int

    @classmethod
    def from_row(cls, row: list) -> "Candle":
        """Build from ``[timestamp, open, high, low, close, volume, (oi)]``."""
        return cls(
            time=str(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=int(row[5]) if len(row) > 5 and row[5] is not None else 0,
        )
