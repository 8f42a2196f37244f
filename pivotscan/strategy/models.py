"""Strategy data models — typed representations for strategy inputs and outputs."""

from dataclasses import asdict, dataclass


LONG = "LONG"
SHORT = "SHORT"

# Fixed order in which levels are tested against a candle pair.
PIVOT_ORDER: tuple[str, ...] = ("PP", "S1", "S2", "S3", "R1", "R2", "R3")


@dataclass(frozen=True)
class CandleData:
    """A single session candle for strategy consumption.

    ``time`` is the 12-hour wall-clock label in the market time zone,
    e.g. ``"9:20 AM"``.
    """

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass(frozen=True)
class PivotLevels:
    """Classic floor-trader pivot levels for one session."""

    pp: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float

    @classmethod
    def empty(cls) -> "PivotLevels":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    @property
    def is_empty(self) -> bool:
        return self == PivotLevels.empty()

    def ordered(self) -> list[tuple[str, float]]:
        """Return ``(label, price)`` pairs in detection order."""
        return [(label, getattr(self, label.lower())) for label in PIVOT_ORDER]

    def as_dict(self) -> dict[str, float]:
        return {label: price for label, price in self.ordered()}


@dataclass(frozen=True)
class PivotSignal:
    """A two-candle reversal signal at one pivot level."""

    direction: str  # "LONG" or "SHORT"
    pivot_level: float
    pivot_label: str
    candle1: CandleData
    candle2: CandleData
    body_before_cross: float
    body_after_cross: float
    reason: str

    def as_dict(self) -> dict:
        return asdict(self)
