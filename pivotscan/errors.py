"""PivotScan error taxonomy.

Per-instrument failures are converted into report entries by the
orchestrator; only configuration failures propagate out of a run.
"""


class PivotScanError(Exception):
    """Base class for all PivotScan errors."""


class ConfigurationError(PivotScanError, ValueError):
    """Required configuration is missing or malformed (fatal to a run)."""


class DataUnavailableError(PivotScanError):
    """The provider returned no usable candle data for one instrument."""

    def __init__(self, instrument_key: str, message: str) -> None:
        super().__init__(message)
        self.instrument_key = instrument_key


class NoDataError(DataUnavailableError):
    """The previous-session response held no reference candle."""


class AmbiguousPivotCrossError(PivotScanError):
    """A candle pair spans more than one pivot level."""

    def __init__(self, labels: list[str]) -> None:
        super().__init__(f"Candle pair spans {len(labels)} pivots: {', '.join(labels)}")
        self.labels = labels


class InvalidDateError(PivotScanError, ValueError):
    """A request date is malformed or not a real calendar date."""


class InvalidDateRangeError(PivotScanError, ValueError):
    """A request date is valid but cannot be evaluated (future, non-trading)."""
