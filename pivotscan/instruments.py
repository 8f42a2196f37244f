"""Instrument lookup table — trading symbol ⇄ provider instrument key.

Loaded from an exchange instrument dump (a JSON list of records).  Lookups
are exact-match in both directions.
"""

import json
import logging
import pathlib
from typing import Iterable, Optional

logger = logging.getLogger("pivotscan.instruments")

DEFAULT_SEGMENT = "NSE_EQ"


class InstrumentRegistry:
    """Bidirectional symbol ⇄ instrument-key mapping.

    Args:
        records: Dicts carrying at least ``instrument_key`` and
            ``trading_symbol``.  Order is preserved for :meth:`keys`.
    """

    UNKNOWN = "UNKNOWN"

    def __init__(self, records: Iterable[dict]) -> None:
        self._by_key: dict[str, str] = {}
        self._by_symbol: dict[str, str] = {}
        for rec in records:
            key = rec.get("instrument_key")
            symbol = rec.get("trading_symbol")
            if not key or not symbol:
                continue
            self._by_key.setdefault(key, symbol)
            self._by_symbol.setdefault(symbol, key)

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, instrument_key: str) -> bool:
        return instrument_key in self._by_key

    def keys(self) -> list[str]:
        """Every instrument key in the universe, in file order."""
        return list(self._by_key)

    def symbol_for(self, instrument_key: str) -> str:
        """Return the trading symbol for *instrument_key*, or ``"UNKNOWN"``."""
        return self._by_key.get(instrument_key, self.UNKNOWN)

    def key_for(self, symbol: str) -> Optional[str]:
        """Return the instrument key for *symbol*, or ``None``."""
        return self._by_symbol.get(symbol)


def filter_segment(records: Iterable[dict], segment: str = DEFAULT_SEGMENT) -> list[dict]:
    """Keep only the records of one exchange segment."""
    return [r for r in records if r.get("segment") == segment]


def load_instruments(
    path: str | pathlib.Path,
    segment: Optional[str] = DEFAULT_SEGMENT,
) -> InstrumentRegistry:
    """Load an instrument dump and build a registry.

    Pass ``segment=None`` to skip segment filtering.

    Returns an empty registry if *path* does not exist.
    """
    path = pathlib.Path(path)
    if not path.exists():
        logger.warning("Instrument file %s not found, universe is empty", path)
        return InstrumentRegistry([])

    records = json.loads(path.read_text(encoding="utf-8"))
    if segment is not None:
        records = filter_segment(records, segment)
    registry = InstrumentRegistry(records)
    logger.info("Loaded %d instruments from %s", len(registry), path)
    return registry
