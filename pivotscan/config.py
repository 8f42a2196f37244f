"""PivotScan — application configuration.

Loads .env variables into a typed, immutable config object that is passed
explicitly into the market-data client, engine, and orchestrator.
"""

import os
from dataclasses import dataclass
from datetime import date

from dotenv import load_dotenv

from pivotscan.errors import ConfigurationError


# Only enforced when APP_ENV=production so the service can boot locally.
_REQUIRED_IN_PRODUCTION = [
    "MARKET_DATA_API_URL",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
]


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    market_data_api_url: str
    market_data_api_token: str
    telegram_bot_token: str
    telegram_chat_id: str
    app_env: str  # "development" or "production"
    candle_interval_minutes: int = 5
    market_timezone: str = "Asia/Kolkata"
    batch_size: int = 5
    batch_delay_seconds: float = 1.0
    request_timeout_seconds: float = 30.0
    instruments_path: str = "data/instruments.json"
    holidays: tuple[date, ...] = ()
    log_level: str = "INFO"
    port: int = 3000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def provider_configured(self) -> bool:
        """Return True if a market-data endpoint is set."""
        return bool(self.market_data_api_url)


def _parse_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from None


def _parse_holidays(raw: str) -> tuple[date, ...]:
    """Parse a comma-separated list of ISO dates (``2025-10-02,2025-10-21``)."""
    days: list[date] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            days.append(date.fromisoformat(item))
        except ValueError:
            raise ConfigurationError(
                f"HOLIDAYS entry '{item}' is not an ISO date (YYYY-MM-DD)"
            ) from None
    return tuple(sorted(days))


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ConfigurationError`` naming the missing variable(s) when running
    in production without the provider endpoint or notification credentials,
    or when a numeric / date setting cannot be parsed.
    """
    load_dotenv(dotenv_path=env_path)

    app_env = os.environ.get("APP_ENV", "development")
    if app_env == "production":
        missing = [v for v in _REQUIRED_IN_PRODUCTION if not os.environ.get(v)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )

    batch_size = _parse_number("BATCH_SIZE", "5", int)
    if batch_size < 1:
        raise ConfigurationError(f"BATCH_SIZE must be at least 1, got {batch_size}")

    return Config(
        market_data_api_url=os.environ.get("MARKET_DATA_API_URL", "").rstrip("/"),
        market_data_api_token=os.environ.get("MARKET_DATA_API_TOKEN", ""),
        telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN", ""),
        telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID", ""),
        app_env=app_env,
        candle_interval_minutes=_parse_number("CANDLE_INTERVAL_MINUTES", "5", int),
        market_timezone=os.environ.get("MARKET_TIMEZONE", "Asia/Kolkata"),
        batch_size=batch_size,
        batch_delay_seconds=_parse_number("BATCH_DELAY_SECONDS", "1.0", float),
        request_timeout_seconds=_parse_number("REQUEST_TIMEOUT_SECONDS", "30.0", float),
        instruments_path=os.environ.get("INSTRUMENTS_PATH", "data/instruments.json"),
        holidays=_parse_holidays(os.environ.get("HOLIDAYS", "")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        port=_parse_number("PORT", "3000", int),
    )
