"""Telegram delivery — publish reports and messages via the Bot API.

Delivery failures come back as a ``DeliveryResult``; they never raise into
the engine or the request that triggered them.
"""

import html
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger("pivotscan.notify")

TELEGRAM_API_URL = "https://api.telegram.org"
TELEGRAM_MAX_MESSAGE_LENGTH = 4096


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt."""

    success: bool
    response_code: Optional[int] = None
    error_message: Optional[str] = None


class TelegramNotifier:
    """Send HTML messages to one Telegram chat."""

    def __init__(
        self,
        bot_token: str = "",
        chat_id: str = "",
        timeout: float = 30.0,
    ) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_url = f"{TELEGRAM_API_URL}/bot{bot_token}" if bot_token else None
        self.client = httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        """Return True if bot token and chat id are configured."""
        return bool(self.bot_token and self.chat_id)

    async def send_message(self, text: str, chat_id: Optional[str] = None) -> DeliveryResult:
        """Send an HTML-formatted message with link previews disabled."""
        target = chat_id or self.chat_id
        if not self.bot_token or not target:
            logger.warning("Telegram not configured: missing bot token or chat id")
            return DeliveryResult(
                success=False,
                error_message="Telegram not configured (missing bot token or chat id)",
            )

        text = truncate_html(text)

        payload = {
            "chat_id": target,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            response = await self.client.post(f"{self.api_url}/sendMessage", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Telegram delivery failed: %s", exc)
            return DeliveryResult(success=False, error_message=str(exc))

        try:
            ok = response.status_code == 200 and bool(response.json().get("ok"))
        except ValueError:
            ok = False
        if ok:
            logger.info("Message sent to chat %s", target)
            return DeliveryResult(success=True, response_code=200)

        logger.warning("Telegram delivery failed with HTTP %d", response.status_code)
        return DeliveryResult(
            success=False,
            response_code=response.status_code,
            error_message=response.text[:200],
        )

    async def send_data(
        self,
        data: Any,
        fmt: str = "text",
        chat_id: Optional[str] = None,
    ) -> DeliveryResult:
        """Send structured data, either as a JSON code block or readable text."""
        if fmt == "json":
            body = html.escape(json.dumps(data, indent=2, default=str))
            message = f'<pre><code class="language-json">{body}</code></pre>'
        else:
            message = format_data_as_text(data)
        return await self.send_message(message, chat_id)

    def status(self) -> dict:
        """Redacted configuration status."""
        return {
            "bot_token": "***configured***" if self.bot_token else "not configured",
            "chat_id": "***configured***" if self.chat_id else "not configured",
        }

    async def aclose(self) -> None:
        await self.client.aclose()


_TAG_RE = re.compile(r"<(/?)([a-zA-Z]+)[^>]*>")
_PARTIAL_TAG_RE = re.compile(r"<[^>]*$")
_PARTIAL_ENTITY_RE = re.compile(r"&#?\w*$")
_CLOSING_TAG_ROOM = 64


def truncate_html(text: str, limit: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> str:
    """Shorten an HTML message to *limit* characters without breaking markup.

    Cuts back to the last line break when there is one, drops any tag or
    entity left half-written, then closes the tags still open.
    """
    if len(text) <= limit:
        return text

    cut = text[: limit - _CLOSING_TAG_ROOM]
    newline = cut.rfind("\n")
    if newline > 0:
        cut = cut[:newline] + "\n"
    cut = _PARTIAL_ENTITY_RE.sub("", _PARTIAL_TAG_RE.sub("", cut))

    open_tags: list[str] = []
    for match in _TAG_RE.finditer(cut):
        closing, name = match.group(1), match.group(2).lower()
        if not closing:
            open_tags.append(name)
        elif name in open_tags:
            # Innermost match closes it and anything left open inside it
            del open_tags[len(open_tags) - 1 - open_tags[::-1].index(name):]
    return cut + "..." + "".join(f"</{name}>" for name in reversed(open_tags))


def format_data_as_text(data: Any) -> str:
    """Render a flat mapping as ``<b>Key Name:</b> value`` lines."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        lines = []
        for key, value in data.items():
            label = key.replace("_", " ").title()
            lines.append(f"<b>{html.escape(label)}:</b> {html.escape(str(value))}")
        return "\n".join(lines)
    return str(data)


def format_report_html(report, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> str:
    """Render a ``BatchReport`` as a Telegram HTML message.

    Signal lines that would push the message past *max_length* are dropped
    whole and summarised as "...and N more".
    """
    title = "Live scan" if report.mode == "scan" else "Backtest"
    stats = report.stats or {}
    header = [
        f"<b>{title} {report.current_date}</b> (pivots from {report.previous_date})",
        f"Instruments: {report.total_instruments} | ok {report.succeeded} | failed {report.failed}",
        f"Signals: {len(report.results)} | net {stats.get('net_r', 0)}R",
        "",
    ]
    footer = []
    if report.errors:
        footer = ["", f"<i>{len(report.errors)} instrument(s) had no data</i>"]

    signal_lines = []
    for result in report.results:
        t = result.trade
        signal_lines.append(
            f"<b>{html.escape(result.symbol)}</b> {t.signal.direction} @ "
            f"{t.signal.pivot_label} {t.signal.pivot_level:.2f} | entry {t.entry_price:.2f} "
            f"SL {t.stop_loss:.2f} TP {t.target:.2f} → {t.outcome}"
        )

    # Room for the "...and N more" line
    budget = max_length - len("\n".join(header + footer)) - 40
    kept = []
    for line in signal_lines:
        if budget - (len(line) + 1) < 0:
            break
        kept.append(line)
        budget -= len(line) + 1
    if len(kept) < len(signal_lines):
        kept.append(f"<i>...and {len(signal_lines) - len(kept)} more</i>")
    return "\n".join(header + kept + footer)
