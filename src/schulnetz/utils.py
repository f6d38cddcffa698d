"""Shared helpers: shape checks, date/number parsing, ids and URLs."""

import itertools
import re
import time
from datetime import datetime, tzinfo
from urllib.parse import parse_qsl, urljoin, urlsplit
from zoneinfo import ZoneInfo

from src.schulnetz.errors import ExceptionLevel, RecordException
from src.schulnetz.logging import get_logger, log_exception

log = get_logger(__name__)

DEFAULT_TIMEZONE = "Europe/Zurich"

# Portal date formats, written in the portal's own notation so the parsers
# read like the pages they parse.
_FORMAT_TOKENS = {
    "dd": "%d",
    "MM": "%m",
    "yyyy": "%Y",
    "HH": "%H",
    "mm": "%M",
}
_FORMAT_TOKEN_RE = re.compile("|".join(sorted(_FORMAT_TOKENS, key=len, reverse=True)))

_LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")


def ensure_info(
    condition: bool, exc: RecordException, sink: list[RecordException] | None = None
) -> None:
    """Log ``exc`` at INFO when ``condition`` is false, then carry on.

    The exception is appended to ``sink`` when one is given.
    """
    if not condition:
        exc.level = ExceptionLevel.INFO
        log_exception(log, exc)
        if sink is not None:
            sink.append(exc)


def _raise_at(level: ExceptionLevel, exc: RecordException) -> None:
    exc.level = level
    log_exception(log, exc)
    raise exc


def ensure_warn(condition: bool, exc: RecordException) -> None:
    if not condition:
        _raise_at(ExceptionLevel.WARN, exc)


def ensure_error(condition: bool, exc: RecordException) -> None:
    if not condition:
        _raise_at(ExceptionLevel.ERROR, exc)


def ensure_fatal(condition: bool, exc: RecordException) -> None:
    if not condition:
        _raise_at(ExceptionLevel.FATAL, exc)


def to_strptime_format(pattern: str) -> str:
    """Translate ``dd.MM.yyyy HH:mm`` style patterns to strptime syntax."""
    return _FORMAT_TOKEN_RE.sub(lambda m: _FORMAT_TOKENS[m.group(0)], pattern)


def parse_date(text: str, pattern: str, tz: tzinfo | str = DEFAULT_TIMEZONE) -> datetime | None:
    """Parse ``text`` with a portal date pattern.

    Returns:
        An aware datetime in ``tz``, or None if the text does not match.
    """
    if isinstance(tz, str):
        tz = ZoneInfo(tz)
    try:
        parsed = datetime.strptime(text.strip(), to_strptime_format(pattern))
    except ValueError:
        return None
    return parsed.replace(tzinfo=tz)


def parse_leading_float(text: str | None) -> float | None:
    """Parse the number at the start of ``text`` ("5.5 *" -> 5.5)."""
    if not text:
        return None
    match = _LEADING_FLOAT_RE.match(text.strip())
    return float(match.group(0)) if match else None


def parse_leading_int(text: str | None) -> int | None:
    """Parse the integer at the start of ``text`` ("45 Min." -> 45)."""
    if not text:
        return None
    match = _LEADING_INT_RE.match(text.strip())
    return int(match.group(0)) if match else None


_id_counter = itertools.count()
_last_id_timestamp = 0


def generate_id() -> str:
    """Return a process-local unique record id.

    Millisecond timestamp, with a counter suffix when several ids are minted
    within the same millisecond.
    """
    global _id_counter, _last_id_timestamp
    timestamp = time.time_ns() // 1_000_000
    if timestamp <= _last_id_timestamp:
        timestamp = _last_id_timestamp
        return f"{timestamp}{next(_id_counter)}"
    _last_id_timestamp = timestamp
    _id_counter = itertools.count(1)
    return f"{timestamp}"


def extract_query_parameters(url: str, base: str | None = None) -> dict[str, str]:
    """Return the query parameters of ``url`` resolved against ``base``."""
    absolute = urljoin(base, url) if base else url
    return dict(parse_qsl(urlsplit(absolute).query, keep_blank_values=True))
