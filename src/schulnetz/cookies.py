"""Cookie jar fed from the portal's combined Set-Cookie header.

The transport joins repeated Set-Cookie headers with ", ", so one string may
hold several cookies, each followed by attributes such as ``Path=/`` or
``Expires=Thu, 01 Jan 2026 00:00:00 GMT``. Splitting on ";" and "," would
break on the comma inside the date, so the value is scanned token by token:
the first pair of every cookie is stored, later ``;``-separated pairs are
skipped when their name is a cookie attribute, and a ``,`` starts the next
cookie. Leftovers of a date (``01 Jan 2026 00:00:00 GMT;``) have no ``=`` and
are dropped like bare flags (``Secure``, ``HttpOnly``).
"""

import re

from src.schulnetz.logging import get_logger

log = get_logger(__name__)

_TOKEN_RE = re.compile(r"^(.*?)([;=,])", re.DOTALL)

COOKIE_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "path",
        "domain",
        "expires",
        "max-age",
        "secure",
        "httponly",
        "samesite",
        "priority",
        "partitioned",
        "version",
        "comment",
    }
)


class CookieJar:
    """Name to value mapping, merged additively. The server decides staleness."""

    def __init__(self) -> None:
        self._cookies: dict[str, str] = {}

    def update(self, raw: str | None) -> None:
        """Merge every ``name=value`` pair of a raw Set-Cookie value.

        A trailing fragment without any delimiter is ignored, as is a missing
        header.
        """
        if not raw:
            return

        rest = raw
        key: str | None = None
        in_metadata = False

        while match := _TOKEN_RE.match(rest):
            token, delimiter = match.group(1), match.group(2)
            rest = rest[match.end():].strip()

            if key is None:
                if delimiter == "=":
                    key = token.strip()
                elif delimiter == ",":
                    in_metadata = False
                continue

            is_attribute = in_metadata and key.lower() in COOKIE_ATTRIBUTES
            if delimiter != "=" and not is_attribute and key:
                self._cookies[key] = token.strip()

            if is_attribute and key.lower() == "expires" and delimiter == ",":
                # "Expires=Thu, 01 Jan ..." - the comma follows the weekday
                in_metadata = True
            else:
                in_metadata = delimiter != ","
            key = None

        log.debug("cookies_updated", names=sorted(self._cookies))

    def header(self) -> str:
        """Render the Cookie request header."""
        return "; ".join(f"{key}={value}" for key, value in self._cookies.items())

    def clear(self) -> None:
        self._cookies.clear()

    def as_dict(self) -> dict[str, str]:
        return dict(self._cookies)

    def __contains__(self, name: object) -> bool:
        return name in self._cookies

    def __getitem__(self, name: str) -> str:
        return self._cookies[name]

    def __len__(self) -> int:
        return len(self._cookies)
