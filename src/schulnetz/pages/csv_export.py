"""Helpers for the portal's CSV exports (document download page).

The exports are semicolon separated, every field is double-quoted and a
literal quote is written as "". Fields are picked out by their quotes, so the
separator never matters.
"""

import re

_QUOTED_FIELD_RE = re.compile(r'"((?:[^"]|"")*)"')


def export_lines(content: str) -> list[str]:
    """Non-empty lines of an export, header included."""
    return re.sub(r"[\r\n]+", "\n", content.strip()).split("\n")


def quoted_fields(line: str) -> list[str]:
    """Unescaped, trimmed values of every quoted field in ``line``."""
    return [
        match.group(1).strip().replace('""', '"')
        for match in _QUOTED_FIELD_RE.finditer(line.strip())
    ]
