"""SchulNetz portal client.

Logs into a SchulNetz school portal, keeps the server-tracked session alive,
fetches the record pages and turns them into linked, diffable records.
"""

from src.schulnetz.diff import DiffResult, diff, diff_users
from src.schulnetz.fetcher import fetch_user
from src.schulnetz.linker import link
from src.schulnetz.models import Page, User
from src.schulnetz.session import Session

__all__ = [
    "Session",
    "Page",
    "User",
    "fetch_user",
    "link",
    "diff",
    "diff_users",
    "DiffResult",
]
