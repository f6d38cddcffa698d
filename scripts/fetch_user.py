"""Fetch everything a SchulNetz account can see, as JSON or a summary table.

Logs in, loads the absences, grades, class list, teacher list and account
statement pages, links the records and logs out again.

Run with: python scripts/fetch_user.py
JSON:     python scripts/fetch_user.py --json
Snapshot: python scripts/fetch_user.py --save
Changes:  python scripts/fetch_user.py --diff --save

Credentials come from SCHULNETZ_PROVIDER / SCHULNETZ_USER / SCHULNETZ_PASS
(environment or .env) unless given as flags.

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import re
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.schulnetz.config import get_config  # noqa: E402
from src.schulnetz.diff import DiffResult, diff_users  # noqa: E402
from src.schulnetz.errors import ExceptionLevel, SchulNetzError  # noqa: E402
from src.schulnetz.fetcher import fetch_user  # noqa: E402
from src.schulnetz.logging import setup_logging  # noqa: E402
from src.schulnetz.models import User  # noqa: E402
from src.schulnetz.session import Session  # noqa: E402


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Fetch and link all records of a SchulNetz account.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--provider", type=str, default=None, help="Portal host (overrides config).")
    parser.add_argument("--user", type=str, default=None, help="Portal username (overrides config).")
    parser.add_argument(
        "--password", type=str, default=None, help="Portal password (overrides config)."
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the linked records as JSON instead of a summary table.",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Write the fetched records to {snapshot_dir}/{user}.json.",
    )
    parser.add_argument(
        "--diff",
        action="store_true",
        help="Compare against the last saved snapshot and print the changes to stderr.",
    )
    return parser.parse_args()


def _snapshot_path(snapshot_dir: str, username: str) -> Path:
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", username) or "user"
    return Path(snapshot_dir) / f"{safe_name}.json"


def load_snapshot(path: Path) -> User | None:
    """Load a saved snapshot.

    Returns:
        The stored User, or None if no snapshot exists.
    """
    if not path.exists():
        return None
    return User.model_validate_json(path.read_text(encoding="utf-8"))


def save_snapshot(path: Path, user: User) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(user.model_dump_json(indent=2), encoding="utf-8")
    return path


def _format_table(user: User, exception_counts: dict[str, int]) -> str:
    rows = [(name, str(len(getattr(user, name)))) for name in User.model_fields]
    rows.extend((f"exceptions ({level})", str(count)) for level, count in exception_counts.items())

    width = max(len(name) for name, _ in rows)
    header_line = f"{'records'.ljust(width)} | count"
    separator = f"{'-' * width}-+------"
    row_lines = [f"{name.ljust(width)} | {count}" for name, count in rows]
    return "\n".join([header_line, separator, *row_lines])


def _report_changes(changes: dict[str, DiffResult]) -> None:
    changed = {name: result for name, result in changes.items() if not result.is_empty}
    if not changed:
        _log("  No changes since last snapshot")
        return
    for name, result in changed.items():
        _log(
            f"  {name}: +{len(result.added)} ~{len(result.modified)} -{len(result.removed)}"
        )


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    config = config.model_copy(
        update={
            "schulnetz_provider": args.provider or config.schulnetz_provider,
            "schulnetz_user": args.user or config.schulnetz_user,
            "schulnetz_pass": args.password or config.schulnetz_pass,
        }
    )
    provider = config.schulnetz_provider
    username = config.schulnetz_user
    if not provider or not username or not config.schulnetz_pass:
        _log("  ERROR: No provider/credentials in .env or flags")
        return 1

    _log(f"fetch_user: starting (provider={provider}, user={username})")

    session = Session.from_config(config)
    try:
        async with session:
            _log("  Logged in")
            result = await fetch_user(session, config.timezone)
    except SchulNetzError as e:
        _log(f"  ERROR: {type(e).__name__}: {e}")
        return 1

    user = result.to_user()
    exception_counts = {
        level.name.lower(): len(result.exceptions_at(level)) for level in ExceptionLevel
    }

    snapshot = _snapshot_path(config.snapshot_dir, username)
    if args.diff:
        previous = load_snapshot(snapshot)
        if previous is None:
            _log(f"  No snapshot at {snapshot}, nothing to compare")
        else:
            _report_changes(diff_users(previous, user))
    if args.save:
        _log(f"  Snapshot written to {save_snapshot(snapshot, user)}")

    if args.json:
        print(json.dumps(user.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(_format_table(user, exception_counts))

    if result.aborted:
        _log("  WARNING: some pages could not be parsed, records are incomplete")
    _log("fetch_user: done")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(_parse_args())))
