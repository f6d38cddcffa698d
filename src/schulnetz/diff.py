"""Change detection between two snapshots of the same record set.

Two records are the *same* entity when their identity keys match; a pair
that is the same but differs on a compare key is *modified*. Matching is
greedy: each record of the first snapshot pairs with the first unmatched
record of the second snapshot that is the same entity. With duplicate
identity keys this can pair the wrong records, ties being decided by list
order.

Record ids are minted per process and never take part in the comparison.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field

from src.schulnetz.models import (
    Absence,
    AbsenceReport,
    Grade,
    LateAbsence,
    OpenAbsence,
    Student,
    Subject,
    Teacher,
    Transaction,
    User,
)

IDENTITY_KEYS: dict[type, tuple[str, ...]] = {
    Teacher: ("last_name", "first_name", "abbreviation"),
    Student: ("last_name", "first_name"),
    Transaction: ("date", "reason"),
    Absence: ("start_date", "end_date"),
    AbsenceReport: ("start_date", "end_date", "lesson_abbreviation"),
    OpenAbsence: ("start_date", "end_date", "lesson_abbreviation"),
    LateAbsence: ("date", "reason", "timespan"),
    Subject: ("abbreviation",),
    Grade: ("date", "topic"),
}

COMPARE_KEYS: dict[type, tuple[str, ...]] = {
    Teacher: ("email",),
    Student: (
        "gender",
        "degree",
        "bilingual",
        "clazz",
        "address",
        "zip",
        "city",
        "phone",
        "additional_class",
        "status",
    ),
    Transaction: ("amount",),
    Absence: ("reason", "additional_info", "deadline", "excused", "lesson_count"),
    AbsenceReport: ("comment",),
    OpenAbsence: (),
    LateAbsence: ("excused",),
    # average is derived from the grades
    Subject: ("name", "grades_confirmed", "hidden_grades"),
    Grade: ("grade", "details", "weight"),
}


class DiffResult(BaseModel):
    added: list[Any] = Field(default_factory=list)
    modified: list[tuple[Any, Any]] = Field(default_factory=list)
    removed: list[Any] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.removed)


class _Matcher:
    """Resolves keys per record, either from explicit lists or the type tables."""

    def __init__(
        self,
        identity_keys: Sequence[str] | None,
        compare_keys: Sequence[str] | None,
    ) -> None:
        self.identity_keys = tuple(identity_keys) if identity_keys is not None else None
        self.compare_keys = tuple(compare_keys) if compare_keys is not None else None

    def _keys(
        self, record: Any, explicit: tuple[str, ...] | None, table: dict[type, tuple[str, ...]]
    ) -> tuple[str, ...] | None:
        if explicit is not None:
            return explicit
        return table.get(type(record))

    def same(self, first: Any, second: Any) -> bool:
        if type(first) is not type(second):
            return False
        if not isinstance(first, (BaseModel, Mapping)):
            return first == second

        keys = self._keys(first, self.identity_keys, IDENTITY_KEYS)
        if keys is None:
            return first == second
        return all(self.same(_get(first, key), _get(second, key)) for key in keys)

    def equal(self, first: Any, second: Any) -> bool:
        if not self.same(first, second):
            return False
        if not isinstance(first, (BaseModel, Mapping)):
            return True

        keys = self._keys(first, self.compare_keys, COMPARE_KEYS) or ()
        return all(self.equal(_get(first, key), _get(second, key)) for key in keys)


def _get(record: Any, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


def _as_list(records: Any) -> list[Any]:
    if isinstance(records, list | tuple):
        return list(records)
    return [records]


def diff(
    initial: Any,
    updated: Any,
    identity_keys: Sequence[str] | None = None,
    compare_keys: Sequence[str] | None = None,
) -> DiffResult:
    """Compare two snapshots, each a single record or a list of records.

    Args:
        initial: The older snapshot.
        updated: The newer snapshot.
        identity_keys: Fields deciding whether two records are the same
            entity. Defaults to the table for the record's type.
        compare_keys: Fields checked on matched pairs. Defaults to the
            table for the record's type.

    Returns:
        DiffResult with added records, (old, new) modified pairs, and removed records.
    """
    matcher = _Matcher(identity_keys, compare_keys)
    remaining_initial = _as_list(initial)
    remaining_updated = _as_list(updated)
    result = DiffResult()

    unmatched: list[Any] = []
    for first in remaining_initial:
        for index, second in enumerate(remaining_updated):
            if matcher.same(first, second):
                if not matcher.equal(first, second):
                    result.modified.append((first, second))
                del remaining_updated[index]
                break
        else:
            unmatched.append(first)

    result.removed = unmatched
    result.added = remaining_updated
    return result


def diff_users(initial: User, updated: User) -> dict[str, DiffResult]:
    """Diff every record list of two users, keyed by field name."""
    return {
        name: diff(getattr(initial, name), getattr(updated, name))
        for name in User.model_fields
    }
