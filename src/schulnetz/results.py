"""Result containers returned by the parsers and the linker.

Each carries the records that were produced plus every RecordException that
was recovered from along the way, so the caller decides whether a partial
result is good enough.
"""

from pydantic import BaseModel, ConfigDict, Field

from src.schulnetz.errors import ExceptionLevel, RecordException, UnexpectedException
from src.schulnetz.logging import get_logger, log_exception
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

log = get_logger(__name__)


class ExceptionCollector(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    exceptions: list[RecordException] = Field(default_factory=list)
    # Set when a document-level check failed and remaining records were skipped.
    aborted: bool = False

    def exceptions_at(self, level: ExceptionLevel) -> list[RecordException]:
        return [exc for exc in self.exceptions if exc.level == level]

    def record(self, function: str, exc: Exception) -> None:
        """Keep a failure that ended one record (or the whole document)."""
        if not isinstance(exc, RecordException):
            exc = UnexpectedException.wrap(function, exc)
            log_exception(log, exc)
        self.exceptions.append(exc)

    def abort(self, function: str, exc: Exception) -> None:
        self.record(function, exc)
        self.aborted = True

    @property
    def has_fatal(self) -> bool:
        return any(exc.level == ExceptionLevel.FATAL for exc in self.exceptions)

    @property
    def is_usable(self) -> bool:
        return not self.aborted


class ParserResult(ExceptionCollector):
    pass


class TeachersParserResult(ParserResult):
    teachers: list[Teacher] = Field(default_factory=list)


class StudentsParserResult(ParserResult):
    students: list[Student] = Field(default_factory=list)


class TransactionsParserResult(ParserResult):
    transactions: list[Transaction] = Field(default_factory=list)


class AbsencesParserResult(ParserResult):
    absences: list[Absence] = Field(default_factory=list)
    absence_reports: list[AbsenceReport] = Field(default_factory=list)
    open_absences: list[OpenAbsence] = Field(default_factory=list)
    late_absences: list[LateAbsence] = Field(default_factory=list)


class GradesParserResult(ParserResult):
    subjects: list[Subject] = Field(default_factory=list)
    grades: list[Grade] = Field(default_factory=list)


class LinkResult(User, ExceptionCollector):
    """A linked User plus the linker's exceptions."""

    def to_user(self) -> User:
        return User(**{name: getattr(self, name) for name in User.model_fields})
