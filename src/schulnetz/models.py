"""Pydantic models for portal records.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Record ids are minted at parse time and only mean something inside one process.
Relationship fields (``*_id``/``*_ids`` not set by a parser) are filled by the linker.
"""

from datetime import datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, Field

from src.schulnetz.utils import generate_id


class Page(IntEnum):
    """Numeric page ids of the portal's index.php."""

    ABSENCES = 21111
    TEACHERS = 22352
    STUDENTS = 22348
    TRANSACTIONS = 21411
    GRADES = 21311
    SCHEDULE = 22202
    DOCUMENT_DOWNLOAD = 1012


# Page id recorded right after login, before any real navigation.
LOGGED_IN_PAGE_ID = 1
LOGOUT_PAGE_ID = 9999


class Gender(str, Enum):
    MALE = "♂"
    FEMALE = "♀"
    OTHER = "⚧"


class Record(BaseModel):
    id: str = Field(default_factory=generate_id)


class Teacher(Record):
    last_name: str
    first_name: str
    abbreviation: str
    email: str

    subject_ids: list[str] = Field(default_factory=list)


class Student(Record):
    last_name: str
    first_name: str
    gender: Gender
    degree: str
    bilingual: bool
    clazz: str
    address: str
    zip: int
    city: str
    phone: str | None = None
    additional_class: str | None = None
    status: str | None = None


class Subject(Record):
    abbreviation: str
    name: str | None = None
    average: float | None = None  # weighted mean of graded entries
    grades_confirmed: bool
    hidden_grades: bool

    teacher_id: str | None = None
    grade_ids: list[str] = Field(default_factory=list)
    absence_ids: list[str] = Field(default_factory=list)
    absence_report_ids: list[str] = Field(default_factory=list)
    open_absence_ids: list[str] = Field(default_factory=list)


class Grade(Record):
    subject_id: str
    date: datetime | None = None
    topic: str
    grade: float | None = None
    details: str | None = None
    weight: float


class Absence(Record):
    start_date: datetime
    end_date: datetime
    reason: str
    additional_info: str | None = None
    deadline: str | None = None
    excused: bool
    lesson_count: int

    subject_ids: list[str] = Field(default_factory=list)
    absence_report_ids: list[str] = Field(default_factory=list)


class AbsenceReport(Record):
    absence_id: str
    start_date: datetime
    end_date: datetime
    lesson_abbreviation: str
    comment: str

    subject_id: str | None = None


class OpenAbsence(Record):
    start_date: datetime
    end_date: datetime
    lesson_abbreviation: str

    subject_id: str | None = None


class LateAbsence(Record):
    date: datetime
    reason: str
    timespan: int  # minutes
    excused: bool


class Transaction(Record):
    date: datetime | None = None
    reason: str
    amount: float


class User(BaseModel):
    """Everything fetched for one account."""

    teachers: list[Teacher] = Field(default_factory=list)
    students: list[Student] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    absences: list[Absence] = Field(default_factory=list)
    absence_reports: list[AbsenceReport] = Field(default_factory=list)
    open_absences: list[OpenAbsence] = Field(default_factory=list)
    late_absences: list[LateAbsence] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    grades: list[Grade] = Field(default_factory=list)
