"""Parser tests on trimmed copies of the portal pages."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from src.schulnetz.errors import ExceptionLevel, ParserException
from src.schulnetz.models import Gender
from src.schulnetz.pages.absences import parse_absences
from src.schulnetz.pages.csv_export import export_lines, quoted_fields
from src.schulnetz.pages.grades import parse_grades
from src.schulnetz.pages.students import parse_students
from src.schulnetz.pages.teachers import parse_teachers
from src.schulnetz.pages.transactions import parse_transactions
from tests.portal import (
    ABSENCES_BODY,
    GRADES_BODY,
    STUDENTS_CSV,
    TEACHERS_CSV,
    TRANSACTIONS_BODY,
    portal_page,
)

ZURICH = ZoneInfo("Europe/Zurich")


def _at(day: int, month: int, year: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=ZURICH)


# ---------------------------------------------------------------------------
# CSV exports
# ---------------------------------------------------------------------------


class TestCsvExport:
    def test_quoted_fields_unescape_quotes(self):
        assert quoted_fields('"a";"say ""hi""";" b "') == ["a", 'say "hi"', "b"]

    def test_blank_lines_are_dropped(self):
        assert export_lines('"h"\r\n\r\n"1"\n\n"2"\n') == ['"h"', '"1"', '"2"']


class TestTeachers:
    def test_parses_every_row(self):
        result = parse_teachers(TEACHERS_CSV)

        assert result.exceptions == []
        assert [teacher.abbreviation for teacher in result.teachers] == ["MUS", "KEL"]
        muster = result.teachers[0]
        assert muster.last_name == "Muster"
        assert muster.first_name == "Hans"
        assert muster.email == "hans.muster@example.ch"
        assert muster.subject_ids == []

    def test_short_row_is_skipped(self):
        result = parse_teachers(TEACHERS_CSV + '"Nur";"Drei";"Felder"\n')

        assert len(result.teachers) == 2
        assert len(result.exceptions) == 1
        assert result.exceptions[0].level == ExceptionLevel.FATAL
        assert result.is_usable

    def test_empty_document_aborts(self):
        result = parse_teachers("")
        assert result.aborted
        assert not result.is_usable
        assert result.exceptions_at(ExceptionLevel.ERROR)


class TestStudents:
    def test_parses_every_row(self):
        result = parse_students(STUDENTS_CSV)

        assert result.exceptions == []
        lea, tim = result.students
        assert lea.gender == Gender.FEMALE
        assert lea.bilingual
        assert lea.clazz == "1a"
        assert lea.zip == 8000
        assert lea.phone == "044 000 00 00"
        assert lea.status == "aktiv"
        assert tim.gender == Gender.MALE
        assert not tim.bilingual

    def test_unknown_gender(self):
        line = '"A";"B";"x";"MAR";"";"1a";"Weg 1";"8000";"Zürich";"";"";""\n'
        result = parse_students(STUDENTS_CSV + line)
        assert result.students[-1].gender == Gender.OTHER

    def test_bad_zip_is_an_error(self):
        line = '"A";"B";"m";"MAR";"";"1a";"Weg 1";"PLZ";"Zürich";"";"";""\n'
        result = parse_students(STUDENTS_CSV + line)

        assert len(result.students) == 2
        assert result.exceptions[0].level == ExceptionLevel.ERROR
        assert isinstance(result.exceptions[0], ParserException)


# ---------------------------------------------------------------------------
# HTML pages
# ---------------------------------------------------------------------------


class TestTransactions:
    def test_parses_bookings_between_header_and_total(self):
        result = parse_transactions(portal_page(TRANSACTIONS_BODY))

        assert result.exceptions == []
        copy_card, deposit = result.transactions
        assert copy_card.date == _at(1, 2, 2024)
        assert copy_card.reason == "Kopierkarte"
        assert copy_card.amount == -20.0
        assert deposit.amount == 50.5

    def test_amount_must_be_a_number(self):
        body = TRANSACTIONS_BODY.replace("<span>50.5</span>", "<span>n/a</span>")
        result = parse_transactions(portal_page(body))

        assert len(result.transactions) == 1
        assert result.exceptions[0].level == ExceptionLevel.FATAL

    def test_missing_table_aborts(self):
        result = parse_transactions(portal_page("<p>Keine Buchungen</p>"))
        assert result.aborted
        assert result.transactions == []


class TestAbsences:
    @pytest.fixture
    def result(self):
        return parse_absences(portal_page(ABSENCES_BODY))

    def test_no_exceptions(self, result):
        assert result.exceptions == []
        assert not result.aborted

    def test_absences(self, result):
        sick, doctor = result.absences
        assert sick.start_date == _at(1, 2, 2024)
        assert sick.end_date == _at(2, 2, 2024)
        assert sick.reason == "Krankheit"
        assert sick.deadline == "10.02.2024"
        assert sick.excused
        assert sick.lesson_count == 4
        assert doctor.additional_info == "Termin"
        assert not doctor.excused

    def test_reports_belong_to_their_absence(self, result):
        sick = result.absences[0]
        assert len(result.absence_reports) == 2
        first = result.absence_reports[0]
        assert first.absence_id == sick.id
        assert first.start_date == _at(1, 2, 2024, 8, 0)
        assert first.end_date == _at(1, 2, 2024, 8, 45)
        assert first.lesson_abbreviation == "M-1a-MUS"
        assert first.comment == "krank"

    def test_open_absences(self, result):
        (open_absence,) = result.open_absences
        assert open_absence.start_date == _at(6, 3, 2024, 10, 0)
        assert open_absence.end_date == _at(6, 3, 2024, 10, 45)
        assert open_absence.lesson_abbreviation == "D-1a-KEL"

    def test_late_absences(self, result):
        (late,) = result.late_absences
        assert late.date == _at(4, 3, 2024, 8, 5)
        assert late.reason == "Bus"
        assert late.timespan == 5
        assert late.excused

    def test_broken_report_time_skips_only_that_report(self):
        body = ABSENCES_BODY.replace("09:00 bis 09:45", "09:00")
        result = parse_absences(portal_page(body))

        assert len(result.absences) == 2
        assert len(result.absence_reports) == 1
        assert [exc.level for exc in result.exceptions] == [ExceptionLevel.FATAL]

    def test_missing_tables_abort(self):
        result = parse_absences(portal_page("<p>Keine Absenzen</p>"))
        assert result.aborted


class TestGrades:
    @pytest.fixture
    def result(self):
        return parse_grades(portal_page(GRADES_BODY))

    def test_subjects(self, result):
        assert result.exceptions == []
        maths, german = result.subjects
        assert maths.abbreviation == "M-1a-MUS"
        assert maths.name == "Mathematik"
        assert maths.grades_confirmed
        assert not maths.hidden_grades
        assert german.abbreviation == "D-1a-KEL"
        assert german.name == "Deutsch"
        assert not german.grades_confirmed
        assert german.hidden_grades

    def test_grades_of_a_subject(self, result):
        maths = result.subjects[0]
        algebra, geometry = result.grades
        assert algebra.subject_id == maths.id
        assert algebra.date == _at(1, 2, 2024)
        assert algebra.topic == "Algebra"
        assert algebra.grade == 5.0
        assert algebra.details == "Punkte: 20"
        assert algebra.weight == 2.0
        assert geometry.grade == 4.25
        assert geometry.details is None

    def test_average_is_weighted(self, result):
        maths, german = result.subjects
        assert maths.average == pytest.approx(4.75)
        assert german.average is None

    def test_unparseable_grade_date_is_a_warning(self):
        body = GRADES_BODY.replace("15.02.2024", "bald")
        result = parse_grades(portal_page(body))

        assert len(result.grades) == 1
        assert [exc.level for exc in result.exceptions] == [ExceptionLevel.WARN]
        assert result.subjects[0].average == pytest.approx(5.0)

    def test_no_table_aborts(self):
        result = parse_grades(portal_page("<p>Keine Noten</p>"))
        assert result.aborted
