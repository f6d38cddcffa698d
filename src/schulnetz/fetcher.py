"""Which pages to load for each record set, and in which order.

The teacher and student lists come as CSV exports. The export endpoint
returns the table of the page visited last, so the list page is opened
first (state-changing) and the export is downloaded right after as a
stable read.
"""

from src.schulnetz.linker import link
from src.schulnetz.logging import get_logger
from src.schulnetz.models import Page, User
from src.schulnetz.pages.absences import parse_absences
from src.schulnetz.pages.grades import parse_grades
from src.schulnetz.pages.students import parse_students
from src.schulnetz.pages.teachers import parse_teachers
from src.schulnetz.pages.transactions import parse_transactions
from src.schulnetz.results import (
    AbsencesParserResult,
    GradesParserResult,
    LinkResult,
    ParserResult,
    StudentsParserResult,
    TeachersParserResult,
    TransactionsParserResult,
)
from src.schulnetz.session import Session
from src.schulnetz.utils import DEFAULT_TIMEZONE

log = get_logger(__name__)

SHOW_ALL_ABSENCES = {"action": "toggle_abs_showall"}
STUDENTS_EXPORT = {"tblName": "Kursliste", "export_all": 1}
TEACHERS_EXPORT = {"tblName": "Lehrerliste", "export_all": 1}


def _log_result(name: str, result: ParserResult, **counts: int) -> None:
    log.info(
        "records_fetched",
        records=name,
        exceptions=len(result.exceptions),
        aborted=result.aborted,
        **counts,
    )


async def fetch_absences(session: Session, tz: str = DEFAULT_TIMEZONE) -> AbsencesParserResult:
    content = await session.fetch_page(Page.ABSENCES, True, SHOW_ALL_ABSENCES)
    result = parse_absences(content, tz)
    _log_result(
        "absences",
        result,
        absences=len(result.absences),
        absence_reports=len(result.absence_reports),
        open_absences=len(result.open_absences),
        late_absences=len(result.late_absences),
    )
    return result


async def fetch_grades(session: Session, tz: str = DEFAULT_TIMEZONE) -> GradesParserResult:
    content = await session.fetch_page(Page.GRADES, True)
    result = parse_grades(content, tz)
    _log_result("grades", result, subjects=len(result.subjects), grades=len(result.grades))
    return result


async def fetch_students(session: Session) -> StudentsParserResult:
    await session.fetch_page(Page.STUDENTS, True)
    content = await session.fetch_page(Page.DOCUMENT_DOWNLOAD, False, STUDENTS_EXPORT)
    result = parse_students(content)
    _log_result("students", result, students=len(result.students))
    return result


async def fetch_teachers(session: Session) -> TeachersParserResult:
    await session.fetch_page(Page.TEACHERS, True)
    content = await session.fetch_page(Page.DOCUMENT_DOWNLOAD, False, TEACHERS_EXPORT)
    result = parse_teachers(content)
    _log_result("teachers", result, teachers=len(result.teachers))
    return result


async def fetch_transactions(
    session: Session, tz: str = DEFAULT_TIMEZONE
) -> TransactionsParserResult:
    content = await session.fetch_page(Page.TRANSACTIONS, True)
    result = parse_transactions(content, tz)
    _log_result("transactions", result, transactions=len(result.transactions))
    return result


async def fetch_user(session: Session, tz: str = DEFAULT_TIMEZONE) -> LinkResult:
    """Fetch every record set of the logged-in account and link them.

    Parser exceptions are carried over into the returned LinkResult, ahead
    of the linker's own.

    Raises:
        SchulNetzError: A page could not be fetched; the session is reset.
    """
    absences = await fetch_absences(session, tz)
    grades = await fetch_grades(session, tz)
    students = await fetch_students(session)
    teachers = await fetch_teachers(session)
    transactions = await fetch_transactions(session, tz)

    user = User(
        teachers=teachers.teachers,
        students=students.students,
        transactions=transactions.transactions,
        absences=absences.absences,
        absence_reports=absences.absence_reports,
        open_absences=absences.open_absences,
        late_absences=absences.late_absences,
        subjects=grades.subjects,
        grades=grades.grades,
    )
    result = link(user)

    parsed: list[ParserResult] = [absences, grades, students, teachers, transactions]
    result.exceptions = [exc for part in parsed for exc in part.exceptions] + result.exceptions
    result.aborted = any(part.aborted for part in parsed)

    log.info(
        "user_fetched",
        teachers=len(result.teachers),
        students=len(result.students),
        subjects=len(result.subjects),
        grades=len(result.grades),
        absences=len(result.absences),
        transactions=len(result.transactions),
        exceptions=len(result.exceptions),
        aborted=result.aborted,
    )
    return result
