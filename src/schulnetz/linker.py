"""Cross-link independently parsed records into one graph.

Natural keys used:

* Subject abbreviations look like ``M-1a-MUS``; the third part is the
  abbreviation of the teacher.
* Open absences and absence reports name their lesson by subject
  abbreviation.
* Grades and absence reports carry the parser-assigned id of their subject
  or absence.

The linker works on deep copies and never mutates its input.
"""

from src.schulnetz.errors import LinkerException
from src.schulnetz.logging import get_logger
from src.schulnetz.models import Absence, Subject, Teacher, User
from src.schulnetz.results import LinkResult
from src.schulnetz.utils import ensure_fatal, ensure_info

log = get_logger(__name__)


def _teacher_abbreviation(subject: Subject) -> str:
    ensure_fatal(
        bool(subject.abbreviation),
        LinkerException("link_subjects", "subject has no abbreviation"),
    )
    parts = subject.abbreviation.split("-")
    teacher_abbreviation = parts[2] if len(parts) > 2 else ""
    ensure_fatal(
        bool(teacher_abbreviation),
        LinkerException(
            "link_subjects",
            f"no teacher abbreviation in subject {subject.abbreviation!r}",
        ),
    )
    return teacher_abbreviation


def link(user: User) -> LinkResult:
    """Populate the relationship ids of every record in ``user``.

    Returns:
        A LinkResult holding linked copies of all records. Absence reports
        whose absence is unknown are left out.
    """
    linked = user.model_copy(deep=True)
    result = LinkResult(
        teachers=linked.teachers,
        students=linked.students,
        transactions=linked.transactions,
        absences=linked.absences,
        open_absences=linked.open_absences,
        late_absences=linked.late_absences,
        subjects=linked.subjects,
        grades=linked.grades,
    )

    teachers_by_abbreviation: dict[str, Teacher] = {
        teacher.abbreviation: teacher for teacher in linked.teachers
    }
    subjects_by_abbreviation: dict[str, Subject] = {}
    subjects_by_id: dict[str, Subject] = {}
    absences_by_id: dict[str, Absence] = {absence.id: absence for absence in linked.absences}

    for subject in linked.subjects:
        subjects_by_abbreviation[subject.abbreviation] = subject
        subjects_by_id[subject.id] = subject
        try:
            teacher = teachers_by_abbreviation.get(_teacher_abbreviation(subject))
            ensure_info(
                teacher is not None,
                LinkerException(
                    "link_subjects", f"no teacher for subject {subject.abbreviation!r}"
                ),
                result.exceptions,
            )
            if teacher is None:
                continue
            subject.teacher_id = teacher.id
            teacher.subject_ids.append(subject.id)
        except Exception as exc:
            result.record("link_subjects", exc)

    for grade in linked.grades:
        try:
            subject = subjects_by_id.get(grade.subject_id)
            ensure_fatal(
                subject is not None,
                LinkerException("link_grades", f"no subject with id {grade.subject_id!r}"),
            )
            subject.grade_ids.append(grade.id)
        except Exception as exc:
            result.record("link_grades", exc)

    for open_absence in linked.open_absences:
        try:
            subject = subjects_by_abbreviation.get(open_absence.lesson_abbreviation)
            ensure_info(
                subject is not None,
                LinkerException(
                    "link_open_absences",
                    f"no subject for lesson {open_absence.lesson_abbreviation!r}",
                ),
                result.exceptions,
            )
            if subject is None:
                continue
            open_absence.subject_id = subject.id
            subject.open_absence_ids.append(open_absence.id)
        except Exception as exc:
            result.record("link_open_absences", exc)

    for report in linked.absence_reports:
        try:
            subject = subjects_by_abbreviation.get(report.lesson_abbreviation)
            ensure_info(
                subject is not None,
                LinkerException(
                    "link_absence_reports",
                    f"no subject for lesson {report.lesson_abbreviation!r}",
                ),
                result.exceptions,
            )
            absence = absences_by_id.get(report.absence_id)
            ensure_fatal(
                absence is not None,
                LinkerException(
                    "link_absence_reports", f"no absence with id {report.absence_id!r}"
                ),
            )

            if subject is not None:
                report.subject_id = subject.id
                subject.absence_report_ids.append(report.id)
            absence.absence_report_ids.append(report.id)
            if subject is not None and subject.id not in absence.subject_ids:
                absence.subject_ids.append(subject.id)
                subject.absence_ids.append(absence.id)

            result.absence_reports.append(report)
        except Exception as exc:
            result.record("link_absence_reports", exc)

    log.debug(
        "records_linked",
        subjects=len(result.subjects),
        grades=len(result.grades),
        absence_reports=len(result.absence_reports),
        exceptions=len(result.exceptions),
    )
    return result
