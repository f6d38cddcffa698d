"""Grades overview page.

DOM structure:
  #uebersicht_bloecke > page > div > table > tbody
    tr                                   header
    tr                                   subject: <b>ABBR</b>name | avg (* = hidden) | ... | confirm link | ...
    tr.detailrow > td > table            grades of the subject above (zero or more rows)
      tr                                 header
      tr                                 date | topic | grade <div>details</div> | weight
      tr                                 summary, 2 cells (optional)
    tr#schueleruebersicht_verlauf...     chart row (optional)

A subject row and the rows that follow it form one block, so a broken
subject row never shifts its grade rows onto the next subject.
"""

from bs4 import Tag

from src.schulnetz.errors import ParserException
from src.schulnetz.markup import attribute, inner_text, parse_html, select
from src.schulnetz.models import Grade, Subject
from src.schulnetz.results import GradesParserResult
from src.schulnetz.utils import (
    DEFAULT_TIMEZONE,
    ensure_error,
    ensure_fatal,
    ensure_warn,
    generate_id,
    parse_date,
    parse_leading_float,
)

FUNCTION = "parse_grades"

SUBJECT_ROWS = "#uebersicht_bloecke > page > div > table > tbody > tr"
DETAIL_ROW_CLASS = "detailrow"
HISTORY_ROW_ID = "schueleruebersicht_verlauf"


def _is_detail_row(row: Tag) -> bool:
    return DETAIL_ROW_CLASS in attribute(row, "class")


def _is_history_row(row: Tag) -> bool:
    return HISTORY_ROW_ID in attribute(row, "id")


def _blocks(rows: list[Tag]) -> list[tuple[Tag, list[Tag]]]:
    """Group each subject row with the grade rows of its detail rows."""
    blocks: list[tuple[Tag, list[Tag]]] = []
    index = 0
    while index < len(rows):
        subject_row = rows[index]
        index += 1

        grade_rows: list[Tag] = []
        while index < len(rows) and _is_detail_row(rows[index]):
            tables = select(rows[index], "table")
            if len(tables) == 1:
                grade_rows.extend(select(tables[0], "tr"))
            index += 1

        if index < len(rows) and _is_history_row(rows[index]):
            index += 1

        blocks.append((subject_row, grade_rows))
    return blocks


def _parse_grade(row: Tag, subject_id: str, is_last: bool, tz: str) -> Grade | None:
    cells = select(row, "td")
    if len(cells) == 2 and is_last:
        return None
    ensure_fatal(
        len(cells) == 4,
        ParserException(FUNCTION, f"grade: expected 4 cells, found {len(cells)}"),
    )

    date = None
    date_text = inner_text(cells[0]).strip()
    if date_text:
        date = parse_date(date_text, "dd.MM.yyyy", tz)
        ensure_warn(
            date is not None,
            ParserException(FUNCTION, f"grade: unparseable date {date_text!r}"),
        )

    topic = inner_text(cells[1]).strip()

    grade = parse_leading_float(inner_text(cells[2]).strip())

    details = None
    details_divs = select(cells[2], "div")
    if len(details_divs) == 1:
        details = inner_text(details_divs[0]).strip()

    weight_text = inner_text(cells[3]).strip()
    weight = parse_leading_float(weight_text)
    ensure_fatal(
        weight is not None,
        ParserException(FUNCTION, f"grade: weight is not a number (was {weight_text!r})"),
    )

    return Grade(
        subject_id=subject_id,
        date=date,
        topic=topic,
        grade=grade,
        details=details,
        weight=weight,
    )


def _parse_block(
    subject_row: Tag, grade_rows: list[Tag], result: GradesParserResult, tz: str
) -> None:
    cells = select(subject_row, "td")
    ensure_fatal(
        len(cells) == 5,
        ParserException(FUNCTION, f"subject: expected 5 cells, found {len(cells)}"),
    )

    bold = select(cells[0], "b")
    ensure_fatal(
        len(bold) == 1,
        ParserException(FUNCTION, f"subject: expected 1 abbreviation, found {len(bold)}"),
    )
    abbreviation = inner_text(bold[0]).strip()
    name = inner_text(cells[0]).strip()
    hidden_grades = "*" in inner_text(cells[1])
    grades_confirmed = len(select(cells[3], "a")) == 0

    subject_id = generate_id()
    grades: list[Grade] = []

    if grade_rows:
        try:
            ensure_fatal(
                len(grade_rows) >= 2,
                ParserException(
                    FUNCTION, f"grades: expected at least 2 rows, found {len(grade_rows)}"
                ),
            )
            body = grade_rows[1:]
            for position, row in enumerate(body):
                try:
                    grade = _parse_grade(row, subject_id, position == len(body) - 1, tz)
                except Exception as exc:
                    result.record(FUNCTION, exc)
                    continue
                if grade is not None:
                    grades.append(grade)
        except Exception as exc:
            result.record(FUNCTION, exc)

    graded = [grade for grade in grades if grade.grade]
    weight_total = sum(grade.weight for grade in graded)
    average = (
        sum(grade.grade * grade.weight for grade in graded) / weight_total
        if weight_total > 0
        else None
    )

    result.subjects.append(
        Subject(
            id=subject_id,
            abbreviation=abbreviation,
            name=name,
            average=average,
            grades_confirmed=grades_confirmed,
            hidden_grades=hidden_grades,
        )
    )
    result.grades.extend(grades)


def parse_grades(content: str, tz: str = DEFAULT_TIMEZONE) -> GradesParserResult:
    result = GradesParserResult()

    try:
        ensure_error(bool(content), ParserException(FUNCTION, "content is empty"))
        rows = select(parse_html(content), SUBJECT_ROWS)
        ensure_fatal(
            len(rows) >= 1,
            ParserException(FUNCTION, f"expected at least 1 row, found {len(rows)}"),
        )
    except Exception as exc:
        result.abort(FUNCTION, exc)
        return result

    for subject_row, grade_rows in _blocks(rows[1:]):
        try:
            _parse_block(subject_row, grade_rows, result, tz)
        except Exception as exc:
            result.record(FUNCTION, exc)

    return result
