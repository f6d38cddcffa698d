"""Absences page, opened with action=toggle_abs_showall.

DOM structure:
  #uebersicht_bloecke > page
    div > table.mdl-data-table         absences
      tbody > tr                        header
      tbody > tr                        absence: from | to | reason | info | deadline | excused | lessons
      tbody > tr                        detail row of the absence above, may hold
        td > table                      its reports
        tr, tr                          two header rows
        tr                              date | "08:00 bis 08:45" | lesson | comment
      tbody > tr, tr                    totals
      tbody > tr:has(button)            paging button (optional)
    form > table                        open (unreported) absences
      tr                                header
      tr                                date | "08:00 - 08:45" | lesson | action
      tr, tr                            footer
    div > table                         late arrivals (optional)
      tr                                header
      tr                                "Mo, 01.02.2021 (*)" | time | reason | minutes | excused
      tr, tr                            footer
"""

from bs4 import Tag

from src.schulnetz.errors import ParserException
from src.schulnetz.markup import inner_text, parse_html, select
from src.schulnetz.models import Absence, AbsenceReport, LateAbsence, OpenAbsence
from src.schulnetz.results import AbsencesParserResult
from src.schulnetz.utils import (
    DEFAULT_TIMEZONE,
    ensure_error,
    ensure_fatal,
    parse_date,
    parse_leading_int,
)

FUNCTION = "parse_absences"

TABLES = "#uebersicht_bloecke > page > div > table"
ABSENCE_ROWS = "table.mdl-data-table > tbody > tr"
OPEN_ABSENCE_TABLES = "#uebersicht_bloecke > page form > table"

DATE = "dd.MM.yyyy"
DATE_TIME = "dd.MM.yyyy HH:mm"
YES = "Ja"


def _cells(row: Tag, count: int, what: str) -> list[str]:
    cells = select(row, "td")
    ensure_fatal(
        len(cells) == count,
        ParserException(FUNCTION, f"{what}: expected {count} cells, found {len(cells)}"),
    )
    return [inner_text(cell).strip() for cell in cells]


def _required_date(text: str, pattern: str, tz: str, what: str):
    parsed = parse_date(text, pattern, tz)
    ensure_fatal(
        parsed is not None,
        ParserException(FUNCTION, f"{what}: unparseable date {text!r}"),
    )
    return parsed


def _split_time_range(text: str, separator: str, what: str) -> tuple[str, str]:
    parts = [part.strip() for part in text.split(separator)]
    ensure_fatal(
        len(parts) == 2 and all(parts),
        ParserException(FUNCTION, f"{what}: unexpected time range {text!r}"),
    )
    return parts[0], parts[1]


def _parse_absence(row: Tag, tz: str) -> Absence:
    start, end, reason, additional_info, deadline, excused, lessons = _cells(row, 7, "absence")
    ensure_fatal(bool(start), ParserException(FUNCTION, "absence: start date is empty"))
    ensure_fatal(bool(end), ParserException(FUNCTION, "absence: end date is empty"))

    lesson_count = parse_leading_int(lessons)
    ensure_fatal(
        lesson_count is not None,
        ParserException(FUNCTION, f"absence: lesson count is not a number (was {lessons!r})"),
    )

    return Absence(
        start_date=_required_date(start, DATE, tz, "absence"),
        end_date=_required_date(end, DATE, tz, "absence"),
        reason=reason,
        additional_info=additional_info,
        deadline=deadline,
        excused=excused == YES,
        lesson_count=lesson_count,
    )


def _parse_absence_report(row: Tag, absence_id: str, tz: str) -> AbsenceReport:
    date, times, lesson, comment = _cells(row, 4, "absence report")
    ensure_fatal(bool(date), ParserException(FUNCTION, "absence report: date is empty"))
    ensure_fatal(bool(times), ParserException(FUNCTION, "absence report: time is empty"))
    start_time, end_time = _split_time_range(times, "bis", "absence report")

    return AbsenceReport(
        absence_id=absence_id,
        start_date=_required_date(f"{date} {start_time}", DATE_TIME, tz, "absence report"),
        end_date=_required_date(f"{date} {end_time}", DATE_TIME, tz, "absence report"),
        lesson_abbreviation=lesson,
        comment=comment,
    )


def _parse_open_absence(row: Tag, tz: str) -> OpenAbsence:
    date, times, lesson, _ = _cells(row, 4, "open absence")
    ensure_fatal(bool(date), ParserException(FUNCTION, "open absence: date is empty"))
    ensure_fatal(
        times.count("-") == 1,
        ParserException(FUNCTION, f"open absence: expected one '-' in {times!r}"),
    )
    start_time, end_time = _split_time_range(times, "-", "open absence")

    return OpenAbsence(
        start_date=_required_date(f"{date} {start_time}", DATE_TIME, tz, "open absence"),
        end_date=_required_date(f"{date} {end_time}", DATE_TIME, tz, "open absence"),
        lesson_abbreviation=lesson,
    )


def _parse_late_absence(row: Tag, tz: str) -> LateAbsence:
    day, time, reason, timespan_text, excused = _cells(row, 5, "late absence")
    day = day.replace("(*)", "").strip()
    ensure_fatal(bool(day), ParserException(FUNCTION, "late absence: date is empty"))
    # "Mo, 01.02.2021"
    weekday_and_date = day.split(",")
    ensure_fatal(
        len(weekday_and_date) == 2,
        ParserException(FUNCTION, f"late absence: unexpected date {day!r}"),
    )
    ensure_fatal(bool(time), ParserException(FUNCTION, "late absence: time is empty"))

    timespan = parse_leading_int(timespan_text)
    ensure_fatal(
        timespan is not None,
        ParserException(FUNCTION, f"late absence: timespan is not a number (was {timespan_text!r})"),
    )
    ensure_fatal(bool(excused), ParserException(FUNCTION, "late absence: excused is empty"))

    return LateAbsence(
        date=_required_date(f"{weekday_and_date[1].strip()} {time}", DATE_TIME, tz, "late absence"),
        reason=reason,
        timespan=timespan,
        excused=excused == YES,
    )


def _body_rows(rows: list[Tag], what: str) -> list[Tag]:
    """Drop the header row and the two footer rows."""
    ensure_fatal(
        len(rows) >= 3,
        ParserException(FUNCTION, f"{what}: expected at least 3 rows, found {len(rows)}"),
    )
    return rows[1:-2]


def _parse_absence_rows(rows: list[Tag], result: AbsencesParserResult, tz: str) -> None:
    # Rows come in pairs: the absence, then a detail row that may hold its reports
    for row, detail_row in zip(rows[::2], rows[1::2]):
        report_tables = select(detail_row, "table")

        try:
            absence = _parse_absence(row, tz)
        except Exception as exc:
            result.record(FUNCTION, exc)
            continue
        result.absences.append(absence)

        if not report_tables:
            continue

        try:
            report_rows = select(report_tables[0], "tr")
            ensure_fatal(
                len(report_rows) >= 2,
                ParserException(
                    FUNCTION, f"absence reports: expected at least 2 rows, found {len(report_rows)}"
                ),
            )
        except Exception as exc:
            result.record(FUNCTION, exc)
            continue

        for report_row in report_rows[2:]:
            try:
                result.absence_reports.append(_parse_absence_report(report_row, absence.id, tz))
            except Exception as exc:
                result.record(FUNCTION, exc)


def parse_absences(content: str, tz: str = DEFAULT_TIMEZONE) -> AbsencesParserResult:
    result = AbsencesParserResult()

    try:
        ensure_error(bool(content), ParserException(FUNCTION, "content is empty"))
        dom = parse_html(content)

        tables = select(dom, TABLES)
        ensure_fatal(
            len(tables) in (1, 2),
            ParserException(FUNCTION, f"expected 1 or 2 tables, found {len(tables)}"),
        )

        absence_rows = select(tables[0], ABSENCE_ROWS)
        if absence_rows and select(absence_rows[-1], "button"):
            absence_rows = absence_rows[:-1]
        absence_rows = _body_rows(absence_rows, "absences")
        ensure_fatal(
            len(absence_rows) % 2 == 0,
            ParserException(FUNCTION, f"absences: unexpected row count {len(absence_rows) + 3}"),
        )
        _parse_absence_rows(absence_rows, result, tz)

        open_tables = select(dom, OPEN_ABSENCE_TABLES)
        ensure_fatal(
            len(open_tables) == 1,
            ParserException(FUNCTION, f"expected 1 open absences table, found {len(open_tables)}"),
        )
        for row in _body_rows(select(open_tables[0], "tr"), "open absences"):
            try:
                result.open_absences.append(_parse_open_absence(row, tz))
            except Exception as exc:
                result.record(FUNCTION, exc)

        if len(tables) == 2:
            for row in _body_rows(select(tables[1], "tr"), "late absences"):
                try:
                    result.late_absences.append(_parse_late_absence(row, tz))
                except Exception as exc:
                    result.record(FUNCTION, exc)
    except Exception as exc:
        result.abort(FUNCTION, exc)

    return result
