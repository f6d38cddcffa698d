"""Teacher list, from the 'Lehrerliste' CSV export.

Columns: last name, first name, abbreviation, email.
"""

from src.schulnetz.errors import ParserException
from src.schulnetz.models import Teacher
from src.schulnetz.pages.csv_export import export_lines, quoted_fields
from src.schulnetz.results import TeachersParserResult
from src.schulnetz.utils import ensure_error, ensure_fatal

FUNCTION = "parse_teachers"
COLUMNS = 4


def parse_teachers(content: str) -> TeachersParserResult:
    result = TeachersParserResult()

    try:
        ensure_error(bool(content), ParserException(FUNCTION, "content is empty"))
        lines = export_lines(content)
        ensure_fatal(len(lines) >= 1, ParserException(FUNCTION, "export has no header line"))
    except Exception as exc:
        result.abort(FUNCTION, exc)
        return result

    for line in lines[1:]:
        try:
            fields = quoted_fields(line)
            ensure_fatal(
                len(fields) == COLUMNS,
                ParserException(FUNCTION, f"expected {COLUMNS} fields, got {len(fields)}"),
            )
            last_name, first_name, abbreviation, email = fields

            result.teachers.append(
                Teacher(
                    last_name=last_name,
                    first_name=first_name,
                    abbreviation=abbreviation,
                    email=email,
                )
            )
        except Exception as exc:
            result.record(FUNCTION, exc)

    return result
