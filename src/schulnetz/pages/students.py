"""Class list, from the 'Kursliste' CSV export."""

from src.schulnetz.errors import ParserException
from src.schulnetz.models import Gender, Student
from src.schulnetz.pages.csv_export import export_lines, quoted_fields
from src.schulnetz.results import StudentsParserResult
from src.schulnetz.utils import ensure_error, ensure_fatal, parse_leading_int

FUNCTION = "parse_students"
COLUMNS = 12

_GENDERS = {"m": Gender.MALE, "w": Gender.FEMALE}


def parse_students(content: str) -> StudentsParserResult:
    """Parse the class list export.

    Columns: last name, first name, gender (m/w), degree, bilingual (b),
    class, address, zip, city, phone, additional class, status.
    """
    result = StudentsParserResult()

    try:
        ensure_error(bool(content), ParserException(FUNCTION, "content is empty"))
        lines = export_lines(content)
        ensure_fatal(len(lines) > 0, ParserException(FUNCTION, "export has no header line"))
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
            (
                last_name,
                first_name,
                gender,
                degree,
                bilingual,
                clazz,
                address,
                zip_text,
                city,
                phone,
                additional_class,
                status,
            ) = fields

            zip_code = parse_leading_int(zip_text)
            ensure_error(
                zip_code is not None,
                ParserException(FUNCTION, f"zip is not a number (was {zip_text!r})"),
            )

            result.students.append(
                Student(
                    last_name=last_name,
                    first_name=first_name,
                    gender=_GENDERS.get(gender, Gender.OTHER),
                    degree=degree,
                    bilingual=bilingual == "b",
                    clazz=clazz,
                    address=address,
                    zip=zip_code,
                    city=city,
                    phone=phone,
                    additional_class=additional_class,
                    status=status,
                )
            )
        except Exception as exc:
            result.record(FUNCTION, exc)

    return result
