"""Account statement page (Kontoauszug).

DOM structure:
  #content-card > table   (two of them; the second holds the bookings)
    tr -> header
    tr -> td date | td reason | td <span>amount</span> | td balance
    tr -> footer (total)
"""

from src.schulnetz.errors import ParserException
from src.schulnetz.markup import inner_text, parse_html, select
from src.schulnetz.models import Transaction
from src.schulnetz.results import TransactionsParserResult
from src.schulnetz.utils import (
    DEFAULT_TIMEZONE,
    ensure_error,
    ensure_fatal,
    parse_date,
    parse_leading_float,
)

FUNCTION = "parse_transactions"

TABLES = "#content-card > table"


def parse_transactions(content: str, tz: str = DEFAULT_TIMEZONE) -> TransactionsParserResult:
    result = TransactionsParserResult()

    try:
        ensure_error(bool(content), ParserException(FUNCTION, "content is empty"))
        tables = select(parse_html(content), TABLES)
        ensure_fatal(
            len(tables) == 2,
            ParserException(FUNCTION, f"expected 2 tables, found {len(tables)}"),
        )
        rows = select(tables[1], "tr")
        ensure_fatal(
            len(rows) >= 2,
            ParserException(FUNCTION, f"expected at least 2 rows, found {len(rows)}"),
        )
    except Exception as exc:
        result.abort(FUNCTION, exc)
        return result

    for row in rows[1:-1]:
        try:
            fields = select(row, "td")
            ensure_fatal(
                len(fields) == 4,
                ParserException(FUNCTION, f"expected 4 cells, found {len(fields)}"),
            )

            date_text = inner_text(fields[0]).strip()
            ensure_fatal(bool(date_text), ParserException(FUNCTION, "date is empty"))

            reason = inner_text(fields[1]).strip()
            ensure_fatal(bool(reason), ParserException(FUNCTION, "reason is empty"))

            amount_spans = select(fields[2], "span")
            ensure_fatal(
                len(amount_spans) == 1,
                ParserException(FUNCTION, f"expected 1 amount span, found {len(amount_spans)}"),
            )
            amount_text = inner_text(amount_spans[0]).strip()
            ensure_fatal(bool(amount_text), ParserException(FUNCTION, "amount is empty"))
            amount = parse_leading_float(amount_text)
            ensure_fatal(
                amount is not None,
                ParserException(FUNCTION, f"amount is not a number (was {amount_text!r})"),
            )

            result.transactions.append(
                Transaction(
                    date=parse_date(date_text, "dd.MM.yyyy", tz),
                    reason=reason,
                    amount=amount,
                )
            )
        except Exception as exc:
            result.record(FUNCTION, exc)

    return result
