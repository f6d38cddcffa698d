"""In-memory stand-in for a SchulNetz host, plus sample pages.

FakePortal implements the Transport interface the Session talks to. It
answers login, logout, heartbeat and page requests, rotates transid on every
page it serves, and records each request together with the requests that
were in flight at the same time.
"""

import asyncio
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlsplit

from src.schulnetz.errors import NoResponseError
from src.schulnetz.models import LOGOUT_PAGE_ID, Page
from src.schulnetz.session import Session
from src.schulnetz.transport import Response

PROVIDER = "schulnetz.example.ch"
SESSION_ID = "ABC123"
LOGIN_HASH = "hash123"


def portal_page(body: str = "", session_id: str = SESSION_ID, trans_id: str = "t0") -> str:
    return (
        "<html><body>"
        '<div id="header-menu"><ul for="sn-main-menu">'
        f'<li><a href="index.php?pageid=1&id={session_id}&transid={trans_id}">Start</a></li>'
        '<li><a href="index.php?pageid=21311">Noten</a></li>'
        "</ul></div>"
        f'<div id="content">{body}</div>'
        "</body></html>"
    )


LOGIN_FORM = (
    "<html><body>"
    '<form id="standardformular" method="post" action="index.php">'
    '<input type="text" name="login"><input type="password" name="passwort">'
    f'<input type="hidden" name="loginhash" value="{LOGIN_HASH}">'
    "</form></body></html>"
)


TEACHERS_CSV = (
    '"Name";"Vorname";"Kürzel";"E-Mail"\r\n'
    '"Muster";"Hans";"MUS";"hans.muster@example.ch"\r\n'
    "\r\n"
    '"Keller";"Anna";"KEL";"anna.keller@example.ch"\r\n'
)

STUDENTS_CSV = (
    '"Nachname";"Vorname";"Geschlecht";"Abschluss";"Bilingual";"Klasse";'
    '"Adresse";"PLZ";"Ort";"Telefon";"Zusatzklasse";"Status"\n'
    '"Meier";"Lea";"w";"MAR";"b";"1a";"Bahnhofstrasse 1";"8000";"Zürich";'
    '"044 000 00 00";"";"aktiv"\n'
    '"Huber";"Tim";"m";"MAR";"";"1a";"Seeweg 2";"8001";"Zürich";"";"";""\n'
)

TRANSACTIONS_BODY = """
<div id="content-card">
  <table><tr><td>Kontostand</td><td>30.50</td></tr></table>
  <table>
    <tr><th>Datum</th><th>Buchungstext</th><th>Betrag</th><th>Saldo</th></tr>
    <tr><td>01.02.2024</td><td>Kopierkarte</td><td><span>-20.00</span></td><td>-20.00</td></tr>
    <tr><td>15.02.2024</td><td>Einzahlung</td><td><span>50.5</span></td><td>30.50</td></tr>
    <tr><td></td><td>Total</td><td><span>30.50</span></td><td></td></tr>
  </table>
</div>
"""

ABSENCES_BODY = """
<div id="uebersicht_bloecke"><page>
  <div><table class="mdl-data-table"><tbody>
    <tr><th>Von</th><th>Bis</th><th>Grund</th><th>Info</th><th>Frist</th><th>Entschuldigt</th><th>Lektionen</th></tr>
    <tr><td>01.02.2024</td><td>02.02.2024</td><td>Krankheit</td><td></td><td>10.02.2024</td><td>Ja</td><td>4</td></tr>
    <tr><td><table>
      <tr><th>Meldungen</th></tr>
      <tr><th>Datum</th><th>Zeit</th><th>Kurs</th><th>Bemerkung</th></tr>
      <tr><td>01.02.2024</td><td>08:00 bis 08:45</td><td>M-1a-MUS</td><td>krank</td></tr>
      <tr><td>01.02.2024</td><td>09:00 bis 09:45</td><td>M-1a-MUS</td><td>krank</td></tr>
    </table></td></tr>
    <tr><td>05.03.2024</td><td>05.03.2024</td><td>Arzt</td><td>Termin</td><td>15.03.2024</td><td>Nein</td><td>2</td></tr>
    <tr><td></td></tr>
    <tr><td>Total</td><td>6</td></tr>
    <tr><td>Entschuldigt</td><td>4</td></tr>
    <tr><td><button>Alle anzeigen</button></td></tr>
  </tbody></table></div>
  <form><table>
    <tr><th>Datum</th><th>Zeit</th><th>Kurs</th><th></th></tr>
    <tr><td>06.03.2024</td><td>10:00 - 10:45</td><td>D-1a-KEL</td><td>melden</td></tr>
    <tr><td></td></tr>
    <tr><td></td></tr>
  </table></form>
  <div><table>
    <tr><th>Datum</th><th>Zeit</th><th>Grund</th><th>Minuten</th><th>Entschuldigt</th></tr>
    <tr><td>Mo, 04.03.2024 (*)</td><td>08:05</td><td>Bus</td><td>5 Min.</td><td>Ja</td></tr>
    <tr><td></td></tr>
    <tr><td></td></tr>
  </table></div>
</page></div>
"""

GRADES_BODY = """
<div id="uebersicht_bloecke"><page><div><table><tbody>
  <tr><td>Kurs</td><td>Schnitt</td><td>Details</td><td>Bestätigt</td><td></td></tr>
  <tr><td><b>M-1a-MUS</b><br>Mathematik</td><td>4.750</td><td></td><td></td><td></td></tr>
  <tr class="detailrow"><td><table>
    <tr><td>Datum</td><td>Thema</td><td>Bewertung</td><td>Gewichtung</td></tr>
    <tr><td>01.02.2024</td><td>Algebra</td><td>5.0<div>Punkte: 20</div></td><td>2</td></tr>
    <tr><td>15.02.2024</td><td>Geometrie</td><td>4.25</td><td>1</td></tr>
    <tr><td>Aktueller Durchschnitt</td><td>4.75</td></tr>
  </table></td></tr>
  <tr id="schueleruebersicht_verlauf_1"><td>Verlauf</td></tr>
  <tr><td><b>D-1a-KEL</b><br>Deutsch</td><td>*</td><td></td><td><a href="#">bestätigen</a></td><td></td></tr>
</tbody></table></div></page></div>
"""


@dataclass
class Call:
    method: str
    path: str
    params: dict[str, str]
    headers: dict[str, str]
    body: str | None
    overlapping: list["Call"] = field(default_factory=list)

    @property
    def page_id(self) -> int | None:
        return int(self.params["pageid"]) if "pageid" in self.params else None


class FakePortal:
    """Answers the requests a Session makes, with an optional artificial delay."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[Call] = []
        self.events: list[str] = []
        self.pages: dict[int, str] = {}
        self.documents: dict[str, str] = {}
        self.failing_pages: set[int] = set()
        self.accept_login = True
        self.fail_heartbeat = False
        self.heartbeats = 0
        self._in_flight: list[Call] = []
        self._trans_counter = 0

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | None = None,
        ignore_status_code: bool = False,
    ) -> Response:
        parts = urlsplit(url)
        call = Call(
            method=method,
            path=parts.path.lstrip("/"),
            params=dict(parse_qsl(parts.query, keep_blank_values=True)),
            headers=dict(headers or {}),
            body=body,
        )
        for other in self._in_flight:
            other.overlapping.append(call)
            call.overlapping.append(other)
        self.calls.append(call)
        self.events.append(f"{method} {call.path}")
        self._in_flight.append(call)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self._respond(call, url)
        finally:
            self._in_flight.remove(call)

    def _next_page(self, body: str = "") -> str:
        self._trans_counter += 1
        return portal_page(body, trans_id=f"t{self._trans_counter}")

    def _respond(self, call: Call, url: str) -> Response:
        if call.path == "loginto.php":
            return Response(
                content=LOGIN_FORM, status=200, headers={"set-cookie": "PHPSESSID=s1; path=/"}
            )

        if call.path == "xajax_js.php":
            if self.fail_heartbeat:
                raise NoResponseError(url)
            self.heartbeats += 1
            return Response(content="<xjx></xjx>", status=200)

        if call.method == "POST" and call.path == "index.php":
            content = self._next_page() if self.accept_login else LOGIN_FORM
            return Response(
                content=content,
                status=302,
                headers={"set-cookie": "SCDID_S=x9; path=/; HttpOnly"},
            )

        page_id = call.page_id
        if page_id in self.failing_pages:
            raise NoResponseError(url)
        if page_id == LOGOUT_PAGE_ID:
            return Response(content="<html>Abgemeldet</html>", status=200)
        if page_id == Page.DOCUMENT_DOWNLOAD:
            return Response(
                content=self.documents.get(call.params.get("tblName", ""), '"empty"'),
                status=200,
            )
        return Response(content=self._next_page(self.pages.get(page_id, "")), status=200)


def make_session(portal: FakePortal, **kwargs) -> Session:
    return Session(PROVIDER, "lea.meier", "geheim", transport=portal, **kwargs)
