"""Portal session: login/logout lifecycle, page fetching and the heartbeat.

The portal is a stateful web application. After login every page URL must
carry the session ``id`` and the current ``transid``, and the server may
rotate ``transid`` whenever the user navigates. Session keeps those values,
the cookie jar and the visited pages consistent under concurrent use:

* state-changing fetches run one at a time under the StateCoordinator lock
  and re-read id/transid from every page they load,
* stable-state fetches share a reader section and leave the ids alone,
* login jumps the queue, logout cancels everyone who is still waiting,
* any failure resets the session to logged out, so ``logged_in`` is the
  single signal callers check before trying again.
"""

from urllib.parse import quote, urlencode

from src.schulnetz.config import PortalConfig
from src.schulnetz.cookies import CookieJar
from src.schulnetz.errors import (
    AuthenticationError,
    LockAcquisitionError,
    NotLoggedInError,
    PageVerificationError,
    SchulNetzError,
)
from src.schulnetz.logging import get_logger
from src.schulnetz.markup import attribute, parse_html, select
from src.schulnetz.models import LOGGED_IN_PAGE_ID, LOGOUT_PAGE_ID, Page
from src.schulnetz.state import StateCoordinator
from src.schulnetz.timer import SessionTimer
from src.schulnetz.transport import Response, Transport
from src.schulnetz.utils import extract_query_parameters

logger = get_logger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 25 * 60

LOGIN_HASH_SELECTOR = "#standardformular input[type=hidden][name=loginhash]"
NAVIGATION_LINK_SELECTOR = "#header-menu ul[for=sn-main-menu] > li:nth-child(1) > a"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class Session:
    """One logged-in account on one portal host."""

    def __init__(
        self,
        provider: str,
        username: str,
        password: str,
        *,
        transport: Transport | None = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    ) -> None:
        """Initialize Session.

        Args:
            provider: Portal host without scheme.
            username: Portal username.
            password: Portal password.
            transport: HTTP transport; a default httpx-backed one is created if omitted.
            heartbeat_interval: Seconds between reset_timeout requests.
        """
        self.provider = provider
        self._username = username
        self._password = password
        self._transport = transport or Transport()
        self._owns_transport = transport is None

        self.id: str | None = None
        self.trans_id: str | None = None
        self.last_visited_page_id: int | None = None
        self._visited_page_ids: set[int] = set()
        self.cookies = CookieJar()
        self._logged_in = False

        self._state = StateCoordinator()
        self._timer = SessionTimer(heartbeat_interval, self._reset_timeout)

    @classmethod
    def from_config(cls, config: PortalConfig, *, transport: Transport | None = None) -> "Session":
        session = cls(
            config.schulnetz_provider,
            config.schulnetz_user,
            config.schulnetz_pass,
            transport=transport
            or Transport(timeout=config.request_timeout_seconds, user_agent=config.user_agent),
            heartbeat_interval=config.heartbeat_interval_seconds,
        )
        session._owns_transport = transport is None
        return session

    async def __aenter__(self) -> "Session":
        await self.login()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.logout()
        if self._owns_transport:
            await self._transport.aclose()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def logged_in(self) -> bool:
        return bool(
            self._logged_in
            and self.id
            and self.trans_id
            and self.last_visited_page_id is not None
        )

    @property
    def state(self) -> StateCoordinator:
        return self._state

    @property
    def heartbeat_running(self) -> bool:
        return self._timer.running

    def has_visited_page(self, page: Page | int) -> bool:
        return int(page) in self._visited_page_ids

    def _url(self, path: str, params: dict[str, str | int | None] | None = None) -> str:
        url = f"https://{self.provider}/{path}"
        if params:
            url += "?" + urlencode(params, quote_via=quote)
        return url

    def _cookie_headers(self) -> dict[str, str]:
        return {"Cookie": self.cookies.header()}

    def _update_cookies(self, response: Response) -> None:
        self.cookies.update(response.headers.get("set-cookie"))

    def _verify_page_and_extract_ids(self, html: str) -> None:
        """Read id and transid from the first main-menu link of a portal page.

        Raises:
            PageVerificationError: The link is missing or lacks either parameter.
        """
        links = select(parse_html(html), NAVIGATION_LINK_SELECTOR)
        if len(links) != 1:
            raise PageVerificationError(
                f"expected 1 navigation link, found {len(links)}"
            )

        params = extract_query_parameters(
            attribute(links[0], "href"), f"https://{self.provider}"
        )
        page_id, trans_id = params.get("id"), params.get("transid")
        if not page_id:
            raise PageVerificationError("navigation link has no id")
        if not trans_id:
            raise PageVerificationError("navigation link has no transid")

        self.id = page_id
        self.trans_id = trans_id

    def _reset(self) -> None:
        """Forget everything about the server-side session."""
        was_logged_in = self.logged_in
        self.id = None
        self.trans_id = None
        self.last_visited_page_id = None
        self._visited_page_ids.clear()
        self.cookies.clear()
        self._logged_in = False
        self._timer.stop()
        if was_logged_in:
            logger.info("session_reset", provider=self.provider)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """Log in, unless already logged in.

        Raises:
            LockAcquisitionError: The wait for the state lock was cancelled.
            AuthenticationError: The portal did not accept the credentials.
            SchulNetzError: Any transport or page failure; the session is reset.
        """
        if self.logged_in:
            return

        token = await self._state.acquire(priority=True, owner="login")
        if token is None:
            raise LockAcquisitionError("login: failed to acquire state lock")

        try:
            # Another login may have completed while we were queued
            if self.logged_in:
                return

            logger.info("login_started", provider=self.provider)

            response = await self._transport.request(self._url("loginto.php"))
            self._update_cookies(response)

            inputs = select(parse_html(response.content), LOGIN_HASH_SELECTOR)
            if len(inputs) != 1:
                raise PageVerificationError(
                    f"expected 1 loginhash input, found {len(inputs)}"
                )
            login_hash = attribute(inputs[0], "value")
            if not login_hash:
                raise PageVerificationError("loginhash input has no value")

            body = urlencode(
                {
                    "login": self._username,
                    "passwort": self._password,
                    "loginhash": login_hash,
                },
                quote_via=quote,
            )
            # The login answer is a redirect; its status says nothing about success
            response = await self._transport.request(
                self._url("index.php"),
                method="POST",
                body=body,
                headers={**self._cookie_headers(), "Content-Type": FORM_CONTENT_TYPE},
                ignore_status_code=True,
            )
            self._update_cookies(response)

            try:
                self._verify_page_and_extract_ids(response.content)
            except PageVerificationError as e:
                raise AuthenticationError(
                    f"login rejected for {self.provider}: {e}"
                ) from e

            self._logged_in = True
            self.last_visited_page_id = LOGGED_IN_PAGE_ID
            self._timer.start()
            logger.info("login_succeeded", provider=self.provider)
        except Exception as e:
            logger.warning(
                "login_failed",
                provider=self.provider,
                error=str(e),
                type=type(e).__name__,
            )
            self._reset()
            raise
        finally:
            self._state.release(token)

    async def logout(self) -> None:
        """Log out. Never raises; the session is logged out afterwards."""
        if not self.logged_in:
            self._reset()
            return

        token = await self._state.force_acquire()
        if token is None:
            self._state.teardown()
            self._reset()
            return

        try:
            await self._transport.request(
                self._url(
                    "index.php",
                    {"pageid": LOGOUT_PAGE_ID, "id": self.id, "transid": self.trans_id},
                ),
                headers=self._cookie_headers(),
                ignore_status_code=True,
            )
            logger.info("logout_succeeded", provider=self.provider)
        except SchulNetzError as e:
            logger.warning("logout_request_failed", provider=self.provider, error=str(e))
        finally:
            self._reset()
            self._state.release(token)

    async def _reset_timeout(self) -> bool:
        """Heartbeat tick: keep the server-side session from expiring.

        Returns:
            False when the heartbeat should stop.
        """
        if not self.logged_in:
            return False

        if not await self._state.retain_stable():
            return False

        try:
            if not self.logged_in:
                return False
            response = await self._transport.request(
                self._url(
                    "xajax_js.php",
                    {
                        "pageid": self.last_visited_page_id,
                        "id": self.id,
                        "transid": self.trans_id,
                    },
                ),
                method="POST",
                body="xajax=reset_timeout",
                headers={**self._cookie_headers(), "Content-Type": FORM_CONTENT_TYPE},
            )
            self._update_cookies(response)
        except SchulNetzError as e:
            logger.warning("heartbeat_failed", provider=self.provider, error=str(e))
            self._reset()
            return False
        finally:
            self._state.release_stable()

        logger.debug("heartbeat_sent", provider=self.provider)
        return True

    # ------------------------------------------------------------------
    # Fetching pages
    # ------------------------------------------------------------------

    async def fetch_page(
        self,
        page_id: Page | int,
        changes_state: bool = True,
        extra_params: dict[str, str | int] | None = None,
    ) -> str:
        """Fetch one page of index.php and return its body.

        Args:
            page_id: Portal page id.
            changes_state: Whether loading the page may rotate transid.
            extra_params: Additional query parameters, appended in order.

        Raises:
            NotLoggedInError: Called without a live session.
            LockAcquisitionError: The wait for the lock/stable section was cancelled.
            SchulNetzError: Transport or verification failure; the session is reset.
        """
        if not self.logged_in:
            raise NotLoggedInError(f"fetch_page({int(page_id)}): not logged in")

        token = None
        if changes_state:
            token = await self._state.acquire(owner=f"page-{int(page_id)}")
            if token is None:
                raise LockAcquisitionError(
                    f"fetch_page({int(page_id)}): failed to acquire state lock"
                )
        elif not await self._state.retain_stable():
            raise LockAcquisitionError(
                f"fetch_page({int(page_id)}): failed to retain stable state"
            )

        try:
            if not self.logged_in:
                raise NotLoggedInError(f"fetch_page({int(page_id)}): session ended while waiting")

            params: dict[str, str | int | None] = {
                "pageid": int(page_id),
                "id": self.id,
                "transid": self.trans_id,
            }
            params.update(extra_params or {})
            url = self._url("index.php", params)
            response = await self._transport.request(url, headers=self._cookie_headers())
            self._update_cookies(response)

            if changes_state:
                self._verify_page_and_extract_ids(response.content)
                self.last_visited_page_id = int(page_id)
            self._visited_page_ids.add(int(page_id))

            logger.debug(
                "page_fetched",
                page_id=int(page_id),
                changes_state=changes_state,
                status=response.status,
            )
            return response.content
        except Exception as e:
            logger.warning(
                "page_fetch_failed",
                page_id=int(page_id),
                error=str(e),
                type=type(e).__name__,
            )
            self._reset()
            raise
        finally:
            if changes_state:
                self._state.release(token)
            else:
                self._state.release_stable()
