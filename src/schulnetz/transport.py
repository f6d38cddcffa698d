"""HTTP transport for the portal, built on httpx.

Redirects are never followed: the login POST answers with a redirect whose
body and Set-Cookie header are what the session needs. httpx's own cookie
persistence is switched off so the session's CookieJar is the only cookie
state.
"""

from http.cookiejar import CookieJar as _StdCookieJar
from http.cookiejar import DefaultCookiePolicy

import httpx
from pydantic import BaseModel, Field

from src.schulnetz.errors import NoDataError, NoResponseError, UnexpectedStatusError
from src.schulnetz.logging import get_logger

log = get_logger(__name__)


class Response(BaseModel):
    content: str
    status: int
    # Lower-case header names; repeated headers joined with ", "
    headers: dict[str, str] = Field(default_factory=dict)


def _no_cookie_jar() -> _StdCookieJar:
    return _StdCookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class Transport:
    """Async request/response collaborator used by the Session."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        user_agent: str | None = None,
    ) -> None:
        headers = {"User-Agent": user_agent} if user_agent else None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout,
            headers=headers,
        )
        self._client.cookies = _no_cookie_jar()

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | None = None,
        ignore_status_code: bool = False,
    ) -> Response:
        """Perform one request.

        Raises:
            NoResponseError: The request failed before a response arrived.
            UnexpectedStatusError: Status was not 200 and ignore_status_code is False.
            NoDataError: The response body was empty.
        """
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                content=body,
                follow_redirects=False,
            )
        except httpx.HTTPError as e:
            log.warning("request_failed", method=method, url=url, error=str(e))
            raise NoResponseError(url, f"NO HTTP RESPONSE ({type(e).__name__})") from e

        log.debug("request_completed", method=method, url=url, status=response.status_code)

        if not ignore_status_code and response.status_code != 200:
            raise UnexpectedStatusError(url, response.status_code)

        text = response.text
        if not text:
            raise NoDataError(url)

        return Response(
            content=text,
            status=response.status_code,
            headers={
                key: ", ".join(response.headers.get_list(key))
                for key in response.headers.keys()
            },
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
