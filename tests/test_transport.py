import httpx
import pytest

from src.schulnetz.errors import NoDataError, NoResponseError, UnexpectedStatusError
from src.schulnetz.transport import Transport

URL = "https://schulnetz.example.ch/index.php"


def _transport(handler) -> Transport:
    return Transport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_returns_content_status_and_headers():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.content == b"xajax=reset_timeout"
        assert request.headers["Cookie"] == "a=1"
        return httpx.Response(
            200,
            text="<html>ok</html>",
            headers=[("Set-Cookie", "a=2; path=/"), ("Set-Cookie", "b=3; path=/")],
        )

    transport = _transport(handler)
    response = await transport.request(
        URL, method="POST", headers={"Cookie": "a=1"}, body="xajax=reset_timeout"
    )

    assert response.status == 200
    assert response.content == "<html>ok</html>"
    assert response.headers["set-cookie"] == "a=2; path=/, b=3; path=/"


async def test_redirects_are_not_followed():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(302, text="moved", headers={"Location": "/start.php"})

    transport = _transport(handler)
    response = await transport.request(URL, method="POST", ignore_status_code=True)

    assert response.status == 302
    assert calls == ["/index.php"]


async def test_unexpected_status_raises():
    transport = _transport(lambda request: httpx.Response(500, text="error"))

    with pytest.raises(UnexpectedStatusError) as excinfo:
        await transport.request(URL)
    assert excinfo.value.status == 500
    assert excinfo.value.url == URL


async def test_empty_body_raises():
    transport = _transport(lambda request: httpx.Response(200, text=""))

    with pytest.raises(NoDataError):
        await transport.request(URL)


async def test_connection_error_raises_no_response():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler)

    with pytest.raises(NoResponseError):
        await transport.request(URL)


async def test_client_does_not_keep_cookies():
    seen_cookies = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_cookies.append(request.headers.get("Cookie"))
        return httpx.Response(200, text="ok", headers={"Set-Cookie": "PHPSESSID=s1; path=/"})

    transport = _transport(handler)
    await transport.request(URL)
    await transport.request(URL)

    assert seen_cookies == [None, None]
