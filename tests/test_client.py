import json

import httpx
import pytest

from ubot.client import InputFile, TelegramClient, _extract_files, _form_value
from ubot.errors import TelegramAPIError, TelegramNetworkError, TelegramRetryAfter

TOKEN = "123:abcDEF_ghij"


def _ok(result) -> dict:
    return {"ok": True, "result": result}


@pytest.mark.anyio
async def test_invoke_posts_json_and_returns_result() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_ok({"message_id": 5}), request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        result = await tg.invoke(
            "sendMessage", {"chat_id": 1, "text": "hi", "reply_markup": None}
        )

    assert result == {"message_id": 5}
    assert len(requests) == 1
    assert requests[0].url.path == f"/bot{TOKEN}/sendMessage"
    assert json.loads(requests[0].content) == {"chat_id": 1, "text": "hi"}


@pytest.mark.anyio
async def test_invoke_without_params_sends_empty_object() -> None:
    bodies: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content)
        return httpx.Response(200, json=_ok(True), request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client, base_url="http://local/")
        assert await tg.invoke("logOut") is True

    assert json.loads(bodies[0]) == {}


@pytest.mark.anyio
async def test_api_error_carries_code_and_description() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "ok": False,
                "error_code": 400,
                "description": "Bad Request: chat not found",
            },
            request=request,
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        with pytest.raises(TelegramAPIError) as exc_info:
            await tg.invoke("sendMessage", {"chat_id": 1, "text": "hi"})

    err = exc_info.value
    assert err.method == "sendMessage"
    assert err.error_code == 400
    assert err.status == 400
    assert err.description == "Bad Request: chat not found"
    assert not isinstance(err, TelegramRetryAfter)


@pytest.mark.anyio
async def test_rate_limit_raises_retry_after() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(
            429,
            json={
                "ok": False,
                "error_code": 429,
                "description": "Too Many Requests",
                "parameters": {"retry_after": 3},
            },
            request=request,
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        with pytest.raises(TelegramRetryAfter) as exc_info:
            await tg.invoke("sendMessage", {"chat_id": 1, "text": "hi"})

    assert exc_info.value.retry_after == 3.0
    assert len(calls) == 1


@pytest.mark.anyio
async def test_rate_limit_from_plain_text_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429, text="Too Many Requests: retry after 7", request=request
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        with pytest.raises(TelegramRetryAfter) as exc_info:
            await tg.invoke("getUpdates")

    assert exc_info.value.retry_after == 7.0


@pytest.mark.anyio
async def test_non_json_response_is_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        with pytest.raises(TelegramAPIError, match="HTTP 502") as exc_info:
            await tg.invoke("getUpdates")

    assert exc_info.value.status == 502


@pytest.mark.anyio
async def test_network_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        with pytest.raises(
            TelegramNetworkError, match="connection refused"
        ) as exc_info:
            await tg.invoke("getMe")

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.anyio
async def test_upload_uses_multipart_form() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=_ok({"message_id": 9}), request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        tg = TelegramClient(TOKEN, client=client)
        await tg.invoke(
            "sendPhoto",
            {
                "chat_id": 1,
                "photo": InputFile("cat.jpg", b"\xff\xd8jpeg", "image/jpeg"),
                "disable_notification": True,
                "reply_markup": {"inline_keyboard": []},
            },
        )

    request = requests[0]
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="photo"; filename="cat.jpg"' in body
    assert b"\xff\xd8jpeg" in body
    assert b'name="disable_notification"\r\n\r\ntrue' in body
    assert b'{"inline_keyboard":[]}' in body


def test_nested_files_become_attach_references() -> None:
    first = InputFile("a.jpg", b"a")
    second = InputFile("b.jpg", b"b")

    fields, files = _extract_files(
        {
            "chat_id": 1,
            "media": [
                {"type": "photo", "media": first},
                {"type": "photo", "media": second},
                {"type": "photo", "media": "file-id"},
            ],
        }
    )

    assert fields["media"] == [
        {"type": "photo", "media": "attach://file0"},
        {"type": "photo", "media": "attach://file1"},
        {"type": "photo", "media": "file-id"},
    ]
    assert files == {"file0": first, "file1": second}


def test_attach_names_avoid_existing_fields() -> None:
    photo = InputFile("a.jpg", b"a")
    fields, files = _extract_files({"file0": "x", "media": [{"media": photo}]})

    assert fields["media"] == [{"media": "attach://file1"}]
    assert files == {"file1": photo}


def test_form_values() -> None:
    assert _form_value("text") == "text"
    assert _form_value(False) == "false"
    assert _form_value(12) == "12"
    assert _form_value(1.5) == "1.5"
    assert _form_value(["message"]) == '["message"]'


def test_input_file_validation() -> None:
    with pytest.raises(ValueError, match="name"):
        InputFile("", b"x")
    with pytest.raises(ValueError, match="empty"):
        InputFile("a.txt", b"")


@pytest.mark.anyio
async def test_empty_token_and_method_rejected() -> None:
    with pytest.raises(ValueError, match="empty"):
        TelegramClient("")

    async with httpx.AsyncClient() as ext:
        tg = TelegramClient(TOKEN, client=ext)
        with pytest.raises(ValueError, match="empty method"):
            await tg.invoke("")
        await tg.close()
        assert not ext.is_closed


@pytest.mark.anyio
async def test_close_owned_client() -> None:
    tg = TelegramClient(TOKEN)
    await tg.close()
    assert tg._client.is_closed
