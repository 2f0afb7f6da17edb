import asyncio

import pytest
from starlette.datastructures import Headers

from fngate.gateway.core.body import BoundedReceive, check_declared_length
from fngate.gateway.core.exceptions import BodyReadTimeout, MalformedRequest


@pytest.mark.asyncio
async def test_body_at_limit_is_accepted(make_app, client_for):
    app = make_app(FUNCTION_TARGET="echo", MAX_BODY_SIZE=16)

    async with client_for(app) as client:
        response = await client.post("/upload", content=b"x" * 16)

    assert response.status_code == 200
    assert response.json()["body"] == "x" * 16


@pytest.mark.asyncio
async def test_declared_length_over_limit_is_rejected_before_invocation(make_app, client_for):
    app = make_app(FUNCTION_TARGET="echo", MAX_BODY_SIZE=16)
    gateway = app.state.gateway

    async with client_for(app) as client:
        response = await client.post("/upload", content=b"x" * 17)

    assert response.status_code == 400
    assert "exceeds 16 bytes" in response.json()["message"]
    assert gateway.stats.get("invocations") == 0
    assert gateway.stats.get("rejected") == 1


@pytest.mark.asyncio
async def test_streamed_body_over_limit_is_rejected(make_app, client_for):
    app = make_app(FUNCTION_TARGET="count_bytes", MAX_BODY_SIZE=10)

    async def chunks():
        for _ in range(4):
            yield b"abcd"

    async with client_for(app) as client:
        response = await client.post("/", content=chunks())

    assert response.status_code == 400
    assert app.state.gateway.stats.get("rejected") == 1


@pytest.mark.asyncio
async def test_unread_body_does_not_block_response(make_app, client_for):
    app = make_app(FUNCTION_TARGET="never_reads_body")

    async with client_for(app) as client:
        response = await client.post("/", content=b"y" * 100_000)

    assert response.status_code == 200
    assert response.text == "ignored"


@pytest.mark.asyncio
async def test_invalid_content_length_is_rejected(make_app, client_for):
    app = make_app(FUNCTION_TARGET="echo")

    async with client_for(app) as client:
        response = await client.post(
            "/", content=b"abc", headers={"Content-Length": "three"}
        )

    assert response.status_code == 400
    assert app.state.gateway.stats.get("invocations") == 0


def test_check_declared_length():
    check_declared_length(Headers({}), 10)
    check_declared_length(Headers({"content-length": "10"}), 10)
    check_declared_length(Headers({"content-length": "10000"}), None)

    with pytest.raises(MalformedRequest):
        check_declared_length(Headers({"content-length": "11"}), 10)
    with pytest.raises(MalformedRequest):
        check_declared_length(Headers({"content-length": "-1"}), None)


def _receive_from(messages):
    queue = list(messages)

    async def receive():
        return queue.pop(0)

    return receive


@pytest.mark.asyncio
async def test_bounded_receive_counts_bytes_until_complete():
    receive = BoundedReceive(
        _receive_from(
            [
                {"type": "http.request", "body": b"abc", "more_body": True},
                {"type": "http.request", "body": b"de", "more_body": False},
            ]
        ),
        max_body_size=5,
        read_timeout=1.0,
    )

    await receive()
    assert not receive.complete
    await receive()

    assert receive.bytes_received == 5
    assert receive.complete


@pytest.mark.asyncio
async def test_bounded_receive_rejects_oversized_chunks():
    receive = BoundedReceive(
        _receive_from([{"type": "http.request", "body": b"abcdef", "more_body": True}]),
        max_body_size=5,
        read_timeout=1.0,
    )

    with pytest.raises(MalformedRequest):
        await receive()


@pytest.mark.asyncio
async def test_bounded_receive_times_out_on_stalled_client():
    async def stalled():
        await asyncio.sleep(5)

    receive = BoundedReceive(stalled, max_body_size=None, read_timeout=0.1)

    with pytest.raises(BodyReadTimeout) as exc_info:
        await receive()
    assert exc_info.value.status_code == 408


@pytest.mark.asyncio
async def test_closed_receive_reports_disconnect():
    receive = BoundedReceive(_receive_from([]), max_body_size=None, read_timeout=1.0)
    receive.close()

    assert await receive() == {"type": "http.disconnect"}
    assert receive.closed


@pytest.mark.asyncio
async def test_plain_function_reads_body_without_awaiting(make_app, client_for):
    app = make_app(FUNCTION_TARGET="sync_echo")

    async with client_for(app) as client:
        response = await client.post("/orders", json={"id": 5})

    assert response.status_code == 200
    assert response.json() == {"payload": {"id": 5}, "method": "POST", "path": "/orders"}


@pytest.mark.asyncio
async def test_plain_function_iterates_body_chunks(make_app, client_for):
    app = make_app(FUNCTION_TARGET="sync_count_bytes", MAX_BODY_SIZE=64)

    async def chunks():
        for _ in range(4):
            yield b"abcd"

    async with client_for(app) as client:
        response = await client.post("/", content=chunks())

    assert response.status_code == 200
    assert response.json() == {"bytes": 16}


@pytest.mark.asyncio
async def test_plain_function_body_over_limit_is_rejected(make_app, client_for):
    app = make_app(FUNCTION_TARGET="sync_count_bytes", MAX_BODY_SIZE=10)

    async def chunks():
        for _ in range(4):
            yield b"abcd"

    async with client_for(app) as client:
        response = await client.post("/", content=chunks())

    assert response.status_code == 400
    assert app.state.gateway.stats.get("rejected") == 1
