import asyncio
import time

import pytest


@pytest.mark.asyncio
async def test_concurrent_requests_get_their_own_context(make_app, client_for):
    app = make_app(FUNCTION_TARGET="whoami")

    async with client_for(app) as client:
        responses = await asyncio.gather(
            *(
                client.get("/", params={"input": str(i), "delay": "0.05"})
                for i in range(20)
            )
        )

    payloads = [r.json() for r in responses]
    assert [p["input"] for p in payloads] == [str(i) for i in range(20)]
    for payload in payloads:
        assert payload["ambient_request_id"] == payload["request_id"]
    assert len({p["request_id"] for p in payloads}) == 20


@pytest.mark.asyncio
async def test_concurrent_requests_do_not_serialize(make_app, client_for):
    app = make_app(FUNCTION_TARGET="whoami")

    started = time.perf_counter()
    async with client_for(app) as client:
        responses = await asyncio.gather(
            *(client.get("/", params={"delay": "0.5"}) for _ in range(10))
        )
    elapsed = time.perf_counter() - started

    assert all(r.status_code == 200 for r in responses)
    assert elapsed < 3.0


@pytest.mark.asyncio
async def test_request_id_matches_execution_id_header(make_app, client_for):
    app = make_app(FUNCTION_TARGET="whoami")

    async with client_for(app) as client:
        response = await client.get("/")

    assert response.json()["request_id"] == response.headers["function-execution-id"]


@pytest.mark.asyncio
async def test_identical_requests_get_identical_responses(make_app, client_for):
    app = make_app(FUNCTION_TARGET="compute")

    async with client_for(app) as client:
        first = await client.post("/", json={"id": 7})
        second = await client.post("/", json={"id": 7})

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json() == {"id": 7, "square": 49}
    assert app.state.gateway.stats.get("invocations") == 2


@pytest.mark.asyncio
async def test_responses_carry_no_cache_headers(make_app, client_for):
    app = make_app(FUNCTION_TARGET="compute")

    async with client_for(app) as client:
        response = await client.post("/", json={"id": 3})

    assert "cache-control" not in response.headers
    assert "etag" not in response.headers


@pytest.mark.asyncio
async def test_throttle_caps_concurrent_invocations(make_app, client_for):
    app = make_app(FUNCTION_TARGET="whoami", MAX_CONCURRENT_REQUESTS=2)

    started = time.perf_counter()
    async with client_for(app) as client:
        responses = await asyncio.gather(
            *(client.get("/", params={"delay": "0.3"}) for _ in range(4))
        )
    elapsed = time.perf_counter() - started

    assert all(r.status_code == 200 for r in responses)
    # Two waves of two.
    assert elapsed >= 0.55


@pytest.mark.asyncio
async def test_throttle_queue_timeout_answers_429(make_app, client_for):
    app = make_app(
        FUNCTION_TARGET="whoami", MAX_CONCURRENT_REQUESTS=1, QUEUE_TIMEOUT_SECONDS=0.1
    )

    async with client_for(app) as client:
        responses = await asyncio.gather(
            client.get("/", params={"delay": "0.5"}),
            client.get("/", params={"delay": "0.5"}),
        )

    assert sorted(r.status_code for r in responses) == [200, 429]
