import pytest

from fngate.gateway.middleware import EXECUTION_ID_HEADER

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
CALLER_SPAN = "00f067aa0ba902b7"


@pytest.mark.asyncio
async def test_traceparent_continues_caller_trace(make_app, client_for):
    app = make_app()
    header = f"00-{TRACE_ID}-{CALLER_SPAN}-01"

    async with client_for(app) as client:
        response = await client.get("/", headers={"traceparent": header})

    version, trace_id, parent_id, flags = response.headers["traceparent"].split("-")
    assert (version, trace_id, flags) == ("00", TRACE_ID, "01")
    # The gateway answers with its own span, not the caller's.
    assert parent_id != CALLER_SPAN
    assert len(parent_id) == 16


@pytest.mark.asyncio
async def test_unsampled_flag_is_kept(make_app, client_for):
    app = make_app()

    async with client_for(app) as client:
        response = await client.get(
            "/", headers={"traceparent": f"00-{TRACE_ID}-{CALLER_SPAN}-00"}
        )

    assert response.headers["traceparent"].endswith("-00")


@pytest.mark.asyncio
async def test_cloud_trace_header_is_normalized(make_app, client_for):
    app = make_app()

    async with client_for(app) as client:
        response = await client.get(
            "/", headers={"X-Cloud-Trace-Context": f"{TRACE_ID}/1;o=1"}
        )

    _, trace_id, parent_id, flags = response.headers["traceparent"].split("-")
    assert trace_id == TRACE_ID
    assert flags == "01"
    assert parent_id != "0000000000000001"


@pytest.mark.asyncio
async def test_malformed_trace_header_starts_new_trace(make_app, client_for):
    app = make_app()

    async with client_for(app) as client:
        response = await client.get("/", headers={"traceparent": "garbage"})

    assert response.status_code == 200
    version, trace_id, parent_id, flags = response.headers["traceparent"].split("-")
    assert version == "00"
    assert len(trace_id) == 32
    assert len(parent_id) == 16


@pytest.mark.asyncio
async def test_execution_id_is_unique_per_request(make_app, client_for):
    app = make_app()

    async with client_for(app) as client:
        first = await client.get("/")
        second = await client.get("/")

    assert first.headers[EXECUTION_ID_HEADER] != second.headers[EXECUTION_ID_HEADER]


@pytest.mark.asyncio
async def test_static_routes_carry_trace_headers(make_app, client_for):
    app = make_app()

    async with client_for(app) as client:
        response = await client.get("/robots.txt")

    assert response.status_code == 404
    assert "traceparent" in response.headers
    assert EXECUTION_ID_HEADER.lower() in response.headers
