from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from loop_ledger.errors import MileageUnavailableError
from loop_ledger.mileage import (
    DistanceMatrixEstimator,
    Location,
    mileage_for,
)

HOME = Location(address="1 Main St, Springfield")
COURSE = Location(place_id="ChIJcourse", address="Pine Valley GC")


# ---- Helpers -----------------------------------------------------------------


def _matrix(meters: int, *, status: str = "OK", element_status: str = "OK") -> dict[str, Any]:
    return {
        "status": status,
        "rows": [{"elements": [{"status": element_status, "distance": {"value": meters}}]}],
    }


def _estimate(handler, origin: Location = HOME, destination: Location = COURSE):
    """Run one estimate against a mocked endpoint; returns (miles, requests)."""

    requests: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    async def _run() -> float | None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(_record)) as client:
            estimator = DistanceMatrixEstimator(
                api_key="test-key", base_url="https://maps.test/matrix", client=client
            )
            return await estimator.estimate_round_trip_miles(origin, destination)

    return asyncio.run(_run()), requests


# ---- Tests -------------------------------------------------------------------


def test_round_trip_miles_doubles_one_way_distance():
    miles, requests = _estimate(lambda req: httpx.Response(200, json=_matrix(16093)))

    assert miles == pytest.approx(16093 / 1609.34 * 2)
    params = requests[0].url.params
    assert params["origins"] == "1 Main St, Springfield"
    assert params["destinations"] == "place_id:ChIJcourse"
    assert params["mode"] == "driving"
    assert params["key"] == "test-key"


def test_no_route_returns_none():
    miles, _ = _estimate(
        lambda req: httpx.Response(200, json=_matrix(0, element_status="ZERO_RESULTS"))
    )
    assert miles is None


def test_malformed_payload_returns_none():
    miles, _ = _estimate(lambda req: httpx.Response(200, json={"status": "OK", "rows": []}))
    assert miles is None


def test_missing_location_skips_the_request():
    miles, requests = _estimate(
        lambda req: httpx.Response(200, json=_matrix(1000)), origin=Location()
    )
    assert miles is None
    assert requests == []


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"status": "REQUEST_DENIED"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=["unexpected"]),
    ],
)
def test_provider_failures_raise_mileage_unavailable(response):
    with pytest.raises(MileageUnavailableError):
        _estimate(lambda req: response)


def test_transport_error_raises_mileage_unavailable():
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(MileageUnavailableError):
        _estimate(_boom)


def test_api_key_is_required():
    with pytest.raises(ValueError):
        DistanceMatrixEstimator(api_key="")


def test_mileage_for_rounds_to_cents():
    assert mileage_for(20.004, 0.67) == (20.0, 13.4)
    assert mileage_for(12.345, 0.655) == (12.35, 8.09)


def test_location_query_prefers_place_id():
    assert COURSE.query == "place_id:ChIJcourse"
    assert HOME.query == "1 Main St, Springfield"
    assert not Location(address="   ")
