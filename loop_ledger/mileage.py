"""Round-trip mileage estimation.

The record-creation workflow (see :class:`loop_ledger.cache.LedgerCache`)
depends only on the :class:`MileageEstimator` protocol: one call that returns
the out-and-back driving distance in miles, or ``None`` when no route is
known. Reporting never calls it; mileage is priced once at save time and
persisted on the loop.

:class:`DistanceMatrixEstimator` is the bundled provider client (a driving
distance-matrix HTTP endpoint). It performs no retries; transport and HTTP
failures surface as :class:`~loop_ledger.errors.MileageUnavailableError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

import httpx

from .errors import MileageUnavailableError
from .logging_setup import get_logger

_logger = get_logger("loop_ledger.mileage")

METERS_PER_MILE = 1609.34
DEFAULT_DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


@dataclass(frozen=True, slots=True)
class Location:
    """An opaque place identifier and/or a free-text address.

    The place id wins when both are present.
    """

    place_id: str = ""
    address: str = ""

    def __bool__(self) -> bool:
        return bool(self.place_id.strip() or self.address.strip())

    @property
    def query(self) -> str:
        if self.place_id.strip():
            return f"place_id:{self.place_id.strip()}"
        return self.address.strip()


class MileageEstimator(Protocol):
    async def estimate_round_trip_miles(
        self, origin: Location, destination: Location
    ) -> float | None:
        """Return round-trip driving miles, or ``None`` when there is no route."""
        ...


def _cents(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def mileage_for(miles: float, rate: float) -> tuple[float, float]:
    """Return ``(miles, cost)`` rounded to two decimals."""

    return _cents(miles), _cents(miles * rate)


class DistanceMatrixEstimator:
    """Driving-distance client for a distance-matrix style JSON endpoint.

    Parameters
    ----------
    api_key:
        Provider API key, sent as the ``key`` query parameter.
    base_url:
        Endpoint URL (defaults to :data:`DEFAULT_DISTANCE_MATRIX_URL`).
    client:
        Optional ``httpx.AsyncClient``. When omitted, a short-lived client is
        created per call.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not api_key:
            raise ValueError("DistanceMatrixEstimator requires an api_key")
        self._api_key = api_key
        self._base_url = base_url or DEFAULT_DISTANCE_MATRIX_URL
        self._client = client
        self._timeout = timeout

    async def _get(self, params: dict[str, str]) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.get(self._base_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._base_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise MileageUnavailableError(f"distance lookup failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise MileageUnavailableError("distance lookup returned a non-object payload")
        return payload

    async def estimate_round_trip_miles(
        self, origin: Location, destination: Location
    ) -> float | None:
        if not origin or not destination:
            return None

        payload = await self._get(
            {
                "origins": origin.query,
                "destinations": destination.query,
                "mode": "driving",
                "units": "imperial",
                "key": self._api_key,
            }
        )

        status = payload.get("status")
        if status != "OK":
            raise MileageUnavailableError(f"distance lookup rejected: status={status!r}")

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError):
            _logger.warning("mileage:malformed_response keys=%s", sorted(payload))
            return None
        if element.get("status") != "OK":
            _logger.info(
                "mileage:no_route origin=%s destination=%s status=%s",
                origin.query,
                destination.query,
                element.get("status"),
            )
            return None

        meters = (element.get("distance") or {}).get("value")
        if not isinstance(meters, (int, float)) or meters <= 0:
            return None
        return meters / METERS_PER_MILE * 2


__all__ = [
    "DEFAULT_DISTANCE_MATRIX_URL",
    "METERS_PER_MILE",
    "DistanceMatrixEstimator",
    "Location",
    "MileageEstimator",
    "mileage_for",
]
