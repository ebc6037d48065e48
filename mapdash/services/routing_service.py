"""AMap Web Service routing client.

One coroutine per travel mode, each returning a RouteServiceResult. Business
failures reported by AMap (bad key, no route, ...) come back as an error
result; transport failures raise ExternalServiceError.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from mapdash.config import get_settings
from mapdash.core.exceptions import ExternalServiceError
from mapdash.schemas.route import (
    MapPosition,
    RouteError,
    RoutePlan,
    RoutePoint,
    RouteResult,
    RouteServiceResult,
    RouteServiceStatus,
    RouteStep,
    RouteStrategy,
)

logger = logging.getLogger(__name__)

# AMap v3 driving `strategy` parameter
_DRIVING_STRATEGY = {
    RouteStrategy.FASTEST: "0",
    RouteStrategy.SHORTEST: "2",
    RouteStrategy.AVOID_HIGHWAY: "3",
    RouteStrategy.AVOID_CONGESTION: "4",
}


def parse_polyline(value: Optional[str]) -> List[MapPosition]:
    """Parse an AMap `"lng,lat;lng,lat"` string, skipping malformed pairs."""
    positions: List[MapPosition] = []
    if not value:
        return positions
    for pair in value.split(";"):
        parts = pair.split(",")
        if len(parts) != 2:
            continue
        try:
            lng, lat = float(parts[0]), float(parts[1])
        except ValueError:
            continue
        # also rejects NaN
        if not (-180 <= lng <= 180 and -90 <= lat <= 90):
            continue
        positions.append(MapPosition(lng=lng, lat=lat))
    return positions


def format_point(point: MapPosition) -> str:
    return f"{point.lng},{point.lat}"


def _to_int(value: Any) -> int:
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_text(value: Any) -> str:
    # AMap returns [] instead of "" for some empty string fields
    return value if isinstance(value, str) else ""


class RoutingService:
    """AMap Web Service API routing client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.AMAP_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.AMAP_SERVICE_KEY
        self.timeout = settings.ROUTING_TIMEOUT_S
        self.max_retries = max(settings.ROUTING_MAX_RETRIES, 1)
        self._client = client

    async def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        """GET an AMap endpoint and decode its JSON body.

        Raises:
            ExternalServiceError: timeout, repeated 429/5xx or undecodable body
        """
        url = f"{self.base_url}{path}"
        query = {"key": self.api_key, "output": "json", **params}

        for attempt in range(self.max_retries):
            try:
                if self._client is not None:
                    response = await self._client.get(url, params=query, timeout=self.timeout)
                else:
                    async with httpx.AsyncClient(timeout=self.timeout) as client:
                        response = await client.get(url, params=query)
            except httpx.TimeoutException:
                logger.error(f"AMap timeout on {path} (attempt {attempt + 1})")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                    continue
                raise ExternalServiceError("Routing service timeout")
            except httpx.HTTPError as e:
                logger.error(f"AMap request failed on {path}: {str(e)}")
                raise ExternalServiceError(f"Routing request failed: {str(e)}")

            if response.status_code == 200:
                try:
                    data = response.json()
                except ValueError as e:
                    raise ExternalServiceError(f"Malformed routing response: {str(e)}")
                if not isinstance(data, dict):
                    raise ExternalServiceError("Malformed routing response")
                return data

            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(f"AMap returned {response.status_code} on {path}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                    continue
                raise ExternalServiceError("Routing service unavailable")

            logger.error(f"AMap error {response.status_code}: {response.text}")
            raise ExternalServiceError(f"Routing service returned HTTP {response.status_code}")

        raise ExternalServiceError("Failed to fetch route after retries")

    @staticmethod
    def _backend_error(data: Dict[str, Any], fallback: str) -> RouteServiceResult:
        return RouteServiceResult(
            status=RouteServiceStatus.ERROR,
            error=RouteError(
                code=str(data.get("infocode") or data.get("errcode") or "UNKNOWN_ERROR"),
                message=_as_text(data.get("info")) or _as_text(data.get("errmsg")) or fallback,
                details=data,
            ),
        )

    # ------------------------------------------------------------------
    # Public planners
    # ------------------------------------------------------------------

    async def plan_driving(
        self,
        origin: RoutePoint,
        destination: RoutePoint,
        waypoints: Optional[Sequence[RoutePoint]] = None,
        strategy: Optional[RouteStrategy] = None,
    ) -> RouteServiceResult:
        params = {
            "origin": format_point(origin),
            "destination": format_point(destination),
            "strategy": _DRIVING_STRATEGY[strategy or RouteStrategy.FASTEST],
            "extensions": "all",
        }
        if waypoints:
            params["waypoints"] = ";".join(format_point(p) for p in waypoints)

        data = await self._get("/v3/direction/driving", params)
        if str(data.get("status")) == "1" and data.get("route"):
            result = self.parse_driving(data)
            logger.info(f"Fetched {len(result.plans)} driving plan(s)")
            return RouteServiceResult(status=RouteServiceStatus.SUCCESS, data=result)
        return self._backend_error(data, "Driving route planning failed")

    async def plan_walking(self, origin: RoutePoint, destination: RoutePoint) -> RouteServiceResult:
        params = {"origin": format_point(origin), "destination": format_point(destination)}
        data = await self._get("/v3/direction/walking", params)
        if str(data.get("status")) == "1" and data.get("route"):
            return RouteServiceResult(
                status=RouteServiceStatus.SUCCESS, data=self.parse_walking(data)
            )
        return self._backend_error(data, "Walking route planning failed")

    async def plan_transit(
        self, origin: RoutePoint, destination: RoutePoint, city: str = ""
    ) -> RouteServiceResult:
        params = {
            "origin": format_point(origin),
            "destination": format_point(destination),
            "city": city,
        }
        data = await self._get("/v3/direction/transit/integrated", params)
        if str(data.get("status")) == "1" and (data.get("route") or data.get("transits")):
            return RouteServiceResult(
                status=RouteServiceStatus.SUCCESS, data=self.parse_transit(data)
            )
        return self._backend_error(data, "Transit route planning failed")

    async def plan_riding(self, origin: RoutePoint, destination: RoutePoint) -> RouteServiceResult:
        params = {"origin": format_point(origin), "destination": format_point(destination)}
        data = await self._get("/v4/riding/roadmap", params)
        if data.get("data") or data.get("path"):
            return RouteServiceResult(
                status=RouteServiceStatus.SUCCESS, data=self.parse_riding(data)
            )
        return self._backend_error(data, "Riding route planning failed")

    async def plan_electric(
        self, origin: RoutePoint, destination: RoutePoint
    ) -> RouteServiceResult:
        # AMap has no e-bike profile; riding is the closest match
        return await self.plan_riding(origin, destination)

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_path(path: Dict[str, Any], with_tolls: bool = False) -> RoutePlan:
        """Normalize one AMap `path`; step polylines are concatenated into the plan's."""
        polyline: List[MapPosition] = []
        steps: List[RouteStep] = []

        for index, step in enumerate(path.get("steps") or []):
            step_polyline = parse_polyline(_as_text(step.get("polyline")))
            polyline.extend(step_polyline)
            steps.append(
                RouteStep(
                    instruction=_as_text(step.get("instruction"))
                    or _as_text(step.get("ori_instruction"))
                    or f"Step {index + 1}",
                    distance=_to_int(step.get("distance")),
                    duration=_to_int(step.get("duration")),
                    polyline=step_polyline,
                )
            )

        if not polyline:
            polyline = parse_polyline(_as_text(path.get("polyline")))

        return RoutePlan(
            polyline=polyline,
            distance=_to_int(path.get("distance")),
            duration=_to_int(path.get("duration")),
            tolls=_to_float(path.get("tolls")) if with_tolls else None,
            steps=steps,
        )

    def parse_driving(self, data: Dict[str, Any]) -> RouteResult:
        paths = (data.get("route") or {}).get("paths") or []
        plans = [self.parse_path(path, with_tolls=True) for path in paths]
        first = plans[0] if plans else RoutePlan(tolls=0.0)
        return RouteResult(**first.model_dump(), plans=plans)

    def parse_walking(self, data: Dict[str, Any]) -> RouteResult:
        paths = (data.get("route") or {}).get("paths") or []
        if not paths:
            return RouteResult()
        return RouteResult(**self.parse_path(paths[0]).model_dump())

    @staticmethod
    def parse_transit(data: Dict[str, Any]) -> RouteResult:
        """Concatenate walk, bus and rail segment paths of the first transit."""
        route = data.get("route") or {}
        transits = route.get("transits") or data.get("transits") or []
        polyline: List[MapPosition] = []

        if transits:
            for segment in transits[0].get("segments") or []:
                walking = segment.get("walking") or segment.get("walk") or {}
                for step in walking.get("steps") or []:
                    polyline.extend(parse_polyline(_as_text(step.get("polyline"))))
                polyline.extend(parse_polyline(_as_text(walking.get("path"))))

                bus = segment.get("bus") or {}
                for line in bus.get("buslines") or []:
                    polyline.extend(parse_polyline(_as_text(line.get("polyline"))))
                polyline.extend(parse_polyline(_as_text((bus.get("line") or {}).get("path"))))

                rail = segment.get("railway") or segment.get("rail") or {}
                polyline.extend(parse_polyline(_as_text(rail.get("path"))))

        first = transits[0] if transits else {}
        return RouteResult(
            polyline=polyline,
            distance=_to_int(first.get("distance") or route.get("distance")),
            duration=_to_int(first.get("duration") or route.get("duration")),
        )

    @staticmethod
    def parse_riding(data: Dict[str, Any]) -> RouteResult:
        payload = data.get("data") or {}
        paths = payload.get("paths") if isinstance(payload, dict) else None

        if paths:
            path = paths[0]
            polyline: List[MapPosition] = []
            steps: List[RouteStep] = []
            for step in path.get("steps") or []:
                step_polyline = parse_polyline(_as_text(step.get("polyline")))
                polyline.extend(step_polyline)
                steps.append(
                    RouteStep(
                        instruction=_as_text(step.get("instruction")),
                        distance=_to_int(step.get("distance")),
                        duration=_to_int(step.get("duration")),
                        polyline=step_polyline,
                    )
                )
            if not polyline:
                polyline = parse_polyline(_as_text(path.get("path")))
            return RouteResult(
                polyline=polyline,
                distance=_to_int(path.get("distance")),
                duration=_to_int(path.get("duration")),
                steps=steps,
            )

        return RouteResult(polyline=parse_polyline(_as_text(data.get("path"))))
