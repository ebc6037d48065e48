"""Route planning schemas."""

from enum import Enum, IntEnum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MapPosition(BaseModel):
    """Geographic position on the map (GCJ-02 lng/lat as used by the map SDK)."""

    model_config = ConfigDict(frozen=True)

    lng: float = Field(..., ge=-180, le=180)
    lat: float = Field(..., ge=-90, le=90)


class RoutePoint(MapPosition):
    """Origin, destination or waypoint of a route request."""

    name: Optional[str] = None


class RouteMode(str, Enum):
    DRIVING = "driving"
    WALKING = "walking"
    TRANSIT = "transit"
    RIDING = "riding"
    ELECTRIC = "electric"


class RouteStrategy(IntEnum):
    """Driving route preference."""

    FASTEST = 0
    SHORTEST = 1
    AVOID_HIGHWAY = 2
    AVOID_CONGESTION = 3


class RouteServiceStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class RouteRequestParams(BaseModel):
    """A single route planning request.

    Only driving honors waypoints and strategy; the other modes ignore them.
    """

    mode: RouteMode = RouteMode.DRIVING
    origin: RoutePoint
    destination: RoutePoint
    waypoints: List[RoutePoint] = Field(default_factory=list)
    strategy: Optional[RouteStrategy] = None


class RouteStep(BaseModel):
    """One maneuver of a route; its polyline is a sub-segment of the plan polyline."""

    instruction: str = ""
    distance: int = Field(default=0, ge=0)  # meters
    duration: int = Field(default=0, ge=0)  # seconds
    polyline: List[MapPosition] = Field(default_factory=list)


class RoutePlan(BaseModel):
    """One route alternative returned by the backend."""

    polyline: List[MapPosition] = Field(default_factory=list)
    distance: int = Field(default=0, ge=0)
    duration: int = Field(default=0, ge=0)
    tolls: Optional[float] = None  # currency amount, driving only
    steps: List[RouteStep] = Field(default_factory=list)


class RouteResult(RoutePlan):
    """Normalized routing result.

    Top-level fields mirror the first plan; `plans` holds every alternative
    when the backend returned more than one.
    """

    plans: List[RoutePlan] = Field(default_factory=list)

    @property
    def plan_count(self) -> int:
        return len(self.plans) if self.plans else 1

    def plan_at(self, index: int) -> RoutePlan:
        if self.plans:
            return self.plans[index]
        if index != 0:
            raise IndexError(index)
        return self


class RouteError(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class RouteServiceResult(BaseModel):
    """What a routing backend call returns."""

    status: RouteServiceStatus
    data: Optional[RouteResult] = None
    error: Optional[RouteError] = None


class NotificationOut(BaseModel):
    level: str
    text: str


class RoutePlanResponse(BaseModel):
    """Outcome of one planning request as returned by the API."""

    status: RouteServiceStatus
    result: Optional[RouteResult] = None
    error: Optional[RouteError] = None
    messages: List[NotificationOut] = Field(default_factory=list)
