"""Route planning session.

A session drives route requests through idle -> loading -> success | error
and publishes every state change to its subscribers. Overlapping plan()
calls are allowed; each call is tagged with a sequence number and a response
that arrives after a newer call was issued is handed back to its own caller
but never overwrites the session state.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Protocol, Sequence

from mapdash.core.exceptions import MapDashException, ValidationError
from mapdash.schemas.route import (
    MapPosition,
    RouteError,
    RouteMode,
    RoutePoint,
    RouteRequestParams,
    RouteResult,
    RouteServiceResult,
    RouteServiceStatus,
    RouteStrategy,
)
from mapdash.services.notifier import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

MODE_LABELS = {
    RouteMode.DRIVING: "Driving",
    RouteMode.WALKING: "Walking",
    RouteMode.TRANSIT: "Transit",
    RouteMode.RIDING: "Riding",
    RouteMode.ELECTRIC: "E-bike",
}

StrategyTab = Literal["recommend", "avoidCongestion"]
STRATEGY_TABS = ("recommend", "avoidCongestion")


class RoutingBackend(Protocol):
    """One planner per travel mode; only driving takes waypoints and strategy."""

    async def plan_driving(
        self,
        origin: RoutePoint,
        destination: RoutePoint,
        waypoints: Optional[Sequence[RoutePoint]] = None,
        strategy: Optional[RouteStrategy] = None,
    ) -> RouteServiceResult: ...

    async def plan_walking(self, origin: RoutePoint, destination: RoutePoint) -> RouteServiceResult: ...

    async def plan_transit(self, origin: RoutePoint, destination: RoutePoint) -> RouteServiceResult: ...

    async def plan_riding(self, origin: RoutePoint, destination: RoutePoint) -> RouteServiceResult: ...

    async def plan_electric(self, origin: RoutePoint, destination: RoutePoint) -> RouteServiceResult: ...


@dataclass(frozen=True)
class SessionSnapshot:
    """Published view of the session after each change."""

    status: RouteServiceStatus
    params: Optional[RouteRequestParams] = None
    result: Optional[RouteResult] = None
    error: Optional[RouteError] = None
    plan_index: int = 0
    polyline: List[MapPosition] = field(default_factory=list)

    @property
    def mode(self) -> Optional[RouteMode]:
        return self.params.mode if self.params else None


Listener = Callable[[SessionSnapshot], None]


class RoutePlanningSession:
    """Tracks the latest route request and its outcome."""

    def __init__(self, backend: RoutingBackend, notifier: Optional[Notifier] = None):
        self.backend = backend
        self.notifier = notifier or LoggingNotifier()

        self.status = RouteServiceStatus.IDLE
        self.params: Optional[RouteRequestParams] = None
        self.response: Optional[RouteServiceResult] = None
        self.error: Optional[RouteError] = None

        self.strategy_tab: StrategyTab = "recommend"
        self.plan_index = 0
        self.expanded_plan_index: Optional[int] = None

        self._seq = 0
        self._listeners: List[Listener] = []

    @property
    def result(self) -> Optional[RouteResult]:
        return self.response.data if self.response else None

    @property
    def is_loading(self) -> bool:
        return self.status == RouteServiceStatus.LOADING

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self.status,
            params=self.params,
            result=self.result,
            error=self.error,
            plan_index=self.plan_index,
            polyline=self.current_polyline(),
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener failed")

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def _dispatch(self, params: RouteRequestParams) -> RouteServiceResult:
        if params.mode == RouteMode.DRIVING:
            return await self.backend.plan_driving(
                params.origin, params.destination, params.waypoints, params.strategy
            )
        if params.mode == RouteMode.WALKING:
            return await self.backend.plan_walking(params.origin, params.destination)
        if params.mode == RouteMode.TRANSIT:
            return await self.backend.plan_transit(params.origin, params.destination)
        if params.mode == RouteMode.RIDING:
            return await self.backend.plan_riding(params.origin, params.destination)
        if params.mode == RouteMode.ELECTRIC:
            return await self.backend.plan_electric(params.origin, params.destination)
        raise ValidationError(f"Unsupported travel mode: {params.mode}")

    def _settle(
        self,
        status: RouteServiceStatus,
        response: Optional[RouteServiceResult],
        error: Optional[RouteError],
    ) -> None:
        self.status = status
        self.response = response
        self.error = error
        self.plan_index = 0
        self.expanded_plan_index = None
        self._publish()

    async def plan(self, params: RouteRequestParams) -> Optional[RouteServiceResult]:
        """Plan a route for `params`.

        Returns the backend result (success or backend-reported error), or
        None when the call itself raised.
        """
        self._seq += 1
        seq = self._seq

        self.status = RouteServiceStatus.LOADING
        self.params = params
        self.response = None
        self.error = None
        self._publish()

        try:
            response = await self._dispatch(params)
        except Exception as e:
            text = e.message if isinstance(e, MapDashException) else str(e)
            text = text or "Unknown error"
            logger.error(f"Route planning raised for mode={params.mode.value}: {text}")
            if seq == self._seq:
                self._settle(
                    RouteServiceStatus.ERROR,
                    None,
                    RouteError(code=type(e).__name__, message=text),
                )
                self.notifier.error(f"Route planning failed: {text}")
            return None
        else:
            if seq != self._seq:
                logger.info(f"Ignoring stale route response #{seq} (latest is #{self._seq})")
                return response

            if response.status == RouteServiceStatus.SUCCESS:
                self._settle(RouteServiceStatus.SUCCESS, response, None)
                self.notifier.success(f"{MODE_LABELS[params.mode]} route planned")
            else:
                logger.warning(
                    f"Route planning returned status={response.status.value}",
                    extra={"extra_fields": {"mode": params.mode.value, "error": response.error}},
                )
                error = response.error or RouteError(
                    code="UNKNOWN_ERROR", message="Route planning failed"
                )
                self._settle(RouteServiceStatus.ERROR, response, error)
            return response
        finally:
            # Only a cancelled call reaches here still loading
            if seq == self._seq and self.status == RouteServiceStatus.LOADING:
                self._settle(
                    RouteServiceStatus.ERROR,
                    None,
                    RouteError(code="CANCELLED", message="Route planning was interrupted"),
                )

    def reset(self) -> None:
        """Forget the current request. A pending call settling later is ignored."""
        self._seq += 1
        self.params = None
        self.strategy_tab = "recommend"
        self._settle(RouteServiceStatus.IDLE, None, None)

    # ------------------------------------------------------------------
    # Plan selection
    # ------------------------------------------------------------------

    def set_strategy_tab(self, tab: StrategyTab) -> None:
        if tab not in STRATEGY_TABS:
            raise ValidationError(f"Unknown strategy tab: {tab}")
        self.strategy_tab = tab

    def select_plan(self, index: int) -> None:
        """Select one of the alternatives of the held result."""
        result = self.result
        if result is None or not 0 <= index < result.plan_count:
            raise ValidationError(f"Plan index {index} out of range")
        self.plan_index = index
        self._publish()

    def expand_plan(self, index: Optional[int]) -> None:
        """Show step details for plan `index`, or collapse with None."""
        if index is not None:
            result = self.result
            if result is None or not 0 <= index < result.plan_count:
                raise ValidationError(f"Plan index {index} out of range")
        self.expanded_plan_index = index

    def current_polyline(self) -> List[MapPosition]:
        result = self.result
        if result is None:
            return []
        try:
            return list(result.plan_at(self.plan_index).polyline)
        except IndexError:
            return list(result.polyline)
