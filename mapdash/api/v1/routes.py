"""Route planning API endpoints."""

import logging

from fastapi import APIRouter, Depends

from mapdash.dependencies import get_routing_service
from mapdash.schemas.route import NotificationOut, RoutePlanResponse, RouteRequestParams
from mapdash.services.notifier import CollectingNotifier
from mapdash.services.planning_session import RoutePlanningSession
from mapdash.services.routing_service import RoutingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/plan",
    response_model=RoutePlanResponse,
    summary="Plan a route",
    description="""
    Plan a route between two points with the selected travel mode.

    **Travel modes:** `driving`, `walking`, `transit`, `riding`, `electric`.
    Waypoints and strategy are only used for `driving`.

    The response always carries a settled status (`success` or `error`). A
    backend-reported failure keeps whatever result the backend sent; a
    transport failure returns no result and an error message.
    """,
)
async def plan_route(
    params: RouteRequestParams,
    routing_service: RoutingService = Depends(get_routing_service),
):
    notifier = CollectingNotifier()
    session = RoutePlanningSession(routing_service, notifier)
    await session.plan(params)

    return RoutePlanResponse(
        status=session.status,
        result=session.result,
        error=session.error,
        messages=[NotificationOut(level=m.level, text=m.text) for m in notifier.messages],
    )
