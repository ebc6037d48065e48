"""Command line access to route planning and search history."""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import uvicorn

from mapdash.core.logging_config import setup_logging
from mapdash.dependencies import get_place_history_store, get_route_history_store
from mapdash.schemas.history import RouteHistoryItem
from mapdash.schemas.route import (
    RouteMode,
    RoutePoint,
    RouteRequestParams,
    RouteServiceStatus,
    RouteStrategy,
)
from mapdash.services.planning_session import RoutePlanningSession
from mapdash.services.routing_service import RoutingService

logger = logging.getLogger(__name__)


def parse_point(value: str) -> RoutePoint:
    """Parse `lng,lat` or `lng,lat,name`."""
    parts = [p.strip() for p in value.split(",", 2)]
    if len(parts) < 2:
        raise argparse.ArgumentTypeError(f"Expected lng,lat[,name], got {value!r}")
    try:
        return RoutePoint(
            lng=float(parts[0]), lat=float(parts[1]), name=parts[2] if len(parts) > 2 else None
        )
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


async def plan_route(args: argparse.Namespace) -> int:
    params = RouteRequestParams(
        mode=RouteMode(args.mode),
        origin=args.origin,
        destination=args.destination,
        waypoints=args.waypoint or [],
        strategy=RouteStrategy[args.strategy] if args.strategy else None,
    )
    session = RoutePlanningSession(RoutingService())
    await session.plan(params)

    if session.result is not None:
        print(session.result.model_dump_json(indent=2))
    if session.error is not None:
        print(f"error: {session.error.message}", file=sys.stderr)

    if args.remember and session.status == RouteServiceStatus.SUCCESS:
        get_route_history_store().add(
            RouteHistoryItem(
                origin_text=args.origin.name or f"{args.origin.lng},{args.origin.lat}",
                dest_text=args.destination.name
                or f"{args.destination.lng},{args.destination.lat}",
                origin_location=args.origin,
                dest_location=args.destination,
                mode=params.mode,
            )
        )

    return 0 if session.error is None else 1


def show_history(args: argparse.Namespace) -> int:
    store = get_place_history_store() if args.kind == "places" else get_route_history_store()
    print(json.dumps([item.model_dump(mode="json", by_alias=True) for item in store.items], indent=2))
    return 0


def remove_history(args: argparse.Namespace) -> int:
    store = get_place_history_store() if args.kind == "places" else get_route_history_store()
    if not store.remove(args.id):
        logger.error(f"No {args.kind} history entry with id {args.id}")
        return 1
    return 0


def clear_history(args: argparse.Namespace) -> int:
    store = get_place_history_store() if args.kind == "places" else get_route_history_store()
    store.clear()
    return 0


def serve(args: argparse.Namespace) -> int:
    uvicorn.run("mapdash.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MapDash route planning")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Plan a route")
    plan_parser.add_argument("--mode", choices=[m.value for m in RouteMode], default="driving")
    plan_parser.add_argument("--origin", type=parse_point, required=True, help="lng,lat[,name]")
    plan_parser.add_argument(
        "--destination", type=parse_point, required=True, help="lng,lat[,name]"
    )
    plan_parser.add_argument(
        "--waypoint", type=parse_point, action="append", help="lng,lat (driving only)"
    )
    plan_parser.add_argument("--strategy", choices=[s.name for s in RouteStrategy])
    plan_parser.add_argument(
        "--remember", action="store_true", help="Add the query to route history on success"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    for name, help_text in (
        ("history", "Show search history"),
        ("remove", "Remove a history entry"),
        ("clear", "Clear search history"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("kind", choices=["routes", "places"])
        if name == "remove":
            sub.add_argument("id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "plan":
        return asyncio.run(plan_route(args))
    if args.command == "serve":
        return serve(args)
    if args.command == "history":
        return show_history(args)
    if args.command == "remove":
        return remove_history(args)
    return clear_history(args)


if __name__ == "__main__":
    sys.exit(main())
