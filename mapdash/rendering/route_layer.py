"""Route overlay renderer.

Keeps at most one path overlay on the map engine in line with the latest
(polyline, mode, visible) it was given. Draw failures are logged at debug
level and otherwise ignored so a broken route visualization never takes
the rest of the page down.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

from mapdash.config import ROUTE_MODE_COLORS, get_settings
from mapdash.rendering.engine import EngineHandle, MapEngine, OverlayStyle
from mapdash.schemas.route import MapPosition, RouteMode, RouteServiceStatus
from mapdash.services.planning_session import RoutePlanningSession, SessionSnapshot

logger = logging.getLogger(__name__)

Props = Tuple[Tuple[MapPosition, ...], Optional[str], bool]


def _mode_value(mode: RouteMode | str | None) -> Optional[str]:
    return mode.value if isinstance(mode, RouteMode) else mode


def style_for_mode(mode: RouteMode | str | None) -> OverlayStyle:
    """Driving is blue; every other mode uses the walking green."""
    color = ROUTE_MODE_COLORS.get(_mode_value(mode) or "", ROUTE_MODE_COLORS["walking"])
    return OverlayStyle(stroke_color=color)


class RouteOverlayRenderer:
    """Draws one route polyline on the shared map engine."""

    def __init__(
        self,
        engine: EngineHandle,
        retry_delay: Optional[float] = None,
        fit_padding: Optional[int] = None,
    ):
        settings = get_settings()
        self.engine = engine
        self.retry_delay = retry_delay if retry_delay is not None else settings.OVERLAY_RETRY_DELAY_S
        padding = fit_padding if fit_padding is not None else settings.OVERLAY_FIT_PADDING
        self.fit_padding: List[int] = [padding] * 4

        self._overlay: Any = None
        self._props: Optional[Props] = None
        self._retry: Optional[asyncio.TimerHandle] = None
        self._stop_watching = engine.on_attach(self._on_engine_attached)

    @property
    def overlay(self) -> Any:
        """Handle of the overlay currently on the map, if any."""
        return self._overlay

    @property
    def retry_pending(self) -> bool:
        return self._retry is not None

    def update(
        self,
        polyline: Sequence[MapPosition],
        mode: RouteMode | str | None,
        visible: bool,
    ) -> None:
        """Bring the map in line with new props. Unchanged props are a no-op."""
        props: Props = (tuple(polyline or ()), _mode_value(mode), bool(visible))
        if props == self._props:
            return

        self.teardown()
        self._props = props
        self._apply(allow_retry=True)

    def refresh(self) -> None:
        """Re-run the current props, e.g. right after the engine got attached."""
        self.teardown()
        self._apply(allow_retry=True)

    def dispose(self) -> None:
        """Tear down and stop listening for engine attachment."""
        self.teardown()
        self._props = None
        self._stop_watching()

    def teardown(self) -> None:
        """Cancel any pending retry and take the overlay off the map."""
        self._cancel_retry()
        if self._overlay is not None:
            # The engine may have been swapped since the draw; use the current one
            self._remove_overlay(self.engine.get())

    # ------------------------------------------------------------------

    def _apply(self, allow_retry: bool) -> None:
        if self._props is None:
            return
        polyline, mode, visible = self._props
        engine = self.engine.get() if self.engine.is_ready() else None

        if engine is None and visible and polyline:
            if allow_retry:
                self._schedule_retry()
            else:
                logger.debug("Map engine still not ready after retry, waiting for next update")
            return

        if engine is None or not visible or not polyline:
            if self._overlay is not None:
                self._remove_overlay(engine)
            return

        self._draw(engine, polyline, mode)

    def _draw(self, engine: MapEngine, polyline: Sequence[MapPosition], mode: Optional[str]) -> None:
        added = None
        try:
            if self._overlay is not None:
                engine.remove(self._overlay)
                self._overlay = None

            path = [engine.create_lnglat(point.lng, point.lat) for point in polyline]
            overlay = engine.create_polyline(path, style_for_mode(mode))
            engine.add(overlay)
            added = overlay
            engine.set_fit_view([overlay], padding=list(self.fit_padding))
            self._overlay = overlay
        except Exception:
            logger.debug("Route overlay draw failed", exc_info=True)
            if added is not None:
                try:
                    engine.remove(added)
                except Exception:
                    logger.debug("Could not roll back partially drawn overlay", exc_info=True)
            self._overlay = None

    def _remove_overlay(self, engine: Optional[MapEngine]) -> None:
        overlay, self._overlay = self._overlay, None
        if engine is None:
            return
        try:
            engine.remove(overlay)
        except Exception:
            logger.debug("Route overlay removal failed", exc_info=True)

    def _schedule_retry(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; route overlay waits for the next update")
            return
        self._retry = loop.call_later(self.retry_delay, self._on_retry)

    def _on_retry(self) -> None:
        self._retry = None
        self._apply(allow_retry=False)

    def _on_engine_attached(self) -> None:
        # A late engine supersedes any pending retry
        if self._props is not None:
            self.refresh()

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    # ------------------------------------------------------------------

    def bind_session(
        self, session: RoutePlanningSession, visible: bool = True
    ) -> Callable[[], None]:
        """Follow a planning session: draw its selected plan once it succeeds.

        Returns a function that stops following and tears the overlay down.
        """

        def on_change(snapshot: SessionSnapshot) -> None:
            self.update(
                snapshot.polyline,
                snapshot.mode,
                visible and snapshot.status == RouteServiceStatus.SUCCESS,
            )

        unsubscribe = session.subscribe(on_change)
        on_change(session.snapshot())

        def unbind() -> None:
            unsubscribe()
            self.teardown()
            self._props = None

        return unbind
