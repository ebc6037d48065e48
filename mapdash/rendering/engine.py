"""Map engine interface used by overlay renderers.

The engine is owned by the map view and may come up after the renderers
that draw on it, so renderers hold an EngineHandle and ask it for the
engine at the moment of use.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlayStyle:
    """Stroke style of a path overlay."""

    stroke_color: str
    stroke_opacity: float = 0.8
    stroke_weight: int = 6
    stroke_style: str = "solid"
    line_join: str = "round"
    line_cap: str = "round"

    def as_options(self) -> Dict[str, Any]:
        """Option names as the JS map SDK spells them."""
        return {
            "strokeColor": self.stroke_color,
            "strokeOpacity": self.stroke_opacity,
            "strokeWeight": self.stroke_weight,
            "strokeStyle": self.stroke_style,
            "lineJoin": self.line_join,
            "lineCap": self.line_cap,
        }


class MapEngine(Protocol):
    """Drawing primitives of the map SDK. add/remove tolerate absent overlays."""

    def create_lnglat(self, lng: float, lat: float) -> Any: ...

    def create_polyline(self, path: Sequence[Any], style: OverlayStyle) -> Any: ...

    def add(self, overlay: Any) -> None: ...

    def remove(self, overlay: Any) -> None: ...

    def set_fit_view(self, overlays: Sequence[Any], padding: Sequence[int]) -> None: ...


class EngineHandle:
    """Shared slot for the map engine, filled once the map view initializes."""

    def __init__(self, engine: Optional[MapEngine] = None):
        self._engine = engine
        self._attach_listeners: List[Callable[[], None]] = []

    def on_attach(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call `callback` whenever an engine gets attached. Returns a remover."""
        self._attach_listeners.append(callback)

        def remove() -> None:
            if callback in self._attach_listeners:
                self._attach_listeners.remove(callback)

        return remove

    def attach(self, engine: MapEngine) -> None:
        logger.debug("Map engine attached")
        self._engine = engine
        for callback in list(self._attach_listeners):
            try:
                callback()
            except Exception:
                logger.exception("Engine attach listener failed")

    def detach(self) -> None:
        logger.debug("Map engine detached")
        self._engine = None

    def is_ready(self) -> bool:
        return self._engine is not None

    def get(self) -> Optional[MapEngine]:
        return self._engine
