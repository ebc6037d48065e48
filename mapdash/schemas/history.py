"""History-related schemas.

Field aliases keep the persisted JSON layout camelCase so blobs written by
older dashboard builds still decode.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mapdash.schemas.route import MapPosition, RouteMode


class RouteHistoryItem(BaseModel):
    """Single route history item."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    origin_text: str = Field(default="", alias="originText")
    dest_text: str = Field(default="", alias="destText")
    origin_location: Optional[MapPosition] = Field(default=None, alias="originLocation")
    dest_location: Optional[MapPosition] = Field(default=None, alias="destLocation")
    mode: Optional[RouteMode] = None
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")  # epoch millis

    @property
    def has_locations(self) -> bool:
        return self.origin_location is not None and self.dest_location is not None


class PlaceHistoryItem(BaseModel):
    """Single place search history item."""

    id: str
    name: str
    location: MapPosition
    address: Optional[str] = None


class RouteHistoryListResponse(BaseModel):
    items: List[RouteHistoryItem]
    total: int


class PlaceHistoryListResponse(BaseModel):
    items: List[PlaceHistoryItem]
    total: int
