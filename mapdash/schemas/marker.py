"""Map marker schemas."""

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from mapdash.schemas.route import MapPosition


class MarkerData(BaseModel):
    """Known optional marker attributes.

    Anything outside these fields goes into `metadata`; unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    phone: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    category: Optional[str] = None
    store_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    capacity: Optional[float] = Field(default=None, ge=0)
    status: Optional[Literal["active", "inactive", "maintenance"]] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class Marker(BaseModel):
    """Point of interest drawn on the map."""

    id: str
    position: MapPosition
    title: str
    type: Literal["store", "warehouse", "user", "vehicle"]
    icon: Optional[str] = None
    data: Optional[MarkerData] = None
    created_at: datetime
    updated_at: datetime
