from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .models import TravelMode


class PointIn(BaseModel):
    lon: float = Field(ge=-180, le=180)
    lat: float = Field(ge=-90, le=90)
    id: str | None = None
    label: str | None = None


class OptimizeRequest(BaseModel):
    depot: PointIn
    stops: list[PointIn]
    strategy: Literal["nearest_neighbor", "external"] = "nearest_neighbor"
    travel_mode: TravelMode | None = None
    use_traffic: bool | None = None
    departure_time: datetime | None = None
    service_time_min: float | None = Field(default=None, ge=0)


class SegmentOut(BaseModel):
    start: tuple[float, float]
    end: tuple[float, float]
    midpoint: tuple[float, float]
    duration_s: float
    duration_min: float
    distance_m: float
    degraded: bool


class OptimizeResponse(BaseModel):
    algorithm: str
    sequence: list[int]
    total_distance_km: float
    total_time_min: float
    geometry: dict[str, Any]
    segments: list[SegmentOut]
    degraded_segments: int


class ParseRequest(BaseModel):
    text: str
    start_index: int = Field(default=1, ge=1)


class StopOut(BaseModel):
    id: str
    lon: float
    lat: float
    label: str


class ParseResponse(BaseModel):
    stops: list[StopOut]
