"""Pydantic schemas for the REST API request/response models."""

from pydantic import BaseModel, Field, computed_field

from metarboard.models.observation import FlightCategory, ReportKind
from metarboard.models.outage import OutageEvent, StationStats, StationStatus
from metarboard.services.decoder import (
    celsius_to_fahrenheit,
    decode_weather,
    describe_cloud_cover,
)


# ── Reports ───────────────────────────────────────────────────────────────────


class CloudLayerResponse(BaseModel):
    cover_code: str
    base_feet: int

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def cover_description(self) -> str:
        return describe_cloud_cover(self.cover_code)


class ObservationResponse(BaseModel):
    station_id: str
    raw_text: str
    station_name: str
    latitude: float | None
    longitude: float | None
    elevation_meters: float
    observed_at_iso: str
    observation_zulu: str
    observation_epoch_ms: int
    wind_direction_deg: int | None
    wind_speed_kt: float | None
    wind_gust_kt: float | None
    visibility_statute_miles: float
    temperature_c: float | None
    dewpoint_c: float | None
    altimeter_in_hg: float | None
    flight_category: FlightCategory
    clouds: list[CloudLayerResponse]
    weather_phenomena: list[str]
    has_maintenance_flag: bool
    report_kind: ReportKind

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def temperature_f(self) -> int | None:
        return celsius_to_fahrenheit(self.temperature_c) if self.temperature_c is not None else None

    @computed_field
    @property
    def weather_decoded(self) -> list[str]:
        return [decode_weather(wx) for wx in self.weather_phenomena]


class TafPeriodResponse(BaseModel):
    from_iso: str
    to_iso: str
    wind_direction_deg: int | None
    wind_speed_kt: float | None
    wind_gust_kt: float | None
    visibility_statute_miles: float
    flight_category: FlightCategory
    clouds: list[CloudLayerResponse]
    weather_phenomena: list[str]
    change_type: str | None

    model_config = {"from_attributes": True}


class TafReportResponse(BaseModel):
    station_id: str
    raw_text: str
    station_name: str
    issue_time: str | None
    valid_from_iso: str | None
    valid_to_iso: str | None
    forecasts: list[TafPeriodResponse]

    model_config = {"from_attributes": True}


# ── Maintenance ledger ────────────────────────────────────────────────────────


class LedgerResponse(BaseModel):
    station_status: dict[str, StationStatus]
    outage_log: list[OutageEvent]


class UpdateResponse(BaseModel):
    success: bool
    events_opened: int = 0
    events_closed: int = 0


class RefreshResponse(UpdateResponse):
    stations: int = Field(..., description="Stations in the sweep")


class LeaderboardResponse(BaseModel):
    sort: str
    direction: str
    stations: list[StationStats]


class ClearResponse(BaseModel):
    success: bool


class ErrorDetail(BaseModel):
    code: str
    message: str
    request_id: str | None = None

    # upstream_status, details
    model_config = {"extra": "allow"}


class ErrorResponse(BaseModel):
    """The envelope every error response uses (see core/errors.py)."""

    error: ErrorDetail
