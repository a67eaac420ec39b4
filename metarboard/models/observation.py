"""Decoded report types: one Observation per station per fetch, plus TAF forecasts.

These are plain dataclasses produced by the decoder. Everything coming from the
provider has already been validated and converted by the time one of these is
built, so consumers never see provider-specific units or optional shapes.
"""

import enum
from dataclasses import dataclass, field


class FlightCategory(str, enum.Enum):
    VFR = "VFR"    # ceiling >= 3000 ft and visibility > 5 SM
    MVFR = "MVFR"  # marginal VFR
    IFR = "IFR"
    LIFR = "LIFR"  # low IFR


class ReportKind(str, enum.Enum):
    METAR = "METAR"  # routine
    SPECI = "SPECI"  # special, issued between routine reports


@dataclass(frozen=True)
class CloudLayer:
    cover_code: str
    base_feet: int


@dataclass
class Observation:
    """A single decoded METAR/SPECI for one station."""

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
    clouds: list[CloudLayer] = field(default_factory=list)
    weather_phenomena: list[str] = field(default_factory=list)
    has_maintenance_flag: bool = False
    report_kind: ReportKind = ReportKind.METAR


@dataclass
class TafPeriod:
    """One forecast group (base, FM, TEMPO, BECMG, PROB) inside a TAF."""

    from_iso: str
    to_iso: str
    wind_direction_deg: int | None
    wind_speed_kt: float | None
    wind_gust_kt: float | None
    visibility_statute_miles: float
    flight_category: FlightCategory
    clouds: list[CloudLayer] = field(default_factory=list)
    weather_phenomena: list[str] = field(default_factory=list)
    change_type: str | None = None


@dataclass
class TafReport:
    station_id: str
    raw_text: str
    station_name: str
    issue_time: str | None
    valid_from_iso: str | None
    valid_to_iso: str | None
    forecasts: list[TafPeriod] = field(default_factory=list)
