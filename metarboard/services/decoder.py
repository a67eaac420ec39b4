"""Report decoder — aviationweather.gov records and raw METAR text to Observations.

Everything here is a pure function. Two entry points produce Observations:

1. ``decode_metar_record`` maps one JSON record from the data API.
2. ``parse_raw_metar`` tokenizes one raw METAR/SPECI line (``format=raw``).

Only the fields the dashboard displays are extracted; this is not a full METAR
grammar. Records without a station identifier are rejected (``None``); every
other field degrades to ``None`` or a default.
"""

import calendar
import logging
import math
import re
import time
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from metarboard.models.observation import (
    CloudLayer,
    FlightCategory,
    Observation,
    ReportKind,
    TafPeriod,
    TafReport,
)
from metarboard.models.provider import AwcCloud, AwcMetarRecord, AwcTafRecord

logger = logging.getLogger(__name__)

FEET_TO_METERS = 0.3048
HPA_PER_INHG = 33.8639
DEFAULT_VISIBILITY_SM = 10.0

# Altimeter settings above this are hectopascals, below are inches of mercury.
_HPA_THRESHOLD = 100.0

CEILING_COVERS = frozenset({"BKN", "OVC", "VV"})

WEATHER_CODES: dict[str, str] = {
    # Intensity
    "-": "Light",
    "+": "Heavy",
    # Descriptor
    "MI": "Shallow",
    "PR": "Partial",
    "BC": "Patches",
    "DR": "Low Drifting",
    "BL": "Blowing",
    "SH": "Showers",
    "TS": "Thunderstorm",
    "FZ": "Freezing",
    # Precipitation
    "DZ": "Drizzle",
    "RA": "Rain",
    "SN": "Snow",
    "SG": "Snow Grains",
    "IC": "Ice Crystals",
    "PL": "Ice Pellets",
    "GR": "Hail",
    "GS": "Small Hail",
    "UP": "Unknown Precipitation",
    # Obscuration
    "BR": "Mist",
    "FG": "Fog",
    "FU": "Smoke",
    "VA": "Volcanic Ash",
    "DU": "Widespread Dust",
    "SA": "Sand",
    "HZ": "Haze",
    "PY": "Spray",
    # Other
    "PO": "Dust Whirls",
    "SQ": "Squalls",
    "FC": "Funnel Cloud",
    "SS": "Sandstorm",
    "DS": "Duststorm",
    "VC": "Vicinity",
}

CLOUD_COVER_CODES: dict[str, str] = {
    "SKC": "Sky Clear",
    "CLR": "Clear",
    "FEW": "Few (1-2 oktas)",
    "SCT": "Scattered (3-4 oktas)",
    "BKN": "Broken (5-7 oktas)",
    "OVC": "Overcast (8 oktas)",
    "VV": "Vertical Visibility",
}

_ZULU_RE = re.compile(r"\b(\d{6})Z\b")


# ── Unit conversions ──────────────────────────────────────────────────────────


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def feet_to_meters(feet: float) -> float:
    return feet * FEET_TO_METERS


def hpa_to_inhg(hpa: float) -> float:
    """Convert hectopascals to inches of mercury."""
    return hpa / HPA_PER_INHG


def celsius_to_fahrenheit(deg_c: float) -> int:
    """Display conversion, rounded to a whole degree."""
    return round_half_up(deg_c * 9 / 5 + 32)


# ── Flight category ───────────────────────────────────────────────────────────


def ceiling_feet(clouds: Iterable[CloudLayer] | None) -> float:
    """Lowest broken, overcast, or vertical-visibility base; infinity if none.

    Layers are not assumed to be sorted.
    """
    ceiling = float("inf")
    for layer in clouds or ():
        if layer.cover_code in CEILING_COVERS and layer.base_feet < ceiling:
            ceiling = layer.base_feet
    return ceiling


def classify_flight_category(
    visibility: Any,
    clouds: Iterable[CloudLayer] | None,
) -> FlightCategory:
    """Derive VFR/MVFR/IFR/LIFR from visibility (SM) and cloud layers.

    Non-numeric or missing visibility counts as 10 SM. The MVFR visibility test
    is inclusive (<= 5) while the IFR and LIFR tests are strict.
    """
    ceiling = ceiling_feet(clouds)
    if isinstance(visibility, (int, float)) and not isinstance(visibility, bool):
        vis = float(visibility)
    else:
        vis = DEFAULT_VISIBILITY_SM

    if ceiling < 500 or vis < 1:
        return FlightCategory.LIFR
    if ceiling < 1000 or vis < 3:
        return FlightCategory.IFR
    if ceiling < 3000 or vis <= 5:
        return FlightCategory.MVFR
    return FlightCategory.VFR


# ── Raw text helpers ──────────────────────────────────────────────────────────


def extract_observation_zulu(raw_text: str | None) -> str:
    """Return the first ``DDHHMMZ`` token in a report, or "" if there is none."""
    if not raw_text:
        return ""
    match = _ZULU_RE.search(raw_text)
    return f"{match.group(1)}Z" if match else ""


def has_maintenance_flag(raw_text: str | None) -> bool:
    """True iff the report ends with the ``$`` maintenance indicator."""
    return bool(raw_text) and raw_text.strip().endswith("$")


def decode_weather(wx: str) -> str:
    """Turn a phenomenon group like ``-TSRA`` into ``Light Thunderstorm Rain``.

    Lossy and display-only: unknown two-letter codes are dropped. If nothing
    decodes, the input comes back unchanged.
    """
    intensity = ""
    body = wx
    if body.startswith("-"):
        intensity = "Light "
        body = body[1:]
    elif body.startswith("+"):
        intensity = "Heavy "
        body = body[1:]

    names = []
    for i in range(0, len(body), 2):
        name = WEATHER_CODES.get(body[i:i + 2])
        if name:
            names.append(name)

    return (intensity + " ".join(names)) or wx


def describe_cloud_cover(cover_code: str) -> str:
    return CLOUD_COVER_CODES.get(cover_code, cover_code)


def parse_visibility(value: Any) -> float | None:
    """Parse provider visibility: numbers, ``"10+"``, ``"1/2"``, ``"1 1/2"``, ``"P6SM"``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None

    text = value.strip().upper()
    if text.endswith("SM"):
        text = text[:-2]
    text = text.rstrip("+").lstrip("PM").strip()
    if not text:
        return None

    total = 0.0
    try:
        for part in text.split():
            if "/" in part:
                num, den = part.split("/", 1)
                total += float(num) / float(den)
            else:
                total += float(part)
    except (ValueError, ZeroDivisionError):
        return None
    return total


def _wind_direction(value: Any) -> int | None:
    """Numeric direction in degrees; "VRB" and anything else means variable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _altimeter_in_hg(value: float | None) -> float | None:
    if not value:
        return None
    if value > _HPA_THRESHOLD:
        return hpa_to_inhg(value)
    return value


def _report_kind(value: str | None) -> ReportKind:
    if value and value.strip().upper() == ReportKind.SPECI.value:
        return ReportKind.SPECI
    return ReportKind.METAR


def _cloud_layers(clouds: list[AwcCloud] | None) -> list[CloudLayer]:
    return [CloudLayer(cover_code=c.cover, base_feet=c.base or 0) for c in clouds or []]


def _ceiling_candidates(clouds: list[AwcCloud] | None) -> list[CloudLayer]:
    """Layers with a reported base. A layer without one is never a ceiling."""
    return [
        CloudLayer(cover_code=c.cover, base_feet=c.base)
        for c in clouds or []
        if c.base is not None
    ]


def _weather_tokens(wx_string: str | None) -> list[str]:
    return wx_string.split(" ") if wx_string else []


def _now_ms() -> int:
    return int(time.time() * 1000)


def _epoch_to_iso(epoch_seconds: int | None) -> str | None:
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


# ── Provider JSON records ─────────────────────────────────────────────────────


def _resolve_flight_category(
    provider_category: str | None,
    visibility: float | None,
    clouds: list[CloudLayer],
) -> FlightCategory:
    """Trust the provider's category only if it is one we know; otherwise derive."""
    if provider_category:
        try:
            return FlightCategory(provider_category.strip().upper())
        except ValueError:
            pass
    return classify_flight_category(visibility, clouds)


def decode_metar_record(record: dict[str, Any] | AwcMetarRecord) -> Observation | None:
    """Map one data-API METAR record to an Observation.

    Returns None for a malformed record (no station identifier).
    """
    if not isinstance(record, AwcMetarRecord):
        try:
            record = AwcMetarRecord.model_validate(record)
        except ValidationError as exc:
            logger.debug("Dropping malformed METAR record: %s", exc.errors()[:1])
            return None

    raw_text = record.rawOb or ""
    clouds = _cloud_layers(record.clouds)
    visibility = parse_visibility(record.visib)

    return Observation(
        station_id=record.icaoId,
        raw_text=raw_text,
        station_name=record.name or record.icaoId,
        latitude=record.lat,
        longitude=record.lon,
        elevation_meters=feet_to_meters(record.elev) if record.elev else 0.0,
        observed_at_iso=record.reportTime or datetime.now(timezone.utc).isoformat(),
        observation_zulu=extract_observation_zulu(raw_text),
        observation_epoch_ms=record.obsTime * 1000 if record.obsTime else _now_ms(),
        wind_direction_deg=_wind_direction(record.wdir),
        wind_speed_kt=record.wspd,
        wind_gust_kt=record.wgst,
        visibility_statute_miles=visibility if visibility is not None else DEFAULT_VISIBILITY_SM,
        temperature_c=record.temp,
        dewpoint_c=record.dewp,
        altimeter_in_hg=_altimeter_in_hg(record.altim),
        flight_category=_resolve_flight_category(
            record.fltCat, visibility, _ceiling_candidates(record.clouds)
        ),
        clouds=clouds,
        weather_phenomena=_weather_tokens(record.wxString),
        has_maintenance_flag=has_maintenance_flag(raw_text),
        report_kind=_report_kind(record.metarType),
    )


def decode_metar_records(records: Iterable[Any]) -> list[Observation]:
    """Decode a provider array, silently skipping malformed entries."""
    observations = []
    for record in records:
        if not isinstance(record, (dict, AwcMetarRecord)):
            continue
        obs = decode_metar_record(record)
        if obs is not None:
            observations.append(obs)
    return observations


def decode_taf_record(record: dict[str, Any] | AwcTafRecord) -> TafReport | None:
    """Map one data-API TAF record; each period's category is always derived."""
    if not isinstance(record, AwcTafRecord):
        try:
            record = AwcTafRecord.model_validate(record)
        except ValidationError as exc:
            logger.debug("Dropping malformed TAF record: %s", exc.errors()[:1])
            return None

    periods = []
    for fcst in record.fcsts or []:
        clouds = _cloud_layers(fcst.clouds)
        visibility = parse_visibility(fcst.visib)
        periods.append(
            TafPeriod(
                from_iso=_epoch_to_iso(fcst.timeFrom) or "",
                to_iso=_epoch_to_iso(fcst.timeTo) or "",
                wind_direction_deg=_wind_direction(fcst.wdir),
                wind_speed_kt=fcst.wspd,
                wind_gust_kt=fcst.wgst,
                visibility_statute_miles=(
                    visibility if visibility is not None else DEFAULT_VISIBILITY_SM
                ),
                flight_category=classify_flight_category(
                    visibility, _ceiling_candidates(fcst.clouds)
                ),
                clouds=clouds,
                weather_phenomena=_weather_tokens(fcst.wxString),
                change_type=fcst.fcstChange,
            )
        )

    return TafReport(
        station_id=record.icaoId,
        raw_text=record.rawTAF or "",
        station_name=record.name or record.icaoId,
        issue_time=record.issueTime,
        valid_from_iso=_epoch_to_iso(record.validTimeFrom),
        valid_to_iso=_epoch_to_iso(record.validTimeTo),
        forecasts=periods,
    )


# ── Raw METAR text ────────────────────────────────────────────────────────────

# a few examples:
# KGFK 262353Z 24011KT 10SM BKN100 BKN120 BKN140 20/03 A2945 RMK AO2
# SPECI KORD 171553Z VRB03G15KT 1 1/2SM -TSRA BR OVC008CB M01/M03 Q1013 RMK AO2 $

_STATION_RE = re.compile(r"^[A-Z0-9]{4}$")
_TIME_RE = re.compile(r"^(\d{2})(\d{2})(\d{2})Z$")
_WIND_RE = re.compile(r"^(\d{3}|VRB)(\d{2,3})(?:G(\d{2,3}))?KT$")
_VIS_RE = re.compile(r"^[PM]?(\d+|\d+/\d+)SM$")
_CLOUD_RE = re.compile(r"^(FEW|SCT|BKN|OVC|VV)(\d{3}|///)(?:CB|TCU)?$")
_TEMP_RE = re.compile(r"^(M?\d{2})/(M?\d{2})?$")
_ALT_A_RE = re.compile(r"^A(\d{4})$")
_ALT_Q_RE = re.compile(r"^Q(\d{4})$")
_SKIP_TOKENS = frozenset({"AUTO", "COR", "NOSIG", "CAVOK"})


def _is_weather_token(token: str) -> bool:
    body = token.lstrip("+-")
    if not body or len(body) % 2 or token in _SKIP_TOKENS:
        return False
    return all(body[i:i + 2] in WEATHER_CODES for i in range(0, len(body), 2))


def _signed_temp(text: str) -> float:
    return -float(text[1:]) if text.startswith("M") else float(text)


def _zulu_to_datetime(zulu: str, reference: datetime) -> datetime | None:
    """Anchor a day-hour-minute token to the reference month.

    Rolls back one month when the result would be more than a day ahead of the
    reference (a report from the 31st read on the 1st).
    """
    match = _TIME_RE.match(zulu)
    if not match:
        return None
    day, hour, minute = (int(g) for g in match.groups())

    year, month = reference.year, reference.month
    for _ in range(2):
        try:
            candidate = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
        except ValueError:
            candidate = None
        if candidate is not None and candidate <= reference + timedelta(days=1):
            return candidate
        month -= 1
        if month == 0:
            year, month = year - 1, 12
        if day > calendar.monthrange(year, month)[1]:
            return None
    return None


def parse_raw_metar(line: str, reference: datetime | None = None) -> Observation | None:
    """Decode one raw METAR/SPECI line into an Observation.

    Raw reports carry no station metadata and no full timestamp; the epoch is
    derived from the day-hour-minute token relative to ``reference`` (now by
    default).
    """
    parts = line.strip().split()
    if not parts:
        return None

    kind = ReportKind.METAR
    if parts[0] in (ReportKind.METAR.value, ReportKind.SPECI.value):
        kind = ReportKind(parts[0])
        parts = parts[1:]
    if not parts or not _STATION_RE.match(parts[0]):
        logger.debug("Dropping raw report without station id: %r", line[:40])
        return None

    station_id = parts[0]
    body = parts[1:]
    try:
        body = body[:body.index("RMK")]
    except ValueError:
        # 'RMK' is not in list, we don't have remarks
        pass

    zulu = extract_observation_zulu(line)
    wind_dir: int | None = None
    wind_speed: float | None = None
    wind_gust: float | None = None
    visibility: float | None = None
    temperature: float | None = None
    dewpoint: float | None = None
    altimeter: float | None = None
    clouds: list[CloudLayer] = []
    ceiling_candidates: list[CloudLayer] = []
    weather: list[str] = []

    if "CAVOK" in body:
        visibility = DEFAULT_VISIBILITY_SM

    for i, token in enumerate(body):
        if m := _WIND_RE.match(token):
            speed = float(m.group(2))
            wind_speed = speed
            wind_gust = float(m.group(3)) if m.group(3) else None
            # VRB and calm (00000KT) both leave the direction unset
            if m.group(1) != "VRB" and speed > 0:
                wind_dir = int(m.group(1))
        elif _VIS_RE.match(token):
            vis = parse_visibility(token)
            # "1 1/2SM" arrives as two tokens
            if vis is not None and "/" in token and i > 0 and body[i - 1].isdigit():
                vis += float(body[i - 1])
            visibility = vis
        elif m := _CLOUD_RE.match(token):
            # "///" is an unreported base: shown as 0, never a ceiling
            if m.group(2).isdigit():
                layer = CloudLayer(cover_code=m.group(1), base_feet=int(m.group(2)) * 100)
                ceiling_candidates.append(layer)
            else:
                layer = CloudLayer(cover_code=m.group(1), base_feet=0)
            clouds.append(layer)
        elif m := _TEMP_RE.match(token):
            temperature = _signed_temp(m.group(1))
            dewpoint = _signed_temp(m.group(2)) if m.group(2) else None
        elif m := _ALT_A_RE.match(token):
            altimeter = int(m.group(1)) / 100
        elif m := _ALT_Q_RE.match(token):
            altimeter = hpa_to_inhg(int(m.group(1)))
        elif _is_weather_token(token):
            weather.append(token)

    reference = reference or datetime.now(timezone.utc)
    observed = _zulu_to_datetime(zulu, reference) if zulu else None
    if observed is None:
        observed = reference

    return Observation(
        station_id=station_id,
        raw_text=line.strip(),
        station_name=station_id,
        latitude=None,
        longitude=None,
        elevation_meters=0.0,
        observed_at_iso=observed.isoformat(),
        observation_zulu=zulu,
        observation_epoch_ms=int(observed.timestamp() * 1000),
        wind_direction_deg=wind_dir,
        wind_speed_kt=wind_speed,
        wind_gust_kt=wind_gust,
        visibility_statute_miles=visibility if visibility is not None else DEFAULT_VISIBILITY_SM,
        temperature_c=temperature,
        dewpoint_c=dewpoint,
        altimeter_in_hg=altimeter,
        flight_category=classify_flight_category(visibility, ceiling_candidates),
        clouds=clouds,
        weather_phenomena=weather,
        has_maintenance_flag=has_maintenance_flag(line),
        report_kind=kind,
    )


def parse_raw_metars(text: str, reference: datetime | None = None) -> list[Observation]:
    """Decode a ``format=raw`` response body, one report per line."""
    observations = []
    for line in text.splitlines():
        obs = parse_raw_metar(line, reference)
        if obs is not None:
            observations.append(obs)
    return observations
