"""Boundary schemas for aviationweather.gov JSON payloads.

The data API is loosely typed: numbers arrive as strings ("10+"), wind
direction can be "VRB", and most fields are optional. These models accept that
looseness, degrading unparseable numbers to None, but they refuse a record with
no station identifier.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


def _safe_float(val: Any) -> float | None:
    """Parse a float, returning None for missing or non-numeric values."""
    if val is None or isinstance(val, bool):
        return None
    try:
        return float(val)
    except (ValueError, TypeError):
        return None


class AwcCloud(BaseModel):
    cover: str
    base: int | None = None

    model_config = {"extra": "ignore"}

    @field_validator("base", mode="before")
    @classmethod
    def _coerce_base(cls, v: Any) -> int | None:
        f = _safe_float(v)
        return int(f) if f is not None else None


def _clean_clouds(v: Any) -> list[dict] | None:
    if not isinstance(v, list):
        return None
    return [c for c in v if isinstance(c, dict) and isinstance(c.get("cover"), str)]


class AwcMetarRecord(BaseModel):
    """One element of the /api/data/metar?format=json array."""

    icaoId: str = Field(..., min_length=1)
    rawOb: str | None = None
    name: str | None = None
    lat: float | None = None
    lon: float | None = None
    elev: float | None = None
    obsTime: int | None = None
    reportTime: str | None = None
    temp: float | None = None
    dewp: float | None = None
    wdir: Any = None
    wspd: float | None = None
    wgst: float | None = None
    visib: Any = None
    altim: float | None = None
    fltCat: str | None = None
    clouds: list[AwcCloud] | None = None
    wxString: str | None = None
    metarType: str | None = None

    model_config = {"extra": "ignore"}

    @field_validator("icaoId", mode="before")
    @classmethod
    def _strip_id(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator(
        "lat", "lon", "elev", "temp", "dewp", "wspd", "wgst", "altim", mode="before"
    )
    @classmethod
    def _coerce_float(cls, v: Any) -> float | None:
        return _safe_float(v)

    @field_validator("obsTime", mode="before")
    @classmethod
    def _coerce_epoch(cls, v: Any) -> int | None:
        f = _safe_float(v)
        return int(f) if f is not None else None

    @field_validator("clouds", mode="before")
    @classmethod
    def _coerce_clouds(cls, v: Any) -> list[dict] | None:
        return _clean_clouds(v)


class AwcForecast(BaseModel):
    timeFrom: int | None = None
    timeTo: int | None = None
    wdir: Any = None
    wspd: float | None = None
    wgst: float | None = None
    visib: Any = None
    clouds: list[AwcCloud] | None = None
    wxString: str | None = None
    fcstChange: str | None = None

    model_config = {"extra": "ignore"}

    @field_validator("timeFrom", "timeTo", mode="before")
    @classmethod
    def _coerce_epoch(cls, v: Any) -> int | None:
        f = _safe_float(v)
        return int(f) if f is not None else None

    @field_validator("wspd", "wgst", mode="before")
    @classmethod
    def _coerce_float(cls, v: Any) -> float | None:
        return _safe_float(v)

    @field_validator("clouds", mode="before")
    @classmethod
    def _coerce_clouds(cls, v: Any) -> list[dict] | None:
        return _clean_clouds(v)


class AwcTafRecord(BaseModel):
    """One element of the /api/data/taf?format=json array."""

    icaoId: str = Field(..., min_length=1)
    rawTAF: str | None = None
    name: str | None = None
    issueTime: str | None = None
    validTimeFrom: int | None = None
    validTimeTo: int | None = None
    fcsts: list[AwcForecast] | None = None

    model_config = {"extra": "ignore"}

    @field_validator("icaoId", mode="before")
    @classmethod
    def _strip_id(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("validTimeFrom", "validTimeTo", mode="before")
    @classmethod
    def _coerce_epoch(cls, v: Any) -> int | None:
        f = _safe_float(v)
        return int(f) if f is not None else None

    @field_validator("issueTime", mode="before")
    @classmethod
    def _coerce_issue_time(cls, v: Any) -> str | None:
        return str(v) if v is not None else None
