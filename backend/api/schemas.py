"""Request payload schemas for the HTTP API."""
from __future__ import annotations

import math
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

__all__ = ["CoordinatesQuery", "FavoritePayload"]


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except TypeError as exc:
        raise ValueError("must be a number") from exc
    if not math.isfinite(number):
        raise ValueError("must be a finite number")
    return number


class FavoritePayload(BaseModel):
    """Body of ``POST /favorites`` and ``POST /favorites/toggle``."""

    city: str = Field(min_length=1, max_length=255)
    lat: Optional[float] = None
    lon: Optional[float] = None

    @field_validator("city", mode="before")
    @classmethod
    def _check_city(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("city must be a string")
        if not value.strip():
            raise ValueError("city must not be blank")
        return value

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> Optional[float]:
        return _optional_float(value)


class CoordinatesQuery(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _require_finite(cls, value: Any) -> float:
        number = _optional_float(value)
        if number is None:
            raise ValueError("coordinate is required")
        return number
