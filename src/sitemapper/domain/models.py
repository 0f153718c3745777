"""
Domain models (Pydantic).

These types are the contract between the core and whatever renders it:
- catalogue entities (`Site`, `Region`)
- the two singleton locations (`UserLocation`, `CustomerLocation`)
- form inputs (`SiteDraft`, `RegionDraft`)
- derived read models (`SiteRelations`)

`Site` allows extra fields: JSON imports may carry keys we do not know about and
those must survive an export/import round-trip untouched.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Site(BaseModel):
    """A user-tracked point of interest (tower, radio, sensor, depot...)."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    type: str = "tower"
    icon: str = "tower"
    # Free-form: JSON imports keep whatever value they carry.
    category: Any = None
    notes: Any = None
    metadata: Any = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, name: str) -> str:
        if not name.strip():
            raise ValueError("name must not be blank")
        return name

    @property
    def extras(self) -> dict[str, Any]:
        """Unknown fields carried over from an import."""
        return dict(self.model_extra or {})


class SiteDraft(BaseModel):
    """Raw add-site form input; coordinates may still be strings."""

    name: str = ""
    lat: Any = None
    lng: Any = None
    type: str = "tower"
    icon: str = "tower"
    category: str = ""
    notes: str = ""
    metadata: Any = None


class Region(BaseModel):
    """A named map viewpoint used to recenter the view."""

    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    center: tuple[float, float]
    zoom: int = Field(6, ge=0)

    @field_validator("center")
    @classmethod
    def _center_in_range(cls, center: tuple[float, float]) -> tuple[float, float]:
        lat, lng = center
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError("center must be finite")
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise ValueError("center out of range")
        return center

    @property
    def lat(self) -> float:
        return self.center[0]

    @property
    def lng(self) -> float:
        return self.center[1]


class RegionDraft(BaseModel):
    """Raw add-region form input."""

    name: str = ""
    lat: Any = None
    lng: Any = None
    zoom: Any = None
    code: str | None = None


class UserLocation(BaseModel):
    """Last position reported by the device."""

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    accuracy: float | None = Field(default=None, ge=0)


class CustomerLocation(BaseModel):
    """The reference customer/prospect location."""

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    name: str | None = None


class SiteRelations(BaseModel):
    """Distances/bearing from the operator and the customer to one site."""

    site_id: str
    distance_from_user_km: float | None = None
    distance_from_customer_km: float | None = None
    bearing_from_customer_deg: float | None = None
    cardinal_from_customer: str | None = None
