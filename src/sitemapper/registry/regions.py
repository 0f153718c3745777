"""
Region ("country") catalog.

Regions are named map viewpoints. The built-in presets are only used to seed a
fresh install; once a catalog has been persisted it is authoritative.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping

from pydantic import ValidationError as PydanticValidationError

from sitemapper.core.errors import ValidationError, describe_pydantic_error
from sitemapper.core.geo import parse_coordinate
from sitemapper.domain.models import Region, RegionDraft

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = 6

# (name, code, lat, lng, zoom)
_PRESETS: list[tuple[str, str, float, float, int]] = [
    ("Libya", "LY", 26.3351, 17.2283, 6),
    ("United States", "US", 37.0902, -95.7129, 4),
    ("United Kingdom", "GB", 55.3781, -3.436, 6),
    ("Germany", "DE", 51.1657, 10.4515, 6),
    ("France", "FR", 46.2276, 2.2137, 6),
    ("Italy", "IT", 41.8719, 12.5674, 6),
    ("Spain", "ES", 40.4637, -3.7492, 6),
    ("India", "IN", 20.5937, 78.9629, 5),
    ("Brazil", "BR", -14.235, -51.9253, 4),
    ("Australia", "AU", -25.2744, 133.7751, 4),
    ("Japan", "JP", 36.2048, 138.2529, 5),
    ("Canada", "CA", 56.1304, -106.3468, 3),
    ("Mexico", "MX", 23.6345, -102.5528, 5),
    ("Egypt", "EG", 26.8206, 30.8025, 6),
    ("Tunisia", "TN", 33.8869, 9.5375, 7),
    ("Algeria", "DZ", 28.0339, 1.6596, 5),
    ("Morocco", "MA", 31.7917, -7.0926, 6),
    ("South Africa", "ZA", -30.5595, 22.9375, 5),
    ("Nigeria", "NG", 9.082, 8.6753, 6),
    ("Turkey", "TR", 38.9637, 35.2433, 6),
    ("Saudi Arabia", "SA", 23.8859, 45.0792, 5),
    ("UAE", "AE", 23.4241, 53.8478, 7),
]

DEFAULT_REGIONS: tuple[Region, ...] = tuple(
    Region(name=name, code=code, center=(lat, lng), zoom=zoom) for name, code, lat, lng, zoom in _PRESETS
)


def derive_code(name: str) -> str:
    """Short code from the first two characters of the name, uppercased."""
    return name.strip()[:2].upper()


def _parse_zoom(value: Any, default: int) -> int:
    parsed = parse_coordinate(value)
    if parsed is None:
        return default
    return int(parsed)


class RegionCatalog:
    """Ordered list of regions; lookups by code return the most recently added match."""

    def __init__(self, regions: Iterable[Region] | None = None, *, default_zoom: int = DEFAULT_ZOOM):
        self._regions: list[Region] = list(regions or [])
        self._default_zoom = int(default_zoom)

    @classmethod
    def seeded(cls, *, default_zoom: int = DEFAULT_ZOOM) -> "RegionCatalog":
        return cls(DEFAULT_REGIONS, default_zoom=default_zoom)

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(list(self._regions))

    def all(self) -> list[Region]:
        return list(self._regions)

    def default(self) -> Region | None:
        return self._regions[0] if self._regions else None

    def find_by_code(self, code: str) -> Region | None:
        key = (code or "").strip().upper()
        for region in reversed(self._regions):
            if region.code.upper() == key:
                return region
        return None

    def add(self, draft: RegionDraft | Mapping[str, Any]) -> Region:
        if not isinstance(draft, RegionDraft):
            try:
                draft = RegionDraft.model_validate(dict(draft))
            except PydanticValidationError as e:
                raise ValidationError(describe_pydantic_error(e)) from e

        name = (draft.name or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        lat = parse_coordinate(draft.lat)
        if lat is None:
            raise ValidationError("lat must be a number", field="lat")
        lng = parse_coordinate(draft.lng)
        if lng is None:
            raise ValidationError("lng must be a number", field="lng")

        code = (draft.code or "").strip() or derive_code(name)
        try:
            region = Region(
                name=name,
                code=code,
                center=(lat, lng),
                zoom=_parse_zoom(draft.zoom, self._default_zoom),
            )
        except PydanticValidationError as e:
            raise ValidationError(describe_pydantic_error(e)) from e

        self._regions.append(region)
        logger.debug("region added code=%s name=%s", region.code, region.name)
        return region
