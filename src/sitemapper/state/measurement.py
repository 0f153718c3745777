from __future__ import annotations

from sitemapper.core.errors import ValidationError
from sitemapper.core.geo import GeoPoint, parse_coordinate, path_length_km


class MeasurementSession:
    """Transient user-drawn polyline: Idle -> Measuring -> Idle.

    Points are only recorded while measuring; leaving the measuring state drops them.
    """

    def __init__(self) -> None:
        self._measuring = False
        self._points: list[GeoPoint] = []

    @property
    def is_measuring(self) -> bool:
        return self._measuring

    @property
    def points(self) -> tuple[GeoPoint, ...]:
        return tuple(self._points)

    def start(self) -> None:
        self._points = []
        self._measuring = True

    def stop(self) -> None:
        self._points = []
        self._measuring = False

    def toggle(self) -> bool:
        """Flip state; returns True when now measuring."""
        if self._measuring:
            self.stop()
        else:
            self.start()
        return self._measuring

    def clear(self) -> None:
        self._points = []

    def add_point(self, lat: float, lng: float) -> bool:
        """Append a point; ignored (returns False) while idle."""
        if not self._measuring:
            return False
        plat = parse_coordinate(lat)
        plng = parse_coordinate(lng)
        if plat is None or plng is None:
            raise ValidationError(f"invalid measurement point ({lat!r}, {lng!r})")
        self._points.append(GeoPoint(lat=plat, lng=plng))
        return True

    def total_length_km(self) -> float:
        return path_length_km(self._points)
