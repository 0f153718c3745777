"""
API routes.

Every endpoint maps to one `AppState` command or read:
- `/api/sites[...]`: list/search, add, read, patch, delete, relations.
- `/api/regions`: list, add, select.
- `/api/customer`, `/api/user-location`: the two singleton locations.
- `/api/import/{json,csv}`, `/api/export/{json,csv,csv-template}`: bulk exchange.
- `/api/measurement[...]`: the measurement session.
- `/api/geo/relation`: distance + bearing between two arbitrary points.
- `/api/settings`: public settings for the UI.

Errors use the `{"code": ..., "message": ...}` detail shape:
VALIDATION_ERROR/PARSE_ERROR -> 400, NOT_FOUND -> 404, LOCATION_UNAVAILABLE -> 503.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from sitemapper.catalog.exchange import export_filename
from sitemapper.config.settings import get_settings
from sitemapper.core.errors import (
    LocationUnavailableError,
    NotFoundError,
    ParseError,
    SiteMapperError,
    ValidationError,
)
from sitemapper.core.geo import bearing_deg, cardinal, distance_km
from sitemapper.core.store import build_store
from sitemapper.domain.models import (
    CustomerLocation,
    Region,
    RegionDraft,
    Site,
    SiteDraft,
    SiteRelations,
    UserLocation,
)
from sitemapper.state.app_state import AppState

router = APIRouter()


@lru_cache
def _state() -> AppState:
    settings = get_settings()
    return AppState.load(build_store(settings), settings=settings)


def _http_error(e: SiteMapperError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(e)})
    if isinstance(e, ParseError):
        return HTTPException(status_code=400, detail={"code": "PARSE_ERROR", "message": str(e)})
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})
    if isinstance(e, LocationUnavailableError):
        return HTTPException(status_code=503, detail={"code": "LOCATION_UNAVAILABLE", "message": str(e)})
    return HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(e)})


class CustomerPayload(BaseModel):
    lat: Any
    lng: Any
    name: str | None = None


class PointPayload(BaseModel):
    lat: float
    lng: float


class RelationQuery(BaseModel):
    origin: PointPayload
    target: PointPayload


class RelationResult(BaseModel):
    distance_km: float
    bearing_deg: float
    cardinal: str


class MeasurementView(BaseModel):
    measuring: bool
    points: list[tuple[float, float]] = Field(default_factory=list)
    total_km: float = 0.0


class ImportResult(BaseModel):
    mode: str
    imported: int
    total: int


def _measurement_view(state: AppState) -> MeasurementView:
    m = state.measurement
    return MeasurementView(
        measuring=m.is_measuring,
        points=[(p.lat, p.lng) for p in m.points],
        total_km=m.total_length_km(),
    )


@router.get("/api/sites", response_model=list[Site])
def list_sites(q: str | None = None, visible_only: bool = False) -> list[Site]:
    """List sites; `q` filters by search text, `visible_only` applies the layer toggles."""
    state = _state()
    sites = state.search_sites(q)
    if visible_only:
        visible = {s.id for s in state.visible_sites()}
        sites = [s for s in sites if s.id in visible]
    return sites


@router.post("/api/sites", response_model=Site, status_code=201)
def post_site(draft: SiteDraft) -> Site:
    try:
        return _state().add_site(draft)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.get("/api/sites/{site_id}", response_model=Site)
def get_site(site_id: str) -> Site:
    try:
        return _state().sites.get(site_id)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.patch("/api/sites/{site_id}", response_model=Site)
def patch_site(site_id: str, patch: dict[str, Any]) -> Site:
    try:
        return _state().update_site(site_id, patch)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.delete("/api/sites/{site_id}", status_code=204)
def delete_site(site_id: str) -> None:
    try:
        _state().delete_site(site_id)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.get("/api/sites/{site_id}/relations", response_model=SiteRelations)
def get_site_relations(site_id: str) -> SiteRelations:
    try:
        return _state().relations(site_id)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.get("/api/layers")
def get_layers() -> dict:
    state = _state()
    return {
        "options": [o.model_dump() for o in state.settings.sites.icon_options],
        "visible": sorted(state.visible_types),
    }


@router.post("/api/layers/{layer_type}/toggle")
def toggle_layer(layer_type: str) -> dict:
    return {"type": layer_type, "visible": _state().toggle_layer(layer_type)}


@router.get("/api/regions", response_model=list[Region])
def list_regions() -> list[Region]:
    return _state().regions.all()


@router.post("/api/regions", response_model=Region, status_code=201)
def post_region(draft: RegionDraft) -> Region:
    try:
        return _state().add_region(draft)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.post("/api/regions/{code}/select", response_model=Region)
def select_region(code: str) -> Region:
    try:
        return _state().select_region(code)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.get("/api/customer", response_model=CustomerLocation | None)
def get_customer() -> CustomerLocation | None:
    return _state().customer_location


@router.put("/api/customer", response_model=CustomerLocation)
def put_customer(payload: CustomerPayload) -> CustomerLocation:
    state = _state()
    name = payload.name or state.settings.sites.default_customer_name
    try:
        return state.set_customer_location(payload.lat, payload.lng, name)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.delete("/api/customer", status_code=204)
def delete_customer() -> None:
    _state().clear_customer_location()


@router.put("/api/user-location", response_model=UserLocation)
def put_user_location(location: dict[str, Any]) -> UserLocation:
    """Store the position reported by the browser's geolocation API."""
    try:
        return _state().set_user_location(location)
    except SiteMapperError as e:
        raise _http_error(e) from e


@router.post("/api/import/{fmt}", response_model=ImportResult)
async def post_import(
    fmt: Literal["json", "csv"],
    request: Request,
    mode: Literal["append", "replace"] = Query("append"),
) -> ImportResult:
    """Import the raw request body (file content) as JSON or CSV."""
    text = (await request.body()).decode("utf-8", errors="replace")
    state = _state()
    try:
        imported = state.import_json(text, mode) if fmt == "json" else state.import_csv(text, mode)
    except SiteMapperError as e:
        raise _http_error(e) from e
    return ImportResult(mode=mode, imported=len(imported), total=len(state.sites))


@router.get("/api/export/json")
def export_json() -> PlainTextResponse:
    filename = export_filename("json")
    return PlainTextResponse(
        _state().export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/export/csv")
def export_csv() -> PlainTextResponse:
    filename = export_filename("csv")
    return PlainTextResponse(
        _state().export_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/export/csv-template")
def export_csv_template(sample: bool = True) -> PlainTextResponse:
    filename = export_filename("csv_sample" if sample else "csv_empty")
    return PlainTextResponse(
        _state().export_csv_template(include_sample_row=sample),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/measurement", response_model=MeasurementView)
def get_measurement() -> MeasurementView:
    return _measurement_view(_state())


@router.post("/api/measurement/toggle", response_model=MeasurementView)
def toggle_measurement() -> MeasurementView:
    state = _state()
    state.toggle_measurement()
    return _measurement_view(state)


@router.post("/api/measurement/clear", response_model=MeasurementView)
def clear_measurement() -> MeasurementView:
    state = _state()
    state.measurement.clear()
    return _measurement_view(state)


@router.post("/api/measurement/points", response_model=MeasurementView)
def add_measurement_point(point: PointPayload) -> MeasurementView:
    state = _state()
    if not state.measurement.is_measuring:
        raise HTTPException(
            status_code=409,
            detail={"code": "NOT_MEASURING", "message": "measurement tool is not active"},
        )
    try:
        state.measurement.add_point(point.lat, point.lng)
    except SiteMapperError as e:
        raise _http_error(e) from e
    return _measurement_view(state)


@router.post("/api/geo/relation", response_model=RelationResult)
def post_relation(query: RelationQuery) -> RelationResult:
    """Distance and initial bearing from `origin` to `target`."""
    o, t = query.origin, query.target
    try:
        b = bearing_deg(o.lat, o.lng, t.lat, t.lng)
        d = distance_km(o.lat, o.lng, t.lat, t.lng)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)}) from e
    return RelationResult(distance_km=d, bearing_deg=b, cardinal=cardinal(b))


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return safe-to-expose settings for UI defaults (storage and API wiring removed)."""
    state = _state()
    data = state.settings.model_dump(mode="json")
    data.pop("storage", None)
    data.pop("api", None)
    data["language"] = state.language
    region = state.current_region
    data["current_region"] = region.model_dump(mode="json") if region else None
    return data


@router.put("/api/settings/language")
def put_language(payload: dict[str, str]) -> dict:
    try:
        return {"language": _state().set_language(payload.get("language", ""))}
    except SiteMapperError as e:
        raise _http_error(e) from e
