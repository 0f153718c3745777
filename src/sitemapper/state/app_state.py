"""
Application state (composition root).

`AppState` owns one `SiteRegistry`, one `RegionCatalog`, at most one user location,
at most one customer location and one `MeasurementSession`. Every UI action maps to
one method here. Each committed change is written to the injected key-value store
right away; a failing write is logged and never rolls back the in-memory change.

Selection and the edit buffer are views over a site id, not copies: reading
`selected_site` always looks the record up again, and deleting or replacing the
record clears them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping

from pydantic import ValidationError as PydanticValidationError

from sitemapper.catalog import exchange
from sitemapper.config.settings import Settings, get_settings
from sitemapper.core.errors import (
    LocationUnavailableError,
    NotFoundError,
    ParseError,
    ValidationError,
    describe_pydantic_error,
)
from sitemapper.core.geo import bearing_deg, cardinal, distance_km, parse_coordinate
from sitemapper.core.store import KeyValueStore
from sitemapper.domain.models import (
    CustomerLocation,
    Region,
    RegionDraft,
    Site,
    SiteDraft,
    SiteRelations,
    UserLocation,
)
from sitemapper.registry.regions import RegionCatalog
from sitemapper.registry.sites import SiteRegistry
from sitemapper.state.measurement import MeasurementSession

logger = logging.getLogger(__name__)

# A device-location provider returns the current position or raises.
LocationProvider = Callable[[], "UserLocation | Mapping[str, Any]"]


@dataclass(frozen=True)
class StorageKeys:
    sites: str
    language: str
    regions: str
    customer: str
    user_location: str

    @classmethod
    def for_prefix(cls, prefix: str) -> "StorageKeys":
        return cls(
            sites=f"{prefix}_sites",
            language=f"{prefix}_lang",
            regions=f"{prefix}_countries",
            customer=f"{prefix}_customer",
            user_location=f"{prefix}_user_location",
        )


def _read_json_slot(store: KeyValueStore, key: str) -> Any | None:
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("ignoring corrupt store slot key=%s", key)
        return None


def _load_regions(store: KeyValueStore, key: str, default_zoom: int) -> RegionCatalog | None:
    payload = _read_json_slot(store, key)
    if not isinstance(payload, list):
        return None
    regions: list[Region] = []
    for item in payload:
        try:
            regions.append(Region.model_validate(item))
        except PydanticValidationError:
            logger.warning("ignoring invalid stored region: %r", item)
    return RegionCatalog(regions, default_zoom=default_zoom)


def _load_sites(store: KeyValueStore, key: str, default_type: str) -> SiteRegistry:
    raw = store.get(key)
    if raw is None:
        return SiteRegistry()
    try:
        return SiteRegistry(exchange.import_json(raw, default_type=default_type))
    except ParseError:
        logger.warning("ignoring corrupt store slot key=%s", key)
        return SiteRegistry()


def _load_location(store: KeyValueStore, key: str, model: type) -> Any | None:
    payload = _read_json_slot(store, key)
    if payload is None:
        return None
    try:
        return model.model_validate(payload)
    except PydanticValidationError:
        logger.warning("ignoring invalid stored location key=%s", key)
        return None


class AppState:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        settings: Settings | None = None,
        sites: SiteRegistry | None = None,
        regions: RegionCatalog | None = None,
        language: str | None = None,
        customer_location: CustomerLocation | None = None,
        user_location: UserLocation | None = None,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self.keys = StorageKeys.for_prefix(self._settings.storage.key_prefix)

        self.sites = sites if sites is not None else SiteRegistry()
        self.regions = regions if regions is not None else RegionCatalog.seeded(
            default_zoom=self._settings.regions.default_zoom
        )
        self.measurement = MeasurementSession()

        self._language = language or self._settings.i18n.default_language
        self._customer = customer_location
        self._user_location = user_location

        self._selected_id: str | None = None
        self._edit_id: str | None = None
        self._edit_buffer: dict[str, Any] | None = None
        self._region_code: str | None = None
        self._visible_types: set[str] = set(self._settings.sites.icon_values)
        self.draft = self._blank_draft()

    @classmethod
    def load(cls, store: KeyValueStore, settings: Settings | None = None) -> "AppState":
        """Restore state from the store; seeds (and persists) the region catalog on first run."""
        settings = settings or get_settings()
        keys = StorageKeys.for_prefix(settings.storage.key_prefix)

        regions = _load_regions(store, keys.regions, settings.regions.default_zoom)
        seeded = regions is None

        state = cls(
            store,
            settings=settings,
            sites=_load_sites(store, keys.sites, settings.sites.default_type),
            regions=regions,
            language=store.get(keys.language) or None,
            customer_location=_load_location(store, keys.customer, CustomerLocation),
            user_location=_load_location(store, keys.user_location, UserLocation),
        )
        if seeded:
            logger.info("seeding region catalog with %d presets", len(state.regions))
            state._persist_regions()
        logger.debug("state loaded sites=%d regions=%d", len(state.sites), len(state.regions))
        return state

    @property
    def settings(self) -> Settings:
        return self._settings

    # --- persistence ---

    def _write(self, key: str, value: str | None) -> None:
        try:
            if value is None:
                self._store.delete(key)
            else:
                self._store.set(key, value)
        except Exception as e:
            logger.warning("store write failed key=%s: %s", key, e)

    def _persist_sites(self) -> None:
        self._write(self.keys.sites, exchange.export_json(self.sites.all()))

    def _persist_regions(self) -> None:
        payload = [r.model_dump(mode="json") for r in self.regions.all()]
        self._write(self.keys.regions, json.dumps(payload, ensure_ascii=False))

    def _persist_customer(self) -> None:
        value = self._customer.model_dump_json() if self._customer else None
        self._write(self.keys.customer, value)

    # --- sites ---

    def _blank_draft(self) -> SiteDraft:
        return SiteDraft(type=self._settings.sites.default_type, icon=self._settings.sites.default_icon)

    def add_site(self, draft: SiteDraft | Mapping[str, Any] | None = None) -> Site:
        """Add a site from `draft` (or the pending form draft, which is then reset)."""
        from_form = draft is None
        site = self.sites.add(self.draft if from_form else draft)
        if from_form:
            self.draft = self._blank_draft()
        self._persist_sites()
        return site

    def update_site(self, site_id: str, patch: Mapping[str, Any]) -> Site:
        site = self.sites.update(site_id, patch)
        self._persist_sites()
        return site

    def update_notes(self, site_id: str, notes: str) -> Site:
        site = self.sites.update_notes(site_id, notes)
        self._persist_sites()
        return site

    def delete_site(self, site_id: str) -> Site:
        site = self.sites.remove(site_id)
        self._heal_views()
        self._persist_sites()
        return site

    def search_sites(self, query: str | None) -> list[Site]:
        return self.sites.search(query)

    def _heal_views(self) -> None:
        if self._selected_id is not None and self._selected_id not in self.sites:
            self._selected_id = None
        if self._edit_id is not None and self._edit_id not in self.sites:
            self._edit_id = None
            self._edit_buffer = None

    # --- selection + edit buffer ---

    @property
    def selected_site(self) -> Site | None:
        if self._selected_id is None:
            return None
        site = self.sites.find(self._selected_id)
        if site is None:
            self._selected_id = None
        return site

    def select_site(self, site_id: str) -> Site:
        site = self.sites.get(site_id)
        if self._edit_id is not None and self._edit_id != site_id:
            self.cancel_edit()
        self._selected_id = site_id
        return site

    def clear_selection(self) -> None:
        self._selected_id = None
        self.cancel_edit()

    @property
    def is_editing(self) -> bool:
        return self._edit_buffer is not None

    @property
    def edit_buffer(self) -> dict[str, Any] | None:
        self._heal_views()
        return dict(self._edit_buffer) if self._edit_buffer is not None else None

    def begin_edit(self, site_id: str | None = None) -> dict[str, Any]:
        target = site_id or self._selected_id
        if target is None:
            raise ValidationError("no site selected")
        site = self.select_site(target)
        self._edit_id = site.id
        self._edit_buffer = site.model_dump()
        return dict(self._edit_buffer)

    def set_edit_field(self, name: str, value: Any) -> None:
        self._heal_views()
        if self._edit_buffer is None:
            raise ValidationError("not editing")
        if name == "id":
            raise ValidationError("id cannot be edited", field="id")
        self._edit_buffer[name] = value

    def save_edit(self) -> Site:
        self._heal_views()
        if self._edit_id is None or self._edit_buffer is None:
            raise ValidationError("not editing")
        site = self.update_site(self._edit_id, self._edit_buffer)
        self._edit_id = None
        self._edit_buffer = None
        return site

    def cancel_edit(self) -> None:
        self._edit_id = None
        self._edit_buffer = None

    # --- map interaction ---

    def pick_coordinates(self, lat: float, lng: float) -> SiteDraft:
        """Map click outside measurement: fill the add-site draft and drop the selection."""
        plat = parse_coordinate(lat)
        plng = parse_coordinate(lng)
        if plat is None or plng is None:
            raise ValidationError("coordinates must be numbers")
        self.draft = self.draft.model_copy(update={"lat": f"{plat:.6f}", "lng": f"{plng:.6f}"})
        self.clear_selection()
        return self.draft

    def map_click(self, lat: float, lng: float) -> Literal["measure", "pick"]:
        if self.measurement.is_measuring:
            self.measurement.add_point(lat, lng)
            return "measure"
        self.pick_coordinates(lat, lng)
        return "pick"

    def toggle_measurement(self) -> bool:
        return self.measurement.toggle()

    # --- layers ---

    @property
    def visible_types(self) -> set[str]:
        return set(self._visible_types)

    def toggle_layer(self, layer_type: str) -> bool:
        """Flip visibility of one icon type; returns True when now visible."""
        if layer_type in self._visible_types:
            self._visible_types.discard(layer_type)
            return False
        self._visible_types.add(layer_type)
        return True

    def visible_sites(self) -> list[Site]:
        return self.sites.filter_by_visible_types(self._visible_types)

    # --- locations ---

    @property
    def customer_location(self) -> CustomerLocation | None:
        return self._customer

    def set_customer_location(self, lat: Any, lng: Any, name: str | None = None) -> CustomerLocation:
        plat = parse_coordinate(lat)
        plng = parse_coordinate(lng)
        if plat is None or plng is None:
            raise ValidationError("customer coordinates must be numbers")
        try:
            customer = CustomerLocation(lat=plat, lng=plng, name=name)
        except PydanticValidationError as e:
            raise ValidationError(describe_pydantic_error(e)) from e
        self._customer = customer
        self._persist_customer()
        return customer

    def set_customer_from_draft(self) -> CustomerLocation:
        """Use the pending draft's coordinates (and name) as the customer location."""
        if parse_coordinate(self.draft.lat) is None or parse_coordinate(self.draft.lng) is None:
            raise ValidationError("select coordinates on the map or enter them first")
        name = self.draft.name.strip() or self._settings.sites.default_customer_name
        return self.set_customer_location(self.draft.lat, self.draft.lng, name)

    def clear_customer_location(self) -> None:
        self._customer = None
        self._persist_customer()

    @property
    def user_location(self) -> UserLocation | None:
        return self._user_location

    def set_user_location(self, location: UserLocation | Mapping[str, Any]) -> UserLocation:
        try:
            loc = location if isinstance(location, UserLocation) else UserLocation.model_validate(dict(location))
        except PydanticValidationError as e:
            raise ValidationError(describe_pydantic_error(e)) from e
        self._user_location = loc
        self._write(self.keys.user_location, loc.model_dump_json())
        return loc

    def locate_user(self, provider: LocationProvider) -> UserLocation:
        """One-shot device-location query; the previous location survives a failure."""
        try:
            reported = provider()
        except Exception as e:
            logger.warning("device location unavailable: %s", e)
            raise LocationUnavailableError(str(e) or "could not access location") from e
        try:
            return self.set_user_location(reported)
        except ValidationError as e:
            raise LocationUnavailableError(f"provider reported an invalid position: {e}") from e

    def relations(self, site_id: str | None = None) -> SiteRelations:
        """Distance/bearing from the user and the customer to a site (default: the selection)."""
        if site_id is None:
            selected = self.selected_site
            if selected is None:
                raise ValidationError("no site selected")
            site = selected
        else:
            site = self.sites.get(site_id)

        out = SiteRelations(site_id=site.id)
        if self._user_location is not None:
            u = self._user_location
            out.distance_from_user_km = distance_km(u.lat, u.lng, site.lat, site.lng)
        if self._customer is not None:
            c = self._customer
            b = bearing_deg(c.lat, c.lng, site.lat, site.lng)
            out.distance_from_customer_km = distance_km(c.lat, c.lng, site.lat, site.lng)
            out.bearing_from_customer_deg = b
            out.cardinal_from_customer = cardinal(b)
        return out

    # --- language ---

    @property
    def language(self) -> str:
        return self._language

    def set_language(self, code: str) -> str:
        code = (code or "").strip()
        if code not in self._settings.i18n.languages:
            raise ValidationError(
                f"unsupported language {code!r}; expected one of {self._settings.i18n.languages}",
                field="language",
            )
        self._language = code
        self._write(self.keys.language, code)
        return code

    # --- regions ---

    @property
    def current_region(self) -> Region | None:
        if self._region_code is not None:
            region = self.regions.find_by_code(self._region_code)
            if region is not None:
                return region
        return self.regions.default()

    def select_region(self, code: str) -> Region:
        region = self.regions.find_by_code(code)
        if region is None:
            raise NotFoundError("region", code)
        self._region_code = region.code
        return region

    def add_region(self, draft: RegionDraft | Mapping[str, Any]) -> Region:
        region = self.regions.add(draft)
        self._region_code = region.code
        self._persist_regions()
        return region

    # --- import / export ---

    def import_json(self, text: str, mode: str = "append") -> list[Site]:
        if mode not in exchange.IMPORT_MODES:
            raise ValidationError(f"Unsupported import mode {mode!r}", field="mode")
        parsed = exchange.import_json(text, default_type=self._settings.sites.default_type)
        imported = exchange.apply_import(self.sites, parsed, mode)
        self._heal_views()
        self._persist_sites()
        return imported

    def import_csv(self, text: str, mode: str = "append") -> list[Site]:
        if mode not in exchange.IMPORT_MODES:
            raise ValidationError(f"Unsupported import mode {mode!r}", field="mode")
        parsed = exchange.import_csv(text, default_type=self._settings.sites.default_type)
        imported = exchange.apply_import(self.sites, parsed, mode)
        self._heal_views()
        self._persist_sites()
        return imported

    def export_json(self) -> str:
        return exchange.export_json(self.sites.all())

    def export_csv(self) -> str:
        return exchange.export_csv(self.sites.all())

    def export_csv_template(self, include_sample_row: bool = True) -> str:
        return exchange.export_csv_template(include_sample_row)
