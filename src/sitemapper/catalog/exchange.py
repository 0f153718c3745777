"""
Site import/export (JSON + CSV).

Formats:
- JSON: an array of Site objects, field names as in `Site`. Import is permissive:
  every object is kept with its values (extra keys too, a missing `id` filled in).
  Text that is not JSON, not an array of objects, or an object without a usable
  name and coordinates is a `ParseError`; nothing is dropped silently.
- CSV: header `name,latitude,longitude,type,icon,notes,category`. Parsing is a naive
  comma split (no quoting), so values cannot contain commas. Rows without a name or
  with unusable coordinates are dropped silently.

Both importers return new `Site` objects; `apply_import` merges them into a registry
using the `append` or `replace` policy.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Literal

from pydantic import ValidationError as PydanticValidationError

from sitemapper.core.errors import ParseError, ValidationError, describe_pydantic_error
from sitemapper.core.geo import parse_coordinate
from sitemapper.domain.models import Site
from sitemapper.registry.sites import SiteRegistry, new_site_id

logger = logging.getLogger(__name__)

ImportMode = Literal["append", "replace"]
IMPORT_MODES: tuple[str, ...] = ("append", "replace")

CSV_HEADERS: tuple[str, ...] = ("name", "latitude", "longitude", "type", "icon", "notes", "category")
CSV_SAMPLE_ROW = "Main Hub,26.3351,17.2283,tower,tower,Primary site for region,Hub"
DEFAULT_SITE_TYPE = "tower"


# Declared optional fields that are left out of an export when unset.
_OMIT_WHEN_NONE: tuple[str, ...] = ("category", "notes", "metadata")


def export_json(sites: list[Site]) -> str:
    """Serialize sites as a JSON array (extras + metadata included as-is)."""
    payload = [
        s.model_dump(mode="json", exclude={k for k in _OMIT_WHEN_NONE if getattr(s, k) is None})
        for s in sites
    ]
    return json.dumps(payload, ensure_ascii=False)


def _loosen_item(item: dict[str, Any], default_type: str) -> dict[str, Any]:
    record = dict(item)
    if not str(record.get("id") or "").strip():
        record["id"] = new_site_id()
    else:
        record["id"] = str(record["id"])
    if isinstance(record.get("name"), (int, float)) and not isinstance(record.get("name"), bool):
        record["name"] = str(record["name"])
    # Layer keys must stay hashable strings.
    for key in ("type", "icon"):
        if key in record and not isinstance(record[key], str):
            record[key] = default_type if record[key] is None else str(record[key])
    return record


def import_json(text: str, *, default_type: str = DEFAULT_SITE_TYPE) -> list[Site]:
    """Decode a JSON export into Site objects.

    Every object is kept. Only a record that cannot be placed on the map at all
    (no usable id/name/lat/lng) rejects the whole payload with a `ParseError`.
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid JSON file format: {e}") from e
    if not isinstance(payload, list):
        raise ParseError("Invalid JSON file format: expected an array of sites.")

    out: list[Site] = []
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ParseError(f"Invalid JSON file format: item {i} is not an object.")
        try:
            out.append(Site.model_validate(_loosen_item(item, default_type)))
        except PydanticValidationError as e:
            raise ParseError(f"Invalid JSON file format: item {i}: {describe_pydantic_error(e)}") from e
    logger.info("json import parsed=%d", len(out))
    return out


def export_csv_template(include_sample_row: bool = True) -> str:
    """Header row plus, optionally, one illustrative data row."""
    rows = [",".join(CSV_HEADERS)]
    if include_sample_row:
        rows.append(CSV_SAMPLE_ROW)
    return "\n".join(rows)


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    # The reader splits on every comma and strips line breaks.
    return " ".join(str(value).replace(",", " ").split())


def export_csv(sites: list[Site]) -> str:
    """Export sites in template column order (readable by `import_csv`)."""
    rows = [",".join(CSV_HEADERS)]
    for s in sites:
        rows.append(
            ",".join(
                _csv_cell(v)
                for v in (s.name, repr(s.lat), repr(s.lng), s.type, s.icon, s.notes, s.category)
            )
        )
    return "\n".join(rows)


def _first_present(row: dict[str, str], *keys: str) -> str | None:
    for k in keys:
        v = row.get(k)
        if v:
            return v
    return None


def import_csv(text: str, *, default_type: str = DEFAULT_SITE_TYPE) -> list[Site]:
    """Parse CSV rows into Site objects with fresh ids; malformed rows are dropped."""
    lines = (text or "").lstrip("\ufeff").split("\n")
    if len(lines) < 2:
        return []
    headers = [h.strip().lower() for h in lines[0].split(",")]

    out: list[Site] = []
    dropped = 0
    for line in lines[1:]:
        if not line.strip():
            continue
        values = [v.strip() for v in line.split(",")]
        row = {h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)}

        name = row.get("name") or ""
        lat = parse_coordinate(_first_present(row, "latitude", "lat"))
        lng = parse_coordinate(_first_present(row, "longitude", "lng"))
        if not name or lat is None or lng is None:
            dropped += 1
            continue
        try:
            site = Site(
                id=new_site_id(),
                name=name,
                lat=lat,
                lng=lng,
                type=row.get("type") or default_type,
                icon=row.get("icon") or default_type,
                category=row.get("category") or "",
                notes=row.get("notes") or "",
            )
        except PydanticValidationError:
            # Out-of-range coordinates.
            dropped += 1
            continue
        out.append(site)

    logger.info("csv import parsed=%d dropped=%d", len(out), dropped)
    return out


def apply_import(registry: SiteRegistry, sites: list[Site], mode: str = "append") -> list[Site]:
    """Merge imported sites: `append` extends, `replace` discards existing content."""
    if mode == "append":
        return registry.extend(sites)
    if mode == "replace":
        return registry.replace_all(sites)
    raise ValidationError(f"Unsupported import mode {mode!r}; expected one of {IMPORT_MODES}", field="mode")


def export_filename(kind: Literal["json", "csv_sample", "csv_empty", "csv"], today: date | None = None) -> str:
    """Suggested download file name for an export."""
    if kind == "csv_sample":
        return "tower_template_sample.csv"
    if kind == "csv_empty":
        return "tower_template_empty.csv"
    stamp = (today or date.today()).isoformat()
    ext = "json" if kind == "json" else "csv"
    return f"tower_data_{stamp}.{ext}"
