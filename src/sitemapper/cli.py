"""
SiteMapper CLI entrypoint.

Handy for bulk jobs and debugging without the map UI. State is read from and
written to the configured store (default: `.data/sitemapper`), so successive
commands see each other's changes.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from sitemapper.catalog.exchange import export_json
from sitemapper.config.settings import get_settings
from sitemapper.core.errors import SiteMapperError, ValidationError
from sitemapper.core.geo import bearing_deg, cardinal, distance_km, parse_coordinate
from sitemapper.core.logging import configure_logging
from sitemapper.core.store import build_store
from sitemapper.domain.models import RegionDraft, Site, SiteDraft
from sitemapper.state.app_state import AppState


def _load_state() -> AppState:
    settings = get_settings()
    return AppState.load(build_store(settings), settings=settings)


def _print_sites(sites: list[Site], as_json: bool) -> None:
    if as_json:
        print(json.dumps(json.loads(export_json(sites)), ensure_ascii=False, indent=2))
        return
    for s in sites:
        label = f" [{s.category}]" if s.category else ""
        print(f"{s.id}  {s.name}{label}  ({s.lat:.6f}, {s.lng:.6f})  {s.type}/{s.icon}")
    print(f"{len(sites)} site(s)")


def _points(args: argparse.Namespace) -> tuple[float, float, float, float]:
    values = []
    for name in ("lat1", "lng1", "lat2", "lng2"):
        v = parse_coordinate(getattr(args, name))
        if v is None:
            raise ValidationError(f"{name} must be a finite number", field=name)
        values.append(v)
    return values[0], values[1], values[2], values[3]


def _cmd_distance(args: argparse.Namespace) -> int:
    d = distance_km(*_points(args))
    print(f"{d:.2f} km")
    return 0


def _cmd_bearing(args: argparse.Namespace) -> int:
    b = bearing_deg(*_points(args))
    print(f"{b:.0f}° ({cardinal(b)})")
    return 0


def _cmd_sites_list(args: argparse.Namespace) -> int:
    state = _load_state()
    _print_sites(state.search_sites(args.query), args.json)
    return 0


def _cmd_sites_add(args: argparse.Namespace) -> int:
    state = _load_state()
    settings = state.settings
    site = state.add_site(
        SiteDraft(
            name=args.name,
            lat=args.lat,
            lng=args.lng,
            type=args.type or settings.sites.default_type,
            icon=args.icon or args.type or settings.sites.default_icon,
            category=args.category or "",
            notes=args.notes or "",
        )
    )
    print(site.id)
    return 0


def _cmd_sites_remove(args: argparse.Namespace) -> int:
    state = _load_state()
    site = state.delete_site(args.id)
    print(f"removed {site.id} ({site.name})")
    return 0


def _cmd_sites_show(args: argparse.Namespace) -> int:
    state = _load_state()
    site = state.sites.get(args.id)
    rel = state.relations(site.id)
    payload: dict[str, Any] = {
        "site": json.loads(export_json([site]))[0],
        "relations": rel.model_dump(mode="json", exclude_none=True),
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    state = _load_state()
    path = Path(args.file)
    text = path.read_text(encoding="utf-8-sig")
    fmt = args.format or ("csv" if path.suffix.lower() == ".csv" else "json")
    imported = state.import_csv(text, args.mode) if fmt == "csv" else state.import_json(text, args.mode)
    print(f"imported {len(imported)} site(s) ({args.mode}); registry now holds {len(state.sites)}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    state = _load_state()
    text = state.export_csv() if args.format == "csv" else state.export_json()
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        print(f"wrote {args.out}")
    else:
        print(text)
    return 0


def _cmd_template(args: argparse.Namespace) -> int:
    text = _load_state().export_csv_template(include_sample_row=not args.empty)
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
        print(f"wrote {args.out}")
    else:
        print(text)
    return 0


def _cmd_regions_list(_: argparse.Namespace) -> int:
    for r in _load_state().regions:
        print(f"{r.code:<4} {r.name:<20} ({r.lat:.4f}, {r.lng:.4f}) zoom={r.zoom}")
    return 0


def _cmd_regions_add(args: argparse.Namespace) -> int:
    region = _load_state().add_region(
        RegionDraft(name=args.name, lat=args.lat, lng=args.lng, zoom=args.zoom, code=args.code)
    )
    print(f"added {region.code} ({region.name})")
    return 0


def _cmd_customer_set(args: argparse.Namespace) -> int:
    state = _load_state()
    customer = state.set_customer_location(
        args.lat, args.lng, args.name or state.settings.sites.default_customer_name
    )
    print(f"customer set: {customer.name} ({customer.lat:.6f}, {customer.lng:.6f})")
    return 0


def _cmd_customer_clear(_: argparse.Namespace) -> int:
    _load_state().clear_customer_location()
    print("customer cleared")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("sitemapper.api.app:app", host=args.host, port=int(args.port), reload=bool(args.reload))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the SiteMapper CLI."""
    parser = argparse.ArgumentParser(prog="sitemapper")
    parser.add_argument("--log-level", type=str, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    for name, func, help_text in [
        ("distance", _cmd_distance, "Great-circle distance (km) between two points."),
        ("bearing", _cmd_bearing, "Initial bearing (degrees + cardinal) from point 1 to point 2."),
    ]:
        p = sub.add_parser(name, help=help_text)
        for arg in ("lat1", "lng1", "lat2", "lng2"):
            p.add_argument(arg)
        p.set_defaults(func=func)

    sites = sub.add_parser("sites", help="Manage the site registry.")
    sites_sub = sites.add_subparsers(dest="sites_command", required=True)

    ls = sites_sub.add_parser("list", help="List sites (optionally filtered by a search query).")
    ls.add_argument("--query", "-q", type=str, default=None)
    ls.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    ls.set_defaults(func=_cmd_sites_list)

    add = sites_sub.add_parser("add", help="Add a site.")
    add.add_argument("name")
    add.add_argument("lat")
    add.add_argument("lng")
    add.add_argument("--type", type=str, default=None)
    add.add_argument("--icon", type=str, default=None)
    add.add_argument("--category", type=str, default=None)
    add.add_argument("--notes", type=str, default=None)
    add.set_defaults(func=_cmd_sites_add)

    rm = sites_sub.add_parser("remove", help="Delete a site by id.")
    rm.add_argument("id")
    rm.set_defaults(func=_cmd_sites_remove)

    show = sites_sub.add_parser("show", help="Show a site with distances to the user/customer.")
    show.add_argument("id")
    show.set_defaults(func=_cmd_sites_show)

    imp = sub.add_parser("import", help="Import sites from a JSON or CSV file.")
    imp.add_argument("file")
    imp.add_argument("--format", choices=["json", "csv"], default=None, help="Default: from file extension.")
    imp.add_argument("--mode", choices=["append", "replace"], default="append")
    imp.set_defaults(func=_cmd_import)

    exp = sub.add_parser("export", help="Export all sites.")
    exp.add_argument("--format", choices=["json", "csv"], default="json")
    exp.add_argument("--out", type=str, default=None)
    exp.set_defaults(func=_cmd_export)

    tpl = sub.add_parser("template", help="Write the CSV import template.")
    tpl.add_argument("--empty", action="store_true", help="Header only, no sample row.")
    tpl.add_argument("--out", type=str, default=None)
    tpl.set_defaults(func=_cmd_template)

    regions = sub.add_parser("regions", help="Manage map regions.")
    regions_sub = regions.add_subparsers(dest="regions_command", required=True)
    rls = regions_sub.add_parser("list")
    rls.set_defaults(func=_cmd_regions_list)
    radd = regions_sub.add_parser("add")
    radd.add_argument("name")
    radd.add_argument("lat")
    radd.add_argument("lng")
    radd.add_argument("--zoom", type=str, default=None)
    radd.add_argument("--code", type=str, default=None)
    radd.set_defaults(func=_cmd_regions_add)

    customer = sub.add_parser("customer", help="Set or clear the customer location.")
    customer_sub = customer.add_subparsers(dest="customer_command", required=True)
    cset = customer_sub.add_parser("set")
    cset.add_argument("lat")
    cset.add_argument("lng")
    cset.add_argument("--name", type=str, default=None)
    cset.set_defaults(func=_cmd_customer_set)
    cclr = customer_sub.add_parser("clear")
    cclr.set_defaults(func=_cmd_customer_clear)

    srv = sub.add_parser("serve", help="Run the HTTP API (uvicorn).")
    srv.add_argument("--host", type=str, default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--reload", action="store_true")
    srv.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m sitemapper.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except SiteMapperError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
