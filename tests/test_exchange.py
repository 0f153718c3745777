import json
from datetime import date

import pytest

from sitemapper.catalog import exchange
from sitemapper.core.errors import ParseError, ValidationError
from sitemapper.domain.models import SiteDraft
from sitemapper.registry.sites import SiteRegistry


def _registry() -> SiteRegistry:
    reg = SiteRegistry()
    reg.add(SiteDraft(name="Main Hub", lat=26.3351, lng=17.2283, category="Hub", notes="Primary site"))
    reg.add(SiteDraft(name="Relay 7", lat=-1.5, lng=36.8, type="radio", icon="radio", metadata={"height_m": 42, "owner": {"name": "ACME"}}))
    return reg


def test_json_replace_round_trip_reproduces_registry():
    reg = _registry()
    text = exchange.export_json(reg.all())

    target = SiteRegistry()
    target.add(SiteDraft(name="to be discarded", lat=0, lng=0))
    exchange.apply_import(target, exchange.import_json(text), "replace")

    assert target.all() == reg.all()


def test_json_import_keeps_unknown_fields_and_fills_missing_id():
    text = json.dumps([{"name": "Legacy", "lat": 1, "lng": 2, "type": "signal", "icon": "signal", "vendor": "Nokia"}])
    sites = exchange.import_json(text)
    assert len(sites) == 1
    assert sites[0].id
    assert sites[0].extras == {"vendor": "Nokia"}
    out = json.loads(exchange.export_json(sites))
    assert out[0]["vendor"] == "Nokia"


def test_json_export_preserves_metadata():
    payload = json.loads(exchange.export_json(_registry().all()))
    assert payload[1]["metadata"] == {"height_m": 42, "owner": {"name": "ACME"}}
    assert set(payload[0]) >= {"id", "name", "lat", "lng", "type", "icon", "category", "notes"}


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "{\"a\": 1}",
        "42",
        "",
        "[1, 2]",
        # Objects the map cannot place at all.
        "[{\"name\": \"\", \"lat\": 1, \"lng\": 1}]",
        "[{\"name\": \"x\", \"lat\": 95, \"lng\": 1}]",
        "[{\"name\": \"x\", \"lng\": 1}]",
    ],
)
def test_json_import_parse_errors(text):
    with pytest.raises(ParseError):
        exchange.import_json(text)


def test_json_import_keeps_loosely_typed_objects():
    text = json.dumps(
        [
            {"id": "a", "name": "Notes as number", "lat": 1, "lng": 2, "notes": 5},
            {"id": "b", "name": "Null type", "lat": 1, "lng": 2, "type": None, "icon": 7},
            {"id": "c", "name": "List metadata", "lat": 1, "lng": 2, "metadata": ["x"], "category": {"k": 1}},
        ]
    )
    sites = exchange.import_json(text)
    assert [s.id for s in sites] == ["a", "b", "c"]
    assert sites[0].notes == 5
    assert (sites[1].type, sites[1].icon) == ("tower", "7")
    assert sites[2].metadata == ["x"]
    assert sites[2].category == {"k": 1}

    # Loose values go back out unchanged.
    out = json.loads(exchange.export_json(sites))
    assert out[0]["notes"] == 5
    assert out[2]["metadata"] == ["x"]


def test_json_round_trip_keeps_null_extras_and_nested_nulls():
    text = json.dumps([{"id": "a", "name": "A", "lat": 1, "lng": 2, "vendor": None, "metadata": {"k": None}}])
    out = json.loads(exchange.export_json(exchange.import_json(text)))
    assert "vendor" in out[0] and out[0]["vendor"] is None
    assert out[0]["metadata"] == {"k": None}
    # Unset declared optionals stay out of the export.
    assert "notes" not in out[0] and "category" not in out[0]


def test_json_append_adds_to_existing():
    reg = _registry()
    extra = exchange.import_json(json.dumps([{"id": "x1", "name": "Extra", "lat": 3, "lng": 4}]))
    exchange.apply_import(reg, extra, "append")
    assert len(reg) == 3
    assert reg.find("x1").name == "Extra"


def test_csv_template_with_and_without_sample_row():
    full = exchange.export_csv_template(include_sample_row=True).split("\n")
    empty = exchange.export_csv_template(include_sample_row=False).split("\n")
    assert full[0] == "name,latitude,longitude,type,icon,notes,category"
    assert len(full) == 2
    assert empty == [full[0]]


def test_csv_template_sample_row_imports_cleanly():
    sites = exchange.import_csv(exchange.export_csv_template(include_sample_row=True))
    assert len(sites) == 1
    s = sites[0]
    assert (s.name, s.lat, s.lng, s.type, s.icon, s.notes, s.category) == (
        "Main Hub",
        26.3351,
        17.2283,
        "tower",
        "tower",
        "Primary site for region",
        "Hub",
    )


def test_csv_import_drops_malformed_row_and_appends_valid_one():
    reg = _registry()
    n = len(reg)
    text = "name,latitude,longitude,type,icon,notes,category\nGood,10.5,20.25,radio,radio,ok,A\nBad,north,20.0,radio,radio,,B"
    exchange.apply_import(reg, exchange.import_csv(text), "append")
    assert len(reg) == n + 1
    assert reg.all()[-1].name == "Good"


def test_csv_import_header_aliases_case_and_defaults():
    text = " Name , LAT , Lng \r\nAlpha, 1.5 , 2.5 \r\n\r\n,3,4\r\nBeta,5,6\r\n"
    sites = exchange.import_csv(text)
    assert [s.name for s in sites] == ["Alpha", "Beta"]
    assert sites[0].lat == 1.5 and sites[0].lng == 2.5
    assert (sites[0].type, sites[0].icon, sites[0].category, sites[0].notes) == ("tower", "tower", "", "")
    assert sites[0].id != sites[1].id


def test_csv_import_tolerates_bom_and_short_rows():
    text = "\ufeffname,latitude,longitude\nOnly Name\nFull,1,2"
    sites = exchange.import_csv(text)
    assert [s.name for s in sites] == ["Full"]


def test_csv_import_edge_inputs():
    assert exchange.import_csv("") == []
    assert exchange.import_csv("name,latitude,longitude") == []
    # No name column: every row is dropped.
    assert exchange.import_csv("title,lat,lng\nX,1,2") == []
    # Out-of-range coordinates are dropped.
    assert exchange.import_csv("name,lat,lng\nX,91,2") == []


def test_csv_replace_discards_existing():
    reg = _registry()
    exchange.apply_import(reg, exchange.import_csv("name,lat,lng\nOnly,1,1"), "replace")
    assert [s.name for s in reg.all()] == ["Only"]


def test_csv_export_is_importable():
    reg = _registry()
    reg.add(SiteDraft(name="Comma, Site", lat=1, lng=2, notes="a,b"))
    sites = exchange.import_csv(exchange.export_csv(reg.all()))
    assert [s.name for s in sites] == ["Main Hub", "Relay 7", "Comma Site"]
    assert sites[1].lat == -1.5


def test_apply_import_rejects_unknown_mode():
    reg = _registry()
    with pytest.raises(ValidationError):
        exchange.apply_import(reg, [], "merge")
    assert len(reg) == 2


def test_export_filenames():
    assert exchange.export_filename("json", date(2026, 10, 19)) == "tower_data_2026-10-19.json"
    assert exchange.export_filename("csv_sample") == "tower_template_sample.csv"
    assert exchange.export_filename("csv_empty") == "tower_template_empty.csv"
