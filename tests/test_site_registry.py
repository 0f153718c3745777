import pytest

from sitemapper.core.errors import NotFoundError, ValidationError
from sitemapper.domain.models import SiteDraft
from sitemapper.registry.sites import SiteRegistry


def _registry_with_sites() -> SiteRegistry:
    reg = SiteRegistry()
    reg.add(SiteDraft(name="Tripoli Hub", lat="32.8872", lng="13.1913", type="tower", icon="tower", category="Hub"))
    reg.add(SiteDraft(name="Benghazi Relay", lat=32.1167, lng=20.0667, type="radio", icon="radio", notes="rooftop mast"))
    reg.add(SiteDraft(name="Sabha Depot", lat=27.0377, lng=14.4283, type="database", icon="database"))
    return reg


def test_add_assigns_unique_ids_and_keeps_order():
    reg = _registry_with_sites()
    names = [s.name for s in reg.all()]
    assert names == ["Tripoli Hub", "Benghazi Relay", "Sabha Depot"]
    ids = [s.id for s in reg.all()]
    assert len(set(ids)) == 3
    assert reg.all()[0].lat == pytest.approx(32.8872)


@pytest.mark.parametrize(
    "draft",
    [
        {"name": "", "lat": 1, "lng": 1},
        {"name": "   ", "lat": 1, "lng": 1},
        {"name": "x", "lat": None, "lng": 1},
        {"name": "x", "lat": "north", "lng": 1},
        {"name": "x", "lat": 1, "lng": ""},
        {"name": "x", "lat": "inf", "lng": 1},
        {"name": "x", "lat": 95, "lng": 1},
    ],
)
def test_add_invalid_draft_raises_and_leaves_registry_unchanged(draft):
    reg = _registry_with_sites()
    before = reg.all()
    with pytest.raises(ValidationError):
        reg.add(draft)
    assert reg.all() == before


def test_update_merges_fields_and_keeps_id():
    reg = _registry_with_sites()
    site = reg.all()[1]
    updated = reg.update(site.id, {"name": "Benghazi North", "id": "hijack", "lat": "32.2"})
    assert updated.id == site.id
    assert updated.name == "Benghazi North"
    assert updated.lat == pytest.approx(32.2)
    assert updated.notes == "rooftop mast"
    assert reg.find("hijack") is None
    # Order is unchanged by updates.
    assert [s.id for s in reg.all()][1] == site.id


def test_update_invalid_patch_is_not_applied():
    reg = _registry_with_sites()
    site = reg.all()[0]
    with pytest.raises(ValidationError):
        reg.update(site.id, {"name": "", "notes": "should not stick"})
    assert reg.find(site.id) == site


def test_update_unknown_id_raises_not_found():
    reg = _registry_with_sites()
    with pytest.raises(NotFoundError):
        reg.update("missing", {"name": "x"})


def test_update_notes():
    reg = _registry_with_sites()
    site = reg.all()[2]
    assert reg.update_notes(site.id, "generator on site").notes == "generator on site"


def test_remove_and_remove_unknown():
    reg = _registry_with_sites()
    target = reg.all()[0]
    assert reg.remove(target.id) == target
    assert target.id not in reg
    before = reg.all()
    with pytest.raises(NotFoundError):
        reg.remove(target.id)
    assert reg.all() == before


def test_search_is_case_insensitive_or_across_fields_and_ordered():
    reg = _registry_with_sites()
    assert [s.name for s in reg.search("HUB")] == ["Tripoli Hub"]
    assert [s.name for s in reg.search("rooftop")] == ["Benghazi Relay"]
    assert [s.name for s in reg.search("radio")] == ["Benghazi Relay"]
    # "o" hits two names and the "radio" type; result keeps insertion order.
    assert [s.name for s in reg.search("o")] == ["Tripoli Hub", "Benghazi Relay", "Sabha Depot"]
    assert reg.search("") == reg.all()
    assert reg.search(None) == reg.all()
    assert reg.search("no-such-site") == []


def test_search_restricted_fields():
    reg = _registry_with_sites()
    assert reg.search("rooftop", fields=["name"]) == []


def test_filter_by_visible_types():
    reg = _registry_with_sites()
    assert [s.name for s in reg.filter_by_visible_types({"tower", "database"})] == ["Tripoli Hub", "Sabha Depot"]
    assert reg.filter_by_visible_types(set()) == []


def test_extend_reassigns_colliding_ids():
    reg = _registry_with_sites()
    existing = reg.all()[0]
    added = reg.extend([existing])
    assert len(reg) == 4
    assert added[0].id != existing.id
    assert len({s.id for s in reg.all()}) == 4
