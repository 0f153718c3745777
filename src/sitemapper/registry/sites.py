"""
Site registry.

An in-memory, insertion-ordered collection of `Site` records. All writes either
fully succeed or leave the collection untouched: new/merged records are validated
into a fresh `Site` before anything is stored.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Iterator, Mapping

from pydantic import ValidationError as PydanticValidationError

from sitemapper.core.errors import NotFoundError, ValidationError, describe_pydantic_error
from sitemapper.core.geo import parse_coordinate
from sitemapper.domain.models import Site, SiteDraft

logger = logging.getLogger(__name__)

SEARCH_FIELDS: tuple[str, ...] = ("name", "type", "category", "notes")


def new_site_id() -> str:
    return str(uuid.uuid4())


def _build_site(payload: Mapping[str, Any]) -> Site:
    try:
        return Site.model_validate(dict(payload))
    except PydanticValidationError as e:
        raise ValidationError(describe_pydantic_error(e)) from e


class SiteRegistry:
    """Ordered Site collection keyed by id."""

    def __init__(self, sites: Iterable[Site] | None = None):
        self._sites: dict[str, Site] = {}
        if sites:
            self.extend(sites)

    def __len__(self) -> int:
        return len(self._sites)

    def __iter__(self) -> Iterator[Site]:
        return iter(list(self._sites.values()))

    def __contains__(self, site_id: object) -> bool:
        return site_id in self._sites

    def all(self) -> list[Site]:
        return list(self._sites.values())

    def find(self, site_id: str) -> Site | None:
        return self._sites.get(site_id)

    def get(self, site_id: str) -> Site:
        site = self._sites.get(site_id)
        if site is None:
            raise NotFoundError("site", site_id)
        return site

    def add(self, draft: SiteDraft | Mapping[str, Any]) -> Site:
        """Validate a form draft, assign a fresh id and append it."""
        if not isinstance(draft, SiteDraft):
            try:
                draft = SiteDraft.model_validate(dict(draft))
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

        site = _build_site(
            {
                "id": new_site_id(),
                "name": name,
                "lat": lat,
                "lng": lng,
                "type": draft.type,
                "icon": draft.icon,
                "category": draft.category,
                "notes": draft.notes,
                "metadata": draft.metadata,
            }
        )
        self._sites[site.id] = site
        logger.debug("site added id=%s name=%s", site.id, site.name)
        return site

    def update(self, site_id: str, patch: Mapping[str, Any]) -> Site:
        """Merge `patch` into the stored record; `id` is never changed."""
        current = self.get(site_id)
        changes = {k: v for k, v in dict(patch).items() if k != "id"}
        merged = {**current.model_dump(), **changes, "id": current.id}
        site = _build_site(merged)
        self._sites[site_id] = site
        logger.debug("site updated id=%s fields=%s", site_id, sorted(changes))
        return site

    def update_notes(self, site_id: str, notes: str) -> Site:
        return self.update(site_id, {"notes": notes})

    def remove(self, site_id: str) -> Site:
        """Delete a site. Unknown ids raise NotFoundError and change nothing."""
        site = self.get(site_id)
        del self._sites[site_id]
        logger.debug("site removed id=%s", site_id)
        return site

    def search(self, query: str | None, fields: Iterable[str] = SEARCH_FIELDS) -> list[Site]:
        """Case-insensitive substring match OR-ed across `fields`."""
        q = (query or "").strip().lower()
        if not q:
            return self.all()
        field_list = list(fields)
        out: list[Site] = []
        for site in self._sites.values():
            for f in field_list:
                value = getattr(site, f, None)
                if isinstance(value, str) and q in value.lower():
                    out.append(site)
                    break
        return out

    def filter_by_visible_types(self, types: Iterable[str]) -> list[Site]:
        visible = set(types)
        return [s for s in self._sites.values() if s.icon in visible or s.type in visible]

    def extend(self, sites: Iterable[Site]) -> list[Site]:
        """Append sites; an id already present gets a fresh one."""
        added: list[Site] = []
        for site in sites:
            if site.id in self._sites:
                fresh = new_site_id()
                logger.debug("site id collision id=%s reassigned=%s", site.id, fresh)
                site = site.model_copy(update={"id": fresh})
            self._sites[site.id] = site
            added.append(site)
        return added

    def replace_all(self, sites: Iterable[Site]) -> list[Site]:
        self._sites = {}
        return self.extend(sites)
