"""Group the release feed by type for display."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterable

    from release_tracker.models.release import Release

CANONICAL_TYPES = ("Album", "EP", "Single", "Compilation", "Soundtrack")
OTHER_TYPE = "Other"

_CANONICAL_BY_LOWER = {name.lower(): name for name in (*CANONICAL_TYPES, OTHER_TYPE)}


class ReleaseGroup(NamedTuple):
    release_type: str
    releases: list[Release]


def normalize_release_type(value: str | None) -> str:
    """Map a raw type to its display bucket ("ep" -> "EP", "" -> "Other")."""
    if value is None:
        return OTHER_TYPE
    stripped = value.strip()
    if not stripped:
        return OTHER_TYPE
    return _CANONICAL_BY_LOWER.get(stripped.lower(), stripped)


def _date_key(release: Release) -> tuple[bool, date]:
    # Undated releases sort after every dated one
    return (release.release_date is not None, release.release_date or date.min)


def group_releases(releases: Iterable[Release]) -> list[ReleaseGroup]:
    """Bucket releases by type, newest first within each bucket.

    Buckets come out in canonical order (Album, EP, Single, Compilation,
    Soundtrack), then Other, then any remaining types in order of first
    appearance. Empty buckets are omitted. Ties on date keep input order.
    """
    buckets: dict[str, list[Release]] = {}
    for release in releases:
        buckets.setdefault(normalize_release_type(release.release_type), []).append(release)

    order = [name for name in CANONICAL_TYPES if name in buckets]
    if OTHER_TYPE in buckets:
        order.append(OTHER_TYPE)
    # dicts keep insertion order, i.e. first appearance in the input
    order.extend([name for name in buckets if name not in order])

    # sorted() is stable with reverse=True, so equal dates keep input order
    return [
        ReleaseGroup(name, sorted(buckets[name], key=_date_key, reverse=True)) for name in order
    ]
