"""Unit tests for release grouping and lenient date parsing."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from release_tracker.models.release import Release, ReleaseList, parse_release_date
from release_tracker.presenter import (
    OTHER_TYPE,
    group_releases,
    normalize_release_type,
)


def _release(rid: str, release_type: str | None, released: str | None) -> Release:
    return Release(
        id=rid,
        artist_id="a1",
        artist_name="Radiohead",
        title=f"Title {rid}",
        release_type=release_type,
        release_date=released,
    )


def _shape(groups) -> list[tuple[str, list[str]]]:
    return [(g.release_type, [r.id for r in g.releases]) for g in groups]


class TestParseReleaseDate:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("2016-05-08", date(2016, 5, 8)),
            ("2016-05-03T00:00:00.000Z", date(2016, 5, 3)),
            ("2016-06", date(2016, 6, 1)),
            ("2016", date(2016, 1, 1)),
            ("", None),
            (None, None),
        ],
    )
    def test_formats(self, raw: str | None, expected: date | None) -> None:
        assert parse_release_date(raw) == expected

    def test_datetime_keeps_date(self) -> None:
        assert parse_release_date(datetime(2020, 2, 29, 23, 0, tzinfo=timezone.utc)) == date(
            2020, 2, 29
        )

    @pytest.mark.parametrize("raw", ["soon", "2019-13", "2019-02-30"])
    def test_unparseable_becomes_none(self, raw: str) -> None:
        assert parse_release_date(raw) is None

    def test_bad_date_does_not_fail_the_feed(self) -> None:
        feed = ReleaseList.model_validate(
            {
                "releases": [
                    {
                        "id": "bad",
                        "artist_id": "a1",
                        "artist_name": "Radiohead",
                        "title": "Typo",
                        "release_date": "2019-13",
                        "release_type": "EP",
                    },
                    {
                        "id": "good",
                        "artist_id": "a1",
                        "artist_name": "Radiohead",
                        "title": "Fine",
                        "release_date": "2019-06-01",
                        "release_type": "EP",
                    },
                ],
                "total": 2,
            }
        )
        assert feed.releases[0].release_date is None
        assert _shape(group_releases(feed.releases)) == [("EP", ["good", "bad"])]


class TestNormalizeReleaseType:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Album", "Album"),
            ("ep", "EP"),
            (" single ", "Single"),
            ("SOUNDTRACK", "Soundtrack"),
            ("other", OTHER_TYPE),
            ("", OTHER_TYPE),
            (None, OTHER_TYPE),
            ("Live", "Live"),
        ],
    )
    def test_mapping(self, raw: str | None, expected: str) -> None:
        assert normalize_release_type(raw) == expected


class TestGroupReleases:
    def test_canonical_order_and_newest_first(self) -> None:
        releases = [
            _release("s1", "Single", "2024-01-10"),
            _release("a1", "Album", "2023-11-01"),
            _release("s2", "Single", "2024-03-02"),
            _release("e1", "EP", "2022-05-05"),
        ]
        assert _shape(group_releases(releases)) == [
            ("Album", ["a1"]),
            ("EP", ["e1"]),
            ("Single", ["s2", "s1"]),
        ]

    def test_equal_dates_keep_input_order(self) -> None:
        releases = [
            _release("x", "Album", "2024-01-01"),
            _release("y", "Album", "2024-01-01"),
            _release("z", "Album", "2024-01-01"),
        ]
        assert _shape(group_releases(releases)) == [("Album", ["x", "y", "z"])]

    def test_case_variants_share_a_bucket(self) -> None:
        releases = [_release("s1", "single", "2024-01-01"), _release("s2", "Single", "2024-02-01")]
        assert _shape(group_releases(releases)) == [("Single", ["s2", "s1"])]

    def test_unknown_types_follow_other_in_first_seen_order(self) -> None:
        releases = [
            _release("l1", "Live", "2024-01-01"),
            _release("o1", None, "2024-01-01"),
            _release("r1", "Remix", "2024-01-01"),
            _release("c1", "Compilation", "2024-01-01"),
            _release("l2", "Live", "2024-02-01"),
        ]
        assert _shape(group_releases(releases)) == [
            ("Compilation", ["c1"]),
            (OTHER_TYPE, ["o1"]),
            ("Live", ["l2", "l1"]),
            ("Remix", ["r1"]),
        ]

    def test_undated_releases_sort_last(self) -> None:
        releases = [
            _release("u", "EP", None),
            _release("old", "EP", "2001"),
            _release("new", "EP", "2024-06"),
        ]
        assert _shape(group_releases(releases)) == [("EP", ["new", "old", "u"])]

    def test_empty_input(self) -> None:
        assert group_releases([]) == []

    def test_input_is_not_reordered(self) -> None:
        releases = [_release("s1", "Single", "2020-01-01"), _release("a1", "Album", "2021-01-01")]
        group_releases(releases)
        assert [r.id for r in releases] == ["s1", "a1"]
