from datetime import datetime, timedelta, timezone

from engblogs.grouping import (
    deduplicate_entries,
    filter_recent,
    format_day,
    group_by_date,
    process,
    sort_entries,
)
from engblogs.models import Entry

NOW = datetime(2024, 1, 10, tzinfo=timezone.utc)


def _entry(url: str, published=None, title: str = "Title") -> Entry:
    return Entry(
        source_name="Blog",
        source_url="https://blog.example.com/",
        title=title,
        url=url,
        published=published,
    )


def test_window_filter_edges():
    too_old = _entry("https://a/old", datetime(2024, 1, 2, 23, 59, 59, tzinfo=timezone.utc))
    just_inside = _entry("https://a/new", datetime(2024, 1, 3, 0, 0, 1, tzinfo=timezone.utc))
    exactly_cutoff = _entry("https://a/edge", NOW - timedelta(days=7))
    undated = _entry("https://a/undated")

    kept = filter_recent([too_old, just_inside, exactly_cutoff, undated], NOW)

    assert kept == [just_inside]


def test_deduplicate_ignores_trailing_slash_and_whitespace():
    first = _entry("https://example.com/post/", title="first")
    second = _entry("  https://example.com/post ", title="second")
    other = _entry("https://example.com/other", title="other")

    assert deduplicate_entries([first, second, other]) == [first, other]


def test_sort_is_descending_and_stable():
    t = datetime(2024, 1, 5, tzinfo=timezone.utc)
    a = _entry("https://a", t)
    b = _entry("https://b", t + timedelta(hours=1))
    c = _entry("https://c", t)
    undated = _entry("https://d")

    assert sort_entries([undated, a, b, c]) == [b, a, c, undated]


def test_group_by_date_labels_and_orders_groups():
    late = _entry("https://late", datetime(2024, 1, 9, 23, 0, tzinfo=timezone.utc))
    early = _entry("https://early", datetime(2024, 1, 9, 1, 0, tzinfo=timezone.utc))
    previous = _entry("https://prev", datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc))

    groups = group_by_date([late, early, previous])

    assert [group.label for group in groups] == [
        "Tuesday, January 9, 2024",
        "Monday, January 8, 2024",
    ]
    assert groups[0].entries == [late, early]
    assert groups[1].entries == [previous]


def test_group_uses_utc_calendar_day():
    eastern = timezone(timedelta(hours=-5))
    entry = _entry("https://tz", datetime(2024, 1, 8, 22, 0, tzinfo=eastern))

    assert group_by_date([entry])[0].label == "Tuesday, January 9, 2024"


def test_format_day_has_no_zero_padding():
    assert format_day(datetime(2024, 3, 4).date()) == "Monday, March 4, 2024"


def test_process_filters_dedups_sorts_and_groups():
    day9 = datetime(2024, 1, 9, 12, tzinfo=timezone.utc)
    entries = [
        _entry("https://x/1", day9 - timedelta(hours=2), title="older same day"),
        _entry("https://x/2", day9 - timedelta(days=1), title="day 8"),
        _entry("https://x/1/", day9, title="duplicate of 1"),
        _entry("https://x/3", day9, title="newest"),
        _entry("https://x/4", NOW - timedelta(days=30), title="ancient"),
        _entry("https://x/5", None, title="undated"),
    ]

    groups = process(entries, NOW)

    assert [group.label for group in groups] == [
        "Tuesday, January 9, 2024",
        "Monday, January 8, 2024",
    ]
    assert [entry.title for entry in groups[0].entries] == ["newest", "older same day"]
    assert [entry.title for entry in groups[1].entries] == ["day 8"]
    assert all(entry.url for group in groups for entry in group.entries)


def test_process_empty_input():
    assert process([], NOW) == []
