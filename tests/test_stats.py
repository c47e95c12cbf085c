"""
Tests for stat coercion and merging.
"""
import pytest

from app.stats import (
    build_stat_map,
    coerce_stat_value,
    embedded_stat_map,
    flatten_stat_categories,
    get_stat,
    merge_stat_maps,
    overall_record,
    parse_record_summary,
    parse_web_averages,
)
from app.utils.helpers import dig, safe_float, safe_int


@pytest.mark.parametrize("raw,expected", [
    (27.4, 27.4),
    (0, 0.0),
    ("27.4", 27.4),
    (" 48.1% ", 48.1),
    ({"value": 12.5, "displayValue": "12.5"}, 12.5),
    ({"value": None, "displayValue": "7"}, 7.0),
    ({"value": 0, "displayValue": "0.0"}, 0.0),
])
def test_coerce_known_shapes(raw, expected):
    assert coerce_stat_value(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "--", "n/a", {}, {"displayValue": "-"}, [], True, float("nan")])
def test_coerce_unknown_is_none(raw):
    assert coerce_stat_value(raw) is None


def test_zero_is_not_unknown():
    stats = [{"name": "avgBlocks", "value": 0}]
    assert get_stat(stats, "avgBlocks") == 0.0
    assert get_stat(stats, "avgSteals") is None


def test_get_stat_from_map_and_list():
    assert get_stat({"avgPoints": "30.1"}, "avgPoints") == 30.1
    assert get_stat([{"name": "avgPoints", "displayValue": "30.1"}], "avgPoints") == 30.1
    assert get_stat(None, "avgPoints") is None


def test_build_stat_map_first_entry_wins():
    stat_map = build_stat_map([
        {"name": "avgPoints", "value": 30},
        {"name": "avgPoints", "value": 1},
        {"value": 5},
        "junk",
    ])
    assert stat_map == {"avgPoints": 30.0}


def test_flatten_stat_categories():
    categories = [
        {"name": "offensive", "stats": [{"name": "avgPoints", "value": 117.2}]},
        {"name": "general", "stats": [{"name": "avgRebounds", "value": "44.0"}, {"name": "avgPoints", "value": 1}]},
    ]
    assert flatten_stat_categories(categories) == {"avgPoints": 117.2, "avgRebounds": 44.0}
    assert flatten_stat_categories(None) == {}


def test_embedded_stat_map_shapes():
    assert embedded_stat_map([{"name": "avgPoints", "value": 20}]) == {"avgPoints": 20.0}
    nested = {"splits": {"categories": [{"stats": [{"name": "avgPoints", "value": 21}]}]}}
    assert embedded_stat_map(nested) == {"avgPoints": 21.0}
    assert embedded_stat_map(None) == {}


def test_parse_web_averages_maps_labels_and_skips_compound():
    payload = {
        "categories": [
            {"name": "totals", "labels": ["PTS"], "totals": ["2000"]},
            {
                "name": "averages",
                "labels": ["GP", "MIN", "FG", "FG%", "PTS", "XYZ"],
                "totals": ["70", "35.2", "9.1-18.4", "49.5", "28.3", "1"],
            },
        ]
    }
    assert parse_web_averages(payload) == {
        "gamesPlayed": 70.0,
        "avgMinutes": 35.2,
        "fieldGoalPct": 49.5,
        "avgPoints": 28.3,
    }


def test_parse_web_averages_tolerates_bad_payloads():
    assert parse_web_averages(None) == {}
    assert parse_web_averages({"categories": "x"}) == {}
    assert parse_web_averages({"categories": [{"name": "averages", "labels": ["PTS"], "totals": []}]}) == {}


def test_merge_never_overwrites_primary():
    primary = {"avgPoints": 30.0, "avgSteals": None}
    supplemental = {"avgPoints": 1.0, "avgSteals": 1.2, "avgBlocks": 0.5, "avgFouls": None}
    merged = merge_stat_maps(primary, supplemental)
    assert merged == {"avgPoints": 30.0, "avgSteals": 1.2, "avgBlocks": 0.5}
    assert primary == {"avgPoints": 30.0, "avgSteals": None}


@pytest.mark.parametrize("summary,expected", [
    ("23-5", (23, 5)),
    ("0-0", (0, 0)),
    ("41-41", (41, 41)),
    ("garbage", (0, 0)),
    ("", (0, 0)),
    (None, (0, 0)),
    ("x-y", (0, 0)),
])
def test_parse_record_summary(summary, expected):
    assert parse_record_summary(summary) == expected


def test_overall_record_prefers_total():
    records = [
        {"type": "home", "summary": "10-2"},
        {"type": "total", "summary": "20-8"},
    ]
    assert overall_record(records) == (20, 8)
    assert overall_record([{"summary": "3-1"}]) == (3, 1)
    assert overall_record([]) == (0, 0)
    assert overall_record(None) == (0, 0)


def test_helpers():
    assert safe_int("42") == 42
    assert safe_int("42.0") == 42
    assert safe_int(None, default=-1) == -1
    assert safe_float("") is None
    assert safe_float("1.5") == 1.5
    assert dig({"a": [{"b": 1}]}, "a", 0, "b") == 1
    assert dig({"a": []}, "a", 0, "b", default="x") == "x"
    assert dig("not a dict", "a") is None
