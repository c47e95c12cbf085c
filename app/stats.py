"""
Stat value coercion and stat-map merging.

The same logical stat arrives as a bare number, a numeric string, or a
{"value", "displayValue"} object depending on the endpoint. Everything
that reads a stat goes through coerce_stat_value, which returns None for
"no data" instead of 0.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.utils.helpers import dig, safe_float, safe_int

logger = logging.getLogger("stats")

StatMap = Dict[str, Optional[float]]

# Comprehensive-stats column label -> stat name used by the summary source
WEB_STAT_LABELS: Dict[str, str] = {
    "GP": "gamesPlayed",
    "GS": "gamesStarted",
    "MIN": "avgMinutes",
    "FG%": "fieldGoalPct",
    "3P%": "threePointFieldGoalPct",
    "FT%": "freeThrowPct",
    "OR": "avgOffensiveRebounds",
    "DR": "avgDefensiveRebounds",
    "REB": "avgRebounds",
    "AST": "avgAssists",
    "STL": "avgSteals",
    "BLK": "avgBlocks",
    "TO": "avgTurnovers",
    "PF": "avgFouls",
    "PTS": "avgPoints",
}


def coerce_stat_value(value: Any) -> Optional[float]:
    """
    Coerce any upstream stat shape to a float.

    Accepts numbers, numeric strings ("27.4", "48.1%") and objects with
    "value"/"displayValue" (value preferred). Returns None when missing
    or unparseable.
    """
    if isinstance(value, dict):
        for key in ("value", "displayValue"):
            inner = value.get(key)
            if isinstance(inner, dict):
                continue
            result = safe_float(inner)
            if result is not None:
                return result
        return None
    return safe_float(value)


def _is_compound(value: Any) -> bool:
    """Made-attempted pairs like "6.9-14.1" are not a single number."""
    return isinstance(value, str) and "-" in value.strip()[1:]


def build_stat_map(entries: Any) -> StatMap:
    """
    Flatten a list of {"name", "value", "displayValue"} entries.

    The first entry for a name wins. Non-list input yields {}.
    """
    stat_map: StatMap = {}
    if not isinstance(entries, list):
        return stat_map
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not name or name in stat_map:
            continue
        stat_map[name] = coerce_stat_value(entry)
    return stat_map


def get_stat(stats: Any, name: str) -> Optional[float]:
    """
    Read one stat by name from a stat map or an entry list.

    Returns None when absent. Callers that need a number for arithmetic
    decide their own default.
    """
    if isinstance(stats, dict):
        return coerce_stat_value(stats.get(name))
    if isinstance(stats, list):
        for entry in stats:
            if isinstance(entry, dict) and entry.get("name") == name:
                return coerce_stat_value(entry)
    return None


def flatten_stat_categories(categories: Any) -> StatMap:
    """Team statistics payload: categories[].stats[] into one map."""
    stat_map: StatMap = {}
    if not isinstance(categories, list):
        return stat_map
    for category in categories:
        if not isinstance(category, dict):
            continue
        for name, value in build_stat_map(category.get("stats")).items():
            stat_map.setdefault(name, value)
    return stat_map


def embedded_stat_map(statistics: Any) -> StatMap:
    """
    Stats embedded in a roster athlete.

    Seen as a flat entry list, or as {"splits": {"categories": [...]}}.
    """
    if isinstance(statistics, list):
        if statistics and isinstance(statistics[0], dict) and "stats" in statistics[0]:
            return flatten_stat_categories(statistics)
        return build_stat_map(statistics)
    if isinstance(statistics, dict):
        categories = dig(statistics, "splits", "categories") or statistics.get("categories")
        return flatten_stat_categories(categories)
    return {}


def parse_web_averages(payload: Any) -> StatMap:
    """
    Season averages from the comprehensive-stats payload.

    The "averages" category carries parallel labels/totals arrays. Compound
    columns ("6.9-14.1") are skipped.
    """
    categories = payload.get("categories") if isinstance(payload, dict) else None
    if not isinstance(categories, list):
        return {}

    averages = next(
        (c for c in categories if isinstance(c, dict) and c.get("name") == "averages"),
        None,
    )
    if averages is None:
        return {}

    labels = averages.get("labels") or []
    totals = averages.get("totals") or []
    stat_map: StatMap = {}
    for index, label in enumerate(labels):
        name = WEB_STAT_LABELS.get(label)
        if name is None or index >= len(totals) or name in stat_map:
            continue
        raw = totals[index]
        if _is_compound(raw):
            continue
        value = coerce_stat_value(raw)
        if value is not None:
            stat_map[name] = value
    return stat_map


def merge_stat_maps(primary: StatMap, supplemental: StatMap) -> StatMap:
    """
    Fill gaps in primary from supplemental.

    A stat the primary source carries is never overwritten; a name it
    carries without a usable value counts as a gap.
    """
    merged = dict(primary)
    added = 0
    for name, value in supplemental.items():
        if value is None:
            continue
        if merged.get(name) is None:
            merged[name] = value
            added += 1
    if added:
        logger.debug(f"Merged {added} supplemental stats")
    return merged


def parse_record_summary(summary: Any) -> Tuple[int, int]:
    """
    "23-5" -> (23, 5). Anything unparseable is (0, 0).
    """
    if not isinstance(summary, str):
        return 0, 0
    parts = summary.strip().split("-")
    if len(parts) < 2:
        return 0, 0
    return safe_int(parts[0]), safe_int(parts[1])


def find_record(records: Any, types: Iterable[str]) -> Optional[dict]:
    """First record whose type or name is in types (case-insensitive)."""
    if not isinstance(records, list):
        return None
    wanted = {t.lower() for t in types}
    for record in records:
        if not isinstance(record, dict):
            continue
        kind = str(record.get("type") or "").lower()
        name = str(record.get("name") or "").lower()
        if kind in wanted or name in wanted:
            return record
    return None


def overall_record(records: Any) -> Tuple[int, int]:
    """Season W-L from a competitor's records list ("total", else the first)."""
    if not isinstance(records, list) or not records:
        return 0, 0
    record = find_record(records, ("total", "overall")) or records[0]
    if not isinstance(record, dict):
        return 0, 0
    return parse_record_summary(record.get("summary"))


def records_by_label(labels: List[str], values: List[Any]) -> Dict[str, Any]:
    """Zip a label row with a value row, ignoring the overflow of either."""
    return {label: values[i] for i, label in enumerate(labels) if i < len(values)}
