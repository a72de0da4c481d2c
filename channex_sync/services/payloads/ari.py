"""
Availability / rate (ARI) range transforms

The backend already groups daily values into Channex ranges
({date_from, date_to, rate|availability, ...}); these helpers swap local
ids for Channex ids, convert rates to minor units and merge restrictions
from period rules.
"""

import math
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from .validators import pick


def to_minor_units(value: Any) -> int:
    """12.00 -> 1200. Halves round up."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(amount) or math.isinf(amount):
        return 0
    return int(math.floor(amount * 100 + 0.5))


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def find_period_rule(date_from: Any, date_to: Any, rules: Optional[Sequence[Dict]]) -> Optional[Dict]:
    """First rule whose [start, end] overlaps the range, bounds inclusive"""
    start = _parse_date(date_from)
    end = _parse_date(date_to)
    if start is None or end is None:
        return None

    for rule in rules or []:
        rule_start = _parse_date(pick(rule, "startDate", "start_date"))
        rule_end = _parse_date(pick(rule, "endDate", "end_date"))
        if rule_start is None or rule_end is None:
            continue
        if (
            rule_start <= start <= rule_end
            or rule_start <= end <= rule_end
            or (start <= rule_start and end >= rule_end)
        ):
            return rule
    return None


def merge_period_rule(value: Dict, rule: Dict) -> Dict:
    value["closed_to_arrival"] = pick(rule, "closedToArrival", "closed_to_arrival")
    value["closed_to_departure"] = pick(rule, "closedToDeparture", "closed_to_departure")
    value["stop_sell"] = pick(rule, "stopSell", "stop_sell")
    for key, camel in (
        ("min_stay_arrival", "minStayArrival"),
        ("min_stay_through", "minStayThrough"),
        ("max_stay", "maxStay"),
    ):
        restriction = pick(rule, camel, key)
        if restriction is not None:
            value[key] = restriction
    return value


def build_rate_values(
    ranges: Sequence[Dict],
    channex_property_id: str,
    channex_rate_plan_id: str,
    period_rules: Optional[Sequence[Dict]] = None,
) -> List[Dict]:
    values = []
    for rate_range in ranges:
        value = dict(rate_range)
        value["property_id"] = channex_property_id
        value["rate_plan_id"] = channex_rate_plan_id
        value["rate"] = to_minor_units(rate_range.get("rate"))

        rule = find_period_rule(rate_range.get("date_from"), rate_range.get("date_to"), period_rules)
        if rule is not None:
            merge_period_rule(value, rule)
        values.append(value)
    return values


def build_availability_values(
    ranges: Sequence[Dict],
    channex_property_id: str,
    channex_room_type_id: str,
) -> List[Dict]:
    values = []
    for availability_range in ranges:
        value = dict(availability_range)
        value["property_id"] = channex_property_id
        value["room_type_id"] = channex_room_type_id
        values.append(value)
    return values
