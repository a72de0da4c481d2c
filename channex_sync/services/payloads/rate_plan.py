"""
Rate plan payloads

Channex expects restriction arrays of 7 values, Monday through Sunday
(index 0 = Monday). Local daily rules use weekday 1 = Monday ... 7 = Sunday;
weekdays without a rule keep the Channex defaults.

Inheritance flags may only be true when a parent rate plan is linked:
Channex rejects inherit_* = true with a nil parent_rate_plan_id, so every
flag is forced false when no Channex parent id resolves, whatever the
locally stored value is.
"""

from typing import Dict, List, Optional, Sequence

from ..errors import PreconditionError
from .validators import pick, to_bool, to_float, to_int

WEEKDAY_COUNT = 7

INHERIT_FLAGS = (
    "inherit_rate",
    "inherit_closed_to_arrival",
    "inherit_closed_to_departure",
    "inherit_stop_sell",
    "inherit_min_stay_arrival",
    "inherit_min_stay_through",
    "inherit_max_stay",
    "inherit_max_sell",
    "inherit_max_availability",
    "inherit_availability_offset",
)

# (payload key, camelCase key, default)
_NUMERIC_RESTRICTIONS = (
    ("max_stay", "maxStay", 0),                 # 0 = no maximum
    ("min_stay_arrival", "minStayArrival", 1),  # 1 = one night
    ("min_stay_through", "minStayThrough", 1),
)
_BOOLEAN_RESTRICTIONS = (
    ("closed_to_arrival", "closedToArrival"),
    ("closed_to_departure", "closedToDeparture"),
    ("stop_sell", "stopSell"),
)


def build_weekday_arrays(daily_rules: Optional[Sequence[Dict]]) -> Dict[str, List]:
    arrays: Dict[str, List] = {}
    for key, _, default in _NUMERIC_RESTRICTIONS:
        arrays[key] = [default] * WEEKDAY_COUNT
    for key, _ in _BOOLEAN_RESTRICTIONS:
        arrays[key] = [False] * WEEKDAY_COUNT

    for rule in daily_rules or []:
        weekday = to_int(rule.get("weekday"))
        if weekday is None or not 1 <= weekday <= WEEKDAY_COUNT:
            continue
        index = weekday - 1

        for key, camel, _ in _NUMERIC_RESTRICTIONS:
            value = to_int(pick(rule, camel, key))
            if value is not None:
                arrays[key][index] = value

        for key, camel in _BOOLEAN_RESTRICTIONS:
            arrays[key][index] = to_bool(pick(rule, camel, key))

    return arrays


def build_options(raw_options: Optional[Sequence[Dict]]) -> List[Dict]:
    """Occupancy options; Channex requires at least one"""
    if not raw_options:
        raise PreconditionError(
            "Rate plan options are required for Channex sync. Please create options before syncing.",
            fields={"options": ["empty"]},
        )
    return [
        {
            "occupancy": to_int(option.get("occupancy"), 0),
            "is_primary": to_bool(pick(option, "is_primary", "isPrimary")),
            "rate": max(0.0, to_float(option.get("rate"))),
        }
        for option in raw_options
    ]


def build_inherit_flags(sync_view: Dict, has_parent: bool) -> Dict[str, bool]:
    return {flag: (to_bool(sync_view.get(flag)) if has_parent else False) for flag in INHERIT_FLAGS}


def _fee(value) -> str:
    return str(value if value is not None else 0)


def _common_fields(sync_view: Dict, channex_parent_id: Optional[str]) -> Dict:
    payload = {
        "title": sync_view.get("title"),
        "children_fee": _fee(sync_view.get("children_fee")),
        "infant_fee": _fee(sync_view.get("infant_fee")),
        "currency": sync_view.get("currency"),
        "sell_mode": sync_view.get("sell_mode") or "per_room",
        "rate_mode": sync_view.get("rate_mode") or "manual",
        "options": build_options(sync_view.get("options")),
    }
    payload.update(build_weekday_arrays(sync_view.get("daily_rules")))
    payload.update(build_inherit_flags(sync_view, bool(channex_parent_id)))

    if sync_view.get("meal_type"):
        payload["meal_type"] = sync_view["meal_type"]

    # Channex requires the key; null unless the plan is auto-priced
    if sync_view.get("rate_mode") == "auto" and sync_view.get("auto_rate_settings"):
        payload["auto_rate_settings"] = sync_view["auto_rate_settings"]
    else:
        payload["auto_rate_settings"] = None

    return payload


def build_rate_plan_create_payload(
    sync_view: Dict,
    channex_property_id: str,
    channex_room_type_id: str,
    channex_tax_set_id: Optional[str] = None,
    channex_parent_id: Optional[str] = None,
) -> Dict:
    payload = _common_fields(sync_view, channex_parent_id)
    payload["property_id"] = channex_property_id
    payload["room_type_id"] = channex_room_type_id
    if channex_tax_set_id:
        payload["tax_set_id"] = channex_tax_set_id
    if channex_parent_id:
        payload["parent_rate_plan_id"] = channex_parent_id
    return payload


def build_rate_plan_update_payload(sync_view: Dict, channex_parent_id: Optional[str] = None) -> Dict:
    """property_id, room_type_id and tax_set_id are immutable on Channex and never sent"""
    payload = _common_fields(sync_view, channex_parent_id)
    payload["parent_rate_plan_id"] = channex_parent_id or None
    return payload


def rate_plan_fingerprint_fields(sync_view: Dict) -> Dict:
    fields = {
        key: sync_view.get(key)
        for key in (
            "title", "children_fee", "infant_fee", "currency", "sell_mode",
            "rate_mode", "tax_set_id", "parent_rate_plan_id",
        )
    }
    options = sync_view.get("options")
    fields["options"] = [
        {
            "occupancy": option.get("occupancy"),
            "is_primary": pick(option, "is_primary", "isPrimary"),
            "rate": option.get("rate"),
        }
        for option in options
    ] if options else None
    rules = sync_view.get("daily_rules")
    fields["daily_rules"] = [
        {"weekday": rule.get("weekday"), **{
            key: pick(rule, camel, key) for key, camel, _ in _NUMERIC_RESTRICTIONS
        }, **{
            key: pick(rule, camel, key) for key, camel in _BOOLEAN_RESTRICTIONS
        }}
        for rule in rules
    ] if rules else None
    for flag in INHERIT_FLAGS:
        fields[flag] = sync_view.get(flag)
    return fields
