"""
Tests for tax / tax set payloads and ARI range transforms

Tests cover:
- Tax currency rules for non-percent logic
- Tax set member parsing and reference building
- Minor unit conversion
- Period rule overlap and restriction merge
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


class TestTaxPayload:

    def test_percent_tax_without_currency(self):
        from channex_sync.services.payloads.tax import build_tax_payload

        payload = build_tax_payload({"title": "VAT", "rate": 15, "isInclusive": 1}, "ch-p")

        assert payload == {
            "title": "VAT",
            "property_id": "ch-p",
            "type": "tax",
            "logic": "percent",
            "rate": "15",
            "is_inclusive": True,
        }

    def test_per_night_tax_uses_own_currency(self):
        from channex_sync.services.payloads.tax import build_tax_payload

        payload = build_tax_payload(
            {"title": "City fee", "logic": "per_night", "rate": "10.00", "currency": "EUR"},
            "ch-p",
            fallback_currency="SAR",
        )

        assert payload["currency"] == "EUR"

    def test_per_night_tax_falls_back_to_tax_set_currency(self):
        from channex_sync.services.payloads.tax import build_tax_payload

        payload = build_tax_payload({"title": "City fee", "logic": "per_night", "rate": 10}, "ch-p", "SAR")

        assert payload["currency"] == "SAR"

    def test_per_night_tax_without_any_currency(self):
        from channex_sync.services.errors import PreconditionError
        from channex_sync.services.payloads.tax import build_tax_payload

        with pytest.raises(PreconditionError) as exc:
            build_tax_payload({"title": "City fee", "logic": "per_booking", "rate": 10}, "ch-p")

        assert exc.value.fields == {"currency": ["required"]}

    def test_night_limits_only_when_positive(self):
        from channex_sync.services.payloads.tax import build_tax_payload

        payload = build_tax_payload({"title": "T", "skipNights": 2, "max_nights": 0}, "ch-p")

        assert payload["skip_nights"] == 2
        assert "max_nights" not in payload


class TestTaxSetPayload:

    def test_members_nested_and_flat(self):
        from channex_sync.services.payloads.tax import tax_set_members

        nested = tax_set_members({"taxSetTaxes": [{"tax": {"id": 1, "title": "VAT"}, "level": 1}]})
        flat = tax_set_members({"taxes": [{"id": 2, "title": "Fee"}]})

        assert nested == [({"id": 1, "title": "VAT"}, 1)]
        assert flat == [({"id": 2, "title": "Fee"}, 0)]

    def test_refs_skip_unsynced_taxes(self):
        from channex_sync.services.payloads.tax import build_tax_refs

        refs = build_tax_refs([("ch-t1", 0), (None, 1), ("ch-t3", 2)])

        assert refs == [{"id": "ch-t1", "level": 0}, {"id": "ch-t3", "level": 2}]

    def test_create_and_update(self):
        from channex_sync.services.payloads.tax import (
            build_tax_set_create_payload, build_tax_set_update_payload
        )

        tax_set = {"title": "Standard", "currency": "SAR"}
        refs = [{"id": "ch-t1", "level": 0}]

        update = build_tax_set_update_payload(tax_set, refs)
        create = build_tax_set_create_payload(tax_set, "ch-p", refs)

        assert update == {
            "title": "Standard",
            "currency": "SAR",
            "taxes": refs,
            "associated_rate_plan_ids": [],
        }
        assert create == dict(update, property_id="ch-p")


class TestMinorUnits:

    @pytest.mark.parametrize("value, expected", [
        (12, 1200),
        ("450.00", 45000),
        (99.99, 9999),
        (0.125, 13),
        (0, 0),
    ])
    def test_conversion(self, value, expected):
        from channex_sync.services.payloads.ari import to_minor_units
        assert to_minor_units(value) == expected

    @pytest.mark.parametrize("value", [None, True, "abc", float("nan"), float("inf")])
    def test_unusable_values_are_zero(self, value):
        from channex_sync.services.payloads.ari import to_minor_units
        assert to_minor_units(value) == 0


class TestPeriodRules:

    RULES = [
        {"startDate": "2026-03-10", "endDate": "2026-03-20", "stopSell": True,
         "closedToArrival": False, "closedToDeparture": True, "minStayArrival": 3},
        {"start_date": "2026-03-01T00:00:00Z", "end_date": "2026-03-31", "stop_sell": False,
         "closed_to_arrival": True, "closed_to_departure": False},
    ]

    @pytest.mark.parametrize("date_from, date_to", [
        ("2026-03-05", "2026-03-12"),  # ends inside
        ("2026-03-15", "2026-03-25"),  # starts inside
        ("2026-03-08", "2026-03-22"),  # covers
        ("2026-03-20", "2026-03-20"),  # touches the inclusive end
    ])
    def test_overlap_picks_first_rule(self, date_from, date_to):
        from channex_sync.services.payloads.ari import find_period_rule
        assert find_period_rule(date_from, date_to, self.RULES) is self.RULES[0]

    def test_falls_through_to_later_rule(self):
        from channex_sync.services.payloads.ari import find_period_rule
        assert find_period_rule("2026-03-01", "2026-03-02", self.RULES) is self.RULES[1]

    def test_no_overlap(self):
        from channex_sync.services.payloads.ari import find_period_rule
        assert find_period_rule("2026-04-01", "2026-04-05", self.RULES) is None
        assert find_period_rule("bad", "2026-04-05", self.RULES) is None

    def test_merge_sets_booleans_and_present_numbers(self):
        from channex_sync.services.payloads.ari import merge_period_rule

        value = merge_period_rule({"min_stay_through": 2, "max_stay": 9}, self.RULES[0])

        assert value["stop_sell"] is True
        assert value["closed_to_arrival"] is False
        assert value["closed_to_departure"] is True
        assert value["min_stay_arrival"] == 3
        assert value["min_stay_through"] == 2
        assert value["max_stay"] == 9


class TestAriValues:

    def test_rate_values(self):
        from channex_sync.services.payloads.ari import build_rate_values

        ranges = [
            {"property_id": "local-p", "rate_plan_id": "local-rp",
             "date_from": "2026-03-12", "date_to": "2026-03-14", "rate": "120.50"},
            {"date_from": "2026-05-01", "date_to": "2026-05-02", "rate": 99},
        ]
        values = build_rate_values(ranges, "ch-p", "ch-rp", TestPeriodRules.RULES)

        assert values[0]["property_id"] == "ch-p"
        assert values[0]["rate_plan_id"] == "ch-rp"
        assert values[0]["rate"] == 12050
        assert values[0]["stop_sell"] is True
        assert values[1]["rate"] == 9900
        assert "stop_sell" not in values[1]
        # ranges are copied, not mutated
        assert ranges[0]["rate"] == "120.50"

    def test_availability_values(self):
        from channex_sync.services.payloads.ari import build_availability_values

        values = build_availability_values(
            [{"room_type_id": "local-rt", "date_from": "2026-03-01", "date_to": "2026-03-03", "availability": 4}],
            "ch-p",
            "ch-rt",
        )

        assert values == [{
            "room_type_id": "ch-rt",
            "property_id": "ch-p",
            "date_from": "2026-03-01",
            "date_to": "2026-03-03",
            "availability": 4,
        }]
