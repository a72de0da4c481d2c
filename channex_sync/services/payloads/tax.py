"""Tax and tax set payloads"""

from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import PreconditionError
from .validators import pick, to_bool, to_int

PERCENT_LOGIC = "percent"


def build_tax_payload(tax: Dict, channex_property_id: str, fallback_currency: Optional[str] = None) -> Dict:
    """
    Channex tax body. Currency is mandatory for any non-percent logic and is
    taken from the tax itself, else from the owning tax set.
    """
    logic = tax.get("logic") or PERCENT_LOGIC
    payload = {
        "title": tax.get("title"),
        "property_id": channex_property_id,
        "type": tax.get("type") or "tax",
        "logic": logic,
        "rate": str(tax.get("rate") if tax.get("rate") is not None else 0),
        "is_inclusive": to_bool(pick(tax, "is_inclusive", "isInclusive")),
    }

    if logic != PERCENT_LOGIC:
        currency = tax.get("currency") or fallback_currency
        if not currency:
            raise PreconditionError(
                f'Currency is required when tax logic is not "percent" (tax "{tax.get("title")}"). '
                "Please set a currency on the tax or its tax set.",
                fields={"currency": ["required"]},
            )
        payload["currency"] = currency

    for key, camel in (("skip_nights", "skipNights"), ("max_nights", "maxNights")):
        value = to_int(pick(tax, key, camel))
        if value and value > 0:
            payload[key] = value

    return payload


def tax_set_members(tax_set: Dict) -> List[Tuple[Dict, int]]:
    """(tax record, level) pairs of a tax set; accepts nested {tax, level} links or flat taxes"""
    members = []
    for entry in pick(tax_set, "taxes", "tax_set_taxes", "taxSetTaxes", default=[]) or []:
        tax = entry.get("tax") if isinstance(entry.get("tax"), dict) else entry
        members.append((tax, to_int(entry.get("level"), 0) or 0))
    return members


def build_tax_refs(members: Iterable[Tuple[str, int]]) -> List[Dict]:
    """Reference list from (channex tax id, level) pairs; unmapped taxes are skipped"""
    return [{"id": remote_id, "level": level} for remote_id, level in members if remote_id]


def build_tax_set_update_payload(tax_set: Dict, tax_refs: List[Dict]) -> Dict:
    return {
        "title": tax_set.get("title"),
        "currency": tax_set.get("currency"),
        "taxes": tax_refs,
        "associated_rate_plan_ids": [],
    }


def build_tax_set_create_payload(tax_set: Dict, channex_property_id: str, tax_refs: List[Dict]) -> Dict:
    payload = build_tax_set_update_payload(tax_set, tax_refs)
    payload["property_id"] = channex_property_id
    return payload
