"""
Property payloads

The backend sync views are already in Channex shape; this module only
applies the rules Channex is strict about:
- CREATE: settings required, 1/0 booleans -> bool, prices as "0.00" strings,
  empty content omitted, invalid logo_url / website stripped
- UPDATE: content always present with description defaulting to ""
"""

import copy
from typing import Any, Dict, Iterable, List, Optional

from ..errors import PreconditionError
from .validators import is_valid_url, pick, to_bool

# Optional URL fields Channex validates strictly. A 422 naming one of these
# on create is retried once without them.
URL_FIELDS = ("logo_url", "website")

AUTOUPDATE_FLAGS = (
    "allow_availability_autoupdate_on_confirmation",
    "allow_availability_autoupdate_on_modification",
    "allow_availability_autoupdate_on_cancellation",
)

# Fields that feed the property fingerprint (volatile fields excluded)
FINGERPRINT_FIELDS = (
    ("title",),
    ("currency",),
    ("timezone",),
    ("property_type", "propertyType"),
    ("email",),
    ("phone",),
    ("zip_code", "zipCode"),
    ("country",),
    ("state",),
    ("city",),
    ("address",),
    ("longitude",),
    ("latitude",),
    ("website",),
)


def _format_price(value: Any) -> Any:
    try:
        return f"{float(value):.2f}"
    except (TypeError, ValueError):
        return value


def transform_settings_for_create(settings: Dict) -> Dict:
    transformed = dict(settings)
    for flag in AUTOUPDATE_FLAGS:
        transformed[flag] = to_bool(settings.get(flag))
    for price_field in ("min_price", "max_price"):
        if settings.get(price_field) is not None:
            transformed[price_field] = _format_price(settings[price_field])
    return transformed


def transform_content_for_create(content: Optional[Dict]) -> Dict:
    """Keep only non-empty parts; Channex rejects empty values on create"""
    if not content:
        return {}

    transformed = {}
    for text_field in ("description", "important_information"):
        value = content.get(text_field)
        if isinstance(value, str) and value.strip():
            transformed[text_field] = value.strip()

    photos = content.get("photos")
    if isinstance(photos, list) and photos:
        transformed["photos"] = photos

    return transformed


def transform_content_for_update(content: Optional[Dict]) -> Dict:
    if not content:
        return {"description": "", "photos": []}
    return {
        "description": content.get("description") or "",
        "photos": content.get("photos") or [],
    }


def strip_fields(payload: Dict, fields: Iterable[str]) -> List[str]:
    """Remove the given top-level fields in place; returns what was removed"""
    removed = []
    for field_name in fields:
        if field_name in payload:
            payload.pop(field_name)
            removed.append(field_name)
    return removed


def strip_invalid_urls(payload: Dict) -> List[str]:
    invalid = [f for f in URL_FIELDS if f in payload and not is_valid_url(payload.get(f))]
    return strip_fields(payload, invalid)


def build_property_create_payload(sync_view: Dict, channex_group_id: Optional[str] = None) -> Dict:
    """
    Build the POST /properties body from GET /properties/:id/channex-sync.

    Raises PreconditionError when settings are missing.
    """
    payload = copy.deepcopy(sync_view)

    if not payload.get("settings"):
        raise PreconditionError(
            "Property settings are required for Channex sync. Please create settings first.",
            fields={"settings": ["missing"]},
        )
    payload["settings"] = transform_settings_for_create(payload["settings"])

    content = transform_content_for_create(payload.get("content"))
    if content:
        payload["content"] = content
    else:
        payload.pop("content", None)

    strip_invalid_urls(payload)

    if channex_group_id:
        payload["group_id"] = channex_group_id

    return payload


def build_property_update_payload(sync_view: Dict) -> Dict:
    """Build the PUT /properties/:id body from GET /properties/:id/channex-sync-update"""
    payload = copy.deepcopy(sync_view)

    strip_fields(payload, ("settings", "group_id", "important_information") + URL_FIELDS)
    payload["content"] = transform_content_for_update(payload.get("content"))

    return payload


def build_webhook_payload(channex_property_id: str, callback_url: str, property_record: Dict) -> Dict:
    """Webhook resource subscribing the callback to every event of a property"""
    return {
        "property_id": channex_property_id,
        "callback_url": callback_url,
        "event_mask": "*",
        "request_params": {},
        "headers": {},
        "is_active": to_bool(pick(property_record, "is_active", "isActive")),
        "send_data": to_bool(pick(property_record, "send_data", "sendData")),
    }


def property_fingerprint_fields(record: Dict) -> Dict:
    return {names[0]: pick(record, *names) for names in FINGERPRINT_FIELDS}
