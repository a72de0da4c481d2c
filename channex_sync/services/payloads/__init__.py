# Payloads package
from .property import (
    build_property_create_payload,
    build_property_update_payload,
    build_webhook_payload,
    property_fingerprint_fields,
)
from .room_type import (
    build_room_type_create_payload,
    build_room_type_update_payload,
    room_type_fingerprint_fields,
)
from .rate_plan import (
    INHERIT_FLAGS,
    build_rate_plan_create_payload,
    build_rate_plan_update_payload,
    build_weekday_arrays,
    rate_plan_fingerprint_fields,
)
from .tax import build_tax_payload, build_tax_set_create_payload, build_tax_set_update_payload
from .ari import build_availability_values, build_rate_values, to_minor_units
