"""Room type payloads (local room type record -> Channex room_type)"""

from typing import Dict

from .validators import pick, to_int

FINGERPRINT_FIELDS = (
    ("title",),
    ("count_of_rooms", "countOfRooms"),
    ("occ_adults", "occAdults"),
    ("occ_children", "occChildren"),
    ("occ_infants", "occInfants"),
    ("default_occupancy", "defaultOccupancy"),
    ("room_kind", "roomKind"),
    ("capacity",),
)


def build_room_type_update_payload(room_type: Dict) -> Dict:
    payload = {
        "title": room_type.get("title"),
        "count_of_rooms": to_int(pick(room_type, "count_of_rooms", "countOfRooms"), 0),
        "occ_adults": to_int(pick(room_type, "occ_adults", "occAdults"), 0),
        "occ_children": to_int(pick(room_type, "occ_children", "occChildren"), 0),
        "occ_infants": to_int(pick(room_type, "occ_infants", "occInfants"), 0),
        "default_occupancy": to_int(pick(room_type, "default_occupancy", "defaultOccupancy"), 0),
        # facilities, description and photos live in separate local tables
        "facilities": [],
        "content": {"description": "", "photos": []},
    }

    room_kind = pick(room_type, "room_kind", "roomKind")
    if room_kind:
        payload["room_kind"] = room_kind
    capacity = room_type.get("capacity")
    if capacity:
        payload["capacity"] = capacity

    return payload


def build_room_type_create_payload(room_type: Dict, channex_property_id: str) -> Dict:
    payload = {"property_id": channex_property_id}
    payload.update(build_room_type_update_payload(room_type))
    return payload


def room_type_fingerprint_fields(record: Dict) -> Dict:
    return {names[0]: pick(record, *names) for names in FINGERPRINT_FIELDS}
