"""
Channex Sync API Router

Explicit and change-driven sync of local entities into Channex:
- POST /{resource}/{id}/sync     create or update
- GET  /{resource}/{id}/status   verify the stored mapping against Channex
- POST /{resource}/{id}/changes  update only if the entity changed since last seen
- POST /rate-plans/{id}/rates/sync, /room-types/{id}/availability/sync   ARI pushes

Sync errors are returned with their kind so the dashboard can tell
"fix your data" (409) from "Channex rejected it" (422) or "try again" (502).
"""

import enum
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from ..database import SessionLocal
from ..schemas.sync import (
    AriSyncRequest,
    AriSyncResponse,
    SyncOutcomeResponse,
    SyncStatusResponse,
    SyncTargetRequest,
)
from ..services.backend_client import BackendClient, get_backend_client
from ..services.channex_client import ChannexClient, get_channex_client
from ..services.errors import SyncError, SyncErrorKind
from ..services.id_mapping import IdentifierMappingStore, SqlKeyValueStore
from ..services.sync import (
    AvailabilitySyncService,
    EntitySyncService,
    GroupSyncService,
    PropertySyncService,
    RatePlanSyncService,
    RatesSyncService,
    RoomTypeSyncService,
    SyncTarget,
    TaxSetSyncService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/channex", tags=["Channex Sync"])


class SyncResource(str, enum.Enum):
    PROPERTIES = "properties"
    GROUPS = "groups"
    ROOM_TYPES = "room-types"
    RATE_PLANS = "rate-plans"
    TAX_SETS = "tax-sets"


SERVICES = {
    SyncResource.PROPERTIES: PropertySyncService,
    SyncResource.GROUPS: GroupSyncService,
    SyncResource.ROOM_TYPES: RoomTypeSyncService,
    SyncResource.RATE_PLANS: RatePlanSyncService,
    SyncResource.TAX_SETS: TaxSetSyncService,
}

HTTP_STATUS_BY_KIND = {
    SyncErrorKind.PRECONDITION: 409,
    SyncErrorKind.NOT_FOUND: 404,
    SyncErrorKind.VALIDATION: 422,
    SyncErrorKind.REMOTE: 502,
}


# ==================
# Dependencies
# ==================

def get_request_id(request: Request) -> str:
    """Get request_id from request state or generate one"""
    return getattr(request.state, "request_id", str(uuid.uuid4())[:8])


def get_channex(request: Request) -> ChannexClient:
    return get_channex_client(get_request_id(request))


def get_backend(request: Request) -> BackendClient:
    return get_backend_client(get_request_id(request))


def get_mapping_store() -> IdentifierMappingStore:
    return IdentifierMappingStore(SqlKeyValueStore(SessionLocal))


def raise_sync_error(request_id: str, error: SyncError):
    status_code = HTTP_STATUS_BY_KIND.get(error.kind, 502)
    logger.warning(f"[{request_id}] Sync failed ({error.kind.value}): {error.message}")
    raise HTTPException(status_code=status_code, detail=error.to_dict())


def _build_service(
    resource: SyncResource,
    channex: ChannexClient,
    backend: BackendClient,
    mappings: IdentifierMappingStore,
) -> EntitySyncService:
    return SERVICES[resource](channex, backend, mappings)


def _build_target(local_id: str, body: Optional[SyncTargetRequest]) -> SyncTarget:
    body = body or SyncTargetRequest()
    return SyncTarget(
        local_id=local_id,
        title=body.title,
        channex_property_id=body.channex_property_id,
        channex_room_type_id=body.channex_room_type_id,
        channex_group_id=body.channex_group_id,
        record=dict(body.record or {}),
    )


# ==================
# ARI pushes (declared before the generic entity routes)
# ==================

@router.post("/rate-plans/{rate_plan_id}/rates/sync", response_model=AriSyncResponse)
def sync_rates(
    rate_plan_id: str,
    request: Request,
    body: Optional[AriSyncRequest] = Body(default=None),
    channex: ChannexClient = Depends(get_channex),
    backend: BackendClient = Depends(get_backend),
    mappings: IdentifierMappingStore = Depends(get_mapping_store),
):
    """Push grouped rates (converted to minor units) with period-rule restrictions"""
    body = body or AriSyncRequest()
    try:
        result = RatesSyncService(channex, backend, mappings).sync(
            rate_plan_id,
            start_date=body.start_date,
            end_date=body.end_date,
            channex_property_id=body.channex_property_id,
            channex_rate_plan_id=body.channex_remote_id,
        )
    except SyncError as e:
        raise_sync_error(get_request_id(request), e)
    return AriSyncResponse(**result.to_dict())


@router.post("/room-types/{room_type_id}/availability/sync", response_model=AriSyncResponse)
def sync_availability(
    room_type_id: str,
    request: Request,
    body: Optional[AriSyncRequest] = Body(default=None),
    channex: ChannexClient = Depends(get_channex),
    backend: BackendClient = Depends(get_backend),
    mappings: IdentifierMappingStore = Depends(get_mapping_store),
):
    body = body or AriSyncRequest()
    try:
        result = AvailabilitySyncService(channex, backend, mappings).sync(
            room_type_id,
            start_date=body.start_date,
            end_date=body.end_date,
            channex_property_id=body.channex_property_id,
            channex_room_type_id=body.channex_remote_id,
        )
    except SyncError as e:
        raise_sync_error(get_request_id(request), e)
    return AriSyncResponse(**result.to_dict())


# ==================
# Entity sync
# ==================

@router.post("/{resource}/{local_id}/sync", response_model=SyncOutcomeResponse)
def sync_entity(
    resource: SyncResource,
    local_id: str,
    request: Request,
    body: Optional[SyncTargetRequest] = Body(default=None),
    channex: ChannexClient = Depends(get_channex),
    backend: BackendClient = Depends(get_backend),
    mappings: IdentifierMappingStore = Depends(get_mapping_store),
):
    """
    Create the entity in Channex, or update it when it already exists.

    A request arriving while a sync for the same entity is pending is
    dropped (skipped=true).
    """
    service = _build_service(resource, channex, backend, mappings)
    try:
        outcome = service.sync(_build_target(local_id, body))
    except SyncError as e:
        raise_sync_error(get_request_id(request), e)
    return SyncOutcomeResponse(**outcome.to_dict())


@router.get("/{resource}/{local_id}/status", response_model=SyncStatusResponse)
def entity_status(
    resource: SyncResource,
    local_id: str,
    request: Request,
    title: Optional[str] = None,
    channex_property_id: Optional[str] = None,
    channex_room_type_id: Optional[str] = None,
    channex: ChannexClient = Depends(get_channex),
    backend: BackendClient = Depends(get_backend),
    mappings: IdentifierMappingStore = Depends(get_mapping_store),
):
    service = _build_service(resource, channex, backend, mappings)
    target = _build_target(local_id, SyncTargetRequest(
        title=title,
        channex_property_id=channex_property_id,
        channex_room_type_id=channex_room_type_id,
    ))
    try:
        status = service.check(target)
    except SyncError as e:
        raise_sync_error(get_request_id(request), e)
    return SyncStatusResponse(
        state=status.state.value,
        remote_id=status.remote_id,
        exists_in_channex=status.remote_id is not None,
    )


@router.post("/{resource}/{local_id}/changes", response_model=SyncOutcomeResponse)
def entity_changed(
    resource: SyncResource,
    local_id: str,
    request: Request,
    body: Optional[SyncTargetRequest] = Body(default=None),
    channex: ChannexClient = Depends(get_channex),
    backend: BackendClient = Depends(get_backend),
    mappings: IdentifierMappingStore = Depends(get_mapping_store),
):
    """
    Report that a local entity may have changed.

    Updates Channex only when the entity is already mapped, its fingerprint
    differs from the previous observation and no sync is pending. Never creates.
    """
    service = _build_service(resource, channex, backend, mappings)
    try:
        outcome = service.auto_sync(_build_target(local_id, body))
    except SyncError as e:
        raise_sync_error(get_request_id(request), e)
    return SyncOutcomeResponse(**outcome.to_dict())
