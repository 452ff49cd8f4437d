"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import date
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    ClientOut,
    DeliveryOut,
    ParcelAssignment,
    ParcelOut,
    ParcelSurfaceUpdate,
    ProfileUpdate,
    SummaryResponse,
)
from datastore.record_store import ParcelUpdate
from models.records import OperationType
from services.portal import DeliveryQuery, PortalService, build_default_service

router = APIRouter()


def get_service() -> PortalService:
    return build_default_service()


def delivery_query(
    date_from: Optional[date] = Query(None, description="First day included (UTC)."),
    date_to: Optional[date] = Query(None, description="Last day included (UTC)."),
    parcel: Optional[str] = Query(None, description="Exact parcel name."),
    operation_type: Optional[OperationType] = Query(None),
    product_id: Optional[int] = Query(None, ge=0, description="0 selects all products."),
    search: Optional[str] = Query(None, description="Matches parcel or driver names."),
) -> DeliveryQuery:
    return DeliveryQuery(
        date_from=date_from,
        date_to=date_to,
        parcel_name=parcel,
        operation_type=operation_type,
        product_id=product_id,
        search=search,
    )


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, KeyError):
        code = status.HTTP_404_NOT_FOUND
        detail = exc.args[0] if exc.args else str(exc)
    elif isinstance(exc, PermissionError):
        code = status.HTTP_403_FORBIDDEN
        detail = str(exc)
    else:
        code = status.HTTP_400_BAD_REQUEST
        detail = str(exc)
    raise HTTPException(status_code=code, detail=detail) from exc


@router.get(
    "/clients/{client_id}/summary",
    response_model=SummaryResponse,
    summary="Aggregated delivery statistics for the selected filters.",
)
async def get_summary(
    client_id: int,
    query: DeliveryQuery = Depends(delivery_query),
    service: PortalService = Depends(get_service),
) -> SummaryResponse:
    try:
        result = service.build_summary(client_id, query)
    except (KeyError, ValueError) as exc:
        _raise_http(exc)
    return SummaryResponse.from_portal(result)


@router.get(
    "/clients/{client_id}/deliveries",
    response_model=List[DeliveryOut],
    summary="Delivery history, newest first.",
)
async def list_deliveries(
    client_id: int,
    query: DeliveryQuery = Depends(delivery_query),
    service: PortalService = Depends(get_service),
) -> List[DeliveryOut]:
    try:
        deliveries = service.list_deliveries(client_id, query)
    except (KeyError, ValueError) as exc:
        _raise_http(exc)
    return [DeliveryOut.model_validate(delivery) for delivery in deliveries]


@router.patch(
    "/clients/{client_id}/deliveries/{delivery_id}/parcel",
    response_model=DeliveryOut,
    summary="Reassign a delivery to another parcel.",
)
async def assign_parcel(
    client_id: int,
    delivery_id: int,
    payload: ParcelAssignment,
    service: PortalService = Depends(get_service),
) -> DeliveryOut:
    try:
        delivery = service.assign_parcel(client_id, delivery_id, payload.parcel_name)
    except (KeyError, PermissionError) as exc:
        _raise_http(exc)
    return DeliveryOut.model_validate(delivery)


@router.patch(
    "/clients/{client_id}/parcels",
    response_model=List[ParcelOut],
    summary="Rename parcels and edit their surface areas.",
)
async def update_parcels(
    client_id: int,
    payload: List[ParcelSurfaceUpdate],
    service: PortalService = Depends(get_service),
) -> List[ParcelOut]:
    updates = [
        ParcelUpdate(id=item.id, name=item.name, surface_hectares=item.surface_hectares)
        for item in payload
    ]
    try:
        parcels = service.update_parcel_surfaces(client_id, updates)
    except (KeyError, PermissionError, ValueError) as exc:
        _raise_http(exc)
    return [ParcelOut.model_validate(parcel) for parcel in parcels]


@router.get(
    "/clients/{client_id}/parcels",
    response_model=List[ParcelOut],
    summary="Parcels managed by the client.",
)
async def list_parcels(
    client_id: int,
    active_only: bool = Query(True),
    service: PortalService = Depends(get_service),
) -> List[ParcelOut]:
    try:
        parcels = service.list_parcels(client_id, active_only=active_only)
    except KeyError as exc:
        _raise_http(exc)
    return [ParcelOut.model_validate(parcel) for parcel in parcels]


@router.get(
    "/clients/{client_id}/profile",
    response_model=ClientOut,
    summary="Client contact details.",
)
async def get_profile(
    client_id: int,
    service: PortalService = Depends(get_service),
) -> ClientOut:
    try:
        client = service.get_profile(client_id)
    except KeyError as exc:
        _raise_http(exc)
    return ClientOut.model_validate(client)


@router.patch(
    "/clients/{client_id}/profile",
    response_model=ClientOut,
    summary="Update client contact details.",
)
async def update_profile(
    client_id: int,
    payload: ProfileUpdate,
    service: PortalService = Depends(get_service),
) -> ClientOut:
    try:
        client = service.update_profile(client_id, payload.model_dump(exclude_unset=True))
    except (KeyError, ValueError) as exc:
        _raise_http(exc)
    return ClientOut.model_validate(client)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
