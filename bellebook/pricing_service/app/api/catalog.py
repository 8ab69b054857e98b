"""API routes for the beauty-service catalog that supplies base prices."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_pricing_service
from ..models import BeautyService
from ..schemas import ServiceCreate, ServiceListResponse, ServiceResponse
from ..services import PricingRuleService, ServiceNotFound

router = APIRouter(prefix="/services", tags=["services"])


def _serialize(service: BeautyService) -> dict[str, object]:
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description,
        "price": service.price,
        "durationMinutes": service.duration_minutes,
        "isActive": service.is_active,
        "createdAt": service.created_at,
        "updatedAt": service.updated_at,
    }


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreate,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> ServiceResponse:
    service = await pricing.create_service(payload)
    return ServiceResponse.model_validate(_serialize(service))


@router.get("", response_model=ServiceListResponse)
async def list_services(
    active_only: bool = Query(default=False, alias="activeOnly"),
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> ServiceListResponse:
    services = await pricing.list_services(active_only=active_only)
    items = [ServiceResponse.model_validate(_serialize(service)) for service in services]
    return ServiceListResponse(items=items, total=len(items))


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> ServiceResponse:
    try:
        service = await pricing.get_service(service_id)
    except ServiceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from exc
    return ServiceResponse.model_validate(_serialize(service))
