"""API routes for pricing rules and price calculation."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ..dependencies import get_pricing_service
from ..models import PricingRule
from ..repository import load_document
from ..rules import PriceBreakdown
from ..schemas import (
    AppliedRuleResponse,
    DeletedResponse,
    PriceBreakdownResponse,
    PriceResponse,
    PricingRuleCreate,
    PricingRuleListResponse,
    PricingRuleResponse,
    PricingRuleUpdate,
)
from ..services import InvalidValidityWindow, PricingRuleNotFound, PricingRuleService, ServiceNotFound

router = APIRouter(prefix="/pricing-rules", tags=["pricing-rules"])


def _serialize(rule: PricingRule) -> dict[str, object]:
    return {
        "id": rule.id,
        "serviceId": rule.service_id,
        "name": rule.name,
        "description": rule.description,
        "ruleType": rule.rule_type,
        "conditions": load_document(rule.conditions),
        "adjustment": load_document(rule.adjustment),
        "priority": rule.priority,
        "isActive": rule.is_active,
        "validFrom": rule.valid_from,
        "validUntil": rule.valid_until,
        "createdAt": rule.created_at,
        "updatedAt": rule.updated_at,
    }


def _list_response(rules: list[PricingRule]) -> PricingRuleListResponse:
    items = [PricingRuleResponse.model_validate(_serialize(rule)) for rule in rules]
    return PricingRuleListResponse(items=items, total=len(items))


def _breakdown_response(service_id: str, breakdown: PriceBreakdown) -> PriceBreakdownResponse:
    return PriceBreakdownResponse(
        service_id=service_id,
        base_price=breakdown.base_price,
        price=breakdown.price,
        applied_rules=[
            AppliedRuleResponse(
                rule_id=step.rule_id,
                name=step.name,
                price_before=step.price_before,
                price_after=step.price_after,
            )
            for step in breakdown.applied
        ],
    )


@router.get("", response_model=PricingRuleListResponse)
async def list_pricing_rules(
    service_id: str | None = Query(default=None, alias="serviceId"),
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PricingRuleListResponse:
    rules = await pricing.list_rules(service_id.strip() if service_id else None)
    return _list_response(rules)


@router.get("/service/{service_id}", response_model=PricingRuleListResponse)
async def list_rules_for_service(
    service_id: str,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PricingRuleListResponse:
    rules = await pricing.list_rules_for_service(service_id)
    return _list_response(rules)


@router.post("/calculate-price/{service_id}", response_model=PriceResponse)
async def calculate_price(
    service_id: str,
    context: dict[str, Any] | None = Body(default=None),
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PriceResponse:
    try:
        price = await pricing.calculate_price(service_id, context or {})
    except ServiceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from exc
    return PriceResponse(price=price)


@router.post("/calculate-price/{service_id}/breakdown", response_model=PriceBreakdownResponse)
async def calculate_price_breakdown(
    service_id: str,
    context: dict[str, Any] | None = Body(default=None),
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PriceBreakdownResponse:
    try:
        breakdown = await pricing.price_breakdown(service_id, context or {})
    except ServiceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from exc
    return _breakdown_response(service_id, breakdown)


@router.post("", response_model=PricingRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_pricing_rule(
    payload: PricingRuleCreate,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PricingRuleResponse:
    try:
        rule = await pricing.create_rule(payload)
    except ServiceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from exc
    return PricingRuleResponse.model_validate(_serialize(rule))


@router.get("/{rule_id}", response_model=PricingRuleResponse)
async def get_pricing_rule(
    rule_id: str,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PricingRuleResponse:
    try:
        rule = await pricing.get_rule(rule_id)
    except PricingRuleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing rule not found") from exc
    return PricingRuleResponse.model_validate(_serialize(rule))


@router.put("/{rule_id}", response_model=PricingRuleResponse)
async def update_pricing_rule(
    rule_id: str,
    payload: PricingRuleUpdate,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> PricingRuleResponse:
    try:
        rule = await pricing.update_rule(rule_id, payload)
    except PricingRuleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing rule not found") from exc
    except InvalidValidityWindow as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return PricingRuleResponse.model_validate(_serialize(rule))


@router.delete("/{rule_id}", response_model=DeletedResponse)
async def delete_pricing_rule(
    rule_id: str,
    pricing: PricingRuleService = Depends(get_pricing_service),
) -> DeletedResponse:
    try:
        await pricing.delete_rule(rule_id)
    except PricingRuleNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pricing rule not found") from exc
    return DeletedResponse(message="Pricing rule deleted")
