"""Service layer for pricing rules and price calculation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from . import rules
from .metrics import (
    PRICE_CALCULATION_RULES_CONSIDERED,
    PRICE_CALCULATIONS_TOTAL,
    PRICING_RULE_MUTATIONS_TOTAL,
    PRICING_RULES_APPLIED_TOTAL,
)
from .models import BeautyService, PricingRule
from .repository import PricingRepository, to_evaluation_rule
from .schemas import PricingRuleCreate, PricingRuleUpdate, ServiceCreate

logger = logging.getLogger(__name__)

_NULLABLE_UPDATE_FIELDS = ("description", "valid_from", "valid_until")


class PricingError(Exception):
    """Base class for pricing service errors."""


class ServiceNotFound(PricingError):
    """Raised when a service id does not resolve to a catalog service."""

    def __init__(self, service_id: str) -> None:
        super().__init__(f"Service {service_id} not found")
        self.service_id = service_id


class PricingRuleNotFound(PricingError):
    """Raised when a pricing rule id does not resolve."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Pricing rule {rule_id} not found")
        self.rule_id = rule_id


class InvalidValidityWindow(PricingError):
    """Raised when a rule would end before it starts."""

    def __init__(self, valid_from: datetime, valid_until: datetime) -> None:
        super().__init__("validUntil must not be earlier than validFrom")
        self.valid_from = valid_from
        self.valid_until = valid_until


class PricingRuleService:
    """Pricing rule administration and price calculation.

    ``clock`` supplies the instant used to check rule validity windows.
    """

    def __init__(self, repository: PricingRepository, clock: rules.Clock = rules.utc_now) -> None:
        self.repository = repository
        self.clock = clock

    # Price calculation ----------------------------------------------------------------------

    async def calculate_price(self, service_id: str, context: Mapping[str, Any] | None = None) -> float:
        breakdown = await self.price_breakdown(service_id, context)
        return breakdown.price

    async def price_breakdown(
        self, service_id: str, context: Mapping[str, Any] | None = None
    ) -> rules.PriceBreakdown:
        service = await self.repository.get_service(service_id)
        if service is None:
            PRICE_CALCULATIONS_TOTAL.labels(outcome="service_not_found").inc()
            raise ServiceNotFound(service_id)

        records = await self.repository.list_active_rules(service_id)
        PRICE_CALCULATION_RULES_CONSIDERED.observe(len(records))

        evaluation_context = rules.EvaluationContext.from_mapping(context)
        breakdown = rules.evaluate_price(
            float(service.price),
            [to_evaluation_rule(record) for record in records],
            evaluation_context,
            self.clock(),
        )
        PRICE_CALCULATIONS_TOTAL.labels(outcome="calculated").inc()
        PRICING_RULES_APPLIED_TOTAL.inc(len(breakdown.applied))
        logger.debug(
            "Priced service %s: base=%.2f final=%.2f rules_applied=%d",
            service_id,
            breakdown.base_price,
            breakdown.price,
            len(breakdown.applied),
        )
        return breakdown

    # Rules ----------------------------------------------------------------------------------

    async def get_rule(self, rule_id: str) -> PricingRule:
        rule = await self.repository.get_rule(rule_id)
        if rule is None:
            raise PricingRuleNotFound(rule_id)
        return rule

    async def list_rules(self, service_id: str | None = None) -> list[PricingRule]:
        return await self.repository.list_rules(service_id=service_id)

    async def list_rules_for_service(self, service_id: str) -> list[PricingRule]:
        return await self.repository.list_active_rules(service_id)

    async def create_rule(self, payload: PricingRuleCreate) -> PricingRule:
        if await self.repository.get_service(payload.service_id) is None:
            raise ServiceNotFound(payload.service_id)

        rule = await self.repository.create_rule(
            service_id=payload.service_id,
            name=payload.name,
            description=payload.description,
            rule_type=payload.rule_type,
            conditions=payload.conditions,
            adjustment=payload.adjustment,
            priority=payload.priority,
            is_active=payload.is_active,
            valid_from=payload.valid_from,
            valid_until=payload.valid_until,
        )
        PRICING_RULE_MUTATIONS_TOTAL.labels(operation="create").inc()
        logger.info("Created pricing rule %s for service %s", rule.id, rule.service_id)
        return rule

    async def update_rule(self, rule_id: str, payload: PricingRuleUpdate) -> PricingRule:
        rule = await self.get_rule(rule_id)
        # Nullable fields are only touched when the caller sent them, so an explicit null clears them.
        nullable = {
            name: getattr(payload, name)
            for name in _NULLABLE_UPDATE_FIELDS
            if name in payload.model_fields_set
        }
        valid_from = nullable.get("valid_from", rule.valid_from)
        valid_until = nullable.get("valid_until", rule.valid_until)
        if valid_from is not None and valid_until is not None:
            if rules.as_utc(valid_until) < rules.as_utc(valid_from):
                raise InvalidValidityWindow(valid_from, valid_until)

        updated = await self.repository.update_rule(
            rule,
            name=payload.name,
            rule_type=payload.rule_type,
            conditions=payload.conditions,
            adjustment=payload.adjustment,
            priority=payload.priority,
            is_active=payload.is_active,
            **nullable,
        )
        PRICING_RULE_MUTATIONS_TOTAL.labels(operation="update").inc()
        logger.info("Updated pricing rule %s", rule_id)
        return updated

    async def delete_rule(self, rule_id: str) -> None:
        rule = await self.get_rule(rule_id)
        await self.repository.delete_rule(rule)
        PRICING_RULE_MUTATIONS_TOTAL.labels(operation="delete").inc()
        logger.info("Deleted pricing rule %s", rule_id)

    # Catalog --------------------------------------------------------------------------------

    async def create_service(self, payload: ServiceCreate) -> BeautyService:
        service = await self.repository.create_service(
            name=payload.name,
            description=payload.description,
            price=payload.price,
            duration_minutes=payload.duration_minutes,
            is_active=payload.is_active,
        )
        logger.info("Created service %s (%s)", service.id, service.name)
        return service

    async def get_service(self, service_id: str) -> BeautyService:
        service = await self.repository.get_service(service_id)
        if service is None:
            raise ServiceNotFound(service_id)
        return service

    async def list_services(self, *, active_only: bool = False) -> list[BeautyService]:
        return await self.repository.list_services(active_only=active_only)
