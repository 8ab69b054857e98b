"""Data access helpers for the pricing service."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import rules
from .models import BeautyService, PricingRule

_UNSET: Any = object()


def dump_document(document: dict[str, Any] | None) -> str:
    return json.dumps(document or {}, separators=(",", ":"), ensure_ascii=False)


def load_document(raw: str | None) -> dict[str, Any]:
    """Decode a stored JSON object; empty or unreadable text decodes as ``{}``."""

    if not raw:
        return {}
    try:
        document = json.loads(raw)
    except ValueError:
        return {}
    return document if isinstance(document, dict) else {}


def to_evaluation_rule(record: PricingRule) -> rules.PricingRule:
    """Build the evaluator's view of a stored rule."""

    return rules.PricingRule(
        id=record.id,
        service_id=record.service_id,
        name=record.name,
        priority=record.priority,
        is_active=record.is_active,
        conditions=rules.parse_conditions(load_document(record.conditions)),
        adjustment=rules.parse_adjustment(load_document(record.adjustment)),
        valid_from=record.valid_from,
        valid_until=record.valid_until,
    )


class PricingRepository:
    """Persistence helpers for catalog services and their pricing rules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_service(
        self,
        *,
        name: str,
        description: str | None,
        price: Decimal,
        duration_minutes: int,
        is_active: bool,
    ) -> BeautyService:
        service = BeautyService(
            name=name,
            description=description,
            price=price,
            duration_minutes=duration_minutes,
            is_active=is_active,
        )
        self.session.add(service)
        await self.session.flush()
        return service

    async def get_service(self, service_id: str) -> BeautyService | None:
        result = await self.session.execute(select(BeautyService).where(BeautyService.id == service_id))
        return result.scalar_one_or_none()

    async def list_services(self, *, active_only: bool = False) -> list[BeautyService]:
        query = select(BeautyService)
        if active_only:
            query = query.where(BeautyService.is_active.is_(True))
        result = await self.session.execute(query.order_by(BeautyService.name.asc(), BeautyService.id.asc()))
        return list(result.scalars())

    async def create_rule(
        self,
        *,
        service_id: str,
        name: str,
        description: str | None,
        rule_type: str,
        conditions: dict[str, Any],
        adjustment: dict[str, Any],
        priority: int,
        is_active: bool,
        valid_from: datetime | None,
        valid_until: datetime | None,
    ) -> PricingRule:
        rule = PricingRule(
            service_id=service_id,
            name=name,
            description=description,
            rule_type=rule_type,
            conditions=dump_document(conditions),
            adjustment=dump_document(adjustment),
            priority=priority,
            is_active=is_active,
            valid_from=valid_from,
            valid_until=valid_until,
        )
        self.session.add(rule)
        await self.session.flush()
        return rule

    async def get_rule(self, rule_id: str) -> PricingRule | None:
        result = await self.session.execute(select(PricingRule).where(PricingRule.id == rule_id))
        return result.scalar_one_or_none()

    async def list_rules(self, *, service_id: str | None = None) -> list[PricingRule]:
        query: Select[tuple[PricingRule]] = select(PricingRule)
        if service_id:
            query = query.where(PricingRule.service_id == service_id)
        query = query.order_by(PricingRule.priority.desc(), PricingRule.created_at.desc(), PricingRule.id.asc())
        result = await self.session.execute(query)
        return list(result.scalars())

    async def list_active_rules(self, service_id: str) -> list[PricingRule]:
        """Active rules for a service, highest priority first, oldest first within a priority."""

        query = (
            select(PricingRule)
            .where(PricingRule.service_id == service_id, PricingRule.is_active.is_(True))
            .order_by(PricingRule.priority.desc(), PricingRule.created_at.asc(), PricingRule.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars())

    async def update_rule(
        self,
        rule: PricingRule,
        *,
        name: str | None = None,
        description: str | None = _UNSET,
        rule_type: str | None = None,
        conditions: dict[str, Any] | None = None,
        adjustment: dict[str, Any] | None = None,
        priority: int | None = None,
        is_active: bool | None = None,
        valid_from: datetime | None = _UNSET,
        valid_until: datetime | None = _UNSET,
    ) -> PricingRule:
        if name is not None:
            rule.name = name
        if description is not _UNSET:
            rule.description = description
        if rule_type is not None:
            rule.rule_type = rule_type
        if conditions is not None:
            rule.conditions = dump_document(conditions)
        if adjustment is not None:
            rule.adjustment = dump_document(adjustment)
        if priority is not None:
            rule.priority = priority
        if is_active is not None:
            rule.is_active = is_active
        if valid_from is not _UNSET:
            rule.valid_from = valid_from
        if valid_until is not _UNSET:
            rule.valid_until = valid_until

        await self.session.flush()
        await self.session.refresh(rule)
        return rule

    async def delete_rule(self, rule: PricingRule) -> None:
        await self.session.delete(rule)
        await self.session.flush()
