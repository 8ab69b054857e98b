"""Pydantic schemas for the pricing service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .rules import as_utc


def _strip_required(value: str, field_name: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = f"{field_name} must be non-empty"
        raise ValueError(msg)
    return cleaned


class ServiceBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None)
    price: Decimal = Field(ge=Decimal("0"), max_digits=10, decimal_places=2)
    duration_minutes: int = Field(default=60, gt=0, le=24 * 60, alias="durationMinutes")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _strip_required(value, "name")


class ServiceCreate(ServiceBase):
    pass


class ServiceResponse(ServiceBase):
    id: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ServiceListResponse(BaseModel):
    items: list[ServiceResponse]
    total: int


class PricingRuleBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None)
    rule_type: str = Field(min_length=1, max_length=64, alias="ruleType")
    conditions: dict[str, Any] = Field(default_factory=dict)
    adjustment: dict[str, Any]
    priority: int = Field(default=0)
    is_active: bool = Field(default=True, alias="isActive")
    valid_from: datetime | None = Field(default=None, alias="validFrom")
    valid_until: datetime | None = Field(default=None, alias="validUntil")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _strip_required(value, "name")

    @field_validator("rule_type")
    @classmethod
    def _clean_rule_type(cls, value: str) -> str:
        return _strip_required(value, "ruleType")


class PricingRuleCreate(PricingRuleBase):
    service_id: str = Field(min_length=1, alias="serviceId")

    @model_validator(mode="after")
    def _check_window(self) -> PricingRuleCreate:
        if self.valid_from and self.valid_until and as_utc(self.valid_until) < as_utc(self.valid_from):
            msg = "validUntil must not be earlier than validFrom"
            raise ValueError(msg)
        return self


class PricingRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None)
    rule_type: str | None = Field(default=None, min_length=1, max_length=64, alias="ruleType")
    conditions: dict[str, Any] | None = Field(default=None)
    adjustment: dict[str, Any] | None = Field(default=None)
    priority: int | None = Field(default=None)
    is_active: bool | None = Field(default=None, alias="isActive")
    valid_from: datetime | None = Field(default=None, alias="validFrom")
    valid_until: datetime | None = Field(default=None, alias="validUntil")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _clean_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _strip_required(value, "name")

    @field_validator("rule_type")
    @classmethod
    def _clean_rule_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _strip_required(value, "ruleType")


class PricingRuleResponse(PricingRuleBase):
    id: str
    service_id: str = Field(alias="serviceId")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class PricingRuleListResponse(BaseModel):
    items: list[PricingRuleResponse]
    total: int


class PriceResponse(BaseModel):
    price: float


class AppliedRuleResponse(BaseModel):
    rule_id: str = Field(alias="ruleId")
    name: str
    price_before: float = Field(alias="priceBefore")
    price_after: float = Field(alias="priceAfter")

    model_config = ConfigDict(populate_by_name=True)


class PriceBreakdownResponse(BaseModel):
    service_id: str = Field(alias="serviceId")
    base_price: float = Field(alias="basePrice")
    price: float
    applied_rules: list[AppliedRuleResponse] = Field(default_factory=list, alias="appliedRules")

    model_config = ConfigDict(populate_by_name=True)


class DeletedResponse(BaseModel):
    message: str
