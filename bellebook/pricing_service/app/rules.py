"""Pricing rule evaluation.

Rules are folded over a service's base price in descending priority order.
Each rule is gated by its active flag, its validity window and its
conditions; a matching rule's adjustment is applied to the running price, so
adjustments compound. The result is clamped at zero.

Stored payloads are untyped JSON maps. ``parse_conditions`` and
``parse_adjustment`` turn them into the structured types below once, at the
store boundary, and never raise: a malformed adjustment becomes ``None`` and
is skipped during evaluation, and a malformed condition does not restrict.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Literal

Operation = Literal["increase", "decrease"]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware datetime, reading naive values as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class PercentageAdjustment:
    value: float
    operation: Operation = "increase"

    def apply(self, price: float) -> float:
        change = price * self.value / 100
        return price + change if self.operation == "increase" else price - change


@dataclass(frozen=True, slots=True)
class FixedAdjustment:
    value: float
    operation: Operation = "increase"

    def apply(self, price: float) -> float:
        return price + self.value if self.operation == "increase" else price - self.value


Adjustment = PercentageAdjustment | FixedAdjustment

_ADJUSTMENT_TYPES: dict[str, type[PercentageAdjustment] | type[FixedAdjustment]] = {
    "percentage": PercentageAdjustment,
    "fixed": FixedAdjustment,
}


@dataclass(frozen=True, slots=True)
class RuleConditions:
    """Predicates a rule places on the evaluation context.

    ``None`` means the rule does not constrain that field.
    """

    day_of_week: frozenset[Any] | None = None
    time_range: str | None = None
    season: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.day_of_week is None and self.time_range is None and self.season is None


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Facts about the moment being priced, supplied by the caller."""

    day_of_week: Any = None
    time: str | None = None
    season: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> EvaluationContext:
        if not raw:
            return cls()
        return cls(
            day_of_week=raw.get("dayOfWeek"),
            time=raw.get("time"),
            season=raw.get("season"),
        )


@dataclass(frozen=True, slots=True)
class PricingRule:
    """Evaluation view of a stored pricing rule."""

    id: str
    name: str
    priority: int = 0
    is_active: bool = True
    conditions: RuleConditions = field(default_factory=RuleConditions)
    adjustment: Adjustment | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    service_id: str | None = None


@dataclass(frozen=True, slots=True)
class AppliedAdjustment:
    rule_id: str
    name: str
    price_before: float
    price_after: float


@dataclass(slots=True)
class PriceBreakdown:
    base_price: float
    price: float
    applied: list[AppliedAdjustment] = field(default_factory=list)


def _is_set(value: Any) -> bool:
    # Empty strings, zero and False never constrain; empty lists still do.
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, Real):
        return value != 0
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def parse_conditions(raw: Any) -> RuleConditions:
    if not isinstance(raw, Mapping):
        return RuleConditions()

    day_of_week: frozenset[Any] | None = None
    raw_days = raw.get("dayOfWeek")
    if _is_set(raw_days):
        if isinstance(raw_days, str):
            day_of_week = frozenset([raw_days])
        elif isinstance(raw_days, Iterable) and not isinstance(raw_days, Mapping):
            day_of_week = frozenset(day for day in raw_days if isinstance(day, (str, int)))
        else:
            day_of_week = frozenset([raw_days])

    time_range = raw.get("timeRange")
    season = raw.get("season")
    return RuleConditions(
        day_of_week=day_of_week,
        time_range=time_range if isinstance(time_range, str) and time_range else None,
        season=season if _is_set(season) else None,
    )


def parse_adjustment(raw: Any) -> Adjustment | None:
    if not isinstance(raw, Mapping):
        return None
    raw_type = raw.get("type")
    kind = _ADJUSTMENT_TYPES.get(raw_type) if isinstance(raw_type, str) else None
    value = raw.get("value")
    if kind is None or not _is_number(value):
        return None
    operation: Operation = "increase" if raw.get("operation") == "increase" else "decrease"
    return kind(value=float(value), operation=operation)


def is_effective(rule: PricingRule, now: datetime) -> bool:
    """True when the rule is active and ``now`` lies in its validity window."""

    if not rule.is_active:
        return False
    now = as_utc(now)
    if rule.valid_from is not None and as_utc(rule.valid_from) > now:
        return False
    if rule.valid_until is not None and as_utc(rule.valid_until) < now:
        return False
    return True


def _within_time_range(time_range: str, time: str) -> bool:
    # Plain string comparison of zero-padded HH:mm; ranges crossing midnight never match.
    start, _, end = time_range.partition("-")
    if time < start:
        return False
    if end and time > end:
        return False
    return True


def matches_conditions(conditions: RuleConditions, context: EvaluationContext) -> bool:
    """Check a rule's conditions; a field only restricts when both sides supply it."""

    if conditions.is_empty:
        return True

    if conditions.day_of_week is not None and _is_set(context.day_of_week):
        day = context.day_of_week
        if not isinstance(day, Hashable) or day not in conditions.day_of_week:
            return False

    if conditions.time_range is not None and isinstance(context.time, str) and context.time:
        if not _within_time_range(conditions.time_range, context.time):
            return False

    if conditions.season is not None and _is_set(context.season):
        if conditions.season != context.season:
            return False

    return True


def apply_adjustment(price: float, adjustment: Adjustment | None) -> float:
    if adjustment is None:
        return price
    return adjustment.apply(price)


def applicable_rules(
    rules: Iterable[PricingRule],
    context: EvaluationContext,
    now: datetime,
) -> list[PricingRule]:
    """Return the rules that apply, highest priority first.

    The sort is stable, so rules sharing a priority keep their input order.
    """

    matching = [
        rule
        for rule in rules
        if is_effective(rule, now) and matches_conditions(rule.conditions, context)
    ]
    return sorted(matching, key=lambda rule: rule.priority, reverse=True)


def evaluate_price(
    base_price: float,
    rules: Iterable[PricingRule],
    context: EvaluationContext,
    now: datetime,
) -> PriceBreakdown:
    price = float(base_price)
    breakdown = PriceBreakdown(base_price=price, price=price)
    for rule in applicable_rules(rules, context, now):
        adjusted = apply_adjustment(price, rule.adjustment)
        if rule.adjustment is not None:
            breakdown.applied.append(
                AppliedAdjustment(rule_id=rule.id, name=rule.name, price_before=price, price_after=adjusted)
            )
        price = adjusted
    breakdown.price = max(0.0, price)
    return breakdown


def calculate_price(
    base_price: float,
    rules: Iterable[PricingRule],
    context: EvaluationContext,
    now: datetime,
) -> float:
    return evaluate_price(base_price, rules, context, now).price
