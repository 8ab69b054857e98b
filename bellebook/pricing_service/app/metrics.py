"""Prometheus metrics for the pricing service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

# Price calculation ------------------------------------------------------------------------
PRICE_CALCULATIONS_TOTAL: Final = Counter(
    "pricing_price_calculations_total",
    "Price calculations handled, by outcome.",
    labelnames=("outcome",),
)

PRICING_RULES_APPLIED_TOTAL: Final = Counter(
    "pricing_rules_applied_total",
    "Pricing rule adjustments applied while calculating prices.",
)

PRICE_CALCULATION_RULES_CONSIDERED: Final = Histogram(
    "pricing_rules_considered",
    "Number of active rules loaded for a single price calculation.",
    buckets=(0, 1, 2, 5, 10, 20, 50, 100),
)

# Rule administration ----------------------------------------------------------------------
PRICING_RULE_MUTATIONS_TOTAL: Final = Counter(
    "pricing_rule_mutations_total",
    "Pricing rule create/update/delete operations.",
    labelnames=("operation",),
)
