#!/usr/bin/env python3
"""Synthetic probe for the pricing service.

Creates a throwaway catalog service with two unconditional pricing rules,
checks that ``calculate-price`` folds them in priority order, verifies the
Prometheus calculation counter moved, then deletes the rules again.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import os
import time
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
from prometheus_client.parser import text_string_to_metric_families

CALCULATIONS_METRIC = "pricing_price_calculations_total"


@dataclass(slots=True)
class ProbeScenario:
    base_price: float
    rules: list[dict[str, Any]]
    expected_price: float


# Fixed +10 at priority 5, then +50% at priority 1: 50 -> 60 -> 90.
DEFAULT_SCENARIO = ProbeScenario(
    base_price=50.0,
    rules=[
        {"name": "probe-fixed", "adjustment": {"type": "fixed", "value": 10, "operation": "increase"}, "priority": 5},
        {
            "name": "probe-percentage",
            "adjustment": {"type": "percentage", "value": 50, "operation": "increase"},
            "priority": 1,
        },
    ],
    expected_price=90.0,
)


class ProbeError(RuntimeError):
    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context or {})


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic probe for pricing service")
    parser.add_argument(
        "--base-url",
        default=os.getenv("PRICING_BASE_URL", "http://127.0.0.1:8000"),
        help="Base URL for the pricing service (default: %(default)s or PRICING_BASE_URL)",
    )
    parser.add_argument(
        "--metrics-path",
        default=os.getenv("PRICING_METRICS_PATH", "/metrics"),
        help="Path to Prometheus metrics endpoint (default: %(default)s or PRICING_METRICS_PATH)",
    )
    parser.add_argument(
        "--skip-metrics",
        action="store_true",
        help="Skip verification of Prometheus metric deltas",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=5.0,
        help="HTTP client timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--max-calculate-ms",
        type=float,
        default=float(os.getenv("PRICING_PROBE_MAX_CALCULATE_MS", "500")),
        help="Maximum allowed calculate-price latency in milliseconds (default: %(default)s)",
    )
    return parser.parse_args()


def calculations_count(text: str) -> float:
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            if sample.name == CALCULATIONS_METRIC and sample.labels.get("outcome") == "calculated":
                return sample.value
    return 0.0


async def fetch_calculations(client: httpx.AsyncClient, path: str) -> float:
    response = await client.get(path)
    response.raise_for_status()
    return calculations_count(response.text)


async def _post(client: httpx.AsyncClient, path: str, payload: Mapping[str, Any], expected: int) -> dict[str, Any]:
    response = await client.post(path, json=payload)
    if response.status_code != expected:
        raise ProbeError(
            f"POST {path} failed",
            context={"status_code": response.status_code, "body": response.text},
        )
    return response.json()


async def run_probe(args: argparse.Namespace, scenario: ProbeScenario = DEFAULT_SCENARIO) -> dict[str, Any]:
    timeout = httpx.Timeout(args.request_timeout)
    identifier = uuid.uuid4().hex[:8]
    async with httpx.AsyncClient(base_url=args.base_url, timeout=timeout) as client:
        before = 0.0 if args.skip_metrics else await fetch_calculations(client, args.metrics_path)

        service = await _post(
            client,
            "/services",
            {"name": f"Synthetic probe {identifier}", "price": f"{scenario.base_price:.2f}", "isActive": False},
            201,
        )
        rule_ids: list[str] = []
        try:
            for rule in scenario.rules:
                created = await _post(
                    client,
                    "/pricing-rules",
                    {"serviceId": service["id"], "ruleType": "SYNTHETIC", **rule},
                    201,
                )
                rule_ids.append(created["id"])

            start = time.monotonic()
            priced = await _post(client, f"/pricing-rules/calculate-price/{service['id']}", {}, 200)
            calculate_ms = (time.monotonic() - start) * 1000.0
        finally:
            for rule_id in rule_ids:
                await client.delete(f"/pricing-rules/{rule_id}")

        price = float(priced["price"])
        if not math.isclose(price, scenario.expected_price, abs_tol=1e-9):
            raise ProbeError(
                "Calculated price did not match expectation",
                context={"expected": scenario.expected_price, "actual": price, "serviceId": service["id"]},
            )
        if calculate_ms > args.max_calculate_ms:
            raise ProbeError(
                "calculate-price latency exceeded threshold",
                context={"calculate_ms": round(calculate_ms, 2), "threshold_ms": args.max_calculate_ms},
            )

        delta = None
        if not args.skip_metrics:
            delta = await fetch_calculations(client, args.metrics_path) - before
            if delta < 1:
                raise ProbeError(f"{CALCULATIONS_METRIC} did not increment", context={"delta": delta})

        return {
            "status": "ok",
            "serviceId": service["id"],
            "price": price,
            "durationsMs": {"calculate": round(calculate_ms, 2)},
            "calculationsDelta": delta,
        }


async def main_async() -> int:
    args = parse_args()
    try:
        result = await run_probe(args)
    except ProbeError as exc:
        payload = {"status": "error", "message": str(exc), "context": exc.context}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 1
    except httpx.HTTPError as exc:
        payload = {
            "status": "error",
            "message": str(exc),
            "context": {"exc_type": exc.__class__.__name__},
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 1
    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
