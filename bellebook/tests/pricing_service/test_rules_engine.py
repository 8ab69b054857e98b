from datetime import datetime, timedelta, timezone

import pytest

from bellebook.pricing_service.app.rules import (
    EvaluationContext,
    FixedAdjustment,
    PercentageAdjustment,
    PricingRule,
    RuleConditions,
    applicable_rules,
    apply_adjustment,
    calculate_price,
    evaluate_price,
    is_effective,
    matches_conditions,
    parse_adjustment,
    parse_conditions,
)

NOW = datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc)
EMPTY_CONTEXT = EvaluationContext()


def _rule(
    rule_id: str,
    adjustment: dict | None,
    *,
    priority: int = 0,
    conditions: dict | None = None,
    is_active: bool = True,
    valid_from: datetime | None = None,
    valid_until: datetime | None = None,
) -> PricingRule:
    return PricingRule(
        id=rule_id,
        name=f"rule {rule_id}",
        priority=priority,
        is_active=is_active,
        conditions=parse_conditions(conditions or {}),
        adjustment=parse_adjustment(adjustment),
        valid_from=valid_from,
        valid_until=valid_until,
    )


def _context(**values) -> EvaluationContext:
    return EvaluationContext.from_mapping(values)


class TestParsing:
    def test_adjustment_variants(self) -> None:
        assert parse_adjustment({"type": "percentage", "value": 20, "operation": "increase"}) == (
            PercentageAdjustment(value=20.0, operation="increase")
        )
        assert parse_adjustment({"type": "fixed", "value": 5.5, "operation": "decrease"}) == (
            FixedAdjustment(value=5.5, operation="decrease")
        )

    def test_unknown_operation_is_a_decrease(self) -> None:
        adjustment = parse_adjustment({"type": "fixed", "value": 5})
        assert adjustment == FixedAdjustment(value=5.0, operation="decrease")

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            [],
            {},
            {"value": 10, "operation": "increase"},
            {"type": "bogus", "value": 10, "operation": "increase"},
            {"type": "percentage", "operation": "increase"},
            {"type": "fixed", "value": "10", "operation": "increase"},
            {"type": "fixed", "value": True, "operation": "increase"},
        ],
    )
    def test_malformed_adjustment_parses_to_none(self, raw) -> None:
        assert parse_adjustment(raw) is None

    def test_conditions_fields(self) -> None:
        conditions = parse_conditions(
            {"dayOfWeek": ["MON", "TUE"], "timeRange": "09:00-12:00", "season": "summer", "extra": 1}
        )
        assert conditions == RuleConditions(
            day_of_week=frozenset({"MON", "TUE"}),
            time_range="09:00-12:00",
            season="summer",
        )

    def test_blank_conditions_do_not_restrict(self) -> None:
        conditions = parse_conditions({"dayOfWeek": "", "timeRange": "", "season": None})
        assert conditions.is_empty

    def test_single_day_string_is_a_one_day_set(self) -> None:
        assert parse_conditions({"dayOfWeek": "SAT"}).day_of_week == frozenset({"SAT"})

    def test_single_day_string_needs_an_exact_match(self) -> None:
        conditions = parse_conditions({"dayOfWeek": "SATURDAY"})
        assert matches_conditions(conditions, _context(dayOfWeek="SATURDAY"))
        assert not matches_conditions(conditions, _context(dayOfWeek="SAT"))
        assert not matches_conditions(conditions, _context(dayOfWeek="DAY"))

    def test_context_ignores_unknown_keys(self) -> None:
        context = EvaluationContext.from_mapping({"dayOfWeek": "MON", "time": "10:00", "weather": "rain"})
        assert context == EvaluationContext(day_of_week="MON", time="10:00", season=None)


class TestMatchesConditions:
    def test_empty_conditions_match(self) -> None:
        assert matches_conditions(RuleConditions(), _context(dayOfWeek="WED", time="23:00", season="winter"))

    def test_day_of_week_membership(self) -> None:
        conditions = parse_conditions({"dayOfWeek": ["MON", "TUE"]})
        assert not matches_conditions(conditions, _context(dayOfWeek="WED"))
        assert matches_conditions(conditions, _context(dayOfWeek="MON"))

    def test_condition_only_enforced_when_context_supplies_field(self) -> None:
        conditions = parse_conditions({"dayOfWeek": ["MON"], "timeRange": "09:00-10:00", "season": "summer"})
        assert matches_conditions(conditions, EMPTY_CONTEXT)
        assert matches_conditions(conditions, _context(dayOfWeek="", time="", season=""))

    def test_empty_day_list_rejects_any_supplied_day(self) -> None:
        conditions = parse_conditions({"dayOfWeek": []})
        assert not matches_conditions(conditions, _context(dayOfWeek="MON"))
        assert matches_conditions(conditions, EMPTY_CONTEXT)

    @pytest.mark.parametrize(
        ("time", "expected"),
        [
            ("08:59", False),
            ("09:00", True),
            ("12:30", True),
            ("18:00", True),
            ("18:01", False),
        ],
    )
    def test_time_range_is_inclusive(self, time: str, expected: bool) -> None:
        conditions = parse_conditions({"timeRange": "09:00-18:00"})
        assert matches_conditions(conditions, _context(time=time)) is expected

    def test_time_range_crossing_midnight_never_matches(self) -> None:
        conditions = parse_conditions({"timeRange": "22:00-02:00"})
        assert not matches_conditions(conditions, _context(time="23:00"))
        assert not matches_conditions(conditions, _context(time="01:00"))

    def test_time_range_without_end_only_checks_start(self) -> None:
        conditions = parse_conditions({"timeRange": "17:00"})
        assert matches_conditions(conditions, _context(time="23:59"))
        assert not matches_conditions(conditions, _context(time="16:00"))

    def test_season_must_be_equal(self) -> None:
        conditions = parse_conditions({"season": "summer"})
        assert matches_conditions(conditions, _context(season="summer"))
        assert not matches_conditions(conditions, _context(season="winter"))

    def test_all_supplied_conditions_must_hold(self) -> None:
        conditions = parse_conditions({"dayOfWeek": ["SAT"], "season": "summer"})
        assert matches_conditions(conditions, _context(dayOfWeek="SAT", season="summer"))
        assert not matches_conditions(conditions, _context(dayOfWeek="SAT", season="winter"))


class TestAdjustments:
    def test_percentage(self) -> None:
        assert apply_adjustment(100.0, PercentageAdjustment(20, "increase")) == pytest.approx(120.0)
        assert apply_adjustment(100.0, PercentageAdjustment(20, "decrease")) == pytest.approx(80.0)

    def test_fixed(self) -> None:
        assert apply_adjustment(40.0, FixedAdjustment(15, "increase")) == pytest.approx(55.0)
        assert apply_adjustment(40.0, FixedAdjustment(15, "decrease")) == pytest.approx(25.0)

    def test_missing_adjustment_is_a_no_op(self) -> None:
        assert apply_adjustment(42.0, None) == 42.0


class TestValidity:
    def test_inactive_rule_is_not_effective(self) -> None:
        assert not is_effective(_rule("a", {}, is_active=False), NOW)

    def test_window_bounds(self) -> None:
        assert is_effective(_rule("a", {}, valid_from=NOW, valid_until=NOW), NOW)
        assert not is_effective(_rule("a", {}, valid_from=NOW + timedelta(seconds=1)), NOW)
        assert not is_effective(_rule("a", {}, valid_until=NOW - timedelta(seconds=1)), NOW)

    def test_naive_datetimes_are_read_as_utc(self) -> None:
        naive_past = (NOW - timedelta(days=1)).replace(tzinfo=None)
        assert not is_effective(_rule("a", {}, valid_until=naive_past), NOW)
        assert is_effective(_rule("a", {}, valid_from=naive_past), NOW)


class TestEvaluatePrice:
    def test_single_percentage_rule(self) -> None:
        rules = [_rule("a", {"type": "percentage", "value": 20, "operation": "increase"}, priority=1)]
        assert calculate_price(100.0, rules, EMPTY_CONTEXT, NOW) == pytest.approx(120.0)

    def test_sequential_fold_follows_priority(self) -> None:
        rules = [
            _rule("pct", {"type": "percentage", "value": 50, "operation": "increase"}, priority=1),
            _rule("fixed", {"type": "fixed", "value": 10, "operation": "increase"}, priority=5),
        ]
        breakdown = evaluate_price(50.0, rules, EMPTY_CONTEXT, NOW)

        assert breakdown.price == pytest.approx(90.0)
        assert [step.rule_id for step in breakdown.applied] == ["fixed", "pct"]
        assert breakdown.applied[0].price_after == pytest.approx(60.0)

    def test_higher_priority_applies_first(self) -> None:
        rules = [
            _rule("b", {"type": "fixed", "value": 5, "operation": "increase"}, priority=5),
            _rule("a", {"type": "percentage", "value": 10, "operation": "increase"}, priority=10),
        ]
        assert calculate_price(80.0, rules, EMPTY_CONTEXT, NOW) == pytest.approx(80.0 * 1.10 + 5)

    def test_equal_priorities_keep_input_order(self) -> None:
        rules = [
            _rule("first", {"type": "fixed", "value": 10, "operation": "increase"}, priority=3),
            _rule("second", {"type": "percentage", "value": 10, "operation": "increase"}, priority=3),
        ]
        ordered = applicable_rules(rules, EMPTY_CONTEXT, NOW)
        assert [rule.id for rule in ordered] == ["first", "second"]
        assert calculate_price(100.0, rules, EMPTY_CONTEXT, NOW) == pytest.approx(121.0)

    def test_no_rules_returns_base_price(self) -> None:
        assert calculate_price(37.5, [], EMPTY_CONTEXT, NOW) == 37.5

    def test_non_matching_rules_return_base_price(self) -> None:
        rules = [
            _rule(
                "weekend",
                {"type": "percentage", "value": 25, "operation": "increase"},
                conditions={"dayOfWeek": ["SAT", "SUN"]},
            )
        ]
        assert calculate_price(60.0, rules, _context(dayOfWeek="TUE"), NOW) == 60.0

    def test_inactive_rule_never_applies(self) -> None:
        rules = [_rule("off", {"type": "fixed", "value": 30, "operation": "increase"}, is_active=False)]
        assert calculate_price(30.0, rules, EMPTY_CONTEXT, NOW) == 30.0

    def test_expired_and_future_rules_never_apply(self) -> None:
        rules = [
            _rule(
                "expired",
                {"type": "fixed", "value": 5, "operation": "increase"},
                valid_until=NOW - timedelta(days=1),
            ),
            _rule(
                "future",
                {"type": "fixed", "value": 7, "operation": "increase"},
                valid_from=NOW + timedelta(days=1),
            ),
        ]
        assert calculate_price(30.0, rules, EMPTY_CONTEXT, NOW) == 30.0

    def test_price_is_clamped_at_zero(self) -> None:
        rules = [
            _rule("big", {"type": "fixed", "value": 500, "operation": "decrease"}, priority=2),
            _rule("pct", {"type": "percentage", "value": 10, "operation": "increase"}, priority=1),
        ]
        assert calculate_price(100.0, rules, EMPTY_CONTEXT, NOW) == 0.0

    def test_malformed_adjustment_leaves_price_unchanged(self) -> None:
        rules = [
            _rule("broken", {"value": 10, "operation": "increase"}, priority=9),
            _rule("ok", {"type": "fixed", "value": 10, "operation": "increase"}, priority=1),
        ]
        breakdown = evaluate_price(20.0, rules, EMPTY_CONTEXT, NOW)
        assert breakdown.price == pytest.approx(30.0)
        assert [step.rule_id for step in breakdown.applied] == ["ok"]
