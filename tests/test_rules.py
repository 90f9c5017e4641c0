from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from spend_analysis.errors import RuleConfigError
from spend_analysis.models import Transaction
from spend_analysis.rules import RuleConfig, RuleSet, TransactionView, compile_rule
from tests.helpers.ledger import expense


def _rule(rule_id: str, priority: int = 50, category: str = "Cat", **conditions) -> dict:
    return {"id": rule_id, "category": category, "priority": priority, "conditions": conditions}


def _view(record: dict, **kw) -> TransactionView:
    return TransactionView.of(Transaction.from_record(record), **kw)


def test_rule_config_accepts_camel_and_snake_case():
    camel = RuleConfig.model_validate(
        _rule("a", merchantPatterns=["x"], amountRange={"min": 1}, dayOfWeek=[0])
    )
    snake = RuleConfig.model_validate(
        _rule("a", merchant_patterns=["x"], amount_range={"min": 1}, day_of_week=[0])
    )
    assert camel == snake
    assert camel.conditions.amount_range.min == Decimal("1")


def test_rule_to_dict_uses_config_shape():
    rule = compile_rule(_rule("a", merchantPatterns=["netflix"], isRecurring=True))
    assert rule.to_dict() == {
        "id": "a",
        "category": "Cat",
        "priority": 50,
        "conditions": {
            "merchantPatterns": ["netflix"],
            "descriptionPatterns": [],
            "dayOfWeek": [],
            "dayOfMonth": [],
            "isRecurring": True,
            "accountTypes": [],
        },
    }
    assert rule.name == "a"


@pytest.mark.parametrize(
    "bad",
    [
        _rule("a", priority=float("inf")),
        _rule("a", priority=1.5),
        _rule("a", priority="high"),
        _rule("a", merchantPatterns=["("]),
        _rule("a", dayOfWeek=[7]),
        _rule("a", dayOfMonth=[0]),
        _rule("a", amountRange={"min": 10, "max": 5}),
        _rule("", category="Cat"),
        {"id": "a", "priority": 1},
        {"id": "a", "category": "Cat", "priority": 1, "conditions": {"unknown": 1}},
    ],
)
def test_invalid_rule_is_rejected_without_mutation(bad):
    rules = RuleSet([_rule("keep")])
    with pytest.raises(RuleConfigError):
        rules.add(bad)
    assert [r.id for r in rules] == ["keep"]


def test_duplicate_id_is_rejected():
    rules = RuleSet([_rule("a")])
    before = rules.snapshot()
    with pytest.raises(RuleConfigError, match="already registered"):
        rules.add(_rule("a", priority=99))
    assert rules.snapshot() is before


def test_extend_is_all_or_nothing():
    rules = RuleSet()
    with pytest.raises(RuleConfigError):
        rules.extend([_rule("a"), _rule("b", merchantPatterns=["[unclosed"])])
    assert len(rules) == 0

    with pytest.raises(RuleConfigError, match="duplicate"):
        rules.extend([_rule("a"), _rule("a")])
    assert len(rules) == 0


def test_evaluation_order_is_priority_then_registration():
    rules = RuleSet([_rule("low", 10), _rule("tie-1", 50), _rule("high", 90)])
    rules.add(_rule("tie-2", 50))
    assert [r.id for r in rules.snapshot()] == ["high", "tie-1", "tie-2", "low"]


def test_remove_and_replace():
    rules = RuleSet([_rule("a"), _rule("b")])
    assert rules.remove("a") is True
    assert rules.remove("a") is False
    assert "a" not in rules and "b" in rules

    old = rules.snapshot()
    rules.replace([_rule("x", category="X"), _rule("y", category="Y")])
    assert [r.id for r in rules] == ["x", "y"]
    assert rules.categories() == ("X", "Y")
    # Earlier snapshots are unaffected by later writes
    assert [r.id for r in old] == ["b"]


def test_merchant_patterns_are_case_insensitive_and_fall_back_to_name():
    rule = compile_rule(_rule("ah", merchantPatterns=[r"albert\s*heijn"]))
    assert rule.matches(_view(expense("12", merchant="ALBERT HEIJN 1234")))
    assert rule.matches(_view(expense("12", name="Albert Heijn Utrecht")))
    assert not rule.matches(_view(expense("12", merchant="Jumbo")))


def test_description_patterns_check_description_and_merchant():
    rule = compile_rule(_rule("rent", descriptionPatterns=["huur"]))
    assert rule.matches(_view(expense("900", merchant="Woonstichting", name="Huur maart")))
    assert rule.matches(_view(expense("900", merchant="Huurder BV")))
    assert not rule.matches(_view(expense("900", merchant="Woonstichting", name="Maart")))


def test_amount_range_is_inclusive_on_absolute_amount():
    rule = compile_rule(_rule("r", amountRange={"min": 10, "max": 300}))
    assert rule.matches(_view(expense("10")))
    assert rule.matches(_view(expense("300")))
    assert not rule.matches(_view(expense("300.01")))
    assert not rule.matches(_view(expense("9.99")))


def test_day_of_week_counts_from_sunday():
    sunday = dt.date(2024, 3, 3)
    rule = compile_rule(_rule("weekend", dayOfWeek=[0, 6]))
    assert _view(expense("5", sunday)).weekday == 0
    assert rule.matches(_view(expense("5", sunday)))
    assert rule.matches(_view(expense("5", sunday - dt.timedelta(days=1))))
    assert not rule.matches(_view(expense("5", sunday + dt.timedelta(days=1))))


def test_day_of_month_and_all_conditions_must_hold():
    rule = compile_rule(
        _rule("rent", descriptionPatterns=["rent"], dayOfMonth=[1, 2], amountRange={"min": 400})
    )
    assert rule.matches(_view(expense("950", "2024-03-01", name="Rent March")))
    assert not rule.matches(_view(expense("950", "2024-03-05", name="Rent March")))
    assert not rule.matches(_view(expense("95", "2024-03-01", name="Rent March")))


def test_is_recurring_uses_tags_or_known_merchants():
    rule = compile_rule(_rule("stream", merchantPatterns=["netflix"], isRecurring=True))
    plain = expense("11.99", merchant="Netflix")
    assert not rule.matches(_view(plain))
    assert rule.matches(_view(plain, recurring_merchants={"netflix"}))
    assert rule.matches(_view(expense("11.99", merchant="Netflix", tags=["Subscription"])))

    one_off = compile_rule(_rule("one-off", merchantPatterns=["netflix"], isRecurring=False))
    assert one_off.matches(_view(plain))


def test_account_types_match_case_insensitively():
    rule = compile_rule(_rule("card", accountTypes=["Credit_Card"]))
    card = expense("20", account={"id": "a1", "account_type": "credit_card"})
    assert rule.matches(_view(card))
    assert not rule.matches(_view(expense("20", account={"id": "a2", "account_type": "depository"})))
    assert not rule.matches(_view(expense("20")))


def test_default_rule_table_compiles():
    rules = RuleSet.with_defaults()
    assert len(rules) == 17
    assert rules.snapshot()[0].priority == 100
    assert set(rules.categories()) == {
        "Required Purchases",
        "Subscriptions",
        "Discretionary Spending",
        "Spending but Assets",
    }
