from __future__ import annotations

import threading

import pytest

from spend_analysis.classifier import (
    FALLBACK_CATEGORIES,
    Classifier,
    PlanningCategory,
    auto_categorize,
)
from spend_analysis.errors import InvalidParameterError, RuleConfigError
from spend_analysis.models import SignConvention, Transaction
from tests.helpers.ledger import expense, income, record


def _rule(rule_id: str, category: str, priority: int = 50, **conditions) -> dict:
    return {"id": rule_id, "category": category, "priority": priority, "conditions": conditions}


ALBERT_HEIJN = _rule(
    "ah",
    PlanningCategory.REQUIRED_PURCHASES.value,
    95,
    merchantPatterns=[r"albert\s*heijn"],
    amountRange={"min": 10, "max": 300},
)


def test_merchant_rule_with_amount_range_assigns_category():
    clf = Classifier([ALBERT_HEIJN])
    assert clf.categorize(expense("45", merchant="Albert Heijn")) == "Required Purchases"


def test_no_rule_fires_and_subscription_price_point_falls_back():
    clf = Classifier()
    assert clf.categorize(expense("9.99", merchant="Unknown Vendor")) == "Subscriptions"
    found = clf.match(expense("9.99", merchant="Unknown Vendor"))
    assert found is not None
    assert found.source == "fallback:subscription"
    assert found.rule_id is None


def test_grocery_fallback_requires_keyword_and_basket_size():
    clf = Classifier()
    assert clf.categorize(expense("42.10", merchant="Corner Market")) == "Required Purchases"
    assert clf.categorize(expense("4.10", merchant="Corner Market")) is None
    assert clf.categorize(expense("420", merchant="Corner Market")) is None


def test_subscription_wording_falls_back():
    clf = Classifier()
    assert clf.categorize(expense("13.37", name="Monthly plan")) == "Subscriptions"


def test_unmatched_transaction_is_none():
    assert Classifier().categorize(expense("123.45", merchant="Hardware Depot")) is None


def test_higher_priority_wins_regardless_of_registration_order():
    low = _rule("low", "Low", 10, merchantPatterns=["shop"])
    high = _rule("high", "High", 90, merchantPatterns=["shop"])
    tx = expense("20", merchant="The Shop")
    assert Classifier([low, high]).categorize(tx) == "High"
    assert Classifier([high, low]).categorize(tx) == "High"


def test_equal_priority_ties_break_by_registration_order():
    first = _rule("first", "First", 50, merchantPatterns=["shop"])
    second = _rule("second", "Second", 50, merchantPatterns=["shop"])
    tx = expense("20", merchant="The Shop")
    assert Classifier([first, second]).categorize(tx) == "First"
    assert Classifier([second, first]).categorize(tx) == "Second"


def test_result_is_a_known_category_or_none():
    clf = Classifier.with_default_rules()
    allowed = set(clf.categories()) | FALLBACK_CATEGORIES
    samples = [
        expense("45", merchant="Albert Heijn"),
        expense("11.99", merchant="Netflix", tags=["subscription"]),
        expense("950", "2024-03-01", name="Huur maart"),
        expense("65", merchant="Bistro Central"),
        expense("1299", merchant="Coolblue", name="Laptop"),
        expense("3.20", merchant="Parking"),
        income("2500", name="Salary"),
    ]
    for tx in samples:
        category = clf.categorize(tx)
        assert category is None or category in allowed


def test_default_rules_cover_common_merchants():
    clf = Classifier.with_default_rules()
    assert clf.categorize(expense("80", merchant="Eneco Energie")) == "Required Purchases"
    assert (
        clf.categorize(expense("11.99", merchant="Netflix"), recurring_merchants={"Netflix"})
        == "Subscriptions"
    )
    assert clf.categorize(expense("65", merchant="Restaurant De Kas")) == "Discretionary Spending"
    assert (
        clf.categorize(expense("649", merchant="IKEA Delft", name="Bureau desk"))
        == "Spending but Assets"
    )


def test_invalid_record_categorizes_as_none():
    clf = Classifier([ALBERT_HEIJN])
    assert clf.categorize({"id": "x", "amount": "abc", "date": "2024-01-01"}) is None


def test_raw_records_follow_the_classifier_sign_convention():
    raw = {
        "id": "op",
        "date": "2024-03-01",
        "amount": "45",
        "classification": "expense",
        "merchant": "Albert Heijn",
    }
    outflow_positive = Classifier([ALBERT_HEIJN], convention=SignConvention.OUTFLOW_POSITIVE)
    assert outflow_positive.categorize(raw) == "Required Purchases"
    assert Classifier([ALBERT_HEIJN]).categorize(raw) is None

    seeded = Classifier.with_default_rules(convention="outflow_positive")
    assert seeded.convention is SignConvention.OUTFLOW_POSITIVE


def test_categorize_does_not_mutate_inputs():
    clf = Classifier([ALBERT_HEIJN])
    raw = expense("45", merchant="Albert Heijn")
    snapshot = dict(raw)
    before = clf.rules()
    clf.categorize(raw)
    assert raw == snapshot
    assert clf.rules() is before


def test_add_and_remove_rule():
    clf = Classifier()
    clf.add_rule(ALBERT_HEIJN)
    with pytest.raises(RuleConfigError):
        clf.add_rule(ALBERT_HEIJN)
    assert [r.id for r in clf.rules()] == ["ah"]
    assert clf.remove_rule("ah") is True
    assert clf.remove_rule("ah") is False
    assert clf.categorize(expense("45", merchant="Albert Heijn")) is None


def test_classifiers_do_not_share_rules():
    a = Classifier()
    b = Classifier()
    a.add_rule(ALBERT_HEIJN)
    assert len(a.rules()) == 1
    assert len(b.rules()) == 0


def test_describe_rules_lists_evaluation_order():
    clf = Classifier([_rule("b", "B", 1), _rule("a", "A", 2)])
    described = clf.describe_rules()
    assert described["totalRules"] == 2
    assert [r["id"] for r in described["rules"]] == ["a", "b"]
    assert described["categories"] == [c.value for c in PlanningCategory]


def test_concurrent_writes_never_expose_partial_order():
    clf = Classifier([_rule("base", "Base", 50, merchantPatterns=["shop"])])
    tx = Transaction.from_record(expense("20", merchant="shop"))
    errors: list[str] = []

    def writer() -> None:
        for i in range(200):
            clf.add_rule(_rule(f"r{i}", "Base", 10, merchantPatterns=["shop"]))

    def reader() -> None:
        for _ in range(500):
            snap = clf.rules()
            keys = [(-r.priority, r.seq) for r in snap]
            if keys != sorted(keys):
                errors.append("unsorted snapshot")
            if clf.categorize(tx) != "Base":
                errors.append("wrong category")

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(clf.rules()) == 201


# ---- auto_categorize ---------------------------------------------------------


def test_auto_categorize_proposes_changes_for_uncategorized_only():
    clf = Classifier([ALBERT_HEIJN])
    batch = [
        expense("45", merchant="Albert Heijn", id="a"),
        expense("45", merchant="Albert Heijn", id="b", category="Groceries"),
        expense("123.45", merchant="Hardware Depot", id="c"),
        record("oops", id="bad"),
    ]
    result = auto_categorize(batch, clf)

    assert result.processed == 2
    assert result.categorized == 1
    assert result.unchanged == 1
    change = result.changes[0]
    assert (change.transaction_id, change.new_category, change.rule_id) == (
        "a",
        "Required Purchases",
        "ah",
    )
    assert result.by_category == {"Required Purchases": 1}
    assert result.special_categories["Subscriptions"] == 0
    assert [e.transaction_id for e in result.errors] == ["bad"]

    payload = result.to_dict()
    assert payload["summary"] == {"processed": 2, "categorized": 1, "unchanged": 1}
    assert payload["changes"][0]["oldCategory"] == "Uncategorized"
    assert payload["changes"][0]["amount"] == "-45.00"


def test_auto_categorize_can_recategorize_and_apply_default():
    clf = Classifier([ALBERT_HEIJN])
    batch = [
        expense("45", merchant="Albert Heijn", id="a", category="Groceries"),
        expense("45", merchant="Albert Heijn", id="same", category="Required Purchases"),
        expense("123.45", merchant="Hardware Depot", id="c"),
    ]
    result = auto_categorize(
        batch, clf, only_uncategorized=False, default_category="Discretionary Spending"
    )
    assert {c.transaction_id: c.new_category for c in result.changes} == {
        "a": "Required Purchases",
        "c": "Discretionary Spending",
    }
    assert {c.transaction_id: c.source for c in result.changes}["c"] == "default"


def test_auto_categorize_filters_accounts_and_limits():
    clf = Classifier([ALBERT_HEIJN])
    batch = [
        expense("45", merchant="Albert Heijn", id=f"t{i}", accountId="joint" if i % 2 else "own")
        for i in range(6)
    ]
    result = auto_categorize(batch, clf, account_ids=["joint"], limit=2)
    assert result.processed == 2
    assert [c.transaction_id for c in result.changes] == ["t1", "t3"]

    with pytest.raises(InvalidParameterError):
        auto_categorize(batch, clf, limit=0)
