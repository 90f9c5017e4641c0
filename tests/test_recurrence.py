from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from spend_analysis.errors import InvalidParameterError
from spend_analysis.recurrence import (
    Frequency,
    classify_interval,
    detect_subscriptions,
    interval_confidence,
    next_expected_date,
    scan_subscriptions,
    summarize_subscriptions,
)
from tests.helpers.ledger import expense, income, record


def _series(merchant: str, amount: str, start: dt.date, gaps: list[int], **kw) -> list[dict]:
    dates = [start]
    for gap in gaps:
        dates.append(dates[-1] + dt.timedelta(days=gap))
    return [expense(amount, d, merchant=merchant, **kw) for d in dates]


def test_monthly_netflix_is_detected():
    batch = _series("Netflix", "11.99", dt.date(2024, 1, 1), [30, 31])
    subs = detect_subscriptions(batch)

    assert len(subs) == 1
    sub = subs[0]
    assert sub.merchant == "Netflix"
    assert sub.amount == Decimal("11.99")
    assert sub.frequency is Frequency.MONTHLY
    assert sub.confidence >= 0.7
    assert sub.last_date == dt.date(2024, 3, 2)
    assert sub.next_expected_date == dt.date(2024, 4, 2)
    assert sub.transaction_count == 3
    assert sub.total_spent == Decimal("35.97")
    assert sub.yearly_estimate == Decimal("143.88")


def test_two_occurrences_are_not_enough():
    batch = _series("Netflix", "11.99", dt.date(2024, 1, 1), [30])
    assert detect_subscriptions(batch) == []


def test_weekly_and_yearly_periods():
    weekly = _series("Gym Pass", "7.50", dt.date(2024, 1, 1), [7, 7, 7])
    yearly = _series("Domain Renewal", "15.00", dt.date(2021, 5, 10), [365, 365])
    subs = detect_subscriptions(weekly + yearly, lookback_days=1200)
    by_merchant = {s.merchant: s for s in subs}

    assert by_merchant["Gym Pass"].frequency is Frequency.WEEKLY
    assert by_merchant["Gym Pass"].next_expected_date == dt.date(2024, 1, 29)
    assert by_merchant["Domain Renewal"].frequency is Frequency.YEARLY
    assert by_merchant["Domain Renewal"].next_expected_date == dt.date(2024, 5, 10)


def test_irregular_intervals_are_discarded():
    # Mean is monthly but only half the gaps are within tolerance
    batch = _series("Irregular", "20.00", dt.date(2024, 1, 1), [20, 30, 40, 30])
    assert detect_subscriptions(batch) == []


def test_mean_outside_every_band_is_discarded():
    batch = _series("Biweekly", "20.00", dt.date(2024, 1, 1), [14, 14, 14])
    assert detect_subscriptions(batch) == []


def test_groups_split_by_amount_and_skip_non_expenses():
    start = dt.date(2024, 1, 1)
    batch = (
        _series("Spotify", "10.99", start, [30, 30])
        + _series("Spotify", "16.99", start, [30])
        + [income("10.99", start + dt.timedelta(days=d), merchant="Spotify") for d in (10, 40, 70)]
    )
    subs = detect_subscriptions(batch)
    assert [(s.merchant, s.amount) for s in subs] == [("Spotify", Decimal("10.99"))]


def test_excluded_and_out_of_window_transactions_are_ignored():
    start = dt.date(2024, 1, 1)
    excluded = _series("Hidden", "9.99", start, [30, 30], excluded=True)
    old = _series("Old", "9.99", start, [30, 30])
    recent = expense("1", start + dt.timedelta(days=400), merchant="Recent")
    assert detect_subscriptions(excluded + old + [recent]) == []

    subs = detect_subscriptions(old, as_of=start + dt.timedelta(days=60))
    assert [s.merchant for s in subs] == ["Old"]


def test_results_are_ordered_by_confidence():
    start = dt.date(2024, 1, 1)
    perfect = _series("Perfect", "5.00", start, [30, 30, 30, 30])
    # one of four gaps off by more than 15% still clears the threshold
    mostly = _series("Mostly", "6.00", start, [30, 30, 30, 20])
    subs = detect_subscriptions(mostly + perfect, lookback_days=365)

    assert [s.merchant for s in subs] == ["Perfect", "Mostly"]
    assert subs[0].confidence == 1.0
    assert subs[1].confidence == 0.75
    assert all(0.7 < s.confidence <= 1.0 for s in subs)
    assert all(s.transaction_count >= 3 for s in subs)


def test_confidence_exactly_at_threshold_is_discarded():
    start = dt.date(2023, 1, 1)
    # 7 of 10 gaps within tolerance
    borderline = _series("Borderline", "8.00", start, [30] * 7 + [24, 24, 36])
    # 8 of 10
    above = _series("Above", "9.00", start, [30] * 8 + [24, 36])
    subs = detect_subscriptions(borderline + above, lookback_days=400)

    assert [(s.merchant, s.confidence) for s in subs] == [("Above", 0.8)]


def test_malformed_items_are_skipped_not_fatal():
    batch = _series("Netflix", "11.99", dt.date(2024, 1, 1), [30, 31])
    batch.insert(1, record("n/a", "2024-01-15", merchant="Netflix", id="broken"))
    batch.append({"id": "nameless", "date": "2024-02-01", "amount": "-3"})

    subs, errors = scan_subscriptions(batch)
    assert [s.merchant for s in subs] == ["Netflix"]
    assert [e.transaction_id for e in errors] == ["broken"]


@pytest.mark.parametrize("lookback", [0, -5, True])
def test_non_positive_lookback_is_rejected(lookback):
    with pytest.raises(InvalidParameterError):
        detect_subscriptions([], lookback)


def test_empty_batch():
    assert detect_subscriptions([]) == []


class TestNextExpectedDate:
    def test_weekly_adds_seven_days(self):
        assert next_expected_date(dt.date(2024, 12, 28), Frequency.WEEKLY) == dt.date(2025, 1, 4)

    def test_monthly_clamps_to_month_end(self):
        assert next_expected_date(dt.date(2024, 1, 31), Frequency.MONTHLY) == dt.date(2024, 2, 29)
        assert next_expected_date(dt.date(2023, 1, 31), Frequency.MONTHLY) == dt.date(2023, 2, 28)
        assert next_expected_date(dt.date(2024, 12, 15), Frequency.MONTHLY) == dt.date(2025, 1, 15)

    def test_yearly_from_leap_day(self):
        assert next_expected_date(dt.date(2024, 2, 29), Frequency.YEARLY) == dt.date(2025, 2, 28)


def test_interval_helpers():
    assert classify_interval(7.4) is Frequency.WEEKLY
    assert classify_interval(25) is Frequency.MONTHLY
    assert classify_interval(380) is Frequency.YEARLY
    assert classify_interval(14) is None
    assert interval_confidence([30, 34, 25], 30) == pytest.approx(2 / 3)
    assert interval_confidence([], 30) == 0.0


def test_summary_totals_and_insights():
    start = dt.date(2024, 1, 1)
    batch = []
    for i in range(11):
        batch += _series(f"Service {i}", "12.99", start, [30, 30])
    report = summarize_subscriptions(detect_subscriptions(batch))

    assert len(report.subscriptions) == 11
    assert report.monthly_total == Decimal("142.89")
    assert report.yearly_total == Decimal("1714.68")
    assert len(report.insights) == 2
    assert report.insights[0].startswith("You have 11 subscriptions")

    payload = report.to_dict()
    assert payload["summary"]["monthlyTotal"] == "142.89"
    first = payload["subscriptions"][0]
    assert set(first) >= {
        "merchant",
        "amount",
        "frequency",
        "lastDate",
        "nextExpectedDate",
        "confidence",
        "transactionCount",
    }


def test_summary_of_nothing_is_quiet():
    report = summarize_subscriptions([])
    assert report.monthly_total == 0
    assert report.insights == ()
