"""Unit tests for gazette.editorial.scoring."""

import math
from datetime import timedelta

import pytest

from conftest import NOW
from gazette.config import ScoringConfig
from gazette.editorial.models import MarketCategory, MarketStatus
from gazette.editorial.scoring import (
    categorize,
    certainty_score,
    determine_status,
    interest_multiplier,
    is_outside_time_window,
    is_short_term_sports,
    money_score,
    prepare_records,
    score_records,
    speed_score,
)


def test_categorize_picks_category_with_most_keyword_hits():
    assert categorize("Will the senate confirm the nominee?") == MarketCategory.POLITICS
    assert categorize("Will the Lakers win the NBA finals?") == MarketCategory.SPORTS
    assert categorize("Will bitcoin reach a new all-time high?") == MarketCategory.CRYPTO
    assert categorize("Will it snow in Lisbon?") == MarketCategory.OTHER


def test_categorize_reads_description_too():
    assert categorize("Who wins?", "Decided by the Senate election in November") == MarketCategory.POLITICS


@pytest.mark.parametrize(
    "yes_price, change, expected",
    [
        (0.5, 20.0, MarketStatus.CHAOS),
        (0.95, -16.0, MarketStatus.CHAOS),
        (0.9, 1.0, MarketStatus.CONFIRMED),
        (0.1, None, MarketStatus.DEAD_ON_ARRIVAL),
        (0.5, 3.0, MarketStatus.CONTESTED),
        (None, None, MarketStatus.CONTESTED),
    ],
)
def test_determine_status(yes_price, change, expected):
    assert determine_status(yes_price, change) == expected


def test_money_score_is_log_scaled_against_batch_max():
    assert money_score(1_000_000, 1_000_000) == pytest.approx(1.0)
    assert 0 < money_score(1_000, 1_000_000) < 1
    assert money_score(0.5, 1_000_000) == 0.0
    assert money_score(1_000, 0) == 0.0


@pytest.mark.parametrize("bad", [None, float("nan"), float("inf"), "abc"])
def test_sub_scores_degrade_to_zero_on_bad_input(bad):
    assert money_score(bad, 1_000) == 0.0
    assert certainty_score(bad) == 0.0
    assert speed_score(bad) == 0.0


def test_certainty_score_is_distance_from_coin_flip():
    assert certainty_score(0.5) == 0.0
    assert certainty_score(1.0) == 1.0
    assert certainty_score(0.0) == 1.0
    assert certainty_score(1.7) == 1.0


def test_speed_score_steps():
    assert speed_score(30) == 1.0
    assert speed_score(-15) == 0.85
    assert speed_score(1) == 0.1
    assert speed_score(0) == 0.1


def test_interest_multiplier_is_capped(make_record):
    config = ScoringConfig(category_interest={"CULTURE": 1.4})
    record = make_record(
        "c1",
        "Will Taylor Swift win the Grammy?",
        end_date=NOW + timedelta(days=5),
    )
    interest = interest_multiplier(record, MarketCategory.CULTURE, config, NOW)
    assert interest == config.max_interest


def test_score_records_bounds_every_component(make_record):
    records = [
        make_record("a", volume_24h=0.0, price_change_24h=None, yes_price=0.5),
        make_record("b", volume_24h=float("nan"), price_change_24h=float("nan")),
        make_record("c", volume_24h=5_000_000, price_change_24h=40.0, yes_price=0.99),
        make_record("d", question="Will Trump and Musk attend the OpenAI launch?", volume_24h=1e9),
    ]
    scored = score_records(records, ScoringConfig(), NOW)

    for record in scored:
        for value in (record.score.money, record.score.certainty, record.score.speed, record.score.total):
            assert math.isfinite(value)
            assert 0.0 <= value <= 1.0

    zero = scored[0]
    assert zero.score.money == 0.0
    assert zero.score.speed == 0.0


def test_score_records_returns_new_records(make_record):
    original = make_record("a", "Will the senate pass the bill?")
    [scored] = score_records([original], ScoringConfig(), NOW)

    assert scored is not original
    assert original.category == MarketCategory.OTHER
    assert scored.category == MarketCategory.POLITICS


def test_scoring_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        ScoringConfig(money_weight=0.5, certainty_weight=0.5, speed_weight=0.5)


def test_time_window_filter():
    assert is_outside_time_window(NOW + timedelta(days=1), NOW)
    assert is_outside_time_window(NOW + timedelta(days=120), NOW)
    assert not is_outside_time_window(NOW + timedelta(days=10), NOW)
    assert not is_outside_time_window(None, NOW)


def test_short_term_sports_only_applies_to_sports():
    assert is_short_term_sports("Lakers vs. Celtics tonight", MarketCategory.SPORTS)
    assert is_short_term_sports("NBA finals game 7 winner", MarketCategory.SPORTS)
    assert not is_short_term_sports("NBA MVP 2027", MarketCategory.SPORTS)
    assert not is_short_term_sports("Will the senate vote today?", MarketCategory.POLITICS)


def test_prepare_records_drops_filtered_markets(make_record):
    records = [
        make_record("keep", "Will the senate confirm the nominee?", end_date=NOW + timedelta(days=20)),
        make_record("soon", "Will the senate adjourn?", end_date=NOW + timedelta(hours=12)),
        make_record("game", "Lakers vs Celtics: NBA game 3 winner", end_date=NOW + timedelta(days=10)),
    ]
    prepared = prepare_records(records, ScoringConfig(), NOW)

    assert [r.id for r in prepared] == ["keep"]
    assert prepared[0].score.total > 0
