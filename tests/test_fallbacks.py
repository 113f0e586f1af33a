"""Unit tests for gazette.editorial.fallbacks."""

from datetime import datetime, timezone

from conftest import NOW
from gazette.config import SelectionConfig
from gazette.editorial.fallbacks import (
    assign_dateline,
    fallback_article,
    fallback_blueprint,
    fallback_headline,
    fallback_take,
    format_volume,
    is_question_headline,
)
from gazette.editorial.models import Confidence, MarketCategory, Story, StoryLayout


def test_fallback_headline_is_declarative(make_record):
    favoured = make_record("a", "Will the Fed cut rates in December?", yes_price=0.9)
    doubtful = make_record("b", "Will the Fed cut rates in December?", yes_price=0.1, no_price=0.9)
    open_question = make_record("c", "Will the Fed cut rates in December?", yes_price=0.5)

    assert fallback_headline(favoured) == "THE FED CUT RATES IN DECEMBER"
    assert fallback_headline(doubtful) == "THE FED CUT RATES IN DECEMBER UNLIKELY"
    assert fallback_headline(open_question) == "THE FED CUT RATES IN DECEMBER IN QUESTION"
    assert fallback_headline(None) == "BREAKING DEVELOPMENTS"

    for record in (favoured, doubtful, open_question):
        assert not is_question_headline(fallback_headline(record))


def test_question_headline_detection():
    assert is_question_headline("Will Congress act?")
    assert is_question_headline("Congress acts?")
    assert not is_question_headline("Congress Acts on Budget")


def test_format_volume():
    assert format_volume(2_500_000) == "$2.5 million"
    assert format_volume(45_300) == "$45K"
    assert format_volume(800) == "$800"


def test_fallback_article_is_stable_per_story(make_record):
    story = Story.from_record(make_record("m1", yes_price=0.9, volume_24h=1_200_000), StoryLayout.BRIEF)

    first = fallback_article(story)

    assert first == fallback_article(story)
    assert "90%" in first
    assert "$1.2 million" in first


def test_fallback_article_length_follows_layout(make_record):
    record = make_record("m1", yes_price=0.5)
    brief = fallback_article(Story.from_record(record, StoryLayout.BRIEF))
    lead = fallback_article(Story.from_record(record, StoryLayout.LEAD))

    assert "\n\n" not in brief
    assert lead.count("\n\n") >= 2


def test_fallback_take_argues_the_other_side(make_record):
    take = fallback_take(make_record("m1", yes_price=0.8))

    assert "NO" in take.bear_case
    assert take.confidence == Confidence.LOW


def test_dateline_uses_location_and_resolution_month(make_record):
    dc = make_record("a", "Will Congress pass the budget?", end_date=datetime(2026, 11, 3, tzinfo=timezone.utc))
    kyiv = make_record("b", "Will Russia and Ukraine sign a ceasefire?")
    other = make_record("c", "Will it snow in Lisbon?")

    assert assign_dateline(dc, NOW) == "WASHINGTON (Nov 2026)"
    assert assign_dateline(kyiv, NOW) == "KYIV (Nov 2026)"
    assert assign_dateline(other, NOW).startswith("NEW YORK")


def test_fallback_blueprint_has_one_hard_news_lead(make_record):
    candidates = [
        make_record("tech", category=MarketCategory.TECH),
        make_record("sport", category=MarketCategory.SPORTS),
        make_record("pol", category=MarketCategory.POLITICS),
        make_record("sci", category=MarketCategory.SCIENCE),
    ]

    blueprint = fallback_blueprint(candidates, SelectionConfig())

    assert blueprint.from_fallback
    assert blueprint.stories[0].id == "pol"
    assert [s.layout for s in blueprint.stories].count(StoryLayout.LEAD) == 1
    assert blueprint.stories[-1].id == "sport"


def test_fallback_blueprint_empty():
    blueprint = fallback_blueprint([], SelectionConfig())
    assert blueprint.stories == ()
