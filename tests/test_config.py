"""Unit tests for gazette.config."""

import pytest
from pydantic import ValidationError

from gazette.config import Settings


def test_defaults(tmp_path):
    settings = Settings(data_dir=tmp_path)

    assert settings.cache.bucket_hours == 4
    assert settings.selection.hard_caps == {"SPORTS": 2}
    assert settings.stages.headlines.batch_size == 8
    assert settings.stages.articles.stagger_ms == 250
    assert settings.stages.review.batch_size == 2
    assert settings.generation.max_attempts == 2
    assert settings.get_markets_path() == tmp_path.resolve() / "markets.json"


def test_yaml_sections_merge_over_defaults(tmp_path):
    (tmp_path / "config.yaml").write_text(
        """
stages:
  headlines:
    batch_size: 4
selection:
  target_stories: 18
  min_stories: 12
scheduler:
  daily_refresh_hour: 7
"""
    )
    settings = Settings(data_dir=tmp_path)
    settings.load_yaml_config()

    assert settings.stages.headlines.batch_size == 4
    assert settings.stages.headlines.stagger_ms == 75
    assert settings.stages.articles.batch_size == 5
    assert settings.selection.target_stories == 18
    assert settings.selection.absolute_cap == 40
    assert settings.scheduler.daily_refresh_hour == 7


def test_missing_yaml_keeps_defaults(tmp_path):
    settings = Settings(data_dir=tmp_path)
    settings.load_yaml_config()

    assert settings.cache.backend == "file"


def test_invalid_yaml_values_are_rejected(tmp_path):
    (tmp_path / "config.yaml").write_text("stages:\n  review:\n    batch_size: 0\n")
    settings = Settings(data_dir=tmp_path)

    with pytest.raises(ValidationError):
        settings.load_yaml_config()


def test_yaml_dict_fields_replace_defaults(tmp_path):
    (tmp_path / "config.yaml").write_text(
        """
selection:
  hard_caps: {}
  category_quotas:
    POLITICS: 4
stages:
  review:
    batch_size: 3
"""
    )
    settings = Settings(data_dir=tmp_path)
    settings.load_yaml_config()

    assert settings.selection.hard_caps == {}
    assert settings.selection.category_quotas == {"POLITICS": 4}
    assert settings.stages.review.batch_size == 3
    assert settings.stages.review.stagger_ms == Settings(data_dir=tmp_path).stages.review.stagger_ms
