from __future__ import annotations

import json

import pytest

from engine.config import EngineConfig, PageRange
from engine.content_modifier import ContentModifierOptions
from models.user_settings import UserSettings


def test_default_config_is_valid() -> None:
    config = EngineConfig.default()

    assert config.validate()
    assert config.max_form_depth == 32
    assert config.highlight_color == "#FFFF00"


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_form_depth": -1},
        {"searchable_sample_limit": 0},
        {"timeout_seconds": 0},
        {"ocr_text_opacity": 1.5},
        {"ocr_render_scale": 0},
        {"universal_fallback_family": ""},
        {"enable_text_processor": False, "enable_annotation_processor": False, "enable_content_modifier": False},
    ],
)
def test_invalid_config_values_fail_validation(overrides: dict) -> None:
    assert not EngineConfig(**overrides).validate()


def test_from_dict_ignores_unknown_keys() -> None:
    config = EngineConfig.from_dict({"max_form_depth": 4, "no_such_option": True})

    assert config.max_form_depth == 4
    assert not hasattr(config, "no_such_option")
    assert EngineConfig.from_dict(config.to_dict()).to_dict() == config.to_dict()


def test_font_chain_is_ordered_and_deduplicated() -> None:
    config = EngineConfig(cjk_fallback_family="Noto Sans CJK KR", universal_fallback_family="Helvetica")

    assert config.font_chain("Arial") == ["Arial", "Noto Sans CJK KR", "Helvetica"]
    assert config.font_chain("Helvetica") == ["Helvetica", "Noto Sans CJK KR"]
    assert config.font_chain(None) == ["Noto Sans CJK KR", "Helvetica"]


def test_content_modifier_options_validation() -> None:
    assert ContentModifierOptions().validate()
    assert not ContentModifierOptions(ocr_text_opacity=-0.1).validate()
    assert not ContentModifierOptions(min_horizontal_scaling=10, max_horizontal_scaling=5).validate()
    assert ContentModifierOptions().to_dict()["max_horizontal_scaling"] == 1000.0


def test_page_range_clamps_to_document() -> None:
    assert PageRange(start=2, end=10).to_page_numbers(4) == [2, 3, 4]
    assert PageRange.first_pages(3).to_page_numbers(2) == [1, 2]
    assert PageRange.single_page(1).to_page_numbers(0) == []

    with pytest.raises(ValueError):
        PageRange(start=0)
    with pytest.raises(ValueError):
        PageRange(start=3, end=2)


def test_user_settings_defaults_when_file_missing(tmp_path) -> None:
    settings = UserSettings.load(tmp_path / "missing.json")

    assert settings == UserSettings()
    assert settings.defaultFontSize == 14


def test_user_settings_round_trip(tmp_path) -> None:
    path = tmp_path / "settings.json"
    UserSettings(defaultFontFamily="Arial", defaultFontSize=18, defaultColor="#ff0000", defaultBold=True).save(path)

    loaded = UserSettings.load(path)

    assert loaded.defaultFontFamily == "Arial"
    assert loaded.defaultFontSize == 18
    assert loaded.defaultColor == "#FF0000"
    assert loaded.defaultBold is True
    assert json.loads(path.read_text(encoding="utf-8"))["defaultColor"] == "#FF0000"


def test_user_settings_corrupt_file_falls_back(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert UserSettings.load(path) == UserSettings()


def test_user_settings_partial_file_keeps_other_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text('{"defaultFontSize": 22, "defaultColor": "bogus"}', encoding="utf-8")

    settings = UserSettings.load(path)

    assert settings.defaultFontSize == 22
    assert settings.defaultColor == "#000000"
    assert settings.defaultFontFamily == UserSettings().defaultFontFamily

