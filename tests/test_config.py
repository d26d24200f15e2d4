from __future__ import annotations

import pytest

from lift_tracker.config import AppConfig, as_dict, get_config


@pytest.fixture(autouse=True)
def _fresh_config():
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_defaults_without_config_file(monkeypatch, tmp_path):
    monkeypatch.setenv("LIFT_TRACKER_CONFIG", str(tmp_path / "absent.toml"))

    assert get_config() == AppConfig()
    assert as_dict()["source"] == "defaults"


def test_config_file_overrides(monkeypatch, tmp_path):
    config_file = tmp_path / "lift_tracker.toml"
    config_file.write_text(
        'default_timeframe = "6m"\nweight_unit = "KG"\nplate_increment = 2.5\nplot_dir = "charts"\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("LIFT_TRACKER_CONFIG", str(config_file))

    config = get_config()
    assert config.default_timeframe == "6M"
    assert config.weight_unit == "kg"
    assert config.plate_increment == pytest.approx(2.5)
    assert config.plot_dir == "charts"
    assert as_dict()["source"] == str(config_file)


def test_invalid_values_fall_back_to_defaults(monkeypatch, tmp_path):
    config_file = tmp_path / "lift_tracker.toml"
    config_file.write_text(
        'default_timeframe = "2W"\nweight_unit = "stone"\nplate_increment = -1\nplot_dir = "  "\n',
        encoding="utf-8",
    )
    monkeypatch.setenv("LIFT_TRACKER_CONFIG", str(config_file))

    assert get_config() == AppConfig()


def test_plate_increment_feeds_calc(monkeypatch, tmp_path):
    from typer.testing import CliRunner

    from lift_tracker.cli import app

    config_file = tmp_path / "lift_tracker.toml"
    config_file.write_text('weight_unit = "kg"\nplate_increment = 2.5\n', encoding="utf-8")
    monkeypatch.setenv("LIFT_TRACKER_CONFIG", str(config_file))

    result = CliRunner().invoke(app, ["calc", "--max", "140", "--percentage", "77"])
    assert result.exit_code == 0, result.output
    assert "77% of 140 kg = 107.5 kg" in result.output
