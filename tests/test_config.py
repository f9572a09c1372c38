import json

import pytest

import core
from core import load_config, save_config


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setattr(core, "CONFIG_FILE", str(path))
    return path


def test_load_config_missing_file(config_path):
    assert load_config() == {}


def test_save_and_load_inputs(config_path):
    save_config(inputs={"current_age": "30", "pre_return": "7%", "unknown": "x"})
    assert load_config() == {"inputs": {"current_age": "30", "pre_return": "7%"}}


def test_summary_mode_is_merged_with_inputs(config_path):
    save_config(inputs={"current_age": "30"})
    save_config(summary_mode="real")
    assert load_config() == {"inputs": {"current_age": "30"}, "summary_mode": "real"}

    save_config(inputs={"current_age": "31"})
    assert load_config()["summary_mode"] == "real"


def test_save_config_rejects_unknown_mode(config_path):
    with pytest.raises(ValueError):
        save_config(summary_mode="today")


def test_corrupt_file_is_discarded(config_path):
    config_path.write_text("{not json")
    assert load_config() == {}
    assert not config_path.exists()


def test_unexpected_values_are_ignored(config_path):
    config_path.write_text(
        json.dumps(
            {
                "inputs": {"current_age": 30, "retirement_age": "65"},
                "summary_mode": "sideways",
            }
        )
    )
    assert load_config() == {"inputs": {"retirement_age": "65"}}


def test_non_object_file_is_discarded(config_path):
    config_path.write_text("[1, 2, 3]")
    assert load_config() == {}
    assert not config_path.exists()


def test_undecodable_bytes_are_discarded(config_path):
    config_path.write_bytes(b"\xff\xfe\x00garbage")
    assert load_config() == {}
    assert not config_path.exists()

    save_config(inputs={"current_age": "45"})
    assert load_config() == {"inputs": {"current_age": "45"}}


def test_saved_text_round_trips_non_ascii(config_path):
    save_config(inputs={"retirement_spend": "€40,000"})
    assert load_config() == {"inputs": {"retirement_spend": "€40,000"}}
