"""Tests for configuration loading."""

from pathlib import Path

import pytest

from damage_triage.utils.config import Config, RoutingThresholds
from damage_triage.utils.errors import ConfigurationError, ErrorType


ENV_VARS = (
    "LABOR_RATE", "PAINT_MAT_COST",
    "AUTO_MAX_SEVERITY", "AUTO_MAX_COST", "AUTO_MIN_CONF",
    "SPECIALIST_MIN_SEVERITY", "SPECIALIST_MIN_COST",
    "AWS_REGION", "BEDROCK_MODEL_ID",
    "YOLO_API_URL", "YOLO_API_KEY",
    "LOG_LEVEL", "MOCK_API",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def test_missing_file_uses_defaults(tmp_path):
    config = Config.load(str(tmp_path / "missing.yaml"))

    assert config.rates.labor_rate == 95
    assert config.rates.paint_cost == 180
    assert config.thresholds == RoutingThresholds()
    assert config.bedrock.model_id == "amazon.nova-pro-v1:0"
    assert config.detector.enabled is False
    assert config.mock_mode is False


def test_file_values_are_read(tmp_path):
    path = write_config(tmp_path, """
rates:
  labor_rate: 110
  paint_cost: 200
routing:
  auto_max_cost: 1200
  specialist_min_cost: 6000
detector:
  url: https://detect.example.com/model/1
  api_key: secret
mock_mode: true
""")
    config = Config.load(path)

    assert config.rates.labor_rate == 110
    assert config.rates.paint_cost == 200
    assert config.thresholds.auto_max_cost == 1200
    assert config.thresholds.specialist_min_cost == 6000
    assert config.thresholds.auto_max_severity == 2
    assert config.detector.enabled is True
    assert config.mock_mode is True


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = write_config(tmp_path, "rates:\n  labor_rate: 110\n")
    monkeypatch.setenv("LABOR_RATE", "120")
    monkeypatch.setenv("AUTO_MIN_CONF", "0.8")
    monkeypatch.setenv("BEDROCK_MODEL_ID", " us.amazon.nova-pro-v1:0 ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    config = Config.load(path)

    assert config.rates.labor_rate == 120
    assert config.thresholds.auto_min_confidence == 0.8
    assert config.bedrock.model_id == "us.amazon.nova-pro-v1:0"
    assert config.logging.level == "DEBUG"


def test_blank_environment_value_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("PAINT_MAT_COST", "  ")
    assert Config.load(str(tmp_path / "missing.yaml")).rates.paint_cost == 180


@pytest.mark.parametrize("value, expected", [("1", True), ("0", False), ("true", False)])
def test_mock_api_flag(tmp_path, monkeypatch, value, expected):
    monkeypatch.setenv("MOCK_API", value)
    assert Config.load(str(tmp_path / "missing.yaml")).mock_mode is expected


def test_non_numeric_environment_value_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTO_MAX_COST", "cheap")
    with pytest.raises(ConfigurationError) as exc_info:
        Config.load(str(tmp_path / "missing.yaml"))
    assert exc_info.value.context.error_type is ErrorType.CONFIG_INVALID
    assert "AUTO_MAX_COST" in exc_info.value.context.message


@pytest.mark.parametrize("env", [
    {"AUTO_MAX_SEVERITY": "4"},
    {"AUTO_MAX_COST": "5000"},
    {"AUTO_MIN_CONF": "1.5"},
])
def test_inconsistent_thresholds_are_rejected(tmp_path, monkeypatch, env):
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        Config.load(str(tmp_path / "missing.yaml"))


def test_validate_returns_self():
    thresholds = RoutingThresholds()
    assert thresholds.validate() is thresholds


def test_shipped_config_file_matches_defaults():
    shipped = Path(__file__).parent / "config.yaml"
    config = Config.load(str(shipped))
    assert config.thresholds == RoutingThresholds()
    assert config.rates.labor_rate == 95
    assert config.mock_mode is False
