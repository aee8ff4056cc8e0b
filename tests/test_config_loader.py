"""Unit tests for configuration loader."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from confluence_engine.config.loader import config_from_env, load_config
from confluence_engine.config.models import PipelineConfig


def test_load_default_project_config() -> None:
    """Test the bundled config.json loads with the documented defaults."""
    config = load_config()
    assert config.mode == "AUTONOMOUS"
    assert config.thresholds.confidence.reject == 0.30
    assert config.safety.max_open_positions == 2
    assert config.correlation.min_signals == 4


def test_load_config_from_explicit_path(tmp_path: Path) -> None:
    """Test loading config from explicit file path."""
    config_file = tmp_path / "custom.json"
    config_file.write_text(json.dumps({"mode": "MANUAL", "safety": {"max_risk_per_trade": 5.0}}))

    config = load_config(str(config_file))
    assert config.mode == "MANUAL"
    assert config.is_autonomous is False
    assert config.safety.max_risk_per_trade == 5.0


def test_load_config_from_env_var(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test loading config from CONFLUENCE_CONFIG_PATH environment variable."""
    config_file = tmp_path / "env_config.json"
    config_file.write_text(json.dumps({"correlation": {"threshold": 0.9}}))
    monkeypatch.setenv("CONFLUENCE_CONFIG_PATH", str(config_file))

    assert load_config().correlation.threshold == 0.9


def test_load_config_file_not_found(tmp_path: Path) -> None:
    """Test error when config file doesn't exist."""
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        load_config(str(tmp_path / "nonexistent.json"))


def test_load_config_invalid_json(tmp_path: Path) -> None:
    """Test error when config file has invalid JSON."""
    config_file = tmp_path / "invalid.json"
    config_file.write_text("{invalid json")

    with pytest.raises(json.JSONDecodeError):
        load_config(str(config_file))


def test_threshold_overrides_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test MIN_CONFIDENCE_THRESHOLD and MIN_EV_THRESHOLD set the reject overrides."""
    config_file = tmp_path / "config.json"
    config_file.write_text("{}")
    monkeypatch.setenv("MIN_CONFIDENCE_THRESHOLD", "0.25")
    monkeypatch.setenv("MIN_EV_THRESHOLD", "-0.5")

    config = load_config(str(config_file))
    assert config.confidence_reject_override == 0.25
    assert config.ev_reject_override == -0.5


def test_mode_and_safety_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test env vars win over file values."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"mode": "AUTONOMOUS", "safety": {"max_open_positions": 5}}))
    monkeypatch.setenv("CONFLUENCE_TRADING_MODE", "manual")
    monkeypatch.setenv("CONFLUENCE_SAFETY_MAX_OPEN_POSITIONS", "3")
    monkeypatch.setenv("CONFLUENCE_SAFETY_MAX_RISK_PER_TRADE", "1.5")
    monkeypatch.setenv("CONFLUENCE_TREND_TTL_SECONDS", "300")

    config = load_config(str(config_file))
    assert config.mode == "MANUAL"
    assert config.safety.max_open_positions == 3
    assert config.safety.max_risk_per_trade == 1.5
    assert config.trend_store.ttl_seconds == 300.0


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test building config from defaults plus env only."""
    monkeypatch.setenv("CONFLUENCE_TRADING_MODE", "MANUAL")
    assert config_from_env().mode == "MANUAL"


def test_threshold_ordering_is_validated() -> None:
    """Test confidence tiers must be ordered."""
    with pytest.raises(ValidationError, match="reject <= low <= medium <= high"):
        PipelineConfig(thresholds={"confidence": {"high": 0.3, "medium": 0.4, "low": 0.35, "reject": 0.3}})


def test_invalid_mode_rejected(tmp_path: Path) -> None:
    """Test unknown modes fail validation."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"mode": "YOLO"}))
    with pytest.raises(ValidationError):
        load_config(str(config_file))
