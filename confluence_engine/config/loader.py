"""Configuration loader with JSON file and environment variable support."""

import json
import os
from pathlib import Path
from typing import Any

from .models import PipelineConfig


def load_config(config_path: str | None = None) -> PipelineConfig:
    """
    Load configuration from JSON file with environment variable overrides.

    Priority: env vars > config file > defaults

    Args:
        config_path: Path to JSON config file. If None, uses CONFLUENCE_CONFIG_PATH env var
                     or defaults to 'config.json' in the project root.

    Returns:
        Validated PipelineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        json.JSONDecodeError: If config file has invalid JSON
        pydantic.ValidationError: If config values are invalid
    """
    if config_path is None:
        config_path = os.environ.get("CONFLUENCE_CONFIG_PATH", "config.json")

    config_file = Path(config_path)
    if not config_file.is_absolute():
        # Resolve relative to project root
        project_root = Path(__file__).parent.parent.parent
        config_file = project_root / config_file

    config_data: dict[str, Any] = {}
    if config_file.exists():
        with open(config_file) as f:
            config_data = json.load(f)
    else:
        raise FileNotFoundError(f"Config file not found: {config_file}")

    return PipelineConfig(**apply_env_overrides(config_data))


def apply_env_overrides(config_data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides to raw config data (in place)."""
    # Reject-threshold overrides keep their historical names
    if min_conf := os.environ.get("MIN_CONFIDENCE_THRESHOLD"):
        config_data["confidence_reject_override"] = float(min_conf)

    if min_ev := os.environ.get("MIN_EV_THRESHOLD"):
        config_data["ev_reject_override"] = float(min_ev)

    # Format: CONFLUENCE_TRADING_MODE, CONFLUENCE_SAFETY_MAX_RISK_PER_TRADE, etc.
    if mode := os.environ.get("CONFLUENCE_TRADING_MODE"):
        config_data["mode"] = mode.upper()

    if max_risk := os.environ.get("CONFLUENCE_SAFETY_MAX_RISK_PER_TRADE"):
        config_data.setdefault("safety", {})["max_risk_per_trade"] = float(max_risk)

    if max_positions := os.environ.get("CONFLUENCE_SAFETY_MAX_OPEN_POSITIONS"):
        config_data.setdefault("safety", {})["max_open_positions"] = int(max_positions)

    if ttl := os.environ.get("CONFLUENCE_TREND_TTL_SECONDS"):
        config_data.setdefault("trend_store", {})["ttl_seconds"] = float(ttl)

    return config_data


def config_from_env() -> PipelineConfig:
    """Build a config from defaults plus environment overrides (no file)."""
    return PipelineConfig(**apply_env_overrides({}))
