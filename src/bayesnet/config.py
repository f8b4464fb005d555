"""
Inference settings.

Resolved in three layers, later wins:
    1. built-in defaults
    2. config/inference.yaml (if present)
    3. BAYESNET_* environment variables (a repo-level .env is loaded on import)

Usage:
    from src.bayesnet.config import load_settings

    settings = load_settings()
    rng = make_rng(settings.seed)
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

try:
    from dotenv import load_dotenv

    _repo_root = Path(__file__).resolve().parent.parent.parent  # src/bayesnet/config.py -> repo root
    _env_path = _repo_root / ".env"
    if _env_path.exists():
        load_dotenv(_env_path)
    else:
        load_dotenv()
except ImportError:
    # python-dotenv not installed - env vars must be set externally
    pass


DEFAULT_CONFIG_PATHS = [
    Path("config/inference.yaml"),
    Path(__file__).resolve().parent.parent.parent / "config" / "inference.yaml",
]


class ConfigError(Exception):
    """Raised when a configuration value is invalid."""
    pass


@dataclass(frozen=True)
class InferenceSettings:
    num_samples: int = 10_000
    seed: Optional[int] = None
    log_level: str = "INFO"
    max_wildcards: int = 8

    def __post_init__(self):
        if self.num_samples <= 0:
            raise ConfigError(f"num_samples must be positive, got {self.num_samples}")
        if self.max_wildcards < 0:
            raise ConfigError(f"max_wildcards must be non-negative, got {self.max_wildcards}")

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level: {self.log_level}")
        return level


def load_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Read the YAML config, or return an empty dict if none is found."""
    candidates = [path] if path is not None else DEFAULT_CONFIG_PATHS
    for candidate in candidates:
        if candidate.exists():
            try:
                with open(candidate, "r") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load inference config from {candidate}: {e}")
                return {}
            return data.get("inference", data)
    return {}


def _parse_int(name: str, raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_settings(path: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> InferenceSettings:
    """Build settings from defaults, the YAML file and the environment.

    Raises:
        ConfigError: if any value is malformed
    """
    env = os.environ if env is None else env
    settings = InferenceSettings()
    file_values = load_config_file(path)

    overrides: Dict[str, Any] = {}
    if "num_samples" in file_values:
        overrides["num_samples"] = _parse_int("num_samples", file_values["num_samples"])
    if file_values.get("seed") is not None:
        overrides["seed"] = _parse_int("seed", file_values["seed"])
    if "log_level" in file_values:
        overrides["log_level"] = str(file_values["log_level"])
    if "max_wildcards" in file_values:
        overrides["max_wildcards"] = _parse_int("max_wildcards", file_values["max_wildcards"])

    if env.get("BAYESNET_NUM_SAMPLES", "").strip():
        overrides["num_samples"] = _parse_int("BAYESNET_NUM_SAMPLES", env["BAYESNET_NUM_SAMPLES"])
    if env.get("BAYESNET_SEED", "").strip():
        overrides["seed"] = _parse_int("BAYESNET_SEED", env["BAYESNET_SEED"])
    if env.get("BAYESNET_LOG_LEVEL", "").strip():
        overrides["log_level"] = env["BAYESNET_LOG_LEVEL"].strip()

    return replace(settings, **overrides)
