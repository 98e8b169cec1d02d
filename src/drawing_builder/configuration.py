from __future__ import annotations

import codecs
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import ConfigMetadata, Settings

load_dotenv()

CONFIG_ENV_VAR = "DRAWING_BUILDER_CONFIG"

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:5]]


def _locate_config() -> Path:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    path = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
    if path is None:
        raise ConfigurationError(f"Default config.yaml could not be located; set {CONFIG_ENV_VAR} to its path.")
    return path


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    config_path = _locate_config()
    if not config_path.exists():
        raise ConfigurationError(f"Default config not found at {config_path}")
    return OmegaConf.load(config_path)


def make_runtime_config(overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    try:
        merged = OmegaConf.merge(base, OmegaConf.create(overrides or {}))
    except OmegaConfBaseException as exc:
        raise ConfigurationError(f"Invalid configuration override: {exc}") from exc
    return DictConfig(merged)


def validate_charset(charset: str) -> str:
    """Return the charset unchanged if Python has a codec for it."""
    try:
        codecs.lookup(charset)
    except LookupError as exc:
        raise ConfigurationError(f"Unknown charset: {charset}") from exc
    return charset


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Build validated settings from config.yaml, environment and overrides.

    Raises:
        ConfigurationError: On unknown keys, unresolvable values, failed
            validation, or a charset Python cannot encode
    """
    config = make_runtime_config(overrides)
    try:
        container = OmegaConf.to_container(config, resolve=True, enum_to_str=True)
    except OmegaConfBaseException as exc:
        raise ConfigurationError(f"Could not resolve configuration: {exc}") from exc

    try:
        settings = Settings.model_validate(container)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    validate_charset(settings.charset)
    return settings


def build_config_metadata(settings: Settings) -> ConfigMetadata:
    return ConfigMetadata(
        charset=settings.charset,
        rendition=settings.rendition,
        defaults=settings.defaults,
        asset_backend=settings.assets.backend,
    )
