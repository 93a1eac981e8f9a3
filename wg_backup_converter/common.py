import logging
import os
from typing import Mapping, Optional

import yaml  # type: ignore

from .exceptions import SettingsError
from .settings import ConverterSettings

logger = logging.getLogger(__name__)


def resolve_settings_path(path: Optional[str] = None, env: Mapping[str, str] = os.environ) -> Optional[str]:
    return path or env.get("WGBC_CONFIG") or None


def load_settings(path: Optional[str] = None, env: Mapping[str, str] = os.environ) -> ConverterSettings:
    """Load settings from a YAML file, or from ``WGBC_*`` variables when there is none."""
    resolved = resolve_settings_path(path, env)
    if resolved is None or not os.path.exists(resolved):
        if resolved is not None:
            logger.info("Settings file not found: %s, using environment", resolved)
        settings = ConverterSettings.from_env(env)
    else:
        try:
            settings = ConverterSettings.read_file(resolved)
        except yaml.YAMLError as e:
            raise SettingsError(f"Failed to parse settings {resolved}: {e}") from e
    settings.validate_or_raise()
    return settings


def settings_or_default(settings: Optional[ConverterSettings]) -> ConverterSettings:
    return settings if settings is not None else ConverterSettings()
