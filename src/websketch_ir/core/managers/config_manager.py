# src/websketch_ir/core/managers/config_manager.py
import copy
import json
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from websketch_ir.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

LOG_LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


# --- Settings sections ---

class DebugSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVEL_NAMES:
            raise ValueError(f"level must be one of {', '.join(LOG_LEVEL_NAMES)}")
        return value


class LimitsSettings(BaseModel):
    """Upper bounds on tree size, enforced before any per-node work."""
    model_config = ConfigDict(extra="forbid")

    max_nodes: int = Field(default=10000, gt=0)
    max_depth: int = Field(default=64, gt=0)


class RenderSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    width: int = Field(default=80, gt=0)
    height: int = Field(default=24, gt=0)


class DiffThresholds(BaseModel):
    model_config = ConfigDict(extra="forbid")

    move_threshold: float = Field(default=0.01, ge=0.0)
    resize_threshold: float = Field(default=0.01, ge=0.0)
    min_similarity: float = Field(default=0.3, ge=0.0)
    semantics_bonus: float = Field(default=0.2, ge=0.0)


class DiffSettings(DiffThresholds):
    top_changes: int = Field(default=10, ge=0)


class FingerprintSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Digits after the decimal point in the canonical form
    precision: int = Field(default=4, ge=0, le=12)


class CoreSettings(BaseModel):
    """The whole settings.json document. Missing sections take their defaults."""
    model_config = ConfigDict(extra="forbid")

    debug: DebugSettings = Field(default_factory=DebugSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    render: RenderSettings = Field(default_factory=RenderSettings)
    diff: DiffSettings = Field(default_factory=DiffSettings)
    fingerprint: FingerprintSettings = Field(default_factory=FingerprintSettings)


class ConfigManager:
    """
    A singleton class to manage the core's configuration (limits, render
    defaults, diff thresholds). It loads settings from the packaged
    settings.json and allows for in-memory modifications by host applications.

    Every load and every change is validated against `CoreSettings`, so the
    services reading these values never see a negative node limit or an
    unknown section. A rejected change leaves the current configuration as it was.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Loads the configuration from the file."""
        self._settings = CoreSettings()
        self._config: Dict[str, Any] = self._settings.model_dump()
        self.reset()
        logger.debug("ConfigManager initialized.")

    @property
    def settings(self) -> CoreSettings:
        """The validated configuration as a model."""
        return self._settings

    def get_all(self) -> Dict[str, Any]:
        """Returns the entire current configuration dictionary."""
        return self._config

    def get_nested(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Safely retrieves a nested value from the configuration.
        e.g., 'limits.max_nodes'.
        """
        value = self._config
        for key in key_path.split('.'):
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
        return value if value is not None else default

    def set_nested(self, key_path: str, value: Any) -> bool:
        """
        Sets a nested value in the in-memory configuration.
        e.g., 'render.width', '120' (coerced to 120).

        Returns False, and changes nothing, when the key is unknown or the
        value does not pass validation.
        """
        keys = key_path.split('.')
        candidate = copy.deepcopy(self._config)
        d = candidate
        # Navigate to the second-to-last dictionary
        for key in keys[:-1]:
            d = d.setdefault(key, {})
            if not isinstance(d, dict):
                logger.error("Cannot set value: '%s' is not a dictionary.", key)
                return False
        d[keys[-1]] = value

        try:
            settings = CoreSettings.model_validate(candidate)
        except ValidationError as e:
            logger.error("Rejected configuration change %s = %r: %s", key_path, value, e)
            return False

        self._apply(settings)
        logger.info("Configuration updated: %s = %s", key_path, self.get_nested(key_path))
        return True

    def reset(self):
        """Resets the in-memory configuration from the settings.json file."""
        config_path = PathUtils.get_settings_file()
        if not config_path.exists():
            logger.warning("settings.json not found at %s. Using built-in defaults.", config_path)
            self._apply(CoreSettings())
            return
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                settings = CoreSettings.model_validate(json.load(f))
            logger.debug("Configuration has been (re)loaded from settings.json.")
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load settings.json: %s", e, exc_info=True)
            settings = CoreSettings()
        except ValidationError as e:
            logger.error("Invalid settings.json at %s, using built-in defaults: %s", config_path, e)
            settings = CoreSettings()
        self._apply(settings)

    def _apply(self, settings: CoreSettings):
        self._settings = settings
        self._config = settings.model_dump()


# The global singleton instance that the entire core uses.
config_manager = ConfigManager()
