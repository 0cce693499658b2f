"""Application settings and plot extraction field mapping."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from plotguard.errors import ConfigError

DEFAULT_POLYGON_FIELDS = (
    "boundary_mapping/Open_Area_GeoMapping",
    "Open_Area_GeoMapping",
    "manual_boundary",
)
DEFAULT_PLOT_NAME_FIELDS = ("First_Name", "Father_s_Name", "Grandfather_s_Name")
DEFAULT_REGION_FIELD = "woreda"
DEFAULT_SUB_REGION_FIELD = "kebele"


class Settings(BaseSettings):
    """Runtime settings loaded from ``PLOTGUARD_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLOTGUARD_", env_file=".env", extra="ignore"
    )

    # Storage
    database_url: str = "sqlite:///plotguard.db"

    # KoboToolbox backend
    kobo_server_url: str = "https://kf.kobotoolbox.org"
    kobo_username: str = ""
    kobo_password: str = ""
    kobo_token: str = ""  # Takes precedence over username/password
    page_size: int = 50
    request_timeout: float = 30.0

    # Extraction / validation
    extraction_config_path: str = "plot_extraction_config.json"
    boundary_path: str = ""
    min_plot_area_m2: float = 10.0

    def validate_values(self) -> Settings:
        """Check numeric settings.

        Raises
        ------
        ConfigError
            Raised when a value is out of range.
        """
        if self.page_size <= 0:
            raise ConfigError(f"page_size must be positive, got {self.page_size}")
        if self.request_timeout <= 0:
            raise ConfigError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )
        if self.min_plot_area_m2 < 0:
            raise ConfigError(
                f"min_plot_area_m2 must not be negative, got {self.min_plot_area_m2}"
            )
        return self


def load_settings(**overrides) -> Settings:
    """Read settings from the environment and apply ``overrides``.

    Raises
    ------
    ConfigError
        Raised when an environment value cannot be parsed or is out of range.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"invalid settings: {e}") from e
    return settings.validate_values()


@dataclass(frozen=True)
class ExtractionConfig:
    """Ordered field-priority mapping for plot extraction.

    Parameters
    ----------
    polygon_fields : tuple[str, ...]
        Candidate polygon fields, first non-blank wins.
    plot_name_fields : tuple[str, ...]
        Name components joined in order.
    region_field, sub_region_field : str
        Partition key fields.
    """

    polygon_fields: tuple[str, ...] = field(default=DEFAULT_POLYGON_FIELDS)
    plot_name_fields: tuple[str, ...] = field(default=DEFAULT_PLOT_NAME_FIELDS)
    region_field: str = DEFAULT_REGION_FIELD
    sub_region_field: str = DEFAULT_SUB_REGION_FIELD

    @classmethod
    def from_dict(cls, data: dict) -> ExtractionConfig:
        """Build config from the JSON object layout, defaulting missing keys.

        Raises
        ------
        ValueError
            Raised when a key is present with the wrong type.
        """
        defaults = cls()
        polygon_fields = _string_list(data, "polygonFields", defaults.polygon_fields)
        plot_name_fields = _string_list(
            data, "plotNameFields", defaults.plot_name_fields
        )
        region_field = _string_value(data, "regionField", defaults.region_field)
        sub_region_field = _string_value(
            data, "subRegionField", defaults.sub_region_field
        )
        return cls(
            polygon_fields=polygon_fields,
            plot_name_fields=plot_name_fields,
            region_field=region_field,
            sub_region_field=sub_region_field,
        )


def _string_list(data: dict, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return tuple(value)


def _string_value(data: dict, key: str, default: str) -> str:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def load_extraction_config(path: str | Path | None) -> ExtractionConfig:
    """Load extraction field mapping from a JSON file.

    Any failure (missing file, unreadable file, invalid JSON, wrong types)
    logs a warning and returns the built-in defaults.

    Parameters
    ----------
    path : str | Path | None
        JSON file path. ``None`` selects the defaults directly.

    Returns
    -------
    ExtractionConfig
        Loaded or default configuration.
    """
    if path is None:
        return ExtractionConfig()
    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("config root must be a JSON object")
        config = ExtractionConfig.from_dict(data)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load extraction config {config_path}: {e}; using defaults")
        return ExtractionConfig()
    logger.info(
        f"Loaded extraction config from {config_path}: "
        f"{len(config.polygon_fields)} polygon fields, region='{config.region_field}'"
    )
    return config
