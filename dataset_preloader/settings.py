"""
Initializes the Dynaconf settings object for the dataset_preloader component.
This module is the single source of truth for all configuration: the raw
settings are loaded by Dynaconf and the [preloader] section is validated into
an explicit PipelineConfig value that is passed into the pipeline.
"""

from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .application.exceptions import ConfigurationError

PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_SOURCE_URL = (
    "https://dl.fbaipublicfiles.com/SymbolicMathematics/data/prim_fwd.tar.gz"
)

settings = Dynaconf(
    root_path=PROJECT_ROOT,
    settings_files=["config/settings.toml"],
    secrets=["config/.secrets.toml"],
    envvar_prefix="PRELOADER",
    environments=False,
)


class PipelineConfig(BaseModel):
    """Validated configuration of a single preparation pipeline."""

    model_config = ConfigDict(frozen=True)

    source_url: str = DEFAULT_SOURCE_URL
    download_dir_override: Optional[Path] = None
    dataset_dir_override: Optional[Path] = None
    verbose: bool = False

    data_dir_name: str = "deepmath_data"
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)
    chunk_size: int = Field(default=1024 * 1024, gt=0)

    retry_attempts: int = Field(default=3, ge=1)
    retry_min_wait: float = Field(default=1.0, ge=0)
    retry_max_wait: float = Field(default=10.0, ge=0)

    sha256: Optional[str] = Field(default=None, pattern=r"^[0-9a-fA-F]{64}$")
    keep_archive: bool = True

    @field_validator(
        "download_dir_override", "dataset_dir_override", "sha256", mode="before"
    )
    @classmethod
    def _blank_as_none(cls, value):
        # TOML has no null, so an empty string means "not set"
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("source_url")
    @classmethod
    def _check_source_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"expected an http(s) URL, got {value!r}")
        return value


def load_config(source: Dynaconf = settings) -> PipelineConfig:
    """
    Builds a PipelineConfig from the [preloader] section of the settings.

    Raises:
        ConfigurationError: If any value fails validation.
    """

    section = source.get("preloader") or {}
    values = {str(key).lower(): value for key, value in dict(section).items()}

    try:
        return PipelineConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid [preloader] settings: {e}") from e
