"""Configuration management for gemini-craft."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gemini_craft.errors import ErrorKind, GeminiCraftError

_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"
API_KEY_ENV = "GEMINI_API_KEY"


class GeminiConfig(BaseModel):
    """Settings consumed by ``GeminiClient``.

    ``api_key`` falls back to the ``GEMINI_API_KEY`` environment variable.
    Assignments are validated, so an out-of-range value set after
    construction fails immediately.  Validation failures surface as
    CONFIGURATION errors, never as bare pydantic exceptions.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True,
    )

    api_key: str | None = Field(default_factory=lambda: os.environ.get(API_KEY_ENV))
    api_base_url: str = DEFAULT_BASE_URL
    model: str | None = DEFAULT_MODEL
    timeout: float = Field(default=30, gt=0)  # seconds
    cache_enabled: bool = False
    cache_ttl: float = Field(default=3600, gt=0)  # seconds
    max_retries: int = Field(default=3, ge=0)
    logger: logging.Logger | None = Field(default=None, exclude=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise GeminiCraftError(ErrorKind.CONFIGURATION, str(e)) from e

    def __setattr__(self, name: str, value: Any) -> None:
        try:
            super().__setattr__(name, value)
        except ValidationError as e:
            raise GeminiCraftError(ErrorKind.CONFIGURATION, str(e)) from e

    def validate_required(self) -> None:
        """Raise a CONFIGURATION error if a required setting is missing."""
        if not self.api_key:
            raise GeminiCraftError(
                ErrorKind.CONFIGURATION,
                f"API key must be configured (set api_key or {API_KEY_ENV})",
            )
        if not self.model:
            raise GeminiCraftError(ErrorKind.CONFIGURATION, "Model must be configured")
        if not self.api_base_url:
            raise GeminiCraftError(ErrorKind.CONFIGURATION, "API base URL must be configured")


CONFIG_FILENAME = "gemini_craft.yaml"


def load_config(
    config_path: str | Path | None = None,
    **overrides: Any,
) -> tuple[GeminiConfig, Path | None]:
    """Load configuration from a YAML file.

    Returns (config, resolved_path).  *resolved_path* is ``None`` when no
    file was found and built-in defaults are used.

    Search order (first match wins):
      1. Explicit ``config_path``
      2. Current working directory: ``./gemini_craft.yaml``
      3. User config dir: ``~/.gemini_craft/gemini_craft.yaml``

    Keyword *overrides* (e.g. from CLI flags) are applied on top of the file.
    ``None`` overrides are ignored.  Invalid values raise a CONFIGURATION
    error.
    """
    if config_path is None:
        for d in (Path.cwd(), Path.home() / ".gemini_craft"):
            p = d / CONFIG_FILENAME
            if p.exists():
                config_path = p
                break

    raw: dict[str, Any] = {}
    resolved: Path | None = Path(config_path) if config_path else None
    if resolved is not None:
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        _logger.info("Loading config from %s", resolved)
        with open(resolved) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise GeminiCraftError(
                ErrorKind.CONFIGURATION,
                f"Config file must contain a mapping: {resolved}",
            )
        resolved = resolved.resolve()
    else:
        _logger.info("No config file found, using defaults")

    raw.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return GeminiConfig.model_validate(raw), resolved
    except ValidationError as e:
        raise GeminiCraftError(ErrorKind.CONFIGURATION, str(e)) from e
