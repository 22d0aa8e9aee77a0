"""
Runtime settings resolved from the environment.

Every value has a working default so the pipeline runs offline with the
mock LLM provider and the local file cache.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError
from .paths import default_cache_dir, default_zccd_path


logger = logging.getLogger(__name__)

CENSUS_API_BASE = "https://api.census.gov/data/2021/acs/acs5"
SUPPORTED_PROVIDERS = ("mock", "anthropic", "groq")
DEFAULT_MAX_TOKENS = 3000
DEFAULT_HTTP_TIMEOUT = 30.0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class Settings:
    """Resolved configuration for one process."""
    census_api_base: str = CENSUS_API_BASE
    census_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    llm_provider: str = "mock"
    llm_model: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    cache_dir: Path = field(default_factory=default_cache_dir)
    cache_url: Optional[str] = None
    cache_token: Optional[str] = None
    zccd_path: Path = field(default_factory=default_zccd_path)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.llm_provider not in SUPPORTED_PROVIDERS:
            raise ConfigurationError(
                f"Unknown LLM provider '{self.llm_provider}'. "
                f"Expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if self.max_tokens <= 0:
            raise ConfigurationError("max_tokens must be positive")
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        cache_dir = os.getenv("DISTRICT_TWINS_CACHE_DIR")
        zccd_path = os.getenv("DISTRICT_TWINS_ZCCD_PATH")
        settings = cls(
            census_api_base=os.getenv("CENSUS_API_BASE") or CENSUS_API_BASE,
            census_api_key=os.getenv("CENSUS_API_KEY") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            llm_provider=(os.getenv("DISTRICT_TWINS_LLM_PROVIDER") or "mock").lower(),
            llm_model=os.getenv("DISTRICT_TWINS_LLM_MODEL") or None,
            max_tokens=_env_int("DISTRICT_TWINS_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            cache_dir=Path(cache_dir) if cache_dir else default_cache_dir(),
            cache_url=os.getenv("DISTRICT_TWINS_CACHE_URL") or None,
            cache_token=os.getenv("DISTRICT_TWINS_CACHE_TOKEN") or None,
            zccd_path=Path(zccd_path) if zccd_path else default_zccd_path(),
            http_timeout=_env_float("DISTRICT_TWINS_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        )
        logger.debug(f"Settings loaded: provider={settings.llm_provider}, cache_dir={settings.cache_dir}")
        return settings

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with non-None overrides applied (CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def llm_api_key(self) -> Optional[str]:
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        if self.llm_provider == "groq":
            return self.groq_api_key
        return None
