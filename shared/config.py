"""
Shared configuration management for the content access layer.
"""

import os
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


ENVIRONMENTS = ("development", "staging", "production")

DEFAULT_CDN_BASE_URL = "https://twmedia-cdn.azureedge.net"

ENVIRONMENT_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "development": {
        "base_url": "https://mock-dev-api.terencewaters.com",
        "cdn_base_url": DEFAULT_CDN_BASE_URL,
        "enable_logging": True,
        "timeout": 60.0,
    },
    "staging": {
        "base_url": "https://mock-tst-api.terencewaters.com",
        "cdn_base_url": DEFAULT_CDN_BASE_URL,
        "enable_logging": True,
        "timeout": 45.0,
    },
    "production": {
        "base_url": "https://api.terencewaters.com",
        "cdn_base_url": DEFAULT_CDN_BASE_URL,
        "enable_logging": False,
        "timeout": 30.0,
    },
}


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONTENT_",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="production")
    log_level: str = Field(default="info")


class ApiClientConfig(BaseConfig):
    """Connection settings shared by every resource client."""

    base_url: str = Field(default="https://api.terencewaters.com")
    cdn_base_url: str = Field(default=DEFAULT_CDN_BASE_URL)
    api_key: str = Field(default="")
    timeout: float = Field(default=30.0)
    retry_attempts: int = Field(default=3)
    enable_logging: bool = Field(default=False)

    # Local snapshot directory for cache stores; disabled when unset
    snapshot_dir: Optional[str] = Field(default=None)

    @property
    def logging_active(self) -> bool:
        """Diagnostic request logging only runs in development."""
        return self.enable_logging and self.environment == "development"


def determine_environment() -> str:
    """Determine environment from an explicit variable or the branch name."""
    explicit = os.environ.get("CONTENT_ENVIRONMENT", "")
    if explicit in ENVIRONMENTS:
        return explicit

    branch = (
        os.environ.get("CONTENT_BRANCH")
        or os.environ.get("GITHUB_HEAD_REF")
        or os.environ.get("GITHUB_REF_NAME")
        or os.environ.get("VERCEL_GIT_COMMIT_REF")
        or ""
    )

    if "master" in branch or "main" in branch:
        return "production"
    if "staging" in branch or "test" in branch:
        return "staging"
    return "development"


def timeout_for_environment(environment: str) -> float:
    """Request timeout in seconds for an environment."""
    return ENVIRONMENT_DEFAULTS.get(environment, ENVIRONMENT_DEFAULTS["production"])["timeout"]


def get_environment_config(environment: str) -> Dict[str, Any]:
    """Get environment-specific client settings."""
    if environment not in ENVIRONMENT_DEFAULTS:
        raise ConfigurationError(
            f"Unknown environment: {environment}",
            details={"allowed": list(ENVIRONMENTS)}
        )
    return {**ENVIRONMENT_DEFAULTS[environment], "environment": environment, "retry_attempts": 3}


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def validate_api_config(values: Dict[str, Any]) -> List[str]:
    """Return the list of problems with a (partial) client configuration."""
    errors: List[str] = []

    base_url = values.get("base_url")
    if not base_url:
        errors.append("base_url is required")
    elif not _is_valid_url(base_url):
        errors.append("base_url must be a valid URL")

    api_key = values.get("api_key")
    if not api_key:
        errors.append("api_key is required")
    elif not isinstance(api_key, str) or len(api_key) < 10:
        errors.append("api_key must be a string with at least 10 characters")

    cdn_base_url = values.get("cdn_base_url")
    if not cdn_base_url:
        errors.append("cdn_base_url is required")
    elif not _is_valid_url(cdn_base_url):
        errors.append("cdn_base_url must be a valid URL")

    environment = values.get("environment")
    if environment and environment not in ENVIRONMENTS:
        errors.append("environment must be development, staging, or production")

    timeout = values.get("timeout")
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout < 1):
        errors.append("timeout must be a number >= 1 second")

    retry_attempts = values.get("retry_attempts")
    if retry_attempts is not None and (
        not isinstance(retry_attempts, int) or retry_attempts < 0 or retry_attempts > 10
    ):
        errors.append("retry_attempts must be a number between 0 and 10")

    return errors


def merge_with_environment_defaults(
    overrides: Dict[str, Any],
    environment: Optional[str] = None,
) -> ApiClientConfig:
    """Layer explicit settings over the environment defaults and validate."""
    env = environment or overrides.get("environment") or "production"
    merged = {**get_environment_config(env), **overrides, "environment": env}

    problems = validate_api_config(merged)
    if problems:
        raise ConfigurationError(
            f"Invalid API configuration: {', '.join(problems)}",
            details={"errors": problems}
        )

    return ApiClientConfig(**merged)


def create_api_config() -> ApiClientConfig:
    """
    Build configuration from the process environment.

    Missing base URLs fall back to the environment defaults. Validation
    problems are tolerated outside production so local development keeps
    working against mock endpoints.
    """
    from shared.logging import get_logger

    logger = get_logger("content_access.config")
    environment = determine_environment()
    config = ApiClientConfig(environment=environment)
    defaults = get_environment_config(environment)

    values = config.model_dump()
    if not os.environ.get("CONTENT_BASE_URL"):
        values["base_url"] = defaults["base_url"]
    if not os.environ.get("CONTENT_CDN_BASE_URL"):
        values["cdn_base_url"] = defaults["cdn_base_url"]
    if not os.environ.get("CONTENT_TIMEOUT"):
        values["timeout"] = defaults["timeout"]
    if not os.environ.get("CONTENT_ENABLE_LOGGING"):
        values["enable_logging"] = environment != "production"

    problems = validate_api_config(values)
    if problems:
        if environment == "production":
            raise ConfigurationError(
                f"Invalid API configuration: {', '.join(problems)}",
                details={"errors": problems}
            )
        logger.warning("API configuration incomplete", environment=environment, problems=problems)

    return ApiClientConfig(**values)


def create_test_config(**overrides: Any) -> ApiClientConfig:
    """Create a development configuration suitable for tests."""
    return merge_with_environment_defaults({
        "base_url": "https://mock-dev-api.terencewaters.com",
        "api_key": "test-api-key-12345",
        "cdn_base_url": DEFAULT_CDN_BASE_URL,
        "environment": "development",
        "enable_logging": True,
        **overrides,
    })
