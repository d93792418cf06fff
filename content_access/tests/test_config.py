"""
Unit tests for client configuration.
"""

import pytest

from shared.config import (
    ApiClientConfig,
    create_api_config,
    create_test_config,
    determine_environment,
    get_environment_config,
    merge_with_environment_defaults,
    timeout_for_environment,
    validate_api_config,
)
from shared.errors import ConfigurationError


BRANCH_VARS = ("CONTENT_ENVIRONMENT", "CONTENT_BRANCH", "GITHUB_HEAD_REF", "GITHUB_REF_NAME", "VERCEL_GIT_COMMIT_REF")


@pytest.fixture
def clean_env(monkeypatch):
    for name in BRANCH_VARS + ("CONTENT_API_KEY", "CONTENT_BASE_URL", "CONTENT_TIMEOUT", "CONTENT_ENABLE_LOGGING"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDetermineEnvironment:

    def test_explicit_environment_wins(self, clean_env):
        clean_env.setenv("CONTENT_ENVIRONMENT", "staging")
        clean_env.setenv("CONTENT_BRANCH", "main")

        assert determine_environment() == "staging"

    @pytest.mark.parametrize("branch, expected", [
        ("main", "production"),
        ("master", "production"),
        ("staging", "staging"),
        ("feature/test-runner", "staging"),
        ("feature/new-cards", "development"),
    ])
    def test_branch_heuristics(self, clean_env, branch, expected):
        clean_env.setenv("CONTENT_BRANCH", branch)

        assert determine_environment() == expected

    def test_defaults_to_development(self, clean_env):
        assert determine_environment() == "development"


class TestEnvironmentDefaults:

    def test_timeouts(self):
        assert timeout_for_environment("development") == 60.0
        assert timeout_for_environment("staging") == 45.0
        assert timeout_for_environment("production") == 30.0

    def test_unknown_environment(self):
        with pytest.raises(ConfigurationError):
            get_environment_config("qa")

    def test_merge_layers_overrides(self):
        config = merge_with_environment_defaults(
            {"api_key": "abcdefghijkl", "timeout": 10.0},
            environment="staging",
        )

        assert config.environment == "staging"
        assert config.base_url == "https://mock-tst-api.terencewaters.com"
        assert config.timeout == 10.0
        assert config.retry_attempts == 3

    def test_merge_rejects_invalid_settings(self):
        with pytest.raises(ConfigurationError) as exc_info:
            merge_with_environment_defaults({"api_key": "short"}, environment="production")

        assert "api_key" in exc_info.value.message


class TestValidation:

    def test_valid_config_has_no_problems(self):
        assert validate_api_config(create_test_config().model_dump()) == []

    def test_collects_every_problem(self):
        problems = validate_api_config({
            "base_url": "not a url",
            "api_key": "",
            "cdn_base_url": "https://cdn.example.com",
            "environment": "qa",
            "timeout": 0,
            "retry_attempts": 11,
        })

        assert len(problems) == 5


class TestCreateApiConfig:

    def test_reads_environment(self, clean_env):
        clean_env.setenv("CONTENT_ENVIRONMENT", "development")
        clean_env.setenv("CONTENT_API_KEY", "env-api-key-123")
        clean_env.setenv("CONTENT_RETRY_ATTEMPTS", "5")

        config = create_api_config()

        assert config.api_key == "env-api-key-123"
        assert config.retry_attempts == 5
        assert config.base_url == "https://mock-dev-api.terencewaters.com"
        assert config.enable_logging is True
        assert config.logging_active is True

    def test_production_requires_api_key(self, clean_env):
        clean_env.setenv("CONTENT_ENVIRONMENT", "production")

        with pytest.raises(ConfigurationError):
            create_api_config()

    def test_logging_only_active_in_development(self):
        config = ApiClientConfig(environment="production", enable_logging=True)

        assert config.logging_active is False
