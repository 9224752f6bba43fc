"""
Tests for the configuration document loader.

Tests for:
- Candidate path selection
- download() failure handling
- parse_yaml()
- validate_and_decode()
"""

import asyncio
import logging

import pytest

from ubiquity_sdk.configuration import (
    CONFIG_DEV_FULL_PATH,
    CONFIG_PROD_FULL_PATH,
    DocumentLoader,
    PluginConfiguration,
    config_path_candidates,
    parse_yaml,
    validate_and_decode,
)
from ubiquity_sdk.sources import ContentResponse, ContentSourceError

# =============================================================================
# Candidate paths
# =============================================================================


class TestConfigPathCandidates:
    """Tests for config_path_candidates."""

    @pytest.mark.parametrize("environment", [None, "", "production", "PRODUCTION"])
    def test_production(self, environment):
        assert config_path_candidates(environment) == [CONFIG_PROD_FULL_PATH]

    def test_development(self):
        assert config_path_candidates("development") == [CONFIG_DEV_FULL_PATH, CONFIG_PROD_FULL_PATH]

    def test_custom_environment(self):
        assert config_path_candidates("staging") == [
            ".github/.ubiquity-os.config.staging.yml",
            CONFIG_PROD_FULL_PATH,
        ]

    @pytest.mark.parametrize("environment", ["Staging", "  STAGING  "])
    def test_environment_names_are_case_folded(self, environment):
        assert config_path_candidates(environment)[0] == ".github/.ubiquity-os.config.staging.yml"

    def test_development_is_case_insensitive(self):
        assert config_path_candidates("Development") == [CONFIG_DEV_FULL_PATH, CONFIG_PROD_FULL_PATH]

    def test_environment_is_sanitized(self):
        assert config_path_candidates("../../qa") == [
            ".github/.ubiquity-os.config.qa.yml",
            CONFIG_PROD_FULL_PATH,
        ]

    def test_invalid_environment_uses_dev_path(self):
        assert config_path_candidates("$$$") == [CONFIG_DEV_FULL_PATH, CONFIG_PROD_FULL_PATH]


# =============================================================================
# download()
# =============================================================================


class NotFound(Exception):
    """Third-party style error carrying `status`."""

    status = 404


class SlowSource:
    async def get_content(self, owner, repo, path, ref=None):
        await asyncio.sleep(1)
        return ContentResponse(data="plugins: {}")


class TestDownload:
    """Tests for DocumentLoader.download."""

    @pytest.mark.asyncio
    async def test_returns_first_existing_candidate(self, source, write_config):
        write_config("acme", "demo", "plugins: {}\n", path=CONFIG_DEV_FULL_PATH)
        write_config("acme", "demo", "prod: true\n")
        loader = DocumentLoader(environment="development")

        raw = await loader.download("acme", "demo", source)

        assert raw == "plugins: {}\n"
        assert source.calls_for("acme", "demo") == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_next_candidate_on_404(self, source, write_config):
        write_config("acme", "demo", "prod: true\n")
        loader = DocumentLoader(environment="development")

        raw = await loader.download("acme", "demo", source)

        assert raw == "prod: true\n"
        assert source.calls_for("acme", "demo") == 2

    @pytest.mark.asyncio
    async def test_404_on_every_candidate_returns_none(self, source, recording_logger):
        loader = DocumentLoader(environment="development", logger=recording_logger)

        raw = await loader.download("acme", "demo", source)

        assert raw is None
        assert recording_logger.messages("error") == []
        assert recording_logger.messages("warning") == []

    @pytest.mark.asyncio
    async def test_server_error_continues_to_next_candidate(self, source, write_config, recording_logger):
        source.fail_with("acme", "demo", CONFIG_DEV_FULL_PATH, ContentSourceError("boom", "memory", status_code=502))
        write_config("acme", "demo", "prod: true\n")
        loader = DocumentLoader(environment="development", logger=recording_logger)

        raw = await loader.download("acme", "demo", source)

        assert raw == "prod: true\n"
        assert any("Failed to download" in message for message in recording_logger.messages("warning"))

    @pytest.mark.asyncio
    async def test_auth_error_is_logged_as_error(self, source, recording_logger):
        source.fail_with("acme", "demo", CONFIG_PROD_FULL_PATH, ContentSourceError("denied", "memory", status_code=401))
        loader = DocumentLoader(logger=recording_logger)

        assert await loader.download("acme", "demo", source) is None
        assert len(recording_logger.messages("error")) == 1

    @pytest.mark.asyncio
    async def test_status_attribute_counts_as_not_found(self, source, recording_logger):
        source.fail_with("acme", "demo", CONFIG_PROD_FULL_PATH, NotFound("gone"))
        loader = DocumentLoader(logger=recording_logger)

        assert await loader.download("acme", "demo", source) is None
        assert recording_logger.messages("error") == []
        assert recording_logger.messages("warning") == []

    @pytest.mark.asyncio
    async def test_timeout_is_a_soft_failure(self):
        loader = DocumentLoader(request_timeout=0.01)

        assert await loader.download("acme", "demo", SlowSource()) is None

    @pytest.mark.asyncio
    async def test_missing_owner(self, source):
        loader = DocumentLoader()

        assert await loader.download("", "demo", source) is None
        assert source.calls == []


# =============================================================================
# parse_yaml()
# =============================================================================


class TestParseYaml:
    """Tests for parse_yaml."""

    @pytest.mark.parametrize("data", [None, ""])
    def test_empty_input(self, data):
        result = parse_yaml(data)

        assert result.document is None
        assert result.errors is None

    def test_valid_yaml(self):
        result = parse_yaml("plugins:\n  acme/demo:\n    with:\n      level: 1\n")

        assert result.document == {"plugins": {"acme/demo": {"with": {"level": 1}}}}
        assert result.errors is None

    def test_syntax_error_is_reported(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = parse_yaml("plugins: [unclosed\n")

        assert result.document is None
        assert len(result.errors) == 1
        assert "Error parsing YAML" in caplog.text


# =============================================================================
# validate_and_decode()
# =============================================================================


class TestValidateAndDecode:
    """Tests for validate_and_decode."""

    def test_fills_defaults(self):
        result = validate_and_decode(PluginConfiguration, {"plugins": {"acme/demo": {}}})

        assert result.errors is None
        assert result.value.plugins["acme/demo"].with_ == {}

    def test_missing_plugins_defaults_to_empty(self):
        result = validate_and_decode(PluginConfiguration, {"other": 1})

        assert result.value.plugins == {}

    def test_invalid_document_is_skipped(self, recording_logger):
        result = validate_and_decode(
            PluginConfiguration,
            {"plugins": {"acme/demo": {"runsOn": "issues.opened", "skipBotEvents": "maybe"}}},
            log=recording_logger,
        )

        assert result.value is None
        assert len(result.errors) == 2
        assert len(recording_logger.messages("error")) == 2

    def test_non_mapping_document(self):
        result = validate_and_decode(PluginConfiguration, ["not", "a", "mapping"])

        assert result.value is None
        assert result.errors
