"""Tests for settings validation and the CLI argument parser."""

import pytest

from palbase.cli import build_parser, main
from palbase.config import KNOWN_SOURCES, Settings
from palbase.core.exceptions import ConfigurationError


def make_settings(**overrides) -> Settings:
    overrides.setdefault("RESCUEGROUPS_API_KEY", "key")
    return Settings(_env_file=None, **overrides)


class TestEnabledSources:
    def test_defaults_to_every_source(self):
        assert make_settings().enabled_sources() == list(KNOWN_SOURCES)

    def test_parses_and_normalizes(self):
        settings = make_settings(SYNC_SOURCES=" ASPCA , petsmart,,")
        assert settings.enabled_sources() == ["aspca", "petsmart"]

    def test_unknown_source(self):
        with pytest.raises(ConfigurationError) as exc_info:
            make_settings(SYNC_SOURCES="aspca,craigslist").enabled_sources()
        assert "craigslist" in exc_info.value.message


class TestValidateRequired:
    def test_missing_api_key_named(self):
        settings = make_settings(RESCUEGROUPS_API_KEY="")
        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_required()
        assert exc_info.value.missing == ["RESCUEGROUPS_API_KEY"]
        assert "RESCUEGROUPS_API_KEY" in exc_info.value.message

    def test_api_key_not_needed_when_source_disabled(self):
        settings = make_settings(RESCUEGROUPS_API_KEY="", SYNC_SOURCES="aspca,bestfriends")
        settings.validate_required()

    def test_rate_limit_bounds(self):
        settings = make_settings(SCRAPER_RATE_LIMIT_MIN_MS=6000, SCRAPER_RATE_LIMIT_MAX_MS=5000)
        with pytest.raises(ConfigurationError):
            settings.validate_required()

    def test_valid_settings(self):
        make_settings().validate_required()


class TestDerivedSettings:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@db:5432/palbase", "postgresql+asyncpg://u:p@db:5432/palbase"),
            ("postgresql://u:p@db:5432/palbase", "postgresql+asyncpg://u:p@db:5432/palbase"),
            ("postgresql+asyncpg://u:p@db:5432/palbase", "postgresql+asyncpg://u:p@db:5432/palbase"),
            ("sqlite+aiosqlite:///palbase.db", "sqlite+aiosqlite:///palbase.db"),
        ],
    )
    def test_database_url_driver(self, url, expected):
        assert make_settings(DATABASE_URL=url).DATABASE_URL == expected

    def test_local_browser_without_token(self):
        assert make_settings(BROWSERLESS_TOKEN="").remote_browser_url is None

    def test_remote_browser_url(self):
        settings = make_settings(BROWSERLESS_TOKEN="abc", BROWSERLESS_ENDPOINT="wss://browserless.internal")
        assert settings.remote_browser_url == "wss://browserless.internal?token=abc"

    def test_page_timeout_seconds(self):
        assert make_settings(SCRAPER_PAGE_TIMEOUT=45000).page_timeout_seconds == 45.0


class TestCliParser:
    def test_sync_defaults_to_all(self):
        args = build_parser().parse_args(["sync"])
        assert (args.command, args.source) == ("sync", "all")

    def test_fetch_requires_known_source(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["fetch", "--source", "craigslist"])

    def test_fetch_options(self):
        args = build_parser().parse_args(["fetch", "--source", "aspca", "--limit", "3"])
        assert (args.source, args.limit) == ("aspca", 3)

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_configuration_error_exits_nonzero(self, monkeypatch, capsys):
        def fail(self):
            raise ConfigurationError(
                "Missing required environment variables: RESCUEGROUPS_API_KEY",
                missing=["RESCUEGROUPS_API_KEY"],
            )

        monkeypatch.setattr(Settings, "validate_required", fail)
        assert main(["sync", "--source", "aspca"]) == 1
        assert "RESCUEGROUPS_API_KEY" in capsys.readouterr().err
