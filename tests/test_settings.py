"""
Tests for settings loading and environment overrides
"""
import pytest
import yaml

import settings as settings_module
from settings import (
    apply_env_overrides, get_censored_settings, load_settings, parse_bool, parse_list, parse_number,
    verify_settings,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    import os
    for name in list(os.environ):
        if name.startswith("LUDOTECA_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr(settings_module, "_cached_settings", None)


class TestParsers:
    """Tests for value parsers"""

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("YES", True), ("1", True), ("off", False), ("0", False), (True, True),
    ])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_parse_bool_default(self):
        assert parse_bool("maybe", default=True) is True
        assert parse_bool(None) is False

    def test_parse_list(self):
        assert parse_list(".zip, .iso,,") == [".zip", ".iso"]
        assert parse_list("", default=[".7z"]) == [".7z"]

    @pytest.mark.parametrize("raw,expected", [
        ("4", 4), ("2.5", 2.5), ("-1", 10), ("abc", 10), (None, 10),
    ])
    def test_parse_number(self, raw, expected):
        assert parse_number(raw, default=10) == expected


class TestEnvironmentOverrides:
    """Tests for apply_env_overrides"""

    def test_nested_keys_are_typed(self, monkeypatch):
        monkeypatch.setenv("LUDOTECA_GAMES_PATH", "/mnt/games")
        monkeypatch.setenv("LUDOTECA_GAMES_INDEX_CONCURRENCY", "4")
        monkeypatch.setenv("LUDOTECA_GAMES_SEARCH_RECURSIVE", "false")
        monkeypatch.setenv("LUDOTECA_GAMES_SUPPORTED_FILE_FORMATS", ".zip,.iso")
        monkeypatch.setenv("LUDOTECA_METADATA_RAWG_API_KEY", "secret")

        settings = apply_env_overrides({})
        assert settings["games"]["path"] == "/mnt/games"
        assert settings["games"]["index_concurrency"] == 4
        assert settings["games"]["search_recursive"] is False
        assert settings["games"]["supported_file_formats"] == [".zip", ".iso"]
        assert settings["metadata"]["rawg"]["api_key"] == "secret"

    def test_file_variant_wins(self, monkeypatch, tmp_path):
        secret = tmp_path / "igdb_secret"
        secret.write_text("from-file\n")
        monkeypatch.setenv("LUDOTECA_METADATA_IGDB_CLIENT_SECRET", "from-env")
        monkeypatch.setenv("LUDOTECA_METADATA_IGDB_CLIENT_SECRET_FILE", str(secret))

        settings = apply_env_overrides({})
        assert settings["metadata"]["igdb"]["client_secret"] == "from-file"

    def test_unreadable_secret_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LUDOTECA_METADATA_RAWG_API_KEY_FILE", str(tmp_path / "missing"))
        with pytest.raises(ValueError):
            apply_env_overrides({})


class TestLoadSettings:
    """Tests for load_settings"""

    def test_writes_defaults_when_missing(self, tmp_path):
        config_file = tmp_path / "config" / "settings.yaml"
        settings = load_settings(force=True, config_file=str(config_file))
        assert config_file.exists()
        assert settings["games"]["index_interval_in_minutes"] == 60

    def test_yaml_is_merged_over_defaults(self, tmp_path, monkeypatch):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump({"games": {"path": "/srv/games"}, "metadata": {"ttl_in_days": 7}}))
        monkeypatch.setenv("LUDOTECA_METADATA_TTL_IN_DAYS", "3")

        settings = load_settings(force=True, config_file=str(config_file))
        assert settings["games"]["path"] == "/srv/games"
        assert settings["games"]["search_recursive"] is True
        # Environment beats the file
        assert settings["metadata"]["ttl_in_days"] == 3

    def test_cached_until_forced(self, tmp_path):
        config_file = str(tmp_path / "settings.yaml")
        first = load_settings(force=True, config_file=config_file)
        assert load_settings(config_file=config_file) is first
        assert load_settings(force=True, config_file=config_file) is not first

    def test_non_mapping_root_is_rejected(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            load_settings(force=True, config_file=str(config_file))


class TestCensoringAndVerification:
    """Tests for get_censored_settings and verify_settings"""

    def test_credentials_are_redacted(self, test_settings):
        test_settings["metadata"]["igdb"]["client_secret"] = "hunter2"
        censored = get_censored_settings(test_settings)
        assert censored["metadata"]["igdb"]["client_secret"] == "**REDACTED**"
        assert censored["metadata"]["rawg"]["api_key"] is None
        assert censored["games"]["path"] == test_settings["games"]["path"]
        assert test_settings["metadata"]["igdb"]["client_secret"] == "hunter2"

    def test_verify_settings(self, test_settings, tmp_path):
        assert verify_settings(test_settings) == (True, [])
        test_settings["games"]["path"] = str(tmp_path / "missing")
        success, errors = verify_settings(test_settings)
        assert success is False
        assert errors[0]["path"] == "games/path"
