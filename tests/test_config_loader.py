"""Tests for config loader module."""
import os
import pytest
import tempfile
import yaml
from unittest.mock import patch

from config_loader import (
    DEFAULTS,
    ConfigurationError,
    get_cache_ttl,
    get_server_address,
    load_config,
    require_sheets_settings,
)


@pytest.fixture
def missing_path(tmp_path):
    return str(tmp_path / "nonexistent.yaml")


class TestLoadConfig:
    """Test config loading functionality."""

    def test_load_defaults_when_no_file(self, missing_path):
        """Test that defaults are loaded when no config file exists."""
        config = load_config(missing_path)

        assert config["cache"]["ttl_seconds"] == DEFAULTS["cache"]["ttl_seconds"]
        assert config["server"]["port"] == 8888
        assert config["sheets"]["spreadsheet_id"] == ""

    def test_load_from_yaml_file(self):
        """Test loading config from YAML file."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump({"sheets": {"spreadsheet_id": "sheet-123"}}, f)
            f.flush()

            config = load_config(f.name)

            assert config["sheets"]["spreadsheet_id"] == "sheet-123"
            # Sibling defaults survive the merge
            assert config["sheets"]["credentials_path"] == ""
            assert "server" in config

            os.unlink(f.name)

    def test_env_vars_override_file(self):
        """Test that environment variables override file config."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump({"sheets": {"spreadsheet_id": "from-file"}}, f)
            f.flush()

            with patch.dict(os.environ, {"LEDGER_SPREADSHEET_ID": "from-env"}):
                config = load_config(f.name)

                assert config["sheets"]["spreadsheet_id"] == "from-env"

            os.unlink(f.name)

    def test_env_var_integer_parsing(self, missing_path):
        """Test parsing of integer environment variables."""
        with patch.dict(os.environ, {"LEDGER_PORT": "9000"}):
            config = load_config(missing_path)

            assert config["server"]["port"] == 9000

    def test_env_var_float_parsing(self, missing_path):
        """Test parsing of float environment variables."""
        with patch.dict(os.environ, {"LEDGER_CACHE_TTL": "2.5"}):
            config = load_config(missing_path)

            assert config["cache"]["ttl_seconds"] == 2.5

    def test_empty_yaml_file(self):
        """Test that an empty config file falls back to defaults."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("")
            f.flush()

            config = load_config(f.name)

            assert config["reporting"]["log_level"] == "INFO"

            os.unlink(f.name)

    def test_defaults_not_mutated(self, missing_path):
        """Test that loading config does not mutate DEFAULTS."""
        with patch.dict(os.environ, {"LEDGER_SPREADSHEET_ID": "abc"}):
            load_config(missing_path)

        assert DEFAULTS["sheets"]["spreadsheet_id"] == ""


class TestAccessors:
    """Test typed config accessors."""

    def test_cache_ttl(self, missing_path):
        config = load_config(missing_path)
        assert get_cache_ttl(config) == 30.0
        assert get_cache_ttl({"cache": {"ttl_seconds": "5"}}) == 5.0

    def test_server_address_defaults(self):
        assert get_server_address({}) == ("127.0.0.1", 8888)

    def test_server_address_from_config(self):
        config = {"server": {"host": "0.0.0.0", "port": "8080"}}
        assert get_server_address(config) == ("0.0.0.0", 8080)


class TestRequireSheetsSettings:
    """Test fail-fast checks on the store identity and credentials."""

    def test_missing_spreadsheet_id(self, tmp_path):
        creds = tmp_path / "creds.json"
        creds.write_text("{}")
        config = {"sheets": {"spreadsheet_id": "", "credentials_path": str(creds)}}

        with pytest.raises(ConfigurationError, match="spreadsheet id"):
            require_sheets_settings(config)

    def test_missing_credentials_path(self):
        config = {"sheets": {"spreadsheet_id": "abc", "credentials_path": ""}}

        with pytest.raises(ConfigurationError, match="credentials path"):
            require_sheets_settings(config)

    def test_credentials_file_must_exist(self, tmp_path):
        config = {"sheets": {"spreadsheet_id": "abc", "credentials_path": str(tmp_path / "nope.json")}}

        with pytest.raises(ConfigurationError, match="not a file"):
            require_sheets_settings(config)

    def test_returns_id_and_path(self, tmp_path):
        creds = tmp_path / "creds.json"
        creds.write_text("{}")
        config = {"sheets": {"spreadsheet_id": "abc", "credentials_path": str(creds)}}

        assert require_sheets_settings(config) == ("abc", str(creds))
