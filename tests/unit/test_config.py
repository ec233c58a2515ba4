"""
Unit tests for configuration loading.
"""
import json

import pytest

from config import Config


@pytest.fixture
def settings_dir(temp_dir, monkeypatch):
    path = temp_dir / "config"
    path.mkdir()
    monkeypatch.setenv("CONFIG_DIR", str(path))
    for name in ("STOCK_API_BASE_URL", "STOCK_API_TIMEOUT", "DEFAULT_PAYMENT_METHOD",
                 "DRAFTS_ENABLED", "DRAFT_DEBOUNCE_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    return path


@pytest.mark.unit
class TestConfig:

    def test_defaults(self, settings_dir):
        config = Config()
        assert config.api_base_url == "http://localhost:8000/api/v1/"
        assert config.default_payment_method == "Наличные"
        assert config.product_fuzzy_threshold == 60
        assert config.drafts_enabled is True

    def test_settings_file_overlay(self, settings_dir):
        (settings_dir / "engine_settings.json").write_text(json.dumps({
            "_comment": "ignored",
            "product_fuzzy_threshold": "75",
            "calculation_path": "pricing/calculate/",
            "unknown_key": 1,
        }))
        config = Config()
        assert config.product_fuzzy_threshold == 75
        assert config.calculation_path == "pricing/calculate/"
        assert not hasattr(config, "unknown_key")

    def test_environment_wins_over_settings_file(self, settings_dir, monkeypatch):
        (settings_dir / "engine_settings.json").write_text(json.dumps({"api_base_url": "http://file/"}))
        monkeypatch.setenv("STOCK_API_BASE_URL", "http://env/")
        assert Config().api_base_url == "http://env/"

    def test_malformed_settings_file_is_ignored(self, settings_dir):
        (settings_dir / "engine_settings.json").write_text("{not json")
        assert Config().product_fuzzy_threshold == 60

    def test_drafts_can_be_disabled(self, settings_dir, monkeypatch):
        monkeypatch.setenv("DRAFTS_ENABLED", "false")
        assert Config().drafts_enabled is False

    def test_ensure_output_dir(self, settings_dir, temp_dir):
        config = Config()
        config.draft_db_path = temp_dir / "out" / "drafts.db"
        config.ensure_output_dir()
        assert (temp_dir / "out").is_dir()
