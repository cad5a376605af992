"""Tests for configuration and environment overrides."""

from recipe_costing.utils.config import Config, get_config, get_database_url, reset_config


class TestConfig:
    def test_defaults(self):
        config = get_config()
        assert config.max_recipe_depth == 32
        assert config.history_limit == 60
        assert config.batch_max_workers == 4
        assert config.default_currency == "USD"
        assert config.is_production

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RECIPE_COSTING_MAX_DEPTH", "8")
        monkeypatch.setenv("RECIPE_COSTING_HISTORY_LIMIT", "10")
        monkeypatch.setenv("RECIPE_COSTING_BATCH_WORKERS", "2")
        monkeypatch.setenv("RECIPE_COSTING_DEFAULT_CURRENCY", " eur ")
        config = Config("production")
        assert config.max_recipe_depth == 8
        assert config.history_limit == 10
        assert config.batch_max_workers == 2
        assert config.default_currency == "EUR"

    def test_invalid_override_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("RECIPE_COSTING_MAX_DEPTH", "deep")
        monkeypatch.setenv("RECIPE_COSTING_HISTORY_LIMIT", "0")
        config = Config("production")
        assert config.max_recipe_depth == 32
        assert config.history_limit == 60
        assert "RECIPE_COSTING_MAX_DEPTH" in caplog.text

    def test_max_depth_is_capped(self, monkeypatch, caplog):
        monkeypatch.setenv("RECIPE_COSTING_MAX_DEPTH", "100000")
        config = Config("production")
        assert config.max_recipe_depth == 256
        assert "Capping RECIPE_COSTING_MAX_DEPTH" in caplog.text

    def test_development_database_in_project_data_dir(self):
        config = Config("development")
        assert config.database_path.parent.name == "data"
        assert config.database_url.startswith("sqlite:///")
        assert config.database_url.endswith("recipe_costing.db")

    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv("RECIPE_COSTING_DATABASE_URL", "sqlite:///:memory:")
        reset_config()
        assert get_database_url() == "sqlite:///:memory:"

    def test_environment_from_env_var(self, monkeypatch):
        monkeypatch.setenv("RECIPE_COSTING_ENV", "development")
        assert get_config().is_development

    def test_singleton_keeps_first_environment(self):
        first = get_config("development")
        assert get_config("production") is first
        assert first.is_development
