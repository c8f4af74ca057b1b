"""Tests for configuration loading."""

from programfactory.config import load_config


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("PROGRAMFACTORY_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("PROGRAMFACTORY_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PROGRAMFACTORY_MODEL", raising=False)

    config = load_config()
    assert config.database_url is None
    assert config.model.name == "openai:gpt-4o-mini"
    assert config.quality.fallback_score == 50
    assert config.quality.repair_policy == "always_take_repair"
    assert config.batch.concurrency == 1
    assert config.log_level == "INFO"


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
database_url: sqlite://factory.db
model:
  name: anthropic:claude-3-5-haiku-latest
  temperature: 0.3
  timeout: 30
quality:
  fallback_score: 40
  repair_policy: keep_better
batch:
  concurrency: 3
log_level: DEBUG
"""
    )
    monkeypatch.setenv("PROGRAMFACTORY_CONFIG", str(config_path))
    monkeypatch.delenv("PROGRAMFACTORY_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PROGRAMFACTORY_MODEL", raising=False)

    config = load_config()
    assert config.database_url == "sqlite://factory.db"
    assert config.model.name == "anthropic:claude-3-5-haiku-latest"
    assert config.model.temperature == 0.3
    assert config.model.timeout == 30
    assert config.quality.fallback_score == 40
    assert config.quality.repair_policy == "keep_better"
    assert config.batch.concurrency == 3
    assert config.log_level == "DEBUG"


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite://from-file.db\n")
    monkeypatch.setenv("PROGRAMFACTORY_CONFIG", str(config_path))
    monkeypatch.setenv("PROGRAMFACTORY_DATABASE_URL", "postgresql://localhost/factory")
    monkeypatch.setenv("PROGRAMFACTORY_MODEL", "test")

    config = load_config(str(config_path))
    assert config.database_url == "postgresql://localhost/factory"
    assert config.model.name == "test"
