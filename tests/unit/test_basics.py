import json
from pathlib import Path

import pytest

from defi_event_generator import config
from defi_event_generator.sampler import available_catalogs
from scripts import generate_fixture

ENV_VARS = (
    "PRIVATE_KEY",
    "RPC_URL",
    "LOG_LEVEL",
    "LOG_JSON",
    "GENERATOR_PRESET",
    "ENTITY_TTL_BLOCKS",
    "WRITE_TIMEOUT_SECONDS",
    "WRITE_RETRIES",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults(clean_env):
    settings = config.Settings(_env_file=None)
    assert settings.private_key == ""
    assert settings.rpc_url == config.DEFAULT_RPC_URL
    assert settings.generator_preset == "aave"
    assert settings.entity_ttl_blocks == 10_000
    assert settings.write_timeout_seconds > 0
    assert settings.write_retries == 0
    assert not settings.has_credential
    assert "app_env" not in config.Settings.model_fields


def test_settings_read_environment(clean_env, monkeypatch):
    monkeypatch.setenv("PRIVATE_KEY", "0x" + "12" * 32)
    monkeypatch.setenv("GENERATOR_PRESET", "multi")
    monkeypatch.setenv("WRITE_RETRIES", "2")
    settings = config.Settings(_env_file=None)
    assert settings.has_credential
    assert settings.generator_preset == "multi"
    assert settings.write_retries == 2


def test_placeholder_key_is_not_a_credential(clean_env):
    settings = config.Settings(_env_file=None, private_key=config.PLACEHOLDER_PRIVATE_KEY)
    assert not settings.has_credential
    assert settings.masked_private_key() == "<unset>"
    with pytest.raises(config.ConfigurationError, match="PRIVATE_KEY"):
        settings.require_credential()


def test_resolve_preset():
    assert config.resolve_preset("aave") == config.RunPreset("aave", 50, 3000)
    assert config.resolve_preset("multi") == config.RunPreset("multi", 100, 2000)
    with pytest.raises(ValueError, match="Unknown preset"):
        config.resolve_preset("compound")


def test_available_catalogs_contains_known_entries():
    names = available_catalogs()
    assert names == ["aave", "multi"]
    assert set(names) == set(config.PRESETS)


def test_generate_fixture_writes_jsonl(tmp_path: Path):
    jsonl_path = tmp_path / "events.jsonl"
    written = generate_fixture._generate_records_jsonl(
        jsonl_path, records=5, batch_size=2, seed=123, catalog="multi"
    )
    assert written == 5
    lines = jsonl_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 5
    first = json.loads(lines[0])
    assert first["timestamp"].startswith("2024-01-01T00:00:00")
    assert "entityType" in first


def test_generate_fixture_is_deterministic(tmp_path: Path):
    a, b = tmp_path / "a.jsonl", tmp_path / "b.jsonl"
    generate_fixture._generate_records_jsonl(a, records=20, batch_size=7, seed=5, catalog="aave")
    generate_fixture._generate_records_jsonl(b, records=20, batch_size=7, seed=5, catalog="aave")
    assert a.read_text(encoding="utf-8") == b.read_text(encoding="utf-8")
