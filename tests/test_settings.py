"""Tests for configuration loading."""

from pathlib import Path

import pytest

from catalogsync.settings import ConfigError, Settings, build_settings, load_config


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config() == {}

    settings = build_settings({}, env={})
    assert settings.catalog_path == Path("public/json")
    assert settings.versions_path == Path("public/json/versions.json")
    assert settings.rate_limit_threshold == 5
    assert not settings.authenticated


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "catalog:\n"
        "  path: data/entries\n"
        "  versions_file: data/versions.json\n"
        "sync:\n"
        "  parallelism: 7\n"
        "  rate_limit_threshold: 3\n"
        "  timeout: 30\n"
        "cache:\n"
        "  ttl_seconds: 60\n"
    )

    settings = build_settings(load_config(path), env={})

    assert settings.catalog_path == Path("data/entries")
    assert settings.versions_path == Path("data/versions.json")
    assert settings.effective_parallelism == 7
    assert settings.rate_limit_threshold == 3
    assert settings.timeout == 30.0
    assert settings.cache_ttl == 60.0


def test_config_path_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("CATALOGSYNC_CONFIG", str(tmp_path / "missing.yaml"))
    with pytest.raises(ConfigError):
        load_config()


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("sync: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_non_mapping_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_environment_overrides_config():
    config = {"github": {"token": "from-file"}, "sync": {"parallelism": 4, "limit": 10}}
    env = {"GITHUB_TOKEN": "from-env", "SYNC_PARALLELISM": "12", "SYNC_LIMIT": "3"}

    settings = build_settings(config, env=env)

    assert settings.github_token == "from-env"
    assert settings.parallelism == 12
    assert settings.limit == 3


def test_default_parallelism_depends_on_token():
    assert build_settings({}, env={"GITHUB_TOKEN": "t"}).effective_parallelism == 50
    assert build_settings({}, env={}).effective_parallelism == 10


@pytest.mark.parametrize("config, env", [
    ({"sync": {"parallelism": 0}}, {}),
    ({}, {"SYNC_PARALLELISM": "many"}),
    ({"sync": {"rate_limit_threshold": 0}}, {}),
    ({"sync": {"timeout": "soon"}}, {}),
    ({"sync": {"timeout": 0}}, {}),
    ({"sync": {"timeout": -2.5}}, {}),
    ({"sync": "fast"}, {}),
])
def test_invalid_values(config, env):
    with pytest.raises(ConfigError):
        build_settings(config, env=env)


def test_settings_is_a_plain_dataclass():
    settings = Settings(catalog_path=Path("x"), versions_file=Path("y.json"))
    assert settings.versions_path == Path("y.json")


def test_fractional_timeout_is_kept():
    assert build_settings({"sync": {"timeout": 0.5}}, env={}).timeout == 0.5
