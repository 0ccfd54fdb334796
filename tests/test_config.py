import os

import pytest
import yaml

from pie.config import DEFAULT_CONFIG, REPO_URL, Config
from pie.errors import ConfigError


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch):
    monkeypatch.delenv("PIE_CONF", raising=False)


def test_defaults():
    cfg = Config.from_mapping({})
    assert str(cfg.install_root) == "/data/local/andstore"
    assert str(cfg.ledger_path) == "/data/adb/pie/installed.json"
    assert str(cfg.lock_path) == "/data/adb/pie/pie.lock"
    assert cfg.repo_url == REPO_URL
    assert cfg.timeouts == (10, 60)
    assert cfg.get("device", "arch") is None


def test_overrides_merge_with_defaults():
    cfg = Config.from_mapping({"fetch": {"read_timeout": 5}, "repo": {"url": "https://mirror.test/repo.json"}})
    assert cfg.timeouts == (10, 5)
    assert cfg.repo_url == "https://mirror.test/repo.json"
    assert cfg.get("fetch", "chunk_size") == DEFAULT_CONFIG["fetch"]["chunk_size"]


def test_invalid_numbers_fall_back():
    cfg = Config.from_mapping({"fetch": {"connect_timeout": "soon", "read_timeout": -1},
                               "global": {"lock_timeout": 0}})
    assert cfg.timeouts == (10, 60)
    assert cfg.lock_timeout == 30


def test_paths_expand_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PIE_TEST_ROOT", str(tmp_path))
    cfg = Config.from_mapping({"global": {"install_root": "${PIE_TEST_ROOT}/andstore"}})
    assert cfg.install_root == tmp_path / "andstore"


def test_load_explicit_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"global": {"state_dir": str(tmp_path / "state")}}))
    cfg = Config.load(str(path))
    assert cfg.ledger_path == tmp_path / "state" / "installed.json"
    assert cfg.source_path == path


def test_load_from_env(monkeypatch, tmp_path):
    path = tmp_path / "pie.yaml"
    path.write_text("device:\n  arch: x86_64\n")
    monkeypatch.setenv("PIE_CONF", str(path))
    assert Config.load().get("device", "arch") == "x86_64"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        Config.load(str(tmp_path / "absent.yaml"))


@pytest.mark.parametrize("text", ["global: [unclosed", "- just\n- a list\n"])
def test_bad_yaml(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    with pytest.raises(ConfigError):
        Config.load(str(path))


def test_save_round_trip(tmp_path):
    cfg = Config.from_mapping({"device": {"api_level": 28}})
    target = cfg.save(str(tmp_path / "out" / "config.yaml"))
    assert os.path.exists(target)
    assert Config.load(str(target)).get("device", "api_level") == 28
