from __future__ import annotations

from pathlib import Path
import textwrap

import pytest

from tagref.config import (
    RunSettings,
    env_log_level,
    list_unused_defaults,
    load_config,
    merge_payload,
    resolve_settings,
    tagref_defaults,
)
from tagref.directive import SigilSet
from tagref.exceptions import ConfigError
from tests.scope_helpers import cwd_scope, env_scope


def _write_config(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_tagref_defaults_reads_toml(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "tagref.toml",
        """
        [tagref]
        paths = ["src", "docs"]
        tag_sigil = "anchor"
        ref_sigil = "see"
        workers = 3
        ignore = false
        exclude = ["vendor/", "*.min.js"]

        [tagref.list-unused]
        fail_if_any = true
        """,
    )
    defaults = tagref_defaults(root=tmp_path, config_path=config_path)
    assert defaults["paths"] == ["src", "docs"]
    assert defaults["tag_sigil"] == "anchor"
    assert defaults["workers"] == 3
    assert defaults["ignore"] is False
    assert list_unused_defaults(defaults) == {"fail_if_any": True}


def test_load_config_uses_root_when_no_path_given(tmp_path: Path) -> None:
    _write_config(tmp_path / "tagref.toml", "[tagref]\nworkers = 2\n")
    assert load_config(root=tmp_path) == {"tagref": {"workers": 2}}
    with cwd_scope(tmp_path):
        assert tagref_defaults() == {"workers": 2}


def test_missing_or_broken_implicit_config_is_empty(tmp_path: Path) -> None:
    assert load_config(root=tmp_path) == {}
    _write_config(tmp_path / "tagref.toml", "[tagref\nworkers = ")
    assert load_config(root=tmp_path) == {}
    (tmp_path / "tagref.toml").write_bytes(b"\xff\xfe[tagref]\n")
    assert load_config(root=tmp_path) == {}
    not_a_table = _write_config(tmp_path / "scalar.toml", "tagref = 3")
    assert tagref_defaults(config_path=not_a_table) == {}
    assert list_unused_defaults(None) == {}
    assert list_unused_defaults({"list-unused": "yes"}) == {}


def test_explicit_config_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(config_path=tmp_path / "nope.toml")
    with pytest.raises(ConfigError, match="Config file not found"):
        tagref_defaults(root=tmp_path, config_path=tmp_path / "nope.toml")


def test_explicit_config_must_parse(tmp_path: Path) -> None:
    broken = _write_config(tmp_path / "broken.toml", "[tagref\nworkers = ")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(config_path=broken)
    binary = tmp_path / "binary.toml"
    binary.write_bytes(b"\xff\xfe[tagref]\n")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(config_path=binary)


def test_explicit_config_directory_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(config_path=tmp_path)


def test_merge_payload_prefers_explicit_values() -> None:
    merged = merge_payload(
        {"paths": None, "tag_sigil": "t2", "workers": 4},
        {"paths": ["a"], "tag_sigil": "t1"},
    )
    assert merged == {"paths": ["a"], "tag_sigil": "t2", "workers": 4}


def test_resolve_settings_builtin_defaults() -> None:
    settings = resolve_settings({})
    assert settings == RunSettings()
    assert settings.roots == (Path("."),)
    assert settings.sigils == SigilSet()
    assert settings.ignore.honor_ignore_files is True
    assert settings.fail_if_any_unused is False


def test_resolve_settings_merges_cli_over_config() -> None:
    defaults = {
        "paths": ["src"],
        "tag_sigil": "anchor",
        "dir_sigil": "folder",
        "workers": 2,
        "exclude": "vendor/, build/",
        "list-unused": {"fail_if_any": True},
    }
    settings = resolve_settings(
        {"paths": ["other", "more,with,commas"], "tag_sigil": "mark", "workers": None, "ignore": False},
        defaults,
    )
    assert settings.roots == (Path("other"), Path("more,with,commas"))
    assert settings.sigils == SigilSet(tag="mark", ref="ref", file="file", dir="folder")
    assert settings.workers == 2
    assert settings.ignore.honor_ignore_files is False
    assert settings.ignore.exclude == ("vendor/", "build/")
    assert settings.fail_if_any_unused is True


def test_resolve_settings_explicit_fail_if_any_wins() -> None:
    settings = resolve_settings({"fail_if_any": False}, {"list-unused": {"fail_if_any": True}})
    assert settings.fail_if_any_unused is False


@pytest.mark.parametrize("workers", [0, -1, True, "many", 1.5])
def test_resolve_settings_rejects_bad_workers(workers: object) -> None:
    with pytest.raises(ConfigError, match="workers"):
        resolve_settings({}, {"workers": workers})


def test_resolve_settings_accepts_numeric_worker_strings() -> None:
    assert resolve_settings({}, {"workers": " 6 "}).workers == 6


@pytest.mark.parametrize("paths", [3, ["ok", 4], {"a": "b"}])
def test_resolve_settings_rejects_bad_paths(paths: object) -> None:
    with pytest.raises(ConfigError, match="paths"):
        resolve_settings({}, {"paths": paths})


def test_resolve_settings_rejects_non_string_sigils() -> None:
    with pytest.raises(ConfigError, match="ref_sigil"):
        resolve_settings({}, {"ref_sigil": 7})


def test_env_log_level() -> None:
    with env_scope({"TAGREF_LOG_LEVEL": " debug "}):
        assert env_log_level() == "DEBUG"
    with env_scope({"TAGREF_LOG_LEVEL": None}):
        assert env_log_level() is None
    with env_scope({"TAGREF_LOG_LEVEL": ""}):
        assert env_log_level() is None
