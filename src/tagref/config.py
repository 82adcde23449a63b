from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
import os
from pathlib import Path
from typing import TypeAlias
import tomllib

from tagref.directive import SigilSet
from tagref.exceptions import ConfigError
from tagref.walk import IgnoreRules

DEFAULT_CONFIG_NAME = "tagref.toml"
CONFIG_SECTION = "tagref"
LIST_UNUSED_SECTION = "list-unused"
LOG_LEVEL_ENV = "TAGREF_LOG_LEVEL"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path, *, required: bool = False) -> TomlTable:
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        if required:
            raise ConfigError(f"Config file not found: {path}") from exc
        return {}
    except OSError as exc:
        if required:
            raise ConfigError(f"Could not read config file {path}: {exc}") from exc
        return {}
    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        if required:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    """Read the config table.

    The implicit ``tagref.toml`` lookup is lenient: a missing or broken file
    means no defaults. An explicit ``config_path`` must exist and parse.
    """
    if config_path is not None:
        return _load_toml(config_path, required=True)
    base = root if root is not None else Path.cwd()
    return _load_toml(base / DEFAULT_CONFIG_NAME)


def tagref_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get(CONFIG_SECTION, {})
    return section if isinstance(section, dict) else {}


def list_unused_defaults(section: TomlTable | None) -> TomlTable:
    if not isinstance(section, dict):
        return {}
    nested = section.get(LIST_UNUSED_SECTION, {})
    return nested if isinstance(nested, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_path_list(value: TomlValue) -> list[str]:
    # Unlike name lists, list entries are taken whole: paths may contain commas.
    if isinstance(value, str):
        return _normalize_name_list(value)
    if isinstance(value, (list, tuple)):
        if not all(isinstance(item, (str, Path)) for item in value):
            raise ConfigError(f"paths must be a list of strings, got {value!r}")
        return [str(item) for item in value if str(item).strip()]
    if value is None:
        return []
    raise ConfigError(f"paths must be a list of strings, got {value!r}")


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_workers(value: TomlValue) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"workers must be a positive integer, got {value!r}")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ConfigError(f"workers must be a positive integer, got {value!r}")
    return value


def _as_sigil(key: str, value: TomlValue, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string, got {value!r}")
    return value


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


@dataclass(frozen=True)
class RunSettings:
    roots: tuple[Path, ...] = (Path("."),)
    sigils: SigilSet = field(default_factory=SigilSet)
    workers: int | None = None
    ignore: IgnoreRules = field(default_factory=IgnoreRules)
    fail_if_any_unused: bool = False


def resolve_settings(payload: TomlTable, defaults: TomlTable | None = None) -> RunSettings:
    """Combine explicit values with config file defaults.

    Explicit values that are ``None`` fall back to the defaults; keys that
    are absent everywhere take the built-in defaults.
    """
    section = defaults if isinstance(defaults, dict) else {}
    merged = merge_payload(payload, section)

    roots = tuple(Path(item) for item in _as_path_list(merged.get("paths"))) or (Path("."),)

    builtin = SigilSet()
    sigils = SigilSet(
        tag=_as_sigil("tag_sigil", merged.get("tag_sigil"), builtin.tag),
        ref=_as_sigil("ref_sigil", merged.get("ref_sigil"), builtin.ref),
        file=_as_sigil("file_sigil", merged.get("file_sigil"), builtin.file),
        dir=_as_sigil("dir_sigil", merged.get("dir_sigil"), builtin.dir),
    )

    ignore_value = merged.get("ignore")
    honor_ignore_files = True if ignore_value is None else _as_bool(ignore_value)
    ignore = IgnoreRules(
        honor_ignore_files=honor_ignore_files,
        exclude=tuple(_normalize_name_list(merged.get("exclude"))),
    )

    unused_section = list_unused_defaults(section)
    fail_if_any = merged.get("fail_if_any")
    if fail_if_any is None:
        fail_if_any = unused_section.get("fail_if_any")

    return RunSettings(
        roots=roots,
        sigils=sigils,
        workers=_as_workers(merged.get("workers")),
        ignore=ignore,
        fail_if_any_unused=_as_bool(fail_if_any),
    )


def env_log_level() -> str | None:
    value = os.getenv(LOG_LEVEL_ENV, "").strip()
    return value.upper() or None


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "LOG_LEVEL_ENV",
    "RunSettings",
    "env_log_level",
    "list_unused_defaults",
    "load_config",
    "merge_payload",
    "resolve_settings",
    "tagref_defaults",
]
