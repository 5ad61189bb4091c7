"""Configuration loading from environment variables and config.toml files."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from synaptic.commit_types import (
    ClassifierConfig,
    ScopeClass,
    ScopeRule,
    TypeCategory,
    default_categories,
)

_CONFIG_DIRNAME = ".synaptic"
_CONFIG_FILENAME = "config.toml"
_GLOBAL_CONFIG = Path.home() / _CONFIG_DIRNAME / _CONFIG_FILENAME


class ConfigError(ValueError):
    """Raised for unreadable or wrongly typed configuration."""


@dataclass
class SyncConfig:
    """Memory sync configuration."""

    depth: int = 100
    dry_run: bool = False
    backup: bool = False
    doc_name: str = "CLAUDE.md"
    module_root: str = "src"
    max_memories_per_file: int | None = None


@dataclass
class SynapticConfig:
    """Top-level Synaptic configuration."""

    sync: SyncConfig = field(default_factory=SyncConfig)
    commit_types: ClassifierConfig = field(default_factory=ClassifierConfig.default)
    log_level: str = "INFO"


def load_config(root: Path | None = None, config_path: Path | None = None) -> SynapticConfig:
    """Load configuration from environment variables and config.toml files.

    Priority: environment variables > project config (or ``config_path``) >
    ``~/.synaptic/config.toml`` > defaults.
    """
    file_data: dict = {}
    candidates = [_GLOBAL_CONFIG]
    if config_path:
        candidates.append(config_path)
    else:
        candidates.append((root or Path.cwd()) / _CONFIG_DIRNAME / _CONFIG_FILENAME)
    for candidate in candidates:
        if candidate.exists():
            file_data = _merge(file_data, _read_toml(candidate))

    sync_data = _table(file_data, "sync")

    max_memories = os.getenv("SYNAPTIC_MAX_MEMORIES", sync_data.get("max_memories_per_file"))
    config = SynapticConfig(
        sync=SyncConfig(
            depth=_int(os.getenv("SYNAPTIC_DEPTH", sync_data.get("depth", 100)), "sync.depth"),
            dry_run=_bool(sync_data.get("dry_run", False), "sync.dry_run"),
            backup=_bool(sync_data.get("backup", False), "sync.backup"),
            doc_name=_str(
                os.getenv("SYNAPTIC_DOC_NAME", sync_data.get("doc_name", "CLAUDE.md")),
                "sync.doc_name",
            ),
            module_root=_str(
                os.getenv("SYNAPTIC_MODULE_ROOT", sync_data.get("module_root", "src")),
                "sync.module_root",
            ),
            max_memories_per_file=(
                None if max_memories is None else _int(max_memories, "sync.max_memories_per_file")
            ),
        ),
        commit_types=build_classifier_config(_table(file_data, "commit_types")),
        log_level=_str(
            os.getenv("SYNAPTIC_LOG_LEVEL", file_data.get("log_level", "INFO")), "log_level"
        ),
    )
    return config


def build_classifier_config(data: dict) -> ClassifierConfig:
    """Build the classifier config from a ``[commit_types]`` table."""
    # Configured categories replace built-ins of the same name, others are kept.
    categories: dict[str, TypeCategory] = default_categories()
    for name, cat in _table(data, "categories").items():
        if not isinstance(cat, dict):
            raise ConfigError(f"commit_types.categories.{name} must be a table")
        categories[name] = TypeCategory(
            name=name,
            description=_str(cat.get("description", ""), f"categories.{name}.description"),
            types=frozenset(_str_list(cat.get("types", []), f"categories.{name}.types")),
        )

    scopes: dict[tuple[ScopeClass, str], ScopeRule] = {}
    scope_tables = _table(data, "scopes")
    for scope_class in ScopeClass:
        for name, rule in _table(scope_tables, scope_class.value).items():
            where = f"scopes.{scope_class.value}.{name}"
            if not isinstance(rule, dict):
                raise ConfigError(f"commit_types.{where} must be a table")
            scopes[(scope_class, name)] = ScopeRule(
                name=name,
                categories=frozenset(_str_list(rule.get("categories", []), f"{where}.categories")),
                custom_types=frozenset(
                    _str_list(rule.get("custom_types", []), f"{where}.custom_types")
                ),
            )

    override = data.get("override")
    aliases = _table(data, "aliases")
    for alias, target in aliases.items():
        _str(target, f"aliases.{alias}")

    return ClassifierConfig(
        categories=categories,
        scopes=scopes,
        additional=tuple(_str_list(data.get("additional", []), "additional")),
        override=None if override is None else tuple(_str_list(override, "override")),
        aliases=aliases,
    )


# ── TOML helpers ──────────────────────────────────────────────


def _read_toml(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e


def _merge(base: dict, override: dict) -> dict:
    """Deep-merge two TOML documents, ``override`` wins on conflicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _table(data: dict, key: str) -> dict:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a table, got {type(value).__name__}")
    return value


def _str(value: object, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _str_list(value: object, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return value


def _int(value: object, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from e


def _bool(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false")
    return value
