"""Configuration data structures and loading.

Provides immutable configuration loaded from a TOML file
(~/.config/debgopath/config.toml by default). Every key is optional; the
defaults reproduce the classic setup of an apt-cacher-ng proxy on localhost
and a workspace built from unstable.

Example config:
  mirror = "http://deb.debian.org/debian"
  parallel = 10
  ignored = ["golang-1.11"]

  [rewrite]
  golang-github-foo-bar = "github.com/foo/bar"
"""

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import tomlkit

from debgopath.core.errors import ConfigError
from debgopath.core.rewrite_table import DEFAULT_REWRITE_TABLE, RewriteTable

DEFAULT_MIRROR = "http://localhost:3142/deb.debian.org/debian"
CONFIG_ENV_VAR = "DEBGOPATH_CONFIG"


@dataclass(frozen=True)
class GopathConfig:
    """Immutable run configuration.

    Loaded once at CLI entry point and stored in GopathContext.
    """

    mirror: str = DEFAULT_MIRROR
    release: str = "unstable"
    index_path: str = "main/source/Sources.gz"
    target_dir: Path = Path(".")
    snapshot_prefix: str = "src-"
    packaging_dir: str = "packaging"
    parallel: int = 20
    max_transient_retries: int = 3
    retry_base_delay: float = 1.0
    http_timeout: float = 60.0
    keyring: Path | None = None
    rewrite_table: RewriteTable = field(default=DEFAULT_REWRITE_TABLE)

    def snapshot_path(self, timestamp: str) -> Path:
        return self.target_dir / f"{self.snapshot_prefix}{timestamp}"

    def with_overrides(self, **overrides: Any) -> "GopathConfig":
        """Return a copy with every non-None override applied (command line options)."""
        values = {key: value for key, value in overrides.items() if value is not None}
        config = replace(self, **values)
        _validate(config, "command line")
        return config


_SCALAR_TYPES: dict[str, type] = {
    "mirror": str,
    "release": str,
    "index_path": str,
    "target_dir": Path,
    "snapshot_prefix": str,
    "packaging_dir": str,
    "parallel": int,
    "max_transient_retries": int,
    "retry_base_delay": float,
    "http_timeout": float,
    "keyring": Path,
}
_TABLE_KEYS = frozenset({"rewrite", "ignored", "excluded", "toolchain_dependencies"})


def default_config_path() -> Path:
    """Path of the config file used when --config is not given."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit).expanduser()
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "debgopath" / "config.toml"


def load_config(path: Path | None = None) -> GopathConfig:
    """Load configuration from path, or from the default location if present.

    Raises:
        ConfigError: If an explicitly given file is missing or the file is invalid
    """
    if path is None:
        path = default_config_path()
        if not path.exists():
            return GopathConfig()
    elif not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    return config_from_mapping(data, source=str(path))


def config_from_mapping(data: dict[str, Any], source: str = "<config>") -> GopathConfig:
    """Build a GopathConfig from parsed TOML data, on top of the defaults."""
    unknown = sorted(set(data) - set(_SCALAR_TYPES) - _TABLE_KEYS)
    if unknown:
        raise ConfigError(f"Unknown key(s) in {source}: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, kind in _SCALAR_TYPES.items():
        if key in data:
            values[key] = _coerce(key, data[key], kind, source)

    toolchain = data.get("toolchain_dependencies")
    table = DEFAULT_REWRITE_TABLE.merged(
        rewrites=_string_mapping(data, "rewrite", source),
        ignored=frozenset(_string_list(data, "ignored", source)),
        excluded=_string_mapping(data, "excluded", source),
        toolchain_dependencies=(
            frozenset(_string_list(data, "toolchain_dependencies", source))
            if toolchain is not None
            else None
        ),
    )
    config = GopathConfig(**values, rewrite_table=table)
    _validate(config, source)
    return config


def _coerce(key: str, value: Any, kind: type, source: str) -> Any:
    if isinstance(value, bool):
        raise ConfigError(f"{source}: {key} must be {kind.__name__}, got {value!r}")
    if kind is int and isinstance(value, int):
        return value
    if kind is float and isinstance(value, int | float):
        return float(value)
    if kind is str and isinstance(value, str):
        return value
    if kind is Path and isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"{source}: {key} must be {kind.__name__}, got {value!r}")


def _string_mapping(data: dict[str, Any], key: str, source: str) -> dict[str, str]:
    value = data.get(key, {})
    if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
        raise ConfigError(f"{source}: [{key}] must map package names to strings")
    return {str(k): v for k, v in value.items()}


def _string_list(data: dict[str, Any], key: str, source: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{source}: {key} must be a list of strings")
    return value


def _validate(config: GopathConfig, source: str) -> None:
    if config.parallel < 1:
        raise ConfigError(f"{source}: parallel must be at least 1, got {config.parallel}")
    if config.max_transient_retries < 0:
        raise ConfigError(
            f"{source}: max_transient_retries must not be negative, "
            f"got {config.max_transient_retries}"
        )
    if not config.snapshot_prefix or "/" in config.snapshot_prefix:
        raise ConfigError(f"{source}: snapshot_prefix must be a plain name prefix")


def config_to_toml(config: GopathConfig) -> str:
    """Render a config as TOML, preserving a readable layout."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("debgopath configuration"))
    doc.add(tomlkit.nl())
    for key in _SCALAR_TYPES:
        value = getattr(config, key)
        if value is None:
            doc.add(tomlkit.comment(f"{key} = ..."))
            continue
        doc[key] = str(value) if isinstance(value, Path) else value

    table = config.rewrite_table
    doc["ignored"] = sorted(table.ignored)
    doc["toolchain_dependencies"] = sorted(table.toolchain_dependencies)

    rewrite = tomlkit.table()
    for package, import_path in sorted(table.rewrites.items()):
        rewrite[package] = import_path
    doc["rewrite"] = rewrite

    excluded = tomlkit.table()
    for package, reason in sorted(table.excluded.items()):
        excluded[package] = reason
    doc["excluded"] = excluded

    return tomlkit.dumps(doc)


def save_default_config(path: Path, force: bool = False) -> None:
    """Write the default configuration to path.

    Raises:
        ConfigError: If path exists and force is False
    """
    if path.exists() and not force:
        raise ConfigError(f"Config file already exists: {path} (use --force to overwrite)")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config_to_toml(GopathConfig()), encoding="utf-8")
