"""
Central configuration for rpmmeta.

Lookup order:
    1. Explicit path (--config)
    2. $RPMMETA_CONFIG
    3. .rpmmeta.yaml in the current directory
    4. Built-in defaults

The configuration is an immutable value handed to every stage. Nothing is
cached at module level so several packages can be resolved at once.

.rpmmeta.yaml format (every key optional):
    macros:
      arches_dir: macros/arches        # <arches_dir>/<arch>
      project_dir: macros              # <project_dir>/<category>
      categories: [shared, rust, cargo]
      rpm_dir: /usr/lib/rpm/macros
    internal_marker: thar
    excluded_source_suffixes: [.crate]
    rpmspec: rpmspec
    timeout: 300

Relative macro directories are taken relative to the config file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Config file name
LOCAL_CONFIG_FILE = ".rpmmeta.yaml"
CONFIG_ENV_VAR = "RPMMETA_CONFIG"

# Macro tier defaults
DEFAULT_ARCHES_DIR = Path("macros/arches")
DEFAULT_PROJECT_DIR = Path("macros")
DEFAULT_CATEGORIES = ("shared", "rust", "cargo")
DEFAULT_RPM_MACROS_DIR = Path("/usr/lib/rpm/macros")

# Self-produced virtual packages carry this word in their names
DEFAULT_INTERNAL_MARKER = "thar"

# Sources with these suffixes come from a lockfile, not from the hash table
DEFAULT_EXCLUDED_SUFFIXES = (".crate",)

DEFAULT_RPMSPEC = "rpmspec"
DEFAULT_TIMEOUT = 300

_KNOWN_KEYS = {'macros', 'internal_marker', 'excluded_source_suffixes',
               'rpmspec', 'timeout'}
_KNOWN_MACRO_KEYS = {'arches_dir', 'project_dir', 'categories', 'rpm_dir'}


@dataclass(frozen=True)
class MacroTiers:
    """Locations of the three macro tiers, in precedence order."""
    arches_dir: Path = DEFAULT_ARCHES_DIR
    project_dir: Path = DEFAULT_PROJECT_DIR
    categories: Tuple[str, ...] = DEFAULT_CATEGORIES
    rpm_dir: Path = DEFAULT_RPM_MACROS_DIR


@dataclass(frozen=True)
class ResolverConfig:
    """Settings shared by every stage of a resolution."""
    tiers: MacroTiers = field(default_factory=MacroTiers)
    internal_marker: str = DEFAULT_INTERNAL_MARKER
    excluded_source_suffixes: Tuple[str, ...] = DEFAULT_EXCLUDED_SUFFIXES
    rpmspec: str = DEFAULT_RPMSPEC
    timeout: int = DEFAULT_TIMEOUT
    source: Optional[Path] = None   # Config file this was read from


def find_config_file(cwd: Path = None) -> Optional[Path]:
    """Locate the config file to use when none was given explicitly.

    Args:
        cwd: Directory to look for .rpmmeta.yaml. Defaults to current directory.

    Returns:
        Path to the config file, or None to use defaults
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    if cwd is None:
        cwd = Path.cwd()
    local = Path(cwd) / LOCAL_CONFIG_FILE
    if local.is_file():
        return local

    return None


def _expect_str(value, key: str, path: Path) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{key}' must be a non-empty string", path)
    return value


def _expect_str_list(value, key: str, path: Path) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        raise ConfigError(f"'{key}' must be a list of strings", path)
    return tuple(value)


def _resolve_dir(value, key: str, path: Path, base_dir: Path) -> Path:
    directory = Path(_expect_str(value, key, path)).expanduser()
    if not directory.is_absolute():
        directory = base_dir / directory
    return directory


def parse_config(data, path: Path = None, base_dir: Path = None) -> ResolverConfig:
    """Build a ResolverConfig from already-loaded YAML data.

    Args:
        data: Mapping loaded from YAML (None means empty)
        path: File the data came from, for error messages
        base_dir: Directory relative macro paths are resolved against

    Returns:
        ResolverConfig

    Raises:
        ConfigError: Unknown keys or wrongly typed values
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("top level must be a mapping", path)

    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ConfigError(f"unknown key(s): {', '.join(sorted(unknown))}", path)

    if base_dir is None:
        base_dir = path.parent if path else Path.cwd()

    macros = data.get('macros') or {}
    if not isinstance(macros, dict):
        raise ConfigError("'macros' must be a mapping", path)
    unknown = set(macros) - _KNOWN_MACRO_KEYS
    if unknown:
        raise ConfigError(f"unknown macros key(s): {', '.join(sorted(unknown))}", path)

    tiers = MacroTiers(
        arches_dir=_resolve_dir(macros.get('arches_dir', str(DEFAULT_ARCHES_DIR)),
                                'macros.arches_dir', path, base_dir),
        project_dir=_resolve_dir(macros.get('project_dir', str(DEFAULT_PROJECT_DIR)),
                                 'macros.project_dir', path, base_dir),
        categories=_expect_str_list(macros.get('categories', list(DEFAULT_CATEGORIES)),
                                    'macros.categories', path),
        rpm_dir=_resolve_dir(macros.get('rpm_dir', str(DEFAULT_RPM_MACROS_DIR)),
                             'macros.rpm_dir', path, base_dir),
    )

    timeout = data.get('timeout', DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        raise ConfigError("'timeout' must be a positive integer", path)

    return ResolverConfig(
        tiers=tiers,
        internal_marker=_expect_str(data.get('internal_marker', DEFAULT_INTERNAL_MARKER),
                                    'internal_marker', path),
        excluded_source_suffixes=_expect_str_list(
            data.get('excluded_source_suffixes', list(DEFAULT_EXCLUDED_SUFFIXES)),
            'excluded_source_suffixes', path),
        rpmspec=_expect_str(data.get('rpmspec', DEFAULT_RPMSPEC), 'rpmspec', path),
        timeout=timeout,
        source=path,
    )


def load_config(path: Path = None, cwd: Path = None) -> ResolverConfig:
    """Load configuration.

    Args:
        path: Explicit config file. If None, find_config_file() is used.
        cwd: Directory used for lookup and for relative paths when no file
            is found. Defaults to current directory.

    Returns:
        ResolverConfig (defaults if no config file exists)

    Raises:
        ConfigError: File unreadable or invalid
    """
    import yaml

    if path is None:
        path = find_config_file(cwd)

    if path is None:
        logger.debug("No config file found, using defaults")
        return parse_config({}, base_dir=Path(cwd) if cwd else Path.cwd())

    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError("config file not found", path)
    except OSError as e:
        raise ConfigError(f"cannot read config: {e}", path)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", path)

    logger.debug(f"Loaded config from {path}")
    return parse_config(data, path=path, base_dir=path.resolve().parent)
