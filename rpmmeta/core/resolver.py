"""
Host build dependency resolution.

Maps each host BuildRequires entry to the target that provides it in the
distro package set (the dependency closure). The package database itself
is outside rpmmeta; a DependencyResolver is the seam where it plugs in.

Dependency map format (YAML), either flat or under 'packages':
    packages:
      gcc-x86_64-bottlerocket-linux-gnu: cross-gcc
      meson: meson
"""

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping

from .errors import ConfigError, DependencyResolutionError

logger = logging.getLogger(__name__)

# "name >= 1.0", "name(x86-64) = 2", "pkgconfig(foo) < 3"
_CONSTRAINT_RE = re.compile(r'\s*(>=|<=|>|<|==|=)\s*.*$')


def capability_name(requirement: str) -> str:
    """Strip a version constraint: 'gcc >= 4.8' -> 'gcc'."""
    return _CONSTRAINT_RE.sub('', requirement.strip())


class DependencyResolver:
    """Interface for dependency closure backends."""

    def resolve_one(self, name: str) -> str:
        raise NotImplementedError

    def resolve(self, names: Iterable[str]) -> Mapping[str, str]:
        """Resolve names into a read-only name -> target mapping.

        Raises:
            DependencyResolutionError: A name has no target
        """
        closure = {}
        for name in sorted(set(names)):
            closure[name] = self.resolve_one(name)
        logger.debug(f"Resolved {len(closure)} host build dependencies")
        return MappingProxyType(closure)


class NameDependencyResolver(DependencyResolver):
    """Resolve every requirement to its bare capability name."""

    def resolve_one(self, name: str) -> str:
        return capability_name(name)


class MappingDependencyResolver(DependencyResolver):
    """Resolve through an explicit name -> target table."""

    def __init__(self, mapping: Mapping[str, str]):
        self.mapping = dict(mapping)

    def resolve_one(self, name: str) -> str:
        if name in self.mapping:
            return self.mapping[name]
        bare = capability_name(name)
        if bare in self.mapping:
            return self.mapping[bare]
        raise DependencyResolutionError(name)


def load_dependency_map(path: Path) -> Dict[str, str]:
    """Load a dependency map from YAML.

    Raises:
        ConfigError: File unreadable or not a string -> string mapping
    """
    import yaml

    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError("dependency map not found", path)
    except OSError as e:
        raise ConfigError(f"cannot read dependency map: {e}", path)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", path)

    if data is None:
        return {}
    if isinstance(data, dict) and isinstance(data.get('packages'), dict):
        data = data['packages']
    if not isinstance(data, dict):
        raise ConfigError("dependency map must be a mapping", path)

    mapping = {}
    for name, target in data.items():
        if not isinstance(name, str) or not isinstance(target, str):
            raise ConfigError(f"invalid entry: {name!r}: {target!r}", path)
        mapping[name] = target
    return mapping
