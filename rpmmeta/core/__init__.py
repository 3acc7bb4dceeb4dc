"""Core modules for rpmmeta"""

from .config import ResolverConfig, load_config
from .errors import (
    MetadataError,
    ConfigError,
    SpecExpansionError,
    HashTableError,
    MissingSourceHashError,
    DependencyResolutionError,
)
from .metadata import (
    ResolvedMetadata,
    clear_artifacts,
    resolve_package,
    resolve_packages,
    write_artifacts,
)

__all__ = [
    'ResolverConfig', 'load_config',
    'MetadataError', 'ConfigError', 'SpecExpansionError', 'HashTableError',
    'MissingSourceHashError', 'DependencyResolutionError',
    'ResolvedMetadata', 'resolve_package', 'resolve_packages', 'write_artifacts',
    'clear_artifacts',
]
