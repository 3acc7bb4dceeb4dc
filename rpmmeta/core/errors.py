"""Error types raised while resolving package metadata.

Every stage lets these propagate unchanged up to the caller; nothing in
the core recovers from them locally.
"""

from typing import Optional


class MetadataError(Exception):
    """Base class for metadata resolution failures."""
    pass


class ConfigError(MetadataError):
    """Invalid or unreadable configuration file."""

    def __init__(self, message: str, path=None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class SpecExpansionError(MetadataError):
    """The spec expander rejected the spec (bad syntax, undefined macro, ...)."""

    def __init__(self, spec_path, message: str, line: Optional[int] = None,
                 macro: Optional[str] = None, stderr: str = ""):
        self.spec_path = spec_path
        self.line = line
        self.macro = macro
        self.stderr = stderr

        context = []
        if line is not None:
            context.append(f"line {line}")
        if macro:
            context.append(f"macro {macro}")
        where = f" ({', '.join(context)})" if context else ""
        super().__init__(f"Cannot expand {spec_path}{where}: {message}")


class HashTableError(MetadataError):
    """Hash table file is missing or holds an undecodable digest."""

    def __init__(self, message: str, path=None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class MissingSourceHashError(MetadataError):
    """A remote source has no row in the hash table."""

    def __init__(self, url: str, filename: str):
        self.url = url
        self.filename = filename
        super().__init__(f"No hash for source {url} (expected a row for '{filename}')")


class DependencyResolutionError(MetadataError):
    """The dependency resolver cannot map a host build dependency."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot resolve build dependency: {name}")
