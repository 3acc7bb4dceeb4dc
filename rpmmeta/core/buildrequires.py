"""
BuildRequires classification.

Splits the build dependencies reported by the spec expander into:
- internal: virtual packages produced by this project (tagged with the
  internal marker word, e.g. "thar-glibc-devel")
- host: everything else, to be resolved against the distro package set
"""

import re
from dataclasses import dataclass
from typing import Iterable, Tuple

from .config import DEFAULT_INTERNAL_MARKER
from .expander import ExpandedSpec


@dataclass(frozen=True)
class DependencySet:
    """Dependency names extracted from one spec (deduplicated, sorted)."""
    build_requires: Tuple[str, ...]
    host_build_requires: Tuple[str, ...]
    requires: Tuple[str, ...]
    provides: Tuple[str, ...]


def _marker_pattern(marker: str):
    # Same word boundaries as grep -w: [A-Za-z0-9_] are word characters
    return re.compile(r'(?<![A-Za-z0-9_])' + re.escape(marker) + r'(?![A-Za-z0-9_])')


def is_internal(name: str, marker: str = DEFAULT_INTERNAL_MARKER) -> bool:
    """Check if a dependency name carries the internal marker as a whole word.

    Examples with marker "thar":
        thar-glibc-devel  -> True
        tharsis           -> False
        libthar           -> False
    """
    return bool(_marker_pattern(marker).search(name))


def dedupe_sorted(names: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate and sort names so repeated resolutions agree."""
    return tuple(sorted(set(names)))


def filter_host_buildrequires(build_requires: Iterable[str],
                              marker: str = DEFAULT_INTERNAL_MARKER) -> Tuple[str, ...]:
    """Drop internal dependencies, keeping what the host must provide.

    An empty result is valid: the package only needs internal packages.

    Args:
        build_requires: Build dependency names
        marker: Internal marker word

    Returns:
        Tuple of host build dependencies, order preserved, duplicates removed
    """
    return tuple(dict.fromkeys(name for name in build_requires
                               if not is_internal(name, marker)))


def classify_dependencies(expanded: ExpandedSpec,
                          marker: str = DEFAULT_INTERNAL_MARKER) -> DependencySet:
    """Build the DependencySet for an expanded spec."""
    build_requires = dedupe_sorted(expanded.build_requires)
    return DependencySet(
        build_requires=build_requires,
        host_build_requires=filter_host_buildrequires(build_requires, marker),
        requires=dedupe_sorted(expanded.requires),
        provides=dedupe_sorted(expanded.provides),
    )
