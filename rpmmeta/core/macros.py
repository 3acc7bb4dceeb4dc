"""Macro search path composition.

rpm looks macros up in the order its --macros path lists them, first
match wins. The path is built from three tiers which always appear in
the same order:

    1. Architecture macros       <arches_dir>/<arch>
    2. Project macro overrides   <project_dir>/<category> for each category
    3. Upstream rpm macros       <rpm_dir>
"""

import platform
from dataclasses import dataclass
from typing import Tuple

from .config import MacroTiers

TIER_ARCH = "arch"
TIER_PROJECT = "project"
TIER_RPM = "rpm"


@dataclass(frozen=True)
class MacroPath:
    """Ordered macro search path."""
    arch: str
    tiers: Tuple[Tuple[str, Tuple[str, ...]], ...]

    @property
    def entries(self) -> Tuple[str, ...]:
        """Flat list of locators, highest precedence first."""
        return tuple(entry for _, paths in self.tiers for entry in paths)

    @property
    def joined(self) -> str:
        """Colon-separated form accepted by rpm --macros."""
        return ":".join(self.entries)

    def to_list(self) -> list:
        """Tier records: [{"tier": name, "paths": [...]}, ...] in precedence order."""
        return [{'tier': tier, 'paths': list(paths)} for tier, paths in self.tiers]

    def __str__(self) -> str:
        return self.joined


def default_arch() -> str:
    """Architecture of the running host."""
    return platform.machine()


def compose_macro_path(arch: str, tiers: MacroTiers) -> MacroPath:
    """Compose the macro search path for an architecture.

    Args:
        arch: Target architecture (e.g. "x86_64", "aarch64")
        tiers: Tier locations from the configuration

    Returns:
        MacroPath
    """
    return MacroPath(
        arch=arch,
        tiers=(
            (TIER_ARCH, (str(tiers.arches_dir / arch),)),
            (TIER_PROJECT, tuple(str(tiers.project_dir / c) for c in tiers.categories)),
            (TIER_RPM, (str(tiers.rpm_dir),)),
        ),
    )
