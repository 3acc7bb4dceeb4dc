"""Shared fixtures for rpmmeta tests"""

from pathlib import Path

import pytest

from rpmmeta.core.config import MacroTiers, ResolverConfig
from rpmmeta.core.expander import ExpandedSpec, SpecExpander


class FakeExpander(SpecExpander):
    """Spec expander returning canned output and recording its calls."""

    def __init__(self, text="", build_requires=(), requires=(), provides=()):
        self.text = text
        self.build_requires = tuple(build_requires)
        self.requires = tuple(requires)
        self.provides = tuple(provides)
        self.calls = []

    def expand(self, spec_path, macro_path, source_dir):
        self.calls.append((Path(spec_path), macro_path, Path(source_dir)))
        return ExpandedSpec(
            spec_path=Path(spec_path),
            text=self.text,
            build_requires=self.build_requires,
            requires=self.requires,
            provides=self.provides,
        )


@pytest.fixture
def config(tmp_path):
    """Config with macro tiers under a temporary directory."""
    return ResolverConfig(
        tiers=MacroTiers(
            arches_dir=tmp_path / "macros" / "arches",
            project_dir=tmp_path / "macros",
            categories=("shared", "rust", "cargo"),
            rpm_dir=Path("/usr/lib/rpm/macros"),
        ),
    )


@pytest.fixture
def spec_file(tmp_path):
    """An (unexpanded) spec file on disk."""
    path = tmp_path / "pkg.spec"
    path.write_text("Name: pkg\nVersion: 1.0\n")
    return path


@pytest.fixture
def make_expander():
    """Factory for FakeExpander instances."""
    return FakeExpander
