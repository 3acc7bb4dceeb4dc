"""
Per-package metadata resolution.

Pipeline (one package, strictly sequential):
    macro path -> rpmspec expansion -> dependency classification
    -> source discovery -> hash resolution -> manifest -> closure

The result is an immutable ResolvedMetadata. Nothing is cached between
calls; caching is the build orchestrator's business.

Artifact layout written by write_artifacts():
    <output>/parsed.spec          expanded spec text
    <output>/buildRequires        one name per line
    <output>/hostBuildRequires    buildRequires without internal packages
    <output>/requires
    <output>/provides
    <output>/sources.json         source manifest
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from .buildrequires import DependencySet, classify_dependencies
from .config import ResolverConfig
from .errors import MetadataError
from .expander import RpmspecExpander, SpecExpander
from .macros import MacroPath, compose_macro_path, default_arch
from .manifest import MANIFEST_FILENAME, SourceManifest
from .resolver import DependencyResolver, NameDependencyResolver
from .sources import HashRow, extract_source_urls, resolve_source_hashes

logger = logging.getLogger(__name__)

PARSED_SPEC_FILENAME = "parsed.spec"
BUILDREQUIRES_FILENAME = "buildRequires"
HOST_BUILDREQUIRES_FILENAME = "hostBuildRequires"
REQUIRES_FILENAME = "requires"
PROVIDES_FILENAME = "provides"

ARTIFACT_FILENAMES = (
    PARSED_SPEC_FILENAME,
    BUILDREQUIRES_FILENAME,
    HOST_BUILDREQUIRES_FILENAME,
    REQUIRES_FILENAME,
    PROVIDES_FILENAME,
    MANIFEST_FILENAME,
)


@dataclass(frozen=True)
class ResolvedMetadata:
    """Everything the build orchestrator needs to know about one package."""
    spec_path: Path
    spec: str
    sources: SourceManifest
    dependencies: DependencySet
    dependent_packages: Mapping[str, str]
    macro_path: MacroPath

    @property
    def build_requires(self) -> Tuple[str, ...]:
        return self.dependencies.build_requires

    @property
    def host_build_requires(self) -> Tuple[str, ...]:
        return self.dependencies.host_build_requires

    @property
    def requires(self) -> Tuple[str, ...]:
        return self.dependencies.requires

    @property
    def provides(self) -> Tuple[str, ...]:
        return self.dependencies.provides

    def to_dict(self, include_spec: bool = True) -> dict:
        """Plain-data view for JSON output."""
        data = {
            'specPath': str(self.spec_path),
            'sources': self.sources.to_list(),
            'buildRequires': list(self.build_requires),
            'hostBuildRequires': list(self.host_build_requires),
            'requires': list(self.requires),
            'provides': list(self.provides),
            'dependentPackages': dict(self.dependent_packages),
            'macroPath': self.macro_path.joined,
            'macros': self.macro_path.to_list(),
        }
        if include_spec:
            data['spec'] = self.spec
        return data


def resolve_package(spec_path: Path, config: ResolverConfig,
                    hash_table: Dict[str, HashRow],
                    arch: str = None,
                    source_dir: Path = None,
                    expander: SpecExpander = None,
                    dependency_resolver: DependencyResolver = None) -> ResolvedMetadata:
    """Resolve the metadata of one package.

    Args:
        spec_path: Spec file
        config: Resolver configuration
        hash_table: Filename -> HashRow (read-only, may be shared)
        arch: Target architecture. Defaults to the host architecture.
        source_dir: Value of %_sourcedir. Defaults to the spec's directory.
        expander: Spec expansion backend. Defaults to rpmspec.
        dependency_resolver: Closure backend. Defaults to capability names.

    Returns:
        ResolvedMetadata

    Raises:
        SpecExpansionError, MissingSourceHashError, DependencyResolutionError
    """
    spec_path = Path(spec_path)
    if arch is None:
        arch = default_arch()
    if source_dir is None:
        source_dir = spec_path.parent
    if expander is None:
        expander = RpmspecExpander(config.rpmspec, config.timeout)
    if dependency_resolver is None:
        dependency_resolver = NameDependencyResolver()

    macro_path = compose_macro_path(arch, config.tiers)
    logger.debug(f"Macro path for {arch}: {macro_path.joined}")

    logger.info(f"Expanding {spec_path}")
    expanded = expander.expand(spec_path, macro_path, Path(source_dir))

    dependencies = classify_dependencies(expanded, config.internal_marker)
    logger.debug(f"{spec_path.name}: {len(dependencies.build_requires)} build deps, "
                 f"{len(dependencies.host_build_requires)} from host")

    urls = extract_source_urls(expanded.text, config.excluded_source_suffixes)
    manifest = SourceManifest.from_entries(resolve_source_hashes(urls, hash_table))

    closure = dependency_resolver.resolve(dependencies.host_build_requires)

    logger.info(f"Resolved {spec_path.name}: {len(manifest)} source(s), "
                f"{len(closure)} host dependencies")
    return ResolvedMetadata(
        spec_path=spec_path,
        spec=expanded.text,
        sources=manifest,
        dependencies=dependencies,
        dependent_packages=closure,
        macro_path=macro_path,
    )


def resolve_packages(spec_paths: Sequence[Path], config: ResolverConfig,
                     hash_table: Dict[str, HashRow],
                     max_workers: int = 4,
                     **kwargs) -> Tuple[Dict[Path, ResolvedMetadata], Dict[Path, MetadataError]]:
    """Resolve several independent packages in parallel.

    Packages share nothing but the read-only hash table. A failure only
    affects its own package.

    Args:
        spec_paths: Spec files
        config: Resolver configuration
        hash_table: Filename -> HashRow
        max_workers: Parallel resolutions
        **kwargs: Passed to resolve_package()

    Returns:
        Tuple of (results, failures), both keyed by spec path
    """
    results = {}
    failures = {}
    spec_paths = [Path(p) for p in spec_paths]

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {
            executor.submit(resolve_package, path, config, hash_table, **kwargs): path
            for path in spec_paths
        }
        for future in as_completed(futures):
            path = futures[future]
            try:
                results[path] = future.result()
            except MetadataError as e:
                logger.debug(f"Resolution failed for {path}: {e}")
                failures[path] = e

    return results, failures


def _write_names(path: Path, names: Iterable[str]):
    path.write_text(''.join(f"{name}\n" for name in names), encoding='utf-8')


def write_artifacts(metadata: ResolvedMetadata, output_dir: Path) -> Path:
    """Persist resolved metadata in the on-disk artifact layout.

    Only fully resolved metadata reaches this point, so a failed
    resolution never leaves a sources.json behind.

    Returns:
        The output directory
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    (output_dir / PARSED_SPEC_FILENAME).write_text(metadata.spec, encoding='utf-8')
    _write_names(output_dir / BUILDREQUIRES_FILENAME, metadata.build_requires)
    _write_names(output_dir / HOST_BUILDREQUIRES_FILENAME, metadata.host_build_requires)
    _write_names(output_dir / REQUIRES_FILENAME, metadata.requires)
    _write_names(output_dir / PROVIDES_FILENAME, metadata.provides)
    metadata.sources.write(output_dir)

    logger.debug(f"Wrote artifacts to {output_dir}")
    return output_dir


def clear_artifacts(output_dir: Path):
    """Remove the artifacts an earlier run left in output_dir.

    Called when a resolution into output_dir fails, so the directory never
    holds a manifest from a previous version of the spec.
    """
    output_dir = Path(output_dir)
    removed = 0
    for name in ARTIFACT_FILENAMES:
        path = output_dir / name
        if path.exists():
            path.unlink()
            removed += 1
    if removed:
        logger.debug(f"Removed {removed} stale artifact(s) from {output_dir}")
