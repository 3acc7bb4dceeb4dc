"""
Main CLI entry point for rpmmeta

Commands, with short aliases:
- rpmmeta resolve / rpmmeta r          resolve specs and write artifacts
- rpmmeta macropath / rpmmeta mp       show the macro search path
- rpmmeta sources / rpmmeta src        print a spec's source manifest
- rpmmeta buildrequires / rpmmeta br   list build dependencies
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .. import __version__
from ..core.buildrequires import classify_dependencies
from ..core.config import ResolverConfig, load_config
from ..core.errors import MetadataError
from ..core.expander import RpmspecExpander, find_spec_in_workdir, list_specs_in_workdir
from ..core.macros import compose_macro_path, default_arch
from ..core.metadata import clear_artifacts, resolve_package, resolve_packages, write_artifacts
from ..core.resolver import MappingDependencyResolver, load_dependency_map
from ..core.sources import load_hash_table


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[2m',      # Dim
        'INFO': '',              # Normal (no color)
        'WARNING': '\033[93m',   # Yellow/orange
        'ERROR': '\033[91m',     # Bright red
        'CRITICAL': '\033[91m',  # Bright red
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record):
        message = super().format(record)
        color = self.COLORS.get(record.levelname, '') if self.use_colors else ''
        if color:
            return f"{color}{message}{self.RESET}"
        return message


def setup_logging(verbose: bool = False, quiet: bool = False, nocolor: bool = False):
    """Send log records to stderr."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = logging.StreamHandler()
    use_colors = not nocolor and hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()
    handler.setFormatter(ColoredFormatter('%(levelname)s: %(message)s', use_colors=use_colors))

    logging.basicConfig(level=level, handlers=[handler], force=True)


class AliasedSubParsersAction(argparse._SubParsersAction):
    """Custom action to support command aliases in argparse."""

    def add_parser(self, name, **kwargs):
        aliases = kwargs.pop('aliases', [])
        parser = super().add_parser(name, **kwargs)

        for alias in aliases:
            self._name_parser_map[alias] = parser

        return parser


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all commands and aliases."""

    parser = argparse.ArgumentParser(
        prog='rpmmeta',
        description='Resolve verifiable build metadata from RPM spec files',
        epilog='Use "rpmmeta <command> --help" for command-specific help.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'rpmmeta {__version__}'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Only print warnings and errors'
    )
    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        metavar='FILE',
        help='Config file (default: $RPMMETA_CONFIG or ./.rpmmeta.yaml)'
    )

    # Options shared by every command that expands a spec
    spec_parent = argparse.ArgumentParser(add_help=False)
    spec_parent.add_argument(
        '--arch', '-a',
        help='Target architecture (default: host architecture)'
    )
    spec_parent.add_argument(
        '--source-dir',
        type=Path,
        metavar='DIR',
        help='Value of %%_sourcedir during expansion (default: spec directory)'
    )

    hashes_parent = argparse.ArgumentParser(add_help=False)
    hashes_parent.add_argument(
        '--hashes', '-H',
        type=Path,
        metavar='FILE',
        help='Hash table of source files (BSD "SHA512 (file) = digest" or sha*sum format)'
    )

    parser.register('action', 'parsers', AliasedSubParsersAction)

    subparsers = parser.add_subparsers(
        dest='command',
        title='commands',
        metavar='<command>'
    )

    # =========================================================================
    # resolve / r
    # =========================================================================
    resolve_parser = subparsers.add_parser(
        'resolve', aliases=['r'],
        help='Resolve spec metadata and write artifacts',
        parents=[spec_parent, hashes_parent]
    )
    resolve_parser.add_argument(
        'specs',
        nargs='*',
        type=Path,
        metavar='SPEC',
        help='Spec files (default: auto-detect in SPECS/ or current directory)'
    )
    resolve_parser.add_argument(
        '--output', '-o',
        type=Path,
        metavar='DIR',
        help='Write artifacts here (one subdirectory per spec when several are given)'
    )
    resolve_parser.add_argument(
        '--deps-map',
        type=Path,
        metavar='FILE',
        help='YAML map of build dependency -> build target'
    )
    resolve_parser.add_argument(
        '--jobs', '-j',
        type=int,
        default=4,
        help='Specs resolved in parallel (default: 4)'
    )
    resolve_parser.add_argument(
        '--json',
        action='store_true',
        help='JSON output for scripting'
    )

    # =========================================================================
    # macropath / mp
    # =========================================================================
    macropath_parser = subparsers.add_parser(
        'macropath', aliases=['mp'],
        help='Show the macro search path'
    )
    macropath_parser.add_argument(
        '--arch', '-a',
        help='Target architecture (default: host architecture)'
    )
    macropath_parser.add_argument(
        '--json',
        action='store_true',
        help='JSON output for scripting'
    )

    # =========================================================================
    # sources / src
    # =========================================================================
    sources_parser = subparsers.add_parser(
        'sources', aliases=['src'],
        help='Print the source manifest of a spec',
        parents=[spec_parent, hashes_parent]
    )
    sources_parser.add_argument('spec', type=Path, help='Spec file')

    # =========================================================================
    # buildrequires / br
    # =========================================================================
    br_parser = subparsers.add_parser(
        'buildrequires', aliases=['br'],
        help='List build dependencies of a spec',
        parents=[spec_parent]
    )
    br_parser.add_argument('spec', type=Path, help='Spec file')
    br_parser.add_argument(
        '--host',
        action='store_true',
        help='Only dependencies the host must provide (internal packages removed)'
    )

    return parser


def _load_hashes(args) -> dict:
    if getattr(args, 'hashes', None):
        return load_hash_table(args.hashes)
    return {}


def _find_specs(args) -> list:
    """Specs named on the command line, or the one found in the build tree."""
    if args.specs:
        return list(args.specs)

    spec = find_spec_in_workdir()
    if spec:
        return [spec]

    specs = list_specs_in_workdir()
    if len(specs) > 1:
        raise MetadataError(
            f"Multiple .spec files found: {', '.join(s.name for s in specs)}. "
            "Please specify which one to use."
        )
    raise MetadataError(
        "No .spec file found. Run from an RPM build tree or specify a .spec file."
    )


def _output_dirs(specs, output: Path) -> dict:
    """Map each spec to its artifact directory under output.

    One spec writes straight into output, several get output/<spec stem>.
    Specs sharing a stem would overwrite each other, so they are refused.
    """
    if len(specs) == 1:
        return {specs[0]: output}

    by_stem = {}
    for spec in specs:
        by_stem.setdefault(spec.stem, []).append(spec)
    clashes = [paths for paths in by_stem.values() if len(paths) > 1]
    if clashes:
        names = '; '.join(', '.join(str(p) for p in paths) for paths in clashes)
        raise MetadataError(
            f"Specs would share an output directory: {names}. "
            "Resolve them in separate runs or with different --output directories."
        )
    return {spec: output / spec.stem for spec in specs}


def cmd_resolve(args, config: ResolverConfig) -> int:
    """Handle resolve command."""
    from . import colors

    specs = _find_specs(args)
    out_dirs = _output_dirs(specs, args.output) if args.output else {}
    hash_table = _load_hashes(args)

    dependency_resolver = None
    if args.deps_map:
        dependency_resolver = MappingDependencyResolver(load_dependency_map(args.deps_map))

    results, failures = resolve_packages(
        specs, config, hash_table,
        max_workers=args.jobs,
        arch=args.arch,
        source_dir=args.source_dir,
        expander=RpmspecExpander(config.rpmspec, config.timeout),
        dependency_resolver=dependency_resolver,
    )

    if out_dirs:
        for spec in sorted(results):
            write_artifacts(results[spec], out_dirs[spec])
        for spec in sorted(failures):
            clear_artifacts(out_dirs[spec])

    if args.json:
        print(json.dumps([results[s].to_dict(include_spec=False) for s in sorted(results)],
                         indent=2))
    else:
        for spec in sorted(results):
            metadata = results[spec]
            print(f"{colors.success(spec.name)}: "
                  f"{colors.count(len(metadata.sources))} source(s), "
                  f"{colors.count(len(metadata.build_requires))} build deps "
                  f"({len(metadata.host_build_requires)} from host)")

    for spec in sorted(failures):
        print(colors.error(f"Error: {failures[spec]}"), file=sys.stderr)

    return 1 if failures else 0


def cmd_macropath(args, config: ResolverConfig) -> int:
    """Handle macropath command."""
    macro_path = compose_macro_path(args.arch or default_arch(), config.tiers)

    if args.json:
        print(json.dumps({
            'arch': macro_path.arch,
            'macroPath': macro_path.joined,
            'tiers': macro_path.to_list(),
        }, indent=2))
    else:
        for entry in macro_path.entries:
            print(entry)
    return 0


def cmd_sources(args, config: ResolverConfig) -> int:
    """Handle sources command."""
    metadata = resolve_package(
        args.spec, config, _load_hashes(args),
        arch=args.arch,
        source_dir=args.source_dir,
        expander=RpmspecExpander(config.rpmspec, config.timeout),
    )
    print(metadata.sources.to_json())
    return 0


def cmd_buildrequires(args, config: ResolverConfig) -> int:
    """Handle buildrequires command."""
    spec = Path(args.spec)
    macro_path = compose_macro_path(args.arch or default_arch(), config.tiers)
    expander = RpmspecExpander(config.rpmspec, config.timeout)
    expanded = expander.expand(spec, macro_path, args.source_dir or spec.parent)
    dependencies = classify_dependencies(expanded, config.internal_marker)

    names = dependencies.host_build_requires if args.host else dependencies.build_requires
    for name in names:
        print(name)
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    from . import colors

    parser = create_parser()
    args = parser.parse_args(argv)

    colors.init(nocolor=args.nocolor)
    setup_logging(verbose=args.verbose, quiet=args.quiet, nocolor=args.nocolor)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)

        if args.command in ('resolve', 'r'):
            return cmd_resolve(args, config)
        elif args.command in ('macropath', 'mp'):
            return cmd_macropath(args, config)
        elif args.command in ('sources', 'src'):
            return cmd_sources(args, config)
        elif args.command in ('buildrequires', 'br'):
            return cmd_buildrequires(args, config)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    except MetadataError as e:
        if args.verbose:
            import traceback
            traceback.print_exc()
        print(colors.error(f"Error: {e}"), file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
