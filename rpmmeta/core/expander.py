"""
Spec expansion through rpmspec.

The macro engine and spec grammar belong to rpm itself; this module only
drives it. A SpecExpander turns (spec, macro path, source dir) into the
expanded spec text plus the BuildRequires, Requires and Provides lists.
RpmspecExpander shells out to rpmspec; another implementation (a native
parser, a container-backed runner, a test double) can be swapped in
without touching the rest of the pipeline.
"""

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .config import DEFAULT_RPMSPEC, DEFAULT_TIMEOUT
from .errors import SpecExpansionError
from .macros import MacroPath

logger = logging.getLogger(__name__)

# Query modes, in the order they are run
QUERY_BUILDREQUIRES = "--buildrequires"
QUERY_REQUIRES = "--requires"
QUERY_PROVIDES = "--provides"

_LINE_RE = re.compile(r'\bline (\d+)\b')
_MACRO_RE = re.compile(r'[Mm]acro (%\{?[\w?!]+\}?)')


@dataclass(frozen=True)
class ExpandedSpec:
    """Fully macro-substituted spec and its structured queries."""
    spec_path: Path
    text: str
    build_requires: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = ()
    provides: Tuple[str, ...] = ()


class SpecExpander:
    """Interface for spec expansion backends.

    expand() must behave as a pure function: the same spec, macro path and
    source directory always give the same ExpandedSpec.
    """

    def expand(self, spec_path: Path, macro_path: MacroPath,
               source_dir: Path) -> ExpandedSpec:
        raise NotImplementedError


def split_name_list(output: str) -> Tuple[str, ...]:
    """Split newline-delimited query output, dropping blank lines."""
    return tuple(line.strip() for line in output.splitlines() if line.strip())


def parse_rpmspec_error(stderr: str) -> Tuple[str, Optional[int], Optional[str]]:
    """Pull the message, line number and macro name out of rpmspec stderr.

    Returns:
        Tuple of (message, line or None, macro or None)
    """
    lines = [s.strip() for s in stderr.splitlines() if s.strip()]
    errors = [s for s in lines if s.lower().startswith('error:')]
    message = errors[0] if errors else (lines[-1] if lines else "")
    if message.lower().startswith('error:'):
        message = message[len('error:'):].strip()

    line = None
    macro = None
    for text in errors or lines:
        if line is None:
            m = _LINE_RE.search(text)
            if m:
                line = int(m.group(1))
        if macro is None:
            m = _MACRO_RE.search(text)
            if m:
                macro = m.group(1)

    return message, line, macro


class RpmspecExpander(SpecExpander):
    """Expand specs with the rpmspec command line tool."""

    def __init__(self, rpmspec: str = DEFAULT_RPMSPEC, timeout: int = DEFAULT_TIMEOUT):
        """Initialize expander.

        Args:
            rpmspec: rpmspec executable name or path
            timeout: Seconds allowed for each rpmspec call
        """
        self.rpmspec = rpmspec
        self.timeout = timeout

    def _base_command(self, macro_path: MacroPath, source_dir: Path) -> List[str]:
        return [
            self.rpmspec,
            f"--macros={macro_path.joined}",
            "--define", f"_sourcedir {source_dir}",
        ]

    def _run(self, args: List[str], spec_path: Path) -> str:
        logger.debug(f"Running: {' '.join(args)}")
        # Fixed locale keeps rpmspec output byte-stable
        env = dict(os.environ, LC_ALL='C', LANGUAGE='C')
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except FileNotFoundError:
            raise SpecExpansionError(spec_path, f"{self.rpmspec} not found")
        except subprocess.TimeoutExpired:
            raise SpecExpansionError(
                spec_path, f"{self.rpmspec} timed out after {self.timeout}s")

        if result.returncode != 0:
            message, line, macro = parse_rpmspec_error(result.stderr)
            if not message:
                message = f"{self.rpmspec} exited with status {result.returncode}"
            raise SpecExpansionError(spec_path, message, line=line, macro=macro,
                                     stderr=result.stderr)

        return result.stdout

    def parse(self, spec_path: Path, macro_path: MacroPath, source_dir: Path) -> str:
        """Return the fully expanded spec text."""
        args = self._base_command(macro_path, source_dir)
        args += ["--parse", str(spec_path)]
        return self._run(args, spec_path)

    def query(self, spec_path: Path, macro_path: MacroPath, source_dir: Path,
              mode: str) -> Tuple[str, ...]:
        """Run a single rpmspec -q query and return its name list."""
        args = self._base_command(macro_path, source_dir)
        args += ["-q", mode, str(spec_path)]
        return split_name_list(self._run(args, spec_path))

    def expand(self, spec_path: Path, macro_path: MacroPath,
               source_dir: Path) -> ExpandedSpec:
        spec_path = Path(spec_path)
        if not spec_path.is_file():
            raise SpecExpansionError(spec_path, "spec file not found")

        text = self.parse(spec_path, macro_path, source_dir)
        return ExpandedSpec(
            spec_path=spec_path,
            text=text,
            build_requires=self.query(spec_path, macro_path, source_dir, QUERY_BUILDREQUIRES),
            requires=self.query(spec_path, macro_path, source_dir, QUERY_REQUIRES),
            provides=self.query(spec_path, macro_path, source_dir, QUERY_PROVIDES),
        )


def list_specs_in_workdir(workdir: Path = None) -> List[Path]:
    """List .spec files in an rpmbuild tree (SPECS/) and in workdir itself.

    Args:
        workdir: Working directory to search. Defaults to current directory.

    Returns:
        Sorted list of spec paths.
    """
    workdir = Path(workdir) if workdir is not None else Path.cwd()

    specs = set()
    specs_dir = workdir / "SPECS"
    if specs_dir.is_dir():
        specs.update(specs_dir.glob("*.spec"))
    specs.update(workdir.glob("*.spec"))

    return sorted(specs)


def find_spec_in_workdir(workdir: Path = None) -> Optional[Path]:
    """Auto-detect the spec to resolve.

    SPECS/ is searched first (standard rpmbuild layout), then workdir.

    Returns:
        Path to the spec if exactly one was found, None otherwise.
    """
    workdir = Path(workdir) if workdir is not None else Path.cwd()

    specs_dir = workdir / "SPECS"
    if specs_dir.is_dir():
        specs = list(specs_dir.glob("*.spec"))
        if len(specs) == 1:
            return specs[0]
        elif len(specs) > 1:
            return None  # Multiple specs, caller must choose

    specs = list(workdir.glob("*.spec"))
    if len(specs) == 1:
        return specs[0]

    return None
