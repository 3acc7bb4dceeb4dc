"""
Remote source discovery and hash resolution.

Remote sources are the numbered Source tags of the expanded spec whose
value is an http(s) URL. Each one must match a row of the hash table by
filename (the URL's last path segment); a source without a row stops
resolution, since an unverified source must never reach a build.

Hash table formats (one row per line, may be mixed):
    SHA512 (pkg-1.0.tar.gz) = 3f2a...          BSD tagged, as in Fedora 'sources'
    3f2a...  pkg-1.0.tar.gz                    md5sum/sha*sum style

Digests may be hex or base64; they are normalized to lowercase hex.
"""

import base64
import binascii
import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Tuple
from urllib.parse import urlparse

from .config import DEFAULT_EXCLUDED_SUFFIXES
from .errors import HashTableError, MissingSourceHashError

logger = logging.getLogger(__name__)

_SOURCE_RE = re.compile(r'^Source(\d*)\s*:\s*(\S+)', re.IGNORECASE | re.MULTILINE)
_BSD_ROW_RE = re.compile(r'^(?P<algorithm>[A-Za-z0-9_-]+)\s*\((?P<filename>.+)\)\s*=\s*(?P<digest>\S+)$')
_SUM_ROW_RE = re.compile(r'^(?P<digest>[0-9A-Fa-f]+)\s+\*?(?P<filename>\S.*)$')
_HEX_RE = re.compile(r'^[0-9A-Fa-f]+$')

# Hex digest length -> algorithm, for untagged rows
_ALGORITHM_BY_HEX_LENGTH = {
    32: 'md5',
    40: 'sha1',
    56: 'sha224',
    64: 'sha256',
    96: 'sha384',
    128: 'sha512',
}


@dataclass(frozen=True)
class HashRow:
    """One row of the hash table."""
    filename: str
    algorithm: str
    digest: str


@dataclass(frozen=True)
class SourceEntry:
    """A remote source with its verified digest."""
    url: str
    filename: str
    algorithm: str
    digest: str

    @property
    def integrity(self) -> str:
        """Integrity token, e.g. 'sha256:abc123...'."""
        return f"{self.algorithm}:{self.digest}"


def source_filename(url: str) -> str:
    """Filename a source URL is stored under (its last path segment)."""
    return url.rsplit('/', 1)[-1]


def is_excluded(url: str, excluded_suffixes: Iterable[str] = DEFAULT_EXCLUDED_SUFFIXES) -> bool:
    """Check if a source is handled elsewhere (e.g. crates from Cargo.lock)."""
    path = urlparse(url).path
    filename = source_filename(url)
    return any(path.endswith(s) or filename.endswith(s) for s in excluded_suffixes)


def extract_source_urls(spec_text: str,
                        excluded_suffixes: Iterable[str] = DEFAULT_EXCLUDED_SUFFIXES) -> FrozenSet[str]:
    """Find remote source URLs in an expanded spec.

    Args:
        spec_text: Expanded spec text
        excluded_suffixes: URLs ending with one of these are skipped

    Returns:
        Set of URLs (empty if the package has no remote sources)
    """
    excluded_suffixes = tuple(excluded_suffixes)
    urls = set()
    for match in _SOURCE_RE.finditer(spec_text):
        value = match.group(2)
        if not value.lower().startswith(('http://', 'https://')):
            continue
        if is_excluded(value, excluded_suffixes):
            logger.debug(f"Skipping lockfile-managed source: {value}")
            continue
        urls.add(value)

    if urls:
        logger.debug(f"Found {len(urls)} remote source(s)")
    else:
        logger.info("Package has no remote sources")
    return frozenset(urls)


def normalize_digest(algorithm: str, digest: str) -> str:
    """Normalize a digest to lowercase hex.

    Raises:
        HashTableError: Digest is neither valid hex nor base64 for the algorithm
    """
    try:
        size = hashlib.new(algorithm).digest_size
    except ValueError:
        size = None

    if _HEX_RE.match(digest):
        if size is None or len(digest) == size * 2:
            return digest.lower()
        # A truncated hex digest can still decode as base64 of the right size
        raise HashTableError(
            f"{algorithm} hex digest has {len(digest)} characters, expected {size * 2}")

    if size is not None:
        padded = digest + '=' * (-len(digest) % 4)
        for decode in (base64.b64decode, base64.urlsafe_b64decode):
            try:
                raw = decode(padded)
            except (binascii.Error, ValueError):
                continue
            if len(raw) == size:
                return raw.hex()

    raise HashTableError(f"cannot decode {algorithm} digest '{digest}'")


def _parse_row(line: str) -> Optional[HashRow]:
    m = _BSD_ROW_RE.match(line)
    if m:
        algorithm = m.group('algorithm').lower()
        return HashRow(m.group('filename'), algorithm,
                       normalize_digest(algorithm, m.group('digest')))

    m = _SUM_ROW_RE.match(line)
    if m:
        digest = m.group('digest')
        algorithm = _ALGORITHM_BY_HEX_LENGTH.get(len(digest))
        if algorithm is None:
            return None
        filename = m.group('filename').strip()
        if filename.startswith('./'):
            filename = filename[2:]
        return HashRow(filename, algorithm, digest.lower())

    return None


def parse_hash_table(content: str, path: Path = None) -> Dict[str, HashRow]:
    """Parse hash table content.

    Args:
        content: Table text
        path: File the content came from, for error messages

    Returns:
        Dict mapping filename to HashRow. When a filename appears more
        than once the first row is kept.
    """
    table = {}
    for lineno, line in enumerate(content.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue

        try:
            row = _parse_row(line)
        except HashTableError as e:
            raise HashTableError(f"line {lineno}: {e}", path)

        if row is None:
            logger.debug(f"Ignoring unrecognized hash table line {lineno}: {line}")
            continue

        existing = table.get(row.filename)
        if existing is not None:
            if existing != row:
                logger.warning(f"Duplicate hash row for {row.filename} "
                               f"(line {lineno}), keeping the first one")
            continue
        table[row.filename] = row

    return table


def load_hash_table(path: Path) -> Dict[str, HashRow]:
    """Read and parse a hash table file.

    Raises:
        HashTableError: File missing, unreadable or holding a bad digest
    """
    path = Path(path)
    try:
        content = path.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise HashTableError("hash table not found", path)
    except (OSError, UnicodeDecodeError) as e:
        raise HashTableError(f"cannot read hash table: {e}", path)

    table = parse_hash_table(content, path)
    logger.debug(f"Loaded {len(table)} hash row(s) from {path}")
    return table


def resolve_source_hashes(urls: Iterable[str],
                          hash_table: Dict[str, HashRow]) -> Tuple[SourceEntry, ...]:
    """Match every source URL with its hash table row.

    Args:
        urls: Remote source URLs
        hash_table: Filename -> HashRow, as returned by parse_hash_table()

    Returns:
        SourceEntry tuple sorted by URL

    Raises:
        MissingSourceHashError: A URL has no row; nothing is returned
    """
    entries = []
    for url in sorted(set(urls)):
        filename = source_filename(url)
        row = hash_table.get(filename)
        if row is None:
            raise MissingSourceHashError(url, filename)
        logger.debug(f"Resolved {url} -> {row.algorithm}:{row.digest}")
        entries.append(SourceEntry(url=url, filename=filename,
                                   algorithm=row.algorithm, digest=row.digest))
    return tuple(entries)
