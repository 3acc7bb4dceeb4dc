"""Source manifest (sources.json).

Format:
    {"sources": [{"url": "https://.../a-1.0.tar.gz", "sha256": "..."}, ...]}

Entries are sorted by URL so the same inputs always give the same bytes;
build caches and supply-chain checks compare the file verbatim.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from .sources import SourceEntry

MANIFEST_FILENAME = "sources.json"


@dataclass(frozen=True)
class SourceManifest:
    """URL-sorted set of verified sources."""
    entries: Tuple[SourceEntry, ...] = ()

    @classmethod
    def from_entries(cls, entries: Iterable[SourceEntry]) -> 'SourceManifest':
        """Build a manifest, sorting by URL and keeping one entry per URL."""
        by_url = {}
        for entry in entries:
            by_url.setdefault(entry.url, entry)
        return cls(entries=tuple(by_url[url] for url in sorted(by_url)))

    @property
    def urls(self) -> Tuple[str, ...]:
        return tuple(entry.url for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def integrity_map(self) -> Dict[str, str]:
        """URL -> integrity token ('algorithm:digest')."""
        return {entry.url: entry.integrity for entry in self.entries}

    def to_list(self) -> List[dict]:
        # url first, then the digest keyed by algorithm
        return [{'url': entry.url, entry.algorithm: entry.digest} for entry in self.entries]

    def to_json(self) -> str:
        """Serialize to the sources.json format (no trailing newline)."""
        return json.dumps({'sources': self.to_list()})

    def write(self, output_dir: Path) -> Path:
        """Write sources.json into output_dir and return its path."""
        path = Path(output_dir) / MANIFEST_FILENAME
        path.write_text(self.to_json(), encoding='utf-8')
        return path
