"""Tests for the source manifest"""

import json

from rpmmeta.core.manifest import MANIFEST_FILENAME, SourceManifest
from rpmmeta.core.sources import SourceEntry

SHA256_A = "a" * 64
SHA256_B = "b" * 64


def entry(url, algorithm="sha256", digest=SHA256_A):
    return SourceEntry(url=url, filename=url.rsplit('/', 1)[-1],
                       algorithm=algorithm, digest=digest)


class TestSourceManifest:
    """Tests for SourceManifest serialization."""

    def test_single_source_exact_output(self):
        manifest = SourceManifest.from_entries([entry("https://example.org/pkg-1.0.tar.gz")])
        assert manifest.to_json() == (
            '{"sources": [{"url": "https://example.org/pkg-1.0.tar.gz", '
            f'"sha256": "{SHA256_A}"}}]}}'
        )

    def test_empty(self):
        assert SourceManifest.from_entries([]).to_json() == '{"sources": []}'
        assert len(SourceManifest()) == 0

    def test_sorted_by_url(self):
        manifest = SourceManifest.from_entries([
            entry("https://example.org/b.tar.gz", digest=SHA256_B),
            entry("https://example.org/a.tar.gz"),
        ])
        urls = [s["url"] for s in json.loads(manifest.to_json())["sources"]]
        assert urls == ["https://example.org/a.tar.gz", "https://example.org/b.tar.gz"]

    def test_byte_identical_regardless_of_input_order(self):
        entries = [
            entry("https://b.example.org/z.tar.gz"),
            entry("https://a.example.org/y.tar.gz", digest=SHA256_B),
            entry("http://c.example.org/x.tar.gz", algorithm="sha512", digest="c" * 128),
        ]
        first = SourceManifest.from_entries(entries).to_json()
        second = SourceManifest.from_entries(list(reversed(entries))).to_json()
        assert first == second

    def test_algorithm_is_key(self):
        manifest = SourceManifest.from_entries([entry("https://x/a.tgz", "sha512", "c" * 128)])
        assert manifest.to_list() == [{"url": "https://x/a.tgz", "sha512": "c" * 128}]

    def test_url_key_first(self):
        manifest = SourceManifest.from_entries([entry("https://x/a.tgz")])
        assert list(manifest.to_list()[0]) == ["url", "sha256"]

    def test_duplicate_urls_collapsed(self):
        manifest = SourceManifest.from_entries([entry("https://x/a.tgz"), entry("https://x/a.tgz")])
        assert manifest.urls == ("https://x/a.tgz",)

    def test_integrity_map(self):
        manifest = SourceManifest.from_entries([entry("https://x/a.tgz")])
        assert manifest.integrity_map() == {"https://x/a.tgz": f"sha256:{SHA256_A}"}

    def test_write(self, tmp_path):
        manifest = SourceManifest.from_entries([entry("https://x/a.tgz")])
        path = manifest.write(tmp_path)
        assert path == tmp_path / MANIFEST_FILENAME
        assert path.read_text() == manifest.to_json()
