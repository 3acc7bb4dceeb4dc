"""Tests for CLI"""

import json

import pytest

from rpmmeta.cli import main as cli
from rpmmeta.cli.main import create_parser, main
from rpmmeta.core.config import CONFIG_ENV_VAR

SHA256_A = "a" * 64

SPEC_TEXT = "Name: pkg\nSource0: https://example.org/a.tar.gz\n"


class TestParser:
    """Tests for argument parser."""

    def test_version_flag(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(['--version'])

    def test_resolve_command(self):
        parser = create_parser()
        args = parser.parse_args(['resolve', 'a.spec', 'b.spec', '-o', 'out', '-j', '2'])
        assert args.command == 'resolve'
        assert [str(s) for s in args.specs] == ['a.spec', 'b.spec']
        assert str(args.output) == 'out'
        assert args.jobs == 2

    def test_resolve_alias(self):
        parser = create_parser()
        args = parser.parse_args(['r', '--hashes', 'sources', '--arch', 'aarch64'])
        assert args.command == 'r'
        assert args.specs == []
        assert str(args.hashes) == 'sources'
        assert args.arch == 'aarch64'

    def test_macropath_alias(self):
        parser = create_parser()
        args = parser.parse_args(['mp', '--json'])
        assert args.command == 'mp'
        assert args.json is True

    def test_buildrequires_host(self):
        parser = create_parser()
        args = parser.parse_args(['br', 'pkg.spec', '--host'])
        assert args.command == 'br'
        assert args.host is True

    def test_global_flags(self):
        parser = create_parser()
        args = parser.parse_args(['--verbose', '--nocolor', '--config', 'x.yaml', 'sources', 'p.spec'])
        assert args.verbose is True
        assert args.nocolor is True
        assert str(args.config) == 'x.yaml'
        assert args.command == 'sources'


class TestMain:
    """End-to-end tests with a fake spec expander."""

    @pytest.fixture(autouse=True)
    def workdir(self, tmp_path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        return tmp_path

    @pytest.fixture
    def fake(self, make_expander, monkeypatch):
        expander = make_expander(text=SPEC_TEXT, build_requires=["git", "thar-glibc-devel"])
        monkeypatch.setattr(cli, 'RpmspecExpander', lambda *args, **kwargs: expander)
        return expander

    @pytest.fixture
    def hashes(self, workdir):
        path = workdir / "sources"
        path.write_text(f"SHA256 (a.tar.gz) = {SHA256_A}\n")
        return path

    def test_no_command(self):
        assert main([]) == 1

    def test_resolve_writes_artifacts(self, workdir, spec_file, fake, hashes):
        rc = main(['resolve', str(spec_file), '--hashes', str(hashes),
                   '-o', str(workdir / 'out'), '--arch', 'x86_64'])
        assert rc == 0
        manifest = json.loads((workdir / 'out' / 'sources.json').read_text())
        assert manifest == {"sources": [{"url": "https://example.org/a.tar.gz", "sha256": SHA256_A}]}
        assert (workdir / 'out' / 'hostBuildRequires').read_text() == "git\n"

    def test_resolve_autodetect(self, workdir, spec_file, fake, hashes, capsys):
        assert main(['resolve', '--hashes', str(hashes), '--arch', 'x86_64']) == 0
        assert 'pkg.spec' in capsys.readouterr().out

    def test_resolve_json(self, spec_file, fake, hashes, capsys):
        assert main(['resolve', str(spec_file), '--hashes', str(hashes), '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data[0]['hostBuildRequires'] == ['git']
        assert 'spec' not in data[0]

    def test_resolve_missing_hash(self, workdir, spec_file, fake, capsys):
        rc = main(['resolve', str(spec_file), '-o', str(workdir / 'out')])
        assert rc == 1
        assert not (workdir / 'out' / 'sources.json').exists()
        assert 'a.tar.gz' in capsys.readouterr().err

    def test_resolve_multiple_specs(self, workdir, fake, hashes):
        for name in ('one', 'two'):
            (workdir / f'{name}.spec').write_text("")
        rc = main(['resolve', 'one.spec', 'two.spec', '--hashes', str(hashes),
                   '-o', str(workdir / 'out')])
        assert rc == 0
        assert (workdir / 'out' / 'one' / 'sources.json').exists()
        assert (workdir / 'out' / 'two' / 'sources.json').exists()

    def test_resolve_same_stem_refused(self, workdir, fake, hashes, capsys):
        for sub in ('a', 'b'):
            (workdir / sub).mkdir()
            (workdir / sub / 'pkg.spec').write_text("")
        rc = main(['resolve', 'a/pkg.spec', 'b/pkg.spec', '--hashes', str(hashes),
                   '-o', str(workdir / 'out'), '-j', '1'])
        assert rc == 1
        err = capsys.readouterr().err
        assert 'a/pkg.spec' in err and 'b/pkg.spec' in err
        assert not (workdir / 'out').exists()
        assert fake.calls == []

    def test_failed_rerun_removes_stale_artifacts(self, workdir, spec_file, fake, hashes):
        out = workdir / 'out'
        assert main(['resolve', str(spec_file), '--hashes', str(hashes), '-o', str(out)]) == 0
        assert (out / 'sources.json').exists()

        assert main(['resolve', str(spec_file), '-o', str(out)]) == 1
        assert not (out / 'sources.json').exists()
        assert not (out / 'parsed.spec').exists()

    def test_resolve_no_spec_found(self, fake, capsys):
        assert main(['resolve']) == 1
        assert 'No .spec file found' in capsys.readouterr().err

    def test_sources(self, spec_file, fake, hashes, capsys):
        assert main(['sources', str(spec_file), '--hashes', str(hashes)]) == 0
        assert capsys.readouterr().out.strip() == (
            '{"sources": [{"url": "https://example.org/a.tar.gz", '
            f'"sha256": "{SHA256_A}"}}]}}'
        )

    def test_buildrequires(self, spec_file, fake, capsys):
        assert main(['buildrequires', str(spec_file)]) == 0
        assert capsys.readouterr().out.split() == ['git', 'thar-glibc-devel']

    def test_buildrequires_host(self, spec_file, fake, capsys):
        assert main(['br', str(spec_file), '--host']) == 0
        assert capsys.readouterr().out.split() == ['git']

    def test_macropath(self, workdir, capsys):
        assert main(['macropath', '--arch', 'x86_64']) == 0
        lines = capsys.readouterr().out.split()
        assert lines[0] == str(workdir.resolve() / 'macros' / 'arches' / 'x86_64')
        assert lines[-1] == '/usr/lib/rpm/macros'

    def test_macropath_config_file(self, workdir, capsys):
        config = workdir / 'custom.yaml'
        config.write_text("macros:\n  categories: [go]\n  rpm_dir: /opt/rpm/macros\n")
        assert main(['--config', str(config), 'mp', '--arch', 'x86_64', '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['tiers'][1] == {'tier': 'project', 'paths': [str(workdir.resolve() / 'macros' / 'go')]}
        assert data['macroPath'].endswith(':/opt/rpm/macros')

    def test_bad_config(self, workdir, capsys):
        config = workdir / 'bad.yaml'
        config.write_text("bogus: 1\n")
        assert main(['--config', str(config), 'mp']) == 1
        assert 'unknown key' in capsys.readouterr().err
