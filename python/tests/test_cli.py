"""Tests for the gomodcheck command line."""

import json
from unittest.mock import patch

import pytest

from gomodcheck.__main__ import main
from gomodcheck.errors import PackageLoadError
from gomodcheck.package_loader import GoModule, GoPackage


@pytest.fixture
def packages(tmp_path):
    """Project requiring example.com/m v1.0 and importing example.com/d, which wants v2.0."""
    project_dir = tmp_path / 'project'
    project_dir.mkdir()
    (project_dir / 'go.mod').write_text(
        "module example.com/project\n\nrequire (\n\texample.com/d v1.2.0\n\texample.com/m v1.0\n)\n"
    )
    dep_dir = tmp_path / 'd'
    dep_dir.mkdir()
    (dep_dir / 'go.mod').write_text("module example.com/d\n\nrequire example.com/m v2.0\n")

    dep_pkg = GoPackage(
        import_path='example.com/d',
        module=GoModule(path='example.com/d', version='v1.2.0', go_mod=str(dep_dir / 'go.mod')),
    )
    return [GoPackage(
        import_path='example.com/project',
        module=GoModule(path='example.com/project', go_mod=str(project_dir / 'go.mod')),
        imports=[dep_pkg],
    )]


class TestCLI:
    """Tests for main()."""

    @patch('gomodcheck.__main__.PackageLoader')
    def test_mismatch_exits_nonzero(self, mock_loader, packages, capsys):
        mock_loader.return_value.load.return_value = packages

        code = main(['./...', '--match-dep', 'example.com/d:example.com/m'])

        assert code == 1
        err = capsys.readouterr().err
        assert "have version v1.0 but want version v2.0" in err
        assert "originally included in modfile for module example.com/d@v1.2.0 line 3, col 1" in err
        assert "found dependency mismatches" in err
        mock_loader.return_value.load.assert_called_once_with('./...')

    @patch('gomodcheck.__main__.PackageLoader')
    def test_no_flags_succeeds(self, mock_loader, packages, capsys):
        mock_loader.return_value.load.return_value = packages

        assert main(['./...']) == 0
        assert capsys.readouterr().err == ''

    @patch('gomodcheck.__main__.PackageLoader')
    def test_json_output(self, mock_loader, packages, capsys):
        mock_loader.return_value.load.return_value = packages

        code = main(['./...', '--match-dep', 'example.com/d:example.com/m', '--format', 'json'])

        assert code == 1
        doc = json.loads(capsys.readouterr().out)
        assert doc['mismatchCount'] == 1
        assert doc['mismatches'][0]['want']['purl'] == 'pkg:golang/example.com/m@v2.0'

    @patch('gomodcheck.__main__.PackageLoader')
    def test_loader_options(self, mock_loader, packages):
        mock_loader.return_value.load.return_value = packages

        main(['example.com/project/...', '--go-command', 'go1.22', '-C', '/src/project'])

        mock_loader.assert_called_once_with(go_command='go1.22', work_dir='/src/project')

    @patch('gomodcheck.__main__.PackageLoader')
    def test_duplicate_target_is_usage_error(self, mock_loader, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(['./...', '--match-dep', 'foo:bar', '--match-dep', 'baz:bar'])

        assert excinfo.value.code == 2
        assert 'sourced from multiple packages' in capsys.readouterr().err
        mock_loader.assert_not_called()

    @patch('gomodcheck.__main__.PackageLoader')
    def test_load_error(self, mock_loader, capsys):
        mock_loader.return_value.load.side_effect = PackageLoadError('getting packages: boom')

        assert main(['./...', '--match-replaces', 'example.com/d']) == 1
        assert 'Error: getting packages: boom' in capsys.readouterr().err

    def test_missing_package_argument(self):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 2
