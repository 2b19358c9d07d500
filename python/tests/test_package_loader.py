"""Tests for loading the package graph from `go list`."""

import json
import subprocess
from unittest.mock import patch

import pytest

from gomodcheck.errors import PackageLoadError
from gomodcheck.package_loader import GoModule, PackageLoader


def _go_list_output(*records):
    return "\n".join(json.dumps(r, indent='\t') for r in records) + "\n"


FMT = {'ImportPath': 'fmt', 'Standard': True, 'DepOnly': True}
DEP_LIB = {
    'ImportPath': 'example.com/d/lib',
    'DepOnly': True,
    'Module': {
        'Path': 'example.com/d',
        'Version': 'v1.2.0',
        'GoMod': '/cache/example.com/d@v1.2.0.mod',
        'Replace': {
            'Path': 'example.com/d-fork',
            'Version': 'v1.2.1',
            'GoMod': '/cache/example.com/d-fork@v1.2.1.mod',
        },
    },
    'Imports': ['fmt'],
}
ROOT = {
    'ImportPath': 'example.com/project/cmd',
    'Module': {'Path': 'example.com/project', 'Main': True, 'GoMod': '/src/project/go.mod'},
    'Imports': ['example.com/d/lib', 'fmt'],
}


class TestGoModule:
    """Tests for GoModule."""

    def test_manifest_path_without_replace(self):
        module = GoModule(path='a', version='v1', go_mod='/a.mod')
        assert module.manifest_path == '/a.mod'
        assert module.manifest_version == 'v1'

    def test_manifest_path_with_replace(self):
        module = GoModule(path='a', version='v1', go_mod='/a.mod',
                          replace=GoModule(path='../a', go_mod='/src/a/go.mod'))
        assert module.manifest_path == '/src/a/go.mod'
        assert module.manifest_version == ''

    def test_from_json_empty(self):
        assert GoModule.from_json(None) is None
        assert GoModule.from_json({}) is None


class TestParseOutput:
    """Tests for decoding `go list -json -deps` output."""

    def test_roots_and_imports(self):
        roots = PackageLoader.parse_output(_go_list_output(FMT, DEP_LIB, ROOT))

        assert [p.import_path for p in roots] == ['example.com/project/cmd']
        root = roots[0]
        assert root.module_path == 'example.com/project'
        assert [p.import_path for p in root.imports] == ['example.com/d/lib', 'fmt']

        dep = root.imports[0]
        assert dep.module_path == 'example.com/d'
        assert dep.module.manifest_path == '/cache/example.com/d-fork@v1.2.1.mod'
        assert dep.imports[0] is root.imports[1]

        assert root.imports[1].module is None
        assert root.imports[1].module_path == ''

    def test_empty_output(self):
        assert PackageLoader.parse_output('') == []

    def test_unknown_import_is_skipped(self):
        record = dict(ROOT, Imports=['example.com/missing'])
        roots = PackageLoader.parse_output(_go_list_output(record))
        assert roots[0].imports == []

    def test_bad_json(self):
        with pytest.raises(PackageLoadError, match='decoding go list output'):
            PackageLoader.parse_output('{"ImportPath": ')


class TestLoad:
    """Tests for running `go list`."""

    @patch('gomodcheck.package_loader.subprocess.run')
    def test_runs_go_list(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout=_go_list_output(FMT, DEP_LIB, ROOT), stderr=''
        )

        roots = PackageLoader(go_command='/usr/local/go/bin/go', work_dir='/src/project').load('./...')

        mock_run.assert_called_once_with(
            ['/usr/local/go/bin/go', 'list', '-json', '-deps', './...'],
            capture_output=True, text=True, cwd='/src/project',
        )
        assert len(roots) == 1

    @patch('gomodcheck.package_loader.subprocess.run')
    def test_go_list_fails(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=1, stdout='', stderr='no Go files in /src\n'
        )

        with pytest.raises(PackageLoadError, match='no Go files in /src'):
            PackageLoader().load('./...')

    @patch('gomodcheck.package_loader.subprocess.run')
    def test_go_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError(2, 'No such file or directory')

        with pytest.raises(PackageLoadError, match='running go'):
            PackageLoader().load('./...')
