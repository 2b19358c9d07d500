"""Loads the package import graph for a build target with `go list`."""

import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .errors import PackageLoadError

logger = logging.getLogger(__name__)


@dataclass
class GoModule:
    """Module information reported by `go list` for a package."""

    path: str
    version: str = ""
    go_mod: str = ""
    replace: Optional['GoModule'] = None

    @property
    def manifest_path(self) -> str:
        """go.mod path that decides this module's requirements."""
        if self.replace is not None:
            return self.replace.go_mod
        return self.go_mod

    @property
    def manifest_version(self) -> str:
        if self.replace is not None:
            return self.replace.version
        return self.version

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> Optional['GoModule']:
        if not data:
            return None
        return cls(
            path=data.get('Path', ''),
            version=data.get('Version', ''),
            go_mod=data.get('GoMod', ''),
            replace=cls.from_json(data.get('Replace')),
        )


@dataclass(eq=False)
class GoPackage:
    """A Go package and the packages it imports directly."""

    import_path: str
    module: Optional[GoModule] = None
    imports: List['GoPackage'] = field(default_factory=list, repr=False)
    dep_only: bool = False

    @property
    def module_path(self) -> str:
        return self.module.path if self.module is not None else ""


def _decode_stream(output: str) -> Iterator[Dict[str, Any]]:
    """Decode the back-to-back JSON objects `go list -json` prints."""
    decoder = json.JSONDecoder()
    idx = 0
    end = len(output)
    while True:
        while idx < end and output[idx].isspace():
            idx += 1
        if idx >= end:
            return
        obj, idx = decoder.raw_decode(output, idx)
        yield obj


class PackageLoader:
    """Runs `go list` and turns its output into GoPackage records."""

    def __init__(self, go_command: str = 'go', work_dir: Optional[str] = None):
        self.go_command = go_command
        self.work_dir = work_dir

    def load(self, pattern: str) -> List[GoPackage]:
        """
        Load the packages matching a build-target pattern.

        Args:
            pattern: Package pattern such as ./... or a single import path

        Returns:
            The packages matching the pattern, with imports resolved

        Raises:
            PackageLoadError: If go list cannot be run or its output is unusable
        """
        cmd = [self.go_command, 'list', '-json', '-deps', pattern]
        logger.info(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, cwd=self.work_dir)
        except OSError as e:
            raise PackageLoadError(f"running {self.go_command}: {e}") from e

        if result.returncode != 0:
            raise PackageLoadError(
                f"getting packages: go list exited with status {result.returncode}: {result.stderr.strip()}"
            )

        return self.parse_output(result.stdout)

    @staticmethod
    def parse_output(output: str) -> List[GoPackage]:
        """Build the package graph from `go list -json -deps` output."""
        try:
            records = list(_decode_stream(output))
        except json.JSONDecodeError as e:
            raise PackageLoadError(f"decoding go list output: {e}") from e

        by_path: Dict[str, GoPackage] = {}
        for rec in records:
            import_path = rec.get('ImportPath')
            if not import_path:
                continue
            by_path[import_path] = GoPackage(
                import_path=import_path,
                module=GoModule.from_json(rec.get('Module')),
                dep_only=bool(rec.get('DepOnly')),
            )

        roots = []
        for rec in records:
            pkg = by_path.get(rec.get('ImportPath', ''))
            if pkg is None:
                continue
            for imp in rec.get('Imports') or []:
                imported = by_path.get(imp)
                if imported is None:
                    logger.debug(f"Import {imp} of {pkg.import_path} not in go list output")
                    continue
                pkg.imports.append(imported)
            if not pkg.dep_only:
                roots.append(pkg)

        logger.info(f"Loaded {len(roots)} packages ({len(by_path)} including dependencies)")
        return roots
