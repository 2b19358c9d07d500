"""Per-run cache of dependency sets keyed by go.mod path."""

import logging
from typing import Callable, Dict, Optional, Tuple

from .errors import DuplicateDependencyError, ManifestLoadError, ManifestParseError, OverrideConflictError
from .models import DependencySet, LocationAncestry, ParsedManifest
from .parsers import GoModParser

logger = logging.getLogger(__name__)


class ManifestCache:
    """
    Loads each go.mod file at most once per run.

    The first load of a file fixes its ancestry: later requests for the same
    path get the cached set back and do not relink it.
    """

    def __init__(self, parse_file: Optional[Callable[[str], ParsedManifest]] = None):
        self._parse_file = parse_file or GoModParser.parse_file
        self._loaded: Dict[str, DependencySet] = {}

    def get_or_load(
        self,
        manifest_path: Optional[str],
        caller_ancestry: Optional[LocationAncestry] = None,
        module_version: Optional[str] = None,
    ) -> Tuple[Optional[DependencySet], bool]:
        """
        Return the dependency set for a go.mod file, loading it if needed.

        Args:
            manifest_path: Path of the go.mod file; empty means the package has none
            caller_ancestry: Ancestry of the dependency that led here, linked
                into every new node
            module_version: Version of the module owning the file, if known

        Returns:
            (dependency set or None, whether this call loaded it)

        Raises:
            ManifestLoadError: If the file cannot be read, parsed, or built
        """
        if not manifest_path:
            return None, False

        cached = self._loaded.get(manifest_path)
        if cached is not None:
            logger.debug(f"Already loaded {manifest_path}")
            return cached, False

        try:
            manifest = self._parse_file(manifest_path)
        except OSError as e:
            raise ManifestLoadError(manifest_path, f"reading mod file: {e}") from e
        except ManifestParseError as e:
            raise ManifestLoadError(manifest_path, f"parsing mod file: {e}") from e

        identity = manifest.module_path
        if module_version:
            identity = f"{identity}@{module_version}"

        try:
            deps = DependencySet.from_manifest(
                manifest,
                parent_ancestry=caller_ancestry,
                module_identity=identity,
                manifest_path=manifest_path,
            )
        except (DuplicateDependencyError, OverrideConflictError) as e:
            raise ManifestLoadError(manifest_path, str(e)) from e

        self._loaded[manifest_path] = deps
        logger.info(
            f"Loaded {len(deps)} dependencies ({len(deps.overridden)} replaced) "
            f"for {identity} from {manifest_path}"
        )
        return deps, True

    def __contains__(self, manifest_path: str) -> bool:
        return manifest_path in self._loaded

    def __len__(self) -> int:
        return len(self._loaded)
