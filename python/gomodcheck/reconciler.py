"""Matches dependency versions between a project and selected dependencies."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigurationError
from .manifest_cache import ManifestCache
from .models import Dependency, DependencySet, MismatchReport
from .package_loader import GoPackage

logger = logging.getLogger(__name__)


def _split_values(values: Optional[Iterable[str]]) -> List[str]:
    """Flatten repeated, comma separated flag values."""
    res: List[str] = []
    for value in values or []:
        res.extend(part.strip() for part in value.split(','))
    return res


class MatchConfiguration:
    """
    Which dependency modules must agree with the project.

    match_dep maps the module path of a dependency to the module paths whose
    version in that dependency's go.mod must match the project's.
    match_replace_sources lists dependencies whose replace directives must
    all be mirrored by the project.
    """

    def __init__(
        self,
        match_dep: Optional[Dict[str, Dict[str, None]]] = None,
        match_replace_sources: Optional[Dict[str, None]] = None,
    ):
        # Dicts with None values are used as insertion-ordered sets.
        self.match_dep: Dict[str, Dict[str, None]] = match_dep or {}
        self.match_replace_sources: Dict[str, None] = match_replace_sources or {}
        self._validate()

    @classmethod
    def from_flags(
        cls,
        raw_match_deps: Optional[Sequence[str]] = None,
        match_replaces: Optional[Sequence[str]] = None,
    ) -> 'MatchConfiguration':
        """
        Build a configuration from --match-dep and --match-replaces values.

        Raises:
            ConfigurationError: On malformed pairs, empty paths, or a target
                module sourced from more than one dependency
        """
        match_dep: Dict[str, Dict[str, None]] = {}

        for raw in _split_values(raw_match_deps):
            parts = raw.split(':')
            if len(parts) != 2:
                raise ConfigurationError(f"unexpected dep match input: {raw}")
            if not parts[0] or not parts[1]:
                raise ConfigurationError(f"empty package path in dep match input: {raw}")

            match_dep.setdefault(parts[0], {})[parts[1]] = None

        replace_sources: Dict[str, None] = {}
        for source in _split_values(match_replaces):
            if not source:
                raise ConfigurationError("empty package path in match replaces input")
            replace_sources[source] = None

        return cls(match_dep, replace_sources)

    def _validate(self) -> None:
        sourced_from: Dict[str, str] = {}
        for package_path, targets in self.match_dep.items():
            for target in targets:
                other = sourced_from.get(target)
                if other is not None:
                    raise ConfigurationError(
                        f"dep {target} being sourced from multiple packages: {other} and {package_path}"
                    )
                sourced_from[target] = package_path

    def is_tracked(self, package_path: str) -> bool:
        """Whether a dependency's go.mod needs to be loaded."""
        return package_path in self.match_dep or package_path in self.match_replace_sources

    def is_empty(self) -> bool:
        return not self.match_dep and not self.match_replace_sources


def collect_candidates(
    dep_deps: Dict[str, DependencySet],
    config: MatchConfiguration,
) -> Dict[str, Dependency]:
    """Gather the dependency entries whose versions the project must match."""
    candidates: Dict[str, Dependency] = {}

    for package_path, targets in config.match_dep.items():
        dep_set = dep_deps.get(package_path)
        if dep_set is None:
            # No go.mod for this dependency, or nothing in the project imports it.
            logger.debug(f"No dependency info loaded for {package_path}")
            continue

        for target in targets:
            dep = dep_set.get(target)
            if dep is not None:
                candidates[target] = dep

    for package_path in config.match_replace_sources:
        dep_set = dep_deps.get(package_path)
        if dep_set is None:
            logger.debug(f"No dependency info loaded for {package_path}")
            continue

        for dep in dep_set.replacements():
            # TODO: report a conflict when two sources want different versions
            # of the same replaced module instead of keeping the last one.
            if dep.path in candidates:
                logger.debug(f"{package_path} overrides earlier match source for {dep.path}")
            candidates[dep.path] = dep

    return candidates


def find_mismatches(
    project_deps: Sequence[DependencySet],
    dep_deps: Dict[str, DependencySet],
    config: MatchConfiguration,
) -> List[MismatchReport]:
    """
    Compare candidate dependency versions against the project's.

    Versions are compared as exact strings.

    Args:
        project_deps: Dependency sets of the project's own go.mod files
        dep_deps: Dependency module path -> that dependency's set
        config: Which modules to match

    Returns:
        One report per disagreement, in discovery order
    """
    res: List[MismatchReport] = []

    for module_path, check_dep in collect_candidates(dep_deps, config).items():
        for project_set in project_deps:
            project_dep = project_set.get(module_path)
            if project_dep is None:
                continue

            want = check_dep.effective_version
            got = project_dep.effective_version
            if want.version == got.version:
                continue

            logger.info(f"Version mismatch for {module_path}: have {got} want {want}")
            res.append(MismatchReport(
                module_path=module_path,
                want_version=want.version,
                got_version=got.version,
                want_ancestry=check_dep.location,
                got_ancestry=project_dep.location,
                want_module=want,
                got_module=got,
            ))

    return res


class ModCheck:
    """State for a single gomodcheck run."""

    def __init__(self, config: MatchConfiguration, cache: Optional[ManifestCache] = None):
        self.config = config
        self.cache = cache or ManifestCache()

        # Dependency sets loaded from the project's own go.mod files.
        self.project_deps: List[DependencySet] = []

        # Dependency module path -> dependency set, for configured dependencies.
        self.dep_deps: Dict[str, DependencySet] = {}

    def _get_or_load_package_deps(
        self,
        pkg: GoPackage,
        dep: Optional[Dependency],
    ) -> Tuple[Optional[DependencySet], bool]:
        if pkg.module is None:
            return None, False

        ancestry = dep.location if dep is not None else None
        return self.cache.get_or_load(
            pkg.module.manifest_path,
            ancestry,
            module_version=pkg.module.manifest_version,
        )

    def read_dep_mappings(self, packages: Iterable[GoPackage]) -> None:
        """
        Load the go.mod files of the project and of configured dependencies.

        Only direct imports of the project's packages are followed.
        """
        for pkg in packages:
            pkg_deps, fresh = self._get_or_load_package_deps(pkg, None)
            if fresh:
                self.project_deps.append(pkg_deps)

            for imported in pkg.imports:
                import_path = imported.module_path
                if not self.config.is_tracked(import_path):
                    continue

                # Link the dependency's go.mod back to the line that requires it.
                import_dep = pkg_deps.get(import_path) if pkg_deps is not None else None

                deps, fresh = self._get_or_load_package_deps(imported, import_dep)
                if fresh:
                    self.dep_deps[import_path] = deps

        logger.info(
            f"Loaded {len(self.project_deps)} project go.mod files and "
            f"{len(self.dep_deps)} dependency go.mod files"
        )

    def find_mismatches(self) -> List[MismatchReport]:
        return find_mismatches(self.project_deps, self.dep_deps, self.config)

    def run(self, packages: Iterable[GoPackage]) -> List[MismatchReport]:
        self.read_dep_mappings(packages)
        return self.find_mismatches()
