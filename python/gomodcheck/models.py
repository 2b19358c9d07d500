"""Core data models for gomodcheck."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .errors import AncestryDepthError, DuplicateDependencyError, OverrideConflictError

logger = logging.getLogger(__name__)

# No real import graph is this deep; hitting it means the chain loops.
MAX_ANCESTRY_DEPTH = 256


@dataclass(frozen=True)
class ModuleRef:
    """A module path at a specific version."""

    path: str
    version: str = ""

    def __str__(self) -> str:
        # Directory replacements have no version.
        if not self.version:
            return self.path
        return f"{self.path}@{self.version}"


@dataclass(frozen=True)
class FileLocation:
    """1-based line and column of a statement in a go.mod file."""

    row: int
    col: int

    def __str__(self) -> str:
        return f"line {self.row}, col {self.col}"


@dataclass(frozen=True)
class RequireEntry:
    """A `require` statement as read from a go.mod file."""

    module_path: str
    version: str
    indirect: bool
    location: FileLocation

    @property
    def module(self) -> ModuleRef:
        return ModuleRef(self.module_path, self.version)


@dataclass(frozen=True)
class OverrideEntry:
    """A `replace` statement as read from a go.mod file.

    old_version is None for untargeted replacements, which apply to every
    version of old_path.
    """

    old_path: str
    new: ModuleRef
    location: FileLocation
    old_version: Optional[str] = None

    @property
    def is_targeted(self) -> bool:
        return bool(self.old_version)


@dataclass
class ParsedManifest:
    """Structured contents of one go.mod file."""

    module_path: str
    requires: List[RequireEntry] = field(default_factory=list)
    overrides: List[OverrideEntry] = field(default_factory=list)
    file_name: str = ""


@dataclass(eq=False)
class LocationAncestry:
    """
    Where a dependency's version came from.

    Each node belongs to one Dependency. ``ancestor`` points back at the node,
    in the parent go.mod, of the module whose import caused this go.mod to be
    loaded. It is None for the project's own go.mod files.
    """

    owning_module: str
    declared_at: FileLocation
    overridden_at: Optional[FileLocation] = None
    ancestor: Optional['LocationAncestry'] = field(default=None, repr=False)

    def effective_position(self) -> FileLocation:
        """Return the replace location if there is one, else the require location."""
        if self.overridden_at is not None:
            return self.overridden_at
        return self.declared_at

    def full_chain(self) -> Iterator['LocationAncestry']:
        """Yield this node and then every ancestor up to the root go.mod."""
        node: Optional[LocationAncestry] = self
        depth = 0
        while node is not None:
            depth += 1
            if depth > MAX_ANCESTRY_DEPTH:
                raise AncestryDepthError(
                    f"ancestry chain for {self.owning_module} exceeds {MAX_ANCESTRY_DEPTH} entries"
                )
            yield node
            node = node.ancestor


@dataclass(eq=False)
class Dependency:
    """One module required by one go.mod file."""

    original_version: ModuleRef
    effective_version: ModuleRef
    location: LocationAncestry
    is_direct: bool = True
    global_override_applied: bool = False

    @property
    def path(self) -> str:
        return self.original_version.path

    @property
    def is_overridden(self) -> bool:
        return self.original_version != self.effective_version

    def apply_override(self, override: OverrideEntry) -> bool:
        """
        Apply a replace directive to this dependency.

        Version-specific replacements win over untargeted ones regardless of
        order. Two replacements of the same kind that both fire are a conflict.

        Args:
            override: A replace statement whose old path is this module

        Returns:
            True if the effective version changed

        Raises:
            OverrideConflictError: If the replacement clashes with an earlier one
        """
        if override.is_targeted:
            if self.original_version.version != override.old_version:
                return False

            if self.is_overridden and not self.global_override_applied:
                raise OverrideConflictError(
                    f"multiple version-specific replace directives for module {self.path}"
                )

            self._set_effective(override)
            self.global_override_applied = False
            return True

        if self.is_overridden:
            if self.global_override_applied:
                raise OverrideConflictError(
                    f"multiple non-version-specific replace directives for module {self.path}"
                )
            logger.debug(
                f"Skipping untargeted replace of {self.path} at {override.location}: "
                f"already replaced by a version-specific directive"
            )
            return False

        self._set_effective(override)
        self.global_override_applied = True
        return True

    def _set_effective(self, override: OverrideEntry) -> None:
        self.effective_version = override.new
        self.location.overridden_at = override.location


class DependencySet:
    """All dependencies declared by a single go.mod file."""

    def __init__(self, module_identity: str, manifest_path: str = ""):
        self.module_identity = module_identity
        self.manifest_path = manifest_path
        self.all_dependencies: Dict[str, Dependency] = {}
        self.direct_dependencies: Dict[str, Dependency] = {}
        self.overridden: Dict[str, Dependency] = {}

    @classmethod
    def from_manifest(
        cls,
        manifest: ParsedManifest,
        parent_ancestry: Optional[LocationAncestry] = None,
        module_identity: Optional[str] = None,
        manifest_path: str = "",
    ) -> 'DependencySet':
        """
        Build the dependency set for a parsed go.mod file.

        Every require entry becomes a Dependency whose ancestry links back to
        parent_ancestry. Replace directives are then applied in file order.

        Raises:
            DuplicateDependencyError: If a module is required twice
            OverrideConflictError: If replace directives conflict
        """
        identity = module_identity or manifest.module_path
        res = cls(identity, manifest_path or manifest.file_name)

        for req in manifest.requires:
            if req.module_path in res.all_dependencies:
                raise DuplicateDependencyError(f"duplicate dependency {req.module_path}")

            loc = LocationAncestry(
                owning_module=identity,
                declared_at=req.location,
                ancestor=parent_ancestry,
            )
            dep = Dependency(
                original_version=req.module,
                effective_version=req.module,
                location=loc,
                is_direct=not req.indirect,
            )
            res.all_dependencies[req.module_path] = dep
            if dep.is_direct:
                res.direct_dependencies[req.module_path] = dep

        for rep in manifest.overrides:
            res.apply_override(rep)

        logger.debug(
            f"Built dependency set for {identity}: {len(res.all_dependencies)} modules, "
            f"{len(res.overridden)} replaced"
        )
        return res

    def apply_override(self, override: OverrideEntry) -> None:
        dep = self.all_dependencies.get(override.old_path)
        if dep is None:
            # Replacing a module this go.mod never requires has no effect.
            return

        if not dep.apply_override(override):
            return

        # A replacement pointing back at the required version changes nothing.
        if dep.is_overridden:
            self.overridden[override.old_path] = dep
        else:
            self.overridden.pop(override.old_path, None)

    def get(self, module_path: str) -> Optional[Dependency]:
        return self.all_dependencies.get(module_path)

    def replacements(self) -> List[Dependency]:
        """Return the dependencies whose version was changed by a replace directive."""
        return list(self.overridden.values())

    def __contains__(self, module_path: str) -> bool:
        return module_path in self.all_dependencies

    def __len__(self) -> int:
        return len(self.all_dependencies)

    def __repr__(self) -> str:
        return f"DependencySet({self.module_identity!r}, {len(self)} modules)"


@dataclass
class MismatchReport:
    """A module whose version in the project differs from a dependency's."""

    module_path: str
    want_version: str
    got_version: str
    want_ancestry: LocationAncestry
    got_ancestry: LocationAncestry
    want_module: Optional[ModuleRef] = None
    got_module: Optional[ModuleRef] = None
