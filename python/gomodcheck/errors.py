"""Exception types raised by gomodcheck."""


class GoModCheckError(Exception):
    """Base class for all errors that abort a gomodcheck run."""


class ConfigurationError(GoModCheckError):
    """Invalid --match-dep / --match-replaces input."""


class ManifestParseError(GoModCheckError, ValueError):
    """A go.mod file could not be parsed."""

    def __init__(self, file_name: str, line: int, message: str):
        self.file_name = file_name
        self.line = line
        super().__init__(f"{file_name}:{line}: {message}")


class ManifestLoadError(GoModCheckError):
    """A go.mod file could not be read or turned into a dependency set."""

    def __init__(self, manifest_path: str, message: str):
        self.manifest_path = manifest_path
        super().__init__(f"loading dependency info for {manifest_path}: {message}")


class PackageLoadError(GoModCheckError):
    """`go list` failed or produced output we could not decode."""


class DuplicateDependencyError(GoModCheckError):
    """The same module path is required twice in one go.mod file."""


class OverrideConflictError(GoModCheckError):
    """Two replace directives disagree about the version of one module."""


class AncestryDepthError(GoModCheckError, RuntimeError):
    """An ancestry chain is longer than any real import graph could produce."""
