"""gomodcheck - keep module versions consistent across a Go project and its dependencies."""

__version__ = "0.3.0"
