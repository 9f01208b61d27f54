"""
Errors raised while building substrates and merging systems.
"""

from typing import Optional


class BuildError(Exception):
    """Raised when a substrate cannot be built."""


class InvalidLatticeError(BuildError):
    """Raised when a unit cell has a degenerate basis."""


class ExtentMismatchError(BuildError):
    """Raised when an exact-fit extent cannot be matched by whole cells."""
    def __init__(self, message: str, achievable: Optional[tuple[float, float]] = None):
        super().__init__(message)
        self.achievable = achievable


class EmptySubstrateError(BuildError):
    """Raised when a substrate ends up without any atoms."""


class MergeError(Exception):
    """Raised when substrates cannot be merged into one system."""
