"""
Custom exceptions for the MRCA age analysis package.
"""

from __future__ import annotations
from typing import NoReturn, Optional


class MrcaAnalyzerError(Exception):
    """Base exception for MRCA age analysis errors."""

    pass


class TreeParseError(MrcaAnalyzerError):
    """Raised when serialized tree input cannot be parsed."""

    pass


class NewickParseError(TreeParseError):
    """Raised when a Newick string is syntactically invalid."""

    @staticmethod
    def raise_at(message: str, tokens: str, position: int) -> NoReturn:
        """
        Raise a NewickParseError pointing at the offending position.

        Args:
            message: Description of the problem
            tokens: The Newick text being parsed
            position: Character offset where the problem was detected

        Raises:
            NewickParseError: Always raised with a short excerpt of the input
        """
        start = max(0, position - 20)
        excerpt = tokens[start : position + 20].replace("\n", " ")
        raise NewickParseError(f"{message} at position {position}: ...{excerpt}...")


class NexusParseError(TreeParseError):
    """Raised when a NEXUS file has no usable trees block."""

    pass


class MalformedTreeError(MrcaAnalyzerError):
    """Raised when a tree has an inconsistent edge structure."""

    def __init__(self, message: str, tree_index: Optional[int] = None):
        self.detail = message
        self.tree_index = tree_index
        if tree_index is not None:
            message = f"Tree {tree_index}: {message}"
        super().__init__(message)

    def __reduce__(self):
        # Survives the round trip out of a worker process
        return (self.__class__, (self.detail, self.tree_index))
