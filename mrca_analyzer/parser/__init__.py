"""
Tree format parsers.

Newick strings (with BEAST/NHX annotations and quoted labels) and NEXUS
tree blocks are parsed into :class:`mrca_analyzer.tree.Node` trees.
"""

from .newick_parser import (
    parse_newick,
    parse_metadata,
    parse_value,
    split_token,
    split_top_level,
)
from .nexus_parser import parse_nexus, parse_translate_block

__all__ = [
    "parse_newick",
    "parse_metadata",
    "parse_value",
    "split_token",
    "split_top_level",
    "parse_nexus",
    "parse_translate_block",
]
