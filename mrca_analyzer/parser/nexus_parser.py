"""
NEXUS tree block reader.

Posterior samples written by Bayesian inference software come as NEXUS files
with a ``begin trees;`` block, usually a ``translate`` table mapping numeric
codes to taxon names, and one ``tree NAME = [&R] (...);`` statement per
sample. Only the trees block is read; all other blocks are skipped.
"""

import re
from typing import Dict, List, Optional, Tuple

from mrca_analyzer.exceptions import NexusParseError
from mrca_analyzer.parser.newick_parser import parse_newick, split_top_level
from mrca_analyzer.tree import Node

_BEGIN_TREES = re.compile(r"begin\s+trees\s*;", re.IGNORECASE)

_TREE_STATEMENT = re.compile(
    r"""
    ^u?tree\s+              # "tree" or "utree"
    (?:\*\s*)?              # optional default-tree marker
    ('[^']*'|[^\s=\[]+)     # tree name
    \s*(?:\[[^\]]*\]\s*)*   # comments such as [&lnP=-1234.5]
    =\s*(.*)$               # everything after "=" is the tree
    """,
    re.IGNORECASE | re.DOTALL | re.VERBOSE,
)

_LEADING_COMMENTS = re.compile(r"^\s*(?:\[[^\]]*\]\s*)+")


def split_statements(text: str) -> List[str]:
    """Split NEXUS text on ';' outside of [comments] and 'quoted labels'."""
    statements: List[str] = []
    current: List[str] = []
    comment_depth = 0
    in_quotes = False
    for char in text:
        if char == "'" and comment_depth == 0:
            in_quotes = not in_quotes
        elif char == "[" and not in_quotes:
            comment_depth += 1
        elif char == "]" and not in_quotes and comment_depth > 0:
            comment_depth -= 1

        if char == ";" and comment_depth == 0 and not in_quotes:
            statements.append("".join(current))
            current = []
        else:
            current.append(char)
    if "".join(current).strip():
        statements.append("".join(current))
    return statements


def parse_translate_block(body: str) -> Dict[str, str]:
    """
    Parse the body of a ``translate`` command into a code -> taxon mapping.

    Args:
        body: Text after the ``translate`` keyword, e.g. "1 Latin, 2 'Old Irish'"

    Raises:
        NexusParseError: If an entry does not consist of a code and a name
    """
    transdict: Dict[str, str] = {}
    for entry in split_top_level(body):
        entry = entry.strip()
        if not entry:
            continue
        words = entry.split(None, 1)
        if len(words) != 2:
            raise NexusParseError(f"Malformed translate entry '{entry}'")
        code, name = words
        name = name.strip()
        if len(name) >= 2 and name[0] == name[-1] == "'":
            name = name[1:-1].replace("''", "'")
        transdict[code] = name
    return transdict


def parse_nexus(
    text: str, default_length: Optional[float] = 1.0
) -> Tuple[List[str], List[Node]]:
    """
    Parse the trees block of a NEXUS document.

    Args:
        text: Complete NEXUS file content
        default_length: Branch length for nodes without an explicit length;
            None leaves it unset

    Returns:
        Tuple of (tree names, trees) in file order

    Raises:
        NexusParseError: If the text is not NEXUS, has no trees block, or the
            trees block contains no tree statements
        NewickParseError: If a tree statement is not valid Newick
    """
    if not text.lstrip().upper().startswith("#NEXUS"):
        raise NexusParseError("File does not appear to be in NEXUS format")

    match = _BEGIN_TREES.search(text)
    if match is None:
        raise NexusParseError("NEXUS file has no trees block")

    translate: Optional[Dict[str, str]] = None
    names: List[str] = []
    trees: List[Node] = []

    for statement in split_statements(text[match.end() :]):
        statement = _LEADING_COMMENTS.sub("", statement).strip()
        if not statement:
            continue
        keyword = statement.split(None, 1)[0].lower()

        if keyword in ("end", "endblock"):
            break
        if keyword == "translate":
            translate = parse_translate_block(statement[len("translate") :])
            continue

        tree_match = _TREE_STATEMENT.match(statement)
        if tree_match is None:
            # Other commands in the block (title, link, ...) carry no trees
            continue
        name, newick = tree_match.groups()
        # Rooting and tree-level comments such as [&R] precede the tree
        newick = _LEADING_COMMENTS.sub("", newick)
        parsed = parse_newick(
            newick + ";",
            translate=translate,
            default_length=default_length,
            force_list=True,
        )
        for tree in parsed:
            tree.list_index = len(trees)
            names.append(name.strip("'"))
            trees.append(tree)

    if not trees:
        raise NexusParseError("Trees block contains no tree statements")
    return names, trees
