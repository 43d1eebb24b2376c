from __future__ import annotations
import json
import math
from typing import Optional, Any, Dict, Iterable, List, Set

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

from mrca_analyzer.exceptions import MalformedTreeError

# Characters that force a label to be single-quoted when writing Newick
_NEWICK_SPECIAL = set(" \t\n()[]':;,")


class Node:
    """
    Rooted tree node. A tree is represented by its root node.

    ``length`` is the length of the edge leading to this node from its parent;
    the root's own length is ignored for all depth computations. ``values``
    holds posterior annotations parsed from ``[&key=value]`` comments.
    """

    __slots__ = (
        "children",
        "parent",
        "name",
        "length",
        "values",
        "list_index",
        "_traverse_cache",
        "_leaves_cache",
        "_leaf_index",
    )

    children: List[Self]
    parent: Optional[Self]
    name: str
    length: Optional[float]
    values: Dict[str, Any]
    list_index: Optional[int]
    _traverse_cache: Optional[List[Self]]
    _leaves_cache: Optional[List[Self]]
    _leaf_index: Optional[Dict[str, Self]]

    def __init__(
        self,
        children: Optional[List[Self]] = None,
        name: str = "",
        length: Optional[float] = None,
        values: Optional[Dict[str, Any]] = None,
    ):
        # Avoid mutable default arguments; create fresh containers
        self.children = list(children) if children is not None else []
        for child in self.children:
            child.parent = self
        self.parent = None
        self.name = name
        self.length = length
        self.values = dict(values) if values is not None else {}
        self.list_index = None
        self._traverse_cache = None
        self._leaves_cache = None
        self._leaf_index = None

    def __repr__(self) -> str:
        return f"Node('{self.name}')"

    def __str__(self):
        return str(tuple(sorted(self.get_current_order())))

    # ------------------------------------------------------------------------
    # Structure (read-only; trees are not modified after parsing)
    # ------------------------------------------------------------------------
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def is_internal(self) -> bool:
        return bool(self.children)

    def get_root(self) -> Self:
        cur = self
        while cur.parent is not None:
            cur = cur.parent
        return cur

    def traverse(self) -> List[Self]:
        """
        Return a list of all nodes in the subtree rooted at this node (pre-order).
        Uses an iterative stack to avoid recursion depth issues on deep trees.
        """
        if self._traverse_cache is not None:
            return self._traverse_cache

        nodes: List[Self] = []
        stack: List[Self] = [self]
        while stack:
            current = stack.pop()
            nodes.append(current)
            # Reverse keeps left-to-right visit order
            for child in reversed(current.children):
                stack.append(child)

        self._traverse_cache = nodes
        return nodes

    def get_leaves(self) -> List[Self]:
        """Return all leaf nodes in the subtree rooted at this node, left to right."""
        if self._leaves_cache is not None:
            return self._leaves_cache
        self._leaves_cache = [node for node in self.traverse() if not node.children]
        return self._leaves_cache

    def get_current_order(self) -> tuple[str, ...]:
        """Return the current order of taxa in the tree as a tuple."""
        return tuple(str(leaf.name) for leaf in self.get_leaves())

    def find_leaf(self, name: str) -> Optional[Self]:
        """Return the leaf labelled ``name`` or None if the taxon is absent."""
        if self._leaf_index is None:
            self._leaf_index = {leaf.name: leaf for leaf in self.get_leaves()}
        return self._leaf_index.get(name)

    # ------------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------------
    def validate(self) -> None:
        """
        Check that the subtree rooted here is a proper tree.

        Raises:
            MalformedTreeError: if a node is reachable twice (cycle or shared
                subtree), a parent pointer disagrees with the child list, a
                non-root edge length is missing, negative or non-finite, or two
                leaves carry the same label.
        """
        seen: Set[int] = set()
        labels: Set[str] = set()
        stack: List[Self] = [self]

        while stack:
            node = stack.pop()
            if id(node) in seen:
                raise MalformedTreeError(
                    f"{node!r} is reachable more than once (cycle or shared subtree)"
                )
            seen.add(id(node))

            if node is not self:
                length = node.length
                if length is None:
                    raise MalformedTreeError(f"{node!r} has no edge length")
                if not math.isfinite(length) or length < 0:
                    raise MalformedTreeError(
                        f"{node!r} has invalid edge length {length}"
                    )

            if not node.children and node.name:
                if node.name in labels:
                    raise MalformedTreeError(f"duplicate leaf label '{node.name}'")
                labels.add(node.name)

            for child in node.children:
                if child.parent is not node:
                    raise MalformedTreeError(
                        f"parent pointer of {child!r} does not point to {node!r}"
                    )
                stack.append(child)

    # ------------------------------------------------------------------------
    # Depths, heights and ages
    # ------------------------------------------------------------------------
    def node_depths(self) -> Dict[Self, float]:
        """
        Map every node of this subtree to its distance from this node.

        Call ``validate()`` first on untrusted input; a cyclic structure is
        only detected there.
        """
        depths: Dict[Self, float] = {self: 0.0}
        stack: List[Self] = [self]
        while stack:
            node = stack.pop()
            for child in node.children:
                if child.length is None:
                    raise MalformedTreeError(f"{child!r} has no edge length")
                depths[child] = depths[node] + float(child.length)
                stack.append(child)
        return depths

    def height(self) -> float:
        """Distance from this node to the deepest leaf beneath it."""
        return max(self.node_depths().values())

    def root_height(self) -> float:
        """Height of the root of the tree this node belongs to."""
        return self.get_root().height()

    def depth(self) -> float:
        """Distance from the root to this node."""
        total = 0.0
        seen: Set[int] = set()
        cur = self
        while cur.parent is not None:
            if id(cur) in seen:
                raise MalformedTreeError(f"cycle in parent pointers at {cur!r}")
            seen.add(id(cur))
            if cur.length is None:
                raise MalformedTreeError(f"{cur!r} has no edge length")
            total += float(cur.length)
            cur = cur.parent
        return total

    # ------------------------------------------------------------------------
    # Common ancestry
    # ------------------------------------------------------------------------
    def find_lowest_common_ancestor(self, other: "Node") -> Optional["Node"]:
        """
        Find the lowest common ancestor (LCA) of this node and another node.

        Returns:
            Node representing the LCA, or None if no common ancestor exists
        """
        if self is other:
            return self

        self_ancestors: Set[int] = set()
        current: Optional[Node] = self
        while current is not None:
            self_ancestors.add(id(current))
            current = current.parent

        current = other
        while current is not None:
            if id(current) in self_ancestors:
                return current
            current = current.parent

        return None

    def mrca(self, *taxa: str) -> Optional[Self]:
        """
        Most recent common ancestor of the leaves labelled ``taxa``.

        Returns None when no taxa are given, a taxon is absent from this
        subtree, or the leaves are not connected.
        """
        if not taxa:
            return None
        ancestor: Optional[Node] = self.find_leaf(taxa[0])
        for name in taxa[1:]:
            leaf = self.find_leaf(name)
            if ancestor is None or leaf is None:
                return None
            ancestor = ancestor.find_lowest_common_ancestor(leaf)
        return ancestor  # type: ignore[return-value]

    def is_monophyletic(self, taxa: Iterable[str]) -> bool:
        """True if the leaves under the MRCA of ``taxa`` are exactly ``taxa``."""
        names = set(taxa)
        ancestor = self.mrca(*sorted(names))
        if ancestor is None:
            return False
        return {leaf.name for leaf in ancestor.get_leaves()} == names

    # ------------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------------
    def is_annotated(self) -> bool:
        """True if any node in this subtree carries posterior annotations."""
        return any(node.values for node in self.traverse())

    def annotation(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    # ------------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------------
    def to_newick(self, lengths: bool = True) -> str:
        return self._to_newick(lengths=lengths) + ";"

    def _to_newick(self, lengths: bool = True) -> str:
        meta = ""
        if self.values:
            meta = (
                "[&"
                + ",".join(
                    f"{k}={_format_annotation_value(v)}" for k, v in self.values.items()
                )
                + "]"
            )

        label = _quote_label(self.name)
        if self.children:
            label = (
                "(" + ",".join(ch._to_newick(lengths) for ch in self.children) + ")"
            ) + label

        if lengths and self.length is not None:
            return f"{label}{meta}:{float(self.length):.6f}"
        return f"{label}{meta}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "length": self.length,
            "values": self.values,
            "children": [child.to_dict() for child in self.children],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=4)


def _quote_label(name: str) -> str:
    if name and any(ch in _NEWICK_SPECIAL for ch in name):
        return "'" + name.replace("'", "''") + "'"
    return name


def _format_annotation_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (tuple, list)):
        return "{" + ",".join(_format_annotation_value(v) for v in value) + "}"
    if isinstance(value, str):
        return '"' + value + '"'
    return str(value)
