"""Posterior tree samples."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Iterator, Optional, Sequence, Tuple

from mrca_analyzer.tree import Node

logger = logging.getLogger(__name__)


def burnin_count(n_trees: int, fraction: float) -> int:
    """
    Number of leading trees discarded for a burn-in ``fraction``.

    Raises:
        ValueError: If fraction is outside [0, 1)
    """
    if not 0.0 <= fraction < 1.0:
        raise ValueError(f"Burn-in fraction must be in [0, 1), got {fraction}")
    return int(n_trees * fraction)


@dataclass(frozen=True)
class TreeSet:
    """
    Immutable ordered sample of trees over the same taxa.

    ``labels`` holds the tree names from the source file (e.g. ``STATE_1000``)
    when known; ``burnin_discarded`` counts trees already dropped as burn-in.
    """

    trees: Tuple[Node, ...]
    labels: Tuple[str, ...] = ()
    source: Optional[str] = None
    burnin_discarded: int = 0
    name: str = field(default="", compare=False)

    def __post_init__(self):
        if self.labels and len(self.labels) != len(self.trees):
            raise ValueError(
                f"Got {len(self.labels)} labels for {len(self.trees)} trees"
            )

    @classmethod
    def from_trees(
        cls,
        trees: Iterable[Node],
        labels: Optional[Sequence[str]] = None,
        source: Optional[str] = None,
        burnin: float = 0.0,
        name: str = "",
    ) -> "TreeSet":
        """Build a tree set, discarding the leading ``burnin`` fraction of trees."""
        tree_tuple = tuple(trees)
        label_tuple = tuple(labels) if labels else ()
        skip = burnin_count(len(tree_tuple), burnin)
        if skip:
            logger.info(
                f"Discarding {skip} of {len(tree_tuple)} trees as burn-in"
                + (f" from {source}" if source else "")
            )
        return cls(
            trees=tree_tuple[skip:],
            labels=label_tuple[skip:],
            source=source,
            burnin_discarded=skip,
            name=name,
        )

    def with_burnin(self, fraction: float) -> "TreeSet":
        """Return a new tree set with a further leading ``fraction`` removed."""
        skip = burnin_count(len(self.trees), fraction)
        return TreeSet(
            trees=self.trees[skip:],
            labels=self.labels[skip:],
            source=self.source,
            burnin_discarded=self.burnin_discarded + skip,
            name=self.name,
        )

    def __len__(self) -> int:
        return len(self.trees)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.trees)

    def __getitem__(self, index: int) -> Node:
        return self.trees[index]

    @property
    def taxa(self) -> FrozenSet[str]:
        """Union of leaf labels over all trees."""
        return frozenset(
            leaf.name for tree in self.trees for leaf in tree.get_leaves() if leaf.name
        )

    def is_annotated(self) -> bool:
        """True if any tree carries posterior annotations."""
        return any(tree.is_annotated() for tree in self.trees)
