"""
MRCA age distributions over posterior tree samples.

For a pair of taxa, every tree of a sample contributes at most one value: the
age of the most recent common ancestor of the two leaves, measured as root
height minus the depth of the MRCA (time between the MRCA and the most recent
tip). Trees that cannot answer the question are skipped and counted, never
turned into zeros or errors.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
    overload,
)

import numpy as np
from numpy.typing import NDArray
from tqdm import tqdm

from mrca_analyzer.exceptions import MalformedTreeError
from mrca_analyzer.tree import Node

logger = logging.getLogger(__name__)

PairKey = Tuple[str, str]


def pair_key(taxon_a: str, taxon_b: str) -> PairKey:
    """Order-independent identifier of a taxon pair."""
    first, second = sorted((taxon_a, taxon_b))
    return (first, second)


class SkipReason(Enum):
    MISSING_TAXON = "missing_taxon"
    NO_MRCA = "no_mrca"
    NOT_DIRECTLY_RELATED = "not_directly_related"


@dataclass(frozen=True)
class MrcaAgeResult(Sequence[float]):
    """
    Ages of the MRCA of one taxon pair across a tree sample.

    Behaves as a read-only sequence of ages in input tree order.
    ``tree_indices[i]`` is the position of the tree that produced ``ages[i]``
    and ``skipped`` counts the trees that produced nothing, by reason.
    """

    taxon_a: str
    taxon_b: str
    ages: Tuple[float, ...]
    tree_indices: Tuple[int, ...]
    n_trees: int
    skipped: Dict[SkipReason, int] = field(default_factory=dict, hash=False)
    directly_related: bool = False

    @overload
    def __getitem__(self, index: int) -> float: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[float, ...]: ...

    def __getitem__(self, index: Union[int, slice]) -> Union[float, Tuple[float, ...]]:
        return self.ages[index]

    def __len__(self) -> int:
        return len(self.ages)

    @property
    def key(self) -> PairKey:
        return pair_key(self.taxon_a, self.taxon_b)

    @property
    def skipped_count(self) -> int:
        return sum(self.skipped.values())

    def is_empty(self) -> bool:
        return not self.ages

    def to_numpy(self) -> NDArray[np.float64]:
        return np.asarray(self.ages, dtype=float)


# Outcome of one tree: (tree index, age or None, reason when skipped)
TreeOutcome = Tuple[int, Optional[float], Optional[SkipReason]]


def mrca_age(
    tree: Node, taxon_a: str, taxon_b: str, directly_related: bool = False
) -> Tuple[Optional[float], Optional[SkipReason]]:
    """
    Age of the MRCA of two taxa in a single tree.

    Returns:
        (age, None) when defined, otherwise (None, reason)

    Raises:
        MalformedTreeError: If the tree structure is inconsistent
    """
    tree.validate()

    if tree.find_leaf(taxon_a) is None or tree.find_leaf(taxon_b) is None:
        return None, SkipReason.MISSING_TAXON

    ancestor = tree.mrca(taxon_a, taxon_b)
    if ancestor is None:
        return None, SkipReason.NO_MRCA

    if directly_related:
        clade = {leaf.name for leaf in ancestor.get_leaves()}
        if clade != {taxon_a, taxon_b}:
            return None, SkipReason.NOT_DIRECTLY_RELATED

    depths = tree.node_depths()
    root_height = max(depths.values())
    return root_height - depths[ancestor], None


def _evaluate_tree(
    index: int, tree: Node, taxon_a: str, taxon_b: str, directly_related: bool
) -> TreeOutcome:
    try:
        age, reason = mrca_age(tree, taxon_a, taxon_b, directly_related)
    except MalformedTreeError as e:
        raise MalformedTreeError(e.detail, tree_index=index) from e
    return index, age, reason


def _evaluate_all(
    trees: List[Node],
    taxon_a: str,
    taxon_b: str,
    directly_related: bool,
    workers: int,
    progress: bool,
) -> List[TreeOutcome]:
    desc = f"MRCA({taxon_a}, {taxon_b})"
    if workers == 1 or len(trees) < 2:
        return [
            _evaluate_tree(i, tree, taxon_a, taxon_b, directly_related)
            for i, tree in enumerate(tqdm(trees, desc=desc, disable=not progress))
        ]

    outcomes: List[TreeOutcome] = []
    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(
                _evaluate_tree, i, tree, taxon_a, taxon_b, directly_related
            )
            for i, tree in enumerate(trees)
        ]
        for f in tqdm(
            as_completed(futures), total=len(futures), desc=desc, disable=not progress
        ):
            outcomes.append(f.result())
    # Completion order is arbitrary; restore input order
    outcomes.sort(key=lambda outcome: outcome[0])
    return outcomes


def _compute(
    tree_set: Iterable[Node],
    taxon_a: str,
    taxon_b: str,
    directly_related: bool,
    workers: int,
    progress: bool,
) -> MrcaAgeResult:
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    trees = list(tree_set)
    outcomes = _evaluate_all(
        trees, taxon_a, taxon_b, directly_related, workers, progress
    )

    ages: List[float] = []
    indices: List[int] = []
    skipped: Counter[SkipReason] = Counter()
    for index, age, reason in outcomes:
        if age is None:
            if reason is not None:
                skipped[reason] += 1
            continue
        ages.append(age)
        indices.append(index)

    result = MrcaAgeResult(
        taxon_a=taxon_a,
        taxon_b=taxon_b,
        ages=tuple(ages),
        tree_indices=tuple(indices),
        n_trees=len(trees),
        skipped=dict(skipped),
        directly_related=directly_related,
    )
    _log_result(result)
    return result


def _log_result(result: MrcaAgeResult) -> None:
    logger.info(
        f"MRCA({result.taxon_a}, {result.taxon_b}): {len(result)} of "
        f"{result.n_trees} trees yielded an age, {result.skipped_count} skipped"
    )
    for reason, count in result.skipped.items():
        logger.debug(f"  {reason.value}: {count}")
    if result.is_empty() and result.n_trees:
        logger.warning(
            f"No tree yielded an MRCA age for {result.taxon_a} and {result.taxon_b}"
        )


# ===================================================================
# PUBLIC API
# ===================================================================


def compute_mrca_ages(
    tree_set: Iterable[Node],
    taxon_a: str,
    taxon_b: str,
    workers: int = 1,
    progress: bool = False,
) -> MrcaAgeResult:
    """
    MRCA age of ``taxon_a`` and ``taxon_b`` in every tree that contains both.

    Args:
        tree_set: TreeSet or any sequence of trees
        taxon_a: First leaf label
        taxon_b: Second leaf label
        workers: Worker processes; 1 evaluates in the calling process
        progress: Show a tqdm progress bar

    Returns:
        MrcaAgeResult with one age per contributing tree, in input order

    Raises:
        MalformedTreeError: If any tree has an inconsistent structure
    """
    return _compute(tree_set, taxon_a, taxon_b, False, workers, progress)


def compute_mrca_if_directly_related(
    tree_set: Iterable[Node],
    taxon_a: str,
    taxon_b: str,
    workers: int = 1,
    progress: bool = False,
) -> MrcaAgeResult:
    """
    Like :func:`compute_mrca_ages`, restricted to trees where the two taxa
    form a clade on their own (the MRCA has no other descendant leaves).
    """
    return _compute(tree_set, taxon_a, taxon_b, True, workers, progress)


def compute_pairwise_mrca_ages(
    tree_set: Iterable[Node],
    pairs: Iterable[Tuple[str, str]],
    directly_related: bool = False,
    workers: int = 1,
    progress: bool = False,
) -> Dict[PairKey, MrcaAgeResult]:
    """
    Run the MRCA age computation for several taxon pairs.

    Pairs are deduplicated by :func:`pair_key`, so (A, B) and (B, A) are
    computed once.
    """
    trees = list(tree_set)
    results: Dict[PairKey, MrcaAgeResult] = {}
    for taxon_a, taxon_b in pairs:
        key = pair_key(taxon_a, taxon_b)
        if key in results:
            continue
        results[key] = _compute(
            trees, key[0], key[1], directly_related, workers, progress
        )
    return results
