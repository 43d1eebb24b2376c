from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, List, Literal, Optional, Union

import numpy as np
import pandas as pd

from mrca_analyzer.parser.newick_parser import parse_newick
from mrca_analyzer.parser.nexus_parser import parse_nexus
from mrca_analyzer.tree import Node
from mrca_analyzer.tree_set import TreeSet

if TYPE_CHECKING:
    from mrca_analyzer.comparison import DistributionComparison

PathLike = Union[str, Path]
TreeFormat = Literal["newick", "nexus"]


class AnalysisJSONEncoder(json.JSONEncoder):
    def default(self, o: Any):
        # numpy scalars and arrays from the comparison statistics
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.generic):
            return o.item()
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super().default(o)


def detect_format(text: str) -> TreeFormat:
    return "nexus" if text.lstrip().upper().startswith("#NEXUS") else "newick"


def read_newick(path: PathLike, force_list: bool = False) -> Union[Node, List[Node]]:
    with open(path) as f:
        newick_string: str = f.read()
    return parse_newick(newick_string, force_list=force_list)


def read_nexus(path: PathLike) -> List[Node]:
    with open(path) as f:
        _, trees = parse_nexus(f.read())
    return trees


def read_tree_set(
    path: PathLike,
    burnin: float = 0.0,
    fmt: Optional[TreeFormat] = None,
    name: Optional[str] = None,
    default_length: Optional[float] = 1.0,
) -> TreeSet:
    """
    Read a posterior tree sample from a Newick or NEXUS file.

    Args:
        path: Tree file
        burnin: Leading fraction of trees to discard
        fmt: "newick" or "nexus"; detected from a leading ``#NEXUS`` if omitted
        name: Display name of the set, defaults to the file stem
        default_length: Length given to edges without one. The default of 1.0
            makes ages of topology-only trees count edges; pass None to have
            such trees rejected as malformed during the analysis

    Returns:
        TreeSet with burn-in applied
    """
    with open(path) as f:
        text = f.read()

    fmt = fmt or detect_format(text)
    labels: List[str] = []
    if fmt == "nexus":
        labels, trees = parse_nexus(text, default_length=default_length)
    else:
        parsed = parse_newick(
            text, default_length=default_length, force_list=True
        )
        trees = parsed if isinstance(parsed, list) else [parsed]

    return TreeSet.from_trees(
        trees,
        labels=labels,
        source=str(path),
        burnin=burnin,
        name=name if name is not None else Path(path).stem,
    )


def dump_json(data: Any, f: IO[str]) -> None:
    json.dump(data, f, cls=AnalysisJSONEncoder, indent=2)


def write_comparison_json(comparison: "DistributionComparison", path: PathLike) -> None:
    with open(path, mode="w") as f:
        dump_json(comparison.to_dict(), f)


def write_summary_csv(frame: pd.DataFrame, path: PathLike) -> None:
    frame.to_csv(path, index=False)
