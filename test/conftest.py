import logging
from pathlib import Path

import matplotlib
import pytest

from mrca_analyzer.parser.newick_parser import parse_newick
from mrca_analyzer.tree_set import TreeSet

DATA_DIR = Path(__file__).parent / "data"


def pytest_configure(config):
    """Set up test environment before tests run."""
    # Plotting tests never open a window
    matplotlib.use("Agg")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def three_tree_set() -> TreeSet:
    """A and B present in trees 0 and 2 with MRCA ages 100 and 250; B absent from tree 1."""
    trees = parse_newick((DATA_DIR / "three_trees.newick").read_text(), force_list=True)
    return TreeSet.from_trees(trees, name="three")


@pytest.fixture
def tree_set_without_b() -> TreeSet:
    trees = parse_newick("(A:1,C:1);(A:2,(C:1,D:1):1);", force_list=True)
    return TreeSet.from_trees(trees, name="without_b")
