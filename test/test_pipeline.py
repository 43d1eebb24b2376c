import logging
import math

import pytest

from mrca_analyzer import AnalysisConfig, MrcaAgePipeline
from mrca_analyzer.parser.newick_parser import parse_newick
from mrca_analyzer.tree_set import TreeSet


@pytest.fixture
def tree_sets(three_tree_set):
    tight = TreeSet.from_trees(
        parse_newick(
            "((A:100,B:100):50,C:150);((A:110,B:110):40,C:150);((A:105,C:105):45,B:150);",
            force_list=True,
        ),
        name="geo",
    )
    return {"no_geo": three_tree_set, "geo": tight}


def test_run_two_sets(tree_sets):
    pipeline = MrcaAgePipeline(AnalysisConfig(bins=5))
    result = pipeline.run(tree_sets, [("A", "B"), ("B", "A"), ("A", "C")])

    assert result.set_names == ("no_geo", "geo")
    assert list(result.comparisons) == [("A", "B"), ("A", "C")]
    assert list(result.ages["no_geo"][("A", "B")]) == [100.0, 250.0]
    assert list(result.ages["geo"][("A", "B")]) == [100.0, 110.0, 150.0]

    comparison = result.comparisons[("A", "B")]
    assert comparison.labels == ("no_geo", "geo")
    assert len(comparison.bin_edges) == 6

    # SD of {100, 250} is far larger than that of {100, 110, 150}
    assert result.dispersion.n_compared == 2
    assert result.dispersion.n_lower >= 1
    assert len(result.dispersion_table) == 2


def test_run_three_sets(tree_sets, tree_set_without_b):
    sets = dict(tree_sets)
    sets["prior"] = tree_set_without_b
    result = MrcaAgePipeline().run(sets, [("A", "B")])
    comparison = result.comparisons[("A", "B")]
    assert comparison.labels == ("no_geo", "geo", "prior")
    assert comparison.summaries[2].is_empty()


def test_summary_frame(tree_sets):
    result = MrcaAgePipeline().run(tree_sets, [("A", "B")])
    frame = result.summary_frame()
    assert len(frame) == 2
    row = frame[frame["tree_set"] == "no_geo"].iloc[0]
    assert row["n"] == 2
    assert row["skipped"] == 1
    assert row["n_trees"] == 3
    assert row["mean"] == 175.0


def test_directly_related_config(tree_sets):
    config = AnalysisConfig(directly_related=True)
    result = MrcaAgePipeline(config).run(tree_sets, [("A", "C")])
    no_geo = result.ages["no_geo"][("A", "C")]
    # Only the two-taxon tree has A and C alone in a clade
    assert list(no_geo) == [10.0]
    assert math.isnan(result.dispersion.percent_lower)


@pytest.mark.parametrize("count", [1, 4])
def test_requires_two_or_three_sets(three_tree_set, count):
    sets = {f"s{i}": three_tree_set for i in range(count)}
    with pytest.raises(ValueError):
        MrcaAgePipeline().run(sets, [("A", "B")])


def test_requires_pairs(tree_sets):
    with pytest.raises(ValueError):
        MrcaAgePipeline().run(tree_sets, [])


def test_load_tree_sets(data_dir, caplog):
    logger = logging.getLogger("test_pipeline")
    pipeline = MrcaAgePipeline(AnalysisConfig(burnin=0.25), logger=logger)
    with caplog.at_level(logging.INFO, logger="test_pipeline"):
        sets = pipeline.load_tree_sets(
            {
                "nexus": data_dir / "posterior.trees",
                "newick": data_dir / "three_trees.newick",
            }
        )
    assert len(sets["nexus"]) == 3
    assert len(sets["newick"]) == 3
    assert sets["nexus"].name == "nexus"
    assert "Loaded 3 trees for 'nexus'" in caplog.text


def test_default_logger_name():
    pipeline = MrcaAgePipeline()
    assert pipeline.logger.name == "mrca_analyzer.pipeline"
