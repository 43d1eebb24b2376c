"""MRCA age distribution analysis for posterior tree samples."""

__all__ = [
    "Node",
    "TreeSet",
    "AnalysisConfig",
    "MrcaAgePipeline",
    "PipelineResult",
    "MrcaAgeResult",
    "compute_mrca_ages",
    "compute_mrca_if_directly_related",
    "compare_distributions",
    "compare_dispersion",
]


def __getattr__(name):
    if name == "Node":
        from .tree import Node

        return Node
    if name == "TreeSet":
        from .tree_set import TreeSet

        return TreeSet
    if name == "AnalysisConfig":
        from .config import AnalysisConfig

        return AnalysisConfig
    if name in {"MrcaAgePipeline", "PipelineResult"}:
        from .pipeline import MrcaAgePipeline, PipelineResult

        return locals()[name]
    if name in {
        "MrcaAgeResult",
        "compute_mrca_ages",
        "compute_mrca_if_directly_related",
    }:
        from .mrca_ages import (
            MrcaAgeResult,
            compute_mrca_ages,
            compute_mrca_if_directly_related,
        )

        return locals()[name]
    if name in {"compare_distributions", "compare_dispersion"}:
        from .comparison import compare_distributions, compare_dispersion

        return locals()[name]
    raise AttributeError(name)
