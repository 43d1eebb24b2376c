"""Compare MRCA age distributions of taxon pairs across posterior tree samples."""

import argparse
import logging
import math
import sys
from typing import Dict, List

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from mrca_analyzer.config import AnalysisConfig  # noqa: E402
from mrca_analyzer.exceptions import MrcaAnalyzerError  # noqa: E402
from mrca_analyzer.io import write_summary_csv  # noqa: E402
from mrca_analyzer.pipeline import MrcaAgePipeline, PipelineResult  # noqa: E402
from mrca_analyzer.plot import (  # noqa: E402
    plot_dispersion_scatter,
    plot_mrca_histograms,
    rendering_context,
)


def parse_tree_argument(value: str) -> List[str]:
    name, sep, path = value.partition("=")
    if not sep or not name or not path:
        raise argparse.ArgumentTypeError(f"Expected NAME=PATH, got '{value}'")
    return [name, path]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--trees",
        type=parse_tree_argument,
        action="append",
        required=True,
        metavar="NAME=PATH",
        help="Named Newick or NEXUS tree file; give two or three. "
        "The first is the reference for the dispersion comparison.",
    )
    parser.add_argument(
        "--pair",
        nargs=2,
        action="append",
        required=True,
        metavar=("A", "B"),
        help="Taxon pair to analyse (repeatable)",
    )
    parser.add_argument("--burnin", type=float, default=0.1, help="Burn-in fraction")
    parser.add_argument("--bins", type=int, default=30, help="Histogram bins")
    parser.add_argument(
        "--range",
        type=float,
        nargs=2,
        metavar=("MIN", "MAX"),
        dest="value_range",
        help="Fixed histogram range",
    )
    parser.add_argument(
        "--directly-related",
        action="store_true",
        help="Only count trees where the pair forms a clade on its own",
    )
    parser.add_argument("--workers", type=int, default=1, help="Worker processes")
    parser.add_argument("--plot", help="Write histograms and dispersion plot to PATH")
    parser.add_argument("--summary-csv", help="Write summary statistics to PATH")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def save_figure(result: PipelineResult, path: str) -> None:
    n_pairs = len(result.comparisons)
    with rendering_context():
        fig, axes = plt.subplots(n_pairs + 1, 1, figsize=(8, 4 * (n_pairs + 1)))
        for ax, (key, comparison) in zip(axes, result.comparisons.items()):
            plot_mrca_histograms(comparison, ax=ax, title=f"MRCA({key[0]}, {key[1]})")
        plot_dispersion_scatter(result.dispersion_table, ax=axes[-1])
        fig.tight_layout()
        fig.savefig(path, dpi=150)
        plt.close(fig)


def main() -> int:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    paths: Dict[str, str] = dict(args.trees)
    if not 2 <= len(paths) <= 3:
        print("error: give two or three --trees", file=sys.stderr)
        return 2

    config = AnalysisConfig(
        burnin=args.burnin,
        bins=args.bins,
        value_range=tuple(args.value_range) if args.value_range else None,
        directly_related=args.directly_related,
        workers=args.workers,
        progress=True,
    )
    pipeline = MrcaAgePipeline(config=config)
    try:
        tree_sets = pipeline.load_tree_sets(paths)
        result = pipeline.run(tree_sets, args.pair)
    except (MrcaAnalyzerError, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    summary = result.summary_frame()
    print(summary.to_string(index=False))

    dispersion = result.dispersion
    names = result.set_names
    percent = (
        "n/a" if math.isnan(dispersion.percent_lower) else f"{dispersion.percent_lower:.1f}%"
    )
    print(
        f"\nDispersion lower in '{names[1]}' than in '{names[0]}': {percent}"
        f" ({dispersion.n_lower}/{dispersion.n_compared} pairs)"
    )

    if args.summary_csv:
        write_summary_csv(summary, args.summary_csv)
    if args.plot:
        save_figure(result, args.plot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
