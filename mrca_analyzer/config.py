from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class AnalysisConfig:
    """Configuration for MRCA age comparison runs."""

    burnin: float = 0.1
    bins: int = 30
    value_range: Optional[Tuple[float, float]] = None
    directly_related: bool = False
    workers: int = 1
    progress: bool = False
    logger_name: str = "mrca_analyzer.pipeline"
