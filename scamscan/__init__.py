"""ScamScan risk aggregation engine."""

from .classifier import ChainFamily, ClassifiedInput, InputKind, classify
from .pipeline.combiner import AggregateResult, Verdict
from .pipeline.engine import RiskEngine

__all__ = [
    "AggregateResult",
    "ChainFamily",
    "ClassifiedInput",
    "InputKind",
    "RiskEngine",
    "Verdict",
    "classify",
]

__version__ = "2.0.0"
