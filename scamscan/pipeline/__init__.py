"""Request orchestration and risk combination."""

from .combiner import AggregateResult, Verdict, WarningList, apply_overrides, verdict_for
from .engine import RiskEngine

__all__ = [
    "AggregateResult",
    "RiskEngine",
    "Verdict",
    "WarningList",
    "apply_overrides",
    "verdict_for",
]
