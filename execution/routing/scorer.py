"""
execution/routing/scorer.py

Multi-objective solution scoring.

score = output / output_divisor
        - gas / gas_divisor
        - execution_time_minutes
        + confidence * confidence_weight

With the default weights confidence dominates: a lower-confidence plan has
to be much better on output, gas and time to beat a higher-confidence one.
"""
from decimal import Decimal
from typing import Optional, Sequence

from config.runtime_schema import FusionConfig
from execution.models import Solution


class SolutionScorer:
    """Scores solutions and picks the best one."""

    def __init__(self, config: FusionConfig):
        self.config = config

    def score(self, solution: Solution) -> float:
        """Compute the weighted score of a solution."""
        cfg = self.config
        output_score = float(Decimal(solution.estimated_output) / Decimal(repr(cfg.score_output_divisor)))
        gas_score = -float(Decimal(solution.total_gas_cost) / Decimal(repr(cfg.score_gas_divisor)))
        time_score = -solution.execution_time / 60.0
        confidence_score = solution.confidence * cfg.score_confidence_weight

        return output_score + gas_score + time_score + confidence_score

    def best(self, solutions: Sequence[Solution]) -> Optional[Solution]:
        """
        Return the highest-scoring solution.

        Left fold: a later solution replaces the current best only when its
        score is strictly greater, so the first seen wins exact ties.
        """
        best: Optional[Solution] = None
        best_score = 0.0
        for solution in solutions:
            current = self.score(solution)
            if best is None or current > best_score:
                best, best_score = solution, current
        return best
