"""
execution/routing/finder.py

Runs discovery strategies for an intent and collects their outcomes.

Same-chain intents use the same-chain strategies only; cross-chain intents
use all cross-chain strategies. Strategies run concurrently and every one
yields a StrategyOutcome, so a failing strategy simply contributes nothing.
"""
import asyncio
import logging
from typing import List, Sequence

from config.runtime_schema import FusionConfig
from execution.errors import StrategyFailure
from execution.models import Intent, Solution
from execution.reject_reasons import STRATEGY_ERROR
from execution.routing.interfaces import DexAggregator
from execution.routing.strategies import (
    DirectBridgeStrategy,
    SameChainSwapStrategy,
    SolutionStrategy,
    SwapBridgeSwapStrategy,
)
from execution.routing.types import StrategyOutcome

logger = logging.getLogger(__name__)


class SolutionFinder:
    """
    Strategy runner.

    Usage:
        finder = SolutionFinder.default(aggregator)
        outcomes = await finder.run(intent, config, now)
        solutions = SolutionFinder.successful(outcomes)
    """

    def __init__(
        self,
        same_chain: Sequence[SolutionStrategy],
        cross_chain: Sequence[SolutionStrategy],
    ):
        self._same_chain: List[SolutionStrategy] = list(same_chain)
        self._cross_chain: List[SolutionStrategy] = list(cross_chain)

    @classmethod
    def default(cls, aggregator: DexAggregator) -> "SolutionFinder":
        """Finder with the built-in strategies."""
        return cls(
            same_chain=[SameChainSwapStrategy(aggregator)],
            cross_chain=[DirectBridgeStrategy(), SwapBridgeSwapStrategy(aggregator)],
        )

    def strategies_for(self, intent: Intent) -> List[SolutionStrategy]:
        """Select the strategies applicable to intent."""
        if intent.is_cross_chain:
            return list(self._cross_chain)
        return list(self._same_chain)

    async def _run_one(
        self,
        strategy: SolutionStrategy,
        intent: Intent,
        config: FusionConfig,
        now: float,
    ) -> StrategyOutcome:
        try:
            solution = await strategy.find(intent, config, now)
        except StrategyFailure as e:
            logger.warning(f"[finder] {strategy.name} contributed nothing for {intent.id}: {e.reason} ({e})")
            return StrategyOutcome(strategy=strategy.name, reason=e.reason, error=str(e))
        except Exception as e:
            # Unexpected strategy errors become strategy_error outcomes
            logger.warning(f"[finder] {strategy.name} raised for {intent.id}: {e!r}")
            return StrategyOutcome(strategy=strategy.name, reason=STRATEGY_ERROR, error=str(e))

        logger.info(
            f"[finder] {strategy.name} -> {solution.id} "
            f"out={solution.estimated_output} gas={solution.total_gas_cost} steps={len(solution.steps)}"
        )
        return StrategyOutcome(strategy=strategy.name, solution=solution)

    async def run(self, intent: Intent, config: FusionConfig, now: float) -> List[StrategyOutcome]:
        """
        Run every applicable strategy concurrently.

        Returns:
            One outcome per strategy, in strategy order
        """
        strategies = self.strategies_for(intent)
        return list(
            await asyncio.gather(*(self._run_one(s, intent, config, now) for s in strategies))
        )

    @staticmethod
    def successful(outcomes: Sequence[StrategyOutcome]) -> List[Solution]:
        """Keep the solutions of successful outcomes, preserving order."""
        return [o.solution for o in outcomes if o.solution is not None]
