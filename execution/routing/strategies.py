"""
execution/routing/strategies.py

Solution discovery strategies.

Each strategy turns an Intent into exactly one Solution or raises
StrategyFailure with a canonical reason. Confidence and execution time are
fixed per-strategy heuristics taken from config, not live data.

- SameChainSwapStrategy: one aggregator swap on the intent's chain
- DirectBridgeStrategy: one 1:1 bridge transfer to the destination chain
- SwapBridgeSwapStrategy: swap to an intermediate stable, bridge it, swap out
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Sequence

from config.runtime_schema import FusionConfig
from execution.errors import StrategyFailure
from execution.models import (
    ExecutionStep,
    Intent,
    Solution,
    StepType,
    generate_id,
    parse_amount,
)
from execution.reject_reasons import (
    INTERMEDIATE_TOKEN_MISSING,
    INVALID_QUOTE,
    QUOTE_FAILED,
    QUOTE_TIMEOUT,
)
from execution.routing.interfaces import DexAggregator
from execution.routing.types import AggregatorQuote, QuoteOptions

logger = logging.getLogger(__name__)


class SolutionStrategy(ABC):
    """Base class for discovery strategies."""

    name: str = ""

    @abstractmethod
    async def find(self, intent: Intent, config: FusionConfig, now: float) -> Solution:
        """
        Build a solution for intent.

        Raises:
            StrategyFailure: If this strategy cannot serve the intent
        """
        ...

    def _build_solution(
        self,
        intent: Intent,
        config: FusionConfig,
        now: float,
        steps: Sequence[ExecutionStep],
        confidence: float,
        execution_time: int,
    ) -> Solution:
        # Python ints are arbitrary precision, so large gas values sum exactly
        total_gas = sum((step.gas_estimate for step in steps), 0)
        return Solution(
            id=generate_id("solution", now),
            intent_id=intent.id,
            solver=config.solver_id,
            steps=tuple(steps),
            estimated_output=steps[-1].estimated_output,
            total_gas_cost=total_gas,
            execution_time=execution_time,
            confidence=confidence,
            created_at=now,
            strategy=self.name,
        )


class QuotingStrategy(SolutionStrategy):
    """Strategy that prices swap legs through a DEX aggregator."""

    def __init__(self, aggregator: DexAggregator):
        self.aggregator = aggregator

    async def _quote(
        self,
        config: FusionConfig,
        chain_id: int,
        input_token: str,
        output_token: str,
        amount: str,
    ) -> AggregatorQuote:
        options = QuoteOptions(slippage=config.slippage_pct, include_gas=True)
        try:
            quote = await asyncio.wait_for(
                self.aggregator.get_quote(chain_id, input_token, output_token, amount, options),
                timeout=config.quote_timeout_sec,
            )
        except asyncio.TimeoutError:
            raise StrategyFailure(
                QUOTE_TIMEOUT,
                f"quote {input_token}->{output_token} on chain {chain_id} timed out after {config.quote_timeout_sec}s",
            )
        except Exception as e:
            raise StrategyFailure(QUOTE_FAILED, f"quote {input_token}->{output_token} on chain {chain_id} failed: {e}")

        if quote is None:
            raise StrategyFailure(QUOTE_FAILED, f"no quote for {input_token}->{output_token} on chain {chain_id}")

        try:
            out_amount = parse_amount(quote.to_token_amount)
            gas = int(quote.estimated_gas)
        except (AttributeError, TypeError, ValueError) as e:
            raise StrategyFailure(INVALID_QUOTE, f"malformed quote on chain {chain_id}: {e}")
        if out_amount <= 0 or gas < 0:
            raise StrategyFailure(
                INVALID_QUOTE,
                f"quote on chain {chain_id} has out={quote.to_token_amount} gas={quote.estimated_gas}",
            )

        return AggregatorQuote(to_token_amount=str(quote.to_token_amount), estimated_gas=gas)


class SameChainSwapStrategy(QuotingStrategy):
    """Single aggregator swap when source and destination chains match."""

    name = "same_chain_swap"

    async def find(self, intent: Intent, config: FusionConfig, now: float) -> Solution:
        quote = await self._quote(
            config, intent.input_chain, intent.input_token, intent.output_token, intent.input_amount
        )

        step = ExecutionStep(
            step_type=StepType.SWAP,
            chain=intent.input_chain,
            protocol=config.swap_protocol,
            input_token=intent.input_token,
            output_token=intent.output_token,
            estimated_input=intent.input_amount,
            estimated_output=quote.to_token_amount,
            gas_estimate=quote.estimated_gas,
        )
        return self._build_solution(
            intent,
            config,
            now,
            [step],
            confidence=config.same_chain_confidence,
            execution_time=config.same_chain_execution_time_sec,
        )


class DirectBridgeStrategy(SolutionStrategy):
    """
    Bridge the input token straight to the destination chain.

    Assumes the output token is the bridge's wrapped counterpart of the input
    token, so the estimated output equals the input amount.
    """

    name = "direct_bridge"

    async def find(self, intent: Intent, config: FusionConfig, now: float) -> Solution:
        step = ExecutionStep(
            step_type=StepType.BRIDGE,
            chain=intent.input_chain,
            protocol=config.bridge_protocol,
            input_token=intent.input_token,
            output_token=intent.output_token,
            estimated_input=intent.input_amount,
            estimated_output=intent.input_amount,
            gas_estimate=config.bridge_gas_estimate,
            dest_chain=intent.output_chain,
        )
        return self._build_solution(
            intent,
            config,
            now,
            [step],
            confidence=config.direct_bridge_confidence,
            execution_time=config.direct_bridge_execution_time_sec,
        )


class SwapBridgeSwapStrategy(QuotingStrategy):
    """
    Route through chain-local intermediate stable tokens.

    Steps:
    1. Swap input_token -> source stable on the input chain
    2. Bridge source stable -> destination stable
    3. Swap destination stable -> output_token on the output chain
    """

    name = "swap_bridge_swap"

    async def find(self, intent: Intent, config: FusionConfig, now: float) -> Solution:
        source_stable = config.intermediate_token(intent.input_chain)
        target_stable = config.intermediate_token(intent.output_chain)
        if not source_stable or not target_stable:
            missing = [c for c, t in ((intent.input_chain, source_stable), (intent.output_chain, target_stable)) if not t]
            raise StrategyFailure(
                INTERMEDIATE_TOKEN_MISSING,
                f"no intermediate token configured for chain(s) {missing}",
            )

        to_stable = await self._quote(
            config, intent.input_chain, intent.input_token, source_stable, intent.input_amount
        )
        # Bridge leg is 1:1, so the destination swap is quoted on the stable amount
        from_stable = await self._quote(
            config, intent.output_chain, target_stable, intent.output_token, to_stable.to_token_amount
        )

        steps = [
            ExecutionStep(
                step_type=StepType.SWAP,
                chain=intent.input_chain,
                protocol=config.swap_protocol,
                input_token=intent.input_token,
                output_token=source_stable,
                estimated_input=intent.input_amount,
                estimated_output=to_stable.to_token_amount,
                gas_estimate=to_stable.estimated_gas,
            ),
            ExecutionStep(
                step_type=StepType.BRIDGE,
                chain=intent.input_chain,
                protocol=config.bridge_protocol,
                input_token=source_stable,
                output_token=target_stable,
                estimated_input=to_stable.to_token_amount,
                estimated_output=to_stable.to_token_amount,
                gas_estimate=config.bridge_gas_estimate,
                dest_chain=intent.output_chain,
            ),
            ExecutionStep(
                step_type=StepType.SWAP,
                chain=intent.output_chain,
                protocol=config.swap_protocol,
                input_token=target_stable,
                output_token=intent.output_token,
                estimated_input=to_stable.to_token_amount,
                estimated_output=from_stable.to_token_amount,
                gas_estimate=from_stable.estimated_gas,
            ),
        ]
        return self._build_solution(
            intent,
            config,
            now,
            steps,
            confidence=config.swap_bridge_swap_confidence,
            execution_time=config.swap_bridge_swap_execution_time_sec,
        )
