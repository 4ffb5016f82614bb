"""execution/step_executor.py

Sequential execution of a solution's steps.

HARD RULES:
- Steps run strictly in order; step i+1 receives step i's actual output
- The first failing step stops the loop; later steps are never dispatched
- Dispatched steps are final: no rollback, no compensating transactions
- Step failures are reported in the ExecutionResult, never raised
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from config.runtime_schema import FusionConfig
from execution.errors import StepExecutionFailure, UnsupportedStepType
from execution.models import (
    ExecutedStep,
    ExecutionResult,
    ExecutionStep,
    Intent,
    Solution,
    StepType,
    parse_amount,
)
from execution.reject_reasons import (
    BRIDGE_FAILED,
    BRIDGE_TARGET_MISSING,
    INVALID_RECEIPT,
    STEP_TIMEOUT,
    STEP_UNSUPPORTED,
    SWAP_FAILED,
)
from execution.routing.interfaces import BridgeClient, DexAggregator
from execution.routing.types import SwapOptions

logger = logging.getLogger(__name__)


class StepExecutor:
    """
    Executes solutions against the aggregator and bridge collaborators.

    Usage:
        executor = StepExecutor(aggregator, bridge)
        result = await executor.execute(intent, solution, signer, config)
    """

    def __init__(
        self,
        aggregator: DexAggregator,
        bridge: BridgeClient,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.aggregator = aggregator
        self.bridge = bridge
        self.clock = clock or time.time

    async def execute(
        self,
        intent: Intent,
        solution: Solution,
        signer: Any,
        config: FusionConfig,
        executed: Optional[List[ExecutedStep]] = None,
    ) -> ExecutionResult:
        """
        Run all steps of solution, threading amounts between them.

        Args:
            intent: Intent being executed (supplies the first input amount and recipient)
            solution: Plan to execute
            signer: Opaque credential passed through to collaborators
            config: Config snapshot for timeouts and slippage
            executed: Optional list that receives each step as soon as it lands,
                so a caller can still see the prefix if execution is cancelled

        Returns:
            ExecutionResult; success=False carries the executed prefix and the error
        """
        if executed is None:
            executed = []
        current_amount = intent.input_amount
        total = len(solution.steps)

        for index, step in enumerate(solution.steps):
            step_number = index + 1
            logger.info(
                f"[executor] {intent.id} step {step_number}/{total}: "
                f"{step.step_type.value} {step.input_token} -> {step.output_token} "
                f"on chain {step.chain} amount={current_amount}"
            )
            try:
                executed_step = await self._execute_step(
                    step_number, step, current_amount, intent, signer, config
                )
            except StepExecutionFailure as e:
                logger.error(
                    f"[executor] {intent.id} step {step_number}/{total} failed "
                    f"({e.reason}): {e}. {len(executed)} step(s) already final."
                )
                return ExecutionResult(
                    intent_id=intent.id,
                    solution_id=solution.id,
                    success=False,
                    executed_steps=list(executed),
                    total_gas_used=sum((s.gas_used for s in executed), 0),
                    error=str(e),
                    failed_step=e.step_number,
                    reason=e.reason,
                )

            executed.append(executed_step)
            current_amount = executed_step.actual_output

        return ExecutionResult(
            intent_id=intent.id,
            solution_id=solution.id,
            success=True,
            executed_steps=list(executed),
            actual_output=current_amount,
            total_gas_used=sum((s.gas_used for s in executed), 0),
        )

    async def _execute_step(
        self,
        step_number: int,
        step: ExecutionStep,
        amount: str,
        intent: Intent,
        signer: Any,
        config: FusionConfig,
    ) -> ExecutedStep:
        handlers: Dict[StepType, Callable] = {
            StepType.SWAP: self._execute_swap,
            StepType.BRIDGE: self._execute_bridge,
        }
        handler = handlers.get(step.step_type)
        try:
            if handler is None:
                raise UnsupportedStepType(f"step type {step.step_type.value} is not supported")
            return await asyncio.wait_for(
                handler(step_number, step, amount, intent, signer, config),
                timeout=config.step_timeout_sec,
            )
        except StepExecutionFailure:
            raise
        except UnsupportedStepType as e:
            raise StepExecutionFailure(step_number, STEP_UNSUPPORTED, str(e), cause=e)
        except asyncio.TimeoutError as e:
            raise StepExecutionFailure(
                step_number,
                STEP_TIMEOUT,
                f"{step.step_type.value} step timed out after {config.step_timeout_sec}s",
                cause=e,
            )
        except Exception as e:
            reason = SWAP_FAILED if step.step_type == StepType.SWAP else BRIDGE_FAILED
            raise StepExecutionFailure(step_number, reason, f"{step.step_type.value} failed: {e}", cause=e)

    async def _execute_swap(
        self,
        step_number: int,
        step: ExecutionStep,
        amount: str,
        intent: Intent,
        signer: Any,
        config: FusionConfig,
    ) -> ExecutedStep:
        receipt = await self.aggregator.execute_swap(
            step.chain,
            step.input_token,
            step.output_token,
            amount,
            signer,
            SwapOptions(slippage=config.slippage_pct),
        )
        actual_output = self._checked_amount(step_number, receipt.output_amount)
        return ExecutedStep(
            step_number=step_number,
            tx_hash=receipt.tx_hash,
            gas_used=int(receipt.gas_used or 0),
            actual_output=actual_output,
            timestamp=self.clock(),
        )

    async def _execute_bridge(
        self,
        step_number: int,
        step: ExecutionStep,
        amount: str,
        intent: Intent,
        signer: Any,
        config: FusionConfig,
    ) -> ExecutedStep:
        if step.dest_chain is None:
            raise StepExecutionFailure(
                step_number, BRIDGE_TARGET_MISSING, f"bridge step on chain {step.chain} has no destination chain"
            )
        recipient = intent.recipient or intent.user
        receipt = await self.bridge.bridge_tokens(
            step.chain,
            step.dest_chain,
            step.input_token,
            amount,
            recipient,
            signer,
        )
        # Bridge transfers are 1:1; the released amount equals the locked amount
        return ExecutedStep(
            step_number=step_number,
            tx_hash=receipt.lock_tx,
            gas_used=int(receipt.gas_used or 0),
            actual_output=amount,
            timestamp=self.clock(),
        )

    @staticmethod
    def _checked_amount(step_number: int, value: Any) -> str:
        try:
            amount = parse_amount(value)
        except ValueError as e:
            raise StepExecutionFailure(step_number, INVALID_RECEIPT, f"receipt output is invalid: {e}")
        if amount < 0:
            raise StepExecutionFailure(step_number, INVALID_RECEIPT, f"receipt output is negative: {value}")
        return str(value)
