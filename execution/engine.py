"""execution/engine.py

Intent-based cross-chain execution engine.

Lifecycle:
    Created -> FindingSolutions -> SolutionsFound -> Executing -> Completed | Failed
    Any non-Completed status -> Expired (via the reaper, once the deadline passes)

HARD RULES:
- One engine per process, constructed explicitly and passed by reference
- Status changes for one intent are serialized by that intent's lock
- No lock is held while waiting on aggregator or bridge I/O
- Lookup errors are raised before any state mutation
- Completed is terminal
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from config.runtime_schema import FusionConfig
from execution.errors import (
    AlreadyExecuting,
    IntentStateError,
    NotFoundError,
    ValidationError,
)
from execution.intent_store import InMemoryIntentStore, IntentStore
from execution.models import (
    ExecutedStep,
    ExecutionResult,
    Intent,
    IntentStatus,
    Solution,
    generate_id,
    parse_amount,
)
from execution.reaper import ExpiryReaper
from execution.routing.finder import SolutionFinder
from execution.routing.interfaces import BridgeClient, DexAggregator
from execution.routing.scorer import SolutionScorer
from execution.routing.types import StrategyOutcome
from execution.step_executor import StepExecutor

logger = logging.getLogger(__name__)


def log_transition(intent_id: str, old_status: IntentStatus, new_status: IntentStatus, reason: str) -> None:
    """Log intent state transition."""
    logger.info(
        f"[fusion] Transition: {intent_id} "
        f"{old_status.value} -> {new_status.value} "
        f"(reason: {reason})"
    )


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value.strip()


def _require_chain(name: str, value: Any) -> int:
    if value is None:
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer chain id, got {value!r}")
    return value


def _aborted_result(intent_id: str, solution_id: str, executed: List[ExecutedStep], error: str) -> ExecutionResult:
    return ExecutionResult(
        intent_id=intent_id,
        solution_id=solution_id,
        success=False,
        executed_steps=list(executed),
        total_gas_used=sum((s.gas_used for s in executed), 0),
        error=error,
        failed_step=len(executed) + 1,
    )


class FusionEngine:
    """
    Entry point for intent creation, discovery, scoring, execution and expiry.

    Usage:
        engine = FusionEngine(aggregator=agg, bridge=bridge, config_provider=reloader.get_config)

        intent_id = await engine.create_intent("ETH", "USDC", "1.0", "1800", 1, 137, user="0xabc")
        best = engine.get_best_solution(intent_id)
        result = await engine.execute_intent(intent_id, best.id, signer)

        await engine.cleanup_expired_intents()
    """

    def __init__(
        self,
        aggregator: DexAggregator,
        bridge: BridgeClient,
        store: Optional[IntentStore] = None,
        config: Optional[FusionConfig] = None,
        config_provider: Optional[Callable[[], FusionConfig]] = None,
        finder: Optional[SolutionFinder] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the engine.

        Args:
            aggregator: DEX aggregator used for quotes and swaps
            bridge: Bridge client used for bridge steps
            store: Intent repository (in-memory if omitted)
            config: Static config (ignored when config_provider is given)
            config_provider: Callable returning the current config, e.g. ConfigReloader.get_config
            finder: Strategy runner (built-in strategies if omitted)
            clock: Callable returning epoch seconds (defaults to time.time)
        """
        self.store = store or InMemoryIntentStore()
        self.clock = clock or time.time

        static_config = config or FusionConfig()
        self._config_provider = config_provider or (lambda: static_config)

        self.finder = finder or SolutionFinder.default(aggregator)
        self.executor = StepExecutor(aggregator, bridge, clock=self.clock)
        self.reaper = ExpiryReaper(self)

        self._locks: Dict[str, asyncio.Lock] = {}
        self._locks_guard = threading.Lock()
        self._outcomes: Dict[str, List[StrategyOutcome]] = {}

    @property
    def config(self) -> FusionConfig:
        """Current config snapshot."""
        return self._config_provider()

    def _lock_for(self, intent_id: str) -> asyncio.Lock:
        with self._locks_guard:
            lock = self._locks.get(intent_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[intent_id] = lock
            return lock

    def _require_intent(self, intent_id: str) -> Intent:
        intent = self.store.get_intent(intent_id)
        if intent is None:
            raise NotFoundError(f"Intent {intent_id} not found")
        return intent

    def _set_status(self, intent: Intent, new_status: IntentStatus, reason: str) -> Intent:
        """Replace the stored intent with one in new_status. Caller holds the intent lock."""
        updated = dataclasses.replace(intent, status=new_status)
        self.store.put_intent(updated)
        log_transition(intent.id, intent.status, new_status, reason)
        return updated

    async def transition(
        self,
        intent_id: str,
        new_status: IntentStatus,
        reason: str,
        unless: Iterable[IntentStatus] = (),
    ) -> bool:
        """
        Move an intent to new_status under its lock.

        Returns:
            False if the intent is already in new_status or in one of the unless statuses
        """
        async with self._lock_for(intent_id):
            intent = self._require_intent(intent_id)
            if intent.status == new_status or intent.status in tuple(unless):
                return False
            self._set_status(intent, new_status, reason)
            return True

    # ------------------------------------------------------------------
    # Creation and discovery
    # ------------------------------------------------------------------

    async def create_intent(
        self,
        input_token: str,
        output_token: str,
        input_amount: str,
        min_output_amount: str,
        input_chain: int,
        output_chain: int,
        user: str,
        deadline: Optional[float] = None,
        recipient: Optional[str] = None,
    ) -> str:
        """
        Validate and store a new intent, then discover solutions for it.

        Discovery completes before this returns, so the intent is already
        SolutionsFound (possibly with zero solutions).

        Args:
            input_token: Token to convert from
            output_token: Token to convert into
            input_amount: Positive decimal amount
            min_output_amount: Non-negative decimal amount
            input_chain: Source chain id
            output_chain: Destination chain id
            user: User identifier
            deadline: Absolute expiry (epoch seconds); defaults to now + default_deadline_sec
            recipient: Optional destination recipient

        Returns:
            The new intent id.

        Raises:
            ValidationError: On invalid parameters
        """
        cfg = self.config
        now = self.clock()

        input_token = _require_text("input_token", input_token)
        output_token = _require_text("output_token", output_token)
        user = _require_text("user", user)
        input_chain = _require_chain("input_chain", input_chain)
        output_chain = _require_chain("output_chain", output_chain)

        try:
            amount = parse_amount(input_amount)
            min_output = parse_amount(min_output_amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if amount <= 0:
            raise ValidationError(f"input_amount must be positive, got {input_amount}")
        if min_output < 0:
            raise ValidationError(f"min_output_amount must not be negative, got {min_output_amount}")

        if deadline is None:
            deadline = now + cfg.default_deadline_sec
        if deadline <= now:
            raise ValidationError(f"deadline {deadline} must be after creation time {now}")

        intent = Intent(
            id=generate_id("intent", now),
            user=user,
            input_token=input_token,
            output_token=output_token,
            input_amount=str(input_amount).strip(),
            min_output_amount=str(min_output_amount).strip(),
            input_chain=input_chain,
            output_chain=output_chain,
            deadline=float(deadline),
            recipient=recipient,
            status=IntentStatus.CREATED,
            created_at=now,
        )

        async with self._lock_for(intent.id):
            self.store.put_intent(intent)

        logger.info(
            f"[fusion] Created intent {intent.id}: {intent.input_amount} {input_token} on chain {input_chain} "
            f"-> {output_token} on chain {output_chain} (min {intent.min_output_amount})"
        )

        await self.find_solutions(intent.id)
        return intent.id

    async def find_solutions(self, intent_id: str) -> List[Solution]:
        """
        Run discovery for an intent and store the resulting solutions.

        Ends in SolutionsFound, even when no strategy succeeds, unless the
        intent was executed or expired while discovery was running.

        Raises:
            NotFoundError: Unknown intent id
            AlreadyExecuting: Intent is currently executing
            IntentStateError: Intent is already completed
        """
        self._require_intent(intent_id)
        cfg = self.config

        async with self._lock_for(intent_id):
            intent = self._require_intent(intent_id)
            if intent.status == IntentStatus.EXECUTING:
                raise AlreadyExecuting(f"Intent {intent_id} is executing")
            if intent.status == IntentStatus.COMPLETED:
                raise IntentStateError(f"Intent {intent_id} is already completed")
            intent = self._set_status(intent, IntentStatus.FINDING_SOLUTIONS, "discovery_started")

        outcomes = await self.finder.run(intent, cfg, self.clock())
        solutions = SolutionFinder.successful(outcomes)

        async with self._lock_for(intent_id):
            self.store.put_solutions(intent_id, solutions)
            with self._locks_guard:
                self._outcomes[intent_id] = outcomes
            current = self._require_intent(intent_id)
            # Execution or the reaper may have moved the intent while discovery ran
            if current.status not in (IntentStatus.EXECUTING, IntentStatus.COMPLETED, IntentStatus.EXPIRED):
                self._set_status(current, IntentStatus.SOLUTIONS_FOUND, f"{len(solutions)} solution(s)")

        logger.info(f"[fusion] Found {len(solutions)} solution(s) for intent {intent_id}")
        return solutions

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_intent(self, intent_id: str, solution_id: str, signer: Any) -> ExecutionResult:
        """
        Execute one of the intent's solutions.

        Does not check the deadline; refusing to execute an expired intent is
        up to the caller.

        Returns:
            ExecutionResult; check success rather than relying on exceptions

        Raises:
            NotFoundError: Unknown intent or solution id
            AlreadyExecuting: The intent is already executing
            IntentStateError: The intent is already completed
        """
        self._require_intent(intent_id)
        solution = next(
            (s for s in (self.store.get_solutions(intent_id) or []) if s.id == solution_id),
            None,
        )
        if solution is None:
            raise NotFoundError(f"Solution {solution_id} not found for intent {intent_id}")

        cfg = self.config
        async with self._lock_for(intent_id):
            intent = self._require_intent(intent_id)
            if intent.status == IntentStatus.EXECUTING:
                raise AlreadyExecuting(f"Intent {intent_id} is already executing")
            if intent.status == IntentStatus.COMPLETED:
                raise IntentStateError(f"Intent {intent_id} is already completed")
            intent = self._set_status(intent, IntentStatus.EXECUTING, f"solution {solution_id}")

        logger.info(
            f"[fusion] Executing intent {intent_id} with {solution.strategy or 'solution'} "
            f"{solution_id} ({len(solution.steps)} step(s))"
        )

        # Filled by the executor as steps land, so an abort still records them
        executed: List[ExecutedStep] = []
        try:
            result = await self.executor.execute(intent, solution, signer, cfg, executed=executed)
        except asyncio.CancelledError:
            await self._finish(intent_id, _aborted_result(intent_id, solution_id, executed, "execution cancelled"))
            raise
        except Exception as e:
            logger.exception(f"[fusion] Unexpected error executing {intent_id}")
            result = _aborted_result(intent_id, solution_id, executed, str(e))

        await self._finish(intent_id, result)
        return result

    async def _finish(self, intent_id: str, result: ExecutionResult) -> None:
        async with self._lock_for(intent_id):
            self.store.put_execution(result)
            intent = self._require_intent(intent_id)
            if result.success:
                self._set_status(intent, IntentStatus.COMPLETED, f"output {result.actual_output}")
                logger.info(
                    f"[fusion] Intent {intent_id} completed: output={result.actual_output} "
                    f"gas={result.total_gas_used}"
                )
            else:
                self._set_status(intent, IntentStatus.FAILED, result.reason or "execution_error")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_intent(self, intent_id: str) -> Optional[Intent]:
        return self.store.get_intent(intent_id)

    def get_solutions(self, intent_id: str) -> Optional[List[Solution]]:
        return self.store.get_solutions(intent_id)

    def get_execution(self, intent_id: str) -> Optional[ExecutionResult]:
        return self.store.get_execution(intent_id)

    def get_strategy_outcomes(self, intent_id: str) -> List[StrategyOutcome]:
        """Outcomes of the latest discovery run, including failed strategies."""
        with self._locks_guard:
            return list(self._outcomes.get(intent_id, []))

    def get_best_solution(self, intent_id: str) -> Optional[Solution]:
        """Return the highest-scoring stored solution, or None if there are none."""
        solutions = self.store.get_solutions(intent_id)
        if not solutions:
            return None
        return SolutionScorer(self.config).best(solutions)

    async def cleanup_expired_intents(self) -> List[str]:
        """Mark intents past their deadline as Expired. Returns the ids changed."""
        return await self.reaper.scan()

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        intents = self.store.list_intents()
        by_status: Dict[str, int] = {s.value: 0 for s in IntentStatus}
        solutions = 0
        succeeded = 0
        failed = 0
        for intent in intents:
            by_status[intent.status.value] += 1
            solutions += len(self.store.get_solutions(intent.id) or [])
            result = self.store.get_execution(intent.id)
            if result is not None:
                if result.success:
                    succeeded += 1
                else:
                    failed += 1

        return {
            "intents": len(intents),
            "by_status": by_status,
            "solutions": solutions,
            "executions_succeeded": succeeded,
            "executions_failed": failed,
        }
