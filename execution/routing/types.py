"""
execution/routing/types.py

Data structures exchanged with DEX aggregator and bridge collaborators.
"""
from dataclasses import dataclass
from typing import Optional

from execution.models import Solution


@dataclass(frozen=True)
class QuoteOptions:
    """Options for an aggregator quote request."""
    slippage: float = 1.0       # Percent
    include_gas: bool = True


@dataclass(frozen=True)
class SwapOptions:
    """Options for an aggregator swap execution."""
    slippage: float = 1.0       # Percent


@dataclass(frozen=True)
class AggregatorQuote:
    """
    Quote returned by a DEX aggregator.

    Amounts are decimal strings in the output token's units.
    """
    to_token_amount: str
    estimated_gas: int


@dataclass(frozen=True)
class SwapReceipt:
    """Receipt of an executed swap."""
    tx_hash: str
    output_amount: str
    gas_used: int = 0


@dataclass(frozen=True)
class BridgeReceipt:
    """Receipt of a bridge transfer. lock_tx is the source-chain lock transaction."""
    lock_tx: str
    gas_used: int = 0


@dataclass(frozen=True)
class StrategyOutcome:
    """
    Result of running one discovery strategy.

    Exactly one of solution / reason is set. Failed outcomes are kept so the
    finder can report why a strategy contributed nothing.
    """
    strategy: str
    solution: Optional[Solution] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.solution is not None

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "ok": self.ok,
            "solution_id": self.solution.id if self.solution else None,
            "reason": self.reason,
            "error": self.error,
        }
