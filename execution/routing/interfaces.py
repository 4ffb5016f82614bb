"""
execution/routing/interfaces.py

Abstract interfaces for the collaborators the engine drives.

Implementations live outside this package (aggregator HTTP clients, bridge
SDKs). The signer argument is opaque here and passed through untouched.
"""
from abc import ABC, abstractmethod
from typing import Any

from execution.routing.types import (
    AggregatorQuote,
    BridgeReceipt,
    QuoteOptions,
    SwapOptions,
    SwapReceipt,
)


class DexAggregator(ABC):
    """
    Abstract base class for DEX aggregators.

    Both calls are network I/O; the engine bounds them with timeouts.
    """

    @abstractmethod
    async def get_quote(
        self,
        chain_id: int,
        input_token: str,
        output_token: str,
        amount: str,
        options: QuoteOptions,
    ) -> AggregatorQuote:
        """
        Quote a swap of amount input_token -> output_token on chain_id.

        Args:
            chain_id: Chain to swap on
            input_token: Input token address
            output_token: Output token address
            amount: Input amount (decimal string)
            options: Slippage and gas-estimation options

        Returns:
            AggregatorQuote with expected output and gas estimate

        Raises:
            Exception: Any error means no quote is available
        """
        ...

    @abstractmethod
    async def execute_swap(
        self,
        chain_id: int,
        input_token: str,
        output_token: str,
        amount: str,
        signer: Any,
        options: SwapOptions,
    ) -> SwapReceipt:
        """Execute a swap and return the realized output."""
        ...


class BridgeClient(ABC):
    """Abstract base class for token bridges."""

    @abstractmethod
    async def bridge_tokens(
        self,
        source_chain: int,
        dest_chain: int,
        token: str,
        amount: str,
        recipient: str,
        signer: Any,
    ) -> BridgeReceipt:
        """
        Lock amount of token on source_chain for release to recipient on dest_chain.

        Returns:
            BridgeReceipt with the lock transaction hash
        """
        ...
