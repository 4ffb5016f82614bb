"""execution/paper.py

Paper adapters for the aggregator and bridge collaborators.

Deterministic in-process implementations for the smoke script and tests.
They do NOT make network calls. Swaps convert at fixed per-pair rates,
bridges move amounts 1:1, and failures are injected per chain/pair/token.

Usage:
    aggregator = PaperDexAggregator(rates={(1, "ETH", "USDC"): "1800"})
    bridge = PaperBridgeClient()
    engine = FusionEngine(aggregator=aggregator, bridge=bridge)
"""

from __future__ import annotations

import asyncio
import hashlib
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from execution.routing.interfaces import BridgeClient, DexAggregator
from execution.routing.types import (
    AggregatorQuote,
    BridgeReceipt,
    QuoteOptions,
    SwapOptions,
    SwapReceipt,
)

PairKey = Tuple[int, str, str]


def _tx_hash(*parts: Any) -> str:
    payload = ":".join(str(p) for p in parts)
    return "0x" + hashlib.sha256(payload.encode()).hexdigest()


class PaperDexAggregator(DexAggregator):
    """
    Fixed-rate aggregator.

    Pairs without a configured rate use default_rate; set default_rate=None
    to make unknown pairs fail like a real aggregator without liquidity.
    """

    def __init__(
        self,
        rates: Optional[Dict[PairKey, str]] = None,
        default_rate: Optional[str] = "1",
        swap_gas: int = 150_000,
        failing_quotes: Optional[Set[PairKey]] = None,
        failing_swaps: Optional[Set[PairKey]] = None,
        latency_sec: float = 0.0,
    ):
        self.rates: Dict[PairKey, Decimal] = {k: Decimal(v) for k, v in (rates or {}).items()}
        self.default_rate = Decimal(default_rate) if default_rate is not None else None
        self.swap_gas = swap_gas
        self.failing_quotes: Set[PairKey] = set(failing_quotes or ())
        self.failing_swaps: Set[PairKey] = set(failing_swaps or ())
        self.latency_sec = latency_sec

        self.quote_calls: List[Dict[str, Any]] = []
        self.swap_calls: List[Dict[str, Any]] = []

    def _rate(self, key: PairKey) -> Decimal:
        rate = self.rates.get(key, self.default_rate)
        if rate is None:
            raise LookupError(f"no liquidity for {key[1]}->{key[2]} on chain {key[0]}")
        return rate

    async def get_quote(
        self,
        chain_id: int,
        input_token: str,
        output_token: str,
        amount: str,
        options: QuoteOptions,
    ) -> AggregatorQuote:
        key = (chain_id, input_token, output_token)
        self.quote_calls.append({"chain_id": chain_id, "input_token": input_token,
                                 "output_token": output_token, "amount": amount})
        if self.latency_sec:
            await asyncio.sleep(self.latency_sec)
        if key in self.failing_quotes:
            raise ConnectionError(f"quote unavailable for {input_token}->{output_token} on chain {chain_id}")

        out = Decimal(amount) * self._rate(key)
        return AggregatorQuote(
            to_token_amount=str(out),
            estimated_gas=self.swap_gas if options.include_gas else 0,
        )

    async def execute_swap(
        self,
        chain_id: int,
        input_token: str,
        output_token: str,
        amount: str,
        signer: Any,
        options: SwapOptions,
    ) -> SwapReceipt:
        key = (chain_id, input_token, output_token)
        self.swap_calls.append({"chain_id": chain_id, "input_token": input_token,
                                "output_token": output_token, "amount": amount, "signer": signer})
        if self.latency_sec:
            await asyncio.sleep(self.latency_sec)
        if key in self.failing_swaps:
            raise RuntimeError(f"swap reverted for {input_token}->{output_token} on chain {chain_id}")

        out = Decimal(amount) * self._rate(key)
        return SwapReceipt(
            tx_hash=_tx_hash("swap", len(self.swap_calls), *key, amount),
            output_amount=str(out),
            gas_used=self.swap_gas,
        )


class PaperBridgeClient(BridgeClient):
    """1:1 bridge that records every transfer."""

    def __init__(
        self,
        lock_gas: int = 200_000,
        failing_tokens: Optional[Set[str]] = None,
        latency_sec: float = 0.0,
    ):
        self.lock_gas = lock_gas
        self.failing_tokens: Set[str] = set(failing_tokens or ())
        self.latency_sec = latency_sec
        self.calls: List[Dict[str, Any]] = []

    async def bridge_tokens(
        self,
        source_chain: int,
        dest_chain: int,
        token: str,
        amount: str,
        recipient: str,
        signer: Any,
    ) -> BridgeReceipt:
        self.calls.append({
            "source_chain": source_chain,
            "dest_chain": dest_chain,
            "token": token,
            "amount": amount,
            "recipient": recipient,
            "signer": signer,
        })
        if self.latency_sec:
            await asyncio.sleep(self.latency_sec)
        if token in self.failing_tokens:
            raise RuntimeError(f"bridge lock failed for {token} {source_chain}->{dest_chain}")

        return BridgeReceipt(
            lock_tx=_tx_hash("lock", len(self.calls), source_chain, dest_chain, token, amount),
            gas_used=self.lock_gas,
        )
