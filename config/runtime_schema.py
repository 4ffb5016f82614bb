"""config/runtime_schema.py

Defines the configuration schema for the fusion engine.
Every field is hot-reloadable: the engine reads the current snapshot at the
start of each operation, so a reload applies to the next intent.
Implements manual validation to avoid a Pydantic dependency.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# USDC addresses used as the bridging hop for swap -> bridge -> swap routes.
DEFAULT_INTERMEDIATE_TOKENS: Dict[int, str] = {
    1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",      # Ethereum
    137: "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",    # Polygon
    42161: "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8",  # Arbitrum
    10: "0x7F5c764cBc14f9669B88837ca1490cCa17c31607",     # Optimism
    8453: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",   # Base
}


@dataclass(frozen=True)
class FusionConfig:
    """
    Engine parameters.

    Confidence and execution-time values are fixed per-strategy heuristics,
    not derived from live data.
    """
    # Intent lifecycle
    default_deadline_sec: int = 300
    solver_id: str = "fusion-solver"

    # Discovery
    quote_timeout_sec: float = 10.0
    slippage_pct: float = 1.0
    swap_protocol: str = "1inch"
    bridge_protocol: str = "wormhole"
    bridge_gas_estimate: int = 200_000
    same_chain_confidence: float = 0.95
    same_chain_execution_time_sec: int = 30
    direct_bridge_confidence: float = 0.90
    direct_bridge_execution_time_sec: int = 300
    swap_bridge_swap_confidence: float = 0.85
    swap_bridge_swap_execution_time_sec: int = 360
    intermediate_tokens: Dict[int, str] = field(
        default_factory=lambda: dict(DEFAULT_INTERMEDIATE_TOKENS)
    )

    # Execution
    step_timeout_sec: float = 120.0

    # Scoring
    score_output_divisor: float = 1e18
    score_gas_divisor: float = 1e6
    score_confidence_weight: float = 1000.0

    # Expiry reaper
    reaper_interval_sec: float = 30.0

    def __post_init__(self):
        """Validate constraints manually since we don't have Pydantic."""
        self._validate_range("default_deadline_sec", self.default_deadline_sec, 1, None)
        if not self.solver_id:
            raise ValueError("solver_id must be non-empty")

        self._validate_range("quote_timeout_sec", self.quote_timeout_sec, 0.1, 300)
        self._validate_range("slippage_pct", self.slippage_pct, 0.0, 50.0)
        self._validate_range("bridge_gas_estimate", self.bridge_gas_estimate, 0, None)
        for name in ("same_chain_confidence", "direct_bridge_confidence", "swap_bridge_swap_confidence"):
            self._validate_range(name, getattr(self, name), 0.0, 1.0)
        for name in (
            "same_chain_execution_time_sec",
            "direct_bridge_execution_time_sec",
            "swap_bridge_swap_execution_time_sec",
        ):
            self._validate_range(name, getattr(self, name), 0, None)

        for chain_id, token in self.intermediate_tokens.items():
            if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
                raise ValueError(f"intermediate_tokens chain id must be a positive int, got {chain_id!r}")
            if not isinstance(token, str) or not token:
                raise ValueError(f"intermediate_tokens[{chain_id}] must be a non-empty address")

        self._validate_range("step_timeout_sec", self.step_timeout_sec, 0.1, 3600)

        # Divisors must stay strictly positive
        self._validate_range("score_output_divisor", self.score_output_divisor, 1e-18, None)
        self._validate_range("score_gas_divisor", self.score_gas_divisor, 1e-18, None)
        self._validate_range("score_confidence_weight", self.score_confidence_weight, 0.0, None)

        self._validate_range("reaper_interval_sec", self.reaper_interval_sec, 0.1, None)

    def _validate_range(self, name: str, value: Any, min_val: float, max_val: Optional[float] = None) -> None:
        try:
            val = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be numeric, got {value}")

        if val < min_val:
            raise ValueError(f"{name} {val} is below minimum {min_val}")
        if max_val is not None and val > max_val:
            raise ValueError(f"{name} {val} is above maximum {max_val}")

    def intermediate_token(self, chain_id: int) -> Optional[str]:
        """Return the configured bridging hop token for a chain, if any."""
        return self.intermediate_tokens.get(chain_id)
