"""execution/reject_reasons.py

Canonical failure reasons for solution discovery and step execution.

Keep as simple string constants so we can:
- aggregate stats (why did a strategy contribute nothing? why did a step fail?)
- avoid ad-hoc reason strings drifting across modules
"""

# Discovery strategies
QUOTE_FAILED = "quote_failed"
QUOTE_TIMEOUT = "quote_timeout"
INVALID_QUOTE = "invalid_quote"
INTERMEDIATE_TOKEN_MISSING = "intermediate_token_missing"
STRATEGY_ERROR = "strategy_error"

# Step execution
STEP_UNSUPPORTED = "step_unsupported"
STEP_TIMEOUT = "step_timeout"
SWAP_FAILED = "swap_failed"
BRIDGE_FAILED = "bridge_failed"
BRIDGE_TARGET_MISSING = "bridge_target_missing"
INVALID_RECEIPT = "invalid_receipt"


_KNOWN_REASONS = {
    QUOTE_FAILED,
    QUOTE_TIMEOUT,
    INVALID_QUOTE,
    INTERMEDIATE_TOKEN_MISSING,
    STRATEGY_ERROR,
    STEP_UNSUPPORTED,
    STEP_TIMEOUT,
    SWAP_FAILED,
    BRIDGE_FAILED,
    BRIDGE_TARGET_MISSING,
    INVALID_RECEIPT,
}


def assert_reason_known(reason: str) -> None:
    """Raise if the provided reason isn't in the canonical set."""

    if reason not in _KNOWN_REASONS:
        raise ValueError(f"Unknown failure reason: {reason!r}. Add it to execution/reject_reasons.py")
