"""execution/models.py

Data models for intents, solutions and execution results.

Amounts are decimal strings (never floats) so they pass between
collaborators without precision loss. Gas values are Python ints.
Timestamps are epoch seconds.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class IntentStatus(Enum):
    """Intent lifecycle states."""
    CREATED = "created"
    FINDING_SOLUTIONS = "finding_solutions"
    SOLUTIONS_FOUND = "solutions_found"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


class StepType(Enum):
    """Kinds of execution steps a solution can contain."""
    SWAP = "swap"
    BRIDGE = "bridge"
    WRAP = "wrap"
    UNWRAP = "unwrap"


def parse_amount(value: Any) -> Decimal:
    """
    Parse a decimal amount string.

    Raises:
        ValueError: If value is not a finite decimal
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"not a decimal amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return amount


@dataclass(frozen=True)
class Intent:
    """
    A user-declared conversion request.

    Attributes:
        id: Unique intent identifier
        user: User identifier (also the default bridge recipient)
        input_token: Token to convert from
        output_token: Token to convert into
        input_amount: Amount of input_token (decimal string)
        min_output_amount: Minimum acceptable output (decimal string)
        input_chain: Source chain id
        output_chain: Destination chain id
        deadline: Absolute expiry time (epoch seconds)
        recipient: Optional recipient address on the destination chain
        status: Current lifecycle status
        created_at: Creation time (epoch seconds)
    """
    id: str
    user: str
    input_token: str
    output_token: str
    input_amount: str
    min_output_amount: str
    input_chain: int
    output_chain: int
    deadline: float
    recipient: Optional[str] = None
    status: IntentStatus = IntentStatus.CREATED
    created_at: float = 0.0

    @property
    def is_cross_chain(self) -> bool:
        return self.input_chain != self.output_chain

    def is_expired(self, now: float) -> bool:
        """Check if the deadline has passed."""
        return self.deadline < now

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "user": self.user,
            "input_token": self.input_token,
            "output_token": self.output_token,
            "input_amount": self.input_amount,
            "min_output_amount": self.min_output_amount,
            "input_chain": self.input_chain,
            "output_chain": self.output_chain,
            "deadline": self.deadline,
            "recipient": self.recipient,
            "status": self.status.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Intent":
        """Deserialize from dictionary."""
        data = data.copy()
        data["status"] = IntentStatus(data["status"])
        return cls(**data)


@dataclass(frozen=True)
class ExecutionStep:
    """
    One priced step of a solution.

    dest_chain is only set for bridge steps.
    """
    step_type: StepType
    chain: int
    protocol: str
    input_token: str
    output_token: str
    estimated_input: str
    estimated_output: str
    gas_estimate: int
    dest_chain: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_type": self.step_type.value,
            "chain": self.chain,
            "protocol": self.protocol,
            "input_token": self.input_token,
            "output_token": self.output_token,
            "estimated_input": self.estimated_input,
            "estimated_output": self.estimated_output,
            "gas_estimate": str(self.gas_estimate),
            "dest_chain": self.dest_chain,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionStep":
        data = data.copy()
        data["step_type"] = StepType(data["step_type"])
        data["gas_estimate"] = int(data["gas_estimate"])
        return cls(**data)


@dataclass(frozen=True)
class Solution:
    """
    A concrete execution plan proposed for an intent.

    Attributes:
        id: Unique solution identifier
        intent_id: Owning intent
        solver: Solver identifier
        steps: Ordered steps, owned by this solution only
        estimated_output: Last step's estimated output (decimal string)
        total_gas_cost: Exact sum of step gas estimates
        execution_time: Expected wall time in seconds
        confidence: Heuristic confidence in [0, 1]
        created_at: Creation time (epoch seconds)
        strategy: Name of the discovery strategy that produced it
    """
    id: str
    intent_id: str
    solver: str
    steps: Tuple[ExecutionStep, ...]
    estimated_output: str
    total_gas_cost: int
    execution_time: int
    confidence: float
    created_at: float
    strategy: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "intent_id": self.intent_id,
            "solver": self.solver,
            "steps": [s.to_dict() for s in self.steps],
            "estimated_output": self.estimated_output,
            "total_gas_cost": str(self.total_gas_cost),
            "execution_time": self.execution_time,
            "confidence": self.confidence,
            "created_at": self.created_at,
            "strategy": self.strategy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Solution":
        data = data.copy()
        data["steps"] = tuple(ExecutionStep.from_dict(s) for s in data["steps"])
        data["total_gas_cost"] = int(data["total_gas_cost"])
        return cls(**data)


@dataclass(frozen=True)
class ExecutedStep:
    """Record of one dispatched step."""
    step_number: int
    tx_hash: str
    gas_used: int
    actual_output: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_number": self.step_number,
            "tx_hash": self.tx_hash,
            "gas_used": str(self.gas_used),
            "actual_output": self.actual_output,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutedStep":
        data = data.copy()
        data["gas_used"] = int(data["gas_used"])
        return cls(**data)


@dataclass
class ExecutionResult:
    """
    Outcome of one execute_intent call.

    On failure, executed_steps holds the prefix that was dispatched before
    the failing step. Those steps are final; nothing is rolled back.
    """
    intent_id: str
    solution_id: str
    success: bool
    executed_steps: List[ExecutedStep] = field(default_factory=list)
    actual_output: Optional[str] = None
    total_gas_used: int = 0
    error: Optional[str] = None
    failed_step: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent_id": self.intent_id,
            "solution_id": self.solution_id,
            "success": self.success,
            "executed_steps": [s.to_dict() for s in self.executed_steps],
            "actual_output": self.actual_output,
            "total_gas_used": str(self.total_gas_used),
            "error": self.error,
            "failed_step": self.failed_step,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionResult":
        data = data.copy()
        data["executed_steps"] = [ExecutedStep.from_dict(s) for s in data.get("executed_steps", [])]
        data["total_gas_used"] = int(data.get("total_gas_used", 0))
        return cls(**data)


def generate_id(prefix: str, now: float) -> str:
    """Generate an id like intent_1700000000000_3f9a1c2b7."""
    return f"{prefix}_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"
