"""execution/errors.py

Exception taxonomy for the fusion engine.

Propagation rules:
- Lookup failures (NotFoundError) are raised before any state mutation
- StrategyFailure never leaves the solution finder
- StepExecutionFailure never leaves the step executor; it is folded into
  the ExecutionResult returned to the caller
"""

from typing import Optional


class FusionError(Exception):
    """Base exception for fusion engine errors."""
    pass


class ValidationError(FusionError):
    """Raised when intent parameters are rejected at creation."""
    pass


class NotFoundError(FusionError):
    """Raised when an intent or solution id is unknown."""
    pass


class AlreadyExecuting(FusionError):
    """Raised when an execution is requested for an intent that is already executing."""
    pass


class IntentStateError(FusionError):
    """Raised when an operation is not allowed in the intent's current status."""
    pass


class UnsupportedStepType(FusionError):
    """Raised by the step dispatcher for step types without a handler."""
    pass


class StrategyFailure(FusionError):
    """
    A discovery strategy could not produce a solution.

    Attributes:
        reason: Canonical reason from execution.reject_reasons
    """

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason


class StepExecutionFailure(FusionError):
    """
    A step of a solution failed during execution.

    Attributes:
        step_number: 1-based index of the failing step
        reason: Canonical reason from execution.reject_reasons
    """

    def __init__(self, step_number: int, reason: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.step_number = step_number
        self.reason = reason
        self.cause = cause
