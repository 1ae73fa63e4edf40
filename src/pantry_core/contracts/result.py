"""
Stage Result Contract

Every stage boundary inside the conversation manager returns a StageResult
instead of raising. A stage either produced its value (ok) or fell back to a
degraded value, tagged with the kind of failure that caused it.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(Enum):
    """What went wrong at a stage boundary."""
    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"
    CLARIFICATION = "clarification"
    ROUTING = "routing"
    STATE_STORE = "state_store"
    WORKFLOW = "workflow"
    INTERNAL = "internal"


@dataclass
class StageResult(Generic[T]):
    """
    Result of one stage.

    Attributes:
        value: The stage output (the fallback value when degraded)
        failure: None when the stage succeeded
        error: Error message when degraded
    """
    value: T
    failure: Optional[FailureKind] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def degraded(self) -> bool:
        return self.failure is not None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, failure: FailureKind, error: Exception) -> "StageResult[T]":
        return cls(value=value, failure=failure, error=f"{type(error).__name__}: {error}")


def run_stage(
    func: Callable[[], T],
    failure: FailureKind,
    fallback: Callable[[], T],
) -> StageResult[T]:
    """
    Run a synchronous stage and capture failure as a degraded result.

    Args:
        func: Stage body
        failure: Kind recorded when the body raises
        fallback: Produces the degraded value

    Returns:
        StageResult with the stage value or the fallback value
    """
    try:
        return StageResult.success(func())
    except Exception as e:
        return StageResult.fallback(fallback(), failure, e)
