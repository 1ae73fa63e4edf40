from .result import FailureKind, StageResult, run_stage

__all__ = ["FailureKind", "StageResult", "run_stage"]
