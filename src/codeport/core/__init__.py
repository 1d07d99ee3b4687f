"""Core functionality for Codeport."""

from codeport.core.types import (
    FailedUnit,
    Failure,
    FailureKind,
    RunOptions,
    RunPlan,
    RunState,
    RunSummary,
    Success,
    TranslationUnit,
)
from codeport.core.errors import (
    AuthError,
    CodeportError,
    DiscoveryError,
    InvalidPathError,
    UnreadableFileError,
    WriteError,
)
from codeport.core.cost import CostEstimate, CostLevel, estimate_cost
from codeport.core.mirror import PathMirror
from codeport.core.pipeline import Orchestrator, plan, run

__all__ = [
    "AuthError",
    "CodeportError",
    "CostEstimate",
    "CostLevel",
    "DiscoveryError",
    "FailedUnit",
    "Failure",
    "FailureKind",
    "InvalidPathError",
    "Orchestrator",
    "PathMirror",
    "RunOptions",
    "RunPlan",
    "RunState",
    "RunSummary",
    "Success",
    "TranslationUnit",
    "UnreadableFileError",
    "WriteError",
    "estimate_cost",
    "plan",
    "run",
]
