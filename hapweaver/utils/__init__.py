"""
Pipeline execution utilities for HapWeaver.
"""

from .context import RunContext, ToolRegistry
from .validation import ValidationError
from .runner import (
    Command,
    Staging,
    Step,
    StepResult,
    StepRunner,
    StepStatus,
    run_step,
)
from .stage import Stage, StageResult, run_stage
from .haplotype import DualHaplotypeResult, run_both
from .manifest import ManifestError, StageManifest

__all__ = [
    "RunContext",
    "ToolRegistry",
    "ValidationError",
    "Command",
    "Staging",
    "Step",
    "StepResult",
    "StepRunner",
    "StepStatus",
    "run_step",
    "Stage",
    "StageResult",
    "run_stage",
    "DualHaplotypeResult",
    "run_both",
    "ManifestError",
    "StageManifest",
]
