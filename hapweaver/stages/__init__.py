"""
Stage-runners for the five HapWeaver stages.

Each stage exposes a ``validate_*`` function returning typed parameters and a
``run_*`` function executing the stage's steps.
"""

from .correction import CorrectionParams, run_correction, validate_correction
from .assembly import AssemblyParams, run_assembly, validate_assembly
from .polishing import PolishingParams, run_polishing, validate_polishing
from .refinement import RefinementParams, run_refinement, validate_refinement
from .annotation import AnnotationParams, run_annotation, validate_annotation

__all__ = [
    "CorrectionParams", "run_correction", "validate_correction",
    "AssemblyParams", "run_assembly", "validate_assembly",
    "PolishingParams", "run_polishing", "validate_polishing",
    "RefinementParams", "run_refinement", "validate_refinement",
    "AnnotationParams", "run_annotation", "validate_annotation",
]
