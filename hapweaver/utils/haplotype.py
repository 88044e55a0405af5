#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Dual-haplotype orchestrator: runs the same sub-pipeline for both haplotypes
concurrently and always collects both outcomes.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Tuple, Union

from .artifacts import HAPLOTYPES

logger = logging.getLogger(__name__)

# pipeline_fn(hap, input_path) -> StageResult or int exit code
HaplotypePipeline = Callable[[int, Path], Any]


@dataclass
class DualHaplotypeResult:
    """Per-haplotype outcomes plus the combined exit code."""
    results: Dict[int, Any] = field(default_factory=dict)
    exit_code_1: int = 1
    exit_code_2: int = 1

    @property
    def overall_exit_code(self) -> int:
        return 0 if self.exit_code_1 == 0 and self.exit_code_2 == 0 else 1

    @property
    def exit_codes(self) -> Tuple[int, int, int]:
        return self.exit_code_1, self.exit_code_2, self.overall_exit_code

    def exit_code(self, hap: int) -> int:
        return self.exit_code_1 if hap == 1 else self.exit_code_2


def _exit_code_of(outcome: Any) -> int:
    if isinstance(outcome, int):
        return outcome
    return int(getattr(outcome, 'exit_code'))


def run_both(pipeline_fn: HaplotypePipeline, input_1: Union[str, Path],
             input_2: Union[str, Path]) -> DualHaplotypeResult:
    """
    Run ``pipeline_fn`` for haplotype 1 and haplotype 2 in parallel.

    A failure or an unexpected exception in one haplotype never cancels the
    other; an exception counts as exit code 1 for that haplotype.

    Args:
        pipeline_fn: Callable taking (haplotype number, input path)
        input_1: Input for haplotype 1
        input_2: Input for haplotype 2

    Returns:
        DualHaplotypeResult with both exit codes and the overall code
    """
    inputs = {1: Path(input_1), 2: Path(input_2)}
    result = DualHaplotypeResult()

    with ThreadPoolExecutor(max_workers=len(HAPLOTYPES)) as executor:
        futures = {hap: executor.submit(pipeline_fn, hap, inputs[hap]) for hap in HAPLOTYPES}

        for hap, future in futures.items():
            try:
                outcome = future.result()
                code = _exit_code_of(outcome)
            except Exception as e:
                logger.exception(f"Haplotype {hap} pipeline raised an unexpected error: {e}")
                outcome, code = None, 1

            result.results[hap] = outcome
            setattr(result, f"exit_code_{hap}", code)
            logger.info(f"Haplotype {hap} exit code: {code}")

    return result
