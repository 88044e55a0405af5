#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Stage sequencer: runs a stage's steps in order, stopping at the first failure,
framed by start and end banners.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .runner import Step, StepResult, StepRunner

logger = logging.getLogger(__name__)

BANNER_WIDTH = 54


@dataclass
class StageResult:
    """Outcome of a stage: every step attempted, and the one that failed if any."""
    stage: str
    completed_steps: List[StepResult] = field(default_factory=list)
    failed_step: Optional[StepResult] = None

    @property
    def aborted(self) -> bool:
        return self.failed_step is not None

    @property
    def exit_code(self) -> int:
        return self.failed_step.exit_code if self.failed_step else 0

    @property
    def success(self) -> bool:
        return not self.aborted

    @property
    def results(self) -> List[StepResult]:
        if self.failed_step:
            return self.completed_steps + [self.failed_step]
        return list(self.completed_steps)


def log_banner(title: str, lines: Iterable[str] = (), log: Optional[logging.Logger] = None):
    """Log a ``=====`` framed block."""
    log = log or logger
    log.info("=" * BANNER_WIDTH)
    log.info(title)
    for line in lines:
        log.info(line)
    log.info("=" * BANNER_WIDTH)


def format_parameters(parameters: Mapping[str, Any]) -> List[str]:
    return [f"{key}: {value}" for key, value in parameters.items()]


class Stage:
    """
    An ordered list of steps sharing one runner.

    Args:
        name: Stage name shown in banners
        steps: Steps in execution order
        runner: Step runner (carries logs and tool environment)
        parameters: Resolved parameters printed in the start banner
    """

    def __init__(self, name: str, steps: Sequence[Step], runner: StepRunner,
                 parameters: Optional[Mapping[str, Any]] = None):
        self.name = name
        self.steps = list(steps)
        self.runner = runner
        self.parameters = dict(parameters or {})
        self.logger = logging.getLogger(__name__)

    def run(self, banner: bool = True) -> StageResult:
        if banner:
            log_banner(
                f"{self.name} started",
                [f"Start time: {datetime.now().isoformat(timespec='seconds')}"]
                + format_parameters(self.parameters),
                self.logger,
            )

        result = StageResult(self.name)
        for step in self.steps:
            step_result = self.runner.run(step)
            if not step_result.success:
                result.failed_step = step_result
                self.logger.error(f"{self.name}: aborting after failed step {step.name}")
                break
            result.completed_steps.append(step_result)

        if banner:
            log_banner(
                f"{self.name} finished",
                [f"End time: {datetime.now().isoformat(timespec='seconds')}",
                 f"Exit Code: {result.exit_code}"],
                self.logger,
            )
        return result


def run_stage(name: str, steps: Sequence[Step], runner: StepRunner,
              parameters: Optional[Mapping[str, Any]] = None,
              banner: bool = True) -> StageResult:
    """Run ``steps`` in order and stop at the first failure."""
    return Stage(name, steps, runner, parameters).run(banner=banner)
