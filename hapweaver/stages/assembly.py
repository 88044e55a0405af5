#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Assembly stage: Flye draft assembly from corrected long reads.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import psutil

from ..io import is_gzipped
from ..utils.artifacts import AssemblyLayout
from ..utils.context import RunContext
from ..utils.manifest import ROLE_DRAFT_ASSEMBLY, StageManifest
from ..utils.runner import Command, Staging, Step, StepRunner
from ..utils.stage import StageResult, run_stage
from ..utils.validation import (
    check_input_file,
    check_tools,
    parse_positive_int,
    require_parameters,
)

logger = logging.getLogger(__name__)

STAGE_NAME = 'Flye Assembly'


@dataclass
class AssemblyParams:
    reads: Path
    output_dir: Path
    threads: int
    genome_size: str

    @property
    def layout(self) -> AssemblyLayout:
        return AssemblyLayout(self.output_dir)

    def as_dict(self):
        return {
            'Input': self.reads,
            'Output Dir': self.output_dir,
            'Threads': self.threads,
            'Genome Size': self.genome_size,
        }


def validate_assembly(reads: Optional[str], output_dir: Optional[str],
                      threads=None, genome_size: Optional[str] = None,
                      context: Optional[RunContext] = None) -> AssemblyParams:
    """Check assembly parameters and preconditions; raises ValidationError."""
    context = context or RunContext()
    if threads is None:
        threads = context.get('assembly.threads', 64)
    if genome_size is None:
        genome_size = context.get('assembly.genome_size', '2.5g')

    require_parameters({
        'input (-i)': reads,
        'output_dir (-o)': output_dir,
        'genome_size (-g)': genome_size,
    })
    threads = parse_positive_int('threads (-t)', threads)
    reads_path = check_input_file('input (-i)', reads)
    check_tools(context.tools, ['flye'])

    return AssemblyParams(
        reads=reads_path.resolve(),
        output_dir=Path(output_dir).resolve(),
        threads=threads,
        genome_size=str(genome_size),
    )


def check_resources(params: AssemblyParams, context: RunContext):
    """Warn about inputs and hardware that usually make Flye struggle."""
    if not is_gzipped(params.reads):
        logger.warning(f"⚠️  Input file is not gzipped: {params.reads}")

    per_thread_mb = int(context.get('assembly.memory_per_thread_mb', 7500))
    required_gb = params.threads * per_thread_mb / 1000
    available_gb = psutil.virtual_memory().total / (1024 ** 3)
    if available_gb < required_gb:
        logger.warning(
            f"⚠️  Available memory ({available_gb:.1f} GB) is below the recommended "
            f"{required_gb:.1f} GB for {params.threads} threads"
        )


def build_assembly_steps(params: AssemblyParams, context: RunContext):
    layout = params.layout
    staging = Staging.directory(params.output_dir, path=layout.staging)
    read_mode = context.get('assembly.read_mode', 'nano-corr')

    return [
        Step(
            name='flye',
            artifact=layout.draft_assembly,
            command=Command.of(
                context.tools.executable('flye'),
                f'--{read_mode}', params.reads,
                '--genome-size', params.genome_size,
                '-t', params.threads,
                '--out-dir', staging.path,
            ),
            staging=staging,
            fmt='fasta',
        ),
    ]


def run_assembly(params: AssemblyParams, context: Optional[RunContext] = None) -> StageResult:
    params.output_dir.mkdir(parents=True, exist_ok=True)
    context = context or RunContext.for_output(params.output_dir)
    check_resources(params, context)

    result = run_stage(STAGE_NAME, build_assembly_steps(params, context),
                       StepRunner(context), params.as_dict())

    manifest = StageManifest('assembly', parameters=params.as_dict(),
                             exit_codes={'stage': result.exit_code})
    if result.success:
        manifest.add_artifact(ROLE_DRAFT_ASSEMBLY, params.layout.draft_assembly)
    manifest.write(params.output_dir, context.get('pipeline.manifest_file', 'manifest.json'))
    return result
