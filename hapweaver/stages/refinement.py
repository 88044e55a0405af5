#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Reference-guided refinement stage: RagTag correct -> scaffold -> patch for
both haplotypes in parallel.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..utils.artifacts import HAPLOTYPES, RefinementLayout
from ..utils.context import RunContext
from ..utils.haplotype import DualHaplotypeResult, run_both
from ..utils.manifest import StageManifest, haplotype_role
from ..utils.runner import Command, Staging, Step, StepRunner
from ..utils.stage import StageResult, format_parameters, log_banner, run_stage
from ..utils.validation import (
    check_input_files,
    check_tools,
    parse_positive_int,
    require_parameters,
)

logger = logging.getLogger(__name__)

STAGE_NAME = 'RagTag Refinement'


@dataclass
class RefinementParams:
    reference: Path
    query_1: Path
    query_2: Path
    long_reads: Path
    output_dir: Path
    threads: int
    read_type: str

    def query(self, hap: int) -> Path:
        return self.query_1 if hap == 1 else self.query_2

    def layout(self, hap: int) -> RefinementLayout:
        return RefinementLayout(self.output_dir, hap)

    def as_dict(self):
        return {
            'Reference': self.reference,
            'Query 1': self.query_1,
            'Query 2': self.query_2,
            'Long Reads': self.long_reads,
            'Output Dir': self.output_dir,
            'Threads': self.threads,
            'Read Type': self.read_type,
        }


def validate_refinement(reference, query_1, query_2, long_reads, output_dir,
                        threads=None, read_type=None,
                        context: Optional[RunContext] = None) -> RefinementParams:
    """Check refinement parameters and preconditions; raises ValidationError."""
    context = context or RunContext()
    if threads is None:
        threads = context.get('refinement.threads', 24)
    if read_type is None:
        read_type = context.get('refinement.read_type', 'ont')

    require_parameters({
        'reference (-r)': reference,
        'query_1 (-1)': query_1,
        'query_2 (-2)': query_2,
        'long_reads (-l)': long_reads,
        'output_dir (-o)': output_dir,
        'read_type (-T)': read_type,
    })
    threads = parse_positive_int('threads (-t)', threads)
    files = check_input_files({
        'reference (-r)': reference,
        'query_1 (-1)': query_1,
        'query_2 (-2)': query_2,
        'long_reads (-l)': long_reads,
    })
    check_tools(context.tools, ['ragtag'])

    return RefinementParams(
        reference=files['reference (-r)'].resolve(),
        query_1=files['query_1 (-1)'].resolve(),
        query_2=files['query_2 (-2)'].resolve(),
        long_reads=files['long_reads (-l)'].resolve(),
        output_dir=Path(output_dir).resolve(),
        threads=threads,
        read_type=str(read_type),
    )


def build_haplotype_steps(params: RefinementParams, hap: int, query: Path,
                          context: RunContext) -> List[Step]:
    """correct -> scaffold -> patch for one haplotype."""
    layout = params.layout(hap)
    ragtag = context.tools.executable('ragtag')
    correct = Staging.directory(layout.correct_dir)
    scaffold = Staging.directory(layout.scaffold_dir)
    patch = Staging.directory(layout.patch_dir)

    return [
        Step(
            name=f'ragtag_correct_{hap}',
            artifact=layout.corrected,
            command=Command.of(
                ragtag, 'correct', params.reference, query,
                '-o', correct.path, '-t', params.threads,
                '-R', params.long_reads, '-T', params.read_type,
            ),
            staging=correct,
        ),
        Step(
            name=f'ragtag_scaffold_{hap}',
            artifact=layout.scaffolded,
            command=Command.of(
                ragtag, 'scaffold', params.reference, layout.corrected,
                '-o', scaffold.path, '-t', params.threads,
            ),
            staging=scaffold,
        ),
        Step(
            name=f'ragtag_patch_{hap}',
            artifact=layout.patched,
            command=Command.of(
                ragtag, 'patch', layout.scaffolded, params.reference,
                '-o', patch.path, '-t', params.threads,
            ),
            staging=patch,
        ),
    ]


def run_refinement(params: RefinementParams,
                   context: Optional[RunContext] = None) -> DualHaplotypeResult:
    """
    Refine both haplotypes concurrently.

    Returns:
        DualHaplotypeResult; overall exit code is 0 only if both succeed
    """
    params.output_dir.mkdir(parents=True, exist_ok=True)
    context = context or RunContext.for_output(params.output_dir)
    runner = StepRunner(context)

    log_banner(f"{STAGE_NAME} started",
               [f"Start time: {datetime.now().isoformat(timespec='seconds')}"]
               + format_parameters(params.as_dict()))

    def refine(hap: int, query: Path) -> StageResult:
        return run_stage(f"{STAGE_NAME} (haplotype {hap})",
                         build_haplotype_steps(params, hap, query, context),
                         runner, banner=False)

    result = run_both(refine, params.query_1, params.query_2)

    log_banner(f"{STAGE_NAME} finished", [
        f"End time: {datetime.now().isoformat(timespec='seconds')}",
        f"Haplotype 1 exit code: {result.exit_code_1}",
        f"Haplotype 2 exit code: {result.exit_code_2}",
        f"Exit Code: {result.overall_exit_code}",
    ])

    manifest = StageManifest('refinement', parameters=params.as_dict(), exit_codes={
        'haplotype_1': result.exit_code_1,
        'haplotype_2': result.exit_code_2,
        'overall': result.overall_exit_code,
    })
    for hap in HAPLOTYPES:
        if result.exit_code(hap) == 0:
            manifest.add_artifact(haplotype_role(hap), params.layout(hap).patched)
    manifest.write(params.output_dir, context.get('pipeline.manifest_file', 'manifest.json'))
    return result
