#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Correction stage: merge paired short reads and run the Ratatosk Nextflow
workflow to correct ONT long reads.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..config.schema import VALID_ONT_TYPES
from ..io import concatenate_files, infer_sample_name, strip_read_suffixes
from ..utils.artifacts import CorrectionLayout
from ..utils.context import RunContext
from ..utils.manifest import ROLE_CORRECTED_READS, ROLE_MERGED_SHORT_READS, StageManifest
from ..utils.runner import Command, Staging, Step, StepRunner
from ..utils.stage import StageResult, run_stage
from ..utils.validation import (
    check_choice,
    check_input_dir,
    check_input_files,
    check_scripts,
    check_tools,
    require_parameters,
    split_pair,
)

logger = logging.getLogger(__name__)

STAGE_NAME = 'Ratatosk Correction'


@dataclass
class CorrectionParams:
    work_dir: Path
    long_reads: Path
    short_reads: Tuple[Path, Path]
    output_dir: Path
    ont_type: str
    sample: str
    max_lr_bq: int

    @property
    def layout(self) -> CorrectionLayout:
        return CorrectionLayout(self.output_dir, self.sample)

    def as_dict(self):
        return {
            'Sample': self.sample,
            'ONT Type': self.ont_type,
            'Max LR BQ': self.max_lr_bq,
            'Work Dir': self.work_dir,
            'Long Reads': self.long_reads,
            'Short Reads 1': self.short_reads[0],
            'Short Reads 2': self.short_reads[1],
            'Output Dir': self.layout.sample_dir,
        }


def validate_correction(work_dir: Optional[str], long_reads: Optional[str],
                        short_reads: Optional[str], output_dir: Optional[str],
                        ont_type: Optional[str] = None, sample: Optional[str] = None,
                        context: Optional[RunContext] = None) -> CorrectionParams:
    """
    Check correction parameters and preconditions.

    Raises:
        ValidationError: On the first failing check
    """
    context = context or RunContext()
    if ont_type is None:
        ont_type = context.get('correction.ont_type', 'R10')
    require_parameters({
        'work_dir (-w)': work_dir,
        'long_reads (-l)': long_reads,
        'short_reads (-s)': short_reads,
        'output_dir (-o)': output_dir,
        'ont_type (-t)': ont_type,
    })

    check_choice('ont_type (-t)', ont_type, VALID_ONT_TYPES)

    mate_1, mate_2 = split_pair('short_reads (-s)', short_reads)
    files = check_input_files({
        'long_reads (-l)': long_reads,
        'short_reads (-s) mate 1': mate_1,
        'short_reads (-s) mate 2': mate_2,
    })
    work = check_input_dir('work_dir (-w)', work_dir)

    check_tools(context.tools, ['nextflow'])
    workflow = context.get('correction.workflow_script', 'Ratatosk.nf')
    check_scripts({workflow: work / workflow})

    return CorrectionParams(
        work_dir=work.resolve(),
        long_reads=files['long_reads (-l)'].resolve(),
        short_reads=(files['short_reads (-s) mate 1'].resolve(),
                     files['short_reads (-s) mate 2'].resolve()),
        output_dir=Path(output_dir).resolve(),
        ont_type=ont_type,
        sample=sample or infer_sample_name(long_reads),
        max_lr_bq=int(context.get(f'correction.max_lr_bq.{ont_type}')),
    )


def merge_short_reads(mate_1: Path, mate_2: Path, destination: Path,
                      layout: CorrectionLayout):
    """
    Strip mate suffixes from both short-read files concurrently, then write
    mate 1 followed by mate 2 into ``destination``.
    """
    temporary = [layout.mate_staging(1), layout.mate_staging(2)]
    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [
            executor.submit(strip_read_suffixes, mate_1, temporary[0]),
            executor.submit(strip_read_suffixes, mate_2, temporary[1]),
        ]
        for future in futures:
            future.result()

    concatenate_files(temporary, destination)
    for path in temporary:
        path.unlink()


def build_correction_steps(params: CorrectionParams, context: RunContext):
    layout = params.layout
    merged = layout.merged_reads
    profile = context.get('correction.nextflow_profile', 'cluster')
    workflow = context.get('correction.workflow_script', 'Ratatosk.nf')

    return [
        Step(
            name='merge_short_reads',
            artifact=merged,
            action=lambda output: merge_short_reads(*params.short_reads, output, layout),
            staging=Staging.file(merged),
            fmt='fastq',
        ),
        Step(
            name='ratatosk',
            artifact=layout.corrected_reads,
            command=Command.of(
                context.tools.executable('nextflow'), 'run',
                '-profile', profile, workflow,
                '--in_lr_fq', params.long_reads,
                '--in_sr_fq', merged,
                '--out_dir', f"{layout.sample_dir}/",
                '--max_lr_bq', params.max_lr_bq,
                cwd=params.work_dir,
            ),
            fmt='gzip',
        ),
    ]


def run_correction(params: CorrectionParams, context: Optional[RunContext] = None) -> StageResult:
    """
    Run the correction stage.

    Returns:
        StageResult; the corrected reads are at ``params.layout.corrected_reads``
    """
    layout = params.layout
    layout.sample_dir.mkdir(parents=True, exist_ok=True)
    context = context or RunContext.for_output(layout.sample_dir)

    runner = StepRunner(context)
    result = run_stage(STAGE_NAME, build_correction_steps(params, context), runner, params.as_dict())

    manifest = StageManifest('correction', parameters=params.as_dict(),
                             exit_codes={'stage': result.exit_code})
    if result.success:
        manifest.add_artifact(ROLE_CORRECTED_READS, layout.corrected_reads)
        manifest.add_artifact(ROLE_MERGED_SHORT_READS, layout.merged_reads)
    manifest.write(layout.sample_dir, context.get('pipeline.manifest_file', 'manifest.json'))
    return result
