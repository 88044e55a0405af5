#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Annotation transfer stage: miniprot protein alignment followed by LiftOn,
for both refined haplotypes in parallel.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..utils.artifacts import HAPLOTYPES, AnnotationLayout
from ..utils.context import RunContext
from ..utils.haplotype import DualHaplotypeResult, run_both
from ..utils.manifest import ROLE_ANNOTATION_1, ROLE_ANNOTATION_2, StageManifest
from ..utils.runner import Command, Staging, Step, StepRunner
from ..utils.stage import StageResult, format_parameters, log_banner, run_stage
from ..utils.validation import (
    check_input_files,
    check_tools,
    parse_positive_int,
    require_parameters,
)

logger = logging.getLogger(__name__)

STAGE_NAME = 'LiftOn Annotation'


@dataclass
class AnnotationParams:
    reference: Path
    assembly_1: Path
    assembly_2: Path
    annotation: Path
    proteins: Path
    transcripts: Path
    output_dir: Path
    threads: int

    def layout(self, hap: int) -> AnnotationLayout:
        return AnnotationLayout(self.output_dir, hap, self.annotation.name)

    def as_dict(self):
        return {
            'Reference': self.reference,
            'Assembly 1': self.assembly_1,
            'Assembly 2': self.assembly_2,
            'GFF3': self.annotation,
            'Proteins': self.proteins,
            'Transcripts': self.transcripts,
            'Output Dir': self.output_dir,
            'Threads': self.threads,
        }


def validate_annotation(reference, assembly_1, assembly_2, annotation, proteins, transcripts,
                        output_dir, threads=None,
                        context: Optional[RunContext] = None) -> AnnotationParams:
    """Check annotation parameters and preconditions; raises ValidationError."""
    context = context or RunContext()
    if threads is None:
        threads = context.get('annotation.threads', 24)

    require_parameters({
        'reference (-r)': reference,
        'assembly_1 (-1)': assembly_1,
        'assembly_2 (-2)': assembly_2,
        'gff3 (-g)': annotation,
        'proteins (-P)': proteins,
        'transcripts (-T)': transcripts,
        'output_dir (-o)': output_dir,
    })
    threads = parse_positive_int('threads (-t)', threads)
    files = check_input_files({
        'reference (-r)': reference,
        'assembly_1 (-1)': assembly_1,
        'assembly_2 (-2)': assembly_2,
        'gff3 (-g)': annotation,
        'proteins (-P)': proteins,
        'transcripts (-T)': transcripts,
    })
    check_tools(context.tools, ['lifton', 'miniprot'])

    return AnnotationParams(
        reference=files['reference (-r)'].resolve(),
        assembly_1=files['assembly_1 (-1)'].resolve(),
        assembly_2=files['assembly_2 (-2)'].resolve(),
        annotation=files['gff3 (-g)'].resolve(),
        proteins=files['proteins (-P)'].resolve(),
        transcripts=files['transcripts (-T)'].resolve(),
        output_dir=Path(output_dir).resolve(),
        threads=threads,
    )


def prepare_haplotype_dir(layout: AnnotationLayout):
    """Create ``hap_N/`` with its tool subdirectories and empty database placeholders."""
    layout.miniprot_dir.mkdir(parents=True, exist_ok=True)
    layout.liftoff_dir.mkdir(parents=True, exist_ok=True)
    for placeholder in layout.placeholders:
        placeholder.touch(exist_ok=True)


def build_haplotype_steps(params: AnnotationParams, hap: int, assembly: Path,
                          context: RunContext) -> List[Step]:
    layout = params.layout(hap)
    tools = context.tools
    miniprot = Staging.file(layout.miniprot_gff)
    lifton = Staging.file(layout.lifton_gff)
    annotation = params.annotation

    return [
        Step(
            name=f'copy_annotation_{hap}',
            artifact=layout.annotation_copy,
            action=lambda output: shutil.copyfile(annotation, output),
            staging=Staging.file(layout.annotation_copy),
        ),
        Step(
            name=f'miniprot_{hap}',
            artifact=layout.miniprot_gff,
            command=Command.of(
                tools.executable('miniprot'), '-t', params.threads, '--gff-only',
                assembly, params.proteins,
                stdout=miniprot.path,
            ),
            staging=miniprot,
            fmt='gff',
        ),
        Step(
            name=f'lifton_{hap}',
            artifact=layout.lifton_gff,
            command=Command.of(
                tools.executable('lifton'), '-t', params.threads,
                '-g', layout.annotation_copy, '-P', params.proteins,
                '-T', params.transcripts, '-o', lifton.path,
                '-M', layout.miniprot_gff, '-copies',
                assembly, params.reference,
                cwd=layout.hap_dir,
            ),
            staging=lifton,
            fmt='gff',
        ),
    ]


def run_annotation(params: AnnotationParams,
                   context: Optional[RunContext] = None) -> DualHaplotypeResult:
    """
    Transfer the reference annotation onto both haplotypes concurrently.

    Returns:
        DualHaplotypeResult; overall exit code is 0 only if both succeed
    """
    params.output_dir.mkdir(parents=True, exist_ok=True)
    context = context or RunContext.for_output(params.output_dir)
    runner = StepRunner(context)

    log_banner(f"{STAGE_NAME} started",
               [f"Start time: {datetime.now().isoformat(timespec='seconds')}"]
               + format_parameters(params.as_dict()))

    def annotate(hap: int, assembly: Path) -> StageResult:
        layout = params.layout(hap)
        prepare_haplotype_dir(layout)
        result = run_stage(f"{STAGE_NAME} (haplotype {hap})",
                           build_haplotype_steps(params, hap, assembly, context),
                           runner, banner=False)
        if result.success and not layout.liftoff_gff.exists():
            logger.warning(f"⚠️  Haplotype {hap}: liftoff GFF3 was not generated ({layout.liftoff_gff})")
        return result

    result = run_both(annotate, params.assembly_1, params.assembly_2)

    log_banner(f"{STAGE_NAME} finished", [
        f"End time: {datetime.now().isoformat(timespec='seconds')}",
        f"Haplotype 1 exit code: {result.exit_code_1}",
        f"Haplotype 2 exit code: {result.exit_code_2}",
        f"Exit Code: {result.overall_exit_code}",
    ])

    manifest = StageManifest('annotation', parameters=params.as_dict(), exit_codes={
        'haplotype_1': result.exit_code_1,
        'haplotype_2': result.exit_code_2,
        'overall': result.overall_exit_code,
    })
    for hap, role in zip(HAPLOTYPES, (ROLE_ANNOTATION_1, ROLE_ANNOTATION_2)):
        if result.exit_code(hap) == 0:
            manifest.add_artifact(role, params.layout(hap).lifton_gff)
    manifest.write(params.output_dir, context.get('pipeline.manifest_file', 'manifest.json'))
    return result
