#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Polishing stage: Hypo-assembler misjoin correction, polishing and scaffolding
of a draft assembly into two haplotype scaffolds.

Every intermediate lives in ``<output>/tempdir/`` and is a resume point:

    shorts.txt -> long_align.bam -> SUK_k<K>.bv -> misjoin.fa -> overlap.fa
    -> overlap_long.bam / overlap_short.bam -> polished_{1,2}.fa
    -> scaffold_{1,2}.fa

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..utils.artifacts import HAPLOTYPES, PolishingLayout, staging_dir
from ..utils.context import RunContext
from ..utils.manifest import ROLE_DRAFT_ASSEMBLY, StageManifest, haplotype_role
from ..utils.runner import Command, Staging, Step, StepRunner
from ..utils.stage import StageResult, run_stage
from ..utils.validation import (
    check_input_dir,
    check_input_files,
    check_scripts,
    check_tools,
    parse_positive_ints,
    require_parameters,
)

logger = logging.getLogger(__name__)

STAGE_NAME = 'Hypo Polishing'

REQUIRED_TOOLS = ['minimap2', 'samtools', 'hypo', 'suk', 'python', 'sh']
HELPER_SCRIPTS = ['scan_misjoin.py', 'run_overlap.sh', 'run_scaffold.sh']


@dataclass
class PolishingParams:
    draft: Path
    long_reads: Path
    short_reads_1: Path
    short_reads_2: Path
    output_dir: Path
    hypo_dir: Path
    threads: int
    genome_size: str
    kmer_length: int
    long_read_coverage: int
    short_read_coverage: int
    batch_number: int
    scripts_subdir: str = 'run_all'

    @property
    def layout(self) -> PolishingLayout:
        return PolishingLayout(self.output_dir, self.kmer_length)

    @property
    def scripts_dir(self) -> Path:
        return self.hypo_dir / self.scripts_subdir

    def script(self, name: str) -> Path:
        return self.scripts_dir / name

    def as_dict(self):
        return {
            'Draft': self.draft,
            'Long Reads': self.long_reads,
            'Short Reads 1': self.short_reads_1,
            'Short Reads 2': self.short_reads_2,
            'Output Dir': self.output_dir,
            'Hypo Dir': self.hypo_dir,
            'Threads': self.threads,
            'Genome Size': self.genome_size,
            'K-mer Length': self.kmer_length,
            'Long Read Coverage': self.long_read_coverage,
            'Short Read Coverage': self.short_read_coverage,
            'Batch Number': self.batch_number,
        }


def validate_polishing(draft, long_reads, short_reads_1, short_reads_2, output_dir, hypo_dir,
                       threads=None, genome_size=None, kmer_length=None,
                       long_read_coverage=None, short_read_coverage=None, batch_number=None,
                       context: Optional[RunContext] = None) -> PolishingParams:
    """
    Check polishing parameters and preconditions.

    Unset numeric options fall back to the ``polishing`` config section.

    Raises:
        ValidationError: On the first failing check
    """
    context = context or RunContext()

    def default(value, key):
        return context.get(f'polishing.{key}') if value is None else value

    genome_size = default(genome_size, 'genome_size')
    require_parameters({
        'draft (-d)': draft,
        'long_reads (-l)': long_reads,
        'short_reads_1 (-1)': short_reads_1,
        'short_reads_2 (-2)': short_reads_2,
        'output_dir (-o)': output_dir,
        'hypo_dir (-H)': hypo_dir,
        'genome_size (-g)': genome_size,
    })

    numbers = parse_positive_ints({
        'threads (-t)': default(threads, 'threads'),
        'kmer_length (-k)': default(kmer_length, 'kmer_length'),
        'long_read_coverage (-C)': default(long_read_coverage, 'long_read_coverage'),
        'short_read_coverage (-c)': default(short_read_coverage, 'short_read_coverage'),
        'batch_number (-p)': default(batch_number, 'batch_number'),
    })

    files = check_input_files({
        'draft (-d)': draft,
        'long_reads (-l)': long_reads,
        'short_reads_1 (-1)': short_reads_1,
        'short_reads_2 (-2)': short_reads_2,
    })
    hypo = check_input_dir('hypo_dir (-H)', hypo_dir).resolve()
    scripts_subdir = context.get('polishing.scripts_subdir', 'run_all')

    tools = context.tools.with_search_path(hypo / scripts_subdir)
    check_tools(tools, REQUIRED_TOOLS)
    check_scripts({name: hypo / scripts_subdir / name for name in HELPER_SCRIPTS})

    return PolishingParams(
        draft=files['draft (-d)'].resolve(),
        long_reads=files['long_reads (-l)'].resolve(),
        short_reads_1=files['short_reads_1 (-1)'].resolve(),
        short_reads_2=files['short_reads_2 (-2)'].resolve(),
        output_dir=Path(output_dir).resolve(),
        hypo_dir=hypo,
        threads=numbers['threads (-t)'],
        genome_size=str(genome_size),
        kmer_length=numbers['kmer_length (-k)'],
        long_read_coverage=numbers['long_read_coverage (-C)'],
        short_read_coverage=numbers['short_read_coverage (-c)'],
        batch_number=numbers['batch_number (-p)'],
        scripts_subdir=scripts_subdir,
    )


def _write_shorts_list(params: PolishingParams):
    def write(output: Path):
        with open(output, 'w') as f:
            f.write(f"{params.short_reads_1}\n{params.short_reads_2}\n")
    return write


def _copy_from(source: Path):
    def copy(output: Path):
        shutil.copyfile(source, output)
    return copy


def _sorted_alignment(context: RunContext, minimap_args: List, output: Path) -> Command:
    """minimap2 ... | samtools view -bS - | samtools sort ... -o output"""
    tools = context.tools
    samtools = tools.executable('samtools')
    return (
        Command.of(tools.executable('minimap2'), *minimap_args)
        .pipe(samtools, 'view', '-bS', '-')
        .pipe(samtools, 'sort',
              '-@', context.get('polishing.sort_threads', 20),
              '-m', context.get('polishing.sort_memory', '7G'),
              '-O', 'bam', '-o', output, '-')
    )


def build_polishing_steps(params: PolishingParams, context: RunContext) -> List[Step]:
    layout = params.layout
    tools = context.tools
    temp = layout.temp_dir
    threads = params.threads
    index_batch = context.get('polishing.index_batch_size', '64G')
    kmc_memory = context.get('polishing.kmc_memory', 12)
    shorts = f"@{layout.shorts_list}"

    long_bam = Staging.file(layout.long_alignment)
    suk = Staging.directory(temp, path=staging_dir(temp / 'SUK'))
    misjoin = Staging.file(layout.misjoin)
    overlap = Staging.directory(temp, path=staging_dir(temp / 'overlap'))
    overlap_long = Staging.file(layout.overlap_long_alignment)
    overlap_short = Staging.file(layout.overlap_short_alignment)
    polished = Staging.directory(temp, path=staging_dir(temp / 'polished'))
    scaffold = Staging.directory(temp, path=staging_dir(temp / 'scaffold'))

    steps = [
        Step(
            name='shorts_list',
            artifact=layout.shorts_list,
            action=_write_shorts_list(params),
            staging=Staging.file(layout.shorts_list),
        ),
        Step(
            name='long_align',
            artifact=layout.long_alignment,
            command=_sorted_alignment(
                context,
                ['-ax', 'map-ont', '-t', threads, params.draft, params.long_reads],
                long_bam.path,
            ),
            staging=long_bam,
        ),
        Step(
            name='suk',
            artifact=layout.solid_kmers,
            command=Command.of(
                tools.executable('suk'),
                '-k', params.kmer_length, '-i', shorts, '-t', threads,
                '-m', kmc_memory, '-e', '-w', layout.suk_workdir,
                '-o', suk.path / 'SUK',
            ),
            staging=suk,
            log_mode='w',
        ),
        Step(
            name='misjoin',
            artifact=layout.misjoin,
            command=Command.of(
                tools.executable('python'), params.script('scan_misjoin.py'),
                params.draft, layout.long_alignment, misjoin.path,
            ),
            staging=misjoin,
        ),
        Step(
            name='overlap',
            artifact=layout.overlaps,
            command=Command.of(
                tools.executable('sh'), params.script('run_overlap.sh'),
                '-k', layout.solid_kmers, '-i', layout.misjoin, '-l', params.long_reads,
                '-t', threads, '-o', overlap.path / 'overlap', '-T', temp / 'overlap_temp',
            ),
            staging=overlap,
        ),
        Step(
            name='overlap_long_align',
            artifact=layout.overlap_long_alignment,
            command=_sorted_alignment(
                context,
                ['-I', index_batch, '-ax', 'map-ont', '-t', threads,
                 layout.overlaps, params.long_reads],
                overlap_long.path,
            ),
            staging=overlap_long,
        ),
        Step(
            name='overlap_short_align',
            artifact=layout.overlap_short_alignment,
            command=_sorted_alignment(
                context,
                ['-I', index_batch, '-ax', 'sr', '-t', threads,
                 layout.overlaps, params.short_reads_1, params.short_reads_2],
                overlap_short.path,
            ),
            staging=overlap_short,
        ),
        Step(
            name='polish',
            artifact=layout.polished(1),
            companions=[layout.polished(2)],
            command=Command.of(
                tools.executable('hypo'),
                '-d', layout.overlaps, '-s', params.genome_size,
                '-B', layout.overlap_long_alignment, '-C', params.long_read_coverage,
                '-b', layout.overlap_short_alignment, '-r', shorts,
                '-c', params.short_read_coverage, '-L', kmc_memory, '-t', threads,
                '-o', polished.path / 'polished', '-p', params.batch_number,
            ),
            staging=polished,
            log_mode='w',
        ),
        Step(
            name='scaffold',
            artifact=layout.scaffold(1),
            companions=[layout.scaffold(2)],
            command=Command.of(
                tools.executable('sh'), params.script('run_scaffold.sh'),
                '-k', layout.solid_kmers, '-i', layout.polished(1), '-I', layout.polished(2),
                '-l', params.long_reads, '-t', threads,
                '-o', scaffold.path / 'scaffold', '-T', temp,
            ),
            staging=scaffold,
            log_mode='w',
        ),
    ]

    for hap in HAPLOTYPES:
        steps.append(Step(
            name=f'copy_scaffold_{hap}',
            artifact=layout.final_scaffold(hap),
            action=_copy_from(layout.scaffold(hap)),
            staging=Staging.file(layout.final_scaffold(hap)),
        ))
    return steps


def run_polishing(params: PolishingParams, context: Optional[RunContext] = None) -> StageResult:
    """
    Run the polishing chain, resuming from the first missing intermediate.

    Returns:
        StageResult; final scaffolds are ``<output>/scaffold_{1,2}.fa``
    """
    params.layout.temp_dir.mkdir(parents=True, exist_ok=True)
    context = context or RunContext.for_output(params.output_dir)
    context = context.with_tools(context.tools.with_search_path(params.scripts_dir))

    result = run_stage(STAGE_NAME, build_polishing_steps(params, context),
                       StepRunner(context), params.as_dict())

    manifest = StageManifest('polishing', parameters=params.as_dict(),
                             exit_codes={'stage': result.exit_code})
    manifest.add_artifact(ROLE_DRAFT_ASSEMBLY, params.draft)
    if result.success:
        for hap in HAPLOTYPES:
            manifest.add_artifact(haplotype_role(hap), params.layout.final_scaffold(hap))
    manifest.write(params.output_dir, context.get('pipeline.manifest_file', 'manifest.json'))
    return result
