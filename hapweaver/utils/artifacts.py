#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Artifact naming and per-stage directory layouts.

The file names external tools write are shared constants so that one
stage's outputs line up with the next stage's inputs.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

from dataclasses import dataclass
from pathlib import Path

# ============================================================================
# Well-known artifact names
# ============================================================================

CORRECTED_READS = 'lr.corrected.fastq.gz'
DRAFT_ASSEMBLY = 'assembly.fasta'
SHORTS_LIST = 'shorts.txt'
LONG_ALIGNMENT = 'long_align.bam'
SOLID_KMERS = 'SUK_k{kmer}.bv'
MISJOIN_CORRECTED = 'misjoin.fa'
OVERLAPS = 'overlap.fa'
OVERLAP_LONG_ALIGNMENT = 'overlap_long.bam'
OVERLAP_SHORT_ALIGNMENT = 'overlap_short.bam'
POLISHED = 'polished_{hap}.fa'
SCAFFOLD = 'scaffold_{hap}.fa'
RAGTAG_CORRECT = 'ragtag.correct.fasta'
RAGTAG_SCAFFOLD = 'ragtag.scaffold.fasta'
RAGTAG_PATCH = 'ragtag.patch.fasta'
MINIPROT_GFF = 'miniprot.gff3'
LIFTOFF_GFF = 'liftoff.gff3'
LIFTON_GFF = 'lifton_{hap}.gff'
DATABASE_SUFFIX = '_db'

HAPLOTYPES = (1, 2)
PARTIAL_MARKER = '.partial'


def staging_file(path: Path) -> Path:
    """Staging location for a single-file artifact: ``<stem>.partial<suffix>``."""
    path = Path(path)
    return path.with_name(f"{path.stem}{PARTIAL_MARKER}{path.suffix}")


def staging_dir(path: Path) -> Path:
    """Staging location for a tool that writes a prefix or a directory."""
    path = Path(path)
    return path.with_name(f"{path.name}{PARTIAL_MARKER}")


def database_placeholder(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + DATABASE_SUFFIX)


# ============================================================================
# Stage layouts
# ============================================================================

@dataclass
class CorrectionLayout:
    """Paths for the correction stage: everything lives in ``<output>/<sample>/``."""
    output_dir: Path
    sample: str

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)

    @property
    def sample_dir(self) -> Path:
        return self.output_dir / self.sample

    @property
    def merged_reads(self) -> Path:
        return self.sample_dir / f"{self.sample}.fastq"

    @property
    def corrected_reads(self) -> Path:
        return self.sample_dir / CORRECTED_READS

    def mate_staging(self, mate: int) -> Path:
        return self.sample_dir / f"{self.sample}.mate{mate}{PARTIAL_MARKER}.fastq"


@dataclass
class AssemblyLayout:
    output_dir: Path

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)

    @property
    def draft_assembly(self) -> Path:
        return self.output_dir / DRAFT_ASSEMBLY

    @property
    def staging(self) -> Path:
        return staging_dir(self.output_dir / 'flye')


@dataclass
class PolishingLayout:
    """Paths for the polishing stage; intermediates are kept in ``tempdir/``."""
    output_dir: Path
    kmer_length: int = 17

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)

    @property
    def temp_dir(self) -> Path:
        return self.output_dir / 'tempdir'

    @property
    def shorts_list(self) -> Path:
        return self.temp_dir / SHORTS_LIST

    @property
    def long_alignment(self) -> Path:
        return self.temp_dir / LONG_ALIGNMENT

    @property
    def solid_kmers(self) -> Path:
        return self.temp_dir / SOLID_KMERS.format(kmer=self.kmer_length)

    @property
    def misjoin(self) -> Path:
        return self.temp_dir / MISJOIN_CORRECTED

    @property
    def overlaps(self) -> Path:
        return self.temp_dir / OVERLAPS

    @property
    def overlap_long_alignment(self) -> Path:
        return self.temp_dir / OVERLAP_LONG_ALIGNMENT

    @property
    def overlap_short_alignment(self) -> Path:
        return self.temp_dir / OVERLAP_SHORT_ALIGNMENT

    def polished(self, hap: int) -> Path:
        return self.temp_dir / POLISHED.format(hap=hap)

    def scaffold(self, hap: int) -> Path:
        return self.temp_dir / SCAFFOLD.format(hap=hap)

    def final_scaffold(self, hap: int) -> Path:
        return self.output_dir / SCAFFOLD.format(hap=hap)

    @property
    def suk_workdir(self) -> Path:
        return self.temp_dir / 'suk_kmc'


@dataclass
class RefinementLayout:
    """Paths for one haplotype of the refinement stage."""
    output_dir: Path
    hap: int

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)

    @property
    def correct_dir(self) -> Path:
        return self.output_dir / f"correct_{self.hap}"

    @property
    def scaffold_dir(self) -> Path:
        return self.output_dir / f"scaffold_{self.hap}"

    @property
    def patch_dir(self) -> Path:
        return self.output_dir / f"patch_{self.hap}"

    @property
    def corrected(self) -> Path:
        return self.correct_dir / RAGTAG_CORRECT

    @property
    def scaffolded(self) -> Path:
        return self.scaffold_dir / RAGTAG_SCAFFOLD

    @property
    def patched(self) -> Path:
        return self.patch_dir / RAGTAG_PATCH


@dataclass
class AnnotationLayout:
    """Paths for one haplotype of the annotation stage (``hap_N/``)."""
    output_dir: Path
    hap: int
    annotation_name: str = 'annotation.gff3'

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)

    @property
    def hap_dir(self) -> Path:
        return self.output_dir / f"hap_{self.hap}"

    @property
    def miniprot_dir(self) -> Path:
        return self.hap_dir / 'miniprot'

    @property
    def liftoff_dir(self) -> Path:
        return self.hap_dir / 'liftoff'

    @property
    def annotation_copy(self) -> Path:
        return self.hap_dir / self.annotation_name

    @property
    def miniprot_gff(self) -> Path:
        return self.miniprot_dir / MINIPROT_GFF

    @property
    def liftoff_gff(self) -> Path:
        return self.liftoff_dir / LIFTOFF_GFF

    @property
    def lifton_gff(self) -> Path:
        return self.hap_dir / LIFTON_GFF.format(hap=self.hap)

    @property
    def placeholders(self):
        return [
            database_placeholder(self.annotation_copy),
            database_placeholder(self.miniprot_gff),
            database_placeholder(self.liftoff_gff),
        ]
