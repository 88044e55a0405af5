#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Core I/O module for HapWeaver.

Consolidated module containing:
- File utilities with automatic gzip detection
- Short-read header normalisation (mate suffix stripping)
- Ordered file concatenation
- Sample name inference from read file names

These are the only places the orchestrator touches sequence data itself;
everything else is handed to external tools by path.
"""

# =============================================================================
# SECTION 1: IMPORTS AND DEPENDENCIES
# =============================================================================

import gzip
import shutil
from pathlib import Path
from typing import IO, Iterable, Union


FASTQ_RECORD_LINES = 4
MATE_SUFFIX_LENGTH = 2  # "/1" or "/2"


# =============================================================================
# SECTION 2: FILE UTILITIES
# =============================================================================
# Helper functions for file handling with automatic gzip detection

def is_gzipped(filepath: Union[str, Path]) -> bool:
    """
    Check if file is gzip compressed.

    Args:
        filepath: Path to file

    Returns:
        True if file is gzipped
    """
    filepath = Path(filepath)
    return filepath.suffix in ('.gz', '.gzip')


def open_file(filepath: Union[str, Path], mode: str = 'r') -> IO:
    """
    Open file with automatic gzip detection.

    Args:
        filepath: Path to file
        mode: File mode ('r', 'w', 'rb' or 'wb')

    Returns:
        File handle
    """
    filepath = Path(filepath)

    if is_gzipped(filepath):
        if 'b' in mode:
            return gzip.open(filepath, mode)
        if 'r' in mode:
            return gzip.open(filepath, 'rt')
        else:
            return gzip.open(filepath, 'wt')
    else:
        return open(filepath, mode)


# =============================================================================
# SECTION 3: SHORT-READ PREPROCESSING
# =============================================================================

def strip_read_suffixes(source: Union[str, Path], destination: Union[str, Path]) -> int:
    """
    Copy a FASTQ file, dropping the last two bytes of every header line.

    The header is the first line of each 4-line record; mate markers such as
    ``/1`` and ``/2`` are removed so both mates share a read name. All other
    lines are copied byte for byte. Gzipped input is decompressed on the fly.
    Every output line ends in ``\\n``, including an unterminated last line.

    Args:
        source: Input FASTQ (plain or .gz)
        destination: Plain-text output path

    Returns:
        Number of lines written
    """
    written = 0
    with open_file(source, 'rb') as src, open(destination, 'wb') as dest:
        for line_number, line in enumerate(src):
            if line.endswith(b'\n'):
                line = line[:-1]
            if line_number % FASTQ_RECORD_LINES == 0:
                line = line[:-MATE_SUFFIX_LENGTH]
            dest.write(line + b'\n')
            written += 1
    return written


def concatenate_files(sources: Iterable[Union[str, Path]], destination: Union[str, Path]):
    """
    Concatenate files byte-for-byte in the given order.

    Args:
        sources: Input files, written in iteration order
        destination: Output path (truncated)
    """
    with open(destination, 'wb') as dest:
        for source in sources:
            with open(source, 'rb') as src:
                shutil.copyfileobj(src, dest)


def infer_sample_name(reads_path: Union[str, Path]) -> str:
    """
    Infer a sample name from a read file name.

    The name is the basename up to the first dot
    (``/data/SAMPLE.fq.gz`` -> ``SAMPLE``).
    """
    return Path(reads_path).name.split('.', 1)[0]
