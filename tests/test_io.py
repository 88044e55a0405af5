#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Tests for read file helpers.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import gzip

from hapweaver.io import concatenate_files, infer_sample_name, strip_read_suffixes


class TestStripReadSuffixes:

    def test_only_header_lines_change(self, temp_output_dir):
        source = temp_output_dir / 'mate.fq'
        source.write_text("@read1/1\nACGT/1\n+read1/1\nII/1\n@read2/1\nGGGG\n+\nJJJJ\n")
        dest = temp_output_dir / 'out.fq'

        written = strip_read_suffixes(source, dest)

        assert written == 8
        assert dest.read_text() == "@read1\nACGT/1\n+read1/1\nII/1\n@read2\nGGGG\n+\nJJJJ\n"

    def test_gzipped_input(self, temp_output_dir):
        source = temp_output_dir / 'mate.fq.gz'
        with gzip.open(source, 'wt') as f:
            f.write("@r/2\nAC\n+\nII\n")
        dest = temp_output_dir / 'out.fq'

        strip_read_suffixes(source, dest)

        assert dest.read_text() == "@r\nAC\n+\nII\n"

    def test_bytes_copied_unchanged(self, temp_output_dir):
        source = temp_output_dir / 'mate.fq'
        source.write_bytes(b"@r\xe9ad/1\nACGT\r\n+\xff\r\nIIII")
        dest = temp_output_dir / 'out.fq'

        written = strip_read_suffixes(source, dest)

        assert written == 4
        assert dest.read_bytes() == b"@r\xe9ad\nACGT\r\n+\xff\r\nIIII\n"

    def test_empty_input(self, temp_output_dir):
        source = temp_output_dir / 'empty.fq'
        source.touch()
        dest = temp_output_dir / 'out.fq'

        assert strip_read_suffixes(source, dest) == 0
        assert dest.read_text() == ''


class TestConcatenate:

    def test_order_preserved(self, temp_output_dir):
        first = temp_output_dir / 'a.txt'
        second = temp_output_dir / 'b.txt'
        first.write_text('first\n')
        second.write_text('second\n')
        dest = temp_output_dir / 'joined.txt'

        concatenate_files([first, second], dest)

        assert dest.read_text() == 'first\nsecond\n'


def test_infer_sample_name():
    assert infer_sample_name('/data/SAMPLE.fq.gz') == 'SAMPLE'
    assert infer_sample_name('HG002.ont.R10.fastq') == 'HG002'
    assert infer_sample_name('noext') == 'noext'
