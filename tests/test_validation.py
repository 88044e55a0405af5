#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Tests for parameter and precondition validation.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import pytest

from hapweaver.stages.polishing import validate_polishing
from hapweaver.utils.context import ToolRegistry
from hapweaver.utils.validation import (
    ValidationError,
    check_choice,
    check_input_dir,
    check_input_file,
    check_scripts,
    check_tools,
    parse_positive_int,
    require_parameters,
    split_pair,
)


class TestPositiveIntegers:

    @pytest.mark.parametrize('value', ['0', '-1', '+3', '1.5', 'abc', '', ' ', None, '00'])
    def test_rejected(self, value):
        with pytest.raises(ValidationError) as excinfo:
            parse_positive_int('threads', value)
        assert excinfo.value.parameter == 'threads'
        assert 'threads' in str(excinfo.value)

    @pytest.mark.parametrize('value,expected', [('1', 1), ('24', 24), (64, 64), ('007', 7)])
    def test_accepted(self, value, expected):
        assert parse_positive_int('threads', value) == expected


class TestRequiredParameters:

    def test_first_missing_is_reported(self):
        with pytest.raises(ValidationError) as excinfo:
            require_parameters({'draft (-d)': 'x.fa', 'long_reads (-l)': '', 'output_dir (-o)': None})
        assert excinfo.value.parameter == 'long_reads (-l)'

    def test_all_present(self):
        require_parameters({'a': 'x', 'b': 'y'})


class TestChoicesAndPairs:

    def test_choice(self):
        assert check_choice('ont_type', 'R9', ('R9', 'R10')) == 'R9'
        with pytest.raises(ValidationError, match='R11'):
            check_choice('ont_type', 'R11', ('R9', 'R10'))

    def test_pair(self):
        assert split_pair('short_reads', 'a.fq,b.fq') == ('a.fq', 'b.fq')

    @pytest.mark.parametrize('value', ['a.fq', 'a.fq,b.fq,c.fq', 'a.fq,', ',b.fq'])
    def test_bad_pair(self, value):
        with pytest.raises(ValidationError) as excinfo:
            split_pair('short_reads', value)
        assert excinfo.value.value == value


class TestPaths:

    def test_file_must_exist(self, temp_output_dir):
        with pytest.raises(ValidationError, match='draft'):
            check_input_file('draft', temp_output_dir / 'missing.fa')

    def test_directory_is_not_a_file(self, temp_output_dir):
        with pytest.raises(ValidationError):
            check_input_file('draft', temp_output_dir)

    def test_directory(self, temp_output_dir):
        assert check_input_dir('hypo_dir', temp_output_dir) == temp_output_dir
        with pytest.raises(ValidationError):
            check_input_dir('hypo_dir', temp_output_dir / 'nope')

    def test_scripts(self, temp_output_dir):
        script = temp_output_dir / 'run_overlap.sh'
        script.write_text('#!/bin/sh\n')
        check_scripts({'run_overlap.sh': script})
        with pytest.raises(ValidationError, match='run_scaffold.sh'):
            check_scripts({'run_scaffold.sh': temp_output_dir / 'run_scaffold.sh'})


class TestTools:

    def test_resolves_from_extra_path(self, tools, make_tool):
        make_tool('flye')
        check_tools(tools, ['flye'])

    def test_missing_tool(self, bin_dir):
        registry = ToolRegistry({'flye': 'hapweaver-no-such-flye'}, extra_paths=[bin_dir])
        with pytest.raises(ValidationError, match='hapweaver-no-such-flye'):
            check_tools(registry, ['flye'])

    def test_executable_name_mapping(self, tools, make_tool):
        path = make_tool('ragtag.py')
        assert tools.resolve('ragtag') == str(path)

    def test_env_does_not_touch_os_environ(self, tools, bin_dir):
        import os
        before = os.environ.get('PATH')
        env = tools.env()
        assert env['PATH'].startswith(str(bin_dir))
        assert os.environ.get('PATH') == before


class TestValidationOrder:
    """Checks run required -> numeric -> files -> dirs -> tools -> scripts."""

    def _inputs(self, root):
        files = {}
        for name in ('draft.fa', 'long.fq', 'r1.fq', 'r2.fq'):
            path = root / name
            path.write_text('x\n')
            files[name] = str(path)
        return files

    def test_missing_parameter_before_bad_number(self, temp_output_dir, run_context):
        with pytest.raises(ValidationError) as excinfo:
            validate_polishing(None, 'long.fq', 'r1.fq', 'r2.fq', 'out', 'hypo',
                               threads='0', context=run_context)
        assert excinfo.value.parameter == 'draft (-d)'

    def test_bad_number_before_missing_file(self, temp_output_dir, run_context):
        with pytest.raises(ValidationError) as excinfo:
            validate_polishing('missing.fa', 'long.fq', 'r1.fq', 'r2.fq', 'out', 'hypo',
                               threads='0', context=run_context)
        assert excinfo.value.parameter == 'threads (-t)'

    def test_missing_file_before_missing_dir(self, temp_output_dir, run_context):
        files = self._inputs(temp_output_dir)
        with pytest.raises(ValidationError) as excinfo:
            validate_polishing(files['draft.fa'], str(temp_output_dir / 'gone.fq'),
                               files['r1.fq'], files['r2.fq'], str(temp_output_dir / 'out'),
                               str(temp_output_dir / 'no-hypo'), context=run_context)
        assert excinfo.value.parameter == 'long_reads (-l)'

    def test_missing_dir_before_tools(self, temp_output_dir, run_context):
        files = self._inputs(temp_output_dir)
        with pytest.raises(ValidationError) as excinfo:
            validate_polishing(files['draft.fa'], files['long.fq'], files['r1.fq'], files['r2.fq'],
                               str(temp_output_dir / 'out'), str(temp_output_dir / 'no-hypo'),
                               context=run_context)
        assert excinfo.value.parameter == 'hypo_dir (-H)'

    def test_nothing_created_on_failure(self, temp_output_dir, run_context):
        files = self._inputs(temp_output_dir)
        out = temp_output_dir / 'out'
        with pytest.raises(ValidationError):
            validate_polishing(files['draft.fa'], files['long.fq'], files['r1.fq'], files['r2.fq'],
                               str(out), str(temp_output_dir / 'no-hypo'), context=run_context)
        assert not out.exists()
