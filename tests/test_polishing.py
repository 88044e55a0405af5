#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Tests for the polishing stage against fake minimap2/samtools/hypo tools.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import pytest

from hapweaver.stages.polishing import run_polishing, validate_polishing
from hapweaver.utils.runner import StepStatus
from hapweaver.utils.validation import ValidationError


FAKE_TOOLS = {
    'minimap2': """
sys.stdout.write('@HD\\tVN:1.6\\n')
""",
    'samtools': """
data = sys.stdin.buffer.read()
if sys.argv[1] == 'view':
    sys.stdout.buffer.write(data)
else:
    with gzip.open(opt('-o'), 'wb') as f:
        f.write(data)
""",
    'suk': """
write(opt('-o') + '_k' + opt('-k') + '.bv', 'solid kmers\\n')
""",
    'python': """
write(sys.argv[4], '>misjoin\\nACGT\\n')
""",
    'sh': """
script = os.path.basename(sys.argv[1])
prefix = opt('-o')
if script == 'run_overlap.sh':
    write(prefix + '.fa', '>overlap\\nACGT\\n')
else:
    write(prefix + '_1.fa', '>scaffold_1\\nACGT\\n')
    write(prefix + '_2.fa', '>scaffold_2\\nACGT\\n')
""",
    'hypo': """
write(opt('-o') + '_1.fa', '>polished_1\\nACGT\\n')
write(opt('-o') + '_2.fa', '>polished_2\\nACGT\\n')
""",
}


@pytest.fixture
def polish_inputs(temp_output_dir, make_tool):
    for name, body in FAKE_TOOLS.items():
        make_tool(name, body)

    hypo_dir = temp_output_dir / 'hypo-assembler'
    scripts = hypo_dir / 'run_all'
    scripts.mkdir(parents=True)
    for script in ('scan_misjoin.py', 'run_overlap.sh', 'run_scaffold.sh'):
        (scripts / script).write_text('# helper\n')

    files = {}
    for name, text in (('draft.fa', '>ctg\nACGT\n'), ('long.fq', '@l\nACGT\n+\nIIII\n'),
                       ('r1.fq', '@s\nAC\n+\nII\n'), ('r2.fq', '@s\nGT\n+\nII\n')):
        path = temp_output_dir / name
        path.write_text(text)
        files[name] = str(path)

    return dict(
        draft=files['draft.fa'],
        long_reads=files['long.fq'],
        short_reads_1=files['r1.fq'],
        short_reads_2=files['r2.fq'],
        output_dir=str(temp_output_dir / 'polished'),
        hypo_dir=str(hypo_dir),
    )


class TestPolishingValidation:

    def test_defaults_from_config(self, polish_inputs, run_context):
        params = validate_polishing(context=run_context, **polish_inputs)

        assert params.threads == 24
        assert params.kmer_length == 17
        assert params.long_read_coverage == 25
        assert params.short_read_coverage == 25
        assert params.batch_number == 20
        assert params.genome_size == '2.5G'

    @pytest.mark.parametrize('option', ['threads', 'kmer_length', 'long_read_coverage',
                                        'short_read_coverage', 'batch_number'])
    def test_numeric_options_must_be_positive(self, polish_inputs, run_context, option):
        with pytest.raises(ValidationError) as excinfo:
            validate_polishing(context=run_context, **{option: '0'}, **polish_inputs)
        assert option in excinfo.value.parameter

    def test_empty_genome_size_is_missing(self, polish_inputs, run_context):
        with pytest.raises(ValidationError) as excinfo:
            validate_polishing(genome_size='', context=run_context, **polish_inputs)
        assert excinfo.value.parameter == 'genome_size (-g)'

    def test_helper_scripts_required(self, polish_inputs, run_context):
        from pathlib import Path
        (Path(polish_inputs['hypo_dir']) / 'run_all' / 'run_scaffold.sh').unlink()
        with pytest.raises(ValidationError, match='run_scaffold.sh'):
            validate_polishing(context=run_context, **polish_inputs)


class TestPolishingRun:

    def test_full_chain(self, polish_inputs, run_context, tool_calls):
        params = validate_polishing(threads='8', context=run_context, **polish_inputs)

        result = run_polishing(params, run_context)

        assert result.success
        layout = params.layout
        for path in (layout.shorts_list, layout.long_alignment, layout.solid_kmers,
                     layout.misjoin, layout.overlaps, layout.overlap_long_alignment,
                     layout.overlap_short_alignment, layout.polished(1), layout.polished(2),
                     layout.scaffold(1), layout.scaffold(2)):
            assert path.exists(), path
        assert layout.final_scaffold(1).read_text().startswith('>scaffold_1')
        assert layout.final_scaffold(2).read_text().startswith('>scaffold_2')
        assert layout.shorts_list.read_text() == (
            f"{params.short_reads_1}\n{params.short_reads_2}\n")
        assert not list(layout.temp_dir.glob('*.partial*'))

    def test_tool_arguments(self, polish_inputs, run_context, tool_calls):
        params = validate_polishing(threads='8', kmer_length='21', context=run_context,
                                    **polish_inputs)
        run_polishing(params, run_context)

        minimap = [c['argv'] for c in tool_calls('minimap2')]
        assert minimap[0][:4] == ['-ax', 'map-ont', '-t', '8']
        assert minimap[1][:4] == ['-I', '64G', '-ax', 'map-ont']
        assert minimap[2][:4] == ['-I', '64G', '-ax', 'sr']

        sort = [c['argv'] for c in tool_calls('samtools') if c['argv'][0] == 'sort']
        assert sort[0][:5] == ['sort', '-@', '20', '-m', '7G']

        suk = tool_calls('suk')[0]['argv']
        assert suk[suk.index('-i') + 1] == f"@{params.layout.shorts_list}"
        assert suk[suk.index('-m') + 1] == '12'
        assert params.layout.solid_kmers.name == 'SUK_k21.bv'

        hypo = tool_calls('hypo')[0]['argv']
        assert hypo[hypo.index('-L') + 1] == '12'
        assert hypo[hypo.index('-p') + 1] == '20'
        assert hypo[hypo.index('-d') + 1] == str(params.layout.overlaps)

    def test_resume_from_first_missing_step(self, polish_inputs, run_context, tool_calls):
        params = validate_polishing(context=run_context, **polish_inputs)
        run_polishing(params, run_context)
        params.layout.overlap_short_alignment.unlink()

        result = run_polishing(params, run_context)

        statuses = {r.step: r.status for r in result.completed_steps}
        assert statuses['overlap_short_align'] == StepStatus.SUCCEEDED
        assert statuses['polish'] == StepStatus.SKIPPED
        assert statuses['scaffold'] == StepStatus.SKIPPED
        assert len(tool_calls('hypo')) == 1
        assert len(tool_calls('minimap2')) == 4

    def test_missing_companion_aborts(self, polish_inputs, run_context, make_tool):
        make_tool('hypo', "write(opt('-o') + '_1.fa', '>polished_1\\nACGT\\n')")
        params = validate_polishing(context=run_context, **polish_inputs)

        result = run_polishing(params, run_context)

        assert result.failed_step.step == 'polish'
        assert result.failed_step.status == StepStatus.MISSING_OUTPUT
        assert not params.layout.polished(1).exists()
        assert not params.layout.final_scaffold(1).exists()

    def test_final_scaffolds_copied_when_missing(self, polish_inputs, run_context, tool_calls):
        params = validate_polishing(context=run_context, **polish_inputs)
        run_polishing(params, run_context)
        params.layout.final_scaffold(2).unlink()

        result = run_polishing(params, run_context)

        assert result.success
        assert params.layout.final_scaffold(2).exists()
        assert len(tool_calls('sh')) == 2
