#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command-line interface for HapWeaver.

This module provides the main CLI entry point and the five stage-runner
subcommands (correct, assemble, polish, refine, annotate) plus the config
and manifest helpers.
"""

import logging
import sys
import click
from pathlib import Path
import yaml

from .version import __version__
from .config import ConfigParser, ConfigValidationError, load_config, save_config_template, validate_config
from .config.schema import VALID_LOG_LEVELS, VALID_ONT_TYPES
from .utils.context import RunContext
from .utils.manifest import (
    MANIFEST_FILE,
    ROLE_CORRECTED_READS,
    ROLE_DRAFT_ASSEMBLY,
    ROLE_HAPLOTYPE_1,
    ROLE_HAPLOTYPE_2,
    ManifestError,
    StageManifest,
    resolve_input,
)
from .utils.validation import ValidationError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])


def common_options(func):
    """--config and --log-level, shared by every stage command."""
    func = click.option('--log-level', type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
                        default=None, help='Logging level (overrides config)')(func)
    func = click.option('--config', 'config_file', type=click.Path(),
                        help='YAML configuration file with overrides')(func)
    return func


def manifest_option(func):
    return click.option('--manifest', 'manifest_path', type=click.Path(),
                        help="Previous stage's manifest.json (or its directory) to take inputs from")(func)


def setup_logging(config: ConfigParser, output_dir=None):
    """Log to stderr and, when an output directory is known, to its stage log."""
    level = getattr(logging, str(config.get('output.logging.level', 'INFO')).upper())
    handlers = [logging.StreamHandler()]
    if output_dir:
        log_file = Path(output_dir) / config.get('output.logging.log_file', 'hapweaver.log')
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def prepare_run(ctx, config_file, log_level, output_dir) -> RunContext:
    """
    Load configuration, create the output directory and configure logging.

    Exits with code 1 on configuration errors.
    """
    try:
        config = ConfigParser(config_file)
    except ConfigValidationError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        ctx.exit(1)

    if log_level:
        config.merge_cli_overrides({'output.logging.level': log_level.upper()})

    errors = validate_config(config.to_dict())
    if errors:
        click.echo("❌ Configuration validation failed:", err=True)
        for error in errors:
            click.echo(f"  • {error}", err=True)
        ctx.exit(1)

    if output_dir:
        Path(output_dir).mkdir(parents=True, exist_ok=True)
    setup_logging(config, output_dir)
    return RunContext(config=config)


def load_manifest(ctx, manifest_path, context: RunContext):
    if not manifest_path:
        return None
    try:
        return StageManifest.load(manifest_path, context.get('pipeline.manifest_file', MANIFEST_FILE))
    except ManifestError as e:
        click.echo(f"❌ Error: {e}", err=True)
        ctx.exit(1)


def inputs_from_manifest(ctx, manifest, **explicit):
    """Fill unset inputs from the manifest; ``explicit`` maps name -> (value, role)."""
    resolved = {}
    for name, (value, role) in explicit.items():
        try:
            resolved[name] = resolve_input(value, manifest, role)
        except ManifestError as e:
            click.echo(f"❌ Error: {e}", err=True)
            ctx.exit(1)
    return resolved


def fail_validation(ctx, error: ValidationError):
    logging.getLogger(__name__).error(str(error))
    click.echo(f"❌ Error: {error}", err=True)
    ctx.exit(1)


def finish_stage(ctx, label, result, artifacts):
    if result.success:
        click.echo(f"\n✅ {label} complete")
        for artifact in artifacts:
            click.echo(f"   {artifact}")
        ctx.exit(0)

    failed = result.failed_step
    click.echo(f"\n❌ {label} failed at step '{failed.step}' (exit code {failed.exit_code})", err=True)
    if failed.log_path:
        click.echo(f"   Log: {failed.log_path}", err=True)
    ctx.exit(1)


def finish_dual(ctx, label, result):
    for hap in (1, 2):
        status = "✓" if result.exit_code(hap) == 0 else "✗"
        click.echo(f"  {status} Haplotype {hap} exit code: {result.exit_code(hap)}")
    if result.overall_exit_code == 0:
        click.echo(f"\n✅ {label} complete for both haplotypes")
    else:
        click.echo(f"\n❌ {label} failed (exit code {result.overall_exit_code})", err=True)
    ctx.exit(result.overall_exit_code)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name='HapWeaver')
@click.pass_context
def main(ctx):
    """
    HapWeaver: ONT Genome Assembly Pipeline

    Five resumable stages turn ONT long reads and paired short reads into two
    refined, annotated haplotype assemblies:

    \b
      correct  -> Ratatosk long-read correction
      assemble -> Flye draft assembly
      polish   -> Hypo polishing and scaffolding
      refine   -> RagTag reference-guided refinement (both haplotypes)
      annotate -> LiftOn annotation transfer (both haplotypes)
    """
    ctx.ensure_object(dict)


# ============================================================================
# Configuration Management Commands
# ============================================================================

@main.group(context_settings=CONTEXT_SETTINGS)
def config():
    """Configuration management commands."""
    pass


@config.command('init')
@click.option('--output', '-o', type=click.Path(), default='hapweaver_config.yaml',
              help='Output configuration file path')
@click.option('--template', '-t', type=click.Choice(['default', 'r9', 'workstation']),
              default='default', help='Configuration template type')
def config_init(output, template):
    """Generate a template configuration file with all available parameters."""
    click.echo(f"Generating {template} configuration template: {output}")

    try:
        save_config_template(Path(output), template=template)
    except OSError as e:
        click.echo(f"✗ Error creating configuration: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Configuration file created: {output}")
    click.echo("\nThe configuration file includes:")
    click.echo("  • External tool executable names")
    click.echo("  • Per-stage defaults (threads, genome size, coverage, memory)")
    click.echo("  • Output verification and logging settings")


@config.command('validate')
@click.argument('config_file', type=click.Path(exists=True))
def config_validate(config_file):
    """Validate a configuration file."""
    click.echo(f"Validating configuration file: {config_file}")

    try:
        config = load_config(Path(config_file))
    except ConfigValidationError as e:
        click.echo(f"✗ Error validating configuration: {e}", err=True)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        click.echo("\n✗ Configuration validation failed:")
        for error in errors:
            click.echo(f"  • {error}", err=True)
        sys.exit(1)

    click.echo("✓ Configuration is valid")
    click.echo("\nKey Settings:")
    click.echo(f"  ONT type: {config['correction']['ont_type']}")
    click.echo(f"  Assembly threads: {config['assembly']['threads']}")
    click.echo(f"  Polishing threads: {config['polishing']['threads']}")


@config.command('show')
@click.argument('config_file', type=click.Path(exists=True), required=False)
@click.option('--format', '-f', type=click.Choice(['yaml', 'summary']), default='summary',
              help='Output format')
def config_show(config_file, format):
    """Display configuration settings (defaults when no file is given)."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigValidationError as e:
        click.echo(f"✗ Error loading configuration: {e}", err=True)
        sys.exit(1)

    if format == 'yaml':
        click.echo(yaml.dump(config, default_flow_style=False, sort_keys=False))
        return

    click.echo(f"Configuration from: {config_file or 'built-in defaults'}")
    click.echo("=" * 60)

    click.echo("\n🔧 Tools:")
    for tool, executable in config['tools'].items():
        click.echo(f"  {tool}: {executable}")

    click.echo("\n🧬 Correction:")
    correction = config['correction']
    click.echo(f"  ONT type: {correction['ont_type']} "
               f"(max_lr_bq {correction['max_lr_bq'].get(correction['ont_type'])})")
    click.echo(f"  Nextflow profile: {correction['nextflow_profile']}")

    click.echo("\n🧩 Assembly:")
    click.echo(f"  Threads: {config['assembly']['threads']}")
    click.echo(f"  Genome size: {config['assembly']['genome_size']}")

    click.echo("\n✨ Polishing:")
    polishing = config['polishing']
    click.echo(f"  Threads: {polishing['threads']}  k-mer: {polishing['kmer_length']}")
    click.echo(f"  Coverage (long/short): {polishing['long_read_coverage']}/{polishing['short_read_coverage']}")
    click.echo(f"  Sort: {polishing['sort_threads']} threads x {polishing['sort_memory']}")

    click.echo("\n📍 Refinement / Annotation:")
    click.echo(f"  Threads: {config['refinement']['threads']} / {config['annotation']['threads']}")

    click.echo("\n" + "=" * 60)


# ============================================================================
# Manifest Commands
# ============================================================================

@main.group(context_settings=CONTEXT_SETTINGS)
def manifest():
    """Inspect stage manifests."""
    pass


@manifest.command('show')
@click.argument('path', type=click.Path(exists=True))
@click.option('--config', 'config_file', type=click.Path(),
              help='YAML configuration file (for a custom manifest file name)')
def manifest_show(path, config_file):
    """Print the manifest in PATH (a manifest.json or a stage output directory)."""
    try:
        config = ConfigParser(config_file)
        record = StageManifest.load(path, config.get('pipeline.manifest_file', MANIFEST_FILE))
    except (ConfigValidationError, ManifestError) as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    click.echo(f"Stage: {record.stage}")
    click.echo(f"Timestamp: {record.timestamp}")
    click.echo("=" * 60)
    click.echo("Artifacts:")
    for role, artifact in record.artifacts.items():
        click.echo(f"  {role}: {artifact}")
    click.echo("Exit codes:")
    for label, code in record.exit_codes.items():
        click.echo(f"  {label}: {code}")
    click.echo("Parameters:")
    for key, value in record.parameters.items():
        click.echo(f"  {key}: {value}")


# ============================================================================
# Stage 1: Correction
# ============================================================================

@main.command(context_settings=CONTEXT_SETTINGS)
@click.option('-w', '--work-dir', help='Ratatosk working directory (contains Ratatosk.nf)')
@click.option('-l', '--long-reads', help='ONT long reads (FASTQ)')
@click.option('-s', '--short-reads', help='Paired short reads, comma-separated: R1,R2')
@click.option('-o', '--output', 'output_dir', help='Output directory')
@click.option('-t', '--ont-type', type=str, default=None,
              help=f"ONT chemistry: {' or '.join(VALID_ONT_TYPES)} (default: R10)")
@click.option('-n', '--sample', help='Sample name (default: long-read file name up to the first dot)')
@common_options
@click.pass_context
def correct(ctx, work_dir, long_reads, short_reads, output_dir, ont_type, sample,
            config_file, log_level):
    """Correct ONT long reads with short reads using Ratatosk."""
    from .stages.correction import run_correction, validate_correction

    context = prepare_run(ctx, config_file, log_level, output_dir)
    try:
        params = validate_correction(work_dir, long_reads, short_reads, output_dir,
                                     ont_type=ont_type, sample=sample, context=context)
    except ValidationError as e:
        fail_validation(ctx, e)

    layout = params.layout
    context = context.with_log_dir(layout.sample_dir / context.get('pipeline.step_log_dir', 'logs'))
    result = run_correction(params, context)
    finish_stage(ctx, 'Correction', result, [layout.corrected_reads])


# ============================================================================
# Stage 2: Assembly
# ============================================================================

@main.command(context_settings=CONTEXT_SETTINGS)
@click.option('-i', '--input', 'reads', help='Corrected long reads')
@click.option('-o', '--output', 'output_dir', help='Output directory')
@click.option('-t', '--threads', type=str, default=None, help='Number of threads (default: 64)')
@click.option('-g', '--genome-size', type=str, default=None, help='Estimated genome size (default: 2.5g)')
@manifest_option
@common_options
@click.pass_context
def assemble(ctx, reads, output_dir, threads, genome_size, manifest_path, config_file, log_level):
    """Assemble corrected long reads with Flye."""
    from .stages.assembly import run_assembly, validate_assembly

    context = prepare_run(ctx, config_file, log_level, output_dir)
    previous = load_manifest(ctx, manifest_path, context)
    inputs = inputs_from_manifest(ctx, previous, reads=(reads, ROLE_CORRECTED_READS))
    try:
        params = validate_assembly(inputs['reads'], output_dir, threads=threads,
                                   genome_size=genome_size, context=context)
    except ValidationError as e:
        fail_validation(ctx, e)

    context = context.with_log_dir(params.output_dir / context.get('pipeline.step_log_dir', 'logs'))
    result = run_assembly(params, context)
    finish_stage(ctx, 'Assembly', result, [params.layout.draft_assembly])


# ============================================================================
# Stage 3: Polishing
# ============================================================================

@main.command(context_settings=CONTEXT_SETTINGS)
@click.option('-d', '--draft', help='Draft assembly (FASTA)')
@click.option('-l', '--long-reads', help='ONT long reads')
@click.option('-1', '--short-reads-1', 'short_reads_1', help='Short reads, mate 1')
@click.option('-2', '--short-reads-2', 'short_reads_2', help='Short reads, mate 2')
@click.option('-o', '--output', 'output_dir', help='Output directory')
@click.option('-H', '--hypo-dir', help='hypo-assembler installation directory')
@click.option('-t', '--threads', type=str, default=None, help='Number of threads (default: 24)')
@click.option('-g', '--genome-size', type=str, default=None, help='Genome size (default: 2.5G)')
@click.option('-k', '--kmer-length', type=str, default=None, help='K-mer length (default: 17)')
@click.option('-C', '--long-read-coverage', type=str, default=None, help='Long-read coverage (default: 25)')
@click.option('-c', '--short-read-coverage', type=str, default=None, help='Short-read coverage (default: 25)')
@click.option('-p', '--batch-number', type=str, default=None, help='Hypo batch number (default: 20)')
@manifest_option
@common_options
@click.pass_context
def polish(ctx, draft, long_reads, short_reads_1, short_reads_2, output_dir, hypo_dir,
           threads, genome_size, kmer_length, long_read_coverage, short_read_coverage,
           batch_number, manifest_path, config_file, log_level):
    """Polish and scaffold a draft assembly with Hypo-assembler."""
    from .stages.polishing import run_polishing, validate_polishing

    context = prepare_run(ctx, config_file, log_level, output_dir)
    previous = load_manifest(ctx, manifest_path, context)
    inputs = inputs_from_manifest(ctx, previous, draft=(draft, ROLE_DRAFT_ASSEMBLY))
    try:
        params = validate_polishing(
            inputs['draft'], long_reads, short_reads_1, short_reads_2, output_dir, hypo_dir,
            threads=threads, genome_size=genome_size, kmer_length=kmer_length,
            long_read_coverage=long_read_coverage, short_read_coverage=short_read_coverage,
            batch_number=batch_number, context=context,
        )
    except ValidationError as e:
        fail_validation(ctx, e)

    context = context.with_log_dir(params.output_dir / context.get('pipeline.step_log_dir', 'logs'))
    result = run_polishing(params, context)
    finish_stage(ctx, 'Polishing', result,
                 [params.layout.final_scaffold(1), params.layout.final_scaffold(2)])


# ============================================================================
# Stage 4: Refinement
# ============================================================================

@main.command(context_settings=CONTEXT_SETTINGS)
@click.option('-r', '--reference', help='Reference genome (FASTA)')
@click.option('-1', '--query-1', 'query_1', help='Haplotype 1 assembly')
@click.option('-2', '--query-2', 'query_2', help='Haplotype 2 assembly')
@click.option('-l', '--long-reads', help='ONT long reads')
@click.option('-o', '--output', 'output_dir', help='Output directory')
@click.option('-t', '--threads', type=str, default=None, help='Number of threads (default: 24)')
@click.option('-T', '--read-type', type=str, default=None, help='RagTag read type (default: ont)')
@manifest_option
@common_options
@click.pass_context
def refine(ctx, reference, query_1, query_2, long_reads, output_dir, threads, read_type,
           manifest_path, config_file, log_level):
    """Refine both haplotypes against a reference with RagTag (in parallel)."""
    from .stages.refinement import run_refinement, validate_refinement

    context = prepare_run(ctx, config_file, log_level, output_dir)
    previous = load_manifest(ctx, manifest_path, context)
    inputs = inputs_from_manifest(ctx, previous,
                                  query_1=(query_1, ROLE_HAPLOTYPE_1),
                                  query_2=(query_2, ROLE_HAPLOTYPE_2))
    try:
        params = validate_refinement(reference, inputs['query_1'], inputs['query_2'], long_reads,
                                     output_dir, threads=threads, read_type=read_type,
                                     context=context)
    except ValidationError as e:
        fail_validation(ctx, e)

    context = context.with_log_dir(params.output_dir / context.get('pipeline.step_log_dir', 'logs'))
    result = run_refinement(params, context)
    finish_dual(ctx, 'Refinement', result)


# ============================================================================
# Stage 5: Annotation
# ============================================================================

@main.command(context_settings=CONTEXT_SETTINGS)
@click.option('-r', '--reference', help='Reference genome (FASTA)')
@click.option('-1', '--assembly-1', 'assembly_1', help='Refined haplotype 1 assembly')
@click.option('-2', '--assembly-2', 'assembly_2', help='Refined haplotype 2 assembly')
@click.option('-g', '--gff3', 'annotation', help='Reference annotation (GFF3)')
@click.option('-P', '--proteins', help='Reference proteins (FASTA)')
@click.option('-T', '--transcripts', help='Reference transcripts (FASTA)')
@click.option('-o', '--output', 'output_dir', help='Output directory')
@click.option('-t', '--threads', type=str, default=None, help='Number of threads (default: 24)')
@manifest_option
@common_options
@click.pass_context
def annotate(ctx, reference, assembly_1, assembly_2, annotation, proteins, transcripts,
             output_dir, threads, manifest_path, config_file, log_level):
    """Transfer a reference annotation onto both haplotypes with LiftOn (in parallel)."""
    from .stages.annotation import run_annotation, validate_annotation

    context = prepare_run(ctx, config_file, log_level, output_dir)
    previous = load_manifest(ctx, manifest_path, context)
    inputs = inputs_from_manifest(ctx, previous,
                                  assembly_1=(assembly_1, ROLE_HAPLOTYPE_1),
                                  assembly_2=(assembly_2, ROLE_HAPLOTYPE_2))
    try:
        params = validate_annotation(reference, inputs['assembly_1'], inputs['assembly_2'],
                                     annotation, proteins, transcripts, output_dir,
                                     threads=threads, context=context)
    except ValidationError as e:
        fail_validation(ctx, e)

    context = context.with_log_dir(params.output_dir / context.get('pipeline.step_log_dir', 'logs'))
    result = run_annotation(params, context)
    finish_dual(ctx, 'Annotation', result)


if __name__ == '__main__':
    sys.exit(main())
