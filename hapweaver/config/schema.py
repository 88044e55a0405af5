"""
HapWeaver v0.1.0

Configuration schema for HapWeaver.

Defines the tool names, stage defaults and runtime knobs with their default
values and validation.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import copy
import re
from typing import Dict, Any, Optional, List
from pathlib import Path
import yaml


# Default configuration values
DEFAULT_CONFIG = {
    # ========================================================================
    # External tools (executable names, resolved against PATH at run time)
    # ========================================================================
    'tools': {
        'nextflow': 'nextflow',
        'flye': 'flye',
        'minimap2': 'minimap2',
        'samtools': 'samtools',
        'suk': 'suk',
        'hypo': 'hypo',
        'python': 'python',
        'sh': 'sh',
        'ragtag': 'ragtag.py',
        'miniprot': 'miniprot',
        'lifton': 'lifton',
    },

    # ========================================================================
    # Pipeline Control
    # ========================================================================
    'pipeline': {
        'verify_outputs': True,  # Format sanity check before committing artifacts
        'step_log_dir': 'logs',  # Relative to each stage output directory
        'manifest_file': 'manifest.json',
    },

    # ========================================================================
    # Stage 1: Ratatosk correction
    # ========================================================================
    'correction': {
        'ont_type': 'R10',
        'max_lr_bq': {
            'R9': 40,
            'R10': 90,
        },
        'workflow_script': 'Ratatosk.nf',
        'nextflow_profile': 'cluster',
    },

    # ========================================================================
    # Stage 2: Flye assembly
    # ========================================================================
    'assembly': {
        'threads': 64,
        'genome_size': '2.5g',
        'read_mode': 'nano-corr',
        'memory_per_thread_mb': 7500,
    },

    # ========================================================================
    # Stage 3: Hypo polishing and scaffolding
    # ========================================================================
    'polishing': {
        'threads': 24,
        'genome_size': '2.5G',
        'kmer_length': 17,
        'long_read_coverage': 25,
        'short_read_coverage': 25,
        'batch_number': 20,
        'sort_threads': 20,
        'sort_memory': '7G',
        'kmc_memory': 12,
        'index_batch_size': '64G',
        'scripts_subdir': 'run_all',
    },

    # ========================================================================
    # Stage 4: RagTag reference-guided refinement
    # ========================================================================
    'refinement': {
        'threads': 24,
        'read_type': 'ont',
    },

    # ========================================================================
    # Stage 5: LiftOn annotation transfer
    # ========================================================================
    'annotation': {
        'threads': 24,
    },

    # ========================================================================
    # Output & Logging
    # ========================================================================
    'output': {
        'logging': {
            'level': 'INFO',
            'log_file': 'hapweaver.log',
        },
    },
}

VALID_ONT_TYPES = ('R9', 'R10')
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

_MEMORY_PATTERN = re.compile(r'^[0-9]+(\.[0-9]+)?[KMGTkmgt]?$')


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Path to YAML config file (None = use defaults)

    Returns:
        Configuration dictionary
    """
    from .parser import ConfigParser

    return ConfigParser(config_path).to_dict()


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def save_config_template(output_path: Path, template: str = 'default'):
    """
    Save a configuration template to file.

    Args:
        output_path: Output file path
        template: Template type ('default', 'r9', 'workstation')
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    # Customize for specific templates
    if template == 'r9':
        config['correction']['ont_type'] = 'R9'

    elif template == 'workstation':
        config['correction']['nextflow_profile'] = 'standard'
        config['assembly']['threads'] = 16
        for section in ('polishing', 'refinement', 'annotation'):
            config[section]['threads'] = 8
        config['polishing']['sort_threads'] = 4
        config['polishing']['sort_memory'] = '2G'
        config['polishing']['kmc_memory'] = 8
        config['polishing']['batch_number'] = 4

    with open(output_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration dictionary.

    Args:
        config: Configuration to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    # Tool names must be non-empty strings
    for tool, executable in config.get('tools', {}).items():
        if not isinstance(executable, str) or not executable.strip():
            errors.append(f"Tool executable for '{tool}' must be a non-empty string")

    # Chemistry defaults
    correction = config.get('correction', {})
    if correction.get('ont_type') not in VALID_ONT_TYPES:
        errors.append(f"Invalid correction.ont_type: {correction.get('ont_type')} "
                      f"(must be one of {', '.join(VALID_ONT_TYPES)})")
    max_lr_bq = correction.get('max_lr_bq', {})
    for ont_type in VALID_ONT_TYPES:
        value = max_lr_bq.get(ont_type)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            errors.append(f"correction.max_lr_bq.{ont_type} must be a positive integer")

    # Positive integer knobs
    integer_keys = [
        ('assembly', 'threads'),
        ('assembly', 'memory_per_thread_mb'),
        ('polishing', 'threads'),
        ('polishing', 'kmer_length'),
        ('polishing', 'long_read_coverage'),
        ('polishing', 'short_read_coverage'),
        ('polishing', 'batch_number'),
        ('polishing', 'sort_threads'),
        ('polishing', 'kmc_memory'),
        ('refinement', 'threads'),
        ('annotation', 'threads'),
    ]
    for section, key in integer_keys:
        value = config.get(section, {}).get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            errors.append(f"{section}.{key} must be a positive integer, got {value!r}")

    # Memory strings handed to samtools / minimap2
    for key in ('sort_memory', 'index_batch_size'):
        value = str(config.get('polishing', {}).get(key, ''))
        if not _MEMORY_PATTERN.match(value):
            errors.append(f"polishing.{key} is not a valid memory size: {value!r}")

    # Logging
    level = config.get('output', {}).get('logging', {}).get('level', 'INFO')
    if str(level).upper() not in VALID_LOG_LEVELS:
        errors.append(f"Invalid logging level: {level}")

    return errors
