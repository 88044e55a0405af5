#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Tests for configuration loading, merging and validation.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import pytest
import yaml

from hapweaver.config import (
    ConfigParser,
    ConfigValidationError,
    DEFAULT_CONFIG,
    load_config,
    save_config_template,
    validate_config,
)


class TestConfigParser:

    def test_defaults(self):
        config = ConfigParser()
        assert config.get('correction.max_lr_bq.R10') == 90
        assert config.get('correction.max_lr_bq.R9') == 40
        assert config.get('tools.ragtag') == 'ragtag.py'
        assert config.get('missing.key', 'fallback') == 'fallback'

    def test_user_file_overrides_defaults(self, temp_output_dir):
        path = temp_output_dir / 'config.yaml'
        path.write_text(yaml.dump({'polishing': {'threads': 8, 'sort_memory': '2G'}}))

        config = ConfigParser(path)

        assert config.get('polishing.threads') == 8
        assert config.get('polishing.sort_memory') == '2G'
        assert config.get('polishing.kmer_length') == 17

    def test_env_substitution(self, temp_output_dir, monkeypatch):
        monkeypatch.setenv('HAPWEAVER_FLYE', '/opt/flye/bin/flye')
        path = temp_output_dir / 'config.yaml'
        path.write_text("tools:\n  flye: ${HAPWEAVER_FLYE}\n  hypo: ${HAPWEAVER_UNSET:-hypo-dev}\n")

        config = ConfigParser(path)

        assert config.get('tools.flye') == '/opt/flye/bin/flye'
        assert config.get('tools.hypo') == 'hypo-dev'

    def test_cli_overrides(self):
        config = ConfigParser()
        config.merge_cli_overrides({'output.logging.level': 'DEBUG', 'assembly.threads': None})

        assert config.get('output.logging.level') == 'DEBUG'
        assert config.get('assembly.threads') == 64

    def test_defaults_not_mutated(self):
        config = ConfigParser()
        config.merge_cli_overrides({'assembly.threads': 2})
        assert DEFAULT_CONFIG['assembly']['threads'] == 64

    def test_missing_file(self, temp_output_dir):
        with pytest.raises(ConfigValidationError, match='not found'):
            ConfigParser(temp_output_dir / 'nope.yaml')

    def test_invalid_yaml(self, temp_output_dir):
        path = temp_output_dir / 'bad.yaml'
        path.write_text("tools: [unclosed\n")
        with pytest.raises(ConfigValidationError, match='Invalid YAML'):
            ConfigParser(path)

    def test_non_mapping(self, temp_output_dir):
        path = temp_output_dir / 'list.yaml'
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigValidationError, match='mapping'):
            ConfigParser(path)


class TestValidateConfig:

    def test_defaults_are_valid(self):
        assert validate_config(load_config()) == []

    def test_bad_values_reported(self):
        config = load_config()
        config['correction']['ont_type'] = 'R11'
        config['polishing']['threads'] = 0
        config['polishing']['sort_memory'] = 'lots'
        config['tools']['flye'] = ''

        errors = validate_config(config)

        assert any('ont_type' in e for e in errors)
        assert any('polishing.threads' in e for e in errors)
        assert any('sort_memory' in e for e in errors)
        assert any("'flye'" in e for e in errors)


class TestTemplates:

    @pytest.mark.parametrize('template', ['default', 'r9', 'workstation'])
    def test_templates_load_and_validate(self, temp_output_dir, template):
        path = temp_output_dir / f'{template}.yaml'
        save_config_template(path, template=template)

        config = load_config(path)

        assert validate_config(config) == []

    def test_r9_template(self, temp_output_dir):
        path = temp_output_dir / 'r9.yaml'
        save_config_template(path, template='r9')
        assert load_config(path)['correction']['ont_type'] == 'R9'
