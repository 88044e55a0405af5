#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Tests for stage manifests.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

from pathlib import Path

import pytest

from hapweaver.utils.manifest import ManifestError, StageManifest, resolve_input


class TestStageManifest:

    def test_write_and_load(self, temp_output_dir):
        manifest = StageManifest('assembly', parameters={'Threads': 8, 'Input': Path('/x.fq')},
                                 exit_codes={'stage': 0})
        manifest.add_artifact('draft_assembly', temp_output_dir / 'assembly.fasta')

        path = manifest.write(temp_output_dir)
        loaded = StageManifest.load(temp_output_dir)

        assert path == temp_output_dir / 'manifest.json'
        assert loaded.stage == 'assembly'
        assert loaded.parameters == {'Threads': 8, 'Input': '/x.fq'}
        assert loaded.artifact('draft_assembly') == (temp_output_dir / 'assembly.fasta').resolve()
        assert loaded.exit_codes == {'stage': 0}

    def test_load_file_path(self, temp_output_dir):
        StageManifest('polishing').write(temp_output_dir)
        assert StageManifest.load(temp_output_dir / 'manifest.json').stage == 'polishing'

    def test_missing_role(self):
        with pytest.raises(ManifestError, match='haplotype_1'):
            StageManifest('refinement').artifact('haplotype_1')

    def test_missing_manifest(self, temp_output_dir):
        with pytest.raises(ManifestError, match='not found'):
            StageManifest.load(temp_output_dir / 'nowhere')

    def test_invalid_manifest(self, temp_output_dir):
        (temp_output_dir / 'manifest.json').write_text('{not json')
        with pytest.raises(ManifestError, match='Invalid manifest'):
            StageManifest.load(temp_output_dir)

    def test_load_directory_with_custom_name(self, temp_output_dir):
        StageManifest('annotation').write(temp_output_dir, 'stage.json')

        assert StageManifest.load(temp_output_dir, 'stage.json').stage == 'annotation'
        with pytest.raises(ManifestError, match='not found'):
            StageManifest.load(temp_output_dir)


class TestResolveInput:

    def test_explicit_flag_wins(self):
        manifest = StageManifest('assembly', artifacts={'draft_assembly': '/from/manifest.fa'})
        assert resolve_input('/explicit.fa', manifest, 'draft_assembly') == '/explicit.fa'

    def test_falls_back_to_manifest(self):
        manifest = StageManifest('assembly', artifacts={'draft_assembly': '/from/manifest.fa'})
        assert resolve_input(None, manifest, 'draft_assembly') == '/from/manifest.fa'

    def test_no_manifest(self):
        assert resolve_input(None, None, 'draft_assembly') is None
