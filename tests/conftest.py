#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Pytest configuration and shared fixtures.

External tools are replaced by small Python scripts written into a temporary
``bin`` directory. Each fake records its arguments and working directory in
``<tool>.calls`` (one JSON object per invocation).

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import json
import logging
import os
import shutil
import sys
import tempfile
import textwrap
from pathlib import Path

import pytest

from hapweaver.config import ConfigParser
from hapweaver.utils.context import RunContext, ToolRegistry


FAKE_TOOL_HEADER = '''\
import gzip, json, os, sys, time

def opt(flag, default=None):
    if flag in sys.argv:
        return sys.argv[sys.argv.index(flag) + 1]
    return default

def write(path, text):
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    with open(path, 'w') as f:
        f.write(text)

with open(__file__ + '.calls', 'a') as _log:
    _log.write(json.dumps({'argv': sys.argv[1:], 'cwd': os.getcwd()}) + '\\n')
'''


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs on the root logger."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler).__module__.startswith('_pytest'):
            continue
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def temp_output_dir():
    """Create temporary output directory for tests."""
    temp_dir = tempfile.mkdtemp(prefix="hapweaver_test_")
    yield Path(temp_dir)
    # Cleanup after test
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def simple_fasta():
    """Generate simple FASTA sequence for testing."""
    return ">test_sequence\nATCGATCGATCGATCGATCGATCGATCGATCG\n"


@pytest.fixture
def simple_fastq():
    """Generate simple FASTQ reads for testing."""
    return """@read1
ATCGATCGATCG
+
IIIIIIIIIIII
@read2
GCTAGCTAGCTA
+
IIIIIIIIIIII
"""


@pytest.fixture
def bin_dir(temp_output_dir):
    path = temp_output_dir / 'bin'
    path.mkdir()
    return path


@pytest.fixture
def make_tool(bin_dir):
    """Factory writing an executable fake tool into ``bin_dir``."""
    def _make(name, body='', exit_code=0):
        path = bin_dir / name
        script = (f"#!{sys.executable}\n" + FAKE_TOOL_HEADER
                  + textwrap.dedent(body) + f"\nsys.exit({exit_code})\n")
        path.write_text(script)
        path.chmod(0o755)
        return path
    return _make


@pytest.fixture
def tool_calls(bin_dir):
    """Return the recorded invocations of a fake tool."""
    def _calls(name):
        record = bin_dir / f"{name}.calls"
        if not record.exists():
            return []
        with open(record) as f:
            return [json.loads(line) for line in f if line.strip()]
    return _calls


@pytest.fixture
def tools(bin_dir):
    """Tool registry that finds the fake tools first."""
    config = ConfigParser()
    return ToolRegistry(config.get('tools'), extra_paths=[bin_dir])


@pytest.fixture
def run_context(temp_output_dir, tools):
    return RunContext(config=ConfigParser(), tools=tools, log_dir=temp_output_dir / 'logs')


@pytest.fixture
def fake_path(monkeypatch, bin_dir):
    """Put the fake tools on PATH for CLI tests."""
    monkeypatch.setenv('PATH', f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return bin_dir
