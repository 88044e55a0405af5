#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HapWeaver v0.1.0

Run context: configuration, tool resolution and log directory handed to
every stage-runner.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..config import ConfigParser


class ToolRegistry:
    """
    Resolve external tool names against PATH plus extra directories.

    The registry maps logical tool keys (``'ragtag'``) to executable names
    (``'ragtag.py'``). Extra directories are searched before PATH, both for
    resolution here and in the environment handed to child processes;
    ``os.environ`` itself is never modified.
    """

    def __init__(self, executables: Optional[Mapping[str, str]] = None,
                 extra_paths: Sequence[Union[str, Path]] = ()):
        self.executables: Dict[str, str] = dict(executables or {})
        self.extra_paths: List[Path] = [Path(p) for p in extra_paths]

    def with_search_path(self, directory: Union[str, Path]) -> 'ToolRegistry':
        """Return a copy of this registry that also searches ``directory`` first."""
        return ToolRegistry(self.executables, [Path(directory)] + self.extra_paths)

    def executable_name(self, tool: str) -> str:
        return self.executables.get(tool, tool)

    def search_path(self) -> str:
        entries = [str(p) for p in self.extra_paths]
        base = os.environ.get('PATH', os.defpath)
        if base:
            entries.append(base)
        return os.pathsep.join(entries)

    def resolve(self, tool: str) -> Optional[str]:
        """
        Find the absolute path of a tool.

        Returns:
            Path to the executable, or None if it is not on the search path
        """
        return shutil.which(self.executable_name(tool), path=self.search_path())

    def executable(self, tool: str) -> str:
        """Executable to put in argv[0]: the resolved path when known, else the bare name."""
        return self.resolve(tool) or self.executable_name(tool)

    def env(self) -> Dict[str, str]:
        """Environment for child processes with the extended PATH."""
        env = dict(os.environ)
        env['PATH'] = self.search_path()
        return env

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={len(self.executables)}, extra_paths={self.extra_paths})"


class RunContext:
    """
    Everything a stage-runner needs besides its own parameters.

    Attributes:
        config: Loaded configuration parser
        tools: Tool registry built from the ``tools`` config section
        log_dir: Directory receiving per-step logs
        verify_outputs: Whether outputs get a format sanity check before commit
    """

    def __init__(self, config: Optional[ConfigParser] = None,
                 tools: Optional[ToolRegistry] = None,
                 log_dir: Optional[Union[str, Path]] = None):
        self.config = config or ConfigParser()
        self.tools = tools or ToolRegistry(self.config.get('tools', {}))
        self.log_dir = Path(log_dir) if log_dir else None
        self.verify_outputs = bool(self.config.get('pipeline.verify_outputs', True))

    @classmethod
    def for_output(cls, output_dir: Union[str, Path], config: Optional[ConfigParser] = None,
                   tools: Optional[ToolRegistry] = None) -> 'RunContext':
        """Build a context whose step logs live under ``output_dir``."""
        config = config or ConfigParser()
        log_dir = Path(output_dir) / config.get('pipeline.step_log_dir', 'logs')
        return cls(config=config, tools=tools, log_dir=log_dir)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def with_tools(self, tools: ToolRegistry) -> 'RunContext':
        return RunContext(config=self.config, tools=tools, log_dir=self.log_dir)

    def with_log_dir(self, log_dir: Union[str, Path]) -> 'RunContext':
        return RunContext(config=self.config, tools=self.tools, log_dir=log_dir)

# HapWeaver v0.1.0
# Any usage is subject to this software's license.
