"""
HapWeaver v0.1.0

Parameter and precondition validation for stage-runners.

Every check raises ValidationError on the first failure, naming the parameter
and the offending value. Stage-runners call the checks in a fixed order
(required parameters, numbers, choices, files, directories, tools, scripts)
before creating any output.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .context import ToolRegistry


_DIGITS = re.compile(r'^[0-9]+$')


class ValidationError(Exception):
    """Raised when a stage parameter or precondition is not satisfied."""

    def __init__(self, message: str, parameter: Optional[str] = None, value: Optional[str] = None):
        super().__init__(message)
        self.parameter = parameter
        self.value = value


def require_parameters(params: Mapping[str, Optional[str]]):
    """
    Check that every required parameter is set and non-empty.

    Args:
        params: Ordered mapping of parameter label -> raw value
    """
    for name, value in params.items():
        if value is None or str(value).strip() == '':
            raise ValidationError(f"Missing required parameter: {name}", parameter=name, value=value)


def parse_positive_int(name: str, value) -> int:
    """
    Parse a strictly positive integer given as digits only.

    '0', negative numbers, signs, decimals and non-numeric strings are rejected.
    """
    text = str(value).strip() if value is not None else ''
    if not _DIGITS.match(text) or int(text) < 1:
        raise ValidationError(
            f"{name} must be a positive integer, got: {value!r}",
            parameter=name, value=value,
        )
    return int(text)


def parse_positive_ints(params: Mapping[str, object]) -> Dict[str, int]:
    """Parse several positive integers in order; returns label -> int."""
    return {name: parse_positive_int(name, value) for name, value in params.items()}


def check_choice(name: str, value: str, choices: Sequence[str]) -> str:
    """Check that a value is one of the allowed choices."""
    if value not in choices:
        raise ValidationError(
            f"{name} must be one of {', '.join(choices)}, got: {value!r}",
            parameter=name, value=value,
        )
    return value


def split_pair(name: str, value: str, separator: str = ',') -> Tuple[str, str]:
    """Split a separator-joined parameter that must hold exactly two entries."""
    parts = [part.strip() for part in str(value).split(separator)]
    if len(parts) != 2 or not all(parts):
        raise ValidationError(
            f"{name} requires exactly two {separator!r}-separated files, found {len(parts)}: {value!r}",
            parameter=name, value=value,
        )
    return parts[0], parts[1]


def check_input_file(name: str, path) -> Path:
    """Check that a path names an existing regular file (directories fail)."""
    file_path = Path(path)
    if not file_path.is_file():
        raise ValidationError(f"{name} file does not exist: {path}", parameter=name, value=str(path))
    return file_path


def check_input_files(files: Mapping[str, object]) -> Dict[str, Path]:
    """Check several input files in order; returns label -> Path."""
    return {name: check_input_file(name, path) for name, path in files.items()}


def check_input_dir(name: str, path) -> Path:
    """Check that a path names an existing directory."""
    dir_path = Path(path)
    if not dir_path.is_dir():
        raise ValidationError(f"{name} directory does not exist: {path}", parameter=name, value=str(path))
    return dir_path


def check_tools(tools: ToolRegistry, names: Iterable[str]):
    """Check that every tool resolves on the registry's search path."""
    for name in names:
        if tools.resolve(name) is None:
            raise ValidationError(
                f"{tools.executable_name(name)} not found. "
                f"Please ensure it is installed and in your PATH",
                parameter=name, value=tools.executable_name(name),
            )


def check_scripts(scripts: Mapping[str, Path]):
    """Check that auxiliary scripts shipped with an external tool exist."""
    for name, path in scripts.items():
        if not Path(path).is_file():
            raise ValidationError(f"{name} not found: {path}", parameter=name, value=str(path))
