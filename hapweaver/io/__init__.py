"""
HapWeaver v0.1.0

File I/O helpers.

Author: HapWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

from .io_core_module import (
    is_gzipped,
    open_file,
    strip_read_suffixes,
    concatenate_files,
    infer_sample_name,
)

__all__ = [
    "is_gzipped",
    "open_file",
    "strip_read_suffixes",
    "concatenate_files",
    "infer_sample_name",
]
