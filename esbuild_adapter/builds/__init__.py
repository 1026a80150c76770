"""Build module.

This module handles:
- Build options and options files
- Running esbuild (fresh builds and incremental rebuilds)
- Normalizing results and extracting initial files
- Parsing and formatting diagnostics
"""

from esbuild_adapter.builds.bundle import bundle, is_build_failure, log_messages
from esbuild_adapter.builds.options import BuildOptions
from esbuild_adapter.builds.runner import (
    BuildFailure,
    BuildResult,
    BuildSession,
    EsbuildExecutionError,
)

__all__ = [
    "BuildFailure",
    "BuildOptions",
    "BuildResult",
    "BuildSession",
    "EsbuildExecutionError",
    "bundle",
    "is_build_failure",
    "log_messages",
]
