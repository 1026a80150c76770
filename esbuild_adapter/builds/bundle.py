"""Adapter between callers and the esbuild binding.

This module handles:
- Telling esbuild build failures apart from unexpected exceptions
- Running fresh builds (with metadata on and disk writes off) or rebuilds
- Making output file paths relative to the workspace root
- Extracting the initial (entry point) output files
- Forwarding formatted diagnostics to a logger
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path, PurePosixPath
from typing import Any, TypeGuard

from esbuild_adapter.builds import runner
from esbuild_adapter.builds.messages import format_messages
from esbuild_adapter.builds.options import BuildOptions
from esbuild_adapter.builds.runner import BuildFailure, BuildResult, BuildSession
from esbuild_adapter.types import FileInfo, Message, MessageKind, MessageSink

logger = logging.getLogger(__name__)

_PRIMITIVES = (str, bytes, bytearray, int, float, complex, bool)


def is_build_failure(value: object) -> TypeGuard[BuildFailure]:
    """Determine whether a value is an esbuild build failure.

    Args:
        value: A value caught from a build invocation.

    Returns:
        True if the value carries both ``errors`` and ``warnings``.
    """
    if value is None or isinstance(value, _PRIMITIVES):
        return False
    if isinstance(value, Mapping):
        return "errors" in value and "warnings" in value
    return hasattr(value, "errors") and hasattr(value, "warnings")


def _relative_path(path: str, workspace_root: Path | str) -> str:
    return Path(os.path.relpath(path, workspace_root)).as_posix()


def _initial_file(relative_path: str) -> FileInfo:
    base = PurePosixPath(relative_path)
    return FileInfo(
        file=relative_path,
        # "polyfills" for "polyfills.7S5G3MDY.js"
        name=base.name.split(".")[0],
        extension=base.suffix,
    )


def bundle(
    workspace_root: Path | str,
    options_or_session: BuildOptions | BuildSession,
    binary: str = "esbuild",
    timeout: int | None = None,
    tmp_dir: Path | None = None,
) -> BuildResult | BuildFailure:
    """Run esbuild and normalize the result.

    Fresh builds always request the metafile and keep outputs in memory.
    Rebuilds reuse the options of their session as they are.

    Args:
        workspace_root: Root that output paths are made relative to. It
            should match the build's ``abs_working_dir``.
        options_or_session: Options for a fresh build, or the session of a
            previous incremental build.
        binary: esbuild executable (fresh builds only).
        timeout: Timeout in seconds (fresh builds only).
        tmp_dir: Parent directory for the staging area (fresh builds only).

    Returns:
        The build result with workspace-relative output paths and initial
        files, or the BuildFailure carrying errors and warnings.

    Raises:
        Exception: Anything raised by the build that is not a build failure
            propagates unchanged.
    """
    try:
        if isinstance(options_or_session, BuildSession):
            result = options_or_session.rebuild()
        else:
            result = runner.build(
                options_or_session.with_forced_flags(),
                binary=binary,
                timeout=timeout,
                tmp_dir=tmp_dir,
            )
    except Exception as failure:
        if is_build_failure(failure):
            logger.debug("Build failed: %s", failure)
            return failure
        raise

    metafile_outputs: dict[str, Any] = (result.metafile or {}).get("outputs", {})
    output_files = []
    initial_files: list[FileInfo] = []
    for output_file in result.output_files:
        # Metafile paths are relative to the working directory (the workspace root)
        relative_file_path = _relative_path(output_file.path, workspace_root)
        output_files.append(output_file.with_path(relative_file_path))

        entry_point = metafile_outputs.get(relative_file_path, {}).get("entryPoint")
        if entry_point:
            initial_files.append(_initial_file(relative_file_path))

    logger.debug(
        "Bundled %d output file(s), %d initial",
        len(output_files),
        len(initial_files),
    )
    return replace(result, output_files=output_files, initial_files=initial_files)


def log_messages(
    sink: MessageSink,
    warnings: list[Message] | None = None,
    errors: list[Message] | None = None,
    color: bool = True,
) -> None:
    """Format diagnostics and write them to a logging sink.

    Warnings are written before errors.

    Args:
        sink: Receives warnings via ``warning()`` and errors via ``error()``.
        warnings: Warning diagnostics.
        errors: Error diagnostics.
        color: Colorize the formatted text.
    """
    if warnings:
        warning_messages = format_messages(warnings, kind=MessageKind.WARNING, color=color)
        sink.warning("\n".join(warning_messages))

    if errors:
        error_messages = format_messages(errors, kind=MessageKind.ERROR, color=color)
        sink.error("\n".join(error_messages))


__all__ = ["bundle", "is_build_failure", "log_messages"]
