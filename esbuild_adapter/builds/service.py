"""Build service.

This module ties the adapter to settings and logging, and provides
caller-side helpers for persisting a successful build:
- Running a bundle and reporting its diagnostics
- Writing in-memory output files under a directory
- Generating and writing a JSON manifest of outputs
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from esbuild_adapter import __version__
from esbuild_adapter.builds.bundle import bundle, log_messages
from esbuild_adapter.builds.options import BuildOptions
from esbuild_adapter.builds.runner import BuildFailure, BuildResult, BuildSession
from esbuild_adapter.config import Settings, get_settings
from esbuild_adapter.types import MessageSink, OutputFile

logger = logging.getLogger(__name__)

# Diagnostics are reported on the package logger
messages_logger = logging.getLogger("esbuild_adapter")


def run_bundle(
    options_or_session: BuildOptions | BuildSession,
    workspace_root: Path | None = None,
    settings: Settings | None = None,
    sink: MessageSink | None = None,
) -> BuildResult | BuildFailure:
    """Run a build and report its diagnostics.

    Args:
        options_or_session: Options for a fresh build, or a rebuild session.
        workspace_root: Workspace root; defaults to the configured one.
        settings: Settings instance; uses default if not provided.
        sink: Receives formatted diagnostics; defaults to the package logger.

    Returns:
        The normalized build result or the build failure.
    """
    if settings is None:
        settings = get_settings()
    if workspace_root is None:
        workspace_root = settings.workspace_root

    outcome = bundle(
        workspace_root,
        options_or_session,
        binary=settings.esbuild_binary,
        timeout=settings.build_timeout,
        tmp_dir=settings.tmp_dir,
    )

    log_messages(
        sink or messages_logger,
        warnings=outcome.warnings,
        errors=outcome.errors,
        color=settings.color,
    )

    if isinstance(outcome, BuildResult):
        logger.info(
            "Build succeeded: %d output file(s), %d initial file(s)",
            len(outcome.output_files),
            len(outcome.initial_files),
        )
    else:
        logger.info("Build failed with %d error(s)", len(outcome.errors))

    return outcome


def write_output_files(output_files: list[OutputFile], root: Path) -> list[Path]:
    """Write in-memory output files under a directory.

    Args:
        output_files: Files with paths relative to ``root``.
        root: Directory to write into.

    Returns:
        Paths of the written files.
    """
    written: list[Path] = []
    for output_file in output_files:
        path = root / output_file.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(output_file.contents)
        written.append(path)
        logger.debug("Wrote %s (%d bytes)", path, len(output_file.contents))

    logger.info("Wrote %d output file(s) to %s", len(written), root)
    return written


def generate_manifest(
    result: BuildResult,
    extra_metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Generate a manifest describing a successful build.

    The manifest contains:
    - Every output file with size, SHA-256 and whether it is initial
    - The initial files
    - Warning count and summary statistics

    Args:
        result: Normalized build result.
        extra_metadata: Optional additional metadata.

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    initial_paths = {info.file for info in result.initial_files}

    manifest: dict[str, Any] = {
        "version": "1.0",
        "generator": f"esbuild-adapter {__version__}",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "outputs": [
            {
                "path": output_file.path,
                "size_bytes": len(output_file.contents),
                "sha256": hashlib.sha256(output_file.contents).hexdigest(),
                "initial": output_file.path in initial_paths,
            }
            for output_file in result.output_files
        ],
        "initial_files": [
            {"file": info.file, "name": info.name, "extension": info.extension}
            for info in result.initial_files
        ],
        "warnings": len(result.warnings),
    }

    if extra_metadata:
        manifest["metadata"] = extra_metadata

    manifest["summary"] = {
        "total_outputs": len(result.output_files),
        "total_size_bytes": sum(len(f.contents) for f in result.output_files),
        "extensions": sorted({Path(f.path).suffix for f in result.output_files}),
    }

    return manifest


def write_manifest(manifest: dict[str, Any], output_path: Path) -> Path:
    """Write manifest to a JSON file.

    Args:
        manifest: Manifest dictionary.
        output_path: Output file path.

    Returns:
        Path to written manifest file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    logger.info("Wrote manifest to %s", output_path)
    return output_path


__all__ = [
    "generate_manifest",
    "run_bundle",
    "write_manifest",
    "write_output_files",
]
