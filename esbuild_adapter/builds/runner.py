"""esbuild binding for executing builds.

This module handles:
- Composing esbuild command lines from BuildOptions
- Executing esbuild with subprocess
- Staging in-memory builds in a private directory and reading them back
- Raising BuildFailure with parsed diagnostics when a build fails
- Incremental build sessions

Everything a bundler does (resolution, transforms, splitting, source maps)
happens inside the esbuild executable.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from esbuild_adapter.builds.messages import parse_log_output
from esbuild_adapter.builds.options import BuildOptions
from esbuild_adapter.types import FileInfo, Message, OutputFile

logger = logging.getLogger(__name__)

STAGING_PREFIX = "esbuild-adapter-"
STAGED_OUTPUT_DIR = "out"
STAGED_METAFILE = "meta.json"


class EsbuildExecutionError(Exception):
    """Raised when esbuild cannot be executed.

    This is never a build failure: a missing binary, an OS error or a
    timeout means the build did not run at all.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "execution_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


class BuildFailure(Exception):
    """Raised by the binding when esbuild reports a failed build.

    Attributes:
        errors: Error diagnostics reported by esbuild.
        warnings: Warning diagnostics reported by esbuild.
    """

    def __init__(self, errors: list[Message], warnings: list[Message]) -> None:
        self.errors = list(errors)
        self.warnings = list(warnings)
        super().__init__(
            f"Build failed with {len(self.errors)} error(s)"
            f" and {len(self.warnings)} warning(s)"
        )


@dataclass(frozen=True)
class BuildResult:
    """Result of a successful esbuild invocation.

    Attributes:
        errors: Always empty for a successful build.
        warnings: Warning diagnostics reported by esbuild.
        output_files: In-memory outputs (empty when options.write is set).
        metafile: Build metadata, or None if it was not requested.
        initial_files: Entry point outputs, filled in by the adapter.
        rebuild: Session for incremental rebuilds, if requested.
        command: The command that was executed.
    """

    errors: list[Message]
    warnings: list[Message]
    output_files: list[OutputFile]
    metafile: dict[str, Any] | None = None
    initial_files: list[FileInfo] = field(default_factory=list)
    rebuild: BuildSession | None = None
    command: str = ""


class BuildSession:
    """Handle on an incremental build.

    Created by ``build()`` when ``options.incremental`` is set. The options
    captured here are reused unchanged by every ``rebuild()``.
    """

    def __init__(
        self,
        options: BuildOptions,
        binary: str = "esbuild",
        timeout: int | None = None,
        tmp_dir: Path | None = None,
    ) -> None:
        self.options = options
        self.binary = binary
        self.timeout = timeout
        self.tmp_dir = tmp_dir
        self.rebuild_count = 0
        self._disposed = False

    @property
    def disposed(self) -> bool:
        """Whether dispose() has been called."""
        return self._disposed

    def rebuild(self) -> BuildResult:
        """Redo the build this session was created for.

        Raises:
            BuildFailure: If esbuild reports errors.
            EsbuildExecutionError: If the session was disposed or esbuild
                could not be executed.
        """
        if self._disposed:
            raise EsbuildExecutionError(
                "Build session has been disposed",
                code="session_disposed",
            )
        self.rebuild_count += 1
        logger.info("Rebuilding (rebuild #%d)", self.rebuild_count)
        return _run(self.options, self.binary, self.timeout, self.tmp_dir, self)

    def dispose(self) -> None:
        """Release the session; later rebuilds raise."""
        self._disposed = True


def compose_esbuild_command(
    options: BuildOptions,
    binary: str = "esbuild",
    staging_dir: Path | None = None,
    metafile_path: Path | None = None,
) -> list[str]:
    """Compose the esbuild command line from build options.

    Args:
        options: Build options.
        binary: esbuild executable.
        staging_dir: If given, outputs are redirected into this directory.
        metafile_path: If given, esbuild writes its metafile here.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [binary]

    # Entry points, optionally named
    if isinstance(options.entry_points, dict):
        cmd.extend(f"{name}={path}" for name, path in options.entry_points.items())
    else:
        cmd.extend(options.entry_points)

    if options.bundle:
        cmd.append("--bundle")

    # Output location
    if options.outfile:
        outfile = (
            str(staging_dir / Path(options.outfile).name)
            if staging_dir
            else options.outfile
        )
        cmd.append(f"--outfile={outfile}")
    else:
        cmd.append(f"--outdir={staging_dir or options.outdir}")
    if options.outbase:
        cmd.append(f"--outbase={options.outbase}")

    if options.format:
        cmd.append(f"--format={options.format}")
    if options.platform:
        cmd.append(f"--platform={options.platform}")
    if options.target:
        cmd.append(f"--target={','.join(options.target)}")
    if options.splitting:
        cmd.append("--splitting")
    if options.minify:
        cmd.append("--minify")
    if options.sourcemap is True:
        cmd.append("--sourcemap")
    elif options.sourcemap:
        cmd.append(f"--sourcemap={options.sourcemap}")

    # Output naming
    if options.entry_names:
        cmd.append(f"--entry-names={options.entry_names}")
    if options.chunk_names:
        cmd.append(f"--chunk-names={options.chunk_names}")
    if options.asset_names:
        cmd.append(f"--asset-names={options.asset_names}")
    if options.public_path:
        cmd.append(f"--public-path={options.public_path}")

    # Resolution and transforms
    for key, value in options.define.items():
        cmd.append(f"--define:{key}={value}")
    for name in options.external:
        cmd.append(f"--external:{name}")
    for ext, loader in options.loader.items():
        cmd.append(f"--loader:{ext}={loader}")
    if options.main_fields:
        cmd.append(f"--main-fields={','.join(options.main_fields)}")
    if options.conditions:
        cmd.append(f"--conditions={','.join(options.conditions)}")
    if options.tsconfig:
        cmd.append(f"--tsconfig={options.tsconfig}")
    if options.charset:
        cmd.append(f"--charset={options.charset}")
    if options.legal_comments:
        cmd.append(f"--legal-comments={options.legal_comments}")
    if options.tree_shaking is not None:
        cmd.append(f"--tree-shaking={'true' if options.tree_shaking else 'false'}")

    if metafile_path:
        cmd.append(f"--metafile={metafile_path}")

    # Log output is parsed, so keep it plain and complete
    cmd.extend(["--color=false", "--log-level=warning", "--log-limit=0"])
    cmd.extend(options.extra_args)

    return cmd


def _execute(
    cmd: list[str], working_dir: Path, timeout: int | None
) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            cmd,
            cwd=working_dir,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        error_message = f"esbuild timed out after {timeout} seconds"
        logger.error(error_message)
        raise EsbuildExecutionError(
            error_message,
            exit_code=-1,
            code="build_timeout",
        ) from e
    except OSError as e:
        error_message = f"Failed to execute esbuild: {e}"
        logger.error(error_message)
        raise EsbuildExecutionError(
            error_message,
            exit_code=None,
            code="execution_error",
        ) from e


def _unstage_path(
    path: str, staged_root: Path, output_dir: Path, working_dir: Path
) -> str:
    """Map a working-dir-relative path inside the staging area to its target.

    Paths outside the staging area are returned unchanged.
    """
    absolute = os.path.normpath(os.path.join(working_dir, path))
    relative = os.path.relpath(absolute, staged_root)
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return path
    target = os.path.normpath(os.path.join(output_dir, relative))
    return Path(os.path.relpath(target, working_dir)).as_posix()


def _unstage_metafile(
    metafile: dict[str, Any], staged_root: Path, output_dir: Path, working_dir: Path
) -> dict[str, Any]:
    """Rewrite metafile output paths from the staging area to their targets."""

    def unstage(path: str) -> str:
        return _unstage_path(path, staged_root, output_dir, working_dir)

    outputs: dict[str, Any] = {}
    for key, entry in metafile.get("outputs", {}).items():
        entry = dict(entry)
        if "imports" in entry:
            entry["imports"] = [
                {**item, "path": unstage(item["path"])}
                if not item.get("external")
                else item
                for item in entry["imports"]
            ]
        if "cssBundle" in entry:
            entry["cssBundle"] = unstage(entry["cssBundle"])
        outputs[unstage(key)] = entry

    return {**metafile, "outputs": outputs}


def _collect_output_files(
    metafile: dict[str, Any],
    staged_root: Path,
    output_dir: Path,
    working_dir: Path,
) -> list[OutputFile]:
    """Read staged outputs into memory, in the order esbuild reported them."""
    output_files: list[OutputFile] = []
    seen: set[Path] = set()

    staged_paths = [
        Path(os.path.normpath(os.path.join(working_dir, key)))
        for key in metafile.get("outputs", {})
    ]
    # Anything esbuild wrote without listing it in the metafile
    if staged_root.is_dir():
        listed = set(staged_paths)
        staged_paths.extend(
            path
            for path in sorted(staged_root.rglob("*"))
            if path.is_file() and path not in listed
        )

    for staged_path in staged_paths:
        if staged_path in seen or not staged_path.is_file():
            continue
        if not staged_path.is_relative_to(staged_root):
            continue
        seen.add(staged_path)
        relative = staged_path.relative_to(staged_root)
        output_files.append(
            OutputFile(
                path=str(output_dir / relative),
                contents=staged_path.read_bytes(),
            )
        )
        logger.debug("Collected output: %s", relative.as_posix())

    return output_files


def _run(
    options: BuildOptions,
    binary: str,
    timeout: int | None,
    tmp_dir: Path | None,
    session: BuildSession | None,
) -> BuildResult:
    working_dir = options.working_dir()
    output_dir = Path(os.path.normpath(options.output_dir()))

    with tempfile.TemporaryDirectory(prefix=STAGING_PREFIX, dir=tmp_dir) as staging:
        staging_root = Path(staging).resolve()
        staged_root = staging_root / STAGED_OUTPUT_DIR
        metafile_path = staging_root / STAGED_METAFILE

        cmd = compose_esbuild_command(
            options,
            binary=binary,
            staging_dir=None if options.write else staged_root,
            metafile_path=metafile_path,
        )
        cmd_str = shlex.join(cmd)
        logger.info("Executing esbuild: %s", cmd_str)
        logger.debug("Working directory: %s", working_dir)

        completed = _execute(cmd, working_dir, timeout)
        errors, warnings = parse_log_output(completed.stderr or "")

        if completed.returncode != 0:
            if not errors:
                stderr = (completed.stderr or "").strip()
                errors = [
                    Message(
                        text=stderr
                        or f"esbuild exited with code {completed.returncode}"
                    )
                ]
            logger.debug(
                "esbuild failed with exit code %d (%d error(s))",
                completed.returncode,
                len(errors),
            )
            raise BuildFailure(errors, warnings)

        metafile: dict[str, Any] = {}
        if metafile_path.exists():
            with metafile_path.open(encoding="utf-8") as f:
                metafile = json.load(f)

        output_files: list[OutputFile] = []
        if not options.write:
            # esbuild reports paths relative to the real working directory
            real_working_dir = Path(os.path.realpath(working_dir))
            real_output_dir = real_working_dir / os.path.relpath(
                output_dir, working_dir
            )
            output_files = _collect_output_files(
                metafile, staged_root, output_dir, real_working_dir
            )
            metafile = _unstage_metafile(
                metafile, staged_root, real_output_dir, real_working_dir
            )

    logger.info(
        "esbuild finished: %d output file(s), %d warning(s)",
        len(output_files),
        len(warnings),
    )

    return BuildResult(
        errors=[],
        warnings=warnings,
        output_files=output_files,
        metafile=metafile if options.metafile else None,
        rebuild=session,
        command=cmd_str,
    )


def build(
    options: BuildOptions,
    binary: str = "esbuild",
    timeout: int | None = None,
    tmp_dir: Path | None = None,
) -> BuildResult:
    """Execute an esbuild build.

    Args:
        options: Build options.
        binary: esbuild executable.
        timeout: Timeout in seconds (None = no timeout).
        tmp_dir: Parent directory for the staging area (system default if None).

    Returns:
        BuildResult; ``rebuild`` holds a session when ``options.incremental``
        is set.

    Raises:
        BuildFailure: If esbuild reports errors.
        EsbuildExecutionError: If esbuild could not be executed.
    """
    session = None
    if options.incremental:
        session = BuildSession(options, binary=binary, timeout=timeout, tmp_dir=tmp_dir)
    return _run(options, binary, timeout, tmp_dir, session)


def get_esbuild_version(binary: str = "esbuild", timeout: int = 60) -> str:
    """Get the version of the esbuild executable.

    Args:
        binary: esbuild executable.
        timeout: Command timeout in seconds.

    Returns:
        Version string (e.g. ``0.19.12``).

    Raises:
        EsbuildExecutionError: If the command fails.
    """
    try:
        result = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except subprocess.TimeoutExpired as e:
        raise EsbuildExecutionError(
            f"esbuild --version timed out after {timeout}s",
            exit_code=-1,
            code="build_timeout",
        ) from e
    except subprocess.CalledProcessError as e:
        raise EsbuildExecutionError(
            f"esbuild --version failed: {e.stderr}",
            exit_code=e.returncode,
            code="version_error",
        ) from e
    except OSError as e:
        raise EsbuildExecutionError(
            f"Failed to run esbuild: {e}",
            code="execution_error",
        ) from e

    return result.stdout.strip()


__all__ = [
    "BuildFailure",
    "BuildResult",
    "BuildSession",
    "EsbuildExecutionError",
    "build",
    "compose_esbuild_command",
    "get_esbuild_version",
]
