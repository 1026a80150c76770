"""Shared fixtures for esbuild_adapter tests.

esbuild itself is never executed: ``subprocess.run`` is patched with a fake
that writes the requested outputs and a metafile the way esbuild would.
"""

import json
import os
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

ERROR_LOG = """\
✘ [ERROR] Could not resolve "./missing"

    src/main.ts:1:7:
      1 │ import "./missing";
        ╵        ~~~~~~~~~~~

1 error
"""

WARNING_LOG = """\
▲ [WARNING] Comparison with -0 using the "===" operator will also match 0 [equals-negative-zero]

    src/main.ts:2:4:
      2 │ if (x === -0) {}
        ╵     ~~~~~~~~

  Floating-point equality is defined such that 0 and -0 are equal.

1 warning
"""


def _flag_values(cmd: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for arg in cmd:
        if arg.startswith("--") and "=" in arg:
            key, value = arg.split("=", 1)
            values[key] = value
    return values


def make_fake_esbuild(
    outputs: dict[str, tuple[bytes, dict[str, Any]]] | None = None,
    stderr: str = "",
    returncode: int = 0,
    real_cwd: bool = False,
) -> Callable[..., subprocess.CompletedProcess]:
    """Create a stand-in for ``subprocess.run`` that behaves like esbuild.

    Args:
        outputs: Output path (relative to the output directory) mapped to
            (contents, metafile output entry).
        stderr: Log text to report.
        returncode: Exit code to report; outputs are only written on 0.
        real_cwd: Resolve symlinks in the working directory before computing
            metafile keys, as the real esbuild binary does.
    """
    outputs = outputs or {}

    def run(cmd: list[str], cwd: Path | None = None, **kwargs: Any):
        cwd = Path(cwd or Path.cwd())
        if real_cwd:
            cwd = Path(os.path.realpath(cwd))
        flags = _flag_values(cmd)

        if "--outdir" in flags:
            outdir = cwd / flags["--outdir"]
        else:
            outdir = (cwd / flags["--outfile"]).parent

        if returncode == 0:
            entries: dict[str, Any] = {}
            for relative, (contents, entry) in outputs.items():
                path = outdir / relative
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(contents)
                key = Path(os.path.relpath(path, cwd)).as_posix()
                entries[key] = entry
            if "--metafile" in flags:
                Path(flags["--metafile"]).write_text(
                    json.dumps({"inputs": {}, "outputs": entries}),
                    encoding="utf-8",
                )

        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr=stderr)

    return run


@pytest.fixture
def fake_esbuild() -> Callable[..., Callable[..., subprocess.CompletedProcess]]:
    """Factory for fake esbuild runs."""
    return make_fake_esbuild


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create an empty workspace with a src directory."""
    root = tmp_path / "workspace"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.ts").write_text("console.log('hello');\n")
    return root


@pytest.fixture
def error_log() -> str:
    return ERROR_LOG


@pytest.fixture
def warning_log() -> str:
    return WARNING_LOG


@pytest.fixture
def linked_workspace(tmp_path: Path) -> Path:
    """Create a workspace reached through a symlink at a different depth."""
    real = tmp_path / "a" / "b" / "c" / "real"
    (real / "src").mkdir(parents=True)
    (real / "src" / "main.ts").write_text("console.log('hello');\n")
    link = tmp_path / "link"
    link.symlink_to(real, target_is_directory=True)
    return link
