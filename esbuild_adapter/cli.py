"""Thin CLI wrapper for esbuild_adapter.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from esbuild_adapter import __version__
from esbuild_adapter.config import get_settings, print_settings_json

app = typer.Typer(
    name="esbuild-adapter",
    help="esbuild adapter - run esbuild builds with normalized results",
    no_args_is_help=True,
)
console = Console()

LOG_FORMAT = "%(levelname)s: %(message)s"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"esbuild-adapter version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """esbuild adapter - run esbuild builds with normalized results."""
    logging.basicConfig(level=get_settings().log_level, format=LOG_FORMAT)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
    else:
        tmp_dir_display = (
            str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
        )
        timeout_display = (
            str(settings.build_timeout) if settings.build_timeout else "(none)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Bundler:[/bold]")
        console.print(f"  esbuild binary:      {settings.esbuild_binary}")
        console.print(f"  Workspace root:      {settings.workspace_root}")
        console.print(f"  Temp directory:      {tmp_dir_display}")
        console.print(f"  Build timeout:       {timeout_display}")
        console.print()
        console.print("[bold]Output:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Color:               {settings.color}")


@app.command("esbuild-version")
def esbuild_version() -> None:
    """Show the version of the configured esbuild executable."""
    from esbuild_adapter.builds.runner import EsbuildExecutionError, get_esbuild_version

    settings = get_settings()
    try:
        version = get_esbuild_version(settings.esbuild_binary)
    except EsbuildExecutionError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None
    console.print(f"esbuild {version} ({settings.esbuild_binary})")


@app.command()
def build(
    options_file: Annotated[
        Path,
        typer.Argument(help="Build options file (YAML or JSON)"),
    ],
    workspace_root: Annotated[
        Path | None,
        typer.Option(
            "--workspace-root",
            "-w",
            help="Workspace root (defaults to the configured one)",
        ),
    ] = None,
    write: Annotated[
        bool,
        typer.Option("--write", help="Write output files under the workspace root"),
    ] = False,
    manifest_path: Annotated[
        Path | None,
        typer.Option("--manifest", "-m", help="Write a JSON manifest of outputs"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build an options file and report initial files.

    Diagnostics are logged. Exits with code 1 when the build fails.
    """
    from esbuild_adapter.builds.io import load_build_options
    from esbuild_adapter.builds.runner import BuildResult, EsbuildExecutionError
    from esbuild_adapter.builds.service import (
        generate_manifest,
        run_bundle,
        write_manifest,
        write_output_files,
    )

    settings = get_settings()
    root = (workspace_root or settings.workspace_root).resolve()

    # ValidationError and JSONDecodeError are ValueErrors
    try:
        options = load_build_options(options_file, workspace_root=root)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"[red]Invalid options file {options_file}: {escape(str(e))}[/red]"
        )
        raise typer.Exit(code=1) from None

    try:
        outcome = run_bundle(options, workspace_root=root, settings=settings)
    except EsbuildExecutionError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if not isinstance(outcome, BuildResult):
        if json_output:
            output = {
                "success": False,
                "errors": len(outcome.errors),
                "warnings": len(outcome.warnings),
            }
            console.print(json.dumps(output, indent=2))
        else:
            console.print(
                f"[red]Build failed with {len(outcome.errors)} error(s)[/red]"
            )
        raise typer.Exit(code=1)

    if write:
        write_output_files(outcome.output_files, root)
    if manifest_path:
        write_manifest(generate_manifest(outcome), manifest_path)

    if json_output:
        output = {
            "success": True,
            "warnings": len(outcome.warnings),
            "output_files": [f.path for f in outcome.output_files],
            "initial_files": [
                {"file": i.file, "name": i.name, "extension": i.extension}
                for i in outcome.initial_files
            ],
        }
        console.print(json.dumps(output, indent=2))
        return

    console.print(
        f"[green]Build succeeded[/green] "
        f"({len(outcome.output_files)} output file(s))"
    )
    if outcome.initial_files:
        console.print()
        console.print("[bold]Initial files:[/bold]")
        for info in outcome.initial_files:
            console.print(f"  [green]{info.name}[/green]  {info.file}")
    if outcome.warnings:
        console.print(f"[yellow]{len(outcome.warnings)} warning(s)[/yellow]")


if __name__ == "__main__":
    app()
