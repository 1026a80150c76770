"""Pydantic model for esbuild build options.

This module defines the options accepted by the bundler binding. The
adapter treats them as opaque apart from the ``metafile`` and ``write``
flags it forces on fresh builds.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SourcemapMode = Literal["linked", "inline", "external", "both"]


class BuildOptions(BaseModel):
    """Options for a single esbuild invocation.

    Attributes:
        entry_points: Entry files, or a mapping of output name to entry file.
        bundle: Inline imported dependencies into the output.
        outdir: Output directory (relative to ``abs_working_dir``).
        outfile: Single output file; mutually exclusive with ``outdir``.
        abs_working_dir: Working directory the bundler runs in. Metafile
            paths are relative to it.
        metafile: Request build metadata describing inputs and outputs.
        write: Write outputs to disk instead of returning them in memory.
        incremental: Keep a session around for later rebuilds.
        extra_args: Raw arguments appended to the esbuild command line.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    entry_points: list[str] | dict[str, str] = Field(
        description="Entry files or output-name to entry-file mapping"
    )
    bundle: bool = Field(default=True)
    outdir: str | None = Field(default=None)
    outfile: str | None = Field(default=None)
    outbase: str | None = Field(default=None)
    abs_working_dir: Path | None = Field(default=None)

    format: Literal["iife", "cjs", "esm"] | None = Field(default=None)
    platform: Literal["browser", "node", "neutral"] | None = Field(default=None)
    target: list[str] = Field(default_factory=list)
    splitting: bool = Field(default=False)
    minify: bool = Field(default=False)
    sourcemap: bool | SourcemapMode = Field(default=False)

    entry_names: str | None = Field(default=None)
    chunk_names: str | None = Field(default=None)
    asset_names: str | None = Field(default=None)
    public_path: str | None = Field(default=None)

    define: dict[str, str] = Field(default_factory=dict)
    external: list[str] = Field(default_factory=list)
    loader: dict[str, str] = Field(default_factory=dict)
    main_fields: list[str] = Field(default_factory=list)
    conditions: list[str] = Field(default_factory=list)
    tsconfig: str | None = Field(default=None)
    charset: Literal["ascii", "utf8"] | None = Field(default=None)
    legal_comments: (
        Literal["none", "inline", "eof", "linked", "external"] | None
    ) = Field(default=None)
    tree_shaking: bool | None = Field(default=None)

    metafile: bool = Field(default=False)
    write: bool = Field(default=True)
    incremental: bool = Field(default=False)
    extra_args: list[str] = Field(default_factory=list)

    @field_validator("entry_points")
    @classmethod
    def validate_entry_points(
        cls, v: list[str] | dict[str, str]
    ) -> list[str] | dict[str, str]:
        """Validate at least one entry point is given."""
        if not v:
            raise ValueError("at least one entry point is required")
        return v

    @field_validator("abs_working_dir")
    @classmethod
    def validate_abs_working_dir(cls, v: Path | None) -> Path | None:
        """Validate the working directory is absolute."""
        if v is not None and not v.is_absolute():
            raise ValueError(f"abs_working_dir must be absolute, got '{v}'")
        return v

    @field_validator("loader")
    @classmethod
    def validate_loader(cls, v: dict[str, str]) -> dict[str, str]:
        """Validate loader keys are file extensions."""
        for ext in v:
            if not ext.startswith("."):
                raise ValueError(f"loader keys must start with '.', got '{ext}'")
        return v

    @model_validator(mode="after")
    def validate_output_location(self) -> "BuildOptions":
        """Validate exactly one of outdir/outfile is set."""
        if self.outdir and self.outfile:
            raise ValueError("outdir and outfile are mutually exclusive")
        if not self.outdir and not self.outfile:
            raise ValueError("one of outdir or outfile is required")
        if self.outfile and len(self.entry_points) > 1:
            raise ValueError("outfile can only be used with a single entry point")
        return self

    def working_dir(self) -> Path:
        """Return the absolute working directory for the build."""
        if self.abs_working_dir is None:
            return Path.cwd()
        return self.abs_working_dir

    def output_dir(self) -> Path:
        """Return the absolute directory outputs are written to."""
        root = self.working_dir()
        if self.outfile:
            return (root / self.outfile).parent
        return root / str(self.outdir)

    def with_forced_flags(self) -> "BuildOptions":
        """Return a copy requesting metadata and in-memory output."""
        return self.model_copy(update={"metafile": True, "write": False})


__all__ = ["BuildOptions", "SourcemapMode"]
