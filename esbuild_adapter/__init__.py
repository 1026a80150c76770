"""esbuild adapter - run the esbuild bundler and normalize its results.

This package wraps the esbuild executable: it forwards build options,
returns build failures as values, makes output paths workspace-relative,
extracts initial (entry point) files, and forwards diagnostics to a logger.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
