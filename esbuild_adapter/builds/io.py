"""Build options file loading.

Options files are YAML or JSON mappings whose keys are BuildOptions fields.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from esbuild_adapter.builds.options import BuildOptions

YAML_SUFFIXES = {".yaml", ".yml"}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the content is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the content is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def load_build_options(
    path: Path,
    workspace_root: Path | None = None,
) -> BuildOptions:
    """Load and validate build options from a YAML or JSON file.

    Args:
        path: Options file; ``.yaml``/``.yml`` is read as YAML, anything
            else as JSON.
        workspace_root: Used as ``abs_working_dir`` when the file sets none.

    Returns:
        Validated BuildOptions instance.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If a YAML file is malformed.
        json.JSONDecodeError: If a JSON file is malformed.
        pydantic.ValidationError: If data does not match BuildOptions.
        ValueError: If the file content is not a mapping.
    """
    if path.suffix.lower() in YAML_SUFFIXES:
        data = load_yaml(path)
    else:
        data = load_json(path)

    if workspace_root is not None and not data.get("abs_working_dir"):
        data["abs_working_dir"] = str(Path(workspace_root).absolute())

    return BuildOptions.model_validate(data)


__all__ = ["load_build_options", "load_json", "load_yaml"]
