################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
YAML schema utilities for fusion filter parameters

A parameter file is a mapping of namespaces to field overrides. Omitted
namespaces and fields keep their defaults. Unknown keys are errors so typos
never pass silently.

Example:
    filter:
      gravity_mps2: 9.81
    rejector:
      kind: guarded_mahalanobis
      window: 5
"""

from __future__ import annotations

import numbers
from dataclasses import fields
from pathlib import Path
from typing import Any
from typing import cast

import yaml

from oasis_msf.config.msf_params import MsfParams
from oasis_msf.config.msf_params import MsfParamsError


class MsfYamlError(Exception):
    """Raised when the fusion parameter YAML schema is invalid."""


def params_to_dict(params: MsfParams) -> dict[str, object]:
    """Convert a parameter tree into plain YAML-safe values."""
    return params.as_nested_dict()


def params_from_dict(data: dict[str, object]) -> MsfParams:
    """
    Build a parameter tree from a mapping of namespace overrides

    Raises:
        MsfYamlError: If a key is unknown or a value has the wrong type
    """

    defaults: MsfParams = MsfParams.defaults()
    namespaces: set[str] = {field.name for field in fields(defaults)}
    _require_known_keys("root", data, namespaces)

    overrides: dict[str, Any] = {}
    for name, value in data.items():
        mapping: dict[str, object] = _require_mapping(value, name)
        namespace: Any = getattr(defaults, name)
        overrides[name] = _namespace_from_dict(namespace, mapping, name)

    params: MsfParams = defaults.replace(**overrides)
    try:
        params.validate()
    except MsfParamsError as exc:
        raise MsfYamlError(str(exc)) from exc
    return params


def dumps_params_yaml(params: MsfParams) -> str:
    """Serialize parameters to deterministic YAML."""
    data: dict[str, object] = params_to_dict(params)
    safe_dump: Any = cast(Any, yaml.safe_dump)
    return safe_dump(
        data,
        sort_keys=False,
        indent=2,
        default_flow_style=False,
    )


def loads_params_yaml(text: str) -> MsfParams:
    """Parse parameters from YAML text."""
    try:
        loaded: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MsfYamlError(f"Invalid YAML: {exc}") from exc
    if loaded is None:
        return MsfParams.defaults()
    if not isinstance(loaded, dict):
        raise MsfYamlError("YAML root must be a mapping")
    return params_from_dict(loaded)


def load_params_yaml(path: str | Path) -> MsfParams:
    """Read and parse a YAML parameter file."""
    return loads_params_yaml(Path(path).read_text(encoding="utf-8"))


def _namespace_from_dict(namespace: Any, data: dict[str, object], scope: str) -> Any:
    """Return a copy of a namespace dataclass with overrides applied."""
    field_types: dict[str, str] = {
        field.name: str(field.type) for field in fields(namespace)
    }
    _require_known_keys(scope, data, set(field_types))

    values: dict[str, Any] = {}
    for key, value in data.items():
        name: str = f"{scope}.{key}"
        kind: str = field_types[key]
        if kind == "float":
            values[key] = _require_float(value, name)
        elif kind == "int":
            values[key] = _require_int(value, name)
        elif kind == "str":
            values[key] = _require_str(value, name)
        else:
            raise MsfYamlError(f"{name} has unsupported type {kind}")

    return type(namespace)(**{**_fields_of(namespace), **values})


def _fields_of(namespace: Any) -> dict[str, Any]:
    return {field.name: getattr(namespace, field.name) for field in fields(namespace)}


def _require_known_keys(scope: str, data: dict[str, object], allowed: set[str]) -> None:
    """Ensure a mapping has no keys outside the allowed set."""
    unknown: set[str] = {str(key) for key in data.keys() if key not in allowed}
    if unknown:
        raise MsfYamlError(f"Unexpected keys in {scope}: {', '.join(sorted(unknown))}")


def _require_mapping(value: object, name: str) -> dict[str, object]:
    """Ensure the value is a dictionary."""
    if not isinstance(value, dict):
        raise MsfYamlError(f"{name} must be a mapping")
    return value


def _require_str(value: object, name: str) -> str:
    """Ensure the value is a string."""
    if not isinstance(value, str):
        raise MsfYamlError(f"{name} must be a string")
    return value


def _require_int(value: object, name: str) -> int:
    """Ensure the value is an integer."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise MsfYamlError(f"{name} must be an integer")
    return int(value)


def _require_float(value: object, name: str) -> float:
    """Ensure the value is a float."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise MsfYamlError(f"{name} must be a float")
    return float(value)
