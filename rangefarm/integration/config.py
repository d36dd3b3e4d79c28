"""YAML loader for ``FarmingConfig``."""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from ..core.config import FarmingConfig


def config_from_mapping(data: Mapping[str, Any]) -> FarmingConfig:
    """Build a config from a plain mapping; unknown keys are rejected."""
    if not isinstance(data, Mapping):
        raise ValueError(f"config must be a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(FarmingConfig)}
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")
    return FarmingConfig(**dict(data))


def load_config(path: Union[str, Path]) -> FarmingConfig:
    """
    Load a ``FarmingConfig`` from a YAML file.

    An empty file yields the defaults. Values are type-checked by
    ``FarmingConfig.__post_init__`` (ints stay ints; ``1e3`` is rejected).
    """
    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if data is None:
        return FarmingConfig()
    return config_from_mapping(data)
