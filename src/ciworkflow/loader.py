# loader.py
from __future__ import annotations

import json
import runpy
from pathlib import Path
from typing import Any, Mapping

from .config import PipelineConfig, coerce_pipeline
from .resolvers.base import StaticTriggerResolver


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_pipeline(path: str | Path) -> PipelineConfig:
    """
    Load a pipeline definition file.

    Supported:
      - pipeline.json: {"jobs": {...}, "stages": {...}}
      - pipeline.py:   def pipeline() -> dict, or PIPELINE = {...}

    Returns:
      PipelineConfig
    """
    pl_path = Path(path).expanduser().resolve()
    if not pl_path.exists():
        raise FileNotFoundError(f"Pipeline file not found: {pl_path}")

    if pl_path.suffix == ".json":
        data = _read_json(pl_path)
    elif pl_path.suffix == ".py":
        module_name = f"ciworkflow_pipeline_{pl_path.stem}"
        globals_dict = runpy.run_path(str(pl_path), run_name=module_name)

        data = None
        if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
            data = globals_dict["pipeline"]()
        elif "PIPELINE" in globals_dict:
            data = globals_dict["PIPELINE"]
    else:
        raise ValueError(f"Pipeline must be a .json or .py file, got: {pl_path.name}")

    if not isinstance(data, Mapping):
        raise TypeError(
            "Pipeline must be a mapping. "
            "Define pipeline() -> dict or PIPELINE = {'jobs': {...}}."
        )

    return coerce_pipeline(data)


def load_triggers(path: str | Path) -> StaticTriggerResolver:
    """Load a {"sd@1:main": ["sd@2:test", ...]} JSON file as a resolver."""
    tr_path = Path(path).expanduser().resolve()
    if not tr_path.exists():
        raise FileNotFoundError(f"Triggers file not found: {tr_path}")

    data = _read_json(tr_path)
    if not isinstance(data, Mapping):
        raise TypeError("Triggers file must map a source to a list of destinations")
    return StaticTriggerResolver(data)
