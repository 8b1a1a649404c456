from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import IO, Any, Mapping

from . import constants
from .topology import GraphFormatError, GraphModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """
    Tunables for one scenario evaluation.
    Allows overriding defaults for experimentation.
    """

    queue_threshold: float = constants.DEFAULT_QUEUE_THRESHOLD
    p95_multiplier: float = constants.DEFAULT_P95_MULTIPLIER
    epsilon: float = constants.EPSILON

    # Service utilization warning tiers
    elevated_utilization: float = constants.ELEVATED_UTILIZATION
    high_utilization: float = constants.HIGH_UTILIZATION

    datastore_p95_ratio: float = constants.DATASTORE_P95_TO_P50_RATIO

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EngineConfig":
        known = {f.name: f.name for f in fields(EngineConfig)}
        # Saved configs use the camelCase names of the JSON graph format.
        known.update(
            {
                "queueThreshold": "queue_threshold",
                "p95Multiplier": "p95_multiplier",
                "elevatedUtilization": "elevated_utilization",
                "highUtilization": "high_utilization",
                "datastoreP95Ratio": "datastore_p95_ratio",
            }
        )
        kwargs = {}
        for key, value in data.items():
            name = known.get(key)
            if name is None:
                logger.warning("Ignoring unknown engine setting %r", key)
                continue
            try:
                kwargs[name] = float(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"engine setting {key!r} must be a number, got {value!r}") from exc
        return EngineConfig(**kwargs)

    def to_dict(self) -> dict:
        return {
            "queueThreshold": self.queue_threshold,
            "p95Multiplier": self.p95_multiplier,
            "epsilon": self.epsilon,
            "elevatedUtilization": self.elevated_utilization,
            "highUtilization": self.high_utilization,
            "datastoreP95Ratio": self.datastore_p95_ratio,
        }


DEFAULT_ENGINE_CONFIG = EngineConfig()


def _read_text(path_or_file: str | Path | IO[str]) -> str:
    if hasattr(path_or_file, "read"):
        return path_or_file.read()  # type: ignore[union-attr]
    with open(Path(path_or_file), "r", encoding="utf-8") as f:  # type: ignore[arg-type]
        return f.read()


def _write_text(serialized: str, path_or_file: str | Path | IO[str]) -> None:
    if hasattr(path_or_file, "write"):
        path_or_file.write(serialized)  # type: ignore[union-attr]
    else:
        Path(path_or_file).write_text(serialized, encoding="utf-8")  # type: ignore[arg-type]


def load_graph(path_or_file: str | Path | IO[str]) -> GraphModel:
    raw = _read_text(path_or_file)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise GraphFormatError(f"graph file is not valid JSON: {exc}") from exc
    return GraphModel.from_dict(data)


def dump_graph(graph: GraphModel, path_or_file: str | Path | IO[str]) -> None:
    _write_text(json.dumps(graph.to_dict(), indent=2), path_or_file)


def load_engine_config(path_or_file: str | Path | IO[str]) -> EngineConfig:
    data = json.loads(_read_text(path_or_file))
    if not isinstance(data, dict):
        raise ValueError("engine config must be a JSON object")
    return EngineConfig.from_dict(data)
