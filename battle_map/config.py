"""
Object-group vocabulary and collider annotation rules.

The defaults describe the treasure-hunt battle maps. A deployment can
override them with a YAML file:

    spawn_groups: [ControlledPlayerStartingPos]
    ignored_groups: [Pumpkin, SpeedShoe]
    barrier_groups: [Barrier]
    instanced_collider_groups: [LowScoreTreasure, GuardTower, HighScoreTreasure]
    collider_type_property: type
    barrier_property: [boundary_type, barrier]
    strict_annotations: false
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Tuple, Union

import yaml


@dataclass(frozen=True)
class ResolverConfig:
    spawn_groups: Tuple[str, ...] = ("ControlledPlayerStartingPos",)
    ignored_groups: Tuple[str, ...] = ("Pumpkin", "SpeedShoe")
    barrier_groups: Tuple[str, ...] = ("Barrier",)
    instanced_collider_groups: Tuple[str, ...] = (
        "LowScoreTreasure", "GuardTower", "HighScoreTreasure",
    )
    # Name of the leading property that labels a tile collider outline
    collider_type_property: str = "type"
    # (name, value) that must lead the property set of a barrier object
    barrier_property: Tuple[str, str] = ("boundary_type", "barrier")
    # Raise InconsistentColliderAnnotation instead of logging and skipping
    strict_annotations: bool = False

    def __post_init__(self):
        claimed = {}
        for attr in ("spawn_groups", "ignored_groups", "barrier_groups",
                     "instanced_collider_groups"):
            for name in getattr(self, attr):
                if name in claimed:
                    raise ValueError(
                        f"object group {name!r} listed in both {claimed[name]} and {attr}"
                    )
                claimed[name] = attr

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'ResolverConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown resolver config keys: {sorted(unknown)}")

        kwargs = {}
        for key, value in data.items():
            if key == "collider_type_property":
                if not isinstance(value, str):
                    raise ValueError(f"{key} must be a string, got {value!r}")
                kwargs[key] = value
            elif key == "strict_annotations":
                if not isinstance(value, bool):
                    raise ValueError(f"{key} must be true or false, got {value!r}")
                kwargs[key] = value
            else:
                if not isinstance(value, (list, tuple)):
                    raise ValueError(f"{key} must be a list, got {value!r}")
                if not all(isinstance(item, str) for item in value):
                    raise ValueError(f"{key} must hold strings, got {value!r}")
                kwargs[key] = tuple(value)
        if "barrier_property" in kwargs and len(kwargs["barrier_property"]) != 2:
            raise ValueError("barrier_property must be a [name, value] pair")
        return cls(**kwargs)


DEFAULT_CONFIG = ResolverConfig()


def load_config(path: Union[str, Path]) -> ResolverConfig:
    """
    Load a ResolverConfig from a YAML file.

    A missing file gives the defaults; an empty file too.
    """
    path = Path(path)
    if not path.exists():
        return DEFAULT_CONFIG
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return ResolverConfig.from_mapping(data)
