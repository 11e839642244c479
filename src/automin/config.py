import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import toml

STRATEGIES = ("refine", "hopcroft")
CONFIG_TABLE = "minimizer"


@dataclass(frozen=True)
class MinimizerConfig:
    max_states: int = 10000
    strategy: str = "refine"
    classifier: str = "accepting"
    drop_unreachable: bool = False
    log_level: str = "WARNING"

    def __post_init__(self):
        # bool is an int subclass
        if not isinstance(self.max_states, int) or isinstance(self.max_states, bool):
            raise ValueError(f"max_states must be an integer, got {self.max_states!r}")
        if not isinstance(self.drop_unreachable, bool):
            raise ValueError(f"drop_unreachable must be true or false, got {self.drop_unreachable!r}")
        for name in ("strategy", "classifier", "log_level"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string, got {getattr(self, name)!r}")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy: {self.strategy}")
        if self.max_states < 0:
            raise ValueError("max_states must be >= 0")
        if not (
            self.classifier in ("accepting", "none")
            or self.classifier.startswith("metadata:")
        ):
            raise ValueError(f"Unknown classifier: {self.classifier}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MinimizerConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_toml(cls, path: str) -> "MinimizerConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
        return cls.from_dict(data.get(CONFIG_TABLE, {}))

    def override(self, **changes: Optional[Any]) -> "MinimizerConfig":
        # None means "not given on the command line"
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def load_config(path: Optional[str] = None) -> MinimizerConfig:
    if path is None:
        return MinimizerConfig()
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    return MinimizerConfig.from_toml(path)
