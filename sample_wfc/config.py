import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Optional

import yaml

from .errors import InvalidConfiguration
from .sample import Sample, bordered_sample, load_sample, solid_sample
from .tiles import SCAN_ORDERS

BUILTIN_SAMPLES = ("bordered", "bordered-large", "solid")


@dataclass
class RunConfig:
    """
    Settings for one generation run, usually loaded from a YAML file.

    ``sample`` is either a built-in name (see BUILTIN_SAMPLES) or a path to
    an image file. ``sample_size``, ``sample_border`` and ``sample_color``
    only apply to built-in samples.
    """
    sample: str = "bordered"
    sample_size: Optional[int] = None
    sample_border: Optional[int] = None
    sample_color: str = "black"
    output_width: int = 32
    output_height: int = 32
    seed: Optional[int] = None
    scan_order: str = "column"
    placeholder: str = "magenta"
    render: bool = False
    fps: int = 60
    pixel_size: int = 12
    output: Optional[str] = None
    max_steps: Optional[int] = None

    def __post_init__(self) -> None:
        if self.output_width <= 0 or self.output_height <= 0:
            raise InvalidConfiguration(
                f"Output size must be positive, got {self.output_width}x{self.output_height}"
            )
        if self.scan_order not in SCAN_ORDERS:
            raise InvalidConfiguration(
                f"Unknown scan order {self.scan_order!r}, expected one of {SCAN_ORDERS}"
            )
        if self.fps <= 0 or self.pixel_size <= 0:
            raise InvalidConfiguration("fps and pixel_size must be positive")

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        """Copy of this config with every non-None override applied"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def build_sample(self) -> Sample:
        if self.sample == "bordered":
            return bordered_sample(self.sample_size or 5, 1 if self.sample_border is None else self.sample_border)
        if self.sample == "bordered-large":
            return bordered_sample(self.sample_size or 11, 3 if self.sample_border is None else self.sample_border)
        if self.sample == "solid":
            return solid_sample(self.sample_size or 5, self.sample_color)
        if not os.path.exists(self.sample):
            raise InvalidConfiguration(
                f"Sample {self.sample!r} is neither a file nor one of {BUILTIN_SAMPLES}"
            )
        return load_sample(self.sample)


def load_config(path: str) -> RunConfig:
    """Read a RunConfig from a YAML mapping; unknown keys are rejected"""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"{path} must contain a mapping, got {type(data).__name__}")

    known = {field.name for field in fields(RunConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidConfiguration(f"Unknown keys in {path}: {', '.join(unknown)}")
    return RunConfig(**data)


def save_config(config: RunConfig, path: str) -> None:
    with open(path, "w") as f:
        yaml.dump(asdict(config), f, default_flow_style=False)
