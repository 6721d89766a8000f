"""Filter presets for ``apply_filter``.

Each adjustment maps to one FFmpeg video filter and carries the range the
editor's sliders allow.  Looks are fixed combinations of adjustments.
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.executor.command_builder import Filter, fmt_num
from ..errors import InvalidParameters, UnsupportedOperation


@dataclass(frozen=True)
class FilterPreset:
    name: str
    default: float
    render: Callable[[float], Filter]
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def validate(self, value: float) -> float:
        if math.isnan(value) or math.isinf(value):
            raise InvalidParameters(f"{self.name}: value must be a finite number")
        if self.minimum is not None and value < self.minimum:
            raise InvalidParameters(
                f"{self.name} must be between {fmt_num(self.minimum)} and {fmt_num(self.maximum)}, got {value}"
            )
        if self.maximum is not None and value > self.maximum:
            raise InvalidParameters(
                f"{self.name} must be between {fmt_num(self.minimum)} and {fmt_num(self.maximum)}, got {value}"
            )
        return value


def _eq(param: str) -> Callable[[float], Filter]:
    return lambda v: Filter("eq", {param: v})


def _speed_check(value: float) -> Filter:
    if value <= 0:
        raise InvalidParameters(f"speed must be positive, got {value}")
    return Filter("setpts", args=[f"{fmt_num(1.0 / value)}*PTS"])


FILTERS: dict[str, FilterPreset] = {
    "brightness": FilterPreset("brightness", 0.0, _eq("brightness"), -1.0, 1.0),
    "contrast": FilterPreset("contrast", 1.0, _eq("contrast"), 0.0, 3.0),
    "saturation": FilterPreset("saturation", 1.0, _eq("saturation"), 0.0, 3.0),
    "blur": FilterPreset("blur", 1.0, lambda v: Filter("gblur", {"sigma": v}), 0.0, 10.0),
    # unsharp=luma_msize_x:luma_msize_y:luma_amount:chroma_msize_x:chroma_msize_y:chroma_amount
    "sharpen": FilterPreset(
        "sharpen", 1.0, lambda v: Filter("unsharp", args=[5, 5, v, 5, 5, 0]), -2.0, 5.0,
    ),
    "rotate": FilterPreset("rotate", 90.0, lambda v: Filter("rotate", args=[v * math.pi / 180])),
    "speed": FilterPreset("speed", 1.0, _speed_check),
}

LOOKS: dict[str, dict[str, float]] = {
    "cinematic": {"brightness": -0.1, "contrast": 1.2, "saturation": 0.8},
    "vintage": {"saturation": 0.7, "contrast": 1.1},
    "dramatic": {"contrast": 1.5, "brightness": 0.1},
    "dreamy": {"blur": 1.5},
    "vivid": {"sharpen": 1.5, "saturation": 1.3},
}


def render_filters(name: str, value: Optional[float] = None) -> list[Filter]:
    """Filters for one adjustment or one look.

    ``eq`` adjustments inside a look are merged into a single ``eq`` filter.
    Looks are fixed combinations and take no value.

    Raises:
        UnsupportedOperation: Unknown filter or look name.
        InvalidParameters: Value outside the adjustment's range, or a value
            given for a look.
    """
    key = name.lower()
    if key in LOOKS:
        if value is not None:
            raise InvalidParameters(f"{name} is a look and takes no value")
        adjustments = LOOKS[key]
    elif key in FILTERS:
        preset = FILTERS[key]
        adjustments = {key: preset.validate(preset.default if value is None else value)}
    else:
        raise UnsupportedOperation(f"Unknown filter: {name}")

    filters: list[Filter] = []
    eq: Optional[Filter] = None
    for adj, v in adjustments.items():
        rendered = FILTERS[adj].render(v)
        if rendered.name == "eq":
            if eq is None:
                eq = rendered
                filters.append(eq)
            else:
                eq.params.update(rendered.params)
        else:
            filters.append(rendered)
    return filters
