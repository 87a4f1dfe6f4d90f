from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from warpgrid.errors import AttributeLookupError
from warpgrid.labels import DEFAULT_EDGES
from warpgrid.render import DEFAULT_MAX_BREAKS, DEFAULT_TOL, MAX_TOL, MIN_TOL
from warpgrid.ticks import DEFAULT_MAX_TICKS, DEFAULT_MIN_TICKS
from warpgrid.viewport import EDGES


DEFAULT_MAJOR_TICK_LEN = 0.015
DEFAULT_MINOR_TICK_LEN = 0.007
DEFAULT_LABEL_GAP = 0.01
DEFAULT_TEXT_SIZE = 1.0
LABELLING_MODES = ("exterior", "interior")
TANGENT_POLICIES = ("shorter", "forward", "backward")


def _optional(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def coerce(value: Any) -> Any:
        return None if value is None else fn(value)

    return coerce


def _positive_float(value: Any) -> float:
    out = float(value)
    if not out > 0:
        raise ValueError("value must be > 0")
    return out


def _non_negative_float(value: Any) -> float:
    out = float(value)
    if not out >= 0:
        raise ValueError("value must be >= 0")
    return out


def _tolerance(value: Any) -> float:
    return min(MAX_TOL, max(MIN_TOL, _positive_float(value)))


def _count(value: Any) -> int:
    out = int(value)
    if out < 1:
        raise ValueError("value must be >= 1")
    return out


def _choice(options: tuple[str, ...]) -> Callable[[Any], str]:
    def coerce(value: Any) -> str:
        text = str(value).lower()
        if text not in options:
            raise ValueError(f"value must be one of {options}")
        return text

    return coerce


def _max_breaks(value: Any) -> int:
    out = int(value)
    if out < 2:
        raise ValueError("max_breaks must be >= 2")
    return out


@dataclass(frozen=True)
class AttributeSpec:
    default: Any
    per_axis: bool
    coerce: Callable[[Any], Any]
    doc: str = ""

    def default_for(self, axis: int | None) -> Any:
        if callable(self.default):
            return self.default(axis)
        return self.default


_DEFAULTS: dict[str, AttributeSpec] = {
    "tol": AttributeSpec(DEFAULT_TOL, False, _tolerance, "curve tolerance, fraction of the smaller viewport side"),
    "gap": AttributeSpec(None, True, _optional(_positive_float), "major tick gap; None chooses one"),
    "centre": AttributeSpec(None, True, _optional(float), "value a major tick is placed on"),
    "min_tick": AttributeSpec(None, True, _optional(_count), "minor divisions per major gap"),
    "min_ticks": AttributeSpec(DEFAULT_MIN_TICKS, True, _count, "fewest major ticks wanted"),
    "max_ticks": AttributeSpec(DEFAULT_MAX_TICKS, True, _count, "most major ticks wanted"),
    "grid": AttributeSpec(False, False, bool, "draw full tick lines instead of edge tick marks only"),
    "border": AttributeSpec(True, False, bool, "draw the border of the defined region"),
    "labelling": AttributeSpec("exterior", False, _choice(LABELLING_MODES), "where numerical labels go"),
    "edge": AttributeSpec(lambda axis: DEFAULT_EDGES[axis], True, _choice(EDGES), "edge carrying exterior labels"),
    "format": AttributeSpec(None, True, _optional(str), "Python format spec for labels"),
    "digits": AttributeSpec(None, True, _optional(_count), "significant digits for labels"),
    "maj_tick_len": AttributeSpec(DEFAULT_MAJOR_TICK_LEN, True, _non_negative_float, "major tick mark length"),
    "min_tick_len": AttributeSpec(DEFAULT_MINOR_TICK_LEN, True, _non_negative_float, "minor tick mark length"),
    "num_lab": AttributeSpec(True, True, bool, "draw numerical labels"),
    "num_lab_gap": AttributeSpec(DEFAULT_LABEL_GAP, True, float, "label distance from the edge"),
    "text_size": AttributeSpec(DEFAULT_TEXT_SIZE, False, _positive_float, "scale of the estimated text metrics"),
    "ink": AttributeSpec(True, False, bool, "send output to the backend"),
    "max_breaks": AttributeSpec(DEFAULT_MAX_BREAKS, False, _max_breaks, "break capacity per curve"),
    "tangent_policy": AttributeSpec("shorter", False, _choice(TANGENT_POLICIES), "finite-difference tangent choice"),
}

ATTRIBUTE_NAMES = tuple(sorted(_DEFAULTS))


class PlotAttributes:
    """Optional style values over documented defaults.

    Per-axis attributes take `axis=0` or `axis=1`; setting, clearing or
    testing one without an axis applies to every axis.
    """

    def __init__(self, naxes: int = 2) -> None:
        self.naxes = naxes
        self._values: dict[tuple[str, int | None], Any] = {}

    def _spec(self, operation: str, name: str, axis: int | None) -> AttributeSpec:
        spec = _DEFAULTS.get(name)
        if spec is None:
            raise AttributeLookupError(operation, "unknown attribute", name=name)
        if axis is not None:
            if not spec.per_axis:
                raise AttributeLookupError(operation, "attribute does not take an axis", name=name, axis=axis)
            if not isinstance(axis, int) or not 0 <= axis < self.naxes:
                raise AttributeLookupError(operation, "axis out of range", name=name, axis=axis)
        return spec

    def _axes(self, spec: AttributeSpec, axis: int | None) -> list[int | None]:
        if not spec.per_axis:
            return [None]
        return [axis] if axis is not None else list(range(self.naxes))

    def get(self, name: str, axis: int | None = None) -> Any:
        spec = self._spec("get", name, axis)
        if spec.per_axis and axis is None:
            raise AttributeLookupError("get", "attribute needs an axis", name=name)
        key = (name, axis)
        if key in self._values:
            return self._values[key]
        return spec.default_for(axis)

    def set(self, name: str, value: Any, axis: int | None = None) -> None:
        spec = self._spec("set", name, axis)
        coerced = spec.coerce(value)
        for ax in self._axes(spec, axis):
            self._values[(name, ax)] = coerced

    def clear(self, name: str, axis: int | None = None) -> None:
        spec = self._spec("clear", name, axis)
        for ax in self._axes(spec, axis):
            self._values.pop((name, ax), None)

    def test(self, name: str, axis: int | None = None) -> bool:
        """True when the attribute has been set explicitly."""
        spec = self._spec("test", name, axis)
        return any((name, ax) in self._values for ax in self._axes(spec, axis))

    def update(self, values: dict[str, Any]) -> None:
        """Set several attributes; a name ending in `_0`/`_1` targets that axis."""
        for key, value in values.items():
            name, axis = key, None
            if key not in _DEFAULTS and key[-2:-1] == "_" and key[-1:].isdigit():
                name, axis = key[:-2], int(key[-1])
            self.set(name, value, axis)

    def snapshot(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in ATTRIBUTE_NAMES:
            spec = _DEFAULTS[name]
            if spec.per_axis:
                out[name] = tuple(self.get(name, axis) for axis in range(self.naxes))
            else:
                out[name] = self.get(name)
        return out
