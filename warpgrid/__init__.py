from warpgrid.api import plot
from warpgrid.backend import Backend, RasterBackend, RecordingBackend
from warpgrid.boundary import BoundaryResult, trace_boundary
from warpgrid.errors import (
    AttributeLookupError,
    BackendError,
    BreakCapacityError,
    InsufficientDataError,
    WarpGridError,
)
from warpgrid.frames import CartesianFrame, Frame, SphericalFrame
from warpgrid.plot import GridResult, Plot
from warpgrid.render import Break, CurveBreaks, draw_curve
from warpgrid.samples import GridSampleSet, find_sample_set
from warpgrid.ticks import TickRequest, TickSet, plan_ticks
from warpgrid.transforms import (
    UNDEFINED,
    ChainedTransform,
    FunctionTransform,
    LinearTransform,
    OrthographicTransform,
    PartialTransform,
    Transform,
)
from warpgrid.viewport import ClipVolume, Viewport

__all__ = [
    "AttributeLookupError",
    "Backend",
    "BackendError",
    "BoundaryResult",
    "Break",
    "BreakCapacityError",
    "CartesianFrame",
    "ChainedTransform",
    "ClipVolume",
    "CurveBreaks",
    "Frame",
    "FunctionTransform",
    "GridResult",
    "GridSampleSet",
    "InsufficientDataError",
    "LinearTransform",
    "OrthographicTransform",
    "PartialTransform",
    "Plot",
    "RasterBackend",
    "RecordingBackend",
    "SphericalFrame",
    "TickRequest",
    "TickSet",
    "Transform",
    "UNDEFINED",
    "Viewport",
    "WarpGridError",
    "draw_curve",
    "find_sample_set",
    "plan_ticks",
    "plot",
    "trace_boundary",
]
