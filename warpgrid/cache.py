from __future__ import annotations

from dataclasses import dataclass

from warpgrid.boundary import BoundaryResult
from warpgrid.samples import GridSampleSet
from warpgrid.ticks import TickSet


@dataclass
class GridCache:
    """Intermediate results shared by the steps of one grid drawing.

    Owned by the caller for the duration of a single `Plot.grid()` call and
    invalidated explicitly when the call ends.
    """

    samples: GridSampleSet | None = None
    ticks: tuple[TickSet, TickSet] | None = None
    boundary: BoundaryResult | None = None

    def invalidate(self) -> None:
        self.samples = None
        self.ticks = None
        self.boundary = None
