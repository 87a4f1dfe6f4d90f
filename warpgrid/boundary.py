from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import math

import numpy as np

from warpgrid.render import DEFAULT_TOL, MAX_TOL, MIN_TOL, resolve_tolerance
from warpgrid.transforms import Transform, is_defined
from warpgrid.viewport import Viewport


LOGGER = logging.getLogger(__name__)

MIN_COARSE = 8
MAX_COARSE = 400
COARSE_TOL_SCALE = 0.05
MAX_REFINED_CELLS = 1_000_000

Cell = tuple[int, int]
# ("h", i, j) joins fine corners (i, j)-(i+1, j); ("v", i, j) joins (i, j)-(i, j+1).
EdgeKey = tuple[str, int, int]
Point = tuple[float, float]


@dataclass(frozen=True, eq=False)
class BoundaryResult:
    ncoarse: int
    cells: tuple[Cell, ...] = ()
    curves: tuple[np.ndarray, ...] = ()
    fully_defined: bool = False
    fully_undefined: bool = False

    @property
    def empty(self) -> bool:
        return not self.curves


def coarse_size(tol: float) -> int:
    frac = min(MAX_TOL, max(MIN_TOL, float(tol)))
    return int(min(MAX_COARSE, max(MIN_COARSE, math.ceil(COARSE_TOL_SCALE / frac))))


class BoundaryTracer:
    """Traces the border between defined and undefined parts of a viewport.

    A coarse lattice of cells is classified by the validity of its corners.
    Every cell mixing defined and undefined corners is refined into a fine
    sub-grid, and the border is followed through it from midpoint to
    midpoint of crossing edges. A trace leaving a cell flags the neighbour it
    leaves into, so cells the corner test misses are still traced. All fine
    corners come from one global lattice, so pieces traced in adjacent cells
    share their end points exactly and can be chained.
    """

    def __init__(self, transform: Transform, viewport: Viewport, tol: float = DEFAULT_TOL) -> None:
        self.transform = transform
        self.viewport = viewport
        self.ncoarse = coarse_size(tol)
        tol_abs = resolve_tolerance(tol, viewport)
        cell = max(viewport.width, viewport.height) / self.ncoarse
        cap = max(2, int(math.sqrt(MAX_REFINED_CELLS / (4 * self.ncoarse))))
        self.nsub = max(2, min(cap, int(math.ceil(cell / tol_abs))))
        self.nfine = self.ncoarse * self.nsub
        self.dx = viewport.width / self.nfine
        self.dy = viewport.height / self.nfine
        self._valid: dict[Cell, np.ndarray] = {}

    def corner(self, gi: int, gj: int) -> Point:
        return (self.viewport.xlo + gi * self.dx, self.viewport.ylo + gj * self.dy)

    def midpoint(self, edge: EdgeKey) -> Point:
        kind, gi, gj = edge
        if kind == "h":
            return (self.viewport.xlo + (gi + 0.5) * self.dx, self.viewport.ylo + gj * self.dy)
        return (self.viewport.xlo + gi * self.dx, self.viewport.ylo + (gj + 0.5) * self.dy)

    def _defined(self, gi: np.ndarray, gj: np.ndarray) -> np.ndarray:
        pts = np.column_stack(
            (self.viewport.xlo + gi.astype(np.float64) * self.dx, self.viewport.ylo + gj.astype(np.float64) * self.dy)
        )
        return is_defined(self.transform.transform(pts, forward=True))

    def coarse_validity(self) -> np.ndarray:
        """Validity of the coarse corners, indexed [j, i]."""
        idx = np.arange(self.ncoarse + 1) * self.nsub
        gi, gj = np.meshgrid(idx, idx)
        return self._defined(gi.ravel(), gj.ravel()).reshape(self.ncoarse + 1, self.ncoarse + 1)

    def cell_validity(self, cell: Cell) -> np.ndarray:
        """Validity of the fine corners of one coarse cell, indexed [local j, local i]."""
        if cell not in self._valid:
            ci, cj = cell
            n = self.nsub
            gi, gj = np.meshgrid(np.arange(ci * n, (ci + 1) * n + 1), np.arange(cj * n, (cj + 1) * n + 1))
            self._valid[cell] = self._defined(gi.ravel(), gj.ravel()).reshape(n + 1, n + 1)
        return self._valid[cell]

    def trace(self) -> BoundaryResult:
        corners = self.coarse_validity()
        if bool(np.all(corners)):
            return BoundaryResult(ncoarse=self.ncoarse, fully_defined=True)
        if not bool(np.any(corners)):
            return BoundaryResult(ncoarse=self.ncoarse, fully_undefined=True)

        mixed = (
            corners[:-1, :-1].astype(np.int8)
            + corners[:-1, 1:]
            + corners[1:, :-1]
            + corners[1:, 1:]
        )
        mixed = (mixed > 0) & (mixed < 4)
        flagged: set[Cell] = set()
        queue: deque[Cell] = deque()
        for cj, ci in zip(*np.nonzero(mixed), strict=True):
            cell = (int(ci), int(cj))
            flagged.add(cell)
            queue.append(cell)

        pieces: list[list[Point]] = []
        order: list[Cell] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for piece, exits in self._trace_cell(cell):
                pieces.append(piece)
                for neighbour in exits:
                    if neighbour not in flagged:
                        flagged.add(neighbour)
                        queue.append(neighbour)

        curves = tuple(np.asarray(chain, dtype=np.float64) for chain in chain_pieces(pieces))
        LOGGER.debug(
            "boundary: ncoarse=%d nsub=%d cells=%d pieces=%d curves=%d",
            self.ncoarse,
            self.nsub,
            len(order),
            len(pieces),
            len(curves),
        )
        return BoundaryResult(ncoarse=self.ncoarse, cells=tuple(order), curves=curves)

    def _inside(self, cell: Cell, sub: Cell) -> bool:
        ci, cj = cell
        n = self.nsub
        return ci * n <= sub[0] < (ci + 1) * n and cj * n <= sub[1] < (cj + 1) * n

    def _crosses(self, cell: Cell, edge: EdgeKey) -> bool:
        kind, gi, gj = edge
        valid = self.cell_validity(cell)
        li = gi - cell[0] * self.nsub
        lj = gj - cell[1] * self.nsub
        if kind == "h":
            return bool(valid[lj, li] != valid[lj, li + 1])
        return bool(valid[lj, li] != valid[lj + 1, li])

    def _perimeter(self, cell: Cell) -> list[EdgeKey]:
        ci, cj = cell
        n = self.nsub
        i0, j0 = ci * n, cj * n
        edges: list[EdgeKey] = []
        edges.extend(("h", i0 + k, j0) for k in range(n))
        edges.extend(("v", i0 + n, j0 + k) for k in range(n))
        edges.extend(("h", i0 + k, j0 + n) for k in reversed(range(n)))
        edges.extend(("v", i0, j0 + k) for k in reversed(range(n)))
        return edges

    def _on_perimeter(self, cell: Cell, edge: EdgeKey) -> bool:
        kind, gi, gj = edge
        n = self.nsub
        if kind == "h":
            return gj in (cell[1] * n, (cell[1] + 1) * n)
        return gi in (cell[0] * n, (cell[0] + 1) * n)

    def _neighbour_across(self, cell: Cell, edge: EdgeKey) -> Cell | None:
        kind, gi, gj = edge
        ci, cj = cell
        n = self.nsub
        if kind == "h":
            nb = (ci, cj - 1) if gj == cj * n else (ci, cj + 1)
        else:
            nb = (ci - 1, cj) if gi == ci * n else (ci + 1, cj)
        if 0 <= nb[0] < self.ncoarse and 0 <= nb[1] < self.ncoarse:
            return nb
        return None

    @staticmethod
    def _sub_edges(sub: Cell) -> tuple[EdgeKey, ...]:
        si, sj = sub
        return (("h", si, sj), ("v", si + 1, sj), ("h", si, sj + 1), ("v", si, sj))

    @staticmethod
    def _sub_cells(edge: EdgeKey) -> tuple[Cell, Cell]:
        kind, gi, gj = edge
        if kind == "h":
            return (gi, gj - 1), (gi, gj)
        return (gi - 1, gj), (gi, gj)

    def _trace_cell(self, cell: Cell) -> list[tuple[list[Point], list[Cell]]]:
        used: set[EdgeKey] = set()
        out: list[tuple[list[Point], list[Cell]]] = []
        max_steps = 4 * self.nsub * self.nsub
        for start in self._perimeter(cell):
            if start in used or not self._crosses(cell, start):
                continue
            used.add(start)
            piece = [self.midpoint(start)]
            ends = [start]
            sub = next(s for s in self._sub_cells(start) if self._inside(cell, s))
            entry = start
            for _ in range(max_steps):
                nxt = None
                for edge in self._sub_edges(sub):
                    if edge != entry and edge not in used and self._crosses(cell, edge):
                        nxt = edge
                        break
                if nxt is None:
                    break
                used.add(nxt)
                piece.append(self.midpoint(nxt))
                if self._on_perimeter(cell, nxt):
                    ends.append(nxt)
                    break
                sub = next(s for s in self._sub_cells(nxt) if s != sub)
                entry = nxt
            else:
                LOGGER.warning("boundary: trace in cell %s stopped after %d steps", cell, max_steps)

            exits = [nb for nb in (self._neighbour_across(cell, e) for e in ends) if nb is not None]
            if len(piece) >= 2:
                out.append((piece, exits))
        return out


def chain_pieces(pieces: list[list[Point]]) -> list[list[Point]]:
    """Join pieces whose end points coincide exactly into longer curves."""
    by_end: dict[Point, list[int]] = {}
    for idx, piece in enumerate(pieces):
        by_end.setdefault(piece[0], []).append(idx)
        by_end.setdefault(piece[-1], []).append(idx)

    done = [False] * len(pieces)

    def take(point: Point) -> list[Point] | None:
        for idx in by_end.get(point, ()):
            if done[idx]:
                continue
            done[idx] = True
            piece = pieces[idx]
            return piece if piece[0] == point else piece[::-1]
        return None

    chains: list[list[Point]] = []
    for idx, piece in enumerate(pieces):
        if done[idx]:
            continue
        done[idx] = True
        chain = list(piece)
        while (nxt := take(chain[-1])) is not None:
            chain.extend(nxt[1:])
        while (prev := take(chain[0])) is not None:
            chain[:0] = prev[::-1][:-1]
        chains.append(chain)
    return chains


def trace_boundary(transform: Transform, viewport: Viewport, tol: float = DEFAULT_TOL) -> BoundaryResult:
    return BoundaryTracer(transform, viewport, tol).trace()
